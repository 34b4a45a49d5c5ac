"""Exceptions raised inside the extraction pipeline.

Every exception defined here is caught by the orchestrator
(``src.ocr.processor.CodeExtractor``) and folded into a FAILED
``ExtractionResult``; none of them reaches the caller of ``extract_code``.
"""


class ExtractionError(Exception):
    """Base class for all pipeline errors.

    Attributes:
        message: Human-readable explanation.
        details: Optional structured context for logging.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DecodeError(ExtractionError):
    """Input image is unreadable, corrupt or of an unsupported type."""


class EngineUnavailable(ExtractionError):
    """Recognition backend failed to initialize or is not initialized."""


class RecognitionFailure(ExtractionError):
    """A single recognition call errored."""
