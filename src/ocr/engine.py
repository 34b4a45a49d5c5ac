"""Recognition engine interface.

The orchestrator depends only on this contract:

- ``initialize()`` acquires the backend handle (raises EngineUnavailable)
- ``recognize(image, layout_hint)`` returns text plus a 0-100 confidence
  (raises RecognitionFailure)
- ``terminate()`` releases the handle

A handle is reusable across ``recognize`` calls with different layout hints.
Engines are not thread-safe; callers must serialize ``recognize`` calls
against one engine instance.

Example:
    >>> engine = create_engine(OCREngineConfig(type="tesseract"))
    >>> engine.initialize()
    >>> result = engine.recognize(binary_image, LayoutHint.SINGLE_LINE)
    >>> print(result.text, result.confidence)
    'NEEXT-GC-AB12CD34-5' 91.0
    >>> engine.terminate()
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from .config_loader import OCREngineConfig
from .types import LayoutHint


@dataclass
class OCREngineResult:
    """Result from a single recognition call.

    Attributes:
        text: Recognized text (lines separated by newlines).
        confidence: Mean confidence across recognized words (0-100).
        word_confidences: Per-word confidence scores (0-100).
        bounding_boxes: List of (x1, y1, x2, y2) boxes for each word/region.
    """

    text: str
    confidence: float
    word_confidences: List[float] = field(default_factory=list)
    bounding_boxes: List[Tuple[int, int, int, int]] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "OCREngineResult":
        return cls(text="", confidence=0.0)


class RecognitionEngine(ABC):
    """Interface for OCR backends used by the extractor.

    Engines must return literal text hypotheses and confidences. Semantic
    correction belongs to the normalizer and matcher.
    """

    name = "base"

    @abstractmethod
    def initialize(self) -> None:
        """Acquire the backend handle.

        Raises:
            EngineUnavailable: If the backend cannot be started.
        """
        raise NotImplementedError

    @abstractmethod
    def recognize(self, image: np.ndarray, layout_hint: LayoutHint) -> OCREngineResult:
        """Recognize text in a binary image.

        Args:
            image: Binary RGBA image (R == G == B, values in {0, 255}).
            layout_hint: Expected text arrangement.

        Raises:
            EngineUnavailable: If called before ``initialize``.
            RecognitionFailure: If the backend errors.
        """
        raise NotImplementedError

    @abstractmethod
    def terminate(self) -> None:
        """Release the backend handle. Safe to call more than once."""
        raise NotImplementedError

    @property
    @abstractmethod
    def is_initialized(self) -> bool:
        raise NotImplementedError


def to_single_channel(image: np.ndarray) -> np.ndarray:
    """Reduce a binary RGBA/RGB image to one channel for the OCR backend."""
    if image.ndim == 2:
        return image
    if image.ndim == 3:
        return np.ascontiguousarray(image[:, :, 0])
    raise ValueError(f"Invalid image shape: {image.shape}")


def create_engine(config: OCREngineConfig) -> RecognitionEngine:
    """Build the engine selected by ``config.type``.

    Raises:
        ValueError: If the type is neither "tesseract" nor "rapidocr".
    """
    engine_type = config.type.lower()

    if engine_type == "rapidocr":
        from .engine_rapidocr import RapidOCREngine

        return RapidOCREngine(config)

    if engine_type == "tesseract":
        from .engine_tesseract import TesseractEngine

        return TesseractEngine(config)

    raise ValueError(f"Unknown engine type '{config.type}'")
