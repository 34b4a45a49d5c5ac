"""Type definitions for the code extraction pipeline.

This module defines the core data structures shared by the recognition
engines and the orchestrator: layout hints, per-attempt records, failure
reasons and the final extraction result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from src.common.types import RegionOfInterest


class ExtractionStatus(Enum):
    """Terminal status of an extraction."""

    SUCCESS = "success"
    FAILED = "failed"


class LayoutHint(Enum):
    """Expected text arrangement passed to the recognition engine."""

    SINGLE_WORD = "single_word"  # One token, no spaces
    SINGLE_LINE = "single_line"  # One horizontal line of text
    BLOCK = "block"  # Uniform block, possibly several lines


class RegionSource(Enum):
    """Which pixels an attempt recognizes."""

    ROI = "roi"  # Located code region, upscaled if small
    FULL_IMAGE = "full_image"  # Whole working-resolution image


@dataclass
class FailureReason:
    """Structured failure reason with error code and context.

    Attributes:
        code: Error code (e.g., "EXT-E004")
        constant: String constant for programmatic checking (e.g., "NO_MATCH")
        message: Human-readable explanation
        stage: Pipeline stage where the failure occurred (e.g., "MATCH")
        severity: Error severity level ("ERROR" or "WARNING")
    """

    code: str
    constant: str
    message: str
    stage: str
    severity: str = "ERROR"


@dataclass
class OcrAttempt:
    """One recognition pass over one image source.

    Attributes:
        source: Region recognized (ROI or full image)
        layout_hint: Layout hint given to the engine
        region: Pixel region used (None if the attempt never got that far)
        raw_text: Text returned by the engine
        normalized_text: Text after normalization
        confidence: Engine confidence (0-100)
        matched_pattern: Name of the grammar pattern that matched, if any
        code: Canonical code reconstructed from the match, if any
        error: Recognition error message, if the engine call failed
        low_confidence: Whether confidence fell below the fallback floor
    """

    source: RegionSource
    layout_hint: LayoutHint
    region: Optional[RegionOfInterest] = None
    raw_text: str = ""
    normalized_text: str = ""
    confidence: float = 0.0
    matched_pattern: Optional[str] = None
    code: Optional[str] = None
    error: Optional[str] = None
    low_confidence: bool = False

    @property
    def matched(self) -> bool:
        return self.code is not None

    def to_dict(self) -> dict:
        return {
            "source": self.source.value,
            "layout_hint": self.layout_hint.value,
            "region": self.region.to_tuple() if self.region else None,
            "raw_text": self.raw_text,
            "normalized_text": self.normalized_text,
            "confidence": self.confidence,
            "matched_pattern": self.matched_pattern,
            "code": self.code,
            "error": self.error,
            "low_confidence": self.low_confidence,
        }


@dataclass
class ExtractionResult:
    """Final extraction outcome.

    Either SUCCESS with a canonical ``code`` or FAILED with the best raw text
    observed, for diagnostics or a manual-entry prompt.

    Attributes:
        status: SUCCESS or FAILED
        code: Canonical code if SUCCESS, None if FAILED
        best_raw_text: Raw text of the most confident attempt (whitespace collapsed)
        confidence: Confidence of the attempt that produced the decision (0-100)
        attempts: Recognition attempts in execution order
        failure_reason: Structured reason if FAILED
        processing_time_ms: Total processing time in milliseconds
    """

    status: ExtractionStatus
    code: Optional[str]
    best_raw_text: str
    confidence: float = 0.0
    attempts: List[OcrAttempt] = field(default_factory=list)
    failure_reason: Optional[FailureReason] = None
    processing_time_ms: float = 0.0

    def is_success(self) -> bool:
        """Check if a code was extracted."""
        return self.status == ExtractionStatus.SUCCESS

    def is_failed(self) -> bool:
        """Check if extraction failed."""
        return self.status == ExtractionStatus.FAILED

    def to_dict(self, include_attempts: bool = True) -> dict:
        """Serialize to plain types for JSON output."""
        data = {
            "status": self.status.value,
            "code": self.code,
            "best_raw_text": self.best_raw_text,
            "confidence": self.confidence,
            "processing_time_ms": round(self.processing_time_ms, 2),
            "failure_reason": (
                {
                    "code": self.failure_reason.code,
                    "constant": self.failure_reason.constant,
                    "message": self.failure_reason.message,
                    "stage": self.failure_reason.stage,
                }
                if self.failure_reason
                else None
            ),
        }
        if include_attempts:
            data["attempts"] = [attempt.to_dict() for attempt in self.attempts]
        return data
