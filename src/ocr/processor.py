"""Code extraction orchestrator.

Runs the extraction state machine over one photo:

    Idle -> ROI attempt -> (Success | full-image attempt) -> (Success | Failed)

1. LOAD: decode the input and upscale it to working resolution
2. LOCATE: find the code band with a horizontal projection profile
3. RECOGNIZE: for each configured attempt (ROI first, full image second),
   binarize the pixels and call the recognition engine
4. MATCH: normalize the text and match it against the code grammar

The next attempt runs only when the current one produced no match AND its
confidence is below ``thresholds.confidence_floor``. A confident attempt
without a match ends the extraction as Failed.

``extract_code`` never raises: decode, engine and recognition errors are
folded into a FAILED ``ExtractionResult``.

Example:
    >>> from src.ocr import CodeExtractor
    >>> with CodeExtractor() as extractor:
    ...     result = extractor.extract_code(Path("card.jpg"))
    >>> if result.is_success():
    ...     print(f"Code: {result.code}")
"""

import logging
import threading
import time
import uuid
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

from src.common.exceptions import DecodeError, EngineUnavailable, RecognitionFailure
from src.common.types import PixelBuffer, RegionOfInterest
from src.localization import RegionLocator
from src.preprocessing import (
    Binarizer,
    ImageLoader,
    ImageSource,
    grayscale_view,
    upscale_for_recognition,
)

from .config_loader import AttemptConfig, Config, get_default_config, load_config
from .engine import RecognitionEngine, create_engine
from .matcher import CodeMatcher
from .normalizer import TextNormalizer
from .types import (
    ExtractionResult,
    ExtractionStatus,
    FailureReason,
    OcrAttempt,
    RegionSource,
)

logger = logging.getLogger(__name__)


class CodeExtractor:
    """Extracts canonical redemption codes from gift-card photos.

    One extractor owns one recognition engine handle. The handle is created
    lazily on the first extraction (or eagerly with ``initialize``) and
    reused across calls; access to it is serialized, so an extractor may be
    shared between threads.

    Args:
        config: Configuration object. Takes precedence over ``config_path``.
        config_path: Optional path to config YAML. If both are None, uses
            the bundled defaults.
        engine: Optional recognition engine. If None, one is built from
            ``config.ocr.engine``.

    Attributes:
        config: Full configuration object
        engine: Recognition engine
        loader: Image decoder and scaler
        locator: Code region locator
        binarizer: Otsu binarizer
        normalizer: OCR text normalizer
        matcher: Code grammar matcher
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        config_path: Optional[Path] = None,
        engine: Optional[RecognitionEngine] = None,
    ):
        if config is not None:
            self.config: Config = config
        elif config_path is not None:
            self.config = load_config(config_path)
        else:
            self.config = get_default_config()

        ocr = self.config.ocr
        self.engine: RecognitionEngine = engine or create_engine(ocr.engine)

        self.loader = ImageLoader(
            target_long_side=ocr.loader.target_long_side,
            interpolation=ocr.preprocessing.upscale_interpolation,
        )
        self.locator = RegionLocator(
            dark_threshold=ocr.region.dark_threshold,
            search_band_start=ocr.region.search_band_start,
            search_band_end=ocr.region.search_band_end,
            expand_ratio=ocr.region.expand_ratio,
            max_drift_rows=ocr.region.max_drift_rows,
            padding=ocr.region.padding,
        )
        self.binarizer = Binarizer(
            enable_closing=ocr.preprocessing.enable_closing,
            closing_kernel_size=ocr.preprocessing.closing_kernel_size,
        )
        self.normalizer = TextNormalizer(ocr.normalization)
        self.matcher = CodeMatcher(ocr.grammar)

        self._lock = threading.Lock()

        logger.info(
            f"CodeExtractor ready: engine={self.engine.name}, "
            f"attempts={[a.source.value for a in ocr.attempts]}, "
            f"confidence_floor={ocr.thresholds.confidence_floor}"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Warm up the recognition engine.

        Raises:
            EngineUnavailable: If the engine cannot be started.
        """
        with self._lock:
            self.engine.initialize()

    def close(self) -> None:
        """Release the recognition engine. Safe to call more than once."""
        with self._lock:
            self.engine.terminate()

    def __enter__(self) -> "CodeExtractor":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract_code(self, image: ImageSource) -> ExtractionResult:
        """Extract a redemption code from a photo.

        Args:
            image: Encoded image bytes, a file path, or an OpenCV-style array
                (grayscale, BGR or BGRA).

        Returns:
            ExtractionResult with SUCCESS and the canonical code, or FAILED
            with the best raw text observed and a failure reason.
        """
        start_time = time.perf_counter()
        attempts: List[OcrAttempt] = []

        try:
            result = self._run(image, attempts)
        except Exception as e:
            logger.exception(f"Unexpected error during extraction: {e}")
            result = self._create_failure(
                attempts,
                FailureReason(
                    code="EXT-E005",
                    constant="INTERNAL_ERROR",
                    message=f"Unexpected error: {e}",
                    stage="INTERNAL",
                ),
            )

        result.processing_time_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Extraction finished: status={result.status.value}, code={result.code}, "
            f"attempts={len(result.attempts)}, time={result.processing_time_ms:.1f}ms"
        )
        return result

    def _run(self, image: ImageSource, attempts: List[OcrAttempt]) -> ExtractionResult:
        try:
            pixels = self.loader.load(image)
        except DecodeError as e:
            logger.warning(f"Image decode failed: {e.message}")
            return self._create_failure(
                attempts,
                FailureReason(
                    code="EXT-E001",
                    constant="DECODE_ERROR",
                    message=e.message,
                    stage="LOAD",
                ),
            )

        roi: Optional[RegionOfInterest] = None
        floor = self.config.ocr.thresholds.confidence_floor

        for index, attempt_config in enumerate(self.config.ocr.attempts):
            if attempt_config.source == RegionSource.ROI and roi is None:
                roi = self.locator.locate(grayscale_view(pixels))

            try:
                attempt = self._run_attempt(pixels, attempt_config, roi, index)
            except EngineUnavailable as e:
                logger.error(f"Recognition engine unavailable: {e.message}")
                return self._create_failure(
                    attempts,
                    FailureReason(
                        code="EXT-E002",
                        constant="ENGINE_UNAVAILABLE",
                        message=e.message,
                        stage="RECOGNIZE",
                    ),
                )

            attempt.low_confidence = attempt.confidence < floor
            attempts.append(attempt)

            if attempt.matched:
                return ExtractionResult(
                    status=ExtractionStatus.SUCCESS,
                    code=attempt.code,
                    best_raw_text=self._best_raw_text(attempts),
                    confidence=attempt.confidence,
                    attempts=attempts,
                )

            if not attempt.low_confidence:
                logger.warning(
                    f"Attempt {attempt.source.value} confident "
                    f"({attempt.confidence:.1f} >= {floor}) but no code matched"
                )
                break

            logger.warning(
                f"Attempt {attempt.source.value} without match and low confidence "
                f"({attempt.confidence:.1f} < {floor})"
            )

        if attempts and all(a.error is not None for a in attempts):
            reason = FailureReason(
                code="EXT-E003",
                constant="RECOGNITION_FAILURE",
                message=f"All {len(attempts)} recognition attempts failed: {attempts[-1].error}",
                stage="RECOGNIZE",
            )
        else:
            reason = FailureReason(
                code="EXT-E004",
                constant="NO_MATCH",
                message="Recognized text does not match the code grammar",
                stage="MATCH",
            )
        return self._create_failure(attempts, reason)

    def _run_attempt(
        self,
        pixels: PixelBuffer,
        attempt_config: AttemptConfig,
        roi: Optional[RegionOfInterest],
        index: int,
    ) -> OcrAttempt:
        """Binarize, recognize, normalize and match one image source.

        Raises:
            EngineUnavailable: If the engine cannot be started or was lost.
        """
        preprocessing = self.config.ocr.preprocessing

        if attempt_config.source == RegionSource.ROI and roi is not None:
            region = roi
            source_pixels = upscale_for_recognition(
                region.crop(pixels.data),
                min_height=preprocessing.roi_min_height,
                max_scale=preprocessing.max_upscale,
                interpolation=preprocessing.upscale_interpolation,
            )
        else:
            region = RegionOfInterest.full_image(pixels.width, pixels.height)
            source_pixels = pixels.data

        attempt = OcrAttempt(
            source=attempt_config.source,
            layout_hint=attempt_config.layout_hint,
            region=region,
        )

        binary = self.binarizer.binarize(source_pixels)
        self._save_debug_image(binary.image, attempt_config, index)

        try:
            engine_result = self._recognize(binary.image, attempt_config)
        except RecognitionFailure as e:
            logger.warning(f"Recognition failed on {attempt.source.value}: {e.message}")
            attempt.error = e.message
            return attempt

        attempt.raw_text = engine_result.text
        attempt.confidence = engine_result.confidence
        attempt.normalized_text = self.normalizer.normalize(engine_result.text)

        match = self.matcher.match_with_details(attempt.normalized_text)
        if match is not None:
            attempt.code = match.code
            attempt.matched_pattern = match.pattern

        logger.debug(
            f"Attempt {attempt.source.value}/{attempt.layout_hint.value}: "
            f"raw='{attempt.raw_text}', normalized='{attempt.normalized_text}', "
            f"confidence={attempt.confidence:.1f}, code={attempt.code}"
        )
        return attempt

    def _recognize(self, image: np.ndarray, attempt_config: AttemptConfig):
        """Call the engine while holding the lock, initializing it if needed."""
        with self._lock:
            if not self.engine.is_initialized:
                self.engine.initialize()
            return self.engine.recognize(image, attempt_config.layout_hint)

    def _save_debug_image(
        self, image: np.ndarray, attempt_config: AttemptConfig, index: int
    ) -> None:
        debug_dir = self.config.ocr.output.debug_dir
        if not debug_dir:
            return

        directory = Path(debug_dir)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            # Unique per image: concurrent calls may share the same millisecond
            debug_path = directory / (
                f"binary_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_"
                f"{index}_{attempt_config.source.value}.png"
            )
            cv2.imwrite(str(debug_path), image)
        except (OSError, cv2.error) as e:
            logger.warning(f"Could not save debug image to {directory}: {e}")
            return
        logger.debug(f"Saved binarized image to {debug_path}")

    @staticmethod
    def _best_raw_text(attempts: List[OcrAttempt]) -> str:
        """Whitespace-collapsed raw text of the most confident non-empty attempt."""
        best: Optional[OcrAttempt] = None
        for attempt in attempts:
            if not attempt.raw_text.strip():
                continue
            if best is None or attempt.confidence > best.confidence:
                best = attempt
        return " ".join(best.raw_text.split()) if best else ""

    def _create_failure(
        self, attempts: List[OcrAttempt], reason: FailureReason
    ) -> ExtractionResult:
        """Create a FAILED ExtractionResult.

        Args:
            attempts: Attempts executed so far (may be empty)
            reason: Failure reason with error details

        Returns:
            ExtractionResult with FAILED status
        """
        return ExtractionResult(
            status=ExtractionStatus.FAILED,
            code=None,
            best_raw_text=self._best_raw_text(attempts),
            confidence=attempts[-1].confidence if attempts else 0.0,
            attempts=attempts,
            failure_reason=reason,
        )

    def get_processing_stats(self) -> dict:
        """Get extractor statistics.

        Returns:
            Dictionary with extractor configuration and engine status
        """
        ocr = self.config.ocr
        return {
            "engine_type": self.engine.name,
            "engine_initialized": self.engine.is_initialized,
            "confidence_floor": ocr.thresholds.confidence_floor,
            "attempts": [
                {"source": a.source.value, "layout_hint": a.layout_hint.value}
                for a in ocr.attempts
            ],
            "normalization_enabled": ocr.normalization.enabled,
            "grammar": {
                "prefix1": ocr.grammar.prefix1,
                "prefix2": ocr.grammar.prefix2,
                "body_min": ocr.grammar.body_min,
                "body_max": ocr.grammar.body_max,
            },
        }
