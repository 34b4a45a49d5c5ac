"""RapidOCR engine wrapper (PaddleOCR ONNX backend).

Optional alternative to Tesseract, installed with the ``rapidocr`` extra.
RapidOCR detects text boxes itself, so layout hints only affect how the
detected boxes are joined:

- SINGLE_WORD / SINGLE_LINE: boxes joined left to right with spaces
- BLOCK: boxes grouped into lines top to bottom, lines joined by newlines
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from src.common.exceptions import EngineUnavailable, RecognitionFailure

from .config_loader import OCREngineConfig
from .engine import OCREngineResult, RecognitionEngine, to_single_channel
from .types import LayoutHint

logger = logging.getLogger(__name__)


class RapidOCREngine(RecognitionEngine):
    """Wrapper for RapidOCR.

    The RapidOCR model is loaded by ``initialize`` and reused for every
    recognition until ``terminate``.

    Args:
        config: OCR engine configuration.
    """

    name = "rapidocr"

    def __init__(self, config: OCREngineConfig):
        self.config = config
        self._engine: Optional[object] = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    def initialize(self) -> None:
        if self.is_initialized:
            return

        try:
            from rapidocr_onnxruntime import RapidOCR
        except ImportError as e:
            logger.error(
                "Failed to import rapidocr_onnxruntime. "
                "Install with: pip install rapidocr-onnxruntime"
            )
            raise EngineUnavailable(
                "rapidocr-onnxruntime not installed. "
                "Run: pip install rapidocr-onnxruntime"
            ) from e

        try:
            self._engine = RapidOCR(
                use_angle_cls=self.config.use_angle_cls,
                text_score=self.config.text_score,
            )
        except Exception as e:
            logger.error(f"Failed to initialize RapidOCR engine: {e}")
            raise EngineUnavailable(f"RapidOCR initialization failed: {e}") from e

        logger.info("RapidOCR engine loaded successfully")

    def terminate(self) -> None:
        if self.is_initialized:
            logger.info("RapidOCR engine released")
        self._engine = None

    def recognize(self, image: np.ndarray, layout_hint: LayoutHint) -> OCREngineResult:
        if not self.is_initialized:
            raise EngineUnavailable("RapidOCR engine used before initialize()")

        if image is None or image.size == 0:
            raise RecognitionFailure("Invalid image: empty or None")

        try:
            gray = to_single_channel(image)
        except ValueError as e:
            raise RecognitionFailure(str(e)) from e

        bgr = np.repeat(gray[:, :, np.newaxis], 3, axis=2)

        try:
            output = self._engine(bgr)
        except Exception as e:
            logger.warning(f"RapidOCR call failed: {e}")
            raise RecognitionFailure(f"RapidOCR recognition failed: {e}") from e

        # RapidOCR returns (result, elapse); result is [[box, text, score], ...] or None
        detections = output[0] if isinstance(output, tuple) else output
        if not detections:
            logger.debug("RapidOCR returned no text")
            return OCREngineResult.empty()

        regions = []
        for box, text, score in detections:
            text = str(text).strip()
            if not text:
                continue
            regions.append((self._to_bbox(box), text, float(score) * 100.0))

        if not regions:
            return OCREngineResult.empty()

        text = self._aggregate_text(regions, layout_hint)
        confidences = [score for _, _, score in regions]

        logger.debug(
            f"RapidOCR extraction: text='{text}', "
            f"confidence={np.mean(confidences):.1f}, regions={len(regions)}"
        )
        return OCREngineResult(
            text=text,
            confidence=float(np.mean(confidences)),
            word_confidences=confidences,
            bounding_boxes=[bbox for bbox, _, _ in regions],
        )

    def _aggregate_text(
        self,
        regions: List[Tuple[Tuple[int, int, int, int], str, float]],
        layout_hint: LayoutHint,
    ) -> str:
        """Join detected regions according to the layout hint."""
        if layout_hint != LayoutHint.BLOCK:
            ordered = sorted(regions, key=lambda r: r[0][0])
            return " ".join(text for _, text, _ in ordered)

        # Group boxes whose vertical centers fall inside the current line
        ordered = sorted(regions, key=lambda r: (r[0][1], r[0][0]))
        lines: List[list] = []
        for region in ordered:
            bbox = region[0]
            center_y = (bbox[1] + bbox[3]) / 2.0
            if lines:
                line_box = lines[-1][0][0]
                if line_box[1] <= center_y <= line_box[3]:
                    lines[-1].append(region)
                    continue
            lines.append([region])

        return "\n".join(
            " ".join(text for _, text, _ in sorted(line, key=lambda r: r[0][0]))
            for line in lines
        )

    @staticmethod
    def _to_bbox(box) -> Tuple[int, int, int, int]:
        """Convert a 4-point polygon to (x_min, y_min, x_max, y_max)."""
        points = np.asarray(box, dtype=np.float64).reshape(-1, 2)
        return (
            int(points[:, 0].min()),
            int(points[:, 1].min()),
            int(points[:, 0].max()),
            int(points[:, 1].max()),
        )
