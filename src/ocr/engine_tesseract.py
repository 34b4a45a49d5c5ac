"""Tesseract OCR engine wrapper for gift-card code recognition.

This module provides the default recognition backend. Layout hints map to
Tesseract page segmentation modes:

- SINGLE_WORD: PSM 8 (treat the image as a single word)
- SINGLE_LINE: PSM 7 (treat the image as a single text line)
- BLOCK: PSM 6 (assume a single uniform block of text)

Example:
    >>> engine = TesseractEngine(OCREngineConfig())
    >>> engine.initialize()
    >>> result = engine.recognize(binary_image, LayoutHint.SINGLE_LINE)
    >>> print(result.text, result.confidence)
    'NEEXT-GC-AB12CD34-5' 88.5
"""

import logging
from typing import Dict, List, Tuple

import numpy as np
import pytesseract

from src.common.exceptions import EngineUnavailable, RecognitionFailure

from .config_loader import OCREngineConfig
from .engine import OCREngineResult, RecognitionEngine, to_single_channel
from .types import LayoutHint

logger = logging.getLogger(__name__)

PAGE_SEGMENTATION_MODES: Dict[LayoutHint, int] = {
    LayoutHint.SINGLE_WORD: 8,
    LayoutHint.SINGLE_LINE: 7,
    LayoutHint.BLOCK: 6,
}


class TesseractEngine(RecognitionEngine):
    """Wrapper for Tesseract OCR.

    Tesseract runs as a subprocess per call, so the "handle" is the verified
    binary; ``initialize`` checks it is reachable and ``terminate`` simply
    marks the engine unusable.

    Note:
        ``tesseract_cmd`` is applied to pytesseract's module-global setting
        during ``initialize``. All engines in a process share that setting,
        so engines configured with different binaries overwrite each other;
        the last one initialized wins.

    Args:
        config: OCR engine configuration.
    """

    name = "tesseract"

    def __init__(self, config: OCREngineConfig):
        self.config = config
        self._version = None

    @property
    def is_initialized(self) -> bool:
        return self._version is not None

    def initialize(self) -> None:
        if self.is_initialized:
            return

        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

        try:
            self._version = pytesseract.get_tesseract_version()
        except Exception as e:
            logger.error(f"Tesseract not found or not properly configured: {e}")
            raise EngineUnavailable(
                "Tesseract not available. Please install Tesseract OCR.\n"
                "Linux: sudo apt-get install tesseract-ocr\n"
                "MacOS: brew install tesseract",
                {"error": str(e)},
            ) from e

        logger.info(f"Tesseract engine initialized: version {self._version}")

    def terminate(self) -> None:
        if self.is_initialized:
            logger.info("Tesseract engine terminated")
        self._version = None

    def build_config(self, layout_hint: LayoutHint) -> str:
        """Tesseract command-line config for a layout hint."""
        psm_mode = PAGE_SEGMENTATION_MODES.get(layout_hint, 6)
        tesseract_config = f"--psm {psm_mode}"
        if self.config.char_whitelist:
            tesseract_config += f" -c tessedit_char_whitelist={self.config.char_whitelist}"
        return tesseract_config

    def recognize(self, image: np.ndarray, layout_hint: LayoutHint) -> OCREngineResult:
        if not self.is_initialized:
            raise EngineUnavailable("Tesseract engine used before initialize()")

        if image is None or image.size == 0:
            raise RecognitionFailure("Invalid image: empty or None")

        try:
            gray = to_single_channel(image)
        except ValueError as e:
            raise RecognitionFailure(str(e)) from e

        tesseract_config = self.build_config(layout_hint)
        logger.debug(
            f"Running Tesseract (layout={layout_hint.value}), config: {tesseract_config}"
        )

        try:
            data = pytesseract.image_to_data(
                gray,
                lang=self.config.lang,
                config=tesseract_config,
                output_type=pytesseract.Output.DICT,
            )
        except Exception as e:
            logger.warning(f"Tesseract call failed: {e}")
            raise RecognitionFailure(f"Tesseract recognition failed: {e}") from e

        return self._parse_data(data)

    def _parse_data(self, data: dict) -> OCREngineResult:
        """Assemble words into lines and average their confidences."""
        lines: Dict[Tuple[int, int, int], List[dict]] = {}

        for i in range(len(data["text"])):
            text = str(data["text"][i]).strip()
            try:
                conf = float(data["conf"][i])
            except (TypeError, ValueError):
                conf = -1.0

            # conf < 0 marks layout rows (page/block/line) without a word
            if not text or conf < 0:
                continue

            key = tuple(
                int(data[name][i]) if name in data else 0
                for name in ("block_num", "par_num", "line_num")
            )
            lines.setdefault(key, []).append(
                {
                    "text": text,
                    "conf": conf,
                    "x": int(data["left"][i]),
                    "y": int(data["top"][i]),
                    "w": int(data["width"][i]),
                    "h": int(data["height"][i]),
                }
            )

        if not lines:
            logger.debug("Tesseract returned no words")
            return OCREngineResult.empty()

        words = []
        line_texts = []
        for key in sorted(lines):
            line_words = sorted(lines[key], key=lambda w: w["x"])
            line_texts.append(" ".join(w["text"] for w in line_words))
            words.extend(line_words)

        confidences = [w["conf"] for w in words]
        result = OCREngineResult(
            text="\n".join(line_texts),
            confidence=float(np.mean(confidences)),
            word_confidences=confidences,
            bounding_boxes=[
                (w["x"], w["y"], w["x"] + w["w"], w["y"] + w["h"]) for w in words
            ],
        )

        logger.debug(
            f"Tesseract extraction: text='{result.text}', "
            f"confidence={result.confidence:.1f}, words={len(words)}"
        )
        return result
