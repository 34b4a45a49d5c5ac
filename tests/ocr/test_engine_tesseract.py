"""Unit tests for the Tesseract engine wrapper (pytesseract mocked)."""

from unittest.mock import patch

import numpy as np
import pytest

from src.common.exceptions import EngineUnavailable, RecognitionFailure
from src.ocr.config_loader import OCREngineConfig
from src.ocr.engine_tesseract import PAGE_SEGMENTATION_MODES, TesseractEngine
from src.ocr.types import LayoutHint


def tesseract_data(words):
    """Build an image_to_data DICT from (text, conf, block, par, line, left) tuples."""
    data = {
        key: []
        for key in (
            "text",
            "conf",
            "block_num",
            "par_num",
            "line_num",
            "left",
            "top",
            "width",
            "height",
        )
    }
    for text, conf, block, par, line, left in words:
        data["text"].append(text)
        data["conf"].append(conf)
        data["block_num"].append(block)
        data["par_num"].append(par)
        data["line_num"].append(line)
        data["left"].append(left)
        data["top"].append(10 * line)
        data["width"].append(40)
        data["height"].append(9)
    return data


@pytest.fixture
def binary_image():
    image = np.full((40, 200, 4), 255, dtype=np.uint8)
    image[10:30, 20:180, :3] = 0
    return image


@pytest.fixture
def engine():
    with patch("src.ocr.engine_tesseract.pytesseract") as mock_tess:
        mock_tess.get_tesseract_version.return_value = "5.3.0"
        tess_engine = TesseractEngine(OCREngineConfig())
        tess_engine.initialize()
        yield tess_engine, mock_tess


class TestLifecycle:
    """Test initialize / terminate."""

    def test_initialize_checks_binary(self, engine):
        tess_engine, mock_tess = engine
        assert tess_engine.is_initialized
        mock_tess.get_tesseract_version.assert_called_once()

    def test_initialize_is_idempotent(self, engine):
        tess_engine, mock_tess = engine
        tess_engine.initialize()
        assert mock_tess.get_tesseract_version.call_count == 1

    def test_missing_binary(self):
        with patch("src.ocr.engine_tesseract.pytesseract") as mock_tess:
            mock_tess.get_tesseract_version.side_effect = OSError("tesseract not found")
            tess_engine = TesseractEngine(OCREngineConfig())

            with pytest.raises(EngineUnavailable):
                tess_engine.initialize()
            assert not tess_engine.is_initialized

    def test_custom_binary_path(self):
        with patch("src.ocr.engine_tesseract.pytesseract") as mock_tess:
            TesseractEngine(OCREngineConfig(tesseract_cmd="/opt/tess")).initialize()
            assert mock_tess.pytesseract.tesseract_cmd == "/opt/tess"

    def test_binary_path_is_process_wide(self):
        with patch("src.ocr.engine_tesseract.pytesseract") as mock_tess:
            TesseractEngine(OCREngineConfig(tesseract_cmd="/opt/a/tess")).initialize()
            TesseractEngine(OCREngineConfig(tesseract_cmd="/opt/b/tess")).initialize()
            assert mock_tess.pytesseract.tesseract_cmd == "/opt/b/tess"

    def test_terminate(self, engine):
        tess_engine, _ = engine
        tess_engine.terminate()
        tess_engine.terminate()
        assert not tess_engine.is_initialized

    def test_recognize_before_initialize(self, binary_image):
        with pytest.raises(EngineUnavailable):
            TesseractEngine(OCREngineConfig()).recognize(
                binary_image, LayoutHint.SINGLE_LINE
            )


class TestBuildConfig:
    """Test layout hint to page segmentation mode mapping."""

    def test_psm_values(self):
        assert PAGE_SEGMENTATION_MODES[LayoutHint.SINGLE_WORD] == 8
        assert PAGE_SEGMENTATION_MODES[LayoutHint.SINGLE_LINE] == 7
        assert PAGE_SEGMENTATION_MODES[LayoutHint.BLOCK] == 6

    def test_whitelist(self):
        tess_engine = TesseractEngine(OCREngineConfig(char_whitelist="ABC-"))
        assert (
            tess_engine.build_config(LayoutHint.BLOCK)
            == "--psm 6 -c tessedit_char_whitelist=ABC-"
        )


class TestRecognize:
    """Test recognition and result parsing."""

    def test_single_line(self, engine, binary_image):
        tess_engine, mock_tess = engine
        mock_tess.image_to_data.return_value = tesseract_data(
            [
                ("", -1, 1, 1, 1, 0),
                ("NEEXT-GC-", 90, 1, 1, 1, 10),
                ("AB12CD34-5", 80, 1, 1, 1, 60),
            ]
        )

        result = tess_engine.recognize(binary_image, LayoutHint.SINGLE_LINE)

        assert result.text == "NEEXT-GC- AB12CD34-5"
        assert result.confidence == pytest.approx(85.0)
        assert result.word_confidences == [90.0, 80.0]
        assert len(result.bounding_boxes) == 2

        _, kwargs = mock_tess.image_to_data.call_args
        assert kwargs["config"] == "--psm 7"
        assert kwargs["lang"] == "eng"
        passed_image = mock_tess.image_to_data.call_args[0][0]
        assert passed_image.ndim == 2

    def test_lines_grouped_and_ordered(self, engine, binary_image):
        tess_engine, mock_tess = engine
        mock_tess.image_to_data.return_value = tesseract_data(
            [
                ("CARD", 70, 1, 1, 1, 80),
                ("GIFT", 70, 1, 1, 1, 10),
                ("CODE", 60, 2, 1, 1, 10),
            ]
        )

        result = tess_engine.recognize(binary_image, LayoutHint.BLOCK)

        assert result.text == "GIFT CARD\nCODE"
        _, kwargs = mock_tess.image_to_data.call_args
        assert kwargs["config"] == "--psm 6"

    def test_no_words(self, engine, binary_image):
        tess_engine, mock_tess = engine
        mock_tess.image_to_data.return_value = tesseract_data([("", -1, 1, 1, 1, 0)])

        result = tess_engine.recognize(binary_image, LayoutHint.SINGLE_LINE)
        assert result.text == ""
        assert result.confidence == 0.0

    def test_backend_error(self, engine, binary_image):
        tess_engine, mock_tess = engine
        mock_tess.image_to_data.side_effect = RuntimeError("tesseract crashed")

        with pytest.raises(RecognitionFailure, match="tesseract crashed"):
            tess_engine.recognize(binary_image, LayoutHint.SINGLE_LINE)

    def test_empty_image(self, engine):
        tess_engine, _ = engine
        with pytest.raises(RecognitionFailure):
            tess_engine.recognize(np.zeros((0, 0, 4), dtype=np.uint8), LayoutHint.BLOCK)
