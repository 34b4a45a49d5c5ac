"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

import io
from typing import List, Optional, Sequence, Union

import cv2
import numpy as np
import pytest
from PIL import Image

from src.common.exceptions import EngineUnavailable
from src.ocr.config_loader import Config
from src.ocr.engine import OCREngineResult, RecognitionEngine
from src.ocr.types import LayoutHint

ScriptStep = Union[OCREngineResult, Exception]


class FakeEngine(RecognitionEngine):
    """Scripted recognition engine.

    Each ``recognize`` call consumes the next step of the script: an
    OCREngineResult is returned, an exception is raised. When the script is
    exhausted the last step repeats.
    """

    name = "fake"

    def __init__(self, script: Sequence[ScriptStep] = (), fail_initialize: int = 0):
        self.script: List[ScriptStep] = list(script) or [OCREngineResult.empty()]
        self.fail_initialize = fail_initialize
        self.calls: List[dict] = []
        self.initialize_calls = 0
        self.terminate_calls = 0
        self._ready = False

    @property
    def is_initialized(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        self.initialize_calls += 1
        if self.fail_initialize > 0:
            self.fail_initialize -= 1
            raise EngineUnavailable("fake engine failed to start")
        self._ready = True

    def terminate(self) -> None:
        self.terminate_calls += 1
        self._ready = False

    def recognize(self, image: np.ndarray, layout_hint: LayoutHint) -> OCREngineResult:
        if not self._ready:
            raise EngineUnavailable("fake engine not initialized")

        self.calls.append({"shape": image.shape, "layout_hint": layout_hint})
        index = min(len(self.calls) - 1, len(self.script) - 1)
        step = self.script[index]
        if isinstance(step, Exception):
            raise step
        return step


def result(text: str, confidence: float) -> OCREngineResult:
    return OCREngineResult(text=text, confidence=confidence)


def draw_card(
    code: str = "NEEXT-GC-AB12CD34-5",
    size=(600, 960),
    text_row: Optional[int] = 440,
) -> np.ndarray:
    """Synthetic BGR card: light background, a header and the code near the bottom."""
    height, width = size
    card = np.full((height, width, 3), 235, dtype=np.uint8)
    cv2.putText(card, "GIFT CARD", (60, 120), cv2.FONT_HERSHEY_SIMPLEX, 2.0, (90, 60, 30), 4)
    if text_row is not None and code:
        cv2.putText(
            card, code, (60, text_row), cv2.FONT_HERSHEY_SIMPLEX, 1.4, (20, 20, 20), 3
        )
    return card


def encode_jpeg(bgr: np.ndarray, orientation: Optional[int] = None) -> bytes:
    """Encode a BGR array as JPEG, optionally tagged with an EXIF Orientation."""
    options = {"format": "JPEG", "quality": 95}
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        options["exif"] = exif.tobytes()

    buffer = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(bgr[:, :, ::-1])).save(buffer, **options)
    return buffer.getvalue()


def sideways_card_jpeg(card: np.ndarray) -> bytes:
    """Card stored rotated 90 degrees counter-clockwise with Orientation=6,
    the way a phone held in portrait saves a landscape card."""
    return encode_jpeg(np.rot90(card, 1), orientation=6)


@pytest.fixture
def default_config():
    """Fresh default configuration (model defaults, independent of config.yaml)."""
    return Config()


@pytest.fixture
def fake_engine_factory():
    """Factory for scripted fake engines."""
    return FakeEngine


@pytest.fixture
def card_image():
    """Synthetic BGR gift-card photo with a printed code."""
    return draw_card()


@pytest.fixture
def encoded_card(card_image):
    """The synthetic card encoded as PNG bytes."""
    ok, buffer = cv2.imencode(".png", card_image)
    assert ok
    return buffer.tobytes()
