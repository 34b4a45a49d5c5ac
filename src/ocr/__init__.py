"""Gift-card code recognition and extraction.

This module recognizes text in preprocessed gift-card photos and turns it
into a canonical redemption code ``NEEXT-GC-<BODY>-<CHECK>``.

Core Components:
    - types: Data structures (ExtractionResult, OcrAttempt, etc.)
    - config_loader: Configuration loading with Pydantic validation
    - engine: Recognition engine interface (Tesseract, RapidOCR)
    - normalizer: Text cleanup and confusable-character resolution
    - matcher: Ordered grammar patterns and canonical reconstruction
    - processor: Extraction orchestrator

Example:
    >>> from src.ocr import CodeExtractor
    >>> extractor = CodeExtractor()
    >>> result = extractor.extract_code(Path("card.jpg"))
    >>> if result.is_success():
    ...     print(f"Code: {result.code}")
"""

from .config_loader import (
    AttemptConfig,
    Config,
    GrammarConfig,
    LoaderConfig,
    NormalizationConfig,
    OCREngineConfig,
    OCRModuleConfig,
    OutputConfig,
    PreprocessingConfig,
    RegionConfig,
    ThresholdsConfig,
    get_default_config,
    load_config,
)
from .engine import OCREngineResult, RecognitionEngine, create_engine
from .matcher import CodeMatch, CodeMatcher, GrammarPattern, build_patterns
from .normalizer import NormalizationResult, TextNormalizer, clean_text, normalize
from .processor import CodeExtractor
from .types import (
    ExtractionResult,
    ExtractionStatus,
    FailureReason,
    LayoutHint,
    OcrAttempt,
    RegionSource,
)

__all__ = [
    # Types
    "ExtractionStatus",
    "ExtractionResult",
    "FailureReason",
    "LayoutHint",
    "OcrAttempt",
    "RegionSource",
    # Configuration
    "Config",
    "OCRModuleConfig",
    "OCREngineConfig",
    "LoaderConfig",
    "RegionConfig",
    "PreprocessingConfig",
    "ThresholdsConfig",
    "AttemptConfig",
    "GrammarConfig",
    "NormalizationConfig",
    "OutputConfig",
    "load_config",
    "get_default_config",
    # Engines
    "RecognitionEngine",
    "OCREngineResult",
    "create_engine",
    # Text
    "TextNormalizer",
    "NormalizationResult",
    "clean_text",
    "normalize",
    "CodeMatcher",
    "CodeMatch",
    "GrammarPattern",
    "build_patterns",
    # Orchestration
    "CodeExtractor",
]
