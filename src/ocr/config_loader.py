"""Configuration loader with Pydantic validation for the extraction pipeline.

This module provides type-safe configuration loading from YAML files using
Pydantic models for validation and default values.
"""

import re
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .types import LayoutHint, RegionSource


class OCREngineConfig(BaseModel):
    """Recognition engine configuration.

    Attributes:
        type: Engine type ("tesseract" or "rapidocr")
        lang: Tesseract language code
        tesseract_cmd: Optional path to the tesseract binary
        char_whitelist: Optional Tesseract character whitelist
        use_angle_cls: Enable angle classification (RapidOCR only)
        text_score: Minimum text detection score (RapidOCR only, 0.0-1.0)
    """

    type: Literal["tesseract", "rapidocr"] = "tesseract"
    lang: str = "eng"
    tesseract_cmd: Optional[str] = None
    char_whitelist: Optional[str] = None
    use_angle_cls: bool = False
    text_score: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, v):
        return v.lower() if isinstance(v, str) else v


class LoaderConfig(BaseModel):
    """Image loading configuration.

    Attributes:
        target_long_side: Images are upscaled until their longer side reaches this
    """

    target_long_side: int = Field(default=800, gt=0)


class RegionConfig(BaseModel):
    """Code region localization configuration.

    Attributes:
        dark_threshold: Intensities below this count as ink (0-255)
        search_band_start: Relative top of the seed row search band
        search_band_end: Relative bottom (exclusive) of the search band
        expand_ratio: Band growth cutoff as a fraction of the seed row count
        max_drift_rows: Maximum growth above and below the seed row
        padding: Margin added around the detected text box
    """

    dark_threshold: int = Field(default=180, ge=0, le=255)
    search_band_start: float = Field(default=0.5, ge=0.0, le=1.0)
    search_band_end: float = Field(default=0.9, ge=0.0, le=1.0)
    expand_ratio: float = Field(default=0.2, ge=0.0, le=1.0)
    max_drift_rows: int = Field(default=30, ge=0)
    padding: int = Field(default=15, ge=0)

    @model_validator(mode="after")
    def _check_band(self) -> "RegionConfig":
        if self.search_band_start >= self.search_band_end:
            raise ValueError(
                f"search_band_start ({self.search_band_start}) must be < "
                f"search_band_end ({self.search_band_end})"
            )
        return self


class PreprocessingConfig(BaseModel):
    """Preprocessing configuration.

    Attributes:
        roi_min_height: ROIs shorter than this are upscaled before binarization
        max_upscale: Maximum ROI enlargement factor
        upscale_interpolation: Interpolation method ("linear" or "cubic")
        enable_closing: Repair broken strokes with a morphological closing
        closing_kernel_size: Closing structuring element size
    """

    roi_min_height: int = Field(default=120, gt=0)
    max_upscale: float = Field(default=4.0, ge=1.0)
    upscale_interpolation: Literal["linear", "cubic"] = "cubic"
    enable_closing: bool = True
    closing_kernel_size: int = Field(default=3, ge=1)

    @field_validator("upscale_interpolation", mode="before")
    @classmethod
    def _lower_interpolation(cls, v):
        return v.lower() if isinstance(v, str) else v


class ThresholdsConfig(BaseModel):
    """Threshold configuration.

    Attributes:
        confidence_floor: Attempts below this confidence (0-100) without a
            match fall back to the next attempt
    """

    confidence_floor: float = Field(default=30.0, ge=0.0, le=100.0)


class AttemptConfig(BaseModel):
    """One recognition attempt: which pixels, with which layout hint."""

    source: RegionSource
    layout_hint: LayoutHint


def _default_attempts() -> List[AttemptConfig]:
    return [
        AttemptConfig(source=RegionSource.ROI, layout_hint=LayoutHint.SINGLE_LINE),
        AttemptConfig(source=RegionSource.FULL_IMAGE, layout_hint=LayoutHint.BLOCK),
    ]


class GrammarConfig(BaseModel):
    """Canonical code grammar ``PREFIX1-PREFIX2-BODY-CHECK``.

    Attributes:
        prefix1: First literal token
        prefix2: Second literal token
        body_min: Minimum body length
        body_max: Maximum body length
        check_charset: Regex character-class contents allowed for CHECK
        prefix_confusables: Letter -> look-alike glyphs accepted in prefixes
            by the fuzzy pattern
    """

    prefix1: str = "NEEXT"
    prefix2: str = "GC"
    body_min: int = Field(default=5, ge=1)
    body_max: int = Field(default=16, ge=1)
    check_charset: str = "A-Z0-9"
    prefix_confusables: Dict[str, str] = {
        "O": "0Q",
        "I": "1L",
        "S": "5",
        "Z": "2",
        "B": "8",
        "G": "6",
        "E": "3",
    }

    @field_validator("prefix1", "prefix2")
    @classmethod
    def _check_prefix(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Z0-9]+", v):
            raise ValueError(f"Prefix must be uppercase alphanumeric, got '{v}'")
        return v

    @field_validator("check_charset")
    @classmethod
    def _check_charset(cls, v: str) -> str:
        if not v or v.startswith("^") or "]" in v or "[" in v:
            raise ValueError(f"check_charset must be plain character-class contents, got '{v}'")
        try:
            re.compile(f"[{v}]")
        except re.error as e:
            raise ValueError(f"Invalid check_charset '{v}': {e}") from e
        return v

    @model_validator(mode="after")
    def _check_body_range(self) -> "GrammarConfig":
        if self.body_min > self.body_max:
            raise ValueError(
                f"body_min ({self.body_min}) must be <= body_max ({self.body_max})"
            )
        return self


class NormalizationConfig(BaseModel):
    """Confusable-character resolution configuration.

    Attributes:
        enabled: Resolve confusable characters from their neighbors
        confusables: Digit -> look-alike letters; the first letter is the
            preferred letter form
    """

    enabled: bool = True
    confusables: Dict[str, str] = {
        "0": "OQ",
        "1": "IL",
        "5": "S",
        "2": "Z",
        "8": "B",
        "6": "G",
    }


class OutputConfig(BaseModel):
    """Output configuration.

    Attributes:
        debug_dir: Directory for binarized attempt images (disabled if None)
        include_attempts: Include per-attempt details in serialized results
    """

    debug_dir: Optional[str] = None
    include_attempts: bool = True


class OCRModuleConfig(BaseModel):
    """Complete extraction pipeline configuration."""

    engine: OCREngineConfig = Field(default_factory=OCREngineConfig)
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    region: RegionConfig = Field(default_factory=RegionConfig)
    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    attempts: List[AttemptConfig] = Field(default_factory=_default_attempts)
    grammar: GrammarConfig = Field(default_factory=GrammarConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @field_validator("attempts")
    @classmethod
    def _check_attempts(cls, v: List[AttemptConfig]) -> List[AttemptConfig]:
        if not v:
            raise ValueError("At least one recognition attempt must be configured")
        return v


class Config(BaseModel):
    """Root configuration container.

    Attributes:
        ocr: Extraction pipeline configuration
    """

    ocr: OCRModuleConfig = Field(default_factory=OCRModuleConfig)


def load_config(config_path: Path) -> Config:
    """Load and validate configuration from YAML file.

    The file may either contain the pipeline sections at top level or nest
    them under an ``ocr`` key.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated Config object with all settings

    Raises:
        FileNotFoundError: If config file does not exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If configuration validation fails

    Example:
        >>> config = load_config(Path("src/ocr/config.yaml"))
        >>> print(config.ocr.thresholds.confidence_floor)
        30.0
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    if "ocr" in config_dict:
        return Config(**config_dict)
    return Config(ocr=OCRModuleConfig(**config_dict))


def get_default_config() -> Config:
    """Get default configuration from bundled config.yaml file.

    Returns:
        Config object loaded from src/ocr/config.yaml, or model defaults if the
        bundled file is missing
    """
    default_config_path = Path(__file__).parent / "config.yaml"
    if default_config_path.exists():
        return load_config(default_config_path)
    return Config()
