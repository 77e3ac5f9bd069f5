"""YAML-backed settings for the SmartScan document core.

Each stage reads its own section; keys missing from the file keep the
defaults declared here.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs/config.yaml")


class NormalizerConfig(BaseModel):
    """Edge detection, warp and enhancement constants."""

    blur_kernel_size: int = 5
    canny_low: float = 75.0
    canny_high: float = 200.0
    dilate_kernel_size: int = 3
    # Largest contour must cover at least this share of the photo.
    min_area_ratio: float = 0.10
    approx_epsilon_ratio: float = 0.02
    max_dimension: int = 5000
    clahe_clip_limit: float = 2.0
    clahe_tile_size: int = 8
    threshold_block_size: int = 11
    threshold_c: int = 2


class OCRConfig(BaseModel):
    tesseract_cmd: str | None = None
    default_lang: str = "spa"
    psm: int = 3
    # 0 lets Tesseract run without a deadline.
    timeout_s: float = 0


class ClassificationConfig(BaseModel):
    """Where to read the document type catalog; built-in types when unset."""

    catalog_path: str | None = None


class StructuringConfig(BaseModel):
    """Gemini credential and request settings.

    ``api_key`` takes precedence over the ``api_key_env`` variable.
    """

    api_key: str | None = None
    api_key_env: str = "GEMINI_API_KEY"
    model_name: str = "gemini-1.5-pro"
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models"
    timeout_s: float = 60.0
    temperature: float = 0.0


class AppConfig(BaseModel):
    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    structuring: StructuringConfig = Field(default_factory=StructuringConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Read settings from YAML, falling back to defaults.

    Args:
        path: YAML file; ``configs/config.yaml`` when omitted. A missing
            or empty file yields the defaults.

    Returns:
        Validated configuration.

    Raises:
        pydantic.ValidationError: If a value has the wrong type.
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.info("Config %s not found, using defaults", path)
        return AppConfig()

    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    logger.info("Loaded configuration from %s", path)
    return AppConfig.model_validate(raw)
