"""
Configuration for LabelScan.

All tunables of the capture pipeline (ROI geometry, preprocessing,
stability detection, matching, confirm bounds, OCR backend) in one
environment-driven settings object.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from labelscan.vision.preprocessing import PreprocessConfig
from labelscan.vision.stability import StabilityConfig


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Region of interest and upload geometry
    roi_width_ratio: float = 0.8
    roi_height_ratio: float = 0.25
    max_upload_width: int = 800
    scale_up: float = 2.0

    # Binarization
    jpeg_quality: int = 80
    contrast_boost: float = 1.35
    binarize_threshold: int = 160

    # Stability detection
    sample_width: int = 200
    stability_threshold: float = 12.0
    stable_ms: float = 500.0
    cooldown_ms: float = 800.0
    sample_interval_ms: float = 120.0
    tick_interval_ms: float = 16.0

    # Matching and confirmation
    fuzzy_threshold: float = 0.75
    min_kg: float = 0.05
    max_kg: float = 50.0

    # OCR
    ocr_backend: str = "tesseract"  # or "vision"
    ocr_languages: str = "fin+swe"
    tesseract_config: str = "--oem 1 --psm 6"
    vision_base_url: str = "https://api.deepinfra.com/v1/openai"
    vision_model: Optional[str] = None
    vision_api_key: Optional[str] = None
    max_ocr_upload_bytes: int = 3 * 1024 * 1024

    # Collaborators
    catalog_path: Optional[str] = None
    camera_device: str = "0"

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            roi_width_ratio=float(os.getenv("ROI_WIDTH_RATIO", cls.roi_width_ratio)),
            roi_height_ratio=float(os.getenv("ROI_HEIGHT_RATIO", cls.roi_height_ratio)),
            max_upload_width=int(os.getenv("MAX_UPLOAD_WIDTH", cls.max_upload_width)),
            scale_up=float(os.getenv("SCALE_UP", cls.scale_up)),
            jpeg_quality=int(os.getenv("JPEG_QUALITY", cls.jpeg_quality)),
            contrast_boost=float(os.getenv("CONTRAST_BOOST", cls.contrast_boost)),
            binarize_threshold=int(os.getenv("BINARIZE_THRESHOLD", cls.binarize_threshold)),
            sample_width=int(os.getenv("SAMPLE_WIDTH", cls.sample_width)),
            stability_threshold=float(os.getenv("STABILITY_THRESHOLD", cls.stability_threshold)),
            stable_ms=float(os.getenv("STABLE_MS", cls.stable_ms)),
            cooldown_ms=float(os.getenv("COOLDOWN_MS", cls.cooldown_ms)),
            sample_interval_ms=float(os.getenv("SAMPLE_INTERVAL_MS", cls.sample_interval_ms)),
            tick_interval_ms=float(os.getenv("TICK_INTERVAL_MS", cls.tick_interval_ms)),
            fuzzy_threshold=float(os.getenv("FUZZY_THRESHOLD", cls.fuzzy_threshold)),
            min_kg=float(os.getenv("MIN_KG", cls.min_kg)),
            max_kg=float(os.getenv("MAX_KG", cls.max_kg)),
            ocr_backend=os.getenv("OCR_BACKEND", cls.ocr_backend),
            ocr_languages=os.getenv("OCR_LANGUAGES", cls.ocr_languages),
            tesseract_config=os.getenv("TESSERACT_CONFIG", cls.tesseract_config),
            vision_base_url=os.getenv("VISION_BASE_URL", cls.vision_base_url),
            vision_model=os.getenv("VISION_MODEL") or os.getenv("DEEPINFRA_MODEL"),
            vision_api_key=os.getenv("VISION_API_KEY") or os.getenv("DEEPINFRA_API_KEY"),
            max_ocr_upload_bytes=int(os.getenv("MAX_OCR_UPLOAD_BYTES", cls.max_ocr_upload_bytes)),
            catalog_path=os.getenv("CATALOG_PATH"),
            camera_device=os.getenv("CAMERA_DEVICE", cls.camera_device),
            environment=os.getenv("LABELSCAN_ENV", cls.environment),
            debug=_env_bool("DEBUG", True),
        )

    def stability_config(self) -> StabilityConfig:
        return StabilityConfig(
            threshold=self.stability_threshold,
            stable_ms=self.stable_ms,
            cooldown_ms=self.cooldown_ms,
            sample_interval_ms=self.sample_interval_ms,
            tick_interval_ms=self.tick_interval_ms,
            sample_width=self.sample_width,
        )

    def preprocess_config(self) -> PreprocessConfig:
        return PreprocessConfig(
            roi_width_ratio=self.roi_width_ratio,
            roi_height_ratio=self.roi_height_ratio,
            max_width=self.max_upload_width,
            scale_up=self.scale_up,
            jpeg_quality=self.jpeg_quality,
            contrast_boost=self.contrast_boost,
            binarize_threshold=self.binarize_threshold,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    load_dotenv()
    return Settings.from_env()
