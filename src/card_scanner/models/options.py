"""Options and descriptors exchanged with OCR engines."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class OCROptions(BaseModel):
    """Recognition options passed to an engine."""

    preferred_languages: list[str] | None = Field(
        default=None, description="Expected language codes, e.g. zh-Hant, en"
    )
    language: str | None = Field(default=None, description="Primary language code")
    recognition_level: Literal["fast", "accurate"] = "accurate"
    uses_language_correction: bool = True
    enable_rotation_correction: bool = True
    enable_preprocessing: bool = False
    max_processing_time_ms: int | None = Field(
        default=None, description="Advisory hint for the engine, not enforced"
    )
    save_result: bool = Field(default=False, description="Record result in history")


class ImagePreprocessOptions(BaseModel):
    """Image clean-up applied before recognition."""

    target_width: int | None = Field(default=None, gt=0)
    target_height: int | None = Field(default=None, gt=0)
    contrast: int = Field(default=0, ge=-100, le=100)
    brightness: int = Field(default=0, ge=-100, le=100)
    grayscale: bool = False
    denoise: bool = False
    sharpen: bool = False
    enhance_contrast: bool = False
    normalize_orientation: bool = False
    auto_crop: bool = False


class OCREngineInfo(BaseModel):
    """Descriptor of an available OCR engine."""

    id: str
    name: str
    version: str = "unknown"
    is_available: bool = True
    supported_languages: list[str] = Field(default_factory=list)
    platform: str = "cross-platform"
    capabilities: list[str] = Field(default_factory=list)


class OCREngineHealth(BaseModel):
    """Outcome of an engine self-test."""

    engine_id: str
    is_healthy: bool
    last_checked: datetime = Field(default_factory=datetime.now)
    error: str | None = None
    response_time_ms: float | None = None


class OCRStatistics(BaseModel):
    """Aggregate figures over recorded OCR results."""

    total_processed: int = 0
    average_confidence: float = 0.0
    average_processing_time_ms: float = 0.0
    engine_usage: dict[str, int] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=datetime.now)
