"""
Configuration management using Pydantic Settings.

Every setting can be overridden with a ``CARD_SCANNER_`` environment
variable (e.g. ``CARD_SCANNER_OLLAMA_MODEL=qwen2``) or a ``.env`` file.
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CARD_SCANNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OCR
    ocr_lang: str = "en"
    ocr_auto_crop: bool = True

    # Ollama
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    ollama_timeout: float = Field(default=60.0, gt=0)

    # Result cache
    cache_retention_days: int = Field(default=7, ge=0)
    cache_max_entries: int = Field(default=100, gt=0)

    # Batch
    batch_workers: int = Field(default=1, ge=1)

    # Card store
    store_path: Path = Path.home() / ".card_scanner" / "cards.json"

    log_level: str = "WARNING"

    @property
    def cache_retention(self) -> timedelta:
        return timedelta(days=self.cache_retention_days)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded on first use."""
    return Settings()
