"""Tests for settings."""

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from card_scanner.config import Settings


class TestSettings:
    """Test Settings loading."""

    @pytest.fixture(autouse=True)
    def isolated(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("OCR_LANG", "OLLAMA_MODEL", "CACHE_RETENTION_DAYS", "BATCH_WORKERS", "STORE_PATH"):
            monkeypatch.delenv(f"CARD_SCANNER_{name}", raising=False)

    def test_defaults(self):
        """Test default values."""
        settings = Settings()
        assert settings.ocr_lang == "en"
        assert settings.ollama_url == "http://localhost:11434"
        assert settings.ollama_model == "llama3.2"
        assert settings.cache_max_entries == 100
        assert settings.cache_retention == timedelta(days=7)
        assert settings.batch_workers == 1

    def test_environment_override(self, monkeypatch):
        """Test prefixed environment variables override defaults."""
        monkeypatch.setenv("CARD_SCANNER_OLLAMA_MODEL", "qwen2")
        monkeypatch.setenv("CARD_SCANNER_CACHE_RETENTION_DAYS", "1")
        monkeypatch.setenv("CARD_SCANNER_STORE_PATH", "/tmp/cards.json")

        settings = Settings()

        assert settings.ollama_model == "qwen2"
        assert settings.cache_retention == timedelta(days=1)
        assert settings.store_path == Path("/tmp/cards.json")

    def test_env_file(self, tmp_path):
        """Test values are read from a .env file."""
        (tmp_path / ".env").write_text("CARD_SCANNER_OCR_LANG=chinese_cht\n", encoding="utf-8")
        assert Settings().ocr_lang == "chinese_cht"

    def test_invalid_value(self, monkeypatch):
        """Test out of range values are rejected."""
        monkeypatch.setenv("CARD_SCANNER_BATCH_WORKERS", "0")
        with pytest.raises(ValidationError):
            Settings()
