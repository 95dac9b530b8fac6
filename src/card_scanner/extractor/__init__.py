"""Card parsers that turn OCR text into structured contact data."""

from card_scanner.extractor.base import (
    BatchParseError,
    BatchParseResult,
    CardParser,
    ParserStatus,
)
from card_scanner.extractor.local import LocalCardParser
from card_scanner.extractor.ollama import OllamaCardParser

__all__ = [
    "BatchParseError",
    "BatchParseResult",
    "CardParser",
    "LocalCardParser",
    "OllamaCardParser",
    "ParserStatus",
]
