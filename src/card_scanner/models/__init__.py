"""Data models for business card scanning."""

from card_scanner.models.business_card import (
    BusinessCard,
    ParseHints,
    ParseSource,
    ParsedCardData,
    create_business_card,
)
from card_scanner.models.geometry import BoundingBox, DetectedText
from card_scanner.models.ocr_result import OCRResult, create_ocr_result
from card_scanner.models.options import (
    ImagePreprocessOptions,
    OCREngineHealth,
    OCREngineInfo,
    OCROptions,
    OCRStatistics,
)

__all__ = [
    "BusinessCard",
    "ParseHints",
    "ParseSource",
    "ParsedCardData",
    "create_business_card",
    "BoundingBox",
    "DetectedText",
    "OCRResult",
    "create_ocr_result",
    "ImagePreprocessOptions",
    "OCREngineHealth",
    "OCREngineInfo",
    "OCROptions",
    "OCRStatistics",
]
