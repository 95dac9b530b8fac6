"""Business card scanning: OCR, field extraction and contact records."""

from card_scanner.cache import MemoryOCRCache, OCRCache
from card_scanner.models import BusinessCard, OCRResult, create_business_card, create_ocr_result
from card_scanner.parser import BusinessCardParser
from card_scanner.repository import OCRRepository

__version__ = "0.1.0"
__all__ = [
    "BusinessCard",
    "BusinessCardParser",
    "MemoryOCRCache",
    "OCRCache",
    "OCRRepository",
    "OCRResult",
    "create_business_card",
    "create_ocr_result",
]
