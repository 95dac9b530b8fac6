"""OCR engines for text recognition from images.

PaddleOCREngine lives in ``card_scanner.ocr.paddle_ocr`` and needs the
``paddle`` extra.
"""

from card_scanner.ocr.base import OCREngine
from card_scanner.ocr.channel import ChannelOCREngine
from card_scanner.ocr.normalizer import (
    NativeOCRResponse,
    OCRNormalizer,
    aggregate_confidence,
    is_degraded,
)
from card_scanner.ocr.platform import PlatformOCREngine

__all__ = [
    "OCREngine",
    "ChannelOCREngine",
    "NativeOCRResponse",
    "OCRNormalizer",
    "PlatformOCREngine",
    "aggregate_confidence",
    "is_degraded",
]
