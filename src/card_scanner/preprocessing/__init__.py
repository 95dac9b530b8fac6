"""Image preprocessing before OCR."""

from card_scanner.preprocessing.card_detector import CardDetector, decode_image, encode_png
from card_scanner.preprocessing.image_preprocessor import ImagePreprocessor

__all__ = ["CardDetector", "ImagePreprocessor", "decode_image", "encode_png"]
