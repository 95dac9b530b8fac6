"""OpenCV image clean-up applied before recognition."""

import logging

import cv2
import numpy as np

from card_scanner.models.options import ImagePreprocessOptions
from card_scanner.preprocessing.card_detector import CardDetector, decode_image, encode_png

logger = logging.getLogger(__name__)


class ImagePreprocessor:
    """Apply ImagePreprocessOptions to encoded images."""

    def __init__(self, detector: CardDetector | None = None):
        self._detector = detector or CardDetector()

    def preprocess(
        self, image_data: bytes, options: ImagePreprocessOptions | None = None
    ) -> bytes:
        """
        Clean up an image and re-encode it as PNG.

        Steps run in a fixed order: auto-crop, resize, grayscale,
        brightness/contrast, contrast enhancement, denoise, sharpen.

        Args:
            image_data: Encoded input image.
            options: Steps to apply. Defaults apply none.

        Returns:
            PNG bytes.

        Raises:
            UnsupportedFormatFailure: If the input cannot be decoded.
        """
        options = options or ImagePreprocessOptions()
        img = self.apply(decode_image(image_data), options)
        return encode_png(img)

    def apply(self, img: np.ndarray, options: ImagePreprocessOptions) -> np.ndarray:
        if options.auto_crop:
            cropped = self._detector.detect_from_array(img)
            if cropped is not None:
                img = cropped

        if options.target_width or options.target_height:
            img = self._resize(img, options.target_width, options.target_height)

        if options.grayscale:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)

        if options.contrast or options.brightness:
            # contrast in [-100, 100] maps to a gain of [0, 2]
            alpha = 1.0 + options.contrast / 100.0
            beta = options.brightness * 255 / 100.0
            img = cv2.convertScaleAbs(img, alpha=alpha, beta=beta)

        if options.enhance_contrast:
            img = self._equalize(img)

        if options.denoise:
            if img.ndim == 2:
                img = cv2.fastNlMeansDenoising(img, None, 10, 7, 21)
            else:
                img = cv2.fastNlMeansDenoisingColored(img, None, 10, 10, 7, 21)

        if options.sharpen:
            kernel = np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.float32)
            img = cv2.filter2D(img, -1, kernel)

        return img

    @staticmethod
    def _resize(img: np.ndarray, width: int | None, height: int | None) -> np.ndarray:
        orig_h, orig_w = img.shape[:2]
        if width and not height:
            height = max(1, round(orig_h * width / orig_w))
        elif height and not width:
            width = max(1, round(orig_w * height / orig_h))
        interpolation = cv2.INTER_AREA if width * height < orig_w * orig_h else cv2.INTER_CUBIC
        logger.debug("Resizing %dx%d -> %dx%d", orig_w, orig_h, width, height)
        return cv2.resize(img, (width, height), interpolation=interpolation)

    @staticmethod
    def _equalize(img: np.ndarray) -> np.ndarray:
        """CLAHE on the lightness channel."""
        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        if img.ndim == 2:
            return clahe.apply(img)
        lab = cv2.cvtColor(img, cv2.COLOR_BGR2LAB)
        lab[:, :, 0] = clahe.apply(lab[:, :, 0])
        return cv2.cvtColor(lab, cv2.COLOR_LAB2BGR)
