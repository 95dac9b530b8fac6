"""PaddleOCR engine implementation."""

import logging
import os
import time

import cv2
import numpy as np

from card_scanner.errors import UnsupportedFormatFailure
from card_scanner.models.ocr_result import OCRResult
from card_scanner.models.options import (
    ImagePreprocessOptions,
    OCREngineInfo,
    OCROptions,
)
from card_scanner.ocr.base import OCREngine
from card_scanner.ocr.normalizer import (
    NativeBoundingBox,
    NativeOCRResponse,
    NativeTextBlock,
    OCRNormalizer,
)
from card_scanner.preprocessing import CardDetector, ImagePreprocessor, decode_image, encode_png
from card_scanner.security import InputSanitizer

logger = logging.getLogger(__name__)


# OneDNN breaks the PIR executor in PaddlePaddle 3.x
os.environ.setdefault("FLAGS_use_mkldnn", "0")

ENGINE_ID = "paddleocr"
SUPPORTED_LANGUAGES = ["en", "ch", "chinese_cht", "japan", "korean"]


class PaddleOCREngine(OCREngine):
    """OCR engine running PaddleOCR in-process."""

    def __init__(
        self,
        lang: str = "en",
        auto_crop: bool = True,
        preprocess_options: ImagePreprocessOptions | None = None,
        sanitizer: InputSanitizer | None = None,
    ):
        """
        Initialize the PaddleOCR engine.

        Args:
            lang: PaddleOCR language model, e.g. "en" or "chinese_cht".
            auto_crop: Crop the card region before recognition.
            preprocess_options: Clean-up used when OCROptions asks for
                preprocessing.
            sanitizer: Security capability used when building results.
        """
        # paddleocr is an optional extra and slow to import
        import paddleocr

        self._lang = lang
        self._version = getattr(paddleocr, "__version__", "unknown")
        self._detector = CardDetector() if auto_crop else None
        self._preprocessor = ImagePreprocessor()
        self._preprocess_options = preprocess_options or ImagePreprocessOptions(
            enhance_contrast=True
        )
        self._normalizer = OCRNormalizer(sanitizer=sanitizer)
        self._ocr = paddleocr.PaddleOCR(lang=lang, enable_mkldnn=False)

    @property
    def name(self) -> str:
        return f"paddleocr:{self._lang}"

    @property
    def engine_id(self) -> str:
        return ENGINE_ID

    def recognize_text(
        self, image_data: bytes, options: OCROptions | None = None
    ) -> OCRResult:
        options = options or OCROptions()
        start = time.perf_counter()

        try:
            img = decode_image(image_data)
        except UnsupportedFormatFailure as e:
            logger.warning("Cannot decode image: %s", e)
            return self._normalizer.failed_result(
                image_data, self._elapsed_ms(start), "unsupported image format", self.name
            )

        try:
            if options.enable_preprocessing:
                img = self._preprocessor.apply(img, self._preprocess_options)
            if self._detector:
                cropped = self._detector.detect_from_array(img, fallback_resize=True)
                if cropped is not None:
                    img = cropped

            response = self._to_response(self._ocr.predict(img), img, options.language)
            return self._normalizer.normalize(
                response, image_data, self._elapsed_ms(start), self.name
            )
        except Exception as e:
            logger.warning("PaddleOCR recognition failed: %s", e)
            return self._normalizer.failed_result(
                image_data, self._elapsed_ms(start), str(e), self.name
            )

    def _to_response(self, predictions, img: np.ndarray, language: str | None) -> NativeOCRResponse:
        height, width = img.shape[:2]
        if not predictions or not predictions[0]:
            return NativeOCRResponse(image_width=width, image_height=height)

        # PaddleOCR 3.x: rec_texts, rec_scores and rec_polys per page
        page = predictions[0]
        texts = page.get("rec_texts", [])
        scores = page.get("rec_scores", [])
        polys = page.get("rec_polys", [])

        blocks = []
        for text, score, poly in zip(texts, scores, polys):
            points = poly.tolist() if hasattr(poly, "tolist") else poly
            xs = [p[0] for p in points]
            ys = [p[1] for p in points]
            blocks.append(
                NativeTextBlock(
                    text=text,
                    confidence=min(max(float(score), 0.0), 1.0),
                    bounding_box=NativeBoundingBox(
                        x=min(xs), y=min(ys), width=max(xs) - min(xs), height=max(ys) - min(ys)
                    ),
                    language=language or self._lang,
                )
            )

        return NativeOCRResponse(
            text="\n".join(texts),
            text_blocks=blocks,
            image_width=width,
            image_height=height,
        )

    def get_current_engine(self) -> OCREngineInfo:
        return OCREngineInfo(
            id=ENGINE_ID,
            name=f"PaddleOCR ({self._lang})",
            version=self._version,
            supported_languages=SUPPORTED_LANGUAGES,
            capabilities=["text_recognition", "auto_crop", "preprocessing"],
        )

    def test_image(self) -> bytes:
        canvas = np.full((120, 480, 3), 255, dtype=np.uint8)
        cv2.putText(canvas, "OCR TEST 0912", (20, 75), cv2.FONT_HERSHEY_SIMPLEX, 1.4, (0, 0, 0), 3)
        return encode_png(canvas)

    def preprocess_image(
        self, image_data: bytes, options: ImagePreprocessOptions | None = None
    ) -> bytes:
        return self._preprocessor.preprocess(image_data, options or self._preprocess_options)

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)
