"""OCR engine bridged over a platform method channel."""

import logging
import time
from collections.abc import Callable
from typing import Any

from card_scanner.errors import ProcessingFailure
from card_scanner.models.ocr_result import OCRResult
from card_scanner.models.options import (
    ImagePreprocessOptions,
    OCREngineInfo,
    OCROptions,
)
from card_scanner.ocr.base import OCREngine
from card_scanner.ocr.normalizer import (
    NativeOCRResponse,
    NativePreprocessResponse,
    OCRNormalizer,
)
from card_scanner.security import InputSanitizer

logger = logging.getLogger(__name__)

Channel = Callable[[str, dict[str, Any]], Any]
"""Invokes a named native method with keyword arguments and returns its payload."""

DEFAULT_LANGUAGE = "zh-Hant"


class ChannelOCREngine(OCREngine):
    """OCR engine backed by a native recognizer reached through a channel."""

    def __init__(
        self,
        channel: Channel,
        engine_id: str = "platform_vision",
        engine_name: str = "Platform Vision",
        platform: str = "native",
        normalized_coordinates: bool = False,
        flip_y: bool = False,
        sanitizer: InputSanitizer | None = None,
    ):
        """
        Initialize the channel engine.

        Args:
            channel: Callable that performs the native method call.
            engine_id: Identifier reported in engine descriptors.
            engine_name: Display name written to results.
            platform: Platform name reported in engine descriptors.
            normalized_coordinates: Native boxes are in [0, 1] units.
            flip_y: Native boxes use a bottom-left origin.
            sanitizer: Security capability used when building results.
        """
        self._channel = channel
        self._engine_id = engine_id
        self._engine_name = engine_name
        self._platform = platform
        self._normalizer = OCRNormalizer(
            sanitizer=sanitizer,
            normalized_coordinates=normalized_coordinates,
            flip_y=flip_y,
        )

    @property
    def name(self) -> str:
        return self._engine_name

    @property
    def engine_id(self) -> str:
        return self._engine_id

    def recognize_text(
        self, image_data: bytes, options: OCROptions | None = None
    ) -> OCRResult:
        options = options or OCROptions()
        start = time.perf_counter()

        if not image_data:
            return self._normalizer.failed_result(
                None, self._elapsed_ms(start), "No image data", self.name
            )

        try:
            payload = self._channel(
                "recognizeText",
                {
                    "imageData": image_data,
                    "language": options.language or DEFAULT_LANGUAGE,
                    "recognitionLevel": options.recognition_level,
                    "usesLanguageCorrection": options.uses_language_correction,
                },
            )
            if payload is None:
                raise ProcessingFailure("Empty recognizer response", component=self.name)
            response = NativeOCRResponse.parse(payload)
            return self._normalizer.normalize(
                response, image_data, self._elapsed_ms(start), self.name
            )
        except Exception as e:
            logger.warning("%s recognition failed: %s", self.name, e)
            return self._normalizer.failed_result(
                image_data, self._elapsed_ms(start), str(e), self.name
            )

    def get_current_engine(self) -> OCREngineInfo:
        return OCREngineInfo(
            id=self._engine_id,
            name=self._engine_name,
            platform=self._platform,
            capabilities=["text_recognition", "preprocessing"],
        )

    def get_available_engines(self) -> list[OCREngineInfo]:
        try:
            payload = self._channel("getAvailableEngines", {})
        except Exception as e:
            logger.warning("Could not list engines on %s: %s", self.name, e)
            return []

        engines = payload if isinstance(payload, list) else [payload or {}]
        infos = []
        for entry in engines:
            if not isinstance(entry, dict):
                continue
            infos.append(
                OCREngineInfo(
                    id=entry.get("id", self._engine_id),
                    name=entry.get("name", self._engine_name),
                    version=entry.get("version", "unknown"),
                    is_available=entry.get("isAvailable", True),
                    supported_languages=entry.get("supportedLanguages", []),
                    platform=entry.get("platform", self._platform),
                    capabilities=entry.get("capabilities", []),
                )
            )
        return infos

    def set_preferred_engine(self, engine_id: str) -> None:
        try:
            self._channel("setPreferredEngine", {"engineId": engine_id})
        except Exception as e:
            raise ProcessingFailure(
                f"Could not select engine {engine_id}: {e}",
                component=self.name,
                original_error=e,
            ) from e
        self._engine_id = engine_id

    def preprocess_image(
        self, image_data: bytes, options: ImagePreprocessOptions | None = None
    ) -> bytes:
        """Ask the native side to clean up the image; returns the input on failure."""
        options = options or ImagePreprocessOptions()
        try:
            payload = self._channel(
                "preprocessImage",
                {
                    "imageData": image_data,
                    "targetWidth": options.target_width,
                    "targetHeight": options.target_height,
                    "contrast": options.contrast,
                    "brightness": options.brightness,
                    "grayscale": options.grayscale,
                    "denoise": options.denoise,
                    "sharpen": options.sharpen,
                },
            )
            return NativePreprocessResponse.parse(payload).processed_image_data
        except Exception as e:
            logger.warning("%s preprocessing failed, using original image: %s", self.name, e)
            return image_data

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)
