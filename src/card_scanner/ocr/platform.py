"""Engine selector with a fallback recognizer."""

import logging

from card_scanner.models.ocr_result import OCRResult
from card_scanner.models.options import (
    ImagePreprocessOptions,
    OCREngineHealth,
    OCREngineInfo,
    OCROptions,
)
from card_scanner.ocr.base import OCREngine
from card_scanner.ocr.normalizer import OCRNormalizer, is_degraded

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE_FACTOR = 0.9


class PlatformOCREngine(OCREngine):
    """Runs the preferred engine and retries failures on the other one.

    Fallback results have their confidence scaled by 0.9 and the engine
    name annotated, so a fallback never looks as trustworthy as a primary
    result.
    """

    def __init__(self, primary: OCREngine, fallback: OCREngine | None = None):
        self._engines = [primary] + ([fallback] if fallback is not None else [])
        self._active = primary
        self._normalizer = OCRNormalizer()

    @property
    def name(self) -> str:
        return self._active.name

    @property
    def engine_id(self) -> str:
        return self._active.engine_id

    def _alternative(self) -> OCREngine | None:
        for engine in self._engines:
            if engine is not self._active:
                return engine
        return None

    def recognize_text(
        self, image_data: bytes, options: OCROptions | None = None
    ) -> OCRResult:
        try:
            result = self._active.recognize_text(image_data, options)
        except Exception as e:
            logger.warning("%s raised during recognition: %s", self._active.name, e)
            result = self._normalizer.failed_result(image_data, 0, str(e), self._active.name)

        if not is_degraded(result):
            return result

        fallback = self._alternative()
        if fallback is None:
            return result

        logger.info("Falling back from %s to %s", self._active.name, fallback.name)
        try:
            fallback_result = fallback.recognize_text(image_data, options)
        except Exception as e:
            logger.warning("%s raised during fallback recognition: %s", fallback.name, e)
            return result
        if is_degraded(fallback_result):
            return result
        return fallback_result.copy_with(
            confidence=fallback_result.confidence * FALLBACK_CONFIDENCE_FACTOR,
            ocr_engine=f"{fallback_result.ocr_engine} ({self._active.name} fallback)",
        )

    def get_current_engine(self) -> OCREngineInfo:
        return self._active.get_current_engine()

    def get_available_engines(self) -> list[OCREngineInfo]:
        engines: list[OCREngineInfo] = []
        for engine in self._engines:
            engines.extend(engine.get_available_engines())
        return engines

    def set_preferred_engine(self, engine_id: str) -> None:
        """Switch to a registered engine, or let the active engine select a sub-engine."""
        for engine in self._engines:
            if engine.engine_id == engine_id:
                logger.info("Preferred OCR engine set to %s", engine.name)
                self._active = engine
                return
        self._active.set_preferred_engine(engine_id)

    def test_engine(self, engine_id: str | None = None) -> OCREngineHealth:
        for engine in self._engines:
            if (engine_id is None and engine is self._active) or engine.engine_id == engine_id:
                return engine.test_engine(engine_id)
        return self._active.test_engine(engine_id)

    def preprocess_image(
        self, image_data: bytes, options: ImagePreprocessOptions | None = None
    ) -> bytes:
        return self._active.preprocess_image(image_data, options)
