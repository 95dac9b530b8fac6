"""OCR repository: engine calls behind a result cache."""

import logging
import threading
from contextlib import contextmanager

from card_scanner.batch import BatchOCRResult, BatchProcessor
from card_scanner.cache import OCRCache
from card_scanner.errors import CacheMissError, CardScannerError
from card_scanner.models.ocr_result import OCRResult
from card_scanner.models.options import (
    ImagePreprocessOptions,
    OCREngineHealth,
    OCREngineInfo,
    OCROptions,
    OCRStatistics,
)
from card_scanner.ocr.base import OCREngine
from card_scanner.ocr.normalizer import is_degraded

logger = logging.getLogger(__name__)


class OCRRepository:
    """Coordinates an OCR engine with an OCRCache.

    A fresh cached result for the same image bytes is returned without
    calling the engine. Concurrent requests for the same image wait for a
    single engine call. Cache errors are logged and never fail a
    recognition.
    """

    def __init__(self, engine: OCREngine, cache: OCRCache):
        self._engine = engine
        self._cache = cache
        self._inflight: dict[str, list] = {}
        self._inflight_guard = threading.Lock()

    @property
    def engine(self) -> OCREngine:
        return self._engine

    @contextmanager
    def _key_lock(self, key: str):
        with self._inflight_guard:
            entry = self._inflight.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._inflight_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._inflight[key]

    def recognize_text(
        self, image_data: bytes, options: OCROptions | None = None
    ) -> OCRResult:
        """
        Recognize text, reusing a fresh cached result when available.

        Degraded results are returned but not cached.
        """
        options = options or OCROptions()
        key = self._cache.get_cache_key(image_data)

        with self._key_lock(key):
            cached = self._lookup(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key[:12])
                return cached

            result = self._engine.recognize_text(image_data, options)
            if not is_degraded(result):
                try:
                    self._cache.cache_result(key, result)
                except CardScannerError as e:
                    logger.warning("Could not cache OCR result: %s", e)

        if options.save_result:
            try:
                self._cache.save_result(result)
            except CardScannerError as e:
                logger.warning("Could not record OCR result: %s", e)
        return result

    def _lookup(self, key: str) -> OCRResult | None:
        try:
            cached = self._cache.get_cached_result(key)
        except CacheMissError:
            return None
        except CardScannerError as e:
            logger.warning("Cache lookup failed: %s", e)
            return None
        if not self._cache.is_cache_valid(cached):
            logger.debug("Stale cache entry for %s", key[:12])
            return None
        return cached

    def recognize_texts(
        self,
        images: list[bytes],
        options: OCROptions | None = None,
        max_workers: int | None = None,
    ) -> BatchOCRResult:
        """Recognize several images; each one goes through the cache."""
        return BatchProcessor(self, max_workers=max_workers or 1).process(images, options)

    def save_ocr_result(self, result: OCRResult) -> None:
        self._cache.save_result(result)

    def get_ocr_history(self, limit: int = 50, include_images: bool = False) -> list[OCRResult]:
        return self._cache.get_history(limit=limit, include_images=include_images)

    def get_ocr_result_by_id(self, result_id: str) -> OCRResult:
        return self._cache.get_result_by_id(result_id)

    def delete_ocr_result(self, result_id: str) -> None:
        self._cache.delete_result(result_id)

    def cleanup_old_results(self, days_old: int = 30) -> int:
        return self._cache.cleanup_old_results(days_old=days_old)

    def get_statistics(self) -> OCRStatistics:
        return self._cache.get_statistics()

    def get_available_engines(self) -> list[OCREngineInfo]:
        return self._engine.get_available_engines()

    def set_preferred_engine(self, engine_id: str) -> None:
        self._engine.set_preferred_engine(engine_id)

    def get_current_engine(self) -> OCREngineInfo:
        return self._engine.get_current_engine()

    def test_engine(self, engine_id: str | None = None) -> OCREngineHealth:
        return self._engine.test_engine(engine_id)

    def preprocess_image(
        self, image_data: bytes, options: ImagePreprocessOptions | None = None
    ) -> bytes:
        return self._engine.preprocess_image(image_data, options)
