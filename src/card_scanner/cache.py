"""Content-addressed cache and history of OCR results."""

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter, OrderedDict
from datetime import datetime, timedelta

from card_scanner.errors import CacheMissError, DataSourceFailure
from card_scanner.models.ocr_result import OCRResult
from card_scanner.models.options import OCRStatistics

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=7)
DEFAULT_MAX_ENTRIES = 100


class OCRCache(ABC):
    """Abstract store for recognized results and their history."""

    def get_cache_key(self, image_data: bytes) -> str:
        """SHA-256 hex digest of the image bytes."""
        return hashlib.sha256(image_data).hexdigest()

    @abstractmethod
    def get_cached_result(self, key: str) -> OCRResult:
        """
        Look up a cached result.

        Raises:
            CacheMissError: If nothing is cached under ``key``.
        """
        ...

    @abstractmethod
    def is_cache_valid(self, result: OCRResult) -> bool:
        """Whether a cached result is fresh enough to reuse."""
        ...

    @abstractmethod
    def cache_result(self, key: str, result: OCRResult) -> None: ...

    @abstractmethod
    def save_result(self, result: OCRResult) -> None:
        """Record ``result`` in the history."""
        ...

    @abstractmethod
    def get_history(self, limit: int = 50, include_images: bool = False) -> list[OCRResult]: ...

    @abstractmethod
    def get_result_by_id(self, result_id: str) -> OCRResult:
        """
        Raises:
            DataSourceFailure: If no recorded result has ``result_id``.
        """
        ...

    @abstractmethod
    def delete_result(self, result_id: str) -> None: ...

    @abstractmethod
    def cleanup_old_results(self, days_old: int = 30) -> int:
        """Drop results processed more than ``days_old`` days ago; returns the count."""
        ...

    @abstractmethod
    def get_statistics(self) -> OCRStatistics: ...


class MemoryOCRCache(OCRCache):
    """In-memory LRU cache with a bounded, newest-first history.

    Safe for concurrent use from several threads.
    """

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """
        Args:
            retention: Age after which cached results are stale.
            max_entries: Bound on cached results and on history length.
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._retention = retention
        self._max_entries = max_entries
        self._entries: OrderedDict[str, OCRResult] = OrderedDict()
        self._history: list[OCRResult] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_cached_result(self, key: str) -> OCRResult:
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                raise CacheMissError(f"No cached result for key {key[:12]}", component="cache")
            self._entries.move_to_end(key)
            return result

    def is_cache_valid(self, result: OCRResult) -> bool:
        return datetime.now() - result.processed_at < self._retention

    def cache_result(self, key: str, result: OCRResult) -> None:
        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cache entry %s", evicted[:12])

    def save_result(self, result: OCRResult) -> None:
        with self._lock:
            self._history = [r for r in self._history if r.id != result.id]
            self._history.insert(0, result)
            del self._history[self._max_entries :]

    def get_history(self, limit: int = 50, include_images: bool = False) -> list[OCRResult]:
        with self._lock:
            history = self._history[: max(limit, 0)]
        if include_images:
            return history
        return [r.without_image() if r.image_data is not None else r for r in history]

    def get_result_by_id(self, result_id: str) -> OCRResult:
        with self._lock:
            for result in self._history:
                if result.id == result_id:
                    return result
            for result in self._entries.values():
                if result.id == result_id:
                    return result
        raise DataSourceFailure(f"OCR result not found: {result_id}", component="cache")

    def delete_result(self, result_id: str) -> None:
        with self._lock:
            self._history = [r for r in self._history if r.id != result_id]
            for key in [k for k, r in self._entries.items() if r.id == result_id]:
                del self._entries[key]

    def cleanup_old_results(self, days_old: int = 30) -> int:
        cutoff = datetime.now() - timedelta(days=days_old)
        with self._lock:
            before = len(self._history) + len(self._entries)
            self._history = [r for r in self._history if r.processed_at >= cutoff]
            for key in [k for k, r in self._entries.items() if r.processed_at < cutoff]:
                del self._entries[key]
            removed = before - len(self._history) - len(self._entries)
        if removed:
            logger.info("Removed %d OCR results older than %d days", removed, days_old)
        return removed

    def get_statistics(self) -> OCRStatistics:
        with self._lock:
            history = list(self._history)
        if not history:
            return OCRStatistics()

        timed = [r.processing_time_ms for r in history if r.processing_time_ms is not None]
        return OCRStatistics(
            total_processed=len(history),
            average_confidence=sum(r.confidence for r in history) / len(history),
            average_processing_time_ms=sum(timed) / len(timed) if timed else 0.0,
            engine_usage=dict(Counter(r.ocr_engine or "unknown" for r in history)),
        )
