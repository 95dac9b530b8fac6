"""Abstract base class for OCR engines."""

import logging
import time
from abc import ABC, abstractmethod

from card_scanner.models.ocr_result import OCRResult
from card_scanner.models.options import (
    ImagePreprocessOptions,
    OCREngineHealth,
    OCREngineInfo,
    OCROptions,
)
from card_scanner.ocr.normalizer import is_degraded

logger = logging.getLogger(__name__)


class OCREngine(ABC):
    """Abstract base class for OCR engines."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the display name of this engine."""
        ...

    @property
    def engine_id(self) -> str:
        """Identifier used by ``set_preferred_engine``."""
        return self.get_current_engine().id

    @abstractmethod
    def recognize_text(
        self, image_data: bytes, options: OCROptions | None = None
    ) -> OCRResult:
        """
        Recognize text in an encoded image.

        Args:
            image_data: Encoded image bytes (PNG, JPEG, ...).
            options: Recognition options.

        Returns:
            OCRResult. Recognition failures produce a degraded result with
            empty text and zero confidence instead of raising.
        """
        ...

    @abstractmethod
    def get_current_engine(self) -> OCREngineInfo:
        """Return the descriptor of the engine currently in use."""
        ...

    def get_available_engines(self) -> list[OCREngineInfo]:
        return [self.get_current_engine()]

    def set_preferred_engine(self, engine_id: str) -> None:
        """
        Select the engine used for recognition.

        Raises:
            ValueError: If the engine id is unknown.
        """
        if engine_id != self.engine_id:
            raise ValueError(f"Unknown OCR engine: {engine_id}")

    def test_image(self) -> bytes:
        """Image used by ``test_engine``."""
        return bytes([255, 255, 255])

    def test_engine(self, engine_id: str | None = None) -> OCREngineHealth:
        """Run a recognition on ``test_image`` and report the outcome."""
        target = engine_id or self.engine_id
        start = time.perf_counter()
        try:
            result = self.recognize_text(self.test_image())
        except Exception as e:
            logger.warning("Engine self-test failed for %s: %s", target, e)
            return OCREngineHealth(engine_id=target, is_healthy=False, error=str(e))

        elapsed_ms = (time.perf_counter() - start) * 1000
        if is_degraded(result):
            return OCREngineHealth(
                engine_id=target,
                is_healthy=False,
                error=result.ocr_engine,
                response_time_ms=round(elapsed_ms, 2),
            )
        return OCREngineHealth(
            engine_id=target, is_healthy=True, response_time_ms=round(elapsed_ms, 2)
        )

    def preprocess_image(
        self, image_data: bytes, options: ImagePreprocessOptions | None = None
    ) -> bytes:
        """Return a cleaned-up image. The default returns the input unchanged."""
        return image_data
