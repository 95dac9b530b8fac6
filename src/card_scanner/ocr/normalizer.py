"""Turn raw recognizer responses into validated OCRResult objects.

Native responses are parsed once into the schemas below; nothing past this
module handles loosely typed dictionaries.
"""

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from card_scanner.errors import ProcessingFailure
from card_scanner.models.geometry import BoundingBox, DetectedText
from card_scanner.models.ocr_result import OCRResult
from card_scanner.security import InputSanitizer

logger = logging.getLogger(__name__)

BUSINESS_CARD_KEYWORDS = (
    "@",
    "tel",
    "電話",
    "phone",
    "mobile",
    "手機",
    "company",
    "公司",
    "manager",
    "經理",
    "engineer",
    "工程師",
    "www.",
    "http",
)
FAILED_MARKER = "(Failed:"


class NativeBoundingBox(BaseModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class NativeTextBlock(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    bounding_box: NativeBoundingBox | None = Field(default=None, alias="boundingBox")
    language: str | None = "auto"


class NativeOCRResponse(BaseModel):
    """Payload of a ``recognizeText`` call."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    text_blocks: list[NativeTextBlock] = Field(default_factory=list, alias="textBlocks")
    image_width: int | None = Field(default=None, alias="imageWidth")
    image_height: int | None = Field(default=None, alias="imageHeight")

    @classmethod
    def parse(cls, payload: Any) -> "NativeOCRResponse":
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise ProcessingFailure(
                "Malformed recognizer response", component="normalizer", original_error=e
            ) from e


class NativePreprocessResponse(BaseModel):
    """Payload of a ``preprocessImage`` call."""

    model_config = ConfigDict(populate_by_name=True)

    processed_image_data: bytes = Field(alias="processedImageData")

    @classmethod
    def parse(cls, payload: Any) -> "NativePreprocessResponse":
        if isinstance(payload, dict):
            data = payload.get("processedImageData", payload.get("processed_image_data"))
            if isinstance(data, list):
                payload = {"processed_image_data": bytes(data)}
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise ProcessingFailure(
                "Malformed preprocess response", component="normalizer", original_error=e
            ) from e


def contains_business_card_content(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in BUSINESS_CARD_KEYWORDS)


def aggregate_confidence(confidences: Sequence[float], raw_text: str) -> float:
    """
    Combine block confidences into one approximate score.

    Average of the block scores, plus 0.1 for text longer than 10
    characters, another 0.1 beyond 50 characters and 0.1 when typical
    business card content is present. Clamped to [0, 1]. The bonuses are
    tuning constants, not a calibrated probability.
    """
    if not confidences or not raw_text:
        return 0.0

    score = sum(confidences) / len(confidences)
    if len(raw_text) > 10:
        score += 0.1
    if len(raw_text) > 50:
        score += 0.1
    if contains_business_card_content(raw_text):
        score += 0.1
    return max(0.0, min(score, 1.0))


def is_degraded(result: OCRResult) -> bool:
    """True for results produced by ``OCRNormalizer.failed_result``."""
    return bool(result.ocr_engine and FAILED_MARKER in result.ocr_engine)


class OCRNormalizer:
    """Builds OCRResult values from native recognizer responses."""

    def __init__(
        self,
        sanitizer: InputSanitizer | None = None,
        normalized_coordinates: bool = False,
        flip_y: bool = False,
    ):
        """
        Args:
            sanitizer: Security capability passed to OCRResult validation.
            normalized_coordinates: Boxes are reported in [0, 1] units.
            flip_y: Normalized boxes use a bottom-left origin.
        """
        self._sanitizer = sanitizer or InputSanitizer()
        self._normalized = normalized_coordinates
        self._flip_y = flip_y

    def normalize(
        self,
        response: NativeOCRResponse,
        image_data: bytes | None,
        processing_time_ms: int,
        engine_name: str,
    ) -> OCRResult:
        """
        Validate a native response into an OCRResult.

        Raises:
            ValidationFailure, SecurityFailure: If the response carries
                invalid values or unsafe text.
        """
        width = response.image_width if response.image_width and response.image_width > 0 else None
        height = response.image_height if response.image_height and response.image_height > 0 else None

        blocks = [
            DetectedText(
                text=block.text,
                confidence=block.confidence,
                bounding_box=self._to_box(block.bounding_box, width, height),
                language_code=block.language,
            )
            for block in response.text_blocks
        ]
        confidence = aggregate_confidence([b.confidence for b in blocks], response.text)

        return OCRResult.model_validate(
            {
                "raw_text": response.text,
                "detected_texts": tuple(b.text for b in blocks),
                "blocks": tuple(blocks),
                "confidence": confidence,
                "image_data": image_data,
                "image_width": width,
                "image_height": height,
                "processing_time_ms": processing_time_ms,
                "ocr_engine": engine_name,
            },
            context={"sanitizer": self._sanitizer},
        )

    def failed_result(
        self,
        image_data: bytes | None,
        processing_time_ms: int,
        reason: str | None,
        engine_name: str,
    ) -> OCRResult:
        """Empty, zero-confidence result annotated with the failure reason."""
        return OCRResult.model_validate(
            {
                "raw_text": "",
                "detected_texts": (),
                "confidence": 0.0,
                "image_data": image_data or None,
                "processing_time_ms": max(processing_time_ms, 0),
                "ocr_engine": f"{engine_name} {FAILED_MARKER} {self._safe_reason(reason)})",
            },
            context={"sanitizer": self._sanitizer},
        )

    def _safe_reason(self, reason: str | None) -> str:
        if not reason or not reason.strip():
            return "Unknown error"
        cleaned = self._sanitizer.mask_sensitive_info(reason)
        cleaned = " ".join(cleaned.replace("<", " ").replace(">", " ").split())
        return cleaned[:200] or "Unknown error"

    def _to_box(
        self,
        box: NativeBoundingBox | None,
        image_width: int | None,
        image_height: int | None,
    ) -> BoundingBox:
        if box is None:
            return BoundingBox(left=0, top=0, width=0, height=0)
        if self._normalized and image_width and image_height:
            return BoundingBox.from_normalized(
                box.x,
                box.y,
                box.width,
                box.height,
                image_width,
                image_height,
                flip_y=self._flip_y,
            )
        return BoundingBox(left=box.x, top=box.y, width=box.width, height=box.height)
