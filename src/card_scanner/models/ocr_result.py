"""OCR result value object."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from card_scanner.errors import CardScannerError, ValidationFailure
from card_scanner.extraction import (
    extract_emails_from_texts,
    extract_phone_numbers_from_texts,
)
from card_scanner.models.geometry import DetectedText
from card_scanner.result import Err, Ok, Result
from card_scanner.security import InputSanitizer

HIGH_CONFIDENCE_THRESHOLD = 0.9


def _sanitizer_from(info: ValidationInfo) -> InputSanitizer:
    if info.context and info.context.get("sanitizer") is not None:
        return info.context["sanitizer"]
    return InputSanitizer()


class OCRResult(BaseModel):
    """Immutable result of one OCR invocation.

    Construction is the validation gate: an out of range confidence, a
    non-positive image dimension, a negative duration or script content in
    any text field raises instead of producing an instance. Use
    ``copy_with`` to derive updated results.
    """

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    raw_text: str = Field(default="", repr=False)
    detected_texts: tuple[str, ...] | None = Field(default=None, repr=False)
    blocks: tuple[DetectedText, ...] = Field(default=(), repr=False)
    confidence: float
    image_data: bytes | None = Field(default=None, repr=False)
    image_width: int | None = None
    image_height: int | None = None
    processed_at: datetime = Field(default_factory=datetime.now)
    processing_time_ms: int | None = None
    ocr_engine: str | None = None

    @field_validator("raw_text")
    @classmethod
    def _strip_control_characters(cls, value: str, info: ValidationInfo) -> str:
        return _sanitizer_from(info).strip_control_characters(value)

    @model_validator(mode="after")
    def _validate(self, info: ValidationInfo) -> "OCRResult":
        if not self.id.strip():
            raise ValidationFailure.required_field("id")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationFailure(
                f"Confidence must be between 0.0 and 1.0, got: {self.confidence}",
                field="confidence",
            )
        for field in ("image_width", "image_height"):
            value = getattr(self, field)
            if value is not None and value <= 0:
                raise ValidationFailure(
                    f"{field} must be positive, got: {value}", field=field
                )
        if self.processing_time_ms is not None and self.processing_time_ms < 0:
            raise ValidationFailure(
                f"Processing time cannot be negative, got: {self.processing_time_ms}",
                field="processing_time_ms",
            )

        sanitizer = _sanitizer_from(info)
        sanitizer.check_field(self.raw_text, "raw_text")
        sanitizer.check_field(self.ocr_engine, "ocr_engine")
        for text in self.detected_texts or ():
            sanitizer.check_field(text, "detected_texts")
        return self

    def is_high_confidence(self) -> bool:
        return self.confidence >= HIGH_CONFIDENCE_THRESHOLD

    def has_detected_texts(self) -> bool:
        return bool(self.detected_texts)

    def get_performance_info(self) -> dict[str, Any]:
        image_size = None
        if self.image_width is not None and self.image_height is not None:
            image_size = f"{self.image_width}x{self.image_height}"
        return {
            "processing_time_ms": self.processing_time_ms,
            "confidence": self.confidence,
            "text_length": len(self.raw_text),
            "detected_text_count": len(self.detected_texts or ()),
            "has_image_data": self.image_data is not None,
            "image_size": image_size,
        }

    def _all_texts(self) -> list[str]:
        return [*(self.detected_texts or ()), self.raw_text]

    def extract_emails(self) -> list[str]:
        """Emails found in the detected blocks and the raw text."""
        return extract_emails_from_texts(self._all_texts())

    def extract_phone_numbers(self) -> list[str]:
        """Phone numbers found in the detected blocks and the raw text."""
        return extract_phone_numbers_from_texts(self._all_texts())

    def copy_with(self, **changes: Any) -> "OCRResult":
        """Return a copy with ``changes`` applied, skipping validation."""
        if "detected_texts" in changes and changes["detected_texts"] is not None:
            changes["detected_texts"] = tuple(changes["detected_texts"])
        return self.model_copy(update=changes)

    def without_image(self) -> "OCRResult":
        return self.model_copy(update={"image_data": None})

    def __repr_args__(self):
        yield from super().__repr_args__()
        yield "text_length", len(self.raw_text)


def create_ocr_result(
    sanitizer: InputSanitizer | None = None, **fields: Any
) -> Result[OCRResult]:
    """
    Build an OCRResult without raising on invalid input.

    Args:
        sanitizer: Security capability used for the text checks.
        **fields: OCRResult field values.

    Returns:
        Ok with the result, or Err carrying the validation or security
        failure.
    """
    try:
        result = OCRResult.model_validate(
            fields, context={"sanitizer": sanitizer or InputSanitizer()}
        )
    except CardScannerError as e:
        return Err(e)
    except PydanticValidationError as e:
        return Err(ValidationFailure(f"Invalid OCR result fields: {e}", original_error=e))
    return Ok(result)
