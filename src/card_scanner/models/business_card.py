"""Pydantic models for business card data."""

import logging
import uuid
from datetime import datetime
from enum import Enum
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
from card_scanner.result import Err, Ok, Result
from card_scanner.security import InputSanitizer
from card_scanner.validation import FieldValidator

logger = logging.getLogger(__name__)

_TEXT_FIELDS = (
    "name",
    "job_title",
    "company",
    "email",
    "phone",
    "mobile",
    "address",
    "notes",
)
_SECURITY_CHECKED_FIELDS = ("name", "job_title", "company", "mobile", "address", "notes")
_MASKED_FIELDS = ("email", "phone", "mobile")


def clean_string(value: Any) -> str | None:
    """Trim and collapse whitespace; empty strings become None."""
    if value is None:
        return None
    cleaned = " ".join(str(value).split())
    return cleaned or None


def _context_value(info: ValidationInfo, key: str, default_factory):
    if info.context and info.context.get(key) is not None:
        return info.context[key]
    return default_factory()


class BusinessCard(BaseModel):
    """Complete business card information.

    Text fields are whitespace-cleaned on construction. Construction fails
    with ValidationFailure for an empty id or name, an invalid email or
    phone, and with SecurityFailure for script content. An invalid website
    is dropped instead of failing.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique card identifier")
    name: str = Field(description="Full name as displayed on the card")
    job_title: str | None = Field(default=None, description="Job title or position")
    company: str | None = Field(default=None, description="Company name")
    email: str | None = Field(default=None, description="Email address")
    phone: str | None = Field(default=None, description="Office phone number")
    mobile: str | None = Field(default=None, description="Mobile phone number")
    address: str | None = Field(default=None, description="Postal address")
    website: str | None = Field(default=None, description="Website URL")
    notes: str | None = Field(default=None, description="Free notes", repr=False)
    image_path: str | None = Field(default=None, description="Local image path")
    tags: tuple[str, ...] = Field(default=(), description="Tags in insertion order")
    is_favorite: bool = Field(default=False, description="Marked as favorite")
    created_at: datetime = Field(description="Creation time")
    updated_at: datetime | None = Field(default=None, description="Last update time")

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _clean_text(cls, value: Any, info: ValidationInfo) -> str | None:
        cleaned = clean_string(value)
        if info.field_name == "name" and cleaned is None:
            return ""
        return cleaned

    @field_validator("website", mode="before")
    @classmethod
    def _clean_website(cls, value: Any, info: ValidationInfo) -> str | None:
        cleaned = clean_string(value)
        if cleaned is None:
            return None
        validator = _context_value(info, "validator", FieldValidator)
        try:
            return validator.validate_url(cleaned)
        except ValidationFailure as e:
            logger.debug("Dropping invalid website: %s", e.internal_message)
            return None

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        return tuple(tag for tag in (clean_string(t) for t in value) if tag)

    @model_validator(mode="after")
    def _validate(self, info: ValidationInfo) -> "BusinessCard":
        validator = _context_value(info, "validator", FieldValidator)
        validator.validate_required(self.id, "id")
        validator.validate_required(self.name, "name")

        sanitizer = _context_value(info, "sanitizer", InputSanitizer)
        for field in _SECURITY_CHECKED_FIELDS:
            sanitizer.check_field(getattr(self, field), field)

        if self.email:
            validator.validate_email(self.email)
        if self.phone:
            validator.validate_card_phone(self.phone)
        return self

    def is_complete(self) -> bool:
        """Name, job title, company and at least one contact channel."""
        return bool(
            self.name and self.job_title and self.company and self.has_contact_info()
        )

    def has_contact_info(self) -> bool:
        return bool(self.email or self.phone or self.address or self.website)

    def get_display_name(self) -> str:
        return self.name or self.email or self.company or "Unknown Contact"

    def copy_with(self, **changes: Any) -> "BusinessCard":
        """
        Return a copy with ``changes`` applied.

        Validation is skipped since the current values are already valid;
        changed text fields are whitespace-cleaned. A blank name keeps the
        current name.
        """
        for field in _TEXT_FIELDS:
            if field in changes:
                changes[field] = clean_string(changes[field])
        if "name" in changes and changes["name"] is None:
            del changes["name"]
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"] or ())
        return self.model_copy(update=changes)

    def __repr_args__(self):
        for name, value in super().__repr_args__():
            if name in _MASKED_FIELDS and value is not None:
                yield name, "***"
            else:
                yield name, value


def create_business_card(
    sanitizer: InputSanitizer | None = None,
    validator: FieldValidator | None = None,
    **fields: Any,
) -> Result[BusinessCard]:
    """
    Build a BusinessCard without raising on invalid input.

    Args:
        sanitizer: Security capability for the free-text checks.
        validator: Format validator for email, phone and website.
        **fields: BusinessCard field values.

    Returns:
        Ok with the card, or Err carrying the failure.
    """
    context = {
        "sanitizer": sanitizer or InputSanitizer(),
        "validator": validator or FieldValidator(),
    }
    try:
        card = BusinessCard.model_validate(fields, context=context)
    except CardScannerError as e:
        return Err(e)
    except PydanticValidationError as e:
        return Err(ValidationFailure(f"Invalid card fields: {e}", original_error=e))
    return Ok(card)


class ParseSource(str, Enum):
    """Where parsed card data came from."""

    AI = "ai"
    LOCAL = "local"
    MANUAL = "manual"
    HYBRID = "hybrid"


class ParseHints(BaseModel):
    """Optional hints passed to a card parser."""

    language: str | None = Field(default=None, description="Expected language code")
    country: str | None = Field(default=None, description="Expected country or region")
    card_type: str | None = Field(default=None, description="e.g. business, personal")
    industry: str | None = Field(default=None, description="e.g. technology, finance")


class ParsedCardData(BaseModel):
    """Contact fields produced by a card parser from OCR text."""

    name: str | None = None
    company: str | None = None
    job_title: str | None = None
    department: str | None = None
    email: str | None = None
    phone: str | None = None
    mobile: str | None = None
    fax: str | None = None
    address: str | None = None
    website: str | None = None
    notes: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: ParseSource = ParseSource.LOCAL
    parsed_at: datetime = Field(default_factory=datetime.now)

    def to_business_card(
        self,
        card_id: str | None = None,
        sanitizer: InputSanitizer | None = None,
        validator: FieldValidator | None = None,
    ) -> Result[BusinessCard]:
        """Convert to a BusinessCard; phone falls back to the mobile number."""
        return create_business_card(
            sanitizer=sanitizer,
            validator=validator,
            id=card_id or str(uuid.uuid4()),
            name=self.name or "",
            job_title=self.job_title,
            company=self.company,
            email=self.email,
            phone=self.phone or self.mobile,
            mobile=self.mobile,
            address=self.address,
            website=self.website,
            notes=self.notes,
            created_at=self.parsed_at,
        )
