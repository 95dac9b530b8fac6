"""Format validators for contact fields."""

import re

from card_scanner.errors import ValidationFailure

_EMAIL = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z0-9]{1,}$")
_URL = re.compile(r"^(https?|ftp)://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
# Permissive international format: optional +, then digits and separators.
_CARD_PHONE = re.compile(r"^\+?[0-9\-()\s]{7,}$")

_DANGEROUS_PROTOCOLS = ("javascript:", "data:", "vbscript:", "file:")


def is_valid_email_format(email: str) -> bool:
    """Quick structural email check used by the text extractor."""
    return bool(email) and bool(_EMAIL.fullmatch(email))


def is_card_phone(phone: str) -> bool:
    """Check the permissive phone pattern accepted on a business card."""
    return bool(_CARD_PHONE.fullmatch(phone))


class FieldValidator:
    """Validates contact field formats.

    Each method returns the accepted value or raises ValidationFailure.
    """

    def validate_email(self, email: str) -> str:
        if not email:
            raise ValidationFailure.invalid_email()
        if len(email) > 254:
            raise ValidationFailure(
                "Email too long",
                field="email",
                user_message="Email must not exceed 254 characters",
            )
        if email.strip() != email or not _EMAIL.fullmatch(email):
            raise ValidationFailure.invalid_email()

        local_part, _, domain = email.partition("@")
        if len(local_part) > 64:
            raise ValidationFailure(
                "Email local part too long",
                field="email",
                user_message="Email local part is too long",
            )
        if not domain or domain.startswith(".") or domain.endswith("."):
            raise ValidationFailure.invalid_email()
        if ".." in domain:
            raise ValidationFailure.invalid_email()
        return email

    def validate_card_phone(self, phone: str) -> str:
        if not is_card_phone(phone):
            raise ValidationFailure.invalid_phone()
        return phone

    def validate_url(self, url: str) -> str:
        if not url:
            raise ValidationFailure(
                "Empty URL provided",
                field="url",
                user_message="Please enter a valid URL",
            )
        if " " in url:
            raise ValidationFailure(
                "URL contains spaces",
                field="url",
                user_message="URL cannot contain spaces",
            )
        lowered = url.lower()
        for protocol in _DANGEROUS_PROTOCOLS:
            if lowered.startswith(protocol):
                raise ValidationFailure(
                    f"Dangerous protocol detected: {protocol}",
                    field="url",
                    user_message="Unsupported URL protocol",
                )
        if not _URL.fullmatch(url):
            raise ValidationFailure(
                "Invalid URL format",
                field="url",
                user_message="Please enter a valid URL",
            )
        return url

    def validate_required(self, value: str | None, field: str) -> str:
        if value is None or not value.strip():
            raise ValidationFailure.required_field(field)
        return value
