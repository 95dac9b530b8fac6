"""Failure taxonomy for the card scanner.

Every failure carries two messages: ``user_message`` is safe to show to an
end user and never echoes input values, ``internal_message`` is meant for
logs and may contain diagnostic detail.
"""


class CardScannerError(Exception):
    """Base class for all card scanner failures."""

    default_user_message = "An unexpected error occurred"

    def __init__(
        self,
        internal_message: str,
        user_message: str | None = None,
        component: str | None = None,
        original_error: Exception | None = None,
    ):
        self.internal_message = internal_message
        self.user_message = user_message or self.default_user_message
        self.component = component
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.internal_message
        if self.component:
            msg += f" (component: {self.component})"
        if self.original_error:
            msg += f" [{type(self.original_error).__name__}: {self.original_error}]"
        return msg


class ValidationFailure(CardScannerError):
    """A field failed validation."""

    default_user_message = "Invalid input"

    def __init__(self, internal_message: str, field: str | None = None, **kwargs):
        self.field = field
        super().__init__(internal_message, **kwargs)

    @classmethod
    def invalid_email(cls) -> "ValidationFailure":
        return cls(
            "Invalid email format",
            field="email",
            user_message="Please enter a valid email address",
        )

    @classmethod
    def invalid_phone(cls) -> "ValidationFailure":
        return cls(
            "Invalid phone number format",
            field="phone",
            user_message="Please enter a valid phone number",
        )

    @classmethod
    def required_field(cls, field: str) -> "ValidationFailure":
        return cls(
            f"Required field is empty: {field}",
            field=field,
            user_message="This field is required",
        )


class SecurityFailure(CardScannerError):
    """Potentially malicious content was detected."""

    default_user_message = "Input contains unsafe content"

    def __init__(
        self, internal_message: str, security_code: str | None = None, **kwargs
    ):
        self.security_code = security_code
        super().__init__(internal_message, **kwargs)


class DataSourceFailure(CardScannerError):
    """A persistence or cache backend failed."""

    default_user_message = "Could not access stored data"


class CacheMissError(DataSourceFailure):
    """No cached result exists for the requested key."""

    default_user_message = "No cached result available"


class ProcessingFailure(CardScannerError):
    """OCR processing failed."""

    default_user_message = "Text recognition failed"


class UnsupportedFormatFailure(ProcessingFailure):
    """The image could not be decoded."""

    default_user_message = "Unsupported image format"


class AIServiceUnavailableFailure(CardScannerError):
    """The AI parsing service could not be reached or answered badly."""

    default_user_message = "AI service is temporarily unavailable"
