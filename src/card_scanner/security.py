"""Input sanitization and sensitive data masking."""

import json
import logging
import re

from card_scanner.errors import SecurityFailure

logger = logging.getLogger(__name__)

SCRIPT_MARKER = "<script"

_SQL_INJECTION_PATTERNS = [
    re.compile(r"\b(DROP|DELETE|UNION|INSERT|UPDATE|SELECT)\b", re.IGNORECASE),
    re.compile(r"\b(TABLE|FROM|INTO)\b", re.IGNORECASE),
    re.compile(r"(--|#|/\*|\*/)"),
    re.compile(r"'\s*(OR|AND)\s*'[^']*'", re.IGNORECASE),
    re.compile(r";\s*(DROP|DELETE)", re.IGNORECASE),
    re.compile(r"'\s*;\s*"),
    re.compile(r"'"),
]

_XSS_PATTERNS = [
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<iframe[^>]*>.*?</iframe>", re.IGNORECASE | re.DOTALL),
    re.compile(r"javascript:\s*alert\s*\(", re.IGNORECASE),
    re.compile(r"<[^>]*\s+on\w+\s*=", re.IGNORECASE),
    re.compile(r"<svg[^>]*onload[^>]*>", re.IGNORECASE),
    re.compile(r"<img[^>]*onerror[^>]*>", re.IGNORECASE),
    re.compile(r"alert\s*\(", re.IGNORECASE),
    re.compile(r"<script[^>]*>", re.IGNORECASE),
    re.compile(r"</script>", re.IGNORECASE),
]

_MALICIOUS_EXECUTION_PATTERNS = [
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"exec\s*\(", re.IGNORECASE),
    re.compile(r"system\s*\(", re.IGNORECASE),
    re.compile(r"shell_exec", re.IGNORECASE),
    re.compile(r"base64_decode", re.IGNORECASE),
    re.compile(r"window\.location", re.IGNORECASE),
    re.compile(r"document\.cookie", re.IGNORECASE),
]

# Pattern, replacement pairs. Group 1 (when present) is the key to keep.
_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|apikey)\s*[:=]\s*[\w\-]+", re.IGNORECASE),
    re.compile(r"bearer\s+[\w\-\.]+", re.IGNORECASE),
    re.compile(r"sk-\w+", re.IGNORECASE),
    re.compile(r"(password|pwd|pass)\s*[:=]\s*\S+", re.IGNORECASE),
    re.compile(r"(authorization)\s*:\s*[\w ]+", re.IGNORECASE),
]

_CREDIT_CARD_PATTERNS = [
    re.compile(r"\b4\d{3}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
    re.compile(r"\b5[1-5]\d{2}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
    re.compile(r"\b3[47]\d{13}\b"),
]

_HTML_TAG = re.compile(r"<[^>]*>")
# Control characters except tab, newline and carriage return.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_WHITESPACE = re.compile(r"\s+")

MAX_CONTENT_LENGTH = 100_000


class InputSanitizer:
    """Cleans user and OCR supplied text and detects injected content."""

    def sanitize_input(self, text: str) -> str:
        """
        Strip SQL injection, XSS, HTML tags and control characters.

        Args:
            text: Raw input text.

        Returns:
            The cleaned text with whitespace collapsed.

        Raises:
            SecurityFailure: If the input is empty.
        """
        if not text.strip():
            raise SecurityFailure(
                "Empty input provided for sanitization",
                user_message="Input cannot be empty",
            )

        sanitized = text
        for pattern in _SQL_INJECTION_PATTERNS:
            sanitized = pattern.sub("", sanitized)
        for pattern in _XSS_PATTERNS:
            sanitized = pattern.sub("", sanitized)
        sanitized = _HTML_TAG.sub("", sanitized)
        sanitized = _CONTROL_CHARS.sub("", sanitized)
        return _WHITESPACE.sub(" ", sanitized).strip()

    def strip_control_characters(self, text: str) -> str:
        """Remove control characters, keeping tabs and line breaks."""
        return _CONTROL_CHARS.sub("", text)

    def contains_script_marker(self, text: str) -> bool:
        return SCRIPT_MARKER in text.lower()

    def check_field(self, value: str | None, field: str) -> None:
        """
        Reject a field value that fails sanitization or carries a script tag.

        Empty, blank and missing values are accepted.

        Raises:
            SecurityFailure: If the value looks malicious.
        """
        if not value or not value.strip():
            return
        self.sanitize_input(value)
        if self.contains_script_marker(value):
            logger.warning("Rejected field '%s': script marker found", field)
            raise SecurityFailure(
                f"Field '{field}' contains potentially malicious content",
                security_code="SCRIPT_DETECTED",
            )

    def validate_content(self, content: str) -> str:
        """
        Check content for executable code, scripts and abuse patterns.

        Raises:
            SecurityFailure: With a ``security_code`` naming the problem.
        """
        if not content:
            return content

        for pattern in _MALICIOUS_EXECUTION_PATTERNS:
            if pattern.search(content):
                raise SecurityFailure(
                    "Malicious execution pattern detected in content",
                    security_code="MALICIOUS_CONTENT",
                )
        for pattern in _XSS_PATTERNS:
            if pattern.search(content):
                raise SecurityFailure(
                    "XSS pattern detected in content",
                    security_code="XSS_CONTENT",
                )
        if len(content) > MAX_CONTENT_LENGTH:
            raise SecurityFailure(
                "Content exceeds size limit",
                security_code="SIZE_LIMIT",
                user_message="Content is too long",
            )
        if len(_CONTROL_CHARS.findall(content)) > len(content) * 0.2:
            raise SecurityFailure(
                "Excessive control characters in content",
                security_code="SUSPICIOUS_CONTENT",
            )
        return content

    def validate_api_response(self, response: str) -> str:
        """
        Check a remote service response before it is parsed.

        Raises:
            SecurityFailure: If the response is empty, unsafe or broken JSON.
        """
        if not response:
            raise SecurityFailure("Empty API response")

        for pattern in _XSS_PATTERNS:
            if pattern.search(response):
                raise SecurityFailure(
                    "XSS pattern detected in API response",
                    security_code="XSS_DETECTED",
                )
        for pattern in _MALICIOUS_EXECUTION_PATTERNS:
            if pattern.search(response):
                raise SecurityFailure(
                    "Malicious execution pattern detected in API response",
                    security_code="MALICIOUS_CODE",
                )

        stripped = response.strip()
        if stripped.startswith(("{", "[")):
            try:
                json.loads(stripped)
            except json.JSONDecodeError as e:
                raise SecurityFailure(
                    f"Invalid JSON in API response: {e.msg}",
                    security_code="INVALID_JSON",
                ) from e
        return response

    def mask_sensitive_info(self, text: str) -> str:
        """Mask API keys, tokens, passwords and credit card numbers."""
        if not text:
            return text

        masked = text
        for pattern in _SENSITIVE_PATTERNS:
            masked = pattern.sub(_mask_match, masked)
        for pattern in _CREDIT_CARD_PATTERNS:
            masked = pattern.sub(_mask_card_number, masked)
        return masked


def _mask_match(match: re.Match) -> str:
    if match.re.groups:
        return f"{match.group(1)}: ***"
    return "***"


def _mask_card_number(match: re.Match) -> str:
    digits = re.sub(r"[-\s]", "", match.group(0))
    return f"****-****-****-{digits[-4:]}"
