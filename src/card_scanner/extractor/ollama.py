"""Card parser backed by a local Ollama LLM."""

import json
import logging
import math
import re
import time
from typing import Any

import httpx

from card_scanner.errors import AIServiceUnavailableFailure, SecurityFailure, ValidationFailure
from card_scanner.extractor.base import CardParser, ParserStatus
from card_scanner.models.business_card import ParsedCardData, ParseHints, ParseSource
from card_scanner.security import InputSanitizer
from card_scanner.validation import is_card_phone, is_valid_email_format

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 10_000

SYSTEM_PROMPT = """You are a business card information extractor.
Turn OCR text from a business card into structured contact data.

Return ONLY a valid JSON object with these keys (no markdown, no explanation):
{{
  "name": "string or null",
  "company": "string or null",
  "jobTitle": "string or null",
  "department": "string or null",
  "phone": "string or null",
  "mobile": "string or null",
  "fax": "string or null",
  "email": "string or null",
  "address": "string or null",
  "website": "string or null",
  "confidence": 0.0-1.0
}}

Guidelines:
- Use null for anything you cannot identify
- Keep phone numbers readable; drop stray symbols
- email must be a valid address
- Cross-check company and name against the email domain and prefix to fix OCR errors
- Common OCR confusions: L/I, O/0, 1/l; use context to resolve
- confidence reflects how sure you are of the whole result

Preferred language: {language}
Country or region: {country}"""

USER_PROMPT_TEMPLATE = """Parse this business card text:

---
{ocr_text}
---

Return only the JSON object."""

_HTML_TAG = re.compile(r"<[^>]*>")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)


class OllamaCardParser(CardParser):
    """Card parser using a local Ollama model."""

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = "http://localhost:11434",
        timeout: float = 60.0,
        sanitizer: InputSanitizer | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the Ollama parser.

        Args:
            model: Ollama model name (e.g., "llama3.2", "qwen2").
            base_url: Ollama API base URL.
            timeout: Request timeout in seconds.
            sanitizer: Security capability for input and response checks.
            transport: httpx transport override.
        """
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._sanitizer = sanitizer or InputSanitizer()
        self._transport = transport

    @property
    def name(self) -> str:
        return f"ollama:{self._model}"

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def parse_card_from_text(
        self, ocr_text: str, hints: ParseHints | None = None
    ) -> ParsedCardData:
        self._validate_input(ocr_text)
        response = self._call_ollama(ocr_text, hints)
        return self._parse_response(response)

    def _validate_input(self, ocr_text: str) -> None:
        if not ocr_text.strip():
            raise ValidationFailure(
                "OCR text is empty",
                field="ocr_text",
                user_message="OCR text cannot be empty",
            )
        if len(ocr_text) > MAX_TEXT_LENGTH:
            raise ValidationFailure(
                f"OCR text has {len(ocr_text)} characters, limit is {MAX_TEXT_LENGTH}",
                field="ocr_text",
                user_message="OCR text is too long",
            )
        try:
            self._sanitizer.validate_content(ocr_text)
        except SecurityFailure as e:
            raise ValidationFailure(
                "OCR text contains unsafe content",
                field="ocr_text",
                user_message="Input contains potentially unsafe content",
                original_error=e,
            ) from e
        if self._sanitizer.contains_script_marker(ocr_text):
            raise ValidationFailure(
                "OCR text contains a script tag",
                field="ocr_text",
                user_message="Input contains potentially unsafe content",
            )

    def _call_ollama(self, ocr_text: str, hints: ParseHints | None) -> str:
        """Call the Ollama generate API and return the response text."""
        hints = hints or ParseHints()
        payload = {
            "model": self._model,
            "prompt": USER_PROMPT_TEMPLATE.format(ocr_text=ocr_text),
            "system": SYSTEM_PROMPT.format(
                language=hints.language or "any", country=hints.country or "any"
            ),
            "stream": False,
            "format": "json",
        }

        with self._client() as client:
            try:
                resp = client.post(f"{self._base_url}/api/generate", json=payload)
                resp.raise_for_status()
            except httpx.ConnectError as e:
                raise AIServiceUnavailableFailure(
                    f"Cannot connect to Ollama at {self._base_url}. "
                    "Is Ollama running? Start it with: ollama serve",
                    component=self.name,
                    original_error=e,
                ) from e
            except httpx.HTTPStatusError as e:
                raise AIServiceUnavailableFailure(
                    f"Ollama API error {e.response.status_code}: {e.response.text[:200]}",
                    component=self.name,
                    original_error=e,
                ) from e
            except httpx.HTTPError as e:
                raise AIServiceUnavailableFailure(
                    f"Ollama request failed: {e}", component=self.name, original_error=e
                ) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise AIServiceUnavailableFailure(
                "Ollama returned a non-JSON body",
                user_message="Failed to parse AI response",
                component=self.name,
                original_error=e,
            ) from e
        return data.get("response", "") if isinstance(data, dict) else ""

    def _parse_response(self, response: str) -> ParsedCardData:
        """Validate the model output and build ParsedCardData."""
        try:
            self._sanitizer.validate_api_response(response)
        except SecurityFailure as e:
            raise AIServiceUnavailableFailure(
                "Rejected AI response",
                user_message="Failed to parse AI response",
                component=self.name,
                original_error=e,
            ) from e

        try:
            data = json.loads(self._extract_json(response))
        except json.JSONDecodeError as e:
            raise AIServiceUnavailableFailure(
                f"Invalid JSON response from LLM: {e.msg}",
                user_message="Failed to parse AI response",
                component=self.name,
                original_error=e,
            ) from e
        if not isinstance(data, dict):
            raise AIServiceUnavailableFailure(
                "LLM response is not a JSON object",
                user_message="Failed to parse AI response",
                component=self.name,
            )

        return ParsedCardData(
            name=self._clean(data.get("name")),
            company=self._clean(data.get("company")),
            job_title=self._clean(data.get("jobTitle", data.get("job_title"))),
            department=self._clean(data.get("department")),
            phone=self._phone(data.get("phone")),
            mobile=self._phone(data.get("mobile")),
            fax=self._phone(data.get("fax")),
            email=self._email(data.get("email")),
            address=self._clean(data.get("address")),
            website=self._clean(data.get("website")),
            confidence=self._confidence(data.get("confidence")),
            source=ParseSource.AI,
        )

    def _to_str(self, value: Any) -> str | None:
        """Convert value to string, handling lists by taking first element."""
        if value is None:
            return None
        if isinstance(value, list):
            return str(value[0]) if value else None
        return str(value)

    def _clean(self, value: Any) -> str | None:
        text = self._to_str(value)
        if text is None:
            return None
        text = _HTML_TAG.sub("", text.strip())
        text = _EVENT_HANDLER.sub("", _JS_PROTOCOL.sub("", text)).strip()
        return text or None

    def _phone(self, value: Any) -> str | None:
        phone = self._clean(value)
        return phone if phone and is_card_phone(phone) else None

    def _email(self, value: Any) -> str | None:
        email = self._clean(value)
        return email if email and is_valid_email_format(email) else None

    def _confidence(self, value: Any) -> float:
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(confidence):
            return 0.0
        return min(max(confidence, 0.0), 1.0)

    def _extract_json(self, text: str) -> str:
        """Extract JSON from text, handling potential markdown code blocks."""
        code_block = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
        if code_block:
            return code_block.group(1).strip()

        raw_object = re.search(r"\{[\s\S]*\}", text)
        if raw_object:
            return raw_object.group(0)

        return text.strip()

    def get_service_status(self) -> ParserStatus:
        """Probe ``/api/tags`` to see whether Ollama answers."""
        start = time.perf_counter()
        try:
            with self._client() as client:
                client.get(f"{self._base_url}/api/tags").raise_for_status()
        except httpx.HTTPError as e:
            return ParserStatus(
                is_available=False,
                error=str(e),
                response_time_ms=round((time.perf_counter() - start) * 1000, 2),
            )
        return ParserStatus(
            is_available=True,
            response_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )
