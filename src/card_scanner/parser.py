"""Business card pipeline: image -> OCR -> field parsing -> BusinessCard."""

import logging
import time
from pathlib import Path

from card_scanner.errors import AIServiceUnavailableFailure, ProcessingFailure, ValidationFailure
from card_scanner.extractor.base import CardParser
from card_scanner.models.business_card import BusinessCard, ParsedCardData, ParseHints
from card_scanner.models.ocr_result import OCRResult
from card_scanner.models.options import OCROptions
from card_scanner.repository import OCRRepository
from card_scanner.result import Err
from card_scanner.security import InputSanitizer
from card_scanner.validation import FieldValidator

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown Contact"


def read_image(image: bytes | str | Path) -> bytes:
    """
    Return image bytes, reading them from disk for a path.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    if isinstance(image, bytes):
        return image
    path = Path(image)
    if not path.is_file():
        raise FileNotFoundError(f"Image not found: {path}")
    return path.read_bytes()


class BusinessCardParser:
    """Turns business card images into validated BusinessCard records."""

    def __init__(
        self,
        repository: OCRRepository,
        card_parser: CardParser,
        fallback_parser: CardParser | None = None,
        sanitizer: InputSanitizer | None = None,
        validator: FieldValidator | None = None,
    ):
        """
        Args:
            repository: Cached OCR access.
            card_parser: Primary field parser, usually AI backed.
            fallback_parser: Used when the primary parser's service is
                unavailable.
            sanitizer: Security capability for card construction.
            validator: Field format validator for card construction.
        """
        self._repository = repository
        self._card_parser = card_parser
        self._fallback_parser = fallback_parser
        self._sanitizer = sanitizer or InputSanitizer()
        self._validator = validator or FieldValidator()

    def parse(
        self,
        image: bytes | str | Path,
        card_id: str | None = None,
        hints: ParseHints | None = None,
        options: OCROptions | None = None,
    ) -> BusinessCard:
        """
        Parse a business card image into a BusinessCard.

        Args:
            image: Image bytes or a path to an image file.
            card_id: Id for the new card; generated when omitted.
            hints: Hints forwarded to the card parser.
            options: OCR options.

        Returns:
            The validated BusinessCard.

        Raises:
            FileNotFoundError: If ``image`` is a missing path.
            ProcessingFailure: If OCR recognized no text.
            ValidationFailure, SecurityFailure: If the parsed fields cannot
                form a valid card.
            AIServiceUnavailableFailure: If the AI parser failed and no
                fallback parser is configured.
        """
        start = time.perf_counter()
        ocr_result = self.parse_ocr_only(image, options)
        if not ocr_result.raw_text.strip():
            raise ProcessingFailure(
                "OCR extracted no text from the image",
                user_message="No text found on the card",
                component=ocr_result.ocr_engine,
            )

        parsed = self._merge_ocr_fields(self._parse_text(ocr_result.raw_text, hints), ocr_result)
        result = parsed.to_business_card(
            card_id=card_id, sanitizer=self._sanitizer, validator=self._validator
        )
        if isinstance(result, Err):
            raise result.failure

        card = result.value
        if not isinstance(image, bytes):
            card = card.copy_with(image_path=str(image))
        logger.info(
            "Parsed card %s in %.0f ms (OCR: %s, parser: %s)",
            card.id,
            (time.perf_counter() - start) * 1000,
            ocr_result.ocr_engine,
            parsed.source.value,
        )
        return card

    def parse_ocr_only(
        self, image: bytes | str | Path, options: OCROptions | None = None
    ) -> OCRResult:
        """Run only OCR, without field parsing. Useful for checking OCR quality."""
        return self._repository.recognize_text(read_image(image), options)

    def _parse_text(self, text: str, hints: ParseHints | None) -> ParsedCardData:
        try:
            return self._card_parser.parse_card_from_text(text, hints)
        except AIServiceUnavailableFailure as e:
            if self._fallback_parser is None:
                raise
            logger.warning(
                "%s unavailable, using %s: %s",
                self._card_parser.name,
                self._fallback_parser.name,
                e.internal_message,
            )
            return self._fallback_parser.parse_card_from_text(text, hints)

    def _merge_ocr_fields(self, parsed: ParsedCardData, ocr_result: OCRResult) -> ParsedCardData:
        """Fill missing email and phone from the OCR text; drop invalid ones."""
        changes = {}
        email = self._accepted(self._validator.validate_email, parsed.email)
        if email is None:
            email = next(
                (e for e in ocr_result.extract_emails()
                 if self._accepted(self._validator.validate_email, e)),
                None,
            )
        if email != parsed.email:
            changes["email"] = email

        phone = self._accepted(self._validator.validate_card_phone, parsed.phone)
        if phone is None and not parsed.mobile:
            phone = next(
                (p for p in ocr_result.extract_phone_numbers()
                 if self._accepted(self._validator.validate_card_phone, p)),
                None,
            )
        if phone != parsed.phone:
            changes["phone"] = phone

        if not parsed.name:
            changes["name"] = UNKNOWN_NAME
        return parsed.model_copy(update=changes) if changes else parsed

    @staticmethod
    def _accepted(check, value: str | None) -> str | None:
        if not value:
            return None
        try:
            return check(value)
        except ValidationFailure:
            logger.debug("Dropping invalid %s value", check.__name__.removeprefix("validate_"))
            return None
