"""Tests for the business card pipeline."""

from unittest.mock import Mock

import pytest

from card_scanner.errors import (
    AIServiceUnavailableFailure,
    ProcessingFailure,
    SecurityFailure,
)
from card_scanner.models import OCRResult, ParsedCardData, ParseHints, ParseSource
from card_scanner.parser import UNKNOWN_NAME, BusinessCardParser, read_image

OCR_TEXT = "John Doe\nEngineer\nAcme Inc.\njohn@example.com\nTel: 02-2345-6789"


def _repository(text: str = OCR_TEXT) -> Mock:
    repository = Mock()
    repository.recognize_text.return_value = OCRResult(
        raw_text=text, confidence=0.9, ocr_engine="mock-ocr"
    )
    return repository


def _card_parser(parsed: ParsedCardData | None = None, name: str = "mock-parser") -> Mock:
    card_parser = Mock()
    card_parser.name = name
    card_parser.parse_card_from_text.return_value = parsed or ParsedCardData(
        name="John Doe",
        job_title="Engineer",
        company="Acme Inc.",
        confidence=0.9,
        source=ParseSource.AI,
    )
    return card_parser


class TestBusinessCardParser:
    """Test BusinessCardParser class."""

    def test_parse_success(self):
        """Test successful parsing with OCR fields merged in."""
        repository = _repository()
        card_parser = _card_parser()
        parser = BusinessCardParser(repository, card_parser)

        card = parser.parse(b"img", card_id="card-1")

        assert card.id == "card-1"
        assert card.name == "John Doe"
        assert card.company == "Acme Inc."
        assert card.email == "john@example.com"
        assert card.phone == "02-2345-6789"
        assert card.image_path is None
        repository.recognize_text.assert_called_once_with(b"img", None)
        card_parser.parse_card_from_text.assert_called_once_with(OCR_TEXT, None)

    def test_parse_forwards_hints(self):
        """Test parse hints reach the card parser."""
        card_parser = _card_parser()
        hints = ParseHints(language="en")

        BusinessCardParser(_repository(), card_parser).parse(b"img", hints=hints)

        card_parser.parse_card_from_text.assert_called_once_with(OCR_TEXT, hints)

    def test_parse_empty_ocr_raises(self):
        """Test parsing raises when OCR finds no text."""
        card_parser = _card_parser()
        parser = BusinessCardParser(_repository("  \n "), card_parser)

        with pytest.raises(ProcessingFailure):
            parser.parse(b"img")
        card_parser.parse_card_from_text.assert_not_called()

    def test_fallback_on_ai_unavailable(self):
        """Test the fallback parser is used when the AI service is down."""
        card_parser = _card_parser()
        card_parser.parse_card_from_text.side_effect = AIServiceUnavailableFailure("down")
        fallback = _card_parser(
            ParsedCardData(name="John Doe", company="Acme Inc.", source=ParseSource.LOCAL),
            name="local",
        )

        card = BusinessCardParser(_repository(), card_parser, fallback).parse(b"img")

        assert card.name == "John Doe"
        fallback.parse_card_from_text.assert_called_once()

    def test_ai_unavailable_without_fallback(self):
        """Test the AI failure propagates without a fallback."""
        card_parser = _card_parser()
        card_parser.parse_card_from_text.side_effect = AIServiceUnavailableFailure("down")

        with pytest.raises(AIServiceUnavailableFailure):
            BusinessCardParser(_repository(), card_parser).parse(b"img")

    def test_invalid_parsed_values_dropped(self):
        """Test invalid email and phone are replaced from the OCR text."""
        card_parser = _card_parser(
            ParsedCardData(name="John Doe", email="john at example", phone="call me")
        )

        card = BusinessCardParser(_repository(), card_parser).parse(b"img")

        assert card.email == "john@example.com"
        assert card.phone == "02-2345-6789"

    def test_mobile_only_keeps_phone_empty(self):
        """Test phone falls back to the parsed mobile, not the OCR text."""
        card_parser = _card_parser(ParsedCardData(name="John Doe", mobile="0912-345-678"))

        card = BusinessCardParser(_repository(), card_parser).parse(b"img")

        assert card.phone == "0912-345-678"
        assert card.mobile == "0912-345-678"

    def test_missing_name(self):
        """Test a card without a recognizable name gets a placeholder."""
        card_parser = _card_parser(ParsedCardData(company="Acme Inc."))

        card = BusinessCardParser(_repository(), card_parser).parse(b"img")

        assert card.name == UNKNOWN_NAME

    def test_unsafe_parsed_field_raises(self):
        """Test unsafe parser output fails card construction."""
        card_parser = _card_parser(
            ParsedCardData(name="John Doe", company="<script>x</script>")
        )

        with pytest.raises(SecurityFailure):
            BusinessCardParser(_repository(), card_parser).parse(b"img")

    def test_parse_path(self, tmp_path):
        """Test parsing from a file records the image path."""
        image = tmp_path / "card.png"
        image.write_bytes(b"png-bytes")
        repository = _repository()

        card = BusinessCardParser(repository, _card_parser()).parse(image)

        assert card.image_path == str(image)
        repository.recognize_text.assert_called_once_with(b"png-bytes", None)

    def test_parse_missing_path(self, tmp_path):
        """Test a missing image path raises FileNotFoundError."""
        parser = BusinessCardParser(_repository(), _card_parser())
        with pytest.raises(FileNotFoundError):
            parser.parse(tmp_path / "missing.png")

    def test_parse_ocr_only(self):
        """Test OCR-only parsing skips the card parser."""
        repository = _repository()
        card_parser = _card_parser()

        result = BusinessCardParser(repository, card_parser).parse_ocr_only(b"img")

        assert result.raw_text == OCR_TEXT
        card_parser.parse_card_from_text.assert_not_called()


class TestReadImage:
    """Test read_image."""

    def test_bytes_passthrough(self):
        """Test bytes are returned unchanged."""
        assert read_image(b"abc") == b"abc"

    def test_path_string(self, tmp_path):
        """Test string paths are read."""
        image = tmp_path / "card.jpg"
        image.write_bytes(b"jpg")
        assert read_image(str(image)) == b"jpg"
