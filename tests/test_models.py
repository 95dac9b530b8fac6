"""Tests for the data models."""

import json
from datetime import datetime

import pytest

from card_scanner.errors import SecurityFailure, ValidationFailure
from card_scanner.models import (
    BoundingBox,
    BusinessCard,
    DetectedText,
    OCRResult,
    ParsedCardData,
    ParseSource,
    create_business_card,
    create_ocr_result,
)
from card_scanner.result import Err, Ok


def _card(**fields) -> BusinessCard:
    defaults = {"id": "card-1", "name": "John Doe", "created_at": datetime(2024, 1, 1)}
    return create_business_card(**{**defaults, **fields}).unwrap()


class TestBoundingBox:
    """Test BoundingBox geometry."""

    def test_intersection_area(self):
        """Test overlapping boxes report their shared area."""
        a = BoundingBox(left=0, top=0, width=10, height=10)
        b = BoundingBox(left=5, top=5, width=10, height=10)
        assert a.intersects(b)
        assert a.get_intersection_area(b) == 25

    def test_touching_boxes_do_not_intersect(self):
        """Test boxes sharing only an edge do not intersect."""
        a = BoundingBox(left=0, top=0, width=10, height=10)
        b = BoundingBox(left=10, top=0, width=5, height=5)
        assert not a.intersects(b)
        assert a.get_intersection_area(b) == 0.0

    def test_contains_point_edges_inclusive(self):
        """Test points on the edge are contained."""
        box = BoundingBox(left=0, top=0, width=10, height=10)
        assert box.contains_point(10, 10)
        assert box.contains_point(0, 5)
        assert not box.contains_point(10.1, 5)

    def test_scale_keeps_center(self):
        """Test scaling doubles size around the same center."""
        box = BoundingBox(left=10, top=10, width=20, height=10)
        scaled = box.scale(2.0)
        assert scaled.center_x == box.center_x
        assert scaled.center_y == box.center_y
        assert scaled.width == 40
        assert scaled.height == 20

    def test_expand(self):
        """Test expanding grows every side."""
        box = BoundingBox(left=10, top=10, width=20, height=10).expand(5)
        assert (box.left, box.top, box.width, box.height) == (5, 5, 30, 20)

    def test_clamp_into_image(self):
        """Test clamping moves a box back inside the image."""
        box = BoundingBox(left=-5, top=-5, width=20, height=20).clamp(100, 100)
        assert box.left == 0
        assert box.top == 0
        assert box.width == 20

    def test_from_corners(self):
        """Test building from corner coordinates."""
        box = BoundingBox.from_corners(10, 20, 110, 50)
        assert box.width == 100
        assert box.height == 30
        assert box.right == 110
        assert box.bottom == 50

    def test_from_normalized_flips_origin(self):
        """Test bottom-left normalized boxes convert to top-left pixels."""
        box = BoundingBox.from_normalized(0.1, 0.2, 0.5, 0.1, 1000, 500, flip_y=True)
        assert box.left == pytest.approx(100)
        assert box.top == pytest.approx(350)
        assert box.width == pytest.approx(500)
        assert box.height == pytest.approx(50)

    def test_is_valid(self):
        """Test zero-size boxes are not valid."""
        assert BoundingBox(left=0, top=0, width=1, height=1).is_valid
        assert not BoundingBox(left=0, top=0, width=0, height=1).is_valid


class TestDetectedText:
    """Test DetectedText blocks."""

    def test_confidence_out_of_range(self):
        """Test confidence above 1.0 is rejected."""
        with pytest.raises(ValidationFailure):
            DetectedText(text="Hello", confidence=1.5)

    def test_helpers(self):
        """Test derived properties."""
        block = DetectedText(text="  Hello   World ", confidence=0.85)
        assert block.is_high_confidence()
        assert block.cleaned_text == "Hello World"
        assert block.text_length == 16
        assert DetectedText(text=" a ", confidence=0.5).is_empty_or_meaningless()


class TestOCRResult:
    """Test OCRResult validation and helpers."""

    def test_confidence_out_of_range(self):
        """Test out of range confidence fails construction."""
        result = create_ocr_result(raw_text="text", confidence=1.2)
        assert isinstance(result, Err)
        assert isinstance(result.failure, ValidationFailure)
        assert result.failure.field == "confidence"

    def test_non_positive_dimension(self):
        """Test zero image width fails construction."""
        result = create_ocr_result(raw_text="text", confidence=0.5, image_width=0)
        assert isinstance(result, Err)
        assert result.failure.field == "image_width"

    def test_negative_processing_time(self):
        """Test negative durations fail construction."""
        with pytest.raises(ValidationFailure):
            OCRResult(confidence=0.5, processing_time_ms=-1)

    def test_script_in_raw_text(self):
        """Test script markers in OCR text are rejected."""
        result = create_ocr_result(raw_text="Hi <SCRIPT>alert(1)</SCRIPT>", confidence=0.5)
        assert isinstance(result, Err)
        assert isinstance(result.failure, SecurityFailure)

    def test_script_in_detected_texts(self):
        """Test script markers in detected blocks are rejected."""
        with pytest.raises(SecurityFailure):
            OCRResult(confidence=0.5, detected_texts=("ok", "<script src=x>"))

    def test_control_characters_stripped(self):
        """Test control characters are removed but apostrophes kept."""
        result = create_ocr_result(raw_text="O'Brien\x00\x07 Ltd", confidence=0.5).unwrap()
        assert result.raw_text == "O'Brien Ltd"

    def test_wrong_type_is_validation_failure(self):
        """Test type errors are reported as ValidationFailure."""
        result = create_ocr_result(confidence="high")
        assert isinstance(result, Err)
        assert isinstance(result.failure, ValidationFailure)

    def test_factory_ok(self):
        """Test valid fields produce Ok."""
        result = create_ocr_result(raw_text="Hello", confidence=0.95, image_width=640, image_height=480)
        assert isinstance(result, Ok)
        assert result.value.is_high_confidence()
        assert result.value.id

    def test_extract_contacts(self):
        """Test emails and phones come from blocks and raw text."""
        result = OCRResult(
            raw_text="Mail b@example.com",
            detected_texts=("a@example.com", "Tel 02-2345-6789"),
            confidence=0.8,
        )
        assert result.extract_emails() == ["a@example.com", "b@example.com"]
        assert result.extract_phone_numbers() == ["02-2345-6789"]

    def test_copy_with_no_changes_is_equal(self):
        """Test copying without changes yields an equal result."""
        result = OCRResult(raw_text="Hello", confidence=0.5)
        assert result.copy_with() == result

    def test_copy_with_changes(self):
        """Test copy_with applies changes and leaves the original untouched."""
        result = OCRResult(raw_text="Hello", confidence=0.5)
        updated = result.copy_with(confidence=0.9, detected_texts=["Hello"])
        assert updated.confidence == 0.9
        assert updated.detected_texts == ("Hello",)
        assert result.confidence == 0.5

    def test_repr_hides_text(self):
        """Test repr omits the recognized text."""
        result = OCRResult(raw_text="secret contact", confidence=0.5)
        assert "secret contact" not in repr(result)
        assert "text_length=14" in repr(result)

    def test_without_image(self):
        """Test image bytes can be dropped."""
        result = OCRResult(confidence=0.5, image_data=b"\x89PNG")
        assert result.without_image().image_data is None
        assert result.get_performance_info()["has_image_data"] is True

    def test_json_serialization(self):
        """Test image bytes serialize as base64."""
        result = OCRResult(confidence=0.5, image_data=b"abc")
        data = json.loads(result.model_dump_json())
        assert data["image_data"] == "YWJj"


class TestBusinessCard:
    """Test BusinessCard validation and behavior."""

    def test_text_fields_cleaned(self):
        """Test whitespace is trimmed and collapsed."""
        card = _card(name="  John   Doe ", company="  Acme  Corp ", job_title="   ")
        assert card.name == "John Doe"
        assert card.company == "Acme Corp"
        assert card.job_title is None

    def test_empty_name_rejected(self):
        """Test a blank name fails construction."""
        result = create_business_card(id="c", name="   ", created_at=datetime.now())
        assert isinstance(result, Err)
        assert result.failure.field == "name"

    def test_empty_id_rejected(self):
        """Test a blank id fails construction."""
        result = create_business_card(id=" ", name="John", created_at=datetime.now())
        assert isinstance(result, Err)
        assert result.failure.field == "id"

    def test_invalid_email_rejected(self):
        """Test a malformed email fails construction."""
        result = create_business_card(
            id="c", name="John", email="not-an-email", created_at=datetime.now()
        )
        assert isinstance(result, Err)
        assert result.failure.field == "email"

    def test_invalid_phone_rejected(self):
        """Test a malformed phone fails construction."""
        result = create_business_card(id="c", name="John", phone="12ab", created_at=datetime.now())
        assert isinstance(result, Err)
        assert result.failure.field == "phone"

    def test_international_phone_accepted(self):
        """Test the permissive phone pattern."""
        card = _card(phone="+1 (555) 123-4567")
        assert card.phone == "+1 (555) 123-4567"

    def test_invalid_website_dropped(self):
        """Test an invalid website is removed instead of failing."""
        card = _card(website="javascript:alert(1)")
        assert card.website is None
        assert _card(website=" https://example.com ").website == "https://example.com"

    def test_script_in_company_rejected(self):
        """Test script markers in free text fail construction."""
        result = create_business_card(
            id="c", name="John", company="<script>x</script>", created_at=datetime.now()
        )
        assert isinstance(result, Err)
        assert isinstance(result.failure, SecurityFailure)
        assert result.failure.security_code == "SCRIPT_DETECTED"

    def test_apostrophe_name_accepted(self):
        """Test ordinary punctuation is not treated as an attack."""
        assert _card(name="Sean O'Brien").name == "Sean O'Brien"

    def test_is_complete(self):
        """Test completeness needs name, title, company and a contact channel."""
        assert not _card().is_complete()
        assert not _card(job_title="Engineer", company="Acme").is_complete()
        assert _card(job_title="Engineer", company="Acme", email="j@acme.com").is_complete()
        assert _card(job_title="Engineer", company="Acme", address="1 Main St").is_complete()

    def test_has_contact_info(self):
        """Test any contact channel counts."""
        assert not _card().has_contact_info()
        assert _card(website="https://acme.com").has_contact_info()

    def test_copy_with_no_changes_is_equal(self):
        """Test copying without changes yields an equal card."""
        card = _card(email="j@acme.com", tags=["vip"])
        assert card.copy_with() == card

    def test_copy_with_cleans_changes(self):
        """Test changed text fields are cleaned and tags kept in order."""
        card = _card().copy_with(company="  New  Co ", tags=["b", "a"])
        assert card.company == "New Co"
        assert card.tags == ("b", "a")

    def test_copy_with_blank_name_keeps_name(self):
        """Test a blank name change never empties the name."""
        card = _card()
        assert card.copy_with(name="   ").name == card.name
        assert card.copy_with(name=None).name == card.name

    def test_frozen(self):
        """Test cards cannot be mutated in place."""
        card = _card()
        with pytest.raises(Exception):
            card.name = "Other"

    def test_repr_masks_contact_values(self):
        """Test email and phone are masked in repr."""
        text = repr(_card(email="j@acme.com", phone="02-2345-6789"))
        assert "j@acme.com" not in text
        assert "02-2345-6789" not in text

    def test_display_name(self):
        """Test display name prefers the name."""
        assert _card().get_display_name() == "John Doe"


class TestParsedCardData:
    """Test conversion of parser output into cards."""

    def test_to_business_card(self):
        """Test conversion keeps fields and falls back to mobile for phone."""
        parsed = ParsedCardData(
            name="王小明",
            company="台灣科技股份有限公司",
            mobile="0912-345-678",
            confidence=0.8,
            source=ParseSource.LOCAL,
        )
        card = parsed.to_business_card(card_id="abc").unwrap()
        assert card.id == "abc"
        assert card.name == "王小明"
        assert card.phone == "0912-345-678"
        assert card.mobile == "0912-345-678"

    def test_generates_id(self):
        """Test an id is generated when none is given."""
        card = ParsedCardData(name="John").to_business_card().unwrap()
        assert len(card.id) == 36

    def test_missing_name_is_err(self):
        """Test conversion without a name returns Err."""
        assert isinstance(ParsedCardData(company="Acme").to_business_card(), Err)
