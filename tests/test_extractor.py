"""Tests for the card parsers."""

import json

import httpx
import pytest

from card_scanner.errors import AIServiceUnavailableFailure, ValidationFailure
from card_scanner.extractor import LocalCardParser, OllamaCardParser
from card_scanner.models import ParseHints, ParseSource

TAIWAN_CARD = """王小明
資深軟體工程師
台灣科技股份有限公司
Tel: 02-2345-6789
Mobile: 0912-345-678
Email: ming@example.com.tw
台北市信義區信義路五段7號
www.example.com.tw"""

ENGLISH_CARD = """John Smith
Senior Software Engineer
Acme Technology Inc.
john.smith@acme.com
+886 2 2345 6789"""


def _ollama(handler, **kwargs) -> OllamaCardParser:
    return OllamaCardParser(transport=httpx.MockTransport(handler), **kwargs)


def _answer(fields: dict):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"response": json.dumps(fields)})

    return handler, requests


class TestOllamaCardParser:
    """Test OllamaCardParser."""

    def test_parse_card(self):
        """Test a model answer is cleaned into ParsedCardData."""
        handler, requests = _answer(
            {
                "name": "<b>John Doe</b>",
                "company": "Acme Inc.",
                "jobTitle": "CTO",
                "email": "not-an-email",
                "phone": "+1 555 123 4567",
                "mobile": ["0912-345-678"],
                "fax": "n/a",
                "confidence": 1.7,
            }
        )

        parsed = _ollama(handler).parse_card_from_text("John Doe\nCTO, Acme Inc.")

        assert parsed.name == "John Doe"
        assert parsed.company == "Acme Inc."
        assert parsed.job_title == "CTO"
        assert parsed.email is None
        assert parsed.phone == "+1 555 123 4567"
        assert parsed.mobile == "0912-345-678"
        assert parsed.fax is None
        assert parsed.confidence == 1.0
        assert parsed.source == ParseSource.AI

    def test_request_payload(self):
        """Test the generate request carries model, prompt and hints."""
        handler, requests = _answer({"name": "John"})
        parser = _ollama(handler, model="qwen2", base_url="http://ollama:11434/")

        parser.parse_card_from_text("John", ParseHints(language="zh-Hant", country="TW"))

        request = requests[0]
        assert str(request.url) == "http://ollama:11434/api/generate"
        body = json.loads(request.content)
        assert body["model"] == "qwen2"
        assert body["stream"] is False
        assert body["format"] == "json"
        assert "John" in body["prompt"]
        assert "Preferred language: zh-Hant" in body["system"]
        assert "Country or region: TW" in body["system"]

    def test_snake_case_job_title_and_bad_confidence(self):
        """Test alternate keys and unusable confidence values."""
        handler, _ = _answer({"name": "John", "job_title": "Engineer", "confidence": "high"})
        parsed = _ollama(handler).parse_card_from_text("John")
        assert parsed.job_title == "Engineer"
        assert parsed.confidence == 0.0

    def test_code_block_answer(self):
        """Test JSON wrapped in a markdown code block."""

        def handler(request):
            return httpx.Response(
                200, json={"response": '```json\n{"name": "John Doe"}\n```'}
            )

        assert _ollama(handler).parse_card_from_text("John").name == "John Doe"

    def test_connect_error(self):
        """Test an unreachable server is reported as unavailable."""

        def handler(request):
            raise httpx.ConnectError("refused")

        with pytest.raises(AIServiceUnavailableFailure) as exc:
            _ollama(handler).parse_card_from_text("John")
        assert "ollama serve" in exc.value.internal_message

    def test_http_error_status(self):
        """Test error statuses are reported as unavailable."""

        def handler(request):
            return httpx.Response(500, text="boom")

        with pytest.raises(AIServiceUnavailableFailure) as exc:
            _ollama(handler).parse_card_from_text("John")
        assert "500" in exc.value.internal_message

    def test_non_json_body(self):
        """Test a non-JSON HTTP body is reported as unavailable."""

        def handler(request):
            return httpx.Response(200, text="oops")

        with pytest.raises(AIServiceUnavailableFailure):
            _ollama(handler).parse_card_from_text("John")

    @pytest.mark.parametrize("answer", ["I cannot help with that", "[1, 2]", '{"name": '])
    def test_unusable_model_answer(self, answer):
        """Test answers that are not a JSON object are rejected."""

        def handler(request):
            return httpx.Response(200, json={"response": answer})

        with pytest.raises(AIServiceUnavailableFailure):
            _ollama(handler).parse_card_from_text("John")

    @pytest.mark.parametrize("text", ["", "   ", "a" * 10_001, "call eval(x)", "hi <script"])
    def test_invalid_input(self, text):
        """Test unusable OCR text is rejected before any request."""
        handler, requests = _answer({"name": "John"})

        with pytest.raises(ValidationFailure) as exc:
            _ollama(handler).parse_card_from_text(text)

        assert exc.value.field == "ocr_text"
        assert requests == []

    def test_parse_cards_from_texts(self):
        """Test batch parsing collects failures by index."""
        handler, _ = _answer({"name": "John"})

        result = _ollama(handler).parse_cards_from_texts(["", "John"])

        assert result.total == 2
        assert [p.name for p in result.successful] == ["John"]
        assert result.failed[0].index == 0

    def test_service_status(self):
        """Test the availability probe."""
        up = _ollama(lambda request: httpx.Response(200, json={"models": []}))
        assert up.get_service_status().is_available

        def refuse(request):
            raise httpx.ConnectError("refused")

        status = _ollama(refuse).get_service_status()
        assert not status.is_available
        assert "refused" in status.error

    def test_extract_json_from_code_block(self):
        """Test JSON extraction from markdown code block."""
        parser = OllamaCardParser()
        text = '```json\n{"name": "John"}\n```'
        assert json.loads(parser._extract_json(text)) == {"name": "John"}

    def test_extract_json_raw(self):
        """Test JSON extraction surrounded by prose."""
        parser = OllamaCardParser()
        text = 'Here you go: {"name": "John"} hope that helps'
        assert json.loads(parser._extract_json(text)) == {"name": "John"}

    def test_parser_name(self):
        """Test parser name."""
        assert OllamaCardParser(model="qwen2").name == "ollama:qwen2"

    def test_to_str(self):
        """Test value coercion."""
        parser = OllamaCardParser()
        assert parser._to_str("test") == "test"
        assert parser._to_str(None) is None
        assert parser._to_str(["first", "second"]) == "first"
        assert parser._to_str([]) is None
        assert parser._to_str(123) == "123"


class TestLocalCardParser:
    """Test LocalCardParser."""

    @pytest.fixture
    def parser(self):
        return LocalCardParser()

    def test_taiwan_card(self, parser):
        """Test a traditional Chinese card."""
        parsed = parser.parse_card_from_text(TAIWAN_CARD)

        assert parsed.name == "王小明"
        assert parsed.job_title == "資深軟體工程師"
        assert parsed.company == "台灣科技股份有限公司"
        assert parsed.phone == "02-2345-6789"
        assert parsed.mobile == "0912-345-678"
        assert parsed.email == "ming@example.com.tw"
        assert parsed.address == "台北市信義區信義路五段7號"
        assert parsed.website == "www.example.com.tw"
        assert parsed.confidence == 1.0
        assert parsed.source == ParseSource.LOCAL

    def test_english_card(self, parser):
        """Test an English card."""
        parsed = parser.parse_card_from_text(ENGLISH_CARD)

        assert parsed.name == "John Smith"
        assert parsed.job_title == "Senior Software Engineer"
        assert parsed.company == "Acme Technology Inc."
        assert parsed.email == "john.smith@acme.com"
        assert parsed.phone == "+886 2 2345 6789"
        assert parsed.mobile is None
        assert parsed.address is None
        assert parsed.website is None
        assert parsed.confidence == pytest.approx(5 / 7 + 0.2)

    def test_spaced_han_name(self, parser):
        """Test a name split by OCR spacing is joined."""
        assert parser.parse_card_from_text("陳 大文\nTel: 02-2345-6789").name == "陳大文"

    def test_empty_text(self, parser):
        """Test empty text gives an empty, zero-confidence result."""
        parsed = parser.parse_card_from_text("  \n ")
        assert parsed.name is None
        assert parsed.confidence == 0.0

    def test_email_domain_not_website(self, parser):
        """Test an email domain is not taken as the website."""
        parsed = parser.parse_card_from_text("Jane Doe\njane@example.com")
        assert parsed.website is None
        assert parsed.email == "jane@example.com"

    def test_service_status(self, parser):
        """Test the local parser is always available."""
        assert parser.get_service_status().is_available
        assert parser.name == "local"
