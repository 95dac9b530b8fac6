"""Regex based card parser used when no AI service is reachable."""

import logging
import re

from card_scanner.extractor.base import CardParser
from card_scanner.models.business_card import ParsedCardData, ParseHints, ParseSource

logger = logging.getLogger(__name__)

COMMON_SURNAMES = (
    "王李張劉陳楊黃趙吳周徐孫馬朱胡郭何高林鄭謝羅梁宋唐許韓馮鄧曹"
    "彭曾蕭田董袁潘於蔣蔡余杜葉程蘇魏呂丁任沈姚盧傅鍾姜崔譚廖"
)
NON_NAME_WORDS = (
    "Road", "Street", "Avenue", "Drive", "Lane", "Place", "District", "City",
    "County", "Building", "Floor", "Room", "Suite", "Unit", "Company",
    "Corporation", "Inc", "Ltd", "Limited", "Phone", "Mobile", "Email",
    "Address", "Website", "Senior", "Software", "Engineer", "Manager",
    "Director", "Dist",
)

_HAN_NAME = re.compile(r"^[一-龥]{2,4}$")
_SPACED_HAN_NAME = re.compile(r"^([一-龥])\s+([一-龥]{1,3})$")
_ENGLISH_NAME = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\b")
_NON_NAME = re.compile(r"\b(?:" + "|".join(NON_NAME_WORDS) + r")\b")
_HAN_COMPANY = re.compile(
    r"([一-龥A-Za-z0-9]+(?:股份有限公司|有限公司|企業|集團|科技|公司|工作室|事務所))"
)
_ENGLISH_COMPANY = re.compile(
    r"([A-Za-z0-9&][A-Za-z0-9& \t]*?[ \t]*(?:Inc\.?|LLC|Ltd\.?|Limited|Corporation|Corp\.|Company|Co\.))",
    re.IGNORECASE,
)
_JOB_TITLES = (
    re.compile(
        r"([一-龥]*(?:經理|總監|主管|專員|工程師|設計師|顧問|分析師|總裁|執行長|董事|秘書|助理|主任|組長|課長))"
    ),
    re.compile(
        r"((?:Senior\s+|Junior\s+|Lead\s+|Chief\s+|Vice\s+|Assistant\s+|Associate\s+)?"
        r"(?:Software\s+|Hardware\s+|System\s+)?"
        r"(?:Manager|Director|CEO|CTO|CFO|Engineer|Designer|Consultant|Analyst|Executive|President|Supervisor))",
        re.IGNORECASE,
    ),
)
_EMAIL = re.compile(r"\b([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\b")
_PHONES = (
    re.compile(r"(\+?886[\s-]?[2-8][\s-]?\d{3,4}[\s-]?\d{4})"),
    re.compile(r"(\(?0[2-8]\)?[\s-]?\d{3,4}[\s-]?\d{4})"),
)
_MOBILES = (
    re.compile(r"(\+?886[\s-]?9\d{2}[\s-]?\d{3}[\s-]?\d{3})"),
    re.compile(r"(09\d{2}[\s-]?\d{3}[\s-]?\d{3})"),
)
_ADDRESSES = (
    re.compile(
        r"(?:地址|Address)?[:：]?\s*(.+(?:路|街|巷|弄|號|樓|室|Road|Street|Avenue|Lane|Floor|Room)[^\n]*)"
    ),
    re.compile(r"([一-龥]+(?:市|縣|區|鄉|鎮|村|里).+(?:路|街|巷|弄|號|樓|室)[^\n]*)"),
)
_WEBSITE = re.compile(
    r"(?:https?://)?(?:www\.)?[a-z0-9][a-z0-9-]*(?:\.[a-z0-9][a-z0-9-]*)*\.[a-z]{2,}(?:/\S*)?",
    re.IGNORECASE,
)
_LABEL = re.compile(r"^(?:地址|Address|Tel|電話|Phone|Mobile|手機|行動)\s*[:：]\s*", re.IGNORECASE)
MIN_ADDRESS_LENGTH = 10

_CONFIDENCE_FIELDS = ("name", "email", "phone", "mobile", "company", "job_title", "address")


class LocalCardParser(CardParser):
    """Extracts card fields with regular expressions tuned for Taiwan cards.

    Works offline and never raises for ordinary text; empty text yields an
    empty result with zero confidence.
    """

    @property
    def name(self) -> str:
        return "local"

    def parse_card_from_text(
        self, ocr_text: str, hints: ParseHints | None = None
    ) -> ParsedCardData:
        if not ocr_text.strip():
            return ParsedCardData(confidence=0.0, source=ParseSource.LOCAL)

        lines = [line.strip() for line in ocr_text.splitlines() if line.strip()]
        fields = {
            "name": self._name(lines),
            "company": self._company(ocr_text),
            "job_title": self._first_group(_JOB_TITLES, ocr_text),
            "email": self._first_group((_EMAIL,), ocr_text),
            "phone": self._phone(ocr_text),
            "mobile": self._first_group(_MOBILES, ocr_text),
            "address": self._address(lines),
            "website": self._website(lines),
        }
        logger.debug(
            "Local parser filled %s", [k for k, v in fields.items() if v] or "nothing"
        )
        return ParsedCardData(
            **fields, confidence=self._confidence(fields), source=ParseSource.LOCAL
        )

    def _name(self, lines: list[str]) -> str | None:
        candidates = []
        for line in lines:
            spaced = _SPACED_HAN_NAME.match(line)
            if spaced:
                line = spaced.group(1) + spaced.group(2)
            if _HAN_NAME.match(line) and not _HAN_COMPANY.search(line):
                if line[0] in COMMON_SURNAMES:
                    return line
                if not self._first_group(_JOB_TITLES[:1], line):
                    candidates.append(line)
        if candidates:
            return candidates[0]

        for line in lines:
            match = _ENGLISH_NAME.search(line)
            if match and not _NON_NAME.search(match.group(1)):
                return match.group(1)
        return None

    def _company(self, text: str) -> str | None:
        match = _HAN_COMPANY.search(text) or _ENGLISH_COMPANY.search(text)
        return " ".join(match.group(1).split()) if match else None

    def _phone(self, text: str) -> str | None:
        mobiles = {m.group(1) for pattern in _MOBILES for m in pattern.finditer(text)}
        for pattern in _PHONES:
            for match in pattern.finditer(text):
                if match.group(1) not in mobiles:
                    return match.group(1).strip()
        return None

    def _address(self, lines: list[str]) -> str | None:
        for line in lines:
            if "@" in line:
                continue
            for pattern in _ADDRESSES:
                match = pattern.search(line)
                if match:
                    address = _LABEL.sub("", match.group(1).strip())
                    if len(address) >= MIN_ADDRESS_LENGTH:
                        return address
        return None

    def _website(self, lines: list[str]) -> str | None:
        # email domains would otherwise match
        for line in lines:
            if "@" in line:
                continue
            match = _WEBSITE.search(line)
            if match:
                return match.group(0)
        return None

    @staticmethod
    def _first_group(patterns, text: str) -> str | None:
        for pattern in patterns:
            match = pattern.search(text)
            if match and match.group(1).strip():
                return match.group(1).strip()
        return None

    @staticmethod
    def _confidence(fields: dict[str, str | None]) -> float:
        """Share of filled fields plus bonuses for name, email and a phone."""
        filled = sum(1 for name in _CONFIDENCE_FIELDS if fields.get(name))
        confidence = filled / len(_CONFIDENCE_FIELDS)
        if fields.get("name"):
            confidence += 0.1
        if fields.get("email"):
            confidence += 0.05
        if fields.get("phone") or fields.get("mobile"):
            confidence += 0.05
        return min(max(confidence, 0.0), 1.0)
