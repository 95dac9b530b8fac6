"""Abstract base class for card parsers."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, Field

from card_scanner.models.business_card import ParsedCardData, ParseHints

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchParseError:
    index: int
    error: str


@dataclass
class BatchParseResult:
    """Parsed texts and per-text failures, ordered by input index."""

    successful: list[ParsedCardData] = field(default_factory=list)
    failed: list[BatchParseError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed)


class ParserStatus(BaseModel):
    """Availability report of a card parser."""

    is_available: bool
    error: str | None = None
    response_time_ms: float = 0.0
    checked_at: datetime = Field(default_factory=datetime.now)


class CardParser(ABC):
    """Turns OCR text into structured contact fields."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this parser."""
        ...

    @abstractmethod
    def parse_card_from_text(
        self, ocr_text: str, hints: ParseHints | None = None
    ) -> ParsedCardData:
        """
        Parse business card fields from OCR text.

        Args:
            ocr_text: Text recognized on the card.
            hints: Optional language, region and industry hints.

        Returns:
            ParsedCardData with the fields that could be identified.

        Raises:
            ValidationFailure: If the text is empty, too long or unsafe.
            AIServiceUnavailableFailure: If a remote service cannot answer.
        """
        ...

    def parse_cards_from_texts(
        self, ocr_texts: list[str], hints: ParseHints | None = None
    ) -> BatchParseResult:
        """Parse several texts, collecting failures instead of aborting."""
        result = BatchParseResult()
        for index, text in enumerate(ocr_texts):
            try:
                result.successful.append(self.parse_card_from_text(text, hints))
            except Exception as e:
                logger.warning("Parsing text %d with %s failed: %s", index, self.name, e)
                result.failed.append(BatchParseError(index=index, error=str(e)))
        return result

    def get_service_status(self) -> ParserStatus:
        return ParserStatus(is_available=True)
