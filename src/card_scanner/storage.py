"""Persistence of business cards."""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from card_scanner.errors import CardScannerError, DataSourceFailure, ValidationFailure
from card_scanner.models.business_card import BusinessCard

logger = logging.getLogger(__name__)

_CARDS = TypeAdapter(list[BusinessCard])


def _revalidated(card: BusinessCard) -> BusinessCard:
    """Run full validation again; ``copy_with`` edits skip it."""
    try:
        return BusinessCard.model_validate(card.model_dump())
    except ValidationError as e:
        raise ValidationFailure(
            f"Invalid card {card.id}", field="card", component="storage", original_error=e
        ) from e


class CardStore(ABC):
    """Abstract store of BusinessCard records."""

    @abstractmethod
    def save_card(self, card: BusinessCard) -> BusinessCard:
        """Insert or replace a card by id."""
        ...

    @abstractmethod
    def get_card_by_id(self, card_id: str) -> BusinessCard:
        """
        Raises:
            DataSourceFailure: If no card has ``card_id``.
        """
        ...

    @abstractmethod
    def get_cards(self, limit: int | None = None) -> list[BusinessCard]:
        """All cards, newest first."""
        ...

    @abstractmethod
    def search_cards(self, query: str) -> list[BusinessCard]: ...

    @abstractmethod
    def update_card(self, card: BusinessCard) -> BusinessCard:
        """
        Replace an existing card and stamp ``updated_at``.

        Raises:
            DataSourceFailure: If the card does not exist.
        """
        ...

    @abstractmethod
    def delete_card(self, card_id: str) -> None:
        """
        Raises:
            DataSourceFailure: If the card does not exist.
        """
        ...


class JsonCardStore(CardStore):
    """Stores all cards in a single JSON document.

    Every operation reloads the file, so several processes can share it as
    long as they do not write at the same time. Cards are validated again
    before a write, so an invalid card raises ValidationFailure and leaves
    the file untouched.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, BusinessCard]:
        if not self._path.exists():
            return {}
        try:
            cards = _CARDS.validate_json(self._path.read_bytes())
        except OSError as e:
            raise DataSourceFailure(
                f"Cannot read card store {self._path}", component="storage", original_error=e
            ) from e
        except (ValidationError, CardScannerError) as e:
            raise DataSourceFailure(
                f"Corrupt card store {self._path}",
                component="storage",
                original_error=e,
            ) from e
        return {card.id: card for card in cards}

    def _write(self, cards: dict[str, BusinessCard]) -> None:
        data = _CARDS.dump_json(list(cards.values()), indent=2)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(self._path)
        except OSError as e:
            raise DataSourceFailure(
                f"Cannot write card store {self._path}", component="storage", original_error=e
            ) from e

    def save_card(self, card: BusinessCard) -> BusinessCard:
        card = _revalidated(card)
        with self._lock:
            cards = self._load()
            cards[card.id] = card
            self._write(cards)
        logger.debug("Saved card %s", card.id)
        return card

    def get_card_by_id(self, card_id: str) -> BusinessCard:
        card = self._load().get(card_id)
        if card is None:
            raise DataSourceFailure(
                f"Card not found: {card_id}",
                user_message="Card not found",
                component="storage",
            )
        return card

    def get_cards(self, limit: int | None = None) -> list[BusinessCard]:
        cards = sorted(self._load().values(), key=lambda c: c.created_at, reverse=True)
        return cards if limit is None else cards[:limit]

    def search_cards(self, query: str) -> list[BusinessCard]:
        """Cards whose name, company, job title, email or tags contain ``query``."""
        needle = query.strip().lower()
        if not needle:
            return self.get_cards()

        def matches(card: BusinessCard) -> bool:
            haystack = [card.name, card.company, card.job_title, card.email, *card.tags]
            return any(needle in value.lower() for value in haystack if value)

        return [card for card in self.get_cards() if matches(card)]

    def update_card(self, card: BusinessCard) -> BusinessCard:
        with self._lock:
            cards = self._load()
            if card.id not in cards:
                raise DataSourceFailure(
                    f"Card not found: {card.id}",
                    user_message="Card not found",
                    component="storage",
                )
            updated = _revalidated(card.copy_with(updated_at=datetime.now()))
            cards[card.id] = updated
            self._write(cards)
        return updated

    def delete_card(self, card_id: str) -> None:
        with self._lock:
            cards = self._load()
            if cards.pop(card_id, None) is None:
                raise DataSourceFailure(
                    f"Card not found: {card_id}",
                    user_message="Card not found",
                    component="storage",
                )
            self._write(cards)
        logger.debug("Deleted card %s", card_id)
