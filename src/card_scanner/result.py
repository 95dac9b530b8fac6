"""Tagged result type returned by the model factories."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from card_scanner.errors import CardScannerError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful construction."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    """Failed construction carrying the typed failure."""

    failure: CardScannerError

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.failure


Result = Ok[T] | Err
