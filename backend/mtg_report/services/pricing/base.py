"""
Base types for price reconciliation.

Defines the records passed between the collection store and the pricing
clients, the errors each collaborator raises, and the interfaces the
reconciliation pipeline depends on.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Protocol, Sequence


@dataclass(frozen=True)
class CardRecord:
    """A card from the collection that needs a price refresh."""
    id: int
    name: str
    set_code: str
    collector_number: str
    foil: bool = False
    # Price of the most recent snapshot; zero for never-priced cards
    last_price: Decimal = Decimal("0")

    def log_context(self) -> dict:
        """Identity fields attached to every per-card log line."""
        return {
            "card_id": self.id,
            "card_name": self.name,
            "set_code": self.set_code,
            "collector_number": self.collector_number,
            "foil": self.foil,
        }


@dataclass(frozen=True)
class PriceSnapshotData:
    """
    One priced observation of a card, ready to be written.

    Snapshots are append-only: ``old_price`` carries the card's previous
    price forward and ``price_change`` is always ``last_price - old_price``.
    """
    card_id: int
    old_price: Decimal
    last_price: Decimal
    price_change: Decimal
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_observation(
        cls,
        card: CardRecord,
        fetched_price: Decimal,
        exchange_rate: Decimal,
        *,
        time: datetime | None = None,
    ) -> "PriceSnapshotData":
        """Convert a freshly fetched source-currency price into a snapshot."""
        last_price = fetched_price * exchange_rate
        return cls(
            card_id=card.id,
            old_price=card.last_price,
            last_price=last_price,
            price_change=last_price - card.last_price,
            time=time or datetime.now(timezone.utc),
        )


class PriceErrorKind(str, Enum):
    """Why a price lookup produced no price."""
    NOT_FOUND = "not_found"                  # Catalog has no such card
    PRICE_UNAVAILABLE = "price_unavailable"  # Card exists, variant has no price
    REQUEST_FAILED = "request_failed"        # Transport, status or decoding failure


class PriceSourceError(Exception):
    """
    Raised by a price source when no price could be produced for a card.

    Callers branch on ``kind`` rather than on the exception type.
    """

    def __init__(
        self,
        kind: PriceErrorKind,
        message: str,
        *,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @classmethod
    def not_found(cls, lookup: str) -> "PriceSourceError":
        return cls(PriceErrorKind.NOT_FOUND, f"card not found: {lookup}", status_code=404)

    @classmethod
    def price_unavailable(cls, lookup: str, foil: bool) -> "PriceSourceError":
        variant = "foil" if foil else "non-foil"
        return cls(
            PriceErrorKind.PRICE_UNAVAILABLE,
            f"no {variant} price for {lookup} - card could be foil or non-foil, check register",
        )

    @classmethod
    def request_failed(cls, message: str, *, status_code: int | None = None) -> "PriceSourceError":
        return cls(PriceErrorKind.REQUEST_FAILED, message, status_code=status_code)


class ExchangeRateError(Exception):
    """Raised when the current exchange rate cannot be fetched."""

    def __init__(self, reason: str, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class CollectionStoreError(Exception):
    """Raised when the collection store fails to read or write."""
    pass


class PriceSource(Protocol):
    """Looks up the current market price of a single card."""

    async def fetch_price(self, card: CardRecord) -> Decimal:
        """
        Return the card's price in the source currency.

        Raises:
            PriceSourceError: If no price could be produced.
        """
        ...


class ExchangeSource(Protocol):
    """Provides the conversion rate from source to target currency."""

    async def fetch_rate(self) -> Decimal:
        """
        Return target-currency units per source-currency unit.

        Raises:
            ExchangeRateError: If the rate could not be fetched.
        """
        ...


class CollectionStore(Protocol):
    """Paginated reads of the collection and batched snapshot writes."""

    async def fetch_cards_page(self, offset: int, limit: int) -> list[CardRecord]:
        """
        Return up to ``limit`` cards starting at ``offset``.

        Ordering is stable across calls so consecutive offsets neither skip
        nor repeat cards. An empty list means there is no more data.
        """
        ...

    async def persist_snapshots(self, snapshots: Sequence[PriceSnapshotData]) -> None:
        """Write all snapshots, or none of them."""
        ...
