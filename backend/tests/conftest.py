"""
Pytest configuration and fixtures.

Provides fixtures for:
- File-backed SQLite database with the collection schema
- Factories for in-memory fakes of the collection store, price source
  and exchange source
"""
from decimal import Decimal
from typing import AsyncGenerator, Sequence

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from mtg_report.core.rate_limit import IntervalRateLimiter
from mtg_report.db.base import Base
from mtg_report.db.session import create_session_maker
from mtg_report.services.pricing.base import (
    CardRecord,
    ExchangeRateError,
    PriceSnapshotData,
    PriceSourceError,
)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with a fresh schema."""
    # A file, not :memory:, so concurrent sessions get their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.sqlite'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_maker(test_engine)


# -----------------------------------------------------------------------------
# Pipeline fakes
# -----------------------------------------------------------------------------

def build_card(card_id: int, *, last_price: str = "0", foil: bool = False, **overrides) -> CardRecord:
    """Build a CardRecord with sensible defaults."""
    fields = {
        "id": card_id,
        "name": f"Card {card_id}",
        "set_code": "neo",
        "collector_number": str(card_id),
        "foil": foil,
        "last_price": Decimal(last_price),
    }
    fields.update(overrides)
    return CardRecord(**fields)


class FakeCollectionStore:
    """
    Collection store serving pre-built pages.

    ``pages`` is consumed in order regardless of offset; once exhausted every
    further read returns an empty page. Entries that are exceptions are raised.
    """

    def __init__(self, pages: Sequence = (), persist_errors: Sequence = ()):
        self.pages = list(pages)
        self.persist_errors = list(persist_errors)
        self.fetch_calls: list[tuple[int, int]] = []
        self.persisted: list[list[PriceSnapshotData]] = []
        self.persist_calls = 0

    async def fetch_cards_page(self, offset: int, limit: int) -> list[CardRecord]:
        self.fetch_calls.append((offset, limit))
        index = len(self.fetch_calls) - 1
        if index >= len(self.pages):
            return []
        page = self.pages[index]
        if isinstance(page, Exception):
            raise page
        return list(page)

    async def persist_snapshots(self, snapshots: Sequence[PriceSnapshotData]) -> None:
        self.persist_calls += 1
        if self.persist_errors:
            error = self.persist_errors.pop(0)
            if error is not None:
                raise error
        self.persisted.append(list(snapshots))


class FakePriceSource:
    """
    Price source answering from a dict keyed by card id.

    Values are prices (Decimal or str) or exceptions to raise. Cards
    missing from the dict are reported as not found.
    """

    def __init__(self, prices: dict | None = None):
        self.prices = prices or {}
        self.calls: list[int] = []

    async def fetch_price(self, card: CardRecord) -> Decimal:
        self.calls.append(card.id)
        value = self.prices.get(card.id)
        if value is None:
            raise PriceSourceError.not_found(f"/cards/{card.set_code}/{card.collector_number}")
        if isinstance(value, Exception):
            raise value
        return Decimal(value)


class FakeExchangeSource:
    """Exchange source returning a fixed rate, or raising when given an exception."""

    def __init__(self, rate="5.00"):
        self.rate = rate
        self.calls = 0

    async def fetch_rate(self) -> Decimal:
        self.calls += 1
        if isinstance(self.rate, Exception):
            raise self.rate
        return Decimal(self.rate)


@pytest.fixture
def fast_rate_limiter() -> IntervalRateLimiter:
    """Rate limiter that does not slow tests down."""
    return IntervalRateLimiter(max_per_second=10_000)


@pytest.fixture
def failing_exchange() -> FakeExchangeSource:
    return FakeExchangeSource(ExchangeRateError("bad_status", "exchange service is down", status_code=503))


@pytest.fixture
def make_card():
    """Factory for CardRecord values."""
    return build_card


@pytest.fixture
def make_store():
    """Factory for FakeCollectionStore instances."""
    return FakeCollectionStore


@pytest.fixture
def make_prices():
    """Factory for FakePriceSource instances."""
    return FakePriceSource


@pytest.fixture
def make_exchange():
    """Factory for FakeExchangeSource instances."""
    return FakeExchangeSource
