"""
Price reconciliation pipeline.

Pages through the card collection, looks up each card's current market
price at a rate-limited pace, converts it to the target currency and
appends a price snapshot per successfully priced card.

Two stages run concurrently:

1. The producer reads a page of cards, prices every card in it and hands
   the resulting snapshots over as one batch.
2. The persister writes each batch and counts the cards updated.

They are joined by a single-slot queue. The producer only hands over a new
batch once the previous one has been fully persisted, so exactly one batch
is in flight and batches are written in page order.

The run is best effort: per-card and per-batch failures are logged and
skipped, and ``run`` returns the number of cards updated instead of raising.
"""
import asyncio
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog

from mtg_report.core.config import Settings
from mtg_report.core.deadline import Deadline, DeadlineExceeded
from mtg_report.core.rate_limit import IntervalRateLimiter
from mtg_report.services.pricing.base import (
    CardRecord,
    CollectionStore,
    ExchangeSource,
    PriceErrorKind,
    PriceSnapshotData,
    PriceSource,
    PriceSourceError,
)

# Log message per skipped-card reason
_SKIP_MESSAGES = {
    PriceErrorKind.NOT_FOUND: "Card not found at price source, skipping",
    PriceErrorKind.PRICE_UNAVAILABLE: "Card has no price for its variant, skipping",
    PriceErrorKind.REQUEST_FAILED: "Card price request failed, skipping",
}


@dataclass(frozen=True)
class PipelineConfig:
    """Tunables for one reconciliation run."""
    # Page size when reading cards and batch size when writing snapshots
    commit_size: int = 1000
    # Used when the exchange rate service is unavailable
    default_exchange_rate: Decimal = Decimal("4.80")
    max_requests_per_second: float = 10.0

    def __post_init__(self) -> None:
        if self.commit_size < 1:
            raise ValueError("commit_size must be at least 1")
        if self.default_exchange_rate <= 0:
            raise ValueError("default_exchange_rate must be greater than zero")
        if self.max_requests_per_second <= 0:
            raise ValueError("max_requests_per_second must be greater than zero")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            commit_size=settings.reconcile_commit_size,
            default_exchange_rate=settings.reconcile_default_exchange_rate,
            max_requests_per_second=settings.reconcile_max_requests_per_second,
        )


class StopReason(str, Enum):
    """Why a run stopped reading pages."""
    EXHAUSTED = "exhausted"
    DEADLINE_PAGE_FETCH = "deadline_page_fetch"
    DEADLINE_PRICE_FETCH = "deadline_price_fetch"
    DEADLINE_PERSIST = "deadline_persist"
    STORE_READ_FAILED = "store_read_failed"
    PRODUCER_FAILED = "producer_failed"


@dataclass
class ReconciliationStats:
    """Counters for a single run, logged when the run finishes."""
    exchange_rate: Decimal | None = None
    exchange_rate_fallback: bool = False
    pages_read: int = 0
    cards_seen: int = 0
    cards_priced: int = 0
    cards_skipped: Counter = field(default_factory=Counter)
    batches_persisted: int = 0
    batches_failed: int = 0
    batches_empty: int = 0
    cards_updated: int = 0
    stop_reason: StopReason | None = None

    def stop(self, reason: StopReason) -> None:
        """Record why the run stopped; the first reason wins."""
        if self.stop_reason is None:
            self.stop_reason = reason

    def as_dict(self) -> dict[str, Any]:
        return {
            "exchange_rate": str(self.exchange_rate) if self.exchange_rate is not None else None,
            "exchange_rate_fallback": self.exchange_rate_fallback,
            "pages_read": self.pages_read,
            "cards_seen": self.cards_seen,
            "cards_priced": self.cards_priced,
            "cards_skipped": {kind.value: count for kind, count in self.cards_skipped.items()},
            "batches_persisted": self.batches_persisted,
            "batches_failed": self.batches_failed,
            "batches_empty": self.batches_empty,
            "cards_updated": self.cards_updated,
            "stop_reason": self.stop_reason.value if self.stop_reason else None,
        }


class ReconciliationPipeline:
    """
    Reconciles stored card prices against the price source.

    Usage:
        pipeline = ReconciliationPipeline(
            store=CollectionRepository(session_maker),
            price_source=ScryfallPriceSource(),
            exchange_source=ExchangeRateClient(),
            config=PipelineConfig.from_settings(settings),
        )
        cards_updated = await pipeline.run(Deadline.after(600))
    """

    def __init__(
        self,
        store: CollectionStore,
        price_source: PriceSource,
        exchange_source: ExchangeSource,
        config: PipelineConfig | None = None,
        *,
        rate_limiter: IntervalRateLimiter | None = None,
        logger: Any = None,
    ):
        self.store = store
        self.price_source = price_source
        self.exchange_source = exchange_source
        self.config = config or PipelineConfig()
        self.rate_limiter = rate_limiter or IntervalRateLimiter(self.config.max_requests_per_second)
        self.logger = logger or structlog.get_logger(__name__)
        self.last_stats: ReconciliationStats | None = None

    async def run(self, deadline: Deadline | None = None) -> int:
        """
        Execute one full reconciliation run.

        Args:
            deadline: Bound for the whole run. Every page read, price lookup
                and batch write observes it. Defaults to no deadline.

        Returns:
            Number of cards whose new price snapshot was persisted. Partial
            or total failure shows up as a low count and in the logs; this
            method does not raise for them.
        """
        deadline = deadline or Deadline.never()
        stats = ReconciliationStats()
        self.last_stats = stats

        self.logger.info("Starting price reconciliation", commit_size=self.config.commit_size)

        exchange_rate = await self._resolve_exchange_rate(deadline, stats)

        handoff: asyncio.Queue[list[PriceSnapshotData] | None] = asyncio.Queue(maxsize=1)
        producer = asyncio.create_task(
            self._produce(handoff, exchange_rate, deadline, stats),
            name="reconciliation-producer",
        )
        try:
            await self._persist_batches(handoff, deadline, stats)
        finally:
            # The persister may stop early; nothing is left to consume batches
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)

        self.logger.info("Price reconciliation finished", **stats.as_dict())
        return stats.cards_updated

    async def _resolve_exchange_rate(self, deadline: Deadline, stats: ReconciliationStats) -> Decimal:
        """Fetch the run's exchange rate once, falling back to the default."""
        try:
            rate = await deadline.call(self.exchange_source.fetch_rate)
        except Exception as e:
            # A stale default rate beats aborting the whole run
            rate = self.config.default_exchange_rate
            stats.exchange_rate_fallback = True
            self.logger.error(
                "Failed to fetch exchange rate, using default",
                error=str(e),
                error_type=type(e).__name__,
                default_rate=str(rate),
            )
        stats.exchange_rate = rate
        return rate

    # ----------------------------- producer ----------------------------- #

    async def _produce(
        self,
        handoff: asyncio.Queue,
        exchange_rate: Decimal,
        deadline: Deadline,
        stats: ReconciliationStats,
    ) -> None:
        """Producer stage. Always closes the stream unless cancelled."""
        try:
            await self._produce_batches(handoff, exchange_rate, deadline, stats)
        except Exception as e:
            stats.stop(StopReason.PRODUCER_FAILED)
            self.logger.error("Reconciliation producer failed", error=str(e), exc_info=True)
        await handoff.put(None)

    async def _produce_batches(
        self,
        handoff: asyncio.Queue,
        exchange_rate: Decimal,
        deadline: Deadline,
        stats: ReconciliationStats,
    ) -> None:
        offset = 0
        commit_size = self.config.commit_size

        while True:
            try:
                cards = await deadline.call(self.store.fetch_cards_page, offset, commit_size)
            except DeadlineExceeded as e:
                stats.stop(StopReason.DEADLINE_PAGE_FETCH)
                self.logger.error(
                    "Failed to get cards for update due to deadline",
                    offset=offset,
                    error=str(e),
                )
                return
            except Exception as e:
                # A read failure is not the end of the data; stop loudly
                stats.stop(StopReason.STORE_READ_FAILED)
                self.logger.error(
                    "Failed to get cards for update, stopping run",
                    offset=offset,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return

            if not cards:
                stats.stop(StopReason.EXHAUSTED)
                return

            stats.pages_read += 1
            stats.cards_seen += len(cards)

            snapshots, deadline_hit = await self._price_cards(cards, exchange_rate, deadline, stats)

            # Wait until the previous batch is fully persisted
            await handoff.join()
            await handoff.put(snapshots)

            if deadline_hit:
                stats.stop(StopReason.DEADLINE_PRICE_FETCH)
                return

            offset += commit_size

    async def _price_cards(
        self,
        cards: list[CardRecord],
        exchange_rate: Decimal,
        deadline: Deadline,
        stats: ReconciliationStats,
    ) -> tuple[list[PriceSnapshotData], bool]:
        """
        Price the cards of one page in order.

        Returns:
            The snapshots built so far and whether the deadline cut the
            page short.
        """
        snapshots: list[PriceSnapshotData] = []

        for card in cards:
            try:
                await deadline.call(self.rate_limiter.acquire)
                price = await deadline.call(self.price_source.fetch_price, card)
            except DeadlineExceeded as e:
                self.logger.error(
                    "Failed to get card price due to deadline",
                    error=str(e),
                    **card.log_context(),
                )
                return snapshots, True
            except PriceSourceError as e:
                self._log_skipped(card, e.kind, e)
                stats.cards_skipped[e.kind] += 1
                continue
            except Exception as e:
                self._log_skipped(card, PriceErrorKind.REQUEST_FAILED, e)
                stats.cards_skipped[PriceErrorKind.REQUEST_FAILED] += 1
                continue

            snapshots.append(PriceSnapshotData.from_observation(card, price, exchange_rate))
            stats.cards_priced += 1

        return snapshots, False

    def _log_skipped(self, card: CardRecord, kind: PriceErrorKind, error: Exception) -> None:
        log = self.logger.error if kind is PriceErrorKind.REQUEST_FAILED else self.logger.warning
        log(
            _SKIP_MESSAGES[kind],
            error_kind=kind.value,
            error=str(error),
            **card.log_context(),
        )

    # ----------------------------- persister ---------------------------- #

    async def _persist_batches(
        self,
        handoff: asyncio.Queue,
        deadline: Deadline,
        stats: ReconciliationStats,
    ) -> None:
        """Persister stage; the only writer of ``stats.cards_updated``."""
        while True:
            batch = await handoff.get()
            try:
                if batch is None:
                    return
                if not await self._persist_batch(batch, deadline, stats):
                    return
            finally:
                handoff.task_done()

    async def _persist_batch(
        self,
        batch: list[PriceSnapshotData],
        deadline: Deadline,
        stats: ReconciliationStats,
    ) -> bool:
        """Write one batch. Returns False when the run must stop."""
        if not batch:
            stats.batches_empty += 1
            self.logger.info("No card snapshots to persist")
            return True

        self.logger.info("Persisting card snapshots", batch_size=len(batch))
        try:
            await deadline.call(self.store.persist_snapshots, batch)
        except DeadlineExceeded as e:
            stats.stop(StopReason.DEADLINE_PERSIST)
            stats.batches_failed += 1
            self.logger.error(
                "Failed to persist card snapshots due to deadline",
                batch_size=len(batch),
                error=str(e),
            )
            return False
        except Exception as e:
            stats.batches_failed += 1
            self.logger.warning(
                "Failed to persist card snapshots, discarding batch",
                batch_size=len(batch),
                error=str(e),
                error_type=type(e).__name__,
            )
            return True

        stats.batches_persisted += 1
        stats.cards_updated += len(batch)
        self.logger.info("Card snapshots persisted", batch_size=len(batch))
        return True
