"""
Collection repository for the price reconciliation job.

Reads the collection page by page together with each card's latest price,
and appends new price snapshots in one transaction per batch.
"""
from decimal import Decimal
from typing import Iterable, Sequence

import structlog
from sqlalchemy import func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mtg_report.models import Card, PriceSnapshot
from mtg_report.services.pricing.base import (
    CardRecord,
    CollectionStoreError,
    PriceSnapshotData,
)

logger = structlog.get_logger()


def _latest_snapshots():
    """Subquery with the most recent snapshot per card (rank 1)."""
    ranked = select(
        PriceSnapshot.card_id.label("card_id"),
        PriceSnapshot.last_price.label("last_price"),
        func.row_number()
        .over(
            partition_by=PriceSnapshot.card_id,
            order_by=(PriceSnapshot.time.desc(), PriceSnapshot.id.desc()),
        )
        .label("rank"),
    ).subquery("ranked_snapshots")

    return (
        select(ranked.c.card_id, ranked.c.last_price)
        .where(ranked.c.rank == 1)
        .subquery("latest_snapshots")
    )


class CollectionRepository:
    """
    Collection store backed by the ``cards`` and ``card_price_snapshots`` tables.

    Each call opens its own short-lived session, so no connection is held
    while prices are being fetched from external APIs.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def fetch_cards_page(self, offset: int, limit: int) -> list[CardRecord]:
        """
        Get a page of cards with their latest price.

        Cards are ordered by id so consecutive pages never overlap. Cards
        that were never priced come back with a last price of zero.

        Raises:
            CollectionStoreError: If the query fails.
        """
        latest = _latest_snapshots()
        query = (
            select(
                Card.id,
                Card.name,
                Card.set_code,
                Card.collector_number,
                Card.foil,
                latest.c.last_price,
            )
            .outerjoin(latest, latest.c.card_id == Card.id)
            .order_by(Card.id)
            .offset(offset)
            .limit(limit)
        )

        try:
            async with self.session_maker() as db:
                result = await db.execute(query)
                rows = result.all()
        except SQLAlchemyError as e:
            raise CollectionStoreError(f"failed to read cards page at offset {offset}: {e}") from e

        return [
            CardRecord(
                id=row.id,
                name=row.name,
                set_code=row.set_code,
                collector_number=row.collector_number,
                foil=bool(row.foil),
                last_price=Decimal(row.last_price) if row.last_price is not None else Decimal("0"),
            )
            for row in rows
        ]

    async def persist_snapshots(self, snapshots: Sequence[PriceSnapshotData]) -> None:
        """
        Append all snapshots in a single transaction.

        Either every snapshot is written or none is.

        Raises:
            CollectionStoreError: If the write fails; the transaction is rolled back.
        """
        if not snapshots:
            return

        rows = [
            {
                "card_id": s.card_id,
                "old_price": s.old_price,
                "last_price": s.last_price,
                "price_change": s.price_change,
                "time": s.time,
            }
            for s in snapshots
        ]

        async with self.session_maker() as db:
            try:
                await db.execute(insert(PriceSnapshot), rows)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.warning(
                    "Snapshot batch write failed",
                    batch_size=len(rows),
                    error=str(e),
                )
                raise CollectionStoreError(f"failed to persist {len(rows)} snapshots: {e}") from e

    async def add_cards(self, cards: Iterable[dict]) -> list[int]:
        """
        Insert cards into the collection and return their ids in input order.

        Each dict takes ``name``, ``set_code``, ``collector_number`` and
        optionally ``foil``.
        """
        async with self.session_maker() as db:
            models = [Card(**card) for card in cards]
            db.add_all(models)
            await db.commit()
            return [model.id for model in models]

    async def latest_snapshot(self, card_id: int) -> PriceSnapshot | None:
        """Get the most recent snapshot for a card, if any."""
        query = (
            select(PriceSnapshot)
            .where(PriceSnapshot.card_id == card_id)
            .order_by(PriceSnapshot.time.desc(), PriceSnapshot.id.desc())
            .limit(1)
        )
        async with self.session_maker() as db:
            result = await db.execute(query)
            return result.scalar_one_or_none()
