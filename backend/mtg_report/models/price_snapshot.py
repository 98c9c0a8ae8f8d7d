"""
PriceSnapshot model.

Snapshots are append-only. A card's current price is its most recent
snapshot; each snapshot carries the previous price forward so the price
history can be read without joining rows against each other.
"""
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mtg_report.db.base import Base

if TYPE_CHECKING:
    from mtg_report.models.card import Card


class PriceSnapshot(Base):
    """
    One priced observation of a card, in the target currency.

    Attributes:
        card_id: Foreign key to the card
        old_price: Price of the previous snapshot (0 if there was none)
        last_price: Newly observed price
        price_change: last_price - old_price
        time: When the price was observed
    """

    __tablename__ = "card_price_snapshots"

    card_id: Mapped[int] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
    )
    old_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    last_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_change: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    card: Mapped["Card"] = relationship("Card", back_populates="price_snapshots")

    __table_args__ = (
        Index("ix_card_price_snapshots_card_time", "card_id", "time"),
    )

    def __repr__(self) -> str:
        return f"<PriceSnapshot card={self.card_id} {self.old_price} -> {self.last_price} at {self.time}>"
