"""
Card model representing a card in the tracked collection.
"""
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mtg_report.db.base import Base

if TYPE_CHECKING:
    from mtg_report.models.price_snapshot import PriceSnapshot


class Card(Base):
    """
    A Magic: The Gathering card owned by the collection.

    A printing is identified by set code, collector number and foil flag;
    the foil flag selects which price variant is looked up.
    """

    __tablename__ = "cards"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    set_code: Mapped[str] = mapped_column(String(10), nullable=False)
    collector_number: Mapped[str] = mapped_column(String(20), nullable=False)
    foil: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    price_snapshots: Mapped[list["PriceSnapshot"]] = relationship(
        "PriceSnapshot",
        back_populates="card",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_cards_set_collector", "set_code", "collector_number"),
    )

    def __repr__(self) -> str:
        foil = " foil" if self.foil else ""
        return f"<Card {self.name} ({self.set_code} #{self.collector_number}{foil})>"
