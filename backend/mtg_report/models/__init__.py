"""
SQLAlchemy models for the MTG Report collection.
"""
from mtg_report.models.card import Card
from mtg_report.models.price_snapshot import PriceSnapshot

__all__ = [
    "Card",
    "PriceSnapshot",
]
