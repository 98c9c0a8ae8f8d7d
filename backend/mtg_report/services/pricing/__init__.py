"""
Pricing clients used by the reconciliation job.

Provides the card price source (Scryfall), the exchange rate client and the
shared record, error and interface types.
"""
from mtg_report.services.pricing.base import (
    CardRecord,
    CollectionStore,
    CollectionStoreError,
    ExchangeRateError,
    ExchangeSource,
    PriceErrorKind,
    PriceSnapshotData,
    PriceSource,
    PriceSourceError,
)
from mtg_report.services.pricing.exchange import ExchangeRateClient
from mtg_report.services.pricing.scryfall import ScryfallPriceSource

__all__ = [
    "CardRecord",
    "CollectionStore",
    "CollectionStoreError",
    "ExchangeRateClient",
    "ExchangeRateError",
    "ExchangeSource",
    "PriceErrorKind",
    "PriceSnapshotData",
    "PriceSource",
    "PriceSourceError",
    "ScryfallPriceSource",
]
