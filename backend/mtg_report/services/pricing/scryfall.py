"""
Scryfall price source.

Looks up a card by set code and collector number and returns the USD
market price for the requested foil or non-foil variant.
"""
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog

from mtg_report.core.config import settings
from mtg_report.services.pricing.base import CardRecord, PriceSourceError

logger = structlog.get_logger()


class ScryfallPriceSource:
    """
    Price source backed by the Scryfall card API.

    One GET per lookup, no retries and no caching. Pacing is the caller's
    job (see ``IntervalRateLimiter``).
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout_seconds: float | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.scryfall_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.scryfall_timeout_seconds
        self.user_agent = user_agent or settings.http_user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "ScryfallPriceSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @staticmethod
    def lookup_path(card: CardRecord) -> str:
        """Scryfall path for a card printing."""
        return f"/cards/{card.set_code.lower()}/{card.collector_number}"

    async def fetch_price(self, card: CardRecord) -> Decimal:
        """
        Fetch the USD price for a card's foil or non-foil variant.

        Raises:
            PriceSourceError: ``NOT_FOUND`` on 404, ``PRICE_UNAVAILABLE`` when
                Scryfall has the card but no price for the variant, and
                ``REQUEST_FAILED`` for everything else.
        """
        path = self.lookup_path(card)
        client = await self._get_client()

        try:
            response = await client.get(path)
        except httpx.HTTPError as e:
            raise PriceSourceError.request_failed(
                f"scryfall request failed for {path}: {e!r}"
            ) from e

        if response.status_code == 404:
            raise PriceSourceError.not_found(path)

        if response.status_code != 200:
            raise PriceSourceError.request_failed(
                f"scryfall returned http status {response.status_code} for {path}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PriceSourceError.request_failed(
                f"scryfall returned invalid JSON for {path}",
                status_code=response.status_code,
            ) from e

        return self._parse_price(data, card, path)

    def _parse_price(self, data: Any, card: CardRecord, path: str) -> Decimal:
        """Pick the variant's price out of a Scryfall card object."""
        prices = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(data, dict) or (prices is not None and not isinstance(prices, dict)):
            raise PriceSourceError.request_failed(
                f"scryfall returned malformed prices for {path}"
            )

        field = "usd_foil" if card.foil else "usd"
        raw = (prices or {}).get(field)
        if raw is None:
            raise PriceSourceError.price_unavailable(path, card.foil)

        try:
            price = Decimal(str(raw))
        except InvalidOperation as e:
            raise PriceSourceError.request_failed(
                f"scryfall returned unparseable {field} price {raw!r} for {path}"
            ) from e

        if not price.is_finite():
            raise PriceSourceError.request_failed(
                f"scryfall returned unparseable {field} price {raw!r} for {path}"
            )

        logger.debug("Scryfall price fetched", path=path, field=field, price=str(price))
        return price
