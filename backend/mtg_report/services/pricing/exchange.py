"""
Exchange rate client.

Reads a single conversion rate from an exchangerate-api style endpoint:

    {"result": "success", "conversion_rates": {"USD": 1, "BRL": 5.25, ...}}
"""
from decimal import Decimal

import httpx
import structlog

from mtg_report.core.config import settings
from mtg_report.services.pricing.base import ExchangeRateError

logger = structlog.get_logger()


class ExchangeRateClient:
    """Fetches the current source-to-target currency rate. No retries."""

    def __init__(
        self,
        url: str | None = None,
        target_currency: str | None = None,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url or settings.exchange_rate_url
        if not self.url:
            raise ValueError("exchange_rate_url is not configured (set EXCHANGE_RATE_URL)")
        self.target_currency = (target_currency or settings.exchange_target_currency).upper()
        self.timeout_seconds = timeout_seconds or settings.exchange_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                headers={"User-Agent": settings.http_user_agent},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "ExchangeRateClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def fetch_rate(self) -> Decimal:
        """
        Fetch the conversion rate for the target currency.

        Raises:
            ExchangeRateError: On transport errors, non-200 responses,
                undecodable bodies, or a missing/non-positive rate.
        """
        client = await self._get_client()

        try:
            response = await client.get(self.url)
        except httpx.HTTPError as e:
            raise ExchangeRateError(
                "request_failed", f"exchange rate request failed: {e!r}"
            ) from e

        if response.status_code != 200:
            raise ExchangeRateError(
                "bad_status",
                f"exchange rate request returned http status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json(parse_float=Decimal, parse_int=Decimal)
        except ValueError as e:
            raise ExchangeRateError("invalid_body", "exchange rate body is not valid JSON") from e

        rates = data.get("conversion_rates") if isinstance(data, dict) else None
        rate = rates.get(self.target_currency) if isinstance(rates, dict) else None

        if not isinstance(rate, Decimal) or not rate.is_finite() or rate <= 0:
            raise ExchangeRateError(
                "missing_rate",
                f"exchange rate response has no usable {self.target_currency} rate",
            )

        logger.debug("Exchange rate fetched", currency=self.target_currency, rate=str(rate))
        return rate
