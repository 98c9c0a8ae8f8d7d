"""
Tests for the Scryfall price source.

HTTP is served by httpx.MockTransport, so no request leaves the process.
"""
from decimal import Decimal

import httpx
import pytest

from mtg_report.services.pricing import PriceErrorKind, PriceSourceError, ScryfallPriceSource


def scryfall_card(usd="10.50", usd_foil="25.00"):
    """Minimal Scryfall card object."""
    return {
        "object": "card",
        "name": "The Wandering Emperor",
        "set": "neo",
        "collector_number": "293",
        "prices": {"usd": usd, "usd_foil": usd_foil, "eur": "9.10", "tix": None},
    }


def make_source(handler) -> ScryfallPriceSource:
    return ScryfallPriceSource(
        "https://api.scryfall.test",
        timeout_seconds=5,
        user_agent="MTGReportTests/1.0",
        transport=httpx.MockTransport(handler),
    )


class TestLookup:
    """Request shape."""

    def test_lookup_path_lowercases_set_code(self, make_card):
        card = make_card(1, set_code="NEO", collector_number="293")

        assert ScryfallPriceSource.lookup_path(card) == "/cards/neo/293"

    @pytest.mark.asyncio
    async def test_requests_card_by_set_and_collector_number(self, make_card):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=scryfall_card())

        async with make_source(handler) as source:
            await source.fetch_price(make_card(1, set_code="NEO", collector_number="293"))

        assert len(seen) == 1
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/cards/neo/293"
        assert seen[0].headers["user-agent"] == "MTGReportTests/1.0"
        assert seen[0].headers["accept"] == "application/json"


class TestPrices:
    """Variant selection and price parsing."""

    @pytest.mark.asyncio
    async def test_non_foil_uses_usd(self, make_card):
        source = make_source(lambda request: httpx.Response(200, json=scryfall_card()))

        price = await source.fetch_price(make_card(1, foil=False))

        assert price == Decimal("10.50")
        await source.aclose()

    @pytest.mark.asyncio
    async def test_foil_uses_usd_foil(self, make_card):
        source = make_source(lambda request: httpx.Response(200, json=scryfall_card()))

        price = await source.fetch_price(make_card(1, foil=True))

        assert price == Decimal("25.00")
        await source.aclose()

    @pytest.mark.asyncio
    async def test_null_variant_price_is_unavailable(self, make_card):
        source = make_source(
            lambda request: httpx.Response(200, json=scryfall_card(usd_foil=None))
        )

        with pytest.raises(PriceSourceError) as exc_info:
            await source.fetch_price(make_card(1, foil=True))

        assert exc_info.value.kind is PriceErrorKind.PRICE_UNAVAILABLE
        await source.aclose()

    @pytest.mark.asyncio
    async def test_missing_prices_object_is_unavailable(self, make_card):
        body = scryfall_card()
        del body["prices"]
        source = make_source(lambda request: httpx.Response(200, json=body))

        with pytest.raises(PriceSourceError) as exc_info:
            await source.fetch_price(make_card(1))

        assert exc_info.value.kind is PriceErrorKind.PRICE_UNAVAILABLE
        await source.aclose()

    @pytest.mark.asyncio
    async def test_unparseable_price_is_request_failure(self, make_card):
        source = make_source(
            lambda request: httpx.Response(200, json=scryfall_card(usd="ten dollars"))
        )

        with pytest.raises(PriceSourceError) as exc_info:
            await source.fetch_price(make_card(1))

        assert exc_info.value.kind is PriceErrorKind.REQUEST_FAILED
        await source.aclose()


class TestFailures:
    """Status codes, transport errors and bad bodies."""

    @pytest.mark.asyncio
    async def test_404_is_not_found(self, make_card):
        source = make_source(
            lambda request: httpx.Response(404, json={"object": "error", "code": "not_found"})
        )

        with pytest.raises(PriceSourceError) as exc_info:
            await source.fetch_price(make_card(1))

        assert exc_info.value.kind is PriceErrorKind.NOT_FOUND
        assert exc_info.value.status_code == 404
        await source.aclose()

    @pytest.mark.asyncio
    async def test_server_error_is_request_failure(self, make_card):
        source = make_source(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(PriceSourceError) as exc_info:
            await source.fetch_price(make_card(1))

        assert exc_info.value.kind is PriceErrorKind.REQUEST_FAILED
        assert exc_info.value.status_code == 503
        await source.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_is_request_failure(self, make_card):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        source = make_source(handler)

        with pytest.raises(PriceSourceError) as exc_info:
            await source.fetch_price(make_card(1))

        assert exc_info.value.kind is PriceErrorKind.REQUEST_FAILED
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        await source.aclose()

    @pytest.mark.asyncio
    async def test_invalid_json_is_request_failure(self, make_card):
        source = make_source(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(PriceSourceError) as exc_info:
            await source.fetch_price(make_card(1))

        assert exc_info.value.kind is PriceErrorKind.REQUEST_FAILED
        await source.aclose()


class TestClientLifecycle:
    """Lazy client creation and closing."""

    @pytest.mark.asyncio
    async def test_client_is_reused_until_closed(self):
        source = make_source(lambda request: httpx.Response(200, json=scryfall_card()))

        first = await source._get_client()
        second = await source._get_client()
        assert first is second

        await source.aclose()
        assert first.is_closed

        third = await source._get_client()
        assert third is not first
        await source.aclose()
