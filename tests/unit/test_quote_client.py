"""
tests/unit/test_quote_client.py - Quote API client tests (httpx.MockTransport).
"""

import httpx
import pytest

from core.constants import ErrorCode
from core.exceptions import (
    AssetNotTradableError,
    NoRouteError,
    QuoteError,
    QuoteTimeoutError,
    RateLimitError,
)
from dex.adapters.jupiter import JupiterQuoteClient, classify_error
from dex.adapters.simulated import SimulatedQuoteProvider
from tests.helpers import SRC, TOKEN_T

API_URL = "https://quote.example/v6"


def make_client(handler) -> JupiterQuoteClient:
    return JupiterQuoteClient(API_URL, timeout_seconds=1.0, transport=httpx.MockTransport(handler))


class TestQuoteSuccess:

    @pytest.mark.asyncio
    async def test_parses_amount_and_venue(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={
                "outAmount": "150000000",
                "routePlan": [{"swapInfo": {"label": "Orca"}}],
            })

        client = make_client(handler)
        result = await client.quote(SRC, TOKEN_T, 1_000_000_000, 50)
        await client.close()

        assert result.amount_out == 150_000_000
        assert result.venue == "Orca"
        assert seen["path"] == "/v6/quote"
        assert seen["params"] == {
            "inputMint": SRC,
            "outputMint": TOKEN_T,
            "amount": "1000000000",
            "slippageBps": "50",
        }
        assert client.stats.successful_requests == 1

    @pytest.mark.asyncio
    async def test_missing_route_plan_gives_empty_venue(self):
        client = make_client(lambda request: httpx.Response(200, json={"outAmount": "5"}))
        result = await client.quote(SRC, TOKEN_T, 10, 50)
        assert result.venue == ""

    @pytest.mark.asyncio
    async def test_client_reused_until_closed(self):
        client = make_client(lambda request: httpx.Response(200, json={"outAmount": "5"}))
        first = await client._get_client()
        await client.quote(SRC, TOKEN_T, 10, 50)
        assert await client._get_client() is first
        await client.close()
        assert client._client is None


class TestQuoteErrors:

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        client = make_client(lambda request: httpx.Response(429, text="Too Many Requests"))
        with pytest.raises(RateLimitError):
            await client.quote(SRC, TOKEN_T, 10, 50)
        assert client.stats.rate_limited == 1
        assert client.stats.failed_requests == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)
        with pytest.raises(QuoteTimeoutError):
            await client.quote(SRC, TOKEN_T, 10, 50)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler)
        with pytest.raises(QuoteError) as exc_info:
            await client.quote(SRC, TOKEN_T, 10, 50)
        assert not isinstance(exc_info.value, (NoRouteError, AssetNotTradableError))

    @pytest.mark.asyncio
    async def test_not_tradable_identifies_asset(self):
        client = make_client(lambda request: httpx.Response(400, json={
            "error": f"The token {TOKEN_T} is not tradable",
            "errorCode": "TOKEN_NOT_TRADABLE",
        }))
        with pytest.raises(AssetNotTradableError) as exc_info:
            await client.quote(SRC, TOKEN_T, 10, 50)
        assert exc_info.value.asset == TOKEN_T
        assert exc_info.value.code == ErrorCode.QUOTE_ASSET_NOT_TRADABLE

    @pytest.mark.asyncio
    async def test_no_route(self):
        client = make_client(lambda request: httpx.Response(400, json={
            "error": "Could not find any route",
            "errorCode": "COULD_NOT_FIND_ANY_ROUTE",
        }))
        with pytest.raises(NoRouteError):
            await client.quote(SRC, TOKEN_T, 10, 50)

    @pytest.mark.asyncio
    async def test_zero_output_is_no_route(self):
        client = make_client(lambda request: httpx.Response(200, json={"outAmount": "0"}))
        with pytest.raises(NoRouteError):
            await client.quote(SRC, TOKEN_T, 10, 50)

    @pytest.mark.asyncio
    async def test_missing_out_amount(self):
        client = make_client(lambda request: httpx.Response(200, json={"routePlan": []}))
        with pytest.raises(QuoteError):
            await client.quote(SRC, TOKEN_T, 10, 50)

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        client = make_client(lambda request: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(QuoteError) as exc_info:
            await client.quote(SRC, TOKEN_T, 10, 50)
        assert exc_info.value.details["status"] == 502


class TestClassifyError:

    def test_not_tradable_without_asset(self):
        error = classify_error(400, {"error": "token not tradable"}, SRC, TOKEN_T)
        assert isinstance(error, AssetNotTradableError)
        assert error.asset is None

    def test_unknown_error(self):
        error = classify_error(500, {"error": "internal"}, SRC, TOKEN_T)
        assert type(error) is QuoteError
        assert error.details["input"] == SRC


class TestSimulatedProvider:

    @pytest.mark.asyncio
    async def test_scales_by_decimals(self):
        provider = SimulatedQuoteProvider({(SRC, TOKEN_T): "150"}, decimals={TOKEN_T: 6})
        result = await provider.quote(SRC, TOKEN_T, 1_000_000_000, 50)
        assert result.amount_out == 150_000_000
        assert provider.calls == [(SRC, TOKEN_T, 1_000_000_000)]

    @pytest.mark.asyncio
    async def test_missing_rate_is_no_route(self):
        provider = SimulatedQuoteProvider({})
        with pytest.raises(NoRouteError):
            await provider.quote(SRC, TOKEN_T, 10, 50)

    @pytest.mark.asyncio
    async def test_scripted_errors_consumed_in_order(self):
        provider = SimulatedQuoteProvider(
            {(SRC, TOKEN_T): 2},
            errors={(SRC, TOKEN_T): [RateLimitError("429"), None]},
        )
        with pytest.raises(RateLimitError):
            await provider.quote(SRC, TOKEN_T, 10, 50)
        assert (await provider.quote(SRC, TOKEN_T, 10, 50)).amount_out == 20
        assert (await provider.quote(SRC, TOKEN_T, 10, 50)).amount_out == 20
