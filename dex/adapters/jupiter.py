"""
dex/adapters/jupiter.py - Aggregator quote API client.

GET {api_url}/quote?inputMint=..&outputMint=..&amount=..&slippageBps=..

Response fields used:
- outAmount: string integer, smallest units of the output asset
- routePlan[0].swapInfo.label: venue of the first leg

Error mapping:
- HTTP 429                              -> RateLimitError
- httpx.TimeoutException                -> QuoteTimeoutError
- TOKEN_NOT_TRADABLE / "not tradable"   -> AssetNotTradableError
- COULD_NOT_FIND_ANY_ROUTE / no routes  -> NoRouteError
- outAmount == 0                        -> NoRouteError
- anything else                         -> QuoteError
"""

import re
import time
from dataclasses import dataclass
from typing import Any

import httpx

from core.exceptions import (
    AssetNotTradableError,
    NoRouteError,
    QuoteError,
    QuoteTimeoutError,
    RateLimitError,
)
from core.logging import get_logger
from dex.quote_provider import QuoteResult

logger = get_logger(__name__)

NOT_TRADABLE_CODES = {"TOKEN_NOT_TRADABLE"}
NO_ROUTE_CODES = {"COULD_NOT_FIND_ANY_ROUTE", "NO_ROUTES_FOUND", "ROUTE_NOT_FOUND"}

NOT_TRADABLE_ASSET_RE = re.compile(r"token ([A-Za-z0-9]{32,44}) is not tradable", re.IGNORECASE)


@dataclass
class QuoteClientStats:
    """Request counters for monitoring."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rate_limited: int = 0
    total_latency_ms: int = 0

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "rate_limited": self.rate_limited,
            "avg_latency_ms": self.avg_latency_ms,
        }


def classify_error(
    status_code: int,
    payload: Any,
    input_asset: str,
    output_asset: str,
) -> QuoteError:
    """Map an error response to the quote error taxonomy."""
    code = ""
    message = ""
    if isinstance(payload, dict):
        code = str(payload.get("errorCode") or payload.get("error_code") or "")
        message = str(payload.get("error") or payload.get("message") or "")
    elif payload is not None:
        message = str(payload)

    details = {
        "status": status_code,
        "error_code": code,
        "input": input_asset,
        "output": output_asset,
    }
    lowered = message.lower()

    if status_code == 429:
        return RateLimitError(f"Rate limited: {message or status_code}", details=details)

    if (
        code.upper() in NOT_TRADABLE_CODES
        or "not tradable" in lowered
        or "token_not_tradable" in lowered
    ):
        match = NOT_TRADABLE_ASSET_RE.search(message)
        asset = match.group(1) if match else None
        return AssetNotTradableError(message or "Asset not tradable", asset=asset, details=details)

    if code.upper() in NO_ROUTE_CODES or "no route" in lowered or "could not find any route" in lowered:
        return NoRouteError(message or "No route found", details=details)

    return QuoteError(f"Quote failed ({status_code}): {message or code}", details=details)


class JupiterQuoteClient:
    """
    Quote provider over HTTP.

    One AsyncClient per instance; call close() on shutdown.
    """

    def __init__(
        self,
        api_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.stats = QuoteClientStats()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def quote(
        self,
        input_asset: str,
        output_asset: str,
        amount_in: int,
        max_slippage_bps: int,
    ) -> QuoteResult:
        client = await self._get_client()
        params = {
            "inputMint": input_asset,
            "outputMint": output_asset,
            "amount": str(amount_in),
            "slippageBps": max_slippage_bps,
        }

        self.stats.total_requests += 1
        start = time.monotonic()
        try:
            response = await client.get(f"{self.api_url}/quote", params=params)
        except httpx.TimeoutException as e:
            self.stats.failed_requests += 1
            raise QuoteTimeoutError(
                f"Quote timed out after {self.timeout_seconds}s",
                details={"input": input_asset, "output": output_asset},
            ) from e
        except httpx.HTTPError as e:
            self.stats.failed_requests += 1
            raise QuoteError(f"Quote request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        if response.status_code != 200 or (isinstance(payload, dict) and "error" in payload):
            self.stats.failed_requests += 1
            if response.status_code == 429:
                self.stats.rate_limited += 1
            raise classify_error(response.status_code, payload, input_asset, output_asset)

        if not isinstance(payload, dict):
            self.stats.failed_requests += 1
            raise QuoteError("Quote response is not a JSON object")

        try:
            amount_out = int(payload["outAmount"])
        except (KeyError, TypeError, ValueError) as e:
            self.stats.failed_requests += 1
            raise QuoteError(f"Quote response missing outAmount: {e}") from e

        if amount_out <= 0:
            self.stats.failed_requests += 1
            raise NoRouteError(
                "Quote returned zero output",
                details={"input": input_asset, "output": output_asset},
            )

        latency_ms = int((time.monotonic() - start) * 1000)
        self.stats.successful_requests += 1
        self.stats.total_latency_ms += latency_ms

        venue = ""
        route_plan = payload.get("routePlan") or []
        if route_plan and isinstance(route_plan[0], dict):
            venue = str((route_plan[0].get("swapInfo") or {}).get("label", ""))

        logger.debug(
            f"Quote {input_asset[:6]} -> {output_asset[:6]}: {amount_in} -> {amount_out}",
            extra={"context": {"venue": venue, "latency_ms": latency_ms}},
        )
        return QuoteResult(amount_out=amount_out, venue=venue)
