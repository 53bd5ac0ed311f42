"""
discovery/token_list.py - Token list sources.

- TokenListClient: canonical tradable list (Jupiter-style /all endpoint)
- TopTokenFetcher: volume-ranked top tokens (Birdeye-style API), cached to
  disk, with a built-in default list when no API key is configured or the
  API fails
"""

import json
from pathlib import Path
from typing import Any

import httpx

from core.constants import DEFAULT_TOP_TOKENS
from core.exceptions import TokenListError
from core.logging import get_logger
from core.models import TokenInfo
from core.time import now_timestamp

logger = get_logger(__name__)


def parse_token_records(records: list[dict[str, Any]]) -> list[TokenInfo]:
    """Convert raw records to TokenInfo, skipping incomplete ones."""
    tokens = []
    skipped = 0
    for record in records:
        try:
            tokens.append(TokenInfo.from_dict(record))
        except (KeyError, TypeError, ValueError):
            skipped += 1
    if skipped:
        logger.debug(f"Skipped {skipped} incomplete token records")
    return tokens


class TokenListClient:
    """Fetches the canonical tradable token list."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_canonical(self) -> list[TokenInfo]:
        """
        Fetch and parse the canonical list.

        Raises:
            TokenListError: network failure, bad status, or unexpected payload
        """
        client = await self._get_client()
        try:
            response = await client.get(self.url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise TokenListError(
                f"Token list request failed: {e}", details={"url": self.url}
            ) from e
        except ValueError as e:
            raise TokenListError(
                f"Token list is not valid JSON: {e}", details={"url": self.url}
            ) from e

        if isinstance(payload, dict):
            payload = payload.get("tokens")
        if not isinstance(payload, list):
            raise TokenListError("Token list payload is not a list", details={"url": self.url})

        tokens = parse_token_records(payload)
        logger.info(f"Fetched canonical token list: {len(tokens)} tokens")
        return tokens


class TopTokenFetcher:
    """
    Volume-ranked token list, used as the ranking for route generation.

    Never raises: on any failure it falls back to DEFAULT_TOP_TOKENS.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        cache_dir: Path | str,
        cache_ttl_seconds: float = 3600.0,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.cache_file = Path(cache_dir) / "top_tokens.json"
        self.cache_ttl_seconds = cache_ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @staticmethod
    def default_tokens() -> list[TokenInfo]:
        return [TokenInfo.from_dict(t) for t in DEFAULT_TOP_TOKENS]

    def _read_cache(self) -> list[TokenInfo] | None:
        if not self.cache_file.exists():
            return None
        age = now_timestamp() - self.cache_file.stat().st_mtime
        if age >= self.cache_ttl_seconds:
            return None
        try:
            with open(self.cache_file, encoding="utf-8") as f:
                tokens = parse_token_records(json.load(f))
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Top-token cache unreadable, refetching: {e}")
            return None
        logger.info(f"Using cached top tokens ({len(tokens)} tokens)")
        return tokens

    def _write_cache(self, tokens: list[TokenInfo]) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as f:
                json.dump([t.to_dict() for t in tokens], f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write top-token cache: {e}")

    async def fetch_top_tokens(self, limit: int = 50) -> list[TokenInfo]:
        cached = self._read_cache()
        if cached is not None:
            return cached[:limit]

        if not self.api_key:
            logger.info("No top-token API key configured, using default token list")
            return self.default_tokens()[:limit]

        url = f"{self.base_url}/defi/token_list_all"
        params = {"sort_by": "v24hUSD", "sort_type": "desc", "offset": 0, "limit": limit}
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=params, headers={"X-API-KEY": self.api_key})
                response.raise_for_status()
                payload = response.json()
            records = payload["data"]["tokens"]
            if not payload.get("success") or not isinstance(records, list):
                raise ValueError("unsuccessful response")
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Top-token fetch failed, using default list: {e}")
            return self.default_tokens()[:limit]

        tokens = parse_token_records(records)
        self._write_cache(tokens)
        logger.info(f"Fetched and cached {len(tokens)} top tokens")
        return tokens[:limit]
