"""
tests/unit/test_token_list.py - Token list source tests.
"""

import json
import os

import httpx
import pytest

from core.exceptions import TokenListError
from discovery.token_list import TokenListClient, TopTokenFetcher, parse_token_records
from tests.helpers import SRC, TOKEN_T

RECORDS = [
    {"address": SRC, "symbol": "SOL", "name": "Wrapped SOL", "decimals": 9},
    {"address": TOKEN_T, "symbol": "TTT", "decimals": 6},
    {"address": "incomplete", "symbol": "BAD"},
]


class TestParseTokenRecords:

    def test_skips_incomplete_records(self):
        tokens = parse_token_records(RECORDS)
        assert [t.address for t in tokens] == [SRC, TOKEN_T]

    def test_name_falls_back_to_symbol(self):
        tokens = parse_token_records(RECORDS)
        assert tokens[1].name == "TTT"


class TestTokenListClient:

    @pytest.mark.asyncio
    async def test_fetch_list_payload(self):
        client = TokenListClient(
            "https://tokens.example/all",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=RECORDS)),
        )
        tokens = await client.fetch_canonical()
        await client.close()
        assert len(tokens) == 2

    @pytest.mark.asyncio
    async def test_fetch_wrapped_payload(self):
        client = TokenListClient(
            "https://tokens.example/all",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"tokens": RECORDS[:1]})
            ),
        )
        tokens = await client.fetch_canonical()
        assert tokens[0].symbol == "SOL"

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = TokenListClient(
            "https://tokens.example/all",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        with pytest.raises(TokenListError):
            await client.fetch_canonical()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = TokenListClient(
            "https://tokens.example/all",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")),
        )
        with pytest.raises(TokenListError):
            await client.fetch_canonical()

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        client = TokenListClient(
            "https://tokens.example/all",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"data": 1})),
        )
        with pytest.raises(TokenListError):
            await client.fetch_canonical()


class TestTopTokenFetcher:

    @pytest.mark.asyncio
    async def test_no_api_key_uses_defaults(self, tmp_path):
        fetcher = TopTokenFetcher("https://rank.example", None, tmp_path)
        tokens = await fetcher.fetch_top_tokens(limit=3)
        assert [t.symbol for t in tokens] == ["SOL", "USDC", "USDT"]
        assert not fetcher.cache_file.exists()

    @pytest.mark.asyncio
    async def test_fetch_and_cache(self, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            assert request.headers["X-API-KEY"] == "key"
            return httpx.Response(200, json={"success": True, "data": {"tokens": RECORDS}})

        fetcher = TopTokenFetcher(
            "https://rank.example", "key", tmp_path, transport=httpx.MockTransport(handler),
        )
        first = await fetcher.fetch_top_tokens(limit=10)
        second = await fetcher.fetch_top_tokens(limit=10)

        assert [t.address for t in first] == [SRC, TOKEN_T]
        assert [t.address for t in second] == [SRC, TOKEN_T]
        assert len(calls) == 1
        assert json.loads(fetcher.cache_file.read_text())[0]["symbol"] == "SOL"

    @pytest.mark.asyncio
    async def test_expired_cache_refetched(self, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"success": True, "data": {"tokens": RECORDS}})

        fetcher = TopTokenFetcher(
            "https://rank.example", "key", tmp_path,
            cache_ttl_seconds=60, transport=httpx.MockTransport(handler),
        )
        await fetcher.fetch_top_tokens()
        old = fetcher.cache_file.stat().st_mtime - 120
        os.utime(fetcher.cache_file, (old, old))
        await fetcher.fetch_top_tokens()

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_api_failure_falls_back(self, tmp_path):
        fetcher = TopTokenFetcher(
            "https://rank.example", "key", tmp_path,
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        tokens = await fetcher.fetch_top_tokens(limit=2)
        assert [t.symbol for t in tokens] == ["SOL", "USDC"]

    @pytest.mark.asyncio
    async def test_unsuccessful_response_falls_back(self, tmp_path):
        fetcher = TopTokenFetcher(
            "https://rank.example", "key", tmp_path,
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"success": False, "data": {"tokens": []}})
            ),
        )
        tokens = await fetcher.fetch_top_tokens(limit=1)
        assert tokens[0].symbol == "SOL"
