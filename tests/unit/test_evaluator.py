"""
tests/unit/test_evaluator.py - Opportunity evaluator tests.
"""

import asyncio
from decimal import Decimal

import pytest

from core.constants import AssetStatus
from core.exceptions import NoRouteError, QuoteTimeoutError, RateLimitError
from core.models import Cycle
from dex.adapters.simulated import SimulatedQuoteProvider
from discovery.registry import AssetRegistry
from strategy.evaluator import OpportunityEvaluator
from tests.helpers import LAMPORTS, SRC, TOKEN_T, TOKEN_U, ScriptedProvider, make_token


def make_evaluator(provider, registry, gas_per_hop="0", threshold="0.0005", timeout=10.0):
    return OpportunityEvaluator(
        provider=provider,
        registry=registry,
        source_decimals=9,
        min_profit_threshold=Decimal(threshold),
        gas_cost_per_hop=Decimal(gas_per_hop),
        quote_timeout_seconds=timeout,
    )


class TestFixedRateCycles:
    """Evaluation against a fixed-rate provider."""

    @pytest.mark.asyncio
    async def test_three_hop_gross_profit_matches_rate_product(self, registry):
        r1, r2, r3 = Decimal("2"), Decimal("3"), Decimal("0.17")
        provider = SimulatedQuoteProvider({
            (SRC, TOKEN_T): r1,
            (TOKEN_T, TOKEN_U): r2,
            (TOKEN_U, SRC): r3,
        })
        evaluator = make_evaluator(provider, registry, gas_per_hop="0.00001")
        cycle = Cycle((SRC, TOKEN_T, TOKEN_U, SRC))

        opp = await evaluator.evaluate(cycle, LAMPORTS)

        expected_gross = int(LAMPORTS * r1 * r2 * r3) - LAMPORTS
        assert opp is not None
        assert abs(opp.gross_profit - expected_gross) <= 3
        assert opp.gas_cost == 30_000
        assert opp.net_profit == opp.gross_profit - 30_000
        assert opp.net_profit_pct == pytest.approx(1.997, rel=1e-3)
        assert [h.amount_in for h in opp.hops] == [LAMPORTS, 2 * LAMPORTS, 6 * LAMPORTS]

    @pytest.mark.asyncio
    async def test_losing_cycle_returns_none(self, registry):
        provider = SimulatedQuoteProvider({
            (SRC, TOKEN_T): "2",
            (TOKEN_T, TOKEN_U): "3",
            (TOKEN_U, SRC): "0.1666",
        })
        evaluator = make_evaluator(provider, registry)
        assert await evaluator.evaluate(Cycle((SRC, TOKEN_T, TOKEN_U, SRC)), LAMPORTS) is None

    @pytest.mark.asyncio
    async def test_gas_can_make_cycle_unprofitable(self, registry):
        # +0.06% gross, 0.0001 SOL gas on 0.1 SOL input = -0.04% net
        provider = SimulatedQuoteProvider({(SRC, TOKEN_T): "1", (TOKEN_T, SRC): "1.0006"})
        cycle = Cycle((SRC, TOKEN_T, SRC))

        without_gas = make_evaluator(provider, registry)
        with_gas = make_evaluator(provider, registry, gas_per_hop="0.00005")

        assert await without_gas.evaluate(cycle, LAMPORTS // 10) is not None
        assert await with_gas.evaluate(cycle, LAMPORTS // 10) is None

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, registry):
        provider = ScriptedProvider({
            (SRC, TOKEN_T): [LAMPORTS],
            (TOKEN_T, SRC): [LAMPORTS + 500_000],   # exactly 0.05%
        })
        evaluator = make_evaluator(provider, registry)
        assert await evaluator.evaluate(Cycle((SRC, TOKEN_T, SRC)), LAMPORTS) is not None


class TestEndToEndExample:

    @pytest.mark.asyncio
    async def test_two_hop_five_percent(self, registry):
        # 10 S -> 100 T -> 10.5 S, 0.0001 S gas: net 0.4999 S
        provider = ScriptedProvider({
            (SRC, TOKEN_T): [100_000_000],
            (TOKEN_T, SRC): [10_500_000_000],
        })
        evaluator = make_evaluator(provider, registry, gas_per_hop="0.00005")
        opp = await evaluator.evaluate(Cycle((SRC, TOKEN_T, SRC)), 10 * LAMPORTS)

        assert opp is not None
        assert opp.gross_profit == 500_000_000
        assert opp.gas_cost == 100_000
        assert opp.net_profit == 499_900_000
        assert opp.net_profit_pct == pytest.approx(4.999)
        assert opp.symbols == ("SOL", "TTT", "SOL")


class TestErrors:

    @pytest.mark.asyncio
    async def test_zero_output_is_no_route(self, registry):
        provider = ScriptedProvider({(SRC, TOKEN_T): [0]})
        evaluator = make_evaluator(provider, registry)
        with pytest.raises(NoRouteError):
            await evaluator.evaluate(Cycle((SRC, TOKEN_T, SRC)), LAMPORTS)

    @pytest.mark.asyncio
    async def test_non_positive_input_is_no_route(self, registry):
        evaluator = make_evaluator(ScriptedProvider({}), registry)
        with pytest.raises(NoRouteError):
            await evaluator.evaluate(Cycle((SRC, TOKEN_T, SRC)), 0)

    @pytest.mark.asyncio
    async def test_provider_error_propagates_and_stops_walk(self, registry):
        provider = ScriptedProvider({
            (SRC, TOKEN_T): [RateLimitError("429")],
            (TOKEN_T, SRC): [LAMPORTS],
        })
        evaluator = make_evaluator(provider, registry)
        with pytest.raises(RateLimitError):
            await evaluator.evaluate(Cycle((SRC, TOKEN_T, SRC)), LAMPORTS)
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_slow_quote_times_out(self, registry):
        class SlowProvider:
            async def quote(self, *args):
                await asyncio.sleep(1)

        evaluator = make_evaluator(SlowProvider(), registry, timeout=0.01)
        with pytest.raises(QuoteTimeoutError):
            await evaluator.evaluate(Cycle((SRC, TOKEN_T, SRC)), LAMPORTS)


class TestVerification:

    @pytest.mark.asyncio
    async def test_successful_hops_verify_assets(self, store, clock):
        reg = AssetRegistry(SRC, store, clock=clock)
        reg.register(make_token(TOKEN_T, "TTT"))
        provider = ScriptedProvider({(SRC, TOKEN_T): [5], (TOKEN_T, SRC): [1]})

        await make_evaluator(provider, reg).evaluate(Cycle((SRC, TOKEN_T, SRC)), LAMPORTS)

        assert reg.classify(TOKEN_T) == AssetStatus.VERIFIED

    @pytest.mark.asyncio
    async def test_failed_hop_does_not_verify(self, store, clock):
        reg = AssetRegistry(SRC, store, clock=clock)
        reg.register(make_token(TOKEN_T, "TTT"))
        provider = ScriptedProvider({(SRC, TOKEN_T): [NoRouteError("none")]})

        with pytest.raises(NoRouteError):
            await make_evaluator(provider, reg).evaluate(Cycle((SRC, TOKEN_T, SRC)), LAMPORTS)
        assert reg.classify(TOKEN_T) == AssetStatus.UNVERIFIED
