"""
strategy/evaluator.py - Cycle profitability evaluation.

Quotes each hop sequentially, feeding each hop's output into the next,
then nets out estimated gas:

    gross = final_out - amount_in             (source smallest units)
    gas   = gas_cost_per_hop * hops           (converted to smallest units)
    net   = gross - gas
    pct   = net / amount_in * 100

A cycle is profitable iff pct >= min_profit_threshold * 100.
"""

import asyncio
from decimal import Decimal
from typing import Callable

from core.constants import (
    DEFAULT_GAS_COST_PER_HOP,
    DEFAULT_MIN_PROFIT_THRESHOLD,
    DEFAULT_QUOTE_TIMEOUT_SECONDS,
    DEFAULT_SLIPPAGE_BPS,
)
from core.exceptions import NoRouteError, QuoteTimeoutError
from core.logging import get_logger
from core.math import profit_pct, to_smallest_unit
from core.models import Cycle, HopQuote, Opportunity
from core.time import now_timestamp
from dex.quote_provider import QuoteProvider
from discovery.registry import AssetRegistry

logger = get_logger(__name__)


class OpportunityEvaluator:
    """Scores one cycle at a time against the quote provider."""

    def __init__(
        self,
        provider: QuoteProvider,
        registry: AssetRegistry,
        source_decimals: int = 9,
        min_profit_threshold: Decimal = DEFAULT_MIN_PROFIT_THRESHOLD,
        gas_cost_per_hop: Decimal = DEFAULT_GAS_COST_PER_HOP,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
        quote_timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = now_timestamp,
    ):
        self.provider = provider
        self.registry = registry
        self.source_decimals = source_decimals
        self.min_profit_threshold = Decimal(min_profit_threshold)
        self.gas_cost_per_hop = Decimal(gas_cost_per_hop)
        self.slippage_bps = slippage_bps
        self.quote_timeout_seconds = quote_timeout_seconds
        self._clock = clock

    @property
    def threshold_pct(self) -> float:
        return float(self.min_profit_threshold * 100)

    def gas_cost(self, cycle: Cycle) -> int:
        """Estimated gas for the whole cycle, in source smallest units."""
        return to_smallest_unit(self.gas_cost_per_hop * cycle.hops, self.source_decimals)

    async def _quote_hop(self, input_asset: str, output_asset: str, amount_in: int) -> HopQuote:
        try:
            result = await asyncio.wait_for(
                self.provider.quote(input_asset, output_asset, amount_in, self.slippage_bps),
                timeout=self.quote_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise QuoteTimeoutError(
                f"Quote {input_asset} -> {output_asset} exceeded {self.quote_timeout_seconds}s",
                details={"input": input_asset, "output": output_asset},
            ) from e

        if result.amount_out <= 0:
            raise NoRouteError(
                f"Zero output for {input_asset} -> {output_asset}",
                details={"input": input_asset, "output": output_asset},
            )

        self.registry.mark_verified(input_asset)
        self.registry.mark_verified(output_asset)
        return HopQuote(
            input_asset=input_asset,
            output_asset=output_asset,
            amount_in=amount_in,
            amount_out=result.amount_out,
            venue=result.venue,
        )

    async def quote_cycle(self, cycle: Cycle, amount_in: int) -> list[HopQuote]:
        """
        Quote every hop in order.

        Raises:
            NoRouteError: non-positive input or a hop without a route
            QuoteError: any other provider failure (propagated as-is)
        """
        if amount_in <= 0:
            raise NoRouteError(f"Non-positive input amount: {amount_in}")

        hops: list[HopQuote] = []
        amount = amount_in
        for input_asset, output_asset in cycle.legs():
            hop = await self._quote_hop(input_asset, output_asset, amount)
            hops.append(hop)
            amount = hop.amount_out
        return hops

    async def evaluate(self, cycle: Cycle, amount_in: int) -> Opportunity | None:
        """
        Returns:
            Opportunity if the cycle clears the threshold, else None
        """
        hops = await self.quote_cycle(cycle, amount_in)
        amount_out = hops[-1].amount_out
        gross = amount_out - amount_in
        gas = self.gas_cost(cycle)
        net = gross - gas
        pct = profit_pct(net, amount_in)

        symbols = tuple(self.registry.symbol(a) for a in cycle.assets)
        if pct < self.threshold_pct:
            logger.debug(
                f"{' -> '.join(symbols)}: {pct:.4f}% (below {self.threshold_pct:.4f}%)",
                extra={"context": {"route": cycle.key, "net_profit": net}},
            )
            return None

        opportunity = Opportunity(
            cycle=cycle,
            symbols=symbols,
            hops=tuple(hops),
            amount_in=amount_in,
            amount_out=amount_out,
            gross_profit=gross,
            gas_cost=gas,
            net_profit=net,
            net_profit_pct=pct,
            source_decimals=self.source_decimals,
            timestamp=self._clock(),
        )
        logger.info(
            f"Profitable route {opportunity.route_label}: {pct:.4f}%",
            extra={"context": {"route": cycle.key, "net_profit": net, "gas": gas}},
        )
        return opportunity
