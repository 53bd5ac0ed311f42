"""
strategy/paper_trading.py - Simulated execution ledger.

execute_trade() never raises; every call appends one TradeRecord:
1. Opportunity older than the staleness bound -> failed "expired"
2. Source balance below the input amount      -> failed "insufficient_balance"
3. Success roll against success_rate          -> failed with a synthetic reason
   (gas still charged when charge_gas_on_failure)
4. Success: output haircut by a random slippage in [0, variation]%,
   input debited, output credited, gas debited from the fee asset

Balances are Decimal whole-token units and never go negative.
Randomness comes from an injected random.Random so runs are reproducible.
"""

import asyncio
import random
from collections import Counter
from decimal import Decimal
from typing import Any, Callable

from core.constants import SIMULATED_FAILURE_REASONS, TradeFailureReason
from core.format_money import format_amount, format_money, format_pct
from core.logging import get_logger
from core.math import from_smallest_unit
from core.models import Opportunity, TradeRecord
from core.time import now_timestamp
from strategy.config import PaperTradingSettings

logger = get_logger(__name__)

ZERO = Decimal("0")
SECONDS_PER_DAY = 86_400


class PaperLedger:
    """
    Paper trading balances and trade log.

    Constructed by the caller and passed by reference; there is no
    process-wide session.
    """

    def __init__(
        self,
        source_asset: str,
        settings: PaperTradingSettings | None = None,
        opportunity_ttl_seconds: float = 10.0,
        rng: random.Random | None = None,
        clock: Callable[[], float] = now_timestamp,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.source_asset = source_asset
        self.settings = settings or PaperTradingSettings()
        self.opportunity_ttl_seconds = opportunity_ttl_seconds
        self._rng = rng or random.Random(self.settings.seed)
        self._clock = clock
        self._sleep = sleep

        self.initial_balances: dict[str, Decimal] = {
            asset: Decimal(amount) for asset, amount in self.settings.initial_balances.items()
        }
        self._balances: dict[str, Decimal] = dict(self.initial_balances)
        self._trades: list[TradeRecord] = []
        self._history: list[dict[str, Any]] = []
        self.started_at = self._clock()
        self._record_balances()

        logger.info(
            "Paper ledger started",
            extra={"context": {
                "balances": {a: str(v) for a, v in self._balances.items()},
                "success_rate": self.settings.success_rate,
                "gas_fee": str(self.settings.gas_fee),
            }},
        )

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def balances(self) -> dict[str, Decimal]:
        return dict(self._balances)

    def balance_of(self, asset: str) -> Decimal:
        return self._balances.get(asset, ZERO)

    @property
    def trades(self) -> list[TradeRecord]:
        return list(self._trades)

    @property
    def balance_history(self) -> list[dict[str, Any]]:
        return list(self._history)

    def _record_balances(self) -> None:
        self._history.append({
            "timestamp": self._clock(),
            "balances": {a: str(v) for a, v in self._balances.items()},
        })

    def _gas_for(self, opportunity: Opportunity) -> Decimal:
        if not self.settings.simulate_gas:
            return ZERO
        return self.settings.gas_fee * opportunity.cycle.hops

    def _charge_gas(self, amount: Decimal) -> Decimal:
        """Debit gas from the fee asset, capped at the available balance."""
        if amount <= 0:
            return ZERO
        fee_asset = self.settings.fee_asset
        available = self.balance_of(fee_asset)
        charged = min(amount, available)
        if charged < amount:
            logger.warning(
                f"Fee balance too low for gas, charged {format_money(charged, 9)} of {format_money(amount, 9)}",
                extra={"context": {"fee_asset": fee_asset}},
            )
        self._balances[fee_asset] = available - charged
        return charged

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def _record(
        self,
        opportunity: Opportunity,
        amount_in: Decimal,
        expected_out: Decimal,
        realized_out: Decimal = ZERO,
        slippage_pct: Decimal = ZERO,
        gas_fee: Decimal = ZERO,
        successful: bool = False,
        reason: TradeFailureReason | None = None,
    ) -> TradeRecord:
        gross = realized_out - amount_in if successful else ZERO
        record = TradeRecord(
            trade_id=f"paper_{len(self._trades) + 1:06d}",
            timestamp=self._clock(),
            opportunity_id=opportunity.opportunity_id,
            route=opportunity.cycle.assets,
            symbols=opportunity.symbols,
            amount_in=amount_in,
            expected_out=expected_out,
            realized_out=realized_out,
            slippage_pct=slippage_pct,
            gas_fee=gas_fee,
            gross_profit=gross,
            net_profit=gross - gas_fee,
            successful=successful,
            reason=reason,
        )
        self._trades.append(record)
        self._record_balances()

        if successful:
            logger.info(
                f"Paper trade {record.trade_id} {opportunity.route_label}: "
                f"net {format_money(record.net_profit, 9)}",
                extra={"context": record.to_dict()},
            )
        else:
            logger.info(
                f"Paper trade {record.trade_id} failed: {reason.value if reason else 'unknown'}",
                extra={"context": {"route": opportunity.cycle.key, "gas_fee": str(gas_fee)}},
            )
        return record

    def execute_trade(self, opportunity: Opportunity) -> TradeRecord:
        """Simulate one trade. Never raises."""
        decimals = opportunity.source_decimals
        amount_in = from_smallest_unit(opportunity.amount_in, decimals)
        expected_out = from_smallest_unit(opportunity.amount_out, decimals)
        input_asset = opportunity.cycle.source
        output_asset = opportunity.cycle.assets[-1]

        if opportunity.is_expired(self.opportunity_ttl_seconds, now=self._clock()):
            return self._record(
                opportunity, amount_in, expected_out,
                reason=TradeFailureReason.EXPIRED,
            )

        if self.balance_of(input_asset) < amount_in:
            return self._record(
                opportunity, amount_in, expected_out,
                reason=TradeFailureReason.INSUFFICIENT_BALANCE,
            )

        gas = self._gas_for(opportunity)

        if self._rng.random() >= self.settings.success_rate:
            reason = self._rng.choice(SIMULATED_FAILURE_REASONS)
            charged = self._charge_gas(gas) if self.settings.charge_gas_on_failure else ZERO
            return self._record(
                opportunity, amount_in, expected_out,
                gas_fee=charged, reason=reason,
            )

        slippage_pct = ZERO
        if self.settings.slippage_variation_pct > 0:
            slippage_pct = Decimal(str(self._rng.random())) * self.settings.slippage_variation_pct
        realized_out = expected_out * (1 - slippage_pct / 100)

        self._balances[input_asset] = self.balance_of(input_asset) - amount_in
        self._balances[output_asset] = self.balance_of(output_asset) + realized_out
        charged = self._charge_gas(gas)

        return self._record(
            opportunity, amount_in, expected_out,
            realized_out=realized_out,
            slippage_pct=slippage_pct,
            gas_fee=charged,
            successful=True,
        )

    async def execute(self, opportunity: Opportunity) -> TradeRecord:
        """Simulate submission latency, then execute_trade()."""
        if self.settings.latency_ms > 0:
            await self._sleep(self.settings.latency_ms / 1000)
        return self.execute_trade(opportunity)

    # =========================================================================
    # REPORTING (pure reads)
    # =========================================================================

    def get_performance_metrics(self) -> dict[str, Any]:
        trades = self._trades
        successful = [t for t in trades if t.successful]
        total_profit = sum((t.net_profit for t in trades), ZERO)
        gas_spent = sum((t.gas_fee for t in trades), ZERO)
        failures = Counter(t.reason.value for t in trades if t.reason is not None)

        initial = self.initial_balances.get(self.source_asset, ZERO)
        current = self.balance_of(self.source_asset)
        percent_return = float((current - initial) / initial * 100) if initial > 0 else 0.0

        elapsed = max(self._clock() - self.started_at, 0.0)
        daily = total_profit * Decimal(SECONDS_PER_DAY) / Decimal(str(elapsed)) if elapsed > 0 else ZERO

        return {
            "total_trades": len(trades),
            "successful_trades": len(successful),
            "failed_trades": len(trades) - len(successful),
            "success_rate": len(successful) / len(trades) if trades else 0.0,
            "total_profit": total_profit,
            "average_profit": total_profit / len(trades) if trades else ZERO,
            "gas_spent": gas_spent,
            "initial_balance": initial,
            "current_balance": current,
            "percent_return": percent_return,
            "failure_reasons": dict(failures),
            "elapsed_seconds": elapsed,
            "projected_daily_profit": daily,
            "projected_monthly_profit": daily * 30,
            "projected_yearly_profit": daily * 365,
        }

    def generate_report(self, symbol: str = "SOL") -> str:
        m = self.get_performance_metrics()
        lines = [
            "=== PAPER TRADING PERFORMANCE REPORT ===",
            f"Elapsed:            {m['elapsed_seconds'] / 3600:.2f} hours",
            f"Total trades:       {m['total_trades']}",
            f"Successful trades:  {m['successful_trades']}",
            f"Failed trades:      {m['failed_trades']}",
            f"Success rate:       {format_pct(m['success_rate'] * 100, 2)}",
            f"Initial balance:    {format_amount(m['initial_balance'], symbol)}",
            f"Current balance:    {format_amount(m['current_balance'], symbol)}",
            f"Total profit:       {format_amount(m['total_profit'], symbol)}",
            f"Average profit:     {format_amount(m['average_profit'], symbol)}",
            f"Gas spent:          {format_amount(m['gas_spent'], symbol)}",
            f"Return:             {format_pct(m['percent_return'], 4)}",
            "",
            "Projections (linear extrapolation):",
            f"  Daily:   {format_amount(m['projected_daily_profit'], symbol)}",
            f"  Monthly: {format_amount(m['projected_monthly_profit'], symbol)}",
            f"  Yearly:  {format_amount(m['projected_yearly_profit'], symbol)}",
        ]
        if m["failure_reasons"]:
            lines.append("")
            lines.append("Failure reasons:")
            for reason, count in sorted(m["failure_reasons"].items()):
                lines.append(f"  {reason}: {count}")
        return "\n".join(lines)
