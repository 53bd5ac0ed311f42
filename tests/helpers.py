"""
tests/helpers.py - Shared test constants, fakes and builders.
"""

from decimal import Decimal

from core.models import Cycle, HopQuote, Opportunity, TokenInfo
from dex.quote_provider import QuoteResult

SRC = "So11111111111111111111111111111111111111112"
TOKEN_T = "TTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTTT"
TOKEN_U = "UUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUUU"
TOKEN_V = "VVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVVV"
TOKEN_W = "WWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWWW"

LAMPORTS = 10**9


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProvider:
    """
    Quote provider returning queued results per pair.

    outcomes[(A, B)] is a list of int amounts or exceptions, consumed in
    order; the last item repeats.
    """

    def __init__(self, outcomes: dict):
        self.outcomes = {pair: list(items) for pair, items in outcomes.items()}
        self.calls: list[tuple[str, str, int]] = []

    async def quote(self, input_asset, output_asset, amount_in, max_slippage_bps):
        self.calls.append((input_asset, output_asset, amount_in))
        items = self.outcomes[(input_asset, output_asset)]
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, Exception):
            raise item
        return QuoteResult(amount_out=item, venue="scripted")

    async def close(self):
        return None


def make_token(address: str, symbol: str, decimals: int = 9) -> TokenInfo:
    return TokenInfo(address=address, symbol=symbol, name=f"{symbol} Token", decimals=decimals)


def make_opportunity(
    amount_in: int = 10 * LAMPORTS,
    amount_out: int = 10_500_000_000,
    gas_cost: int = 100_000,
    timestamp: float = 1_700_000_000.0,
    route: tuple = (SRC, TOKEN_T, SRC),
    decimals: int = 9,
) -> Opportunity:
    gross = amount_out - amount_in
    net = gross - gas_cost
    return Opportunity(
        cycle=Cycle(route),
        symbols=tuple("SOL" if a == SRC else "TTT" for a in route),
        hops=(
            HopQuote(route[0], route[1], amount_in, 100_000_000),
            HopQuote(route[1], route[2], 100_000_000, amount_out),
        ),
        amount_in=amount_in,
        amount_out=amount_out,
        gross_profit=gross,
        gas_cost=gas_cost,
        net_profit=net,
        net_profit_pct=float(Decimal(net) / Decimal(amount_in) * 100),
        source_decimals=decimals,
        timestamp=timestamp,
    )
