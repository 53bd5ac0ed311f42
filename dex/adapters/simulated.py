"""
dex/adapters/simulated.py - Deterministic fixed-rate quote provider.

Rates are whole-token prices: rates[(A, B)] = 10 means 1 A buys 10 B.
Used for smoke runs (no network) and tests.
"""

from decimal import Decimal, ROUND_DOWN

from core.exceptions import NoRouteError
from dex.quote_provider import QuoteResult

SIMULATED_VENUE = "simulated"


class SimulatedQuoteProvider:
    """
    Fixed-rate provider.

    Args:
        rates: (input, output) -> whole-token exchange rate
        decimals: asset -> decimals (missing assets default to 9)
        errors: (input, output) -> exception raised for that pair.
            A list is consumed one item per call; None in the list means
            "quote normally this time".
    """

    def __init__(
        self,
        rates: dict[tuple[str, str], Decimal | str | int],
        decimals: dict[str, int] | None = None,
        errors: dict[tuple[str, str], Exception | list] | None = None,
    ):
        self.rates = {pair: Decimal(str(rate)) for pair, rate in rates.items()}
        self.decimals = dict(decimals or {})
        self.errors = dict(errors or {})
        self.calls: list[tuple[str, str, int]] = []

    async def quote(
        self,
        input_asset: str,
        output_asset: str,
        amount_in: int,
        max_slippage_bps: int,
    ) -> QuoteResult:
        self.calls.append((input_asset, output_asset, amount_in))
        pair = (input_asset, output_asset)

        scripted = self.errors.get(pair)
        if isinstance(scripted, list):
            scripted = scripted.pop(0) if scripted else None
        if scripted is not None:
            raise scripted

        rate = self.rates.get(pair)
        if rate is None:
            raise NoRouteError(f"No simulated rate for {input_asset} -> {output_asset}")

        dec_in = self.decimals.get(input_asset, 9)
        dec_out = self.decimals.get(output_asset, 9)
        out = Decimal(amount_in) * rate * Decimal(10) ** (dec_out - dec_in)
        return QuoteResult(
            amount_out=int(out.to_integral_value(rounding=ROUND_DOWN)),
            venue=SIMULATED_VENUE,
        )

    async def close(self) -> None:
        return None
