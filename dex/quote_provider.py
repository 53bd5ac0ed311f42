"""
dex/quote_provider.py - Quote provider contract.

The scanner depends on exactly one operation: given input asset, output
asset and an integer amount (smallest units), return the best achievable
output amount. Failures are reported only through the QuoteError family:

- NoRouteError: no path between the assets
- AssetNotTradableError: provider refuses an asset (asset id when known)
- RateLimitError: provider throttled the request
- QuoteTimeoutError: call exceeded its timeout
- QuoteError: anything else
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class QuoteResult:
    amount_out: int
    venue: str = ""


class QuoteProvider(Protocol):
    async def quote(
        self,
        input_asset: str,
        output_asset: str,
        amount_in: int,
        max_slippage_bps: int,
    ) -> QuoteResult:
        ...

    async def close(self) -> None:
        ...
