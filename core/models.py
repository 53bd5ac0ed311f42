# PATH: core/models.py
"""
Core data models for CycleScan.

AMOUNT CONTRACT
===============
- HopQuote / Opportunity amounts are int, in the smallest unit of the asset.
- Ledger balances and TradeRecord amounts are Decimal whole-token units.
- Percentages (net_profit_pct) are float, already scaled to 0-100.
===============

CYCLE CONTRACT
==============
A cycle starts and ends at the source asset, has at least two hops, and
visits no intermediate asset twice. Identity is the ordered tuple; the
string key joins the tuple with "-".
==============
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from core.constants import DEFAULT_PRIORITY, TradeFailureReason
from core.time import age_seconds, file_stamp, is_fresh, now_timestamp

UNKNOWN_SYMBOL = "UNKNOWN"
UNKNOWN_NAME = "Unknown Token"
UNKNOWN_DECIMALS = 9


# =============================================================================
# TOKENS
# =============================================================================

@dataclass(frozen=True)
class TokenInfo:
    """Asset metadata. Every field is required."""
    address: str
    symbol: str
    name: str
    decimals: int

    @classmethod
    def unknown(cls, address: str) -> "TokenInfo":
        """Fallback record for an asset with no known metadata."""
        return cls(
            address=address,
            symbol=UNKNOWN_SYMBOL,
            name=UNKNOWN_NAME,
            decimals=UNKNOWN_DECIMALS,
        )

    @property
    def is_unknown(self) -> bool:
        return self.symbol == UNKNOWN_SYMBOL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenInfo":
        """Build from a token-list record; raises KeyError/ValueError when incomplete."""
        return cls(
            address=str(data["address"]),
            symbol=str(data["symbol"]),
            name=str(data.get("name") or data["symbol"]),
            decimals=int(data["decimals"]),
        )


# =============================================================================
# CYCLES
# =============================================================================

@dataclass(frozen=True)
class Cycle:
    """Ordered route of asset ids, e.g. (SOL, USDC, SOL)."""
    assets: Tuple[str, ...]

    def __post_init__(self):
        assets = tuple(self.assets)
        object.__setattr__(self, "assets", assets)
        if len(assets) < 3:
            raise ValueError(f"Cycle needs at least 2 hops: {assets}")
        if assets[0] != assets[-1]:
            raise ValueError(f"Cycle must start and end at the same asset: {assets}")
        if len(set(assets[:-1])) != len(assets) - 1:
            raise ValueError(f"Cycle repeats an asset: {assets}")

    @property
    def source(self) -> str:
        return self.assets[0]

    @property
    def hops(self) -> int:
        return len(self.assets) - 1

    @property
    def intermediates(self) -> Tuple[str, ...]:
        return self.assets[1:-1]

    @property
    def pattern(self) -> str:
        return f"{self.hops}-hop"

    @property
    def key(self) -> str:
        return "-".join(self.assets)

    def legs(self) -> List[Tuple[str, str]]:
        """(input, output) pairs in hop order."""
        return list(zip(self.assets[:-1], self.assets[1:]))

    def __str__(self) -> str:
        return self.key


@dataclass
class QueueEntry:
    """Scheduler work item. Mutable; owned by the scheduler."""
    cycle: Cycle
    priority: float = DEFAULT_PRIORITY
    last_checked: float = 0.0

    @property
    def pattern(self) -> str:
        return self.cycle.pattern

    def sort_key(self) -> Tuple[float, float]:
        # Highest priority first, then least recently checked
        return (-self.priority, self.last_checked)


# =============================================================================
# QUOTES AND OPPORTUNITIES
# =============================================================================

@dataclass(frozen=True)
class HopQuote:
    """One evaluated hop."""
    input_asset: str
    output_asset: str
    amount_in: int
    amount_out: int
    venue: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_asset": self.input_asset,
            "output_asset": self.output_asset,
            "amount_in": str(self.amount_in),
            "amount_out": str(self.amount_out),
            "venue": self.venue,
        }


@dataclass(frozen=True)
class Opportunity:
    """A cycle whose net profit cleared the threshold at evaluation time."""
    cycle: Cycle
    symbols: Tuple[str, ...]
    hops: Tuple[HopQuote, ...]
    amount_in: int
    amount_out: int
    gross_profit: int
    gas_cost: int
    net_profit: int
    net_profit_pct: float
    source_decimals: int
    timestamp: float = field(default_factory=now_timestamp)
    opportunity_id: str = ""

    def __post_init__(self):
        if not self.opportunity_id:
            object.__setattr__(
                self,
                "opportunity_id",
                f"opp_{file_stamp(self.timestamp)}_{'-'.join(self.symbols)}",
            )

    @property
    def route_label(self) -> str:
        return " -> ".join(self.symbols)

    def age(self, now: Optional[float] = None) -> float:
        return age_seconds(self.timestamp, now)

    def is_expired(self, max_age_seconds: float, now: Optional[float] = None) -> bool:
        return not is_fresh(self.timestamp, max_age_seconds, now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "opportunity_id": self.opportunity_id,
            "timestamp": self.timestamp,
            "route": list(self.cycle.assets),
            "symbols": list(self.symbols),
            "hops": [h.to_dict() for h in self.hops],
            "amount_in": str(self.amount_in),
            "amount_out": str(self.amount_out),
            "gross_profit": str(self.gross_profit),
            "gas_cost": str(self.gas_cost),
            "net_profit": str(self.net_profit),
            "net_profit_pct": self.net_profit_pct,
            "source_decimals": self.source_decimals,
        }


# =============================================================================
# PAPER LEDGER
# =============================================================================

@dataclass(frozen=True)
class TradeRecord:
    """Append-only paper trade log entry. Amounts are whole-token Decimals."""
    trade_id: str
    timestamp: float
    opportunity_id: str
    route: Tuple[str, ...]
    symbols: Tuple[str, ...]
    amount_in: Decimal
    expected_out: Decimal
    realized_out: Decimal
    slippage_pct: Decimal
    gas_fee: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    successful: bool
    reason: Optional[TradeFailureReason] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "timestamp": self.timestamp,
            "opportunity_id": self.opportunity_id,
            "route": list(self.route),
            "symbols": list(self.symbols),
            "amount_in": str(self.amount_in),
            "expected_out": str(self.expected_out),
            "realized_out": str(self.realized_out),
            "slippage_pct": str(self.slippage_pct),
            "gas_fee": str(self.gas_fee),
            "gross_profit": str(self.gross_profit),
            "net_profit": str(self.net_profit),
            "successful": self.successful,
            "reason": self.reason.value if self.reason else None,
        }
