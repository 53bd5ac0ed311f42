# PATH: monitoring/report.py
"""
Report persistence for scan runs.

Layout under the output directory:
    opportunities/opportunity_{stamp}_{symbols}.json   one per profitable verdict
    trades.jsonl                                       paper trades, appended
    paper_report_{stamp}.json                          periodic and final reports
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List

from core.constants import MAX_TRACKED_OPPORTUNITIES, STABLECOIN_SYMBOLS
from core.format_money import format_money
from core.logging import get_logger
from core.math import from_smallest_unit
from core.models import Opportunity, TradeRecord
from core.time import file_stamp, now_iso

logger = get_logger(__name__)

SCHEMA_VERSION = "1.0.0"
INSIGHTS_TOP_N = 5


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


@dataclass
class PaperReport:
    """Point-in-time paper run report."""
    balances: Dict[str, str]
    metrics: Dict[str, Any]
    scan_stats: Dict[str, Any] = field(default_factory=dict)
    top_opportunities: List[Dict[str, Any]] = field(default_factory=list)
    trades: List[Dict[str, Any]] = field(default_factory=list)
    insights: str = ""
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "timestamp": self.timestamp,
            "balances": self.balances,
            "metrics": self.metrics,
            "scan_stats": self.scan_stats,
            "top_opportunities": self.top_opportunities,
            "trades": self.trades,
            "insights": self.insights,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=_json_default)


def build_insights(opportunities: Iterable[Opportunity]) -> str:
    """Short text summary of the best opportunities found."""
    ranked = sorted(opportunities, key=lambda o: o.net_profit_pct, reverse=True)
    if not ranked:
        return "No profitable opportunities found."

    lines = [f"Top {min(INSIGHTS_TOP_N, len(ranked))} opportunities:"]
    for i, opp in enumerate(ranked[:INSIGHTS_TOP_N], 1):
        profit = from_smallest_unit(opp.net_profit, opp.source_decimals)
        stable = " [stablecoin route]" if any(s in STABLECOIN_SYMBOLS for s in opp.symbols) else ""
        lines.append(
            f"  {i}. {opp.route_label}: {opp.net_profit_pct:.4f}% "
            f"(net {format_money(profit, 9)}){stable}"
        )

    avg_hops = sum(o.cycle.hops for o in ranked) / len(ranked)
    lines.append(f"Average path length: {avg_hops:.2f} hops over {len(ranked)} opportunities")
    return "\n".join(lines)


class ReportWriter:
    """
    Opportunity sink and report persistence.

    Keeps the best opportunities in memory (by net profit %) for reports.
    """

    def __init__(self, output_dir: Path | str, max_tracked: int = MAX_TRACKED_OPPORTUNITIES):
        self.output_dir = Path(output_dir)
        self.opportunities_dir = self.output_dir / "opportunities"
        self.trades_file = self.output_dir / "trades.jsonl"
        self.max_tracked = max_tracked
        self.opportunities_dir.mkdir(parents=True, exist_ok=True)
        self._top: List[Opportunity] = []

    @property
    def top_opportunities(self) -> List[Opportunity]:
        return list(self._top)

    def on_opportunity(self, opportunity: Opportunity) -> Path | None:
        """Persist one opportunity and track it. Write failures are logged."""
        self._top.append(opportunity)
        self._top.sort(key=lambda o: o.net_profit_pct, reverse=True)
        del self._top[self.max_tracked:]

        symbols = "-".join(opportunity.symbols)
        path = self.opportunities_dir / f"opportunity_{file_stamp(opportunity.timestamp)}_{symbols}.json"
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(opportunity.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save opportunity: {e}", extra={"context": {"path": str(path)}})
            return None
        return path

    def on_trade(self, trade: TradeRecord) -> None:
        try:
            with open(self.trades_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(trade.to_dict()) + "\n")
        except OSError as e:
            logger.error(f"Failed to append trade: {e}")

    def build_report(
        self,
        balances: Dict[str, Decimal],
        metrics: Dict[str, Any],
        trades: Iterable[TradeRecord] = (),
        scan_stats: Dict[str, Any] | None = None,
    ) -> PaperReport:
        return PaperReport(
            balances={asset: str(amount) for asset, amount in balances.items()},
            metrics=metrics,
            scan_stats=scan_stats or {},
            top_opportunities=[o.to_dict() for o in self._top],
            trades=[t.to_dict() for t in trades],
            insights=build_insights(self._top),
        )

    def save_report(self, report: PaperReport) -> Path | None:
        """Write a timestamped JSON report. Write failures are logged."""
        path = self.output_dir / f"paper_report_{file_stamp()}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(report.to_json())
        except OSError as e:
            logger.error(f"Failed to save paper report: {e}", extra={"context": {"path": str(path)}})
            return None
        logger.info(f"Paper report saved: {path}")
        return path
