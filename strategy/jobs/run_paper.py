#!/usr/bin/env python3
"""
strategy/jobs/run_paper.py - CLI entrypoint for continuous paper scanning.

Usage:
    python -m strategy.jobs.run_paper
    python -m strategy.jobs.run_paper --duration 3600 --log-level DEBUG
    python -m strategy.jobs.run_paper --smoke --duration 30   # no network
"""

import asyncio
import random
import signal
import sys
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Awaitable, Callable

import click

from core.backoff import BackoffPolicy
from core.constants import BONK_MINT, DEFAULT_TOP_TOKENS, USDC_MINT, USDT_MINT
from core.exceptions import ConfigError, CycleScanError
from core.format_money import format_money, format_pct
from core.logging import get_logger, setup_logging, set_global_context
from core.math import to_smallest_unit
from core.models import Opportunity, TokenInfo
from core.time import file_stamp
from dex.adapters.jupiter import JupiterQuoteClient
from dex.adapters.simulated import SimulatedQuoteProvider
from dex.quote_provider import QuoteProvider
from discovery.registry import AssetRegistry, RegistryRefresher
from discovery.routes import RouteGenerator
from discovery.storage import JsonFileStore, MemoryStore, SnapshotStore
from discovery.token_list import TokenListClient, TopTokenFetcher
from monitoring.report import ReportWriter
from strategy.config import ScanConfig, load_scan_config
from strategy.evaluator import OpportunityEvaluator
from strategy.paper_trading import PaperLedger
from strategy.scheduler import ScanScheduler

logger = get_logger("cyclescan.paper")

# Registry refresh retries start here and grow with the scanner multiplier
REFRESH_BASE_DELAY_SECONDS = 2.0
REFRESH_MAX_DELAY_SECONDS = 60.0


# =============================================================================
# ENVIRONMENTS
# =============================================================================

@dataclass
class RunEnvironment:
    """External collaborators for one run."""
    provider: QuoteProvider
    store: SnapshotStore
    fetch_canonical: Callable[[], Awaitable[list[TokenInfo]]]
    fetch_ranking: Callable[[], Awaitable[list[TokenInfo]]]
    closers: list[Callable[[], Awaitable[None]]]


def smoke_rates(source_asset: str) -> dict[tuple[str, str], Decimal]:
    """
    Fixed rates with one profitable 2-hop cycle (via USDC) and losing ones
    via USDT and USDC -> USDT.
    """
    return {
        (source_asset, USDC_MINT): Decimal("150"),
        (USDC_MINT, source_asset): Decimal("0.0067114094"),   # 1/149
        (source_asset, USDT_MINT): Decimal("150"),
        (USDT_MINT, source_asset): Decimal("0.0066445183"),   # 1/150.5
        (USDC_MINT, USDT_MINT): Decimal("0.999"),
        (USDT_MINT, USDC_MINT): Decimal("0.999"),
        (source_asset, BONK_MINT): Decimal("6000000"),
        (BONK_MINT, source_asset): Decimal("0.0000001650"),
    }


def build_smoke_environment(config: ScanConfig) -> RunEnvironment:
    tokens = [TokenInfo.from_dict(t) for t in DEFAULT_TOP_TOKENS]
    decimals = {t.address: t.decimals for t in tokens}
    decimals[config.arbitrage.source_asset] = config.arbitrage.source_decimals

    async def fetch_tokens() -> list[TokenInfo]:
        return list(tokens)

    return RunEnvironment(
        provider=SimulatedQuoteProvider(smoke_rates(config.arbitrage.source_asset), decimals),
        store=MemoryStore(),
        fetch_canonical=fetch_tokens,
        fetch_ranking=fetch_tokens,
        closers=[],
    )


def build_live_environment(config: ScanConfig) -> RunEnvironment:
    reg = config.registry
    quote_client = JupiterQuoteClient(config.quote.api_url, config.quote.timeout_seconds)
    token_client = TokenListClient(reg.token_list_url)
    top_fetcher = TopTokenFetcher(
        base_url=reg.top_tokens_url,
        api_key=reg.top_tokens_api_key,
        cache_dir=reg.state_dir,
    )

    async def fetch_ranking() -> list[TokenInfo]:
        return await top_fetcher.fetch_top_tokens(reg.top_tokens_limit)

    return RunEnvironment(
        provider=quote_client,
        store=JsonFileStore(reg.state_dir),
        fetch_canonical=token_client.fetch_canonical,
        fetch_ranking=fetch_ranking,
        closers=[quote_client.close, token_client.close],
    )


# =============================================================================
# RUN
# =============================================================================

def _install_signal_handlers(scheduler: ScanScheduler) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except (NotImplementedError, RuntimeError):
            signal.signal(sig, lambda signum, frame: scheduler.stop())


async def _report_loop(
    scheduler: ScanScheduler,
    ledger: PaperLedger,
    writer: ReportWriter,
    interval_seconds: float,
    symbol: str,
) -> None:
    while not scheduler.stopping:
        await asyncio.sleep(interval_seconds)
        report = writer.build_report(ledger.balances, ledger.get_performance_metrics(), ledger.trades)
        writer.save_report(report)
        logger.info("\n" + ledger.generate_report(symbol))


async def run_paper(
    config: ScanConfig,
    duration_seconds: float | None = None,
    output_dir: Path | str | None = None,
    smoke: bool = False,
    rng: random.Random | None = None,
    install_signals: bool = True,
) -> dict[str, Any]:
    """
    Wire all components and scan until stopped.

    Returns:
        Summary with final metrics, scan stats and the report path

    Raises:
        ConfigError: non-positive trade size
        StorageError: persisted registry snapshot is corrupt
    """
    arb = config.arbitrage
    env = build_smoke_environment(config) if smoke else build_live_environment(config)

    registry = AssetRegistry(
        source_asset=arb.source_asset,
        store=env.store,
        base_assets=arb.base_assets,
        blacklist=arb.blacklist,
        cache_ttl_seconds=config.registry.cache_ttl_seconds,
        snapshot_name=config.registry.snapshot_name,
    )
    registry.load()
    registry.register(TokenInfo(arb.source_asset, arb.source_symbol, arb.source_symbol, arb.source_decimals))

    top_tokens = await env.fetch_ranking()
    registry.register_many(top_tokens)
    ranking = [t.address for t in top_tokens]

    ledger = PaperLedger(
        source_asset=arb.source_asset,
        settings=config.paper_trading,
        opportunity_ttl_seconds=arb.opportunity_ttl_seconds,
        rng=rng,
    )

    if arb.trade_size(ledger.balance_of(arb.source_asset)) <= 0:
        raise ConfigError(
            "Trade size is not positive: source balance does not cover the gas buffer",
            details={"balance": str(ledger.balance_of(arb.source_asset)), "gas_buffer": str(arb.gas_buffer)},
        )

    def amount_in() -> int:
        size = arb.trade_size(ledger.balance_of(arb.source_asset))
        return to_smallest_unit(max(size, Decimal("0")), arb.source_decimals)

    evaluator = OpportunityEvaluator(
        provider=env.provider,
        registry=registry,
        source_decimals=arb.source_decimals,
        min_profit_threshold=arb.min_profit_threshold,
        gas_cost_per_hop=arb.gas_cost_per_hop,
        slippage_bps=arb.slippage_bps,
        quote_timeout_seconds=config.scanner.quote_timeout_seconds,
    )
    refresher = RegistryRefresher(
        registry,
        env.fetch_canonical,
        BackoffPolicy(
            base_delay=REFRESH_BASE_DELAY_SECONDS,
            multiplier=config.scanner.backoff_multiplier,
            max_delay=REFRESH_MAX_DELAY_SECONDS,
            error_threshold=0,
        ),
        max_attempts=config.registry.refresh_max_attempts,
    )
    scheduler = ScanScheduler(
        registry=registry,
        generator=RouteGenerator(arb.max_candidates, arb.hop_pool_sizes),
        evaluator=evaluator,
        source_asset=arb.source_asset,
        amount_in=amount_in,
        max_hops=arb.max_hops,
        settings=config.scanner,
        refresher=refresher,
        ranking=lambda: ranking,
    )

    writer = ReportWriter(output_dir or config.reporting.output_dir)

    async def on_opportunity(opportunity: Opportunity) -> None:
        writer.on_opportunity(opportunity)
        trade = await ledger.execute(opportunity)
        writer.on_trade(trade)

    scheduler.add_opportunity_listener(on_opportunity)

    if install_signals:
        _install_signal_handlers(scheduler)

    report_task = asyncio.create_task(
        _report_loop(
            scheduler, ledger, writer, config.reporting.report_interval_seconds, arb.source_symbol
        )
    )
    try:
        stats = await scheduler.run(duration_seconds)
    finally:
        report_task.cancel()
        await asyncio.gather(report_task, return_exceptions=True)
        for close in env.closers:
            await close()

    metrics = ledger.get_performance_metrics()
    report = writer.build_report(ledger.balances, metrics, ledger.trades, scan_stats=stats.to_dict())
    report_path = writer.save_report(report)
    return {
        "metrics": metrics,
        "stats": stats.to_dict(),
        "report_path": str(report_path) if report_path else None,
        "insights": report.insights,
        "report_text": ledger.generate_report(arb.source_symbol),
    }


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="YAML config file (default: bundled config/scanner.yaml)",
)
@click.option(
    "--duration",
    "-d",
    default=None,
    type=float,
    help="Run duration in seconds (default: until interrupted)",
)
@click.option(
    "--log-level",
    "-l",
    default="INFO",
    envvar="LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (env: LOG_LEVEL)",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=False,
    help="Use JSON log format",
)
@click.option(
    "--output-dir",
    "-o",
    default=None,
    help="Report directory (default: reporting.output_dir from config)",
)
@click.option(
    "--smoke",
    is_flag=True,
    default=False,
    help="Use the simulated quote provider and in-memory registry (no network)",
)
def main(
    config_path: str | None,
    duration: float | None,
    log_level: str,
    json_logs: bool,
    output_dir: str | None,
    smoke: bool,
) -> None:
    """
    CycleScan paper trading.

    Continuously scans cyclic routes and simulates trades on profitable ones.
    """
    setup_logging(level=log_level, json_format=json_logs)
    set_global_context(service="cyclescan-paper", run_id=file_stamp(), smoke=smoke)

    try:
        config = load_scan_config(config_path)
        summary = asyncio.run(run_paper(config, duration, output_dir, smoke))
    except CycleScanError as e:
        logger.error(f"Fatal: {e}", extra={"context": e.to_dict()})
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Paper trading interrupted")
        return

    metrics = summary["metrics"]
    stats = summary["stats"]
    click.echo("\n" + "=" * 60)
    click.echo("CYCLESCAN PAPER SESSION SUMMARY")
    click.echo("=" * 60)
    click.echo(f"Routes scanned: {stats['total_scanned']}")
    click.echo(f"Opportunities: {stats['total_opportunities']}")
    click.echo(f"Provider errors: {stats['total_errors']}")
    click.echo(f"Trades: {metrics['total_trades']} ({metrics['successful_trades']} successful)")
    click.echo(f"Total profit: {format_money(metrics['total_profit'], 6)}")
    click.echo(f"Return: {format_pct(metrics['percent_return'], 4)}")
    click.echo(f"Report: {summary['report_path'] or 'not saved'}")
    click.echo("-" * 60)
    click.echo(summary["insights"])
    click.echo("=" * 60)


if __name__ == "__main__":
    main()
