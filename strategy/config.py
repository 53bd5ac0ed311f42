"""
strategy/config.py - Scan configuration.

Nested dataclasses loaded from YAML, with secrets and endpoints taken from
the environment (.env is read through python-dotenv).
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from config import load_yaml, DEFAULT_CONFIG_FILE
from core.constants import (
    DEFAULT_BACKOFF_ERROR_THRESHOLD,
    DEFAULT_BACKOFF_MAX_SECONDS,
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BASE_ASSETS,
    DEFAULT_EMPTY_QUEUE_RETRY_SECONDS,
    DEFAULT_GAS_COST_PER_HOP,
    DEFAULT_HOP_POOL_SIZES,
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_MAX_HOPS,
    DEFAULT_MIN_PROFIT_THRESHOLD,
    DEFAULT_OPPORTUNITY_TTL_SECONDS,
    DEFAULT_QUOTE_TIMEOUT_SECONDS,
    DEFAULT_REGISTRY_CACHE_TTL_SECONDS,
    DEFAULT_REQUESTS_PER_MINUTE,
    DEFAULT_SLIPPAGE_BPS,
    DEFAULT_STATS_INTERVAL_SECONDS,
    SOL_MINT,
)
from core.exceptions import ConfigError
from core.logging import get_logger
from core.math import safe_decimal

logger = get_logger(__name__)


@dataclass
class ArbitrageSettings:
    """What to scan and when a cycle counts as profitable."""

    source_asset: str = SOL_MINT
    source_symbol: str = "SOL"
    source_decimals: int = 9
    base_assets: list[str] = field(default_factory=lambda: list(DEFAULT_BASE_ASSETS))
    blacklist: list[str] = field(default_factory=list)

    # Fraction: 0.0005 = 0.05%
    min_profit_threshold: Decimal = DEFAULT_MIN_PROFIT_THRESHOLD
    max_trade_size: Decimal = Decimal("1.0")
    gas_buffer: Decimal = Decimal("0.01")
    slippage_bps: int = DEFAULT_SLIPPAGE_BPS

    max_hops: int = DEFAULT_MAX_HOPS
    max_candidates: int = DEFAULT_MAX_CANDIDATES
    hop_pool_sizes: dict[int, int] = field(default_factory=lambda: dict(DEFAULT_HOP_POOL_SIZES))

    gas_cost_per_hop: Decimal = DEFAULT_GAS_COST_PER_HOP
    opportunity_ttl_seconds: float = DEFAULT_OPPORTUNITY_TTL_SECONDS

    def trade_size(self, source_balance: Decimal) -> Decimal:
        """Largest trade the balance allows after keeping the gas buffer."""
        return min(source_balance - self.gas_buffer, self.max_trade_size)


@dataclass
class ScannerSettings:
    """Scheduler pacing, backoff and stats cadence."""

    requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    backoff_max_seconds: float = DEFAULT_BACKOFF_MAX_SECONDS
    backoff_error_threshold: int = DEFAULT_BACKOFF_ERROR_THRESHOLD
    stats_interval_seconds: float = DEFAULT_STATS_INTERVAL_SECONDS
    empty_queue_retry_seconds: float = DEFAULT_EMPTY_QUEUE_RETRY_SECONDS
    quote_timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS

    @property
    def request_delay_seconds(self) -> float:
        return 60.0 / self.requests_per_minute


@dataclass
class RegistrySettings:
    """Asset registry persistence and token-list sources."""

    state_dir: str = "data"
    snapshot_name: str = "tradable-tokens"
    cache_ttl_seconds: float = DEFAULT_REGISTRY_CACHE_TTL_SECONDS
    token_list_url: str = "https://token.jup.ag/all"
    top_tokens_url: str = "https://public-api.birdeye.so"
    top_tokens_limit: int = 50
    top_tokens_api_key: str | None = None
    refresh_max_attempts: int = 5


@dataclass
class QuoteSettings:
    """Quote API endpoint."""

    api_url: str = "https://quote-api.jup.ag/v6"
    timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS


@dataclass
class PaperTradingSettings:
    """Simulated execution parameters."""

    initial_balances: dict[str, Decimal] = field(
        default_factory=lambda: {SOL_MINT: Decimal("10")}
    )
    fee_asset: str = SOL_MINT
    gas_fee: Decimal = Decimal("0.00005")  # per hop
    simulate_gas: bool = True
    charge_gas_on_failure: bool = True
    slippage_variation_pct: Decimal = Decimal("0.1")
    success_rate: float = 0.95
    latency_ms: int = 300
    seed: int | None = None


@dataclass
class ReportingSettings:
    output_dir: str = "reports"
    report_interval_seconds: float = 3600.0


@dataclass
class ScanConfig:
    """Full CycleScan configuration."""

    arbitrage: ArbitrageSettings = field(default_factory=ArbitrageSettings)
    scanner: ScannerSettings = field(default_factory=ScannerSettings)
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    quote: QuoteSettings = field(default_factory=QuoteSettings)
    paper_trading: PaperTradingSettings = field(default_factory=PaperTradingSettings)
    reporting: ReportingSettings = field(default_factory=ReportingSettings)

    def validate(self) -> "ScanConfig":
        """
        Reject settings the scanner cannot run with.

        Raises:
            ConfigError: first invalid field found
        """
        arb = self.arbitrage
        if not arb.source_asset:
            raise ConfigError("arbitrage.source_asset is required")
        if arb.min_profit_threshold < 0:
            raise ConfigError("arbitrage.min_profit_threshold must be >= 0")
        if arb.max_trade_size <= 0:
            raise ConfigError("arbitrage.max_trade_size must be > 0")
        if arb.max_hops < 2:
            raise ConfigError("arbitrage.max_hops must be >= 2")
        if arb.max_candidates < 1:
            raise ConfigError("arbitrage.max_candidates must be >= 1")
        if not 0 <= arb.slippage_bps <= 10_000:
            raise ConfigError("arbitrage.slippage_bps must be within 0..10000")
        if arb.gas_buffer < 0 or arb.gas_cost_per_hop < 0:
            raise ConfigError("arbitrage.gas_buffer and gas_cost_per_hop must be >= 0")

        scan = self.scanner
        if scan.requests_per_minute <= 0:
            raise ConfigError("scanner.requests_per_minute must be > 0")
        if scan.max_concurrent < 1:
            raise ConfigError("scanner.max_concurrent must be >= 1")
        if scan.backoff_multiplier < 1:
            raise ConfigError("scanner.backoff_multiplier must be >= 1")

        paper = self.paper_trading
        if not 0 <= paper.success_rate <= 1:
            raise ConfigError("paper_trading.success_rate must be within 0..1")
        if paper.gas_fee < 0:
            raise ConfigError("paper_trading.gas_fee must be >= 0")
        if paper.slippage_variation_pct < 0:
            raise ConfigError("paper_trading.slippage_variation_pct must be >= 0")
        if any(v < 0 for v in paper.initial_balances.values()):
            raise ConfigError("paper_trading.initial_balances must be non-negative")

        return self


# =============================================================================
# LOADING
# =============================================================================

def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return section


def _scalar_type(annotation: Any) -> type | None:
    if annotation in (int, float, bool):
        return annotation
    if annotation == int | None:
        return int
    return None


def _coerce_scalar(owner: str, key: str, value: Any, expected: type) -> Any:
    """Convert a YAML scalar to the field's type or raise ConfigError."""
    error = ConfigError(
        f"{owner}.{key} must be {expected.__name__}, got {value!r}",
        details={"field": f"{owner}.{key}"},
    )
    if isinstance(value, bool) != (expected is bool):
        raise error
    if expected is bool:
        return value
    try:
        converted = expected(value)
    except (TypeError, ValueError) as e:
        raise error from e
    if expected is int and isinstance(value, float) and converted != value:
        raise error
    return converted


def _build(cls, values: dict[str, Any], decimals: tuple[str, ...] = ()):
    """Instantiate a settings dataclass, converting money fields to Decimal."""
    known = cls.__dataclass_fields__
    unknown = set(values) - set(known)
    if unknown:
        raise ConfigError(f"Unknown {cls.__name__} fields: {sorted(unknown)}")
    kwargs = {}
    for key, value in values.items():
        if key in decimals and value is not None:
            value = safe_decimal(value, default=Decimal("-1"))
        else:
            expected = _scalar_type(known[key].type)
            if expected is not None and value is not None:
                value = _coerce_scalar(cls.__name__, key, value, expected)
        kwargs[key] = value
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigError(f"Invalid {cls.__name__}: {e}") from e


def _apply_env_overrides(config: ScanConfig) -> None:
    """Secrets and endpoints come from the environment."""
    if os.getenv("QUOTE_API_URL"):
        config.quote.api_url = os.environ["QUOTE_API_URL"]
    if os.getenv("TOKEN_LIST_URL"):
        config.registry.token_list_url = os.environ["TOKEN_LIST_URL"]
    if os.getenv("BIRDEYE_API_KEY"):
        config.registry.top_tokens_api_key = os.environ["BIRDEYE_API_KEY"]
    if os.getenv("PAPER_TRADING_SEED"):
        try:
            config.paper_trading.seed = int(os.environ["PAPER_TRADING_SEED"])
        except ValueError as e:
            raise ConfigError("PAPER_TRADING_SEED must be an integer") from e


def parse_scan_config(data: dict[str, Any]) -> ScanConfig:
    """Build and validate a ScanConfig from a parsed YAML mapping."""
    arb_data = dict(_section(data, "arbitrage"))
    if "hop_pool_sizes" in arb_data:
        try:
            arb_data["hop_pool_sizes"] = {
                int(k): int(v) for k, v in (arb_data["hop_pool_sizes"] or {}).items()
            }
        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigError(
                f"arbitrage.hop_pool_sizes must map hop counts to pool sizes: {e}"
            ) from e

    paper_data = dict(_section(data, "paper_trading"))
    if "initial_balances" in paper_data:
        paper_data["initial_balances"] = {
            str(k): safe_decimal(v, default=Decimal("-1"))
            for k, v in (paper_data["initial_balances"] or {}).items()
        }

    config = ScanConfig(
        arbitrage=_build(
            ArbitrageSettings,
            arb_data,
            decimals=("min_profit_threshold", "max_trade_size", "gas_buffer", "gas_cost_per_hop"),
        ),
        scanner=_build(ScannerSettings, _section(data, "scanner")),
        registry=_build(RegistrySettings, _section(data, "registry")),
        quote=_build(QuoteSettings, _section(data, "quote")),
        paper_trading=_build(
            PaperTradingSettings,
            paper_data,
            decimals=("gas_fee", "slippage_variation_pct"),
        ),
        reporting=_build(ReportingSettings, _section(data, "reporting")),
    )
    _apply_env_overrides(config)
    return config.validate()


def load_scan_config(config_path: Path | str | None = None) -> ScanConfig:
    """
    Load scan configuration from YAML file.

    Args:
        config_path: Path to a YAML file (default: bundled config/scanner.yaml)

    Returns:
        Validated ScanConfig

    Raises:
        ConfigError: missing file, bad YAML, unknown or invalid fields
    """
    load_dotenv()
    data = load_yaml(str(config_path) if config_path else DEFAULT_CONFIG_FILE)
    config = parse_scan_config(data)
    logger.info(
        f"Loaded scan config (source={config.arbitrage.source_symbol}, "
        f"max_hops={config.arbitrage.max_hops})",
        extra={"context": {"path": str(config_path or DEFAULT_CONFIG_FILE)}},
    )
    return config
