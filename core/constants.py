# PATH: core/constants.py
"""
Constants for CycleScan.

Contains enums, defaults, and well-known asset identifiers.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, Final, List


# =============================================================================
# WELL-KNOWN ASSETS
# =============================================================================

SOL_MINT: Final[str] = "So11111111111111111111111111111111111111112"
USDC_MINT: Final[str] = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT: Final[str] = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
BONK_MINT: Final[str] = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"

# Always eligible as cycle members unless explicitly blacklisted
DEFAULT_BASE_ASSETS: List[str] = [USDC_MINT, USDT_MINT, BONK_MINT]

STABLECOIN_SYMBOLS: Final[frozenset] = frozenset({"USDC", "USDT", "DAI", "USDH", "UXD"})

# Fallback when the top-token ranking API is unavailable
DEFAULT_TOP_TOKENS: List[Dict] = [
    {"address": SOL_MINT, "symbol": "SOL", "name": "Wrapped SOL", "decimals": 9},
    {"address": USDC_MINT, "symbol": "USDC", "name": "USD Coin", "decimals": 6},
    {"address": USDT_MINT, "symbol": "USDT", "name": "USDT", "decimals": 6},
    {"address": BONK_MINT, "symbol": "BONK", "name": "Bonk", "decimals": 5},
    {"address": "jtojtomepa8beP8AuQc6eXt5FriJwfFMwQx2v2f9mCL", "symbol": "JTO", "name": "Jito", "decimals": 9},
    {"address": "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN", "symbol": "JUP", "name": "Jupiter", "decimals": 6},
    {"address": "HZ1JovNiVvGrGNiiYvEozEVgZ58xaU3RKwX8eACQBCt3", "symbol": "PYTH", "name": "Pyth Network", "decimals": 6},
    {"address": "rndrizKT3MK1iimdxRdWabcF7Zg7AR5T4nud4EkHBof", "symbol": "RNDR", "name": "Render Token", "decimals": 8},
    {"address": "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So", "symbol": "MSOL", "name": "Marinade staked SOL", "decimals": 9},
    {"address": "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R", "symbol": "RAY", "name": "Raydium", "decimals": 6},
]


# =============================================================================
# DEFAULTS
# =============================================================================

# Request pacing: 40 requests per minute -> 1.5 s between requests
DEFAULT_REQUESTS_PER_MINUTE = 40
DEFAULT_MAX_CONCURRENT = 1

DEFAULT_BACKOFF_MULTIPLIER = 1.5
DEFAULT_BACKOFF_MAX_SECONDS = 10.0
DEFAULT_BACKOFF_ERROR_THRESHOLD = 3

# Priority multipliers applied after each evaluation
PRIORITY_PROFITABLE_MULTIPLIER = 1.5
PRIORITY_UNPROFITABLE_MULTIPLIER = 0.95
PRIORITY_ERROR_MULTIPLIER = 0.8
DEFAULT_PRIORITY = 1.0

DEFAULT_STATS_INTERVAL_SECONDS = 60.0
DEFAULT_EMPTY_QUEUE_RETRY_SECONDS = 5.0
DEFAULT_QUOTE_TIMEOUT_SECONDS = 10.0

DEFAULT_MAX_CANDIDATES = 50
DEFAULT_HOP_POOL_SIZES: Dict[int, int] = {3: 20, 4: 6}
DEFAULT_MAX_HOPS = 3

DEFAULT_MIN_PROFIT_THRESHOLD = Decimal("0.0005")  # 0.05%
DEFAULT_GAS_COST_PER_HOP = Decimal("0.00001")
DEFAULT_SLIPPAGE_BPS = 50

DEFAULT_REGISTRY_CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_OPPORTUNITY_TTL_SECONDS = 10.0

MAX_TRACKED_OPPORTUNITIES = 50


class AssetStatus(str, Enum):
    """Classification of an asset in the registry."""
    UNVERIFIED = "UNVERIFIED"
    VERIFIED = "VERIFIED"
    BLACKLISTED = "BLACKLISTED"


class ErrorCode(str, Enum):
    """Canonical error codes carried by CycleScanError."""
    UNKNOWN = "UNKNOWN"
    CONFIG_INVALID = "CONFIG_INVALID"
    STORAGE_CORRUPT = "STORAGE_CORRUPT"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"
    INFRA_HTTP_ERROR = "INFRA_HTTP_ERROR"
    TOKEN_LIST_FAILED = "TOKEN_LIST_FAILED"
    QUOTE_FAILED = "QUOTE_FAILED"
    QUOTE_NO_ROUTE = "QUOTE_NO_ROUTE"
    QUOTE_ASSET_NOT_TRADABLE = "QUOTE_ASSET_NOT_TRADABLE"
    QUOTE_RATE_LIMITED = "QUOTE_RATE_LIMITED"
    QUOTE_TIMEOUT = "QUOTE_TIMEOUT"


class TradeFailureReason(str, Enum):
    """Why a paper trade did not complete."""
    EXPIRED = "expired"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    SLIPPAGE_EXCEEDED = "simulated_slippage_exceeded"
    TRANSACTION_TIMEOUT = "simulated_transaction_timeout"
    INSUFFICIENT_LIQUIDITY = "simulated_insufficient_liquidity"
    ROUTE_CHANGED = "simulated_route_changed"


# Drawn uniformly when a simulated trade fails the success roll
SIMULATED_FAILURE_REASONS: List[TradeFailureReason] = [
    TradeFailureReason.SLIPPAGE_EXCEEDED,
    TradeFailureReason.TRANSACTION_TIMEOUT,
    TradeFailureReason.INSUFFICIENT_LIQUIDITY,
    TradeFailureReason.ROUTE_CHANGED,
]
