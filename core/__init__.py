"""
core - Core utilities and models for CycleScan.

This package contains:
- models.py: Data models (TokenInfo, Cycle, Opportunity, TradeRecord)
- constants.py: Enums, defaults and well-known assets
- exceptions.py: Typed exceptions with error codes
- math.py: Smallest-unit conversions and Decimal helpers
- time.py: Timestamps and freshness
- logging.py: Structured JSON logging
"""

from core.constants import AssetStatus, ErrorCode, TradeFailureReason
from core.exceptions import (
    AssetNotTradableError,
    ConfigError,
    CycleScanError,
    InfraError,
    NoRouteError,
    QuoteError,
    QuoteTimeoutError,
    RateLimitError,
    StorageError,
    TokenListError,
)
from core.logging import get_logger, setup_logging
from core.models import (
    Cycle,
    HopQuote,
    Opportunity,
    QueueEntry,
    TokenInfo,
    TradeRecord,
)

__all__ = [
    # Constants
    "AssetStatus",
    "ErrorCode",
    "TradeFailureReason",
    # Exceptions
    "AssetNotTradableError",
    "ConfigError",
    "CycleScanError",
    "InfraError",
    "NoRouteError",
    "QuoteError",
    "QuoteTimeoutError",
    "RateLimitError",
    "StorageError",
    "TokenListError",
    # Models
    "Cycle",
    "HopQuote",
    "Opportunity",
    "QueueEntry",
    "TokenInfo",
    "TradeRecord",
    # Logging
    "get_logger",
    "setup_logging",
]
