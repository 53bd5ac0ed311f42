# PATH: core/exceptions.py
"""
Typed exceptions for CycleScan.

Transient provider errors (rate limit, timeout) feed the scheduler backoff,
permanent ones (asset not tradable) change registry state, configuration and
storage errors are fatal at start-up.
"""

from typing import Optional

from core.constants import ErrorCode


class CycleScanError(Exception):
    """Base exception for CycleScan."""

    default_code = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str = "",
        code: Optional[ErrorCode] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigError(CycleScanError):
    """Invalid or missing configuration."""
    default_code = ErrorCode.CONFIG_INVALID


class StorageError(CycleScanError):
    """Persisted state could not be read or written."""
    default_code = ErrorCode.STORAGE_CORRUPT


class InfraError(CycleScanError):
    """Infrastructure-related errors (HTTP failures, unreachable services)."""
    default_code = ErrorCode.INFRA_HTTP_ERROR


class TokenListError(InfraError):
    """Token list could not be fetched or parsed."""
    default_code = ErrorCode.TOKEN_LIST_FAILED


# =============================================================================
# QUOTE PROVIDER ERRORS
# =============================================================================

class QuoteError(CycleScanError):
    """Quote provider failure not covered by a more specific type."""
    default_code = ErrorCode.QUOTE_FAILED


class NoRouteError(QuoteError):
    """Provider has no route between the two assets."""
    default_code = ErrorCode.QUOTE_NO_ROUTE


class AssetNotTradableError(QuoteError):
    """
    Provider refuses one of the assets.

    `asset` is the offending identifier when the provider names it, else None.
    """
    default_code = ErrorCode.QUOTE_ASSET_NOT_TRADABLE

    def __init__(
        self,
        message: str = "",
        asset: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.asset = asset


class RateLimitError(QuoteError):
    """Provider rate limit exceeded."""
    default_code = ErrorCode.QUOTE_RATE_LIMITED


class QuoteTimeoutError(QuoteError):
    """Quote call exceeded its timeout."""
    default_code = ErrorCode.QUOTE_TIMEOUT
