"""
dex/adapters/ - Quote provider implementations.

Adapters:
- jupiter: HTTP client for a Jupiter-style aggregator quote API
- simulated: deterministic fixed-rate provider for smoke runs and tests
"""

from dex.adapters.jupiter import JupiterQuoteClient
from dex.adapters.simulated import SimulatedQuoteProvider

__all__ = [
    "JupiterQuoteClient",
    "SimulatedQuoteProvider",
]
