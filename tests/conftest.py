# PATH: tests/conftest.py
"""
Pytest configuration and fixtures for CycleScan tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from discovery.registry import AssetRegistry  # noqa: E402
from discovery.storage import MemoryStore  # noqa: E402
from tests.helpers import (  # noqa: E402
    SRC,
    TOKEN_T,
    TOKEN_U,
    TOKEN_V,
    TOKEN_W,
    FakeClock,
    make_token,
)


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tokens():
    return [
        make_token(SRC, "SOL"),
        make_token(TOKEN_T, "TTT", 6),
        make_token(TOKEN_U, "UUU", 6),
        make_token(TOKEN_V, "VVV"),
        make_token(TOKEN_W, "WWW"),
    ]


@pytest.fixture
def registry(store, clock, tokens):
    """Registry with every test token verified through a canonical refresh."""
    reg = AssetRegistry(source_asset=SRC, store=store, clock=clock)
    reg.register_many(tokens)
    reg.refresh(tokens)
    return reg
