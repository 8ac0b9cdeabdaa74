"""
conftest.py - Shared pytest fixtures for lending pool tests

Provides common fixtures used across unit, conformance and functional tests:
- Basic pools (empty, funded with outside liquidity)
- Positions (a borrower at a known ratio)
- Parameter sets
"""

import pytest

from lending import WalletBook, PoolParameters, UNIT
from tests.helpers import make_pool


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def book():
    """Fresh in-memory transfer capability."""
    return WalletBook()


@pytest.fixture
def pool(book):
    """Empty pool at the default price."""
    return make_pool(book)


@pytest.fixture
def funded_pool(pool):
    """Pool holding 100 units of liquidity from a liquidity provider."""
    pool.deposit("lp", 100 * UNIT)
    return pool


@pytest.fixture
def borrower_pool(funded_pool):
    """Funded pool where alice has 10 collateral and 6 debt at price 1.0."""
    funded_pool.deposit("alice", 10 * UNIT)
    funded_pool.borrow("alice", 6 * UNIT)
    return funded_pool


@pytest.fixture
def distressed_pool(funded_pool):
    """
    Funded pool where alice has 10 collateral and 8 debt, borrowed at
    price 2.0, and the price has since dropped to 0.9 (health factor 112).
    """
    funded_pool.update_price("oracle", 2 * UNIT)
    funded_pool.deposit("alice", 10 * UNIT)
    funded_pool.borrow("alice", 8 * UNIT)
    funded_pool.update_price("oracle", 9 * UNIT // 10)
    return funded_pool


@pytest.fixture
def strict_parameters():
    """Parameters with a tighter collateral ratio and a larger bonus."""
    return PoolParameters(collateral_ratio=200, liquidation_threshold=150, liquidation_bonus=20)
