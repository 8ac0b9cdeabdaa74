"""
test_policy.py - Unit tests for the collateralization policy

Tests:
- collateral_value / borrow_value
- is_healthy: threshold boundary, hypothetical withdrawal, debt-free positions
- can_borrow: collateral ratio boundary on total post-borrow debt
- health_factor, max_borrowable, max_withdrawable, position_status
- Property tests: max_borrowable / max_withdrawable are exact bounds
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lending import (
    Account, PoolParameters, UNIT, MAX_HEALTH_FACTOR,
    POSITION_STATUS_NO_DEBT, POSITION_STATUS_HEALTHY, POSITION_STATUS_LIQUIDATABLE,
    Underflow,
    collateral_value, borrow_value, is_healthy, can_borrow, health_factor,
    max_borrowable, max_withdrawable, position_status,
)


def position(collateral, borrows=0):
    return Account(deposits=collateral, collateral=collateral, borrows=borrows)


# =============================================================================
# VALUATION
# =============================================================================

class TestValuation:
    """collateral_value and borrow_value."""

    def test_collateral_value_scales_with_price(self):
        assert collateral_value(position(10 * UNIT), UNIT) == 10 * UNIT
        assert collateral_value(position(10 * UNIT), 2 * UNIT) == 20 * UNIT
        assert collateral_value(position(10 * UNIT), UNIT // 2) == 5 * UNIT

    def test_collateral_value_floors(self):
        assert collateral_value(position(3), UNIT // 2) == 1

    def test_debt_valued_at_par(self):
        assert borrow_value(position(10 * UNIT, 8 * UNIT)) == 8 * UNIT


# =============================================================================
# HEALTH
# =============================================================================

class TestIsHealthy:
    """Liquidation threshold checks."""

    def test_examples(self):
        acct = position(10 * UNIT, 8 * UNIT)
        assert is_healthy(acct, UNIT)
        assert not is_healthy(acct, 9 * UNIT // 10)

    def test_exact_threshold_is_healthy(self):
        """Collateral worth exactly 120% of the debt is still healthy."""
        acct = position(12 * UNIT, 10 * UNIT)
        assert is_healthy(acct, UNIT)
        assert not is_healthy(acct, UNIT - 1)

    def test_no_debt_always_healthy(self):
        assert is_healthy(position(0), 1)
        assert is_healthy(position(10 * UNIT), 1, hypothetical_withdrawal=10 * UNIT)

    def test_hypothetical_withdrawal(self):
        acct = position(10 * UNIT, 5 * UNIT)
        assert is_healthy(acct, UNIT, 4 * UNIT)
        assert not is_healthy(acct, UNIT, 4 * UNIT + 1)

    def test_withdrawal_beyond_collateral(self):
        with pytest.raises(Underflow):
            is_healthy(position(UNIT, 1), UNIT, UNIT + 1)

    def test_custom_threshold(self, strict_parameters):
        acct = position(15 * UNIT, 10 * UNIT)
        assert is_healthy(acct, UNIT, params=strict_parameters)
        assert not is_healthy(acct, UNIT - 1, params=strict_parameters)


class TestCanBorrow:
    """Collateral ratio checks."""

    def test_examples(self):
        acct = position(10 * UNIT)
        assert can_borrow(acct, UNIT, 6 * UNIT)
        assert not can_borrow(acct, UNIT, 7 * UNIT)

    def test_ratio_applies_to_total_debt(self):
        """Existing debt counts against the ratio."""
        acct = position(15 * UNIT, 9 * UNIT)
        assert can_borrow(acct, UNIT, UNIT)
        assert not can_borrow(acct, UNIT, UNIT + 1)

    def test_price_increase_raises_capacity(self):
        acct = position(10 * UNIT, 6 * UNIT)
        assert not can_borrow(acct, UNIT, UNIT)
        assert can_borrow(acct, 2 * UNIT, 7 * UNIT)

    def test_no_collateral(self):
        assert not can_borrow(position(0), UNIT, 1)


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class TestDerivedViews:
    """health_factor, max_borrowable, max_withdrawable, position_status."""

    def test_health_factor(self):
        acct = position(10 * UNIT, 6 * UNIT)
        assert health_factor(acct, UNIT) == 166
        assert health_factor(acct, 2 * UNIT) == 333

    def test_health_factor_without_debt(self):
        assert health_factor(position(10 * UNIT), UNIT) == MAX_HEALTH_FACTOR

    def test_max_borrowable(self):
        assert max_borrowable(position(15 * UNIT), UNIT) == 10 * UNIT
        assert max_borrowable(position(15 * UNIT, 4 * UNIT), UNIT) == 6 * UNIT

    def test_max_borrowable_never_negative(self):
        assert max_borrowable(position(10 * UNIT, 8 * UNIT), UNIT // 2) == 0

    def test_max_withdrawable(self):
        assert max_withdrawable(position(10 * UNIT, 5 * UNIT), UNIT) == 4 * UNIT

    def test_max_withdrawable_without_debt(self):
        assert max_withdrawable(position(7 * UNIT), UNIT) == 7 * UNIT

    def test_max_withdrawable_underwater(self):
        assert max_withdrawable(position(10 * UNIT, 8 * UNIT), UNIT // 2) == 0

    def test_position_status(self):
        assert position_status(position(10 * UNIT), UNIT) == POSITION_STATUS_NO_DEBT
        assert position_status(position(10 * UNIT, 8 * UNIT), UNIT) == POSITION_STATUS_HEALTHY
        assert position_status(position(10 * UNIT, 8 * UNIT), UNIT // 2) == POSITION_STATUS_LIQUIDATABLE

    def test_parameters_are_respected(self, strict_parameters):
        assert max_borrowable(position(20 * UNIT), UNIT, strict_parameters) == 10 * UNIT


# =============================================================================
# PROPERTIES
# =============================================================================

amounts = st.integers(min_value=1, max_value=10 ** 30)
prices = st.integers(min_value=1, max_value=10 ** 22)


class TestPolicyProperties:
    """The derived bounds agree exactly with the checks they summarize."""

    @given(collateral=amounts, borrows=st.integers(min_value=0, max_value=10 ** 30), price=prices)
    @settings(max_examples=200)
    def test_max_borrowable_is_exact(self, collateral, borrows, price):
        acct = position(collateral, borrows)
        limit = max_borrowable(acct, price)
        if limit > 0:
            assert can_borrow(acct, price, limit)
        assert not can_borrow(acct, price, limit + 1)

    @given(collateral=amounts, borrows=amounts, price=prices)
    @settings(max_examples=200)
    def test_max_withdrawable_is_exact(self, collateral, borrows, price):
        acct = position(collateral, borrows)
        limit = max_withdrawable(acct, price)
        if is_healthy(acct, price):
            assert is_healthy(acct, price, limit)
        else:
            assert limit == 0
        if limit < collateral:
            assert not is_healthy(acct, price, limit + 1)

    @given(collateral=amounts, borrows=amounts, price=prices)
    @settings(max_examples=200)
    def test_borrowable_positions_are_healthy(self, collateral, borrows, price):
        """Anything the collateral ratio admits is above the liquidation threshold."""
        acct = position(collateral, 0)
        if can_borrow(acct, price, borrows):
            assert is_healthy(position(collateral, borrows), price)
