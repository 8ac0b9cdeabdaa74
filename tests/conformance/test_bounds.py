"""
Amount Bound Conformance Tests

INVARIANTS:

    repay(i, p), debt d > 0:
        debt after   == d - min(p, d)
        refunded     == max(0, p - d)
        a second repayment of a cleared debt fails with NoDebt

    liquidate(c, t, s), debt d, collateral k:
        reward       == min(d + d * bonus / 100, k) <= k
        refund       == s - d
        debt(t)      == 0 afterwards
        value paid to c == reward + refund
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lending import (
    PoolParameters, UNIT, NoDebt,
)
from tests.helpers import assert_invariants, make_pool


units = st.integers(min_value=1, max_value=10 ** 6)


class TestRepayBounds:
    """Repayment is capped at outstanding debt."""

    @given(debt=units, paid=units)
    @settings(max_examples=200, deadline=None)
    def test_repay_caps_and_refunds(self, debt, paid):
        """
        PROPERTY: debt drops by min(paid, debt); the excess comes back.
        """
        pool = make_pool()
        pool.deposit("alice", 2 * debt)
        pool.borrow("alice", debt)
        book = pool.transfer
        received_before = book.balance_of("alice")

        event = pool.repay("alice", paid)

        assert event.value == min(paid, debt)
        assert pool.get_account("alice").borrows == debt - min(paid, debt)
        assert book.balance_of("alice") - received_before == max(0, paid - debt)
        assert_invariants(pool)

    @given(debt=units, extra=st.integers(min_value=0, max_value=10 ** 6))
    @settings(max_examples=100, deadline=None)
    def test_cleared_debt_cannot_be_repaid_twice(self, debt, extra):
        """
        PROPERTY: once the debt is cleared, repaying again is rejected and
        nothing further is taken.
        """
        pool = make_pool()
        pool.deposit("alice", 2 * debt)
        pool.borrow("alice", debt)
        pool.repay("alice", debt + extra)
        liquidity = pool.liquidity

        with pytest.raises(NoDebt):
            pool.repay("alice", debt + extra)

        assert pool.liquidity == liquidity


class TestLiquidationBounds:
    """Liquidation moves exactly the quoted amounts."""

    @given(
        collateral=st.integers(min_value=1, max_value=1000),
        debt_ratio=st.integers(min_value=10, max_value=66),
        drop=st.integers(min_value=1, max_value=99),
        extra=st.integers(min_value=0, max_value=1000),
        bonus=st.integers(min_value=0, max_value=50),
    )
    @settings(max_examples=200, deadline=None)
    def test_liquidation_amounts(self, collateral, debt_ratio, drop, extra, bonus):
        """
        PROPERTY: the liquidator receives reward + refund, the reward never
        exceeds the target's collateral, and the debt is cleared.
        """
        pool = make_pool(parameters=PoolParameters(liquidation_bonus=bonus))
        book = pool.transfer
        pool.deposit("lp", 10 ** 6 * UNIT)
        collateral_amount = collateral * UNIT
        debt = collateral_amount * debt_ratio // 100
        pool.deposit("alice", collateral_amount)
        pool.borrow("alice", debt)
        pool.update_price("oracle", UNIT * drop // 100)
        if not pool.liquidatable_accounts():
            return

        deposits_before = pool.total_deposits
        supplied = debt + extra
        quote = pool.liquidate("keeper", "alice", supplied)

        assert quote.reward == min(debt + debt * bonus // 100, collateral_amount)
        assert quote.reward <= collateral_amount
        assert quote.refund == extra
        assert book.balance_of("keeper") == quote.reward + quote.refund
        assert pool.get_account("alice").borrows == 0
        assert pool.get_account("alice").collateral == collateral_amount - quote.reward
        assert pool.total_deposits == deposits_before - quote.reward
        assert_invariants(pool)

    def test_capped_reward_pays_all_collateral(self, funded_pool, book):
        funded_pool.update_price("oracle", 2 * UNIT)
        funded_pool.deposit("alice", 10 * UNIT)
        funded_pool.borrow("alice", 95 * UNIT // 10)
        funded_pool.update_price("oracle", UNIT)

        quote = funded_pool.liquidate("bob", "alice", 95 * UNIT // 10)

        assert quote.capped
        assert quote.reward == 10 * UNIT
        assert quote.shortfall == 0
        assert funded_pool.get_account("alice").is_empty()
        assert book.balance_of("bob") == quote.reward

    def test_shortfall_reported(self, funded_pool, book):
        """Debt larger than collateral is cleared; the gap is reported, not charged."""
        funded_pool.update_price("oracle", 2 * UNIT)
        funded_pool.deposit("alice", 10 * UNIT)
        funded_pool.borrow("alice", 12 * UNIT)
        funded_pool.update_price("oracle", UNIT)

        quote = funded_pool.liquidate("bob", "alice", 12 * UNIT)

        assert quote.reward == 10 * UNIT
        assert quote.shortfall == 2 * UNIT
        assert funded_pool.get_account("alice").is_empty()
        assert funded_pool.liquidity == 100 * UNIT + 10 * UNIT - 12 * UNIT + 12 * UNIT - 10 * UNIT
        assert_invariants(funded_pool)
