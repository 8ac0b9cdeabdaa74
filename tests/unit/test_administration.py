"""
test_administration.py - Unit tests for owner and oracle administration

Tests:
- emergency_withdraw: owner only, sweeps liquidity, accounts untouched
- transfer_ownership / set_oracle: role rotation and events
- Authorization is checked before argument validation
"""

import pytest

from lending import (
    EventType, UNIT,
    Unauthorized, InvalidIdentity, TransferFailed,
)
from tests.helpers import assert_invariants


class TestEmergencyWithdraw:

    def test_sweep(self, borrower_pool, book):
        accounts_before = {i: borrower_pool.get_account(i) for i in borrower_pool.list_accounts()}
        event = borrower_pool.emergency_withdraw("owner")
        assert event.kind == EventType.EMERGENCY_WITHDRAW
        assert event.identity == "owner"
        assert event.value == 104 * UNIT
        assert borrower_pool.liquidity == 0
        assert book.balance_of("owner") == 104 * UNIT
        assert {i: borrower_pool.get_account(i) for i in borrower_pool.list_accounts()} == accounts_before
        assert_invariants(borrower_pool)

    def test_non_owner(self, funded_pool, book):
        with pytest.raises(Unauthorized):
            funded_pool.emergency_withdraw("lp")
        assert funded_pool.liquidity == 100 * UNIT
        assert book.balance_of("lp") == 0

    def test_empty_pool(self, pool, book):
        """Sweeping an empty pool records the event without a transfer."""
        event = pool.emergency_withdraw("owner")
        assert event.value == 0
        assert book.transfer_log == []

    def test_refused_by_owner(self, funded_pool, book):
        book.refuse("owner")
        with pytest.raises(TransferFailed):
            funded_pool.emergency_withdraw("owner")
        assert funded_pool.liquidity == 100 * UNIT
        assert funded_pool.get_events(EventType.EMERGENCY_WITHDRAW) == ()


class TestTransferOwnership:

    def test_rotation(self, pool, book):
        event = pool.transfer_ownership("owner", "treasury")
        assert event.kind == EventType.OWNERSHIP_TRANSFERRED
        assert event.identity == "owner"
        assert event.counterparty == "treasury"
        assert pool.owner == "treasury"
        with pytest.raises(Unauthorized):
            pool.emergency_withdraw("owner")
        pool.emergency_withdraw("treasury")

    def test_non_owner(self, pool):
        with pytest.raises(Unauthorized):
            pool.transfer_ownership("mallory", "mallory")
        assert pool.owner == "owner"

    def test_unauthorized_before_invalid_identity(self, pool):
        with pytest.raises(Unauthorized):
            pool.transfer_ownership("mallory", "")

    def test_blank_new_owner(self, pool):
        with pytest.raises(InvalidIdentity):
            pool.transfer_ownership("owner", "  ")
        assert pool.owner == "owner"

    def test_sweep_goes_to_current_owner(self, funded_pool, book):
        funded_pool.transfer_ownership("owner", "treasury")
        funded_pool.emergency_withdraw("treasury")
        assert book.balance_of("treasury") == 100 * UNIT
        assert book.balance_of("owner") == 0


class TestSetOracle:

    def test_rotation(self, pool):
        event = pool.set_oracle("owner", "chainlink")
        assert event.kind == EventType.ORACLE_UPDATED
        assert event.identity == "oracle"
        assert event.counterparty == "chainlink"
        with pytest.raises(Unauthorized):
            pool.update_price("oracle", 2 * UNIT)
        pool.update_price("chainlink", 2 * UNIT)
        assert pool.price == 2 * UNIT

    def test_oracle_cannot_rotate_itself(self, pool):
        with pytest.raises(Unauthorized):
            pool.set_oracle("oracle", "mallory")
        assert pool.oracle == "oracle"

    def test_blank_new_oracle(self, pool):
        with pytest.raises(InvalidIdentity):
            pool.set_oracle("owner", "")

    def test_owner_is_not_oracle(self, pool):
        with pytest.raises(Unauthorized):
            pool.update_price("owner", 2 * UNIT)
