"""
helpers.py - Assertion and construction helpers shared by the test suites
"""

from lending import LendingPool, WalletBook


def assert_invariants(pool: LendingPool) -> None:
    """Fail with the discrepancy list if any ledger invariant is broken."""
    result = pool.verify_invariants()
    assert result['valid'], result['discrepancies']
    for identity in pool.list_accounts():
        account = pool.get_account(identity)
        assert account.deposits == account.collateral, identity
    assert not pool.locked


def make_pool(book=None, **kwargs) -> LendingPool:
    """Create a quiet pool owned by 'owner' with 'oracle' as price oracle."""
    kwargs.setdefault("verbose", False)
    return LendingPool("owner", "oracle", book if book is not None else WalletBook(), **kwargs)
