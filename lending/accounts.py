"""
accounts.py - Per-identity balances and pool-wide totals

AccountLedger is the only object that mutates Account records. It keeps:
    - deposits == collateral for every identity
    - total_deposits == sum(deposits), total_borrows == sum(borrows)

Every mutator uses checked arithmetic, so an impossible transition surfaces
as InvalidAmount / Underflow instead of a silently wrong balance.

The ledger can be sealed. Once sealed, any mutation raises
InvariantViolation: the pool seals it before issuing outward transfers so no
state change can slip in after an interaction.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Set, Tuple

from .core import (
    Account, EMPTY_ACCOUNT,
    InvariantViolation,
    checked_add, checked_sub,
)


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Immutable copy of ledger state, used for rollback and persistence."""
    accounts: Tuple[Tuple[str, Account], ...]
    total_deposits: int
    total_borrows: int


class AccountLedger:
    """
    Owner of every Account record and of the aggregate totals.

    Accounts are created on first credit and never removed; an account that
    has been fully withdrawn simply holds zeros.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self.total_deposits: int = 0
        self.total_borrows: int = 0
        self._sealed = False

    # ========================================================================
    # READ
    # ========================================================================

    def get(self, identity: str) -> Account:
        """Return the account of an identity, or an all-zero account."""
        return self._accounts.get(identity, EMPTY_ACCOUNT)

    def identities(self) -> Set[str]:
        return set(self._accounts)

    def __contains__(self, identity: str) -> bool:
        return identity in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)

    @property
    def sealed(self) -> bool:
        return self._sealed

    # ========================================================================
    # SEALING
    # ========================================================================

    def seal(self) -> None:
        """Forbid further mutation until unseal()."""
        self._sealed = True

    def unseal(self) -> None:
        self._sealed = False

    def _store(self, identity: str, account: Account) -> None:
        if self._sealed:
            raise InvariantViolation(
                f"ledger mutation for {identity} after outward transfers began"
            )
        self._accounts[identity] = account

    # ========================================================================
    # MUTATION
    # ========================================================================

    def credit(self, identity: str, amount: int) -> Account:
        """Add collateral (and the matching deposit) to an account."""
        acct = self.get(identity)
        updated = replace(
            acct,
            deposits=checked_add(acct.deposits, amount),
            collateral=checked_add(acct.collateral, amount),
        )
        total = checked_add(self.total_deposits, amount)
        self._store(identity, updated)
        self.total_deposits = total
        return updated

    def debit(self, identity: str, amount: int) -> Account:
        """Remove collateral (and the matching deposit) from an account."""
        acct = self.get(identity)
        updated = replace(
            acct,
            deposits=checked_sub(acct.deposits, amount),
            collateral=checked_sub(acct.collateral, amount),
        )
        total = checked_sub(self.total_deposits, amount)
        self._store(identity, updated)
        self.total_deposits = total
        return updated

    def add_debt(self, identity: str, amount: int) -> Account:
        acct = self.get(identity)
        updated = replace(acct, borrows=checked_add(acct.borrows, amount))
        total = checked_add(self.total_borrows, amount)
        self._store(identity, updated)
        self.total_borrows = total
        return updated

    def reduce_debt(self, identity: str, amount: int) -> Account:
        acct = self.get(identity)
        updated = replace(acct, borrows=checked_sub(acct.borrows, amount))
        total = checked_sub(self.total_borrows, amount)
        self._store(identity, updated)
        self.total_borrows = total
        return updated

    def seize(self, identity: str, seized_collateral: int) -> Account:
        """
        Apply a liquidation: clear all debt and remove seized collateral.

        deposits is set to the remaining collateral, keeping the two equal.
        """
        acct = self.get(identity)
        remaining = checked_sub(acct.collateral, seized_collateral)
        total_borrows = checked_sub(self.total_borrows, acct.borrows)
        total_deposits = checked_sub(self.total_deposits, seized_collateral)
        self._store(identity, Account(deposits=remaining, collateral=remaining, borrows=0))
        self.total_borrows = total_borrows
        self.total_deposits = total_deposits
        return self._accounts[identity]

    # ========================================================================
    # SNAPSHOT / RESTORE
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        """Capture the current state (accounts are immutable, so a shallow copy suffices)."""
        return LedgerSnapshot(
            accounts=tuple(sorted(self._accounts.items())),
            total_deposits=self.total_deposits,
            total_borrows=self.total_borrows,
        )

    def restore(self, snap: LedgerSnapshot) -> None:
        """Replace the current state with a snapshot. Clears the seal."""
        self._accounts = dict(snap.accounts)
        self.total_deposits = snap.total_deposits
        self.total_borrows = snap.total_borrows
        self._sealed = False

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    def verify(self) -> Dict[str, Any]:
        """
        Check the ledger invariants.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every invariant holds
            - 'sum_deposits' / 'sum_borrows': sums over accounts
            - 'discrepancies': list of dicts describing each violation
        """
        discrepancies: List[Dict[str, Any]] = []
        sum_deposits = 0
        sum_borrows = 0

        for identity in sorted(self._accounts):
            acct = self._accounts[identity]
            sum_deposits += acct.deposits
            sum_borrows += acct.borrows
            if acct.deposits != acct.collateral:
                discrepancies.append({
                    'invariant': 'deposits == collateral',
                    'identity': identity,
                    'deposits': acct.deposits,
                    'collateral': acct.collateral,
                })
            if min(acct.deposits, acct.collateral, acct.borrows) < 0:
                discrepancies.append({
                    'invariant': 'non-negative balances',
                    'identity': identity,
                    'account': acct,
                })

        if sum_deposits != self.total_deposits:
            discrepancies.append({
                'invariant': 'total_deposits == sum(deposits)',
                'expected': sum_deposits,
                'actual': self.total_deposits,
            })
        if sum_borrows != self.total_borrows:
            discrepancies.append({
                'invariant': 'total_borrows == sum(borrows)',
                'expected': sum_borrows,
                'actual': self.total_borrows,
            })

        return {
            'valid': len(discrepancies) == 0,
            'sum_deposits': sum_deposits,
            'sum_borrows': sum_borrows,
            'discrepancies': discrepancies,
        }
