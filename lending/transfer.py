"""
transfer.py - In-memory value-transfer capability

WalletBook stands in for the external mechanism that physically moves value
to a recipient. It implements ValueTransfer and ReversibleTransfer:

    - send() credits the recipient, then runs the recipient's receive hook
      synchronously. The hook may call back into the pool, which is exactly
      the re-entrant control transfer the pool must survive.
    - A hook that raises makes the whole send fail; the credit is undone
      before the error propagates, so a failed send never delivers value.
    - reverse() undoes a delivered payout when the pool rolls back.

Example:
    book = WalletBook()
    pool = LendingPool("owner", "oracle", book)

    def on_receive(recipient, amount):
        pool.withdraw(recipient, amount)   # rejected with ReentrantCall

    book.register_hook("mallory", on_receive)
"""

from __future__ import annotations
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Set, Tuple

from .core import require_amount, require_identity


# A receive hook gets (recipient, amount) after the credit is applied.
ReceiveHook = Callable[[str, int], None]


class WalletBook:
    """
    Balances of external identities, credited by pool payouts.

    Not thread-safe; like the pool it assumes a single logical thread.
    """

    def __init__(self):
        self.balances: Dict[str, int] = defaultdict(int)
        self.transfer_log: List[Tuple[str, int]] = []
        self._hooks: Dict[str, ReceiveHook] = {}
        self._refusing: Set[str] = set()

    # ========================================================================
    # CONFIGURATION
    # ========================================================================

    def register_hook(self, recipient: str, hook: ReceiveHook) -> None:
        """Run hook synchronously whenever recipient receives value."""
        require_identity(recipient, "recipient")
        self._hooks[recipient] = hook

    def remove_hook(self, recipient: str) -> None:
        self._hooks.pop(recipient, None)

    def refuse(self, recipient: str) -> None:
        """Make every send to recipient return False."""
        self._refusing.add(recipient)

    def accept(self, recipient: str) -> None:
        self._refusing.discard(recipient)

    # ========================================================================
    # ValueTransfer
    # ========================================================================

    def send(self, recipient: str, amount: int) -> Optional[bool]:
        """
        Credit recipient and run its receive hook.

        Returns:
            False if the recipient refuses, True once delivered.

        Raises:
            Whatever the receive hook raises; the credit is undone first.
        """
        require_identity(recipient, "recipient")
        require_amount(amount)
        if recipient in self._refusing:
            return False

        self.balances[recipient] += amount
        entry = len(self.transfer_log)
        self.transfer_log.append((recipient, amount))
        hook = self._hooks.get(recipient)
        if hook is not None:
            try:
                hook(recipient, amount)
            except BaseException:
                self.balances[recipient] -= amount
                del self.transfer_log[entry]
                raise
        return True

    def reverse(self, recipient: str, amount: int) -> None:
        """Undo a delivered payout (used by pool rollback)."""
        self.balances[recipient] -= amount
        self.transfer_log.append((recipient, -amount))

    # ========================================================================
    # READ
    # ========================================================================

    def balance_of(self, identity: str) -> int:
        return self.balances.get(identity, 0)

    def total_received(self, identity: str) -> int:
        """Net value delivered to identity across the transfer log."""
        return sum(amount for recipient, amount in self.transfer_log if recipient == identity)

    def __repr__(self) -> str:
        return f"WalletBook({len(self.balances)} wallets, {len(self.transfer_log)} transfers)"
