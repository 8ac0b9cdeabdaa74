"""
gate.py - Reentrancy gate and checks-effects-interactions discipline

Two independent defenses against re-entrant control transfer:

1. ReentrancyGate: a cooperative flag. An operation arriving while another
   is in flight fails immediately with ReentrantCall. Nothing blocks or waits.

2. TransferDiscipline: outward transfers happen only after all ledger
   mutation. The first payout of an operation seals the AccountLedger, so a
   state change issued after an interaction raises InvariantViolation instead
   of being applied.

nonreentrant() ties both to the pool's transactional semantics: the pool is
snapshotted on entry and restored on any failure, so a rejected call leaves
no partial state behind.
"""

from __future__ import annotations
from contextlib import contextmanager
from functools import wraps
from typing import Callable, Iterator, List, Optional, Tuple, TypeVar

from .accounts import AccountLedger
from .core import (
    ValueTransfer, ReversibleTransfer,
    ReentrantCall, TransferFailed,
)


F = TypeVar("F", bound=Callable)


class ReentrancyGate:
    """
    Mutual-exclusion flag for a single pool.

    Not a lock in the threading sense: a second entry is rejected, never
    queued. The flag is cleared on every exit path of the holding call.
    """

    def __init__(self):
        self._locked = False
        self._holder: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def holder(self) -> Optional[str]:
        """Name of the operation currently holding the gate."""
        return self._holder

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        """
        Hold the gate for the duration of an operation.

        Raises:
            ReentrantCall: If the gate is already held.
        """
        if self._locked:
            raise ReentrantCall(f"{operation} rejected: {self._holder} is in progress")
        self._locked = True
        self._holder = operation
        try:
            yield
        finally:
            self._locked = False
            self._holder = None


class TransferDiscipline:
    """
    Issues outward transfers and keeps the journal of delivered payouts.

    The journal lives for one top-level operation. On rollback, delivered
    payouts are compensated in reverse order when the port supports it.
    """

    def __init__(self, port: ValueTransfer, ledger: AccountLedger):
        self.port = port
        self._ledger = ledger
        self._delivered: List[Tuple[str, int]] = []

    @property
    def delivered(self) -> Tuple[Tuple[str, int], ...]:
        return tuple(self._delivered)

    @property
    def interacting(self) -> bool:
        """True once the current operation has entered its interaction phase."""
        return self._ledger.sealed

    def send(self, recipient: str, amount: int) -> None:
        """
        Deliver a payout through the port.

        Seals the ledger first. Any exception raised by the port, including
        a LendingError from a rejected nested call, is reported as
        TransferFailed.
        """
        self._ledger.seal()
        try:
            accepted = self.port.send(recipient, amount)
        except Exception as exc:
            raise TransferFailed(
                f"transfer of {amount} to {recipient} failed: {type(exc).__name__}: {exc}"
            ) from exc
        if accepted is False:
            raise TransferFailed(f"transfer of {amount} to {recipient} refused")
        self._delivered.append((recipient, amount))

    def compensate(self) -> Tuple[Tuple[str, int], ...]:
        """
        Reverse delivered payouts, newest first.

        A port without reverse() keeps everything it delivered, and so does a
        reverse() that raises.

        Returns:
            The payouts that could not be reversed, newest first.
        """
        stranded: List[Tuple[str, int]] = []
        reversible = isinstance(self.port, ReversibleTransfer)
        while self._delivered:
            recipient, amount = self._delivered.pop()
            if not reversible:
                stranded.append((recipient, amount))
                continue
            try:
                self.port.reverse(recipient, amount)
            except Exception:
                stranded.append((recipient, amount))
        return tuple(stranded)

    def finish(self) -> None:
        """Close the operation: clear the journal and unseal the ledger."""
        self._delivered = []
        self._ledger.unseal()


def nonreentrant(method: F) -> F:
    """
    Run a pool operation under the gate with all-or-nothing semantics.

    The decorated object provides:
        _gate: ReentrancyGate
        _discipline: TransferDiscipline
        _checkpoint() -> snapshot
        _rollback(snapshot, operation, exc) -> None
    """
    operation = method.__name__

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._gate.hold(operation):
            checkpoint = self._checkpoint()
            try:
                return method(self, *args, **kwargs)
            except BaseException as exc:
                self._rollback(checkpoint, operation, exc)
                raise
            finally:
                self._discipline.finish()

    return wrapper  # type: ignore[return-value]
