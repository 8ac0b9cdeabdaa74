"""
pool.py - Collateralized lending pool

LendingPool is the state manager of the lending system: the only object that
mutates pool state, and the owner of every Account record.

Key responsibilities:
    - Implements PoolView for read-only access by pure policy functions
    - Executes deposit, withdraw, borrow, repay, liquidate and price updates
    - Administration: emergency sweep, ownership and oracle rotation
    - Runs every operation under the reentrancy gate, with all ledger
      mutation before any outward transfer, and all-or-nothing rollback
    - Keeps an event log of applied operations

Every operation follows the same order:
    1. checks   - validate caller, amounts, and collateralization
    2. effects  - mutate the AccountLedger and the pool fields
    3. interactions - pay out through the ValueTransfer port
    4. emit the domain event
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from .accounts import AccountLedger, LedgerSnapshot
from .core import (
    # Types
    Account, PoolParameters, PoolEvent, EventType, ValueTransfer, ReversibleTransfer, StateDict,
    # Exceptions
    Unauthorized, InsufficientBalance, InsufficientCollateral,
    UndercollateralizedResult, InsufficientLiquidity, NoDebt, InvariantViolation,
    # Helpers
    require_amount, require_identity, checked_add, from_fixed, MAX_UINT256,
)
from .gate import ReentrancyGate, TransferDiscipline, nonreentrant
from .liquidation import LiquidationQuote, quote_liquidation, find_liquidatable
from .oracle import validate_price
from . import policy


def _stored_quantity(value: Any, name: str) -> int:
    """Accept a persisted quantity only if it is an exact in-range integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvariantViolation(f"stored {name} must be an integer, got {value!r}")
    if not 0 <= value <= MAX_UINT256:
        raise InvariantViolation(f"stored {name} out of range: {value}")
    return value


@dataclass(frozen=True, slots=True)
class PoolSnapshot:
    """Immutable copy of the full pool state at a quiescent point."""
    owner: str
    oracle: str
    price: int
    liquidity: int
    ledger: LedgerSnapshot
    event_count: int


class LendingPool:
    """
    Single-asset collateralized lending pool.

    Implements the PoolView protocol, allowing the pool to be passed to pure
    functions that only read.

    Thread Safety:
        Not thread-safe. The pool assumes one logical thread of control that
        may re-enter through the transfer port; the gate rejects such calls.

    Example:
        book = WalletBook()
        pool = LendingPool("owner", "oracle", book, verbose=False)
        pool.deposit("alice", 10 * UNIT)
        pool.borrow("alice", 6 * UNIT)
        pool.repay("alice", 10 * UNIT)     # 4 * UNIT refunded through book
    """

    def __init__(
        self,
        owner: str,
        oracle: str,
        transfer: ValueTransfer,
        parameters: Optional[PoolParameters] = None,
        name: str = "pool",
        verbose: bool = True,
    ):
        """
        Create a pool.

        Args:
            owner: Identity allowed to administer the pool
            oracle: Identity allowed to update the price
            transfer: Capability used for every outward payout
            parameters: Risk parameters (default: 150% / 120% / 10%)
            name: Pool identifier used in output
            verbose: Print applied and rejected operations (default: True)
        """
        if not isinstance(transfer, ValueTransfer):
            raise TypeError(f"transfer must implement send(recipient, amount), got {type(transfer).__name__}")
        self.name = name
        self.parameters = parameters or PoolParameters()
        self._owner = require_identity(owner, "owner")
        self._oracle = require_identity(oracle, "oracle")
        self._price: int = self.parameters.initial_price
        self._liquidity: int = 0
        self._ledger = AccountLedger()
        self._gate = ReentrancyGate()
        self._discipline = TransferDiscipline(transfer, self._ledger)
        self._events: List[PoolEvent] = []
        self.verbose = verbose

    # ========================================================================
    # PoolView PROTOCOL IMPLEMENTATION (read-only)
    # ========================================================================

    @property
    def price(self) -> int:
        """Current collateral price (fixed point)."""
        return self._price

    def get_account(self, identity: str) -> Account:
        """Account of an identity (all zeros if it never interacted)."""
        return self._ledger.get(identity)

    def list_accounts(self) -> Set[str]:
        """Every identity that has an account record."""
        return self._ledger.identities()

    # ========================================================================
    # POOL FIELDS (read-only)
    # ========================================================================

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def oracle(self) -> str:
        return self._oracle

    @property
    def liquidity(self) -> int:
        """Disposable liquidity: the value the pool currently holds."""
        return self._liquidity

    @property
    def total_deposits(self) -> int:
        return self._ledger.total_deposits

    @property
    def total_borrows(self) -> int:
        return self._ledger.total_borrows

    @property
    def locked(self) -> bool:
        """True only while an operation is executing."""
        return self._gate.locked

    @property
    def transfer(self) -> ValueTransfer:
        return self._discipline.port

    # ========================================================================
    # COLLATERALIZATION VIEWS
    # ========================================================================

    def collateral_value(self, identity: str) -> int:
        return policy.collateral_value(self.get_account(identity), self._price)

    def borrow_value(self, identity: str) -> int:
        return policy.borrow_value(self.get_account(identity))

    def health_factor(self, identity: str) -> int:
        """Collateral value over debt value x100; MAX_HEALTH_FACTOR without debt."""
        return policy.health_factor(self.get_account(identity), self._price)

    def is_healthy(self, identity: str, hypothetical_withdrawal: int = 0) -> bool:
        return policy.is_healthy(
            self.get_account(identity), self._price, hypothetical_withdrawal, self.parameters
        )

    def max_borrowable(self, identity: str) -> int:
        """Largest borrow that would currently succeed, bounded by liquidity."""
        capacity = policy.max_borrowable(self.get_account(identity), self._price, self.parameters)
        return min(capacity, self._liquidity)

    def max_withdrawable(self, identity: str) -> int:
        return policy.max_withdrawable(self.get_account(identity), self._price, self.parameters)

    def position_status(self, identity: str) -> str:
        return policy.position_status(self.get_account(identity), self._price, self.parameters)

    def quote_liquidation(self, target: str, supplied_amount: int) -> LiquidationQuote:
        """Price a liquidation without executing it. Raises as liquidate() would."""
        return quote_liquidation(
            target, self.get_account(target), self._price, supplied_amount, self.parameters
        )

    def liquidatable_accounts(self) -> List[str]:
        """Liquidatable identities, most distressed first."""
        return find_liquidatable(self)

    # ========================================================================
    # ACCOUNT OPERATIONS (Mutating)
    # ========================================================================

    @nonreentrant
    def deposit(self, identity: str, amount: int) -> PoolEvent:
        """
        Deposit collateral. The attached amount is added to pool liquidity.

        Raises:
            InvalidIdentity, InvalidAmount
        """
        require_identity(identity)
        require_amount(amount)
        liquidity = checked_add(self._liquidity, amount)

        self._ledger.credit(identity, amount)
        self._liquidity = liquidity

        return self._emit(EventType.DEPOSIT, identity, amount)

    @nonreentrant
    def withdraw(self, identity: str, amount: int) -> PoolEvent:
        """
        Withdraw collateral, keeping the position above the liquidation threshold.

        Raises:
            InsufficientBalance: amount exceeds deposits
            UndercollateralizedResult: remaining collateral would not cover the debt
            InsufficientLiquidity, TransferFailed
        """
        require_identity(identity)
        require_amount(amount)
        account = self._ledger.get(identity)
        if amount > account.deposits:
            raise InsufficientBalance(
                f"{identity} cannot withdraw {amount}: deposits are {account.deposits}"
            )
        if not policy.is_healthy(account, self._price, amount, self.parameters):
            raise UndercollateralizedResult(
                f"{identity} withdrawing {amount} would fall below the liquidation threshold"
            )

        self._ledger.debit(identity, amount)

        self._payout(identity, amount)
        return self._emit(EventType.WITHDRAW, identity, amount)

    @nonreentrant
    def borrow(self, identity: str, amount: int) -> PoolEvent:
        """
        Borrow against collateral. Total debt after the borrow must respect
        the collateral ratio.

        Raises:
            InsufficientLiquidity: the pool holds less than amount
            InsufficientCollateral: post-borrow debt exceeds the ratio
            TransferFailed
        """
        require_identity(identity)
        require_amount(amount)
        if self._liquidity < amount:
            raise InsufficientLiquidity(
                f"pool holds {self._liquidity}, cannot lend {amount}"
            )
        account = self._ledger.get(identity)
        if not policy.can_borrow(account, self._price, amount, self.parameters):
            raise InsufficientCollateral(
                f"{identity} collateral {account.collateral} cannot back debt "
                f"{account.borrows + amount} at {self.parameters.collateral_ratio}%"
            )

        self._ledger.add_debt(identity, amount)

        self._payout(identity, amount)
        return self._emit(EventType.BORROW, identity, amount)

    @nonreentrant
    def repay(self, identity: str, paid_amount: int) -> PoolEvent:
        """
        Repay debt. Payment is capped at outstanding debt; the excess is
        refunded after the debt is reduced.

        Returns:
            The Repay event, carrying the capped payment

        Raises:
            NoDebt: identity has no debt
            TransferFailed: the refund could not be delivered
        """
        require_identity(identity)
        require_amount(paid_amount, "paid_amount")
        account = self._ledger.get(identity)
        if account.borrows == 0:
            raise NoDebt(f"{identity} has no debt to repay")
        payment = min(paid_amount, account.borrows)
        refund = paid_amount - payment
        liquidity = checked_add(self._liquidity, paid_amount)

        self._ledger.reduce_debt(identity, payment)
        self._liquidity = liquidity

        if refund:
            self._payout(identity, refund)
        return self._emit(EventType.REPAY, identity, payment)

    @nonreentrant
    def liquidate(self, caller: str, target: str, supplied_amount: int) -> LiquidationQuote:
        """
        Liquidate an undercollateralized position.

        The caller attaches supplied_amount (at least the target's debt), the
        target's debt is cleared, and the caller receives debt plus bonus
        capped at the target's collateral, then any excess supplied. A port
        without reverse() receives both in a single transfer.

        Returns:
            The LiquidationQuote that was applied

        Raises:
            NoDebt, PositionHealthy, InsufficientRepayment,
            InsufficientLiquidity, TransferFailed
        """
        require_identity(caller, "caller")
        require_identity(target, "target")
        quote = quote_liquidation(
            target, self._ledger.get(target), self._price, supplied_amount, self.parameters
        )
        liquidity = checked_add(self._liquidity, supplied_amount)
        if liquidity < quote.reward:
            raise InsufficientLiquidity(
                f"pool holds {liquidity}, cannot pay reward {quote.reward}"
            )

        self._ledger.seize(target, quote.reward)
        self._liquidity = liquidity

        if not isinstance(self._discipline.port, ReversibleTransfer):
            # reward and refund settle together or not at all
            if quote.reward + quote.refund:
                self._payout(caller, quote.reward + quote.refund)
        else:
            if quote.reward:
                self._payout(caller, quote.reward)
            if quote.refund:
                self._payout(caller, quote.refund)
        self._emit(EventType.LIQUIDATE, caller, quote.debt, counterparty=target)
        return quote

    # ========================================================================
    # ORACLE
    # ========================================================================

    @nonreentrant
    def update_price(self, caller: str, new_price: int) -> PoolEvent:
        """
        Set the collateral price.

        Raises:
            Unauthorized: caller is not the oracle
            InvalidPrice: new_price is not a positive integer
        """
        if caller != self._oracle:
            raise Unauthorized(f"{caller} is not the price oracle")
        validate_price(new_price)

        self._price = new_price

        return self._emit(EventType.PRICE_UPDATED, None, new_price)

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    @nonreentrant
    def emergency_withdraw(self, caller: str) -> PoolEvent:
        """
        Sweep the pool's entire liquidity to the owner.

        Account records are untouched.

        Raises:
            Unauthorized: caller is not the owner
        """
        self._require_owner(caller)
        amount = self._liquidity

        if amount:
            self._payout(self._owner, amount)
        return self._emit(EventType.EMERGENCY_WITHDRAW, self._owner, amount)

    @nonreentrant
    def transfer_ownership(self, caller: str, new_owner: str) -> PoolEvent:
        """
        Raises:
            Unauthorized: caller is not the owner
            InvalidIdentity: new_owner is empty
        """
        self._require_owner(caller)
        require_identity(new_owner, "new_owner")

        previous = self._owner
        self._owner = new_owner

        return self._emit(EventType.OWNERSHIP_TRANSFERRED, previous, counterparty=new_owner)

    @nonreentrant
    def set_oracle(self, caller: str, new_oracle: str) -> PoolEvent:
        """
        Raises:
            Unauthorized: caller is not the owner
            InvalidIdentity: new_oracle is empty
        """
        self._require_owner(caller)
        require_identity(new_oracle, "new_oracle")

        previous = self._oracle
        self._oracle = new_oracle

        return self._emit(EventType.ORACLE_UPDATED, previous, counterparty=new_oracle)

    def _require_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise Unauthorized(f"{caller} is not the pool owner")

    # ========================================================================
    # INTERACTIONS AND EVENTS
    # ========================================================================

    def _payout(self, recipient: str, amount: int) -> None:
        """
        Transfer value out of the pool.

        Liquidity is re-verified here, immediately before the transfer,
        rather than trusted from an earlier check.
        """
        if amount > self._liquidity:
            raise InsufficientLiquidity(
                f"pool holds {self._liquidity}, cannot pay {amount} to {recipient}"
            )
        self._liquidity -= amount
        self._discipline.send(recipient, amount)

    def _emit(
        self,
        kind: EventType,
        identity: Optional[str],
        value: Optional[int] = None,
        counterparty: Optional[str] = None,
    ) -> PoolEvent:
        event = PoolEvent(kind, len(self._events), identity, value, counterparty)
        self._events.append(event)
        if self.verbose:
            print(f"✓ {self.name}: {event!r}")
        return event

    def get_events(self, kind: Optional[EventType] = None) -> Tuple[PoolEvent, ...]:
        """Applied events in order, optionally filtered by kind."""
        if kind is None:
            return tuple(self._events)
        return tuple(e for e in self._events if e.kind == kind)

    # ========================================================================
    # TRANSACTIONAL SUPPORT
    # ========================================================================

    def snapshot(self) -> PoolSnapshot:
        """Capture the full pool state."""
        return PoolSnapshot(
            owner=self._owner,
            oracle=self._oracle,
            price=self._price,
            liquidity=self._liquidity,
            ledger=self._ledger.snapshot(),
            event_count=len(self._events),
        )

    def _restore(self, snap: PoolSnapshot) -> None:
        self._owner = snap.owner
        self._oracle = snap.oracle
        self._price = snap.price
        self._liquidity = snap.liquidity
        self._ledger.restore(snap.ledger)
        del self._events[snap.event_count:]

    def _checkpoint(self) -> PoolSnapshot:
        return self.snapshot()

    def _rollback(self, checkpoint: PoolSnapshot, operation: str, exc: BaseException) -> None:
        """
        Undo a failed operation: restore state, then compensate delivered payouts.

        Payouts the port cannot take back have left the pool for good, so
        they stay deducted from the restored liquidity.
        """
        self._restore(checkpoint)
        delivered = len(self._discipline.delivered)
        stranded = self._discipline.compensate()
        self._liquidity -= sum(amount for _, amount in stranded)
        if self.verbose:
            reversed_count = delivered - len(stranded)
            suffix = f" ({reversed_count} payouts reversed)" if reversed_count else ""
            if stranded:
                suffix += f" ({len(stranded)} payouts not reversible)"
            print(f"✗ REJECTED {self.name}.{operation}: {type(exc).__name__}: {exc}{suffix}")

    # ========================================================================
    # VERIFICATION AND PERSISTENCE
    # ========================================================================

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Verify the ledger invariants at a quiescent point.

        Returns:
            Dict with keys 'valid', 'total_deposits', 'total_borrows',
            'sum_deposits', 'sum_borrows', 'liquidity', 'discrepancies'.

        Example:
            result = pool.verify_invariants()
            assert result['valid'], result['discrepancies']
        """
        result = self._ledger.verify()
        result['total_deposits'] = self.total_deposits
        result['total_borrows'] = self.total_borrows
        result['liquidity'] = self._liquidity
        return result

    def to_state_dict(self) -> StateDict:
        """Persisted layout: pool fields plus one record per account."""
        accounts = {
            identity: {
                'deposits': acct.deposits,
                'collateral': acct.collateral,
                'borrows': acct.borrows,
            }
            for identity, acct in self._ledger.snapshot().accounts
        }
        return {
            'name': self.name,
            'owner': self._owner,
            'oracle': self._oracle,
            'price': self._price,
            'liquidity': self._liquidity,
            'total_deposits': self.total_deposits,
            'total_borrows': self.total_borrows,
            'parameters': asdict(self.parameters),
            'accounts': accounts,
        }

    @classmethod
    def from_state_dict(
        cls,
        state: StateDict,
        transfer: ValueTransfer,
        verbose: bool = False,
    ) -> 'LendingPool':
        """
        Rebuild a pool from to_state_dict() output.

        Raises:
            InvariantViolation: If a stored quantity is not a non-negative
                integer, or the stored state breaks a ledger invariant
        """
        pool = cls(
            owner=state['owner'],
            oracle=state['oracle'],
            transfer=transfer,
            parameters=PoolParameters(**state['parameters']),
            name=state.get('name', 'pool'),
            verbose=verbose,
        )
        pool._price = validate_price(state['price'])
        pool._liquidity = _stored_quantity(state['liquidity'], 'liquidity')
        accounts = tuple(sorted(
            (identity, Account(
                deposits=_stored_quantity(rec['deposits'], f'{identity}.deposits'),
                collateral=_stored_quantity(rec['collateral'], f'{identity}.collateral'),
                borrows=_stored_quantity(rec['borrows'], f'{identity}.borrows'),
            ))
            for identity, rec in state['accounts'].items()
        ))
        pool._ledger.restore(LedgerSnapshot(
            accounts=accounts,
            total_deposits=_stored_quantity(state['total_deposits'], 'total_deposits'),
            total_borrows=_stored_quantity(state['total_borrows'], 'total_borrows'),
        ))
        result = pool.verify_invariants()
        if not result['valid']:
            raise InvariantViolation(f"stored state is inconsistent: {result['discrepancies']}")
        return pool

    def __repr__(self) -> str:
        return (
            f"LendingPool({self.name}: price={from_fixed(self._price)}, "
            f"deposits={self.total_deposits}, borrows={self.total_borrows}, "
            f"liquidity={self._liquidity}, accounts={len(self._ledger)})"
        )
