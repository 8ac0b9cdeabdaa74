"""
Core types and pure helpers for the lending pool.

This module provides the foundational data structures and protocols:
1. Constants: fixed-point scale, collateralization parameters, bounds
2. Fixed-point and checked arithmetic helpers
3. Exceptions: LendingError and the domain error taxonomy
4. Immutable data structures: PoolParameters, Account, PoolEvent
5. Protocols: PoolView for read-only access, ValueTransfer for payouts

Nothing in this module mutates pool state.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Set, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scale: one collateral unit / one accounting unit.
UNIT = 10 ** 18

# Every stored quantity must fit an unsigned 256-bit word.
MAX_UINT256 = 2 ** 256 - 1

# Percentages (x100).
COLLATERAL_RATIO = 150        # borrow-time bound
LIQUIDATION_THRESHOLD = 120   # liquidation trigger
LIQUIDATION_BONUS = 10        # liquidator incentive
PERCENT = 100

# Collateral price at pool creation (1.0 accounting unit per collateral unit).
DEFAULT_PRICE = UNIT

# Debt is denominated in accounting units, valued at par.
DEBT_PRICE = UNIT

# Health factor reported for a debt-free position.
MAX_HEALTH_FACTOR = MAX_UINT256

# Position status constants (strings, not enum, as for unit types).
POSITION_STATUS_NO_DEBT = "NO_DEBT"
POSITION_STATUS_HEALTHY = "HEALTHY"
POSITION_STATUS_LIQUIDATABLE = "LIQUIDATABLE"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LendingError(Exception):
    """Base exception for all lending pool errors."""
    pass


class Unauthorized(LendingError):
    """Raised when the caller lacks the role an operation requires."""
    pass


class InvalidAmount(LendingError):
    """Raised for non-integer, non-positive, or out-of-range quantities."""
    pass


class Underflow(InvalidAmount):
    """Raised when a subtraction would drop below zero."""
    pass


class InsufficientBalance(LendingError):
    """Raised when a withdrawal exceeds the account's deposits."""
    pass


class InsufficientCollateral(LendingError):
    """Raised when a borrow would break the collateral ratio."""
    pass


class UndercollateralizedResult(InsufficientCollateral):
    """Raised when a withdrawal would leave the position below the liquidation threshold."""
    pass


class InsufficientLiquidity(LendingError):
    """Raised when the pool does not hold enough value for a payout."""
    pass


class InsufficientRepayment(LendingError):
    """Raised when a liquidator supplies less than the target's debt."""
    pass


class PositionHealthy(LendingError):
    """Raised when liquidating a position that is above the liquidation threshold."""
    pass


class NoDebt(LendingError):
    """Raised when repaying or liquidating a position without debt."""
    pass


class ReentrantCall(LendingError):
    """Raised when an operation is entered while another is still in flight."""
    pass


class TransferFailed(LendingError):
    """Raised when the value-transfer capability refuses or fails a payout."""
    pass


class InvalidPrice(LendingError):
    """Raised when a price is not a positive fixed-point integer."""
    pass


class InvalidIdentity(LendingError):
    """Raised when an identity is missing or blank."""
    pass


class InvariantViolation(LendingError):
    """Raised when a ledger invariant or the effects/interactions ordering is broken."""
    pass


# ============================================================================
# FIXED-POINT AND CHECKED ARITHMETIC
# ============================================================================

def to_fixed(value: Any, scale: int = UNIT) -> int:
    """
    Convert a human-readable quantity to a fixed-point integer.

    Accepts int, Decimal, or str. Floats are rejected because their binary
    representation would be silently rounded.

    Raises:
        InvalidAmount: If the value is not finite, is negative, or cannot be
                       represented exactly at the given scale.

    Example:
        to_fixed("1.5") == 1_500_000_000_000_000_000
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"Cannot convert {type(value).__name__} to fixed point: {value!r}")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidAmount(f"Not a number: {value!r}")
    if not d.is_finite():
        raise InvalidAmount(f"Quantity must be finite, got {value!r}")
    if d < 0:
        raise InvalidAmount(f"Quantity must be non-negative, got {value!r}")
    # 100 digits hold any 256-bit quantity exactly
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = d * scale
        if scaled != scaled.to_integral_value():
            raise InvalidAmount(f"{value} is not representable at scale {scale}")
        result = int(scaled)
    if result > MAX_UINT256:
        raise InvalidAmount(f"{value} exceeds the maximum representable quantity")
    return result


def from_fixed(value: int, scale: int = UNIT) -> Decimal:
    """Convert a fixed-point integer back to a Decimal."""
    return Decimal(value) / Decimal(scale)


def require_amount(amount: Any, name: str = "amount") -> int:
    """
    Validate an operation amount: a strictly positive int within 256 bits.

    Raises:
        InvalidAmount: If the amount is not a valid positive quantity.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"{name} must be positive, got {amount}")
    if amount > MAX_UINT256:
        raise InvalidAmount(f"{name} exceeds the maximum representable quantity")
    return amount


def require_identity(identity: Any, name: str = "identity") -> str:
    """Validate that an identity is a non-blank string."""
    if not isinstance(identity, str) or not identity.strip():
        raise InvalidIdentity(f"{name} cannot be empty")
    return identity


def checked_add(a: int, b: int) -> int:
    """Add two quantities, raising InvalidAmount on overflow."""
    result = a + b
    if result > MAX_UINT256:
        raise InvalidAmount(f"overflow: {a} + {b}")
    return result


def checked_sub(a: int, b: int) -> int:
    """Subtract two quantities, raising Underflow if the result is negative."""
    if b > a:
        raise Underflow(f"underflow: {a} - {b}")
    return a - b


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolParameters:
    """
    Immutable risk parameters of a pool - set at creation, never changed.

    Attributes:
        collateral_ratio: Minimum collateral value / debt value at borrow time (percent).
        liquidation_threshold: Ratio below which a position can be liquidated (percent).
        liquidation_bonus: Liquidator's bonus on top of the repaid debt (percent).
        initial_price: Collateral price at pool creation (fixed point).
    """
    collateral_ratio: int = COLLATERAL_RATIO
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_bonus: int = LIQUIDATION_BONUS
    initial_price: int = DEFAULT_PRICE

    def __post_init__(self):
        if self.liquidation_threshold < PERCENT:
            raise ValueError(
                f"liquidation_threshold must be at least {PERCENT}, got {self.liquidation_threshold}"
            )
        if self.collateral_ratio < self.liquidation_threshold:
            raise ValueError("collateral_ratio cannot be below liquidation_threshold")
        if not 0 <= self.liquidation_bonus < PERCENT:
            raise ValueError(f"liquidation_bonus must be in [0, {PERCENT}), got {self.liquidation_bonus}")
        if isinstance(self.initial_price, bool) or not isinstance(self.initial_price, int):
            raise ValueError("initial_price must be a fixed-point integer")
        if self.initial_price <= 0:
            raise ValueError(f"initial_price must be positive, got {self.initial_price}")


# ============================================================================
# ACCOUNT
# ============================================================================

@dataclass(frozen=True, slots=True)
class Account:
    """
    Balances of a single identity.

    Each change produces a new instance (value semantics). deposits and
    collateral move together in this single-asset design.
    """
    deposits: int = 0
    collateral: int = 0
    borrows: int = 0

    def is_empty(self) -> bool:
        """Return True if every balance is zero."""
        return self.deposits == 0 and self.collateral == 0 and self.borrows == 0

    def __repr__(self) -> str:
        return f"Account(deposits={self.deposits}, collateral={self.collateral}, borrows={self.borrows})"


EMPTY_ACCOUNT = Account()


# ============================================================================
# EVENTS
# ============================================================================

class EventType(Enum):
    """Kinds of observable pool events."""
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    BORROW = "Borrow"
    REPAY = "Repay"
    LIQUIDATE = "Liquidate"
    PRICE_UPDATED = "PriceUpdated"
    OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
    ORACLE_UPDATED = "OracleUpdated"
    EMERGENCY_WITHDRAW = "EmergencyWithdraw"


@dataclass(frozen=True, slots=True)
class PoolEvent:
    """
    Immutable record of an applied operation.

    Attributes:
        kind: Event type
        sequence: Monotonic position in the pool's event log
        identity: Acting identity (None for PriceUpdated)
        value: Amount, debt, or price carried by the event
        counterparty: Second identity (liquidation target, new owner/oracle)
    """
    kind: EventType
    sequence: int
    identity: Optional[str]
    value: Optional[int] = None
    counterparty: Optional[str] = None

    def __repr__(self) -> str:
        parts = [p for p in (self.identity, self.counterparty) if p]
        if self.value is not None:
            parts.append(str(self.value))
        return f"{self.kind.value}#{self.sequence}({', '.join(parts)})"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class PoolView(Protocol):
    """
    Read-only interface to pool state.

    Functions accepting a PoolView declare their read-only intent. LendingPool
    implements this protocol but also provides the mutating operations.
    """

    @property
    def price(self) -> int:
        """Current collateral price (fixed point)."""
        ...

    @property
    def parameters(self) -> PoolParameters:
        """Risk parameters of the pool."""
        ...

    def get_account(self, identity: str) -> Account:
        """Return the account of an identity (zeros if it never interacted)."""
        ...

    def list_accounts(self) -> Set[str]:
        """Return every identity with an account record."""
        ...


@runtime_checkable
class ValueTransfer(Protocol):
    """
    Capability that physically moves value out of the pool.

    send() may synchronously call back into the pool before returning. It
    signals refusal by returning False or raising.
    """

    def send(self, recipient: str, amount: int) -> Optional[bool]:
        ...


@runtime_checkable
class ReversibleTransfer(Protocol):
    """A ValueTransfer that can compensate a delivered payout on rollback."""

    def send(self, recipient: str, amount: int) -> Optional[bool]:
        ...

    def reverse(self, recipient: str, amount: int) -> None:
        ...


# Type alias for persisted state.
StateDict = Dict[str, Any]
EventLog = List[PoolEvent]
