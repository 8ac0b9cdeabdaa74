"""
policy.py - Collateralization checks

Pure functions over an Account snapshot and a price. No PoolView, no hidden
state: every input is a parameter, so the checks can be evaluated against
hypothetical positions as easily as live ones.

Key Formulas:
    collateral_value = collateral * price / UNIT
    borrow_value     = borrows * DEBT_PRICE / UNIT
    healthy          <=> collateral * price * 100 >= borrows * DEBT_PRICE * liquidation_threshold
    can borrow b     <=> collateral * price * 100 >= (borrows + b) * DEBT_PRICE * collateral_ratio
    health_factor    = collateral_value * 100 / borrow_value

Ratio checks compare unscaled products, so they never lose precision to
integer division. Reported values (collateral_value, health_factor) floor.
"""

from __future__ import annotations

from .core import (
    Account, PoolParameters,
    UNIT, DEBT_PRICE, PERCENT, MAX_HEALTH_FACTOR,
    POSITION_STATUS_NO_DEBT, POSITION_STATUS_HEALTHY, POSITION_STATUS_LIQUIDATABLE,
    checked_add, checked_sub,
)


DEFAULT_PARAMETERS = PoolParameters()


def collateral_value(account: Account, price: int) -> int:
    """Value of the account's collateral in accounting units."""
    return account.collateral * price // UNIT


def borrow_value(account: Account) -> int:
    """Value of the account's debt in accounting units."""
    return account.borrows * DEBT_PRICE // UNIT


def is_healthy(
    account: Account,
    price: int,
    hypothetical_withdrawal: int = 0,
    params: PoolParameters = DEFAULT_PARAMETERS,
) -> bool:
    """
    Check the position against the liquidation threshold.

    A debt-free position is always healthy. Otherwise the collateral left
    after the hypothetical withdrawal must cover the debt at the threshold.

    Raises:
        Underflow: If the withdrawal exceeds the collateral. Callers check
                   the balance first.
    """
    if account.borrows == 0:
        return True
    remaining = checked_sub(account.collateral, hypothetical_withdrawal)
    return remaining * price * PERCENT >= account.borrows * DEBT_PRICE * params.liquidation_threshold


def can_borrow(
    account: Account,
    price: int,
    amount: int,
    params: PoolParameters = DEFAULT_PARAMETERS,
) -> bool:
    """Check that total post-borrow debt respects the collateral ratio."""
    debt_after = checked_add(account.borrows, amount)
    return account.collateral * price * PERCENT >= debt_after * DEBT_PRICE * params.collateral_ratio


def health_factor(account: Account, price: int) -> int:
    """
    Collateral value over debt value, x100.

    Returns MAX_HEALTH_FACTOR for a debt-free position.
    """
    debt = borrow_value(account)
    if account.borrows == 0 or debt == 0:
        return MAX_HEALTH_FACTOR
    return collateral_value(account, price) * PERCENT // debt


def max_borrowable(
    account: Account,
    price: int,
    params: PoolParameters = DEFAULT_PARAMETERS,
) -> int:
    """Largest additional borrow the collateral ratio allows (ignores liquidity)."""
    capacity = account.collateral * price * PERCENT // (DEBT_PRICE * params.collateral_ratio)
    return max(0, capacity - account.borrows)


def max_withdrawable(
    account: Account,
    price: int,
    params: PoolParameters = DEFAULT_PARAMETERS,
) -> int:
    """Largest withdrawal that keeps the position above the liquidation threshold."""
    if account.borrows == 0:
        return account.deposits
    required = account.borrows * DEBT_PRICE * params.liquidation_threshold
    per_unit = price * PERCENT
    # Ceiling division: the smallest collateral that still covers the debt
    min_collateral = -(-required // per_unit)
    return max(0, min(account.deposits, account.collateral - min_collateral))


def position_status(
    account: Account,
    price: int,
    params: PoolParameters = DEFAULT_PARAMETERS,
) -> str:
    """Classify a position as NO_DEBT, HEALTHY, or LIQUIDATABLE."""
    if account.borrows == 0:
        return POSITION_STATUS_NO_DEBT
    if is_healthy(account, price, 0, params):
        return POSITION_STATUS_HEALTHY
    return POSITION_STATUS_LIQUIDATABLE
