"""
liquidation.py - Liquidation eligibility, reward, and residual distribution

quote_liquidation() is a pure function: it validates a liquidation against an
Account snapshot and returns a frozen LiquidationQuote describing every
amount the pool will move. LendingPool.liquidate() applies the quote.

Reward:
    bonus  = debt * liquidation_bonus / 100
    reward = min(debt + bonus, collateral)

The reward is capped at the target's collateral. When the cap bites hard
enough that reward < debt, the full debt is still cleared; the quote exposes
the difference as `shortfall` so callers can observe the under-collection.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List

from .core import (
    Account, PoolParameters, PoolView,
    PERCENT,
    NoDebt, PositionHealthy, InsufficientRepayment,
    require_amount,
)
from .policy import DEFAULT_PARAMETERS, is_healthy, health_factor


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """
    Immutable result of a liquidation computation.

    Attributes:
        target: Identity being liquidated
        debt: Debt cleared by the liquidation
        bonus: Uncapped liquidator bonus
        reward: Collateral paid to the liquidator (capped at collateral)
        refund: Supplied amount in excess of the debt, returned to the liquidator
        remaining_collateral: Target's collateral (and deposits) afterwards
        shortfall: Debt not covered by seized collateral (reward < debt)
    """
    target: str
    debt: int
    bonus: int
    reward: int
    refund: int
    remaining_collateral: int
    shortfall: int

    @property
    def capped(self) -> bool:
        """True if the collateral cap reduced the reward."""
        return self.reward < self.debt + self.bonus


def is_liquidatable(
    account: Account,
    price: int,
    params: PoolParameters = DEFAULT_PARAMETERS,
) -> bool:
    """A position is liquidatable when it has debt and fails the threshold check."""
    return account.borrows > 0 and not is_healthy(account, price, 0, params)


def compute_reward(debt: int, collateral: int, params: PoolParameters = DEFAULT_PARAMETERS) -> int:
    """Debt plus bonus, capped at the available collateral."""
    bonus = debt * params.liquidation_bonus // PERCENT
    return min(debt + bonus, collateral)


def quote_liquidation(
    target: str,
    account: Account,
    price: int,
    supplied_amount: int,
    params: PoolParameters = DEFAULT_PARAMETERS,
) -> LiquidationQuote:
    """
    Validate and price a liquidation.

    Args:
        target: Identity being liquidated
        account: Target's current account
        price: Current collateral price
        supplied_amount: Value the liquidator attaches
        params: Pool risk parameters

    Returns:
        LiquidationQuote with every amount the pool will move

    Raises:
        InvalidAmount: supplied_amount is not a positive integer
        NoDebt: the target has no debt
        PositionHealthy: the target is above the liquidation threshold
        InsufficientRepayment: supplied_amount < debt
    """
    require_amount(supplied_amount, "supplied_amount")
    debt = account.borrows
    if debt == 0:
        raise NoDebt(f"{target} has no debt to liquidate")
    if is_healthy(account, price, 0, params):
        raise PositionHealthy(
            f"{target} is healthy (health factor {health_factor(account, price)})"
        )
    if supplied_amount < debt:
        raise InsufficientRepayment(
            f"supplied {supplied_amount} does not cover debt {debt} of {target}"
        )

    bonus = debt * params.liquidation_bonus // PERCENT
    reward = compute_reward(debt, account.collateral, params)
    return LiquidationQuote(
        target=target,
        debt=debt,
        bonus=bonus,
        reward=reward,
        refund=supplied_amount - debt,
        remaining_collateral=account.collateral - reward,
        shortfall=max(0, debt - reward),
    )


def find_liquidatable(view: PoolView) -> List[str]:
    """
    List every liquidatable identity, most distressed first.

    Ties on health factor are broken by identity for determinism.
    """
    price = view.price
    params = view.parameters
    candidates = []
    for identity in view.list_accounts():
        account = view.get_account(identity)
        if is_liquidatable(account, price, params):
            candidates.append((health_factor(account, price), identity))
    return [identity for _, identity in sorted(candidates)]
