"""
simulation.py - Stress testing the pool against random price paths

Drives a pool through a simulated collateral price path: at every step the
oracle publishes the next price and a keeper liquidates every eligible
position. The report records what the liquidations paid out and how much
debt was cleared without matching collateral (the shortfall case of a
capped reward).

Price paths follow geometric Brownian motion:
    S(t+dt) = S(t) * exp((mu - sigma^2 / 2) * dt + sigma * sqrt(dt) * Z)
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from .core import (
    MAX_HEALTH_FACTOR, PoolParameters,
    InsufficientLiquidity, to_fixed,
)
from .liquidation import LiquidationQuote
from .oracle import PriceOracle, TimeSeriesPriceFeed
from .pool import LendingPool
from .transfer import WalletBook


@dataclass
class StressConfig:
    """Configuration for a stress run. Modify these to experiment."""
    initial_price: Decimal = Decimal("2")
    steps: int = 250
    drift: float = 0.0
    volatility: float = 0.8          # annualized
    dt: float = 1.0 / 365.0
    seed: int = 42
    start: datetime = datetime(2025, 1, 1)
    step: timedelta = timedelta(days=1)
    keeper: str = "keeper"
    liquidity_provider: str = "lp"
    liquidity: Decimal = Decimal("1000")


@dataclass
class StressReport:
    """Outcome of a stress run."""
    steps: int = 0
    liquidations: List[LiquidationQuote] = field(default_factory=list)
    skipped: List[Tuple[datetime, str]] = field(default_factory=list)
    total_reward: int = 0
    total_shortfall: int = 0
    min_health_factor: int = MAX_HEALTH_FACTOR
    invariants_valid: bool = True
    final_price: Optional[int] = None

    @property
    def liquidation_count(self) -> int:
        return len(self.liquidations)


def simulate_price_path(
    initial_price: int,
    steps: int,
    drift: float = 0.0,
    volatility: float = 0.8,
    dt: float = 1.0 / 365.0,
    seed: Optional[int] = None,
) -> List[int]:
    """
    Simulate a fixed-point collateral price path.

    Args:
        initial_price: Starting price (fixed point)
        steps: Number of increments after the initial price
        drift: Annualized drift (mu)
        volatility: Annualized volatility (sigma)
        dt: Time step in years
        seed: Seed for numpy's default_rng

    Returns:
        List of steps + 1 positive fixed-point prices, starting at initial_price
    """
    if initial_price <= 0:
        raise ValueError(f"initial_price must be positive, got {initial_price}")
    if steps < 0:
        raise ValueError(f"steps must be non-negative, got {steps}")
    if volatility < 0:
        raise ValueError(f"volatility must be non-negative, got {volatility}")

    rng = np.random.default_rng(seed)
    shocks = rng.standard_normal(steps)
    log_returns = (drift - 0.5 * volatility * volatility) * dt + volatility * np.sqrt(dt) * shocks
    multipliers = np.exp(np.concatenate(([0.0], np.cumsum(log_returns))))
    # A price can never reach zero: floor at one base unit
    return [max(1, int(initial_price * float(m))) for m in multipliers]


def open_positions(pool: LendingPool, positions: Dict[str, Tuple[int, int]]) -> None:
    """Deposit collateral and borrow for each identity: {identity: (collateral, debt)}."""
    for identity in sorted(positions):
        collateral, debt = positions[identity]
        pool.deposit(identity, collateral)
        if debt:
            pool.borrow(identity, debt)


def run_stress(
    pool: LendingPool,
    oracle: PriceOracle,
    keeper: str,
    timestamps: Iterable[datetime],
) -> StressReport:
    """
    Publish a price at each timestamp and liquidate every eligible position.

    The keeper supplies exactly the target's debt. A liquidation the pool
    cannot pay for is recorded in report.skipped and retried at the next step.
    """
    report = StressReport()
    for timestamp in timestamps:
        price = oracle.publish(pool, timestamp)
        if price is None:
            continue
        report.steps += 1
        report.final_price = price

        for target in pool.liquidatable_accounts():
            debt = pool.get_account(target).borrows
            try:
                quote = pool.liquidate(keeper, target, debt)
            except InsufficientLiquidity:
                report.skipped.append((timestamp, target))
                continue
            report.liquidations.append(quote)
            report.total_reward += quote.reward
            report.total_shortfall += quote.shortfall

        for identity in pool.list_accounts():
            report.min_health_factor = min(report.min_health_factor, pool.health_factor(identity))
        report.invariants_valid = report.invariants_valid and pool.verify_invariants()['valid']
    return report


def run_scenario(
    positions: Dict[str, Tuple[int, int]],
    config: Optional[StressConfig] = None,
    parameters: Optional[PoolParameters] = None,
) -> Tuple[LendingPool, StressReport]:
    """
    Build a pool, open positions at the initial price, and stress it.

    Returns:
        (pool, report)
    """
    config = config or StressConfig()
    initial_price = to_fixed(config.initial_price)
    params = replace(parameters or PoolParameters(), initial_price=initial_price)

    book = WalletBook()
    pool = LendingPool("owner", "oracle", book, parameters=params, name="stress", verbose=False)
    pool.deposit(config.liquidity_provider, to_fixed(config.liquidity))
    open_positions(pool, positions)

    path = simulate_price_path(
        initial_price, config.steps, config.drift, config.volatility, config.dt, config.seed
    )
    feed = TimeSeriesPriceFeed.from_path(config.start, config.step, path)
    oracle = PriceOracle("oracle", feed)
    report = run_stress(pool, oracle, config.keeper, feed.timestamps())
    return pool, report
