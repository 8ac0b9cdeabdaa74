"""
lending - Collateralized Lending Pool

A single-asset lending ledger: deposit collateral, borrow against it, repay,
and liquidate undercollateralized positions, safely under re-entrant payouts.

Usage:
    from lending import LendingPool, WalletBook, UNIT

    book = WalletBook()
    pool = LendingPool(owner="admin", oracle="feed", transfer=book)

    pool.deposit("alice", 10 * UNIT)
    pool.borrow("alice", 6 * UNIT)          # 150% collateral ratio
    pool.update_price("feed", UNIT // 2)    # only the oracle identity may
    pool.liquidate("bob", "alice", 6 * UNIT)
"""

# Core types
from .core import (
    # Constants
    UNIT,
    MAX_UINT256,
    COLLATERAL_RATIO,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_BONUS,
    DEFAULT_PRICE,
    DEBT_PRICE,
    MAX_HEALTH_FACTOR,
    POSITION_STATUS_NO_DEBT,
    POSITION_STATUS_HEALTHY,
    POSITION_STATUS_LIQUIDATABLE,
    # Data structures
    PoolParameters,
    Account,
    EventType,
    PoolEvent,
    # Protocols
    PoolView,
    ValueTransfer,
    ReversibleTransfer,
    # Exceptions
    LendingError,
    Unauthorized,
    InvalidAmount,
    Underflow,
    InsufficientBalance,
    InsufficientCollateral,
    UndercollateralizedResult,
    InsufficientLiquidity,
    InsufficientRepayment,
    PositionHealthy,
    NoDebt,
    ReentrantCall,
    TransferFailed,
    InvalidPrice,
    InvalidIdentity,
    InvariantViolation,
    # Helpers
    to_fixed,
    from_fixed,
)

# Ledger
from .accounts import AccountLedger, LedgerSnapshot

# Collateralization policy
from .policy import (
    collateral_value,
    borrow_value,
    is_healthy,
    can_borrow,
    health_factor,
    max_borrowable,
    max_withdrawable,
    position_status,
)

# Liquidation
from .liquidation import (
    LiquidationQuote,
    compute_reward,
    quote_liquidation,
    is_liquidatable,
    find_liquidatable,
)

# Reentrancy gate and transfer discipline
from .gate import ReentrancyGate, TransferDiscipline, nonreentrant

# Oracle
from .oracle import (
    PriceFeed,
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    PriceOracle,
    validate_price,
)

# Value transfer
from .transfer import WalletBook

# Pool
from .pool import LendingPool, PoolSnapshot

# Stress simulation
from .simulation import (
    StressConfig,
    StressReport,
    simulate_price_path,
    open_positions,
    run_stress,
    run_scenario,
)

__all__ = [
    # Constants
    'UNIT', 'MAX_UINT256', 'COLLATERAL_RATIO', 'LIQUIDATION_THRESHOLD', 'LIQUIDATION_BONUS',
    'DEFAULT_PRICE', 'DEBT_PRICE', 'MAX_HEALTH_FACTOR',
    'POSITION_STATUS_NO_DEBT', 'POSITION_STATUS_HEALTHY', 'POSITION_STATUS_LIQUIDATABLE',
    # Core
    'PoolParameters', 'Account', 'EventType', 'PoolEvent',
    'PoolView', 'ValueTransfer', 'ReversibleTransfer',
    'LendingError', 'Unauthorized', 'InvalidAmount', 'Underflow', 'InsufficientBalance',
    'InsufficientCollateral', 'UndercollateralizedResult', 'InsufficientLiquidity',
    'InsufficientRepayment', 'PositionHealthy', 'NoDebt', 'ReentrantCall', 'TransferFailed',
    'InvalidPrice', 'InvalidIdentity', 'InvariantViolation',
    'to_fixed', 'from_fixed',
    # Ledger
    'AccountLedger', 'LedgerSnapshot',
    # Policy
    'collateral_value', 'borrow_value', 'is_healthy', 'can_borrow', 'health_factor',
    'max_borrowable', 'max_withdrawable', 'position_status',
    # Liquidation
    'LiquidationQuote', 'compute_reward', 'quote_liquidation', 'is_liquidatable',
    'find_liquidatable',
    # Gate
    'ReentrancyGate', 'TransferDiscipline', 'nonreentrant',
    # Oracle
    'PriceFeed', 'StaticPriceFeed', 'TimeSeriesPriceFeed', 'PriceOracle', 'validate_price',
    # Transfer
    'WalletBook',
    # Pool
    'LendingPool', 'PoolSnapshot',
    # Simulation
    'StressConfig', 'StressReport', 'simulate_price_path', 'open_positions',
    'run_stress', 'run_scenario',
]

__version__ = '1.0.0'
