#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Lending Pool Step by Step

A walkthrough of the lending pool. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation    - The empty pool, deposits, borrowing against collateral
  4-5:  Core Rules    - Rejections, repayment with refund
  6-7:  Price Risk    - Oracle updates, liquidation
  8:    Safety        - A re-entrant attacker and the reentrancy gate
  9:    Stress        - Liquidations along a simulated price path

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import sys

from lending import (
    # Pool and transfer
    LendingPool, WalletBook,
    # Oracle
    PriceOracle, StaticPriceFeed,
    # Stress simulation
    StressConfig, run_scenario,
    # Constants and helpers
    UNIT, MAX_HEALTH_FACTOR, to_fixed, from_fixed,
    # Errors
    LendingError, ReentrantCall,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Liquidity provider and borrower
    lp_liquidity: Decimal = Decimal("100")
    alice_collateral: Decimal = Decimal("10")
    alice_borrow: Decimal = Decimal("6")

    # Price path for the liquidation steps
    rally_price: Decimal = Decimal("2")
    crash_price: Decimal = Decimal("0.9")

    # Stress run
    stress_steps: int = 250
    stress_seed: int = 42


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def fmt(value: int) -> str:
    """Format a fixed-point quantity for display."""
    return f"{from_fixed(value).normalize():f}"


def fmt_health(value: int) -> str:
    return "∞ (no debt)" if value == MAX_HEALTH_FACTOR else f"{value}%"


def show_account(pool: LendingPool, identity: str):
    acct = pool.get_account(identity)
    print(f"{identity:>8}: collateral={fmt(acct.collateral):>6}  "
          f"debt={fmt(acct.borrows):>6}  health={fmt_health(pool.health_factor(identity))}")


def attempt(label: str, action):
    """Run an operation that may be rejected and report the outcome."""
    try:
        action()
    except LendingError as exc:
        print(f"    {label}: {type(exc).__name__}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_empty_pool():
    """Create a pool and look at its initial state."""
    step_header(1, "The Empty Pool",
        "A pool has an owner, a price oracle, a price, and a transfer capability.")

    print("""
    The pool never holds anyone's keys. It moves value out through a
    transfer capability; here an in-memory WalletBook plays that role.
    Every operation names its caller explicitly.
    """)

    wait_for_enter()

    print('>>> book = WalletBook()')
    print('>>> pool = LendingPool(owner="owner", oracle="oracle", transfer=book)')
    book = WalletBook()
    pool = LendingPool(owner="owner", oracle="oracle", transfer=book, name="tutorial")

    section_header("Initial State")
    print(f"Owner:      {pool.owner}")
    print(f"Oracle:     {pool.oracle}")
    print(f"Price:      {fmt(pool.price)}")
    print(f"Liquidity:  {fmt(pool.liquidity)}")
    print(f"Parameters: {pool.parameters}")

    return pool, book


def step_02_deposits(pool: LendingPool):
    """Deposit collateral."""
    step_header(2, "Deposits",
        "Deposited value becomes collateral and pool liquidity.")

    print(f'>>> pool.deposit("lp", {CONFIG.lp_liquidity} * UNIT)')
    pool.deposit("lp", to_fixed(CONFIG.lp_liquidity))
    print(f'>>> pool.deposit("alice", {CONFIG.alice_collateral} * UNIT)')
    pool.deposit("alice", to_fixed(CONFIG.alice_collateral))

    section_header("Accounts")
    show_account(pool, "lp")
    show_account(pool, "alice")
    print(f"\nLiquidity: {fmt(pool.liquidity)}")
    return pool


def step_03_borrow(pool: LendingPool, book: WalletBook):
    """Borrow against collateral."""
    step_header(3, "Borrowing",
        "Debt after a borrow must be backed by 150% collateral value.")

    print(f"Alice may borrow at most {fmt(pool.max_borrowable('alice'))}.")
    print(f'>>> pool.borrow("alice", {CONFIG.alice_borrow} * UNIT)')
    pool.borrow("alice", to_fixed(CONFIG.alice_borrow))

    section_header("After Borrowing")
    show_account(pool, "alice")
    print(f"Alice's wallet received: {fmt(book.balance_of('alice'))}")
    return pool


# ============================================================================
# PHASE 2: CORE RULES (Steps 4-5)
# ============================================================================

def step_04_rejections(pool: LendingPool):
    """See operations rejected, with no state change."""
    step_header(4, "Rejected Operations",
        "A rejected operation raises and leaves the pool exactly as it was.")

    before = pool.snapshot()
    attempt('pool.borrow("alice", 1 * UNIT)       ', lambda: pool.borrow("alice", UNIT))
    attempt('pool.withdraw("alice", 5 * UNIT)     ', lambda: pool.withdraw("alice", 5 * UNIT))
    attempt('pool.update_price("alice", 5 * UNIT) ', lambda: pool.update_price("alice", 5 * UNIT))
    attempt('pool.emergency_withdraw("alice")     ', lambda: pool.emergency_withdraw("alice"))

    section_header("Key Insight")
    print(f"State unchanged: {pool.snapshot() == before}")
    return pool


def step_05_repay(pool: LendingPool, book: WalletBook):
    """Repay more than is owed."""
    step_header(5, "Repayment",
        "Payment is capped at the debt; the excess is refunded.")

    debt = pool.get_account("alice").borrows
    paid = debt + 2 * UNIT
    print(f'>>> pool.repay("alice", {fmt(paid)} * UNIT)')
    before = book.total_received("alice")
    event = pool.repay("alice", paid)

    section_header("Result")
    print(f"Repaid:   {fmt(event.value)}")
    print(f"Refunded: {fmt(book.total_received('alice') - before)}")
    show_account(pool, "alice")

    print('\n>>> pool.borrow("alice", 8 * UNIT)   # borrow again for the next steps')
    attempt("borrow 8", lambda: pool.borrow("alice", 8 * UNIT))
    print(">>> # 8 exceeds 150% of 10; wait for a better price first")
    return pool


# ============================================================================
# PHASE 3: PRICE RISK (Steps 6-7)
# ============================================================================

def step_06_oracle(pool: LendingPool, oracle: PriceOracle):
    """Only the oracle can move the price."""
    step_header(6, "The Price Oracle",
        "Price updates come from one trusted identity and drive health factors.")

    oracle.feed.update_price(to_fixed(CONFIG.rally_price))
    print(f">>> oracle.publish(pool, ...)   # price {CONFIG.rally_price}")
    oracle.publish(pool, CONFIG.start_time)
    print('>>> pool.borrow("alice", 8 * UNIT)')
    pool.borrow("alice", 8 * UNIT)
    show_account(pool, "alice")

    oracle.feed.update_price(to_fixed(CONFIG.crash_price))
    print(f"\n>>> oracle.publish(pool, ...)   # price {CONFIG.crash_price}")
    oracle.publish(pool, CONFIG.start_time)
    show_account(pool, "alice")
    print(f"\nLiquidatable: {pool.liquidatable_accounts()}")
    return pool


def step_07_liquidation(pool: LendingPool, book: WalletBook):
    """Liquidate the undercollateralized position."""
    step_header(7, "Liquidation",
        "Anyone may repay an unhealthy position's debt and take collateral plus a bonus.")

    debt = pool.get_account("alice").borrows
    quote = pool.quote_liquidation("alice", debt)
    print(f"Quote: debt={fmt(quote.debt)} bonus={fmt(quote.bonus)} reward={fmt(quote.reward)}")

    print(f'>>> pool.liquidate("bob", "alice", {fmt(debt)} * UNIT)')
    pool.liquidate("bob", "alice", debt)

    section_header("After Liquidation")
    show_account(pool, "alice")
    print(f"Bob's wallet received: {fmt(book.balance_of('bob'))}")
    print(f"Invariants valid: {pool.verify_invariants()['valid']}")
    return pool


# ============================================================================
# PHASE 4: SAFETY (Step 8)
# ============================================================================

def step_08_reentrancy(pool: LendingPool, book: WalletBook):
    """A malicious recipient tries to withdraw twice."""
    step_header(8, "Reentrancy",
        "A payout recipient that calls back into the pool is rejected.")

    print("""
    Mallory's wallet runs code whenever it receives value. On every receipt
    it calls pool.withdraw() again, hoping the pool pays before it records
    the first withdrawal.
    """)

    pool.deposit("mallory", 5 * UNIT)
    rejected = []

    def on_receive(recipient, amount):
        print(f"    [mallory] received {fmt(amount)}; pool sees deposits="
              f"{fmt(pool.get_account(recipient).deposits)}, locked={pool.locked}")
        try:
            pool.withdraw(recipient, amount)
        except ReentrantCall as exc:
            rejected.append(exc)
            print(f"    [mallory] re-entry rejected: {exc}")

    book.register_hook("mallory", on_receive)
    print('>>> pool.withdraw("mallory", 5 * UNIT)')
    pool.withdraw("mallory", 5 * UNIT)
    book.remove_hook("mallory")

    section_header("Key Insight")
    print(f"Mallory received {fmt(book.balance_of('mallory'))}, exactly her deposit.")
    print("Her balance was already zero when control reached her wallet.")
    return pool


# ============================================================================
# PHASE 5: STRESS (Step 9)
# ============================================================================

def step_09_stress():
    """Run liquidations along a simulated price path."""
    step_header(9, "Stress Test",
        "Drive a pool through a random price path with a liquidation keeper.")

    config = StressConfig(steps=CONFIG.stress_steps, seed=CONFIG.stress_seed)
    positions = {
        "alice": (10 * UNIT, 13 * UNIT),
        "bob": (10 * UNIT, 10 * UNIT),
        "carol": (10 * UNIT, 5 * UNIT),
    }
    pool, report = run_scenario(positions, config)

    section_header("Report")
    print(f"Steps:          {report.steps}")
    print(f"Final price:    {fmt(report.final_price)}")
    print(f"Liquidations:   {[q.target for q in report.liquidations]}")
    print(f"Total reward:   {fmt(report.total_reward)}")
    print(f"Total shortfall:{fmt(report.total_shortfall):>7}")
    print(f"Invariants:     {'valid' if report.invariants_valid else 'BROKEN'}")
    print(f"\n{pool!r}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       LENDING POOL - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    pool, book = step_01_empty_pool()
    wait_for_enter()

    pool = step_02_deposits(pool)
    wait_for_enter()

    pool = step_03_borrow(pool, book)
    wait_for_enter()

    pool = step_04_rejections(pool)
    wait_for_enter()

    pool = step_05_repay(pool, book)
    wait_for_enter()

    oracle = PriceOracle("oracle", StaticPriceFeed(pool.price))
    pool = step_06_oracle(pool, oracle)
    wait_for_enter()

    pool = step_07_liquidation(pool, book)
    wait_for_enter()

    step_08_reentrancy(pool, book)
    wait_for_enter()

    step_09_stress()

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See lending/pool.py for the operation sequence
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
