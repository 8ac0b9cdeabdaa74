"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. invariants.py - Ledger totals, deposits == collateral, liquidity conservation
2. atomicity.py - All-or-nothing operations, including payout compensation
3. reentrancy.py - Re-entrant calls from transfer recipients are rejected
4. bounds.py - Repayment and liquidation amount bounds

These tests use hypothesis for property-based testing.
"""
