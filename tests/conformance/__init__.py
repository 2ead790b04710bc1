"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the track ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. royalty_split.py - Split algebra and overflow safety
2. atomicity.py - All-or-nothing instruction semantics
3. idempotency.py - Duplicate submission handling
4. conservation.py - Value and token conservation
5. lifecycle.py - One-way tokenization and monotonic royalty totals

These tests use hypothesis for property-based testing.
"""
