"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the tally ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_reconstruction.py - active units always equal the Sales after the last Checkpoint
2. test_undo.py - undo exactly reverses the most recent sale or reset

These tests use hypothesis for property-based testing.
"""
