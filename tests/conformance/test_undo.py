"""
Undo Conformance Tests

INVARIANT: undo() exactly reverses the most recent mutation.

    ∀ state S, item X, q ≥ 0:
        S; record_sale(X, q); undo()  =  S
        S; reset(); undo()            =  S

Equality covers both the log (including its length) and the active units.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from tally import Checkpoint

from tests.conformance.strategies import CATALOG, operations, new_ledger, apply_operations


class TestUndoProperties:
    """Property-based undo tests."""

    @given(operations, st.sampled_from(CATALOG.items), st.integers(min_value=0, max_value=10))
    @settings(max_examples=100)
    def test_undo_of_sale_restores_state(self, ops, item, quantity):
        """
        PROPERTY: record_sale then undo leaves log and active units unchanged.
        """
        ledger = apply_operations(new_ledger(), ops)
        log_before, units_before = ledger.log, ledger.active_units

        ledger.record_sale(item, quantity)
        ledger.undo()

        assert ledger.log == log_before
        assert ledger.active_units == units_before

    @given(operations)
    @settings(max_examples=100)
    def test_undo_of_reset_restores_state(self, ops):
        """
        PROPERTY: reset then undo restores log length and active units exactly.
        """
        ledger = apply_operations(new_ledger(), ops)
        log_before, units_before = ledger.log, ledger.active_units

        ledger.reset()
        assert ledger.active_units == ()
        assert ledger.undo() == Checkpoint()

        assert len(ledger.log) == len(log_before)
        assert ledger.log == log_before
        assert ledger.active_units == units_before

    @given(operations)
    @settings(max_examples=50)
    def test_double_reset_then_undo_is_empty(self, ops):
        """
        PROPERTY: reset; reset; undo leaves an empty tally and one fewer event.
        """
        ledger = apply_operations(new_ledger(), ops)
        ledger.reset()
        ledger.reset()
        length = len(ledger.log)

        ledger.undo()

        assert ledger.active_units == ()
        assert len(ledger.log) == length - 1

    @given(operations)
    @settings(max_examples=50)
    def test_undo_until_empty(self, ops):
        """
        PROPERTY: len(log) undos empty the ledger; one more is a no-op.
        """
        ledger = apply_operations(new_ledger(), ops)
        for _ in range(len(ledger.log)):
            assert ledger.undo() is not None
        assert ledger.undo() is None
        assert ledger.log == ()
        assert ledger.active_units == ()


class TestUndoExamples:
    """Explicit undo examples."""

    def test_undo_sale_keeps_earlier_units(self):
        ledger = apply_operations(new_ledger(), [("sale", "A", 3), ("sale", "B", 2)])
        ledger.undo()
        assert ledger.per_item_counts() == {"A": 3, "B": 0, "C": 0}
        assert ledger.sold_unit_count() == 3

    def test_undo_reset_restores_per_replica_timestamps(self):
        ledger = apply_operations(new_ledger(), [("sale", "A", 3)])
        before = ledger.active_units
        ledger.reset()
        ledger.undo()
        assert [u.sold_at for u in ledger.active_units] == [u.sold_at for u in before]
