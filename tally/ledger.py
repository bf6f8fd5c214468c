"""
ledger.py - Stateful sales ledger with undo and reset

The SalesLedger class is the central state manager for the stall tally.
It is the only module that mutates state.

Key responsibilities:
    - Implements the TallyView protocol for the presentation layer
    - Records sales and resets as events in an append-only log
    - Keeps the active units consistent with the log, including after undo
    - Flushes an immutable snapshot to storage after every mutation
    - Never lets a persistence failure disturb in-memory state
"""

from __future__ import annotations
import logging
import sys
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .core import (
    # Types
    SoldUnit, Sale, Checkpoint, Event, Catalog, TallySnapshot,
    TallyStorage, Clock,
    # Constants
    DEFAULT_ORDER_QUANTITY,
    # Exceptions
    PersistenceError, DeserializationFailure,
    # Pure functions
    utc_now, expand_sale, units_since_last_checkpoint,
    count_orders_since_last_checkpoint, count_items,
    item_names, find_unknown_items, sale_item_names,
)


logger = logging.getLogger(__name__)


class SalesLedger:
    """
    Event-sourced tally of units sold at the stall.

    State is the tuple (log, active_units, order_quantity). The log only ever
    grows by one event (record_sale, reset) or shrinks by its last event
    (undo). active_units always equals the flattened Sale units after the
    last Checkpoint in the log.

    History is never compacted: every sale since the ledger was created stays
    in the log.

    Thread Safety:
        Not thread-safe. All calls must come from the thread that owns the ledger.

    Example:
        ledger = SalesLedger(Catalog(("A", "B")))
        ledger.record_sale("A", 3)
        ledger.reset()
        ledger.undo()                  # active units are back to 3 x A
        ledger.per_item_counts()       # {'A': 3, 'B': 0}
    """

    def __init__(
        self,
        catalog: Optional[Catalog] = None,
        order_quantity: int = DEFAULT_ORDER_QUANTITY,
        store: Optional[TallyStorage] = None,
        clock: Optional[Clock] = None,
        verbose: bool = False,
    ):
        """
        Create an empty ledger.

        Args:
            catalog: Items that may be sold (default: the stall's menu)
            order_quantity: Units per sale when record_sale() gets no quantity
            store: Where to flush after each mutation (None = memory only)
            clock: Time source for sold units (default: UTC wall clock)
            verbose: Print a line for every mutation
        """
        self._catalog = catalog or Catalog()
        self._log: List[Event] = []
        self._active_units: List[SoldUnit] = []
        self._order_quantity: int = max(0, order_quantity)
        self.store = store
        self.clock: Clock = clock or utc_now
        self.verbose = verbose

    @classmethod
    def open(
        cls,
        store: TallyStorage,
        catalog: Optional[Catalog] = None,
        order_quantity: int = DEFAULT_ORDER_QUANTITY,
        clock: Optional[Clock] = None,
        verbose: bool = False,
    ) -> SalesLedger:
        """
        Create a ledger restored from storage.

        Load failures are logged and leave the affected part empty; they never
        prevent the ledger from being created.
        """
        ledger = cls(catalog, order_quantity, store=store, clock=clock, verbose=verbose)
        ledger.load()
        return ledger

    def __repr__(self) -> str:
        return (
            f"SalesLedger({len(self._log)} events, {len(self._active_units)} active units, "
            f"order_quantity={self._order_quantity})"
        )

    # ========================================================================
    # TallyView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def order_quantity(self) -> int:
        return self._order_quantity

    @property
    def log(self) -> Tuple[Event, ...]:
        """The event log, oldest first."""
        return tuple(self._log)

    @property
    def active_units(self) -> Tuple[SoldUnit, ...]:
        """Units sold since the last reset, oldest first."""
        return tuple(self._active_units)

    def per_item_counts(self) -> Dict[str, int]:
        """
        Count active units per catalog item.

        Returns:
            Dict in catalog order with an entry for every item (zero if unsold)
        """
        return count_items(self._catalog, self._active_units)

    def ordered_sale_count_since_last_checkpoint(self) -> int:
        """
        Number of orders (button presses, not units) since the last reset.

        Computed as len(log) - 1 - index_of_last_checkpoint, where the index
        is -1 when the log holds no Checkpoint.
        """
        return count_orders_since_last_checkpoint(self._log)

    def sold_unit_count(self) -> int:
        """Number of active units."""
        return len(self._active_units)

    def snapshot(self) -> TallySnapshot:
        """Immutable copy of the log and active units."""
        return TallySnapshot(log=tuple(self._log), active_units=tuple(self._active_units))

    def verify_consistency(self, compare_timestamps: bool = True) -> Dict[str, Any]:
        """
        Check that the active units match what the log implies.

        Args:
            compare_timestamps: Compare full SoldUnits. When False only the
                item-name sequence is compared, which tolerates logs that
                carry a representative unit instead of per-replica units.

        Returns:
            Dict with keys:
            - 'valid': bool - True if active units match the log
            - 'expected': List - Units (or names) derived from the log
            - 'actual': List - Current active units (or names)
            - 'discrepancy': Optional[Dict] - First mismatching position, if any
        """
        expected: List[Any] = units_since_last_checkpoint(self._log)
        actual: List[Any] = list(self._active_units)
        if not compare_timestamps:
            expected = item_names(expected)
            actual = item_names(actual)

        discrepancy = None
        if expected != actual:
            position = next(
                (i for i, (e, a) in enumerate(zip(expected, actual)) if e != a),
                min(len(expected), len(actual)),
            )
            discrepancy = {
                'position': position,
                'expected': expected[position] if position < len(expected) else None,
                'actual': actual[position] if position < len(actual) else None,
                'expected_length': len(expected),
                'actual_length': len(actual),
            }

        return {
            'valid': discrepancy is None,
            'expected': expected,
            'actual': actual,
            'discrepancy': discrepancy,
        }

    # ========================================================================
    # ORDER QUANTITY (Mutating, not logged)
    # ========================================================================

    def set_order_quantity(self, n: int) -> int:
        """
        Set the units-per-sale used when record_sale() gets no quantity.

        Negative values are clamped to 0.

        Returns:
            The stored value
        """
        if n < 0:
            logger.debug("Order quantity %d clamped to 0", n)
        self._order_quantity = max(0, n)
        return self._order_quantity

    def adjust_order_quantity(self, delta: int) -> int:
        """Add delta (typically +1 or -1) to the order quantity, clamped at 0."""
        return self.set_order_quantity(self._order_quantity + delta)

    # ========================================================================
    # SALES, RESET, UNDO (Mutating)
    # ========================================================================

    def record_sale(self, item_name: str, quantity: Optional[int] = None) -> Sale:
        """
        Record one order of `quantity` units of an item.

        Each unit gets its own timestamp from the clock. A quantity of 0 is
        logged but adds no units.

        Args:
            item_name: Catalog key of the item sold
            quantity: Units in this order (default: current order_quantity)

        Returns:
            The Sale appended to the log

        Raises:
            UnknownItem: If item_name is not in the catalog
            ValueError: If quantity is negative
        """
        self._catalog.require(item_name)
        if quantity is None:
            quantity = self._order_quantity
        if quantity < 0:
            raise ValueError(f"Sale quantity must be non-negative, got {quantity}")

        replicas = tuple(SoldUnit(item_name, self.clock()) for _ in range(quantity))
        unit = replicas[0] if replicas else SoldUnit(item_name, self.clock())
        sale = Sale(unit=unit, quantity=quantity, replicas=replicas)

        self._apply(sale)
        if self.verbose:
            print(f"✓ SALE: {quantity} x {item_name} (total {len(self._active_units)})")
        self._flush()
        return sale

    def reset(self) -> None:
        """
        Clear the active units and log a Checkpoint.

        Earlier sales stay in the log, so undo() can bring them back.
        """
        self._apply(Checkpoint())
        if self.verbose:
            print(f"↺ RESET: checkpoint at log position {len(self._log) - 1}")
        self._flush()

    def undo(self) -> Optional[Event]:
        """
        Remove the most recent event and restore the state before it.

        Undoing a Sale drops its units from the end of the active units.
        Undoing a Checkpoint re-derives the active units from the sales
        after the previous Checkpoint (or from the start of the log).

        Returns:
            The removed event, or None if the log was empty
        """
        if not self._log:
            return None

        event = self._log.pop()
        if isinstance(event, Sale):
            removable = min(event.quantity, len(self._active_units))
            if removable < event.quantity:
                logger.warning(
                    "Undo of %r found only %d active units", event, len(self._active_units)
                )
            if removable:
                del self._active_units[-removable:]
        elif isinstance(event, Checkpoint):
            self._active_units = units_since_last_checkpoint(self._log)
        else:
            raise TypeError(f"Unexpected log entry: {event!r}")

        if self.verbose:
            print(f"✗ UNDO: {event!r} (total {len(self._active_units)})")
        self._flush()
        return event

    def _apply(self, event: Event) -> None:
        """Append an event and apply its effect on the active units."""
        if isinstance(event, Sale):
            self._active_units.extend(expand_sale(event))
        elif isinstance(event, Checkpoint):
            self._active_units.clear()
        else:
            raise TypeError(f"Unexpected log entry: {event!r}")
        self._log.append(event)

    # ========================================================================
    # PERSISTENCE
    # ========================================================================

    def _flush(self) -> bool:
        """
        Write a snapshot of the current state to the store.

        Each file is written independently; a failure is logged and the
        other file is still attempted.

        Returns:
            True if both files were written (or there is no store)
        """
        if self.store is None:
            return True
        snapshot = self.snapshot()
        ok = True
        try:
            self.store.save_active_units(snapshot.active_units)
        except PersistenceError as e:
            logger.error("Failed to save active units: %s", e)
            ok = False
        try:
            self.store.save_log(snapshot.log)
        except PersistenceError as e:
            logger.error("Failed to save event log: %s", e)
            ok = False
        return ok

    def save(self) -> bool:
        """Flush the current state to the store. Returns False if any write failed."""
        return self._flush()

    def load(self) -> bool:
        """
        Replace in-memory state with what the store holds.

        Each file is loaded independently. A part that fails to load is logged
        and becomes empty. If the loaded active units do not match the log,
        the two are reconciled (see _reconcile).

        Returns:
            True if both parts loaded cleanly
        """
        if self.store is None:
            return True

        units, units_ok = self._load_part("active units", self.store.load_active_units, item_names)
        log, log_ok = self._load_part("event log", self.store.load_log, sale_item_names)

        self._active_units = units
        self._log = log
        self._reconcile(units_ok)

        if self.verbose:
            print(f"📂 LOADED: {len(self._log)} events, {len(self._active_units)} active units")
        return units_ok and log_ok

    def _reconcile(self, units_ok: bool) -> None:
        """
        Settle a disagreement between the loaded active units and the log.

        - No log: the active units are kept as loaded.
        - Active units read cleanly but empty while the current epoch has
          units: the tally was reset after the log was last written, so the
          missing Checkpoint is appended.
        - Otherwise the active units are rebuilt from the log.
        """
        report = self.verify_consistency(compare_timestamps=False)
        if report['valid']:
            return
        if not self._log:
            logger.warning(
                "No event log to check %d active units against; keeping them",
                len(self._active_units),
            )
        elif units_ok and not self._active_units:
            logger.warning("Active units are empty but the event log is not; restoring the lost reset")
            self._log.append(Checkpoint())
        else:
            logger.warning(
                "Active units do not match the event log (%s); rebuilding from the log",
                report['discrepancy'],
            )
            self._active_units = units_since_last_checkpoint(self._log)

    def _load_part(
        self,
        label: str,
        loader: Callable[[], List[Any]],
        names_of: Callable[[Sequence[Any]], Any],
    ) -> Tuple[List[Any], bool]:
        try:
            loaded = loader()
            unknown = find_unknown_items(self._catalog, names_of(loaded))
            if unknown:
                raise DeserializationFailure(f"Items not in the catalog: {unknown}")
        except PersistenceError as e:
            logger.error("Failed to load %s: %s", label, e)
            return [], False
        return loaded, True

    # ========================================================================
    # RECONSTRUCTION
    # ========================================================================

    def _empty_like(self) -> SalesLedger:
        return SalesLedger(
            self._catalog,
            self._order_quantity,
            store=None,
            clock=self.clock,
            verbose=False,
        )

    def clone(self) -> SalesLedger:
        """
        Create an independent copy of the ledger without a store.

        Events and units are immutable, so copying the lists is enough.
        """
        cloned = self._empty_like()
        cloned._log = list(self._log)
        cloned._active_units = list(self._active_units)
        return cloned

    def clone_at(self, position: int) -> SalesLedger:
        """
        Reconstruct the ledger as it was after the first `position` events.

        Args:
            position: Number of events to keep (0 = empty ledger)

        Raises:
            ValueError: If position is outside 0..len(log)
        """
        if position < 0 or position > len(self._log):
            raise ValueError(f"Position {position} outside 0..{len(self._log)}")
        cloned = self._empty_like()
        for event in self._log[:position]:
            cloned._apply(event)
        return cloned

    def replay(self) -> SalesLedger:
        """
        Create a new ledger by re-applying the whole log from an empty state.

        The result's active units are derived purely from the log, so
        comparing them with this ledger's proves the log is complete.
        """
        return self.clone_at(len(self._log))

    def get_memory_stats(self) -> Dict[str, int]:
        """
        Estimate memory consumption of the log and active units.

        The log is never compacted, so this is the figure to watch on a
        long-running stall.

        Returns:
            Dictionary with byte estimates for 'log', 'active_units' and 'total'
        """
        log_size = sys.getsizeof(self._log)
        for event in self._log:
            log_size += sys.getsizeof(event)
            if isinstance(event, Sale):
                log_size += sys.getsizeof(event.unit) + sys.getsizeof(event.replicas)
                for replica in event.replicas:
                    log_size += sys.getsizeof(replica)

        units_size = sys.getsizeof(self._active_units)
        for unit in self._active_units:
            units_size += sys.getsizeof(unit)

        return {
            'log': log_size,
            'active_units': units_size,
            'total': log_size + units_size,
        }
