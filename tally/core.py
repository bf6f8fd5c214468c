"""
Core types and pure functions for the stall sales tally.

This module provides the foundational data structures for the tally:
1. Immutable data structures: SoldUnit, Sale, Checkpoint, TallySnapshot, Catalog
2. Protocols: TallyView for read-only access by the presentation layer
3. Exceptions: TallyError and the persistence error types
4. Pure functions: the folds that re-derive active units from the event log

All functions in this module are pure and never mutate their arguments.
Only SalesLedger (ledger.py) mutates tally state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import (
    Callable, Dict, Iterable, Iterator, List, Protocol, Sequence, Tuple, Union,
    runtime_checkable,
)


logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

# The stall's menu, in the order buttons and histogram bars are laid out.
DEFAULT_CATALOG: Tuple[str, ...] = ("プレーン", "チョコ", "いちご", "はちみつ", "シナモン")

# Units sold per button press until the operator changes it.
DEFAULT_ORDER_QUANTITY = 3

# File names used by TallyStore, relative to its data directory.
ACTIVE_UNITS_FILE = "sold_food.json"
EVENT_LOG_FILE = "history.json"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class TallyError(Exception):
    """Base exception for all tally-related errors."""
    pass


class UnknownItem(TallyError):
    """Raised when an item name is not part of the catalog."""
    pass


class PersistenceError(TallyError):
    """Base class for failures at the storage boundary. Never raised by ledger operations."""
    pass


class IOFailure(PersistenceError):
    """Raised when a tally file cannot be created, opened, read or written."""
    pass


class DeserializationFailure(PersistenceError):
    """Raised when a tally file exists but its content is malformed."""
    pass


# ============================================================================
# TIME
# ============================================================================

# Time source used to stamp sold units. Injected so tests can control it.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: the current wall-clock time in UTC."""
    return datetime.now(timezone.utc)


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class SoldUnit:
    """
    One physical unit handed over the counter.

    Attributes:
        item_name: Catalog key of the item sold.
        sold_at: When the unit was recorded.
    """
    item_name: str
    sold_at: datetime

    def __post_init__(self):
        if not self.item_name or not self.item_name.strip():
            raise ValueError("SoldUnit item_name cannot be empty")
        if not isinstance(self.sold_at, datetime):
            raise ValueError(f"SoldUnit sold_at must be datetime, got {type(self.sold_at)}")

    def __repr__(self) -> str:
        return f"SoldUnit({self.item_name} @ {self.sold_at.isoformat()})"


@dataclass(frozen=True, slots=True)
class Sale:
    """
    One button press: `quantity` units of a single item.

    The log stores one Sale per press. `unit` is the representative sold unit;
    `replicas` holds the exact units appended to the active tally, each with
    its own timestamp. Logs written without replicas are expanded by repeating
    `unit` `quantity` times (see expand_sale()).

    Attributes:
        unit: Representative sold unit (carries the item name).
        quantity: Order multiplier, may be zero.
        replicas: Either empty or exactly `quantity` units of the same item.
    """
    unit: SoldUnit
    quantity: int
    replicas: Tuple[SoldUnit, ...] = ()

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Sale quantity must be int, got {type(self.quantity)}")
        if self.quantity < 0:
            raise ValueError(f"Sale quantity must be non-negative, got {self.quantity}")
        if not isinstance(self.replicas, tuple):
            object.__setattr__(self, 'replicas', tuple(self.replicas))
        if self.replicas:
            if len(self.replicas) != self.quantity:
                raise ValueError(
                    f"Sale has {len(self.replicas)} replicas for quantity {self.quantity}"
                )
            if any(r.item_name != self.unit.item_name for r in self.replicas):
                raise ValueError(f"Sale replicas must all be {self.unit.item_name}")

    @property
    def item_name(self) -> str:
        return self.unit.item_name

    def __repr__(self) -> str:
        return f"Sale({self.quantity} x {self.unit.item_name})"


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Reset marker. Units sold before it leave the active tally but stay in the log."""

    def __repr__(self) -> str:
        return "Checkpoint()"


# Closed set of log entries. Every consumer dispatches on both variants explicitly.
Event = Union[Sale, Checkpoint]


@dataclass(frozen=True, slots=True)
class TallySnapshot:
    """
    Immutable copy of ledger state taken at the moment of a mutation.

    Handed to the persistence layer so a flush never reads a log that is
    still being mutated.
    """
    log: Tuple[Event, ...]
    active_units: Tuple[SoldUnit, ...]


@dataclass(frozen=True, slots=True)
class Catalog:
    """
    Fixed, ordered set of sellable item names.

    Declaration order is the display order for counts and histograms.
    """
    items: Tuple[str, ...] = field(default=DEFAULT_CATALOG)

    def __post_init__(self):
        items = tuple(self.items)
        if not items:
            raise ValueError("Catalog must contain at least one item")
        if any(not name or not name.strip() for name in items):
            raise ValueError("Catalog item names cannot be empty")
        if len(set(items)) != len(items):
            raise ValueError(f"Catalog has duplicate items: {items}")
        object.__setattr__(self, 'items', items)

    def __contains__(self, item_name: object) -> bool:
        return item_name in self.items

    def __iter__(self) -> Iterator[str]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def item_at(self, index: int) -> str:
        """Return the item at a zero-based position (raises IndexError if out of range)."""
        return self.items[index]

    def require(self, item_name: str) -> str:
        """
        Return item_name if it is in the catalog.

        Raises:
            UnknownItem: If item_name is not a catalog key
        """
        if item_name not in self.items:
            raise UnknownItem(f"Item {item_name!r} is not in the catalog {list(self.items)}")
        return item_name


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class TallyView(Protocol):
    """
    Read-only interface to tally state.

    The presentation layer reads through this protocol on every redraw.
    All methods are O(catalog size) or O(active units).
    """

    @property
    def catalog(self) -> Catalog:
        ...

    @property
    def order_quantity(self) -> int:
        ...

    def per_item_counts(self) -> Dict[str, int]:
        """Count of active units per catalog item, in catalog order."""
        ...

    def ordered_sale_count_since_last_checkpoint(self) -> int:
        """Number of sales (button presses) since the last reset."""
        ...

    def sold_unit_count(self) -> int:
        """Number of active units."""
        ...


class TallyStorage(Protocol):
    """
    Persistence boundary used by SalesLedger.

    Implementations raise PersistenceError subclasses and nothing else.
    Loading a part that was never saved returns an empty list.
    """

    def save_active_units(self, units: Sequence[SoldUnit]) -> None:
        ...

    def save_log(self, log: Sequence[Event]) -> None:
        ...

    def load_active_units(self) -> List[SoldUnit]:
        ...

    def load_log(self) -> List[Event]:
        ...


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def expand_sale(sale: Sale) -> Tuple[SoldUnit, ...]:
    """
    Return the units a Sale contributes to the active tally.

    Uses the recorded replicas when present, otherwise repeats the
    representative unit `quantity` times.
    """
    if sale.replicas:
        return sale.replicas
    return (sale.unit,) * sale.quantity


def last_checkpoint_index(log: Sequence[Event]) -> int:
    """
    Return the index of the last Checkpoint in the log, or -1 if there is none.

    Raises:
        TypeError: If the log contains something other than Sale or Checkpoint
    """
    for index in range(len(log) - 1, -1, -1):
        event = log[index]
        if isinstance(event, Checkpoint):
            return index
        if not isinstance(event, Sale):
            raise TypeError(f"Unexpected log entry at {index}: {event!r}")
    return -1


def flatten_sales(events: Iterable[Event]) -> List[SoldUnit]:
    """
    Concatenate the units of every Sale, in log order.

    Callers pass the slice after the last checkpoint, so a Checkpoint here is
    a contract violation: it is logged and skipped.

    Raises:
        TypeError: If an entry is neither Sale nor Checkpoint
    """
    units: List[SoldUnit] = []
    for event in events:
        if isinstance(event, Sale):
            units.extend(expand_sale(event))
        elif isinstance(event, Checkpoint):
            logger.warning("Checkpoint found inside a reconstruction slice; skipping it")
        else:
            raise TypeError(f"Unexpected log entry: {event!r}")
    return units


def units_since_last_checkpoint(log: Sequence[Event]) -> List[SoldUnit]:
    """
    Re-derive the active units from a log.

    Returns the flattened Sale units strictly after the last Checkpoint, or
    from the start of the log if there is none.
    """
    start = last_checkpoint_index(log) + 1
    return flatten_sales(log[start:])


def count_orders_since_last_checkpoint(log: Sequence[Event]) -> int:
    """
    Number of log entries after the last Checkpoint.

    Every entry after the last Checkpoint is a Sale, so this is the number of
    orders (button presses) in the current epoch.
    """
    return len(log) - 1 - last_checkpoint_index(log)


def count_items(catalog: Catalog, units: Iterable[SoldUnit]) -> Dict[str, int]:
    """
    Count units per catalog item.

    Returns a dict in catalog order with an entry (possibly zero) for every
    item. Names outside the catalog are not counted.
    """
    counts: Dict[str, int] = {name: 0 for name in catalog}
    for unit in units:
        if unit.item_name in counts:
            counts[unit.item_name] += 1
    return counts


def item_names(units: Iterable[SoldUnit]) -> List[str]:
    """Item names of a unit sequence, in order."""
    return [unit.item_name for unit in units]


def find_unknown_items(catalog: Catalog, names: Iterable[str]) -> List[str]:
    """Return the distinct names not in the catalog, in first-seen order."""
    unknown: List[str] = []
    for name in names:
        if name not in catalog and name not in unknown:
            unknown.append(name)
    return unknown


def sale_item_names(log: Iterable[Event]) -> Iterator[str]:
    """Item names referenced by the Sales in a log."""
    for event in log:
        if isinstance(event, Sale):
            yield event.item_name
        elif not isinstance(event, Checkpoint):
            raise TypeError(f"Unexpected log entry: {event!r}")
