"""
tally - Sales tally for a single food stall

Records sales of a fixed menu into an event log, with undo and reset that
keep the full history.

Usage:
    from tally import SalesLedger, Catalog, TallyStore

    ledger = SalesLedger.open(TallyStore("data"), Catalog(("plain", "choco")))
    ledger.record_sale("choco")          # order_quantity units (default 3)
    ledger.record_sale("plain", 2)
    ledger.reset()                       # tally cleared, history kept
    ledger.undo()                        # reset undone, tally restored
    ledger.per_item_counts()             # {'plain': 2, 'choco': 3}
"""

# Core types
from .core import (
    SoldUnit,
    Sale,
    Checkpoint,
    Event,
    Catalog,
    TallySnapshot,
    TallyView,
    TallyStorage,
    TallyError,
    UnknownItem,
    PersistenceError,
    IOFailure,
    DeserializationFailure,
    expand_sale,
    last_checkpoint_index,
    flatten_sales,
    units_since_last_checkpoint,
    count_orders_since_last_checkpoint,
    count_items,
    utc_now,
    DEFAULT_CATALOG,
    DEFAULT_ORDER_QUANTITY,
    ACTIVE_UNITS_FILE,
    EVENT_LOG_FILE,
)

# Ledger
from .ledger import SalesLedger

# Persistence
from .serialization import (
    event_to_json,
    event_from_json,
    dumps_active_units,
    loads_active_units,
    dumps_log,
    loads_log,
    parse_timestamp,
)
from .storage import TallyStore

__all__ = [
    # Core
    'SoldUnit', 'Sale', 'Checkpoint', 'Event', 'Catalog', 'TallySnapshot',
    'TallyView', 'TallyStorage',
    'TallyError', 'UnknownItem', 'PersistenceError', 'IOFailure', 'DeserializationFailure',
    'expand_sale', 'last_checkpoint_index', 'flatten_sales', 'units_since_last_checkpoint',
    'count_orders_since_last_checkpoint', 'count_items', 'utc_now',
    'DEFAULT_CATALOG', 'DEFAULT_ORDER_QUANTITY', 'ACTIVE_UNITS_FILE', 'EVENT_LOG_FILE',
    # Ledger
    'SalesLedger',
    # Persistence
    'event_to_json', 'event_from_json',
    'dumps_active_units', 'loads_active_units', 'dumps_log', 'loads_log',
    'parse_timestamp',
    'TallyStore',
]

__version__ = '1.0.0'
