"""
console.py - Terminal front end for the stall tally

Renders the running tally with a text histogram and forwards operator
commands to a SalesLedger. Holds no state of its own: every redraw reads
through the TallyView protocol.

Commands:
    1..N or item name   record a sale of the current order quantity
    u                   undo the last sale or reset
    r                   reset the running tally (history is kept)
    + / -               change the order quantity
    s / l               save to / load from disk
    q                   quit

Run:
    python -m tally
"""

from __future__ import annotations
import logging
from typing import Callable, Optional
import unicodedata

from .config import Settings, get_settings
from .core import Catalog, TallyView
from .ledger import SalesLedger
from .storage import TallyStore


logger = logging.getLogger(__name__)

WIDTH = 48        # Inner width of the rendered box, in terminal columns
BAR_WIDTH = 20    # Columns for the longest histogram bar

HELP = "1-{n} or item name: sell  u: undo  r: reset  +/-: quantity  s: save  l: load  q: quit"


def _display_width(text: str) -> int:
    """Terminal columns used by text (wide CJK characters take two)."""
    return sum(2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1 for ch in text)


def _pad(text: str, width: int) -> str:
    return text + " " * max(0, width - _display_width(text))


def render(view: TallyView) -> str:
    """
    Draw the tally as a boxed table with one histogram row per catalog item.

    Bars are scaled so the best-selling item fills BAR_WIDTH columns.
    """
    counts = view.per_item_counts()
    top = max(counts.values(), default=0)
    label_width = max((_display_width(name) for name in counts), default=0)
    bar = "─" * WIDTH

    lines = [
        f"┌{bar}┐",
        f"│{_pad(f' {view.sold_unit_count()} sold (orders: {view.ordered_sale_count_since_last_checkpoint()})', WIDTH)}│",
        f"├{bar}┤",
    ]
    for index, (name, count) in enumerate(counts.items(), start=1):
        length = round(count / top * BAR_WIDTH) if top else 0
        row = f" {index}. {_pad(name, label_width)} {'█' * length} {count}"
        lines.append(f"│{_pad(row, WIDTH)}│")
    lines.append(f"├{bar}┤")
    lines.append(f"│{_pad(f' order quantity: {view.order_quantity}', WIDTH)}│")
    lines.append(f"└{bar}┘")
    return "\n".join(lines)


def _resolve_item(catalog: Catalog, command: str) -> Optional[str]:
    if command in catalog:
        return command
    if command.isdecimal():
        index = int(command) - 1
        if 0 <= index < len(catalog):
            return catalog.item_at(index)
    return None


def handle_command(
    ledger: SalesLedger,
    command: str,
    out: Callable[[str], None] = print,
) -> bool:
    """
    Apply one operator command to the ledger.

    Returns:
        False if the operator asked to quit, True otherwise
    """
    command = command.strip()
    if not command:
        return True
    if command.lower() in ("q", "quit"):
        return False

    lowered = command.lower()
    if lowered == "u":
        if ledger.undo() is None:
            out("nothing to undo")
    elif lowered == "r":
        ledger.reset()
    elif command == "+":
        ledger.adjust_order_quantity(1)
    elif command == "-":
        ledger.adjust_order_quantity(-1)
    elif lowered == "s":
        if not ledger.save():
            out("save failed, see log")
    elif lowered == "l":
        if not ledger.load():
            out("load failed, see log")
    else:
        item = _resolve_item(ledger.catalog, command)
        if item is None:
            out(HELP.format(n=len(ledger.catalog)))
        else:
            ledger.record_sale(item)
    return True


def main(
    settings: Optional[Settings] = None,
    input_fn: Callable[[str], str] = input,
    out: Callable[[str], None] = print,
) -> int:
    """Open the ledger from disk and run the command loop until quit or end of input."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = TallyStore(settings.data_dir, settings.active_units_file, settings.event_log_file)
    ledger = SalesLedger.open(
        store,
        catalog=Catalog(settings.catalog),
        order_quantity=settings.order_quantity,
    )
    logger.info("Opened %r from %r", ledger, store)

    out(HELP.format(n=len(ledger.catalog)))
    try:
        while True:
            out(render(ledger))
            try:
                command = input_fn("> ")
            except EOFError:
                break
            if not handle_command(ledger, command, out):
                break
    finally:
        ledger.save()
    return 0
