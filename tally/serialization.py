"""
serialization.py - JSON codec for sold units and the event log

Wire layout (the stall's established file format):

    active units:  [{"name": "チョコ", "time": "2025-05-03T10:15:00.123456+00:00"}, ...]
    event log:     [{"Food": [{"name": ..., "time": ...}, 3]}, "Reset", ...]

A Sale recorded with per-replica timestamps adds a "replicas" key next to
"Food". Decoding accepts both forms.

Every decoding problem is reported as DeserializationFailure.
"""

from __future__ import annotations
from datetime import datetime, timezone
import json
import re
from typing import Any, Dict, Iterable, List

from .core import (
    SoldUnit, Sale, Checkpoint, Event,
    DeserializationFailure,
)


SALE_TAG = "Food"
CHECKPOINT_TAG = "Reset"
REPLICAS_KEY = "replicas"

# Fractional seconds beyond microseconds (e.g. nanosecond timestamps) are truncated.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


# ============================================================================
# TIMESTAMPS
# ============================================================================

def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def parse_timestamp(text: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp.

    Accepts a trailing "Z" and more than six fractional digits. Naive
    timestamps are taken to be UTC.

    Raises:
        DeserializationFailure: If text is not a valid timestamp string
    """
    if not isinstance(text, str):
        raise DeserializationFailure(f"Timestamp must be a string, got {type(text).__name__}")
    normalized = text.strip()
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    normalized = _FRACTION_RE.sub(r"\1", normalized)
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as e:
        raise DeserializationFailure(f"Invalid timestamp {text!r}: {e}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# SOLD UNITS
# ============================================================================

def sold_unit_to_dict(unit: SoldUnit) -> Dict[str, str]:
    return {"name": unit.item_name, "time": format_timestamp(unit.sold_at)}


def sold_unit_from_dict(data: Any) -> SoldUnit:
    """
    Decode a {"name", "time"} record.

    Raises:
        DeserializationFailure: On missing keys or invalid values
    """
    if not isinstance(data, dict):
        raise DeserializationFailure(f"Sold unit must be an object, got {data!r}")
    if "name" not in data or "time" not in data:
        raise DeserializationFailure(f"Sold unit needs 'name' and 'time': {data!r}")
    name = data["name"]
    if not isinstance(name, str):
        raise DeserializationFailure(f"Sold unit name must be a string, got {name!r}")
    try:
        return SoldUnit(item_name=name, sold_at=parse_timestamp(data["time"]))
    except ValueError as e:
        raise DeserializationFailure(f"Invalid sold unit {data!r}: {e}") from e


# ============================================================================
# EVENTS
# ============================================================================

def event_to_json(event: Event) -> Any:
    """Encode one log entry. Sale -> {"Food": [unit, quantity]}, Checkpoint -> "Reset"."""
    if isinstance(event, Sale):
        encoded: Dict[str, Any] = {SALE_TAG: [sold_unit_to_dict(event.unit), event.quantity]}
        if event.replicas:
            encoded[REPLICAS_KEY] = [sold_unit_to_dict(r) for r in event.replicas]
        return encoded
    if isinstance(event, Checkpoint):
        return CHECKPOINT_TAG
    raise TypeError(f"Cannot encode log entry: {event!r}")


def event_from_json(data: Any) -> Event:
    """
    Decode one log entry.

    Raises:
        DeserializationFailure: If the entry is neither a Sale nor a Checkpoint record
    """
    if data == CHECKPOINT_TAG:
        return Checkpoint()
    if not isinstance(data, dict) or SALE_TAG not in data:
        raise DeserializationFailure(f"Unrecognized log entry: {data!r}")

    payload = data[SALE_TAG]
    if not isinstance(payload, list) or len(payload) != 2:
        raise DeserializationFailure(f"Sale payload must be [unit, quantity]: {payload!r}")
    raw_unit, quantity = payload
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise DeserializationFailure(f"Sale quantity must be an integer: {quantity!r}")

    raw_replicas = data.get(REPLICAS_KEY, [])
    if not isinstance(raw_replicas, list):
        raise DeserializationFailure(f"Sale replicas must be a list: {raw_replicas!r}")

    try:
        return Sale(
            unit=sold_unit_from_dict(raw_unit),
            quantity=quantity,
            replicas=tuple(sold_unit_from_dict(r) for r in raw_replicas),
        )
    except ValueError as e:
        raise DeserializationFailure(f"Invalid sale {data!r}: {e}") from e


# ============================================================================
# DOCUMENTS
# ============================================================================

def _loads_array(text: str, what: str) -> List[Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DeserializationFailure(f"{what} is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise DeserializationFailure(f"{what} must be a JSON array, got {type(data).__name__}")
    return data


def dumps_active_units(units: Iterable[SoldUnit]) -> str:
    return json.dumps([sold_unit_to_dict(u) for u in units], ensure_ascii=False)


def loads_active_units(text: str) -> List[SoldUnit]:
    """
    Decode an active-units document.

    Raises:
        DeserializationFailure: If the document or any record is malformed
    """
    return [sold_unit_from_dict(item) for item in _loads_array(text, "Active units")]


def dumps_log(log: Iterable[Event]) -> str:
    return json.dumps([event_to_json(e) for e in log], ensure_ascii=False)


def loads_log(text: str) -> List[Event]:
    """
    Decode an event-log document.

    Raises:
        DeserializationFailure: If the document or any entry is malformed
    """
    return [event_from_json(item) for item in _loads_array(text, "Event log")]
