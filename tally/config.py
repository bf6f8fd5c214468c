"""Configuration for the console front end, read from the environment and an optional .env file."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from .core import ACTIVE_UNITS_FILE, DEFAULT_CATALOG, DEFAULT_ORDER_QUANTITY, EVENT_LOG_FILE


@dataclass(frozen=True)
class Settings:
    """Where the tally lives on disk and what the stall sells."""

    data_dir: Path = Path(".")
    active_units_file: str = ACTIVE_UNITS_FILE
    event_log_file: str = EVENT_LOG_FILE
    catalog: Tuple[str, ...] = DEFAULT_CATALOG
    order_quantity: int = DEFAULT_ORDER_QUANTITY
    log_level: str = "INFO"


def _parse_catalog(value: str) -> Tuple[str, ...]:
    return tuple(name.strip() for name in value.split(",") if name.strip())


def _parse_order_quantity(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        return DEFAULT_ORDER_QUANTITY
    return max(0, parsed)


@lru_cache(maxsize=1)
def get_settings(dotenv_path: Optional[str] = None) -> Settings:
    """Return cached settings, loading the .env file once without overriding existing variables."""
    load_dotenv(dotenv_path=dotenv_path or ".env", override=False)

    defaults = Settings()
    catalog = _parse_catalog(os.getenv("TALLY_CATALOG", "")) or defaults.catalog
    order_quantity = defaults.order_quantity
    if os.getenv("TALLY_ORDER_QUANTITY"):
        order_quantity = _parse_order_quantity(os.environ["TALLY_ORDER_QUANTITY"])

    return Settings(
        data_dir=Path(os.getenv("TALLY_DATA_DIR", str(defaults.data_dir))),
        active_units_file=os.getenv("TALLY_ACTIVE_UNITS_FILE", defaults.active_units_file),
        event_log_file=os.getenv("TALLY_EVENT_LOG_FILE", defaults.event_log_file),
        catalog=catalog,
        order_quantity=order_quantity,
        log_level=os.getenv("TALLY_LOG_LEVEL", defaults.log_level).upper(),
    )
