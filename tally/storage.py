"""
storage.py - JSON file persistence for the tally

TallyStore keeps two independently loadable files in a data directory:

    sold_food.json  - the active units (overwritten on every flush)
    history.json    - the full event log (overwritten on every flush)

A missing file loads as empty. Filesystem problems raise IOFailure and
malformed content raises DeserializationFailure; SalesLedger catches both,
logs them, and carries on with its in-memory state.
"""

from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .core import (
    SoldUnit, Event,
    ACTIVE_UNITS_FILE, EVENT_LOG_FILE,
    IOFailure, DeserializationFailure,
)
from .serialization import (
    dumps_active_units, loads_active_units,
    dumps_log, loads_log,
)


logger = logging.getLogger(__name__)


class TallyStore:
    """
    File-backed storage for the active units and the event log.

    Writes go to a sibling temporary file which then replaces the target, so a
    crash mid-write leaves the previous file intact.
    """

    def __init__(
        self,
        data_dir: Union[str, Path] = ".",
        active_units_file: str = ACTIVE_UNITS_FILE,
        event_log_file: str = EVENT_LOG_FILE,
    ):
        """
        Args:
            data_dir: Directory holding both files (created on first write)
            active_units_file: File name for the active units
            event_log_file: File name for the event log
        """
        self.data_dir = Path(data_dir)
        self.active_units_path = self.data_dir / active_units_file
        self.event_log_path = self.data_dir / event_log_file

    def __repr__(self) -> str:
        return f"TallyStore({self.data_dir})"

    # ========================================================================
    # SAVE
    # ========================================================================

    def save_active_units(self, units: Iterable[SoldUnit]) -> None:
        """
        Overwrite the active-units file.

        Raises:
            IOFailure: If the file cannot be written
        """
        self._write(self.active_units_path, dumps_active_units(units))

    def save_log(self, log: Iterable[Event]) -> None:
        """
        Overwrite the event-log file.

        Raises:
            IOFailure: If the file cannot be written
        """
        self._write(self.event_log_path, dumps_log(log))

    # ========================================================================
    # LOAD
    # ========================================================================

    def load_active_units(self) -> List[SoldUnit]:
        """
        Read the active units, or [] if the file does not exist.

        Raises:
            IOFailure: If the file exists but cannot be read
            DeserializationFailure: If the content is malformed
        """
        text = self._read(self.active_units_path)
        if text is None:
            return []
        return loads_active_units(text)

    def load_log(self) -> List[Event]:
        """
        Read the event log, or [] if the file does not exist.

        Raises:
            IOFailure: If the file exists but cannot be read
            DeserializationFailure: If the content is malformed
        """
        text = self._read(self.event_log_path)
        if text is None:
            return []
        return loads_log(text)

    # ========================================================================
    # FILE ACCESS
    # ========================================================================

    def _write(self, path: Path, text: str) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise IOFailure(f"Cannot write {path}: {e}") from e
        logger.debug("Wrote %s (%d bytes)", path, len(text))

    @staticmethod
    def _read(path: Path) -> Optional[str]:
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise IOFailure(f"Cannot read {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise DeserializationFailure(f"{path} is not UTF-8 text: {e}") from e
