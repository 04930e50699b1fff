"""
JSON File Storage Implementation

DESIGN DECISION: Each slot is one JSON file in a data directory because:
1. The office can open, back up or e-mail the files directly
2. No database setup required
3. The file layout mirrors the export document

TRADEOFFS:
- Whole-slot rewrites (fine for a single kindergarten)
- No transactions across slots (the repository orders its writes)

Writes go to a temporary file that is then atomically renamed over the
slot file, so a crash never leaves a half-written slot behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from debt_manager.models.audit import AuditEvent
from debt_manager.services.storage.interface import (
    AuditStorageInterface,
    Slot,
    SlotWriteError,
    StoreAdapter,
)


logger = structlog.get_logger(__name__)


class JsonFileStore(StoreAdapter):
    """
    Slot storage backed by one JSON file per slot.

    Files are named after the slot (e.g. kdm_families.json).
    """

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def slot_path(self, slot: Slot) -> Path:
        return self._data_dir / f"{slot.value}.json"

    def read_slot(self, slot: Slot) -> Optional[Any]:
        """Read a slot file; missing or corrupt files read as None."""
        path = self.slot_path(slot)
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("slot_read_failed", slot=slot.value, error=str(e))
            return None

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_file(self, path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def write_slot(self, slot: Slot, value: Any) -> None:
        """Write a slot file atomically."""
        payload = json.dumps(value, ensure_ascii=False, indent=2)
        path = self.slot_path(slot)
        try:
            self._write_file(path, payload)
        except OSError as e:
            logger.error("slot_write_failed", slot=slot.value, error=str(e))
            raise SlotWriteError(f"Failed to write {slot.value}: {e}") from e


class JsonFileAuditStorage(AuditStorageInterface):
    """
    Append-only audit log stored as JSON lines.

    Audit events are append-only.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(event.to_json_line() + "\n")
            return True
        except OSError as e:
            # Audit logging should not break the main flow
            logger.error("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events, newest first. Malformed lines are skipped."""
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                lines = fh.readlines()
        except FileNotFoundError:
            return []

        events = []
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                events.append(AuditEvent.model_validate_json(line))
            except ValueError:
                continue

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
