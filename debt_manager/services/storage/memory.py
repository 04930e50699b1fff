"""
In-Memory Storage Implementation

Used by tests and by ephemeral sessions (e.g. a demo UI without a data
directory). Values are kept as JSON text so reads always return fresh
copies, just like a real serialized store.
"""

import json
from typing import Any, Optional

from debt_manager.models.audit import AuditEvent
from debt_manager.services.storage.interface import (
    AuditStorageInterface,
    Slot,
    StoreAdapter,
)


class InMemoryStore(StoreAdapter):
    """Slot storage held in a dict of JSON strings."""

    def __init__(self, initial: Optional[dict[Slot, Any]] = None):
        self._slots: dict[Slot, str] = {}
        self.write_count = 0
        for slot, value in (initial or {}).items():
            self._slots[slot] = json.dumps(value)

    def read_slot(self, slot: Slot) -> Optional[Any]:
        raw = self._slots.get(slot)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    def write_slot(self, slot: Slot, value: Any) -> None:
        self._slots[slot] = json.dumps(value, ensure_ascii=False)
        self.write_count += 1

    def put_raw(self, slot: Slot, raw: str) -> None:
        """Store undecoded text as-is (to simulate corruption)."""
        self._slots[slot] = raw


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events kept in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
