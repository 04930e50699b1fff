"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON files for a real database later
2. Use in-memory storage for testing
3. Keep the repository decoupled from storage implementation

The store is a plain key/value space of named slots. Four slots hold
lists of records and one holds the settings object. The repository owns
all semantics; the store only reads and writes whole slots.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

import structlog

from debt_manager.models.audit import AuditEvent


logger = structlog.get_logger(__name__)


class Slot(str, Enum):
    """Named storage slots."""
    FAMILIES = "kdm_families"
    COMMENTS = "kdm_comments"
    NOTIFICATIONS = "kdm_notifications"
    LOCATIONS = "kdm_locations"
    SETTINGS = "kdm_settings"


COLLECTION_SLOTS = (
    Slot.FAMILIES,
    Slot.COMMENTS,
    Slot.NOTIFICATIONS,
    Slot.LOCATIONS,
)


class StoreAdapter(ABC):
    """
    Abstract interface for slot persistence.

    Implementations only need read_slot/write_slot. Reads never raise for
    missing or corrupt data; writes raise StorageError on failure.
    """

    @abstractmethod
    def read_slot(self, slot: Slot) -> Optional[Any]:
        """
        Read the raw decoded value of a slot.

        Returns:
            The last successfully written value, or None if the slot is
            missing or cannot be decoded
        """
        pass

    @abstractmethod
    def write_slot(self, slot: Slot, value: Any) -> None:
        """
        Replace the value of a slot.

        Args:
            slot: Which slot to write
            value: JSON-serializable value

        Raises:
            StorageError: If the write fails
        """
        pass

    def load_collection(self, slot: Slot) -> list[dict]:
        """Read a collection slot, degrading to an empty list."""
        value = self.read_slot(slot)
        if not isinstance(value, list):
            if value is not None:
                logger.warning("slot_not_a_list", slot=slot.value)
            return []
        return [item for item in value if isinstance(item, dict)]

    def load_settings(self) -> dict:
        """Read the settings slot, degrading to an empty dict."""
        value = self.read_slot(Slot.SETTINGS)
        if not isinstance(value, dict):
            return {}
        return value


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class SlotWriteError(StorageError):
    """A slot could not be written."""
    pass
