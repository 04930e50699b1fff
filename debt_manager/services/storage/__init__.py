"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements JSON files as the backend, but designed to be swappable.
"""

from debt_manager.services.storage.interface import (
    COLLECTION_SLOTS,
    AuditStorageInterface,
    Slot,
    SlotWriteError,
    StorageError,
    StoreAdapter,
)
from debt_manager.services.storage.json_file import (
    JsonFileAuditStorage,
    JsonFileStore,
)
from debt_manager.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "COLLECTION_SLOTS",
    "Slot",
    "StoreAdapter",
    # Exceptions
    "SlotWriteError",
    "StorageError",
    # JSON file implementation
    "JsonFileAuditStorage",
    "JsonFileStore",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryStore",
]
