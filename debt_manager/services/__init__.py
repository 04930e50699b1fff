"""Services package."""

from debt_manager.services.mail import (
    MailNotConfiguredError,
    MailRelayError,
    SmtpMailRelay,
    TransportError,
)
from debt_manager.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryStore,
    JsonFileAuditStorage,
    JsonFileStore,
    SlotWriteError,
    StorageError,
    StoreAdapter,
)

__all__ = [
    # Mail services
    "MailNotConfiguredError",
    "MailRelayError",
    "SmtpMailRelay",
    "TransportError",
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryStore",
    "JsonFileAuditStorage",
    "JsonFileStore",
    "SlotWriteError",
    "StorageError",
    "StoreAdapter",
]
