"""
Data Models Package

This package contains all Pydantic models used in the Kindergarten Debt Manager.
All data flowing through the system must conform to these schemas.
"""

from debt_manager.models.records import (
    DEFAULT_WHATSAPP_GREETING,
    DEFAULT_WHATSAPP_SIGNATURE,
    FAMILY_MUTABLE_FIELDS,
    FAMILY_NAME_PLACEHOLDER,
    Comment,
    Family,
    Location,
    Notification,
    NotificationSource,
    StoreSettings,
    StoreSnapshot,
    StoredRecord,
    generate_id,
    utc_now,
)
from debt_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "DEFAULT_WHATSAPP_GREETING",
    "DEFAULT_WHATSAPP_SIGNATURE",
    "FAMILY_MUTABLE_FIELDS",
    "FAMILY_NAME_PLACEHOLDER",
    "Comment",
    "Family",
    "Location",
    "Notification",
    "NotificationSource",
    "StoreSettings",
    "StoreSnapshot",
    "StoredRecord",
    "generate_id",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
