"""
Audit Models for Kindergarten Debt Manager

Every mutation of the store is logged for audit purposes.
This provides:
1. Traceability of who-changed-what in the office
2. Debugging information when things go wrong
3. A way to reconstruct what a cascade delete removed

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from debt_manager.models.records import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every repository operation has its own event type.
    """
    # Families
    FAMILY_CREATED = "family_created"
    FAMILY_UPDATED = "family_updated"
    FAMILY_DELETED = "family_deleted"

    # Comments
    COMMENT_CREATED = "comment_created"
    COMMENT_UPDATED = "comment_updated"
    COMMENT_DELETED = "comment_deleted"

    # Notifications
    NOTIFICATION_CREATED = "notification_created"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_DELETED = "notification_deleted"

    # Locations
    LOCATION_CREATED = "location_created"
    LOCATION_RENAMED = "location_renamed"
    LOCATION_DELETED = "location_deleted"

    # Whole-store operations
    SETTINGS_UPDATED = "settings_updated"
    DATA_IMPORTED = "data_imported"
    DATA_EXPORTED = "data_exported"
    DATA_CLEARED = "data_cleared"
    IMPORT_REJECTED = "import_rejected"

    # Mail relay
    EMAIL_SENT = "email_sent"
    EMAIL_FAILED = "email_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of record (e.g., 'family', 'comment', 'location')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the record this event relates to"
    )

    # Event details
    description: str = Field(
        ...,
        description="Human-readable description of what happened (max 500 chars)"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    @field_validator("description")
    @classmethod
    def truncate_description(cls, v: str) -> str:
        return v if len(v) <= 500 else v[:497] + "..."

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_json_line(self) -> str:
        """One line of the append-only audit file."""
        return json.dumps(self.model_dump(mode="json"), ensure_ascii=False)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.family_created(family_id, family_name)
        event = AuditEventBuilder.location_renamed(location_id, "A", "B", 3)
    """

    @staticmethod
    def family_created(family_id: str, family_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FAMILY_CREATED,
            entity_type="family",
            entity_id=family_id,
            description=f"Family created: {family_name}",
            details={"family_name": family_name},
        )

    @staticmethod
    def family_updated(family_id: str, changed_fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FAMILY_UPDATED,
            entity_type="family",
            entity_id=family_id,
            description=f"Family updated ({len(changed_fields)} fields)",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def family_deleted(
        family_id: str,
        family_name: str,
        removed_comments: int,
        removed_notifications: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FAMILY_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="family",
            entity_id=family_id,
            description=f"Family deleted: {family_name}",
            details={
                "family_name": family_name,
                "removed_comments": removed_comments,
                "removed_notifications": removed_notifications,
            },
        )

    @staticmethod
    def comment_created(comment_id: str, family_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMENT_CREATED,
            entity_type="comment",
            entity_id=comment_id,
            description="Comment added",
            details={"family_id": family_id},
        )

    @staticmethod
    def comment_updated(comment_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMENT_UPDATED,
            entity_type="comment",
            entity_id=comment_id,
            description="Comment edited",
        )

    @staticmethod
    def comment_deleted(comment_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMENT_DELETED,
            entity_type="comment",
            entity_id=comment_id,
            description="Comment deleted",
        )

    @staticmethod
    def notification_created(
        notification_id: str,
        family_id: str,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_CREATED,
            entity_type="notification",
            entity_id=notification_id,
            description=f"Notification created ({source})",
            details={"family_id": family_id, "source": source},
        )

    @staticmethod
    def notification_sent(notification_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_SENT,
            entity_type="notification",
            entity_id=notification_id,
            description="Notification marked as sent",
        )

    @staticmethod
    def notification_deleted(notification_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_DELETED,
            entity_type="notification",
            entity_id=notification_id,
            description="Notification deleted",
        )

    @staticmethod
    def location_created(location_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCATION_CREATED,
            entity_type="location",
            entity_id=location_id,
            description=f"Location created: {name}",
            details={"name": name},
        )

    @staticmethod
    def location_renamed(
        location_id: str,
        old_name: str,
        new_name: str,
        families_moved: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCATION_RENAMED,
            entity_type="location",
            entity_id=location_id,
            description=f"Location renamed: {old_name} -> {new_name}",
            details={
                "old_name": old_name,
                "new_name": new_name,
                "families_moved": families_moved,
            },
        )

    @staticmethod
    def location_deleted(
        location_id: str,
        name: str,
        dangling_families: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCATION_DELETED,
            severity=AuditSeverity.WARNING if dangling_families else AuditSeverity.INFO,
            entity_type="location",
            entity_id=location_id,
            description=f"Location deleted: {name}",
            details={"name": name, "dangling_families": dangling_families},
        )

    @staticmethod
    def settings_updated() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            description="WhatsApp template updated",
        )

    @staticmethod
    def data_imported(replaced: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            severity=AuditSeverity.WARNING,
            description=f"Data imported ({', '.join(replaced) or 'nothing'})",
            details={"replaced": replaced},
        )

    @staticmethod
    def data_exported(counts: dict[str, int], export_format: str = "json") -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            description=f"Data exported ({export_format})",
            details={"counts": counts, "format": export_format},
        )

    @staticmethod
    def import_rejected(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            description="Import rejected: malformed document",
            error_message=error_message,
        )

    @staticmethod
    def data_cleared(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            description="All data cleared",
            details={"counts": counts},
        )

    @staticmethod
    def email_sent(recipient: str, subject: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMAIL_SENT,
            entity_type="email",
            description=f"Email sent: {subject}",
            details={"recipient": recipient, "subject": subject},
        )

    @staticmethod
    def email_failed(recipient: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMAIL_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="email",
            description="Email relay failed",
            details={"recipient": recipient},
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
