"""
Main Orchestrator for Kindergarten Debt Manager

This module ties together all the components and defines the
end-to-end flows for:
1. Comment as WhatsApp (comment → sent notification → composed link)
2. Pending notification send (notification → family → link → mark sent)
3. Notification e-mail (notification → composed message → SMTP relay)
4. Whole-store maintenance (export, import, clear)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Messages are never delivered from here; the UI opens the link
- A notification is marked sent only once its family resolved
- Every step is audited through the repository's audit logger
"""

from typing import Optional, Union

import structlog

from debt_manager.audit import AuditLogger
from debt_manager.config import get_settings
from debt_manager.dispatch import WhatsAppMessage, compose_message, prepare_whatsapp
from debt_manager.models.audit import AuditEventBuilder
from debt_manager.models.records import Comment, Notification, NotificationSource
from debt_manager.queries import resolve_family
from debt_manager.repository import EntityRepository, NotFoundError, ValidationError
from debt_manager.serialization import (
    export_json,
    export_workbook,
    import_json,
    record_export,
)
from debt_manager.services.mail import MailRelayError, SmtpMailRelay
from debt_manager.services.storage import (
    InMemoryAuditStorage,
    InMemoryStore,
    JsonFileAuditStorage,
    JsonFileStore,
)


logger = structlog.get_logger(__name__)

DEFAULT_EMAIL_SUBJECT = "תזכורת תשלום"


class NotificationFlow:
    """
    Orchestrates outbound notifications.

    Flow (comment as WhatsApp):
    1. Validate text and family
    2. Save the text as a comment
    3. Save a notification (source=comment, already sent)
    4. Compose greeting + text + signature and the wa.me link

    Flow (pending notification):
    1. Resolve the notification and its family
    2. Mark sent
    3. Compose the link
    """

    def __init__(
        self,
        repository: EntityRepository,
        mail_relay: Optional[SmtpMailRelay] = None,
    ):
        self._repository = repository
        self._mail_relay = mail_relay

    def send_comment_as_whatsapp(
        self,
        family_id: str,
        text: str,
    ) -> tuple[Comment, Notification, WhatsAppMessage]:
        """
        Record a comment, log it as a sent notification and build the link.

        Raises:
            ValidationError: If the text is blank
            NotFoundError: If the family does not exist
        """
        if not (text or "").strip():
            raise ValidationError("Message must not be empty")
        family = self._repository.get_family(family_id)
        if family is None:
            raise NotFoundError(f"Family {family_id} not found")

        comment = self._repository.create_comment(family_id, text)
        notification = self._repository.create_notification(
            family_id, comment.description, source=NotificationSource.COMMENT
        )
        message = prepare_whatsapp(family, comment.description, self._repository.get_settings())

        logger.info("comment_sent_as_whatsapp", family_id=family_id, notification_id=notification.id)
        return comment, notification, message

    def send_notification_whatsapp(self, notification_id: str) -> WhatsAppMessage:
        """
        Mark a notification sent and build its WhatsApp link.

        Raises:
            NotFoundError: If the notification or its family is gone.
                           Nothing is marked sent in that case.
        """
        notification = self._require_notification(notification_id)
        family = resolve_family(self._repository.list_families(), notification.family_id)
        if family is None:
            raise NotFoundError(f"No family linked to notification {notification_id}")

        self._repository.mark_notification_sent(notification_id)
        return prepare_whatsapp(family, notification.message, self._repository.get_settings())

    def send_notification_email(
        self,
        notification_id: str,
        to: Optional[str] = None,
        subject: str = DEFAULT_EMAIL_SUBJECT,
    ) -> str:
        """
        E-mail a notification through the relay and mark it sent.

        Returns:
            The recipient the relay used

        Raises:
            NotFoundError: If the notification or its family is gone
            ValidationError: If no recipient is available
            MailRelayError: If the relay is not configured or sending fails
        """
        relay = self._mail_relay or SmtpMailRelay()
        notification = self._require_notification(notification_id)
        family = resolve_family(self._repository.list_families(), notification.family_id)
        if family is None:
            raise NotFoundError(f"No family linked to notification {notification_id}")

        recipient = relay.resolve_recipient(to)
        if not recipient:
            raise ValidationError("Missing recipient")

        settings = self._repository.get_settings()
        body = compose_message(
            settings.effective_greeting,
            settings.effective_signature,
            family.family_name,
            notification.message,
        )
        try:
            relay.send(recipient, subject, body)
        except MailRelayError as e:
            self._repository.record_event(AuditEventBuilder.email_failed(recipient, str(e)))
            raise

        self._repository.record_event(AuditEventBuilder.email_sent(recipient, subject))
        self._repository.mark_notification_sent(notification_id)
        return recipient

    def _require_notification(self, notification_id: str) -> Notification:
        notification = self._repository.get_notification(notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return notification


class DataMaintenanceFlow:
    """Whole-store export, import and reset."""

    def __init__(self, repository: EntityRepository):
        self._repository = repository

    def export_json(self) -> str:
        return export_json(self._repository)

    def export_workbook(self) -> bytes:
        return export_workbook(self._repository.snapshot())

    def record_export(self, export_format: str = "json") -> None:
        """Audit an export the user actually downloaded."""
        record_export(self._repository, export_format)

    def import_json(self, raw: Union[str, bytes]) -> dict[str, int]:
        """Replace the collections present in the document (FormatError on bad input)."""
        return import_json(self._repository, raw)

    def clear_all(self) -> dict[str, int]:
        """Delete every record and reset the message template."""
        removed = self._repository.clear_all()
        logger.warning("all_data_cleared", **removed)
        return removed


def create_app_components(
    use_storage: bool = True,
) -> tuple[EntityRepository, NotificationFlow, DataMaintenanceFlow]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist to the data directory.
                    Set to False for an ephemeral in-memory session.

    Returns:
        (repository, notification_flow, maintenance_flow)
    """
    settings = get_settings()

    if use_storage:
        storage_settings = settings.storage
        store = JsonFileStore(storage_settings.data_dir)
        audit_logger = AuditLogger(JsonFileAuditStorage(storage_settings.audit_log_path))
    else:
        store = InMemoryStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    repository = EntityRepository(store, audit_logger=audit_logger)
    notification_flow = NotificationFlow(repository, mail_relay=SmtpMailRelay(settings.smtp))
    maintenance_flow = DataMaintenanceFlow(repository)

    return repository, notification_flow, maintenance_flow
