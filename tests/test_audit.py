"""Tests for the audit logger."""

from debt_manager.audit import AuditLogger
from debt_manager.models.audit import AuditEventBuilder
from debt_manager.repository import EntityRepository
from debt_manager.services.storage import AuditStorageInterface, InMemoryAuditStorage


class ExplodingStorage(AuditStorageInterface):
    def append_event(self, event):
        raise RuntimeError("storage down")

    def get_recent_events(self, limit=100):
        return []


class TestAuditLogger:
    """Local logging plus optional persistence."""

    def test_without_storage(self):
        """Local-only logging always succeeds."""
        logger = AuditLogger()
        assert logger.log(AuditEventBuilder.settings_updated()) is True
        assert logger.recent_events() == []

    def test_persists_to_storage(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        event = AuditEventBuilder.family_created("f1", "Cohen")
        assert logger.log(event) is True
        assert storage.events == [event]
        assert logger.recent_events()[0].event_id == event.event_id

    def test_storage_failure_does_not_raise(self):
        """A broken audit store never breaks the caller."""
        logger = AuditLogger(ExplodingStorage())
        assert logger.log(AuditEventBuilder.email_failed("a@example.org", "boom")) is False

    def test_repository_survives_audit_failure(self, store, clock):
        repo = EntityRepository(store, audit_logger=AuditLogger(ExplodingStorage()), clock=clock)
        family = repo.create_family({"familyName": "Cohen"})
        assert repo.get_family(family.id) is not None
