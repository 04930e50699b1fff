"""Tests for the entity repository."""

from datetime import timedelta

import pytest

from debt_manager.models.audit import AuditEventType
from debt_manager.models.records import NotificationSource
from debt_manager.repository import (
    DuplicateError,
    EntityRepository,
    NotFoundError,
    ValidationError,
)
from debt_manager.services.storage import InMemoryStore, Slot, SlotWriteError


class TestFamilies:
    """Family CRUD."""

    def test_create_persists_and_returns_copy(self, repo, store, clock):
        """A created family is stored and stamped by the clock."""
        family = repo.create_family({"familyName": "Levi", "debtAmount": 120})
        assert family.created_at == clock.now
        stored = store.read_slot(Slot.FAMILIES)
        assert stored[0]["familyName"] == "Levi"
        assert stored[0]["id"] == family.id

    def test_create_ignores_supplied_id(self, repo):
        """Callers cannot choose the id or creation time."""
        family = repo.create_family({"id": "mine", "createdAt": 0, "familyName": "Levi"})
        assert family.id != "mine"

    def test_create_accepts_snake_case_keys(self, repo):
        family = repo.create_family({"family_name": "Levi", "debt_amount": 10})
        assert family.debt_amount == 10

    def test_create_rejects_unknown_field(self, repo):
        """Unknown payload keys are a validation error."""
        with pytest.raises(ValidationError):
            repo.create_family({"familyName": "Levi", "nickname": "L"})

    def test_create_rejects_unusable_debt(self, repo):
        with pytest.raises(ValidationError):
            repo.create_family({"familyName": "Levi", "debtAmount": "a lot"})

    def test_family_code_not_unique(self, repo):
        """Two families may share a display code."""
        repo.create_family({"familyCode": "X", "familyName": "A"})
        repo.create_family({"familyCode": "X", "familyName": "B"})
        assert len(repo.list_families()) == 2

    def test_returned_records_are_copies(self, repo, cohen):
        """Mutating a returned family does not touch the repository."""
        cohen.family_name = "Changed"
        assert repo.get_family(cohen.id).family_name == "Cohen"

    def test_update_merges_fields(self, repo, cohen):
        """Only the patched fields change."""
        updated = repo.update_family(cohen.id, {"debtAmount": 250})
        assert updated.debt_amount == 250
        assert updated.family_name == "Cohen"
        assert updated.created_at == cohen.created_at
        assert repo.get_family(cohen.id).debt_amount == 250

    def test_update_unknown_is_noop(self, repo, store):
        """Updating a stale id writes nothing."""
        writes = store.write_count
        assert repo.update_family("missing", {"debtAmount": 1}) is None
        assert store.write_count == writes

    def test_delete_unknown_is_noop(self, repo):
        assert repo.delete_family("missing") is False


class TestCascadeDelete:
    """Family deletion removes its comments and notifications."""

    def test_cascade(self, repo, cohen, store):
        """Children of the deleted family go, other families' stay."""
        other = repo.create_family({"familyName": "Levi"})
        repo.create_comment(cohen.id, "first")
        repo.create_comment(cohen.id, "second")
        repo.create_notification(cohen.id, "pay")
        kept_comment = repo.create_comment(other.id, "keep me")

        assert repo.delete_family(cohen.id) is True

        assert [f.id for f in repo.list_families()] == [other.id]
        assert [c.id for c in repo.list_comments()] == [kept_comment.id]
        assert repo.list_notifications() == []
        assert len(store.read_slot(Slot.COMMENTS)) == 1
        assert store.read_slot(Slot.NOTIFICATIONS) == []

    def test_cascade_audit_counts(self, repo, cohen, audit_storage):
        repo.create_comment(cohen.id, "first")
        repo.create_notification(cohen.id, "pay")
        repo.delete_family(cohen.id)
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.FAMILY_DELETED
        assert event.details == {
            "family_name": "Cohen",
            "removed_comments": 1,
            "removed_notifications": 1,
        }


class TestComments:
    """Comment CRUD."""

    def test_create_trims_text(self, repo, cohen):
        comment = repo.create_comment(cohen.id, "  paid half  ")
        assert comment.description == "paid half"
        assert comment.updated_at is None

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_create_rejects_blank(self, repo, cohen, text):
        """Blank comments are rejected and nothing is stored."""
        with pytest.raises(ValidationError):
            repo.create_comment(cohen.id, text)
        assert repo.list_comments() == []

    def test_create_for_unknown_family(self, repo):
        with pytest.raises(NotFoundError):
            repo.create_comment("missing", "text")

    def test_update_sets_updated_at(self, repo, cohen, clock):
        comment = repo.create_comment(cohen.id, "draft")
        clock.advance(120)
        updated = repo.update_comment(comment.id, "final")
        assert updated.description == "final"
        assert updated.updated_at == clock.now
        assert updated.updated_at > updated.created_at

    def test_updated_at_never_moves_backwards(self, repo, cohen, clock):
        """A clock going back does not produce an earlier updated_at."""
        comment = repo.create_comment(cohen.id, "draft")
        clock.advance(-3600)
        updated = repo.update_comment(comment.id, "final")
        assert updated.updated_at >= updated.created_at

    def test_update_rejects_blank(self, repo, cohen):
        comment = repo.create_comment(cohen.id, "draft")
        with pytest.raises(ValidationError):
            repo.update_comment(comment.id, "  ")
        assert repo.get_comment(comment.id).description == "draft"

    def test_update_unknown_is_noop(self, repo):
        assert repo.update_comment("missing", "text") is None

    def test_delete(self, repo, cohen):
        comment = repo.create_comment(cohen.id, "note")
        assert repo.delete_comment(comment.id) is True
        assert repo.delete_comment(comment.id) is False
        assert repo.list_comments() == []


class TestNotifications:
    """Notification lifecycle."""

    def test_direct_starts_unsent(self, repo, cohen):
        notification = repo.create_notification(cohen.id, "Please pay")
        assert notification.source == NotificationSource.DIRECT
        assert notification.is_sent is False

    def test_comment_source_starts_sent(self, repo, cohen):
        notification = repo.create_notification(cohen.id, "Paid", source=NotificationSource.COMMENT)
        assert notification.is_sent is True

    def test_create_rejects_blank_message(self, repo, cohen):
        with pytest.raises(ValidationError):
            repo.create_notification(cohen.id, " ")

    def test_create_for_unknown_family(self, repo):
        with pytest.raises(NotFoundError):
            repo.create_notification("missing", "Please pay")

    def test_mark_sent(self, repo, cohen, store):
        """Marking sent flips the flag once; a second call writes nothing."""
        notification = repo.create_notification(cohen.id, "Please pay")
        assert repo.mark_notification_sent(notification.id).is_sent is True

        writes = store.write_count
        assert repo.mark_notification_sent(notification.id).is_sent is True
        assert store.write_count == writes

    def test_mark_sent_unknown(self, repo):
        assert repo.mark_notification_sent("missing") is None

    def test_delete(self, repo, cohen):
        notification = repo.create_notification(cohen.id, "Please pay")
        assert repo.delete_notification(notification.id) is True
        assert repo.get_notification(notification.id) is None


class TestLocations:
    """Locations and the rename fan-out."""

    def test_create_trims_and_rejects_duplicates(self, repo):
        repo.create_location("  Room A ")
        with pytest.raises(DuplicateError):
            repo.create_location("Room A")
        assert [loc.name for loc in repo.list_locations()] == ["Room A"]

    def test_names_are_case_sensitive(self, repo):
        repo.create_location("Room A")
        repo.create_location("room a")
        assert len(repo.list_locations()) == 2

    def test_create_rejects_blank(self, repo):
        with pytest.raises(ValidationError):
            repo.create_location("   ")

    def test_rename_moves_families(self, repo, cohen):
        """Every family at the old name follows the rename."""
        other = repo.create_family({"familyName": "Levi", "location": "Room B"})
        location = repo.list_locations()[0]

        renamed = repo.rename_location(location.id, "Room Z")

        assert renamed.name == "Room Z"
        assert repo.get_family(cohen.id).location == "Room Z"
        assert repo.get_family(other.id).location == "Room B"

    def test_rename_to_existing_name(self, repo, cohen):
        """Renaming onto another location's name fails and changes nothing."""
        repo.create_location("Room B")
        room_a = next(loc for loc in repo.list_locations() if loc.name == "Room A")
        with pytest.raises(DuplicateError):
            repo.rename_location(room_a.id, "Room B")
        assert repo.get_family(cohen.id).location == "Room A"

    def test_rename_to_same_name_is_noop(self, repo, cohen, store):
        location = repo.list_locations()[0]
        writes = store.write_count
        assert repo.rename_location(location.id, "Room A").name == "Room A"
        assert store.write_count == writes

    def test_rename_unknown(self, repo):
        assert repo.rename_location("missing", "X") is None

    def test_delete_leaves_dangling_reference(self, repo, cohen):
        """Families keep the name of a deleted location."""
        location = repo.list_locations()[0]
        assert repo.delete_location(location.id) is True
        assert repo.list_locations() == []
        assert repo.get_family(cohen.id).location == "Room A"


class TestSettings:
    """Messaging template settings."""

    def test_update_and_persist(self, repo, store):
        repo.update_settings(whatsapp_greeting="  Hi {שם_משפחה}  ")
        assert repo.get_settings().whatsapp_greeting == "Hi {שם_משפחה}"
        assert store.read_slot(Slot.SETTINGS)["whatsappGreeting"] == "Hi {שם_משפחה}"

    def test_none_leaves_value(self, repo):
        before = repo.get_settings().whatsapp_signature
        repo.update_settings(whatsapp_greeting="Hello")
        assert repo.get_settings().whatsapp_signature == before


class TestLoading:
    """Startup from a pre-populated or damaged store."""

    def test_reload_from_store(self, store, cohen, repo):
        """A new repository sees what the previous one wrote."""
        repo.create_comment(cohen.id, "note")
        reloaded = EntityRepository(store)
        assert [f.family_name for f in reloaded.list_families()] == ["Cohen"]
        assert len(reloaded.list_comments()) == 1

    def test_corrupt_slot_reads_empty(self):
        store = InMemoryStore()
        store.put_raw(Slot.FAMILIES, "{not json")
        store.put_raw(Slot.SETTINGS, "[]")
        repo = EntityRepository(store)
        assert repo.list_families() == []
        assert repo.get_settings().whatsapp_greeting

    def test_malformed_records_skipped(self):
        """Invalid records are dropped, valid ones kept."""
        store = InMemoryStore({
            Slot.LOCATIONS: [{"id": "a", "name": "Room A"}, {"id": "b", "name": ""}, "junk"],
        })
        repo = EntityRepository(store)
        assert [loc.id for loc in repo.list_locations()] == ["a"]


class TestWholeStore:
    """Snapshot, replace and clear."""

    def test_counts_and_snapshot(self, repo, cohen):
        repo.create_comment(cohen.id, "note")
        assert repo.counts() == {"families": 1, "comments": 1, "notifications": 0, "locations": 1}
        snapshot = repo.snapshot()
        snapshot.families.clear()
        assert len(repo.list_families()) == 1

    def test_replace_only_given_collections(self, repo, cohen):
        repo.create_comment(cohen.id, "note")
        replaced = repo.replace_collections(families=[])
        assert replaced == {"families": 0}
        assert repo.list_families() == []
        assert len(repo.list_comments()) == 1

    def test_clear_all(self, repo, cohen, store):
        """Clear removes everything and resets the template."""
        repo.create_notification(cohen.id, "pay")
        repo.update_settings(whatsapp_greeting="Yo")
        removed = repo.clear_all()
        assert removed["families"] == 1
        assert repo.counts() == {"families": 0, "comments": 0, "notifications": 0, "locations": 0}
        assert repo.get_settings().whatsapp_greeting != "Yo"
        assert store.read_slot(Slot.FAMILIES) == []


class TestScenario:
    """End-to-end office scenario."""

    def test_cohen_room_a(self, repo, clock):
        """
        Create Room A, add the Cohen family there, comment, rename the
        room, then delete the family.
        """
        room = repo.create_location("Room A")
        cohen = repo.create_family({"familyName": "Cohen", "location": "Room A", "debtAmount": 500})
        clock.advance(timedelta(minutes=5).total_seconds())
        repo.create_comment(cohen.id, "Promised to pay next week")

        repo.rename_location(room.id, "Room B")
        assert repo.get_family(cohen.id).location == "Room B"
        assert repo.list_locations()[0].name == "Room B"

        repo.delete_family(cohen.id)
        assert repo.list_families() == []
        assert repo.list_comments() == []
        assert [loc.name for loc in repo.list_locations()] == ["Room B"]


class TestAuditTrail:
    """Every mutation is recorded."""

    def test_events_recorded(self, repo, cohen, audit_storage):
        types = [e.event_type for e in audit_storage.events]
        assert types == [AuditEventType.LOCATION_CREATED, AuditEventType.FAMILY_CREATED]

    def test_recent_events_newest_first(self, repo, cohen):
        events = repo.recent_events(limit=1)
        assert len(events) == 1


class FlakyStore(InMemoryStore):
    """Store whose writes to chosen slots fail."""

    def __init__(self):
        super().__init__()
        self.failing: set[Slot] = set()

    def write_slot(self, slot, value):
        if slot in self.failing:
            raise SlotWriteError(f"disk full: {slot.value}")
        super().write_slot(slot, value)


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def flaky_repo(flaky_store, audit_logger, clock):
    return EntityRepository(flaky_store, audit_logger=audit_logger, clock=clock)


class TestFailedWrites:
    """A failed write leaves memory and store as they were."""

    def test_create_location_rolled_back(self, flaky_repo, flaky_store, audit_storage):
        flaky_store.failing = {Slot.LOCATIONS}
        with pytest.raises(SlotWriteError):
            flaky_repo.create_location("Room A")

        assert flaky_repo.list_locations() == []
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.LOCATION_CREATED not in types
        assert types[-1] == AuditEventType.SYSTEM_ERROR

    def test_failed_change_not_saved_by_next_write(self, flaky_repo, flaky_store):
        flaky_store.failing = {Slot.LOCATIONS}
        with pytest.raises(SlotWriteError):
            flaky_repo.create_location("Room A")

        flaky_store.failing = set()
        flaky_repo.create_location("Room B")
        assert [loc["name"] for loc in flaky_store.read_slot(Slot.LOCATIONS)] == ["Room B"]

    def test_rename_rewrites_families_slot(self, flaky_repo, flaky_store):
        """Families were written before the locations slot failed."""
        room = flaky_repo.create_location("Room A")
        family = flaky_repo.create_family({"familyName": "Cohen", "location": "Room A"})

        flaky_store.failing = {Slot.LOCATIONS}
        with pytest.raises(SlotWriteError):
            flaky_repo.rename_location(room.id, "Room B")

        assert flaky_repo.get_location(room.id).name == "Room A"
        assert flaky_repo.get_family(family.id).location == "Room A"
        assert flaky_store.read_slot(Slot.FAMILIES)[0]["location"] == "Room A"

    def test_update_comment_rolled_back(self, flaky_repo, flaky_store):
        family = flaky_repo.create_family({"familyName": "Cohen"})
        comment = flaky_repo.create_comment(family.id, "first")

        flaky_store.failing = {Slot.COMMENTS}
        with pytest.raises(SlotWriteError):
            flaky_repo.update_comment(comment.id, "second")

        restored = flaky_repo.get_comment(comment.id)
        assert restored.description == "first"
        assert restored.updated_at is None

    def test_cascade_rolled_back(self, flaky_repo, flaky_store):
        family = flaky_repo.create_family({"familyName": "Cohen"})
        flaky_repo.create_comment(family.id, "note")
        flaky_repo.create_notification(family.id, "pay")

        flaky_store.failing = {Slot.FAMILIES}
        with pytest.raises(SlotWriteError):
            flaky_repo.delete_family(family.id)

        assert flaky_repo.get_family(family.id) is not None
        assert len(flaky_repo.list_comments()) == 1
        assert len(flaky_store.read_slot(Slot.COMMENTS)) == 1
        assert len(flaky_store.read_slot(Slot.NOTIFICATIONS)) == 1

    def test_mark_sent_rolled_back(self, flaky_repo, flaky_store):
        family = flaky_repo.create_family({"familyName": "Cohen"})
        notification = flaky_repo.create_notification(family.id, "pay")

        flaky_store.failing = {Slot.NOTIFICATIONS}
        with pytest.raises(SlotWriteError):
            flaky_repo.mark_notification_sent(notification.id)
        assert flaky_repo.get_notification(notification.id).is_sent is False

    def test_validation_error_leaves_state(self, flaky_repo):
        flaky_repo.create_location("Room A")
        with pytest.raises(DuplicateError):
            flaky_repo.create_location("Room A")
        assert [loc.name for loc in flaky_repo.list_locations()] == ["Room A"]
