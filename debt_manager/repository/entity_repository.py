"""
Entity Repository

The single owner of the four record collections and the settings record.

DESIGN DECISION: All mutations go through this class.
- Callers never see the internal lists; every read returns copies
- Every operation persists the affected slots before returning. If a
  write fails, memory is rolled back and the slots already written are
  rewritten, so the caller sees the error and nothing else changes
- Multi-step operations (cascade delete, location rename fan-out,
  import, clear) run under one re-entrant lock, so a concurrent reader
  never observes a half-applied change

REFERENCES ARE SOFT:
- Comment/Notification.family_id must name a live family at creation
  time, and family deletion cascades to them
- Family.location holds a location NAME. Renaming a location rewrites
  every family at the old name; deleting a location leaves families
  pointing at a name that no longer exists (accepted, not repaired)

NOT-FOUND SEMANTICS: update/delete/mark-sent on an unknown id is a silent
no-op (returns None/False). Creating a child for an unknown family raises
NotFoundError.
"""

import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Optional, TypeVar

import structlog
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from debt_manager.audit import AuditLogger
from debt_manager.models.audit import AuditEvent, AuditEventBuilder
from debt_manager.models.records import (
    FAMILY_MUTABLE_FIELDS,
    Comment,
    Family,
    Location,
    Notification,
    NotificationSource,
    StoredRecord,
    StoreSettings,
    StoreSnapshot,
    utc_now,
)
from debt_manager.repository.errors import (
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from debt_manager.services.storage import Slot, StorageError, StoreAdapter


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=StoredRecord)

# Wire (camelCase) and Python names accepted for family fields
_FAMILY_FIELD_NAMES: dict[str, str] = {}
for _name in FAMILY_MUTABLE_FIELDS:
    _FAMILY_FIELD_NAMES[_name] = _name
    _FAMILY_FIELD_NAMES[to_camel(_name)] = _name

# Keys silently ignored in create/update payloads
_IMMUTABLE_KEYS = frozenset({"id", "created_at", "createdAt"})


def _require_text(value: Optional[str], what: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{what} must not be empty")
    return text


class EntityRepository:
    """
    Authoritative in-memory collections with persistence.

    Usage:
        repo = EntityRepository(JsonFileStore(Path("data")))
        family = repo.create_family({"familyName": "Cohen", "debtAmount": 500})
        repo.create_comment(family.id, "Paid half in cash")
    """

    def __init__(
        self,
        store: StoreAdapter,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the repository and load every slot from the store.

        Args:
            store: Slot persistence backend
            audit_logger: Receives one event per mutation. If None,
                          a local-only logger is used.
            clock: Source of timestamps (injectable for tests)
        """
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._clock = clock
        self._lock = threading.RLock()
        # Slots written by the running transaction; None outside one
        self._written: Optional[list[Slot]] = None

        self._families: list[Family] = self._load(Slot.FAMILIES, Family)
        self._comments: list[Comment] = self._load(Slot.COMMENTS, Comment)
        self._notifications: list[Notification] = self._load(Slot.NOTIFICATIONS, Notification)
        self._locations: list[Location] = self._load(Slot.LOCATIONS, Location)
        self._settings = self._load_settings()

        logger.info(
            "repository_loaded",
            families=len(self._families),
            comments=len(self._comments),
            notifications=len(self._notifications),
            locations=len(self._locations),
        )

    # =========================================================================
    # LOADING & PERSISTENCE
    # =========================================================================

    def _load(self, slot: Slot, model: type[RecordT]) -> list[RecordT]:
        records = []
        for raw in self._store.load_collection(slot):
            try:
                records.append(model.model_validate(raw))
            except PydanticValidationError as e:
                logger.warning(
                    "skipping_malformed_record",
                    slot=slot.value,
                    record_id=raw.get("id"),
                    error=str(e),
                )
        return records

    def _load_settings(self) -> StoreSettings:
        raw = self._store.load_settings()
        try:
            return StoreSettings.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning("settings_malformed", error=str(e))
            return StoreSettings()

    def _persist(self, *slots: Slot) -> None:
        for slot in slots:
            if slot == Slot.SETTINGS:
                self._store.write_slot(slot, self._settings.to_wire())
            else:
                records = self._collection(slot)
                self._store.write_slot(slot, [r.to_wire() for r in records])
            if self._written is not None:
                self._written.append(slot)

    def _capture(self) -> tuple:
        return (
            [f.model_copy(deep=True) for f in self._families],
            [c.model_copy(deep=True) for c in self._comments],
            [n.model_copy(deep=True) for n in self._notifications],
            [loc.model_copy(deep=True) for loc in self._locations],
            self._settings.model_copy(),
        )

    def _restore(self, saved: tuple) -> None:
        (
            self._families,
            self._comments,
            self._notifications,
            self._locations,
            self._settings,
        ) = saved

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        """
        Run a mutation under the lock with all-or-nothing memory.

        If anything raises, the collections are restored to their state
        before the operation. Slots the operation had already written are
        written again from the restored state, so memory and store agree.
        """
        with self._lock:
            if self._written is not None:
                # Nested: the outer transaction owns the rollback
                yield
                return

            saved = self._capture()
            self._written = []
            try:
                yield
            except Exception as e:
                written, self._written = self._written, None
                self._restore(saved)
                if isinstance(e, StorageError):
                    self._resync(operation, written, e)
                raise
            else:
                self._written = None

    def _resync(self, operation: str, written: list[Slot], error: StorageError) -> None:
        logger.error(
            "mutation_rolled_back",
            operation=operation,
            error=str(error),
            rewritten=[s.value for s in written],
        )
        self._emit(AuditEventBuilder.system_error(
            error_type="storage_write_failed",
            error_message=str(error),
            details={"operation": operation, "rewritten": [s.value for s in written]},
        ))
        try:
            self._persist(*written)
        except StorageError as e:
            logger.error("store_resync_failed", operation=operation, error=str(e))

    def _collection(self, slot: Slot) -> list:
        return {
            Slot.FAMILIES: self._families,
            Slot.COMMENTS: self._comments,
            Slot.NOTIFICATIONS: self._notifications,
            Slot.LOCATIONS: self._locations,
        }[slot]

    def _emit(self, event: AuditEvent) -> None:
        self._audit.log(event)

    def _now(self) -> datetime:
        return self._clock()

    @staticmethod
    def _find(records: list[RecordT], record_id: str) -> Optional[RecordT]:
        for record in records:
            if record.id == record_id:
                return record
        return None

    @staticmethod
    def _index(records: list[RecordT], record_id: str) -> int:
        for idx, record in enumerate(records):
            if record.id == record_id:
                return idx
        return -1

    # =========================================================================
    # FAMILIES
    # =========================================================================

    @staticmethod
    def _family_fields(data: Mapping[str, Any]) -> dict[str, Any]:
        """Translate a create/update payload to Family field names."""
        fields = {}
        for key, value in data.items():
            if key in _IMMUTABLE_KEYS:
                continue
            name = _FAMILY_FIELD_NAMES.get(key)
            if name is None:
                raise ValidationError(f"Unknown family field: {key}")
            fields[name] = value
        return fields

    def create_family(self, data: Mapping[str, Any]) -> Family:
        """
        Create a family.

        family_code is NOT checked for uniqueness. Any id/createdAt in the
        payload is ignored.

        Raises:
            ValidationError: If a field has an unusable value
        """
        fields = self._family_fields(data)
        with self._transaction("create_family"):
            try:
                family = Family(**fields, created_at=self._now())
            except PydanticValidationError as e:
                raise ValidationError(str(e)) from e

            self._families.append(family)
            self._persist(Slot.FAMILIES)
            self._emit(AuditEventBuilder.family_created(family.id, family.family_name))
            return family.model_copy(deep=True)

    def update_family(self, family_id: str, patch: Mapping[str, Any]) -> Optional[Family]:
        """
        Merge patch fields over an existing family.

        Returns:
            The updated family, or None if the id is unknown (no-op)
        """
        fields = self._family_fields(patch)
        with self._transaction("update_family"):
            idx = self._index(self._families, family_id)
            if idx == -1:
                logger.info("update_family_not_found", family_id=family_id)
                return None

            current = self._families[idx]
            merged = current.model_dump()
            merged.update(fields)
            try:
                updated = Family.model_validate(merged)
            except PydanticValidationError as e:
                raise ValidationError(str(e)) from e

            self._families[idx] = updated
            self._persist(Slot.FAMILIES)
            self._emit(AuditEventBuilder.family_updated(family_id, sorted(fields)))
            return updated.model_copy(deep=True)

    def delete_family(self, family_id: str) -> bool:
        """
        Delete a family and cascade to its comments and notifications.

        Children are removed and persisted before the family itself.
        A failed write rolls the whole cascade back.

        Returns:
            True if the family existed
        """
        with self._transaction("delete_family"):
            family = self._find(self._families, family_id)
            if family is None:
                logger.info("delete_family_not_found", family_id=family_id)
                return False

            comments = [c for c in self._comments if c.family_id != family_id]
            notifications = [n for n in self._notifications if n.family_id != family_id]
            removed_comments = len(self._comments) - len(comments)
            removed_notifications = len(self._notifications) - len(notifications)

            self._comments[:] = comments
            self._notifications[:] = notifications
            self._persist(Slot.COMMENTS, Slot.NOTIFICATIONS)

            self._families[:] = [f for f in self._families if f.id != family_id]
            self._persist(Slot.FAMILIES)

            self._emit(AuditEventBuilder.family_deleted(
                family_id=family_id,
                family_name=family.family_name,
                removed_comments=removed_comments,
                removed_notifications=removed_notifications,
            ))
            return True

    def get_family(self, family_id: str) -> Optional[Family]:
        with self._lock:
            family = self._find(self._families, family_id)
            return family.model_copy(deep=True) if family else None

    def list_families(self) -> list[Family]:
        with self._lock:
            return [f.model_copy(deep=True) for f in self._families]

    def _require_family(self, family_id: str) -> Family:
        family = self._find(self._families, family_id)
        if family is None:
            raise NotFoundError(f"Family not found: {family_id}")
        return family

    # =========================================================================
    # COMMENTS
    # =========================================================================

    def create_comment(self, family_id: str, text: str) -> Comment:
        """
        Attach a comment to a family.

        Raises:
            ValidationError: If text is empty after trimming
            NotFoundError: If the family does not exist
        """
        description = _require_text(text, "Comment text")
        with self._transaction("create_comment"):
            self._require_family(family_id)
            comment = Comment(
                family_id=family_id,
                description=description,
                created_at=self._now(),
                updated_at=None,
            )
            self._comments.append(comment)
            self._persist(Slot.COMMENTS)
            self._emit(AuditEventBuilder.comment_created(comment.id, family_id))
            return comment.model_copy(deep=True)

    def update_comment(self, comment_id: str, text: str) -> Optional[Comment]:
        """
        Replace a comment's text and stamp updated_at.

        updated_at never moves backwards, even if the clock does.

        Raises:
            ValidationError: If text is empty after trimming
        """
        description = _require_text(text, "Comment text")
        with self._transaction("update_comment"):
            comment = self._find(self._comments, comment_id)
            if comment is None:
                logger.info("update_comment_not_found", comment_id=comment_id)
                return None

            stamp = max(self._now(), comment.updated_at or comment.created_at)
            comment.description = description
            comment.updated_at = stamp
            self._persist(Slot.COMMENTS)
            self._emit(AuditEventBuilder.comment_updated(comment_id))
            return comment.model_copy(deep=True)

    def delete_comment(self, comment_id: str) -> bool:
        with self._transaction("delete_comment"):
            if self._index(self._comments, comment_id) == -1:
                return False
            self._comments[:] = [c for c in self._comments if c.id != comment_id]
            self._persist(Slot.COMMENTS)
            self._emit(AuditEventBuilder.comment_deleted(comment_id))
            return True

    def get_comment(self, comment_id: str) -> Optional[Comment]:
        with self._lock:
            comment = self._find(self._comments, comment_id)
            return comment.model_copy(deep=True) if comment else None

    def list_comments(self) -> list[Comment]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._comments]

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def create_notification(
        self,
        family_id: str,
        message: str,
        source: NotificationSource = NotificationSource.DIRECT,
    ) -> Notification:
        """
        Create a notification for a family.

        A COMMENT-sourced notification is delivered in the same user
        action that creates it, so it starts out sent. DIRECT ones start
        unsent.

        Raises:
            ValidationError: If message is empty after trimming
            NotFoundError: If the family does not exist
        """
        text = _require_text(message, "Notification message")
        source = NotificationSource(source)
        with self._transaction("create_notification"):
            self._require_family(family_id)
            notification = Notification(
                family_id=family_id,
                message=text,
                source=source,
                is_sent=source == NotificationSource.COMMENT,
                created_at=self._now(),
            )
            self._notifications.append(notification)
            self._persist(Slot.NOTIFICATIONS)
            self._emit(AuditEventBuilder.notification_created(
                notification.id, family_id, source.value
            ))
            return notification.model_copy(deep=True)

    def mark_notification_sent(self, notification_id: str) -> Optional[Notification]:
        """
        Flag a notification as sent.

        No-op when already sent (nothing is written). Returns None if the
        id is unknown.
        """
        with self._transaction("mark_notification_sent"):
            notification = self._find(self._notifications, notification_id)
            if notification is None:
                return None
            if not notification.is_sent:
                notification.is_sent = True
                self._persist(Slot.NOTIFICATIONS)
                self._emit(AuditEventBuilder.notification_sent(notification_id))
            return notification.model_copy(deep=True)

    def delete_notification(self, notification_id: str) -> bool:
        with self._transaction("delete_notification"):
            if self._index(self._notifications, notification_id) == -1:
                return False
            self._notifications[:] = [
                n for n in self._notifications if n.id != notification_id
            ]
            self._persist(Slot.NOTIFICATIONS)
            self._emit(AuditEventBuilder.notification_deleted(notification_id))
            return True

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            notification = self._find(self._notifications, notification_id)
            return notification.model_copy(deep=True) if notification else None

    def list_notifications(self) -> list[Notification]:
        with self._lock:
            return [n.model_copy(deep=True) for n in self._notifications]

    # =========================================================================
    # LOCATIONS
    # =========================================================================

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        return any(
            loc.name == name and loc.id != exclude_id for loc in self._locations
        )

    def create_location(self, name: str) -> Location:
        """
        Create a location.

        Raises:
            ValidationError: If name is empty after trimming
            DuplicateError: If a location with this exact name exists
        """
        name = _require_text(name, "Location name")
        with self._transaction("create_location"):
            if self._name_taken(name):
                raise DuplicateError(f"Location already exists: {name}")
            location = Location(name=name, created_at=self._now())
            self._locations.append(location)
            self._persist(Slot.LOCATIONS)
            self._emit(AuditEventBuilder.location_created(location.id, name))
            return location.model_copy(deep=True)

    def rename_location(self, location_id: str, new_name: str) -> Optional[Location]:
        """
        Rename a location and move every family at the old name.

        Returns:
            The location (unchanged if the name is the same), or None if
            the id is unknown

        Raises:
            ValidationError: If new_name is empty after trimming
            DuplicateError: If another location already uses new_name
        """
        new_name = _require_text(new_name, "Location name")
        with self._transaction("rename_location"):
            location = self._find(self._locations, location_id)
            if location is None:
                logger.info("rename_location_not_found", location_id=location_id)
                return None

            old_name = location.name
            if old_name == new_name:
                return location.model_copy(deep=True)

            if self._name_taken(new_name, exclude_id=location_id):
                raise DuplicateError(f"Location already exists: {new_name}")

            moved = 0
            for family in self._families:
                if family.location == old_name:
                    family.location = new_name
                    moved += 1
            if moved:
                self._persist(Slot.FAMILIES)

            location.name = new_name
            self._persist(Slot.LOCATIONS)
            self._emit(AuditEventBuilder.location_renamed(
                location_id, old_name, new_name, moved
            ))
            return location.model_copy(deep=True)

    def delete_location(self, location_id: str) -> bool:
        """
        Delete a location only.

        Families referencing it keep the (now dangling) name.
        """
        with self._transaction("delete_location"):
            location = self._find(self._locations, location_id)
            if location is None:
                return False
            dangling = sum(1 for f in self._families if f.location == location.name)
            self._locations[:] = [loc for loc in self._locations if loc.id != location_id]
            self._persist(Slot.LOCATIONS)
            self._emit(AuditEventBuilder.location_deleted(
                location_id, location.name, dangling
            ))
            return True

    def get_location(self, location_id: str) -> Optional[Location]:
        with self._lock:
            location = self._find(self._locations, location_id)
            return location.model_copy(deep=True) if location else None

    def list_locations(self) -> list[Location]:
        with self._lock:
            return [loc.model_copy(deep=True) for loc in self._locations]

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_settings(self) -> StoreSettings:
        with self._lock:
            return self._settings.model_copy()

    def update_settings(
        self,
        whatsapp_greeting: Optional[str] = None,
        whatsapp_signature: Optional[str] = None,
    ) -> StoreSettings:
        """Update the WhatsApp template. None leaves a value unchanged."""
        with self._transaction("update_settings"):
            update = {}
            if whatsapp_greeting is not None:
                update["whatsapp_greeting"] = whatsapp_greeting.strip()
            if whatsapp_signature is not None:
                update["whatsapp_signature"] = whatsapp_signature.strip()
            self._settings = self._settings.model_copy(update=update)
            self._persist(Slot.SETTINGS)
            self._emit(AuditEventBuilder.settings_updated())
            return self._settings.model_copy()

    # =========================================================================
    # WHOLE-STORE OPERATIONS
    # =========================================================================

    def snapshot(self) -> StoreSnapshot:
        """Deep copy of every collection and the settings."""
        with self._lock:
            return StoreSnapshot(
                families=[f.model_copy(deep=True) for f in self._families],
                comments=[c.model_copy(deep=True) for c in self._comments],
                notifications=[n.model_copy(deep=True) for n in self._notifications],
                locations=[loc.model_copy(deep=True) for loc in self._locations],
                settings=self._settings.model_copy(),
            )

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {
                "families": len(self._families),
                "comments": len(self._comments),
                "notifications": len(self._notifications),
                "locations": len(self._locations),
            }

    def replace_collections(
        self,
        families: Optional[list[Family]] = None,
        comments: Optional[list[Comment]] = None,
        notifications: Optional[list[Notification]] = None,
        locations: Optional[list[Location]] = None,
        settings: Optional[StoreSettings] = None,
    ) -> dict[str, int]:
        """
        Replace whole collections; None leaves a collection untouched.

        Records are taken as already validated (see the import serializer).

        Returns:
            {collection_name: new_size} for every replaced collection
        """
        replaced: dict[str, int] = {}
        with self._transaction("replace_collections"):
            if families is not None:
                self._families[:] = [f.model_copy(deep=True) for f in families]
                self._persist(Slot.FAMILIES)
                replaced["families"] = len(families)
            if comments is not None:
                self._comments[:] = [c.model_copy(deep=True) for c in comments]
                self._persist(Slot.COMMENTS)
                replaced["comments"] = len(comments)
            if notifications is not None:
                self._notifications[:] = [n.model_copy(deep=True) for n in notifications]
                self._persist(Slot.NOTIFICATIONS)
                replaced["notifications"] = len(notifications)
            if locations is not None:
                self._locations[:] = [loc.model_copy(deep=True) for loc in locations]
                self._persist(Slot.LOCATIONS)
                replaced["locations"] = len(locations)
            if settings is not None:
                self._settings = settings.model_copy()
                self._persist(Slot.SETTINGS)
                replaced["settings"] = 1

            self._emit(AuditEventBuilder.data_imported(replaced))
        return replaced

    def clear_all(self) -> dict[str, int]:
        """
        Remove every record and reset the settings.

        Returns:
            Counts of what was removed
        """
        with self._transaction("clear_all"):
            removed = self.counts()
            self._comments.clear()
            self._notifications.clear()
            self._families.clear()
            self._locations.clear()
            self._settings = StoreSettings()
            self._persist(
                Slot.COMMENTS,
                Slot.NOTIFICATIONS,
                Slot.FAMILIES,
                Slot.LOCATIONS,
                Slot.SETTINGS,
            )
            self._emit(AuditEventBuilder.data_cleared(removed))
            return removed

    def record_event(self, event: AuditEvent) -> None:
        """Let flows outside the repository add to the same audit trail."""
        self._emit(event)

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent audit events, newest first."""
        return self._audit.recent_events(limit=limit)
