"""
Export / Import of the Whole Store

The export document is the only wire-level contract of the application:

    {
      "version": 1,
      "exportDate": "2026-10-19T12:00:00+00:00",
      "families": [...],
      "comments": [...],
      "notifications": [...],
      "locations": [...],
      "settings": {...}
    }

IMPORT RULES:
- A collection is replaced wholesale iff its key is present (and not null)
- A missing key leaves the local collection untouched
- The whole document is validated BEFORE anything is replaced; a
  malformed document raises FormatError and changes nothing
- Timestamps may be ISO-8601 strings or epoch milliseconds
"""

import json
from collections import Counter
from datetime import datetime
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from debt_manager.models.audit import AuditEventBuilder
from debt_manager.models.records import (
    Comment,
    Family,
    Location,
    Notification,
    StoreSettings,
    utc_now,
)
from debt_manager.repository import EntityRepository


logger = structlog.get_logger(__name__)

EXPORT_VERSION = 1
EXPORT_FILE_PREFIX = "kindergarten-data"


class FormatError(Exception):
    """An import document could not be parsed or validated."""
    pass


class ImportPayload(BaseModel):
    """
    A validated import document.

    None means "key absent": that collection is left untouched.
    """
    families: Optional[list[Family]] = None
    comments: Optional[list[Comment]] = None
    notifications: Optional[list[Notification]] = None
    locations: Optional[list[Location]] = None
    settings: Optional[StoreSettings] = None

    @property
    def present_keys(self) -> list[str]:
        return [name for name in type(self).model_fields if getattr(self, name) is not None]


_COLLECTION_ADAPTERS: dict[str, TypeAdapter] = {
    "families": TypeAdapter(list[Family]),
    "comments": TypeAdapter(list[Comment]),
    "notifications": TypeAdapter(list[Notification]),
    "locations": TypeAdapter(list[Location]),
}


def export_document(repository: EntityRepository, now: Optional[datetime] = None) -> dict:
    """
    Build the export document from a repository snapshot.

    Building is side-effect free. Call record_export once the document
    has actually been handed to the user.
    """
    snapshot = repository.snapshot()
    document = {
        "version": EXPORT_VERSION,
        "exportDate": (now or utc_now()).isoformat(),
        "families": [f.to_wire() for f in snapshot.families],
        "comments": [c.to_wire() for c in snapshot.comments],
        "notifications": [n.to_wire() for n in snapshot.notifications],
        "locations": [loc.to_wire() for loc in snapshot.locations],
        "settings": snapshot.settings.to_wire(),
    }
    return document


def record_export(repository: EntityRepository, export_format: str = "json") -> None:
    """Add a data_exported event for a delivered export."""
    repository.record_event(
        AuditEventBuilder.data_exported(repository.counts(), export_format)
    )


def export_json(repository: EntityRepository, now: Optional[datetime] = None) -> str:
    """Export document as pretty-printed JSON text."""
    return json.dumps(export_document(repository, now), ensure_ascii=False, indent=2)


def export_filename(extension: str = "json", now: Optional[datetime] = None) -> str:
    """e.g. kindergarten-data-2026-10-19.json"""
    day = (now or utc_now()).date().isoformat()
    return f"{EXPORT_FILE_PREFIX}-{day}.{extension}"


def _check_unique(values: list[str], what: str) -> None:
    duplicates = [v for v, n in Counter(values).items() if n > 1]
    if duplicates:
        raise FormatError(f"Duplicate {what}: {', '.join(sorted(duplicates))}")


def parse_import(raw: Union[str, bytes]) -> ImportPayload:
    """
    Parse and validate an import document without touching any state.

    Raises:
        FormatError: If the text is not JSON, not an object, or any
                     present collection fails validation
    """
    try:
        data: Any = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise FormatError(f"Not a valid JSON document: {e}") from e

    if not isinstance(data, dict):
        raise FormatError("Import document must be a JSON object")

    parsed: dict[str, Any] = {}
    for key, adapter in _COLLECTION_ADAPTERS.items():
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, list):
            raise FormatError(f"'{key}' must be a list")
        try:
            parsed[key] = adapter.validate_python(value)
        except PydanticValidationError as e:
            raise FormatError(f"Invalid '{key}': {e}") from e
        _check_unique([record.id for record in parsed[key]], f"{key} ids")

    if "locations" in parsed:
        _check_unique([loc.name for loc in parsed["locations"]], "location names")

    settings = data.get("settings")
    if settings is not None:
        if not isinstance(settings, dict):
            raise FormatError("'settings' must be an object")
        try:
            parsed["settings"] = StoreSettings.model_validate(settings)
        except PydanticValidationError as e:
            raise FormatError(f"Invalid 'settings': {e}") from e

    return ImportPayload(**parsed)


def import_json(repository: EntityRepository, raw: Union[str, bytes]) -> dict[str, int]:
    """
    Import a document into the repository.

    Returns:
        {collection_name: new_size} for each replaced collection

    Raises:
        FormatError: If the document is malformed (nothing is changed)
    """
    try:
        payload = parse_import(raw)
    except FormatError as e:
        repository.record_event(AuditEventBuilder.import_rejected(str(e)))
        raise

    logger.info("import_validated", keys=payload.present_keys)
    return repository.replace_collections(
        families=payload.families,
        comments=payload.comments,
        notifications=payload.notifications,
        locations=payload.locations,
        settings=payload.settings,
    )
