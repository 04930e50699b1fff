"""
Core Data Models for Kindergarten Debt Manager

These models define the schemas of the four stored collections and the
settings record. They are designed to:
1. Enforce type safety at runtime
2. Serialize with the camelCase field names used by exports
3. Accept exports with epoch-millisecond timestamps
4. Support the audit trail

DESIGN DECISION: References between records are stored BY VALUE.
Comment/Notification.family_id holds a Family id and Family.location holds
a Location *name*. Nothing here resolves them; lookups that may dangle
go through the query layer, which returns None for unknown targets.
"""

import secrets
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


# Placeholder replaced with the family name in the WhatsApp greeting
FAMILY_NAME_PLACEHOLDER = "{שם_משפחה}"

DEFAULT_WHATSAPP_GREETING = f"שלום משפחת {FAMILY_NAME_PLACEHOLDER},"
DEFAULT_WHATSAPP_SIGNATURE = "בברכה,\nהנהלת הגן"

_BASE36_ALPHABET = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """
    Generate an opaque record identifier.

    Base-36 millisecond timestamp followed by seven random base-36
    characters.
    """
    timestamp = _to_base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(7))
    return timestamp + suffix


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class NotificationSource(str, Enum):
    """
    Where a notification came from.

    COMMENT means it was created alongside a comment of identical text
    and delivered in the same user action.
    """
    DIRECT = "direct"
    COMMENT = "comment"


# =============================================================================
# STORED RECORDS
# =============================================================================

class StoredRecord(BaseModel):
    """
    Common configuration for every persisted record.

    Field names are snake_case in Python and camelCase on the wire.
    Unknown fields coming from older exports are ignored.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        validate_assignment=True,
    )

    id: str = Field(
        default_factory=generate_id,
        min_length=1,
        description="Opaque identifier, unique within its collection"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="Creation time, set once"
    )

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are treated as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_wire(self) -> dict:
        """Serialize with camelCase keys and ISO-8601 timestamps."""
        return self.model_dump(mode="json", by_alias=True)


class Family(StoredRecord):
    """
    A household carrying debt and contact information.

    family_code is a display string and is NOT guaranteed unique.
    location is a soft reference to Location.name and may dangle.
    """
    family_code: str = Field(default="", description="Display code")
    family_name: str = Field(default="", description="Family (last) name")
    father_name: str = Field(default="")
    mother_name: str = Field(default="")
    phone: str = Field(
        default="",
        description="Loosely formatted; normalized only at dispatch time"
    )
    location: str = Field(
        default="",
        description="Name of a Location, or empty"
    )
    debt_amount: float = Field(
        default=0,
        description="Outstanding debt in ILS (no floor enforced)"
    )

    @field_validator(
        "family_code", "family_name", "father_name", "mother_name", "phone", "location",
        mode="before",
    )
    @classmethod
    def none_is_empty(cls, v):
        return "" if v is None else v

    @field_validator("debt_amount", mode="before")
    @classmethod
    def blank_debt_is_zero(cls, v):
        if v is None or v == "":
            return 0
        return v


# Fields of Family that may be changed after creation
FAMILY_MUTABLE_FIELDS = frozenset({
    "family_code",
    "family_name",
    "father_name",
    "mother_name",
    "phone",
    "location",
    "debt_amount",
})


class Comment(StoredRecord):
    """
    A free-text annotation attached to exactly one family.

    updated_at is None until the first edit.
    """
    family_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    updated_at: Optional[datetime] = Field(default=None)

    @field_validator("updated_at")
    @classmethod
    def ensure_updated_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def was_edited(self) -> bool:
        return self.updated_at is not None


class Notification(StoredRecord):
    """
    A message intended for outbound delivery to a family.

    CRITICAL: is_sent only ever goes from False to True.
    """
    family_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    source: NotificationSource = Field(default=NotificationSource.DIRECT)
    is_sent: bool = Field(default=False)


class Location(StoredRecord):
    """A named grouping families may belong to (referenced by name)."""
    name: str = Field(..., min_length=1)


class StoreSettings(BaseModel):
    """
    Singleton messaging settings record.

    Values may be blank; the dispatch formatter falls back to the
    defaults in that case.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    whatsapp_greeting: str = Field(default=DEFAULT_WHATSAPP_GREETING)
    whatsapp_signature: str = Field(default=DEFAULT_WHATSAPP_SIGNATURE)

    @field_validator("whatsapp_greeting", "whatsapp_signature", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return "" if v is None else v

    @property
    def effective_greeting(self) -> str:
        return self.whatsapp_greeting or DEFAULT_WHATSAPP_GREETING

    @property
    def effective_signature(self) -> str:
        return self.whatsapp_signature or DEFAULT_WHATSAPP_SIGNATURE

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class StoreSnapshot(BaseModel):
    """Deep copy of the whole store at one point in time."""
    families: list[Family] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
    locations: list[Location] = Field(default_factory=list)
    settings: StoreSettings = Field(default_factory=StoreSettings)
