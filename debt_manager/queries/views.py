"""
Query / Filter Engine

DESIGN DECISION: Every view is a PURE function of the collections it is
given. Nothing here touches the repository or the store, and no input
sequence is ever mutated; results are new lists.

The UI asks the repository for copies, derives what it needs here and
re-renders. Filtering keeps the original relative order; only the
explicit "sorted" views reorder.
"""

from collections.abc import Iterable, Sequence
from typing import Optional

from pydantic import BaseModel, Field

from debt_manager.models.records import Comment, Family, Location, Notification


# Family fields matched by the free-text search box
SEARCH_FIELDS = (
    "family_name",
    "family_code",
    "phone",
    "father_name",
    "mother_name",
)

# Final letters collate with their regular forms
_FINAL_LETTERS = str.maketrans("ךםןףץ", "כמנפצ")


class DashboardSummary(BaseModel):
    """Headline numbers shown at the top of the main screen."""
    total_families: int = Field(default=0, ge=0)
    total_debt: float = Field(default=0.0)
    total_locations: int = Field(default=0, ge=0)
    pending_notifications: int = Field(default=0, ge=0)


def _matches_search(family: Family, needle: str) -> bool:
    return any(needle in getattr(family, field).lower() for field in SEARCH_FIELDS)


def filter_families(
    families: Sequence[Family],
    search_text: Optional[str] = None,
    location_name: Optional[str] = None,
) -> list[Family]:
    """
    Filter families by free text and location.

    A family matches the search when ANY of the search fields contains
    the trimmed, lower-cased search text. A non-empty location_name must
    equal the family's location exactly. Relative order is preserved.
    """
    needle = (search_text or "").strip().lower()
    result = []
    for family in families:
        if needle and not _matches_search(family, needle):
            continue
        if location_name and family.location != location_name:
            continue
        result.append(family)
    return result


def collation_key(name: str) -> tuple[str, str]:
    """
    Sort key for Hebrew and Latin names.

    Case and Hebrew final letter forms are ignored at the first level.
    The raw name breaks ties so the order stays deterministic.
    """
    return name.casefold().translate(_FINAL_LETTERS), name


def sort_locations_by_name(locations: Iterable[Location]) -> list[Location]:
    """Ascending by name, ignoring case and final letter forms."""
    return sorted(locations, key=lambda loc: collation_key(loc.name))


def sort_families_by_name(families: Iterable[Family]) -> list[Family]:
    """Ascending by family name (for dropdowns)."""
    return sorted(families, key=lambda f: collation_key(f.family_name))


def comments_for_family(comments: Iterable[Comment], family_id: str) -> list[Comment]:
    """A family's comments, most recent first."""
    owned = [c for c in comments if c.family_id == family_id]
    return sorted(owned, key=lambda c: c.created_at, reverse=True)


def notifications_sorted_by_recency(
    notifications: Iterable[Notification],
) -> list[Notification]:
    """All notifications, most recent first."""
    return sorted(notifications, key=lambda n: n.created_at, reverse=True)


def count_comments_for_family(comments: Iterable[Comment], family_id: str) -> int:
    return sum(1 for c in comments if c.family_id == family_id)


def count_families_at_location(families: Iterable[Family], location_name: str) -> int:
    return sum(1 for f in families if f.location == location_name)


def resolve_family(families: Iterable[Family], family_id: str) -> Optional[Family]:
    """
    Look up a family by id.

    Returns None for a dangling reference; callers show it as an
    unknown family rather than failing.
    """
    for family in families:
        if family.id == family_id:
            return family
    return None


def dashboard_summary(
    families: Sequence[Family],
    locations: Sequence[Location],
    notifications: Iterable[Notification],
) -> DashboardSummary:
    """Totals for the dashboard cards."""
    return DashboardSummary(
        total_families=len(families),
        total_debt=sum(float(f.debt_amount) for f in families),
        total_locations=len(locations),
        pending_notifications=sum(1 for n in notifications if not n.is_sent),
    )
