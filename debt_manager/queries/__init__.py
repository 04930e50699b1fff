"""Query and filter package."""

from debt_manager.queries.views import (
    SEARCH_FIELDS,
    DashboardSummary,
    collation_key,
    comments_for_family,
    count_comments_for_family,
    count_families_at_location,
    dashboard_summary,
    filter_families,
    notifications_sorted_by_recency,
    resolve_family,
    sort_families_by_name,
    sort_locations_by_name,
)

__all__ = [
    "SEARCH_FIELDS",
    "DashboardSummary",
    "collation_key",
    "comments_for_family",
    "count_comments_for_family",
    "count_families_at_location",
    "dashboard_summary",
    "filter_families",
    "notifications_sorted_by_recency",
    "resolve_family",
    "sort_families_by_name",
    "sort_locations_by_name",
]
