"""
Tabular (Spreadsheet) Export

Three sheets, one row per record, with the Hebrew column headers the
office already uses in its spreadsheets:

- families:      one row per family, including its comment count
- comments:      family code/name resolved at export time
- notifications: family code/name resolved at export time

A comment or notification whose family no longer exists is exported with
an empty code and the "unknown" family name.

The sheets go into one .xlsx workbook. Each sheet is named in Hebrew and
opens right-to-left with fixed column widths.
"""

import io
from datetime import datetime
from typing import Optional

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from debt_manager.models.records import Family, NotificationSource, StoreSnapshot
from debt_manager.queries import count_comments_for_family, resolve_family


UNKNOWN_FAMILY = "לא ידוע"

FAMILY_COLUMNS = [
    "קוד משפחה",
    "שם משפחה",
    "שם האב",
    "שם האם",
    "טלפון",
    "מיקום",
    "סכום חוב",
    "מספר הערות",
    "תאריך הוספה",
]

COMMENT_COLUMNS = [
    "קוד משפחה",
    "שם משפחה",
    "תוכן הערה",
    "תאריך יצירה",
    "תאריך עדכון",
]

NOTIFICATION_COLUMNS = [
    "קוד משפחה",
    "שם משפחה",
    "הודעה",
    "מקור",
    "נשלח",
    "תאריך",
]

SOURCE_LABELS = {
    NotificationSource.COMMENT: "מהערה",
    NotificationSource.DIRECT: "ישירה",
}

SHEET_NAMES = {
    "families": "משפחות",
    "comments": "הערות",
    "notifications": "התראות",
}

# Column widths in characters, in column order
COLUMN_WIDTHS = {
    "families": [12, 16, 16, 16, 14, 16, 12, 12, 18],
    "comments": [12, 16, 40, 18, 18],
    "notifications": [12, 16, 40, 10, 8, 18],
}


def format_timestamp(value: Optional[datetime]) -> str:
    """dd.mm.yyyy HH:MM in local time; empty for None."""
    if value is None:
        return ""
    return value.astimezone().strftime("%d.%m.%Y %H:%M")


def _family_labels(family: Optional[Family]) -> tuple[str, str]:
    if family is None:
        return "", UNKNOWN_FAMILY
    return family.family_code, family.family_name


def family_rows(snapshot: StoreSnapshot) -> list[list]:
    rows = [FAMILY_COLUMNS]
    for f in snapshot.families:
        rows.append([
            f.family_code,
            f.family_name,
            f.father_name,
            f.mother_name,
            f.phone,
            f.location,
            f.debt_amount,
            count_comments_for_family(snapshot.comments, f.id),
            format_timestamp(f.created_at),
        ])
    return rows


def comment_rows(snapshot: StoreSnapshot) -> list[list]:
    rows = [COMMENT_COLUMNS]
    for c in snapshot.comments:
        code, name = _family_labels(resolve_family(snapshot.families, c.family_id))
        rows.append([
            code,
            name,
            c.description,
            format_timestamp(c.created_at),
            format_timestamp(c.updated_at),
        ])
    return rows


def notification_rows(snapshot: StoreSnapshot) -> list[list]:
    rows = [NOTIFICATION_COLUMNS]
    for n in snapshot.notifications:
        code, name = _family_labels(resolve_family(snapshot.families, n.family_id))
        rows.append([
            code,
            name,
            n.message,
            SOURCE_LABELS[n.source],
            "כן" if n.is_sent else "לא",
            format_timestamp(n.created_at),
        ])
    return rows


def export_tables(snapshot: StoreSnapshot) -> dict[str, list[list]]:
    """All sheets keyed by their (English) sheet key."""
    return {
        "families": family_rows(snapshot),
        "comments": comment_rows(snapshot),
        "notifications": notification_rows(snapshot),
    }


def build_workbook(snapshot: StoreSnapshot) -> Workbook:
    """One right-to-left worksheet per sheet, in SHEET_NAMES order."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for key, rows in export_tables(snapshot).items():
        sheet = workbook.create_sheet(title=SHEET_NAMES[key])
        sheet.sheet_view.rightToLeft = True
        for row in rows:
            sheet.append(row)
        for idx, width in enumerate(COLUMN_WIDTHS[key], start=1):
            sheet.column_dimensions[get_column_letter(idx)].width = width
    return workbook


def export_workbook(snapshot: StoreSnapshot) -> bytes:
    """The workbook as .xlsx bytes, ready for download."""
    buffer = io.BytesIO()
    build_workbook(snapshot).save(buffer)
    return buffer.getvalue()
