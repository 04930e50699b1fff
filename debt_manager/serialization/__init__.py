"""Export / import package."""

from debt_manager.serialization.exchange import (
    EXPORT_VERSION,
    FormatError,
    ImportPayload,
    export_document,
    export_filename,
    export_json,
    import_json,
    parse_import,
    record_export,
)
from debt_manager.serialization.tables import (
    build_workbook,
    export_tables,
    export_workbook,
)

__all__ = [
    "EXPORT_VERSION",
    "FormatError",
    "ImportPayload",
    "build_workbook",
    "export_document",
    "export_filename",
    "export_json",
    "export_tables",
    "export_workbook",
    "import_json",
    "parse_import",
    "record_export",
]
