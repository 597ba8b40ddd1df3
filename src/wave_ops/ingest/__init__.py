"""Upload detection, column validation and row parsing."""

from wave_ops.ingest.readers import read_table, rows_from_frame, wave_macro_from_frame
from wave_ops.ingest.schemas import (
    FILE_SCHEMAS,
    ColumnValidation,
    FileKind,
    UnknownFileKindError,
    detect_file_kind,
    require_file_kind,
    validate_columns,
)

__all__ = [
    "FILE_SCHEMAS",
    "ColumnValidation",
    "FileKind",
    "UnknownFileKindError",
    "detect_file_kind",
    "read_table",
    "require_file_kind",
    "rows_from_frame",
    "validate_columns",
    "wave_macro_from_frame",
]
