"""
Upload file kinds and their column schemas.

Every operational export lands as a spreadsheet whose filename carries a
kind token (e.g. ``line_completion_2_20250101.xlsx``). Column names vary
between WMS report versions, so each canonical field lists the headers
it may appear under; the first alias present in a file wins.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


class FileKind(enum.Enum):
    WAVE_MACROS = "wave_macros"
    LOADING = "updated_loading_dashboard_query"
    SORTATION = "secondary_sortation"
    LINE_COMPLETION = "line_completion_2"
    SBL_STATIONS = "station_wise_sbl_productivity"
    PTL_STATIONS = "ptl_table_lines"
    SBL_TIMELINE = "sbl_productivity_withtime"
    PTL_TIMELINE = "ptl_productivity"
    INFEED_SKUS = "sbl_infeed_skus"
    INFEED_HUS = "sbl_infeed_hus"


class UnknownFileKindError(ValueError):
    """Raised when an upload's filename matches no known file kind."""


@dataclass(frozen=True)
class FileSchema:
    kind: FileKind
    description: str
    # canonical field -> accepted column headers, in preference order
    fields: Mapping[str, tuple[str, ...]]
    required: tuple[str, ...]
    optional: tuple[str, ...] = field(default=())

    @property
    def token(self) -> str:
        return self.kind.value

    def resolve(self, columns: Iterable[str]) -> dict[str, str]:
        """Map canonical field -> actual column header for those present."""
        present = {str(c).strip(): c for c in columns}
        resolved = {}
        for name, aliases in self.fields.items():
            for alias in aliases:
                if alias in present:
                    resolved[name] = present[alias]
                    break
        return resolved


_INTERVAL_STATION_FIELDS = {
    "interval_no": ("interval_no", "Interval", "interval"),
    "station_code": ("zone_code", "station_code", "code", "Station"),
    "line_count": ("total_line_count", "line_count", "Lines", "lines"),
    "productivity": ("productivity", "Productivity"),
}

FILE_SCHEMAS: dict[FileKind, FileSchema] = {
    FileKind.WAVE_MACROS: FileSchema(
        kind=FileKind.WAVE_MACROS,
        description="Wave Macros",
        fields={
            "wave_id": ("wave_id",),
            "start_time_iso": ("start_time_iso", "start_time"),
            "cutoff_time_iso": ("cutoff_time_iso", "cutoff_time"),
            "total_orders": ("total_orders",),
            "total_order_lines": ("total_order_lines",),
            "total_order_value": ("total_order_value",),
            "split_lines_sbl": ("split_lines_sbl",),
            "split_lines_ptl": ("split_lines_ptl",),
            "split_lines_fc": ("split_lines_fc",),
        },
        required=(
            "wave_id",
            "start_time_iso",
            "cutoff_time_iso",
            "total_orders",
            "total_order_lines",
        ),
        optional=("total_order_value", "split_lines_sbl", "split_lines_ptl"),
    ),
    FileKind.LOADING: FileSchema(
        kind=FileKind.LOADING,
        description="Loading Dashboard Query",
        fields={
            "trip_id": ("mm_trip", "Trip", "trip", "trip_code", "MM Trip"),
            "sorted": ("crates_sorted", "Sorted", "sorted", "sorted_crates"),
            "staged": ("crates_staged", "Staged", "staged", "staged_crates"),
            "loaded": ("crates_loaded", "Loaded", "loaded", "closed_crates"),
            "total": (
                "total_crate_count",
                "Total",
                "total",
                "planned_crates",
                "total_crates",
            ),
            "dock_door_queue": ("dockdoorQueue", "dock_door_queue"),
            "vehicle_no": ("vehicleNo", "vehicle_no"),
        },
        required=("trip_id", "sorted", "staged", "loaded", "total"),
        optional=("dock_door_queue", "vehicle_no"),
    ),
    FileKind.SORTATION: FileSchema(
        kind=FileKind.SORTATION,
        description="Secondary Sortation",
        fields={
            "trip_id": ("mm_trip", "Trip", "trip"),
            "qc_count": ("number_of_chu_at_qc", "QC", "qc", "qc_pending"),
        },
        required=("trip_id", "qc_count"),
    ),
    FileKind.LINE_COMPLETION: FileSchema(
        kind=FileKind.LINE_COMPLETION,
        description="Station Backlog",
        fields={
            "station_code": ("code", "station_code", "zone_code"),
            "total_demand_lines": ("total_demand_lines",),
            "packed_lines": ("total_demand_packed_lines", "packed_lines"),
            "total_value": ("total_value", "totalValue"),
            "completed_value": ("completed_value", "completedValue"),
        },
        required=("station_code", "total_demand_lines", "packed_lines"),
        optional=("total_value", "completed_value"),
    ),
    FileKind.SBL_STATIONS: FileSchema(
        kind=FileKind.SBL_STATIONS,
        description="Station Wise SBL Productivity",
        fields=_INTERVAL_STATION_FIELDS,
        required=("interval_no", "station_code", "line_count", "productivity"),
    ),
    FileKind.PTL_STATIONS: FileSchema(
        kind=FileKind.PTL_STATIONS,
        description="PTL Table Lines",
        fields=_INTERVAL_STATION_FIELDS,
        required=("interval_no", "station_code", "line_count", "productivity"),
    ),
    FileKind.SBL_TIMELINE: FileSchema(
        kind=FileKind.SBL_TIMELINE,
        description="SBL Productivity Over Time",
        fields={
            "interval_no": ("interval_no", "Interval", "interval"),
            "line_count": ("total_line_count", "line_count", "Lines", "lines"),
            "productivity": ("productivity", "Productivity", "SBL Productivity"),
        },
        required=("interval_no", "productivity"),
        optional=("line_count",),
    ),
    FileKind.PTL_TIMELINE: FileSchema(
        kind=FileKind.PTL_TIMELINE,
        description="PTL Productivity Over Time",
        fields={
            "interval_no": ("interval_no", "Interval", "interval"),
            "line_count": ("total_line_count", "line_count", "Lines", "lines"),
            "productivity": ("productivity", "Productivity", "PTL Productivity"),
        },
        required=("interval_no", "productivity"),
        optional=("line_count",),
    ),
    FileKind.INFEED_SKUS: FileSchema(
        kind=FileKind.INFEED_SKUS,
        description="SBL Infeed Pending SKUs",
        fields={
            "sku_code": ("sku_code", "sku"),
            "pending_qty": ("pending_qty",),
            "pending_lines": ("pending_lines",),
            "batch": ("batch",),
            "value_pending": ("value_pending",),
        },
        required=("sku_code", "pending_qty"),
        optional=("pending_lines", "batch", "value_pending"),
    ),
    FileKind.INFEED_HUS: FileSchema(
        kind=FileKind.INFEED_HUS,
        description="SBL Infeed Handling Units",
        fields={
            "hu_code": ("hu_code",),
            "sku_code": ("sku_code",),
            "qty": ("qty", "quantity"),
            "bin_code": ("bin_code",),
            "feed_status": ("feed_status",),
            "blocked": ("blocked_status", "blocked"),
            "inclusion_status": ("inclusionStatus", "inclusion_status"),
            "age_minutes": ("age_minutes",),
            "bin_status": ("bin_status",),
            "updated_at": ("updatedAt", "updated_at"),
            "scanned_sku_code": ("sku_code_1", "scanned_sku_code"),
        },
        required=("hu_code", "sku_code", "qty"),
        optional=(
            "bin_code",
            "feed_status",
            "blocked",
            "inclusion_status",
            "age_minutes",
            "bin_status",
        ),
    ),
}

# Checked in order after exact token matching fails
_LOOSE_PATTERNS: list[tuple[tuple[str, ...], tuple[str, ...], FileKind]] = [
    (("wave", "macro"), (), FileKind.WAVE_MACROS),
    (("loading_dashboard",), (), FileKind.LOADING),
    (("sortation",), (), FileKind.SORTATION),
    (("line_completion",), (), FileKind.LINE_COMPLETION),
    (("station", "wise", "sbl"), (), FileKind.SBL_STATIONS),
    (("ptl_table", "lines"), (), FileKind.PTL_STATIONS),
    (("sbl_productivity", "withtime"), (), FileKind.SBL_TIMELINE),
    (("ptl_productivity",), ("table",), FileKind.PTL_TIMELINE),
    (("infeed", "sku"), (), FileKind.INFEED_SKUS),
    (("infeed", "hu"), (), FileKind.INFEED_HUS),
]


def detect_file_kind(filename: str) -> FileKind | None:
    """Identify an upload by its filename; None when nothing matches."""
    name = filename.lower()
    # Longest token first so e.g. station_wise_sbl_productivity is never
    # claimed by a shorter token it happens to contain
    for kind in sorted(FileKind, key=lambda k: len(k.value), reverse=True):
        if kind.value in name:
            return kind
    for needles, excluded, kind in _LOOSE_PATTERNS:
        if all(n in name for n in needles) and not any(x in name for x in excluded):
            return kind
    return None


def require_file_kind(filename: str) -> FileKind:
    kind = detect_file_kind(filename)
    if kind is None:
        expected = ", ".join(k.value for k in FileKind)
        raise UnknownFileKindError(
            f"File name does not match any expected pattern: {filename}. "
            f"Expected patterns: {expected}"
        )
    return kind


@dataclass
class ColumnValidation:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_columns(kind: FileKind, columns: Iterable[str]) -> ColumnValidation:
    """Report missing required (errors) and optional (warnings) fields."""
    schema = FILE_SCHEMAS[kind]
    resolved = schema.resolve(columns)
    result = ColumnValidation()
    for name in schema.required:
        if name not in resolved:
            result.errors.append(
                f"Missing required column: {name} "
                f"(accepted: {', '.join(schema.fields[name])})"
            )
    for name in schema.optional:
        if name not in resolved:
            result.warnings.append(f"Missing optional column: {name}")
    return result
