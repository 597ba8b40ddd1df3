"""
Flat table export for station and trip artifacts.

The JSON artifact files carry the full nested records; these tables are
the spreadsheet/warehouse-friendly view of the two per-entity lists.
"""

import csv
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from wave_ops.domain.models import StationRecord, TripRecord
from wave_ops.writers.base import BaseWriter

STATION_FIELDS = [
    "station_code",
    "total",
    "packed",
    "remaining",
    "completion_pct",
    "recent_lph",
    "target_lph",
    "starved",
    "health_color",
    "recent_infeed_lph",
    "issue_type",
    "pending_value",
]

TRIP_FIELDS = [
    "trip_id",
    "vehicle_no",
    "total",
    "sorted_pct",
    "staged_pct",
    "loaded_pct",
    "qc_ratio",
    "dock_door_queue",
    "risk",
    "behind_sorted",
    "door_norm",
    "health_color",
]

SCHEMAS = {
    "sbl_stations": pa.schema(
        [
            ("station_code", pa.string()),
            ("total", pa.float64()),
            ("packed", pa.float64()),
            ("remaining", pa.float64()),
            ("completion_pct", pa.float64()),
            ("recent_lph", pa.float64()),
            ("target_lph", pa.float64()),
            ("starved", pa.bool_()),
            ("health_color", pa.string()),
            ("recent_infeed_lph", pa.float64()),
            ("issue_type", pa.string()),
            ("pending_value", pa.float64()),
        ]
    ),
    "trips": pa.schema(
        [
            ("trip_id", pa.string()),
            ("vehicle_no", pa.string()),
            ("total", pa.float64()),
            ("sorted_pct", pa.float64()),
            ("staged_pct", pa.float64()),
            ("loaded_pct", pa.float64()),
            ("qc_ratio", pa.float64()),
            ("dock_door_queue", pa.float64()),
            ("risk", pa.float64()),
            ("behind_sorted", pa.float64()),
            ("door_norm", pa.float64()),
            ("health_color", pa.string()),
        ]
    ),
}


def station_rows(stations: Sequence[StationRecord]) -> list[dict[str, Any]]:
    return [
        {
            "station_code": s.station_code,
            "total": float(s.total),
            "packed": float(s.packed),
            "remaining": float(s.remaining),
            "completion_pct": s.completion_pct,
            "recent_lph": s.recent_lph,
            "target_lph": s.target_lph,
            "starved": s.starved,
            "health_color": s.health_color.value,
            "recent_infeed_lph": s.recent_infeed_lph,
            "issue_type": s.issue_type.value,
            "pending_value": s.pending_value,
        }
        for s in stations
    ]


def trip_rows(trips: Sequence[TripRecord]) -> list[dict[str, Any]]:
    return [
        {
            "trip_id": t.trip_id,
            "vehicle_no": t.vehicle_no,
            "total": float(t.total),
            "sorted_pct": t.sorted_pct,
            "staged_pct": t.staged_pct,
            "loaded_pct": t.loaded_pct,
            "qc_ratio": t.qc_ratio,
            "dock_door_queue": float(t.dock_door_queue),
            "risk": t.risk,
            "behind_sorted": t.risk_factors.behind_sorted,
            "door_norm": t.risk_factors.door_norm,
            "health_color": t.health_color.value,
        }
        for t in trips
    ]


class CsvTableWriter(BaseWriter):
    extension = "csv"

    def write(self, rows: list[dict[str, Any]], name: str) -> Path:
        filepath = self.path_for(name)
        fieldnames = [f.name for f in SCHEMAS[name]] if name in SCHEMAS else None
        if fieldnames is None:
            fieldnames = list(rows[0].keys()) if rows else []
        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(rows)
        return filepath


class ParquetTableWriter(BaseWriter):
    extension = "parquet"

    def write(self, rows: list[dict[str, Any]], name: str) -> Path:
        filepath = self.path_for(name)
        schema = SCHEMAS.get(name)
        if schema is not None:
            table = pa.Table.from_pylist(rows, schema=schema)
        else:
            table = pa.Table.from_pylist(rows)
        pq.write_table(table, filepath)
        return filepath


_WRITERS: dict[str, type[BaseWriter]] = {
    "csv": CsvTableWriter,
    "parquet": ParquetTableWriter,
}


def make_table_writer(fmt: str, output_dir: str | Path) -> BaseWriter:
    """Writer for `fmt` ('csv' or 'parquet') rooted at output_dir."""
    try:
        writer_cls = _WRITERS[fmt]
    except KeyError:
        raise ValueError(
            f"Unknown table format {fmt!r}; expected one of {sorted(_WRITERS)}"
        ) from None
    return writer_cls(output_dir)
