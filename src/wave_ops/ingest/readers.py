"""
Spreadsheet parsing into typed input rows.

Reads the first sheet of an .xlsx (openpyxl) or a .csv file into a pandas
DataFrame, then maps the schema's columns onto the frozen row dataclasses
the engine consumes. Rows missing their key field are dropped; numeric
cells that do not parse count as zero.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from wave_ops.domain.models import (
    InfeedHuRow,
    InfeedSkuRow,
    IntervalRow,
    LoadingRow,
    SortationRow,
    StationCompletionRow,
    TimelinePoint,
)
from wave_ops.ingest.schemas import FILE_SCHEMAS, FileKind

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
_TRUTHY = {"true", "yes", "y", "1", "blocked"}


def read_table(source: bytes | str | Path, filename: str | None = None) -> pd.DataFrame:
    """
    Load the first sheet of a spreadsheet upload.

    `source` is either raw file content (with `filename` giving the
    extension) or a path on disk.
    """
    if isinstance(source, bytes):
        if filename is None:
            raise ValueError("filename is required when reading raw content")
        suffix = Path(filename).suffix.lower()
        handle: Any = io.BytesIO(source)
    else:
        suffix = Path(source).suffix.lower()
        handle = Path(source)

    if suffix in EXCEL_SUFFIXES:
        frame = pd.read_excel(handle, sheet_name=0, engine="openpyxl")
    elif suffix == ".csv":
        frame = pd.read_csv(handle)
    else:
        raise ValueError(f"Unsupported file type: {suffix or '<none>'}")

    frame.columns = [str(c).strip() for c in frame.columns]
    return frame


def _canonical(kind: FileKind, frame: pd.DataFrame) -> pd.DataFrame:
    """Rename resolved columns to canonical names, adding absent ones as NaN."""
    schema = FILE_SCHEMAS[kind]
    resolved = schema.resolve(frame.columns)
    out = pd.DataFrame(index=frame.index)
    for name in schema.fields:
        if name in resolved:
            out[name] = frame[resolved[name]]
        else:
            out[name] = np.nan
    return out


def _numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").fillna(0.0).astype(float)


def _text(value: Any) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _optional_text(value: Any) -> str | None:
    return _text(value) or None


def _optional_float(value: Any) -> float | None:
    number = pd.to_numeric(value, errors="coerce")
    return None if pd.isna(number) else float(number)


def _flag(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    return _text(value).lower() in _TRUTHY


def _keyed(frame: pd.DataFrame, key: str) -> pd.DataFrame:
    keys = frame[key].map(_text)
    kept = frame[keys != ""].copy()
    kept[key] = keys[keys != ""]
    dropped = len(frame) - len(kept)
    if dropped:
        logger.warning("Dropped %d rows without %s", dropped, key)
    return kept


def _with_interval(frame: pd.DataFrame) -> pd.DataFrame:
    numbers = pd.to_numeric(frame["interval_no"], errors="coerce")
    kept = frame[numbers.notna()].copy()
    kept["interval_no"] = numbers[numbers.notna()].astype(int)
    dropped = len(frame) - len(kept)
    if dropped:
        logger.warning("Dropped %d rows without a numeric interval_no", dropped)
    return kept


def _loading(frame: pd.DataFrame) -> tuple[LoadingRow, ...]:
    frame = _keyed(frame, "trip_id")
    for col in ("sorted", "staged", "loaded", "total", "dock_door_queue"):
        frame[col] = _numeric(frame[col])
    return tuple(
        LoadingRow(
            trip_id=r.trip_id,
            sorted=r.sorted,
            staged=r.staged,
            loaded=r.loaded,
            total=r.total,
            dock_door_queue=r.dock_door_queue,
            vehicle_no=_optional_text(r.vehicle_no),
        )
        for r in frame.itertuples(index=False)
    )


def _sortation(frame: pd.DataFrame) -> tuple[SortationRow, ...]:
    frame = _keyed(frame, "trip_id")
    frame["qc_count"] = _numeric(frame["qc_count"])
    return tuple(
        SortationRow(trip_id=r.trip_id, qc_count=r.qc_count)
        for r in frame.itertuples(index=False)
    )


def _line_completion(frame: pd.DataFrame) -> tuple[StationCompletionRow, ...]:
    frame = _keyed(frame, "station_code")
    frame["total_demand_lines"] = _numeric(frame["total_demand_lines"])
    frame["packed_lines"] = _numeric(frame["packed_lines"])
    return tuple(
        StationCompletionRow(
            station_code=r.station_code,
            total_demand_lines=r.total_demand_lines,
            packed_lines=r.packed_lines,
            total_value=_optional_float(r.total_value),
            completed_value=_optional_float(r.completed_value),
        )
        for r in frame.itertuples(index=False)
    )


def _station_intervals(frame: pd.DataFrame) -> tuple[IntervalRow, ...]:
    frame = _with_interval(_keyed(frame, "station_code"))
    frame["line_count"] = _numeric(frame["line_count"])
    frame["productivity"] = _numeric(frame["productivity"])
    return tuple(
        IntervalRow(
            interval_no=int(r.interval_no),
            station_code=r.station_code,
            line_count=r.line_count,
            productivity=r.productivity,
        )
        for r in frame.itertuples(index=False)
    )


def _timeline(frame: pd.DataFrame) -> tuple[TimelinePoint, ...]:
    frame = _with_interval(frame)
    frame["line_count"] = _numeric(frame["line_count"])
    frame["productivity"] = _numeric(frame["productivity"])
    return tuple(
        TimelinePoint(
            interval_no=int(r.interval_no),
            line_count=r.line_count,
            productivity=r.productivity,
        )
        for r in frame.itertuples(index=False)
    )


def _infeed_skus(frame: pd.DataFrame) -> tuple[InfeedSkuRow, ...]:
    frame = _keyed(frame, "sku_code")
    frame["pending_qty"] = _numeric(frame["pending_qty"])
    frame["pending_lines"] = _numeric(frame["pending_lines"])
    return tuple(
        InfeedSkuRow(
            sku_code=r.sku_code,
            pending_qty=r.pending_qty,
            pending_lines=r.pending_lines,
            batch=_optional_text(r.batch),
            value_pending=_optional_float(r.value_pending),
        )
        for r in frame.itertuples(index=False)
    )


def _infeed_hus(frame: pd.DataFrame) -> tuple[InfeedHuRow, ...]:
    frame = _keyed(_keyed(frame, "hu_code"), "sku_code")
    frame["qty"] = _numeric(frame["qty"])
    frame["age_minutes"] = _numeric(frame["age_minutes"])
    return tuple(
        InfeedHuRow(
            hu_code=r.hu_code,
            sku_code=r.sku_code,
            qty=r.qty,
            bin_code=_text(r.bin_code),
            feed_status=_text(r.feed_status).upper() or "NOT_FED",
            blocked=_flag(r.blocked),
            inclusion_status=_text(r.inclusion_status).upper() or "INCLUDED",
            age_minutes=r.age_minutes,
            bin_status=_text(r.bin_status).upper() or "ACTIVE",
            updated_at=_optional_text(r.updated_at),
            scanned_sku_code=_optional_text(r.scanned_sku_code),
        )
        for r in frame.itertuples(index=False)
    )


_ROW_BUILDERS: dict[FileKind, Callable[[pd.DataFrame], tuple[Any, ...]]] = {
    FileKind.LOADING: _loading,
    FileKind.SORTATION: _sortation,
    FileKind.LINE_COMPLETION: _line_completion,
    FileKind.SBL_STATIONS: _station_intervals,
    FileKind.PTL_STATIONS: _station_intervals,
    FileKind.SBL_TIMELINE: _timeline,
    FileKind.PTL_TIMELINE: _timeline,
    FileKind.INFEED_SKUS: _infeed_skus,
    FileKind.INFEED_HUS: _infeed_hus,
}


def rows_from_frame(kind: FileKind, frame: pd.DataFrame) -> tuple[Any, ...]:
    """Convert a raw upload frame into the row tuple for its kind."""
    if kind is FileKind.WAVE_MACROS:
        raise ValueError("Wave macros are a single record; use wave_macro_from_frame")
    if frame.empty:
        return ()
    rows = _ROW_BUILDERS[kind](_canonical(kind, frame))
    logger.debug("Parsed %d %s rows from %d raw rows", len(rows), kind.value, len(frame))
    return rows


def wave_macro_from_frame(frame: pd.DataFrame) -> Mapping[str, Any] | None:
    """The first row of a wave macros sheet as a raw record, or None if empty."""
    if frame.empty:
        return None
    canonical = _canonical(FileKind.WAVE_MACROS, frame)
    record = canonical.iloc[0].to_dict()
    return {k: (None if _is_missing(v) else v) for k, v in record.items()}


def _is_missing(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
