"""
Wave macro validation and processing.

A wave macro is the single planning record for a wave: when it starts,
when trucks must leave, and how many order lines it carries. Validation
collects every field problem before reporting so an operator can fix the
sheet in one pass.
"""

from __future__ import annotations

import logging
import math
import numbers
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import pandas as pd

from wave_ops.config.settings import PTL, SBL, EngineConfig
from wave_ops.domain.models import (
    ExpectedDuration,
    ProcessedWaveMacro,
    WaveMacro,
    format_iso,
)

logger = logging.getLogger(__name__)

# Excel serial day 0 (the 1900 leap-year bug is folded into this origin)
EXCEL_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return self.message


class MacroValidationError(ValueError):
    """Raised when a wave macro record cannot be used for computation."""

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a wave timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings, datetime/pandas Timestamp objects and Excel
    serial day numbers. Naive values are taken as UTC. Returns None for
    empty or unparsable input.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if pd.isna(value):
            return None
        moment = value.to_pydatetime() if isinstance(value, pd.Timestamp) else value
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc)

    if isinstance(value, numbers.Real):
        serial = float(value)
        if math.isnan(serial) or math.isinf(serial):
            return None
        try:
            return EXCEL_EPOCH + timedelta(days=serial)
        except OverflowError:
            return None

    text = str(value).strip()
    if not text:
        return None
    try:
        return parse_timestamp(datetime.fromisoformat(text))
    except ValueError:
        pass
    try:
        return parse_timestamp(pd.Timestamp(text))
    except (ValueError, TypeError):
        return None


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _optional_number(raw: Mapping[str, Any], key: str) -> float | None:
    value = raw.get(key)
    if isinstance(value, str) and not value.strip():
        return None
    return _number(value)


def validate_wave_macro(raw: Mapping[str, Any]) -> list[FieldError]:
    """Return every field-level problem with a raw wave macro record."""
    errors: list[FieldError] = []

    wave_id = raw.get("wave_id")
    if wave_id is None or not str(wave_id).strip() or _is_nan(wave_id):
        errors.append(FieldError("wave_id", "Missing wave_id"))

    parsed: dict[str, datetime | None] = {}
    for key in ("start_time_iso", "cutoff_time_iso"):
        value = raw.get(key)
        if value is None or (isinstance(value, str) and not value.strip()) or _is_nan(value):
            errors.append(FieldError(key, f"Missing {key}"))
            parsed[key] = None
            continue
        parsed[key] = parse_timestamp(value)
        if parsed[key] is None:
            errors.append(FieldError(key, f"Invalid {key} format"))

    for key in ("total_orders", "total_order_lines"):
        number = _number(raw.get(key))
        # Counts are stored as ints, so a fraction below one is zero
        if number is None or int(number) <= 0:
            errors.append(FieldError(key, f"Invalid {key}"))

    start, cutoff = parsed.get("start_time_iso"), parsed.get("cutoff_time_iso")
    if start is not None and cutoff is not None and cutoff <= start:
        errors.append(
            FieldError("cutoff_time_iso", "cutoff_time_iso must be after start_time_iso")
        )

    return errors


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _wave_window(start_value: Any, cutoff_value: Any) -> tuple[datetime, datetime]:
    start = parse_timestamp(start_value)
    cutoff = parse_timestamp(cutoff_value)
    errors = []
    if start is None:
        errors.append(FieldError("start_time_iso", "Invalid start_time_iso format"))
    if cutoff is None:
        errors.append(FieldError("cutoff_time_iso", "Invalid cutoff_time_iso format"))
    if errors:
        raise MacroValidationError(errors)
    return start, cutoff


def parse_wave_macro(raw: Mapping[str, Any]) -> WaveMacro:
    """Validate a raw record and normalize it into a WaveMacro."""
    errors = validate_wave_macro(raw)
    if errors:
        raise MacroValidationError(errors)

    start, cutoff = _wave_window(raw["start_time_iso"], raw["cutoff_time_iso"])

    return WaveMacro(
        wave_id=str(raw["wave_id"]).strip(),
        start_time_iso=format_iso(start),
        cutoff_time_iso=format_iso(cutoff),
        total_orders=int(float(raw["total_orders"])),
        total_order_lines=int(float(raw["total_order_lines"])),
        total_order_value=_optional_number(raw, "total_order_value"),
        split_lines_sbl=_optional_number(raw, "split_lines_sbl"),
        split_lines_ptl=_optional_number(raw, "split_lines_ptl"),
        split_lines_fc=_optional_number(raw, "split_lines_fc"),
    )


def process_wave_macro(
    macro: WaveMacro, config: EngineConfig | None = None
) -> ProcessedWaveMacro:
    """
    Derive parsed times and expected stage durations for a wave.

    The wave's overall expected duration is the longest picking stage,
    never shorter than the configured floor.
    """
    config = config or EngineConfig()
    errors = validate_wave_macro(asdict(macro))
    if errors:
        raise MacroValidationError(errors)

    start, cutoff = _wave_window(macro.start_time_iso, macro.cutoff_time_iso)

    sbl_hours = config.stage_targets[SBL].expected_duration_hours
    ptl_hours = config.stage_targets[PTL].expected_duration_hours
    total_hours = max(
        sbl_hours, ptl_hours, config.thresholds.expected_duration_floor_hours
    )

    logger.debug(
        "Processed wave %s: start=%s cutoff=%s expected=%.2fh",
        macro.wave_id,
        macro.start_time_iso,
        macro.cutoff_time_iso,
        total_hours,
    )

    return ProcessedWaveMacro(
        wave_info=macro,
        start_time=start,
        cutoff_time=cutoff,
        expected_duration=ExpectedDuration(
            sbl=sbl_hours, ptl=ptl_hours, total=total_hours
        ),
        stage_targets=dict(config.stage_targets),
        thresholds=config.thresholds,
    )


def prepare_wave_macro(
    raw: Mapping[str, Any], config: EngineConfig | None = None
) -> ProcessedWaveMacro:
    """Parse and process a raw wave macro record in one step."""
    return process_wave_macro(parse_wave_macro(raw), config)
