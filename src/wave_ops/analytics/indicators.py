"""Scalar indicators shared by the metrics and recommendation engines."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from wave_ops.config.settings import HealthCutPoints
from wave_ops.domain.models import HealthColor, OtifRisk, Trend, WaveStatus

MIN_POINTS_FOR_SLOPE = 2
SLOPE_POINTS = 3


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return float(numerator) / float(denominator)


def health_color(
    value: float, target: float, cut_points: HealthCutPoints | None = None
) -> HealthColor:
    """Grade a rate against its target on the green/amber/red scale."""
    cut_points = cut_points or HealthCutPoints()
    ratio = safe_ratio(value, target)
    if ratio >= cut_points.green:
        return HealthColor.GREEN
    if ratio >= cut_points.amber:
        return HealthColor.AMBER
    return HealthColor.RED


def otif_risk(buffer_minutes: float, floor_minutes: float = 20.0) -> OtifRisk:
    if buffer_minutes >= floor_minutes:
        return OtifRisk.LOW
    if buffer_minutes >= floor_minutes * 0.5:
        return OtifRisk.MEDIUM
    return OtifRisk.HIGH


_STATUS_BY_RISK = {
    OtifRisk.LOW: WaveStatus.ON_TRACK,
    OtifRisk.MEDIUM: WaveStatus.AT_RISK,
    OtifRisk.HIGH: WaveStatus.LATE,
}


def wave_status_for(risk: OtifRisk) -> WaveStatus:
    return _STATUS_BY_RISK[risk]


def simple_moving_average(
    values: Sequence[float] | np.ndarray, window: int | None = None
) -> float:
    """
    Mean of the trailing `window` values (all values when window is None).

    Returns 0.0 for an empty series.
    """
    series = np.asarray(values, dtype=np.float64)
    if series.size == 0:
        return 0.0
    if window is not None:
        series = series[-window:]
    return float(np.mean(series))


def calculate_slope(values: Sequence[float] | np.ndarray) -> float:
    """
    Per-bucket change across the last three points.

    (last - first) / (n - 1) over the trailing SLOPE_POINTS values;
    0.0 with fewer than two points.
    """
    series = np.asarray(values, dtype=np.float64)
    if series.size < MIN_POINTS_FOR_SLOPE:
        return 0.0
    recent = series[-SLOPE_POINTS:]
    return float((recent[-1] - recent[0]) / (recent.size - 1))


def classify_trend(slope: float, threshold: float = 5.0) -> Trend:
    if slope > threshold:
        return Trend.UP
    if slope < -threshold:
        return Trend.DOWN
    return Trend.STABLE
