"""
Metrics Engine: raw wave rows -> DerivedArtifactSet.

Each artifact is produced by an independent step that reads only the
processed wave macro and the raw row collections. A step that fails is
logged and replaced by its empty default, so one bad input never blanks
the whole dashboard.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

import numpy as np
import pandas as pd

from wave_ops.analytics.indicators import (
    calculate_slope,
    classify_trend,
    health_color,
    otif_risk,
    safe_ratio,
    simple_moving_average,
    wave_status_for,
)
from wave_ops.analytics.infeed import build_infeed_rollup, build_sku_rollup
from wave_ops.config.settings import PTL, SBL, EngineConfig
from wave_ops.domain.models import (
    DerivedArtifactSet,
    EngineInputs,
    HealthColor,
    IntervalRow,
    IssueType,
    Leaderboard,
    LoadingRow,
    OverallSummary,
    ProcessedWaveMacro,
    ProductivityStream,
    RiskFactors,
    SortationRow,
    StationCompletionRow,
    StationRecord,
    StationTotal,
    StationTotals,
    TimelinePoint,
    TripRecord,
    format_iso,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

INTERVAL_COLUMNS = ["interval_no", "station_code", "line_count", "productivity"]
LEADERBOARD_SIZE = 3


def interval_frame(rows: Sequence[IntervalRow]) -> pd.DataFrame:
    """Interval rows as a DataFrame with a fixed column set."""
    if not rows:
        return pd.DataFrame(columns=INTERVAL_COLUMNS)
    return pd.DataFrame(
        {
            "interval_no": [r.interval_no for r in rows],
            "station_code": [r.station_code for r in rows],
            "line_count": np.array([r.line_count for r in rows], dtype=np.float64),
            "productivity": np.array(
                [r.productivity for r in rows], dtype=np.float64
            ),
        }
    )


def recent_window(frame: pd.DataFrame, buckets: int) -> pd.DataFrame:
    """Rows belonging to the `buckets` most recent distinct interval numbers."""
    if frame.empty:
        return frame
    latest = sorted(frame["interval_no"].unique(), reverse=True)[:buckets]
    return frame[frame["interval_no"].isin(latest)]


def build_station_record(
    row: StationCompletionRow,
    recent_lph: float,
    recent_infeed_lph: float,
    config: EngineConfig,
) -> StationRecord:
    """Grade one SBL station from its backlog and trailing-hour rates."""
    th = config.thresholds
    target = config.target_lph(SBL)

    remaining = row.total_demand_lines - row.packed_lines
    completion = min(1.0, max(0.0, safe_ratio(row.packed_lines, row.total_demand_lines)))

    starved = (
        remaining > th.starvation_min_lines
        and recent_lph < target * th.starvation_min_factor_of_target
    )
    is_productivity_issue = recent_lph < target * th.productivity_issue_factor
    is_infeed_issue = recent_infeed_lph < target * th.infeed_issue_factor
    if is_infeed_issue:
        issue = IssueType.INFEED
    elif is_productivity_issue:
        issue = IssueType.PRODUCTIVITY
    else:
        issue = IssueType.NONE

    total_value = row.total_value or 0.0
    completed_value = row.completed_value or 0.0

    return StationRecord(
        station_code=row.station_code,
        total=row.total_demand_lines,
        packed=row.packed_lines,
        remaining=remaining,
        completion_pct=completion,
        recent_lph=recent_lph,
        target_lph=target,
        starved=starved,
        health_color=health_color(recent_lph, target, config.health),
        recent_infeed_lph=recent_infeed_lph,
        is_productivity_issue=is_productivity_issue,
        is_infeed_issue=is_infeed_issue,
        issue_type=issue,
        total_value=total_value,
        completed_value=completed_value,
        pending_value=total_value - completed_value,
        value_completion_pct=min(1.0, max(0.0, safe_ratio(completed_value, total_value))),
    )


def build_stream(
    values: Sequence[float],
    target: float,
    config: EngineConfig,
    capacity_constrained: bool = False,
) -> ProductivityStream:
    """Summarize one stage's productivity series (oldest value first)."""
    th = config.thresholds
    # ema_lph is a plain mean over the whole series, not an exponential
    # average; the shortfall and trend cut points are calibrated against it.
    ema = simple_moving_average(values)
    last_hour = simple_moving_average(values, th.recent_window_buckets)
    slope = calculate_slope(values)

    stream = ProductivityStream(
        ema_lph=int(round(ema)),
        last_hour_avg=int(round(last_hour)),
        slope=round(slope, 2),
        trend=classify_trend(slope, th.trend_slope_threshold),
        health_color=health_color(ema, target, config.health),
    )
    if capacity_constrained:
        # Unclamped: negative when the stage runs above target
        factor = safe_ratio(target - ema, target)
        stream.shortfall = factor > th.ptl_shortfall_min_factor
        stream.shortfall_factor = round(factor, 2)
    return stream


def score_trip(
    row: LoadingRow, qc_count: float, config: EngineConfig
) -> TripRecord:
    """Weighted trip risk from sortation lag, QC backlog and dock queue."""
    tr = config.trip_risk
    weights = tr.weights

    sorted_pct = safe_ratio(row.sorted, row.total)
    staged_pct = safe_ratio(row.staged, row.total)
    loaded_pct = safe_ratio(row.loaded, row.total)

    behind_sorted = 1.0 - sorted_pct
    qc_ratio = safe_ratio(qc_count, row.total)
    # Not capped at 1.0: queues deeper than the normalizer push risk past 1
    door_norm = safe_ratio(row.dock_door_queue, tr.door_queue_normalizer)
    # Historical trend signal is not wired up yet; the weight stays reserved
    trend_down = 0.0

    risk = (
        weights.behind_sorted * behind_sorted
        + weights.qc_ratio * qc_ratio
        + weights.door_norm * door_norm
        + weights.trend_down * trend_down
    )
    if risk < tr.green_below:
        color = HealthColor.GREEN
    elif risk < tr.amber_below:
        color = HealthColor.AMBER
    else:
        color = HealthColor.RED

    return TripRecord(
        trip_id=row.trip_id,
        total=row.total,
        sorted=row.sorted,
        staged=row.staged,
        loaded=row.loaded,
        sorted_pct=sorted_pct,
        staged_pct=staged_pct,
        loaded_pct=loaded_pct,
        qc_ratio=qc_ratio,
        dock_door_queue=row.dock_door_queue,
        risk=risk,
        risk_factors=RiskFactors(
            behind_sorted=behind_sorted,
            qc_ratio=qc_ratio,
            door_norm=door_norm,
            trend_down=trend_down,
        ),
        health_color=color,
        vehicle_no=row.vehicle_no,
    )


def _ordered_productivity(points: Sequence[TimelinePoint]) -> list[float]:
    return [p.productivity for p in sorted(points, key=lambda p: p.interval_no)]


class MetricsEngine:
    """Computes the full DerivedArtifactSet for one wave snapshot."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()

    @property
    def _hourly_scale(self) -> float:
        bucket = self.config.stage_targets[SBL].bucket_minutes
        return 60.0 / bucket if bucket else 0.0

    def compute(
        self,
        inputs: EngineInputs,
        macro: ProcessedWaveMacro,
        now: datetime | None = None,
    ) -> DerivedArtifactSet:
        now = now or datetime.now(timezone.utc)
        # Naive clocks are UTC, matching the macro timestamps
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        logger.debug("Computing artifacts for wave %s: %s", macro.wave_info.wave_id, inputs.counts())

        summary = self._guarded(
            "overall_summary",
            lambda: self._fallback_summary(macro),
            self.overall_summary,
            inputs,
            macro,
            now,
        )
        stations = self._guarded("sbl_stations", list, self.station_health, inputs)
        sbl_stream = self._guarded(
            "sbl_stream", ProductivityStream, self.sbl_stream, inputs.sbl_timeline
        )
        ptl_stream = self._guarded(
            "ptl_stream",
            lambda: ProductivityStream(shortfall=False, shortfall_factor=0.0),
            self.ptl_stream,
            inputs.ptl_timeline,
        )
        ptl_totals = self._guarded(
            "ptl_totals", StationTotals, self.station_totals, inputs.ptl_intervals
        )
        trips = self._guarded(
            "trips", list, self.trip_risks, inputs.loading, inputs.sortation
        )
        infeed = self._guarded(
            "sbl_infeed",
            lambda: None,
            build_infeed_rollup,
            inputs.infeed_skus,
            inputs.infeed_hus,
            self.config.thresholds,
        )

        artifacts = DerivedArtifactSet(
            overall_summary=summary,
            sbl_stations=stations,
            sbl_stream=sbl_stream,
            ptl_stream=ptl_stream,
            ptl_totals=ptl_totals,
            trips=trips,
            sbl_skus=build_sku_rollup(infeed),
            sbl_infeed=infeed,
            calculation_timestamp=format_iso(now),
            macros=macro,
        )
        logger.info(
            "Wave %s: status=%s buffer=%smin stations=%d trips=%d",
            macro.wave_info.wave_id,
            summary.wave_status.value,
            summary.buffer_minutes,
            len(stations),
            len(trips),
        )
        return artifacts

    def _guarded(
        self,
        step: str,
        default: Callable[[], T],
        func: Callable[..., T],
        *args: Any,
    ) -> T:
        try:
            return func(*args)
        except Exception:
            logger.exception("Step %s failed; using its empty default", step)
            return default()

    # --- 1. Overall summary ----------------------------------------------

    def overall_summary(
        self, inputs: EngineInputs, macro: ProcessedWaveMacro, now: datetime
    ) -> OverallSummary:
        wave = macro.wave_info
        total_assigned = sum(r.total for r in inputs.loading)
        total_loaded = sum(r.loaded for r in inputs.loading)
        progress = safe_ratio(total_loaded, total_assigned)

        if progress > 0:
            elapsed_hours = (now - macro.start_time).total_seconds() / 3600.0
            projected_hours = elapsed_hours / progress
        else:
            projected_hours = macro.expected_duration.total
        projected_finish = macro.start_time + timedelta(hours=projected_hours)

        buffer_minutes = (macro.cutoff_time - projected_finish).total_seconds() / 60.0
        risk = otif_risk(buffer_minutes, self.config.thresholds.buffer_floor_minutes_global)

        sbl_lines = sum(r.line_count for r in inputs.sbl_intervals)
        ptl_lines = sum(r.line_count for r in inputs.ptl_intervals)

        logger.debug(
            "Overall summary: assigned=%s loaded=%s progress=%.3f buffer=%.1f",
            total_assigned,
            total_loaded,
            progress,
            buffer_minutes,
        )
        return OverallSummary(
            projected_finish_iso=format_iso(projected_finish),
            buffer_minutes=int(round(buffer_minutes)),
            otif_risk=risk,
            line_coverage_pct=min(
                1.0, safe_ratio(sbl_lines + ptl_lines, wave.total_order_lines)
            ),
            wave_status=wave_status_for(risk),
            sbl_coverage_pct=min(1.0, safe_ratio(sbl_lines, wave.split_lines_sbl or 0)),
            ptl_coverage_pct=min(1.0, safe_ratio(ptl_lines, wave.split_lines_ptl or 0)),
            progress_pct=progress,
        )

    def _fallback_summary(self, macro: ProcessedWaveMacro) -> OverallSummary:
        projected = macro.start_time + timedelta(hours=macro.expected_duration.total)
        buffer_minutes = (macro.cutoff_time - projected).total_seconds() / 60.0
        risk = otif_risk(buffer_minutes, self.config.thresholds.buffer_floor_minutes_global)
        return OverallSummary(
            projected_finish_iso=format_iso(projected),
            buffer_minutes=int(round(buffer_minutes)),
            otif_risk=risk,
            line_coverage_pct=0.0,
            wave_status=wave_status_for(risk),
        )

    # --- 2. Station health -------------------------------------------------

    def station_health(self, inputs: EngineInputs) -> list[StationRecord]:
        if not inputs.stations:
            logger.info("No station completion rows; station health skipped")
            return []

        buckets = self.config.thresholds.recent_window_buckets
        scale = self._hourly_scale
        # Each station is windowed on its own latest buckets
        rates: dict[str, tuple[float, float]] = {}
        for code, rows in interval_frame(inputs.sbl_intervals).groupby(
            "station_code", sort=False
        ):
            recent = recent_window(rows, buckets)
            rates[str(code)] = (
                float(recent["productivity"].mean()) * scale,
                float(recent["line_count"].mean()) * scale,
            )

        stations = []
        for row in inputs.stations:
            recent_lph, infeed_lph = rates.get(row.station_code, (0.0, 0.0))
            record = build_station_record(row, recent_lph, infeed_lph, self.config)
            if record.remaining < 0:
                logger.warning(
                    "Station %s packed %s of %s demand lines",
                    record.station_code,
                    record.packed,
                    record.total,
                )
            stations.append(record)
        return stations

    # --- 3. Productivity streams -------------------------------------------

    def sbl_stream(self, points: Sequence[TimelinePoint]) -> ProductivityStream:
        if not points:
            logger.info("No SBL timeline rows; using the empty stream")
            return ProductivityStream()
        return build_stream(
            _ordered_productivity(points), self.config.target_lph(SBL), self.config
        )

    def ptl_stream(self, points: Sequence[TimelinePoint]) -> ProductivityStream:
        if not points:
            logger.info("No PTL timeline rows; using the empty stream")
            return ProductivityStream(shortfall=False, shortfall_factor=0.0)
        return build_stream(
            _ordered_productivity(points),
            self.config.target_lph(PTL),
            self.config,
            capacity_constrained=True,
        )

    # --- 4. Station totals / leaderboard -----------------------------------

    def station_totals(self, rows: Sequence[IntervalRow]) -> StationTotals:
        frame = interval_frame(rows)
        if frame.empty:
            return StationTotals()

        recent = recent_window(frame, self.config.thresholds.recent_window_buckets)
        grouped = (
            recent.groupby("station_code", sort=False)
            .agg(
                lines_last_hour=("line_count", "sum"),
                productivity=("productivity", "mean"),
            )
            .reset_index()
            .sort_values("lines_last_hour", ascending=False, kind="stable")
        )
        by_station = [
            StationTotal(
                station_code=str(r.station_code),
                lines_last_hour=float(r.lines_last_hour),
                productivity=float(r.productivity),
            )
            for r in grouped.itertuples(index=False)
        ]
        return StationTotals(
            total_lines=float(frame["line_count"].sum()),
            last_hour_lines=float(recent["line_count"].sum()),
            by_station=by_station,
            leaderboard=Leaderboard(
                top=by_station[:LEADERBOARD_SIZE],
                bottom=by_station[-LEADERBOARD_SIZE:],
            ),
        )

    # --- 5. Trip risk ------------------------------------------------------

    def trip_risks(
        self, loading: Sequence[LoadingRow], sortation: Sequence[SortationRow]
    ) -> list[TripRecord]:
        if not loading:
            logger.info("No loading rows; trip risk skipped")
            return []
        qc_by_trip = {r.trip_id: r.qc_count for r in sortation}
        return [
            score_trip(row, qc_by_trip.get(row.trip_id, 0.0), self.config)
            for row in loading
        ]
