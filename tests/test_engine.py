"""
Tests for the metrics engine.

Covers the overall OTIF projection, station health and starvation, the
productivity streams, the PTL leaderboard and trip risk scoring, plus the
engine's behaviour with missing or failing inputs.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from wave_ops.analytics.engine import (
    MetricsEngine,
    build_station_record,
    build_stream,
    score_trip,
)
from wave_ops.analytics.macros import prepare_wave_macro
from wave_ops.config.settings import EngineConfig
from wave_ops.domain.models import (
    EngineInputs,
    HealthColor,
    IntervalRow,
    IssueType,
    LoadingRow,
    OtifRisk,
    SortationRow,
    StationCompletionRow,
    TimelinePoint,
    Trend,
    WaveStatus,
)

T0 = datetime(2025, 3, 14, 6, 0, tzinfo=timezone.utc)


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def macro(config):
    """Four-hour wave of 1000 lines starting at T0."""
    return prepare_wave_macro(
        {
            "wave_id": "W-TEST",
            "start_time_iso": "2025-03-14T06:00:00Z",
            "cutoff_time_iso": "2025-03-14T10:00:00Z",
            "total_orders": 200,
            "total_order_lines": 1000,
            "split_lines_sbl": 600,
            "split_lines_ptl": 400,
        },
        config,
    )


@pytest.fixture
def engine(config) -> MetricsEngine:
    return MetricsEngine(config)


def _half_loaded() -> tuple[LoadingRow, ...]:
    return (
        LoadingRow("TRIP-1", sorted=600, staged=400, loaded=300, total=600),
        LoadingRow("TRIP-2", sorted=400, staged=300, loaded=200, total=400),
    )


class TestOverallSummary:
    def test_half_loaded_at_midpoint_projects_cutoff(self, engine, macro):
        inputs = EngineInputs(loading=_half_loaded())

        summary = engine.overall_summary(inputs, macro, T0 + timedelta(hours=2))

        assert summary.progress_pct == pytest.approx(0.5)
        assert summary.projected_finish_iso == "2025-03-14T10:00:00.000Z"
        assert summary.buffer_minutes == 0
        # A zero buffer sits below half the 20 minute floor
        assert summary.otif_risk == OtifRisk.HIGH
        assert summary.wave_status == WaveStatus.LATE

    def test_fifteen_minute_buffer_is_medium(self, engine, macro):
        inputs = EngineInputs(loading=_half_loaded())
        now = T0 + timedelta(hours=1, minutes=52, seconds=30)

        summary = engine.overall_summary(inputs, macro, now)

        assert summary.projected_finish_iso == "2025-03-14T09:45:00.000Z"
        assert summary.buffer_minutes == 15
        assert summary.otif_risk == OtifRisk.MEDIUM
        assert summary.wave_status == WaveStatus.AT_RISK

    def test_comfortable_buffer_is_low(self, engine, macro):
        inputs = EngineInputs(loading=_half_loaded())

        summary = engine.overall_summary(inputs, macro, T0 + timedelta(minutes=90))

        assert summary.buffer_minutes == 60
        assert summary.otif_risk == OtifRisk.LOW
        assert summary.wave_status == WaveStatus.ON_TRACK

    def test_no_progress_uses_expected_duration(self, engine, macro):
        summary = engine.overall_summary(EngineInputs(), macro, T0 + timedelta(hours=1))

        # 7.5h floor: finish at 13:30, cutoff at 10:00
        assert summary.progress_pct == 0.0
        assert summary.projected_finish_iso == "2025-03-14T13:30:00.000Z"
        assert summary.buffer_minutes == -210
        assert summary.otif_risk == OtifRisk.HIGH

    def test_coverage_from_interval_lines(self, engine, macro):
        inputs = EngineInputs(
            sbl_intervals=(
                IntervalRow(1, "S1", line_count=200),
                IntervalRow(2, "S1", line_count=100),
            ),
            ptl_intervals=(IntervalRow(1, "P1", line_count=100),),
        )

        summary = engine.overall_summary(inputs, macro, T0)

        assert summary.sbl_coverage_pct == pytest.approx(0.5)
        assert summary.ptl_coverage_pct == pytest.approx(0.25)
        assert summary.line_coverage_pct == pytest.approx(0.4)

    def test_coverage_is_clamped(self, engine, macro):
        inputs = EngineInputs(
            sbl_intervals=(IntervalRow(1, "S1", line_count=5000),),
        )

        summary = engine.overall_summary(inputs, macro, T0)

        assert summary.sbl_coverage_pct == 1.0
        assert summary.line_coverage_pct == 1.0


class TestStationRecord:
    def test_backlog_with_adequate_rate_is_not_starved(self, config):
        row = StationCompletionRow("S1", total_demand_lines=100, packed_lines=75)

        record = build_station_record(row, recent_lph=70.0, recent_infeed_lph=100.0, config=config)

        assert record.remaining == 25
        assert record.starved is False

    def test_backlog_with_low_rate_is_starved(self, config):
        row = StationCompletionRow("S1", total_demand_lines=100, packed_lines=75)

        record = build_station_record(row, recent_lph=50.0, recent_infeed_lph=100.0, config=config)

        assert record.starved is True

    def test_small_backlog_is_never_starved(self, config):
        row = StationCompletionRow("S1", total_demand_lines=100, packed_lines=85)

        record = build_station_record(row, recent_lph=0.0, recent_infeed_lph=0.0, config=config)

        assert record.remaining == 15
        assert record.starved is False

    def test_completion_clamped_at_both_ends(self, config):
        untouched = build_station_record(
            StationCompletionRow("S1", 40, 0), 0.0, 0.0, config
        )
        overpacked = build_station_record(
            StationCompletionRow("S2", 40, 50), 0.0, 0.0, config
        )
        empty = build_station_record(StationCompletionRow("S3", 0, 0), 0.0, 0.0, config)

        assert untouched.completion_pct == 0.0
        assert overpacked.completion_pct == 1.0
        assert overpacked.remaining == -10
        assert empty.completion_pct == 0.0

    def test_infeed_issue_takes_precedence(self, config):
        row = StationCompletionRow("S1", 100, 10)

        # 50 < 60 (infeed) and 70 < 84 (productivity)
        record = build_station_record(row, recent_lph=70.0, recent_infeed_lph=50.0, config=config)

        assert record.is_infeed_issue is True
        assert record.is_productivity_issue is True
        assert record.issue_type == IssueType.INFEED

    def test_productivity_issue_when_infeed_is_fine(self, config):
        record = build_station_record(
            StationCompletionRow("S1", 100, 10), 70.0, 100.0, config
        )

        assert record.issue_type == IssueType.PRODUCTIVITY
        assert record.health_color == HealthColor.RED

    def test_healthy_station(self, config):
        record = build_station_record(
            StationCompletionRow("S1", 100, 10), 118.0, 100.0, config
        )

        assert record.issue_type == IssueType.NONE
        assert record.health_color == HealthColor.GREEN
        assert record.target_lph == 120.0

    def test_value_fields(self, config):
        row = StationCompletionRow("S1", 100, 50, total_value=800.0, completed_value=200.0)

        record = build_station_record(row, 0.0, 0.0, config)

        assert record.pending_value == pytest.approx(600.0)
        assert record.value_completion_pct == pytest.approx(0.25)


class TestStationHealth:
    def test_no_station_rows_gives_empty_list(self, engine):
        inputs = EngineInputs(sbl_intervals=(IntervalRow(1, "S1", 10, 10),))

        assert engine.station_health(inputs) == []

    def test_recent_rates_use_each_stations_latest_buckets(self, engine):
        intervals = [IntervalRow(i, "S1", 15.0, 10.0) for i in (1, 2)]
        intervals += [IntervalRow(i, "S1", 15.0, 20.0) for i in range(3, 9)]
        # S2 stopped reporting early; its own last buckets still count
        intervals += [IntervalRow(i, "S2", 4.0, 5.0) for i in (1, 2)]
        inputs = EngineInputs(
            stations=(
                StationCompletionRow("S1", 200, 100),
                StationCompletionRow("S2", 200, 100),
                StationCompletionRow("S3", 200, 100),
            ),
            sbl_intervals=tuple(intervals),
        )

        s1, s2, s3 = engine.station_health(inputs)

        assert s1.recent_lph == pytest.approx(120.0)
        assert s1.recent_infeed_lph == pytest.approx(90.0)
        assert s1.health_color == HealthColor.GREEN
        assert s2.recent_lph == pytest.approx(30.0)
        assert s2.recent_infeed_lph == pytest.approx(24.0)
        assert s2.starved is True
        assert s3.recent_lph == 0.0
        assert s3.health_color == HealthColor.RED

    def test_station_order_follows_input(self, engine):
        inputs = EngineInputs(
            stations=tuple(StationCompletionRow(code, 10, 5) for code in ("C", "A", "B"))
        )

        assert [s.station_code for s in engine.station_health(inputs)] == ["C", "A", "B"]


class TestProductivityStream:
    def test_rising_series(self, config):
        stream = build_stream([100, 110, 120, 130], 120, config)

        assert stream.ema_lph == 115
        assert stream.last_hour_avg == 115
        assert stream.slope == pytest.approx(10.0)
        assert stream.trend == Trend.UP
        assert stream.health_color == HealthColor.GREEN
        assert stream.shortfall is None

    def test_mean_covers_whole_series(self, config):
        values = [60] * 6 + [120] * 6

        stream = build_stream(values, 120, config)

        assert stream.ema_lph == 90
        assert stream.last_hour_avg == 120
        assert stream.trend == Trend.STABLE

    def test_falling_series(self, config):
        stream = build_stream([120, 110, 90], 120, config)

        assert stream.slope == pytest.approx(-15.0)
        assert stream.trend == Trend.DOWN
        assert stream.health_color == HealthColor.AMBER

    def test_single_point_has_flat_slope(self, config):
        stream = build_stream([80], 120, config)

        assert stream.slope == 0.0
        assert stream.trend == Trend.STABLE

    def test_capacity_shortfall(self, config):
        stream = build_stream([150, 150, 150], 180, config, capacity_constrained=True)

        assert stream.ema_lph == 150
        assert stream.shortfall is True
        assert stream.shortfall_factor == pytest.approx(0.17)

    def test_above_target_has_negative_factor(self, config):
        stream = build_stream([200, 200], 180, config, capacity_constrained=True)

        assert stream.shortfall is False
        assert stream.shortfall_factor == pytest.approx(-0.11)

    def test_zero_target_guards_ratio(self, config):
        stream = build_stream([50, 60], 0, config, capacity_constrained=True)

        assert stream.shortfall_factor == 0.0
        assert stream.health_color == HealthColor.RED

    def test_missing_timeline_is_empty_stream(self, engine):
        sbl = engine.sbl_stream(())
        ptl = engine.ptl_stream(())

        assert sbl.ema_lph == 0
        assert sbl.trend == Trend.STABLE
        assert ptl.shortfall is False
        assert ptl.shortfall_factor == 0.0

    def test_points_are_ordered_by_interval(self, engine):
        points = (
            TimelinePoint(3, productivity=130),
            TimelinePoint(1, productivity=110),
            TimelinePoint(2, productivity=120),
        )

        stream = engine.sbl_stream(points)

        assert stream.slope == pytest.approx(10.0)


class TestStationTotals:
    def test_leaderboard(self, engine):
        rows = []
        for interval in range(1, 8):
            rows.append(IntervalRow(interval, "A", 10.0, 20.0))
            rows.append(IntervalRow(interval, "B", 20.0, 40.0))
            rows.append(IntervalRow(interval, "C", 5.0, 10.0))
        rows.append(IntervalRow(1, "D", 30.0, 60.0))

        totals = engine.station_totals(tuple(rows))

        assert totals.total_lines == pytest.approx(275.0)
        assert totals.last_hour_lines == pytest.approx(210.0)
        assert [s.station_code for s in totals.by_station] == ["B", "A", "C"]
        assert totals.by_station[0].lines_last_hour == pytest.approx(120.0)
        assert totals.by_station[0].productivity == pytest.approx(40.0)
        # Fewer than six stations: top and bottom overlap
        assert [s.station_code for s in totals.leaderboard.top] == ["B", "A", "C"]
        assert [s.station_code for s in totals.leaderboard.bottom] == ["B", "A", "C"]

    def test_ties_keep_first_seen_order(self, engine):
        rows = tuple(IntervalRow(1, code, 10.0, 1.0) for code in ("X", "Y", "Z", "W"))

        totals = engine.station_totals(rows)

        assert [s.station_code for s in totals.by_station] == ["X", "Y", "Z", "W"]
        assert [s.station_code for s in totals.leaderboard.bottom] == ["Y", "Z", "W"]

    def test_no_rows(self, engine):
        totals = engine.station_totals(())

        assert totals.total_lines == 0.0
        assert totals.by_station == []
        assert totals.leaderboard.top == []


class TestTripRisk:
    def test_weighted_sum(self, config):
        row = LoadingRow("TRIP-1", sorted=8, total=16, dock_door_queue=10)

        trip = score_trip(row, qc_count=2, config=config)

        assert trip.risk_factors.behind_sorted == pytest.approx(0.5)
        assert trip.qc_ratio == pytest.approx(0.125)
        assert trip.risk_factors.door_norm == pytest.approx(1.0)
        assert trip.risk_factors.trend_down == 0.0
        assert trip.risk == pytest.approx(0.4 * 0.5 + 0.3 * 0.125 + 0.2 * 1.0)
        assert trip.risk == pytest.approx(0.4375)
        assert trip.health_color == HealthColor.AMBER

    def test_deep_dock_queue_pushes_risk_past_one(self, config):
        row = LoadingRow("TRIP-2", sorted=0, total=10, dock_door_queue=40)

        trip = score_trip(row, qc_count=0, config=config)

        assert trip.risk_factors.door_norm == pytest.approx(4.0)
        assert trip.risk == pytest.approx(1.2)
        assert trip.health_color == HealthColor.RED

    def test_fully_sorted_trip_is_green(self, config):
        row = LoadingRow("TRIP-3", sorted=20, staged=20, loaded=10, total=20)

        trip = score_trip(row, qc_count=0, config=config)

        assert trip.risk == pytest.approx(0.0)
        assert trip.loaded_pct == pytest.approx(0.5)
        assert trip.health_color == HealthColor.GREEN

    def test_zero_total_is_guarded(self, config):
        trip = score_trip(LoadingRow("TRIP-4"), qc_count=3, config=config)

        assert trip.sorted_pct == 0.0
        assert trip.qc_ratio == 0.0
        assert trip.risk == pytest.approx(0.4)

    def test_qc_joined_by_trip(self, engine):
        loading = (
            LoadingRow("TRIP-1", sorted=10, total=10),
            LoadingRow("TRIP-2", sorted=10, total=10),
        )
        sortation = (SortationRow("TRIP-2", 5), SortationRow("TRIP-9", 50))

        trips = engine.trip_risks(loading, sortation)

        assert [t.qc_ratio for t in trips] == [0.0, pytest.approx(0.5)]

    def test_no_loading_rows(self, engine):
        assert engine.trip_risks((), (SortationRow("TRIP-1", 1),)) == []


class TestCompute:
    def _inputs(self) -> EngineInputs:
        return EngineInputs(
            loading=_half_loaded(),
            sortation=(SortationRow("TRIP-1", 30),),
            stations=(StationCompletionRow("S1", 300, 100),),
            sbl_intervals=tuple(IntervalRow(i, "S1", 18.0, 10.0) for i in range(1, 7)),
            ptl_intervals=tuple(IntervalRow(i, "P1", 25.0, 150.0) for i in range(1, 7)),
            sbl_timeline=tuple(TimelinePoint(i, 18.0, 115.0) for i in range(1, 7)),
            ptl_timeline=tuple(TimelinePoint(i, 25.0, 150.0) for i in range(1, 7)),
        )

    def test_frozen_clock_is_idempotent(self, engine, macro):
        now = T0 + timedelta(hours=2)

        first = engine.compute(self._inputs(), macro, now).to_dict()
        second = engine.compute(self._inputs(), macro, now).to_dict()

        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)
        assert first["calculation_timestamp"] == "2025-03-14T08:00:00.000Z"

    def test_naive_clock_is_taken_as_utc(self, engine, macro, caplog):
        aware = engine.compute(self._inputs(), macro, T0 + timedelta(hours=2))
        naive = engine.compute(self._inputs(), macro, datetime(2025, 3, 14, 8, 0))

        assert naive.overall_summary == aware.overall_summary
        assert naive.overall_summary.progress_pct == pytest.approx(0.5)
        assert naive.calculation_timestamp == "2025-03-14T08:00:00.000Z"
        assert "failed" not in caplog.text

    def test_artifact_keys(self, engine, macro):
        payload = engine.compute(self._inputs(), macro, T0).to_dict()

        assert set(payload) == {
            "overall_summary",
            "sbl_stations",
            "sbl_stream",
            "ptl_stream",
            "ptl_totals",
            "trips",
            "sbl_skus",
            "sbl_infeed",
            "calculation_timestamp",
            "macros",
        }
        assert payload["overall_summary"]["otif_risk"] in {"LOW", "MEDIUM", "HIGH"}
        assert payload["sbl_stations"][0]["health_color"] == "red"
        assert payload["macros"]["start_time"] == "2025-03-14T06:00:00.000Z"

    def test_empty_inputs_degrade_to_defaults(self, engine, macro):
        artifacts = engine.compute(EngineInputs(), macro, T0)

        assert artifacts.sbl_stations == []
        assert artifacts.trips == []
        assert artifacts.ptl_totals.by_station == []
        assert artifacts.sbl_infeed is None
        assert artifacts.sbl_skus.total_skus == 0
        assert artifacts.ptl_stream.shortfall is False

    def test_failing_step_is_replaced_by_default(self, engine, macro, monkeypatch, caplog):
        def boom(*args):
            raise RuntimeError("bad trip data")

        monkeypatch.setattr(engine, "trip_risks", boom)

        artifacts = engine.compute(self._inputs(), macro, T0)

        assert artifacts.trips == []
        assert len(artifacts.sbl_stations) == 1
        assert "trips failed" in caplog.text

    def test_failing_summary_falls_back_to_expected_duration(
        self, engine, macro, monkeypatch
    ):
        def boom(*args):
            raise ZeroDivisionError

        monkeypatch.setattr(engine, "overall_summary", boom)

        summary = engine.compute(self._inputs(), macro, T0).overall_summary

        assert summary.projected_finish_iso == "2025-03-14T13:30:00.000Z"
        assert summary.otif_risk == OtifRisk.HIGH
        assert summary.line_coverage_pct == 0.0
