"""Typed engine configuration.

Parses stage_targets.json into frozen dataclasses so the engine never
reaches into raw dicts. Defaults mirror the shipped JSON, which keeps a
partial override file usable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SBL = "SBL"
PTL = "PTL"


@dataclass(frozen=True)
class StageTarget:
    """Throughput target for one processing stage."""

    target_lph: float
    bucket_minutes: int = 10
    expected_duration_hours: float = 0.0


DEFAULT_STAGE_TARGETS: dict[str, StageTarget] = {
    "SBL": StageTarget(120, 10, 2.5),
    "PTL": StageTarget(180, 10, 2.5),
    "SORT": StageTarget(200, 10, 7.25),
    "STAGE": StageTarget(150, 10, 7.5),
    "LOAD": StageTarget(100, 10, 7.0),
}


@dataclass(frozen=True)
class Thresholds:
    buffer_floor_minutes_global: float = 20.0
    buffer_floor_minutes_by_stage: dict[str, float] = field(default_factory=dict)
    risk_threshold_trip: float = 0.6
    starvation_min_lines: float = 20.0
    starvation_min_factor_of_target: float = 0.5
    ptl_shortfall_min_factor: float = 0.1
    expected_duration_floor_hours: float = 7.5
    recent_window_buckets: int = 6
    trend_slope_threshold: float = 5.0
    infeed_issue_factor: float = 0.5
    productivity_issue_factor: float = 0.7
    infeed_stale_minutes: float = 30.0
    low_coverage_pct: float = 50.0


@dataclass(frozen=True)
class HealthCutPoints:
    """Ratio-to-target cut points for the green/amber/red scale."""

    green: float = 0.95
    amber: float = 0.7


@dataclass(frozen=True)
class RiskWeights:
    behind_sorted: float = 0.4
    qc_ratio: float = 0.3
    door_norm: float = 0.2
    trend_down: float = 0.1


@dataclass(frozen=True)
class TripRiskConfig:
    weights: RiskWeights = field(default_factory=RiskWeights)
    door_queue_normalizer: float = 10.0
    green_below: float = 0.3
    amber_below: float = 0.6
    # A sub-factor counts as dominant when it exceeds its threshold
    factor_thresholds: dict[str, float] = field(
        default_factory=lambda: {
            "behind_sorted": 0.3,
            "qc_ratio": 0.2,
            "door_norm": 0.5,
            "trend_down": 0.0,
        }
    )


@dataclass(frozen=True)
class EngineConfig:
    """Aggregated configuration consumed by the macro processor and engines."""

    stage_targets: dict[str, StageTarget] = field(
        default_factory=lambda: dict(DEFAULT_STAGE_TARGETS)
    )
    thresholds: Thresholds = field(default_factory=Thresholds)
    health: HealthCutPoints = field(default_factory=HealthCutPoints)
    trip_risk: TripRiskConfig = field(default_factory=TripRiskConfig)

    def target_lph(self, stage: str) -> float:
        target = self.stage_targets.get(stage)
        return float(target.target_lph) if target is not None else 0.0

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> EngineConfig:
        stages = dict(DEFAULT_STAGE_TARGETS)
        for code, entry in raw.get("stage_targets", {}).items():
            stages[code] = StageTarget(
                target_lph=float(entry.get("target_lph", 0.0)),
                bucket_minutes=int(entry.get("bucket_minutes", 10)),
                expected_duration_hours=float(
                    entry.get("expected_duration_hours", 0.0)
                ),
            )

        th = raw.get("thresholds", {})
        thresholds = Thresholds(
            buffer_floor_minutes_global=float(
                th.get("buffer_floor_minutes_global", 20)
            ),
            buffer_floor_minutes_by_stage={
                k: float(v)
                for k, v in th.get("buffer_floor_minutes_by_stage", {}).items()
            },
            risk_threshold_trip=float(th.get("risk_threshold_trip", 0.6)),
            starvation_min_lines=float(th.get("starvation_min_lines", 20)),
            starvation_min_factor_of_target=float(
                th.get("starvation_min_factor_of_target", 0.5)
            ),
            ptl_shortfall_min_factor=float(th.get("ptl_shortfall_min_factor", 0.1)),
            expected_duration_floor_hours=float(
                th.get("expected_duration_floor_hours", 7.5)
            ),
            recent_window_buckets=int(th.get("recent_window_buckets", 6)),
            trend_slope_threshold=float(th.get("trend_slope_threshold", 5.0)),
            infeed_issue_factor=float(th.get("infeed_issue_factor", 0.5)),
            productivity_issue_factor=float(th.get("productivity_issue_factor", 0.7)),
            infeed_stale_minutes=float(th.get("infeed_stale_minutes", 30)),
            low_coverage_pct=float(th.get("low_coverage_pct", 50)),
        )

        hc = raw.get("health_colors", {})
        health = HealthCutPoints(
            green=float(hc.get("green", 0.95)),
            amber=float(hc.get("amber", 0.7)),
        )

        tr = raw.get("trip_risk", {})
        w = tr.get("weights", {})
        defaults = TripRiskConfig()
        trip_risk = TripRiskConfig(
            weights=RiskWeights(
                behind_sorted=float(w.get("behind_sorted", 0.4)),
                qc_ratio=float(w.get("qc_ratio", 0.3)),
                door_norm=float(w.get("door_norm", 0.2)),
                trend_down=float(w.get("trend_down", 0.1)),
            ),
            door_queue_normalizer=float(tr.get("door_queue_normalizer", 10)),
            green_below=float(tr.get("green_below", 0.3)),
            amber_below=float(tr.get("amber_below", 0.6)),
            factor_thresholds={
                **defaults.factor_thresholds,
                **{k: float(v) for k, v in tr.get("factor_thresholds", {}).items()},
            },
        )

        return cls(
            stage_targets=stages,
            thresholds=thresholds,
            health=health,
            trip_risk=trip_risk,
        )
