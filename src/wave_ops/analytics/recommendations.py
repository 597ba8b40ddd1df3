"""
Rule-based operational recommendations.

Each rule reads one slice of the derived artifact set and either fires a
single Recommendation or stays silent. Rules are independent; the final
list is ordered by priority and then by confidence.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from wave_ops.config.settings import PTL, SBL, EngineConfig
from wave_ops.domain.models import (
    DerivedArtifactSet,
    OtifRisk,
    Priority,
    Recommendation,
    RecommendationCategory,
    RiskFactors,
    Trend,
)

logger = logging.getLogger(__name__)

LPH_PER_RETASKED_STATION = 15
ADDED_PICKER_GAIN = 0.15
TREND_TARGET_FACTOR = 0.9

_FACTOR_LABELS = {
    "behind_sorted": "sorting delays",
    "qc_ratio": "QC backlog",
    "door_norm": "dock congestion",
    "trend_down": "declining trend",
}


def describe_risk_factors(
    factors: RiskFactors, thresholds: dict[str, float]
) -> str:
    """Comma-joined labels of the factors above their thresholds."""
    labels = [
        label
        for name, label in _FACTOR_LABELS.items()
        if getattr(factors, name) > thresholds.get(name, 0.0)
    ]
    return ", ".join(labels) if labels else "general delays"


def sort_recommendations(recs: list[Recommendation]) -> list[Recommendation]:
    return sorted(recs, key=lambda r: (-r.priority.rank, -r.confidence))


class RecommendationEngine:
    """Evaluates the recommendation rules against one artifact set."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self._rules: list[Callable[[DerivedArtifactSet], Recommendation | None]] = [
            self._sbl_starvation,
            self._ptl_capacity,
            self._trip_risk,
            self._otif_risk,
            self._sbl_trend,
        ]

    def generate(self, artifacts: DerivedArtifactSet) -> list[Recommendation]:
        recs = []
        for rule in self._rules:
            rec = rule(artifacts)
            if rec is not None:
                recs.append(rec)
        logger.info("Generated %d recommendations", len(recs))
        return sort_recommendations(recs)

    def _sbl_starvation(self, artifacts: DerivedArtifactSet) -> Recommendation | None:
        starved = [s.station_code for s in artifacts.sbl_stations if s.starved]
        if not starved:
            return None
        codes = ", ".join(starved)
        return Recommendation(
            id="P1_SBL_STARVATION",
            title="Retask feeder to starved SBL stations",
            rationale=(
                f"{len(starved)} SBL stations are starved ({codes}). "
                "Low infeed is causing productivity drops."
            ),
            impact_estimate=(
                f"+{len(starved) * LPH_PER_RETASKED_STATION} LPH expected improvement"
            ),
            actions=[
                f"Focus infeed on stations: {codes}",
                "Check conveyor system and carton availability",
                "Monitor infeed rates every 10 minutes",
            ],
            confidence=0.85,
            priority=Priority.HIGH,
            category=RecommendationCategory.SBL,
        )

    def _ptl_capacity(self, artifacts: DerivedArtifactSet) -> Recommendation | None:
        stream = artifacts.ptl_stream
        if not stream.shortfall:
            return None
        target = self.config.target_lph(PTL)
        pct = round((stream.shortfall_factor or 0.0) * 100)
        return Recommendation(
            id="P2_PTL_CAPACITY",
            title="Add picker to PTL to address capacity shortfall",
            rationale=(
                f"PTL is {pct}% below target ({stream.ema_lph}/{target:g} LPH). "
                "Capacity constraint is limiting overall throughput."
            ),
            impact_estimate=(
                f"+{round(target * ADDED_PICKER_GAIN)} LPH expected improvement"
            ),
            actions=[
                "Add 1 picker to PTL zone",
                "Reassign picker from less critical area",
                "Monitor PTL productivity after staffing change",
            ],
            confidence=0.80,
            priority=Priority.HIGH,
            category=RecommendationCategory.PTL,
        )

    def _trip_risk(self, artifacts: DerivedArtifactSet) -> Recommendation | None:
        limit = self.config.thresholds.risk_threshold_trip
        at_risk = [t for t in artifacts.trips if t.risk >= limit]
        if not at_risk:
            return None
        worst = max(at_risk, key=lambda t: t.risk)
        factors = describe_risk_factors(
            worst.risk_factors, self.config.trip_risk.factor_thresholds
        )
        return Recommendation(
            id="P3_TRIP_RISK",
            title="Resequence trips or open extra dock",
            rationale=(
                f"{len(at_risk)} trips at high risk. {worst.trip_id} has "
                f"{round(worst.risk * 100)}% risk score due to {factors}."
            ),
            impact_estimate="Prevent 15-30 min delays per high-risk trip",
            actions=[
                f"Prioritize {worst.trip_id} for loading",
                "Open additional dock door if available",
                "Resequence trips by risk score",
            ],
            confidence=0.75,
            priority=Priority.MEDIUM,
            category=RecommendationCategory.LOADING,
        )

    def _otif_risk(self, artifacts: DerivedArtifactSet) -> Recommendation | None:
        summary = artifacts.overall_summary
        if summary.otif_risk is not OtifRisk.HIGH:
            return None
        if summary.buffer_minutes < 0:
            finish = f"Projected finish is {-summary.buffer_minutes} minutes late."
        else:
            finish = (
                f"Projected finish leaves only {summary.buffer_minutes} minutes of buffer."
            )
        return Recommendation(
            id="P4_OTIF_RISK",
            title="Critical: Wave at high OTIF risk",
            rationale=(
                f"{finish} Line coverage at {round(summary.line_coverage_pct * 100)}%."
            ),
            impact_estimate="Prevent OTIF failure and customer penalties",
            actions=[
                "Implement all available recommendations immediately",
                "Consider deprioritizing low-value orders",
                "Escalate to warehouse manager",
            ],
            confidence=0.90,
            priority=Priority.HIGH,
            category=RecommendationCategory.OVERALL,
        )

    def _sbl_trend(self, artifacts: DerivedArtifactSet) -> Recommendation | None:
        stream = artifacts.sbl_stream
        target = self.config.target_lph(SBL)
        if stream.trend is not Trend.DOWN or stream.ema_lph >= target * TREND_TARGET_FACTOR:
            return None
        return Recommendation(
            id="P5_SBL_TREND",
            title="SBL productivity declining - investigate root cause",
            rationale=(
                f"SBL productivity trending down ({stream.ema_lph} LPH, "
                f"slope: {stream.slope}). Below 90% of target."
            ),
            impact_estimate="Prevent further productivity decline",
            actions=[
                "Check for equipment issues or bottlenecks",
                "Review picker performance and training needs",
                "Analyze infeed consistency",
            ],
            confidence=0.70,
            priority=Priority.MEDIUM,
            category=RecommendationCategory.SBL,
        )
