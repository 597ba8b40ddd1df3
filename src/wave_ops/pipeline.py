"""
One computation cycle: rows in, artifacts and recommendations out.

A cycle is stateless. It pulls every row collection from a RowSource,
parses the wave macro, runs the metrics and recommendation engines and
optionally persists the result. The wave macro is the only hard
dependency; any other collection that cannot be fetched is treated as
empty and the cycle carries on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from wave_ops.analytics.engine import MetricsEngine
from wave_ops.analytics.macros import prepare_wave_macro
from wave_ops.analytics.recommendations import RecommendationEngine
from wave_ops.config.loader import load_engine_config
from wave_ops.config.settings import EngineConfig
from wave_ops.domain.models import (
    DerivedArtifactSet,
    EngineInputs,
    HealthColor,
    OtifRisk,
    ProductivityStream,
    Recommendation,
    StationTotals,
    WaveStatus,
    format_iso,
    to_jsonable,
)
from wave_ops.ingest.schemas import FileKind
from wave_ops.storage.artifacts import ArtifactRepository, serialize
from wave_ops.storage.uploads import RowSource

logger = logging.getLogger(__name__)

# EngineInputs field fed by each upload kind
INPUT_FIELDS: dict[FileKind, str] = {
    FileKind.LOADING: "loading",
    FileKind.SORTATION: "sortation",
    FileKind.LINE_COMPLETION: "stations",
    FileKind.SBL_STATIONS: "sbl_intervals",
    FileKind.PTL_STATIONS: "ptl_intervals",
    FileKind.SBL_TIMELINE: "sbl_timeline",
    FileKind.PTL_TIMELINE: "ptl_timeline",
    FileKind.INFEED_SKUS: "infeed_skus",
    FileKind.INFEED_HUS: "infeed_hus",
}


class MissingWaveMacroError(LookupError):
    """Raised when no wave macro record is available for the cycle."""


@dataclass
class CycleResult:
    artifacts: DerivedArtifactSet
    recommendations: list[Recommendation]
    # Upload kinds whose rows could not be fetched this cycle
    degraded: list[FileKind] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload = serialize(self.artifacts, self.recommendations)
        payload["degraded_inputs"] = [k.value for k in self.degraded]
        return payload


def gather_inputs(source: RowSource) -> tuple[EngineInputs, list[FileKind]]:
    """Fetch every row collection, substituting () for any that fail."""
    collected: dict[str, tuple[Any, ...]] = {}
    degraded: list[FileKind] = []
    for kind, name in INPUT_FIELDS.items():
        try:
            collected[name] = tuple(source.fetch_rows(kind))
        except Exception:
            logger.warning(
                "Could not fetch %s rows; continuing without them",
                kind.value,
                exc_info=True,
            )
            collected[name] = ()
            degraded.append(kind)
    return EngineInputs(**collected), degraded


def run_cycle(
    source: RowSource,
    *,
    config: EngineConfig | None = None,
    repository: ArtifactRepository | None = None,
    now: datetime | None = None,
) -> CycleResult:
    """
    Run one full metrics cycle.

    Raises:
        MissingWaveMacroError: the source has no wave macro record.
        MacroValidationError: the wave macro record is invalid.
    """
    config = config or load_engine_config()
    now = now or datetime.now(timezone.utc)

    raw_macro = source.fetch_wave_macro()
    if raw_macro is None:
        raise MissingWaveMacroError("No wave macro record available")
    macro = prepare_wave_macro(raw_macro, config)

    inputs, degraded = gather_inputs(source)
    logger.info("Cycle inputs for wave %s: %s", macro.wave_info.wave_id, inputs.counts())

    artifacts = MetricsEngine(config).compute(inputs, macro, now)
    recommendations = RecommendationEngine(config).generate(artifacts)

    if repository is not None:
        repository.save(artifacts, recommendations)

    return CycleResult(
        artifacts=artifacts, recommendations=recommendations, degraded=degraded
    )


def placeholder_artifacts(now: datetime | None = None) -> dict[str, Any]:
    """Empty artifact payload for a dashboard with nothing computed yet."""
    stamp = format_iso(now or datetime.now(timezone.utc))
    empty_stream = ProductivityStream(health_color=HealthColor.GREEN)
    return {
        "overall_summary": {
            "projected_finish_iso": stamp,
            "buffer_minutes": 0,
            "otif_risk": OtifRisk.LOW.value,
            "line_coverage_pct": 0.0,
            "wave_status": WaveStatus.ON_TRACK.value,
        },
        "sbl_stations": [],
        "sbl_stream": to_jsonable(empty_stream),
        "ptl_stream": to_jsonable(
            ProductivityStream(
                health_color=HealthColor.GREEN, shortfall=False, shortfall_factor=0.0
            )
        ),
        "ptl_totals": to_jsonable(StationTotals()),
        "trips": [],
        "sbl_skus": None,
        "sbl_infeed": None,
        "calculation_timestamp": stamp,
        "macros": None,
        "recommendations": [],
    }
