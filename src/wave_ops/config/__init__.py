"""Stage targets, thresholds and their loaders."""

from wave_ops.config.loader import load_engine_config, load_stage_config
from wave_ops.config.settings import (
    PTL,
    SBL,
    EngineConfig,
    HealthCutPoints,
    RiskWeights,
    StageTarget,
    Thresholds,
    TripRiskConfig,
)

__all__ = [
    "PTL",
    "SBL",
    "EngineConfig",
    "HealthCutPoints",
    "RiskWeights",
    "StageTarget",
    "Thresholds",
    "TripRiskConfig",
    "load_engine_config",
    "load_stage_config",
]
