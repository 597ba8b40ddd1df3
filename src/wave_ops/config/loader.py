import json
from pathlib import Path
from typing import Any

from wave_ops.config.settings import EngineConfig

DEFAULT_CONFIG = Path(__file__).with_name("stage_targets.json")


def load_stage_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """
    Read the stage targets / thresholds document.

    Falls back to the stage_targets.json shipped with the package. The
    document must be a JSON object; partial documents are fine since
    EngineConfig.from_dict fills missing keys with defaults.
    """
    path = DEFAULT_CONFIG if config_path is None else Path(config_path)
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise TypeError(
            f"Stage config {path} must be a JSON object, got {type(data).__name__}"
        )
    return data


def load_engine_config(config_path: str | Path | None = None) -> EngineConfig:
    """Load the stage tables and build the typed engine configuration."""
    return EngineConfig.from_dict(load_stage_config(config_path))
