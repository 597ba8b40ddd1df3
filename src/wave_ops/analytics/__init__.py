"""Metric derivation, risk scoring and recommendations."""

from wave_ops.analytics.engine import MetricsEngine
from wave_ops.analytics.macros import (
    MacroValidationError,
    prepare_wave_macro,
    process_wave_macro,
    validate_wave_macro,
)
from wave_ops.analytics.recommendations import RecommendationEngine

__all__ = [
    "MacroValidationError",
    "MetricsEngine",
    "RecommendationEngine",
    "prepare_wave_macro",
    "process_wave_macro",
    "validate_wave_macro",
]
