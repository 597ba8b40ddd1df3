"""Generators module for synthetic wave snapshots."""

from wave_ops.generators.wave_data import (
    SyntheticWave,
    WaveDataGenerator,
    write_workbooks,
    zipf_weights,
)

__all__ = ["SyntheticWave", "WaveDataGenerator", "write_workbooks", "zipf_weights"]
