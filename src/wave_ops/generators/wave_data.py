"""
Synthetic wave generator for demos and end-to-end tests.

Produces a plausible mid-wave snapshot: station backlogs skewed by a Zipf
demand split, 10-minute productivity buckets, trips at various stages of
loading and an SBL infeed picture. A few stations are deliberately
starved and PTL runs under target so every recommendation rule has
something to react to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
from faker import Faker

from wave_ops.config.settings import PTL, SBL, EngineConfig
from wave_ops.domain.models import (
    InfeedHuRow,
    InfeedSkuRow,
    IntervalRow,
    LoadingRow,
    SortationRow,
    StationCompletionRow,
    TimelinePoint,
    format_iso,
)
from wave_ops.ingest.schemas import FILE_SCHEMAS, FileKind
from wave_ops.storage.uploads import StaticRowSource

if TYPE_CHECKING:
    from numpy.random import Generator

logger = logging.getLogger(__name__)

WAVE_HOURS = 8
BUCKETS_PER_HOUR = 6


def zipf_weights(n: int, alpha: float = 1.05) -> np.ndarray:
    """
    Zipf weights over n items, normalized to sum to 1.0.

    A handful of stations carry most of the wave's demand lines.
    """
    ranks = np.arange(1, n + 1)
    weights = 1.0 / np.power(ranks, alpha)
    return weights / np.sum(weights)


@dataclass
class SyntheticWave:
    wave_macro: dict[str, Any]
    rows: dict[FileKind, tuple[Any, ...]] = field(default_factory=dict)

    def source(self) -> StaticRowSource:
        return StaticRowSource(self.rows, self.wave_macro)


class WaveDataGenerator:
    """Generates one synthetic wave snapshot from a seed."""

    def __init__(self, seed: int = 42, config: EngineConfig | None = None) -> None:
        self.rng: Generator = np.random.default_rng(seed)
        self._faker = Faker()
        Faker.seed(seed)
        self.config = config or EngineConfig()

    def generate(
        self,
        start: datetime | None = None,
        elapsed_buckets: int = 18,
        n_sbl_stations: int = 12,
        n_ptl_stations: int = 8,
        n_trips: int = 20,
        n_skus: int = 40,
        n_starved: int = 2,
    ) -> SyntheticWave:
        if start is None:
            now = datetime.now(timezone.utc).replace(second=0, microsecond=0)
            start = now - timedelta(minutes=10 * elapsed_buckets)
        progress = min(1.0, elapsed_buckets / (WAVE_HOURS * BUCKETS_PER_HOUR))

        total_lines = int(self.rng.integers(8_000, 12_000))
        sbl_lines = round(total_lines * 0.55)
        ptl_lines = round(total_lines * 0.35)

        wave_macro = {
            "wave_id": f"W{start:%Y%m%d}-{self._faker.bothify('##')}",
            "start_time_iso": format_iso(start),
            "cutoff_time_iso": format_iso(start + timedelta(hours=WAVE_HOURS)),
            "total_orders": int(total_lines / self.rng.uniform(3.0, 5.0)),
            "total_order_lines": total_lines,
            "total_order_value": round(total_lines * self.rng.uniform(8.0, 15.0), 2),
            "split_lines_sbl": sbl_lines,
            "split_lines_ptl": ptl_lines,
            "split_lines_fc": total_lines - sbl_lines - ptl_lines,
        }

        sbl_codes = [f"SBL-{i:02d}" for i in range(1, n_sbl_stations + 1)]
        ptl_codes = [f"PTL-{i:02d}" for i in range(1, n_ptl_stations + 1)]
        picks = self.rng.choice(
            len(sbl_codes), size=min(n_starved, len(sbl_codes)), replace=False
        )
        starved = {sbl_codes[int(i)] for i in picks}

        loading, sortation = self._trips(n_trips, progress)
        skus, hus = self._infeed(n_skus)
        rows: dict[FileKind, tuple[Any, ...]] = {
            FileKind.LINE_COMPLETION: self._stations(sbl_codes, sbl_lines, progress, starved),
            FileKind.SBL_STATIONS: self._station_intervals(
                sbl_codes, elapsed_buckets, self.config.target_lph(SBL), starved
            ),
            FileKind.PTL_STATIONS: self._station_intervals(
                ptl_codes, elapsed_buckets, self.config.target_lph(PTL) * 0.8, set()
            ),
            FileKind.SBL_TIMELINE: self._timeline(
                elapsed_buckets, self.config.target_lph(SBL) * 0.95, drift=-1.5
            ),
            FileKind.PTL_TIMELINE: self._timeline(
                elapsed_buckets, self.config.target_lph(PTL) * 0.8, drift=0.0
            ),
            FileKind.LOADING: loading,
            FileKind.SORTATION: sortation,
            FileKind.INFEED_SKUS: skus,
            FileKind.INFEED_HUS: hus,
        }
        logger.info(
            "Generated wave %s: %d lines, %d SBL stations (%d starved), %d trips",
            wave_macro["wave_id"],
            total_lines,
            n_sbl_stations,
            len(starved),
            n_trips,
        )
        return SyntheticWave(wave_macro=wave_macro, rows=rows)

    def _stations(
        self, codes: list[str], sbl_lines: int, progress: float, starved: set[str]
    ) -> tuple[StationCompletionRow, ...]:
        demand = np.maximum(np.round(zipf_weights(len(codes), 0.6) * sbl_lines), 30)
        rows = []
        for code, total in zip(codes, demand, strict=True):
            pace = 0.3 if code in starved else self.rng.uniform(0.8, 1.15)
            packed = min(total, round(total * progress * pace))
            value_per_line = self.rng.uniform(6.0, 20.0)
            rows.append(
                StationCompletionRow(
                    station_code=code,
                    total_demand_lines=float(total),
                    packed_lines=float(packed),
                    total_value=round(total * value_per_line, 2),
                    completed_value=round(packed * value_per_line, 2),
                )
            )
        return tuple(rows)

    def _station_intervals(
        self, codes: list[str], buckets: int, target_lph: float, starved: set[str]
    ) -> tuple[IntervalRow, ...]:
        per_bucket = target_lph / BUCKETS_PER_HOUR
        rows = []
        for interval in range(1, buckets + 1):
            for code in codes:
                mean = per_bucket * (0.25 if code in starved else 1.0)
                productivity = max(0.0, self.rng.normal(mean, per_bucket * 0.1))
                rows.append(
                    IntervalRow(
                        interval_no=interval,
                        station_code=code,
                        line_count=float(self.rng.poisson(max(mean, 0.1))),
                        productivity=round(productivity, 2),
                    )
                )
        return tuple(rows)

    def _timeline(
        self, buckets: int, mean_lph: float, drift: float
    ) -> tuple[TimelinePoint, ...]:
        points = []
        for interval in range(1, buckets + 1):
            lph = max(0.0, self.rng.normal(mean_lph + drift * interval, mean_lph * 0.04))
            points.append(
                TimelinePoint(
                    interval_no=interval,
                    line_count=round(lph / BUCKETS_PER_HOUR, 1),
                    productivity=round(lph, 2),
                )
            )
        return tuple(points)

    def _trips(
        self, n_trips: int, progress: float
    ) -> tuple[tuple[LoadingRow, ...], tuple[SortationRow, ...]]:
        loading = []
        sortation = []
        for i in range(n_trips):
            trip_id = f"TRIP-{1001 + i}"
            total = int(self.rng.integers(40, 160))
            sorted_frac = float(np.clip(self.rng.beta(4, 2) * (0.5 + progress), 0.0, 1.0))
            sorted_ = round(total * sorted_frac)
            staged = round(sorted_ * self.rng.uniform(0.5, 1.0))
            loaded = round(staged * self.rng.uniform(0.3, 1.0) * progress)
            loading.append(
                LoadingRow(
                    trip_id=trip_id,
                    sorted=float(sorted_),
                    staged=float(staged),
                    loaded=float(loaded),
                    total=float(total),
                    dock_door_queue=float(self.rng.integers(0, 9)),
                    vehicle_no=self._faker.license_plate(),
                )
            )
            sortation.append(
                SortationRow(trip_id=trip_id, qc_count=float(self.rng.poisson(total * 0.05)))
            )
        return tuple(loading), tuple(sortation)

    def _infeed(
        self, n_skus: int
    ) -> tuple[tuple[InfeedSkuRow, ...], tuple[InfeedHuRow, ...]]:
        skus = []
        hus = []
        bins = [self._faker.bothify("B-##-??").upper() for _ in range(max(4, n_skus // 2))]
        for _ in range(n_skus):
            sku_code = self._faker.unique.bothify("SKU-#####")
            pending = int(self.rng.integers(0, 120)) if self.rng.random() > 0.1 else 0
            skus.append(
                InfeedSkuRow(
                    sku_code=sku_code,
                    pending_qty=float(pending),
                    pending_lines=float(int(np.ceil(pending / 6))),
                    batch=self._faker.bothify("BATCH-####"),
                    value_pending=round(pending * self.rng.uniform(2.0, 30.0), 2),
                )
            )
            for _ in range(int(self.rng.integers(0, 5))):
                blocked = bool(self.rng.random() < 0.08)
                hus.append(
                    InfeedHuRow(
                        hu_code=self._faker.unique.bothify("HU-########"),
                        sku_code=sku_code,
                        qty=float(self.rng.integers(6, 48)),
                        bin_code=str(self.rng.choice(bins)),
                        feed_status="FED" if self.rng.random() < 0.25 else "NOT_FED",
                        blocked=blocked,
                        inclusion_status="INCLUDED" if self.rng.random() < 0.9 else "EXCLUDED",
                        age_minutes=round(float(self.rng.exponential(15.0)), 1),
                        bin_status="ACTIVE" if self.rng.random() < 0.95 else "INACTIVE",
                    )
                )
        return tuple(skus), tuple(hus)


def _header_for(kind: FileKind, name: str) -> str:
    return FILE_SCHEMAS[kind].fields[name][0]


def write_workbooks(
    wave: SyntheticWave, directory: str | Path, stamp: str | None = None
) -> list[Path]:
    """
    Write one .xlsx per file kind, named and laid out like a WMS export.

    Returns the paths written, wave macros first.
    """
    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)
    stamp = stamp or datetime.now(timezone.utc).strftime("%Y%m%d_%H%M")

    written = []
    macro_frame = pd.DataFrame(
        [{_header_for(FileKind.WAVE_MACROS, k): v for k, v in wave.wave_macro.items()}]
    )
    path = out / f"{FileKind.WAVE_MACROS.value}_{stamp}.xlsx"
    macro_frame.to_excel(path, index=False, engine="openpyxl")
    written.append(path)

    for kind, rows in wave.rows.items():
        schema = FILE_SCHEMAS[kind]
        records = [
            {
                _header_for(kind, name): getattr(row, name)
                for name in schema.fields
                if hasattr(row, name)
            }
            for row in rows
        ]
        path = out / f"{kind.value}_{stamp}.xlsx"
        pd.DataFrame(records).to_excel(path, index=False, engine="openpyxl")
        written.append(path)

    logger.info("Wrote %d workbooks to %s", len(written), out)
    return written
