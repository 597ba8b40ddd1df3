"""
Artifact persistence.

The derived artifact set is the interchange format between the engine
and whatever renders the dashboard. FileArtifactRepository lays it out as
one JSON document per section plus the combined document, and exports
station and trip tables for spreadsheet users.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from wave_ops.domain.models import DerivedArtifactSet, Recommendation
from wave_ops.writers.table_writer import make_table_writer, station_rows, trip_rows

logger = logging.getLogger(__name__)

COMBINED_FILE = "dashboard_artifacts.json"
RECOMMENDATIONS_FILE = "recommendations.json"

SECTION_FILES = {
    "overall_summary": "overall_summary.json",
    "sbl_stations": "sbl_stations.json",
    "sbl_stream": "sbl_stream.json",
    "ptl_stream": "ptl_stream.json",
    "ptl_totals": "ptl_totals.json",
    "trips": "trips.json",
    "macros": "macros.json",
}


def serialize(
    artifacts: DerivedArtifactSet, recommendations: Sequence[Recommendation]
) -> dict[str, Any]:
    """Artifact set as a JSON-ready dict with recommendations attached."""
    payload = artifacts.to_dict()
    payload["recommendations"] = [r.to_dict() for r in recommendations]
    return payload


class ArtifactRepository(ABC):
    """Stores the most recent artifact set for the presentation layer."""

    @abstractmethod
    def save(
        self,
        artifacts: DerivedArtifactSet,
        recommendations: Sequence[Recommendation] = (),
    ) -> None:
        """Replace the stored artifact set."""

    @abstractmethod
    def load_latest(self) -> dict[str, Any] | None:
        """The last saved payload (artifacts plus recommendations), if any."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the stored artifact set."""


class InMemoryArtifactRepository(ArtifactRepository):
    def __init__(self) -> None:
        self._latest: dict[str, Any] | None = None

    def save(
        self,
        artifacts: DerivedArtifactSet,
        recommendations: Sequence[Recommendation] = (),
    ) -> None:
        self._latest = serialize(artifacts, recommendations)

    def load_latest(self) -> dict[str, Any] | None:
        return self._latest

    def clear(self) -> None:
        self._latest = None


class FileArtifactRepository(ArtifactRepository):
    """
    Artifact set written under one directory.

    Layout:
        <section>.json              one file per SECTION_FILES entry
        recommendations.json
        dashboard_artifacts.json    everything above in one document
        tables/sbl_stations.<fmt>   flat station table (csv or parquet)
        tables/trips.<fmt>          flat trip table
    """

    def __init__(self, root: str | Path, table_format: str = "csv") -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.table_format = table_format

    def save(
        self,
        artifacts: DerivedArtifactSet,
        recommendations: Sequence[Recommendation] = (),
    ) -> None:
        payload = serialize(artifacts, recommendations)

        for key, filename in SECTION_FILES.items():
            self._write_json(filename, payload[key])
        self._write_json(RECOMMENDATIONS_FILE, payload["recommendations"])
        self._write_json(COMBINED_FILE, payload)

        writer = make_table_writer(self.table_format, self.root / "tables")
        writer.write(station_rows(artifacts.sbl_stations), "sbl_stations")
        writer.write(trip_rows(artifacts.trips), "trips")

        logger.info(
            "Saved artifacts (%s) to %s", artifacts.calculation_timestamp, self.root
        )

    def load_latest(self) -> dict[str, Any] | None:
        path = self.root / COMBINED_FILE
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {path}, got {type(data).__name__}")
        return data

    def clear(self) -> None:
        for filename in [*SECTION_FILES.values(), RECOMMENDATIONS_FILE, COMBINED_FILE]:
            (self.root / filename).unlink(missing_ok=True)
        tables = self.root / "tables"
        if tables.is_dir():
            for path in tables.iterdir():
                path.unlink()

    def _write_json(self, filename: str, data: Any) -> None:
        with open(self.root / filename, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
