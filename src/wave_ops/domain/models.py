"""Domain records for wave operations.

Input rows are frozen: the ingestion boundary builds them once and the
engine only reads them. Derived records are plain dataclasses that the
engine fills in a single pass and then hands over as read-only output.
"""

import enum
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from typing import Any

from wave_ops.config.settings import StageTarget, Thresholds


class HealthColor(enum.Enum):
    GREEN = "green"
    AMBER = "amber"
    RED = "red"

    @property
    def rank(self) -> int:
        return {"red": 0, "amber": 1, "green": 2}[self.value]


class Trend(enum.Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class IssueType(enum.Enum):
    NONE = "none"
    PRODUCTIVITY = "productivity"
    INFEED = "infeed"


class OtifRisk(enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class WaveStatus(enum.Enum):
    ON_TRACK = "ON_TRACK"
    AT_RISK = "AT_RISK"
    LATE = "LATE"


class Priority(enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return {"HIGH": 3, "MEDIUM": 2, "LOW": 1}[self.value]


class RecommendationCategory(enum.Enum):
    SBL = "SBL"
    PTL = "PTL"
    LOADING = "LOADING"
    OVERALL = "OVERALL"


# --- Input rows -----------------------------------------------------------


@dataclass(frozen=True)
class LoadingRow:
    """One trip on the loading dashboard (counts are crates)."""

    trip_id: str
    sorted: float = 0.0
    staged: float = 0.0
    loaded: float = 0.0
    total: float = 0.0
    dock_door_queue: float = 0.0
    vehicle_no: str | None = None


@dataclass(frozen=True)
class SortationRow:
    trip_id: str
    qc_count: float = 0.0


@dataclass(frozen=True)
class StationCompletionRow:
    station_code: str
    total_demand_lines: float = 0.0
    packed_lines: float = 0.0
    total_value: float | None = None
    completed_value: float | None = None


@dataclass(frozen=True)
class IntervalRow:
    """Per-station line count and productivity for one 10-minute bucket."""

    interval_no: int
    station_code: str
    line_count: float = 0.0
    productivity: float = 0.0


@dataclass(frozen=True)
class TimelinePoint:
    """Stage-wide productivity for one bucket."""

    interval_no: int
    line_count: float = 0.0
    productivity: float = 0.0


@dataclass(frozen=True)
class InfeedSkuRow:
    sku_code: str
    pending_qty: float = 0.0
    pending_lines: float = 0.0
    batch: str | None = None
    value_pending: float | None = None


@dataclass(frozen=True)
class InfeedHuRow:
    hu_code: str
    sku_code: str
    qty: float = 0.0
    bin_code: str = ""
    feed_status: str = "NOT_FED"  # FED, NOT_FED
    blocked: bool = False
    inclusion_status: str = "INCLUDED"  # INCLUDED, EXCLUDED, LOCKED, BLOCKED
    age_minutes: float = 0.0
    bin_status: str = "ACTIVE"  # ACTIVE, INACTIVE
    updated_at: str | None = None
    scanned_sku_code: str | None = None


@dataclass(frozen=True)
class EngineInputs:
    """Immutable snapshot of every raw row collection for one cycle."""

    loading: tuple[LoadingRow, ...] = ()
    sortation: tuple[SortationRow, ...] = ()
    stations: tuple[StationCompletionRow, ...] = ()
    sbl_intervals: tuple[IntervalRow, ...] = ()
    ptl_intervals: tuple[IntervalRow, ...] = ()
    sbl_timeline: tuple[TimelinePoint, ...] = ()
    ptl_timeline: tuple[TimelinePoint, ...] = ()
    infeed_skus: tuple[InfeedSkuRow, ...] = ()
    infeed_hus: tuple[InfeedHuRow, ...] = ()

    def counts(self) -> dict[str, int]:
        return {f.name: len(getattr(self, f.name)) for f in fields(self)}


# --- Wave macro ------------------------------------------------------------


@dataclass(frozen=True)
class WaveMacro:
    wave_id: str
    start_time_iso: str
    cutoff_time_iso: str
    total_orders: int
    total_order_lines: int
    total_order_value: float | None = None
    split_lines_sbl: float | None = None
    split_lines_ptl: float | None = None
    split_lines_fc: float | None = None


@dataclass(frozen=True)
class ExpectedDuration:
    """Expected hours per picking stage and for the wave as a whole."""

    sbl: float
    ptl: float
    total: float


@dataclass(frozen=True)
class ProcessedWaveMacro:
    wave_info: WaveMacro
    start_time: datetime
    cutoff_time: datetime
    expected_duration: ExpectedDuration
    stage_targets: dict[str, StageTarget] = field(default_factory=dict)
    thresholds: Thresholds = field(default_factory=Thresholds)


# --- Derived records -------------------------------------------------------


@dataclass
class OverallSummary:
    projected_finish_iso: str
    buffer_minutes: int
    otif_risk: OtifRisk
    line_coverage_pct: float
    wave_status: WaveStatus
    sbl_coverage_pct: float = 0.0
    ptl_coverage_pct: float = 0.0
    progress_pct: float = 0.0


@dataclass
class StationRecord:
    station_code: str
    total: float
    packed: float
    remaining: float
    completion_pct: float
    recent_lph: float
    target_lph: float
    starved: bool
    health_color: HealthColor
    recent_infeed_lph: float = 0.0
    is_productivity_issue: bool = False
    is_infeed_issue: bool = False
    issue_type: IssueType = IssueType.NONE
    total_value: float = 0.0
    completed_value: float = 0.0
    pending_value: float = 0.0
    value_completion_pct: float = 0.0


@dataclass
class ProductivityStream:
    ema_lph: int = 0
    last_hour_avg: int = 0
    slope: float = 0.0
    trend: Trend = Trend.STABLE
    health_color: HealthColor = HealthColor.RED
    # Only populated for the capacity-constrained stage
    shortfall: bool | None = None
    shortfall_factor: float | None = None


@dataclass
class StationTotal:
    station_code: str
    lines_last_hour: float
    productivity: float


@dataclass
class Leaderboard:
    top: list[StationTotal] = field(default_factory=list)
    bottom: list[StationTotal] = field(default_factory=list)


@dataclass
class StationTotals:
    total_lines: float = 0.0
    last_hour_lines: float = 0.0
    by_station: list[StationTotal] = field(default_factory=list)
    leaderboard: Leaderboard = field(default_factory=Leaderboard)


@dataclass
class RiskFactors:
    behind_sorted: float
    qc_ratio: float
    door_norm: float
    trend_down: float


@dataclass
class TripRecord:
    trip_id: str
    total: float
    sorted: float
    staged: float
    loaded: float
    sorted_pct: float
    staged_pct: float
    loaded_pct: float
    qc_ratio: float
    dock_door_queue: float
    risk: float
    risk_factors: RiskFactors
    health_color: HealthColor
    vehicle_no: str | None = None


@dataclass
class HuRef:
    hu_code: str
    qty: float
    bin_code: str


@dataclass
class DataQualityFlags:
    sku_mismatch_on_hu: bool = False
    inactive_bins: bool = False
    blocked_but_needed: bool = False


@dataclass
class InfeedSku:
    sku_code: str
    pending_qty: float
    pending_lines: float
    batch: str | None = None
    hu_available_count: int = 0
    available_qty: float = 0.0
    coverage_pct: float = 0.0
    blocked_hu_count: int = 0
    stale_hu_count: int = 0
    top_bins: list[str] = field(default_factory=list)
    top_hus: list[HuRef] = field(default_factory=list)
    value_pending: float | None = None
    dq_flags: DataQualityFlags = field(default_factory=DataQualityFlags)


@dataclass
class InfeedSummary:
    total_skus: int = 0
    total_hus: int = 0
    avg_coverage_pct: float = 0.0
    low_coverage_skus: int = 0
    blocked_hus: int = 0
    stale_hus: int = 0


@dataclass
class InfeedRollup:
    skus: list[InfeedSku] = field(default_factory=list)
    hus: list[InfeedHuRow] = field(default_factory=list)
    summary: InfeedSummary = field(default_factory=InfeedSummary)


@dataclass
class SkuRollup:
    total_skus: int = 0
    pending_skus: int = 0
    completed_skus: int = 0
    pending_lines: float = 0.0
    completion_rate: float = 0.0


@dataclass
class DerivedArtifactSet:
    overall_summary: OverallSummary
    sbl_stations: list[StationRecord]
    sbl_stream: ProductivityStream
    ptl_stream: ProductivityStream
    ptl_totals: StationTotals
    trips: list[TripRecord]
    sbl_skus: SkuRollup
    sbl_infeed: InfeedRollup | None
    calculation_timestamp: str
    macros: ProcessedWaveMacro

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)


@dataclass
class Recommendation:
    id: str
    title: str
    rationale: str
    impact_estimate: str
    actions: list[str]
    confidence: float
    priority: Priority
    category: RecommendationCategory

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)


def format_iso(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a trailing Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def to_jsonable(value: Any) -> Any:
    """Recursively convert records, enums and datetimes to JSON-ready values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {k: to_jsonable(v) for k, v in asdict(value).items()}
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return format_iso(value)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
