"""
Data Model - canonical records, validation results and KPI snapshots.

RawRow (an open ``dict[str, Any]`` straight from the file) never leaves the
validator; everything downstream works with the closed types defined here.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping

RawRow = dict[str, Any]

FieldType = Literal["date", "number", "string"]
TrendDirection = Literal["up", "down", "stable"]


@dataclass(frozen=True)
class TrafficRecord:
    """One day (or campaign-day) of advertising performance."""

    date: str  # ISO YYYY-MM-DD
    impressions: float
    cost: float
    clicks: float = 0.0
    conversions: float = 0.0
    leads: float = 0.0
    revenue: float = 0.0
    reach: float = 0.0
    campaignname: str | None = None
    social_metrics: Mapping[str, float] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not isinstance(self.social_metrics, MappingProxyType):
            object.__setattr__(self, "social_metrics", MappingProxyType(dict(self.social_metrics)))

    def to_dict(self) -> dict[str, Any]:
        """Flatten to a plain dict; social metrics become top-level keys."""
        data = {
            "date": self.date,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "cost": self.cost,
            "conversions": self.conversions,
            "leads": self.leads,
            "revenue": self.revenue,
            "reach": self.reach,
            "campaignname": self.campaignname,
        }
        data.update(self.social_metrics)
        return data


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for one canonical field."""

    field: str
    required: bool = False
    type: FieldType = "number"
    min: float | None = None
    max: float | None = None


@dataclass
class ValidationResult:
    """
    Outcome of one validation pass.

    ``data`` may be non-empty while ``is_valid`` is False; callers must not
    treat it as usable in that case.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    data: list[TrafficRecord] = field(default_factory=list)
    skipped_rows: int = 0

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_suggestion(self, suggestion: str) -> None:
        """Append a suggestion once; repeated row failures share the same advice."""
        if suggestion not in self.suggestions:
            self.suggestions.append(suggestion)

    def merge_messages(self, warnings: list[str], suggestions: list[str]) -> None:
        self.warnings.extend(warnings)
        for suggestion in suggestions:
            self.add_suggestion(suggestion)


@dataclass
class ColumnMatch:
    """Resolution of one raw header."""

    raw_column: str
    normalized: str
    canonical_field: str | None
    source: str  # "synonym", "explicit", "ignored", "unmapped"

    @property
    def is_recognized(self) -> bool:
        return self.canonical_field is not None and self.source != "unmapped"


@dataclass
class StructureAnalysis:
    """Preview-based answer to "can this file be parsed without manual mapping?"."""

    columns: list[str]
    needs_mapping: bool
    resolved_columns: dict[str, str | None] = field(default_factory=dict)
    missing_fields: list[str] = field(default_factory=list)
    preview_rows: int = 0


@dataclass(frozen=True)
class DataQualityScore:
    score: int
    level: Literal["excellent", "good", "fair", "poor"]
    feedback: str = ""


@dataclass(frozen=True)
class TrendSummary:
    impressions: TrendDirection = "stable"
    clicks: TrendDirection = "stable"
    cost: TrendDirection = "stable"
    ctr: TrendDirection = "stable"
    conversions: TrendDirection = "stable"
    roas: TrendDirection = "stable"

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class BenchmarkSummary:
    ctr: Literal["excellent", "good", "average", "poor"] = "average"
    cpc: Literal["excellent", "good", "average", "expensive"] = "average"
    roas: Literal["excellent", "good", "average", "poor"] = "average"

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class KPISummary:
    """
    Immutable KPI snapshot for a record collection.

    Ratios are percentages where the name says "rate" or for ctr/roi;
    every ratio is 0.0 when its denominator total is 0.
    """

    # Totals
    total_impressions: float = 0.0
    total_reach: float = 0.0
    total_clicks: float = 0.0
    total_cost: float = 0.0
    total_conversions: float = 0.0
    total_leads: float = 0.0
    total_revenue: float = 0.0

    # Ratios
    ctr: float = 0.0
    cpm: float = 0.0
    cpc: float = 0.0
    cpl: float = 0.0
    cpa: float = 0.0
    roas: float = 0.0
    roi: float = 0.0
    conversion_rate: float = 0.0
    frequency: float = 0.0
    reach_rate: float = 0.0

    # Per-record averages
    average_impressions_per_day: float = 0.0
    average_reach_per_day: float = 0.0
    average_clicks_per_day: float = 0.0
    average_cost_per_day: float = 0.0
    average_conversions_per_day: float = 0.0
    average_leads_per_day: float = 0.0
    average_revenue_per_day: float = 0.0

    # Scores
    quality_score: float = 0.0
    efficiency_index: float = 0.0

    trend: TrendSummary = field(default_factory=TrendSummary)
    benchmarks: BenchmarkSummary = field(default_factory=BenchmarkSummary)

    record_count: int = 0
    start_date: str | None = None
    end_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
