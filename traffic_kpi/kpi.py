"""
KPI Engine - Aggregation, Trend Detection and Benchmark Classification

Derives advertising KPIs from validated records:
- Totals and zero-guarded ratios (CTR, CPM, CPC, CPL, CPA, ROAS, ROI, ...)
- Per-day averages
- First-half vs second-half trend per tracked metric
- Benchmark tiers for CTR, CPC and ROAS
- Composite quality score and efficiency index (both 0-100)

All functions are pure: callers re-filter and call again rather than
updating a previous summary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

import numpy as np
import pandas as pd

from traffic_kpi.config import (
    BENCHMARK_THRESHOLDS,
    EFFICIENCY_CEILINGS,
    QUALITY_SCORE_WEIGHTS,
    TREND_METRICS,
    TREND_THRESHOLD_PCT,
)
from traffic_kpi.date_parser import parse_date
from traffic_kpi.logger import debug_watcher, get_logger
from traffic_kpi.models import BenchmarkSummary, KPISummary, TrafficRecord, TrendSummary

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)

METRIC_COLUMNS = ["impressions", "clicks", "cost", "conversions", "leads", "revenue", "reach"]
RECORD_COLUMNS = ["date", *METRIC_COLUMNS, "campaignname"]


def safe_ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    """Return numerator / denominator * scale, or 0.0 when the denominator is 0."""
    if denominator == 0 or not np.isfinite(denominator):
        return 0.0
    return float(numerator / denominator * scale)


def records_to_frame(records: Sequence[TrafficRecord]) -> pd.DataFrame:
    """Build a DataFrame with one row per record (social metrics as extra columns)."""
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    frame = pd.DataFrame([record.to_dict() for record in records])
    for column in METRIC_COLUMNS:
        frame[column] = pd.to_numeric(frame[column], errors="coerce").fillna(0.0)
    return frame


def daily_totals(records: Sequence[TrafficRecord]) -> pd.DataFrame:
    """
    Aggregate records sharing a date (campaign-level exports) into one row per day.

    Args:
        records: Validated records.

    Returns:
        DataFrame sorted by date with summed metrics plus ctr/cpc/cpm columns.
    """
    frame = records_to_frame(records)
    if frame.empty:
        return pd.DataFrame(columns=["date", *METRIC_COLUMNS, "ctr", "cpc", "cpm"])

    daily = frame.groupby("date", as_index=False)[METRIC_COLUMNS].sum().sort_values("date")
    impressions = daily["impressions"].to_numpy(dtype=float)
    clicks = daily["clicks"].to_numpy(dtype=float)
    cost = daily["cost"].to_numpy(dtype=float)

    with np.errstate(divide="ignore", invalid="ignore"):
        daily["ctr"] = np.where(impressions > 0, clicks / impressions * 100, 0.0)
        daily["cpc"] = np.where(clicks > 0, cost / clicks, 0.0)
        daily["cpm"] = np.where(impressions > 0, cost / impressions * 1000, 0.0)

    return daily.reset_index(drop=True)


def filter_by_date_range(
    records: Sequence[TrafficRecord],
    start: str | None = None,
    end: str | None = None,
) -> list[TrafficRecord]:
    """Keep records whose date falls within [start, end]; either bound may be None."""
    start_iso = parse_date(start) if start else None
    end_iso = parse_date(end) if end else None
    return [
        record for record in records
        if (start_iso is None or record.date >= start_iso)
        and (end_iso is None or record.date <= end_iso)
    ]


def get_benchmark_status(
    value: float,
    metric: str,
    thresholds: Mapping[str, Any] | None = None,
) -> str:
    """
    Classify a KPI value into a benchmark tier.

    Args:
        value: The KPI value.
        metric: Key in BENCHMARK_THRESHOLDS ("ctr", "cpc", "roas").
        thresholds: Optional custom thresholds. Uses BENCHMARK_THRESHOLDS if None.

    Returns:
        The first tier whose bound the value satisfies, else the metric's fallback.
    """
    if thresholds is None:
        thresholds = BENCHMARK_THRESHOLDS

    config = thresholds[metric]
    direction = config.get("direction", "higher_is_better")

    for status, bound in config["tiers"]:
        if direction == "higher_is_better" and value >= bound:
            return status
        if direction == "lower_is_better" and value <= bound:
            return status
    return config["fallback"]


def classify_trend(
    first_value: float,
    second_value: float,
    threshold_pct: float = TREND_THRESHOLD_PCT,
) -> str:
    """
    Compare two half-period values.

    A move from exactly 0 to anything non-zero always reads as "up".
    """
    if first_value == 0 and second_value == 0:
        return "stable"
    if first_value == 0:
        return "up"

    change = (second_value - first_value) / first_value * 100
    if change > threshold_pct:
        return "up"
    if change < -threshold_pct:
        return "down"
    return "stable"


def _half_values(half: pd.DataFrame) -> dict[str, float]:
    # CTR and ROAS come from the half's own totals, not the mean of daily ratios
    return {
        "impressions": float(half["impressions"].mean()),
        "clicks": float(half["clicks"].mean()),
        "cost": float(half["cost"].mean()),
        "conversions": float(half["conversions"].mean()),
        "ctr": safe_ratio(half["clicks"].sum(), half["impressions"].sum(), 100),
        "roas": safe_ratio(half["revenue"].sum(), half["cost"].sum()),
    }


def calculate_trend(frame: pd.DataFrame, threshold_pct: float = TREND_THRESHOLD_PCT) -> TrendSummary:
    """
    Split at floor(n/2) and classify each tracked metric.

    Args:
        frame: Records in chronological order (see records_to_frame).
        threshold_pct: Relative change that counts as movement.

    Returns:
        TrendSummary; all "stable" when either half is empty.
    """
    midpoint = len(frame) // 2
    first_half = frame.iloc[:midpoint]
    second_half = frame.iloc[midpoint:]

    if first_half.empty or second_half.empty:
        return TrendSummary()

    first = _half_values(first_half)
    second = _half_values(second_half)
    return TrendSummary(
        **{metric: classify_trend(first[metric], second[metric], threshold_pct) for metric in TREND_METRICS}
    )


def _tier_adjustment(value: float, weights: Mapping[str, float]) -> float:
    if value >= weights["excellent_at"]:
        return weights["excellent"]
    if value >= weights["good_at"]:
        return weights["good"]
    if value < weights["poor_below"]:
        return weights["poor"]
    return 0


def calculate_quality_score(
    ctr: float,
    cpc: float,
    conversion_rate: float,
    roas: float,
    has_revenue: bool,
    weights: Mapping[str, Any] | None = None,
) -> float:
    """
    Composite 0-100 score from fixed industry-style weights.

    Starts at the base weight; CTR, CPC and conversion-rate tiers always
    apply, ROAS only when any revenue was reported.
    """
    if weights is None:
        weights = QUALITY_SCORE_WEIGHTS

    score = weights["base"]
    score += _tier_adjustment(ctr, weights["ctr"])

    cpc_weights = weights["cpc"]
    if 0 < cpc <= cpc_weights["excellent_at"]:
        score += cpc_weights["excellent"]
    elif cpc <= cpc_weights["good_at"]:
        score += cpc_weights["good"]
    elif cpc > cpc_weights["poor_above"]:
        score += cpc_weights["poor"]

    score += _tier_adjustment(conversion_rate, weights["conversion_rate"])

    if has_revenue:
        score += _tier_adjustment(roas, weights["roas"])

    return float(np.clip(score, 0, 100))


def calculate_efficiency_index(
    ctr: float,
    cpc: float,
    conversion_rate: float,
    ceilings: Mapping[str, float] | None = None,
) -> float:
    """Unweighted mean of normalized CTR, CPC and conversion rate, scaled to 0-100."""
    if ceilings is None:
        ceilings = EFFICIENCY_CEILINGS

    ctr_component = min(ctr / ceilings["ctr_pct"], 1.0)
    # No clicks means no CPC signal, not a perfect one
    cpc_component = max(0.0, 1 - cpc / ceilings["cpc"]) if cpc > 0 else 0.0
    conversion_component = min(conversion_rate / ceilings["conversion_rate_pct"], 1.0)

    index = (ctr_component + cpc_component + conversion_component) / 3 * 100
    return float(np.clip(index, 0, 100))


@debug_watcher
def calculate_kpis(records: Sequence[TrafficRecord]) -> KPISummary:
    """
    Build the KPI snapshot for a record collection.

    Args:
        records: Validated records, ideally sorted by date (trend depends on order).

    Returns:
        KPISummary. An empty input yields the all-zero summary with every
        trend "stable" and every benchmark "average".
    """
    if not records:
        return KPISummary()

    frame = records_to_frame(records)
    totals = {column: float(frame[column].sum()) for column in METRIC_COLUMNS}
    days = len(frame)

    impressions = totals["impressions"]
    clicks = totals["clicks"]
    cost = totals["cost"]
    conversions = totals["conversions"]
    leads = totals["leads"]
    revenue = totals["revenue"]
    reach = totals["reach"]

    ctr = safe_ratio(clicks, impressions, 100)
    cpc = safe_ratio(cost, clicks)
    roas = safe_ratio(revenue, cost)
    conversion_rate = safe_ratio(conversions, clicks, 100)

    benchmarks = BenchmarkSummary(
        ctr=get_benchmark_status(ctr, "ctr"),
        # CPC of 0 means no click data, not efficiency
        cpc=get_benchmark_status(cpc, "cpc") if cpc != 0 else "average",
        roas=get_benchmark_status(roas, "roas") if revenue > 0 else "average",
    )

    summary = KPISummary(
        total_impressions=impressions,
        total_reach=reach,
        total_clicks=clicks,
        total_cost=cost,
        total_conversions=conversions,
        total_leads=leads,
        total_revenue=revenue,
        ctr=ctr,
        cpm=safe_ratio(cost, impressions, 1000),
        cpc=cpc,
        cpl=safe_ratio(cost, leads),
        cpa=safe_ratio(cost, conversions),
        roas=roas,
        roi=safe_ratio(revenue - cost, cost, 100),
        conversion_rate=conversion_rate,
        frequency=safe_ratio(impressions, reach),
        reach_rate=safe_ratio(reach, impressions, 100),
        average_impressions_per_day=impressions / days,
        average_reach_per_day=reach / days,
        average_clicks_per_day=clicks / days,
        average_cost_per_day=cost / days,
        average_conversions_per_day=conversions / days,
        average_leads_per_day=leads / days,
        average_revenue_per_day=revenue / days,
        quality_score=calculate_quality_score(ctr, cpc, conversion_rate, roas, revenue > 0),
        efficiency_index=calculate_efficiency_index(ctr, cpc, conversion_rate),
        trend=calculate_trend(frame),
        benchmarks=benchmarks,
        record_count=days,
        start_date=str(frame["date"].min()),
        end_date=str(frame["date"].max()),
    )

    logger.info(
        f"KPIs for {days} records: CTR {summary.ctr:.2f}%, CPC {summary.cpc:.2f}, "
        f"quality {summary.quality_score:.0f}, efficiency {summary.efficiency_index:.1f}"
    )
    return summary
