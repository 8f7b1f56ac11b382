"""
Unit tests for the KPI engine.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from traffic_kpi.kpi import (
    calculate_efficiency_index,
    calculate_kpis,
    calculate_quality_score,
    calculate_trend,
    classify_trend,
    daily_totals,
    filter_by_date_range,
    get_benchmark_status,
    records_to_frame,
    safe_ratio,
)
from traffic_kpi.models import KPISummary, TrafficRecord


def make_record(date, impressions=1000.0, clicks=50.0, cost=100.0, **extra):
    return TrafficRecord(date=date, impressions=impressions, clicks=clicks, cost=cost, **extra)


def ten_days(first_impressions, second_impressions):
    records = []
    for day in range(1, 11):
        impressions = first_impressions if day <= 5 else second_impressions
        records.append(make_record(f"2024-01-{day:02d}", impressions=impressions, clicks=10.0, cost=10.0))
    return records


class TestCalculateKpis:
    """Tests for calculate_kpis."""

    def setup_method(self):
        """Set up test fixtures."""
        self.records = [
            make_record("2024-01-01", impressions=1000, clicks=50, cost=100.0),
            make_record("2024-02-01", impressions=2000, clicks=150, cost=300.5),
        ]

    def test_totals_and_ratios(self):
        summary = calculate_kpis(self.records)
        assert summary.total_impressions == 3000
        assert summary.total_clicks == 200
        assert summary.total_cost == pytest.approx(400.5)
        assert summary.ctr == pytest.approx(6.6667, abs=1e-4)
        assert summary.cpc == pytest.approx(2.0025)
        assert summary.cpm == pytest.approx(133.5)
        assert summary.record_count == 2
        assert summary.start_date == "2024-01-01"
        assert summary.end_date == "2024-02-01"

    def test_per_day_averages(self):
        summary = calculate_kpis(self.records)
        assert summary.average_impressions_per_day == 1500
        assert summary.average_clicks_per_day == 100
        assert summary.average_cost_per_day == pytest.approx(200.25)

    def test_reach_average(self):
        records = [
            make_record("2024-01-01", reach=600.0),
            make_record("2024-01-02", reach=900.0),
        ]
        summary = calculate_kpis(records)
        assert summary.total_reach == 1500
        assert summary.average_reach_per_day == 750
        assert KPISummary().average_reach_per_day == 0.0

    def test_zero_denominators_give_zero(self):
        summary = calculate_kpis([make_record("2024-01-01", impressions=0, clicks=0, cost=0)])
        assert summary.ctr == 0.0
        assert summary.cpc == 0.0
        assert summary.cpm == 0.0
        assert summary.cpl == 0.0
        assert summary.cpa == 0.0
        assert summary.roas == 0.0
        assert summary.roi == 0.0
        assert summary.conversion_rate == 0.0
        assert summary.frequency == 0.0
        assert summary.reach_rate == 0.0

    def test_revenue_ratios(self):
        records = [make_record("2024-01-01", cost=100.0, revenue=450.0, conversions=5, leads=10, reach=500)]
        summary = calculate_kpis(records)
        assert summary.roas == pytest.approx(4.5)
        assert summary.roi == pytest.approx(350.0)
        assert summary.cpa == pytest.approx(20.0)
        assert summary.cpl == pytest.approx(10.0)
        assert summary.conversion_rate == pytest.approx(10.0)
        assert summary.frequency == pytest.approx(2.0)
        assert summary.reach_rate == pytest.approx(50.0)
        assert summary.benchmarks.roas == "good"

    def test_benchmarks(self):
        summary = calculate_kpis(self.records)
        assert summary.benchmarks.ctr == "excellent"
        assert summary.benchmarks.cpc == "good"

    def test_no_clicks_or_revenue_benchmarks_are_average(self):
        summary = calculate_kpis([make_record("2024-01-01", clicks=0)])
        assert summary.benchmarks.cpc == "average"
        assert summary.benchmarks.roas == "average"

    def test_empty_input(self):
        summary = calculate_kpis([])
        assert summary == KPISummary()
        assert summary.total_impressions == 0
        assert summary.trend.impressions == "stable"
        assert summary.benchmarks.ctr == "average"

    def test_single_record_trend_is_stable(self):
        summary = calculate_kpis([make_record("2024-01-01")])
        assert set(summary.trend.to_dict().values()) == {"stable"}

    def test_impressions_trend_up_and_down(self):
        assert calculate_kpis(ten_days(100, 130)).trend.impressions == "up"
        assert calculate_kpis(ten_days(130, 100)).trend.impressions == "down"

    def test_small_change_is_stable(self):
        assert calculate_kpis(ten_days(100, 105)).trend.impressions == "stable"

    def test_scores_bounded(self):
        summary = calculate_kpis(self.records)
        assert 0 <= summary.quality_score <= 100
        assert 0 <= summary.efficiency_index <= 100

    def test_summary_is_serializable(self):
        data = calculate_kpis(self.records).to_dict()
        assert data["total_clicks"] == 200
        assert data["trend"]["impressions"] in ("up", "down", "stable")


class TestTrend:
    """Tests for trend helpers."""

    def test_classify_trend(self):
        assert classify_trend(100, 111) == "up"
        assert classify_trend(100, 89) == "down"
        assert classify_trend(100, 110) == "stable"
        assert classify_trend(0, 0) == "stable"
        assert classify_trend(0, 5) == "up"

    def test_custom_threshold(self):
        assert classify_trend(100, 104, threshold_pct=3) == "up"

    def test_odd_count_splits_at_floor(self):
        records = [make_record(f"2024-01-0{day}", impressions=imp) for day, imp in [(1, 100), (2, 200), (3, 200)]]
        trend = calculate_trend(records_to_frame(records))
        assert trend.impressions == "up"

    def test_roas_trend_uses_half_totals(self):
        records = [
            make_record("2024-01-01", cost=100, revenue=100),
            make_record("2024-01-02", cost=100, revenue=300),
        ]
        assert calculate_trend(records_to_frame(records)).roas == "up"


class TestBenchmarks:
    """Tests for get_benchmark_status."""

    def test_higher_is_better(self):
        assert get_benchmark_status(3.0, "ctr") == "excellent"
        assert get_benchmark_status(2.0, "ctr") == "good"
        assert get_benchmark_status(0.5, "ctr") == "average"
        assert get_benchmark_status(0.1, "ctr") == "poor"

    def test_lower_is_better(self):
        assert get_benchmark_status(1.5, "cpc") == "excellent"
        assert get_benchmark_status(5.0, "cpc") == "good"
        assert get_benchmark_status(10.0, "cpc") == "average"
        assert get_benchmark_status(16.0, "cpc") == "expensive"

    def test_roas(self):
        assert get_benchmark_status(6.0, "roas") == "excellent"
        assert get_benchmark_status(1.0, "roas") == "poor"

    def test_custom_thresholds(self):
        thresholds = {"ctr": {"direction": "higher_is_better", "tiers": [("good", 10.0)], "fallback": "poor"}}
        assert get_benchmark_status(5.0, "ctr", thresholds) == "poor"
        assert get_benchmark_status(12.0, "ctr", thresholds) == "good"


class TestScores:
    """Tests for the composite scores."""

    def test_quality_score_upper_clamp(self):
        assert calculate_quality_score(10, 1, 50, 10, has_revenue=True) == 100

    def test_quality_score_lower_clamp(self):
        assert calculate_quality_score(0.1, 50, 0, 0.5, has_revenue=True) == 0

    def test_quality_score_base(self):
        # Average CTR, CPC in the neutral band, middling conversion rate
        assert calculate_quality_score(0.8, 10, 1, 0, has_revenue=False) == 50

    def test_roas_ignored_without_revenue(self):
        with_revenue = calculate_quality_score(2, 3, 3, 0.5, has_revenue=True)
        without_revenue = calculate_quality_score(2, 3, 3, 0.5, has_revenue=False)
        assert with_revenue < without_revenue

    def test_efficiency_index(self):
        assert calculate_efficiency_index(10, 1, 20) == pytest.approx(96.6667, abs=1e-4)
        assert calculate_efficiency_index(0, 0, 0) == 0.0
        assert calculate_efficiency_index(100, 0.01, 100) <= 100


class TestFrames:
    """Tests for frame helpers and filters."""

    def test_safe_ratio(self):
        assert safe_ratio(1, 0) == 0.0
        assert safe_ratio(1, 4, 100) == 25.0

    def test_daily_totals_groups_by_date(self):
        records = [
            make_record("2024-01-02", impressions=100, clicks=5, cost=10, campaignname="A"),
            make_record("2024-01-01", impressions=200, clicks=10, cost=20, campaignname="A"),
            make_record("2024-01-01", impressions=300, clicks=0, cost=30, campaignname="B"),
        ]
        daily = daily_totals(records)
        assert list(daily["date"]) == ["2024-01-01", "2024-01-02"]
        assert daily.loc[0, "impressions"] == 500
        assert daily.loc[0, "ctr"] == pytest.approx(2.0)
        assert daily.loc[0, "cpc"] == pytest.approx(5.0)

    def test_daily_totals_empty(self):
        assert daily_totals([]).empty

    def test_records_to_frame_includes_social(self):
        frame = records_to_frame([make_record("2024-01-01", social_metrics={"likes": 3.0})])
        assert frame.loc[0, "likes"] == 3.0

    def test_filter_by_date_range(self):
        records = [make_record(f"2024-01-0{day}") for day in range(1, 6)]
        kept = filter_by_date_range(records, "2024-01-02", "04/01/2024")
        assert [r.date for r in kept] == ["2024-01-02", "2024-01-03", "2024-01-04"]
        assert len(filter_by_date_range(records)) == 5
        assert len(filter_by_date_range(records, start="2024-01-05")) == 1
