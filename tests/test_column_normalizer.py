"""
Unit tests for the ColumnNormalizer module.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from traffic_kpi.column_normalizer import ColumnNormalizer, normalize_column_name
from traffic_kpi.config import CANONICAL_FIELDS, DEFAULT_COLUMN_SYNONYMS


class TestColumnNormalizer:
    """Tests for ColumnNormalizer class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.normalizer = ColumnNormalizer()

    def test_canonical_names_are_fixed_points(self):
        for field in CANONICAL_FIELDS:
            assert self.normalizer.normalize(field) == field

    def test_english_platform_aliases(self):
        assert self.normalizer.normalize("Day") == "date"
        assert self.normalizer.normalize("Link Clicks") == "clicks"
        assert self.normalizer.normalize("Amount Spent") == "cost"
        assert self.normalizer.normalize("Messaging conversations started") == "leads"
        assert self.normalizer.normalize("Campaign Name") == "campaignname"

    def test_localized_aliases(self):
        assert self.normalizer.normalize("Data") == "date"
        assert self.normalizer.normalize("Impressões") == "impressions"
        assert self.normalizer.normalize("Cliques") == "clicks"
        assert self.normalizer.normalize("Kosten") == "cost"
        assert self.normalizer.normalize("Conversiones") == "conversions"

    def test_platform_metrics_recognized(self):
        assert self.normalizer.normalize("CPC (cost per link click)") == "cpc"
        assert self.normalizer.normalize("CTR (link click-through rate)") == "ctr"
        assert self.normalizer.normalize("Cost per result") == "cpl"

    def test_unknown_column_passes_through_normalized(self):
        assert self.normalizer.normalize("Ad Set Name!") == "adsetname"

    def test_normalize_never_raises(self):
        assert self.normalizer.normalize("") == ""
        assert self.normalizer.normalize("%%%") == ""

    def test_needs_mapping(self):
        assert not self.normalizer.needs_mapping(["Day", "Impressions", "Link Clicks", "Amount Spent"])
        assert self.normalizer.needs_mapping(["Periodo", "Impressions", "Clicks", "Cost"])

    def test_missing_required(self):
        missing = self.normalizer.missing_required(["Periodo", "Impressions", "Valor"])
        assert missing == ["date", "clicks", "cost"]

    def test_explicit_mapping_wins(self):
        resolution = self.normalizer.resolve_columns(
            ["Periodo", "Impressions", "Clicks", "Valor"],
            {"Periodo": "date", "Valor": "cost", "Impressions": "none"},
        )
        assert resolution["Periodo"] == "date"
        assert resolution["Valor"] == "cost"
        assert resolution["Impressions"] is None
        assert resolution["Clicks"] == "clicks"

    def test_explicit_mapping_resolves_needs_mapping(self):
        assert not self.normalizer.needs_mapping(
            ["Periodo", "Impressions", "Clicks", "Valor"],
            {"Periodo": "date", "Valor": "cost"},
        )

    def test_explicit_targets_use_header_normalization(self):
        columns = ["Periodo", "Impressions", "Clicks", "Valor", "Visitas"]
        mapping = {"Periodo": "Date", "Valor": "Amount Spent", "Visitas": "profile_visits"}

        resolution = self.normalizer.resolve_columns(columns, mapping)

        assert resolution["Periodo"] == "date"
        assert resolution["Valor"] == "cost"
        assert resolution["Visitas"] == "profileVisits"
        assert not self.normalizer.needs_mapping(columns, mapping)

    def test_explicit_target_must_be_canonical(self):
        with pytest.raises(ValueError, match="unknown field 'spend total'"):
            self.normalizer.match_all(["Valor"], {"Valor": "spend total"})

    def test_match_sources(self):
        matches = self.normalizer.match_all(["Day", "Foo", "Bar"], {"Bar": "none"})
        assert [m.source for m in matches] == ["synonym", "unmapped", "ignored"]
        assert matches[0].is_recognized
        assert not matches[1].is_recognized

    def test_mapping_statistics(self):
        matches = self.normalizer.match_all(["Day", "Impressions", "Foo", "Bar"])
        stats = self.normalizer.get_mapping_statistics(matches)
        assert stats["total_columns"] == 4
        assert stats["recognized_columns"] == 2
        assert stats["recognition_rate"] == 50.0
        assert stats["unmapped_columns"] == ["Foo", "Bar"]

    def test_mapping_statistics_empty(self):
        stats = self.normalizer.get_mapping_statistics([])
        assert stats["total_columns"] == 0
        assert stats["recognition_rate"] == 0.0


class TestInjectedSynonyms:
    """The synonym table is a constructor argument, not global state."""

    def test_custom_table(self):
        normalizer = ColumnNormalizer({"Periodo": "date", "gasto_total": "cost"})
        assert normalizer.normalize("periodo") == "date"
        assert normalizer.normalize("Gasto Total") == "cost"
        # Defaults are not included
        assert normalizer.normalize("Link Clicks") == "linkclicks"

    def test_extending_defaults(self):
        normalizer = ColumnNormalizer({**DEFAULT_COLUMN_SYNONYMS, "interactions": "clicks"})
        assert normalizer.normalize("Interactions") == "clicks"
        assert normalizer.normalize("Amount Spent") == "cost"

    def test_default_table_is_read_only(self):
        try:
            DEFAULT_COLUMN_SYNONYMS["new"] = "date"  # type: ignore[index]
        except TypeError:
            pass
        assert "new" not in DEFAULT_COLUMN_SYNONYMS


def test_normalize_column_name():
    assert normalize_column_name("Link_Clicks") == "linkclicks"
    assert normalize_column_name("Impressões") == "impressoes"
    assert normalize_column_name(2024) == "2024"
