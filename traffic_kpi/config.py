"""
Configuration Module - Centralized Configuration Hub

Contains all configurable parameters for the traffic KPI pipeline:
- Directory paths
- Column synonym table (source header alias -> canonical field)
- Numeric locale settings
- Consistency limits used by the record validator
- Benchmark tiers, quality score weights and efficiency ceilings
- Workbook export settings
"""

from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any


# ============================================================================
# DIRECTORY PATHS
# ============================================================================

# Project root directory (parent of traffic_kpi/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Optional JSON overrides live here
CONFIG_DIR = PROJECT_ROOT / "config"

# Workbook exports
OUTPUT_PATH = PROJECT_ROOT / "output"


# ============================================================================
# CANONICAL SCHEMA
# ============================================================================

TRAFFIC_FIELDS = (
    "date",
    "impressions",
    "clicks",
    "cost",
    "conversions",
    "leads",
    "revenue",
    "reach",
    "campaignname",
)

# Platform-computed metrics: recognized so they don't force manual mapping,
# but always recomputed by the KPI engine rather than trusted.
PLATFORM_METRIC_FIELDS = ("frequency", "cpl", "cpm", "cpc", "ctr")

SOCIAL_FIELDS = (
    "likes",
    "comments",
    "shares",
    "followers",
    "engagement",
    "posts",
    "stories",
    "reels",
    "saves",
    "profileVisits",
)

CANONICAL_FIELDS = TRAFFIC_FIELDS + PLATFORM_METRIC_FIELDS + SOCIAL_FIELDS

# Fields that must resolve automatically, otherwise the user maps by hand
REQUIRED_MAPPING_FIELDS = ("date", "impressions", "clicks", "cost")

# Explicit-mapping sentinel: the user opted the column out
IGNORE_COLUMN = "none"


# ============================================================================
# COLUMN SYNONYMS
# ============================================================================
# Keys are compared after normalization (lowercase, only [a-z0-9] kept), so
# "Link Clicks", "link_clicks" and "linkclicks" all hit the same entry.
#
# Note: Synonyms are merged with config/column_mapping.json if available
# (see bottom of file). Defaults are defined in _COLUMN_SYNONYMS_DEFAULT.

_COLUMN_SYNONYMS_DEFAULT: dict[str, str] = {
    # Date
    "date": "date",
    "data": "date",
    "day": "date",
    "dia": "date",
    "fecha": "date",
    "datum": "date",
    "datestart": "date",
    "reportingstarts": "date",
    # Impressions
    "impressions": "impressions",
    "impressoes": "impressions",
    "impresiones": "impressions",
    "impressionen": "impressions",
    "impr": "impressions",
    # Clicks
    "clicks": "clicks",
    "cliques": "clicks",
    "clics": "clicks",
    "klicks": "clicks",
    "linkclicks": "clicks",
    "clicksalllinked": "clicks",
    "websiteclicks": "clicks",
    # Cost
    "cost": "cost",
    "custo": "cost",
    "costo": "cost",
    "kosten": "cost",
    "spend": "cost",
    "amountspent": "cost",
    "investment": "cost",
    "investimento": "cost",
    "adspend": "cost",
    "totalspend": "cost",
    # Conversions
    "conversions": "conversions",
    "conversoes": "conversions",
    "conversiones": "conversions",
    "konversionen": "conversions",
    "conv": "conversions",
    "results": "conversions",
    "result": "conversions",
    "resultados": "conversions",
    "purchases": "conversions",
    "compras": "conversions",
    # Leads
    "leads": "leads",
    "lead": "leads",
    "conversas": "leads",
    "conversaciones": "leads",
    "messages": "leads",
    "mensagens": "leads",
    "messagingconversationsstarted": "leads",
    "conversations": "leads",
    # Revenue
    "revenue": "revenue",
    "receita": "revenue",
    "ingresos": "revenue",
    "einnahmen": "revenue",
    "purchasevalue": "revenue",
    "conversionvalue": "revenue",
    "sales": "revenue",
    "vendas": "revenue",
    # Reach
    "reach": "reach",
    "alcance": "reach",
    "reichweite": "reach",
    "uniquereach": "reach",
    "peoplereached": "reach",
    # Campaign name
    "campaignname": "campaignname",
    "campaign": "campaignname",
    "campanha": "campaignname",
    "nomecampanha": "campaignname",
    "campana": "campaignname",
    "kampagne": "campaignname",
    # Platform-computed metrics (Facebook Ads exports)
    "frequency": "frequency",
    "frequencia": "frequency",
    "costperresult": "cpl",
    "costpermessagingconversationsstarted": "cpl",
    "cpm": "cpm",
    "cpmcostper1000impressions": "cpm",
    "cpc": "cpc",
    "cpccostperlinkclick": "cpc",
    "ctr": "ctr",
    "ctrlinkclickthroughrate": "ctr",
    # Social media extension
    "likes": "likes",
    "curtidas": "likes",
    "comments": "comments",
    "comentarios": "comments",
    "shares": "shares",
    "compartilhamentos": "shares",
    "followers": "followers",
    "seguidores": "followers",
    "engagement": "engagement",
    "engajamento": "engagement",
    "posts": "posts",
    "stories": "stories",
    "reels": "reels",
    "saves": "saves",
    "salvamentos": "saves",
    "profilevisits": "profileVisits",
    "visitasaoperfil": "profileVisits",
}


# ============================================================================
# NUMERIC LOCALES
# ============================================================================
# "auto" infers the decimal separator per value; the named locales pin it.

SUPPORTED_LOCALES = ("auto", "pt-BR", "es-ES", "de-DE", "en-US")
DEFAULT_LOCALE = "auto"


# ============================================================================
# VALIDATION LIMITS
# ============================================================================
# Per-row sanity checks; violations produce warnings (CTR, CPC) only.

_CONSISTENCY_LIMITS_DEFAULT = {
    "ctr_min_pct": 0.1,
    "ctr_max_pct": 20.0,
    "cpc_max": 100.0,
}

# Summary-row heuristic: rows with fewer populated cells are totals
SUMMARY_ROW_MIN_FIELDS = 3


# ============================================================================
# KPI BENCHMARKS AND SCORING
# ============================================================================
# Tiers are checked in order; the first satisfied bound wins.
# "higher_is_better": value >= bound ; "lower_is_better": value <= bound

_BENCHMARK_THRESHOLDS_DEFAULT: dict[str, dict[str, Any]] = {
    "ctr": {
        "direction": "higher_is_better",
        "tiers": [("excellent", 3.0), ("good", 1.5), ("average", 0.5)],
        "fallback": "poor",
    },
    "cpc": {
        "direction": "lower_is_better",
        "tiers": [("excellent", 2.0), ("good", 5.0), ("average", 15.0)],
        "fallback": "expensive",
    },
    "roas": {
        "direction": "higher_is_better",
        "tiers": [("excellent", 6.0), ("good", 4.0), ("average", 2.0)],
        "fallback": "poor",
    },
}

_QUALITY_SCORE_WEIGHTS_DEFAULT: dict[str, Any] = {
    "base": 50,
    "ctr": {"excellent_at": 3.0, "excellent": 20, "good_at": 1.0, "good": 10, "poor_below": 0.5, "poor": -15},
    "cpc": {"excellent_at": 2.0, "excellent": 15, "good_at": 5.0, "good": 5, "poor_above": 20.0, "poor": -15},
    "conversion_rate": {"excellent_at": 5.0, "excellent": 15, "good_at": 2.0, "good": 10, "poor_below": 0.5, "poor": -10},
    "roas": {"excellent_at": 6.0, "excellent": 20, "good_at": 4.0, "good": 10, "poor_below": 2.0, "poor": -15},
}

EFFICIENCY_CEILINGS = {
    "ctr_pct": 5.0,
    "cpc": 10.0,
    "conversion_rate_pct": 10.0,
}

# Relative change (percent) between half-period means that counts as a trend
TREND_THRESHOLD_PCT = 10.0

TREND_METRICS = ("impressions", "clicks", "cost", "ctr", "conversions", "roas")


# ============================================================================
# OUTPUT FORMAT SETTINGS
# ============================================================================

OUTPUT_SETTINGS = {
    "workbook_name_pattern": "KPI_Report_{label}_{timestamp}.xlsx",
    "timestamp_format": "%Y%m%d_%H%M%S",
    "currency_format": "#,##0.00",
    "percentage_format": "0.00",
    "integer_format": "#,##0",
    "decimal_format": "#,##0.00",
}

BENCHMARK_COLORS = {
    "excellent": "#4ECDC4",
    "good": "#A8E6CF",
    "average": "#FFE66D",
    "poor": "#FF6B6B",
    "expensive": "#FF6B6B",
    "WHITE": "#FFFFFF",
}


# ============================================================================
# CONFIG LOADING AND VALIDATION
# ============================================================================

def _load_column_synonyms_from_json(defaults: dict[str, str]) -> dict[str, str]:
    """Load column synonyms from JSON file, merge with defaults."""
    mapping_file = CONFIG_DIR / "column_mapping.json"
    if mapping_file.exists():
        try:
            with open(mapping_file, "r", encoding="utf-8") as f:
                data = json.load(f)
                if "mappings" in data:
                    merged = defaults.copy()
                    for group, mappings in data["mappings"].items():
                        if isinstance(mappings, dict):
                            merged.update(mappings)
                    return merged
        except (OSError, ValueError) as e:
            import warnings
            warnings.warn(f"Failed to load column mapping from JSON: {e}. Using defaults.")
    return defaults


def _load_thresholds_from_json(
    benchmarks: dict[str, Any],
    limits: dict[str, float],
) -> tuple[dict[str, Any], dict[str, float]]:
    """Load benchmark tiers and consistency limits from JSON, merge with defaults."""
    thresholds_file = CONFIG_DIR / "thresholds.json"
    if thresholds_file.exists():
        try:
            with open(thresholds_file, "r", encoding="utf-8") as f:
                data = json.load(f)
                merged_benchmarks = benchmarks.copy()
                merged_limits = limits.copy()
                for metric, config in data.get("benchmarks", {}).items():
                    entry = dict(config)
                    if "tiers" in entry:
                        entry["tiers"] = [tuple(tier) for tier in entry["tiers"]]
                    merged_benchmarks[metric] = {**merged_benchmarks.get(metric, {}), **entry}
                merged_limits.update(data.get("consistency_limits", {}))
                return merged_benchmarks, merged_limits
        except (OSError, ValueError) as e:
            import warnings
            warnings.warn(f"Failed to load thresholds from JSON: {e}. Using defaults.")
    return benchmarks, limits


# Load configuration from JSON files if available, otherwise use hardcoded defaults.
# Exposed read-only; callers needing a different table pass their own mapping.
DEFAULT_COLUMN_SYNONYMS = MappingProxyType(_load_column_synonyms_from_json(_COLUMN_SYNONYMS_DEFAULT))
_benchmarks, _limits = _load_thresholds_from_json(
    _BENCHMARK_THRESHOLDS_DEFAULT, _CONSISTENCY_LIMITS_DEFAULT
)
BENCHMARK_THRESHOLDS = MappingProxyType(_benchmarks)
CONSISTENCY_LIMITS = MappingProxyType(_limits)
QUALITY_SCORE_WEIGHTS = MappingProxyType(_QUALITY_SCORE_WEIGHTS_DEFAULT)


def load_config() -> dict[str, Any]:
    """
    Load and return all configuration as a dictionary.

    Returns:
        Dictionary with all configuration values.
    """
    return {
        "project_root": PROJECT_ROOT,
        "config_dir": CONFIG_DIR,
        "output_path": OUTPUT_PATH,
        "column_synonyms": dict(DEFAULT_COLUMN_SYNONYMS),
        "required_mapping_fields": REQUIRED_MAPPING_FIELDS,
        "default_locale": DEFAULT_LOCALE,
        "consistency_limits": dict(CONSISTENCY_LIMITS),
        "benchmark_thresholds": dict(BENCHMARK_THRESHOLDS),
        "quality_score_weights": dict(QUALITY_SCORE_WEIGHTS),
        "efficiency_ceilings": EFFICIENCY_CEILINGS,
        "trend_threshold_pct": TREND_THRESHOLD_PCT,
        "output_settings": OUTPUT_SETTINGS,
        "benchmark_colors": BENCHMARK_COLORS,
    }


def validate_config() -> tuple[bool, list[str]]:
    """
    Validate configuration settings.

    Returns:
        Tuple of (is_valid, list_of_errors).
    """
    errors = []

    for alias, field in DEFAULT_COLUMN_SYNONYMS.items():
        if field not in CANONICAL_FIELDS:
            errors.append(f"Synonym '{alias}' maps to unknown field '{field}'")

    canonical_targets = set(DEFAULT_COLUMN_SYNONYMS.values())
    for field in REQUIRED_MAPPING_FIELDS:
        if field not in canonical_targets:
            errors.append(f"No synonym resolves to required field '{field}'")

    if DEFAULT_LOCALE not in SUPPORTED_LOCALES:
        errors.append(f"Unsupported default locale: {DEFAULT_LOCALE}")

    for metric, config in BENCHMARK_THRESHOLDS.items():
        if "tiers" not in config or not config["tiers"]:
            errors.append(f"Missing tiers for benchmark '{metric}'")
            continue
        bounds = [bound for _, bound in config["tiers"]]
        if config.get("direction") == "lower_is_better":
            if bounds != sorted(bounds):
                errors.append(f"Invalid tiers for {metric}: bounds must increase for lower_is_better")
        elif bounds != sorted(bounds, reverse=True):
            errors.append(f"Invalid tiers for {metric}: bounds must decrease for higher_is_better")

    if CONSISTENCY_LIMITS["ctr_min_pct"] >= CONSISTENCY_LIMITS["ctr_max_pct"]:
        errors.append("Invalid CTR limits: ctr_min_pct must be below ctr_max_pct")

    return len(errors) == 0, errors


def ensure_directories() -> None:
    """Create required directories if they don't exist."""
    OUTPUT_PATH.mkdir(parents=True, exist_ok=True)
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)


def save_config_to_json(filepath: Path | str | None = None) -> Path:
    """
    Save configuration to a JSON file.

    Args:
        filepath: Output path. If None, saves to CONFIG_DIR/config.json.

    Returns:
        Path of the written file.
    """
    if filepath is None:
        ensure_directories()
        filepath = CONFIG_DIR / "config.json"

    filepath = Path(filepath)

    config = {
        "column_synonyms": dict(DEFAULT_COLUMN_SYNONYMS),
        "required_mapping_fields": list(REQUIRED_MAPPING_FIELDS),
        "default_locale": DEFAULT_LOCALE,
        "consistency_limits": dict(CONSISTENCY_LIMITS),
        "benchmark_thresholds": dict(BENCHMARK_THRESHOLDS),
        "quality_score_weights": dict(QUALITY_SCORE_WEIGHTS),
        "efficiency_ceilings": EFFICIENCY_CEILINGS,
        "trend_threshold_pct": TREND_THRESHOLD_PCT,
        "output_settings": OUTPUT_SETTINGS,
    }

    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)

    return filepath


if __name__ == "__main__":
    print("=" * 60)
    print("Configuration Validation")
    print("=" * 60)

    is_valid, errors = validate_config()

    if is_valid:
        print("[OK] Configuration is valid")
    else:
        print("[ERROR] Configuration has errors:")
        for error in errors:
            print(f"  - {error}")

    print(f"\nProject Root: {PROJECT_ROOT}")
    print(f"Output: {OUTPUT_PATH}")
    print(f"Column synonyms: {len(DEFAULT_COLUMN_SYNONYMS)}")
    print(f"Benchmarks: {list(BENCHMARK_THRESHOLDS)}")
