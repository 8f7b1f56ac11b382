"""
Summary/total row detection.

Ad-platform exports commonly append a "Totals" line with most cells blank.
Such a row must never be parsed as a dated observation.
"""

from __future__ import annotations

from typing import Any, Mapping

import pandas as pd

from traffic_kpi.column_normalizer import ColumnNormalizer
from traffic_kpi.config import SUMMARY_ROW_MIN_FIELDS

IDENTIFYING_FIELDS = ("date", "campaignname")

_DEFAULT_NORMALIZER = ColumnNormalizer()


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def count_populated(row: Mapping[str, Any]) -> int:
    return sum(1 for value in row.values() if not is_blank(value))


def is_completely_empty_row(row: Mapping[str, Any]) -> bool:
    return all(is_blank(value) for value in row.values())


def is_summary_row(row: Mapping[str, Any], normalizer: ColumnNormalizer | None = None) -> bool:
    """
    Decide whether a row is a totals/summary line.

    A row qualifies when fewer than SUMMARY_ROW_MIN_FIELDS cells are populated,
    or when neither a date nor a campaign-name cell is populated.

    Args:
        row: Raw or canonical-keyed row.
        normalizer: Resolves raw headers; canonical keys resolve to themselves.
            Defaults to a shared normalizer over the default synonym table.

    Returns:
        True if the row should be dropped with a warning.
    """
    if count_populated(row) < SUMMARY_ROW_MIN_FIELDS:
        return True

    if normalizer is None:
        normalizer = _DEFAULT_NORMALIZER

    for column, value in row.items():
        if normalizer.normalize(column) in IDENTIFYING_FIELDS and not is_blank(value):
            return False
    return True
