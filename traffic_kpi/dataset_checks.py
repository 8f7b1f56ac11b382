"""
Dataset-level checks run once after row validation.

Both checks are advisory: they only ever produce warnings and suggestions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pandas as pd

from traffic_kpi.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from traffic_kpi.models import TrafficRecord

logger = get_logger(__name__)

CheckOutcome = tuple[list[str], list[str]]

# Span in days allowed per record before gaps are reported
GAP_DAYS_PER_RECORD = 2


def check_chronological_order(records: Sequence[TrafficRecord]) -> CheckOutcome:
    """
    Warn when any record is dated before its predecessor (insertion order).

    Args:
        records: Validated records in file order.

    Returns:
        Tuple of (warnings, suggestions).
    """
    if len(records) < 2:
        return [], []

    for previous, current in zip(records, records[1:]):
        # ISO dates compare correctly as strings
        if current.date < previous.date:
            logger.debug(f"Out-of-order date {current.date} after {previous.date}")
            return (
                ["Data is not in chronological order - this may affect trend analysis"],
                ["Sort the data by date for better analysis"],
            )
    return [], []


def check_date_gaps(records: Sequence[TrafficRecord]) -> CheckOutcome:
    """Warn when the date span exceeds twice the record count."""
    if len(records) < 3:
        return [], []

    dates = pd.to_datetime([record.date for record in records])
    span_days = (dates.max() - dates.min()).days
    if span_days > len(records) * GAP_DAYS_PER_RECORD:
        logger.debug(f"Date span of {span_days} days for {len(records)} records")
        return (
            ["There are significant gaps between dates - consider filling in missing data"],
            ["Fill in the missing days or export the full date range"],
        )
    return [], []


def run_dataset_checks(records: Sequence[TrafficRecord]) -> CheckOutcome:
    warnings: list[str] = []
    suggestions: list[str] = []
    for check in (check_chronological_order, check_date_gaps):
        check_warnings, check_suggestions = check(records)
        warnings.extend(check_warnings)
        suggestions.extend(check_suggestions)
    return warnings, suggestions
