"""
Date parsing for ad-platform exports.

Recognized forms, tried in priority order:
- YYYY-M-D   (ISO, optionally followed by a time part)
- D/M/YYYY
- D-M-YYYY
- D.M.YYYY
- anything pandas can parse, as a last resort

Every slash/dash/dot form is read day-first. No attempt is made to detect
US-style MM/DD/YYYY input when both parts are <= 12, and a value that fits
one of these shapes but is not a real day-first date ("05/13/2024",
"31/02/2024") is rejected rather than handed to the pandas fallback.
"""

from __future__ import annotations

import re
import warnings
from datetime import date, datetime
from typing import Any

import pandas as pd

from traffic_kpi.exceptions import InvalidDateFormat

# (name, pattern, group order) - order gives the (year, month, day) group indexes
_DATE_PATTERNS: list[tuple[str, re.Pattern[str], tuple[int, int, int]]] = [
    ("iso", re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$"), (1, 2, 3)),
    ("dmy_slash", re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?: .*)?$"), (3, 2, 1)),
    ("dmy_dash", re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})(?: .*)?$"), (3, 2, 1)),
    ("dmy_dot", re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})(?: .*)?$"), (3, 2, 1)),
]

DATE_FORMAT_HINT = "Use YYYY-MM-DD, DD/MM/YYYY, DD-MM-YYYY or DD.MM.YYYY"


def _match_known_pattern(text: str) -> date | None:
    for name, pattern, (y_idx, m_idx, d_idx) in _DATE_PATTERNS:
        match = pattern.match(text)
        if not match:
            continue
        try:
            return date(int(match.group(y_idx)), int(match.group(m_idx)), int(match.group(d_idx)))
        except ValueError as exc:
            # No month-first retry: "05/13/2024" must not parse when "05/12/2024" reads day-first
            raise InvalidDateFormat(f"Impossible date for {name} format: '{text}'") from exc
    return None


def _fallback_parse(text: str) -> date | None:
    # Bare short digit runs ("12", "2024") are counts, not dates
    if text.isdigit() and len(text) != 8:
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_date(value: Any) -> str:
    """
    Parse a raw date cell into a zero-padded ISO string.

    Args:
        value: Cell content; strings, datetime/date and pandas Timestamps
            are accepted.

    Returns:
        Date as "YYYY-MM-DD".

    Raises:
        InvalidDateFormat: If the cell is empty or no format matches.
    """
    if isinstance(value, (datetime, pd.Timestamp)):
        if pd.isna(value):
            raise InvalidDateFormat("Empty date value")
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = "" if value is None else str(value).strip()
    if not text or text.lower() in ("nan", "nat", "none"):
        raise InvalidDateFormat("Empty date value")

    parsed = _match_known_pattern(text)
    if parsed is None:
        parsed = _fallback_parse(text)
    if parsed is None:
        raise InvalidDateFormat(f"Unrecognized date format: '{text}'")

    return parsed.isoformat()


def is_valid_date(value: Any) -> bool:
    try:
        parse_date(value)
    except InvalidDateFormat:
        return False
    return True
