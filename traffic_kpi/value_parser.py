"""
Shared numeric parsing utilities for ad-platform metric cells.

Handles currency markers ("R$ 1.234,56", "$1,234.56", "BRL 10"), percent
signs ("4,5%" -> 4.5, the unit is dropped, not rescaled) and accounting
negatives ("(12.50)" -> -12.5). Thousands/decimal separators follow an
explicit locale, or are inferred per value with ``locale="auto"``; in auto
mode an "R$" or "BRL" marker means Brazilian separators ("R$ 1.234" -> 1234).
"""

from __future__ import annotations

import re
from typing import Any

import numpy as np
import pandas as pd

from traffic_kpi.config import DEFAULT_LOCALE, SUPPORTED_LOCALES

_NULL_TOKENS = {"", "null", "n/a", "na", "none", "nan", "-", "--"}
_CURRENCY_CODES = [
    "brl", "usd", "eur", "gbp", "ars", "mxn", "clp", "cop",
    "pen", "cad", "aud", "chf", "jpy",
]
_CURRENCY_SYMBOLS = r"R\$|US\$|[$€£¥]"
# Brazilian markers fix the separators even in auto mode
_BRL_MARKER = re.compile(r"R\$|\bbrl\b", re.IGNORECASE)

# (thousands separator, decimal separator)
_LOCALE_SEPARATORS = {
    "pt-BR": (".", ","),
    "es-ES": (".", ","),
    "de-DE": (".", ","),
    "en-US": (",", "."),
}


def _strip_currency_tokens(text: str) -> str:
    pattern = r"\b(" + "|".join(_CURRENCY_CODES) + r")\b"
    return re.sub(pattern, "", text, flags=re.IGNORECASE)


def _infer_separators(cleaned: str) -> str:
    # Both present: the rightmost one is the decimal separator
    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            return cleaned.replace(".", "").replace(",", ".")
        return cleaned.replace(",", "")

    if "," in cleaned:
        parts = cleaned.split(",")
        # Treat comma as decimal if it looks like cents (one or two digits)
        if len(parts) == 2 and len(parts[-1]) in (1, 2):
            return ".".join(parts)
        return cleaned.replace(",", "")

    if cleaned.count(".") > 1:
        # "1.234.567" can only be grouping
        return cleaned.replace(".", "")

    return cleaned


def _normalize_number_string(text: str, locale: str) -> str:
    if locale == "auto" and _BRL_MARKER.search(text):
        locale = "pt-BR"

    cleaned = _strip_currency_tokens(text)
    cleaned = re.sub(_CURRENCY_SYMBOLS, "", cleaned)
    cleaned = cleaned.replace(" ", "").replace("\u00a0", "")
    cleaned = cleaned.replace("%", "").replace("+", "")

    if locale == "auto":
        cleaned = _infer_separators(cleaned)
    else:
        thousands, decimal = _LOCALE_SEPARATORS[locale]
        cleaned = cleaned.replace(thousands, "").replace(decimal, ".")

    return cleaned.strip()


def parse_numeric_value(value: Any, locale: str = DEFAULT_LOCALE) -> float | None:
    """
    Parse a raw cell into a float.

    Args:
        value: Cell content (string, number, or blank).
        locale: One of SUPPORTED_LOCALES.

    Returns:
        The parsed float, or None when the cell is blank or not a number.

    Raises:
        ValueError: If the locale is not supported.
    """
    if locale not in SUPPORTED_LOCALES:
        raise ValueError(f"Unsupported locale: {locale}. Expected one of {SUPPORTED_LOCALES}")

    if value is None or isinstance(value, (bool, np.bool_)):
        return None

    if isinstance(value, (int, float, np.integer, np.floating)):
        if pd.isna(value) or not np.isfinite(value):
            return None
        return float(value)

    text = str(value).strip()
    if text.lower() in _NULL_TOKENS:
        return None

    is_negative = False
    if text.startswith("(") and text.endswith(")"):
        is_negative = True
        text = text[1:-1].strip()
    if text.startswith("-"):
        is_negative = True
        text = text[1:]

    cleaned = _normalize_number_string(text, locale)
    if cleaned.lower() in _NULL_TOKENS:
        return None

    try:
        numeric = float(cleaned)
    except ValueError:
        return None

    if not np.isfinite(numeric):
        return None

    if is_negative:
        numeric = -abs(numeric)

    return numeric


def parse_number(value: Any, locale: str = DEFAULT_LOCALE) -> float:
    """Lenient variant of parse_numeric_value: anything unparseable becomes 0.0."""
    parsed = parse_numeric_value(value, locale)
    return 0.0 if parsed is None else parsed
