"""
Column Normalizer - maps export headers onto the canonical traffic schema.

Headers are accent-folded, reduced to lowercase alphanumerics and looked up in a
synonym table covering English, Portuguese, Spanish and German exports plus
platform-specific aliases:

- "Link Clicks"            -> clicks
- "Valor usado (BRL)"      -> valorusadobrl (unmapped, passes through)
- "Amount spent"           -> cost
- "Messaging conversations started" -> leads

Unrecognized headers pass through as their normalized form and are carried
as extra data; whether the user must map columns by hand is decided by
``needs_mapping``.
"""

from __future__ import annotations

import re
import unicodedata
from typing import TYPE_CHECKING, Mapping

from traffic_kpi.config import (
    CANONICAL_FIELDS,
    DEFAULT_COLUMN_SYNONYMS,
    IGNORE_COLUMN,
    REQUIRED_MAPPING_FIELDS,
)
from traffic_kpi.logger import get_logger
from traffic_kpi.models import ColumnMatch

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_column_name(column: object) -> str:
    """Fold accents, lowercase, and drop every character outside [a-z0-9]."""
    folded = unicodedata.normalize("NFKD", str(column)).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("", folded.lower())


# Case-insensitive lookup, e.g. "profilevisits" -> profileVisits
_CANONICAL_BY_KEY = {normalize_column_name(field): field for field in CANONICAL_FIELDS}


class ColumnNormalizer:
    """
    Resolves raw headers to canonical fields.

    The synonym table is injected rather than global, so tests and
    platform-specific callers can extend it without touching this class.
    """

    def __init__(self, synonyms: Mapping[str, str] | None = None):
        """
        Initialize the ColumnNormalizer.

        Args:
            synonyms: Optional alias-to-field mapping. Aliases are normalized
                      on load, so "link_clicks" and "linkclicks" are the same
                      entry. If None, uses DEFAULT_COLUMN_SYNONYMS.
        """
        source = DEFAULT_COLUMN_SYNONYMS if synonyms is None else synonyms
        self.synonyms: dict[str, str] = {
            normalize_column_name(alias): field for alias, field in source.items()
        }

    def normalize(self, column: str) -> str:
        """
        Map one header to its canonical field.

        Args:
            column: Raw header text.

        Returns:
            The canonical field name, or the normalized header if no synonym
            matches. Never raises.
        """
        key = normalize_column_name(column)
        return self.synonyms.get(key, key)

    def resolve_target(self, column: str, target: object) -> str:
        """
        Resolve the field a user mapped a column to.

        Targets go through the same normalization and synonym lookup as
        headers, so "Date" and "Amount Spent" resolve to date and cost.

        Raises:
            ValueError: If the target is not a canonical field.
        """
        text = str(target).strip()
        if text in CANONICAL_FIELDS:
            return text

        key = normalize_column_name(text)
        field = _CANONICAL_BY_KEY.get(key) or self.synonyms.get(key)
        if field not in CANONICAL_FIELDS:
            raise ValueError(
                f"Column '{column}' is mapped to unknown field '{text}'. "
                f"Expected one of: {', '.join(CANONICAL_FIELDS)} or '{IGNORE_COLUMN}'"
            )
        return field

    def match(self, column: str) -> ColumnMatch:
        key = normalize_column_name(column)
        canonical = self.synonyms.get(key)
        if canonical is None:
            return ColumnMatch(raw_column=column, normalized=key, canonical_field=key, source="unmapped")
        return ColumnMatch(raw_column=column, normalized=key, canonical_field=canonical, source="synonym")

    def match_all(
        self,
        columns: Sequence[str],
        explicit_mapping: Mapping[str, str] | None = None,
    ) -> list[ColumnMatch]:
        """
        Resolve every header, letting an explicit user mapping win.

        Args:
            columns: Raw headers in file order.
            explicit_mapping: Optional raw header -> canonical field mapping.
                              A value of "none" drops the column.

        Returns:
            One ColumnMatch per header.
        """
        explicit_mapping = explicit_mapping or {}
        matches = []
        for column in columns:
            if column in explicit_mapping:
                target = explicit_mapping[column]
                key = normalize_column_name(column)
                if target is None or str(target).strip().lower() == IGNORE_COLUMN:
                    matches.append(ColumnMatch(column, key, None, "ignored"))
                else:
                    field = self.resolve_target(column, target)
                    matches.append(ColumnMatch(column, key, field, "explicit"))
            else:
                matches.append(self.match(column))
        return matches

    def resolve_columns(
        self,
        columns: Sequence[str],
        explicit_mapping: Mapping[str, str] | None = None,
    ) -> dict[str, str | None]:
        """Raw header -> canonical field (None for columns the user dropped)."""
        return {m.raw_column: m.canonical_field for m in self.match_all(columns, explicit_mapping)}

    def missing_required(
        self,
        columns: Sequence[str],
        explicit_mapping: Mapping[str, str] | None = None,
        required: Sequence[str] = REQUIRED_MAPPING_FIELDS,
    ) -> list[str]:
        resolved = {
            m.canonical_field for m in self.match_all(columns, explicit_mapping) if m.is_recognized
        }
        return [field for field in required if field not in resolved]

    def needs_mapping(
        self,
        columns: Sequence[str],
        explicit_mapping: Mapping[str, str] | None = None,
    ) -> bool:
        missing = self.missing_required(columns, explicit_mapping)
        if missing:
            logger.info(f"Required fields not resolvable from headers: {missing}")
        return bool(missing)

    def get_mapping_statistics(self, matches: list[ColumnMatch]) -> dict:
        """
        Calculate mapping statistics for display and logging.

        Args:
            matches: List of ColumnMatch objects.

        Returns:
            Dictionary with statistics.
        """
        total = len(matches)
        if total == 0:
            return {
                "total_columns": 0,
                "recognized_columns": 0,
                "recognition_rate": 0.0,
                "source_distribution": {},
                "unmapped_columns": [],
            }

        source_counts: dict[str, int] = {}
        for m in matches:
            source_counts[m.source] = source_counts.get(m.source, 0) + 1

        recognized = sum(1 for m in matches if m.is_recognized)
        unmapped = [m.raw_column for m in matches if m.source == "unmapped"]

        return {
            "total_columns": total,
            "recognized_columns": recognized,
            "recognition_rate": (recognized / total) * 100,
            "source_distribution": source_counts,
            "unmapped_columns": unmapped,
        }
