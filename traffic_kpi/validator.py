"""
Record Validator - turns canonical-keyed rows into TrafficRecords.

Applies a rule table per field, collects errors/warnings/suggestions, runs
per-row consistency checks (CTR range, leads <= clicks, CPC ceiling) and
finally the dataset-level checks.

Error vs warning:
- errors make the whole result invalid and exclude the offending row
- warnings never block; rows carrying only warnings are kept
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from traffic_kpi.column_normalizer import ColumnNormalizer
from traffic_kpi.config import (
    CONSISTENCY_LIMITS,
    DEFAULT_LOCALE,
    REQUIRED_MAPPING_FIELDS,
    SOCIAL_FIELDS,
    SUMMARY_ROW_MIN_FIELDS,
)
from traffic_kpi.dataset_checks import run_dataset_checks
from traffic_kpi.date_parser import DATE_FORMAT_HINT, parse_date
from traffic_kpi.exceptions import InvalidDateFormat
from traffic_kpi.logger import get_logger
from traffic_kpi.models import DataQualityScore, FieldRule, TrafficRecord, ValidationResult
from traffic_kpi.row_filter import count_populated, is_blank, is_summary_row
from traffic_kpi.value_parser import parse_numeric_value

if TYPE_CHECKING:
    from collections.abc import Sequence

    from traffic_kpi.models import RawRow

logger = get_logger(__name__)

# Clicks are optional: Facebook exports leave the column blank on days
# without link clicks.
TRAFFIC_VALIDATION_RULES: tuple[FieldRule, ...] = (
    FieldRule("date", required=True, type="date"),
    FieldRule("impressions", required=True, type="number", min=0),
    FieldRule("clicks", required=False, type="number", min=0),
    FieldRule("cost", required=True, type="number", min=0),
    FieldRule("leads", required=False, type="number", min=0),
    FieldRule("conversions", required=False, type="number", min=0),
    FieldRule("revenue", required=False, type="number", min=0),
    FieldRule("reach", required=False, type="number", min=0),
    FieldRule("campaignname", required=False, type="string"),
)

SOCIAL_MEDIA_RULES: tuple[FieldRule, ...] = tuple(
    FieldRule(field, required=False, type="number", min=0) for field in SOCIAL_FIELDS
)

EMPTY_FILE_ERROR = "File is empty or has no valid data"

_RECORD_NUMBER_FIELDS = ("impressions", "cost", "clicks", "conversions", "leads", "revenue", "reach")


class RecordValidator:
    """
    Validates canonical-keyed rows against a rule table.

    Rows are numbered from 1 in the order they are given, summary rows
    included, so messages point at the same line the user sees.
    """

    def __init__(
        self,
        rules: Sequence[FieldRule] | None = None,
        record_type: str = "traffic",
        locale: str = DEFAULT_LOCALE,
        normalizer: ColumnNormalizer | None = None,
        limits: Mapping[str, float] | None = None,
    ):
        """
        Initialize the RecordValidator.

        Args:
            rules: Field rules; defaults to TRAFFIC_VALIDATION_RULES.
            record_type: "traffic", or "social" to append SOCIAL_MEDIA_RULES.
            locale: Numeric locale passed to the value parser.
            normalizer: Used by the summary-row filter to recognize headers.
            limits: CTR/CPC consistency limits; defaults to CONSISTENCY_LIMITS.
        """
        if record_type not in ("traffic", "social"):
            raise ValueError(f"Unknown record type: {record_type}")

        rule_list = list(rules) if rules is not None else list(TRAFFIC_VALIDATION_RULES)
        if record_type == "social":
            rule_list.extend(SOCIAL_MEDIA_RULES)

        self.rules = tuple(rule_list)
        self.record_type = record_type
        self.locale = locale
        self.normalizer = normalizer or ColumnNormalizer()
        self.limits = dict(limits or CONSISTENCY_LIMITS)
        self.required_fields = [rule.field for rule in self.rules if rule.required]

    def validate(self, rows: Sequence[RawRow]) -> ValidationResult:
        """
        Validate every row and run the dataset-level checks.

        Args:
            rows: Rows keyed by canonical field names.

        Returns:
            ValidationResult; ``data`` holds only rows without errors.
        """
        result = ValidationResult()

        if not rows:
            result.errors.append(EMPTY_FILE_ERROR)
            result.add_suggestion("Check that the file contains data and is a CSV or XLSX export")
            return result

        available = set(rows[0].keys())
        missing = [field for field in self.required_fields if field not in available]
        if missing:
            result.errors.append(f"Missing required columns: {', '.join(missing)}")
            result.add_suggestion(
                f"Make sure your file contains the columns: {', '.join(REQUIRED_MAPPING_FIELDS)}"
            )

        for row_number, row in enumerate(rows, start=1):
            if is_summary_row(row, self.normalizer):
                result.warnings.append(
                    f"Row {row_number}: skipping total/summary row without campaign or date data"
                )
                result.skipped_rows += 1
                logger.debug(f"Row {row_number} classified as summary row")
                continue

            record = self._validate_row(row, row_number, result)
            if record is not None:
                result.data.append(record)

        dataset_warnings, dataset_suggestions = run_dataset_checks(result.data)
        result.merge_messages(dataset_warnings, dataset_suggestions)

        logger.info(
            f"Validated {len(rows)} rows: {len(result.data)} records, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        for warning in result.warnings:
            logger.debug(f"Validation warning: {warning}")

        return result

    def _validate_row(
        self,
        row: RawRow,
        row_number: int,
        result: ValidationResult,
    ) -> TrafficRecord | None:
        errors_before = len(result.errors)
        values: dict[str, Any] = {}

        for rule in self.rules:
            value = row.get(rule.field)

            if is_blank(value):
                if rule.required:
                    if rule.field == "date" and count_populated(row) <= SUMMARY_ROW_MIN_FIELDS:
                        del result.errors[errors_before:]
                        result.warnings.append(
                            f"Row {row_number}: skipping row with insufficient data (possible total row)"
                        )
                        result.skipped_rows += 1
                        return None
                    result.errors.append(f"Row {row_number}: field '{rule.field}' is required")
                elif rule.type == "number":
                    values[rule.field] = 0.0
                continue

            if rule.type == "number":
                self._validate_number(rule, value, row_number, values, result)
            elif rule.type == "date":
                try:
                    values[rule.field] = parse_date(value)
                except InvalidDateFormat:
                    result.errors.append(
                        f"Row {row_number}: '{rule.field}' must be a valid date (value: {value})"
                    )
                    result.add_suggestion(DATE_FORMAT_HINT)
            else:
                values[rule.field] = str(value).strip()

        self._check_consistency(values, row_number, result)

        if "date" not in values and len(result.errors) == errors_before:
            result.errors.append(f"Row {row_number}: field 'date' is required")

        if len(result.errors) > errors_before:
            return None

        social = {field: values[field] for field in SOCIAL_FIELDS if field in values}
        numbers = {field: values.get(field, 0.0) for field in _RECORD_NUMBER_FIELDS}
        return TrafficRecord(
            date=values["date"],
            campaignname=values.get("campaignname"),
            social_metrics=social,
            **numbers,
        )

    def _validate_number(
        self,
        rule: FieldRule,
        value: Any,
        row_number: int,
        values: dict[str, Any],
        result: ValidationResult,
    ) -> None:
        numeric = parse_numeric_value(value, self.locale)
        if numeric is None:
            if rule.required:
                result.errors.append(
                    f"Row {row_number}: '{rule.field}' must be a valid number (value: {value})"
                )
            else:
                result.warnings.append(
                    f"Row {row_number}: '{rule.field}' is not a valid number (value: {value}), using 0"
                )
                values[rule.field] = 0.0
            return

        if rule.min is not None and numeric < rule.min:
            result.errors.append(
                f"Row {row_number}: '{rule.field}' must be greater than or equal to {rule.min:g}"
            )
        if rule.max is not None and numeric > rule.max:
            result.warnings.append(f"Row {row_number}: '{rule.field}' looks unusually high ({numeric:g})")
        values[rule.field] = numeric

    def _check_consistency(
        self,
        values: Mapping[str, Any],
        row_number: int,
        result: ValidationResult,
    ) -> None:
        clicks = values.get("clicks") or 0.0
        impressions = values.get("impressions") or 0.0
        leads = values.get("leads") or 0.0
        cost = values.get("cost") or 0.0

        if clicks > 0 and impressions > 0:
            ctr = clicks / impressions * 100
            if ctr > self.limits["ctr_max_pct"]:
                result.warnings.append(f"Row {row_number}: CTR very high ({ctr:.2f}%) - check the data")
            if ctr < self.limits["ctr_min_pct"]:
                result.warnings.append(f"Row {row_number}: CTR very low ({ctr:.2f}%) - may indicate a problem")

        if clicks > 0 and leads > 0 and leads > clicks:
            result.errors.append(
                f"Row {row_number}: leads ({leads:g}) cannot exceed clicks ({clicks:g})"
            )

        if cost > 0 and clicks > 0:
            cpc = cost / clicks
            if cpc > self.limits["cpc_max"]:
                result.warnings.append(f"Row {row_number}: CPC very high ({cpc:.2f}) - check the values")


def validate_rows(
    rows: Sequence[RawRow],
    record_type: str = "traffic",
    locale: str = DEFAULT_LOCALE,
    normalizer: ColumnNormalizer | None = None,
) -> ValidationResult:
    return RecordValidator(record_type=record_type, locale=locale, normalizer=normalizer).validate(rows)


def get_data_quality_score(result: ValidationResult) -> DataQualityScore:
    """
    Score a validation result from 0 to 100.

    Invalid results score 0. Otherwise each warning costs 10 points and the
    dataset size adds a bonus (>= 30 rows: +10, >= 7: +5) or a penalty
    (< 3 rows: -20).
    """
    if not result.is_valid:
        return DataQualityScore(
            score=0,
            level="poor",
            feedback="Data contains critical errors that prevent analysis",
        )

    data_size = len(result.data)
    score = 100 - len(result.warnings) * 10

    if data_size >= 30:
        score += 10
    elif data_size >= 7:
        score += 5
    elif data_size < 3:
        score -= 20

    score = max(0, min(100, score))

    if score >= 90:
        return DataQualityScore(score, "excellent", "Excellent data quality, ready for advanced analysis")
    if score >= 75:
        return DataQualityScore(score, "good", "Good data quality with minor points of attention")
    if score >= 50:
        return DataQualityScore(score, "fair", "Usable data, but with several inconsistencies")
    return DataQualityScore(score, "poor", "Data quality is compromised, review is recommended")
