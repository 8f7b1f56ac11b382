"""
Data ingestion module.

Two-phase upload protocol:
1. analyze_structure() reads a preview slice and reports whether the four
   required fields resolve from the headers alone.
2. parse_full() loads the whole file, applies automatic or explicit column
   mapping, validates, and returns records sorted by date.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from traffic_kpi.column_normalizer import ColumnNormalizer
from traffic_kpi.config import DEFAULT_LOCALE
from traffic_kpi.exceptions import ParseError, StructuralError
from traffic_kpi.file_loader import FileSource, frame_to_rows, load_file, load_rows, source_name
from traffic_kpi.logger import debug_watcher, get_logger
from traffic_kpi.models import StructureAnalysis, TrafficRecord, ValidationResult
from traffic_kpi.row_filter import is_blank, is_summary_row
from traffic_kpi.validator import EMPTY_FILE_ERROR, RecordValidator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from traffic_kpi.models import RawRow

# Get logger instance
logger = get_logger(__name__)


def apply_column_mapping(
    rows: Sequence[RawRow],
    resolution: Mapping[str, str | None],
) -> list[RawRow]:
    """
    Re-key raw rows by canonical field.

    Args:
        rows: Rows keyed by raw header.
        resolution: Raw header -> canonical field; None drops the column.
            Headers missing from the resolution keep their raw name.

    Returns:
        New rows keyed by canonical field. When several headers resolve to the
        same field, the first non-empty value wins.
    """
    mapped_rows = []
    for row in rows:
        mapped: RawRow = {}
        for raw_column, value in row.items():
            field = resolution.get(raw_column, raw_column)
            if field is None:
                continue
            if field in mapped and not is_blank(mapped[field]):
                continue
            mapped[field] = value
        mapped_rows.append(mapped)
    return mapped_rows


@debug_watcher
def analyze_structure(
    source: FileSource,
    preview_rows: int = 10,
    normalizer: ColumnNormalizer | None = None,
) -> StructureAnalysis:
    """
    Decide from a preview slice whether manual column mapping is needed.

    Args:
        source: Path or uploaded binary file.
        preview_rows: Number of data rows to keep after summary filtering.
        normalizer: Optional ColumnNormalizer (custom synonym table).

    Returns:
        StructureAnalysis with the raw columns and the needs_mapping flag.

    Raises:
        StructuralError: If the file is unreadable or has no data rows, or if
            the required columns resolve but every preview row is a summary row.
    """
    normalizer = normalizer or ColumnNormalizer()

    # Read extra rows so trailing totals don't shrink the preview
    df = load_file(source, nrows=preview_rows * 2 + 5)
    if df.empty:
        raise StructuralError(f"{EMPTY_FILE_ERROR}: {source_name(source)}")

    columns = list(df.columns)
    resolution = normalizer.resolve_columns(columns)
    mapped = apply_column_mapping(frame_to_rows(df), resolution)
    preview = [row for row in mapped if not is_summary_row(row, normalizer)][:preview_rows]

    missing = normalizer.missing_required(columns)
    # Preview rows are judged only once every required header resolves
    if not preview and not missing:
        raise StructuralError(
            f"No data rows remain after removing summary rows: {source_name(source)}"
        )

    analysis = StructureAnalysis(
        columns=columns,
        needs_mapping=bool(missing),
        resolved_columns=resolution,
        missing_fields=missing,
        preview_rows=len(preview),
    )

    if analysis.needs_mapping:
        logger.warning(f"{source_name(source)}: manual mapping needed for {missing}")
    else:
        logger.info(f"{source_name(source)}: all required columns resolved automatically")
    return analysis


def parse_file(
    source: FileSource,
    explicit_mapping: Mapping[str, str] | None = None,
    locale: str = DEFAULT_LOCALE,
    record_type: str = "traffic",
    normalizer: ColumnNormalizer | None = None,
) -> ValidationResult:
    """
    Load, map and validate a whole file without raising on validation errors.

    Args:
        source: Path or uploaded binary file.
        explicit_mapping: Raw header -> canonical field; "none" drops a column.
        locale: Numeric locale for the value parser.
        record_type: "traffic" or "social".
        normalizer: Optional ColumnNormalizer (custom synonym table).

    Returns:
        ValidationResult from the record validator.

    Raises:
        StructuralError: If the file is unreadable, empty, or every row is a
            summary row.
    """
    normalizer = normalizer or ColumnNormalizer()

    columns, rows = load_rows(source)
    if not rows:
        raise StructuralError(f"{EMPTY_FILE_ERROR}: {source_name(source)}")

    matches = normalizer.match_all(columns, explicit_mapping)
    stats = normalizer.get_mapping_statistics(matches)
    if stats["unmapped_columns"]:
        logger.info(f"Columns kept as extra data: {stats['unmapped_columns']}")

    resolution = {m.raw_column: m.canonical_field for m in matches}
    mapped_rows = apply_column_mapping(rows, resolution)

    validator = RecordValidator(record_type=record_type, locale=locale, normalizer=normalizer)
    result = validator.validate(mapped_rows)

    if result.skipped_rows == len(rows):
        missing = normalizer.missing_required(columns, explicit_mapping)
        detail = f" (unresolved columns: {', '.join(missing)})" if missing else ""
        raise StructuralError(f"No data rows remain after removing summary rows{detail}")

    return result


def format_parse_error(result: ValidationResult) -> str:
    lines = ["Validation failed:"]
    lines.extend(f"- {error}" for error in result.errors)
    if result.suggestions:
        lines.append("Suggestions:")
        lines.extend(f"- {suggestion}" for suggestion in result.suggestions)
    return "\n".join(lines)


@debug_watcher
def parse_full(
    source: FileSource,
    explicit_mapping: Mapping[str, str] | None = None,
    locale: str = DEFAULT_LOCALE,
    record_type: str = "traffic",
    normalizer: ColumnNormalizer | None = None,
) -> list[TrafficRecord]:
    """
    Parse a file into records sorted ascending by date.

    Args:
        source: Path or uploaded binary file.
        explicit_mapping: Raw header -> canonical field; takes precedence over
            automatic normalization, "none" drops the column.
        locale: Numeric locale for the value parser.
        record_type: "traffic" or "social".
        normalizer: Optional ColumnNormalizer (custom synonym table).

    Returns:
        Validated records sorted by date.

    Raises:
        StructuralError: If the file cannot be used at all.
        ParseError: If validation produced errors or no record survived.
    """
    result = parse_file(
        source,
        explicit_mapping=explicit_mapping,
        locale=locale,
        record_type=record_type,
        normalizer=normalizer,
    )

    if not result.is_valid:
        raise ParseError(format_parse_error(result), result)
    if not result.data:
        raise ParseError("No valid records found in file", result)

    for warning in result.warnings:
        logger.warning(warning)

    return sorted(result.data, key=lambda record: record.date)
