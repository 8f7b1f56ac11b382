"""
Traffic KPI Pipeline - End-to-End Execution

Main entry point for turning one ad-platform export into a KPI report:

1. Validate configuration
2. Analyze file structure (can the columns be resolved automatically?)
3. Parse and validate the full file
4. Optionally restrict to a date range
5. Calculate KPIs
6. Export the KPI workbook

Usage:
    python main.py --file <filepath> [--mapping <mapping.json>] [--locale auto]

Examples:
    python main.py --file exports/facebook_ads.csv
    python main.py --file report.xlsx --mapping mapping.json --locale pt-BR
    python main.py --file report.csv --start 2024-01-01 --end 2024-01-31 --no-export
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from traffic_kpi.column_normalizer import ColumnNormalizer
from traffic_kpi.config import (
    DEFAULT_LOCALE,
    SUPPORTED_LOCALES,
    ensure_directories,
    load_config,
    validate_config,
)
from traffic_kpi.excel_formatter import create_kpi_workbook
from traffic_kpi.exceptions import ParseError, TrafficDataError
from traffic_kpi.ingestion import analyze_structure, parse_file, parse_full
from traffic_kpi.kpi import calculate_kpis, filter_by_date_range
from traffic_kpi.logger import get_logger

logger = get_logger("main")


def load_mapping(path: Path | str) -> dict[str, str]:
    """Read an explicit {raw header: canonical field} mapping from JSON."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Mapping file must contain a JSON object: {path}")
    return {str(k): str(v) for k, v in data.items()}


def run_pipeline(
    filepath: Path | str,
    mapping: dict[str, str] | None = None,
    locale: str = DEFAULT_LOCALE,
    output_path: Path | str | None = None,
    export: bool = True,
    start: str | None = None,
    end: str | None = None,
) -> dict[str, Any] | None:
    """
    Run the complete traffic KPI pipeline.

    Args:
        filepath: Path to the export file.
        mapping: Optional explicit column mapping.
        locale: Numeric locale for value parsing.
        output_path: Output directory. If None, uses default.
        export: Whether to write the KPI workbook.
        start: Optional inclusive start date.
        end: Optional inclusive end date.

    Returns:
        Dictionary with records, summary, validation and workbook path,
        or None if the pipeline stopped early.
    """
    start_time = datetime.now()
    logger.info("=" * 60)
    logger.info("TRAFFIC KPI PIPELINE")
    logger.info("=" * 60)

    logger.info("Step 1: Validating configuration...")
    is_valid, errors = validate_config()
    if not is_valid:
        logger.error(f"Configuration errors: {errors}")
        return None
    ensure_directories()

    filepath = Path(filepath)
    normalizer = ColumnNormalizer()

    logger.info(f"Step 2: Analyzing structure of {filepath.name}...")
    analysis = analyze_structure(filepath, normalizer=normalizer)
    if analysis.needs_mapping and not mapping:
        logger.error(f"Columns for {analysis.missing_fields} could not be resolved automatically.")
        logger.error(f"Available columns: {analysis.columns}")
        logger.error("Provide an explicit mapping with --mapping mapping.json")
        return None

    logger.info("Step 3: Parsing and validating...")
    records = parse_full(filepath, explicit_mapping=mapping, locale=locale, normalizer=normalizer)
    validation = parse_file(filepath, explicit_mapping=mapping, locale=locale, normalizer=normalizer)
    logger.info(f"Parsed {len(records)} records ({records[0].date} to {records[-1].date})")

    if start or end:
        logger.info(f"Step 4: Filtering to {start or '...'} - {end or '...'}")
        records = filter_by_date_range(records, start, end)
        logger.info(f"{len(records)} records in range")

    logger.info("Step 5: Calculating KPIs...")
    summary = calculate_kpis(records)
    logger.info(f"  Impressions: {summary.total_impressions:,.0f}")
    logger.info(f"  Clicks: {summary.total_clicks:,.0f}  CTR: {summary.ctr:.2f}%")
    logger.info(f"  Cost: {summary.total_cost:,.2f}  CPC: {summary.cpc:.2f}")
    logger.info(f"  Quality score: {summary.quality_score:.0f}  Efficiency: {summary.efficiency_index:.1f}")
    logger.info(f"  Trend: {summary.trend.to_dict()}")
    logger.info(f"  Benchmarks: {summary.benchmarks.to_dict()}")

    workbook = None
    if export:
        logger.info("Step 6: Exporting workbook...")
        workbook = create_kpi_workbook(
            records,
            summary,
            validation=validation,
            column_matches=normalizer.match_all(analysis.columns, mapping),
            config={**load_config(), "source_file": str(filepath), "locale": locale},
            output_path=output_path,
        )

    elapsed = (datetime.now() - start_time).total_seconds()
    logger.info("=" * 60)
    logger.info(f"PIPELINE COMPLETE in {elapsed:.1f} seconds")
    logger.info("=" * 60)

    return {
        "records": records,
        "summary": summary,
        "validation": validation,
        "workbook": workbook,
    }


def main(argv: list[str] | None = None) -> int:
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Traffic KPI Pipeline - ad-platform export to KPI report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --file exports/facebook_ads.csv
  python main.py --file report.xlsx --mapping mapping.json
  python main.py --file report.csv --locale pt-BR --no-export
        """
    )

    parser.add_argument(
        "--file", "-f",
        type=str,
        required=True,
        help="Path to the CSV/XLSX export"
    )
    parser.add_argument(
        "--mapping", "-m",
        type=str,
        default=None,
        help="JSON file with an explicit {raw column: canonical field} mapping"
    )
    parser.add_argument(
        "--locale", "-l",
        choices=SUPPORTED_LOCALES,
        default=DEFAULT_LOCALE,
        help="Numeric locale for thousands/decimal separators (default: auto)"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output directory (optional, uses default output/ if not provided)"
    )
    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Skip writing the KPI workbook"
    )
    parser.add_argument("--start", type=str, default=None, help="Inclusive start date")
    parser.add_argument("--end", type=str, default=None, help="Inclusive end date")

    args = parser.parse_args(argv)

    try:
        mapping = load_mapping(args.mapping) if args.mapping else None
        result = run_pipeline(
            filepath=args.file,
            mapping=mapping,
            locale=args.locale,
            output_path=args.output,
            export=not args.no_export,
            start=args.start,
            end=args.end,
        )
        return 0 if result is not None else 1

    except ParseError as e:
        logger.error(str(e))
        return 1
    except (TrafficDataError, OSError, ValueError) as e:
        logger.error(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
