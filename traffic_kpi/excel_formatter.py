"""
Excel Formatter Module - KPI Report Workbook Generator

Creates formatted Excel workbooks with:
- KPI Summary (totals, ratios, averages, scores, trends, benchmark tiers)
- Daily Data (one row per date, duplicates aggregated)
- Records (validated records as parsed)
- Validation (errors, warnings, suggestions, quality score)
- Column Mapping (raw header resolution audit trail)
- Configuration Log (settings used)
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd
import xlsxwriter
from xlsxwriter.workbook import Workbook
from xlsxwriter.worksheet import Worksheet

from traffic_kpi.config import BENCHMARK_COLORS, OUTPUT_PATH, OUTPUT_SETTINGS
from traffic_kpi.kpi import daily_totals, records_to_frame
from traffic_kpi.logger import debug_watcher, get_logger
from traffic_kpi.validator import get_data_quality_score

if TYPE_CHECKING:
    from collections.abc import Sequence

    from traffic_kpi.models import ColumnMatch, KPISummary, TrafficRecord, ValidationResult

logger = get_logger(__name__)

_TREND_ARROWS = {"up": "▲ up", "down": "▼ down", "stable": "► stable"}


class ExcelFormatter:
    """Creates formatted KPI report workbooks."""

    def __init__(self, output_path: Path | str | None = None):
        """
        Initialize the ExcelFormatter.

        Args:
            output_path: Directory for output files. Defaults to OUTPUT_PATH.
        """
        self.output_path = Path(output_path) if output_path else OUTPUT_PATH
        self.output_path.mkdir(parents=True, exist_ok=True)

        self.workbook: Workbook | None = None
        self.formats: dict[str, Any] = {}

    def _generate_filename(self, label: str = "ALL") -> str:
        """Generate output filename from pattern."""
        timestamp = datetime.now().strftime(OUTPUT_SETTINGS["timestamp_format"])
        return OUTPUT_SETTINGS["workbook_name_pattern"].format(label=label, timestamp=timestamp)

    def _setup_formats(self) -> None:
        """Set up cell formats for the workbook."""
        if self.workbook is None:
            return

        self.formats["header"] = self.workbook.add_format({
            "bold": True,
            "bg_color": "#4472C4",
            "font_color": "#FFFFFF",
            "border": 1,
            "align": "center",
            "valign": "vcenter",
            "text_wrap": True,
        })
        self.formats["title"] = self.workbook.add_format({"bold": True, "font_size": 14})
        self.formats["section"] = self.workbook.add_format({
            "bold": True,
            "bg_color": "#D9E1F2",
            "border": 1,
        })
        self.formats["currency"] = self.workbook.add_format({
            "num_format": OUTPUT_SETTINGS["currency_format"],
            "border": 1,
        })
        self.formats["percentage"] = self.workbook.add_format({
            "num_format": OUTPUT_SETTINGS["percentage_format"],
            "border": 1,
        })
        self.formats["integer"] = self.workbook.add_format({
            "num_format": OUTPUT_SETTINGS["integer_format"],
            "border": 1,
        })
        self.formats["decimal"] = self.workbook.add_format({
            "num_format": OUTPUT_SETTINGS["decimal_format"],
            "border": 1,
        })
        self.formats["default"] = self.workbook.add_format({"border": 1})

        # Benchmark tier formats
        for status in ("excellent", "good", "average", "poor", "expensive"):
            self.formats[f"tier_{status}"] = self.workbook.add_format({
                "bg_color": BENCHMARK_COLORS[status],
                "border": 1,
                "bold": True,
            })

        self.formats["validation_error"] = self.workbook.add_format({
            "bg_color": BENCHMARK_COLORS["poor"],
            "border": 1,
            "text_wrap": True,
        })
        self.formats["validation_warning"] = self.workbook.add_format({
            "bg_color": BENCHMARK_COLORS["average"],
            "border": 1,
            "text_wrap": True,
        })
        self.formats["validation_ok"] = self.workbook.add_format({
            "bg_color": BENCHMARK_COLORS["WHITE"],
            "border": 1,
            "text_wrap": True,
        })

    def _get_column_format(self, column_name: str) -> Any:
        """Get appropriate format for a column based on name."""
        name_lower = column_name.lower()

        if any(kw in name_lower for kw in ["cost", "revenue", "cpc", "cpm", "cpl", "cpa"]):
            return self.formats["currency"]
        elif any(kw in name_lower for kw in ["ctr", "rate", "roi"]):
            return self.formats["percentage"]
        elif any(kw in name_lower for kw in ["impressions", "clicks", "reach", "leads", "conversions"]):
            return self.formats["integer"]
        elif any(kw in name_lower for kw in ["roas", "frequency", "score", "index"]):
            return self.formats["decimal"]
        else:
            return self.formats["default"]

    def _write_frame(self, ws: Worksheet, df: pd.DataFrame, start_row: int = 0) -> None:
        for col_idx, col_name in enumerate(df.columns):
            ws.write(start_row, col_idx, col_name, self.formats["header"])

        for row_offset, row in enumerate(df.itertuples(index=False), start=start_row + 1):
            for col_idx, col_name in enumerate(df.columns):
                value = row[col_idx]
                cell_format = self._get_column_format(str(col_name))
                if value is None or (not isinstance(value, str) and pd.isna(value)):
                    ws.write_blank(row_offset, col_idx, None, cell_format)
                else:
                    ws.write(row_offset, col_idx, value, cell_format)

        for col_idx, col_name in enumerate(df.columns):
            max_width = len(str(col_name))
            for value in df[col_name].head(10):
                if value is not None and not (not isinstance(value, str) and pd.isna(value)):
                    max_width = max(max_width, len(str(value)))
            ws.set_column(col_idx, col_idx, min(max_width + 2, 30))

        ws.freeze_panes(start_row + 1, 0)

    def create_summary_sheet(
        self,
        summary: KPISummary,
        sheet_name: str = "KPI Summary",
    ) -> Worksheet:
        """
        Create the KPI Summary sheet.

        Args:
            summary: KPI snapshot to render.
            sheet_name: Name of the worksheet.

        Returns:
            The created worksheet.
        """
        if self.workbook is None:
            raise RuntimeError("Workbook not initialized")

        ws = self.workbook.add_worksheet(sheet_name)
        ws.write(0, 0, "Traffic KPI Report", self.formats["title"])
        period = f"{summary.start_date or '-'} to {summary.end_date or '-'}"
        ws.write(1, 0, f"Period: {period} ({summary.record_count} records)")

        sections = [
            ("Totals", [
                ("Impressions", "total_impressions"),
                ("Reach", "total_reach"),
                ("Clicks", "total_clicks"),
                ("Cost", "total_cost"),
                ("Conversions", "total_conversions"),
                ("Leads", "total_leads"),
                ("Revenue", "total_revenue"),
            ]),
            ("Ratios", [
                ("CTR (%)", "ctr"),
                ("CPM", "cpm"),
                ("CPC", "cpc"),
                ("CPL", "cpl"),
                ("CPA", "cpa"),
                ("ROAS", "roas"),
                ("ROI (%)", "roi"),
                ("Conversion Rate (%)", "conversion_rate"),
                ("Frequency", "frequency"),
                ("Reach Rate (%)", "reach_rate"),
            ]),
            ("Daily Averages", [
                ("Impressions / day", "average_impressions_per_day"),
                ("Reach / day", "average_reach_per_day"),
                ("Clicks / day", "average_clicks_per_day"),
                ("Cost / day", "average_cost_per_day"),
                ("Conversions / day", "average_conversions_per_day"),
                ("Leads / day", "average_leads_per_day"),
                ("Revenue / day", "average_revenue_per_day"),
            ]),
            ("Scores", [
                ("Quality Score", "quality_score"),
                ("Efficiency Index", "efficiency_index"),
            ]),
        ]

        row = 3
        for title, metrics in sections:
            ws.write(row, 0, title, self.formats["section"])
            ws.write(row, 1, "", self.formats["section"])
            row += 1
            for label, attr in metrics:
                ws.write(row, 0, label, self.formats["default"])
                ws.write_number(row, 1, getattr(summary, attr), self._get_column_format(attr))
                row += 1
            row += 1

        ws.write(row, 0, "Trend (2nd half vs 1st half)", self.formats["section"])
        ws.write(row, 1, "", self.formats["section"])
        row += 1
        for metric, direction in summary.trend.to_dict().items():
            ws.write(row, 0, metric, self.formats["default"])
            ws.write(row, 1, _TREND_ARROWS.get(direction, direction), self.formats["default"])
            row += 1

        row += 1
        ws.write(row, 0, "Benchmarks", self.formats["section"])
        ws.write(row, 1, "", self.formats["section"])
        row += 1
        for metric, status in summary.benchmarks.to_dict().items():
            ws.write(row, 0, metric.upper(), self.formats["default"])
            ws.write(row, 1, status, self.formats.get(f"tier_{status}", self.formats["default"]))
            row += 1

        ws.set_column(0, 0, 32)
        ws.set_column(1, 1, 18)
        return ws

    def create_data_sheet(self, df: pd.DataFrame, sheet_name: str) -> Worksheet:
        if self.workbook is None:
            raise RuntimeError("Workbook not initialized")

        ws = self.workbook.add_worksheet(sheet_name)
        self._write_frame(ws, df)
        return ws

    def create_validation_sheet(
        self,
        validation: ValidationResult,
        sheet_name: str = "Validation",
    ) -> Worksheet:
        """
        Create the Validation sheet.

        Lists every error, warning and suggestion with the data quality score.
        """
        if self.workbook is None:
            raise RuntimeError("Workbook not initialized")

        ws = self.workbook.add_worksheet(sheet_name)
        quality = get_data_quality_score(validation)

        ws.write(0, 0, "Data Quality", self.formats["section"])
        ws.write(0, 1, f"{quality.score} ({quality.level})", self.formats["default"])
        ws.write(1, 0, "Feedback", self.formats["default"])
        ws.write(1, 1, quality.feedback, self.formats["default"])
        ws.write(2, 0, "Skipped rows", self.formats["default"])
        ws.write_number(2, 1, validation.skipped_rows, self.formats["integer"])

        ws.write(4, 0, "Type", self.formats["header"])
        ws.write(4, 1, "Message", self.formats["header"])

        entries = (
            [("ERROR", message, "validation_error") for message in validation.errors]
            + [("WARNING", message, "validation_warning") for message in validation.warnings]
            + [("SUGGESTION", message, "validation_ok") for message in validation.suggestions]
        )
        for row_idx, (kind, message, format_key) in enumerate(entries, start=5):
            ws.write(row_idx, 0, kind, self.formats[format_key])
            ws.write(row_idx, 1, message, self.formats[format_key])

        ws.set_column(0, 0, 16)
        ws.set_column(1, 1, 90)
        ws.freeze_panes(5, 0)
        return ws

    def create_mapping_sheet(
        self,
        column_matches: Sequence[ColumnMatch],
        sheet_name: str = "Column Mapping",
    ) -> Worksheet:
        if self.workbook is None:
            raise RuntimeError("Workbook not initialized")

        ws = self.workbook.add_worksheet(sheet_name)
        columns = ["Raw_Column", "Normalized", "Canonical_Field", "Source"]
        for col_idx, col_name in enumerate(columns):
            ws.write(0, col_idx, col_name, self.formats["header"])

        for row_idx, match in enumerate(column_matches, start=1):
            if match.source == "unmapped":
                row_format = self.formats["validation_warning"]
            else:
                row_format = self.formats["validation_ok"]
            ws.write(row_idx, 0, match.raw_column, row_format)
            ws.write(row_idx, 1, match.normalized, row_format)
            ws.write(row_idx, 2, match.canonical_field or "(dropped)", row_format)
            ws.write(row_idx, 3, match.source, row_format)

        for col_idx, width in enumerate([35, 30, 20, 12]):
            ws.set_column(col_idx, col_idx, width)
        ws.freeze_panes(1, 0)
        return ws

    def create_configuration_log(
        self,
        config: dict[str, Any],
        sheet_name: str = "Configuration Log",
    ) -> Worksheet:
        """
        Create Configuration Log sheet showing settings used.

        Args:
            config: Configuration dictionary.
            sheet_name: Name of the worksheet.

        Returns:
            The created worksheet.
        """
        if self.workbook is None:
            raise RuntimeError("Workbook not initialized")

        ws = self.workbook.add_worksheet(sheet_name)

        ws.write(0, 0, "Configuration Log", self.formats["header"])
        ws.write(0, 1, f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}", self.formats["default"])

        ws.write(2, 0, "Setting", self.formats["header"])
        ws.write(2, 1, "Value", self.formats["header"])

        for row, (key, value) in enumerate(config.items(), start=3):
            text = str(value)
            ws.write(row, 0, key, self.formats["default"])
            ws.write(row, 1, text[:250] if isinstance(value, dict) else text, self.formats["default"])

        ws.set_column(0, 0, 30)
        ws.set_column(1, 1, 80)
        return ws

    def create_kpi_workbook(
        self,
        records: Sequence[TrafficRecord],
        summary: KPISummary,
        validation: ValidationResult | None = None,
        column_matches: Sequence[ColumnMatch] | None = None,
        config: dict[str, Any] | None = None,
        output_filename: str | None = None,
        label: str = "ALL",
    ) -> Path:
        """
        Create a complete KPI workbook with all sheets.

        Args:
            records: Validated records.
            summary: KPI snapshot computed from the records.
            validation: Optional ValidationResult for the Validation sheet.
            column_matches: Optional header resolution for the Column Mapping sheet.
            config: Optional configuration for the Configuration Log.
            output_filename: Custom output filename. If None, auto-generated.
            label: Label used in the auto-generated filename.

        Returns:
            Path to the created workbook.
        """
        if output_filename is None:
            output_filename = self._generate_filename(label)

        output_path = self.output_path / output_filename

        self.workbook = xlsxwriter.Workbook(str(output_path))
        self._setup_formats()

        try:
            self.create_summary_sheet(summary, "KPI Summary")
            self.create_data_sheet(daily_totals(records), "Daily Data")
            self.create_data_sheet(records_to_frame(records), "Records")

            if validation is not None:
                self.create_validation_sheet(validation, "Validation")

            if column_matches is not None:
                self.create_mapping_sheet(column_matches, "Column Mapping")

            if config is not None:
                self.create_configuration_log(config, "Configuration Log")

        finally:
            self.workbook.close()
            self.workbook = None

        logger.info(f"Workbook written: {output_path}")
        return output_path


@debug_watcher
def create_kpi_workbook(
    records: Sequence[TrafficRecord],
    summary: KPISummary,
    validation: ValidationResult | None = None,
    column_matches: Sequence[ColumnMatch] | None = None,
    config: dict[str, Any] | None = None,
    output_path: Path | str | None = None,
    output_filename: str | None = None,
) -> Path:
    """
    Convenience function to create a KPI workbook.

    Args:
        records: Validated records.
        summary: KPI snapshot.
        validation: Optional ValidationResult.
        column_matches: Optional header resolution.
        config: Optional configuration dictionary.
        output_path: Output directory.
        output_filename: Custom filename.

    Returns:
        Path to the created workbook.
    """
    formatter = ExcelFormatter(output_path)
    return formatter.create_kpi_workbook(
        records,
        summary,
        validation,
        column_matches,
        config,
        output_filename,
    )
