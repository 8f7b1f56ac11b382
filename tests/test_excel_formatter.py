"""
Tests for the KPI workbook generator.
"""

import sys
from pathlib import Path

from openpyxl import load_workbook

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from traffic_kpi.column_normalizer import ColumnNormalizer
from traffic_kpi.excel_formatter import ExcelFormatter, create_kpi_workbook
from traffic_kpi.kpi import calculate_kpis
from traffic_kpi.models import KPISummary, TrafficRecord, ValidationResult


class TestExcelFormatter:
    """Tests for ExcelFormatter class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.records = [
            TrafficRecord(date="2024-01-01", impressions=1000, clicks=50, cost=100.0, campaignname="A"),
            TrafficRecord(date="2024-01-01", impressions=500, clicks=10, cost=40.0, campaignname="B"),
            TrafficRecord(date="2024-01-02", impressions=2000, clicks=150, cost=300.5),
        ]
        self.summary = calculate_kpis(self.records)

    def test_minimal_workbook(self, tmp_path):
        path = create_kpi_workbook(self.records, self.summary, output_path=tmp_path, output_filename="report.xlsx")

        assert path == tmp_path / "report.xlsx"
        wb = load_workbook(path)
        assert wb.sheetnames == ["KPI Summary", "Daily Data", "Records"]

    def test_full_workbook(self, tmp_path):
        validation = ValidationResult(
            warnings=["Row 4: skipping total/summary row without campaign or date data"],
            suggestions=["Sort the data by date for better analysis"],
            data=list(self.records),
            skipped_rows=1,
        )
        matches = ColumnNormalizer().match_all(["Day", "Impressions", "Foo", "Bar"], {"Bar": "none"})

        path = create_kpi_workbook(
            self.records,
            self.summary,
            validation=validation,
            column_matches=matches,
            config={"locale": "auto", "thresholds": {"ctr": 1.0}},
            output_path=tmp_path,
        )

        wb = load_workbook(path)
        assert wb.sheetnames == [
            "KPI Summary", "Daily Data", "Records", "Validation", "Column Mapping", "Configuration Log",
        ]

        mapping = wb["Column Mapping"]
        assert [c.value for c in mapping[2]] == ["Day", "day", "date", "synonym"]
        assert mapping["C5"].value == "(dropped)"

        validation_sheet = wb["Validation"]
        assert validation_sheet["A6"].value == "WARNING"
        assert validation_sheet["B3"].value == 1

    def test_daily_data_aggregates_dates(self, tmp_path):
        path = create_kpi_workbook(self.records, self.summary, output_path=tmp_path, output_filename="daily.xlsx")

        daily = load_workbook(path)["Daily Data"]
        header = [c.value for c in daily[1]]
        assert header[:2] == ["date", "impressions"]
        assert daily["A2"].value == "2024-01-01"
        assert daily["B2"].value == 1500
        assert daily.max_row == 3

    def test_summary_values(self, tmp_path):
        path = create_kpi_workbook(self.records, self.summary, output_path=tmp_path, output_filename="summary.xlsx")

        ws = load_workbook(path)["KPI Summary"]
        values = {ws.cell(row=r, column=1).value: ws.cell(row=r, column=2).value for r in range(1, ws.max_row + 1)}
        assert values["Impressions"] == 3500
        assert values["Clicks"] == 210
        assert values["Reach / day"] == 0
        assert values["CTR"] == "excellent"

    def test_empty_records(self, tmp_path):
        path = create_kpi_workbook([], KPISummary(), output_path=tmp_path, output_filename="empty.xlsx")

        wb = load_workbook(path)
        assert wb["Records"].max_row == 1

    def test_generated_filename(self, tmp_path):
        formatter = ExcelFormatter(tmp_path)
        name = formatter._generate_filename("JAN")
        assert name.startswith("KPI_Report_JAN_")
        assert name.endswith(".xlsx")
