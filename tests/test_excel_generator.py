"""
OpsLedger - Excel Generator Tests.

Unit tests for ExcelReporter class.
Tests ensure correct sheet creation, data population,
and formatting application.
"""

import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from openpyxl import load_workbook

from opsledger.calculator import Aggregator
from opsledger.date_logic import DateManager
from opsledger.excel_generator import ExcelReporter
from opsledger.reporting import ReportBuilder
from opsledger.schema import ExpenseLineItem, Job, Project, ReportSnapshot
from opsledger.status import StatusDeriver


def create_test_snapshot(num_projects: int = 3, with_jobs: bool = True) -> ReportSnapshot:
    """Creates a test snapshot with the given number of projects."""
    projects = []
    for i in range(num_projects):
        budget = Decimal(1000 * (i + 1))
        spend_factor = [Decimal("0.5"), Decimal("0.9"), Decimal("1.2")][i % 3]
        projects.append(Project(
            id=f"p{i + 1}",
            title=f"Project_{i + 1}",
            budget=budget,
            amount_paid=Decimal("100"),
            expenses=[
                ExpenseLineItem(
                    Decimal("1"),
                    budget * spend_factor,
                    category="Labor",
                    created_at=datetime(2024, 12, 1),
                ),
            ],
        ))

    jobs = [Job("j1", "2024-12-17", "09:00")] if with_jobs else None

    dm = DateManager()
    builder = ReportBuilder(Aggregator(dm), StatusDeriver(dm))
    return builder.build_snapshot(projects, datetime(2024, 12, 18, 14, 30, 0), jobs)


def sheet_values(ws) -> list:
    """Returns every non-empty cell value of a worksheet as text."""
    return [str(cell.value) for row in ws.iter_rows() for cell in row if cell.value is not None]


class TestExcelReporterUnit:
    """Unit tests for ExcelReporter."""

    def setup_method(self) -> None:
        """Initialise ExcelReporter for each test."""
        self.reporter = ExcelReporter()

    def generate(self, snapshot: ReportSnapshot, tmpdir: str):
        """Generates a report and loads it back."""
        output_path = Path(tmpdir) / "test_report.xlsx"
        self.reporter.generate_report(snapshot, output_path)
        return load_workbook(output_path)

    def test_generate_report_creates_file(self) -> None:
        """Verify report generation creates a file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            output_path = Path(tmpdir) / "reports" / "test_report.xlsx"
            self.reporter.generate_report(create_test_snapshot(), output_path)

            assert output_path.exists()

    def test_report_has_three_sheets(self) -> None:
        """Verify the summary, detail and monthly sheets in order."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(), tmpdir)

            assert workbook.sheetnames == [
                "Portfolio Summary", "Project Detail", "Monthly Spend"
            ]

    def test_summary_sheet_has_title_and_metrics(self) -> None:
        """Verify the summary title and portfolio metric labels."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(), tmpdir)
            ws = workbook["Portfolio Summary"]
            values = sheet_values(ws)

            assert "OpsLedger" in str(ws["A1"].value)
            assert "Total Budget" in values
            assert "Total Spent" in values
            assert "Remaining Budget" in values

    def test_summary_sheet_has_job_table(self) -> None:
        """Verify job counts appear when jobs were part of the run."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(), tmpdir)
            values = sheet_values(workbook["Portfolio Summary"])

            assert "JOB SUMMARY" in values
            assert "Overdue" in values

    def test_summary_sheet_without_jobs(self) -> None:
        """Verify the job table is omitted without jobs."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(with_jobs=False), tmpdir)
            values = sheet_values(workbook["Portfolio Summary"])

            assert "JOB SUMMARY" not in values

    def test_detail_sheet_has_headers(self) -> None:
        """Verify Project Detail has the expected headers."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(), tmpdir)
            headers = [cell.value for cell in workbook["Project Detail"][1]]

            assert "Project" in headers
            assert "Budget" in headers
            assert "Total Cost" in headers
            assert "Budget Used" in headers
            assert "Payment Status" in headers

    def test_detail_sheet_row_count_matches_projects(self) -> None:
        """Verify one data row per project."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(7), tmpdir)
            ws = workbook["Project Detail"]

            data_rows = sum(1 for row in ws.iter_rows(min_row=2) if row[0].value)
            assert data_rows == 7

    def test_detail_sheet_values(self) -> None:
        """Verify a project's figures and payment status."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(1), tmpdir)
            ws = workbook["Project Detail"]

            assert ws.cell(row=2, column=1).value == "Project_1"
            assert ws.cell(row=2, column=2).value == 1000
            assert ws.cell(row=2, column=3).value == 500
            assert ws.cell(row=2, column=5).value == 0.5
            assert ws.cell(row=2, column=8).value == "partially_paid"
            assert ws.cell(row=2, column=10).value == "Labor"

    def test_currency_formatting_applied(self) -> None:
        """Verify currency formatting on money columns."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(1), tmpdir)
            ws = workbook["Project Detail"]

            assert ws.cell(row=2, column=2).number_format == ExcelReporter.CURRENCY_FORMAT
            assert ws.cell(row=2, column=5).number_format == ExcelReporter.PERCENTAGE_FORMAT

    def test_budget_fills(self) -> None:
        """Verify on-track, near-limit and over-budget rows are coloured."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(3), tmpdir)
            ws = workbook["Project Detail"]

            fills = [ws.cell(row=r, column=1).fill.start_color.rgb for r in (2, 3, 4)]

            assert fills[0].endswith("C6EFCE")
            assert fills[1].endswith("FFEB9C")
            assert fills[2].endswith("FFC7CE")

    def test_monthly_sheet(self) -> None:
        """Verify the monthly sheet lists the window oldest first."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(1), tmpdir)
            ws = workbook["Monthly Spend"]

            labels = [row[0].value for row in ws.iter_rows(min_row=2)]
            assert labels == ["Jul 2024", "Aug 2024", "Sep 2024",
                              "Oct 2024", "Nov 2024", "Dec 2024"]
            assert ws.cell(row=7, column=2).value == 500

    def test_report_with_no_projects(self) -> None:
        """Verify an empty portfolio still produces a workbook."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = self.generate(create_test_snapshot(0), tmpdir)
            ws = workbook["Project Detail"]

            assert ws.max_row == 1

    def test_generate_filename(self) -> None:
        """Verify filename generation format."""
        filename = self.reporter.generate_filename("opsledger_report")

        assert filename.startswith("opsledger_report_")
        assert filename.endswith(".xlsx")
