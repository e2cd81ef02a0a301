"""
OpsLedger - Excel Report Generation Module.

This module generates Excel reports from report snapshots.
The workbook opens with a Portfolio Summary tab, followed by a
per-project Project Detail tab and a Monthly Spend tab.

Formatting:
    - Currency formatting ($#,##0.00)
    - Budget-state fills (over budget, near limit, on track)
    - Header styling for tables

Classes:
    ExcelReporter: Generates Excel workbooks from report snapshots.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from openpyxl import Workbook
from openpyxl.styles import (
    Alignment,
    Border,
    Font,
    PatternFill,
    Side,
)
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from opsledger.schema import ProjectSummary, ReportSnapshot


class ExcelReporter:
    """
    Generates Excel reports for expense and budget analysis.

    Attributes:
        CURRENCY_FORMAT: Excel number format for money.
        PERCENTAGE_FORMAT: Excel number format for percentages.

    Example:
        >>> reporter = ExcelReporter()
        >>> reporter.generate_report(snapshot, "expense_report.xlsx")
    """

    # Excel number formats
    CURRENCY_FORMAT = '$#,##0.00'
    PERCENTAGE_FORMAT = '0.0%'

    # Budget-state colours
    OVER_BUDGET_FILL = PatternFill(
        start_color="FFC7CE",
        end_color="FFC7CE",
        fill_type="solid"
    )
    NEAR_LIMIT_FILL = PatternFill(
        start_color="FFEB9C",
        end_color="FFEB9C",
        fill_type="solid"
    )
    ON_TRACK_FILL = PatternFill(
        start_color="C6EFCE",
        end_color="C6EFCE",
        fill_type="solid"
    )

    # Header styling
    HEADER_FONT = Font(bold=True, color="FFFFFF")
    HEADER_FILL = PatternFill(
        start_color="2F5496",
        end_color="2F5496",
        fill_type="solid"
    )
    HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")

    THIN_BORDER = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin")
    )

    def generate_report(
        self,
        snapshot: ReportSnapshot,
        output_path: Union[str, Path]
    ) -> None:
        """
        Generates a complete Excel report from a snapshot.

        Creates a workbook with three sheets:
        1. Portfolio Summary - totals and job counts
        2. Project Detail - one row per project
        3. Monthly Spend - trailing monthly totals

        Args:
            snapshot: Complete report snapshot.
            output_path: Path for the output .xlsx file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        workbook = Workbook()
        workbook.remove(workbook.active)

        self._create_summary_sheet(workbook, snapshot)
        self._create_detail_sheet(workbook, snapshot)
        self._create_monthly_sheet(workbook, snapshot)

        workbook.save(output_path)

    def _create_summary_sheet(
        self,
        workbook: Workbook,
        snapshot: ReportSnapshot
    ) -> None:
        """Creates the Portfolio Summary sheet with aggregate metrics."""
        ws = workbook.create_sheet("Portfolio Summary")

        ws["A1"] = "OpsLedger - Portfolio Summary"
        ws["A1"].font = Font(bold=True, size=16)
        ws.merge_cells("A1:D1")

        ws["A3"] = "Report Generated:"
        ws["B3"] = datetime.now().strftime("%Y-%m-%d %H:%M")
        ws["A4"] = "Reference Time:"
        ws["B4"] = snapshot.timestamp.strftime("%Y-%m-%d %H:%M")
        ws["A5"] = "Version:"
        ws["B5"] = snapshot.version

        ws["A7"] = "PORTFOLIO OVERVIEW"
        ws["A7"].font = Font(bold=True, size=14)
        ws.merge_cells("A7:D7")

        metrics = [
            ("Total Budget", snapshot.total_budget),
            ("Total Spent", snapshot.total_spent),
            ("Remaining Budget", snapshot.total_budget - snapshot.total_spent),
        ]

        row = 9
        for label, value in metrics:
            ws[f"A{row}"] = label
            ws[f"A{row}"].font = Font(bold=True)
            ws[f"B{row}"] = float(value)
            ws[f"B{row}"].number_format = self.CURRENCY_FORMAT
            row += 1

        ws[f"A{row}"] = "Projects:"
        ws[f"A{row}"].font = Font(bold=True)
        ws[f"B{row}"] = len(snapshot.projects)
        row += 1
        ws[f"A{row}"] = "Over Budget:"
        ws[f"A{row}"].font = Font(bold=True)
        ws[f"B{row}"] = snapshot.over_budget_count
        if snapshot.over_budget_count > 0:
            ws[f"B{row}"].fill = self.OVER_BUDGET_FILL

        if snapshot.job_stats is not None:
            row += 2
            ws[f"A{row}"] = "JOB SUMMARY"
            ws[f"A{row}"].font = Font(bold=True, size=14)
            row += 2

            stats = snapshot.job_stats
            job_rows = [
                ("Status", "Count"),
                ("Total", stats.total),
                ("Today", stats.today),
                ("Pending", stats.pending),
                ("Completed", stats.completed),
                ("Overdue", stats.overdue),
                ("Cancelled", stats.cancelled),
            ]
            for i, (label, count) in enumerate(job_rows):
                ws[f"A{row}"] = label
                ws[f"B{row}"] = count
                if i == 0:
                    for col in ["A", "B"]:
                        self._style_header(ws[f"{col}{row}"])
                elif label == "Overdue" and count > 0:
                    ws[f"A{row}"].fill = self.OVER_BUDGET_FILL
                for col in ["A", "B"]:
                    ws[f"{col}{row}"].border = self.THIN_BORDER
                row += 1

        self._auto_adjust_columns(ws)

    def _create_detail_sheet(
        self,
        workbook: Workbook,
        snapshot: ReportSnapshot
    ) -> None:
        """Creates the Project Detail sheet with per-project data."""
        ws = workbook.create_sheet("Project Detail")

        headers = [
            "Project",
            "Budget",
            "Total Cost",
            "Remaining",
            "Budget Used",
            "Amount Paid",
            "Balance Due",
            "Payment Status",
            "Expenses",
            "Top Category",
        ]

        for col, header in enumerate(headers, start=1):
            self._style_header(ws.cell(row=1, column=col, value=header))

        for row_idx, summary in enumerate(snapshot.projects, start=2):
            usage = summary.budget_usage
            row_data = [
                summary.project.title,
                float(summary.project.budget),
                float(summary.total_cost),
                float(usage.remaining) if usage else None,
                float(usage.percentage) / 100 if usage else None,
                float(summary.project.amount_paid),
                float(summary.balance_due),
                summary.payment_status.value,
                summary.expense_count,
                self._top_category(summary),
            ]

            for col_idx, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = self.THIN_BORDER

                if col_idx in [2, 3, 4, 6, 7]:
                    cell.number_format = self.CURRENCY_FORMAT
                elif col_idx == 5:
                    cell.number_format = self.PERCENTAGE_FORMAT

            budget_fill = self._get_budget_fill(summary)
            if budget_fill:
                for col_idx in range(1, len(headers) + 1):
                    ws.cell(row=row_idx, column=col_idx).fill = budget_fill

        self._auto_adjust_columns(ws)

    def _create_monthly_sheet(
        self,
        workbook: Workbook,
        snapshot: ReportSnapshot
    ) -> None:
        """Creates the Monthly Spend sheet, oldest month first."""
        ws = workbook.create_sheet("Monthly Spend")

        for col, header in enumerate(["Month", "Amount"], start=1):
            self._style_header(ws.cell(row=1, column=col, value=header))

        for row_idx, (label, amount) in enumerate(snapshot.monthly_totals, start=2):
            ws.cell(row=row_idx, column=1, value=label).border = self.THIN_BORDER
            cell = ws.cell(row=row_idx, column=2, value=float(amount))
            cell.number_format = self.CURRENCY_FORMAT
            cell.border = self.THIN_BORDER

        self._auto_adjust_columns(ws)

    def _style_header(self, cell) -> None:
        cell.font = self.HEADER_FONT
        cell.fill = self.HEADER_FILL
        cell.alignment = self.HEADER_ALIGNMENT
        cell.border = self.THIN_BORDER

    def _top_category(self, summary: ProjectSummary) -> Optional[str]:
        """Returns the category with the largest spend, if any."""
        if not summary.category_totals:
            return None
        return max(summary.category_totals.items(), key=lambda pair: pair[1])[0]

    def _get_budget_fill(self, summary: ProjectSummary) -> Optional[PatternFill]:
        """
        Returns the fill colour for a project's budget state.

        Args:
            summary: Project summary.

        Returns:
            PatternFill for the budget state, or None without a budget.
        """
        usage = summary.budget_usage
        if usage is None:
            return None
        if usage.is_over_budget:
            return self.OVER_BUDGET_FILL
        if usage.is_near_limit:
            return self.NEAR_LIMIT_FILL
        return self.ON_TRACK_FILL

    def _auto_adjust_columns(self, worksheet: Worksheet) -> None:
        """Auto-adjusts column widths based on content."""
        for col_idx in range(1, worksheet.max_column + 1):
            max_length = 0
            column_letter = get_column_letter(col_idx)

            for row_idx in range(1, worksheet.max_row + 1):
                value = worksheet.cell(row=row_idx, column=col_idx).value
                if value is not None:
                    max_length = max(max_length, len(str(value)))

            worksheet.column_dimensions[column_letter].width = max(max_length + 2, 10)

    def generate_filename(self, prefix: str = "expense_report") -> str:
        """
        Generates a timestamped filename for reports.

        Args:
            prefix: Filename prefix. Defaults to "expense_report".

        Returns:
            Filename like "expense_report_2024-12-18_143052.xlsx".
        """
        timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
        return f"{prefix}_{timestamp}.xlsx"
