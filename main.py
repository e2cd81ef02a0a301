"""
OpsLedger - Main Entry Point.

Derived-status and aggregation engine for small-business operations.
Processes expense, project and job exports and generates budget,
payment and schedule reports.

Usage:
    python main.py <expenses_csv> [--projects <csv>] [--jobs <csv>]
                   [--output-dir <dir>] [--months <n>] [--verbose]

Example:
    python main.py expenses.csv --projects projects.csv --output-dir reports/
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from opsledger import __version__
from opsledger.audit import AuditLogger
from opsledger.calculator import Aggregator
from opsledger.date_logic import DateManager
from opsledger.excel_generator import ExcelReporter
from opsledger.reporting import ReportBuilder
from opsledger.schema import ProjectPaymentStatus, ProjectSummary, ReportSnapshot
from opsledger.status import StatusDeriver
from opsledger.validator import DataValidator, ValidationResult

logger = logging.getLogger(__name__)

MAX_ERRORS_SHOWN = 10


def print_header() -> None:
    """Prints the application header."""
    print("=" * 60)
    print("  OpsLedger - Operations Reporting")
    print(f"  Version: {__version__}")
    print("=" * 60)
    print()


def print_summary(snapshot: ReportSnapshot, validator: DataValidator) -> None:
    """
    Prints a summary of the report run to the console.

    Args:
        snapshot: Report snapshot with results.
        validator: Validator used for money formatting.
    """
    money = validator.format_money

    print("\n" + "=" * 60)
    print("  REPORT COMPLETE")
    print("=" * 60)
    print()

    print("  PORTFOLIO OVERVIEW")
    print("  " + "-" * 40)
    print(f"  Total Budget:      {money(snapshot.total_budget)}")
    print(f"  Total Spent:       {money(snapshot.total_spent)}")
    print(f"  Remaining:         {money(snapshot.total_budget - snapshot.total_spent)}")
    print()

    print("  PAYMENT SUMMARY")
    print("  " + "-" * 40)
    for status in ProjectPaymentStatus:
        count = sum(1 for s in snapshot.projects if s.payment_status == status)
        label = status.value.replace("_", " ").upper() + ":"
        print(f"  {label:<19}{count} projects")
    if snapshot.over_budget_count > 0:
        print(f"  OVER BUDGET:       {snapshot.over_budget_count} projects")

    print(f"\n  Total Projects:    {len(snapshot.projects)}")
    print()

    if snapshot.monthly_totals:
        print("  MONTHLY SPEND")
        print("  " + "-" * 40)
        for label, amount in snapshot.monthly_totals:
            print(f"  {label:<19}{money(amount)}")
        print()

    if snapshot.job_stats is not None:
        stats = snapshot.job_stats
        print("  JOBS")
        print("  " + "-" * 40)
        print(f"  Today:             {stats.today}")
        print(f"  Pending:           {stats.pending}")
        print(f"  Completed:         {stats.completed}")
        print(f"  Overdue:           {stats.overdue}")
        print(f"  Cancelled:         {stats.cancelled}")
        print(f"  Total:             {stats.total}")
        print()


def print_budget_alerts(summaries: List[ProjectSummary], validator: DataValidator) -> None:
    """
    Prints alerts for projects over or near their budget.

    Args:
        summaries: Project summaries.
        validator: Validator used for money formatting.
    """
    flagged = [
        s for s in summaries
        if s.budget_usage is not None
        and (s.budget_usage.is_over_budget or s.budget_usage.is_near_limit)
    ]

    if flagged:
        print("  BUDGET ALERTS")
        print("  " + "-" * 40)
        for summary in flagged:
            usage = summary.budget_usage
            state = "OVER BUDGET" if usage.is_over_budget else "NEAR LIMIT"
            print(f"  * {summary.project.title} [{state}]")
            print(f"    Used: {usage.percentage:.1f}% | "
                  f"Remaining: {validator.format_money(usage.remaining)}")
            print()


def print_errors(result: ValidationResult) -> None:
    """Prints the first validation errors of a result."""
    print(f"\n  VALIDATION ERRORS ({result.error_count} errors):")
    for error in result.errors[:MAX_ERRORS_SHOWN]:
        print(f"     {error}")
    if result.error_count > MAX_ERRORS_SHOWN:
        print(f"     ... and {result.error_count - MAX_ERRORS_SHOWN} more errors")


def load_csv(
    validator: DataValidator,
    csv_path: Path,
    kind: str
) -> Optional[ValidationResult]:
    """
    Loads one CSV file, printing errors.

    Returns:
        The ValidationResult, or None when the file could not be used.
    """
    print(f"  Loading {kind}s: {csv_path}")
    try:
        result = validator.validate_csv(csv_path, kind)
    except FileNotFoundError:
        print(f"\n  ERROR: File not found: {csv_path}")
        return None
    except ValueError as e:
        print(f"\n  ERROR: {e}")
        return None

    if not result.is_valid:
        print_errors(result)
        return None

    print(f"  Validated {result.valid_count} {kind} rows")
    return result


def run_report(
    expenses_path: Path,
    output_dir: Path,
    projects_path: Optional[Path] = None,
    jobs_path: Optional[Path] = None,
    window_months: int = Aggregator.MONTH_WINDOW
) -> int:
    """
    Runs the complete reporting pipeline.

    Args:
        expenses_path: Path to the expenses CSV file.
        output_dir: Directory for output files.
        projects_path: Optional path to the projects CSV file.
        jobs_path: Optional path to the jobs CSV file.
        window_months: Length of the monthly spend window.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    print_header()

    # Step 1: Validate CSV files
    validator = DataValidator()

    expenses = load_csv(validator, expenses_path, "expense")
    if expenses is None:
        return 1

    projects = []
    if projects_path is not None:
        project_result = load_csv(validator, projects_path, "project")
        if project_result is None:
            return 1
        projects = project_result.records

    jobs = None
    if jobs_path is not None:
        job_result = load_csv(validator, jobs_path, "job")
        if job_result is None:
            return 1
        jobs = job_result.records

    # Step 2: Derive summaries against a single reference instant
    print("  Calculating project totals...")
    now = datetime.now()
    date_manager = DateManager()
    builder = ReportBuilder(Aggregator(date_manager), StatusDeriver(date_manager))

    projects = builder.attach_expenses(projects, expenses.records)
    snapshot = builder.build_snapshot(projects, now, jobs, window_months)
    logger.info(
        "Report built for %d projects at %s",
        len(snapshot.projects), now.isoformat()
    )

    # Step 3: Save audit log
    output_dir.mkdir(parents=True, exist_ok=True)

    audit_logger = AuditLogger()
    audit_path = output_dir / audit_logger.generate_filename("opsledger_audit")
    audit_logger.save_to_file(snapshot, audit_path)
    print(f"  Audit log saved: {audit_path}")

    # Step 4: Generate Excel report
    excel_reporter = ExcelReporter()
    excel_path = output_dir / excel_reporter.generate_filename("opsledger_report")
    excel_reporter.generate_report(snapshot, excel_path)
    print(f"  Excel report saved: {excel_path}")

    print_summary(snapshot, validator)
    print_budget_alerts(snapshot.projects, validator)

    print("=" * 60)
    print("  OpsLedger - Report Complete")
    print("=" * 60)

    return 0


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        description="OpsLedger - Budget, payment and schedule reporting"
    )
    parser.add_argument(
        "csv_file",
        type=Path,
        help="Path to expenses CSV file"
    )
    parser.add_argument(
        "--projects",
        type=Path,
        default=None,
        help="Path to projects CSV file"
    )
    parser.add_argument(
        "--jobs",
        type=Path,
        default=None,
        help="Path to jobs CSV file"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Output directory for reports (default: output/)"
    )
    parser.add_argument(
        "--months",
        type=int,
        default=Aggregator.MONTH_WINDOW,
        help=f"Monthly spend window (default: {Aggregator.MONTH_WINDOW})"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    return run_report(
        args.csv_file,
        args.output_dir,
        projects_path=args.projects,
        jobs_path=args.jobs,
        window_months=args.months
    )


if __name__ == "__main__":
    sys.exit(main())
