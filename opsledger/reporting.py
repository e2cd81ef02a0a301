"""
OpsLedger - Report Builder Module.

This module assembles the view models the dashboard pages, exports and
invoice composer consume. It combines the Aggregator and the
StatusDeriver and evaluates each report against a single reference
instant, so every figure in one report agrees with every other.

Classes:
    ExpenseReport: Filtered expense listing with totals.
    AnalyticsSummary: Cross-project spend statistics.
    TeamSummary: Advertiser campaign statistics.
    ReportBuilder: Builds summaries and report snapshots.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from opsledger import __version__
from opsledger.calculator import Aggregator
from opsledger.schema import (
    Advertiser,
    Delivery,
    DeliveryStatus,
    ExpenseLineItem,
    Job,
    Payment,
    PaymentStatus,
    Project,
    ProjectSummary,
    ReportSnapshot,
)
from opsledger.status import StatusDeriver

logger = logging.getLogger(__name__)


@dataclass
class ExpenseReport:
    """
    Expenses matching a report filter, with totals.

    Attributes:
        items: Matching line items.
        total: Sum of matching amounts.
        count: Number of matching items.
        average: Average amount per item (0 when empty).
        category_breakdown: Spend per category.
    """

    items: List[ExpenseLineItem]
    total: Decimal
    count: int
    average: Decimal
    category_breakdown: Dict[str, Decimal] = field(default_factory=dict)


@dataclass
class AnalyticsSummary:
    """Cross-project spend statistics."""

    total_spent: Decimal
    average_project_cost: Decimal
    total_expenses: int
    average_expense_amount: Decimal


@dataclass
class TeamSummary:
    """
    Advertiser campaign statistics.

    Attributes:
        team_size: Number of advertisers.
        total_salary: Sum of salaries.
        total_target_videos: Sum of video targets.
        total_completed_videos: Sum of completed videos (clamped per advertiser).
        completion_rate: Completed as a percentage of target (0-100).
        cost_per_video: Paid amount per completed video.
        total_paid: Sum of paid payments.
        total_unpaid: Sum of unpaid payments.
        delivery_counts: Deliveries per review status.
    """

    team_size: int
    total_salary: Decimal
    total_target_videos: int
    total_completed_videos: int
    completion_rate: Decimal
    cost_per_video: Decimal
    total_paid: Decimal
    total_unpaid: Decimal
    delivery_counts: Dict[DeliveryStatus, int] = field(default_factory=dict)


class ReportBuilder:
    """
    Builds dashboard view models and report snapshots.

    Attributes:
        aggregator: Aggregator for sums and groupings.
        status_deriver: StatusDeriver for payment and job statuses.

    Example:
        >>> dm = DateManager()
        >>> builder = ReportBuilder(Aggregator(dm), StatusDeriver(dm))
        >>> summary = builder.summarise_project(project)
    """

    def __init__(self, aggregator: Aggregator, status_deriver: StatusDeriver):
        """
        Initialises the ReportBuilder.

        Args:
            aggregator: Aggregator instance.
            status_deriver: StatusDeriver instance.
        """
        self._aggregator = aggregator
        self._status_deriver = status_deriver

    def attach_expenses(
        self,
        projects: Iterable[Project],
        expenses: Iterable[ExpenseLineItem]
    ) -> List[Project]:
        """
        Assigns expenses to their projects by project_id.

        Expenses referring to an unknown project get a placeholder project
        titled with the id and no budget.

        Args:
            projects: Projects, expenses already attached are kept. The
                inputs are not modified.
            expenses: Line items carrying a project_id.

        Returns:
            New projects in input order, followed by placeholders.
        """
        by_id: Dict[str, Project] = {
            project.id: replace(project, expenses=list(project.expenses))
            for project in projects
        }

        for expense in expenses:
            project_id = expense.project_id or "unassigned"
            if project_id not in by_id:
                logger.debug("Creating placeholder project %s", project_id)
                by_id[project_id] = Project(id=project_id, title=project_id)
            by_id[project_id].expenses.append(expense)

        return list(by_id.values())

    def summarise_project(self, project: Project) -> ProjectSummary:
        """
        Derives totals, balance, payment status and budget usage.

        Args:
            project: Project with its expenses attached.

        Returns:
            ProjectSummary for the project.
        """
        total_cost = self._aggregator.total_cost(project.expenses)
        return ProjectSummary(
            project=project,
            total_cost=total_cost,
            expense_count=len(project.expenses),
            balance_due=self._aggregator.balance_due(total_cost, project.amount_paid),
            payment_status=self._status_deriver.effective_project_payment_status(
                project.amount_paid, total_cost
            ),
            budget_usage=self._aggregator.budget_usage(project.budget, total_cost),
            category_totals=self._aggregator.category_totals(project.expenses),
        )

    def build_snapshot(
        self,
        projects: Iterable[Project],
        now: datetime,
        jobs: Optional[Iterable[Job]] = None,
        window_months: Optional[int] = None
    ) -> ReportSnapshot:
        """
        Builds a complete report snapshot for one reference instant.

        Args:
            projects: Projects with expenses attached.
            now: Reference instant for every derivation in the snapshot.
            jobs: Optional jobs to count.
            window_months: Monthly window length. Defaults to the
                aggregator's MONTH_WINDOW.

        Returns:
            ReportSnapshot ready for export.
        """
        summaries = [self.summarise_project(project) for project in projects]
        all_expenses = [
            expense for summary in summaries for expense in summary.project.expenses
        ]

        snapshot = ReportSnapshot(
            timestamp=now,
            version=__version__,
            projects=summaries,
            total_budget=sum(
                (s.project.budget for s in summaries), Decimal("0")
            ),
            total_spent=sum((s.total_cost for s in summaries), Decimal("0")),
            over_budget_count=sum(
                1 for s in summaries
                if s.budget_usage is not None and s.budget_usage.is_over_budget
            ),
            monthly_totals=self._aggregator.monthly_totals(
                all_expenses, now, window_months
            ),
            job_stats=(
                self._status_deriver.job_stats(jobs, now) if jobs is not None else None
            ),
        )

        logger.debug(
            "Built snapshot with %d projects and %d expenses",
            len(summaries), len(all_expenses)
        )
        return snapshot

    def analytics_summary(self, projects: Iterable[Project]) -> AnalyticsSummary:
        """
        Computes cross-project averages.

        Args:
            projects: Projects with expenses attached.

        Returns:
            AnalyticsSummary; averages are zero for empty input.
        """
        projects = list(projects)
        expenses = [expense for project in projects for expense in project.expenses]
        total_spent = self._aggregator.total_cost(expenses)

        return AnalyticsSummary(
            total_spent=total_spent,
            average_project_cost=self._aggregator.average(total_spent, len(projects)),
            total_expenses=len(expenses),
            average_expense_amount=self._aggregator.average(total_spent, len(expenses)),
        )

    def expense_report(
        self,
        expenses: Iterable[ExpenseLineItem],
        date_from: date,
        date_to: date,
        now: datetime,
        project_id: Optional[str] = None,
        category: Optional[str] = None
    ) -> ExpenseReport:
        """
        Filters expenses by creation day, project and category.

        The day range is inclusive at both ends. Expenses without a
        creation timestamp never match. "all" or None disables the
        project and category filters.

        Args:
            expenses: Line items to filter.
            date_from: First day of the range.
            date_to: Last day of the range.
            now: Reference instant whose zone the days are read in.
            project_id: Project filter.
            category: Category filter.

        Returns:
            ExpenseReport for the matching items.
        """
        date_manager = self._aggregator.date_manager
        matches = []
        for expense in expenses:
            if expense.created_at is None:
                continue
            if not date_manager.is_within_period(expense.created_at, date_from, date_to, now):
                continue
            if project_id not in (None, "all") and expense.project_id != project_id:
                continue
            if category not in (None, "all") and expense.category != category:
                continue
            matches.append(expense)

        total = self._aggregator.total_cost(matches)
        return ExpenseReport(
            items=matches,
            total=total,
            count=len(matches),
            average=self._aggregator.average(total, len(matches)),
            category_breakdown=self._aggregator.category_totals(matches),
        )

    def team_summary(
        self,
        advertisers: Iterable[Advertiser],
        payments: Iterable[Payment] = (),
        deliveries: Iterable[Delivery] = ()
    ) -> TeamSummary:
        """
        Computes the advertiser dashboard and report figures.

        Cost per video divides paid payments by completed videos.

        Args:
            advertisers: Registered advertisers.
            payments: Advertiser payments.
            deliveries: Submitted deliveries.

        Returns:
            TeamSummary for the team.
        """
        advertisers = list(advertisers)
        total_target = sum(a.target_videos for a in advertisers)
        total_completed = sum(a.completed_videos for a in advertisers)
        payment_totals = self._aggregator.payment_totals(payments)

        return TeamSummary(
            team_size=len(advertisers),
            total_salary=sum((a.salary for a in advertisers), Decimal("0")),
            total_target_videos=total_target,
            total_completed_videos=total_completed,
            completion_rate=self._aggregator.completion_rate(
                total_completed, total_target
            ),
            cost_per_video=self._aggregator.cost_per_unit(
                payment_totals[PaymentStatus.PAID], total_completed
            ),
            total_paid=payment_totals[PaymentStatus.PAID],
            total_unpaid=payment_totals[PaymentStatus.UNPAID],
            delivery_counts=self._aggregator.delivery_counts(deliveries),
        )
