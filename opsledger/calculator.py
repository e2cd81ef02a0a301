"""
OpsLedger - Aggregation Engine Module.

This module computes derived numeric summaries over expense line items,
projects, advertisers, payments and deliveries. All calculations use
Decimal arithmetic so sums over many line items never drift.

Every operation is total: empty input yields a zero or empty result, and
divisions by zero are guarded with a zero result instead of an error.

Classes:
    Aggregator: Core aggregation engine.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Union

from opsledger.date_logic import DateManager
from opsledger.schema import (
    Advertiser,
    BudgetUsage,
    Delivery,
    DeliveryStatus,
    ExpenseLineItem,
    Payment,
    PaymentStatus,
)

Number = Union[Decimal, int]


class Aggregator:
    """
    Core aggregation engine for dashboard statistics.

    Returns unrounded Decimal values; quantising to cents is left to
    display and to the invoice calculator.

    Attributes:
        date_manager: DateManager instance for month bucketing.

    Example:
        >>> from decimal import Decimal
        >>> aggregator = Aggregator(DateManager())
        >>> items = [ExpenseLineItem(Decimal("2"), Decimal("10.50"))]
        >>> aggregator.total_cost(items)
        Decimal('21.00')
    """

    # Budget indicator thresholds (percent)
    NEAR_LIMIT_THRESHOLD = Decimal("80")
    FULL_PERCENTAGE = Decimal("100")

    # Trailing window for monthly spend charts
    MONTH_WINDOW = 6

    def __init__(self, date_manager: DateManager):
        """
        Initialises the Aggregator with a DateManager.

        Args:
            date_manager: DateManager instance for date calculations.
        """
        self._date_manager = date_manager

    @property
    def date_manager(self) -> DateManager:
        """Returns the DateManager used for month bucketing."""
        return self._date_manager

    def line_item_amount(self, item: ExpenseLineItem) -> Decimal:
        """Returns quantity * price, negative inputs passed through."""
        return item.quantity * item.price

    def total_cost(self, items: Iterable[ExpenseLineItem]) -> Decimal:
        """
        Sums line item amounts.

        Args:
            items: Expense line items.

        Returns:
            Total as Decimal; Decimal('0') for no items.
        """
        return sum(
            (self.line_item_amount(item) for item in items),
            Decimal("0")
        )

    def category_totals(
        self,
        items: Iterable[ExpenseLineItem]
    ) -> Dict[str, Decimal]:
        """
        Groups line item amounts by category.

        Categories appear in order of first occurrence and only when at
        least one item uses them.

        Args:
            items: Expense line items.

        Returns:
            Mapping of category key to total spend.
        """
        totals: Dict[str, Decimal] = {}
        for item in items:
            amount = self.line_item_amount(item)
            totals[item.category] = totals.get(item.category, Decimal("0")) + amount
        return totals

    def sorted_category_totals(
        self,
        items: Iterable[ExpenseLineItem]
    ) -> List[Tuple[str, Decimal]]:
        """Category totals ordered by value, largest first."""
        totals = self.category_totals(items)
        return sorted(totals.items(), key=lambda pair: pair[1], reverse=True)

    def category_percentages(
        self,
        totals: Dict[str, Decimal]
    ) -> Dict[str, Decimal]:
        """
        Computes each category's share of the overall total.

        Args:
            totals: Category totals from category_totals.

        Returns:
            Mapping of category key to percentage (0-100). Every share is
            zero when the overall total is zero.
        """
        overall = sum(totals.values(), Decimal("0"))
        return {
            category: self._percentage(amount, overall)
            for category, amount in totals.items()
        }

    def monthly_totals(
        self,
        items: Iterable[ExpenseLineItem],
        reference_now: datetime,
        window_months: Optional[int] = None
    ) -> List[Tuple[str, Decimal]]:
        """
        Sums line item amounts per calendar month over a trailing window.

        The window holds window_months consecutive months ending with the
        month of reference_now. Every month is present, starting at zero,
        oldest first. Items created outside the window, or without a
        creation timestamp, are ignored.

        Args:
            items: Expense line items.
            reference_now: Reference instant for the pass.
            window_months: Window length. Defaults to MONTH_WINDOW.

        Returns:
            List of (label, total) pairs like ("Dec 2024", Decimal("120")).
        """
        if window_months is None:
            window_months = self.MONTH_WINDOW

        keys = self._date_manager.trailing_months(reference_now, window_months)
        buckets: Dict[Tuple[int, int], Decimal] = {key: Decimal("0") for key in keys}

        for item in items:
            if item.created_at is None:
                continue
            created = self._date_manager.align(item.created_at, reference_now)
            key = (created.year, created.month)
            if key in buckets:
                buckets[key] += self.line_item_amount(item)

        return [
            (self._date_manager.month_label(year, month), buckets[(year, month)])
            for year, month in keys
        ]

    def budget_usage(
        self,
        budget: Decimal,
        spent: Decimal
    ) -> Optional[BudgetUsage]:
        """
        Computes the budget indicator for a project.

        A budget of zero or less means "no budget set"; there is no
        indicator in that case.

        Rules:
        - percentage = min(spent / budget * 100, 100)
        - remaining = budget - spent (negative when over budget)
        - over budget when spent > budget
        - near limit when 80 <= percentage < 100

        Args:
            budget: Project budget.
            spent: Project total cost.

        Returns:
            BudgetUsage, or None when budget <= 0.
        """
        if budget <= Decimal("0"):
            return None

        percentage = min(
            (spent / budget) * self.FULL_PERCENTAGE,
            self.FULL_PERCENTAGE
        )
        return BudgetUsage(
            percentage=percentage,
            remaining=budget - spent,
            is_over_budget=spent > budget,
            is_near_limit=(
                self.NEAR_LIMIT_THRESHOLD <= percentage < self.FULL_PERCENTAGE
            )
        )

    def balance_due(self, total_cost: Decimal, amount_paid: Decimal) -> Decimal:
        """Returns total_cost - amount_paid; negative when overpaid."""
        return total_cost - amount_paid

    def progress_fraction(self, completed: Number, target: Number) -> Decimal:
        """
        Returns completed / target, or zero when target <= 0.

        Args:
            completed: Units completed.
            target: Units targeted.

        Returns:
            Fraction as Decimal.
        """
        if target <= 0:
            return Decimal("0")
        return Decimal(completed) / Decimal(target)

    def completion_rate(self, completed: Number, target: Number) -> Decimal:
        """Returns progress as a percentage (0 when target <= 0)."""
        return self.progress_fraction(completed, target) * self.FULL_PERCENTAGE

    def cost_per_unit(self, total_paid: Decimal, total_units: Number) -> Decimal:
        """
        Returns total_paid / total_units, or zero when there are no units.

        Args:
            total_paid: Amount paid.
            total_units: Units delivered.

        Returns:
            Cost per unit as Decimal.
        """
        if total_units <= 0:
            return Decimal("0")
        return Decimal(total_paid) / Decimal(total_units)

    def average(self, total: Decimal, count: int) -> Decimal:
        """Returns total / count, or zero for an empty set."""
        if count <= 0:
            return Decimal("0")
        return total / Decimal(count)

    def payment_totals(
        self,
        payments: Iterable[Payment]
    ) -> Dict[PaymentStatus, Decimal]:
        """
        Sums payment amounts per status.

        Args:
            payments: Advertiser payments.

        Returns:
            Mapping with an entry for every PaymentStatus.
        """
        totals = {status: Decimal("0") for status in PaymentStatus}
        for payment in payments:
            totals[payment.status] += payment.amount
        return totals

    def delivery_counts(
        self,
        deliveries: Iterable[Delivery]
    ) -> Dict[DeliveryStatus, int]:
        """Counts deliveries per review status, every status present."""
        counts = {status: 0 for status in DeliveryStatus}
        for delivery in deliveries:
            counts[delivery.status] += 1
        return counts

    def ad_type_counts(self, advertisers: Iterable[Advertiser]) -> Dict[str, int]:
        """Counts advertisers per ad type, first-occurrence order."""
        counts: Dict[str, int] = {}
        for advertiser in advertisers:
            for ad_type in advertiser.ad_types:
                counts[ad_type] = counts.get(ad_type, 0) + 1
        return counts

    def completion_by_ad_type(
        self,
        advertisers: Iterable[Advertiser]
    ) -> Dict[str, Tuple[int, int, Decimal]]:
        """
        Sums completed and target videos per ad type.

        An advertiser promoting several ad types counts towards each.

        Args:
            advertisers: Registered advertisers.

        Returns:
            Mapping of ad type to (completed, target, completion rate %).
        """
        sums: Dict[str, List[int]] = {}
        for advertiser in advertisers:
            for ad_type in advertiser.ad_types:
                bucket = sums.setdefault(ad_type, [0, 0])
                bucket[0] += advertiser.completed_videos
                bucket[1] += advertiser.target_videos

        return {
            ad_type: (completed, target, self.completion_rate(completed, target))
            for ad_type, (completed, target) in sums.items()
        }

    def monthly_performance(
        self,
        advertisers: Iterable[Advertiser],
        reference_now: datetime
    ) -> List[Tuple[str, int, int, Decimal]]:
        """
        Sums completed and target videos per registration month.

        Only months with at least one registration appear, oldest first.

        Args:
            advertisers: Registered advertisers.
            reference_now: Reference instant the months are read in.

        Returns:
            List of (label, completed, target, completion rate %).
        """
        sums: Dict[Tuple[int, int], List[int]] = {}
        for advertiser in advertisers:
            if advertiser.created_at is None:
                continue
            created = self._date_manager.align(advertiser.created_at, reference_now)
            bucket = sums.setdefault((created.year, created.month), [0, 0])
            bucket[0] += advertiser.completed_videos
            bucket[1] += advertiser.target_videos

        return [
            (
                self._date_manager.month_label(year, month),
                completed,
                target,
                self.completion_rate(completed, target),
            )
            for (year, month), (completed, target) in sorted(sums.items())
        ]

    def salary_per_video(
        self,
        advertisers: Iterable[Advertiser]
    ) -> List[Tuple[str, Decimal]]:
        """
        Computes each advertiser's salary per completed video.

        Returns:
            List of (advertiser name, cost per video), zero when the
            advertiser has no completed videos.
        """
        return [
            (advertiser.name, self.cost_per_unit(
                advertiser.salary, advertiser.completed_videos
            ))
            for advertiser in advertisers
        ]

    def _percentage(self, part: Decimal, whole: Decimal) -> Decimal:
        """Returns part as a percentage of whole, zero when whole is zero."""
        if whole == Decimal("0"):
            return Decimal("0")
        return (part / whole) * self.FULL_PERCENTAGE
