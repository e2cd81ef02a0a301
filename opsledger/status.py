"""
OpsLedger - Status Deriver Module.

This module derives the effective status of jobs, projects, advertisers,
payments and deliveries from stored fields and a reference instant.

Effective statuses are computed at read time. The only stored-status
values this module produces are the ones in explicit patches
(completion toggles, payment approvals, delivery reviews), and "overdue"
is never one of them.

Classes:
    JobStatusBatch: Result of deriving statuses for many jobs.
    StatusDeriver: Status rules and status-changing patches.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from opsledger.date_logic import DateManager, InvalidScheduleError
from opsledger.schema import (
    Advertiser,
    AdvertiserProgress,
    DeliveryPatch,
    DeliveryStatus,
    Job,
    JobPatch,
    JobStats,
    JobStatus,
    PaymentPatch,
    PaymentStatus,
    ProjectPaymentPatch,
    ProjectPaymentStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class JobStatusBatch:
    """
    Effective statuses for a batch of jobs.

    Attributes:
        statuses: Effective status per job id, in input order.
        errors: Schedule errors per job id for skipped jobs.
    """

    statuses: Dict[str, JobStatus] = field(default_factory=dict)
    errors: Dict[str, InvalidScheduleError] = field(default_factory=dict)


class StatusDeriver:
    """
    Derives effective statuses from stored fields.

    Every method that depends on time takes the reference instant as a
    parameter. Callers evaluating many records snapshot "now" once and
    pass the same value to every call.

    Attributes:
        date_manager: DateManager instance for schedule parsing.

    Example:
        >>> deriver = StatusDeriver(DateManager())
        >>> job = Job("j1", "2024-12-18", "09:00")
        >>> deriver.effective_job_status(job, datetime(2024, 12, 18, 10, 0))
        <JobStatus.OVERDUE: 'overdue'>
    """

    DATE_FILTERS = ("all", "today", "upcoming", "overdue", "completed")
    UPCOMING_LIMIT = 5

    def __init__(self, date_manager: DateManager):
        """
        Initialises the StatusDeriver with a DateManager.

        Args:
            date_manager: DateManager instance for date calculations.
        """
        self._date_manager = date_manager

    def effective_job_status(self, job: Job, now: datetime) -> JobStatus:
        """
        Computes the status a job is displayed and counted with.

        Rules, in priority order:
        - cancelled stays cancelled
        - a completed job is completed, even when scheduled in the past
        - a schedule strictly before now (to the minute) is overdue
        - anything else is pending

        Args:
            job: Job record.
            now: Reference instant for the derivation pass.

        Returns:
            Effective JobStatus.

        Raises:
            InvalidScheduleError: If the job's date or time is malformed
                and the rule reaches the schedule comparison.
        """
        if job.stored_status == JobStatus.CANCELLED:
            return JobStatus.CANCELLED
        if job.is_completed:
            return JobStatus.COMPLETED

        scheduled = self._date_manager.combine_schedule(
            job.scheduled_date, job.scheduled_time, now
        )
        if scheduled < self._date_manager.truncate_to_minute(now):
            return JobStatus.OVERDUE
        return JobStatus.PENDING

    def derive_job_statuses(
        self,
        jobs: Iterable[Job],
        now: datetime
    ) -> JobStatusBatch:
        """
        Derives effective statuses for many jobs against one instant.

        A job with a malformed schedule is skipped and reported; the rest
        of the batch is still derived.

        Args:
            jobs: Job records.
            now: Reference instant shared by the whole batch.

        Returns:
            JobStatusBatch with statuses and per-job errors.
        """
        batch = JobStatusBatch()
        for job in jobs:
            try:
                batch.statuses[job.id] = self.effective_job_status(job, now)
            except InvalidScheduleError as exc:
                logger.warning("Skipping job %s: %s", job.id, exc)
                batch.errors[job.id] = exc

        logger.debug(
            "Derived %d job statuses (%d skipped)",
            len(batch.statuses), len(batch.errors)
        )
        return batch

    def toggle_job_completion(
        self,
        job: Job,
        completed: bool,
        now: datetime
    ) -> JobPatch:
        """
        Builds the patch for marking a job completed or pending again.

        Args:
            job: Job being toggled.
            completed: New completion flag.
            now: Instant recorded as completed_at.

        Returns:
            JobPatch with is_completed, stored_status and completed_at.
        """
        if completed:
            return JobPatch(
                is_completed=True,
                stored_status=JobStatus.COMPLETED,
                completed_at=now
            )
        return JobPatch(
            is_completed=False,
            stored_status=JobStatus.PENDING,
            completed_at=None
        )

    def job_stats(self, jobs: Iterable[Job], now: datetime) -> JobStats:
        """
        Counts jobs per effective status for one derivation pass.

        Jobs whose status cannot be derived from a malformed schedule are
        left out of every count, so the per-status counts always add up to
        total. Cancelled and completed jobs are counted regardless of their
        schedule, and only join the today count when their date parses.

        Args:
            jobs: Job records.
            now: Reference instant shared by the whole pass.

        Returns:
            JobStats for the pass.
        """
        stats = JobStats()
        today = now.date()

        for job in jobs:
            try:
                status = self.effective_job_status(job, now)
            except InvalidScheduleError as exc:
                logger.warning("Job %s left out of stats: %s", job.id, exc)
                continue

            stats.total += 1
            if status == JobStatus.PENDING:
                stats.pending += 1
            elif status == JobStatus.COMPLETED:
                stats.completed += 1
            elif status == JobStatus.OVERDUE:
                stats.overdue += 1
            else:
                stats.cancelled += 1

            try:
                scheduled_day = self._date_manager.parse_date(job.scheduled_date)
            except InvalidScheduleError:
                logger.debug("Job %s has no readable date for today's count", job.id)
                continue
            if scheduled_day == today:
                stats.today += 1

        return stats

    def filter_jobs(
        self,
        jobs: Iterable[Job],
        now: datetime,
        date_filter: str = "all",
        person_name: Optional[str] = None,
        job_type: Optional[str] = None,
        search_query: Optional[str] = None
    ) -> List[Job]:
        """
        Filters jobs the way the schedule view does.

        Date filters:
        - today: scheduled on the reference date
        - upcoming: scheduled after the reference date and not completed
        - overdue: effective status is overdue
        - completed: completion flag set
        - all: no date filtering

        Text filters are case-insensitive substring matches.

        Args:
            jobs: Job records.
            now: Reference instant shared by the whole pass.
            date_filter: One of DATE_FILTERS.
            person_name: Substring of the person name.
            job_type: Job type value, or "all".
            search_query: Substring of name, title, location or description.

        Returns:
            Matching jobs in input order. Jobs with malformed schedules are
            dropped when a date filter needs their schedule.

        Raises:
            ValueError: If date_filter is unknown.
        """
        if date_filter not in self.DATE_FILTERS:
            raise ValueError(f"Unknown date filter: {date_filter}")

        matches = []
        for job in jobs:
            try:
                if not self._matches_date_filter(job, now, date_filter):
                    continue
            except InvalidScheduleError as exc:
                logger.warning("Job %s dropped from filter: %s", job.id, exc)
                continue

            if person_name and person_name.lower() not in job.person_name.lower():
                continue
            if job_type and job_type != "all" and job.job_type.value != job_type:
                continue
            if search_query and not self._matches_search(job, search_query):
                continue

            matches.append(job)

        return matches

    def upcoming_jobs(
        self,
        jobs: Iterable[Job],
        now: datetime,
        limit: Optional[int] = None
    ) -> List[Job]:
        """
        Lists open jobs soonest first, overdue ones included.

        Args:
            jobs: Job records.
            now: Reference instant for the pass.
            limit: Maximum number of jobs. Defaults to UPCOMING_LIMIT.

        Returns:
            Jobs that are neither completed nor cancelled, ascending by
            scheduled instant.
        """
        if limit is None:
            limit = self.UPCOMING_LIMIT

        open_jobs = []
        for job in jobs:
            if job.is_completed or job.stored_status == JobStatus.CANCELLED:
                continue
            try:
                scheduled = self._date_manager.combine_schedule(
                    job.scheduled_date, job.scheduled_time, now
                )
            except InvalidScheduleError as exc:
                logger.warning("Job %s left out of upcoming: %s", job.id, exc)
                continue
            open_jobs.append((scheduled, job))

        open_jobs.sort(key=lambda pair: pair[0])
        return [job for _, job in open_jobs[:limit]]

    def effective_project_payment_status(
        self,
        amount_paid: Decimal,
        total_cost: Decimal
    ) -> ProjectPaymentStatus:
        """
        Determines a project's payment status.

        - PAID: total cost is positive and fully covered
        - PARTIALLY_PAID: something has been paid
        - UNPAID: nothing has been paid

        Args:
            amount_paid: Total received against the project.
            total_cost: Project total cost.

        Returns:
            ProjectPaymentStatus enum value.
        """
        if total_cost > Decimal("0") and amount_paid >= total_cost:
            return ProjectPaymentStatus.PAID
        if amount_paid > Decimal("0"):
            return ProjectPaymentStatus.PARTIALLY_PAID
        return ProjectPaymentStatus.UNPAID

    def record_project_payment(
        self,
        amount_paid: Decimal,
        payment: Decimal,
        total_cost: Decimal
    ) -> ProjectPaymentPatch:
        """
        Builds the patch for recording a payment against a project.

        Args:
            amount_paid: Amount already paid.
            payment: New payment amount.
            total_cost: Project total cost.

        Returns:
            ProjectPaymentPatch with the new running total and status.

        Raises:
            ValueError: If payment is zero or negative.
        """
        if payment <= Decimal("0"):
            raise ValueError("Payment amount must be positive")

        new_amount = amount_paid + payment
        return ProjectPaymentPatch(
            amount_paid=new_amount,
            payment_status=self.effective_project_payment_status(
                new_amount, total_cost
            )
        )

    def advertiser_progress(
        self,
        completed: int,
        target: int
    ) -> AdvertiserProgress:
        """
        Labels an advertiser's progress towards the video target.

        Args:
            completed: Videos delivered.
            target: Video target.

        Returns:
            NOT_STARTED with no videos, COMPLETED once the target is met,
            otherwise IN_PROGRESS.
        """
        if completed <= 0:
            return AdvertiserProgress.NOT_STARTED
        if completed >= target:
            return AdvertiserProgress.COMPLETED
        return AdvertiserProgress.IN_PROGRESS

    def check_video(
        self,
        advertiser: Advertiser,
        index: int,
        checked: bool
    ) -> int:
        """
        Computes the completed count after ticking a video checkbox.

        Ticking box ``index`` (0-based) marks every video up to it as done;
        unticking it leaves only the videos before it.

        Args:
            advertiser: Advertiser being tracked.
            index: 0-based position of the checkbox.
            checked: New state of the checkbox.

        Returns:
            New completed_videos value, clamped to [0, target_videos].
        """
        new_completed = index + 1 if checked else index
        return max(0, min(new_completed, advertiser.target_videos))

    def approve_payment(
        self,
        status: PaymentStatus,
        now: datetime
    ) -> PaymentPatch:
        """
        Builds the patch for approving or reverting an advertiser payment.

        Args:
            status: New payment status.
            now: Approval instant.

        Returns:
            PaymentPatch with payment_date set to today when paid.
        """
        payment_date = now.date() if status == PaymentStatus.PAID else None
        return PaymentPatch(
            status=status,
            payment_date=payment_date,
            approved_at=now
        )

    def review_delivery(
        self,
        status: DeliveryStatus,
        now: datetime
    ) -> DeliveryPatch:
        """Builds the patch for approving or rejecting a delivery."""
        return DeliveryPatch(status=status, verified_at=now)

    def _matches_date_filter(
        self,
        job: Job,
        now: datetime,
        date_filter: str
    ) -> bool:
        """Applies one date filter to a job."""
        if date_filter == "all":
            return True
        if date_filter == "completed":
            return job.is_completed
        if date_filter == "overdue":
            return self.effective_job_status(job, now) == JobStatus.OVERDUE

        scheduled_day = self._date_manager.parse_date(job.scheduled_date)
        if date_filter == "today":
            return scheduled_day == now.date()
        # upcoming
        return scheduled_day > now.date() and not job.is_completed

    def _matches_search(self, job: Job, query: str) -> bool:
        """Case-insensitive match against the job's text fields."""
        needle = query.lower()
        haystacks = [
            job.person_name,
            job.job_title,
            job.job_location or "",
            job.description or "",
        ]
        return any(needle in text.lower() for text in haystacks)
