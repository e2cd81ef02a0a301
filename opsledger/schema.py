"""
OpsLedger - Data Schema Module.

This module defines the core data models for the OpsLedger engine.
All monetary fields use Decimal type to ensure financial precision.

Record Store Context:
    - Rows are fetched by an external record store and coerced to these
      types at the boundary (see opsledger.validator)
    - "overdue" is a read-time status and is never written back
    - Category keys are opaque strings; resolving display names is a
      presentation concern

Classes:
    JobStatus, JobType: Schedule job enumerations.
    ProjectPaymentStatus: Payment state of a project.
    PaymentStatus, DeliveryStatus, AdvertiserProgress: Campaign enumerations.
    Job, ExpenseLineItem, Project, Advertiser, Payment, Delivery: Entities.
    JobPatch, ProjectPaymentPatch, PaymentPatch, DeliveryPatch: Field updates.
    BudgetUsage, JobStats, ProjectSummary, ReportSnapshot: Derived results.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union


class JobStatus(Enum):
    """
    Status of a scheduled job.

    Attributes:
        PENDING: Scheduled and not yet due.
        COMPLETED: Marked done by the user.
        OVERDUE: Scheduled instant has passed without completion (derived).
        CANCELLED: Cancelled by the user.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class JobType(Enum):
    """Kind of scheduled job."""

    MEETING = "meeting"
    DELIVERY = "delivery"
    INSPECTION = "inspection"
    SUPPORT = "support"
    MAINTENANCE = "maintenance"
    CONSULTATION = "consultation"
    OTHER = "other"


class ProjectPaymentStatus(Enum):
    """
    Payment state of a project against its total cost.

    Attributes:
        UNPAID: Nothing has been paid.
        PARTIALLY_PAID: Some payment recorded, balance still due.
        PAID: Amount paid covers the total cost.
    """

    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class PaymentStatus(Enum):
    """Approval state of an advertiser payment."""

    PAID = "paid"
    UNPAID = "unpaid"


class DeliveryStatus(Enum):
    """Review state of a submitted video delivery."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdvertiserProgress(Enum):
    """Progress label for an advertiser's video target."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Legacy fixed expense categories; user-defined category ids are also accepted.
LEGACY_CATEGORIES = (
    "Materials",
    "Labor",
    "Marketing",
    "Equipment",
    "Transportation",
    "Utilities",
    "Wedding",
    "Other",
)


@dataclass
class Job:
    """
    A scheduled job as stored in the record store.

    The schedule fields keep the store's representation: an ISO calendar
    date ("2024-12-18") and a 24-hour time ("14:30" or "14:30:00"). Parsed
    date/time objects are accepted as well.

    Attributes:
        id: Record identifier.
        scheduled_date: Local calendar date of the job.
        scheduled_time: Local time of day of the job.
        is_completed: Completion flag set by the user.
        stored_status: Status value persisted in the store.
        completed_at: When the job was marked completed.
        person_name: Contact the job is for.
        job_title: Short title.
        job_type: Kind of job.
        job_location: Optional location text.
        description: Optional free text.
    """

    id: str
    scheduled_date: Union[str, date]
    scheduled_time: Union[str, time]
    is_completed: bool = False
    stored_status: JobStatus = JobStatus.PENDING
    completed_at: Optional[datetime] = None
    person_name: str = ""
    job_title: str = ""
    job_type: JobType = JobType.OTHER
    job_location: Optional[str] = None
    description: Optional[str] = None


@dataclass
class JobPatch:
    """Field updates produced when a job's completion is toggled."""

    is_completed: bool
    stored_status: JobStatus
    completed_at: Optional[datetime]


@dataclass
class ExpenseLineItem:
    """
    A single expense entry.

    Attributes:
        quantity: Number of units (Decimal).
        price: Unit price (Decimal).
        category: Opaque category key (legacy name or category id).
        description: Free text shown on invoices and reports.
        project_id: Owning project identifier.
        created_at: Creation timestamp, used for monthly grouping.
        id: Record identifier.
    """

    quantity: Decimal
    price: Decimal
    category: str = "Other"
    description: str = ""
    project_id: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None


@dataclass
class Project:
    """
    A project with an optional budget and its expenses.

    Attributes:
        id: Record identifier.
        title: Project title.
        budget: Budget amount; zero means no budget set.
        amount_paid: Total received against the project.
        expenses: Line items belonging to the project.
    """

    id: str
    title: str
    budget: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")
    expenses: List[ExpenseLineItem] = field(default_factory=list)


@dataclass
class ProjectPaymentPatch:
    """Field updates produced when a project payment is recorded."""

    amount_paid: Decimal
    payment_status: ProjectPaymentStatus


@dataclass
class Advertiser:
    """
    An influencer/advertiser registered for a campaign.

    completed_videos is clamped to [0, target_videos] on construction so
    that no aggregate ever reports more than 100% completion.

    Attributes:
        id: Record identifier.
        name: Display name.
        salary: Agreed salary for the period.
        target_videos: Number of videos to deliver.
        completed_videos: Videos delivered so far.
        ad_types: Product categories the advertiser promotes.
        platform: Social platform name.
        contract_type: Contract kind.
        created_at: Registration timestamp.
    """

    id: str
    name: str
    salary: Decimal = Decimal("0")
    target_videos: int = 0
    completed_videos: int = 0
    ad_types: List[str] = field(default_factory=list)
    platform: str = "TikTok"
    contract_type: str = "Freelance"
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        upper = max(self.target_videos, 0)
        self.completed_videos = max(0, min(self.completed_videos, upper))


@dataclass
class Payment:
    """A payment owed to an advertiser."""

    id: str
    advertiser_id: str
    amount: Decimal
    status: PaymentStatus = PaymentStatus.UNPAID
    payment_date: Optional[date] = None
    approved_at: Optional[datetime] = None


@dataclass
class PaymentPatch:
    """Field updates produced when a payment is approved or reverted."""

    status: PaymentStatus
    payment_date: Optional[date]
    approved_at: datetime


@dataclass
class Delivery:
    """A video delivery submitted by an advertiser."""

    id: str
    advertiser_id: str
    video_link: str
    submission_date: Optional[date] = None
    status: DeliveryStatus = DeliveryStatus.PENDING
    verified_at: Optional[datetime] = None


@dataclass
class DeliveryPatch:
    """Field updates produced when a delivery is reviewed."""

    status: DeliveryStatus
    verified_at: datetime


@dataclass
class BudgetUsage:
    """
    Budget indicator for a project.

    Attributes:
        percentage: Spend as a percentage of budget, clamped to 0-100.
        remaining: Budget minus spend; negative when over budget.
        is_over_budget: Spend strictly exceeds budget.
        is_near_limit: Percentage in [80, 100).
    """

    percentage: Decimal
    remaining: Decimal
    is_over_budget: bool
    is_near_limit: bool


@dataclass
class JobStats:
    """
    Job counts for one derivation pass.

    pending + completed + overdue + cancelled always equals total.
    today counts jobs scheduled on the reference date, whatever their status.
    """

    total: int = 0
    pending: int = 0
    completed: int = 0
    overdue: int = 0
    cancelled: int = 0
    today: int = 0


@dataclass
class ProjectSummary:
    """
    Derived view of a project.

    Attributes:
        project: Source project.
        total_cost: Sum of line item amounts.
        expense_count: Number of line items.
        balance_due: total_cost - amount_paid (signed).
        payment_status: Derived payment status.
        budget_usage: Budget indicator, or None when no budget is set.
        category_totals: Spend per category, first-occurrence order.
    """

    project: Project
    total_cost: Decimal
    expense_count: int
    balance_due: Decimal
    payment_status: ProjectPaymentStatus
    budget_usage: Optional[BudgetUsage]
    category_totals: Dict[str, Decimal] = field(default_factory=dict)


@dataclass
class ReportSnapshot:
    """
    Complete report run with metadata for audit purposes.

    Attributes:
        timestamp: Reference instant used for every derivation in the run.
        version: OpsLedger version identifier.
        projects: Per-project summaries.
        total_budget: Sum of project budgets.
        total_spent: Sum of project costs.
        over_budget_count: Projects with a budget whose cost exceeds it.
        monthly_totals: Trailing monthly spend buckets, oldest first.
        job_stats: Job counts, when jobs were part of the run.
    """

    timestamp: datetime
    version: str
    projects: List[ProjectSummary]
    total_budget: Decimal
    total_spent: Decimal
    over_budget_count: int
    monthly_totals: List[Tuple[str, Decimal]] = field(default_factory=list)
    job_stats: Optional[JobStats] = None
