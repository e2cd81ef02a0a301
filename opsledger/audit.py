"""
OpsLedger - Audit and Serialisation Module.

This module provides JSON serialisation for report snapshots.
All Decimal values are converted to string representation to preserve
precision during serialisation and deserialisation.

Audit Context:
    - Every snapshot records the reference instant and the engine version
    - Decimal precision is preserved so re-loaded totals match exactly
    - Statuses are stored by their enum values

Classes:
    DecimalEncoder: JSON encoder for Decimal, datetime and enum values.
    AuditLogger: Manages JSON serialisation for audit and persistence.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from opsledger import __version__
from opsledger.schema import (
    BudgetUsage,
    JobStats,
    Project,
    ProjectPaymentStatus,
    ProjectSummary,
    ReportSnapshot,
)


class DecimalEncoder(json.JSONEncoder):
    """
    Custom JSON encoder that converts Decimal to string.

    Preserves full precision of Decimal values by encoding them
    as strings rather than floats.
    """

    def default(self, obj: Any) -> Any:
        """
        Encode Decimal, datetime and enum objects.

        Args:
            obj: Object to encode.

        Returns:
            JSON-serialisable representation.
        """
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


class AuditLogger:
    """
    Manages JSON serialisation for audit and persistence.

    Line items are not part of the audit record; each project is stored
    with its derived figures.

    Example:
        >>> logger = AuditLogger()
        >>> json_str = logger.serialise_snapshot(snapshot)
        >>> restored = logger.deserialise_snapshot(json_str)
        >>> assert snapshot.total_spent == restored.total_spent
    """

    def __init__(self, version: Optional[str] = None):
        """
        Initialises the AuditLogger.

        Args:
            version: Version identifier written as generator metadata.
                     Defaults to package version.
        """
        self._version = version or __version__

    def serialise_snapshot(self, snapshot: ReportSnapshot) -> str:
        """
        Serialises a ReportSnapshot to JSON string.

        Args:
            snapshot: Report snapshot to serialise.

        Returns:
            JSON string representation.
        """
        data = self._snapshot_to_dict(snapshot)
        return json.dumps(data, cls=DecimalEncoder, indent=2)

    def deserialise_snapshot(self, json_str: str) -> ReportSnapshot:
        """
        Deserialises a JSON string to ReportSnapshot.

        Args:
            json_str: JSON string to deserialise.

        Returns:
            Reconstructed ReportSnapshot.

        Raises:
            json.JSONDecodeError: If JSON is malformed.
            KeyError: If required fields are missing.
            ValueError: If data types are invalid.
        """
        data = json.loads(json_str)
        return self._dict_to_snapshot(data)

    def save_to_file(
        self,
        snapshot: ReportSnapshot,
        file_path: Union[str, Path]
    ) -> None:
        """
        Saves a ReportSnapshot to a JSON file.

        Args:
            snapshot: Report snapshot to save.
            file_path: Output file path.
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(self.serialise_snapshot(snapshot), encoding="utf-8")

    def load_from_file(self, file_path: Union[str, Path]) -> ReportSnapshot:
        """
        Loads a ReportSnapshot from a JSON file.

        Raises:
            FileNotFoundError: If file does not exist.
            json.JSONDecodeError: If JSON is malformed.
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Audit file not found: {file_path}")

        return self.deserialise_snapshot(file_path.read_text(encoding="utf-8"))

    def _snapshot_to_dict(self, snapshot: ReportSnapshot) -> Dict[str, Any]:
        """Converts ReportSnapshot to dictionary for JSON serialisation."""
        job_stats = None
        if snapshot.job_stats is not None:
            job_stats = {
                "total": snapshot.job_stats.total,
                "pending": snapshot.job_stats.pending,
                "completed": snapshot.job_stats.completed,
                "overdue": snapshot.job_stats.overdue,
                "cancelled": snapshot.job_stats.cancelled,
                "today": snapshot.job_stats.today,
            }

        return {
            "metadata": {
                "timestamp": snapshot.timestamp.isoformat(),
                "version": snapshot.version,
                "generated_by": f"OpsLedger {self._version}",
            },
            "summary": {
                "total_budget": str(snapshot.total_budget),
                "total_spent": str(snapshot.total_spent),
                "over_budget_count": snapshot.over_budget_count,
                "project_count": len(snapshot.projects),
            },
            "monthly_totals": [
                {"month": label, "amount": str(amount)}
                for label, amount in snapshot.monthly_totals
            ],
            "job_stats": job_stats,
            "projects": [
                self._project_summary_to_dict(summary)
                for summary in snapshot.projects
            ],
        }

    def _project_summary_to_dict(self, summary: ProjectSummary) -> Dict[str, Any]:
        """Converts ProjectSummary to dictionary."""
        budget_usage = None
        if summary.budget_usage is not None:
            budget_usage = {
                "percentage": str(summary.budget_usage.percentage),
                "remaining": str(summary.budget_usage.remaining),
                "is_over_budget": summary.budget_usage.is_over_budget,
                "is_near_limit": summary.budget_usage.is_near_limit,
            }

        return {
            "project": {
                "id": summary.project.id,
                "title": summary.project.title,
                "budget": str(summary.project.budget),
                "amount_paid": str(summary.project.amount_paid),
            },
            "analysis": {
                "total_cost": str(summary.total_cost),
                "expense_count": summary.expense_count,
                "balance_due": str(summary.balance_due),
                "payment_status": summary.payment_status.value,
                "budget_usage": budget_usage,
                "category_totals": {
                    category: str(amount)
                    for category, amount in summary.category_totals.items()
                },
            },
        }

    def _dict_to_snapshot(self, data: Dict[str, Any]) -> ReportSnapshot:
        """Converts dictionary to ReportSnapshot."""
        metadata = data["metadata"]
        summary = data["summary"]

        job_stats = None
        if data.get("job_stats") is not None:
            job_stats = JobStats(**data["job_stats"])

        return ReportSnapshot(
            timestamp=datetime.fromisoformat(metadata["timestamp"]),
            version=metadata["version"],
            projects=[
                self._dict_to_project_summary(item) for item in data["projects"]
            ],
            total_budget=Decimal(summary["total_budget"]),
            total_spent=Decimal(summary["total_spent"]),
            over_budget_count=summary["over_budget_count"],
            monthly_totals=[
                (bucket["month"], Decimal(bucket["amount"]))
                for bucket in data.get("monthly_totals", [])
            ],
            job_stats=job_stats,
        )

    def _dict_to_project_summary(self, data: Dict[str, Any]) -> ProjectSummary:
        """Converts dictionary to ProjectSummary."""
        project_data = data["project"]
        analysis_data = data["analysis"]

        budget_usage = None
        usage_data = analysis_data.get("budget_usage")
        if usage_data is not None:
            budget_usage = BudgetUsage(
                percentage=Decimal(usage_data["percentage"]),
                remaining=Decimal(usage_data["remaining"]),
                is_over_budget=usage_data["is_over_budget"],
                is_near_limit=usage_data["is_near_limit"],
            )

        project = Project(
            id=project_data["id"],
            title=project_data["title"],
            budget=Decimal(project_data["budget"]),
            amount_paid=Decimal(project_data["amount_paid"]),
        )

        return ProjectSummary(
            project=project,
            total_cost=Decimal(analysis_data["total_cost"]),
            expense_count=analysis_data["expense_count"],
            balance_due=Decimal(analysis_data["balance_due"]),
            payment_status=ProjectPaymentStatus(analysis_data["payment_status"]),
            budget_usage=budget_usage,
            category_totals={
                category: Decimal(amount)
                for category, amount in analysis_data["category_totals"].items()
            },
        )

    def generate_filename(self, prefix: str = "audit") -> str:
        """
        Generates a timestamped filename for audit files.

        Args:
            prefix: Filename prefix. Defaults to "audit".

        Returns:
            Filename like "audit_2024-12-18_143052.json".
        """
        timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
        return f"{prefix}_{timestamp}.json"
