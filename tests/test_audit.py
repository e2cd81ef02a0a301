"""
OpsLedger - Audit Logger Tests.

Property-based and unit tests for AuditLogger class.
Tests ensure correct JSON serialisation, Decimal precision
preservation, and round-trip consistency.
"""

import json
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis.strategies import (
    composite,
    datetimes,
    decimals,
    integers,
    lists,
    sampled_from,
)

from opsledger.audit import AuditLogger, DecimalEncoder
from opsledger.calculator import Aggregator
from opsledger.date_logic import DateManager
from opsledger.reporting import ReportBuilder
from opsledger.schema import (
    ExpenseLineItem,
    Job,
    JobStatus,
    LEGACY_CATEGORIES,
    Project,
    ProjectPaymentStatus,
    ReportSnapshot,
)
from opsledger.status import StatusDeriver


def create_builder() -> ReportBuilder:
    """Creates a ReportBuilder with fresh collaborators."""
    dm = DateManager()
    return ReportBuilder(Aggregator(dm), StatusDeriver(dm))


@composite
def valid_projects(draw):
    """Generate projects with a handful of expenses."""
    project_id = f"p{draw(integers(min_value=1, max_value=99999))}"
    expenses = [
        ExpenseLineItem(
            quantity=Decimal(draw(integers(min_value=1, max_value=20))),
            price=draw(decimals(
                min_value=Decimal("0.01"),
                max_value=Decimal("10000"),
                places=2,
                allow_nan=False,
                allow_infinity=False
            )),
            category=draw(sampled_from(LEGACY_CATEGORIES)),
            project_id=project_id,
            created_at=datetime(2024, draw(integers(min_value=7, max_value=12)), 1),
        )
        for _ in range(draw(integers(min_value=0, max_value=5)))
    ]
    return Project(
        id=project_id,
        title=f"Project {project_id}",
        budget=draw(decimals(
            min_value=Decimal("0"),
            max_value=Decimal("100000"),
            places=2,
            allow_nan=False,
            allow_infinity=False
        )),
        amount_paid=draw(decimals(
            min_value=Decimal("0"),
            max_value=Decimal("100000"),
            places=2,
            allow_nan=False,
            allow_infinity=False
        )),
        expenses=expenses,
    )


@composite
def valid_snapshots(draw):
    """Generate complete report snapshots."""
    now = draw(datetimes(
        min_value=datetime(2024, 12, 1),
        max_value=datetime(2024, 12, 31)
    ))
    projects = draw(lists(valid_projects(), min_size=0, max_size=6))
    return create_builder().build_snapshot(projects, now, jobs=[])


def create_test_snapshot() -> ReportSnapshot:
    """Creates a small snapshot with a job count."""
    projects = [
        Project("p1", "Kitchen", budget=Decimal("1000.00"),
                amount_paid=Decimal("10.00"), expenses=[
                    ExpenseLineItem(Decimal("2"), Decimal("10.50"), category="Labor",
                                    created_at=datetime(2024, 12, 2)),
                    ExpenseLineItem(Decimal("1"), Decimal("5.00"), category="Materials",
                                    created_at=datetime(2024, 11, 5)),
                ]),
        Project("p2", "Garage"),
    ]
    jobs = [
        Job("j1", "2024-12-17", "09:00"),
        Job("j2", "2024-12-18", "09:00", stored_status=JobStatus.CANCELLED),
    ]
    return create_builder().build_snapshot(
        projects, datetime(2024, 12, 18, 14, 30, 0), jobs
    )


class TestAuditLoggerUnit:
    """Unit tests for AuditLogger."""

    def setup_method(self) -> None:
        """Initialise AuditLogger for each test."""
        self.logger = AuditLogger()

    def test_decimal_encoder_preserves_precision(self) -> None:
        """Verify Decimal values are encoded as exact strings."""
        encoded = json.dumps({"value": Decimal("12345.678901")}, cls=DecimalEncoder)
        assert json.loads(encoded)["value"] == "12345.678901"

    def test_decimal_encoder_handles_datetime(self) -> None:
        """Verify datetime values are encoded in ISO format."""
        encoded = json.dumps({"ts": datetime(2024, 12, 18, 14, 30)}, cls=DecimalEncoder)
        assert json.loads(encoded)["ts"] == "2024-12-18T14:30:00"

    def test_decimal_encoder_handles_enums(self) -> None:
        """Verify enums are encoded by value."""
        encoded = json.dumps(
            {"status": ProjectPaymentStatus.PARTIALLY_PAID}, cls=DecimalEncoder
        )
        assert json.loads(encoded)["status"] == "partially_paid"

    def test_decimal_encoder_rejects_unknown_types(self) -> None:
        """Verify unsupported objects still raise TypeError."""
        with pytest.raises(TypeError):
            json.dumps({"value": object()}, cls=DecimalEncoder)

    def test_json_structure(self) -> None:
        """Verify the document layout."""
        data = json.loads(self.logger.serialise_snapshot(create_test_snapshot()))

        assert set(data) == {"metadata", "summary", "monthly_totals", "job_stats", "projects"}
        assert data["metadata"]["timestamp"] == "2024-12-18T14:30:00"
        assert data["summary"]["total_spent"] == "26.00"
        assert data["summary"]["project_count"] == 2
        assert data["monthly_totals"][-1] == {"month": "Dec 2024", "amount": "21.00"}
        assert data["job_stats"]["overdue"] == 1
        assert data["job_stats"]["cancelled"] == 1

        kitchen = data["projects"][0]
        assert kitchen["project"]["budget"] == "1000.00"
        assert kitchen["analysis"]["payment_status"] == "partially_paid"
        assert kitchen["analysis"]["category_totals"] == {
            "Labor": "21.00", "Materials": "5.00"
        }
        assert data["projects"][1]["analysis"]["budget_usage"] is None

    def test_round_trip_preserves_values(self) -> None:
        """Verify a deserialised snapshot carries the same figures."""
        snapshot = create_test_snapshot()

        restored = self.logger.deserialise_snapshot(self.logger.serialise_snapshot(snapshot))

        assert restored.timestamp == snapshot.timestamp
        assert restored.total_spent == snapshot.total_spent
        assert restored.monthly_totals == snapshot.monthly_totals
        assert restored.job_stats == snapshot.job_stats
        assert restored.projects[0].budget_usage == snapshot.projects[0].budget_usage
        assert restored.projects[0].category_totals == snapshot.projects[0].category_totals
        assert restored.projects[1].budget_usage is None

    def test_round_trip_drops_line_items(self) -> None:
        """Verify restored projects carry figures, not line items."""
        snapshot = create_test_snapshot()

        restored = self.logger.deserialise_snapshot(self.logger.serialise_snapshot(snapshot))

        assert restored.projects[0].project.expenses == []
        assert restored.projects[0].expense_count == 2

    def test_save_and_load_file(self) -> None:
        """Verify saving to and loading from a file."""
        snapshot = create_test_snapshot()

        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "nested" / "audit.json"
            self.logger.save_to_file(snapshot, file_path)

            assert file_path.exists()
            loaded = self.logger.load_from_file(file_path)

        assert loaded.total_budget == snapshot.total_budget
        assert loaded.over_budget_count == snapshot.over_budget_count

    def test_load_nonexistent_file_raises(self) -> None:
        """Verify FileNotFoundError for a missing audit file."""
        with pytest.raises(FileNotFoundError, match="Audit file not found"):
            self.logger.load_from_file("/nonexistent/audit.json")

    def test_generated_by_uses_version(self) -> None:
        """Verify the generator metadata names the configured version."""
        logger = AuditLogger(version="9.9.9")
        data = json.loads(logger.serialise_snapshot(create_test_snapshot()))
        assert data["metadata"]["generated_by"] == "OpsLedger 9.9.9"

    def test_generate_filename(self) -> None:
        """Verify timestamped filename format."""
        filename = self.logger.generate_filename("opsledger_audit")
        assert filename.startswith("opsledger_audit_")
        assert filename.endswith(".json")


class TestAuditLoggerPropertyRoundTrip:
    """Property-based tests for serialisation round-trips."""

    def setup_method(self) -> None:
        """Initialise AuditLogger for each test."""
        self.logger = AuditLogger()

    @given(valid_snapshots())
    @settings(max_examples=100)
    def test_round_trip_preserves_totals(self, snapshot: ReportSnapshot) -> None:
        """
        Property: Portfolio totals survive a round-trip exactly.
        """
        restored = self.logger.deserialise_snapshot(self.logger.serialise_snapshot(snapshot))

        assert restored.total_budget == snapshot.total_budget
        assert restored.total_spent == snapshot.total_spent
        assert restored.over_budget_count == snapshot.over_budget_count
        assert restored.timestamp == snapshot.timestamp
        assert restored.version == snapshot.version

    @given(valid_snapshots())
    @settings(max_examples=100)
    def test_round_trip_preserves_project_figures(self, snapshot: ReportSnapshot) -> None:
        """
        Property: Every project's derived figures survive a round-trip
        with their Decimal types.
        """
        restored = self.logger.deserialise_snapshot(self.logger.serialise_snapshot(snapshot))

        assert len(restored.projects) == len(snapshot.projects)
        for original, loaded in zip(snapshot.projects, restored.projects):
            assert loaded.total_cost == original.total_cost
            assert isinstance(loaded.total_cost, Decimal)
            assert loaded.balance_due == original.balance_due
            assert loaded.payment_status == original.payment_status
            assert loaded.budget_usage == original.budget_usage
            assert loaded.category_totals == original.category_totals

    @given(valid_snapshots())
    @settings(max_examples=50)
    def test_round_trip_preserves_monthly_totals(self, snapshot: ReportSnapshot) -> None:
        """
        Property: Monthly buckets keep their labels, order and amounts.
        """
        restored = self.logger.deserialise_snapshot(self.logger.serialise_snapshot(snapshot))
        assert restored.monthly_totals == snapshot.monthly_totals
