"""
OpsLedger - Data Validation Module.

This module converts loosely-typed record-store rows and CSV rows into
typed entities. The record store returns numeric columns as strings, so
every monetary and quantity field is converted to Decimal here, once,
before any aggregation runs. Errors are collected with row numbers.

Record Store Context:
    - Column names are the store's field names (quantity, price, ...)
    - Numeric values may be strings, ints, floats or Decimals
    - Currency symbols and thousands separators are tolerated

Classes:
    ValidationError: A single field-level validation failure.
    ValidationResult: Container for validation outcomes.
    DataValidator: Main validation class for row and CSV processing.
"""

import csv
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from opsledger.schema import (
    Advertiser,
    ExpenseLineItem,
    Job,
    JobStatus,
    JobType,
    Payment,
    PaymentStatus,
    Project,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationError:
    """
    Represents a single validation error with context.

    Attributes:
        row_number: The 1-based row number (header is row 1 in CSV files).
        field_name: The name of the field that failed validation.
        value: The invalid value that was provided.
        message: A user-facing error message.
    """

    row_number: int
    field_name: str
    value: str
    message: str

    def __str__(self) -> str:
        """Returns a formatted error message for display."""
        return f"Error: Row {self.row_number} '{self.field_name}' - {self.message}"


@dataclass
class ValidationResult:
    """
    Container for validation results.

    Attributes:
        records: Successfully converted entities.
        errors: ValidationError objects for failed rows.
        total_rows: Total number of data rows processed.
    """

    records: List[Any] = field(default_factory=list)
    errors: List[ValidationError] = field(default_factory=list)
    total_rows: int = 0

    @property
    def is_valid(self) -> bool:
        """Returns True if validation produced no errors."""
        return len(self.errors) == 0

    @property
    def valid_count(self) -> int:
        """Returns the number of successfully converted records."""
        return len(self.records)

    @property
    def error_count(self) -> int:
        """Returns the number of validation errors."""
        return len(self.errors)


class DataValidator:
    """
    Validates raw rows and converts them to entities.

    Ensures all monetary values are converted to Decimal type and that
    required fields are present. Rows with any error are dropped; the
    remaining rows are returned.

    Attributes:
        REQUIRED_COLUMNS: Mandatory columns per record kind.

    Example:
        >>> validator = DataValidator()
        >>> result = validator.validate_expense_rows(
        ...     [{"quantity": "2", "price": "10.50", "category": "Labor"}])
        >>> result.records[0].price
        Decimal('10.50')
    """

    REQUIRED_COLUMNS = {
        "expense": ["quantity", "price"],
        "project": ["id", "title"],
        "job": ["id", "scheduled_date", "scheduled_time"],
        "advertiser": ["id", "name", "target_videos"],
        "payment": ["id", "advertiser_id", "amount"],
    }

    TRUE_VALUES = {"true", "t", "yes", "y", "1"}
    FALSE_VALUES = {"false", "f", "no", "n", "0", ""}

    FRACTION_PATTERN = re.compile(r"\.(\d+)")

    def __init__(self, currency_symbols: Sequence[str] = ("$",)):
        """
        Initialises the DataValidator.

        Args:
            currency_symbols: Symbols stripped from monetary strings.
        """
        symbols = "".join(re.escape(symbol) for symbol in currency_symbols)
        self._currency_clean_pattern = re.compile(f"[{symbols}\\s,]")
        self._european_pattern = re.compile(
            f"^[{symbols}]?\\s*\\d+,\\d{{2}}$"
        )

    def validate_csv(
        self,
        file_path: Union[str, Path],
        kind: str
    ) -> ValidationResult:
        """
        Validates a CSV file of one record kind.

        Header names are matched case-insensitively against the store's
        field names.

        Args:
            file_path: Path to the CSV file.
            kind: Record kind, a key of REQUIRED_COLUMNS.

        Returns:
            ValidationResult with converted records and any errors.

        Raises:
            FileNotFoundError: If the CSV file does not exist.
            ValueError: If the kind is unknown or columns are missing.
        """
        file_path = Path(file_path)
        converter = self._converter_for(kind)

        if not file_path.exists():
            raise FileNotFoundError(f"CSV file not found: {file_path}")

        with open(file_path, "r", encoding="utf-8-sig", newline="") as csvfile:
            reader = csv.DictReader(csvfile)
            missing = self._check_required_columns(kind, reader.fieldnames or [])
            if missing:
                raise ValueError(f"Missing required columns: {', '.join(missing)}")

            rows = [
                {self._normalise_key(key): value for key, value in row.items()
                 if key is not None}
                for row in reader
            ]

        return self._validate(rows, converter, start_row=2)

    def validate_expense_rows(
        self,
        rows: List[Dict[str, Any]],
        start_row: int = 1
    ) -> ValidationResult:
        """Converts store rows into ExpenseLineItem records."""
        return self._validate(rows, self._expense_from_row, start_row)

    def validate_project_rows(
        self,
        rows: List[Dict[str, Any]],
        start_row: int = 1
    ) -> ValidationResult:
        """Converts store rows into Project records (without expenses)."""
        return self._validate(rows, self._project_from_row, start_row)

    def validate_job_rows(
        self,
        rows: List[Dict[str, Any]],
        start_row: int = 1
    ) -> ValidationResult:
        """
        Converts store rows into Job records.

        Schedule strings are kept as stored; malformed schedules surface
        as InvalidScheduleError during status derivation.
        """
        return self._validate(rows, self._job_from_row, start_row)

    def validate_advertiser_rows(
        self,
        rows: List[Dict[str, Any]],
        start_row: int = 1
    ) -> ValidationResult:
        """
        Converts store rows into Advertiser records.

        A completed_videos count above target_videos is clamped to the
        target and logged.
        """
        return self._validate(rows, self._advertiser_from_row, start_row)

    def validate_payment_rows(
        self,
        rows: List[Dict[str, Any]],
        start_row: int = 1
    ) -> ValidationResult:
        """Converts store rows into Payment records."""
        return self._validate(rows, self._payment_from_row, start_row)

    def format_money(self, amount: Decimal) -> str:
        """
        Formats a Decimal amount for display.

        Args:
            amount: Decimal amount to format.

        Returns:
            Formatted string like "$12,345.67" or "-$200.00".
        """
        sign = "-" if amount < 0 else ""
        return f"{sign}${abs(amount):,.2f}"

    def _validate(
        self,
        rows: List[Dict[str, Any]],
        converter: Callable[[Dict[str, Any], int], Tuple[Any, List[ValidationError]]],
        start_row: int
    ) -> ValidationResult:
        """Runs a row converter over rows, collecting records and errors."""
        result = ValidationResult()
        result.total_rows = len(rows)

        for idx, row in enumerate(rows):
            row_num = start_row + idx
            record, errors = converter(row, row_num)

            if record is not None:
                result.records.append(record)
            result.errors.extend(errors)

        if result.errors:
            logger.warning(
                "%d of %d rows failed validation",
                result.total_rows - result.valid_count, result.total_rows
            )
        return result

    def _converter_for(self, kind: str):
        """Returns the row converter for a record kind."""
        converters = {
            "expense": self._expense_from_row,
            "project": self._project_from_row,
            "job": self._job_from_row,
            "advertiser": self._advertiser_from_row,
            "payment": self._payment_from_row,
        }
        if kind not in converters:
            raise ValueError(f"Unknown record kind: {kind}")
        return converters[kind]

    def _check_required_columns(
        self,
        kind: str,
        columns: List[str]
    ) -> List[str]:
        """
        Checks if all required columns are present.

        Args:
            kind: Record kind.
            columns: List of column names from the CSV header.

        Returns:
            List of missing column names (empty if all present).
        """
        columns_lower = [self._normalise_key(c) for c in columns]
        return [
            required for required in self.REQUIRED_COLUMNS[kind]
            if required not in columns_lower
        ]

    def _normalise_key(self, key: str) -> str:
        return key.strip().lower()

    def _expense_from_row(
        self,
        row: Dict[str, Any],
        row_number: int
    ) -> Tuple[Optional[ExpenseLineItem], List[ValidationError]]:
        """Validates a single expense row."""
        errors: List[ValidationError] = []

        quantity, error = self._parse_decimal(
            row.get("quantity"), "quantity", row_number, quantize=False
        )
        if error:
            errors.append(error)

        price, error = self._parse_decimal(
            row.get("price"), "price", row_number
        )
        if error:
            errors.append(error)

        created_at, error = self._parse_datetime(
            row.get("created_at"), "created_at", row_number
        )
        if error:
            errors.append(error)

        if errors:
            return None, errors

        # category_id references the user-defined table; category is the legacy enum
        category = self._text(row.get("category_id")) or self._text(row.get("category"))

        return ExpenseLineItem(
            quantity=quantity,
            price=price,
            category=category or "Other",
            description=self._text(row.get("description")),
            project_id=self._text(row.get("project_id")) or None,
            created_at=created_at,
            id=self._text(row.get("id")) or None,
        ), errors

    def _project_from_row(
        self,
        row: Dict[str, Any],
        row_number: int
    ) -> Tuple[Optional[Project], List[ValidationError]]:
        """Validates a single project row."""
        errors: List[ValidationError] = []

        project_id = self._required_text(row, "id", row_number, errors)
        title = self._required_text(row, "title", row_number, errors)

        budget = Decimal("0.00")
        if self._text(row.get("budget")):
            budget, error = self._parse_decimal(
                row.get("budget"), "budget", row_number
            )
            if error:
                errors.append(error)

        amount_paid = Decimal("0.00")
        if self._text(row.get("amount_paid")):
            amount_paid, error = self._parse_decimal(
                row.get("amount_paid"), "amount_paid", row_number
            )
            if error:
                errors.append(error)

        if errors:
            return None, errors

        return Project(
            id=project_id,
            title=title,
            budget=budget,
            amount_paid=amount_paid,
        ), errors

    def _job_from_row(
        self,
        row: Dict[str, Any],
        row_number: int
    ) -> Tuple[Optional[Job], List[ValidationError]]:
        """Validates a single job row."""
        errors: List[ValidationError] = []

        job_id = self._required_text(row, "id", row_number, errors)
        scheduled_date = self._required_text(row, "scheduled_date", row_number, errors)
        scheduled_time = self._required_text(row, "scheduled_time", row_number, errors)

        is_completed, error = self._parse_bool(
            row.get("is_completed"), "is_completed", row_number
        )
        if error:
            errors.append(error)

        status, error = self._parse_enum(
            row.get("status"), JobStatus, JobStatus.PENDING, "status", row_number
        )
        if error:
            errors.append(error)

        job_type, error = self._parse_enum(
            row.get("job_type"), JobType, JobType.OTHER, "job_type", row_number
        )
        if error:
            errors.append(error)

        completed_at, error = self._parse_datetime(
            row.get("completed_at"), "completed_at", row_number
        )
        if error:
            errors.append(error)

        if errors:
            return None, errors

        return Job(
            id=job_id,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            is_completed=is_completed,
            stored_status=status,
            completed_at=completed_at,
            person_name=self._text(row.get("person_name")),
            job_title=self._text(row.get("job_title")),
            job_type=job_type,
            job_location=self._text(row.get("job_location")) or None,
            description=self._text(row.get("description")) or None,
        ), errors

    def _advertiser_from_row(
        self,
        row: Dict[str, Any],
        row_number: int
    ) -> Tuple[Optional[Advertiser], List[ValidationError]]:
        """Validates a single advertiser row."""
        errors: List[ValidationError] = []

        advertiser_id = self._required_text(row, "id", row_number, errors)
        name = self._required_text(row, "name", row_number, errors)

        salary = Decimal("0.00")
        if self._text(row.get("salary")):
            salary, error = self._parse_decimal(
                row.get("salary"), "salary", row_number
            )
            if error:
                errors.append(error)

        target, error = self._parse_int(
            row.get("target_videos"), "target_videos", row_number, must_be_positive=True
        )
        if error:
            errors.append(error)

        completed = 0
        if self._text(row.get("completed_videos")):
            completed, error = self._parse_int(
                row.get("completed_videos"), "completed_videos", row_number
            )
            if error:
                errors.append(error)

        created_at, error = self._parse_datetime(
            row.get("created_at"), "created_at", row_number
        )
        if error:
            errors.append(error)

        if errors:
            return None, errors

        if completed > target:
            logger.warning(
                "Row %d: completed_videos %d exceeds target %d, clamping",
                row_number, completed, target
            )

        return Advertiser(
            id=advertiser_id,
            name=name,
            salary=salary,
            target_videos=target,
            completed_videos=completed,
            ad_types=self._parse_list(row.get("ad_types")),
            platform=self._text(row.get("platform")) or "TikTok",
            contract_type=self._text(row.get("contract_type")) or "Freelance",
            created_at=created_at,
        ), errors

    def _payment_from_row(
        self,
        row: Dict[str, Any],
        row_number: int
    ) -> Tuple[Optional[Payment], List[ValidationError]]:
        """Validates a single advertiser payment row."""
        errors: List[ValidationError] = []

        payment_id = self._required_text(row, "id", row_number, errors)
        advertiser_id = self._required_text(row, "advertiser_id", row_number, errors)

        amount, error = self._parse_decimal(
            row.get("amount"), "amount", row_number
        )
        if error:
            errors.append(error)

        status, error = self._parse_enum(
            row.get("status"), PaymentStatus, PaymentStatus.UNPAID, "status", row_number
        )
        if error:
            errors.append(error)

        payment_date, error = self._parse_datetime(
            row.get("payment_date"), "payment_date", row_number
        )
        if error:
            errors.append(error)

        if errors:
            return None, errors

        return Payment(
            id=payment_id,
            advertiser_id=advertiser_id,
            amount=amount,
            status=status,
            payment_date=payment_date.date() if payment_date else None,
        ), errors

    def _text(self, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    def _required_text(
        self,
        row: Dict[str, Any],
        field_name: str,
        row_number: int,
        errors: List[ValidationError]
    ) -> str:
        """Reads a mandatory text field, appending an error when empty."""
        value = self._text(row.get(field_name))
        if not value:
            errors.append(ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=self._text(row.get(field_name)),
                message=f"{field_name} cannot be empty"
            ))
        return value

    def _parse_decimal(
        self,
        value: Any,
        field_name: str,
        row_number: int,
        must_be_positive: bool = False,
        quantize: bool = True
    ) -> Tuple[Optional[Decimal], Optional[ValidationError]]:
        """
        Parses a loosely-typed value to Decimal with validation.

        Handles the formats the store and spreadsheets produce:
        - "10000" / 10000 / 10000.5 (plain number)
        - "10,000" (with thousands separator)
        - "$ 10,000.00" (with currency symbol)

        Args:
            value: Raw value to parse.
            field_name: Name of the field for error messages.
            row_number: Row number for error messages.
            must_be_positive: If True, value must be > 0.
            quantize: If True, round to 2 decimal places.

        Returns:
            Tuple of (Decimal value or None, ValidationError or None).
        """
        if value is None:
            value = ""
        if isinstance(value, float):
            # repr keeps the shortest round-tripping form ("10.5", not the binary expansion)
            value = repr(value)

        original_value = str(value)
        value = original_value.strip()

        if not value:
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} cannot be empty"
            )

        if self._european_pattern.match(value):
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} appears to use European format (comma as decimal). "
                        f"Please use period as decimal separator (e.g., '100.00' not '100,00')"
            )

        cleaned = self._currency_clean_pattern.sub("", value)

        if not re.match(r"^-?\d+\.?\d*$", cleaned):
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} must be a valid number "
                        f"(received: '{original_value}')"
            )

        try:
            decimal_value = Decimal(cleaned)
        except InvalidOperation:
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} must be a valid number "
                        f"(received: '{original_value}')"
            )

        if quantize:
            decimal_value = decimal_value.quantize(
                Decimal("0.01"),
                rounding=ROUND_HALF_EVEN
            )

        if must_be_positive and decimal_value <= Decimal("0"):
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} must be a positive number "
                        f"(received: '{original_value}')"
            )

        if decimal_value < Decimal("0"):
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} must be a non-negative number "
                        f"(received: '{original_value}')"
            )

        return decimal_value, None

    def _parse_int(
        self,
        value: Any,
        field_name: str,
        row_number: int,
        must_be_positive: bool = False
    ) -> Tuple[Optional[int], Optional[ValidationError]]:
        """Parses a whole, non-negative count."""
        decimal_value, error = self._parse_decimal(
            value, field_name, row_number,
            must_be_positive=must_be_positive, quantize=False
        )
        if error:
            return None, error

        if decimal_value != decimal_value.to_integral_value():
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=str(value),
                message=f"{field_name} must be a whole number "
                        f"(received: '{value}')"
            )
        return int(decimal_value), None

    def _parse_bool(
        self,
        value: Any,
        field_name: str,
        row_number: int
    ) -> Tuple[Optional[bool], Optional[ValidationError]]:
        """Parses a boolean flag; empty means False."""
        if isinstance(value, bool):
            return value, None

        text = self._text(value).lower()
        if text in self.TRUE_VALUES:
            return True, None
        if text in self.FALSE_VALUES:
            return False, None
        return None, ValidationError(
            row_number=row_number,
            field_name=field_name,
            value=self._text(value),
            message=f"{field_name} must be true or false (received: '{value}')"
        )

    def _parse_enum(
        self,
        value: Any,
        enum_type,
        default,
        field_name: str,
        row_number: int
    ):
        """Parses an enum value by its stored string; empty means default."""
        if isinstance(value, enum_type):
            return value, None

        text = self._text(value).lower()
        if not text:
            return default, None
        try:
            return enum_type(text), None
        except ValueError:
            allowed = ", ".join(member.value for member in enum_type)
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=self._text(value),
                message=f"{field_name} must be one of: {allowed} (received: '{value}')"
            )

    def _parse_datetime(
        self,
        value: Any,
        field_name: str,
        row_number: int
    ) -> Tuple[Optional[datetime], Optional[ValidationError]]:
        """Parses an optional ISO timestamp or date; empty means None."""
        if isinstance(value, datetime):
            return value, None
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day), None

        text = self._text(value)
        if not text:
            return None, None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits
        text = self.FRACTION_PATTERN.sub(
            lambda match: "." + (match.group(1) + "000000")[:6], text, count=1
        )
        try:
            return datetime.fromisoformat(text), None
        except ValueError:
            return None, ValidationError(
                row_number=row_number,
                field_name=field_name,
                value=self._text(value),
                message=f"{field_name} must be an ISO date or timestamp "
                        f"(received: '{value}')"
            )

    def _parse_list(self, value: Any) -> List[str]:
        """Parses a list column stored as a list or comma-separated text."""
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return [part.strip() for part in self._text(value).split(",") if part.strip()]
