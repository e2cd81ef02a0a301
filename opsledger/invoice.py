"""
OpsLedger - Invoice Calculation Module.

This module computes the figures an invoice document is rendered from:
numbered line items, subtotal, tax, discount and grand total. Document
layout itself belongs to the rendering collaborator.

Money values are quantised to cents with Banker's Rounding.

Classes:
    InvoiceSettings: Per-user invoice configuration.
    InvoiceLineItem: One numbered invoice row.
    InvoiceTotals: Computed invoice totals.
    InvoiceCalculator: Builds invoice figures from expenses.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterable, List, Optional

from opsledger.schema import ExpenseLineItem

CENT = Decimal("0.01")


@dataclass
class InvoiceSettings:
    """
    Invoice configuration stored per user.

    Attributes:
        invoice_prefix: Prefix of invoice numbers.
        next_invoice_number: Sequence number of the next invoice.
        tax_rate: Tax rate in percent (10 means 10%).
        tax_enabled: Whether tax may be applied at all.
        payment_terms_days: Days from invoice date to due date.
    """

    invoice_prefix: str = "INV"
    next_invoice_number: int = 1
    tax_rate: Decimal = Decimal("0")
    tax_enabled: bool = False
    payment_terms_days: int = 30


@dataclass
class InvoiceLineItem:
    """A numbered invoice row."""

    no: int
    description: str
    quantity: Decimal
    price: Decimal
    amount: Decimal


@dataclass
class InvoiceTotals:
    """
    Computed invoice totals.

    Attributes:
        subtotal: Sum of line item amounts.
        tax_amount: Tax on the subtotal (zero when tax is off).
        discount_amount: Flat discount.
        grand_total: subtotal + tax_amount - discount_amount.
    """

    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    grand_total: Decimal


class InvoiceCalculator:
    """
    Builds invoice figures from project expenses.

    Example:
        >>> calc = InvoiceCalculator()
        >>> totals = calc.calculate_totals(
        ...     Decimal("100"), Decimal("10"), True, Decimal("15"))
        >>> totals.grand_total
        Decimal('95.00')
    """

    NUMBER_PADDING = 5

    def __init__(self, settings: Optional[InvoiceSettings] = None):
        """
        Initialises the InvoiceCalculator.

        Args:
            settings: Invoice configuration. Defaults to InvoiceSettings().
        """
        self._settings = settings if settings is not None else InvoiceSettings()

    @property
    def settings(self) -> InvoiceSettings:
        """Returns the active invoice settings."""
        return self._settings

    def calculate_totals(
        self,
        subtotal: Decimal,
        tax_rate: Decimal,
        tax_enabled: bool,
        discount_amount: Decimal = Decimal("0")
    ) -> InvoiceTotals:
        """
        Computes tax and grand total for an invoice.

        Formula:
            tax_amount = subtotal * tax_rate / 100   (when tax is enabled)
            grand_total = subtotal + tax_amount - discount_amount

        Args:
            subtotal: Sum of line item amounts.
            tax_rate: Tax rate in percent.
            tax_enabled: Whether tax is applied.
            discount_amount: Flat discount.

        Returns:
            InvoiceTotals quantised to cents.
        """
        if tax_enabled:
            tax_amount = subtotal * tax_rate / Decimal("100")
        else:
            tax_amount = Decimal("0")

        subtotal = self._to_cents(subtotal)
        tax_amount = self._to_cents(tax_amount)
        discount_amount = self._to_cents(discount_amount)

        return InvoiceTotals(
            subtotal=subtotal,
            tax_amount=tax_amount,
            discount_amount=discount_amount,
            grand_total=subtotal + tax_amount - discount_amount
        )

    def totals_for_expenses(
        self,
        expenses: Iterable[ExpenseLineItem],
        include_tax: bool = True,
        discount_amount: Decimal = Decimal("0")
    ) -> InvoiceTotals:
        """
        Computes invoice totals for expenses using the active settings.

        Tax applies only when both the settings and the caller enable it.

        Args:
            expenses: Project expenses.
            include_tax: Caller's tax choice for this invoice.
            discount_amount: Flat discount.

        Returns:
            InvoiceTotals quantised to cents.
        """
        subtotal = sum(
            (line.amount for line in self.build_line_items(expenses)),
            Decimal("0")
        )
        return self.calculate_totals(
            subtotal,
            self._settings.tax_rate,
            include_tax and self._settings.tax_enabled,
            discount_amount
        )

    def build_line_items(
        self,
        expenses: Iterable[ExpenseLineItem]
    ) -> List[InvoiceLineItem]:
        """
        Numbers expenses as invoice rows, starting at 1.

        Args:
            expenses: Project expenses in display order.

        Returns:
            Invoice rows with per-line amount.
        """
        return [
            InvoiceLineItem(
                no=index,
                description=expense.description,
                quantity=expense.quantity,
                price=expense.price,
                amount=expense.quantity * expense.price
            )
            for index, expense in enumerate(expenses, start=1)
        ]

    def format_invoice_number(
        self,
        prefix: Optional[str] = None,
        number: Optional[int] = None
    ) -> str:
        """
        Formats an invoice number like "INV-00001".

        Args:
            prefix: Number prefix. Defaults to the settings prefix.
            number: Sequence number. Defaults to the next number in settings.

        Returns:
            Formatted invoice number.
        """
        prefix = prefix or self._settings.invoice_prefix or "INV"
        if number is None:
            number = self._settings.next_invoice_number or 1
        return f"{prefix}-{number:0{self.NUMBER_PADDING}d}"

    def default_due_date(
        self,
        invoice_date: date,
        days: Optional[int] = None
    ) -> date:
        """Returns the due date a number of days after the invoice date."""
        if days is None:
            days = self._settings.payment_terms_days
        return invoice_date + timedelta(days=days)

    def _to_cents(self, amount: Decimal) -> Decimal:
        """Quantises an amount to cents with Banker's Rounding."""
        return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_EVEN)
