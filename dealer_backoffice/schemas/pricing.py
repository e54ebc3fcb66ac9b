"""Pydantic schemas for computed invoice totals."""
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import Field

from dealer_backoffice.schemas.base import Amount, FrozenSchema
from dealer_backoffice.schemas.enums import BalanceSource, LineCategory, PaymentMethod


class CalculationWarning(FrozenSchema):
    """A data problem the calculator worked around instead of failing."""
    code: str
    field: Optional[str] = None
    message: str


class LineItem(FrozenSchema):
    key: str
    label: str
    category: LineCategory
    amount: Amount = Decimal("0.00")
    discount: Amount = Decimal("0.00")
    net_amount: Amount = Decimal("0.00")
    included: bool = True


class PaymentLine(FrozenSchema):
    """A labelled payment received, in display order."""
    method: PaymentMethod
    label: str
    amount: Amount
    paid_on: Optional[str] = None  # ISO date


class SaleDates(FrozenSchema):
    month_of_sale: str = ""
    quarter_of_sale: int = 0
    days_in_stock: int = 0


class PricingTotals(FrozenSchema):
    """
    Everything derived from an InvoiceRecord's numbers.

    Built by ``compute_totals`` and never stored. ``record_digest`` ties the
    totals to the record they were computed from.
    """
    line_items: Tuple[LineItem, ...] = ()
    subtotal: Amount
    vat_rate: Amount
    vat: Amount
    total_including_vat: Amount
    total_discount: Amount

    # Deposits
    total_deposit_due: Amount
    deposit_paid: Amount
    remaining_deposit: Amount

    # Payments
    overpayment: Amount
    overpayment_label: str
    part_exchange_amount_paid: Amount
    total_paid: Amount
    settled_amount: Amount
    payments: Tuple[PaymentLine, ...] = ()

    # Balance
    balance_due: Amount
    balance_source: BalanceSource

    sale_dates: SaleDates = Field(default_factory=SaleDates)
    warnings: Tuple[CalculationWarning, ...] = ()
    record_digest: str

    @property
    def is_complete(self) -> bool:
        return not self.warnings

    def included_line_items(self) -> Tuple[LineItem, ...]:
        return tuple(item for item in self.line_items if item.included)
