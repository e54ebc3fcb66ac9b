"""Pydantic schemas for the composed invoice document."""
from typing import Optional, Tuple

from dealer_backoffice.schemas.base import FrozenSchema
from dealer_backoffice.schemas.enums import PageId
from dealer_backoffice.schemas.invoice import InvoiceRecord
from dealer_backoffice.schemas.pricing import CalculationWarning, PricingTotals


class DisplayField(FrozenSchema):
    """A label/value pair, already formatted for the renderer."""
    name: str
    label: str
    value: str


class DisplayLine(FrozenSchema):
    key: str
    label: str
    amount: str
    discount: Optional[str] = None
    net_amount: str


class DisplayPayment(FrozenSchema):
    method: str
    label: str
    amount: str
    paid_on: str = ""


class RenderedPage(FrozenSchema):
    """
    One page of the invoice, ready for an external renderer.

    ``totals`` is the PricingTotals object the document was composed with;
    ``content`` carries the dealer's terms verbatim.
    """
    page_id: PageId
    position: int
    title: str
    variant: Optional[str] = None
    fields: Tuple[DisplayField, ...] = ()
    line_items: Tuple[DisplayLine, ...] = ()
    payments: Tuple[DisplayPayment, ...] = ()
    content: Optional[str] = None
    totals: PricingTotals
    warnings: Tuple[CalculationWarning, ...] = ()

    def field_value(self, name: str) -> Optional[str]:
        for item in self.fields:
            if item.name == name:
                return item.value
        return None


class InvoiceDocument(FrozenSchema):
    totals: PricingTotals
    pages: Tuple[RenderedPage, ...]
    warnings: Tuple[CalculationWarning, ...] = ()

    @property
    def page_ids(self) -> Tuple[PageId, ...]:
        return tuple(page.page_id for page in self.pages)


class ComposeRequest(FrozenSchema):
    record: InvoiceRecord
    totals: PricingTotals
