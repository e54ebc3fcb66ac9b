"""
Document Composer - ordered invoice pages for the rendering backend.

Pages are emitted in a fixed order and gated by the ``page.*`` conditions of
the condition evaluator, evaluated against ``record.form_snapshot()``:

    core -> checklist -> standard_terms -> in_house_warranty -> external_warranty

The composer only formats. Every figure on the core page comes from the
PricingTotals it is given; nothing is recomputed here.
"""
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from dealer_backoffice.config import settings
from dealer_backoffice.core.money import ZERO, format_currency, format_date
from dealer_backoffice.schemas.document import (
    DisplayField,
    DisplayLine,
    DisplayPayment,
    InvoiceDocument,
    RenderedPage,
)
from dealer_backoffice.schemas.enums import BalanceSource, PageId
from dealer_backoffice.schemas.invoice import InvoiceRecord, PartyDetails
from dealer_backoffice.schemas.pricing import CalculationWarning, PricingTotals
from dealer_backoffice.services.condition_evaluator import evaluate_all
from dealer_backoffice.services.finance_companies import format_finance_company_invoice_text
from dealer_backoffice.services.pricing_calculator import compute_totals

logger = logging.getLogger(__name__)


class DocumentCompositionError(Exception):
    """Raised when a page cannot be built."""
    pass


PAGE_TITLES = {
    PageId.CORE: "Invoice",
    PageId.CHECKLIST: "Vehicle Checklist",
    PageId.STANDARD_TERMS: "Terms and Conditions",
    PageId.IN_HOUSE_WARRANTY: "In-House Engine & Transmission Warranty",
    PageId.EXTERNAL_WARRANTY: "Warranty Terms",
}

TRADE_DISCLAIMER_TITLE = "Trade Sale Disclaimer"

BALANCE_LABELS = {
    BalanceSource.BALANCE_TO_FINANCE: "BALANCE TO FINANCE",
    BalanceSource.TRADE_CALCULATION: "BALANCE DUE",
    BalanceSource.CUSTOMER_BALANCE_DUE: "CUSTOMER BALANCE DUE",
    BalanceSource.OUTSTANDING_BALANCE: "CUSTOMER BALANCE DUE",
    BalanceSource.RETAIL_CALCULATION: "CUSTOMER BALANCE DUE",
}


# ==================== Formatting ====================

def _money(value: Optional[Decimal]) -> str:
    return format_currency(value, settings.CURRENCY_SYMBOL, settings.CURRENCY_DECIMAL_PLACES)


def _date(value: Any) -> str:
    return format_date(value, settings.DATE_FORMAT)


def _field(name: str, label: str, value: Any) -> DisplayField:
    return DisplayField(name=name, label=label, value="" if value is None else str(value))


def _party_fields(prefix: str, label: str, party: PartyDetails) -> List[DisplayField]:
    return [
        _field(f"{prefix}_name", label, party.display_name),
        _field(f"{prefix}_address", f"{label} Address", "\n".join(party.address.lines())),
    ]


# ==================== Pages ====================

def _invoice_to(record: InvoiceRecord, visible: Mapping[str, bool]) -> str:
    if visible["field.finance_company"] and record.finance_company is not None:
        return format_finance_company_invoice_text(record.vehicle.registration, record.finance_company)
    lines = [record.customer.display_name, *record.customer.address.lines()]
    return "INVOICE TO:\n" + "\n".join(line for line in lines if line)


def _core_page(
    record: InvoiceRecord,
    totals: PricingTotals,
    visible: Mapping[str, bool],
) -> Dict[str, Any]:
    vehicle = record.vehicle
    fields = [
        _field("invoice_number", "Invoice Number", record.invoice_number),
        _field("invoice_date", "Invoice Date", _date(record.invoice_date)),
        _field("due_date", "Due Date", _date(record.due_date)),
        _field("sale_type", "Sale Type", record.sale_type.value.title()),
        _field("invoice_to", "Invoice To", _invoice_to(record, visible)),
    ]
    if visible["field.deliver_to"] and record.deliver_to is not None:
        fields.extend(_party_fields("deliver_to", "Deliver To", record.deliver_to))
    if visible["field.purchase_from"] and record.purchase_from is not None:
        fields.extend(_party_fields("purchase_from", "Purchase From", record.purchase_from))

    fields.extend([
        _field("registration", "Registration", (vehicle.registration or "").upper()),
        _field("make", "Make", vehicle.make),
        _field("model", "Model", vehicle.model),
        _field("derivative", "Derivative", vehicle.derivative),
        _field("vin", "VIN", vehicle.vin),
        _field("mileage", "Mileage", vehicle.mileage),
        _field("colour", "Colour", vehicle.colour),
        _field("fuel_type", "Fuel Type", vehicle.fuel_type),

        # Totals, straight from PricingTotals
        _field("subtotal", "Subtotal", _money(totals.subtotal)),
        _field("vat", f"VAT ({totals.vat_rate.normalize():f}%)", _money(totals.vat)),
        _field("total", "Total", _money(totals.total_including_vat)),
        _field("total_discount", "Total Discount", _money(totals.total_discount)),
        _field("deposit_due", "Deposit Due", _money(totals.total_deposit_due)),
        _field("deposit_paid", "Deposit Paid", _money(totals.deposit_paid)),
        _field("remaining_deposit", "Remaining Deposit", _money(totals.remaining_deposit)),
        _field("total_paid", "Payments Received", _money(totals.total_paid)),
        _field("balance_due", BALANCE_LABELS[totals.balance_source], _money(totals.balance_due)),

        _field("delivery_type", "Collection / Delivery", record.delivery_type.value.title()),
        _field("delivery_date", "Collection / Delivery Date", _date(record.delivery_date)),
        _field("month_of_sale", "Month of Sale", totals.sale_dates.month_of_sale),
        _field("quarter_of_sale", "Quarter of Sale",
               totals.sale_dates.quarter_of_sale or ""),
        _field("days_in_stock", "Days in Stock", totals.sale_dates.days_in_stock),
    ])
    if totals.warnings:
        fields.append(_field("incomplete", "Incomplete", "Yes"))

    line_items = tuple(
        DisplayLine(
            key=item.key,
            label=item.label,
            amount=_money(item.amount),
            discount=_money(item.discount) if item.discount > ZERO else None,
            net_amount=_money(item.net_amount),
        )
        for item in totals.line_items if item.included
    )
    payments = tuple(
        DisplayPayment(
            method=line.method.value,
            label=line.label,
            amount=_money(line.amount),
            paid_on=_date(line.paid_on),
        )
        for line in totals.payments
    )
    return {"fields": tuple(fields), "line_items": line_items, "payments": payments}


def _checklist_page(
    record: InvoiceRecord,
    totals: PricingTotals,
    visible: Mapping[str, bool],
) -> Dict[str, Any]:
    if record.is_trade:
        return {
            "title": TRADE_DISCLAIMER_TITLE,
            "variant": "trade_disclaimer",
            "fields": (_field("disclaimer", "Disclaimer", settings.TRADE_DISCLAIMER_TEXT),),
            "content": record.terms.trade_terms,
        }

    checklist = record.checklist
    items = (
        ("mileage", "Mileage", checklist.mileage),
        ("number_of_keys", "Number of Keys", checklist.number_of_keys),
        ("user_manual", "User Manual", checklist.user_manual),
        ("service_history_record", "Service History Record", checklist.service_history_record),
        ("wheel_locking_nut", "Wheel Locking Nut", checklist.wheel_locking_nut),
        ("cambelt_chain_confirmation", "Cambelt / Chain Confirmation",
         checklist.cambelt_chain_confirmation),
        ("vehicle_inspection_test_drive", "Vehicle Inspection / Test Drive",
         checklist.vehicle_inspection_test_drive),
        ("dealer_pre_sale_check", "Dealer Pre-Sale Check", checklist.dealer_pre_sale_check),
        ("fuel_type", "Fuel Type", checklist.fuel_type),
    )
    return {
        "variant": "vehicle_checklist",
        "fields": tuple(_field(name, label, value) for name, label, value in items),
        "content": record.terms.checklist_terms,
    }


def _standard_terms_page(record, totals, visible) -> Dict[str, Any]:
    return {"content": record.terms.basic_terms}


def _in_house_warranty_page(record, totals, visible) -> Dict[str, Any]:
    warranty = record.warranty
    return {
        "fields": (
            _field("warranty_level", "Warranty Level", warranty.level),
            _field("warranty_name", "Warranty", warranty.name),
        ),
        "content": record.terms.in_house_warranty_terms,
    }


def _external_warranty_page(record, totals, visible) -> Dict[str, Any]:
    warranty = record.warranty
    fields = [
        _field("warranty_level", "Warranty Level", warranty.level),
        _field("warranty_name", "Warranty", warranty.name),
        _field("warranty_details", "Details", warranty.details),
    ]
    if visible["field.enhanced_warranty_details"]:
        fields.append(_field("enhanced_warranty_level", "Enhanced Warranty", warranty.enhanced_level))
        fields.append(_field("enhanced_warranty_details", "Enhanced Details", warranty.enhanced_details))
    return {"fields": tuple(fields), "content": record.terms.third_party_terms}


PAGE_BUILDERS: Dict[PageId, Callable[..., Dict[str, Any]]] = {
    PageId.CORE: _core_page,
    PageId.CHECKLIST: _checklist_page,
    PageId.STANDARD_TERMS: _standard_terms_page,
    PageId.IN_HOUSE_WARRANTY: _in_house_warranty_page,
    PageId.EXTERNAL_WARRANTY: _external_warranty_page,
}


# ==================== Composition ====================

def visible_pages(record: InvoiceRecord) -> Tuple[PageId, ...]:
    """Visible page ids in render order."""
    visible = evaluate_all(record.form_snapshot())
    return tuple(page_id for page_id in PageId if visible[f"page.{page_id.value}"])


def compose_document(record: InvoiceRecord, totals: PricingTotals) -> List[RenderedPage]:
    """
    Build the ordered, filtered page list for an invoice.

    ``totals`` must come from ``compute_totals(record)``. If it was computed
    from a different record a ``stale_totals`` warning is attached to the
    core page; the figures are still rendered as given.
    """
    visible = evaluate_all(record.form_snapshot())

    core_warnings: Tuple[CalculationWarning, ...] = totals.warnings
    if totals.record_digest != record.digest():
        logger.warning(
            "Invoice %s: totals were computed from a different version of the record",
            record.invoice_number,
        )
        core_warnings = core_warnings + (CalculationWarning(
            code="stale_totals",
            field=None,
            message="Totals were computed from a different version of this invoice",
        ),)

    pages: List[RenderedPage] = []
    for page_id in PageId:
        if not visible[f"page.{page_id.value}"]:
            continue
        try:
            content = PAGE_BUILDERS[page_id](record, totals, visible)
        except (KeyError, ValueError) as e:
            raise DocumentCompositionError(f"Failed to build {page_id.value} page: {e}") from e

        pages.append(RenderedPage(
            page_id=page_id,
            position=len(pages) + 1,
            title=content.pop("title", PAGE_TITLES[page_id]),
            totals=totals,
            warnings=core_warnings if page_id == PageId.CORE else (),
            **content,
        ))

    logger.debug(
        "Invoice %s composed pages: %s",
        record.invoice_number, [page.page_id.value for page in pages],
    )
    return pages


def build_invoice_document(record: InvoiceRecord, vat_rate: Optional[Decimal] = None) -> InvoiceDocument:
    """Compute totals once and compose the pages from them."""
    totals = compute_totals(record, vat_rate=vat_rate)
    pages = compose_document(record, totals)
    return InvoiceDocument(totals=totals, pages=tuple(pages), warnings=totals.warnings)
