"""Pricing Calculator for vehicle sale invoices.

Single source of the invoice arithmetic. The editor preview, the print
preview and the generated document all read the PricingTotals built here,
so the three can never disagree on a number.

Subtotal inclusion:
- Vehicle sale price: always
- Warranty / enhanced warranty: retail only (trade sales carry no warranty value)
- Delivery and customer add-ons: always
- Finance add-ons: retail sales invoiced to a finance company only
- Part-exchange settlement: finance company invoices with the part exchange included

Every amount is post-discount and never negative. Missing numbers count as
zero and are reported as CalculationWarnings; computation never raises on
business data so a draft invoice can always be previewed.
"""
import calendar
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from dealer_backoffice.config import settings
from dealer_backoffice.core.money import (
    HUNDRED,
    ZERO,
    apply_discount,
    clamp_non_negative,
    percentage_of,
    quantize_money,
    sum_money,
)
from dealer_backoffice.schemas.enums import (
    BalanceSource,
    DiscountType,
    LineCategory,
    PaymentMethod,
)
from dealer_backoffice.schemas.invoice import AddOnGroup, InvoiceRecord, PaymentEntry
from dealer_backoffice.schemas.pricing import (
    CalculationWarning,
    LineItem,
    PaymentLine,
    PricingTotals,
    SaleDates,
)

logger = logging.getLogger(__name__)


RESERVATION_FEE_LABEL = "Vehicle reservation fee"
ADDITIONAL_DEPOSIT_LABEL = "Additional deposit payment"

PAYMENT_LABELS = {
    PaymentMethod.CASH: "CASH PAYMENT",
    PaymentMethod.CARD: "CARD PAYMENT",
    PaymentMethod.BACS: "BACS PAYMENT",
    PaymentMethod.PART_EXCHANGE: "PART EXCHANGE",
}


# ==================== Warnings ====================

def _warn(
    warnings: Optional[List[CalculationWarning]],
    code: str,
    field: Optional[str],
    message: str,
) -> None:
    logger.warning("Invoice calculation: %s (%s)", message, field or code)
    if warnings is not None:
        warnings.append(CalculationWarning(code=code, field=field, message=message))


def _amount(
    value: Optional[Decimal],
    field: str,
    warnings: Optional[List[CalculationWarning]],
) -> Decimal:
    """Read an input amount; missing is zero, unusable values are zero with a warning."""
    if value is None:
        return ZERO
    if not value.is_finite():
        _warn(warnings, "non_finite_amount", field, f"{field} is not a finite number, treated as 0")
        return ZERO
    if value < ZERO:
        _warn(warnings, "negative_amount", field, f"{field} is negative ({value}), treated as 0")
        return ZERO
    return value


# ==================== Line Items ====================

def _priced_line(
    key: str,
    label: str,
    category: LineCategory,
    amount: Optional[Decimal],
    discount: Optional[Decimal],
    discount_type: DiscountType,
    field: str,
    included: bool,
    warnings: Optional[List[CalculationWarning]],
) -> LineItem:
    base = _amount(amount, f"{field}.amount", warnings)
    raw_discount = _amount(discount, f"{field}.discount", warnings)
    is_percentage = discount_type == DiscountType.PERCENTAGE

    if is_percentage and raw_discount > HUNDRED:
        _warn(warnings, "discount_exceeds_amount", f"{field}.discount",
              f"{label} discount of {raw_discount}% capped at 100%")
    elif not is_percentage and raw_discount > base:
        _warn(warnings, "discount_exceeds_amount", f"{field}.discount",
              f"{label} discount {raw_discount} exceeds its amount {base}, capped")

    applied, net = apply_discount(base, raw_discount, is_percentage=is_percentage)
    return LineItem(
        key=key,
        label=label,
        category=category,
        amount=quantize_money(base),
        discount=quantize_money(applied),
        net_amount=quantize_money(net),
        included=included,
    )


def _addon_lines(
    group: AddOnGroup,
    prefix: str,
    category: LineCategory,
    included: bool,
    warnings: Optional[List[CalculationWarning]],
) -> List[LineItem]:
    lines = []
    for slot, addon in group.slots():
        if addon.cost is None and not addon.name:
            continue
        lines.append(_priced_line(
            key=f"{prefix}.{slot}",
            label=addon.name or "Add-on",
            category=category,
            amount=addon.cost,
            discount=addon.discount,
            discount_type=addon.discount_type,
            field=f"{prefix}.{slot}",
            included=included,
            warnings=warnings,
        ))
    return lines


def calculate_line_items(
    record: InvoiceRecord,
    warnings: Optional[List[CalculationWarning]] = None,
) -> Tuple[LineItem, ...]:
    """
    Build the invoice lines with their inclusion flags.

    Lines that do not count towards the subtotal are still returned with
    ``included=False`` so the stored cost can be shown elsewhere.
    """
    pricing = record.pricing
    retail = not record.is_trade
    finance_addons_included = retail and record.is_finance_invoice

    if pricing.sale_price.amount is None:
        _warn(warnings, "missing_sale_price", "pricing.sale_price.amount",
              "Vehicle sale price is missing, treated as 0")

    vehicle_label = " ".join(
        p for p in (record.vehicle.make, record.vehicle.model) if p
    ) or "Vehicle"

    lines = [
        _priced_line("sale_price", vehicle_label, LineCategory.VEHICLE,
                     pricing.sale_price.amount, pricing.sale_price.discount,
                     pricing.sale_price.discount_type, "pricing.sale_price",
                     True, warnings),
    ]

    warranty_items = (
        ("warranty_price", record.warranty.name or "Warranty", pricing.warranty_price),
        ("enhanced_warranty_price", "Enhanced warranty", pricing.enhanced_warranty_price),
    )
    for key, label, item in warranty_items:
        if item.amount is None:
            continue
        lines.append(_priced_line(key, label, LineCategory.WARRANTY, item.amount,
                                  item.discount, item.discount_type,
                                  f"pricing.{key}", retail, warnings))

    if pricing.delivery.amount is not None:
        lines.append(_priced_line("delivery", "Delivery", LineCategory.DELIVERY,
                                  pricing.delivery.amount, pricing.delivery.discount,
                                  pricing.delivery.discount_type, "pricing.delivery",
                                  True, warnings))

    lines.extend(_addon_lines(record.customer_addons, "customer_addons",
                              LineCategory.CUSTOMER_ADDON, True, warnings))
    lines.extend(_addon_lines(record.finance_addons, "finance_addons",
                              LineCategory.FINANCE_ADDON, finance_addons_included, warnings))

    part_exchange = record.payment.part_exchange
    if part_exchange.included and part_exchange.settlement_amount is not None:
        settlement = _amount(part_exchange.settlement_amount,
                             "payment.part_exchange.settlement_amount", warnings)
        lines.append(LineItem(
            key="part_exchange_settlement",
            label="Part exchange settlement",
            category=LineCategory.SETTLEMENT,
            amount=quantize_money(settlement),
            discount=quantize_money(ZERO),
            net_amount=quantize_money(settlement),
            included=record.is_finance_invoice,
        ))

    return tuple(lines)


# ==================== Deposits ====================

def calculate_deposits(
    record: InvoiceRecord,
    line_items: Tuple[LineItem, ...],
    warnings: Optional[List[CalculationWarning]] = None,
) -> Dict[str, Decimal]:
    """
    Deposit due, paid and remaining.

    Finance company invoices: the customer's deposit covers everything the
    finance company does not (warranty, delivery, customer add-ons) unless a
    compulsory deposit is set, plus any voluntary contribution. The dealer's
    reservation counts as paid.
    """
    deposit = record.payment.deposit
    compulsory = _amount(deposit.compulsory_amount, "payment.deposit.compulsory_amount", warnings)
    amount_paid = _amount(deposit.amount_paid, "payment.deposit.amount_paid", warnings)

    if record.is_finance_invoice:
        if deposit.compulsory_amount is not None:
            due = compulsory
        else:
            deposit_categories = (
                LineCategory.WARRANTY, LineCategory.DELIVERY, LineCategory.CUSTOMER_ADDON
            )
            due = sum_money(
                item.net_amount for item in line_items
                if item.included and item.category in deposit_categories
            )
        due += _amount(record.pricing.voluntary_contribution,
                       "pricing.voluntary_contribution", warnings)
        paid = amount_paid + _amount(deposit.dealer_deposit_paid,
                                     "payment.deposit.dealer_deposit_paid", warnings)
    else:
        due = compulsory
        paid = amount_paid

    return {
        "total_deposit_due": quantize_money(due),
        "deposit_paid": quantize_money(paid),
        "remaining_deposit": quantize_money(clamp_non_negative(due - paid)),
    }


# ==================== Payments ====================

def _entry_lines(
    entries: Tuple[PaymentEntry, ...],
    method: PaymentMethod,
    field: str,
    warnings: Optional[List[CalculationWarning]],
) -> List[PaymentLine]:
    lines = []
    for index, entry in enumerate(entries):
        value = _amount(entry.amount, f"{field}[{index}].amount", warnings)
        if value == ZERO:
            continue
        lines.append(PaymentLine(
            method=method,
            label=PAYMENT_LABELS[method],
            amount=quantize_money(value),
            paid_on=entry.paid_on.isoformat() if entry.paid_on else None,
        ))
    return lines


def _overpayment(
    record: InvoiceRecord,
    deposits: Dict[str, Decimal],
    warnings: Optional[List[CalculationWarning]],
) -> Tuple[Decimal, str]:
    """The one overpayment figure that applies to this recipient, and its label."""
    payment = record.payment
    if record.is_finance_invoice:
        consulted, consulted_field = payment.overpayments_finance, "payment.overpayments_finance"
        ignored, ignored_field = payment.overpayments_customer, "payment.overpayments_customer"
        label = RESERVATION_FEE_LABEL
    else:
        consulted, consulted_field = payment.overpayments_customer, "payment.overpayments_customer"
        ignored, ignored_field = payment.overpayments_finance, "payment.overpayments_finance"
        label = ADDITIONAL_DEPOSIT_LABEL

    if ignored is not None and ignored != ZERO:
        _warn(warnings, "overpayment_ignored", ignored_field,
              f"{ignored_field} does not apply to {record.recipient_type.value} invoices and was ignored")

    if consulted is None:
        value = clamp_non_negative(deposits["deposit_paid"] - deposits["total_deposit_due"])
    else:
        value = _amount(consulted, consulted_field, warnings)
    return quantize_money(value), label


# ==================== Balance ====================

def _upstream_balance(
    value: Decimal,
    field: str,
    warnings: Optional[List[CalculationWarning]],
) -> Decimal:
    if not value.is_finite():
        _warn(warnings, "non_finite_amount", field, f"{field} is not a finite number, treated as 0")
        return ZERO
    if value < ZERO:
        _warn(warnings, "negative_balance_clamped", field,
              f"{field} is negative ({value}), balance due clamped to 0")
        return ZERO
    return value


def _balance_due(
    record: InvoiceRecord,
    computed: Decimal,
    warnings: Optional[List[CalculationWarning]],
) -> Tuple[Decimal, BalanceSource]:
    payment = record.payment

    if record.is_finance_invoice:
        if payment.balance_to_finance is None:
            _warn(warnings, "missing_balance_to_finance", "payment.balance_to_finance",
                  "Balance to finance is missing on a finance company invoice, treated as 0")
            return ZERO, BalanceSource.BALANCE_TO_FINANCE
        return (
            _upstream_balance(payment.balance_to_finance, "payment.balance_to_finance", warnings),
            BalanceSource.BALANCE_TO_FINANCE,
        )

    if record.is_trade:
        return computed, BalanceSource.TRADE_CALCULATION

    upstream = (
        (payment.customer_balance_due, "payment.customer_balance_due", BalanceSource.CUSTOMER_BALANCE_DUE),
        (payment.outstanding_balance, "payment.outstanding_balance", BalanceSource.OUTSTANDING_BALANCE),
    )
    for value, field, source in upstream:
        if value is not None:
            return _upstream_balance(value, field, warnings), source

    return computed, BalanceSource.RETAIL_CALCULATION


# ==================== Sale Dates ====================

def calculate_sale_dates(record: InvoiceRecord) -> SaleDates:
    """Month and quarter of sale, and days the vehicle spent in stock."""
    sold_on = record.sale_date or record.invoice_date
    if sold_on is None:
        return SaleDates()

    days_in_stock = 0
    if record.purchase_date is not None:
        days_in_stock = abs((sold_on - record.purchase_date).days)

    return SaleDates(
        month_of_sale=calendar.month_name[sold_on.month],
        quarter_of_sale=(sold_on.month - 1) // 3 + 1,
        days_in_stock=days_in_stock,
    )


# ==================== Totals ====================

def _resolve_vat_rate(vat_rate: Optional[Decimal]) -> Decimal:
    rate = settings.VAT_RATE_PERCENT if vat_rate is None else Decimal(str(vat_rate))
    if not rate.is_finite() or rate < ZERO or rate > HUNDRED:
        raise ValueError(f"VAT rate must be between 0 and 100, got {vat_rate}")
    return rate


def compute_totals(record: InvoiceRecord, vat_rate: Optional[Decimal] = None) -> PricingTotals:
    """
    Compute every monetary total of an invoice.

    Args:
        record: The invoice record to price
        vat_rate: VAT percentage; defaults to settings.VAT_RATE_PERCENT

    Returns:
        PricingTotals, fully quantized to pence, with any data warnings

    Raises:
        ValueError: vat_rate outside 0-100. This is a caller error, not
            invoice data; bad invoice data only ever produces warnings.
    """
    rate = _resolve_vat_rate(vat_rate)
    warnings: List[CalculationWarning] = []

    line_items = calculate_line_items(record, warnings)
    included = [item for item in line_items if item.included]
    subtotal = quantize_money(sum_money(item.net_amount for item in included))
    total_discount = quantize_money(sum_money(item.discount for item in included))
    vat = quantize_money(percentage_of(subtotal, rate))

    deposits = calculate_deposits(record, line_items, warnings)

    payment = record.payment
    payments: List[PaymentLine] = []

    part_exchange = payment.part_exchange
    part_exchange_paid = ZERO
    if part_exchange.included:
        if part_exchange.amount_paid is not None:
            part_exchange_paid = _amount(part_exchange.amount_paid,
                                         "payment.part_exchange.amount_paid", warnings)
        else:
            value = _amount(part_exchange.value_of_vehicle,
                            "payment.part_exchange.value_of_vehicle", warnings)
            settlement = _amount(part_exchange.settlement_amount,
                                 "payment.part_exchange.settlement_amount", None)
            part_exchange_paid = clamp_non_negative(value - settlement)
        part_exchange_paid = quantize_money(part_exchange_paid)
        if part_exchange_paid > ZERO:
            payments.append(PaymentLine(
                method=PaymentMethod.PART_EXCHANGE,
                label=PAYMENT_LABELS[PaymentMethod.PART_EXCHANGE],
                amount=part_exchange_paid,
            ))

    payments.extend(_entry_lines(payment.card_payments, PaymentMethod.CARD,
                                 "payment.card_payments", warnings))
    payments.extend(_entry_lines(payment.bacs_payments, PaymentMethod.BACS,
                                 "payment.bacs_payments", warnings))
    payments.extend(_entry_lines(payment.cash_payments, PaymentMethod.CASH,
                                 "payment.cash_payments", warnings))
    instrument_total = sum_money(line.amount for line in payments)

    overpayment, overpayment_label = _overpayment(record, deposits, warnings)
    if overpayment > ZERO:
        payments.append(PaymentLine(
            method=PaymentMethod.OVERPAYMENT,
            label=overpayment_label.upper(),
            amount=overpayment,
        ))

    total_paid = quantize_money(instrument_total + overpayment)
    # Trade invoices fold the deposit into payments
    settled_amount = quantize_money(instrument_total + deposits["deposit_paid"])
    computed_balance = clamp_non_negative(subtotal + vat - settled_amount)
    balance_due, balance_source = _balance_due(record, computed_balance, warnings)

    totals = PricingTotals(
        line_items=line_items,
        subtotal=subtotal,
        vat_rate=rate,
        vat=vat,
        total_including_vat=quantize_money(subtotal + vat),
        total_discount=total_discount,
        total_deposit_due=deposits["total_deposit_due"],
        deposit_paid=deposits["deposit_paid"],
        remaining_deposit=deposits["remaining_deposit"],
        overpayment=overpayment,
        overpayment_label=overpayment_label,
        part_exchange_amount_paid=part_exchange_paid,
        total_paid=total_paid,
        settled_amount=settled_amount,
        payments=tuple(payments),
        balance_due=quantize_money(balance_due),
        balance_source=balance_source,
        sale_dates=calculate_sale_dates(record),
        warnings=tuple(warnings),
        record_digest=record.digest(),
    )

    logger.debug(
        "Invoice %s totals: subtotal=%s vat=%s balance_due=%s (%s)",
        record.invoice_number, totals.subtotal, totals.vat,
        totals.balance_due, totals.balance_source.value,
    )
    return totals
