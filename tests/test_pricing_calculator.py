"""
Tests for the invoice pricing calculator.

Covers the subtotal inclusion rules for retail, trade and finance company
invoices, the three balance-due branches, deposits, overpayments and the
warnings raised for incomplete drafts.
"""
import random
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from dealer_backoffice.schemas.enums import (
    BalanceSource,
    LineCategory,
    PaymentMethod,
    RecipientType,
    SaleType,
)
from dealer_backoffice.schemas.invoice import InvoiceRecord
from dealer_backoffice.services.pricing_calculator import compute_totals


def _codes(totals):
    return [w.code for w in totals.warnings]


def _line(totals, key):
    return next(item for item in totals.line_items if item.key == key)


# --------------------------------------------------------------------
# RETAIL
# --------------------------------------------------------------------
class TestRetailCustomerInvoice:

    def test_scenario_totals(self, retail_scenario):
        totals = compute_totals(InvoiceRecord.model_validate(retail_scenario))

        assert totals.subtotal == Decimal("10500.00")
        assert totals.vat == Decimal("0.00")
        assert totals.total_paid == Decimal("2000.00")
        assert totals.is_complete

    def test_balance_computed_when_no_upstream_figure(self, retail_scenario):
        totals = compute_totals(InvoiceRecord.model_validate(retail_scenario))

        assert totals.balance_due == Decimal("8500.00")
        assert totals.balance_source == BalanceSource.RETAIL_CALCULATION

    def test_customer_balance_due_wins(self, retail_scenario):
        retail_scenario["payment"]["customer_balance_due"] = "7000"
        retail_scenario["payment"]["outstanding_balance"] = "6000"
        totals = compute_totals(InvoiceRecord.model_validate(retail_scenario))

        assert totals.balance_due == Decimal("7000.00")
        assert totals.balance_source == BalanceSource.CUSTOMER_BALANCE_DUE

    def test_outstanding_balance_is_second_choice(self, retail_scenario):
        retail_scenario["payment"]["outstanding_balance"] = "6000"
        totals = compute_totals(InvoiceRecord.model_validate(retail_scenario))

        assert totals.balance_due == Decimal("6000.00")
        assert totals.balance_source == BalanceSource.OUTSTANDING_BALANCE

    def test_negative_upstream_balance_is_clamped(self, retail_scenario):
        retail_scenario["payment"]["customer_balance_due"] = "-50"
        totals = compute_totals(InvoiceRecord.model_validate(retail_scenario))

        assert totals.balance_due == Decimal("0.00")
        assert "negative_balance_clamped" in _codes(totals)

    def test_warranty_counts_for_retail(self, make_record):
        record = make_record(pricing={
            "warranty_price": {"amount": "800"},
            "enhanced_warranty_price": {"amount": "200", "discount": "50"},
        })
        totals = compute_totals(record)

        assert totals.subtotal == Decimal("10950.00")
        assert _line(totals, "enhanced_warranty_price").net_amount == Decimal("150.00")

    def test_customer_addons_always_count(self, make_record):
        record = make_record(customer_addons={
            "enabled": True,
            "addon1": {"name": "Mats", "cost": "100"},
            "dynamic": [{"name": "Tint", "cost": "250", "discount": "50"}],
        })
        totals = compute_totals(record)

        assert totals.subtotal == Decimal("10300.00")
        assert _line(totals, "customer_addons.dynamic1").label == "Tint"

    def test_finance_addons_excluded_for_customer(self, make_record):
        record = make_record(finance_addons={"addon1": {"name": "GAP", "cost": "300"}})
        totals = compute_totals(record)

        gap = _line(totals, "finance_addons.addon1")
        assert gap.included is False
        assert gap.net_amount == Decimal("300.00")
        assert totals.subtotal == Decimal("10000.00")

    def test_part_exchange_settlement_excluded_for_customer(self, make_record):
        record = make_record(payment={"part_exchange": {
            "included": "Yes", "value_of_vehicle": "3000", "settlement_amount": "1200",
        }})
        totals = compute_totals(record)

        assert totals.subtotal == Decimal("10000.00")
        assert totals.part_exchange_amount_paid == Decimal("1800.00")
        assert totals.payments[0].method == PaymentMethod.PART_EXCHANGE

    def test_percentage_discount(self, make_record):
        record = make_record(pricing={"sale_price": {
            "amount": "10000", "discount": "10", "discount_type": "percentage",
        }})
        totals = compute_totals(record)

        assert totals.subtotal == Decimal("9000.00")
        assert totals.total_discount == Decimal("1000.00")


# --------------------------------------------------------------------
# TRADE
# --------------------------------------------------------------------
class TestTradeInvoice:

    def test_warranty_contributes_nothing(self, make_record):
        record = make_record(
            sale_type="Trade",
            pricing={"warranty_price": {"amount": "800"}},
            payment={
                "card_payments": [{"amount": "1000"}],
                "deposit": {"amount_paid": "500"},
            },
        )
        totals = compute_totals(record)

        assert _line(totals, "warranty_price").included is False
        assert totals.subtotal == Decimal("10000.00")
        # deposit folds into payments on trade invoices
        assert totals.settled_amount == Decimal("1500.00")
        assert totals.balance_due == Decimal("8500.00")
        assert totals.balance_source == BalanceSource.TRADE_CALCULATION

    def test_balance_never_negative(self, make_record):
        record = make_record(
            sale_type=SaleType.TRADE,
            payment={"bacs_payments": [{"amount": "12000"}]},
        )
        totals = compute_totals(record)

        assert totals.balance_due == Decimal("0.00")

    def test_finance_addons_excluded_even_for_finance_company(self, make_record):
        record = make_record(
            sale_type="trade",
            recipient_type="Finance Company",
            finance_addons={"addon1": {"name": "GAP", "cost": "300"}},
            payment={"balance_to_finance": "8000"},
        )
        totals = compute_totals(record)

        assert _line(totals, "finance_addons.addon1").included is False
        assert totals.subtotal == Decimal("10000.00")


# --------------------------------------------------------------------
# FINANCE COMPANY
# --------------------------------------------------------------------
class TestFinanceCompanyInvoice:

    def test_settlement_included_and_balance_trusted(self, make_record):
        record = make_record(
            recipient_type="Finance Company",
            payment={
                "part_exchange": {
                    "included": True, "value_of_vehicle": "3000", "settlement_amount": "1200",
                },
                "balance_to_finance": "6543.21",
            },
        )
        totals = compute_totals(record)

        assert totals.subtotal == Decimal("11200.00")
        assert totals.balance_due == Decimal("6543.21")
        assert totals.balance_source == BalanceSource.BALANCE_TO_FINANCE

    def test_finance_addons_included(self, make_record):
        record = make_record(
            recipient_type=RecipientType.FINANCE_COMPANY,
            finance_addons={"addon2": {"name": "GAP", "cost": "300", "discount": "100"}},
            payment={"balance_to_finance": "9000"},
        )
        totals = compute_totals(record)

        assert totals.subtotal == Decimal("10200.00")

    def test_missing_balance_to_finance_warns(self, make_record):
        totals = compute_totals(make_record(recipient_type="finance_company"))

        assert totals.balance_due == Decimal("0.00")
        assert "missing_balance_to_finance" in _codes(totals)
        assert not totals.is_complete

    def test_deposit_covers_what_finance_does_not(self, make_record):
        record = make_record(
            recipient_type="finance_company",
            pricing={
                "warranty_price": {"amount": "500"},
                "delivery": {"amount": "200"},
                "voluntary_contribution": "100",
            },
            payment={
                "deposit": {"dealer_deposit_paid": "300", "amount_paid": "100"},
                "balance_to_finance": "10000",
            },
        )
        totals = compute_totals(record)

        assert totals.total_deposit_due == Decimal("800.00")
        assert totals.deposit_paid == Decimal("400.00")
        assert totals.remaining_deposit == Decimal("400.00")

    def test_reservation_fee_overpayment(self, make_record):
        record = make_record(
            recipient_type="finance_company",
            payment={
                "overpayments_finance": "300",
                "overpayments_customer": "50",
                "balance_to_finance": "9000",
            },
        )
        totals = compute_totals(record)

        assert totals.overpayment == Decimal("300.00")
        assert totals.overpayment_label == "Vehicle reservation fee"
        assert totals.total_paid == Decimal("300.00")
        assert "overpayment_ignored" in _codes(totals)


# --------------------------------------------------------------------
# DEPOSITS & OVERPAYMENTS
# --------------------------------------------------------------------
def test_customer_additional_deposit(make_record):
    record = make_record(payment={"overpayments_customer": "250"})
    totals = compute_totals(record)

    assert totals.overpayment_label == "Additional deposit payment"
    assert totals.payments[-1].label == "ADDITIONAL DEPOSIT PAYMENT"
    assert totals.total_paid == Decimal("250.00")


def test_deposit_excess_becomes_overpayment(make_record):
    record = make_record(payment={"deposit": {"compulsory_amount": "1000", "amount_paid": "1500"}})
    totals = compute_totals(record)

    assert totals.remaining_deposit == Decimal("0.00")
    assert totals.overpayment == Decimal("500.00")


def test_negative_payment_is_ignored(make_record):
    record = make_record(payment={"cash_payments": [{"amount": "-100"}, {"amount": "40"}]})
    totals = compute_totals(record)

    assert totals.total_paid == Decimal("40.00")
    assert "negative_amount" in _codes(totals)


# --------------------------------------------------------------------
# WARNINGS, VAT, DATES
# --------------------------------------------------------------------
def test_missing_sale_price_warns_but_prices(make_record):
    record = make_record(pricing={"sale_price": {"amount": None}, "delivery": {"amount": "500"}})
    totals = compute_totals(record)

    assert totals.subtotal == Decimal("500.00")
    assert "missing_sale_price" in _codes(totals)


def test_oversized_discount_is_capped(make_record):
    record = make_record(pricing={"delivery": {"amount": "100", "discount": "150"}})
    totals = compute_totals(record)

    assert _line(totals, "delivery").net_amount == Decimal("0.00")
    assert "discount_exceeds_amount" in _codes(totals)


def test_unreadable_amount_rejected_at_boundary(invoice_data):
    with pytest.raises(ValidationError):
        InvoiceRecord.model_validate(invoice_data(pricing={"sale_price": {"amount": "ten grand"}}))


@pytest.mark.parametrize("amount", ["1e30", "-1e30", "10000000000000"])
def test_out_of_range_amount_rejected_at_boundary(invoice_data, amount):
    with pytest.raises(ValidationError, match="out of range"):
        InvoiceRecord.model_validate(invoice_data(pricing={"sale_price": {"amount": amount}}))
    with pytest.raises(ValidationError):
        InvoiceRecord.model_validate(invoice_data(payment={"balance_to_finance": amount}))


def test_largest_amounts_still_price(invoice_data):
    top = "9999999999999.99"
    record = InvoiceRecord.model_validate(invoice_data(
        pricing={
            "sale_price": {"amount": top},
            "warranty_price": {"amount": top},
            "delivery": {"amount": top},
        },
        customer_addons={"addon1": {"name": "Mats", "cost": top}},
        payment={"card_payments": [{"amount": top}]},
    ))

    totals = compute_totals(record, vat_rate=Decimal("20"))

    assert totals.subtotal == Decimal("39999999999999.96")
    assert totals.vat == Decimal("7999999999999.99")
    assert totals.balance_due == Decimal("37999999999999.96")


def test_vat_rate_is_a_parameter(retail_scenario):
    totals = compute_totals(InvoiceRecord.model_validate(retail_scenario), vat_rate=Decimal("20"))

    assert totals.vat == Decimal("2100.00")
    assert totals.total_including_vat == Decimal("12600.00")
    assert totals.balance_due == Decimal("10600.00")


def test_vat_rate_out_of_range(make_record):
    with pytest.raises(ValueError):
        compute_totals(make_record(), vat_rate=Decimal("-1"))


def test_sale_dates(make_record):
    record = make_record(sale_date="2024-05-10", purchase_date="2024-03-01")
    dates = compute_totals(record).sale_dates

    assert dates.month_of_sale == "May"
    assert dates.quarter_of_sale == 2
    assert dates.days_in_stock == 70


def test_totals_are_idempotent(retail_scenario):
    record = InvoiceRecord.model_validate(retail_scenario)

    first = compute_totals(record)
    second = compute_totals(record)

    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


def test_totals_track_record_version(make_record):
    record = make_record()
    edited = record.with_changes(notes="customer collecting Friday")

    assert compute_totals(record).record_digest == record.digest()
    assert compute_totals(edited).record_digest != record.digest()
    assert record.notes is None


def test_legacy_labels_are_normalised(make_record):
    record = make_record(sale_type="Trade", recipient_type="Finance Company")

    assert record.sale_type == SaleType.TRADE
    assert record.recipient_type == RecipientType.FINANCE_COMPANY


# --------------------------------------------------------------------
# RANDOMISED PROPERTIES
# --------------------------------------------------------------------
def _random_amount(rng):
    roll = rng.random()
    if roll < 0.15:
        return None
    if roll < 0.25:
        return str(-rng.randint(1, 5000))
    return f"{rng.randint(0, 20000)}.{rng.randint(0, 99):02d}"


def _random_item(rng):
    return {
        "amount": _random_amount(rng),
        "discount": _random_amount(rng),
        "discount_type": rng.choice(["amount", "percentage"]),
    }


def _random_record(seed):
    rng = random.Random(seed)
    return InvoiceRecord.model_validate({
        "sale_type": rng.choice(["retail", "trade", "Trade", "Commercial"]),
        "recipient_type": rng.choice(["customer", "finance_company", "Finance Company", "myself"]),
        "pricing": {
            "sale_price": _random_item(rng),
            "warranty_price": _random_item(rng),
            "enhanced_warranty_price": _random_item(rng),
            "delivery": _random_item(rng),
            "voluntary_contribution": _random_amount(rng),
        },
        "customer_addons": {"addon1": {"name": "A", "cost": _random_amount(rng)}},
        "finance_addons": {
            "addon1": {"name": "F", "cost": _random_amount(rng), "discount": _random_amount(rng)},
            "dynamic": [{"name": "G", "cost": _random_amount(rng)}],
        },
        "payment": {
            "card_payments": [{"amount": _random_amount(rng)}],
            "cash_payments": [{"amount": _random_amount(rng)}],
            "deposit": {
                "compulsory_amount": _random_amount(rng),
                "amount_paid": _random_amount(rng),
                "dealer_deposit_paid": _random_amount(rng),
            },
            "part_exchange": {
                "included": rng.random() < 0.5,
                "value_of_vehicle": _random_amount(rng),
                "settlement_amount": _random_amount(rng),
            },
            "balance_to_finance": _random_amount(rng),
            "customer_balance_due": _random_amount(rng),
        },
    })


@pytest.mark.parametrize("seed", range(40))
def test_derived_amounts_never_negative(seed):
    totals = compute_totals(_random_record(seed))

    assert totals.remaining_deposit >= 0
    assert totals.balance_due >= 0
    assert totals.total_paid >= 0
    assert all(item.net_amount >= 0 for item in totals.line_items)


@pytest.mark.parametrize("seed", range(40))
def test_inclusion_rules_hold(seed):
    record = _random_record(seed)
    totals = compute_totals(record)

    assert totals.subtotal == sum(
        (item.net_amount for item in totals.line_items if item.included), Decimal("0")
    )
    for item in totals.line_items:
        if record.sale_type == SaleType.TRADE and item.category in (
            LineCategory.WARRANTY, LineCategory.FINANCE_ADDON
        ):
            assert not item.included
        if record.recipient_type != RecipientType.FINANCE_COMPANY and item.category in (
            LineCategory.FINANCE_ADDON, LineCategory.SETTLEMENT
        ):
            assert not item.included
