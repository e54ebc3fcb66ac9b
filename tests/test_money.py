from datetime import date
from decimal import Decimal

import pytest

from dealer_backoffice.core.enum_utils import (
    is_no_warranty,
    normalize_flag,
    normalize_recipient_type,
    normalize_sale_type,
)
from dealer_backoffice.core.money import (
    apply_discount,
    clamp_non_negative,
    format_currency,
    format_date,
    quantize_money,
    sum_money,
    to_decimal,
)
from dealer_backoffice.schemas.enums import RecipientType, SaleType


# --------------------------------------------------------------------
# PARSING
# --------------------------------------------------------------------
@pytest.mark.parametrize("raw, expected", [
    ("£1,200.50", Decimal("1200.50")),
    (" 750 ", Decimal("750")),
    (1200, Decimal("1200")),
    (0.1, Decimal("0.1")),
    (Decimal("99.99"), Decimal("99.99")),
    ("-25", Decimal("-25")),
])
def test_to_decimal_parses_amounts(raw, expected):
    assert to_decimal(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "£", True])
def test_to_decimal_blank_is_missing(raw):
    assert to_decimal(raw) is None


def test_to_decimal_rejects_text():
    with pytest.raises(ValueError):
        to_decimal("twelve pounds")


# --------------------------------------------------------------------
# ARITHMETIC
# --------------------------------------------------------------------
def test_quantize_rounds_half_up():
    assert quantize_money(Decimal("2.345")) == Decimal("2.35")
    assert quantize_money(Decimal("2.344")) == Decimal("2.34")
    assert str(quantize_money(Decimal("10"))) == "10.00"


def test_quantize_missing_or_nan_is_zero():
    assert str(quantize_money(None)) == "0.00"
    assert str(quantize_money(Decimal("NaN"))) == "0.00"


def test_clamp_and_sum_skip_bad_values():
    assert clamp_non_negative(Decimal("-5")) == Decimal("0")
    assert clamp_non_negative(None) == Decimal("0")
    assert sum_money([Decimal("1"), None, Decimal("NaN"), Decimal("2.5")]) == Decimal("3.5")


def test_apply_discount_caps_at_amount():
    assert apply_discount(Decimal("100"), Decimal("150")) == (Decimal("100"), Decimal("0"))
    assert apply_discount(Decimal("100"), None) == (Decimal("0"), Decimal("100"))


def test_apply_percentage_discount():
    discount, net = apply_discount(Decimal("200"), Decimal("10"), is_percentage=True)
    assert discount == Decimal("20")
    assert net == Decimal("180")

    discount, net = apply_discount(Decimal("200"), Decimal("150"), is_percentage=True)
    assert net == Decimal("0")


# --------------------------------------------------------------------
# FORMATTING
# --------------------------------------------------------------------
def test_format_currency():
    assert format_currency(Decimal("10500")) == "£10,500.00"
    assert format_currency(Decimal("-25")) == "-£25.00"
    assert format_currency(None) == "£0.00"
    assert format_currency(Decimal("3.5"), symbol="$") == "$3.50"


def test_format_date():
    assert format_date(date(2024, 3, 5)) == "05/03/2024"
    assert format_date("2024-03-05") == "05/03/2024"
    assert format_date("2024-03-05T10:00:00Z") == "05/03/2024"
    assert format_date("next week") == "next week"
    assert format_date(None) == ""


# --------------------------------------------------------------------
# LABEL NORMALISATION
# --------------------------------------------------------------------
@pytest.mark.parametrize("raw, expected", [
    ("Trade", SaleType.TRADE),
    ("TRADE", SaleType.TRADE),
    ("Retail", SaleType.RETAIL),
    ("Commercial", SaleType.RETAIL),
    (None, SaleType.RETAIL),
    (SaleType.TRADE, SaleType.TRADE),
])
def test_normalize_sale_type(raw, expected):
    assert normalize_sale_type(raw) == expected


def test_normalize_recipient_type():
    assert normalize_recipient_type("Finance Company") == RecipientType.FINANCE_COMPANY
    assert normalize_recipient_type("finance_company") == RecipientType.FINANCE_COMPANY
    assert normalize_recipient_type("Customer") == RecipientType.CUSTOMER
    assert normalize_recipient_type(None) == RecipientType.CUSTOMER


@pytest.mark.parametrize("raw, expected", [
    ("Yes", True), ("yes", True), (True, True), (1, True),
    ("No", False), ("", False), (None, False), (0, False),
])
def test_normalize_flag(raw, expected):
    assert normalize_flag(raw) is expected


def test_is_no_warranty():
    assert is_no_warranty("None Selected")
    assert is_no_warranty("none")
    assert is_no_warranty(None)
    assert not is_no_warranty("Gold")
