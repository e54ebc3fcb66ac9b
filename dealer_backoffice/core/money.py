"""
Money helpers for invoice and funding arithmetic.

All amounts are held as ``Decimal`` and rounded to pence with ROUND_HALF_UP,
the same rounding the ledger and the printed invoice use. Nothing in the
engine should go through ``float``.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Union


ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")

# Largest single amount accepted; keeps pence arithmetic inside the 28-digit context
MAX_AMOUNT = Decimal("10000000000000")

# Characters stripped before parsing free-text amounts ("£1,200.00")
_CURRENCY_NOISE = ("£", "$", "€", ",", " ", " ")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse an amount into a Decimal.

    Returns None for missing or blank values. Raises ValueError for text that
    is not a number so the schema layer can reject it.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # str() first so 0.1 stays 0.1 rather than its binary expansion
        return Decimal(str(value))

    text = str(value).strip()
    for noise in _CURRENCY_NOISE:
        text = text.replace(noise, "")
    if not text:
        return None

    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"'{value}' is not a valid amount") from e


def check_amount_range(value: Optional[Decimal]) -> Optional[Decimal]:
    """
    Reject finite amounts at or above MAX_AMOUNT in either direction.

    Missing and non-finite values pass through; the calculators report those
    as warnings.
    """
    if value is not None and value.is_finite() and abs(value) >= MAX_AMOUNT:
        raise ValueError(f"'{value}' is out of range, amounts must be below {MAX_AMOUNT}")
    return value


def quantize_money(value: Optional[Decimal], places: int = 2) -> Decimal:
    """Round to the given number of decimal places (pence by default)."""
    if value is None or not value.is_finite():
        return ZERO.quantize(TWO_PLACES)
    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def clamp_non_negative(value: Optional[Decimal]) -> Decimal:
    if value is None or not value.is_finite():
        return ZERO
    return max(ZERO, value)


def sum_money(values: Iterable[Optional[Decimal]]) -> Decimal:
    """Sum amounts, treating missing values as zero."""
    total = ZERO
    for value in values:
        if value is not None and value.is_finite():
            total += value
    return total


def percentage_of(amount: Decimal, rate: Decimal) -> Decimal:
    """``amount * rate / 100``, unrounded."""
    return amount * rate / HUNDRED


def apply_discount(
    amount: Optional[Decimal],
    discount: Optional[Decimal],
    is_percentage: bool = False,
) -> tuple[Decimal, Decimal]:
    """
    Apply a discount to an amount.

    Returns ``(discount_amount, post_discount_amount)``. The discount is capped
    at the amount so the post-discount value never goes below zero.
    """
    base = clamp_non_negative(amount)
    raw = clamp_non_negative(discount)
    if is_percentage:
        raw = percentage_of(base, min(raw, HUNDRED))
    applied = min(raw, base)
    return applied, base - applied


def format_currency(
    amount: Optional[Decimal],
    symbol: str = "£",
    places: int = 2,
) -> str:
    """Format as ``£10,500.00``; negatives as ``-£25.00``."""
    value = quantize_money(amount, places)
    sign = "-" if value < ZERO else ""
    return f"{sign}{symbol}{abs(value):,.{places}f}"


def format_date(value: Union[date, datetime, str, None], fmt: str = "%d/%m/%Y") -> str:
    """Format a date for display; ISO strings are parsed, blanks stay blank."""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return value.strftime(fmt)
