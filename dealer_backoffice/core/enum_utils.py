"""
Normalisation of enum-like form values.

The editor and older saved invoices send labels rather than enum values:
"Trade", "Finance Company", "Yes", "None Selected". Everything that compares
a sale type, recipient or flag goes through these helpers so the calculator,
the condition table and the document composer all read values the same way.

INPUT (form / saved invoice):
    "Trade" | "TRADE" | "trade"              -> SaleType.TRADE
    "Retail" | "Commercial"                  -> SaleType.RETAIL
    "Finance Company" | "finance_company"    -> RecipientType.FINANCE_COMPANY
    "Yes" | "true" | True | 1                -> True
    "None Selected" | "none" | "" | None     -> no warranty
"""

from enum import Enum
from typing import Any, Optional, Type, TypeVar

from dealer_backoffice.schemas.enums import InvoiceFlavor, RecipientType, SaleType


T = TypeVar('T', bound=Enum)

_TRUE_VALUES = {"yes", "y", "true", "1", "on"}
_NO_WARRANTY_VALUES = {"", "none", "none selected", "no warranty", "n/a"}

_SALE_TYPE_ALIASES = {
    "trade": SaleType.TRADE,
    "trade invoice": SaleType.TRADE,
    "retail": SaleType.RETAIL,
    "retail (customer) invoice": SaleType.RETAIL,
    "commercial": SaleType.RETAIL,
}

_RECIPIENT_ALIASES = {
    "customer": RecipientType.CUSTOMER,
    "finance company": RecipientType.FINANCE_COMPANY,
    "finance_company": RecipientType.FINANCE_COMPANY,
    "finance": RecipientType.FINANCE_COMPANY,
    "myself": RecipientType.MYSELF,
    "self": RecipientType.MYSELF,
}


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(SaleType.TRADE)
        'trade'
        >>> get_enum_value("trade")
        'trade'
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _label_key(value: Any) -> str:
    return (get_enum_value(value) or "").strip().lower()


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """Convert a value to an enum instance, or None if it doesn't match."""
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(_label_key(value))
    except (ValueError, KeyError):
        return None


def normalize_sale_type(value: Any) -> SaleType:
    """Unknown or missing sale types read as retail."""
    if isinstance(value, SaleType):
        return value
    return _SALE_TYPE_ALIASES.get(_label_key(value), SaleType.RETAIL)


def normalize_recipient_type(value: Any) -> RecipientType:
    """Unknown or missing recipients read as customer."""
    if isinstance(value, RecipientType):
        return value
    return _RECIPIENT_ALIASES.get(_label_key(value), RecipientType.CUSTOMER)


def normalize_invoice_flavor(value: Any) -> InvoiceFlavor:
    return to_enum(value, InvoiceFlavor) or InvoiceFlavor.SALE


def normalize_flag(value: Any) -> bool:
    """Read "Yes"/"No", booleans and 0/1 as a boolean."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return _label_key(value) in _TRUE_VALUES


def is_no_warranty(level: Any) -> bool:
    """True when the warranty level means no warranty was sold."""
    return _label_key(level) in _NO_WARRANTY_VALUES
