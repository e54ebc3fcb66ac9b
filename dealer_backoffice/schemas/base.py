"""
Base Schema Classes for Pydantic Models

This module provides base classes for the engine's value objects and the
lenient money type used by every amount field.

RULE: Inputs to the engine (InvoiceRecord, FundingRecord) and everything it
derives MUST inherit from FrozenSchema. Edits produce new objects; nothing is
mutated in place.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, PlainSerializer

from dealer_backoffice.core.money import check_amount_range, to_decimal


def _parse_money(value: Any) -> Optional[Decimal]:
    return check_amount_range(to_decimal(value))


# Optional amount: "£1,200.00", 1200, "1200" and Decimal all parse; blank -> None.
# Serialised as a string so JSON round trips keep every digit.
Money = Annotated[
    Optional[Decimal],
    BeforeValidator(_parse_money),
    PlainSerializer(lambda v: None if v is None else str(v), return_type=Optional[str], when_used="json"),
]

# Derived amounts are always present.
Amount = Annotated[
    Decimal,
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]


class FrozenSchema(BaseModel):
    """
    Base class for immutable engine values.

    Features:
    - frozen: instances are hashable and cannot be mutated
    - extra fields ignored (forward compatibility with saved invoices)
    - population by field name or alias

    Usage:
        updated = record.with_changes(sale_type=SaleType.TRADE)
    """
    model_config = ConfigDict(
        frozen=True,
        extra='ignore',
        populate_by_name=True,
        json_encoders={
            datetime: lambda v: v.isoformat() if v else None,
            date: lambda v: v.isoformat() if v else None,
        },
    )

    def with_changes(self, **updates: Any):
        """Return a copy with the given top-level fields replaced, re-validated."""
        data = self.model_dump()
        data.update(updates)
        return type(self).model_validate(data)
