"""Pydantic schemas for vehicle funding and fund sources."""
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import Field, field_validator

from dealer_backoffice.core.enum_utils import to_enum
from dealer_backoffice.core.money import ZERO, clamp_non_negative, sum_money
from dealer_backoffice.schemas.base import Amount, FrozenSchema, Money
from dealer_backoffice.schemas.enums import (
    FundingStatus,
    FundTransactionStatus,
    FundTransactionType,
)


# ==================== Transactions ====================

class FundTransaction(FrozenSchema):
    """A movement against a fund source. History is append-only."""
    transaction_id: Optional[str] = None
    fund_source_id: Optional[str] = None
    vehicle_stock_id: Optional[str] = None
    transaction_type: FundTransactionType
    amount: Money = None
    status: FundTransactionStatus = FundTransactionStatus.COMPLETED
    transaction_date: Optional[date] = None
    reference_number: Optional[str] = None
    description: Optional[str] = None

    @field_validator('transaction_type', mode='before')
    @classmethod
    def parse_type(cls, v):
        return to_enum(v, FundTransactionType) or v

    @field_validator('status', mode='before')
    @classmethod
    def parse_status(cls, v):
        if v is None:
            return FundTransactionStatus.COMPLETED
        return to_enum(v, FundTransactionStatus) or v

    @property
    def is_completed_repayment(self) -> bool:
        return (
            self.transaction_type == FundTransactionType.REPAYMENT
            and self.status == FundTransactionStatus.COMPLETED
        )


# ==================== Vehicle Funding ====================

class FundingRecord(FrozenSchema):
    """
    Funding position of one stock vehicle.

    ``total_repaid`` is re-summed from ``transactions``: only completed
    repayments for this vehicle and fund source count. A stored running total
    may be sent as ``total_repaid`` for vehicles whose repayment history is
    not attached; the larger of the two figures is used.
    """
    stock_id: str
    registration: Optional[str] = None
    cost_of_purchase: Money = None
    funding_amount: Money = None
    fund_source_id: Optional[str] = None
    fund_source_name: Optional[str] = None
    repaid_to_date: Money = Field(None, alias="total_repaid")
    transactions: Tuple[FundTransaction, ...] = ()

    @field_validator('transactions', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return () if v is None else v

    def repayments(self) -> Tuple[FundTransaction, ...]:
        return tuple(
            t for t in self.transactions
            if t.is_completed_repayment
            and (t.vehicle_stock_id is None or t.vehicle_stock_id == self.stock_id)
            and (self.fund_source_id is None or t.fund_source_id in (None, self.fund_source_id))
        )

    @property
    def total_repaid(self) -> Decimal:
        from_history = sum_money(
            t.amount for t in self.repayments()
            if t.amount is not None and t.amount > ZERO
        )
        return max(from_history, clamp_non_negative(self.repaid_to_date))

    def has_transaction(self, transaction_id: str) -> bool:
        return any(t.transaction_id == transaction_id for t in self.transactions)


class LedgerView(FrozenSchema):
    stock_id: str
    fund_source_id: Optional[str] = None
    cost_of_purchase: Amount
    funding_amount: Amount
    total_repaid: Amount
    remaining_debt: Amount
    own_investment: Amount
    is_fully_repaid: bool
    status: FundingStatus
    status_label: str
    has_repayments: bool
    repayment_count: int = 0


class RepaymentRequest(FrozenSchema):
    record: FundingRecord
    amount: Money = None
    transaction_id: Optional[str] = None
    transaction_date: Optional[date] = None
    reference_number: Optional[str] = None
    description: Optional[str] = None
    settle_in_full: bool = False


class RepaymentResult(FrozenSchema):
    record: FundingRecord
    ledger: LedgerView


# ==================== Fund Sources ====================

class FundSource(FrozenSchema):
    fund_source_id: str
    fund_name: str
    amount: Money = None
    interest_rate: Money = None
    status: str = "active"


class FundSourceSummary(FrozenSchema):
    fund_source_id: str
    fund_name: str
    amount: Amount
    total_used: Amount
    total_repaid: Amount
    outstanding_amount: Amount
    available_amount: Amount
    utilization_percentage: Amount
    repayment_percentage: Amount


class FundSourceSummaryRequest(FrozenSchema):
    source: FundSource
    transactions: Tuple[FundTransaction, ...] = Field(default_factory=tuple)
