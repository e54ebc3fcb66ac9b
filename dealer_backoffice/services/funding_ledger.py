"""Funding Ledger for stock vehicles.

Answers, per vehicle: how much of the purchase was funded, how much has been
repaid to the fund source, what is still owed and how much of the dealer's
own money is in the car.

Repayments are appended as completed fund transactions; history is never
edited. Totals are always re-summed from the transaction list.
"""
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from dealer_backoffice.core.money import (
    HUNDRED,
    ZERO,
    check_amount_range,
    clamp_non_negative,
    quantize_money,
    sum_money,
    to_decimal,
)
from dealer_backoffice.schemas.enums import (
    FundingStatus,
    FundTransactionStatus,
    FundTransactionType,
)
from dealer_backoffice.schemas.funding import (
    FundingRecord,
    FundSource,
    FundSourceSummary,
    FundTransaction,
    LedgerView,
)
from dealer_backoffice.services.funding_state_machine import (
    get_status_label,
    get_transition_action,
    validate_transition,
)

logger = logging.getLogger(__name__)


class FundingLedgerError(Exception):
    """Raised when a repayment cannot be recorded."""
    pass


def _ledger_amount(value: Optional[Decimal], field: str, stock_id: str) -> Decimal:
    if value is not None and (not value.is_finite() or value < ZERO):
        logger.warning("Vehicle %s: %s is %s, treated as 0", stock_id, field, value)
    return clamp_non_negative(value)


def _funding_status(funding_amount: Decimal, total_repaid: Decimal, remaining_debt: Decimal) -> FundingStatus:
    if funding_amount <= ZERO:
        return FundingStatus.NO_FUNDING
    if remaining_debt == ZERO:
        return FundingStatus.FULLY_REPAID
    if total_repaid > ZERO:
        return FundingStatus.PARTIALLY_REPAID
    return FundingStatus.FUNDED


def compute_funding_ledger(record: FundingRecord) -> LedgerView:
    """
    Funding position of one vehicle.

    - remaining_debt = max(0, funding_amount - total_repaid)
    - own_investment = max(0, cost_of_purchase - funding_amount), 0 with no funding
    - a vehicle with no funding is NO_FUNDING, never "repaid"
    """
    funding_amount = _ledger_amount(record.funding_amount, "funding_amount", record.stock_id)
    cost_of_purchase = _ledger_amount(record.cost_of_purchase, "cost_of_purchase", record.stock_id)
    total_repaid = record.total_repaid

    remaining_debt = clamp_non_negative(funding_amount - total_repaid)
    if funding_amount > ZERO:
        own_investment = clamp_non_negative(cost_of_purchase - funding_amount)
    else:
        own_investment = ZERO

    status = _funding_status(funding_amount, total_repaid, remaining_debt)
    repayment_count = len(record.repayments())

    return LedgerView(
        stock_id=record.stock_id,
        fund_source_id=record.fund_source_id,
        cost_of_purchase=quantize_money(cost_of_purchase),
        funding_amount=quantize_money(funding_amount),
        total_repaid=quantize_money(total_repaid),
        remaining_debt=quantize_money(remaining_debt),
        own_investment=quantize_money(own_investment),
        is_fully_repaid=funding_amount > ZERO and remaining_debt == ZERO,
        status=status,
        status_label=get_status_label(status),
        has_repayments=repayment_count > 0 or total_repaid > ZERO,
        repayment_count=repayment_count,
    )


def record_repayment(
    record: FundingRecord,
    amount: Any,
    transaction_id: Optional[str] = None,
    transaction_date: Optional[date] = None,
    reference_number: Optional[str] = None,
    description: Optional[str] = None,
) -> FundingRecord:
    """
    Append a completed repayment and return the new funding record.

    ``transaction_id`` is the idempotency key: if the record already holds a
    transaction with that id the record is returned unchanged, so a double
    submission cannot repay twice.

    Raises:
        FundingLedgerError: amount is not positive, or the vehicle has no funding
        FundingTransitionError: the repayment would move status backwards
    """
    if transaction_id and record.has_transaction(transaction_id):
        logger.info(
            "Vehicle %s: repayment %s already recorded, skipping",
            record.stock_id, transaction_id,
        )
        return record

    try:
        value = check_amount_range(to_decimal(amount))
    except ValueError as e:
        raise FundingLedgerError(str(e)) from e
    if value is None or not value.is_finite() or value <= ZERO:
        raise FundingLedgerError(f"Repayment amount must be greater than zero, got {amount!r}")

    before = compute_funding_ledger(record)
    if before.status == FundingStatus.NO_FUNDING:
        raise FundingLedgerError(f"Vehicle {record.stock_id} has no funding to repay")

    transaction = FundTransaction(
        transaction_id=transaction_id or str(uuid.uuid4()),
        fund_source_id=record.fund_source_id,
        vehicle_stock_id=record.stock_id,
        transaction_type=FundTransactionType.REPAYMENT,
        amount=quantize_money(value),
        status=FundTransactionStatus.COMPLETED,
        transaction_date=transaction_date,
        reference_number=reference_number,
        description=description or f"Repayment for vehicle {record.registration or record.stock_id}",
    )
    changes = {"transactions": record.transactions + (transaction,)}
    if record.repaid_to_date is not None:
        changes["repaid_to_date"] = quantize_money(before.total_repaid + transaction.amount)
    updated = record.with_changes(**changes)

    after = compute_funding_ledger(updated)
    validate_transition(before.status, after.status)

    logger.info(
        "Vehicle %s: %s of %s recorded (%s), remaining debt %s",
        record.stock_id,
        get_transition_action(before.status, after.status),
        transaction.amount,
        transaction.transaction_id,
        after.remaining_debt,
    )
    return updated


def settle_in_full(record: FundingRecord, **kwargs: Any) -> FundingRecord:
    """Record a repayment of the whole remaining debt."""
    ledger = compute_funding_ledger(record)
    if ledger.status == FundingStatus.NO_FUNDING:
        raise FundingLedgerError(f"Vehicle {record.stock_id} has no funding to repay")
    if ledger.remaining_debt == ZERO:
        transaction_id = kwargs.get("transaction_id")
        if transaction_id and record.has_transaction(transaction_id):
            return record
        raise FundingLedgerError(f"Vehicle {record.stock_id} is already fully repaid")
    return record_repayment(record, ledger.remaining_debt, **kwargs)


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= ZERO:
        return quantize_money(ZERO)
    return quantize_money(part / whole * HUNDRED)


def summarize_fund_source(source: FundSource, transactions: Iterable[FundTransaction]) -> FundSourceSummary:
    """
    Usage and repayment totals for a fund source.

    Only completed transactions against this source count. Utilisation is
    measured on the outstanding amount, not on everything ever drawn.
    """
    completed = [
        t for t in transactions
        if t.status == FundTransactionStatus.COMPLETED
        and t.fund_source_id in (None, source.fund_source_id)
    ]
    total_used = sum_money(
        t.amount for t in completed if t.transaction_type == FundTransactionType.USAGE
    )
    total_repaid = sum_money(
        t.amount for t in completed if t.transaction_type == FundTransactionType.REPAYMENT
    )
    amount = clamp_non_negative(source.amount)
    outstanding = total_used - total_repaid
    available = amount - outstanding

    return FundSourceSummary(
        fund_source_id=source.fund_source_id,
        fund_name=source.fund_name,
        amount=quantize_money(amount),
        total_used=quantize_money(total_used),
        total_repaid=quantize_money(total_repaid),
        outstanding_amount=quantize_money(outstanding),
        available_amount=quantize_money(available),
        utilization_percentage=_percentage(outstanding, amount),
        repayment_percentage=_percentage(total_repaid, total_used),
    )
