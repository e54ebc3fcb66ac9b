"""API endpoints for vehicle funding and fund sources."""
import logging

from fastapi import APIRouter, HTTPException

from dealer_backoffice.schemas.funding import (
    FundingRecord,
    FundSourceSummary,
    FundSourceSummaryRequest,
    LedgerView,
    RepaymentRequest,
    RepaymentResult,
)
from dealer_backoffice.services.funding_ledger import (
    FundingLedgerError,
    compute_funding_ledger,
    record_repayment,
    settle_in_full,
    summarize_fund_source,
)
from dealer_backoffice.services.funding_state_machine import FundingTransitionError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/ledger", response_model=LedgerView)
async def get_funding_ledger(record: FundingRecord):
    """Funding, repayments and remaining debt for one vehicle."""
    return compute_funding_ledger(record)


@router.post("/repayments", response_model=RepaymentResult)
async def create_repayment(request: RepaymentRequest):
    """
    Record a repayment against a vehicle's funding.

    Send a ``transaction_id`` to make retries safe: a repeated id returns the
    record unchanged. Set ``settle_in_full`` to repay the whole remaining debt.
    """
    options = dict(
        transaction_id=request.transaction_id,
        transaction_date=request.transaction_date,
        reference_number=request.reference_number,
        description=request.description,
    )
    try:
        if request.settle_in_full:
            record = settle_in_full(request.record, **options)
        else:
            record = record_repayment(request.record, request.amount, **options)
    except (FundingLedgerError, FundingTransitionError) as e:
        logger.warning("Repayment rejected for vehicle %s: %s", request.record.stock_id, e)
        raise HTTPException(status_code=400, detail=str(e))

    return RepaymentResult(record=record, ledger=compute_funding_ledger(record))


@router.post("/sources/summary", response_model=FundSourceSummary)
async def get_fund_source_summary(request: FundSourceSummaryRequest):
    """Used, repaid, outstanding and available amounts for a fund source."""
    return summarize_fund_source(request.source, request.transactions)
