# Services module
from dealer_backoffice.services.pricing_calculator import compute_totals
from dealer_backoffice.services.condition_evaluator import evaluate_visibility, UnknownConditionError
from dealer_backoffice.services.document_composer import compose_document, build_invoice_document

# Funding
from dealer_backoffice.services.funding_ledger import (
    compute_funding_ledger,
    record_repayment,
    FundingLedgerError,
)

__all__ = [
    "compute_totals",
    "evaluate_visibility",
    "UnknownConditionError",
    "compose_document",
    "build_invoice_document",
    # Funding
    "compute_funding_ledger",
    "record_repayment",
    "FundingLedgerError",
]
