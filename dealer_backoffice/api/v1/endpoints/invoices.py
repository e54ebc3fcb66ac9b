"""API endpoints for invoice totals and document composition."""
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from dealer_backoffice.api.deps import AppSettings
from dealer_backoffice.schemas.document import ComposeRequest, InvoiceDocument, RenderedPage
from dealer_backoffice.schemas.invoice import InvoiceRecord
from dealer_backoffice.schemas.pricing import PricingTotals
from dealer_backoffice.services.document_composer import (
    DocumentCompositionError,
    build_invoice_document,
    compose_document,
)
from dealer_backoffice.services.pricing_calculator import compute_totals

router = APIRouter()


@router.post("/totals", response_model=PricingTotals)
async def calculate_invoice_totals(
    record: InvoiceRecord,
    app_settings: AppSettings,
    vat_rate: Optional[Decimal] = Query(None, ge=0, le=100, description="VAT percentage override"),
):
    """
    Compute the monetary totals of an invoice.

    Incomplete drafts are still priced; problems are listed in ``warnings``.
    """
    rate = app_settings.VAT_RATE_PERCENT if vat_rate is None else vat_rate
    return compute_totals(record, vat_rate=rate)


@router.post("/document", response_model=InvoiceDocument)
async def generate_invoice_document(
    record: InvoiceRecord,
    app_settings: AppSettings,
    vat_rate: Optional[Decimal] = Query(None, ge=0, le=100, description="VAT percentage override"),
):
    """
    Price an invoice and compose its pages in one call.

    Used by the editor preview, the print preview and document generation so
    all three show the same pages and figures.
    """
    rate = app_settings.VAT_RATE_PERCENT if vat_rate is None else vat_rate
    try:
        return build_invoice_document(record, vat_rate=rate)
    except DocumentCompositionError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/compose", response_model=List[RenderedPage])
async def compose_invoice_pages(request: ComposeRequest):
    """Compose pages from a record and totals computed earlier."""
    try:
        return compose_document(request.record, request.totals)
    except DocumentCompositionError as e:
        raise HTTPException(status_code=400, detail=str(e))
