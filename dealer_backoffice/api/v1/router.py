from fastapi import APIRouter

from dealer_backoffice.api.v1.endpoints import (
    # Invoices
    invoices,
    visibility,
    # Stock Funding
    funding,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Invoice Totals & Documents ====================
api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["Invoices"]
)

# ==================== Field & Page Visibility ====================
api_router.include_router(
    visibility.router,
    prefix="/visibility",
    tags=["Visibility"]
)

# ==================== Vehicle Funding ====================
api_router.include_router(
    funding.router,
    prefix="/funding",
    tags=["Funding"]
)
