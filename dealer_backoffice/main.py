from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from dealer_backoffice.config import settings
from dealer_backoffice.api.v1.router import api_router


logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    The engine holds no state, so startup only reports the settings that
    change invoice figures.
    """
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    logger.info(
        "VAT rate %s%%, currency %s, date format %s",
        settings.VAT_RATE_PERCENT, settings.CURRENCY_SYMBOL, settings.DATE_FORMAT,
    )
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


OPENAPI_TAGS = [
    {"name": "Invoices", "description": "Invoice totals and document composition"},
    {"name": "Visibility", "description": "Editor field and document page visibility"},
    {"name": "Funding", "description": "Stock funding, repayments and fund sources"},
    {"name": "Health", "description": "Service health"},
]

FULL_API_DESCRIPTION = """
## Dealer Back Office Invoice Engine

Invoice arithmetic, page composition and stock funding for used-vehicle dealers.

| Module | Description |
|--------|-------------|
| **Invoices** | Totals, VAT, deposits, payments and balance due; ordered document pages |
| **Visibility** | The condition table shared by the invoice editor and the document |
| **Funding** | Per-vehicle funding ledger, repayments, fund source utilisation |

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Bad Request - Repayment rejected |
| 404 | Not Found - Unknown condition id |
| 422 | Unprocessable Entity - Validation failed |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


# Global exception handler so unexpected errors still return JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return error details; the traceback only in debug mode."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)

    error_detail = {
        "error": str(exc),
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    if settings.DEBUG:
        error_detail["traceback"] = traceback.format_exc()

    response = JSONResponse(
        status_code=500,
        content=error_detail
    )

    # Add CORS headers if origin is allowed
    origin = request.headers.get("origin", "")
    if origin in settings.cors_origins_list or "*" in settings.cors_origins_list:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
