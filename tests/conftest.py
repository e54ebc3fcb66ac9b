import copy

import pytest

from dealer_backoffice.schemas.invoice import InvoiceRecord


BASE_INVOICE = {
    "invoice_number": "INV-1001",
    "invoice_date": "2024-03-05",
    "customer": {
        "first_name": "Jane",
        "last_name": "Doe",
        "address": {"first_line": "1 High Street", "city": "Leeds", "post_code": "LS1 1AA"},
    },
    "vehicle": {"registration": "ab12 cde", "make": "Ford", "model": "Focus"},
    "pricing": {"sale_price": {"amount": "10000"}},
}


def _merge(base: dict, overrides: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture
def invoice_data():
    """Return a factory for raw invoice payloads (nested dicts are merged)."""
    def _build(**overrides):
        return _merge(BASE_INVOICE, overrides)
    return _build


@pytest.fixture
def make_record(invoice_data):
    """Return a factory for InvoiceRecord built from BASE_INVOICE plus overrides."""
    def _build(**overrides):
        return InvoiceRecord.model_validate(invoice_data(**overrides))
    return _build


@pytest.fixture
def retail_scenario(invoice_data):
    """Retail customer, no warranty, delivery 500, sale 10,000, one card payment of 2,000."""
    return invoice_data(
        pricing={"delivery": {"amount": "500"}},
        payment={"card_payments": [{"amount": "2000", "paid_on": "2024-03-05"}]},
    )
