"""Directory of finance companies dealers commonly invoice, and the invoice-to text."""
from typing import Optional, Tuple

from dealer_backoffice.schemas.base import FrozenSchema
from dealer_backoffice.schemas.invoice import FinanceCompanyDetails

CUSTOM_FINANCE_COMPANY_ID = "custom"


class FinanceCompany(FrozenSchema):
    company_id: str
    name: str
    full_name: str
    invoice_to_text: str


PREDEFINED_FINANCE_COMPANIES: Tuple[FinanceCompany, ...] = (
    FinanceCompany(
        company_id="jigsaw-finance",
        name="Jigsaw Finance",
        full_name="Jigsaw Finance",
        invoice_to_text=(
            "Jigsaw Finance\nGenesis Centre, Innovation Way\nStoke on Trent. ST6 4BF\n"
            "01782432262\npayouts@jigsawfinance.com"
        ),
    ),
    FinanceCompany(
        company_id="car-loans-365",
        name="Car Loans 365",
        full_name="HT Finance Limited (T/A Car Loans 365)",
        invoice_to_text=(
            "Car Loans 365\nHT Finance Limited (T/A Car Loans 365)\n"
            "Statham House, Talbot Road\nOld Trafford\nM32 0FP"
        ),
    ),
    FinanceCompany(
        company_id="close-brothers-finance",
        name="Close Brothers Finance",
        full_name="Close Brothers Finance",
        invoice_to_text="Close Brothers Finance\n10 Crown Place\nLondon\nEC2A 4FT",
    ),
    FinanceCompany(
        company_id="zuto-finance",
        name="ZUTO Finance",
        full_name="ZUTO Finance",
        invoice_to_text=(
            "ZUTO Finance\nWinterton House, Winterton Way\n"
            "Macclesfield, Cheshire. SK11 0LP\n01625 61 99 44"
        ),
    ),
    FinanceCompany(
        company_id="car-finance-247",
        name="Car Finance 24/7",
        full_name="Car Finance 24/7",
        invoice_to_text=(
            "Car Finance 24/7\nUniversal Square,\nBlock 5 Devonshire Street\nManchester. M12 6JH"
        ),
    ),
    FinanceCompany(
        company_id="oodle-car-finance",
        name="Oodle Car Finance",
        full_name="Oodle Car Finance",
        invoice_to_text=(
            "Oodle Car Finance\nFloor 19, City Tower\nNew York Street, Manchester\nM1 4BT"
        ),
    ),
    FinanceCompany(
        company_id="blue-motor-finance",
        name="Blue Motor Finance",
        full_name="Blue Motor Finance",
        invoice_to_text=(
            "Blue Motor Finance\nDarenth House, 84 Main Rd\nSundridge, Sevenoaks\nTN14 6ER"
        ),
    ),
    FinanceCompany(
        company_id="creditplus",
        name="CreditPlus",
        full_name="CreditPlus",
        invoice_to_text="CreditPlus\nBourne House, 23 Hinton Road\nBournemouth\nBH1 2EF",
    ),
)

_BY_ID = {company.company_id: company for company in PREDEFINED_FINANCE_COMPANIES}


def get_finance_company(company_id: Optional[str]) -> Optional[FinanceCompany]:
    if not company_id:
        return None
    return _BY_ID.get(company_id)


def format_finance_company_invoice_text(
    vehicle_registration: Optional[str],
    details: FinanceCompanyDetails,
) -> str:
    """
    The "INVOICE TO" block for a finance company invoice.

    Directory companies use their stored text; custom companies are built from
    the name and address typed on the invoice.
    """
    registration = (vehicle_registration or "").strip().upper()
    company = get_finance_company(details.company_id)
    if company is not None:
        body = company.invoice_to_text
    else:
        name = details.company_name or details.name or ""
        body = f"{name}\n{details.address_text}" if details.address_text else name
    return f"INVOICE TO:\n{registration} - {body}"
