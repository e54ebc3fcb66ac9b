"""Enumerations shared by the invoice, document and funding schemas."""
from enum import Enum


class SaleType(str, Enum):
    """Retail sales carry warranty and consumer terms; trade sales do not."""
    RETAIL = "retail"
    TRADE = "trade"


class RecipientType(str, Enum):
    """Who the invoice is addressed to."""
    CUSTOMER = "customer"
    FINANCE_COMPANY = "finance_company"
    MYSELF = "myself"  # Self-billing


class InvoiceFlavor(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"


class DiscountType(str, Enum):
    AMOUNT = "amount"
    PERCENTAGE = "percentage"


class DeliveryType(str, Enum):
    COLLECTION = "collection"
    DELIVERY = "delivery"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BACS = "bacs"
    PART_EXCHANGE = "part_exchange"
    OVERPAYMENT = "overpayment"


class LineCategory(str, Enum):
    VEHICLE = "vehicle"
    WARRANTY = "warranty"
    DELIVERY = "delivery"
    CUSTOMER_ADDON = "customer_addon"
    FINANCE_ADDON = "finance_addon"
    SETTLEMENT = "settlement"


class BalanceSource(str, Enum):
    """Which figure supplied the balance due."""
    BALANCE_TO_FINANCE = "balance_to_finance"
    TRADE_CALCULATION = "trade_calculation"
    CUSTOMER_BALANCE_DUE = "customer_balance_due"
    OUTSTANDING_BALANCE = "outstanding_balance"
    RETAIL_CALCULATION = "retail_calculation"


class PageId(str, Enum):
    """Document pages, declared in canonical render order."""
    CORE = "core"
    CHECKLIST = "checklist"
    STANDARD_TERMS = "standard_terms"
    IN_HOUSE_WARRANTY = "in_house_warranty"
    EXTERNAL_WARRANTY = "external_warranty"


class FundTransactionType(str, Enum):
    USAGE = "usage"
    REPAYMENT = "repayment"
    INTEREST_PAYMENT = "interest_payment"


class FundTransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    CANCELLED = "cancelled"


class FundingStatus(str, Enum):
    NO_FUNDING = "NO_FUNDING"
    FUNDED = "FUNDED"
    PARTIALLY_REPAID = "PARTIALLY_REPAID"
    FULLY_REPAID = "FULLY_REPAID"
