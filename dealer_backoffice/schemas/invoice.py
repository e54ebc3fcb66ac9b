"""Pydantic schemas for the invoice record the engine computes over."""
import hashlib
from datetime import date
from typing import Any, Dict, Optional, Tuple

from pydantic import Field, field_validator

from dealer_backoffice.core.enum_utils import (
    normalize_flag,
    normalize_invoice_flavor,
    normalize_recipient_type,
    normalize_sale_type,
    to_enum,
)
from dealer_backoffice.schemas.base import FrozenSchema, Money
from dealer_backoffice.schemas.enums import (
    DeliveryType,
    DiscountType,
    InvoiceFlavor,
    RecipientType,
    SaleType,
)


# ==================== Parties ====================

class Address(FrozenSchema):
    first_line: Optional[str] = None
    second_line: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    post_code: Optional[str] = None
    country: Optional[str] = None

    def lines(self) -> Tuple[str, ...]:
        parts = (self.first_line, self.second_line, self.city, self.county, self.post_code, self.country)
        return tuple(p.strip() for p in parts if p and p.strip())


class PartyDetails(FrozenSchema):
    """A customer, business or the dealer itself as a party on the invoice."""
    title: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    business_name: Optional[str] = None
    address: Address = Field(default_factory=Address)
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.business_name:
            return self.business_name
        parts = (self.title, self.first_name, self.last_name)
        return " ".join(p for p in parts if p)


class FinanceCompanyDetails(FrozenSchema):
    """Finance company the invoice is addressed to (display only)."""
    company_id: Optional[str] = None
    name: Optional[str] = None
    company_name: Optional[str] = None
    address_text: Optional[str] = None


class DealerProfile(FrozenSchema):
    name: Optional[str] = None
    address: Address = Field(default_factory=Address)
    phone: Optional[str] = None
    email: Optional[str] = None
    vat_number: Optional[str] = None
    registration_number: Optional[str] = None


# ==================== Vehicle ====================

class VehicleDetails(FrozenSchema):
    registration: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    derivative: Optional[str] = None
    vin: Optional[str] = None
    mileage: Optional[str] = None
    year: Optional[str] = None
    colour: Optional[str] = None
    fuel_type: Optional[str] = None
    engine_number: Optional[str] = None

    @field_validator('mileage', 'year', mode='before')
    @classmethod
    def stringify(cls, v):
        return None if v is None else str(v)


# ==================== Pricing ====================

class PricedItem(FrozenSchema):
    """An amount with an optional discount (absolute or percentage)."""
    amount: Money = None
    discount: Money = None
    discount_type: DiscountType = DiscountType.AMOUNT


class AddOn(FrozenSchema):
    name: Optional[str] = None
    cost: Money = None
    discount: Money = None
    discount_type: DiscountType = DiscountType.AMOUNT


class AddOnGroup(FrozenSchema):
    """Two named add-on slots plus an open-ended list."""
    enabled: bool = False
    addon1: Optional[AddOn] = None
    addon2: Optional[AddOn] = None
    dynamic: Tuple[AddOn, ...] = ()

    @field_validator('dynamic', mode='before')
    @classmethod
    def coerce_dynamic(cls, v):
        # Saved invoices sometimes hold the list as {"0": {...}, "1": {...}}
        if v is None:
            return ()
        if isinstance(v, dict):
            return tuple(v.values())
        return v

    def slots(self) -> Tuple[Tuple[str, AddOn], ...]:
        """All add-ons with a stable key, slots first."""
        items = []
        if self.addon1 is not None:
            items.append(("addon1", self.addon1))
        if self.addon2 is not None:
            items.append(("addon2", self.addon2))
        for index, addon in enumerate(self.dynamic):
            items.append((f"dynamic{index + 1}", addon))
        return tuple(items)


class PricingInputs(FrozenSchema):
    sale_price: PricedItem = Field(default_factory=PricedItem)
    warranty_price: PricedItem = Field(default_factory=PricedItem)
    enhanced_warranty_price: PricedItem = Field(default_factory=PricedItem)
    delivery: PricedItem = Field(default_factory=PricedItem)
    voluntary_contribution: Money = None


# ==================== Warranty ====================

class WarrantyDetails(FrozenSchema):
    level: Optional[str] = None
    name: Optional[str] = None
    in_house: bool = False
    details: Optional[str] = None
    enhanced: bool = False
    enhanced_level: Optional[str] = None
    enhanced_details: Optional[str] = None

    @field_validator('in_house', 'enhanced', mode='before')
    @classmethod
    def parse_flag(cls, v):
        return normalize_flag(v)


# ==================== Payments ====================

class PaymentEntry(FrozenSchema):
    amount: Money = None
    paid_on: Optional[date] = None


class DepositDetails(FrozenSchema):
    compulsory_amount: Money = None       # Deposit the dealer requires
    amount_paid: Money = None             # Deposit paid by customer / finance
    dealer_deposit_paid: Money = None     # Reservation paid to dealer (finance invoices)
    paid_on: Optional[date] = None


class PartExchange(FrozenSchema):
    included: bool = False
    vehicle_registration: Optional[str] = None
    make_and_model: Optional[str] = None
    mileage: Optional[str] = None
    value_of_vehicle: Money = None
    amount_paid: Money = None
    settlement_amount: Money = None

    @field_validator('included', mode='before')
    @classmethod
    def parse_flag(cls, v):
        return normalize_flag(v)


class PaymentDetails(FrozenSchema):
    cash_payments: Tuple[PaymentEntry, ...] = ()
    card_payments: Tuple[PaymentEntry, ...] = ()
    bacs_payments: Tuple[PaymentEntry, ...] = ()
    deposit: DepositDetails = Field(default_factory=DepositDetails)
    part_exchange: PartExchange = Field(default_factory=PartExchange)

    # Finance invoices: vehicle reservation fee. Customer invoices: additional deposit.
    overpayments_finance: Money = None
    overpayments_customer: Money = None

    # Upstream balance figures
    balance_to_finance: Money = None
    customer_balance_due: Money = None
    outstanding_balance: Money = None

    @field_validator('cash_payments', 'card_payments', 'bacs_payments', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return () if v is None else v


# ==================== Checklist & Terms ====================

class VehicleChecklist(FrozenSchema):
    mileage: Optional[str] = None
    number_of_keys: Optional[str] = None
    user_manual: Optional[str] = None
    service_history_record: Optional[str] = None
    wheel_locking_nut: Optional[str] = None
    cambelt_chain_confirmation: Optional[str] = None
    vehicle_inspection_test_drive: Optional[str] = None
    dealer_pre_sale_check: Optional[str] = None
    fuel_type: Optional[str] = None

    @field_validator('*', mode='before')
    @classmethod
    def stringify(cls, v):
        return None if v is None else str(v)


class TermsBlocks(FrozenSchema):
    """Dealer terms, passed through to their page untouched."""
    checklist_terms: Optional[str] = None
    basic_terms: Optional[str] = None
    in_house_warranty_terms: Optional[str] = None
    third_party_terms: Optional[str] = None
    trade_terms: Optional[str] = None


# ==================== Invoice Record ====================

class InvoiceRecord(FrozenSchema):
    """
    Immutable snapshot of everything an invoice is computed from.

    Built once per editing or generation session from the stored customer,
    vehicle and dealer records. Editing produces a new record via
    ``with_changes`` so totals always match the exact inputs they came from.
    """
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    sale_type: SaleType = SaleType.RETAIL
    recipient_type: RecipientType = RecipientType.CUSTOMER
    invoice_flavor: InvoiceFlavor = InvoiceFlavor.SALE

    dealer: DealerProfile = Field(default_factory=DealerProfile)
    customer: PartyDetails = Field(default_factory=PartyDetails)
    finance_company: Optional[FinanceCompanyDetails] = None
    deliver_to: Optional[PartyDetails] = None
    purchase_from: Optional[PartyDetails] = None

    vehicle: VehicleDetails = Field(default_factory=VehicleDetails)
    pricing: PricingInputs = Field(default_factory=PricingInputs)
    customer_addons: AddOnGroup = Field(default_factory=AddOnGroup)
    finance_addons: AddOnGroup = Field(default_factory=AddOnGroup)
    warranty: WarrantyDetails = Field(default_factory=WarrantyDetails)
    payment: PaymentDetails = Field(default_factory=PaymentDetails)

    sale_date: Optional[date] = None
    purchase_date: Optional[date] = None
    delivery_date: Optional[date] = None
    delivery_type: DeliveryType = DeliveryType.COLLECTION

    checklist: VehicleChecklist = Field(default_factory=VehicleChecklist)
    terms: TermsBlocks = Field(default_factory=TermsBlocks)
    notes: Optional[str] = None

    @field_validator('sale_type', mode='before')
    @classmethod
    def parse_sale_type(cls, v):
        return normalize_sale_type(v)

    @field_validator('recipient_type', mode='before')
    @classmethod
    def parse_recipient_type(cls, v):
        return normalize_recipient_type(v)

    @field_validator('invoice_flavor', mode='before')
    @classmethod
    def parse_invoice_flavor(cls, v):
        return normalize_invoice_flavor(v)

    @field_validator('delivery_type', mode='before')
    @classmethod
    def parse_delivery_type(cls, v):
        return to_enum(v, DeliveryType) or DeliveryType.COLLECTION

    @property
    def is_trade(self) -> bool:
        return self.sale_type == SaleType.TRADE

    @property
    def is_finance_invoice(self) -> bool:
        return self.recipient_type == RecipientType.FINANCE_COMPANY

    def form_snapshot(self) -> Dict[str, Any]:
        """The fields document and editor visibility are decided from."""
        return {
            "sale_type": self.sale_type.value,
            "recipient_type": self.recipient_type.value,
            "in_house": self.warranty.in_house,
            "warranty_level": self.warranty.level,
            "enhanced_warranty": self.warranty.enhanced,
            "invoice_flavor": self.invoice_flavor.value,
        }

    def digest(self) -> str:
        """Stable fingerprint of the record's content."""
        payload = self.model_dump_json(exclude_none=False)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
