"""
Condition Evaluator for invoice field and page visibility.

A closed table of named conditions, shared by the interactive editor and the
document composer. Each condition is built from a small set of predicate
shapes (field equality, flag check, conjunction) over a form snapshot; there
is no expression language.

Snapshot keys may use the stored names (``sale_type``) or the editor's names
(``saleType``, ``invoiceTo``); values are normalised first, so "Trade",
"TRADE" and SaleType.TRADE all read the same.

The editor calls ``reevaluate`` on every change; only conditions that declare
the changed field as a dependency are evaluated again.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from dealer_backoffice.core.enum_utils import (
    is_no_warranty,
    normalize_flag,
    normalize_invoice_flavor,
    normalize_recipient_type,
    normalize_sale_type,
)
from dealer_backoffice.schemas.enums import InvoiceFlavor, RecipientType, SaleType

logger = logging.getLogger(__name__)


class UnknownConditionError(LookupError):
    """Raised when a condition id is not in the condition table."""
    pass


# ==================== Snapshot normalisation ====================

FIELD_ALIASES = {
    "sale_type": ("sale_type", "saleType"),
    "recipient_type": ("recipient_type", "recipientType", "invoiceTo", "invoice_to"),
    "in_house": ("in_house", "inHouse"),
    "warranty_level": ("warranty_level", "warrantyLevel"),
    "enhanced_warranty": ("enhanced_warranty", "enhancedWarranty"),
    "invoice_flavor": ("invoice_flavor", "invoiceFlavor", "invoiceType", "invoice_type"),
}

_ALIAS_TO_FIELD = {
    alias: field for field, aliases in FIELD_ALIASES.items() for alias in aliases
}

_NORMALIZERS = {
    "sale_type": normalize_sale_type,
    "recipient_type": normalize_recipient_type,
    "in_house": normalize_flag,
    "warranty_level": lambda v: "none" if is_no_warranty(v) else str(v).strip().lower(),
    "enhanced_warranty": normalize_flag,
    "invoice_flavor": normalize_invoice_flavor,
}


def canonical_field(name: str) -> Optional[str]:
    """Map an editor or stored field name to its canonical name."""
    return _ALIAS_TO_FIELD.get(name)


def normalize_snapshot(snapshot: Mapping[str, Any]) -> Dict[str, Any]:
    """Canonical keys and normalised values for every condition input."""
    raw: Dict[str, Any] = {}
    for key, value in snapshot.items():
        field = canonical_field(key)
        if field is not None:
            raw[field] = value
    return {field: normalize(raw.get(field)) for field, normalize in _NORMALIZERS.items()}


# ==================== Predicates ====================

@dataclass(frozen=True)
class Always:
    @property
    def dependencies(self) -> FrozenSet[str]:
        return frozenset()

    def evaluate(self, snapshot: Mapping[str, Any]) -> bool:
        return True


@dataclass(frozen=True)
class FieldEquals:
    """True when the field's value is one of ``values`` (inverted by ``negate``)."""
    field: str
    values: Tuple[Any, ...]
    negate: bool = False

    @property
    def dependencies(self) -> FrozenSet[str]:
        return frozenset({self.field})

    def evaluate(self, snapshot: Mapping[str, Any]) -> bool:
        matched = snapshot.get(self.field) in self.values
        return not matched if self.negate else matched


@dataclass(frozen=True)
class FlagSet:
    field: str
    expected: bool = True

    @property
    def dependencies(self) -> FrozenSet[str]:
        return frozenset({self.field})

    def evaluate(self, snapshot: Mapping[str, Any]) -> bool:
        return bool(snapshot.get(self.field)) is self.expected


@dataclass(frozen=True)
class AllOf:
    predicates: Tuple[Any, ...]

    @property
    def dependencies(self) -> FrozenSet[str]:
        deps: FrozenSet[str] = frozenset()
        for predicate in self.predicates:
            deps = deps | predicate.dependencies
        return deps

    def evaluate(self, snapshot: Mapping[str, Any]) -> bool:
        return all(predicate.evaluate(snapshot) for predicate in self.predicates)


@dataclass(frozen=True)
class Condition:
    condition_id: str
    predicate: Any
    description: str

    @property
    def dependencies(self) -> FrozenSet[str]:
        return self.predicate.dependencies


# ==================== Condition table ====================

NOT_TRADE = FieldEquals("sale_type", (SaleType.TRADE,), negate=True)
IS_PURCHASE = FieldEquals("invoice_flavor", (InvoiceFlavor.PURCHASE,))

CONDITIONS: Dict[str, Condition] = {
    c.condition_id: c for c in (
        # Editor fields
        Condition("field.warranty_details", NOT_TRADE,
                  "Warranty fields, retail sales only"),
        Condition("field.enhanced_warranty_details",
                  AllOf((NOT_TRADE, FlagSet("enhanced_warranty"))),
                  "Enhanced warranty fields, retail sales with enhanced warranty"),
        Condition("field.finance_company",
                  AllOf((FieldEquals("recipient_type", (RecipientType.FINANCE_COMPANY,)), NOT_TRADE)),
                  "Finance company selector, retail sales invoiced to a finance company"),
        Condition("field.finance_addons", NOT_TRADE,
                  "Finance add-ons, retail sales only"),
        Condition("field.deliver_to", IS_PURCHASE,
                  "Deliver-to party, purchase invoices only"),
        Condition("field.purchase_from", IS_PURCHASE,
                  "Purchase-from party, purchase invoices only"),

        # Document pages
        Condition("page.core", Always(),
                  "Parties, vehicle, line items and totals"),
        Condition("page.checklist", Always(),
                  "Vehicle checklist, or trade disclaimer for trade sales"),
        Condition("page.standard_terms", NOT_TRADE,
                  "Standard terms and conditions, retail sales only"),
        Condition("page.in_house_warranty",
                  AllOf((FieldEquals("recipient_type", (RecipientType.CUSTOMER,)), FlagSet("in_house"))),
                  "In-house engine and transmission warranty terms"),
        Condition("page.external_warranty",
                  AllOf((FlagSet("in_house", expected=False),
                         FieldEquals("warranty_level", ("none",), negate=True))),
                  "External warranty provider terms"),
    )
}


# ==================== Evaluation ====================

def get_condition(condition_id: str) -> Condition:
    try:
        return CONDITIONS[condition_id]
    except KeyError:
        raise UnknownConditionError(f"Unknown condition id: {condition_id!r}") from None


def evaluate_visibility(condition_id: str, snapshot: Mapping[str, Any]) -> bool:
    """
    Decide whether a field or page is visible for a form snapshot.

    Raises:
        UnknownConditionError: if the id is not in the condition table
    """
    condition = get_condition(condition_id)
    return condition.predicate.evaluate(normalize_snapshot(snapshot))


def evaluate_all(snapshot: Mapping[str, Any]) -> Dict[str, bool]:
    normalized = normalize_snapshot(snapshot)
    return {
        condition_id: condition.predicate.evaluate(normalized)
        for condition_id, condition in CONDITIONS.items()
    }


def conditions_affected_by(field: str) -> Tuple[str, ...]:
    """Ids of the conditions that depend on the given field (any alias)."""
    canonical = canonical_field(field)
    if canonical is None:
        return ()
    return tuple(
        condition_id for condition_id, condition in CONDITIONS.items()
        if canonical in condition.dependencies
    )


def is_conditional_field(field: str) -> bool:
    """True if changing this field can change any condition's result."""
    return bool(conditions_affected_by(field))


def reevaluate(
    previous: Mapping[str, bool],
    snapshot: Mapping[str, Any],
    changed_field: str,
) -> Mapping[str, bool]:
    """
    Refresh visibility after one field changed.

    Only conditions depending on ``changed_field`` are evaluated, plus any
    the caller has no result for yet. When ``previous`` is complete and the
    field affects nothing, ``previous`` is returned as-is.

    Raises:
        UnknownConditionError: if ``previous`` holds an id not in the table
    """
    for condition_id in previous:
        get_condition(condition_id)

    affected = conditions_affected_by(changed_field)
    missing = [condition_id for condition_id in CONDITIONS if condition_id not in previous]
    if not affected and not missing:
        logger.debug("Field %s affects no conditions, skipping re-evaluation", changed_field)
        return previous

    normalized = normalize_snapshot(snapshot)
    results = dict(previous)
    for condition_id in (*affected, *missing):
        results[condition_id] = CONDITIONS[condition_id].predicate.evaluate(normalized)

    logger.debug("Field %s re-evaluated %d conditions", changed_field, len(affected))
    return results
