"""
Requirement predicates for status transitions.

Each predicate is a pure function of the candidate document (a camelCase
mapping) registered under `(status, requirement_name)`. Predicates may raise on
malformed documents; the transition validator turns that into a
BUSINESS_RULE error for the offending requirement.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

from po_lifecycle.status.definitions import Status


Predicate = Callable[[Mapping[str, Any]], bool]

TOTAL_TOLERANCE = 0.01


class RequirementResolver(Protocol):
    """Looks up the predicate behind a named status requirement."""

    def resolve(self, status: Status, name: str) -> Optional[Predicate]:
        ...


def totals_reconcile(data: Mapping[str, Any]) -> bool:
    """
    True when `totalCost` matches the sum of product totals within 0.01.

    Documents that carry no `totalCost` have nothing to reconcile.
    """
    total_cost = data.get("totalCost")
    if total_cost is None:
        return True
    products = data.get("products") or []
    product_total = sum(float(product.get("total") or 0) for product in products)
    return abs(float(total_cost) - product_total) <= TOTAL_TOLERANCE


def has_valid_data(data: Mapping[str, Any]) -> bool:
    return bool(data.get("header") and data.get("products") and data.get("weights"))


def has_complete_fields(data: Mapping[str, Any]) -> bool:
    header = data["header"]
    return bool(header.get("poNumber") and header.get("buyerInfo"))


def is_data_verified(data: Mapping[str, Any]) -> bool:
    return not data.get("validationErrors") and totals_reconcile(data)


def has_shipping_details(data: Mapping[str, Any]) -> bool:
    delivery_info = data["header"].get("deliveryInfo") or {}
    return bool(delivery_info.get("date"))


def has_invoice_details(data: Mapping[str, Any]) -> bool:
    return bool(data.get("invoiceDate") and data.get("invoiceNumber"))


def has_delivery_confirmation(data: Mapping[str, Any]) -> bool:
    return bool(data.get("deliveryDate") and data.get("receivedBy"))


def has_cancellation_reason(data: Mapping[str, Any]) -> bool:
    return bool(data.get("cancellationReason") and data.get("cancellationDate"))


DEFAULT_PREDICATES: Dict[Tuple[Status, str], Predicate] = {
    (Status.UPLOADED, "validData"): has_valid_data,
    (Status.UPLOADED, "completeFields"): has_complete_fields,
    (Status.CONFIRMED, "dataVerified"): is_data_verified,
    (Status.SHIPPED, "shippingDetails"): has_shipping_details,
    (Status.INVOICED, "invoiceDetails"): has_invoice_details,
    (Status.DELIVERED, "deliveryConfirmation"): has_delivery_confirmation,
    (Status.CANCELLED, "cancellationReason"): has_cancellation_reason,
}


class PredicateRegistry:
    """Default `RequirementResolver` backed by a dict of named predicates."""

    def __init__(self, predicates: Optional[Dict[Tuple[Status, str], Predicate]] = None):
        self._predicates = dict(DEFAULT_PREDICATES if predicates is None else predicates)

    def resolve(self, status: Status, name: str) -> Optional[Predicate]:
        return self._predicates.get((status, name))

    def register(self, status: Status, name: str, predicate: Predicate) -> None:
        self._predicates[(status, name)] = predicate

    def names(self) -> list:
        return sorted(f"{status.value}.{name}" for status, name in self._predicates)
