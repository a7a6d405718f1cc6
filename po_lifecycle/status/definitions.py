"""
Status definitions for the purchase-order workflow.

The table is plain, serializable data: labels, colors, allowed transitions and
the named requirements that gate entry into each status. The logic behind each
requirement lives in `po_lifecycle.status.requirements`.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Status(str, Enum):
    UPLOADED = "UPLOADED"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    INVOICED = "INVOICED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class RequirementLevel(str, Enum):
    MANDATORY = "MANDATORY"
    RECOMMENDED = "RECOMMENDED"
    OPTIONAL = "OPTIONAL"


class StatusColor(str, Enum):
    UPLOADED = "#3498db"   # Blue
    CONFIRMED = "#2ecc71"  # Green
    SHIPPED = "#f39c12"    # Orange
    INVOICED = "#9b59b6"   # Purple
    DELIVERED = "#27ae60"  # Dark green
    CANCELLED = "#e74c3c"  # Red


class Requirement(BaseModel):
    """A named condition a document must meet to enter a status."""
    model_config = ConfigDict(frozen=True)

    level: RequirementLevel = RequirementLevel.MANDATORY
    message: str


class StatusMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    editable: bool = False
    requires_notes: bool = False
    is_initial: bool = False
    is_terminal: bool = False


class StatusDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Status
    label: str
    description: str
    color: str
    allowed_transitions: List[Status] = Field(default_factory=list)
    requirements: Dict[str, Requirement] = Field(default_factory=dict)
    metadata: StatusMetadata = Field(default_factory=StatusMetadata)


INITIAL_STATUS = Status.UPLOADED


STATUS_DEFINITIONS: Dict[Status, StatusDefinition] = {
    Status.UPLOADED: StatusDefinition(
        name=Status.UPLOADED,
        label="Uploaded",
        description="PO has been uploaded to dashboard",
        color=StatusColor.UPLOADED.value,
        allowed_transitions=[Status.CONFIRMED, Status.CANCELLED],
        requirements={
            "validData": Requirement(message="Required PO data missing"),
            "completeFields": Requirement(message="Required fields missing"),
        },
        metadata=StatusMetadata(editable=True, requires_notes=False, is_initial=True),
    ),
    Status.CONFIRMED: StatusDefinition(
        name=Status.CONFIRMED,
        label="Confirmed",
        description="PO data verified and accepted",
        color=StatusColor.CONFIRMED.value,
        allowed_transitions=[Status.SHIPPED, Status.CANCELLED],
        requirements={
            "dataVerified": Requirement(message="Data verification required"),
        },
        metadata=StatusMetadata(editable=True, requires_notes=False),
    ),
    Status.SHIPPED: StatusDefinition(
        name=Status.SHIPPED,
        label="Shipped",
        description="Order has been shipped",
        color=StatusColor.SHIPPED.value,
        allowed_transitions=[Status.INVOICED, Status.CANCELLED],
        requirements={
            "shippingDetails": Requirement(message="Shipping date required"),
        },
        metadata=StatusMetadata(editable=False, requires_notes=True),
    ),
    Status.INVOICED: StatusDefinition(
        name=Status.INVOICED,
        label="Invoiced",
        description="Invoice has been sent",
        color=StatusColor.INVOICED.value,
        allowed_transitions=[Status.DELIVERED, Status.CANCELLED],
        requirements={
            "invoiceDetails": Requirement(message="Invoice details required"),
        },
        metadata=StatusMetadata(editable=False, requires_notes=True),
    ),
    Status.DELIVERED: StatusDefinition(
        name=Status.DELIVERED,
        label="Delivered",
        description="Order successfully delivered",
        color=StatusColor.DELIVERED.value,
        allowed_transitions=[],
        requirements={
            "deliveryConfirmation": Requirement(message="Delivery confirmation required"),
        },
        metadata=StatusMetadata(editable=False, requires_notes=True, is_terminal=True),
    ),
    Status.CANCELLED: StatusDefinition(
        name=Status.CANCELLED,
        label="Cancelled",
        description="Order has been cancelled",
        color=StatusColor.CANCELLED.value,
        allowed_transitions=[],
        requirements={
            "cancellationReason": Requirement(message="Cancellation reason required"),
        },
        metadata=StatusMetadata(editable=False, requires_notes=True, is_terminal=True),
    ),
}


def to_status(value) -> Optional[Status]:
    """Resolve a status name (or Status) to a Status, None when unknown."""
    if isinstance(value, Status):
        return value
    try:
        return Status(value)
    except ValueError:
        return None
