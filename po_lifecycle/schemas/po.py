"""
Purchase Order schema and data models.
Represents POs as stored in the document repository (camelCase documents).
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from pydantic.alias_generators import to_camel

from po_lifecycle.status.definitions import Status


class DocumentModel(BaseModel):
    """Base for models that map to camelCase document fields."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class BuyerInfo(DocumentModel):
    first_name: str
    last_name: str
    email: str
    name: Optional[str] = None


class SyscoLocation(DocumentModel):
    name: str
    address: Optional[str] = None
    region: Optional[str] = None


class DeliveryInfo(DocumentModel):
    date: Optional[str] = None
    actual_date: Optional[str] = None
    instructions: Optional[str] = None


class POHeader(DocumentModel):
    po_number: str
    oc_number: Optional[str] = None
    order_date: Optional[str] = None
    status: Status = Status.UPLOADED
    buyer_info: BuyerInfo
    sysco_location: SyscoLocation
    delivery_info: Optional[DeliveryInfo] = None


class POProduct(DocumentModel):
    """A single product line on a Purchase Order."""
    supc: str
    item_code: Optional[str] = None
    description: Optional[str] = None
    pack_size: Optional[str] = None
    quantity: StrictFloat
    fob_cost: StrictFloat
    total: StrictFloat
    price: Optional[float] = None
    category: Optional[str] = None


class Weights(DocumentModel):
    gross_weight: StrictFloat
    net_weight: StrictFloat
    actual: Optional[float] = None
    estimated: Optional[float] = None


class StatusHistoryEntry(DocumentModel):
    status: Status
    timestamp: str
    user: Optional[str] = None
    notes: Optional[str] = None


class PurchaseOrder(DocumentModel):
    """A Purchase Order record."""
    header: POHeader
    products: List[POProduct]
    weights: Weights
    total_cost: StrictFloat
    revision: StrictInt = 1
    revision_info: str = "Initial version"
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    processing_time: Optional[float] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    last_updated: Optional[str] = None

    @property
    def po_number(self) -> str:
        return self.header.po_number

    @property
    def status(self) -> Status:
        return self.header.status

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the stored camelCase document."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RepositoryResult(BaseModel):
    """Documents returned by a repository query plus query metadata."""
    data: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
