"""
Metrics snapshot schema.
One fixed shape for every aggregation result; serialized with camelCase keys.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MetricsModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Calendar

class DeliveryMetrics(MetricsModel):
    on_time: int = 0
    total: int = 0
    performance: float = 0.0  # percentage


class VolumeMetrics(MetricsModel):
    """Order counts keyed by day (YYYY-MM-DD), week start (Sunday) and month (YYYY-MM)."""
    daily: Dict[str, int] = Field(default_factory=dict)
    weekly: Dict[str, int] = Field(default_factory=dict)
    monthly: Dict[str, int] = Field(default_factory=dict)


class StatusMetrics(MetricsModel):
    distribution: Dict[str, int] = Field(default_factory=dict)
    transitions: Dict[str, int] = Field(default_factory=dict)  # "PREV->CURR": count


class CalendarMetrics(MetricsModel):
    delivery: DeliveryMetrics = Field(default_factory=DeliveryMetrics)
    volume: VolumeMetrics = Field(default_factory=VolumeMetrics)
    status: StatusMetrics = Field(default_factory=StatusMetrics)


# Financial

class SalesMetrics(MetricsModel):
    total: float = 0.0
    average: float = 0.0
    growth: float = 0.0  # percentage, recent half vs previous half


class ProductRanking(MetricsModel):
    supc: str
    sales: float = 0.0
    volume: float = 0.0


class CategoryRollup(MetricsModel):
    name: str
    value: float = 0.0
    count: int = 0


class ProductMetrics(MetricsModel):
    rankings: List[ProductRanking] = Field(default_factory=list)
    categories: List[CategoryRollup] = Field(default_factory=list)


class GrowthTrends(MetricsModel):
    sales: List[float] = Field(default_factory=list)
    orders: List[int] = Field(default_factory=list)
    average: List[float] = Field(default_factory=list)


class FinancialMetrics(MetricsModel):
    sales: SalesMetrics = Field(default_factory=SalesMetrics)
    products: ProductMetrics = Field(default_factory=ProductMetrics)
    growth: GrowthTrends = Field(default_factory=GrowthTrends)


# Operational

class EfficiencyMetrics(MetricsModel):
    processing: float = 0.0
    weights: float = 0.0
    delivery: float = 0.0


class BuyerMetrics(MetricsModel):
    active: int = 0
    efficiency: float = 0.0
    volume: float = 0.0


class LocationMetrics(MetricsModel):
    active: int = 0
    throughput: float = 0.0
    performance: float = 0.0


class ResourceMetrics(MetricsModel):
    buyers: BuyerMetrics = Field(default_factory=BuyerMetrics)
    locations: LocationMetrics = Field(default_factory=LocationMetrics)


class OperationalMetrics(MetricsModel):
    efficiency: EfficiencyMetrics = Field(default_factory=EfficiencyMetrics)
    resources: ResourceMetrics = Field(default_factory=ResourceMetrics)


class MetricsSnapshot(MetricsModel):
    """
    Aggregated metrics for a set of purchase orders.

    `product` is the same ranking object as `financial.products`.
    `processing` holds recorder events keyed by type, present only when
    events exist.
    """
    calendar: CalendarMetrics = Field(default_factory=CalendarMetrics)
    financial: FinancialMetrics = Field(default_factory=FinancialMetrics)
    operational: OperationalMetrics = Field(default_factory=OperationalMetrics)
    product: ProductMetrics = Field(default_factory=ProductMetrics)
    processing: Optional[Dict[str, List[Dict[str, Any]]]] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
