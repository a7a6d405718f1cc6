"""
Metrics aggregator.

Rolls a set of purchase orders up into a MetricsSnapshot: calendar,
financial, operational and product report groups. Malformed documents are
logged and left out of the sub-metric they break; aggregation itself never
raises for bad data.
"""

import json
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from po_lifecycle.metrics.cache import TTLCache
from po_lifecycle.metrics.recorder import MetricsRecorder
from po_lifecycle.schemas.metrics import (
    BuyerMetrics,
    CalendarMetrics,
    CategoryRollup,
    DeliveryMetrics,
    EfficiencyMetrics,
    FinancialMetrics,
    GrowthTrends,
    LocationMetrics,
    MetricsSnapshot,
    OperationalMetrics,
    ProductMetrics,
    ProductRanking,
    ResourceMetrics,
    SalesMetrics,
    StatusMetrics,
    VolumeMetrics,
)
from po_lifecycle.utils import as_document, buyer_name, finite_or_zero, get_path, parse_date, safe_divide, utcnow
from po_lifecycle.utils.logging import setup_logging


logger = setup_logging(__name__)

GROWTH_PERIODS = 12
TOP_PRODUCTS = 10
UNCATEGORIZED = "uncategorized"
UNKNOWN = "Unknown"

Dated = Tuple[Dict[str, Any], datetime]


def _number(value: Any) -> Optional[float]:
    """A finite float, or None for anything missing or non-numeric."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _po_number(po: Any) -> str:
    number = get_path(po, "header", "poNumber")
    return str(number) if number is not None else ""


def _status_name(value: Any) -> Optional[str]:
    """Status string of a Status or str; None for anything else."""
    value = getattr(value, "value", value)
    return value if isinstance(value, str) and value else None


def week_key(day: datetime) -> str:
    """Start of the Sunday-based week containing day, as YYYY-MM-DD."""
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start.strftime("%Y-%m-%d")


class MetricsAggregator:
    """
    Computes metrics snapshots, memoized in a TTL cache.

    Args:
        cache: result cache; a private one is created when omitted
        recorder: instrumentation log whose events are attached under `processing`
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        recorder: Optional[MetricsRecorder] = None,
        growth_periods: int = GROWTH_PERIODS,
        top_products: int = TOP_PRODUCTS,
    ):
        self.cache = cache if cache is not None else TTLCache()
        self.recorder = recorder
        self.growth_periods = growth_periods
        self.top_products = top_products

    def calculate_metrics(self, pos: Iterable[Any], options: Optional[Mapping[str, Any]] = None) -> MetricsSnapshot:
        """
        Aggregate metrics for pos.

        Args:
            pos: PO documents or PurchaseOrder models
            options: optional `startDate` / `endDate` bounds on header.orderDate (inclusive)

        Returns:
            MetricsSnapshot, served from cache when an identical request is still live
        """
        documents = [as_document(po) for po in pos]
        options = dict(options or {})

        cache_key = self.generate_cache_key(documents, options)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached metrics result")
            return cached

        logger.info(f"Calculating metrics for {len(documents)} POs")
        dated = self.filter_by_date(documents, options.get("startDate"), options.get("endDate"))
        if not dated:
            logger.warning("No POs found in the date range for metrics calculation")

        financial = self.calculate_financial_metrics(dated)
        snapshot = MetricsSnapshot(
            calendar=self.calculate_calendar_metrics(dated),
            financial=financial,
            operational=self.calculate_operational_metrics(dated),
            product=financial.products,
        )

        if self.recorder is not None and self.recorder.has_metrics():
            snapshot.processing = self.recorder.get_all_metrics()

        self.cache.set(cache_key, snapshot)
        return snapshot

    @staticmethod
    def generate_cache_key(documents: List[Any], options: Mapping[str, Any]) -> str:
        numbers = ",".join(sorted(_po_number(po) for po in documents))
        return f"metrics:{numbers}:{json.dumps(options, sort_keys=True, default=str)}"

    # Filtering

    def filter_by_date(self, documents: List[Any], start_date: Any = None, end_date: Any = None) -> List[Dated]:
        """
        Keep POs whose orderDate parses and falls within the inclusive bounds.

        Returns (document, order date) pairs. POs without a usable orderDate are
        logged and excluded; a failure while filtering yields no POs.
        """
        try:
            start = parse_date(start_date)
            end = parse_date(end_date)
            if start_date and start is None:
                raise ValueError(f"Invalid start date: {start_date}")
            if end_date and end is None:
                raise ValueError(f"Invalid end date: {end_date}")

            dated: List[Dated] = []
            excluded = 0
            for po in documents:
                order_date = parse_date(get_path(po, "header", "orderDate"))
                if order_date is None:
                    excluded += 1
                    logger.warning(f"Excluding PO {_po_number(po) or UNKNOWN}: missing or invalid orderDate")
                    continue
                if (start is None or order_date >= start) and (end is None or order_date <= end):
                    dated.append((po, order_date))

        except (TypeError, ValueError) as e:
            logger.error(f"Error filtering POs by date: {e}")
            return []

        logger.debug(f"Date filter kept {len(dated)} of {len(documents)} POs ({excluded} without a valid orderDate)")
        return dated

    # Calendar

    def calculate_calendar_metrics(self, dated: List[Dated]) -> CalendarMetrics:
        return CalendarMetrics(
            delivery=self._delivery_metrics(dated),
            volume=self._volume_metrics(dated),
            status=self._status_metrics(dated),
        )

    def _delivery_metrics(self, dated: List[Dated]) -> DeliveryMetrics:
        now = utcnow()
        on_time = 0
        for po, _ in dated:
            delivery_date = parse_date(get_path(po, "header", "deliveryInfo", "date"))
            if delivery_date is None:
                continue
            raw_actual = get_path(po, "header", "deliveryInfo", "actualDate")
            actual = parse_date(raw_actual) if raw_actual else now
            if actual is None:
                logger.warning(f"PO {_po_number(po)}: invalid deliveryInfo.actualDate {raw_actual!r}")
                continue
            if delivery_date >= actual:
                on_time += 1

        total = len(dated)
        return DeliveryMetrics(
            on_time=on_time,
            total=total,
            performance=safe_divide(on_time, total) * 100,
        )

    def _volume_metrics(self, dated: List[Dated]) -> VolumeMetrics:
        daily: Dict[str, int] = {}
        weekly: Dict[str, int] = {}
        monthly: Dict[str, int] = {}

        for _, order_date in dated:
            day = order_date.strftime("%Y-%m-%d")
            week = week_key(order_date)
            month = order_date.strftime("%Y-%m")
            daily[day] = daily.get(day, 0) + 1
            weekly[week] = weekly.get(week, 0) + 1
            monthly[month] = monthly.get(month, 0) + 1

        return VolumeMetrics(
            daily=dict(sorted(daily.items())),
            weekly=dict(sorted(weekly.items())),
            monthly=dict(sorted(monthly.items())),
        )

    def _status_metrics(self, dated: List[Dated]) -> StatusMetrics:
        distribution: Dict[str, int] = {}
        transitions: Dict[str, int] = {}

        for po, _ in dated:
            status = _status_name(get_path(po, "header", "status"))
            if status is None:
                logger.warning(f"PO {_po_number(po)}: missing or invalid header.status")
            else:
                distribution[status] = distribution.get(status, 0) + 1

            history = po.get("statusHistory") or []
            if not isinstance(history, list):
                continue
            statuses = [
                _status_name(entry.get("status")) if isinstance(entry, Mapping) else None
                for entry in history
            ]
            if None in statuses:
                logger.warning(f"PO {_po_number(po)}: skipping malformed statusHistory entries")
                statuses = [status for status in statuses if status is not None]
            for previous, current in zip(statuses, statuses[1:]):
                key = f"{previous}->{current}"
                transitions[key] = transitions.get(key, 0) + 1

        return StatusMetrics(distribution=distribution, transitions=transitions)

    # Financial

    def calculate_financial_metrics(self, dated: List[Dated]) -> FinancialMetrics:
        return FinancialMetrics(
            sales=self._sales_metrics(dated),
            products=self.calculate_product_metrics(dated),
            growth=self._growth_trends(dated),
        )

    def _sales_metrics(self, dated: List[Dated]) -> SalesMetrics:
        total = sum(finite_or_zero(po.get("totalCost")) for po, _ in dated)
        average = safe_divide(total, len(dated))

        newest_first = sorted(dated, key=lambda item: item[1], reverse=True)
        midpoint = len(newest_first) // 2
        recent = sum(finite_or_zero(po.get("totalCost")) for po, _ in newest_first[:midpoint])
        previous = sum(finite_or_zero(po.get("totalCost")) for po, _ in newest_first[midpoint:])
        growth = safe_divide(recent - previous, previous) * 100 if previous > 0 else 0.0

        return SalesMetrics(total=total, average=average, growth=growth)

    def calculate_product_metrics(self, dated: List[Dated]) -> ProductMetrics:
        """Top products by sales (stable on ties) and the full category rollup."""
        products: Dict[str, ProductRanking] = {}
        categories: Dict[str, CategoryRollup] = {}

        for po, _ in dated:
            lines = po.get("products") or []
            if not isinstance(lines, list):
                logger.warning(f"PO {_po_number(po)}: products is not a list")
                continue

            for line in lines:
                if not isinstance(line, Mapping) or line.get("supc") is None:
                    logger.warning(f"PO {_po_number(po)}: skipping product line without supc")
                    continue

                quantity = _number(line.get("quantity")) or 0.0
                price = _number(line.get("price"))
                if price is None:
                    price = _number(line.get("fobCost")) or 0.0
                value = price * quantity

                supc = str(line["supc"])
                ranking = products.setdefault(supc, ProductRanking(supc=supc))
                ranking.sales += value
                ranking.volume += quantity

                category = str(line.get("category") or UNCATEGORIZED)
                rollup = categories.setdefault(category, CategoryRollup(name=category))
                rollup.value += value
                rollup.count += 1

        rankings = sorted(products.values(), key=lambda r: r.sales, reverse=True)[:self.top_products]
        return ProductMetrics(
            rankings=rankings,
            categories=sorted(categories.values(), key=lambda c: c.value, reverse=True),
        )

    def _growth_trends(self, dated: List[Dated]) -> GrowthTrends:
        periods = self.growth_periods
        sales = [0.0] * periods
        orders = [0] * periods

        oldest_first = sorted(dated, key=lambda item: item[1])
        if oldest_first:
            start, end = oldest_first[0][1], oldest_first[-1][1]
            period_length = (end - start) / periods

            for po, order_date in oldest_first:
                if period_length:
                    index = min(int((order_date - start) / period_length), periods - 1)
                else:
                    index = 0
                sales[index] += finite_or_zero(po.get("totalCost"))
                orders[index] += 1

        average = [safe_divide(sales[i], orders[i]) for i in range(periods)]
        return GrowthTrends(sales=sales, orders=orders, average=average)

    # Operational

    def calculate_operational_metrics(self, dated: List[Dated]) -> OperationalMetrics:
        return OperationalMetrics(
            efficiency=self._efficiency_metrics(dated),
            resources=self._resource_metrics(dated),
        )

    def _efficiency_metrics(self, dated: List[Dated]) -> EfficiencyMetrics:
        processing = weights = delivery = 0.0

        for po, _ in dated:
            processing += finite_or_zero(po.get("processingTime"))

            actual = _number(get_path(po, "weights", "actual"))
            estimated = _number(get_path(po, "weights", "estimated"))
            if actual and estimated:
                weights += abs(1 - actual / estimated)

            expected_date = parse_date(get_path(po, "header", "deliveryInfo", "date"))
            actual_date = parse_date(get_path(po, "header", "deliveryInfo", "actualDate"))
            if expected_date and actual_date:
                delivery += abs(1 - (actual_date - expected_date) / timedelta(days=1))

        count = len(dated)
        return EfficiencyMetrics(
            processing=safe_divide(processing, count),
            weights=safe_divide(weights, count),
            delivery=safe_divide(delivery, count),
        )

    def _resource_metrics(self, dated: List[Dated]) -> ResourceMetrics:
        buyers: Dict[str, Dict[str, float]] = {}
        locations: Dict[str, Dict[str, float]] = {}

        for po, _ in dated:
            value = finite_or_zero(po.get("totalCost"))

            buyer = buyers.setdefault(buyer_name(po, UNKNOWN), {"orders": 0, "value": 0.0, "processingTime": 0.0})
            buyer["orders"] += 1
            buyer["value"] += value
            buyer["processingTime"] += finite_or_zero(po.get("processingTime"))

            location_name = get_path(po, "header", "syscoLocation", "name")
            location = locations.setdefault(
                str(location_name) if location_name else UNKNOWN,
                {"orders": 0, "value": 0.0, "onTimeDeliveries": 0},
            )
            location["orders"] += 1
            location["value"] += value

            expected_date = parse_date(get_path(po, "header", "deliveryInfo", "date"))
            actual_date = parse_date(get_path(po, "header", "deliveryInfo", "actualDate"))
            if expected_date and actual_date and actual_date <= expected_date:
                location["onTimeDeliveries"] += 1

        return ResourceMetrics(
            buyers=BuyerMetrics(
                active=len(buyers),
                efficiency=self._mean_ratio(buyers.values(), "processingTime"),
                volume=safe_divide(sum(b["orders"] for b in buyers.values()), len(buyers)),
            ),
            locations=LocationMetrics(
                active=len(locations),
                throughput=self._mean_ratio(locations.values(), "value"),
                performance=self._mean_ratio(locations.values(), "onTimeDeliveries"),
            ),
        )

    @staticmethod
    def _mean_ratio(entities: Iterable[Mapping[str, float]], field: str) -> float:
        """Average of field/orders across entities; 0 when there are none."""
        ratios = [safe_divide(entity[field], entity["orders"]) for entity in entities]
        return safe_divide(sum(ratios), len(ratios))
