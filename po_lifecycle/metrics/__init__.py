"""
Metrics: snapshot aggregation, result cache and instrumentation recorder.
"""

from po_lifecycle.metrics.aggregator import MetricsAggregator
from po_lifecycle.metrics.cache import TTLCache
from po_lifecycle.metrics.recorder import MetricsRecorder

__all__ = ["MetricsAggregator", "MetricsRecorder", "TTLCache"]
