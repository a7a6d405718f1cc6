"""
Bounded log of raw instrumentation events, one log per metric type.
"""

import threading
from collections import deque
from typing import Any, Deque, Dict, List, Mapping

from po_lifecycle.errors import MetricRecordingError
from po_lifecycle.utils import utcnow_iso
from po_lifecycle.utils.logging import setup_logging, log_metric_event


logger = setup_logging(__name__)

DEFAULT_MAX_EVENTS = 1000


class MetricsRecorder:
    """
    Append-only event logs keyed by metric type (e.g. "pdf_processing").

    Each log keeps the newest `max_events` entries; the oldest is evicted
    inside the same locked append, so no reader ever sees an oversized log.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS):
        self.max_events = max_events
        self._logs: Dict[str, Deque[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def record_metric(self, metric_type: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Record one event. A missing timestamp defaults to now (ISO-8601 UTC).

        Raises:
            MetricRecordingError: type is not a non-empty string or data is not a mapping
        """
        try:
            if not isinstance(metric_type, str) or not metric_type.strip():
                raise ValueError(f"Metric type must be a non-empty string, got {metric_type!r}")
            if not isinstance(data, Mapping):
                raise TypeError(f"Metric data must be a mapping, got {type(data).__name__}")

            timestamp = data.get("timestamp")
            event = {**data, "timestamp": utcnow_iso() if timestamp is None else timestamp}
            with self._lock:
                log = self._logs.get(metric_type)
                if log is None:
                    log = self._logs[metric_type] = deque(maxlen=self.max_events)
                log.append(event)

        except (TypeError, ValueError) as e:
            logger.error(f"Error recording {metric_type} metric: {e}")
            raise MetricRecordingError(str(e), {"type": str(metric_type)}) from e

        log_metric_event(logger, metric_type, event)
        return event

    def get_metrics(self, metric_type: str) -> List[Dict[str, Any]]:
        """Events for one type, oldest first. Returns a copy."""
        with self._lock:
            return [dict(event) for event in self._logs.get(metric_type, ())]

    def get_all_metrics(self) -> Dict[str, List[Dict[str, Any]]]:
        with self._lock:
            return {
                metric_type: [dict(event) for event in log]
                for metric_type, log in self._logs.items()
            }

    def has_metrics(self) -> bool:
        with self._lock:
            return any(self._logs.values())

    def clear(self) -> None:
        with self._lock:
            self._logs.clear()
