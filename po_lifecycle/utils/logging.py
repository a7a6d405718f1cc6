"""
Structured logging for the PO lifecycle service.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Optional
from po_lifecycle.config import get_config


config = get_config()


class StructuredFormatter(logging.Formatter):
    """Formats log records as structured JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra"):
            log_obj.update(record.extra)

        return json.dumps(log_obj, default=str)


def setup_logging(name: str = __name__) -> logging.Logger:
    """Setup and return a configured logger."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.LOG_LEVEL))

    if logger.handlers:
        return logger

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, config.LOG_LEVEL))
    console_formatter = logging.Formatter(config.LOG_FORMAT)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # File handler with structured JSON
    file_handler = logging.FileHandler(config.LOG_FILE, delay=True)
    file_handler.setLevel(getattr(logging, config.LOG_LEVEL))
    file_handler.setFormatter(StructuredFormatter())
    logger.addHandler(file_handler)

    return logger


def log_transition(
    logger: logging.Logger,
    from_status: str,
    to_status: str,
    stage: str,
    details: Optional[dict] = None,
) -> None:
    """Log a status transition stage (before, after, error) with context."""
    extra = {
        "type": "status_transition",
        "from": from_status,
        "to": to_status,
        "stage": stage,
    }
    if details:
        extra.update(details)

    if stage == "error":
        logger.error(f"Error in transition from {from_status} to {to_status}", extra={"extra": extra})
    else:
        logger.info(f"[{stage}] transition {from_status} -> {to_status}", extra={"extra": extra})


def log_metric_event(
    logger: logging.Logger,
    metric_type: str,
    data: Any,
) -> None:
    """Log a recorded instrumentation event."""
    extra = {
        "type": "metric_event",
        "metric_type": metric_type,
        "data": data,
    }
    logger.info(
        f"Recorded {metric_type} metric",
        extra={"extra": extra}
    )
