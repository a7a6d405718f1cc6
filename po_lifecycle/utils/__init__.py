"""
Shared utilities and helpers.
"""

import math
import re
from typing import Any, Mapping, Optional
from datetime import date, datetime, timezone


_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def serialize_for_json(obj: Any) -> Any:
    """Serialize objects that aren't JSON-serializable by default."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif hasattr(obj, 'model_dump'):  # Pydantic model
        return obj.model_dump(by_alias=True)
    elif hasattr(obj, '__dict__'):
        return obj.__dict__
    return str(obj)


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safe division with default value."""
    if not denominator:
        return default
    result = numerator / denominator
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def finite_or_zero(value: Any) -> float:
    """Coerce a number to a finite float; anything else becomes 0.0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a date-like value into a naive UTC datetime.

    Accepts datetime/date objects, ISO-8601 strings (with or without time and
    offset) and US-style MM/DD/YYYY or MM/DD/YY strings. Returns None when the
    value is missing or cannot be parsed.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        parsed = None
        if _ISO_DATE.match(text):
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                parsed = None
        if parsed is None:
            for fmt in _DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utcnow_iso() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def get_path(document: Any, *keys: str, default: Any = None) -> Any:
    """Null-safe nested lookup in a mapping-based document."""
    current = document
    for key in keys:
        if not isinstance(current, Mapping):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def as_document(obj: Any) -> Any:
    """
    View a purchase order as its stored camelCase mapping.

    Pydantic models are dumped by alias; mappings and anything else pass
    through unchanged. None becomes an empty document.
    """
    if obj is None:
        return {}
    if hasattr(obj, "model_dump"):
        return obj.model_dump(by_alias=True, exclude_none=True)
    return obj


def buyer_name(document: Any, default: str = "Unknown") -> str:
    """Buyer name of a PO document: `name`, else first and last name."""
    buyer = get_path(document, "header", "buyerInfo")
    if not isinstance(buyer, Mapping):
        return default
    if buyer.get("name"):
        return str(buyer["name"])
    parts = [str(part) for part in (buyer.get("firstName"), buyer.get("lastName")) if part]
    return " ".join(parts) or default
