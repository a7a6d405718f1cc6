"""
Time range, date format and period validation for metrics queries.
"""

import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from po_lifecycle.errors import ValidationFailedError
from po_lifecycle.schemas.validation import (
    ValidationErrorType,
    ValidationResult,
    create_validation_error,
    create_validation_result,
)
from po_lifecycle.utils import parse_date, utcnow


TIME_UNITS: Dict[str, timedelta] = {
    "MINUTE": timedelta(minutes=1),
    "HOUR": timedelta(hours=1),
    "DAY": timedelta(days=1),
    "WEEK": timedelta(weeks=1),
    "MONTH": timedelta(days=30),
    "YEAR": timedelta(days=365),
}

DATE_FORMATS = {
    "YYYY-MM-DD": (re.compile(r"^\d{4}-\d{2}-\d{2}$"), "%Y-%m-%d"),
    "MM/DD/YYYY": (re.compile(r"^\d{2}/\d{2}/\d{4}$"), "%m/%d/%Y"),
    "DD-MM-YYYY": (re.compile(r"^\d{2}-\d{2}-\d{4}$"), "%d-%m-%Y"),
    "ISO": (re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{3})?Z?$"), None),
}

_PERIOD = re.compile(r"^(\d+)([dwmy])$", re.IGNORECASE)
_PERIOD_UNITS = {"d": "DAY", "w": "WEEK", "m": "MONTH", "y": "YEAR"}


def get_time_unit(unit: str) -> Optional[timedelta]:
    """Length of a named unit (MINUTE ... YEAR), or None when unknown."""
    return TIME_UNITS.get(unit.upper())


def validate_time_range(
    start: Any,
    end: Any,
    max_range: timedelta = TIME_UNITS["YEAR"],
    min_range: timedelta = timedelta(0),
    allow_future: bool = False,
    allow_past: bool = True,
    now: Optional[datetime] = None,
) -> ValidationResult:
    """
    Validate a start/end pair.

    Unparseable bounds short-circuit; otherwise every violated constraint is
    reported. `details` carries the parsed bounds and the range length in
    seconds.
    """
    errors = []
    start_dt, end_dt = parse_date(start), parse_date(end)

    if start_dt is None:
        errors.append(create_validation_error(ValidationErrorType.TIME_ERROR, "Invalid start date format"))
    if end_dt is None:
        errors.append(create_validation_error(ValidationErrorType.TIME_ERROR, "Invalid end date format"))
    if errors:
        return create_validation_result(False, errors)

    now = now or utcnow()
    span = end_dt - start_dt

    if start_dt > end_dt:
        errors.append(create_validation_error(ValidationErrorType.TIME_ERROR, "Start date must be before end date"))
    if span > max_range:
        errors.append(create_validation_error(ValidationErrorType.TIME_ERROR, "Time range exceeds maximum allowed"))
    if span < min_range:
        errors.append(create_validation_error(ValidationErrorType.TIME_ERROR, "Time range is below minimum required"))
    if not allow_future and end_dt > now:
        errors.append(create_validation_error(ValidationErrorType.TIME_ERROR, "Future dates are not allowed"))
    if not allow_past and start_dt < now:
        errors.append(create_validation_error(ValidationErrorType.TIME_ERROR, "Past dates are not allowed"))

    return create_validation_result(
        not errors,
        errors,
        {"start": start_dt.isoformat(), "end": end_dt.isoformat(), "range": span.total_seconds()},
    )


def validate_date_format(value: Any, date_format: str = "YYYY-MM-DD") -> ValidationResult:
    if date_format not in DATE_FORMATS:
        return create_validation_result(False, [
            create_validation_error(ValidationErrorType.FORMAT_ERROR, f"Unsupported date format: {date_format}")
        ])

    pattern, strptime_format = DATE_FORMATS[date_format]
    if not isinstance(value, str) or not pattern.match(value):
        return create_validation_result(False, [
            create_validation_error(ValidationErrorType.FORMAT_ERROR, f"Invalid date format. Expected {date_format}")
        ])

    try:
        if strptime_format:
            datetime.strptime(value, strptime_format)
        else:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return create_validation_result(False, [
            create_validation_error(ValidationErrorType.TIME_ERROR, "Invalid date value")
        ])

    return create_validation_result(True)


def validate_time_period(period: Any) -> ValidationResult:
    """Validate a period like '1d', '2w', '3m' or '1y'; details['seconds'] holds its length."""
    match = _PERIOD.match(period) if isinstance(period, str) else None
    if not match:
        return create_validation_result(False, [
            create_validation_error(
                ValidationErrorType.FORMAT_ERROR,
                "Invalid time period format. Expected format: {number}[d|w|m|y]",
            )
        ])

    value, unit = match.groups()
    try:
        length = int(value) * TIME_UNITS[_PERIOD_UNITS[unit.lower()]]
    except OverflowError:
        return create_validation_result(False, [
            create_validation_error(ValidationErrorType.FORMAT_ERROR, f"Time period too large: {period}")
        ])
    return create_validation_result(True, [], {"seconds": length.total_seconds()})


def create_time_range(period: str, end: Any = None) -> Dict[str, str]:
    """
    Build a `{start, end}` ISO range ending at `end` (default now).

    Raises ValidationFailedError for a malformed period or end date.
    """
    result = validate_time_period(period)
    if not result.valid:
        raise ValidationFailedError("Invalid time period", [e.model_dump(mode="json") for e in result.errors])

    end_dt = parse_date(end) if end is not None else utcnow()
    if end_dt is None:
        raise ValidationFailedError("Invalid end date", [
            create_validation_error(ValidationErrorType.TIME_ERROR, "Invalid end date format").model_dump(mode="json")
        ])

    try:
        start_dt = end_dt - timedelta(seconds=result.details["seconds"])
    except OverflowError as e:
        raise ValidationFailedError("Invalid time period", [
            create_validation_error(ValidationErrorType.TIME_ERROR, f"Time period {period} reaches before the earliest date").model_dump(mode="json")
        ]) from e
    return {"start": start_dt.isoformat(), "end": end_dt.isoformat()}
