"""
Schema, business-rule and time validation. Failures are returned, never raised.
"""

from po_lifecycle.validation.schema import (
    validate_business_rules,
    validate_field,
    validate_schema,
)
from po_lifecycle.validation.timerange import (
    create_time_range,
    validate_date_format,
    validate_time_period,
    validate_time_range,
)

__all__ = [
    "create_time_range",
    "validate_business_rules",
    "validate_date_format",
    "validate_field",
    "validate_schema",
    "validate_time_period",
    "validate_time_range",
]
