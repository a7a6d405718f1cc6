"""
Validation result schemas.
Validation failures are returned to callers in these shapes, never raised.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from po_lifecycle.utils import utcnow_iso


class ValidationErrorType(str, Enum):
    """Kinds of validation failure. Every error carries exactly one."""
    SCHEMA_ERROR = "SCHEMA_ERROR"
    TYPE_ERROR = "TYPE_ERROR"
    REQUIRED_FIELD = "REQUIRED_FIELD"
    FORMAT_ERROR = "FORMAT_ERROR"
    BUSINESS_RULE = "BUSINESS_RULE"
    STATUS_ERROR = "STATUS_ERROR"
    TIME_ERROR = "TIME_ERROR"
    METRIC_ERROR = "METRIC_ERROR"


class ValidationError(BaseModel):
    """A single validation failure."""
    type: ValidationErrorType
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utcnow_iso)


class ValidationResult(BaseModel):
    """Outcome of a schema, field or time validation."""
    valid: bool = True
    errors: List[ValidationError] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def messages(self) -> List[str]:
        return [error.message for error in self.errors]


class TransitionContext(BaseModel):
    current_status: Optional[str] = None
    next_status: Optional[str] = None
    valid_transitions: List[str] = Field(default_factory=list)


class StatusValidation(BaseModel):
    """
    Outcome of a status transition check.

    Only `errors` (mandatory requirements and structural problems) make the
    result invalid. Failed recommended requirements land in `warnings`, failed
    optional ones in `info`.
    """
    valid: bool
    errors: List[ValidationError] = Field(default_factory=list)
    warnings: List[ValidationError] = Field(default_factory=list)
    info: List[ValidationError] = Field(default_factory=list)
    context: TransitionContext = Field(default_factory=TransitionContext)

    @property
    def valid_transitions(self) -> List[str]:
        return self.context.valid_transitions

    @property
    def messages(self) -> List[str]:
        return [error.message for error in self.errors]


def create_validation_error(
    error_type: ValidationErrorType,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> ValidationError:
    """Build a timestamped validation error."""
    return ValidationError(type=error_type, message=message, details=details or {})


def create_validation_result(
    valid: bool = True,
    errors: Optional[List[ValidationError]] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ValidationResult:
    return ValidationResult(valid=valid, errors=errors or [], details=details or {})
