"""
Exception hierarchy for the PO lifecycle service.

Validation outcomes are returned as results, not raised. These exceptions
cover misuse, missing records, refused operations and collaborator failures;
each carries the HTTP status the API answers with.
"""

from typing import Any, Optional


class POLifecycleError(Exception):
    """Base error for the service."""

    status_code: int = 500
    error_type: str = "SYSTEM_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": self.error_type,
            "message": self.message,
            "details": self.details,
        }


class ValidationFailedError(POLifecycleError):
    """Input data failed schema or business-rule validation."""

    status_code = 400
    error_type = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message, details=errors or [])
        self.errors = errors or []


class NotFoundError(POLifecycleError):
    status_code = 404
    error_type = "NOT_FOUND"


class DuplicatePOError(POLifecycleError):
    """A purchase order with the same PO number already exists."""

    status_code = 409
    error_type = "DUPLICATE_PO"


class TransitionError(POLifecycleError):
    """A status transition was refused by the transition validator."""

    status_code = 409
    error_type = "INVALID_TRANSITION"

    def __init__(self, message: str, validation: Any = None):
        details = validation.model_dump(mode="json") if hasattr(validation, "model_dump") else validation
        super().__init__(message, details=details)
        self.validation = validation


class RepositoryError(POLifecycleError):
    """The document store could not be read or written."""

    status_code = 500
    error_type = "STORAGE_ERROR"


class ExtractionError(POLifecycleError):
    """PDF extraction failed after all retry attempts."""

    status_code = 422
    error_type = "PROCESSING_ERROR"


class MetricRecordingError(POLifecycleError):
    """An instrumentation event could not be recorded."""

    status_code = 500
    error_type = "METRIC_ERROR"
