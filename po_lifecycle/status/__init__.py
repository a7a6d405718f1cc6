"""
Status workflow: definitions table and registry lookups.

The transition validator lives in `po_lifecycle.status.transitions`.
"""

from po_lifecycle.status.definitions import (
    INITIAL_STATUS,
    STATUS_DEFINITIONS,
    Requirement,
    RequirementLevel,
    Status,
    StatusDefinition,
)
from po_lifecycle.status.registry import StatusRegistry

__all__ = [
    "INITIAL_STATUS",
    "STATUS_DEFINITIONS",
    "Requirement",
    "RequirementLevel",
    "Status",
    "StatusDefinition",
    "StatusRegistry",
]
