"""
Status registry: read-only lookups over the status definition table.
Unknown status names are data misses, never errors.
"""

from typing import Dict, List, Optional

from po_lifecycle.status.definitions import (
    INITIAL_STATUS,
    STATUS_DEFINITIONS,
    Requirement,
    Status,
    StatusDefinition,
    to_status,
)


class StatusRegistry:
    """Single source of truth mapping each Status to its StatusDefinition."""

    def __init__(
        self,
        definitions: Optional[Dict[Status, StatusDefinition]] = None,
        initial: Status = INITIAL_STATUS,
    ):
        self._definitions = dict(STATUS_DEFINITIONS if definitions is None else definitions)
        self._initial = initial

    def get_definition(self, status) -> Optional[StatusDefinition]:
        key = to_status(status)
        if key is None:
            return None
        return self._definitions.get(key)

    def get_all_definitions(self) -> Dict[Status, StatusDefinition]:
        return dict(self._definitions)

    def get_allowed_transitions(self, status) -> List[Status]:
        definition = self.get_definition(status)
        if definition is None:
            return []
        return list(definition.allowed_transitions)

    def get_requirements(self, status) -> Dict[str, Requirement]:
        definition = self.get_definition(status)
        if definition is None:
            return {}
        return dict(definition.requirements)

    def get_initial_status(self) -> Status:
        return self._initial

    def is_valid_status(self, status) -> bool:
        return self.get_definition(status) is not None

    def is_terminal(self, status) -> bool:
        definition = self.get_definition(status)
        return bool(definition and definition.metadata.is_terminal)

    def requires_notes(self, status) -> bool:
        definition = self.get_definition(status)
        return bool(definition and definition.metadata.requires_notes)

    def is_editable(self, status) -> bool:
        definition = self.get_definition(status)
        return bool(definition and definition.metadata.editable)

    def get_label(self, status) -> str:
        definition = self.get_definition(status)
        return definition.label if definition else str(status)

    def get_color(self, status) -> Optional[str]:
        definition = self.get_definition(status)
        return definition.color if definition else None

    def order(self) -> List[Status]:
        """Statuses in workflow declaration order."""
        return list(self._definitions)
