"""
Transition validator for the purchase-order workflow.

Checks that a requested status is reachable from the current one and that the
candidate document satisfies every requirement registered for the target
status. Validation outcomes are returned as StatusValidation objects; only
`transition()` raises, and only when asked to apply a refused transition.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel, Field

from po_lifecycle.errors import TransitionError
from po_lifecycle.schemas.po import StatusHistoryEntry
from po_lifecycle.schemas.validation import (
    StatusValidation,
    TransitionContext,
    ValidationError,
    ValidationErrorType,
    create_validation_error,
)
from po_lifecycle.status.definitions import Requirement, RequirementLevel, Status, to_status
from po_lifecycle.status.registry import StatusRegistry
from po_lifecycle.status.requirements import PredicateRegistry, RequirementResolver
from po_lifecycle.utils import as_document, utcnow_iso
from po_lifecycle.utils.logging import setup_logging, log_transition


logger = setup_logging(__name__)


class TransitionType(str, Enum):
    FORWARD = "FORWARD"
    BACKWARD = "BACKWARD"
    RESET = "RESET"


class TransitionResult(BaseModel):
    """A status transition that passed validation."""
    success: bool = True
    from_status: Status
    to_status: Status
    type: TransitionType
    reason: str = ""
    user: str = "system"
    history_entry: StatusHistoryEntry
    validation: StatusValidation
    timestamp: str = Field(default_factory=utcnow_iso)


class TransitionValidator:
    """
    Validates status transitions against the status registry.

    Requirements are evaluated through a RequirementResolver; the level of each
    requirement decides whether a failure lands in errors (MANDATORY), warnings
    (RECOMMENDED) or info (OPTIONAL).
    """

    def __init__(
        self,
        registry: Optional[StatusRegistry] = None,
        resolver: Optional[RequirementResolver] = None,
    ):
        self.registry = registry or StatusRegistry()
        self.resolver = resolver or PredicateRegistry()

    # Lookups

    def get_available_transitions(self, status) -> List[Status]:
        return self.registry.get_allowed_transitions(status)

    def get_status_requirements(self, status) -> Dict[str, Requirement]:
        return self.registry.get_requirements(status)

    def is_valid_status(self, status) -> bool:
        return self.registry.is_valid_status(status)

    # Validation

    def validate_transition(self, current, target, document: Any = None) -> StatusValidation:
        current_status = to_status(current)
        target_status = to_status(target)

        if current_status is None or not self.registry.is_valid_status(current_status):
            return self._invalid(
                "Invalid current status",
                TransitionContext(current_status=_name(current)),
                {"status": _name(current)},
            )

        valid_transitions = [s.value for s in self.registry.get_allowed_transitions(current_status)]
        context = TransitionContext(
            current_status=current_status.value,
            valid_transitions=valid_transitions,
        )

        if target_status is None or not self.registry.is_valid_status(target_status):
            return self._invalid("Invalid next status", context, {"status": _name(target)})

        if target_status.value not in valid_transitions:
            return self._invalid(
                f"Invalid status transition: {current_status.value} -> {target_status.value}",
                context,
                {"validTransitions": valid_transitions},
            )

        context.next_status = target_status.value
        buckets = self._evaluate_requirements(target_status, as_document(document))

        return StatusValidation(
            valid=not buckets[RequirementLevel.MANDATORY],
            errors=buckets[RequirementLevel.MANDATORY],
            warnings=buckets[RequirementLevel.RECOMMENDED],
            info=buckets[RequirementLevel.OPTIONAL],
            context=context,
        )

    def validate_status_transition(self, transition: Mapping[str, Any]) -> StatusValidation:
        """Validate a `{current, next, data}` transition request."""
        return self.validate_transition(
            transition.get("current"),
            transition.get("next"),
            transition.get("data"),
        )

    def validate_status_requirements(self, status, document: Any = None) -> StatusValidation:
        """Check a document against the requirements of a status, ignoring reachability."""
        target = to_status(status)
        if target is None or not self.registry.is_valid_status(target):
            return self._invalid("Invalid status", TransitionContext(), {"status": _name(status)})

        buckets = self._evaluate_requirements(target, as_document(document))
        return StatusValidation(
            valid=not buckets[RequirementLevel.MANDATORY],
            errors=buckets[RequirementLevel.MANDATORY],
            warnings=buckets[RequirementLevel.RECOMMENDED],
            info=buckets[RequirementLevel.OPTIONAL],
            context=TransitionContext(next_status=target.value),
        )

    def _evaluate_requirements(
        self, target: Status, document: Any
    ) -> Dict[RequirementLevel, List[ValidationError]]:
        buckets: Dict[RequirementLevel, List[ValidationError]] = {level: [] for level in RequirementLevel}

        for name, requirement in self.registry.get_requirements(target).items():
            details = {
                "requirement": name,
                "level": requirement.level.value,
                "message": requirement.message,
            }
            predicate = self.resolver.resolve(target, name)
            if predicate is None:
                buckets[requirement.level].append(create_validation_error(
                    ValidationErrorType.BUSINESS_RULE,
                    f"No predicate registered for requirement: {name}",
                    details,
                ))
                continue

            try:
                satisfied = bool(predicate(document))
            except Exception as e:
                logger.warning(f"Requirement {name} for {target.value} raised: {e}")
                buckets[requirement.level].append(create_validation_error(
                    ValidationErrorType.BUSINESS_RULE,
                    f"Validation error for {name}: {e}",
                    details,
                ))
                continue

            if not satisfied:
                buckets[requirement.level].append(create_validation_error(
                    ValidationErrorType.STATUS_ERROR,
                    f"Requirement not met: {name}",
                    details,
                ))

        return buckets

    @staticmethod
    def _invalid(message: str, context: TransitionContext, details: dict) -> StatusValidation:
        return StatusValidation(
            valid=False,
            errors=[create_validation_error(ValidationErrorType.STATUS_ERROR, message, details)],
            context=context,
        )

    # Transitions

    def get_transition_type(self, current: Status, target: Status) -> TransitionType:
        if target == self.registry.get_initial_status() or target == Status.CANCELLED:
            return TransitionType.RESET

        order = self.registry.order()
        if order.index(target) > order.index(current):
            return TransitionType.FORWARD
        return TransitionType.BACKWARD

    def transition(
        self,
        current,
        target,
        data: Any = None,
        reason: str = "",
        user: str = "system",
        notes: Optional[str] = None,
        skip_validation: bool = False,
    ) -> TransitionResult:
        """
        Apply a transition, returning the history entry to append.

        Raises TransitionError when validation refuses the move.
        """
        current_name, target_name = _name(current), _name(target)
        log_transition(logger, current_name, target_name, "before", {"user": user})

        validation = self.validate_transition(current, target, data)
        if not validation.valid and not skip_validation:
            log_transition(logger, current_name, target_name, "error", {"errors": validation.messages})
            raise TransitionError(
                f"Invalid transition: {', '.join(validation.messages)}",
                validation,
            )

        from_status, to_status_ = to_status(current), to_status(target)
        if from_status is None or to_status_ is None:
            raise TransitionError(f"Unknown status in transition {current_name} -> {target_name}", validation)

        entry = StatusHistoryEntry(
            status=to_status_,
            timestamp=utcnow_iso(),
            user=user,
            notes=notes or reason or None,
        )
        result = TransitionResult(
            from_status=from_status,
            to_status=to_status_,
            type=self.get_transition_type(from_status, to_status_),
            reason=reason,
            user=user,
            history_entry=entry,
            validation=validation,
        )
        log_transition(logger, current_name, target_name, "after", {"type": result.type.value})
        return result


def _name(status) -> str:
    if isinstance(status, Status):
        return status.value
    return str(status)
