"""
Tests for the status registry, requirement predicates and transition validator.
"""

import pytest

from po_lifecycle.errors import TransitionError
from po_lifecycle.schemas.validation import ValidationErrorType
from po_lifecycle.status import STATUS_DEFINITIONS, RequirementLevel, Status, StatusRegistry
from po_lifecycle.status.definitions import Requirement, StatusDefinition
from po_lifecycle.status.requirements import PredicateRegistry, totals_reconcile
from po_lifecycle.status.transitions import TransitionType, TransitionValidator


@pytest.fixture
def registry():
    return StatusRegistry()


@pytest.fixture
def validator(registry):
    return TransitionValidator(registry, PredicateRegistry())


class TestStatusRegistry:
    """Test lookups over the status table."""

    def test_initial_status(self, registry):
        assert registry.get_initial_status() == Status.UPLOADED

    def test_every_status_is_defined(self, registry):
        assert set(registry.get_all_definitions()) == set(Status)

    def test_allowed_transitions(self, registry):
        assert registry.get_allowed_transitions("UPLOADED") == [Status.CONFIRMED, Status.CANCELLED]
        assert registry.get_allowed_transitions(Status.SHIPPED) == [Status.INVOICED, Status.CANCELLED]

    def test_terminal_statuses_have_no_transitions(self, registry):
        for status in (Status.DELIVERED, Status.CANCELLED):
            assert registry.is_terminal(status)
            assert registry.get_allowed_transitions(status) == []

    def test_no_self_transitions(self):
        for status, definition in STATUS_DEFINITIONS.items():
            assert status not in definition.allowed_transitions

    def test_transitions_point_at_defined_statuses(self):
        for definition in STATUS_DEFINITIONS.values():
            for target in definition.allowed_transitions:
                assert target in STATUS_DEFINITIONS

    def test_unknown_status_is_a_miss(self, registry):
        assert registry.get_definition("SHIPPING") is None
        assert registry.get_allowed_transitions("SHIPPING") == []
        assert registry.get_requirements("SHIPPING") == {}
        assert registry.is_valid_status("SHIPPING") is False
        assert registry.is_terminal("SHIPPING") is False

    def test_metadata_lookups(self, registry):
        assert registry.is_editable(Status.UPLOADED)
        assert not registry.is_editable(Status.SHIPPED)
        assert registry.requires_notes(Status.CANCELLED)
        assert not registry.requires_notes(Status.CONFIRMED)
        assert registry.get_label(Status.INVOICED) == "Invoiced"
        assert registry.get_color(Status.CANCELLED) == "#e74c3c"

    def test_requirements(self, registry):
        requirements = registry.get_requirements(Status.CONFIRMED)
        assert list(requirements) == ["dataVerified"]
        assert requirements["dataVerified"].level == RequirementLevel.MANDATORY

    def test_order_follows_declaration(self, registry):
        assert registry.order()[0] == Status.UPLOADED
        assert registry.order().index(Status.SHIPPED) < registry.order().index(Status.DELIVERED)


class TestPredicates:
    """Test the built-in requirement predicates."""

    def test_every_requirement_has_a_predicate(self):
        resolver = PredicateRegistry()
        for status, definition in STATUS_DEFINITIONS.items():
            for name in definition.requirements:
                assert resolver.resolve(status, name) is not None, f"{status.value}.{name}"

    def test_totals_reconcile_within_tolerance(self, sample_po):
        assert totals_reconcile(sample_po)
        sample_po["totalCost"] = 200.009
        assert totals_reconcile(sample_po)
        sample_po["totalCost"] = 200.02
        assert not totals_reconcile(sample_po)

    def test_totals_reconcile_without_total_cost(self):
        assert totals_reconcile({"products": [{"total": 5}]})

    def test_register_override(self):
        resolver = PredicateRegistry()
        resolver.register(Status.SHIPPED, "shippingDetails", lambda data: True)
        assert resolver.resolve(Status.SHIPPED, "shippingDetails")({}) is True
        assert "SHIPPED.shippingDetails" in resolver.names()


class TestTransitionValidator:
    """Test transition validation outcomes."""

    def test_confirm_valid_po(self, validator, sample_po):
        result = validator.validate_transition("UPLOADED", "CONFIRMED", sample_po)

        assert result.valid
        assert result.errors == []
        assert result.context.current_status == "UPLOADED"
        assert result.context.next_status == "CONFIRMED"

    def test_confirm_with_validation_errors(self, validator, sample_po):
        sample_po["validationErrors"] = ["Price mismatch"]

        result = validator.validate_transition("UPLOADED", "CONFIRMED", sample_po)

        assert not result.valid
        assert "Requirement not met: dataVerified" in result.messages
        assert result.errors[0].type == ValidationErrorType.STATUS_ERROR
        assert result.errors[0].details["level"] == "MANDATORY"

    def test_confirm_with_unreconciled_totals(self, validator, sample_po):
        sample_po["totalCost"] = 999.0

        result = validator.validate_transition("UPLOADED", "CONFIRMED", sample_po)

        assert not result.valid
        assert "Requirement not met: dataVerified" in result.messages

    def test_transition_from_terminal_status(self, validator, sample_po):
        result = validator.validate_transition("DELIVERED", "CONFIRMED", sample_po)

        assert not result.valid
        assert result.messages == ["Invalid status transition: DELIVERED -> CONFIRMED"]
        assert result.valid_transitions == []

    def test_skipping_a_status(self, validator, sample_po):
        result = validator.validate_transition("UPLOADED", "SHIPPED", sample_po)

        assert not result.valid
        assert result.valid_transitions == ["CONFIRMED", "CANCELLED"]

    def test_self_transition_is_refused(self, validator, sample_po):
        result = validator.validate_transition("CONFIRMED", "CONFIRMED", sample_po)
        assert not result.valid

    def test_unknown_statuses(self, validator, sample_po):
        current = validator.validate_transition("BOGUS", "CONFIRMED", sample_po)
        assert not current.valid
        assert current.messages == ["Invalid current status"]

        target = validator.validate_transition("UPLOADED", "BOGUS", sample_po)
        assert not target.valid
        assert target.messages == ["Invalid next status"]

    def test_validate_status_transition_request(self, validator, sample_po):
        result = validator.validate_status_transition({"current": "UPLOADED", "next": "CANCELLED", "data": sample_po})

        assert not result.valid
        assert "Requirement not met: cancellationReason" in result.messages

    def test_cancellation_with_reason(self, validator, sample_po):
        sample_po.update({"cancellationReason": "Duplicate order", "cancellationDate": "2026-01-16"})
        result = validator.validate_transition("CONFIRMED", "CANCELLED", sample_po)
        assert result.valid

    def test_predicate_that_raises(self, validator):
        result = validator.validate_transition("UPLOADED", "CONFIRMED", {"totalCost": "abc", "products": []})

        assert not result.valid
        assert result.errors[0].type == ValidationErrorType.BUSINESS_RULE
        assert result.errors[0].message.startswith("Validation error for dataVerified")

    def test_missing_predicate(self, registry, sample_po):
        validator = TransitionValidator(registry, PredicateRegistry(predicates={}))
        result = validator.validate_transition("UPLOADED", "CONFIRMED", sample_po)

        assert not result.valid
        assert result.messages == ["No predicate registered for requirement: dataVerified"]

    def test_recommended_requirement_only_warns(self, sample_po):
        definitions = dict(STATUS_DEFINITIONS)
        confirmed = definitions[Status.CONFIRMED]
        definitions[Status.CONFIRMED] = StatusDefinition(
            name=confirmed.name,
            label=confirmed.label,
            description=confirmed.description,
            color=confirmed.color,
            allowed_transitions=confirmed.allowed_transitions,
            requirements={
                "dataVerified": Requirement(level=RequirementLevel.RECOMMENDED, message="Verify data"),
            },
        )
        validator = TransitionValidator(StatusRegistry(definitions), PredicateRegistry())
        sample_po["validationErrors"] = ["Price mismatch"]

        result = validator.validate_transition("UPLOADED", "CONFIRMED", sample_po)

        assert result.valid
        assert result.errors == []
        assert [w.message for w in result.warnings] == ["Requirement not met: dataVerified"]

    def test_validate_status_requirements(self, validator, sample_po):
        assert validator.validate_status_requirements("UPLOADED", sample_po).valid

        del sample_po["weights"]
        result = validator.validate_status_requirements("UPLOADED", sample_po)
        assert not result.valid
        assert "Requirement not met: validData" in result.messages

    def test_lookups(self, validator):
        assert validator.get_available_transitions("INVOICED") == [Status.DELIVERED, Status.CANCELLED]
        assert validator.get_available_transitions("NOPE") == []
        assert "invoiceDetails" in validator.get_status_requirements("INVOICED")
        assert validator.is_valid_status("SHIPPED")
        assert not validator.is_valid_status("shipped")


class TestTransitions:
    """Test applying transitions."""

    def test_transition_builds_history_entry(self, validator, sample_po):
        result = validator.transition("UPLOADED", "CONFIRMED", sample_po, user="jsmith", notes="Checked")

        assert result.from_status == Status.UPLOADED
        assert result.to_status == Status.CONFIRMED
        assert result.type == TransitionType.FORWARD
        assert result.history_entry.status == Status.CONFIRMED
        assert result.history_entry.user == "jsmith"
        assert result.history_entry.notes == "Checked"

    def test_refused_transition_raises(self, validator, sample_po):
        with pytest.raises(TransitionError) as exc_info:
            validator.transition("DELIVERED", "CONFIRMED", sample_po)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["valid"] is False

    def test_skip_validation(self, validator, sample_po):
        sample_po["validationErrors"] = ["x"]
        result = validator.transition("UPLOADED", "CONFIRMED", sample_po, skip_validation=True)

        assert result.to_status == Status.CONFIRMED
        assert not result.validation.valid

    def test_transition_types(self, validator):
        assert validator.get_transition_type(Status.UPLOADED, Status.CONFIRMED) == TransitionType.FORWARD
        assert validator.get_transition_type(Status.SHIPPED, Status.CANCELLED) == TransitionType.RESET
        assert validator.get_transition_type(Status.SHIPPED, Status.CONFIRMED) == TransitionType.BACKWARD
