"""
Tests for schema, business-rule and time validation.
"""

from datetime import datetime, timedelta

import pytest

from po_lifecycle.errors import ValidationFailedError
from po_lifecycle.schemas.validation import ValidationErrorType
from po_lifecycle.validation import (
    create_time_range,
    validate_business_rules,
    validate_date_format,
    validate_field,
    validate_schema,
    validate_time_period,
    validate_time_range,
)
from po_lifecycle.validation.schema import SCHEMA_VERSION, create_custom_validators, model_required_fields, schema_outline
from po_lifecycle.validation.timerange import get_time_unit


class TestSchemaValidation:
    """Test document validation against the PO schema."""

    def test_valid_po(self, sample_po):
        result = validate_schema(sample_po)

        assert result.valid, result.messages
        assert result.details["schemaVersion"] == SCHEMA_VERSION
        assert "header" in result.details["validatedFields"]

    def test_not_an_object(self):
        result = validate_schema(["not", "a", "po"])

        assert not result.valid
        assert result.errors[0].type == ValidationErrorType.TYPE_ERROR

    def test_missing_required_fields(self, sample_po):
        del sample_po["header"]["buyerInfo"]["email"]
        del sample_po["totalCost"]

        result = validate_schema(sample_po)

        assert not result.valid
        assert "Required field missing: header.buyerInfo.email" in result.messages
        assert "Required field missing: totalCost" in result.messages
        assert all(e.type == ValidationErrorType.REQUIRED_FIELD for e in result.errors)

    def test_missing_product_field(self, sample_po):
        del sample_po["products"][0]["fobCost"]

        result = validate_schema(sample_po, business_rules=False)

        assert result.messages == ["Required field missing: products[0].fobCost"]

    def test_wrong_types(self, sample_po):
        sample_po["products"][0]["quantity"] = "10"
        sample_po["weights"] = "heavy"

        result = validate_schema(sample_po)

        assert not result.valid
        types = {e.details.get("field"): e.type for e in result.errors}
        assert types["products[0].quantity"] == ValidationErrorType.TYPE_ERROR
        assert types["weights"] == ValidationErrorType.TYPE_ERROR

    def test_booleans_are_not_numbers(self, sample_po):
        sample_po["totalCost"] = True
        result = validate_schema(sample_po, business_rules=False)
        assert "Invalid type for totalCost: expected number" in result.messages

    def test_strict_mode_requires_every_field(self, sample_po):
        assert validate_schema(sample_po).valid

        result = validate_schema(sample_po, strict=True)

        assert not result.valid
        assert "Required field missing: header.ocNumber" in result.messages

    def test_extra_required_fields(self, sample_po):
        result = validate_schema(sample_po, required_fields=["header.ocNumber"])
        assert result.messages == ["Required field missing: header.ocNumber"]

    def test_field_formats(self, sample_po):
        sample_po["header"]["poNumber"] = "PO-1"
        sample_po["header"]["orderDate"] = "01/15/2026"
        sample_po["products"][0]["supc"] = "12"

        result = validate_schema(sample_po)

        fields = {e.details["field"] for e in result.errors if e.type == ValidationErrorType.FORMAT_ERROR}
        assert fields == {"header.poNumber", "header.orderDate", "products[0].supc"}

    def test_custom_validators(self, sample_po):
        validators = create_custom_validators({
            "header.syscoLocation.name": {"enum": ["Dallas DC"], "message": "Unknown location"},
            "products[].supc": {"pattern": r"^9"},
            "totalCost": lambda value, data: value < 100 or "Total too large",
        })

        result = validate_schema(sample_po, custom_validators=validators)

        assert not result.valid
        assert set(result.messages) == {"Unknown location", "Pattern validation failed", "Total too large"}
        assert all(e.type == ValidationErrorType.BUSINESS_RULE for e in result.errors)

    def test_null_counts_as_missing(self, sample_po):
        sample_po["totalCost"] = None
        result = validate_schema(sample_po, business_rules=False)
        assert result.messages == ["Required field missing: totalCost"]

    def test_unknown_status(self, sample_po):
        sample_po["header"]["status"] = "SHIPPING"

        result = validate_schema(sample_po)

        assert not result.valid
        assert result.errors[0].type == ValidationErrorType.STATUS_ERROR
        assert result.errors[0].details["field"] == "header.status"

    def test_schema_outline(self):
        outline = schema_outline()

        assert outline["products"][0]["quantity"] == "number"
        assert outline["header"]["buyerInfo"]["email"] == "string"
        assert "statusHistory" not in outline
        assert {"header.buyerInfo.email", "products[].supc", "totalCost"} <= set(model_required_fields())


class TestBusinessRules:
    """Test cross-field business rules."""

    def test_gross_weight_below_net_weight(self, sample_po):
        sample_po["weights"] = {"grossWeight": 50, "netWeight": 60}

        result = validate_business_rules(sample_po)

        assert not result.valid
        assert result.messages == ["Gross weight must be greater than net weight"]
        assert result.errors[0].type == ValidationErrorType.BUSINESS_RULE

    def test_product_rules(self, sample_po):
        sample_po["products"] = [
            {"supc": "1234567", "quantity": 0, "fobCost": 5.0, "total": 0.0},
            {"supc": "7654321", "quantity": 2, "fobCost": -1.0, "total": -2.0},
            {"supc": "1111111", "quantity": 2, "fobCost": 3.0, "total": 7.0},
        ]
        sample_po["totalCost"] = 5.0

        messages = validate_business_rules(sample_po).messages

        assert "Product quantity must be greater than 0" in messages
        assert "FOB cost cannot be negative" in messages
        assert "Product total must equal quantity * FOB cost" in messages

    def test_total_cost_must_match_products(self, sample_po):
        sample_po["totalCost"] = 250.0

        result = validate_business_rules(sample_po)

        assert result.messages == ["Total cost must equal sum of product totals"]

    def test_rounding_within_tolerance(self, sample_po):
        sample_po["products"] = [{"supc": "1234567", "quantity": 3, "fobCost": 3.33, "total": 9.99}]
        sample_po["totalCost"] = 9.995
        assert validate_business_rules(sample_po).valid


class TestFieldValidation:
    """Test single-field validation."""

    def test_valid_field(self):
        assert validate_field("header.poNumber", "1000001").valid
        assert validate_field("products.quantity", 4).valid

    def test_unknown_path(self):
        result = validate_field("header.color", "red")
        assert result.errors[0].type == ValidationErrorType.SCHEMA_ERROR

    def test_missing_value(self):
        result = validate_field("totalCost", None)
        assert result.errors[0].type == ValidationErrorType.REQUIRED_FIELD

    def test_wrong_type(self):
        result = validate_field("revision", 1.5)
        assert result.errors[0].type == ValidationErrorType.TYPE_ERROR


class TestTimeRange:
    """Test time range validation."""

    NOW = datetime(2026, 6, 1)

    def test_valid_range(self):
        result = validate_time_range("2026-01-01", "2026-02-01", now=self.NOW)

        assert result.valid
        assert result.details["range"] == timedelta(days=31).total_seconds()

    def test_unparseable_bounds(self):
        result = validate_time_range("yesterday", "2026-02-01", now=self.NOW)

        assert result.messages == ["Invalid start date format"]

    def test_inverted_range(self):
        result = validate_time_range("2026-02-01", "2026-01-01", now=self.NOW)

        assert not result.valid
        assert "Start date must be before end date" in result.messages

    def test_range_limits(self):
        too_long = validate_time_range("2024-01-01", "2026-01-01", now=self.NOW)
        assert "Time range exceeds maximum allowed" in too_long.messages

        too_short = validate_time_range("2026-01-01", "2026-01-02", min_range=timedelta(days=7), now=self.NOW)
        assert "Time range is below minimum required" in too_short.messages

    def test_future_and_past(self):
        future = validate_time_range("2026-05-01", "2026-07-01", now=self.NOW)
        assert future.messages == ["Future dates are not allowed"]
        assert validate_time_range("2026-05-01", "2026-07-01", allow_future=True, now=self.NOW).valid

        past = validate_time_range("2026-05-01", "2026-07-01", allow_past=False, allow_future=True, now=self.NOW)
        assert past.messages == ["Past dates are not allowed"]

    def test_all_errors_are_time_errors(self):
        result = validate_time_range("2026-02-01", "2026-01-01", now=self.NOW)
        assert all(e.type == ValidationErrorType.TIME_ERROR for e in result.errors)


class TestDatesAndPeriods:
    """Test date format and period helpers."""

    def test_date_format(self):
        assert validate_date_format("2026-01-15").valid
        assert validate_date_format("01/15/2026", "MM/DD/YYYY").valid
        assert validate_date_format("2026-01-15T10:30:00Z", "ISO").valid

    def test_bad_date_format(self):
        result = validate_date_format("15/01/2026")
        assert result.messages == ["Invalid date format. Expected YYYY-MM-DD"]
        assert result.errors[0].type == ValidationErrorType.FORMAT_ERROR

    def test_impossible_date(self):
        result = validate_date_format("2026-02-30")
        assert result.messages == ["Invalid date value"]
        assert result.errors[0].type == ValidationErrorType.TIME_ERROR

    def test_time_period(self):
        assert validate_time_period("2w").details["seconds"] == timedelta(weeks=2).total_seconds()
        assert validate_time_period("1Y").valid
        assert not validate_time_period("2 weeks").valid
        assert not validate_time_period(None).valid

    def test_oversized_period(self):
        result = validate_time_period("99999999999y")

        assert not result.valid
        assert result.errors[0].type == ValidationErrorType.FORMAT_ERROR

        with pytest.raises(ValidationFailedError):
            create_time_range("2000000y", end="2026-01-08")

    def test_create_time_range(self):
        time_range = create_time_range("7d", end="2026-01-08")

        assert time_range == {"start": "2026-01-01T00:00:00", "end": "2026-01-08T00:00:00"}

    def test_create_time_range_rejects_bad_period(self):
        with pytest.raises(ValidationFailedError):
            create_time_range("seven days")

    def test_time_units(self):
        assert get_time_unit("week") == timedelta(weeks=1)
        assert get_time_unit("fortnight") is None
