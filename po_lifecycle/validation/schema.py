"""
Schema and business-rule validation for purchase-order documents.

Works on the stored camelCase document shape. Types and required fields come
from the PurchaseOrder model; field formats, business rules and custom
validators are checked on top. Every failure becomes a ValidationError tagged
with one ValidationErrorType; nothing here raises for bad input data.
"""

import re
from typing import Annotated, Any, Callable, Dict, Iterator, List, Mapping, Optional, Set, Tuple, Type, Union, get_args, get_origin

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from po_lifecycle.schemas.po import PurchaseOrder
from po_lifecycle.schemas.validation import (
    ValidationError,
    ValidationErrorType,
    ValidationResult,
    create_validation_error,
    create_validation_result,
)
from po_lifecycle.status.requirements import TOTAL_TOLERANCE, totals_reconcile
from po_lifecycle.validation.timerange import validate_date_format


SCHEMA_VERSION = "1.0.0"

# Maintained by the service, not part of the submitted document
RECORD_FIELDS = ("statusHistory", "processingTime", "notes", "createdAt", "lastUpdated")

FIELD_FORMATS: Dict[str, Dict[str, Any]] = {
    "header.orderDate": {"format": "YYYY-MM-DD", "description": "Order date in ISO format"},
    "header.deliveryInfo.date": {"format": "YYYY-MM-DD", "description": "Delivery date in ISO format"},
    "header.buyerInfo.email": {
        "pattern": re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
        "description": "Valid email address",
    },
    "header.poNumber": {"pattern": re.compile(r"^\d{6,10}$"), "description": "PO number (6-10 digits)"},
    "products[].supc": {"pattern": re.compile(r"^\d{6,8}$"), "description": "SUPC (6-8 digits)"},
}

DEFAULT_VALUES: Dict[str, Any] = {
    "revision": 1,
    "revisionInfo": "Initial version",
    "header.status": "UPLOADED",
}

# pydantic error type -> JSON type name reported in TYPE_ERROR messages
TYPE_NAMES: Dict[str, str] = {
    "float_type": "number",
    "float_parsing": "number",
    "int_type": "number",
    "int_parsing": "number",
    "int_from_float": "number",
    "string_type": "string",
    "bool_type": "boolean",
    "model_type": "object",
    "model_attributes_type": "object",
    "dict_type": "object",
    "list_type": "array",
}

CustomValidator = Callable[[Any, Mapping[str, Any]], Union[bool, str]]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _lookup(data: Any, path: str) -> Any:
    current = data
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _values_at(data: Mapping[str, Any], path: str) -> Iterator[Tuple[str, Any]]:
    """(concrete path, value) pairs for a dotted path; `products[].x` expands per product."""
    if "[]." not in path:
        yield path, _lookup(data, path)
        return
    array, field = path.split("[].", 1)
    items = _lookup(data, array)
    if not isinstance(items, list):
        return
    for index, item in enumerate(items):
        yield f"{array}[{index}].{field}", _lookup(item, field)


# Model introspection

def _fields(model: Type[BaseModel]) -> Dict[str, Any]:
    return {field.alias or name: field for name, field in model.model_fields.items()}


def _unwrap(annotation: Any) -> Tuple[Any, bool]:
    """Innermost type of an Optional/List/Annotated annotation, and whether a list was crossed."""
    is_list = False
    while True:
        origin = get_origin(annotation)
        if origin is Union:
            annotation = next(arg for arg in get_args(annotation) if arg is not type(None))
        elif origin is list:
            is_list = True
            annotation = get_args(annotation)[0]
        elif origin is Annotated:
            annotation = get_args(annotation)[0]
        else:
            return annotation, is_list


def _is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def schema_outline(model: Type[BaseModel] = PurchaseOrder, skip: Tuple[str, ...] = RECORD_FIELDS) -> Dict[str, Any]:
    """Document shape as JSON type names: nested dicts for objects, one-item lists for arrays."""
    outline: Dict[str, Any] = {}
    for alias, field in _fields(model).items():
        if alias in skip:
            continue
        inner, is_list = _unwrap(field.annotation)
        if _is_model(inner):
            value: Any = schema_outline(inner, ())
        else:
            value = "number" if inner in (int, float) else "string"
        outline[alias] = [value] if is_list else value
    return outline


def _leaf_paths(outline: Mapping[str, Any], prefix: str = "") -> Iterator[str]:
    for key, value in outline.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, list):
            yield from _leaf_paths(value[0], f"{path}[]")
        elif isinstance(value, Mapping):
            yield from _leaf_paths(value, path)
        else:
            yield path


def model_required_fields(model: Type[BaseModel] = PurchaseOrder, prefix: str = "") -> List[str]:
    """Dotted paths of the fields the model requires, `products[].x` for array items."""
    paths = []
    for alias, field in _fields(model).items():
        if not field.is_required():
            continue
        path = f"{prefix}.{alias}" if prefix else alias
        inner, is_list = _unwrap(field.annotation)
        if _is_model(inner):
            paths.extend(model_required_fields(inner, f"{path}[]" if is_list else path))
        else:
            paths.append(path)
    return paths


def required_fields_by_section() -> Dict[str, List[str]]:
    """model_required_fields grouped under their top-level section; top-level scalars go under `root`."""
    sections: Dict[str, List[str]] = {}
    for path in model_required_fields():
        head, _, rest = path.partition(".")
        if rest:
            sections.setdefault(head.replace("[]", ""), []).append(rest)
        else:
            sections.setdefault("root", []).append(path)
    return sections



# Business rules

def _weights_rule(data: Mapping[str, Any]) -> List[ValidationError]:
    weights = data.get("weights")
    if not isinstance(weights, Mapping):
        return []
    gross, net = weights.get("grossWeight"), weights.get("netWeight")
    if _is_number(gross) and _is_number(net) and not gross > net:
        return [create_validation_error(
            ValidationErrorType.BUSINESS_RULE,
            "Gross weight must be greater than net weight",
            {"field": "weights", "grossWeight": gross, "netWeight": net},
        )]
    return []


def _product_rules(data: Mapping[str, Any]) -> List[ValidationError]:
    errors = []
    products = data.get("products")
    if not isinstance(products, list):
        return errors

    for index, product in enumerate(products):
        if not isinstance(product, Mapping):
            continue
        path = f"products[{index}]"
        quantity, fob_cost, total = product.get("quantity"), product.get("fobCost"), product.get("total")

        if _is_number(quantity) and quantity <= 0:
            errors.append(create_validation_error(
                ValidationErrorType.BUSINESS_RULE,
                "Product quantity must be greater than 0",
                {"field": f"{path}.quantity", "value": quantity},
            ))
        if _is_number(fob_cost) and fob_cost < 0:
            errors.append(create_validation_error(
                ValidationErrorType.BUSINESS_RULE,
                "FOB cost cannot be negative",
                {"field": f"{path}.fobCost", "value": fob_cost},
            ))
        if _is_number(quantity) and _is_number(fob_cost) and _is_number(total):
            if abs(total - quantity * fob_cost) > TOTAL_TOLERANCE:
                errors.append(create_validation_error(
                    ValidationErrorType.BUSINESS_RULE,
                    "Product total must equal quantity * FOB cost",
                    {"field": f"{path}.total", "value": total, "expected": quantity * fob_cost},
                ))
    return errors


def _total_cost_rule(data: Mapping[str, Any]) -> List[ValidationError]:
    if not _is_number(data.get("totalCost")):
        return []
    if not totals_reconcile(data):
        return [create_validation_error(
            ValidationErrorType.BUSINESS_RULE,
            "Total cost must equal sum of product totals",
            {"field": "totalCost", "value": data.get("totalCost")},
        )]
    return []


BUSINESS_RULES: Dict[str, Callable[[Mapping[str, Any]], List[ValidationError]]] = {
    "weights": _weights_rule,
    "products": _product_rules,
    "totalCost": _total_cost_rule,
}


def check_business_rules(data: Mapping[str, Any]) -> List[ValidationError]:
    """Evaluate every business rule; a rule that raises becomes its own error."""
    errors: List[ValidationError] = []
    for name, rule in BUSINESS_RULES.items():
        try:
            errors.extend(rule(data))
        except (TypeError, ValueError, AttributeError) as e:
            errors.append(create_validation_error(
                ValidationErrorType.BUSINESS_RULE,
                f"Business rule error for {name}: {e}",
                {"field": name},
            ))
    return errors


def validate_business_rules(data: Mapping[str, Any]) -> ValidationResult:
    errors = check_business_rules(data)
    return create_validation_result(not errors, errors)


# Field formats

def _check_format(path: str, value: Any, fmt: Dict[str, Any]) -> Optional[ValidationError]:
    if not isinstance(value, str):
        return None
    if "pattern" in fmt and not fmt["pattern"].match(value):
        return create_validation_error(
            ValidationErrorType.FORMAT_ERROR,
            f"Invalid format for {path}: expected {fmt['description']}",
            {"field": path, "value": value},
        )
    if "format" in fmt:
        result = validate_date_format(value, fmt["format"])
        if not result.valid:
            error = result.errors[0]
            return create_validation_error(
                error.type,
                f"Invalid format for {path}: {error.message}",
                {"field": path, "value": value},
            )
    return None


def check_field_formats(data: Mapping[str, Any]) -> List[ValidationError]:
    errors = []
    for path, fmt in FIELD_FORMATS.items():
        if path.startswith("products[]."):
            field = path[len("products[]."):]
            products = data.get("products") if isinstance(data.get("products"), list) else []
            for index, product in enumerate(products):
                value = product.get(field) if isinstance(product, Mapping) else None
                error = _check_format(f"products[{index}].{field}", value, fmt)
                if error:
                    errors.append(error)
        else:
            error = _check_format(path, _lookup(data, path), fmt)
            if error:
                errors.append(error)
    return errors


# Schema check

def _error_path(loc: Tuple[Any, ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def _covered(path: str, reported: Set[str]) -> bool:
    """True when path or one of its parents already has an error."""
    return any(path == r or path.startswith(f"{r}.") or path.startswith(f"{r}[") for r in reported)


def _model_errors(data: Mapping[str, Any]) -> List[ValidationError]:
    """Type and required-field errors from validating data as a PurchaseOrder."""
    try:
        PurchaseOrder.model_validate(data)
    except PydanticValidationError as e:
        errors = []
        for error in e.errors():
            path = _error_path(error["loc"])
            kind = error["type"]
            if kind == "missing" or (kind in TYPE_NAMES and error.get("input") is None):
                errors.append(create_validation_error(
                    ValidationErrorType.REQUIRED_FIELD,
                    f"Required field missing: {path}",
                    {"field": path},
                ))
            elif kind in TYPE_NAMES:
                errors.append(create_validation_error(
                    ValidationErrorType.TYPE_ERROR,
                    f"Invalid type for {path}: expected {TYPE_NAMES[kind]}",
                    {"field": path, "value": repr(error.get("input"))},
                ))
            else:
                error_type = ValidationErrorType.STATUS_ERROR if path.endswith(".status") else ValidationErrorType.SCHEMA_ERROR
                errors.append(create_validation_error(
                    error_type,
                    f"Invalid value for {path}: {error['msg']}",
                    {"field": path, "value": repr(error.get("input"))},
                ))
        return errors
    return []


def _missing_fields(data: Mapping[str, Any], paths: List[str], reported: Set[str]) -> List[ValidationError]:
    errors = []
    for path in paths:
        for concrete, value in _values_at(data, path):
            if value is None and not _covered(concrete, reported):
                reported.add(concrete)
                errors.append(create_validation_error(
                    ValidationErrorType.REQUIRED_FIELD,
                    f"Required field missing: {concrete}",
                    {"field": concrete},
                ))
    return errors


def _custom_errors(
    data: Mapping[str, Any],
    custom_validators: Mapping[str, CustomValidator],
    reported: Set[str],
) -> List[ValidationError]:
    errors = []
    for path, validator in custom_validators.items():
        for concrete, value in _values_at(data, path):
            if value is None or _covered(concrete, reported):
                continue
            try:
                outcome = validator(value, data)
            except Exception as e:
                errors.append(create_validation_error(
                    ValidationErrorType.BUSINESS_RULE,
                    f"Custom validator error for {concrete}: {e}",
                    {"field": concrete},
                ))
                continue
            if outcome is not True:
                errors.append(create_validation_error(
                    ValidationErrorType.BUSINESS_RULE,
                    outcome or f"Custom validation failed for {concrete}",
                    {"field": concrete},
                ))
    return errors


def validate_schema(
    data: Any,
    strict: bool = False,
    required_fields: Optional[List[str]] = None,
    custom_validators: Optional[Mapping[str, CustomValidator]] = None,
    business_rules: bool = True,
) -> ValidationResult:
    """
    Validate a PO document against the schema.

    Args:
        data: camelCase PO document
        strict: require every schema field, not just the ones the model requires
        required_fields: extra dotted paths to require
        custom_validators: path -> callable(value, document) returning True or a message
        business_rules: also evaluate BUSINESS_RULES and FIELD_FORMATS

    Returns:
        ValidationResult listing every problem found
    """
    if not isinstance(data, Mapping):
        return create_validation_result(False, [
            create_validation_error(ValidationErrorType.TYPE_ERROR, "Invalid data type: expected object")
        ])

    errors = _model_errors(data)
    reported = {error.details["field"] for error in errors}

    extra = list(required_fields or [])
    if strict:
        extra.extend(_leaf_paths(schema_outline()))
    errors.extend(_missing_fields(data, extra, reported))
    errors.extend(_custom_errors(data, custom_validators or {}, reported))

    if business_rules:
        errors.extend(check_field_formats(data))
        errors.extend(check_business_rules(data))

    return create_validation_result(
        not errors,
        errors,
        {"validatedFields": sorted(data.keys()), "schemaVersion": SCHEMA_VERSION},
    )


def validate_field(field: str, value: Any) -> ValidationResult:
    """Validate one value against the model type at a dotted path."""
    model: Any = PurchaseOrder
    info = None
    for part in field.split("."):
        info = _fields(model).get(part) if _is_model(model) else None
        if info is None:
            return create_validation_result(False, [
                create_validation_error(ValidationErrorType.SCHEMA_ERROR, f"Invalid field path: {field}")
            ])
        model, _ = _unwrap(info.annotation)

    if value is None:
        return create_validation_result(False, [
            create_validation_error(ValidationErrorType.REQUIRED_FIELD, f"Required field missing: {field}")
        ])

    annotation = Annotated[(info.annotation, *info.metadata)] if info.metadata else info.annotation
    try:
        TypeAdapter(annotation).validate_python(value)
    except PydanticValidationError:
        return create_validation_result(False, [
            create_validation_error(ValidationErrorType.TYPE_ERROR, f"Invalid type for {field}")
        ])
    return create_validation_result(True)




def create_custom_validators(rules: Mapping[str, Any]) -> Dict[str, CustomValidator]:
    """
    Build custom validators from rule specs.

    A rule may be a callable, a dict with `validate`, a dict with a compiled or
    string `pattern`, or a dict with an `enum` list. `message` overrides the
    default failure text.
    """
    validators: Dict[str, CustomValidator] = {}

    for path, rule in rules.items():
        def validator(value, data, rule=rule):
            if callable(rule):
                return rule(value, data)
            if "validate" in rule:
                return rule["validate"](value, data)
            if "pattern" in rule:
                pattern = rule["pattern"]
                if isinstance(pattern, str):
                    pattern = re.compile(pattern)
                return bool(pattern.search(str(value))) or rule.get("message", "Pattern validation failed")
            if "enum" in rule:
                return value in rule["enum"] or rule.get("message", "Invalid enum value")
            return True

        validators[path] = validator

    return validators
