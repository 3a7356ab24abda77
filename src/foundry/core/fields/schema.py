"""
Per-capture-type field schema.

Each capture type has a fixed table of allowed dynamic fields. Validation
is a lookup in that table followed by the field's own constraints; a field
name the type does not declare is rejected, never silently dropped.

    Type        Fields
    ----------  ------------------------------------------------------
    idea        estimate, labels
    task        estimate, due_date, start_date, assignees, labels
    project     estimate, due_date, start_date, assignees, labels
    reflection  labels
    outline     assignees, labels
    calendar    start_date, due_date, assignees, labels, location

Every type also accepts free-form text fields named ``custom.<key>``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from foundry.core.errors import InvalidFieldError
from foundry.core.fields.models import (
    DateValue,
    FieldKind,
    Fields,
    FieldValue,
    LabelListValue,
    NumberValue,
    PrincipalListValue,
)
from foundry.core.identity import ANONYMOUS_PRINCIPALS, MAX_PRINCIPAL_LENGTH


class CaptureType(str, Enum):
    """Primary category of a capture."""

    IDEA = "idea"
    TASK = "task"
    PROJECT = "project"
    REFLECTION = "reflection"
    OUTLINE = "outline"
    CALENDAR = "calendar"


# Story points are stored as an unsigned 32-bit count
MAX_ESTIMATE = 2**32 - 1
MAX_LIST_ITEMS = 64
MAX_LABEL_LENGTH = 64
MAX_TEXT_LENGTH = 10_000


@dataclass(frozen=True)
class FieldSpec:
    """Definition of one dynamic field."""

    name: str
    kind: FieldKind
    description: str = ""
    integral: bool = False
    min_value: float | None = None
    max_value: float | None = None


ESTIMATE = FieldSpec(
    "estimate",
    FieldKind.NUMBER,
    "Estimated effort in story points",
    integral=True,
    min_value=0,
    max_value=MAX_ESTIMATE,
)
DUE_DATE = FieldSpec("due_date", FieldKind.DATE, "Due date")
START_DATE = FieldSpec("start_date", FieldKind.DATE, "Start date")
ASSIGNEES = FieldSpec("assignees", FieldKind.PRINCIPALS, "Assigned principals")
LABELS = FieldSpec("labels", FieldKind.LABELS, "Labels/tags")
LOCATION = FieldSpec("location", FieldKind.TEXT, "Where the event takes place")

CUSTOM_PREFIX = "custom."
MAX_CUSTOM_KEY_LENGTH = 64


def _table(*specs: FieldSpec) -> dict[str, FieldSpec]:
    return {spec.name: spec for spec in specs}


FIELD_SCHEMAS: dict[CaptureType, dict[str, FieldSpec]] = {
    CaptureType.IDEA: _table(ESTIMATE, LABELS),
    CaptureType.TASK: _table(ESTIMATE, DUE_DATE, START_DATE, ASSIGNEES, LABELS),
    CaptureType.PROJECT: _table(ESTIMATE, DUE_DATE, START_DATE, ASSIGNEES, LABELS),
    CaptureType.REFLECTION: _table(LABELS),
    CaptureType.OUTLINE: _table(ASSIGNEES, LABELS),
    CaptureType.CALENDAR: _table(START_DATE, DUE_DATE, ASSIGNEES, LABELS, LOCATION),
}


def schema_for(capture_type: CaptureType) -> dict[str, FieldSpec]:
    """Return the field table for a capture type."""
    return FIELD_SCHEMAS[capture_type]


def validate_fields(capture_type: CaptureType, fields: Fields) -> Fields:
    """
    Validate a complete field mapping against ``capture_type``'s schema.

    Args:
        capture_type: Type whose schema applies
        fields: Field name -> tagged value

    Returns:
        A new mapping with list values normalized (labels de-duplicated,
        order preserved)

    Raises:
        InvalidFieldError: On the first field that is unknown for the type,
            has the wrong kind, or breaks a constraint
    """
    schema = schema_for(capture_type)
    validated: Fields = {}

    for name, value in fields.items():
        spec = schema.get(name) or _custom_spec(name)
        if spec is None:
            raise InvalidFieldError(name, capture_type.value, "field is not defined for this type")
        if value.kind != spec.kind.value:
            raise InvalidFieldError(
                name, capture_type.value, f"expected {spec.kind.value}, got {value.kind}"
            )
        validated[name] = _check_value(spec, value, capture_type)

    start = validated.get("start_date")
    due = validated.get("due_date")
    if isinstance(start, DateValue) and isinstance(due, DateValue) and start.value > due.value:
        raise InvalidFieldError("due_date", capture_type.value, "due_date is before start_date")

    return validated


def _check_value(spec: FieldSpec, value: FieldValue, capture_type: CaptureType) -> FieldValue:
    type_name = capture_type.value

    if isinstance(value, NumberValue):
        number = value.value
        if isinstance(number, bool):
            raise InvalidFieldError(spec.name, type_name, "expected a number")
        if number != number or number in (float("inf"), float("-inf")):
            raise InvalidFieldError(spec.name, type_name, "must be a finite number")
        if spec.integral and not float(number).is_integer():
            raise InvalidFieldError(spec.name, type_name, "must be a whole number")
        if spec.min_value is not None and number < spec.min_value:
            raise InvalidFieldError(spec.name, type_name, f"must be >= {spec.min_value:g}")
        if spec.max_value is not None and number > spec.max_value:
            raise InvalidFieldError(spec.name, type_name, f"must be <= {spec.max_value:g}")
        if spec.integral:
            return NumberValue(value=int(number))
        return value

    if isinstance(value, LabelListValue):
        labels = _dedupe(value.value)
        if len(labels) > MAX_LIST_ITEMS:
            raise InvalidFieldError(spec.name, type_name, f"at most {MAX_LIST_ITEMS} labels")
        for label in labels:
            if not label.strip():
                raise InvalidFieldError(spec.name, type_name, "labels may not be empty")
            if len(label) > MAX_LABEL_LENGTH:
                raise InvalidFieldError(
                    spec.name, type_name, f"labels are limited to {MAX_LABEL_LENGTH} characters"
                )
        return LabelListValue(value=labels)

    if isinstance(value, PrincipalListValue):
        principals = _dedupe(value.value)
        if len(principals) > MAX_LIST_ITEMS:
            raise InvalidFieldError(spec.name, type_name, f"at most {MAX_LIST_ITEMS} principals")
        for principal in principals:
            if (
                not principal
                or principal != principal.strip()
                or principal in ANONYMOUS_PRINCIPALS
                or len(principal) > MAX_PRINCIPAL_LENGTH
            ):
                raise InvalidFieldError(spec.name, type_name, f"invalid principal '{principal}'")
        return PrincipalListValue(value=principals)

    if value.kind == FieldKind.TEXT.value and len(str(value.value)) > MAX_TEXT_LENGTH:
        raise InvalidFieldError(spec.name, type_name, "text is too long")

    return value


def _dedupe(items: list[Any]) -> list[Any]:
    seen: set[Any] = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def _custom_spec(name: str) -> FieldSpec | None:
    if not name.startswith(CUSTOM_PREFIX):
        return None
    key = name[len(CUSTOM_PREFIX) :]
    if not key or len(key) > MAX_CUSTOM_KEY_LENGTH or not key.replace("_", "").isalnum():
        return None
    return FieldSpec(name, FieldKind.TEXT, "Custom metadata")
