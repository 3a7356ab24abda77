"""
Field Schema: dynamic, per-capture-type attributes.

``models`` defines the tagged value variants; ``schema`` holds the
per-type tables and validation.
"""

from foundry.core.fields.models import (
    DateValue,
    FieldKind,
    Fields,
    FieldValue,
    LabelListValue,
    NumberValue,
    PrincipalListValue,
    TextValue,
    make_value,
    parse_fields,
)
from foundry.core.fields.schema import (
    FIELD_SCHEMAS,
    CaptureType,
    FieldSpec,
    schema_for,
    validate_fields,
)

__all__ = [
    "CaptureType",
    "DateValue",
    "FIELD_SCHEMAS",
    "FieldKind",
    "FieldSpec",
    "FieldValue",
    "Fields",
    "LabelListValue",
    "NumberValue",
    "PrincipalListValue",
    "TextValue",
    "make_value",
    "parse_fields",
    "schema_for",
    "validate_fields",
]
