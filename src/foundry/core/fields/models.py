"""
Dynamic field values.

A capture's ``fields`` mapping holds one tagged value per field name. The
``kind`` tag selects the variant, so a stored mapping always says what
kind of value it carries and validation never has to guess from Python
types.

Example:
    >>> fields = parse_fields({"estimate": {"kind": "number", "value": 3}})
    >>> fields["estimate"]
    NumberValue(kind='number', value=3)
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from foundry.core.clock import as_utc


class FieldKind(str, Enum):
    """Supported dynamic field value kinds."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    PRINCIPALS = "principals"
    LABELS = "labels"


class _FieldValueBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextValue(_FieldValueBase):
    kind: Literal["text"] = "text"
    value: str


class NumberValue(_FieldValueBase):
    kind: Literal["number"] = "number"
    value: int | float


class DateValue(_FieldValueBase):
    kind: Literal["date"] = "date"
    value: datetime

    @field_validator("value")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Treat naive datetimes as UTC."""
        return as_utc(v)


class PrincipalListValue(_FieldValueBase):
    kind: Literal["principals"] = "principals"
    value: list[str] = Field(default_factory=list)


class LabelListValue(_FieldValueBase):
    kind: Literal["labels"] = "labels"
    value: list[str] = Field(default_factory=list)


FieldValue = Annotated[
    Union[TextValue, NumberValue, DateValue, PrincipalListValue, LabelListValue],
    Field(discriminator="kind"),
]

Fields = dict[str, FieldValue]

_fields_adapter: TypeAdapter[dict[str, FieldValue]] = TypeAdapter(dict[str, FieldValue])


def parse_fields(raw: dict[str, Any]) -> Fields:
    """
    Parse a raw mapping (e.g. decoded JSON) into tagged field values.

    Raises:
        pydantic.ValidationError: If a value has an unknown kind or bad shape
    """
    return _fields_adapter.validate_python(raw)


def make_value(kind: FieldKind, raw: Any) -> FieldValue:
    """
    Build a tagged value of ``kind`` from a plain Python value.

    Convenience for interfaces that collect untyped input (the CLI's
    ``--field name=value`` flags). List kinds accept a comma-separated string.
    """
    if kind == FieldKind.TEXT:
        return TextValue(value=str(raw))
    if kind == FieldKind.NUMBER:
        if isinstance(raw, str):
            number = float(raw)
            return NumberValue(value=int(number) if number.is_integer() else number)
        return NumberValue(value=raw)
    if kind == FieldKind.DATE:
        if isinstance(raw, str):
            return DateValue(value=datetime.fromisoformat(raw))
        return DateValue(value=raw)

    if isinstance(raw, str):
        items = [part.strip() for part in raw.split(",") if part.strip()]
    else:
        items = list(raw)
    if kind == FieldKind.PRINCIPALS:
        return PrincipalListValue(value=items)
    return LabelListValue(value=items)
