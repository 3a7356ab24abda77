"""
Template data models.

Templates are reusable blueprints. Capture templates carry default fields
(and optionally a capture type); document templates carry default content.
Instantiation copies these values into the new record, after which the
record and the template are independent.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from foundry.core.fields.models import FieldValue
from foundry.core.fields.schema import CaptureType

MAX_NAME_LENGTH = 200


class TemplateKind(str, Enum):
    """What a template instantiates."""

    CAPTURE = "capture"
    DOCUMENT = "document"


class Visibility(str, Enum):
    """Who may read a template."""

    PRIVATE = "private"
    PUBLIC = "public"


def _clean_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError("name may not be empty")
    return name


class Template(BaseModel):
    """A template record."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner: str
    kind: TemplateKind
    visibility: Visibility = Visibility.PRIVATE
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    description: str | None = None
    content: str = Field(default="", description="Default content (document body or capture content)")
    capture_type: CaptureType | None = None
    default_fields: dict[str, FieldValue] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.PUBLIC


class TemplateCreate(BaseModel):
    """Request to create a template. Visibility defaults to private."""

    kind: TemplateKind
    name: str = Field(..., max_length=MAX_NAME_LENGTH)
    description: str | None = None
    content: str = ""
    capture_type: CaptureType | None = None
    default_fields: dict[str, FieldValue] = Field(default_factory=dict)
    visibility: Visibility = Visibility.PRIVATE

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class TemplatePatch(BaseModel):
    """
    Partial update for a template.

    ``default_fields`` replaces the existing defaults wholesale.
    """

    name: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    description: str | None = None
    content: str | None = None
    capture_type: CaptureType | None = None
    default_fields: dict[str, FieldValue] | None = None
    visibility: Visibility | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _clean_name(v)

    def sets(self, name: str) -> bool:
        return name in self.model_fields_set
