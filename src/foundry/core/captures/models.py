"""
Capture data models.

A capture is a user-authored item of one of six types (idea, task,
project, reflection, outline, calendar). Captures form parent/child trees
through ``parent_id`` and carry a typed ``fields`` mapping validated
against the Field Schema for their type.

Stored records are frozen: stores replace a record with an updated copy
instead of mutating it, which keeps transaction rollback a matter of
restoring the previous table.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from foundry.core.fields.models import FieldValue, LabelListValue, NumberValue
from foundry.core.fields.schema import CaptureType

MAX_TITLE_LENGTH = 500


class CaptureStatus(str, Enum):
    """Lifecycle status of a capture."""

    DRAFT = "draft"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    """Priority level for captures."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _clean_title(value: str) -> str:
    title = value.strip()
    if not title:
        raise ValueError("title may not be empty")
    return title


class Capture(BaseModel):
    """
    A single capture record.

    Example:
        >>> capture.id
        'cap-1'
        >>> capture.capture_type
        <CaptureType.TASK: 'task'>
        >>> capture.estimate
        3
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Store-assigned id (e.g., 'cap-1')")
    owner: str = Field(..., description="Owning principal")
    capture_type: CaptureType
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = None
    content: str | None = None
    status: CaptureStatus = CaptureStatus.DRAFT
    priority: Priority = Priority.MEDIUM
    parent_id: str | None = Field(default=None, description="Parent capture id")
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    template_id: str | None = Field(
        default=None, description="Template this capture was created from (informational)"
    )
    created_at: datetime
    updated_at: datetime

    @property
    def labels(self) -> list[str]:
        value = self.fields.get("labels")
        if isinstance(value, LabelListValue):
            return list(value.value)
        return []

    @property
    def estimate(self) -> int | float:
        """Committed load of this capture (0 when no estimate is set)."""
        value = self.fields.get("estimate")
        if isinstance(value, NumberValue):
            return value.value
        return 0


class CaptureCreate(BaseModel):
    """
    Request to create a capture.

    ``capture_type`` may be omitted when ``template_id`` names a capture
    template that declares one.
    """

    title: str = Field(..., max_length=MAX_TITLE_LENGTH)
    capture_type: CaptureType | None = None
    description: str | None = None
    content: str | None = None
    status: CaptureStatus | None = None
    priority: Priority | None = None
    parent_id: str | None = None
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    template_id: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _clean_title(v)


class CapturePatch(BaseModel):
    """
    Partial update for a capture.

    Only fields that were explicitly set are applied, so ``parent_id=None``
    detaches a capture while leaving ``parent_id`` out keeps its parent.

    ``fields`` is merged into the existing mapping key by key; a ``None``
    value removes that field. With ``replace_fields=True`` the mapping
    replaces the existing one wholesale.
    """

    title: str | None = Field(default=None, max_length=MAX_TITLE_LENGTH)
    capture_type: CaptureType | None = None
    description: str | None = None
    content: str | None = None
    status: CaptureStatus | None = None
    priority: Priority | None = None
    parent_id: str | None = None
    fields: dict[str, FieldValue | None] | None = None
    replace_fields: bool = False

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _clean_title(v)

    def sets(self, name: str) -> bool:
        """Whether ``name`` was explicitly provided in this patch."""
        return name in self.model_fields_set


class CaptureDeletion(BaseModel):
    """
    Outcome of deleting a capture.

    ``reparented`` lists the former children now attached to the deleted
    capture's parent; ``sprints`` lists the sprints it was removed from.
    """

    capture: Capture
    reparented: list[str] = Field(default_factory=list)
    sprints: list[str] = Field(default_factory=list)


class CaptureUpdateResult(BaseModel):
    """
    Outcome of updating a capture.

    ``over_capacity_sprints`` lists the sprints holding this capture whose
    load exceeds their capacity after the update.
    """

    capture: Capture
    over_capacity_sprints: list[str] = Field(default_factory=list)
