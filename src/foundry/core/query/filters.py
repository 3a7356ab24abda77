"""
Filter and paging specifications for list queries.

A filter is a set of optional criteria combined with AND. A criterion left
unset (``None`` or an empty collection) does not constrain the result, so
an empty filter matches every record the caller owns.
"""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from foundry.core.captures.models import CaptureStatus, Priority
from foundry.core.clock import as_utc
from foundry.core.fields.schema import CaptureType
from foundry.core.sprints.models import SprintStatus
from foundry.core.templates.models import TemplateKind, Visibility

T = TypeVar("T")


class PageRequest(BaseModel):
    """
    Offset/limit paging. ``limit=None`` means the configured default.
    """

    offset: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=1)


class Page(BaseModel, Generic[T]):
    """One page of an ordered result, plus the size of the whole result."""

    items: list[T]
    total: int
    offset: int
    limit: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


class _DateRange(BaseModel):
    created_from: datetime | None = Field(
        default=None, description="Inclusive lower bound on created_at"
    )
    created_to: datetime | None = Field(
        default=None, description="Inclusive upper bound on created_at"
    )

    @field_validator("created_from", "created_to")
    @classmethod
    def ensure_aware(cls, v: datetime | None) -> datetime | None:
        """Bounds without a timezone are read as UTC, like stored timestamps."""
        if v is None:
            return v
        return as_utc(v)

    @model_validator(mode="after")
    def check_range(self) -> "_DateRange":
        if self.created_from and self.created_to and self.created_from > self.created_to:
            raise ValueError("created_from must not be after created_to")
        return self


class CaptureFilter(_DateRange):
    """
    Criteria for listing captures.

    Example:
        >>> CaptureFilter(statuses={CaptureStatus.ACTIVE, CaptureStatus.COMPLETED})
    """

    statuses: set[CaptureStatus] | None = None
    priorities: set[Priority] | None = None
    types: set[CaptureType] | None = None
    parent_id: str | None = Field(default=None, description="Only direct children of this capture")
    roots_only: bool = Field(default=False, description="Only captures without a parent")
    title_contains: str | None = Field(
        default=None, description="Case-insensitive substring of the title"
    )
    labels: set[str] | None = Field(default=None, description="Every listed label must be present")
    sprint_id: str | None = Field(default=None, description="Only members of this sprint")

    @model_validator(mode="after")
    def check_parent(self) -> "CaptureFilter":
        if self.roots_only and self.parent_id is not None:
            raise ValueError("roots_only and parent_id are mutually exclusive")
        return self


class SprintFilter(_DateRange):
    statuses: set[SprintStatus] | None = None
    name_contains: str | None = None


class WorkspaceFilter(_DateRange):
    include_archived: bool = True
    name_contains: str | None = None


class DocumentFilter(_DateRange):
    workspace_id: str | None = None
    folder_node_id: str | None = None
    title_contains: str | None = None


class TemplateFilter(_DateRange):
    kind: TemplateKind | None = None
    visibility: Visibility | None = None
    name_contains: str | None = None
