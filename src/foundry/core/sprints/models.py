"""
Sprint data models.

A sprint is a time-boxed grouping of captures. Membership is a set of
capture ids owned by the sprint's owner, kept in insertion order. When a
capacity is set, the sprint's load is the sum of its members' ``estimate``
field.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from foundry.core.clock import as_utc

MAX_NAME_LENGTH = 200


class SprintStatus(str, Enum):
    """Sprint lifecycle status."""

    PLANNING = "planning"
    ACTIVE = "active"
    REVIEW = "review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CapacityPolicy(str, Enum):
    """What happens when an assignment pushes a sprint past its capacity."""

    WARN = "warn"
    REJECT = "reject"


def _clean_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError("name may not be empty")
    return name


def _aware(value: datetime | None) -> datetime | None:
    if value is None:
        return value
    return as_utc(value)


class Sprint(BaseModel):
    """A sprint record."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner: str
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    goal: str | None = None
    status: SprintStatus = SprintStatus.PLANNING
    start_date: datetime | None = None
    end_date: datetime | None = None
    capacity: float | None = Field(default=None, ge=0)
    capture_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_validator("start_date", "end_date")
    @classmethod
    def ensure_aware(cls, v: datetime | None) -> datetime | None:
        return _aware(v)

    def has_member(self, capture_id: str) -> bool:
        return capture_id in self.capture_ids


class _SprintDates(BaseModel):
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def ensure_aware(cls, v: datetime | None) -> datetime | None:
        """Dates without a timezone are read as UTC."""
        return _aware(v)

    @model_validator(mode="after")
    def check_dates(self) -> "_SprintDates":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class SprintCreate(_SprintDates):
    """Request to create a sprint."""

    name: str = Field(..., max_length=MAX_NAME_LENGTH)
    goal: str | None = None
    capacity: float | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class SprintPatch(_SprintDates):
    """
    Partial update for a sprint.

    Explicitly passing ``capacity=None`` removes the capacity bound.
    """

    name: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    goal: str | None = None
    status: SprintStatus | None = None
    capacity: float | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _clean_name(v)

    def sets(self, name: str) -> bool:
        return name in self.model_fields_set


class AssignmentResult(BaseModel):
    """
    Outcome of adding a capture to a sprint.

    ``already_assigned`` is True when the capture was a member before the
    call (the add was a no-op). ``over_capacity`` reports that the sprint's
    load exceeds its capacity after the call.
    """

    sprint: Sprint
    capture_id: str
    already_assigned: bool = False
    load: float = 0
    capacity: float | None = None
    over_capacity: bool = False


class RemovalResult(BaseModel):
    """Outcome of removing a capture from a sprint."""

    sprint: Sprint
    capture_id: str
    was_assigned: bool


class SprintUpdateResult(BaseModel):
    """
    Outcome of updating a sprint.

    ``load`` is the summed load of the sprint's members after the update;
    ``over_capacity`` reports that it exceeds the (possibly new) capacity.
    """

    sprint: Sprint
    load: float = 0
    over_capacity: bool = False
