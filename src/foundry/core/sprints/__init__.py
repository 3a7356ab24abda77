"""Sprints: time-boxed capture groupings with capacity accounting."""

from foundry.core.sprints.models import (
    AssignmentResult,
    CapacityPolicy,
    RemovalResult,
    Sprint,
    SprintCreate,
    SprintPatch,
    SprintStatus,
    SprintUpdateResult,
)

__all__ = [
    "AssignmentResult",
    "CapacityPolicy",
    "RemovalResult",
    "Sprint",
    "SprintCreate",
    "SprintPatch",
    "SprintStatus",
    "SprintUpdateResult",
]
