"""
Sprint storage and capture membership.

Membership is a list of capture ids owned by the sprint's owner; a capture
appears in it at most once. Adding a capture that is already a member is a
no-op reported through ``AssignmentResult.already_assigned``; removing a
non-member is a no-op reported through ``RemovalResult.was_assigned``.

Capacity accounting sums a number field (``estimate`` by default) over the
sprint's members. The load can grow past capacity three ways: adding a
member, raising a member's estimate, or lowering the capacity. Each is
handled by the configured ``CapacityPolicy``: WARN keeps the change and
flags the result, REJECT raises CapacityExceededError and the change is
rolled back.
"""

from __future__ import annotations

import logging

from foundry.core.captures.models import Capture
from foundry.core.clock import SPRINT_PREFIX
from foundry.core.config.models import SprintConfig
from foundry.core.errors import (
    CapacityExceededError,
    DanglingReferenceError,
    ValidationError,
)
from foundry.core.fields.models import NumberValue
from foundry.core.identity import require_owned, require_principal
from foundry.core.query.engine import QueryEngine
from foundry.core.query.filters import Page, PageRequest, SprintFilter
from foundry.core.sprints.models import (
    AssignmentResult,
    CapacityPolicy,
    RemovalResult,
    Sprint,
    SprintCreate,
    SprintPatch,
    SprintUpdateResult,
)
from foundry.core.state import RecordState

logger = logging.getLogger(__name__)

KIND = "sprint"


class SprintStore:
    """
    Sprint table operations.

    Example:
        >>> store = SprintStore(state)
        >>> sprint = store.create("alice", SprintCreate(name="Week 1", capacity=10))
        >>> result = store.add_capture("alice", sprint.id, "cap-1")
        >>> result.sprint.capture_ids
        ['cap-1']
    """

    def __init__(
        self,
        state: RecordState,
        config: SprintConfig | None = None,
        query: QueryEngine | None = None,
    ) -> None:
        self._state = state
        self._config = config or SprintConfig()
        self._query = query or QueryEngine(state)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, caller: str, request: SprintCreate) -> Sprint:
        owner = require_principal(caller)
        with self._state.transaction() as state:
            now = state.now()
            sprint = Sprint(
                id=state.next_id(SPRINT_PREFIX),
                owner=owner,
                name=request.name,
                goal=request.goal,
                start_date=request.start_date,
                end_date=request.end_date,
                capacity=request.capacity,
                created_at=now,
                updated_at=now,
            )
            state.sprints[sprint.id] = sprint

        logger.info(f"Created sprint {sprint.id} for {owner}")
        return sprint

    def get(self, caller: str, sprint_id: str) -> Sprint:
        principal = require_principal(caller)
        with self._state.reading() as state:
            sprint = require_owned(state.sprints.get(sprint_id), principal, KIND, sprint_id)
        logger.debug(f"Read sprint {sprint_id}")
        return sprint

    def list(
        self,
        caller: str,
        spec: SprintFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Sprint]:
        return self._query.sprints(require_principal(caller), spec, page)

    def update(self, caller: str, sprint_id: str, patch: SprintPatch) -> SprintUpdateResult:
        """
        Apply a partial update.

        Dates are checked against each other after merging with the stored
        values, so moving only ``end_date`` before the existing
        ``start_date`` is rejected.

        Raises:
            NotFoundError: If the sprint is not the caller's
            ValidationError: If the merged dates are out of order
            CapacityExceededError: Under the REJECT policy, when the new
                capacity is below the current load
        """
        principal = require_principal(caller)
        with self._state.transaction() as state:
            sprint = require_owned(state.sprints.get(sprint_id), principal, KIND, sprint_id)

            updates: dict[str, object] = {}
            for name in ("name", "status"):
                value = getattr(patch, name)
                if patch.sets(name) and value is not None:
                    updates[name] = value
            for name in ("goal", "start_date", "end_date", "capacity"):
                if patch.sets(name):
                    updates[name] = getattr(patch, name)

            start = updates.get("start_date", sprint.start_date)
            end = updates.get("end_date", sprint.end_date)
            if start is not None and end is not None and start > end:  # type: ignore[operator]
                raise ValidationError("start_date must not be after end_date", id=sprint_id)

            updates["updated_at"] = state.now()
            updated = sprint.model_copy(update=updates)

            load = self.load(updated)
            over_capacity = _exceeds(updated, load)
            lowered = updated.capacity is not None and (
                sprint.capacity is None or updated.capacity < sprint.capacity
            )
            if over_capacity and lowered:
                self._apply_policy(updated, load, "after its capacity was lowered")
            state.sprints[sprint_id] = updated

        logger.info(f"Updated sprint {sprint_id}")
        return SprintUpdateResult(sprint=updated, load=load, over_capacity=over_capacity)

    def delete(self, caller: str, sprint_id: str) -> Sprint:
        """Delete a sprint. Its captures are untouched; only membership is lost."""
        principal = require_principal(caller)
        with self._state.transaction() as state:
            sprint = require_owned(state.sprints.get(sprint_id), principal, KIND, sprint_id)
            del state.sprints[sprint_id]

        logger.info(f"Deleted sprint {sprint_id} ({len(sprint.capture_ids)} members released)")
        return sprint

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_capture(self, caller: str, sprint_id: str, capture_id: str) -> AssignmentResult:
        """
        Add a capture to a sprint.

        Raises:
            NotFoundError: If the sprint is not the caller's
            DanglingReferenceError: If the capture is missing or not the caller's
            CapacityExceededError: Under the REJECT policy, when the add
                would push the load past capacity
        """
        principal = require_principal(caller)
        with self._state.transaction() as state:
            sprint = require_owned(state.sprints.get(sprint_id), principal, KIND, sprint_id)
            capture = state.captures.get(capture_id)
            if capture is None or capture.owner != principal:
                raise DanglingReferenceError("capture", capture_id)

            load = self.load(sprint)
            if sprint.has_member(capture_id):
                logger.debug(f"Capture {capture_id} already in sprint {sprint_id}")
                return self._result(sprint, capture_id, load, already_assigned=True)

            new_load = load + self._capture_load(capture)
            if _exceeds(sprint, new_load):
                self._apply_policy(sprint, new_load, f"after adding {capture_id}")

            updated = sprint.model_copy(
                update={
                    "capture_ids": [*sprint.capture_ids, capture_id],
                    "updated_at": state.now(),
                }
            )
            state.sprints[sprint_id] = updated

        logger.info(f"Added capture {capture_id} to sprint {sprint_id}")
        return self._result(updated, capture_id, new_load)

    def remove_capture(self, caller: str, sprint_id: str, capture_id: str) -> RemovalResult:
        """
        Remove a capture from a sprint. Removing a non-member changes nothing.

        The capture itself does not need to exist any more.
        """
        principal = require_principal(caller)
        with self._state.transaction() as state:
            sprint = require_owned(state.sprints.get(sprint_id), principal, KIND, sprint_id)
            if not sprint.has_member(capture_id):
                logger.debug(f"Capture {capture_id} not in sprint {sprint_id}")
                return RemovalResult(sprint=sprint, capture_id=capture_id, was_assigned=False)

            updated = sprint.model_copy(
                update={
                    "capture_ids": [cid for cid in sprint.capture_ids if cid != capture_id],
                    "updated_at": state.now(),
                }
            )
            state.sprints[sprint_id] = updated

        logger.info(f"Removed capture {capture_id} from sprint {sprint_id}")
        return RemovalResult(sprint=updated, capture_id=capture_id, was_assigned=True)

    def detach_capture(self, capture_id: str) -> list[str]:
        """
        Drop ``capture_id`` from every sprint that lists it.

        Called by the capture store while deleting a capture, inside the
        same transaction.

        Returns:
            Ids of the sprints that were changed
        """
        changed: list[str] = []
        with self._state.transaction() as state:
            for sprint in list(state.sprints.values()):
                if not sprint.has_member(capture_id):
                    continue
                state.sprints[sprint.id] = sprint.model_copy(
                    update={
                        "capture_ids": [cid for cid in sprint.capture_ids if cid != capture_id],
                        "updated_at": state.now(),
                    }
                )
                changed.append(sprint.id)
        return changed

    def members(self, caller: str, sprint_id: str) -> list[Capture]:
        """The sprint's captures in membership order."""
        sprint = self.get(caller, sprint_id)
        with self._state.reading() as state:
            return [state.captures[cid] for cid in sprint.capture_ids if cid in state.captures]

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def load(self, sprint: Sprint) -> float:
        """Sum of the load field over the sprint's current members."""
        with self._state.reading() as state:
            return sum(
                self._capture_load(state.captures[cid])
                for cid in sprint.capture_ids
                if cid in state.captures
            )

    def member_loads(self, capture_id: str) -> dict[str, float]:
        """Current load of every sprint that lists ``capture_id``, by sprint id."""
        with self._state.reading() as state:
            return {
                sprint.id: self.load(sprint)
                for sprint in state.sprints.values()
                if sprint.has_member(capture_id)
            }

    def check_member_loads(self, capture_id: str, before: dict[str, float]) -> list[str]:
        """
        Apply the capacity policy after a member capture changed.

        ``before`` is the result of :meth:`member_loads` taken ahead of the
        change. Only a load that grew past capacity is subject to the
        policy; a sprint that was already over and did not grow is reported
        but not rejected.

        Returns:
            Ids of the sprints over capacity after the change

        Raises:
            CapacityExceededError: Under the REJECT policy
        """
        over: list[str] = []
        with self._state.reading() as state:
            for sprint_id, previous in before.items():
                sprint = state.sprints[sprint_id]
                load = self.load(sprint)
                if not _exceeds(sprint, load):
                    continue
                if load > previous:
                    self._apply_policy(sprint, load, f"after {capture_id} changed")
                over.append(sprint_id)
        return over

    def _apply_policy(self, sprint: Sprint, load: float, reason: str) -> None:
        assert sprint.capacity is not None
        if self._config.capacity_policy == CapacityPolicy.REJECT:
            raise CapacityExceededError(sprint.id, load, sprint.capacity)
        logger.warning(
            f"Sprint {sprint.id} over capacity {reason} ({load:g} > {sprint.capacity:g})"
        )

    def _capture_load(self, capture: Capture) -> float:
        value = capture.fields.get(self._config.load_field)
        if isinstance(value, NumberValue):
            return value.value
        return 0

    def _result(
        self, sprint: Sprint, capture_id: str, load: float, already_assigned: bool = False
    ) -> AssignmentResult:
        return AssignmentResult(
            sprint=sprint,
            capture_id=capture_id,
            already_assigned=already_assigned,
            load=load,
            capacity=sprint.capacity,
            over_capacity=_exceeds(sprint, load),
        )


def _exceeds(sprint: Sprint, load: float) -> bool:
    return sprint.capacity is not None and load > sprint.capacity
