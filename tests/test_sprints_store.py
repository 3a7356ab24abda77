"""
Tests for the sprint store: CRUD, membership and capacity policy.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from foundry.core.captures.models import CapturePatch
from foundry.core.captures.store import CaptureStore
from foundry.core.config.models import SprintConfig
from foundry.core.errors import (
    CapacityExceededError,
    DanglingReferenceError,
    NotFoundError,
    ValidationError,
)
from foundry.core.fields.models import NumberValue
from foundry.core.sprints.models import CapacityPolicy, SprintCreate, SprintPatch, SprintStatus
from foundry.core.sprints.store import SprintStore
from foundry.core.state import RecordState


@pytest.fixture
def sprints(state: RecordState) -> SprintStore:
    return SprintStore(state)


@pytest.fixture
def strict_sprints(state: RecordState) -> SprintStore:
    return SprintStore(state, SprintConfig(capacity_policy=CapacityPolicy.REJECT))


JAN_1 = datetime(2026, 1, 1, tzinfo=timezone.utc)
JAN_14 = datetime(2026, 1, 14, tzinfo=timezone.utc)


class TestSprintCrud:
    """Tests for creating, reading, updating and deleting sprints."""

    def test_create_defaults(self, sprints: SprintStore) -> None:
        sprint = sprints.create("alice", SprintCreate(name="Week 1", goal="Ship it"))

        assert sprint.id == "spr-1"
        assert sprint.owner == "alice"
        assert sprint.status == SprintStatus.PLANNING
        assert sprint.capture_ids == []

    def test_create_rejects_inverted_dates(self) -> None:
        with pytest.raises(PydanticValidationError, match="start_date"):
            SprintCreate(name="Week 1", start_date=JAN_14, end_date=JAN_1)

    def test_update_checks_merged_dates(self, sprints: SprintStore) -> None:
        """Moving only end_date before the stored start_date is refused."""
        sprint = sprints.create("alice", SprintCreate(name="Week 1", start_date=JAN_14))

        with pytest.raises(ValidationError, match="start_date"):
            sprints.update("alice", sprint.id, SprintPatch(end_date=JAN_1))

    def test_update_clears_capacity(self, sprints: SprintStore) -> None:
        sprint = sprints.create("alice", SprintCreate(name="Week 1", capacity=10))

        unchanged = sprints.update("alice", sprint.id, SprintPatch(goal="Focus")).sprint
        assert unchanged.capacity == 10

        cleared = sprints.update("alice", sprint.id, SprintPatch(capacity=None)).sprint
        assert cleared.capacity is None

    def test_mixed_timezone_dates_read_as_utc(self) -> None:
        """A date without a timezone is compared as UTC, not refused with a TypeError."""
        request = SprintCreate(name="Week 1", start_date=JAN_1, end_date=datetime(2026, 1, 14))

        assert request.end_date == JAN_14
        with pytest.raises(PydanticValidationError, match="start_date"):
            SprintCreate(name="Week 1", start_date=JAN_14, end_date=datetime(2026, 1, 1))

    def test_update_compares_naive_date_with_stored_date(self, sprints: SprintStore) -> None:
        sprint = sprints.create("alice", SprintCreate(name="Week 1", start_date=JAN_14))

        with pytest.raises(ValidationError, match="start_date"):
            sprints.update("alice", sprint.id, SprintPatch(end_date=datetime(2026, 1, 1)))

        moved = sprints.update("alice", sprint.id, SprintPatch(end_date=datetime(2026, 2, 1)))
        assert moved.sprint.end_date == datetime(2026, 2, 1, tzinfo=timezone.utc)

    def test_foreign_sprint_not_found(self, sprints: SprintStore) -> None:
        sprint = sprints.create("alice", SprintCreate(name="Week 1"))
        with pytest.raises(NotFoundError):
            sprints.get("bob", sprint.id)
        with pytest.raises(NotFoundError):
            sprints.delete("bob", sprint.id)

    def test_delete_keeps_captures(
        self, sprints: SprintStore, state: RecordState, make_capture
    ) -> None:
        capture = make_capture("alice")
        sprint = sprints.create("alice", SprintCreate(name="Week 1"))
        sprints.add_capture("alice", sprint.id, capture.id)

        sprints.delete("alice", sprint.id)

        assert sprint.id not in state.sprints
        assert capture.id in state.captures


class TestMembership:
    """Tests for adding and removing captures."""

    def test_add_and_members(self, sprints: SprintStore, make_capture) -> None:
        first = make_capture("alice")
        second = make_capture("alice")
        sprint = sprints.create("alice", SprintCreate(name="Week 1"))

        sprints.add_capture("alice", sprint.id, second.id)
        sprints.add_capture("alice", sprint.id, first.id)

        assert [c.id for c in sprints.members("alice", sprint.id)] == [second.id, first.id]

    def test_duplicate_add_is_noop(self, sprints: SprintStore, make_capture) -> None:
        capture = make_capture("alice")
        sprint = sprints.create("alice", SprintCreate(name="Week 1"))

        first = sprints.add_capture("alice", sprint.id, capture.id)
        again = sprints.add_capture("alice", sprint.id, capture.id)

        assert first.already_assigned is False
        assert again.already_assigned is True
        assert sprints.get("alice", sprint.id).capture_ids == [capture.id]

    def test_missing_capture_is_dangling(self, sprints: SprintStore) -> None:
        sprint = sprints.create("alice", SprintCreate(name="Week 1"))
        with pytest.raises(DanglingReferenceError):
            sprints.add_capture("alice", sprint.id, "cap-42")

    def test_foreign_capture_is_dangling(self, sprints: SprintStore, make_capture) -> None:
        """A sprint only ever holds captures owned by the sprint's owner."""
        theirs = make_capture("bob")
        sprint = sprints.create("alice", SprintCreate(name="Week 1"))
        with pytest.raises(DanglingReferenceError):
            sprints.add_capture("alice", sprint.id, theirs.id)

    def test_remove_member_and_non_member(self, sprints: SprintStore, make_capture) -> None:
        capture = make_capture("alice")
        sprint = sprints.create("alice", SprintCreate(name="Week 1"))
        sprints.add_capture("alice", sprint.id, capture.id)

        removed = sprints.remove_capture("alice", sprint.id, capture.id)
        again = sprints.remove_capture("alice", sprint.id, capture.id)

        assert removed.was_assigned is True
        assert removed.sprint.capture_ids == []
        assert again.was_assigned is False


class TestCapacity:
    """Tests for capacity accounting under both policies."""

    def test_load_sums_estimates(self, sprints: SprintStore, make_capture) -> None:
        sprint = sprints.create("alice", SprintCreate(name="Week 1", capacity=10))
        a = make_capture("alice", estimate=3)
        b = make_capture("alice", estimate=4)
        c = make_capture("alice")

        for capture in (a, b, c):
            result = sprints.add_capture("alice", sprint.id, capture.id)

        assert result.load == 7
        assert result.over_capacity is False

    def test_warn_policy_allows_and_flags(
        self, sprints: SprintStore, make_capture, caplog: pytest.LogCaptureFixture
    ) -> None:
        sprint = sprints.create("alice", SprintCreate(name="Week 1", capacity=5))
        small = make_capture("alice", estimate=3)
        big = make_capture("alice", estimate=3)
        sprints.add_capture("alice", sprint.id, small.id)

        result = sprints.add_capture("alice", sprint.id, big.id)

        assert result.over_capacity is True
        assert result.load == 6
        assert big.id in result.sprint.capture_ids
        assert "over capacity" in caplog.text

    def test_reject_policy_refuses(self, strict_sprints: SprintStore, make_capture) -> None:
        sprint = strict_sprints.create("alice", SprintCreate(name="Week 1", capacity=5))
        small = make_capture("alice", estimate=3)
        big = make_capture("alice", estimate=3)
        strict_sprints.add_capture("alice", sprint.id, small.id)

        with pytest.raises(CapacityExceededError) as exc_info:
            strict_sprints.add_capture("alice", sprint.id, big.id)

        assert exc_info.value.load == 6
        assert strict_sprints.get("alice", sprint.id).capture_ids == [small.id]

    def test_reject_policy_allows_exact_fit(
        self, strict_sprints: SprintStore, make_capture
    ) -> None:
        sprint = strict_sprints.create("alice", SprintCreate(name="Week 1", capacity=5))
        capture = make_capture("alice", estimate=5)

        result = strict_sprints.add_capture("alice", sprint.id, capture.id)

        assert result.load == 5
        assert result.over_capacity is False

    def test_no_capacity_never_over(self, strict_sprints: SprintStore, make_capture) -> None:
        sprint = strict_sprints.create("alice", SprintCreate(name="Week 1"))
        capture = make_capture("alice", estimate=1000)

        result = strict_sprints.add_capture("alice", sprint.id, capture.id)

        assert result.capacity is None
        assert result.over_capacity is False


class TestCapacityAfterChanges:
    """Capacity is enforced when a member's estimate grows or the capacity shrinks."""

    @pytest.fixture
    def strict_captures(self, state: RecordState) -> CaptureStore:
        return CaptureStore(
            state, sprint_config=SprintConfig(capacity_policy=CapacityPolicy.REJECT)
        )

    @staticmethod
    def _estimate(value: float) -> CapturePatch:
        return CapturePatch(fields={"estimate": NumberValue(value=value)})

    def test_warn_lowering_capacity_reports_over(
        self, sprints: SprintStore, make_capture
    ) -> None:
        sprint = sprints.create("alice", SprintCreate(name="Week 1", capacity=10))
        sprints.add_capture("alice", sprint.id, make_capture("alice", estimate=5).id)

        result = sprints.update("alice", sprint.id, SprintPatch(capacity=1))

        assert result.sprint.capacity == 1
        assert result.load == 5
        assert result.over_capacity is True

    def test_reject_lowering_capacity_below_load(
        self, strict_sprints: SprintStore, make_capture
    ) -> None:
        sprint = strict_sprints.create("alice", SprintCreate(name="Week 1", capacity=10))
        strict_sprints.add_capture("alice", sprint.id, make_capture("alice", estimate=5).id)

        with pytest.raises(CapacityExceededError) as exc_info:
            strict_sprints.update("alice", sprint.id, SprintPatch(capacity=1))

        assert exc_info.value.load == 5
        assert strict_sprints.get("alice", sprint.id).capacity == 10

    def test_reject_allows_capacity_at_load(
        self, strict_sprints: SprintStore, make_capture
    ) -> None:
        sprint = strict_sprints.create("alice", SprintCreate(name="Week 1", capacity=10))
        strict_sprints.add_capture("alice", sprint.id, make_capture("alice", estimate=5).id)

        result = strict_sprints.update("alice", sprint.id, SprintPatch(capacity=5))

        assert result.over_capacity is False
        assert result.sprint.capacity == 5

    def test_warn_raised_estimate_reports_sprint(
        self, sprints: SprintStore, captures: CaptureStore, make_capture
    ) -> None:
        capture = make_capture("alice", estimate=5)
        roomy = sprints.create("alice", SprintCreate(name="Roomy", capacity=100))
        tight = sprints.create("alice", SprintCreate(name="Tight", capacity=10))
        sprints.add_capture("alice", roomy.id, capture.id)
        sprints.add_capture("alice", tight.id, capture.id)

        result = captures.update("alice", capture.id, self._estimate(50))

        assert result.capture.estimate == 50
        assert result.over_capacity_sprints == [tight.id]

    def test_reject_raised_estimate_rolls_back(
        self, strict_captures: CaptureStore, sprints: SprintStore, make_capture
    ) -> None:
        capture = make_capture("alice", estimate=5)
        sprint = sprints.create("alice", SprintCreate(name="Week 1", capacity=10))
        sprints.add_capture("alice", sprint.id, capture.id)

        with pytest.raises(CapacityExceededError) as exc_info:
            strict_captures.update("alice", capture.id, self._estimate(50))

        assert exc_info.value.sprint_id == sprint.id
        assert strict_captures.get("alice", capture.id).estimate == 5

    def test_reject_allows_shrinking_an_over_sprint(
        self, strict_captures: CaptureStore, sprints: SprintStore, make_capture
    ) -> None:
        """A sprint already over capacity may still have its load reduced."""
        capture = make_capture("alice", estimate=20)
        sprint = sprints.create("alice", SprintCreate(name="Week 1", capacity=10))
        sprints.add_capture("alice", sprint.id, capture.id)

        result = strict_captures.update("alice", capture.id, self._estimate(15))

        assert result.capture.estimate == 15
        assert result.over_capacity_sprints == [sprint.id]

    def test_unrelated_edit_does_not_report(
        self, strict_captures: CaptureStore, sprints: SprintStore, make_capture
    ) -> None:
        capture = make_capture("alice", estimate=5)
        sprint = sprints.create("alice", SprintCreate(name="Week 1", capacity=10))
        sprints.add_capture("alice", sprint.id, capture.id)

        result = strict_captures.update("alice", capture.id, CapturePatch(title="Renamed"))

        assert result.over_capacity_sprints == []
