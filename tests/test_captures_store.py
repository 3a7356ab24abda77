"""
Tests for the capture store: CRUD, hierarchy and deletion semantics.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from foundry.core.captures.models import (
    CaptureCreate,
    CapturePatch,
    CaptureStatus,
    Priority,
)
from foundry.core.captures.store import CaptureStore
from foundry.core.config.models import CaptureConfig
from foundry.core.errors import (
    AuthenticationError,
    CyclicRelationshipError,
    DanglingReferenceError,
    InvalidFieldError,
    NotFoundError,
    ValidationError,
)
from foundry.core.fields.models import LabelListValue, NumberValue, TextValue
from foundry.core.fields.schema import CaptureType
from foundry.core.sprints.models import SprintCreate
from foundry.core.sprints.store import SprintStore
from foundry.core.state import RecordState


class TestCreateCapture:
    """Tests for CaptureStore.create."""

    def test_create_assigns_id_owner_and_defaults(self, captures: CaptureStore) -> None:
        capture = captures.create(
            "alice", CaptureCreate(title="  Write docs ", capture_type=CaptureType.TASK)
        )

        assert capture.id == "cap-1"
        assert capture.owner == "alice"
        assert capture.title == "Write docs"
        assert capture.status == CaptureStatus.DRAFT
        assert capture.priority == Priority.MEDIUM
        assert capture.created_at == capture.updated_at

    def test_ids_are_sequential_and_timestamps_increase(self, make_capture) -> None:
        first = make_capture("alice")
        second = make_capture("bob")

        assert (first.id, second.id) == ("cap-1", "cap-2")
        assert second.created_at > first.created_at

    def test_empty_title_rejected(self) -> None:
        with pytest.raises(PydanticValidationError, match="title may not be empty"):
            CaptureCreate(title="   ", capture_type=CaptureType.IDEA)

    def test_anonymous_caller_rejected(self, captures: CaptureStore) -> None:
        with pytest.raises(AuthenticationError):
            captures.create(
                "anonymous", CaptureCreate(title="x", capture_type=CaptureType.IDEA)
            )

    def test_type_required_without_template(self, captures: CaptureStore) -> None:
        with pytest.raises(ValidationError, match="capture_type is required"):
            captures.create("alice", CaptureCreate(title="x"))

    def test_invalid_field_rejected_and_nothing_written(
        self, captures: CaptureStore, state: RecordState
    ) -> None:
        with pytest.raises(InvalidFieldError):
            captures.create(
                "alice",
                CaptureCreate(
                    title="Thought",
                    capture_type=CaptureType.REFLECTION,
                    fields={"estimate": NumberValue(value=2)},
                ),
            )
        assert state.captures == {}

    def test_parent_must_exist(self, captures: CaptureStore) -> None:
        with pytest.raises(DanglingReferenceError, match="cap-99"):
            captures.create(
                "alice",
                CaptureCreate(title="x", capture_type=CaptureType.TASK, parent_id="cap-99"),
            )

    def test_parent_must_be_owned(self, make_capture) -> None:
        """A parent owned by another principal is a dangling reference."""
        theirs = make_capture("bob")
        with pytest.raises(DanglingReferenceError):
            make_capture("alice", parent_id=theirs.id)


class TestUpdateCapture:
    """Tests for CaptureStore.update."""

    def test_partial_update_keeps_other_values(self, captures: CaptureStore, make_capture) -> None:
        capture = make_capture("alice", title="Old", description="keep me")

        updated = captures.update(
            "alice", capture.id, CapturePatch(title="New", status=CaptureStatus.ACTIVE)
        ).capture

        assert updated.title == "New"
        assert updated.status == CaptureStatus.ACTIVE
        assert updated.description == "keep me"
        assert updated.created_at == capture.created_at
        assert updated.updated_at > capture.updated_at

    def test_foreign_capture_not_found(self, captures: CaptureStore, make_capture) -> None:
        capture = make_capture("alice")
        with pytest.raises(NotFoundError):
            captures.update("bob", capture.id, CapturePatch(title="Mine now"))

    def test_fields_merge_and_none_removes(self, captures: CaptureStore, make_capture) -> None:
        capture = make_capture("alice", estimate=3, labels=["a"])

        updated = captures.update(
            "alice",
            capture.id,
            CapturePatch(fields={"estimate": None, "custom.team": TextValue(value="core")}),
        ).capture

        assert "estimate" not in updated.fields
        assert updated.labels == ["a"]
        assert updated.fields["custom.team"].value == "core"

    def test_replace_fields(self, captures: CaptureStore, make_capture) -> None:
        capture = make_capture("alice", estimate=3, labels=["a"])

        updated = captures.update(
            "alice",
            capture.id,
            CapturePatch(fields={"estimate": NumberValue(value=8)}, replace_fields=True),
        ).capture

        assert set(updated.fields) == {"estimate"}
        assert updated.estimate == 8

    def test_type_change_revalidates_existing_fields(
        self, captures: CaptureStore, make_capture
    ) -> None:
        """Changing task -> reflection with an estimate set is refused."""
        capture = make_capture("alice", estimate=3)

        with pytest.raises(InvalidFieldError, match="estimate"):
            captures.update(
                "alice", capture.id, CapturePatch(capture_type=CaptureType.REFLECTION)
            )
        assert captures.get("alice", capture.id).capture_type == CaptureType.TASK

    def test_type_change_with_field_removal(self, captures: CaptureStore, make_capture) -> None:
        capture = make_capture("alice", estimate=3, labels=["x"])

        updated = captures.update(
            "alice",
            capture.id,
            CapturePatch(capture_type=CaptureType.REFLECTION, fields={"estimate": None}),
        ).capture

        assert updated.capture_type == CaptureType.REFLECTION
        assert updated.labels == ["x"]

    def test_detach_with_explicit_none(self, captures: CaptureStore, make_capture) -> None:
        parent = make_capture("alice")
        child = make_capture("alice", parent_id=parent.id)

        kept = captures.update("alice", child.id, CapturePatch(title="Renamed")).capture
        assert kept.parent_id == parent.id

        detached = captures.update("alice", child.id, CapturePatch(parent_id=None)).capture
        assert detached.parent_id is None

    def test_self_parent_rejected(self, captures: CaptureStore, make_capture) -> None:
        capture = make_capture("alice")
        with pytest.raises(CyclicRelationshipError):
            captures.update("alice", capture.id, CapturePatch(parent_id=capture.id))

    def test_descendant_parent_rejected(self, captures: CaptureStore, make_capture) -> None:
        """Moving a capture under its own grandchild would create a cycle."""
        root = make_capture("alice", title="root")
        child = make_capture("alice", title="child", parent_id=root.id)
        grandchild = make_capture("alice", title="grandchild", parent_id=child.id)

        with pytest.raises(CyclicRelationshipError):
            captures.update("alice", root.id, CapturePatch(parent_id=grandchild.id))
        assert captures.get("alice", root.id).parent_id is None

    def test_depth_limit(self, state: RecordState) -> None:
        store = CaptureStore(state, CaptureConfig(max_parent_depth=3))
        parent_id = None
        for i in range(4):
            capture = store.create(
                "alice",
                CaptureCreate(title=f"level {i}", capture_type=CaptureType.IDEA, parent_id=parent_id),
            )
            parent_id = capture.id

        with pytest.raises(ValidationError, match="deeper than 3"):
            store.create(
                "alice",
                CaptureCreate(title="too deep", capture_type=CaptureType.IDEA, parent_id=parent_id),
            )


    def test_depth_limit_counts_moved_subtree(self, state: RecordState) -> None:
        """Moving a capture brings its children along, and they count toward the limit."""
        store = CaptureStore(state, CaptureConfig(max_parent_depth=3))

        def create(title: str, parent_id: str | None = None) -> str:
            request = CaptureCreate(title=title, capture_type=CaptureType.IDEA, parent_id=parent_id)
            return store.create("alice", request).id

        root = create("root")
        middle = create("middle", root)
        deep = create("deep", middle)
        branch = create("branch")
        leaf = create("leaf", branch)

        with pytest.raises(ValidationError, match="deeper than 3"):
            store.update("alice", branch, CapturePatch(parent_id=deep))
        assert store.get("alice", branch).parent_id is None

        store.update("alice", branch, CapturePatch(parent_id=middle))
        assert [c.id for c in store.ancestors("alice", leaf)] == [branch, middle, root]


class TestDeleteCapture:
    """Tests for CaptureStore.delete."""

    def test_children_move_to_grandparent(self, captures: CaptureStore, make_capture) -> None:
        root = make_capture("alice", title="root")
        middle = make_capture("alice", title="middle", parent_id=root.id)
        leaf_a = make_capture("alice", title="a", parent_id=middle.id)
        leaf_b = make_capture("alice", title="b", parent_id=middle.id)

        result = captures.delete("alice", middle.id)

        assert result.capture.id == middle.id
        assert result.reparented == [leaf_a.id, leaf_b.id]
        assert captures.get("alice", leaf_a.id).parent_id == root.id
        assert captures.get("alice", leaf_b.id).parent_id == root.id

    def test_children_of_root_become_roots(self, captures: CaptureStore, make_capture) -> None:
        root = make_capture("alice")
        child = make_capture("alice", parent_id=root.id)

        captures.delete("alice", root.id)

        assert captures.get("alice", child.id).parent_id is None

    def test_delete_removes_from_sprints(
        self, captures: CaptureStore, state: RecordState, make_capture
    ) -> None:
        sprints = SprintStore(state)
        capture = make_capture("alice")
        other = make_capture("alice")
        sprint = sprints.create("alice", SprintCreate(name="Week 1"))
        sprints.add_capture("alice", sprint.id, capture.id)
        sprints.add_capture("alice", sprint.id, other.id)

        result = captures.delete("alice", capture.id)

        assert result.sprints == [sprint.id]
        assert sprints.get("alice", sprint.id).capture_ids == [other.id]

    def test_deleted_capture_is_gone(self, captures: CaptureStore, make_capture) -> None:
        capture = make_capture("alice")
        captures.delete("alice", capture.id)
        with pytest.raises(NotFoundError):
            captures.get("alice", capture.id)

    def test_foreign_delete_changes_nothing(self, captures: CaptureStore, make_capture) -> None:
        capture = make_capture("alice")
        with pytest.raises(NotFoundError):
            captures.delete("bob", capture.id)
        assert captures.get("alice", capture.id) == capture


class TestHierarchyReads:
    """Tests for children and ancestors."""

    def test_children_in_creation_order(self, captures: CaptureStore, make_capture) -> None:
        parent = make_capture("alice")
        first = make_capture("alice", parent_id=parent.id)
        second = make_capture("alice", parent_id=parent.id)
        make_capture("alice")

        assert [c.id for c in captures.children("alice", parent.id)] == [first.id, second.id]

    def test_ancestors_nearest_first(self, captures: CaptureStore, make_capture) -> None:
        root = make_capture("alice")
        middle = make_capture("alice", parent_id=root.id)
        leaf = make_capture("alice", parent_id=middle.id)

        assert [c.id for c in captures.ancestors("alice", leaf.id)] == [middle.id, root.id]
        assert captures.ancestors("alice", root.id) == []

    def test_children_of_foreign_capture_not_found(
        self, captures: CaptureStore, make_capture
    ) -> None:
        parent = make_capture("alice")
        with pytest.raises(NotFoundError):
            captures.children("bob", parent.id)


class TestCaptureProperties:
    """Tests for derived capture properties."""

    def test_labels_property(self, make_capture) -> None:
        capture = make_capture("alice", labels=["x", "y"])
        assert capture.labels == ["x", "y"]
        assert isinstance(capture.fields["labels"], LabelListValue)
