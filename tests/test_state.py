"""
Tests for RecordState: ids, transactions and snapshot round trips.
"""

from datetime import datetime, timedelta, timezone

import pytest

from foundry.core.captures.models import CaptureCreate
from foundry.core.captures.store import CaptureStore
from foundry.core.clock import Clock, format_id, id_sequence
from foundry.core.errors import IntegrityError
from foundry.core.sprints.models import SprintCreate
from foundry.core.sprints.store import SprintStore
from foundry.core.state import RecordState, record_order
from foundry.core.workspaces.models import WorkspaceCreate
from foundry.core.workspaces.store import WorkspaceStore

FIXED_NOW = datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


class TestClock:
    """Tests for the monotonic clock and id helpers."""

    def test_strictly_increasing_with_frozen_source(self, clock: Clock) -> None:
        readings = [clock.now() for _ in range(3)]
        assert readings == sorted(readings)
        assert len(set(readings)) == 3

    def test_advance_to(self, clock: Clock) -> None:
        later = FIXED_NOW + timedelta(days=1)
        clock.advance_to(later)
        assert clock.now() > later

    def test_id_helpers(self) -> None:
        assert format_id("cap", 7) == "cap-7"
        assert id_sequence("cap-7") == 7
        assert id_sequence("custom") == -1


class TestTransactions:
    """Tests for all-or-nothing mutation blocks."""

    def test_rollback_restores_tables_and_counters(
        self, state: RecordState, make_capture
    ) -> None:
        existing = make_capture("alice")

        with pytest.raises(RuntimeError):
            with state.transaction():
                make_capture("alice")
                del state.captures[existing.id]
                raise RuntimeError("boom")

        assert list(state.captures) == [existing.id]
        assert state.counters["cap"] == 1

    def test_nested_transaction_joins_outer(self, state: RecordState, make_capture) -> None:
        with pytest.raises(RuntimeError):
            with state.transaction():
                with state.transaction():
                    make_capture("alice")
                raise RuntimeError("outer fails")

        assert state.captures == {}

    def test_ids_never_reused_after_delete(
        self, captures: CaptureStore, make_capture
    ) -> None:
        first = make_capture("alice")
        captures.delete("alice", first.id)

        assert make_capture("alice").id == "cap-2"


class TestSnapshots:
    """Tests for checkpoint and restore."""

    def test_round_trip(self, state: RecordState, make_capture) -> None:
        parent = make_capture("alice", estimate=3, labels=["x"])
        make_capture("alice", parent_id=parent.id)
        sprint = SprintStore(state).create("alice", SprintCreate(name="Week 1"))
        SprintStore(state).add_capture("alice", sprint.id, parent.id)
        workspace = WorkspaceStore(state)
        ws = workspace.create("alice", WorkspaceCreate(name="Notes"))
        workspace.add_folder("alice", ws.id, "Drafts")

        snapshot = state.checkpoint()
        restored = RecordState.from_snapshot(snapshot)

        assert restored.captures == state.captures
        assert restored.sprints == state.sprints
        assert restored.workspaces == state.workspaces
        assert restored.controllers == ["admin"]
        assert restored.counters == state.counters

    def test_snapshot_lists_in_record_order(self, state: RecordState, make_capture) -> None:
        for i in range(3):
            make_capture("alice", title=f"c{i}")

        snapshot = state.checkpoint()

        assert snapshot.captures == sorted(snapshot.captures, key=record_order)

    def test_restore_keeps_ids_and_time_ahead(self, state: RecordState, make_capture) -> None:
        last = make_capture("alice")
        snapshot = state.checkpoint()
        snapshot.counters.clear()

        restored = RecordState.from_snapshot(snapshot, clock=Clock(lambda: FIXED_NOW))
        new = CaptureStore(restored).create(
            "alice", CaptureCreate(title="after restore", capture_type=last.capture_type)
        )

        assert new.id == "cap-2"
        assert new.created_at > last.created_at

    def test_corrupt_snapshot_refused_or_repaired(
        self, state: RecordState, make_capture
    ) -> None:
        capture = make_capture("alice")
        state.captures[capture.id] = capture.model_copy(update={"parent_id": "cap-99"})
        snapshot = state.checkpoint()

        with pytest.raises(IntegrityError, match="dangling|does not exist"):
            RecordState.from_snapshot(snapshot)

        repaired = RecordState.from_snapshot(snapshot, repair=True)
        assert repaired.captures[capture.id].parent_id is None

        unchecked = RecordState.from_snapshot(snapshot, verify=False)
        assert unchecked.captures[capture.id].parent_id == "cap-99"

    def test_teardown_empties_tables(self, state: RecordState, make_capture) -> None:
        make_capture("alice")

        snapshot = state.teardown()

        assert len(snapshot.captures) == 1
        assert state.counts()["captures"] == 0
