"""
Record state: the single top-level context holding every table.

All stores operate on an explicit RecordState; there is no module-level
mutable state. The state owns:

- one table (dict keyed by id) per record kind
- per-prefix id counters
- the administrative principals and the auth-service reference
- the clock
- a re-entrant lock that serializes operations

Lifecycle:
    state = RecordState(controllers=["admin"])     # init: empty tables
    snapshot = state.checkpoint()                   # serialize all tables
    state = RecordState.from_snapshot(snapshot)     # restore + audit
    state.teardown()                                # checkpoint and reset

Multi-record mutations run inside ``transaction()``. Records are frozen and
replaced rather than mutated, so a transaction only needs shallow copies of
the tables to roll back cleanly.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from foundry.core.captures.models import Capture
from foundry.core.clock import (
    CAPTURE_PREFIX,
    DOCUMENT_PREFIX,
    FOLDER_PREFIX,
    SPRINT_PREFIX,
    TEMPLATE_PREFIX,
    WORKSPACE_PREFIX,
    Clock,
    format_id,
    id_sequence,
)
from foundry.core.documents.models import Document
from foundry.core.errors import IntegrityError
from foundry.core.sprints.models import Sprint
from foundry.core.templates.models import Template
from foundry.core.workspaces.models import Workspace

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

TABLES = ("captures", "sprints", "workspaces", "documents", "templates")

_TABLE_PREFIXES = {
    "captures": CAPTURE_PREFIX,
    "sprints": SPRINT_PREFIX,
    "workspaces": WORKSPACE_PREFIX,
    "documents": DOCUMENT_PREFIX,
    "templates": TEMPLATE_PREFIX,
}


class StateSnapshot(BaseModel):
    """Serializable image of the complete record state."""

    version: int = SNAPSHOT_VERSION
    saved_at: datetime | None = None
    controllers: list[str] = Field(default_factory=list)
    auth_service: str | None = None
    counters: dict[str, int] = Field(default_factory=dict)
    captures: list[Capture] = Field(default_factory=list)
    sprints: list[Sprint] = Field(default_factory=list)
    workspaces: list[Workspace] = Field(default_factory=list)
    documents: list[Document] = Field(default_factory=list)
    templates: list[Template] = Field(default_factory=list)


def record_order(record: Any) -> tuple[datetime, int, str]:
    """Sort key giving the stable list order: created_at, then id sequence."""
    return (record.created_at, id_sequence(record.id), record.id)


class RecordState:
    """
    In-process record store state.

    Example:
        >>> state = RecordState(controllers=["admin"])
        >>> with state.transaction():
        ...     capture_id = state.next_id("cap")
        >>> capture_id
        'cap-1'
    """

    def __init__(
        self,
        clock: Clock | None = None,
        controllers: list[str] | None = None,
        auth_service: str | None = None,
    ) -> None:
        self.clock = clock or Clock()
        self.controllers: list[str] = list(controllers or [])
        self.auth_service: str | None = auth_service
        self.captures: dict[str, Capture] = {}
        self.sprints: dict[str, Sprint] = {}
        self.workspaces: dict[str, Workspace] = {}
        self.documents: dict[str, Document] = {}
        self.templates: dict[str, Template] = {}
        self.counters: dict[str, int] = {}
        self._lock = threading.RLock()
        self._depth = 0

    # ------------------------------------------------------------------
    # Ids and time
    # ------------------------------------------------------------------

    def next_id(self, prefix: str) -> str:
        """Allocate the next id for ``prefix``. Ids are never reused."""
        number = self.counters.get(prefix, 0) + 1
        self.counters[prefix] = number
        return format_id(prefix, number)

    def now(self) -> datetime:
        return self.clock.now()

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    @contextmanager
    def reading(self) -> Iterator[RecordState]:
        """Hold exclusive access for the duration of a read."""
        with self._lock:
            yield self

    @contextmanager
    def transaction(self) -> Iterator[RecordState]:
        """
        Run a block of mutations as one logical unit.

        Either every write in the block is kept or, if the block raises,
        every table is restored to its state before the block. Nested
        transactions join the outermost one.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            saved = self._save_tables()
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._restore_tables(saved)
                logger.debug("Transaction rolled back")
                raise
            finally:
                self._depth = 0

    def _save_tables(self) -> dict[str, Any]:
        saved: dict[str, Any] = {name: dict(getattr(self, name)) for name in TABLES}
        saved["counters"] = dict(self.counters)
        saved["controllers"] = list(self.controllers)
        saved["auth_service"] = self.auth_service
        return saved

    def _restore_tables(self, saved: dict[str, Any]) -> None:
        for name in TABLES:
            setattr(self, name, saved[name])
        self.counters = saved["counters"]
        self.controllers = saved["controllers"]
        self.auth_service = saved["auth_service"]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def checkpoint(self) -> StateSnapshot:
        """Serialize every table into a snapshot (records in list order)."""
        with self._lock:
            return StateSnapshot(
                saved_at=self.clock.now(),
                controllers=list(self.controllers),
                auth_service=self.auth_service,
                counters=dict(self.counters),
                captures=sorted(self.captures.values(), key=record_order),
                sprints=sorted(self.sprints.values(), key=record_order),
                workspaces=sorted(self.workspaces.values(), key=record_order),
                documents=sorted(self.documents.values(), key=record_order),
                templates=sorted(self.templates.values(), key=record_order),
            )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: StateSnapshot,
        clock: Clock | None = None,
        repair: bool = False,
        verify: bool = True,
    ) -> RecordState:
        """
        Rebuild a state from a snapshot and re-validate every invariant.

        Args:
            snapshot: Snapshot produced by ``checkpoint()``
            clock: Clock to use (defaults to the system clock)
            repair: Fix violations instead of refusing the snapshot
            verify: Run the integrity audit at all (False loads the snapshot
                as is, for tools that audit it explicitly)

        Raises:
            IntegrityError: If the snapshot violates an invariant and
                ``repair`` is False
        """
        from foundry.core.audit import audit_state, repair_state

        state = cls(
            clock=clock,
            controllers=snapshot.controllers,
            auth_service=snapshot.auth_service,
        )
        for name in TABLES:
            table = getattr(state, name)
            for record in getattr(snapshot, name):
                table[record.id] = record

        state.counters = dict(snapshot.counters)
        state._sync_counters()
        state._sync_clock()

        findings = audit_state(state) if verify else []
        if findings:
            if not repair:
                raise IntegrityError(findings)
            repaired = repair_state(state)
            logger.warning(f"Repaired {len(repaired)} integrity violation(s) on restore")

        logger.info(
            f"Restored state: {len(state.captures)} captures, {len(state.sprints)} sprints, "
            f"{len(state.workspaces)} workspaces, {len(state.documents)} documents, "
            f"{len(state.templates)} templates"
        )
        return state

    def teardown(self) -> StateSnapshot:
        """Checkpoint the state, then reset it to empty tables."""
        with self._lock:
            snapshot = self.checkpoint()
            for name in TABLES:
                setattr(self, name, {})
            self.counters = {}
            return snapshot

    def _sync_counters(self) -> None:
        """Keep counters ahead of every id already present."""
        for name, prefix in _TABLE_PREFIXES.items():
            highest = max((id_sequence(rid) for rid in getattr(self, name)), default=0)
            if highest > self.counters.get(prefix, 0):
                self.counters[prefix] = highest

        highest_folder = max(
            (
                id_sequence(node.id)
                for ws in self.workspaces.values()
                for node in ws.folder_tree
                if node.id.startswith(f"{FOLDER_PREFIX}-")
            ),
            default=0,
        )
        if highest_folder > self.counters.get(FOLDER_PREFIX, 0):
            self.counters[FOLDER_PREFIX] = highest_folder

    def _sync_clock(self) -> None:
        for name in TABLES:
            for record in getattr(self, name).values():
                self.clock.advance_to(record.updated_at)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def counts(self) -> dict[str, int]:
        """Number of records per table."""
        with self._lock:
            return {name: len(getattr(self, name)) for name in TABLES}

    def principals(self) -> set[str]:
        """Every principal that owns at least one record."""
        with self._lock:
            owners: set[str] = set()
            for name in TABLES:
                owners.update(record.owner for record in getattr(self, name).values())
            return owners
