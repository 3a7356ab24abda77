"""
Capture storage and hierarchy.

Captures live in a flat table keyed by id; the tree is formed by
``parent_id`` references resolved through that table. Every link is
checked with a bounded walk up the ancestor chain:

- the parent must exist and belong to the caller
- the capture being moved must not appear among the parent's ancestors
- no capture may end up with more than ``max_parent_depth`` ancestors,
  counting the descendants a moved capture brings along

Deleting a capture re-parents its direct children to the deleted
capture's parent (or makes them roots) and removes it from every sprint,
all in one transaction.
"""

from __future__ import annotations

import logging

from foundry.core.captures.models import (
    Capture,
    CaptureCreate,
    CaptureDeletion,
    CapturePatch,
    CaptureStatus,
    CaptureUpdateResult,
    Priority,
)
from foundry.core.clock import CAPTURE_PREFIX
from foundry.core.config.models import CaptureConfig, SprintConfig
from foundry.core.errors import (
    CyclicRelationshipError,
    DanglingReferenceError,
    ValidationError,
)
from foundry.core.fields.models import Fields
from foundry.core.fields.schema import validate_fields
from foundry.core.identity import require_owned, require_principal
from foundry.core.query.engine import QueryEngine
from foundry.core.query.filters import CaptureFilter, Page, PageRequest
from foundry.core.sprints.store import SprintStore
from foundry.core.state import RecordState, record_order
from foundry.core.templates.models import TemplateKind
from foundry.core.templates.store import TemplateStore, copy_fields

logger = logging.getLogger(__name__)

KIND = "capture"


class CaptureStore:
    """
    Capture table operations.

    Example:
        >>> store = CaptureStore(state)
        >>> parent = store.create("alice", CaptureCreate(title="Launch", capture_type="project"))
        >>> child = store.create(
        ...     "alice", CaptureCreate(title="Write docs", capture_type="task", parent_id=parent.id)
        ... )
        >>> store.delete("alice", parent.id).reparented
        ['cap-2']
    """

    def __init__(
        self,
        state: RecordState,
        config: CaptureConfig | None = None,
        sprint_config: SprintConfig | None = None,
        query: QueryEngine | None = None,
    ) -> None:
        self._state = state
        self._config = config or CaptureConfig()
        self._query = query or QueryEngine(state)
        self._sprints = SprintStore(state, sprint_config, self._query)
        self._templates = TemplateStore(state, self._query)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, caller: str, request: CaptureCreate) -> Capture:
        """
        Create a capture, optionally from a template.

        With ``template_id`` the template's default fields are copied first
        and the request's fields override them key by key; request
        ``content`` overrides the template content. The template's
        ``capture_type`` applies when the request gives none.

        Raises:
            ValidationError: If no capture type can be determined, or the
                template is not a capture template
            InvalidFieldError: If a field fails the type's schema
            DanglingReferenceError: If the parent is missing or not the caller's
        """
        owner = require_principal(caller)

        with self._state.transaction() as state:
            capture_type = request.capture_type
            fields: Fields = {}
            content = request.content
            if request.template_id is not None:
                template = self._templates.for_instantiation(
                    owner, request.template_id, TemplateKind.CAPTURE
                )
                fields = copy_fields(template.default_fields)
                capture_type = capture_type or template.capture_type
                if content is None and template.content:
                    content = template.content

            if capture_type is None:
                raise ValidationError("capture_type is required")

            fields.update(copy_fields(request.fields))
            fields = validate_fields(capture_type, fields)

            capture_id = state.next_id(CAPTURE_PREFIX)
            if request.parent_id is not None:
                self._check_parent(owner, capture_id, request.parent_id)

            now = state.now()
            capture = Capture(
                id=capture_id,
                owner=owner,
                capture_type=capture_type,
                title=request.title,
                description=request.description,
                content=content,
                status=request.status or CaptureStatus.DRAFT,
                priority=request.priority or Priority.MEDIUM,
                parent_id=request.parent_id,
                fields=fields,
                template_id=request.template_id,
                created_at=now,
                updated_at=now,
            )
            state.captures[capture_id] = capture

        logger.info(f"Created {capture.capture_type.value} capture {capture_id} for {owner}")
        return capture

    def get(self, caller: str, capture_id: str) -> Capture:
        principal = require_principal(caller)
        with self._state.reading() as state:
            capture = require_owned(state.captures.get(capture_id), principal, KIND, capture_id)
        logger.debug(f"Read capture {capture_id}")
        return capture

    def update(self, caller: str, capture_id: str, patch: CapturePatch) -> CaptureUpdateResult:
        """
        Apply a partial update.

        Fields are merged into the stored mapping (``None`` removes a field)
        or replace it when ``replace_fields`` is set. When the type or the
        fields change, the whole resulting mapping is validated against the
        (new) type; fields the new type does not declare are rejected.

        A changed load field is re-checked against every sprint holding the
        capture; sprints left over capacity are listed in the result.

        Raises:
            NotFoundError: If the capture is not the caller's
            InvalidFieldError: If the resulting fields fail the schema
            CyclicRelationshipError: If the new parent is a descendant
            DanglingReferenceError: If the new parent is missing or foreign
            CapacityExceededError: Under the REJECT policy, when a raised
                estimate pushes a sprint past its capacity
        """
        principal = require_principal(caller)

        with self._state.transaction() as state:
            capture = require_owned(state.captures.get(capture_id), principal, KIND, capture_id)
            updates: dict[str, object] = {}

            for name in ("title", "status", "priority"):
                value = getattr(patch, name)
                if patch.sets(name) and value is not None:
                    updates[name] = value
            for name in ("description", "content"):
                if patch.sets(name):
                    updates[name] = getattr(patch, name)

            capture_type = capture.capture_type
            if patch.sets("capture_type") and patch.capture_type is not None:
                capture_type = patch.capture_type

            fields = dict(capture.fields)
            if patch.fields is not None:
                if patch.replace_fields:
                    fields = {}
                for name, value in patch.fields.items():
                    if value is None:
                        fields.pop(name, None)
                    else:
                        fields[name] = value.model_copy(deep=True)

            if capture_type != capture.capture_type or patch.fields is not None:
                updates["capture_type"] = capture_type
                updates["fields"] = validate_fields(capture_type, fields)

            if patch.sets("parent_id") and patch.parent_id != capture.parent_id:
                if patch.parent_id is not None:
                    self._check_parent(principal, capture_id, patch.parent_id)
                updates["parent_id"] = patch.parent_id

            before = self._sprints.member_loads(capture_id)
            updates["updated_at"] = state.now()
            updated = capture.model_copy(update=updates)
            state.captures[capture_id] = updated
            over_capacity = self._sprints.check_member_loads(capture_id, before)

        logger.info(f"Updated capture {capture_id}")
        return CaptureUpdateResult(capture=updated, over_capacity_sprints=over_capacity)

    def delete(self, caller: str, capture_id: str) -> CaptureDeletion:
        """
        Delete a capture.

        Direct children move to the deleted capture's parent, and the
        capture is removed from every sprint. Either all of this happens or
        none of it does.
        """
        principal = require_principal(caller)

        with self._state.transaction() as state:
            capture = require_owned(state.captures.get(capture_id), principal, KIND, capture_id)

            reparented: list[str] = []
            for child in list(state.captures.values()):
                if child.parent_id != capture_id:
                    continue
                state.captures[child.id] = child.model_copy(
                    update={"parent_id": capture.parent_id, "updated_at": state.now()}
                )
                reparented.append(child.id)

            sprints = self._sprints.detach_capture(capture_id)
            del state.captures[capture_id]

        logger.info(
            f"Deleted capture {capture_id} "
            f"({len(reparented)} children re-parented, removed from {len(sprints)} sprints)"
        )
        return CaptureDeletion(capture=capture, reparented=reparented, sprints=sprints)

    def list(
        self,
        caller: str,
        spec: CaptureFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Capture]:
        return self._query.captures(require_principal(caller), spec, page)

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def children(self, caller: str, capture_id: str) -> list[Capture]:
        """Direct children of a capture, in list order."""
        principal = require_principal(caller)
        self.get(principal, capture_id)
        with self._state.reading() as state:
            kids = [
                c
                for c in state.captures.values()
                if c.parent_id == capture_id and c.owner == principal
            ]
        return sorted(kids, key=record_order)

    def ancestors(self, caller: str, capture_id: str) -> list[Capture]:
        """The parent chain of a capture, nearest first."""
        capture = self.get(caller, capture_id)
        with self._state.reading() as state:
            chain: list[Capture] = []
            for ancestor_id in self._ancestor_ids(capture.parent_id):
                ancestor = state.captures.get(ancestor_id)
                if ancestor is None:
                    break
                chain.append(ancestor)
            return chain

    def _check_parent(self, owner: str, capture_id: str, parent_id: str) -> None:
        if parent_id == capture_id:
            raise CyclicRelationshipError(KIND, capture_id, parent_id)

        parent = self._state.captures.get(parent_id)
        if parent is None or parent.owner != owner:
            raise DanglingReferenceError(KIND, parent_id, "parent")

        chain = self._ancestor_ids(parent_id)
        if capture_id in chain:
            raise CyclicRelationshipError(KIND, capture_id, parent_id)

        # a moved capture brings its descendants along
        depth = len(chain) + self._subtree_height(capture_id)
        if depth > self._config.max_parent_depth:
            raise ValidationError(
                f"Capture hierarchy deeper than {self._config.max_parent_depth} levels",
                id=capture_id,
            )

    def _subtree_height(self, capture_id: str) -> int:
        """Number of levels below ``capture_id`` (0 for a leaf or a new capture)."""
        children: dict[str, list[str]] = {}
        for record in self._state.captures.values():
            if record.parent_id is not None:
                children.setdefault(record.parent_id, []).append(record.id)

        height = 0
        level = children.get(capture_id, [])
        while level and height <= self._config.max_parent_depth:
            height += 1
            level = [kid for node in level for kid in children.get(node, [])]
        return height

    def _ancestor_ids(self, start_id: str | None) -> list[str]:
        """
        Walk up from ``start_id`` (inclusive), returning the ids visited.

        Raises:
            ValidationError: If the chain is longer than the configured depth
                or loops back on itself (a corrupted table)
        """
        chain: list[str] = []
        seen: set[str] = set()
        current = start_id
        while current is not None:
            if current in seen:
                raise ValidationError(
                    f"Capture hierarchy loops at {current}; run an audit", id=current
                )
            if len(chain) >= self._config.max_parent_depth:
                raise ValidationError(
                    f"Capture hierarchy deeper than {self._config.max_parent_depth} levels",
                    id=start_id,
                )
            seen.add(current)
            chain.append(current)
            record = self._state.captures.get(current)
            if record is None:
                break
            current = record.parent_id
        return chain
