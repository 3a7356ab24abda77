"""
Query Engine: filtered "list mine" queries over the record tables.

Evaluation order is fixed:

1. Ownership: only records owned by the caller are considered. No filter
   can widen this set.
2. Criteria: every provided criterion must hold (AND).
3. Ordering: ``created_at`` ascending, ties broken by id sequence.
4. Paging: ``offset``/``limit`` slice the ordered result.

Public templates are the single exception to step 1 and have their own
entry point, ``public_templates``.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, TypeVar

from foundry.core.captures.models import Capture
from foundry.core.config.models import QueryConfig
from foundry.core.documents.models import Document
from foundry.core.query.filters import (
    CaptureFilter,
    DocumentFilter,
    Page,
    PageRequest,
    SprintFilter,
    TemplateFilter,
    WorkspaceFilter,
)
from foundry.core.sprints.models import Sprint
from foundry.core.state import RecordState, record_order
from foundry.core.templates.models import Template, Visibility
from foundry.core.workspaces.models import Workspace

logger = logging.getLogger(__name__)

T = TypeVar("T")
Predicate = Callable[[Any], bool]


def _contains(needle: str | None, attr: str) -> Predicate | None:
    if not needle:
        return None
    lowered = needle.casefold()
    return lambda r: lowered in getattr(r, attr).casefold()


def _date_range(created_from: datetime | None, created_to: datetime | None) -> list[Predicate]:
    predicates: list[Predicate] = []
    if created_from is not None:
        predicates.append(lambda r: r.created_at >= created_from)
    if created_to is not None:
        predicates.append(lambda r: r.created_at <= created_to)
    return predicates


def _member_of(values: set[Any] | None, attr: str) -> Predicate | None:
    # An empty set is the same as no criterion
    if not values:
        return None
    return lambda r: getattr(r, attr) in values


class QueryEngine:
    """
    Evaluates list queries against a RecordState.

    Example:
        >>> engine = QueryEngine(state)
        >>> page = engine.captures("alice", CaptureFilter(statuses={CaptureStatus.ACTIVE}))
        >>> [c.id for c in page.items]
        ['cap-2']
    """

    def __init__(self, state: RecordState, config: QueryConfig | None = None) -> None:
        self._state = state
        self._config = config or QueryConfig()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def captures(
        self,
        caller: str,
        spec: CaptureFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Capture]:
        spec = spec or CaptureFilter()
        with self._state.reading() as state:
            predicates = [
                _member_of(spec.statuses, "status"),
                _member_of(spec.priorities, "priority"),
                _member_of(spec.types, "capture_type"),
                _contains(spec.title_contains, "title"),
                *_date_range(spec.created_from, spec.created_to),
            ]
            if spec.parent_id is not None:
                predicates.append(lambda c: c.parent_id == spec.parent_id)
            if spec.roots_only:
                predicates.append(lambda c: c.parent_id is None)
            if spec.labels:
                wanted = set(spec.labels)
                predicates.append(lambda c: wanted.issubset(c.labels))
            if spec.sprint_id is not None:
                sprint = state.sprints.get(spec.sprint_id)
                # A sprint the caller does not own has no visible members
                members = (
                    set(sprint.capture_ids) if sprint is not None and sprint.owner == caller else set()
                )
                predicates.append(lambda c: c.id in members)

            return self._run("captures", state.captures.values(), caller, predicates, page)

    def sprints(
        self,
        caller: str,
        spec: SprintFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Sprint]:
        spec = spec or SprintFilter()
        predicates = [
            _member_of(spec.statuses, "status"),
            _contains(spec.name_contains, "name"),
            *_date_range(spec.created_from, spec.created_to),
        ]
        with self._state.reading() as state:
            return self._run("sprints", state.sprints.values(), caller, predicates, page)

    def workspaces(
        self,
        caller: str,
        spec: WorkspaceFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Workspace]:
        spec = spec or WorkspaceFilter()
        predicates = [
            _contains(spec.name_contains, "name"),
            *_date_range(spec.created_from, spec.created_to),
        ]
        if not spec.include_archived:
            predicates.append(lambda w: not w.is_archived)
        with self._state.reading() as state:
            return self._run("workspaces", state.workspaces.values(), caller, predicates, page)

    def documents(
        self,
        caller: str,
        spec: DocumentFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Document]:
        spec = spec or DocumentFilter()
        predicates = [
            _contains(spec.title_contains, "title"),
            *_date_range(spec.created_from, spec.created_to),
        ]
        if spec.workspace_id is not None:
            predicates.append(lambda d: d.workspace_id == spec.workspace_id)
        if spec.folder_node_id is not None:
            predicates.append(lambda d: d.folder_node_id == spec.folder_node_id)
        with self._state.reading() as state:
            return self._run("documents", state.documents.values(), caller, predicates, page)

    def templates(
        self,
        caller: str,
        spec: TemplateFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Template]:
        """Templates owned by ``caller``, regardless of visibility."""
        spec = spec or TemplateFilter()
        with self._state.reading() as state:
            return self._run(
                "templates", state.templates.values(), caller, self._template_predicates(spec), page
            )

    def public_templates(
        self,
        spec: TemplateFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Template]:
        """Every public template, whoever owns it."""
        spec = spec or TemplateFilter()
        predicates = self._template_predicates(spec)
        predicates.append(lambda t: t.visibility == Visibility.PUBLIC)
        with self._state.reading() as state:
            return self._run("public templates", state.templates.values(), None, predicates, page)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def page_bounds(self, page: PageRequest | None) -> tuple[int, int]:
        """Resolve a page request to a concrete (offset, limit)."""
        page = page or PageRequest()
        limit = page.limit if page.limit is not None else self._config.default_limit
        return page.offset, min(limit, self._config.max_limit)

    def _template_predicates(self, spec: TemplateFilter) -> list[Predicate | None]:
        predicates: list[Predicate | None] = [
            _contains(spec.name_contains, "name"),
            *_date_range(spec.created_from, spec.created_to),
        ]
        if spec.kind is not None:
            predicates.append(lambda t: t.kind == spec.kind)
        if spec.visibility is not None:
            predicates.append(lambda t: t.visibility == spec.visibility)
        return predicates

    def _run(
        self,
        table: str,
        records: Iterable[T],
        owner: str | None,
        predicates: list[Predicate | None],
        page: PageRequest | None,
    ) -> Page[T]:
        active = [p for p in predicates if p is not None]

        # Ownership is applied before any criterion
        if owner is not None:
            candidates = [r for r in records if r.owner == owner]  # type: ignore[attr-defined]
        else:
            candidates = list(records)

        matched = [r for r in candidates if all(p(r) for p in active)]
        matched.sort(key=record_order)

        offset, limit = self.page_bounds(page)
        items = matched[offset : offset + limit]
        logger.debug(
            f"Query {table}: {len(active)} criteria, {len(matched)} matched, "
            f"returning {len(items)} from offset {offset}"
        )
        return Page(items=items, total=len(matched), offset=offset, limit=limit)
