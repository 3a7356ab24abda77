"""
Integrity audit and repair.

The stores keep every cross-record invariant on each write, but a restored
checkpoint (or a past bug) can still carry violations. ``audit_state``
reports them without changing anything; ``repair_state`` fixes them with
fixed, deterministic rules and reports what it did.

    Finding                  Repair
    -----------------------  ------------------------------------------
    dangling_parent          detach the capture (becomes a root)
    cross_owner_parent       detach the capture
    parent_cycle             detach the earliest capture in the cycle
    invalid_field            drop the offending field
    missing_member           drop the id from the sprint
    cross_owner_member       drop the id from the sprint
    duplicate_member         keep the first occurrence
    missing_workspace        delete the document
    cross_owner_workspace    delete the document
    missing_folder           anchor the document at the workspace root
    duplicate_folder         keep the first node with that id
    dangling_folder_parent   make the folder top-level
    folder_cycle             make the earliest folder in the cycle top-level
    invalid_template_field   drop the offending default field
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from foundry.core.errors import InvalidFieldError
from foundry.core.fields.models import Fields
from foundry.core.fields.schema import CaptureType, validate_fields
from foundry.core.workspaces.models import FolderNode
from foundry.core.workspaces.tree import folder_cycles

if TYPE_CHECKING:
    from foundry.core.state import RecordState

logger = logging.getLogger(__name__)


class AuditFinding(BaseModel):
    """One invariant violation."""

    model_config = ConfigDict(frozen=True)

    code: str
    table: str
    record_id: str
    related_id: str | None = None
    message: str

    def __str__(self) -> str:
        return f"{self.table}/{self.record_id}: {self.message}"


class Repair(BaseModel):
    """One change applied by ``repair_state``."""

    model_config = ConfigDict(frozen=True)

    finding: AuditFinding
    action: str

    def __str__(self) -> str:
        return f"{self.finding} -> {self.action}"


def _finding(
    code: str, table: str, record_id: str, message: str, related_id: str | None = None
) -> AuditFinding:
    return AuditFinding(
        code=code, table=table, record_id=record_id, related_id=related_id, message=message
    )


def _field_error(capture_type: CaptureType, fields: Fields) -> InvalidFieldError | None:
    try:
        validate_fields(capture_type, fields)
    except InvalidFieldError as e:
        return e
    return None


def _capture_cycles(state: RecordState) -> list[list[str]]:
    """Every parent cycle, each as the list of capture ids on it."""
    cycles: list[list[str]] = []
    on_cycle: set[str] = set()
    cleared: set[str] = set()

    for start in state.captures:
        path: list[str] = []
        index: dict[str, int] = {}
        current: str | None = start
        while current is not None and current in state.captures:
            if current in cleared or current in on_cycle:
                break
            if current in index:
                cycle = path[index[current] :]
                cycles.append(cycle)
                on_cycle.update(cycle)
                break
            index[current] = len(path)
            path.append(current)
            current = state.captures[current].parent_id
        cleared.update(p for p in path if p not in on_cycle)

    return cycles


def audit_state(state: RecordState) -> list[AuditFinding]:
    """
    Check every cross-record invariant.

    Returns:
        Findings in table order (workspaces, documents, captures, sprints,
        templates); empty when the state is consistent
    """
    from foundry.core.state import record_order

    findings: list[AuditFinding] = []

    with state.reading():
        for workspace in sorted(state.workspaces.values(), key=record_order):
            seen: set[str] = set()
            for node in workspace.folder_tree:
                if node.id in seen:
                    findings.append(
                        _finding(
                            "duplicate_folder",
                            "workspaces",
                            workspace.id,
                            f"folder id {node.id} appears more than once",
                            node.id,
                        )
                    )
                seen.add(node.id)
            for node in workspace.folder_tree:
                if node.parent_id is not None and node.parent_id not in seen:
                    findings.append(
                        _finding(
                            "dangling_folder_parent",
                            "workspaces",
                            workspace.id,
                            f"folder {node.id} has missing parent {node.parent_id}",
                            node.id,
                        )
                    )
            for node_id in folder_cycles(_first_nodes(workspace.folder_tree)):
                findings.append(
                    _finding(
                        "folder_cycle",
                        "workspaces",
                        workspace.id,
                        f"folder {node_id} is on a parent cycle",
                        node_id,
                    )
                )

        for document in sorted(state.documents.values(), key=record_order):
            workspace = state.workspaces.get(document.workspace_id)
            if workspace is None:
                findings.append(
                    _finding(
                        "missing_workspace",
                        "documents",
                        document.id,
                        f"workspace {document.workspace_id} does not exist",
                        document.workspace_id,
                    )
                )
            elif workspace.owner != document.owner:
                findings.append(
                    _finding(
                        "cross_owner_workspace",
                        "documents",
                        document.id,
                        f"workspace {document.workspace_id} belongs to another principal",
                        document.workspace_id,
                    )
                )
            elif document.folder_node_id is not None and not workspace.has_folder(
                document.folder_node_id
            ):
                findings.append(
                    _finding(
                        "missing_folder",
                        "documents",
                        document.id,
                        f"folder {document.folder_node_id} is not in {workspace.id}",
                        document.folder_node_id,
                    )
                )

        for capture in sorted(state.captures.values(), key=record_order):
            if capture.parent_id is not None:
                parent = state.captures.get(capture.parent_id)
                if parent is None:
                    findings.append(
                        _finding(
                            "dangling_parent",
                            "captures",
                            capture.id,
                            f"parent {capture.parent_id} does not exist",
                            capture.parent_id,
                        )
                    )
                elif parent.owner != capture.owner:
                    findings.append(
                        _finding(
                            "cross_owner_parent",
                            "captures",
                            capture.id,
                            f"parent {capture.parent_id} belongs to another principal",
                            capture.parent_id,
                        )
                    )
            error = _field_error(capture.capture_type, capture.fields)
            if error is not None:
                findings.append(
                    _finding("invalid_field", "captures", capture.id, str(error), error.field)
                )

        for cycle in _capture_cycles(state):
            first = min((state.captures[cid] for cid in cycle), key=record_order)
            findings.append(
                _finding(
                    "parent_cycle",
                    "captures",
                    first.id,
                    f"parent cycle through {' -> '.join(cycle)}",
                    first.parent_id,
                )
            )

        for sprint in sorted(state.sprints.values(), key=record_order):
            members: set[str] = set()
            for capture_id in sprint.capture_ids:
                capture = state.captures.get(capture_id)
                if capture_id in members:
                    findings.append(
                        _finding(
                            "duplicate_member",
                            "sprints",
                            sprint.id,
                            f"capture {capture_id} is listed more than once",
                            capture_id,
                        )
                    )
                elif capture is None:
                    findings.append(
                        _finding(
                            "missing_member",
                            "sprints",
                            sprint.id,
                            f"member {capture_id} does not exist",
                            capture_id,
                        )
                    )
                elif capture.owner != sprint.owner:
                    findings.append(
                        _finding(
                            "cross_owner_member",
                            "sprints",
                            sprint.id,
                            f"member {capture_id} belongs to another principal",
                            capture_id,
                        )
                    )
                members.add(capture_id)

        for template in sorted(state.templates.values(), key=record_order):
            if template.capture_type is None:
                continue
            error = _field_error(template.capture_type, template.default_fields)
            if error is not None:
                findings.append(
                    _finding(
                        "invalid_template_field", "templates", template.id, str(error), error.field
                    )
                )

    if findings:
        logger.warning(f"Audit found {len(findings)} integrity violation(s)")
    else:
        logger.debug("Audit found no integrity violations")
    return findings


def _first_nodes(nodes: list[FolderNode]) -> list[FolderNode]:
    """Drop later nodes that reuse an id already seen."""
    seen: set[str] = set()
    out: list[FolderNode] = []
    for node in nodes:
        if node.id not in seen:
            seen.add(node.id)
            out.append(node)
    return out


def _prune_fields(capture_type: CaptureType, fields: Fields) -> tuple[Fields, list[str]]:
    """Drop fields until the mapping validates; returns (valid fields, dropped names)."""
    remaining = dict(fields)
    dropped: list[str] = []
    while True:
        try:
            return validate_fields(capture_type, remaining), dropped
        except InvalidFieldError as e:
            if e.field not in remaining:
                raise
            del remaining[e.field]
            dropped.append(e.field)


def repair_state(state: RecordState) -> list[Repair]:
    """
    Fix every violation ``audit_state`` reports.

    Runs as one transaction; when it returns, ``audit_state(state)`` is
    empty.

    Returns:
        The repairs applied, in the order they were made
    """
    from foundry.core.state import record_order

    repairs: list[Repair] = []

    def note(finding: AuditFinding, action: str) -> None:
        repairs.append(Repair(finding=finding, action=action))

    with state.transaction():
        now = state.now()

        for workspace in sorted(state.workspaces.values(), key=record_order):
            tree = _first_nodes(workspace.folder_tree)
            changed = len(tree) != len(workspace.folder_tree)
            if changed:
                note(
                    _finding(
                        "duplicate_folder",
                        "workspaces",
                        workspace.id,
                        "folder ids appear more than once",
                    ),
                    f"kept the first of {len(workspace.folder_tree) - len(tree)} duplicate node(s)",
                )

            ids = {n.id for n in tree}
            fixed: list[FolderNode] = []
            for node in tree:
                if node.parent_id is not None and node.parent_id not in ids:
                    note(
                        _finding(
                            "dangling_folder_parent",
                            "workspaces",
                            workspace.id,
                            f"folder {node.id} has missing parent {node.parent_id}",
                            node.id,
                        ),
                        f"made folder {node.id} top-level",
                    )
                    node = node.model_copy(update={"parent_id": None})
                    changed = True
                fixed.append(node)

            while cyclic := folder_cycles(fixed):
                node_id = cyclic[0]
                note(
                    _finding(
                        "folder_cycle",
                        "workspaces",
                        workspace.id,
                        f"folder {node_id} is on a parent cycle",
                        node_id,
                    ),
                    f"made folder {node_id} top-level",
                )
                fixed = [
                    n.model_copy(update={"parent_id": None}) if n.id == node_id else n
                    for n in fixed
                ]
                changed = True

            if changed:
                state.workspaces[workspace.id] = workspace.model_copy(
                    update={"folder_tree": fixed, "updated_at": now}
                )

        for document in sorted(state.documents.values(), key=record_order):
            workspace = state.workspaces.get(document.workspace_id)
            if workspace is None or workspace.owner != document.owner:
                code = "missing_workspace" if workspace is None else "cross_owner_workspace"
                note(
                    _finding(
                        code,
                        "documents",
                        document.id,
                        f"workspace {document.workspace_id} is not the owner's",
                        document.workspace_id,
                    ),
                    f"deleted document {document.id}",
                )
                del state.documents[document.id]
            elif document.folder_node_id is not None and not workspace.has_folder(
                document.folder_node_id
            ):
                note(
                    _finding(
                        "missing_folder",
                        "documents",
                        document.id,
                        f"folder {document.folder_node_id} is not in {workspace.id}",
                        document.folder_node_id,
                    ),
                    "anchored the document at the workspace root",
                )
                state.documents[document.id] = document.model_copy(
                    update={"folder_node_id": None, "updated_at": now}
                )

        for capture in sorted(state.captures.values(), key=record_order):
            updates: dict[str, object] = {}
            if capture.parent_id is not None:
                parent = state.captures.get(capture.parent_id)
                if parent is None or parent.owner != capture.owner:
                    code = "dangling_parent" if parent is None else "cross_owner_parent"
                    note(
                        _finding(
                            code,
                            "captures",
                            capture.id,
                            f"parent {capture.parent_id} is not the owner's",
                            capture.parent_id,
                        ),
                        f"detached capture {capture.id}",
                    )
                    updates["parent_id"] = None

            fields, dropped = _prune_fields(capture.capture_type, capture.fields)
            if dropped:
                note(
                    _finding(
                        "invalid_field",
                        "captures",
                        capture.id,
                        f"invalid field(s) {', '.join(dropped)}",
                        dropped[0],
                    ),
                    f"dropped field(s) {', '.join(dropped)}",
                )
                updates["fields"] = fields

            if updates:
                state.captures[capture.id] = capture.model_copy(
                    update={**updates, "updated_at": now}
                )

        while cycles := _capture_cycles(state):
            first = min((state.captures[cid] for cid in cycles[0]), key=record_order)
            note(
                _finding(
                    "parent_cycle",
                    "captures",
                    first.id,
                    f"parent cycle through {' -> '.join(cycles[0])}",
                    first.parent_id,
                ),
                f"detached capture {first.id}",
            )
            state.captures[first.id] = first.model_copy(
                update={"parent_id": None, "updated_at": now}
            )

        for sprint in sorted(state.sprints.values(), key=record_order):
            kept: list[str] = []
            for capture_id in sprint.capture_ids:
                capture = state.captures.get(capture_id)
                if capture_id in kept:
                    code = "duplicate_member"
                elif capture is None:
                    code = "missing_member"
                elif capture.owner != sprint.owner:
                    code = "cross_owner_member"
                else:
                    kept.append(capture_id)
                    continue
                note(
                    _finding(
                        code,
                        "sprints",
                        sprint.id,
                        f"member {capture_id} is not valid",
                        capture_id,
                    ),
                    f"dropped {capture_id} from sprint {sprint.id}",
                )
            if kept != sprint.capture_ids:
                state.sprints[sprint.id] = sprint.model_copy(
                    update={"capture_ids": kept, "updated_at": now}
                )

        for template in sorted(state.templates.values(), key=record_order):
            if template.capture_type is None:
                continue
            fields, dropped = _prune_fields(template.capture_type, template.default_fields)
            if dropped:
                note(
                    _finding(
                        "invalid_template_field",
                        "templates",
                        template.id,
                        f"invalid default field(s) {', '.join(dropped)}",
                        dropped[0],
                    ),
                    f"dropped default field(s) {', '.join(dropped)}",
                )
                state.templates[template.id] = template.model_copy(
                    update={"default_fields": fields, "updated_at": now}
                )

    for repair in repairs:
        logger.warning(f"Repaired {repair}")
    return repairs
