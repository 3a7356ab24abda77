"""
Workspace storage and folder tree edits.

Every structural edit re-validates the whole tree. Documents anchored to a
folder are kept pointing at a node that exists:

- ``remove_folder`` moves the folder's children up one level and re-anchors
  its documents to the folder's parent (or the workspace root)
- replacing the whole tree is refused if any document would be stranded
- deleting a workspace deletes its documents in the same transaction
"""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from foundry.core.clock import FOLDER_PREFIX, WORKSPACE_PREFIX, id_sequence
from foundry.core.errors import (
    CyclicRelationshipError,
    DanglingReferenceError,
    NotFoundError,
    ValidationError,
)
from foundry.core.identity import require_owned, require_principal
from foundry.core.query.engine import QueryEngine
from foundry.core.query.filters import Page, PageRequest, WorkspaceFilter
from foundry.core.state import RecordState
from foundry.core.workspaces.models import (
    FolderNode,
    Workspace,
    WorkspaceCreate,
    WorkspaceDeletion,
    WorkspacePatch,
)
from foundry.core.workspaces.tree import descendants, validate_folder_tree

logger = logging.getLogger(__name__)

KIND = "workspace"
FOLDER = "folder"


class WorkspaceStore:
    """
    Workspace table operations.

    Example:
        >>> store = WorkspaceStore(state)
        >>> ws = store.create("alice", WorkspaceCreate(name="Notes"))
        >>> node = store.add_folder("alice", ws.id, "Drafts")
        >>> node.id
        'fld-1'
    """

    def __init__(self, state: RecordState, query: QueryEngine | None = None) -> None:
        self._state = state
        self._query = query or QueryEngine(state)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, caller: str, request: WorkspaceCreate) -> Workspace:
        owner = require_principal(caller)
        tree = validate_folder_tree(list(request.folder_tree))

        with self._state.transaction() as state:
            now = state.now()
            workspace = Workspace(
                id=state.next_id(WORKSPACE_PREFIX),
                owner=owner,
                name=request.name,
                description=request.description,
                icon=request.icon,
                folder_tree=tree,
                created_at=now,
                updated_at=now,
            )
            state.workspaces[workspace.id] = workspace
            self._reserve_folder_ids(tree)

        logger.info(f"Created workspace {workspace.id} for {owner}")
        return workspace

    def get(self, caller: str, workspace_id: str) -> Workspace:
        principal = require_principal(caller)
        with self._state.reading() as state:
            workspace = require_owned(
                state.workspaces.get(workspace_id), principal, KIND, workspace_id
            )
        logger.debug(f"Read workspace {workspace_id}")
        return workspace

    def list(
        self,
        caller: str,
        spec: WorkspaceFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Workspace]:
        return self._query.workspaces(require_principal(caller), spec, page)

    def update(self, caller: str, workspace_id: str, patch: WorkspacePatch) -> Workspace:
        """
        Apply a partial update.

        Raises:
            ValidationError: If a replacement tree is malformed
            DanglingReferenceError: If a replacement tree drops a folder
                that a document is anchored to
        """
        principal = require_principal(caller)

        with self._state.transaction() as state:
            workspace = require_owned(
                state.workspaces.get(workspace_id), principal, KIND, workspace_id
            )
            updates: dict[str, object] = {}
            for name in ("name", "is_archived"):
                value = getattr(patch, name)
                if patch.sets(name) and value is not None:
                    updates[name] = value
            for name in ("description", "icon"):
                if patch.sets(name):
                    updates[name] = getattr(patch, name)

            if patch.sets("folder_tree") and patch.folder_tree is not None:
                tree = validate_folder_tree(list(patch.folder_tree))
                kept = {node.id for node in tree}
                for document in state.documents.values():
                    if (
                        document.workspace_id == workspace_id
                        and document.folder_node_id is not None
                        and document.folder_node_id not in kept
                    ):
                        raise DanglingReferenceError(
                            FOLDER,
                            document.folder_node_id,
                            f"document {document.id} is anchored to it",
                        )
                updates["folder_tree"] = tree
                self._reserve_folder_ids(tree)

            updated = self._save(workspace, updates)

        logger.info(f"Updated workspace {workspace_id}")
        return updated

    def delete(self, caller: str, workspace_id: str) -> WorkspaceDeletion:
        """Delete a workspace and every document anchored to it."""
        principal = require_principal(caller)

        with self._state.transaction() as state:
            workspace = require_owned(
                state.workspaces.get(workspace_id), principal, KIND, workspace_id
            )
            removed = [
                doc_id
                for doc_id, document in state.documents.items()
                if document.workspace_id == workspace_id
            ]
            for doc_id in removed:
                del state.documents[doc_id]
            del state.workspaces[workspace_id]

        logger.info(f"Deleted workspace {workspace_id} and {len(removed)} documents")
        return WorkspaceDeletion(workspace=workspace, documents=removed)

    # ------------------------------------------------------------------
    # Folder tree edits
    # ------------------------------------------------------------------

    def add_folder(
        self, caller: str, workspace_id: str, name: str, parent_id: str | None = None
    ) -> FolderNode:
        """Append a new folder (as the last child of ``parent_id``)."""
        principal = require_principal(caller)

        with self._state.transaction() as state:
            workspace = require_owned(
                state.workspaces.get(workspace_id), principal, KIND, workspace_id
            )
            if parent_id is not None and not workspace.has_folder(parent_id):
                raise DanglingReferenceError(FOLDER, parent_id)

            node = _folder_node(self._next_folder_id(workspace), name, parent_id)
            tree = validate_folder_tree([*workspace.folder_tree, node])
            self._save(workspace, {"folder_tree": tree})

        logger.info(f"Added folder {node.id} to workspace {workspace_id}")
        return node

    def rename_folder(
        self, caller: str, workspace_id: str, node_id: str, name: str
    ) -> FolderNode:
        principal = require_principal(caller)

        with self._state.transaction() as state:
            workspace = require_owned(
                state.workspaces.get(workspace_id), principal, KIND, workspace_id
            )
            node = self._require_folder(workspace, node_id)
            renamed = _folder_node(node.id, name, node.parent_id)
            tree = [renamed if n.id == node_id else n for n in workspace.folder_tree]
            self._save(workspace, {"folder_tree": tree})

        logger.info(f"Renamed folder {node_id} in workspace {workspace_id}")
        return renamed

    def move_folder(
        self, caller: str, workspace_id: str, node_id: str, parent_id: str | None
    ) -> FolderNode:
        """
        Re-parent a folder, keeping its subtree.

        Raises:
            CyclicRelationshipError: If ``parent_id`` is the folder or one
                of its descendants
        """
        principal = require_principal(caller)

        with self._state.transaction() as state:
            workspace = require_owned(
                state.workspaces.get(workspace_id), principal, KIND, workspace_id
            )
            node = self._require_folder(workspace, node_id)
            if parent_id is not None:
                self._require_folder(workspace, parent_id)
                if parent_id == node_id or parent_id in descendants(
                    workspace.folder_tree, node_id
                ):
                    raise CyclicRelationshipError(FOLDER, node_id, parent_id)

            moved = node.model_copy(update={"parent_id": parent_id})
            tree = validate_folder_tree(
                [moved if n.id == node_id else n for n in workspace.folder_tree]
            )
            self._save(workspace, {"folder_tree": tree})

        logger.info(f"Moved folder {node_id} in workspace {workspace_id}")
        return moved

    def remove_folder(self, caller: str, workspace_id: str, node_id: str) -> Workspace:
        """
        Remove one folder.

        Its child folders and its documents move up to the folder's parent
        (documents of a top-level folder end up at the workspace root).
        """
        principal = require_principal(caller)

        with self._state.transaction() as state:
            workspace = require_owned(
                state.workspaces.get(workspace_id), principal, KIND, workspace_id
            )
            node = self._require_folder(workspace, node_id)

            tree = [
                n.model_copy(update={"parent_id": node.parent_id}) if n.parent_id == node_id else n
                for n in workspace.folder_tree
                if n.id != node_id
            ]
            updated = self._save(workspace, {"folder_tree": validate_folder_tree(tree)})

            moved = 0
            for document in list(state.documents.values()):
                if document.workspace_id == workspace_id and document.folder_node_id == node_id:
                    state.documents[document.id] = document.model_copy(
                        update={"folder_node_id": node.parent_id, "updated_at": state.now()}
                    )
                    moved += 1

        logger.info(
            f"Removed folder {node_id} from workspace {workspace_id} ({moved} documents moved)"
        )
        return updated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _save(self, workspace: Workspace, updates: dict[str, object]) -> Workspace:
        updated = workspace.model_copy(update={**updates, "updated_at": self._state.now()})
        self._state.workspaces[workspace.id] = updated
        return updated

    def _require_folder(self, workspace: Workspace, node_id: str) -> FolderNode:
        node = workspace.folder(node_id)
        if node is None:
            raise NotFoundError(FOLDER, node_id)
        return node

    def _next_folder_id(self, workspace: Workspace) -> str:
        while True:
            node_id = self._state.next_id(FOLDER_PREFIX)
            if not workspace.has_folder(node_id):
                return node_id

    def _reserve_folder_ids(self, tree: list[FolderNode]) -> None:
        """Keep the folder counter ahead of caller-chosen ``fld-<n>`` ids."""
        for node in tree:
            if node.id.startswith(f"{FOLDER_PREFIX}-"):
                number = id_sequence(node.id)
                if number > self._state.counters.get(FOLDER_PREFIX, 0):
                    self._state.counters[FOLDER_PREFIX] = number


def _folder_node(node_id: str, name: str, parent_id: str | None) -> FolderNode:
    try:
        return FolderNode(id=node_id, name=name, parent_id=parent_id)
    except PydanticValidationError as e:
        message = e.errors()[0]["msg"]
        raise ValidationError(f"Invalid folder name: {message}", id=node_id) from e
