"""
Document storage.

A document always resolves to exactly one workspace owned by the same
principal, and its ``folder_node_id`` (when set) names a node in that
workspace's current tree. Both references are checked on every write.
"""

from __future__ import annotations

import logging

from foundry.core.clock import DOCUMENT_PREFIX
from foundry.core.documents.models import Document, DocumentCreate, DocumentUpdate
from foundry.core.errors import DanglingReferenceError
from foundry.core.identity import require_owned, require_principal
from foundry.core.query.engine import QueryEngine
from foundry.core.query.filters import DocumentFilter, Page, PageRequest
from foundry.core.state import RecordState
from foundry.core.templates.models import TemplateKind
from foundry.core.templates.store import TemplateStore
from foundry.core.workspaces.models import Workspace

logger = logging.getLogger(__name__)

KIND = "document"


class DocumentStore:
    """
    Document table operations.

    Example:
        >>> store = DocumentStore(state)
        >>> doc = store.create("alice", DocumentCreate(workspace_id="ws-1", title="Plan"))
        >>> store.update("alice", doc.id, DocumentUpdate(content="# Plan")).content
        '# Plan'
    """

    def __init__(self, state: RecordState, query: QueryEngine | None = None) -> None:
        self._state = state
        self._query = query or QueryEngine(state)
        self._templates = TemplateStore(state, self._query)

    def create(self, caller: str, request: DocumentCreate) -> Document:
        """
        Create a document in one of the caller's workspaces.

        Raises:
            DanglingReferenceError: If the workspace is not the caller's, or
                the folder node is not in its tree
            ValidationError: If ``template_id`` is not a document template
        """
        owner = require_principal(caller)

        with self._state.transaction() as state:
            workspace = self._require_workspace(owner, request.workspace_id)
            self._require_folder(workspace, request.folder_node_id)

            content = request.content
            if request.template_id is not None:
                template = self._templates.for_instantiation(
                    owner, request.template_id, TemplateKind.DOCUMENT
                )
                if content is None:
                    content = template.content

            now = state.now()
            document = Document(
                id=state.next_id(DOCUMENT_PREFIX),
                owner=owner,
                workspace_id=workspace.id,
                folder_node_id=request.folder_node_id,
                title=request.title,
                content=content or "",
                template_id=request.template_id,
                created_at=now,
                updated_at=now,
            )
            state.documents[document.id] = document

        logger.info(f"Created document {document.id} in {workspace.id} for {owner}")
        return document

    def get(self, caller: str, document_id: str) -> Document:
        principal = require_principal(caller)
        with self._state.reading() as state:
            document = require_owned(
                state.documents.get(document_id), principal, KIND, document_id
            )
        logger.debug(f"Read document {document_id}")
        return document

    def update(self, caller: str, document_id: str, request: DocumentUpdate) -> Document:
        """Replace the title and/or the whole content."""
        principal = require_principal(caller)

        with self._state.transaction() as state:
            document = require_owned(
                state.documents.get(document_id), principal, KIND, document_id
            )
            updates: dict[str, object] = {"updated_at": state.now()}
            if request.title is not None:
                updates["title"] = request.title
            if request.content is not None:
                updates["content"] = request.content
            updated = document.model_copy(update=updates)
            state.documents[document_id] = updated

        logger.info(f"Updated document {document_id}")
        return updated

    def move(self, caller: str, document_id: str, folder_node_id: str | None) -> Document:
        """Anchor a document to another folder of its workspace (or the root)."""
        principal = require_principal(caller)

        with self._state.transaction() as state:
            document = require_owned(
                state.documents.get(document_id), principal, KIND, document_id
            )
            workspace = self._require_workspace(principal, document.workspace_id)
            self._require_folder(workspace, folder_node_id)
            updated = document.model_copy(
                update={"folder_node_id": folder_node_id, "updated_at": state.now()}
            )
            state.documents[document_id] = updated

        logger.info(f"Moved document {document_id} to folder {folder_node_id or '(root)'}")
        return updated

    def delete(self, caller: str, document_id: str) -> Document:
        principal = require_principal(caller)
        with self._state.transaction() as state:
            document = require_owned(
                state.documents.get(document_id), principal, KIND, document_id
            )
            del state.documents[document_id]

        logger.info(f"Deleted document {document_id}")
        return document

    def list(
        self,
        caller: str,
        workspace_id: str,
        spec: DocumentFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Document]:
        """
        Documents of one workspace.

        Raises:
            NotFoundError: If the workspace is not the caller's
        """
        principal = require_principal(caller)
        with self._state.reading() as state:
            require_owned(state.workspaces.get(workspace_id), principal, "workspace", workspace_id)
        spec = (spec or DocumentFilter()).model_copy(update={"workspace_id": workspace_id})
        return self._query.documents(principal, spec, page)

    def _require_workspace(self, owner: str, workspace_id: str) -> Workspace:
        workspace = self._state.workspaces.get(workspace_id)
        if workspace is None or workspace.owner != owner:
            raise DanglingReferenceError("workspace", workspace_id)
        return workspace

    def _require_folder(self, workspace: Workspace, folder_node_id: str | None) -> None:
        if folder_node_id is not None and not workspace.has_folder(folder_node_id):
            raise DanglingReferenceError(
                "folder", folder_node_id, f"not in workspace {workspace.id}"
            )
