"""
Foundry service: the request/response boundary of the record store.

Every logical operation (captures, sprints, workspaces, documents,
templates, configuration, health) is one method here. Methods take the
caller principal explicitly, accept typed request models, return typed
records, and raise ``FoundryError`` subclasses. No printing, no exits:
presentation is the caller's job.

Usage:
    >>> from foundry.core.services.foundry import FoundryService
    >>> service = FoundryService.from_config(installer="alice")
    >>> capture = service.create_capture("alice", CaptureCreate(title="Idea", capture_type="idea"))
    >>> service.save()
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from foundry.core.audit import AuditFinding, Repair, audit_state, repair_state
from foundry.core.captures.models import (
    Capture,
    CaptureCreate,
    CaptureDeletion,
    CapturePatch,
    CaptureUpdateResult,
)
from foundry.core.captures.store import CaptureStore
from foundry.core.clock import Clock
from foundry.core.config.loader import load_config
from foundry.core.config.models import FoundryConfig
from foundry.core.documents.markdown import parse_markdown, parse_update, to_markdown
from foundry.core.documents.models import Document, DocumentCreate, DocumentUpdate
from foundry.core.documents.store import DocumentStore
from foundry.core.errors import AuthenticationError, ValidationError
from foundry.core.identity import AuthServiceClient, require_controller, require_principal
from foundry.core.persistence import load_checkpoint, save_checkpoint
from foundry.core.query.engine import QueryEngine
from foundry.core.query.filters import (
    CaptureFilter,
    DocumentFilter,
    Page,
    PageRequest,
    SprintFilter,
    TemplateFilter,
    WorkspaceFilter,
)
from foundry.core.services.models import StoreStats
from foundry.core.services.stats import StatsService
from foundry.core.sprints.models import (
    AssignmentResult,
    RemovalResult,
    Sprint,
    SprintCreate,
    SprintPatch,
    SprintUpdateResult,
)
from foundry.core.sprints.store import SprintStore
from foundry.core.state import RecordState, StateSnapshot
from foundry.core.templates.models import Template, TemplateCreate, TemplatePatch
from foundry.core.templates.store import TemplateStore
from foundry.core.workspaces.models import (
    FolderNode,
    Workspace,
    WorkspaceCreate,
    WorkspaceDeletion,
    WorkspacePatch,
)
from foundry.core.workspaces.store import WorkspaceStore

logger = logging.getLogger(__name__)

MAX_AUTH_SERVICE_LENGTH = 2048


class FoundryService:
    """
    Facade over one RecordState and its stores.

    Example:
        >>> service = FoundryService(RecordState(controllers=["admin"]))
        >>> sprint = service.create_sprint("alice", SprintCreate(name="Week 1"))
        >>> service.stats().total_sprints
        1
    """

    def __init__(
        self,
        state: RecordState,
        config: FoundryConfig | None = None,
        auth_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize service with a state and configuration.

        Args:
            state: The record state every store operates on
            config: Policies and paging defaults (defaults if None)
            auth_transport: httpx transport for the auth-service client
                (tests pass an ``httpx.MockTransport``)
        """
        self.state = state
        self.config = config or FoundryConfig()
        self._auth_transport = auth_transport

        query = QueryEngine(state, self.config.query)
        self.captures = CaptureStore(state, self.config.capture, self.config.sprint, query)
        self.sprints = SprintStore(state, self.config.sprint, query)
        self.workspaces = WorkspaceStore(state, query)
        self.documents = DocumentStore(state, query)
        self.templates = TemplateStore(state, query)
        self._stats = StatsService(state)

    @classmethod
    def from_config(
        cls,
        config: FoundryConfig | None = None,
        installer: str | None = None,
        clock: Clock | None = None,
        repair: bool = False,
        verify: bool = True,
        auth_transport: httpx.BaseTransport | None = None,
    ) -> FoundryService:
        """
        Create a service from configuration, restoring the last checkpoint.

        Args:
            config: Configuration (loaded with ``load_config()`` if None)
            installer: Principal that becomes the sole controller of a fresh
                store when no controllers are configured
            clock: Clock for the state (system clock if None)
            repair: Repair integrity violations found in the checkpoint
                instead of refusing it
            verify: Audit the checkpoint on load (False skips the audit)
            auth_transport: httpx transport for the auth-service client

        Raises:
            IntegrityError: If the checkpoint violates invariants and
                ``repair`` is False
            CheckpointCorruptedError: If the checkpoint cannot be parsed
        """
        if config is None:
            config = load_config()

        snapshot = load_checkpoint(config.storage.checkpoint_path)
        if snapshot is not None:
            state = RecordState.from_snapshot(
                snapshot, clock=clock, repair=repair, verify=verify
            )
        else:
            controllers = list(config.auth.controllers)
            if not controllers and installer is not None:
                controllers = [require_principal(installer)]
            state = RecordState(
                clock=clock, controllers=controllers, auth_service=config.auth.service
            )
            logger.info(f"Initialized empty store with {len(controllers)} controller(s)")

        return cls(state, config, auth_transport)

    # ============================================================================
    # Lifecycle
    # ============================================================================

    def checkpoint(self) -> StateSnapshot:
        return self.state.checkpoint()

    def save(self, path: Path | None = None) -> Path:
        """Write a checkpoint (to the configured location by default)."""
        return save_checkpoint(path or self.config.storage.checkpoint_path, self.checkpoint())

    # ============================================================================
    # Identity
    # ============================================================================

    def resolve(self, access_token: str) -> str:
        """
        Turn a session access token into a principal via the auth service.

        Raises:
            AuthenticationError: If no auth service is configured, the token
                is empty, or the service rejects it
        """
        service = self.state.auth_service
        if not service:
            raise AuthenticationError("Auth service is not configured")
        if not access_token:
            raise AuthenticationError("Access token is required")

        client = AuthServiceClient(
            service, timeout=self.config.auth.timeout_seconds, transport=self._auth_transport
        )
        try:
            principal = client.validate_access_token(access_token)
        finally:
            client.close()
        logger.debug(f"Resolved access token to {principal}")
        return principal

    # ============================================================================
    # Captures
    # ============================================================================

    def create_capture(self, caller: str, request: CaptureCreate) -> Capture:
        return self.captures.create(caller, request)

    def get_capture(self, caller: str, capture_id: str) -> Capture:
        return self.captures.get(caller, capture_id)

    def update_capture(
        self, caller: str, capture_id: str, patch: CapturePatch
    ) -> CaptureUpdateResult:
        return self.captures.update(caller, capture_id, patch)

    def delete_capture(self, caller: str, capture_id: str) -> CaptureDeletion:
        return self.captures.delete(caller, capture_id)

    def list_captures(
        self,
        caller: str,
        spec: CaptureFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Capture]:
        return self.captures.list(caller, spec, page)

    def capture_children(self, caller: str, capture_id: str) -> list[Capture]:
        return self.captures.children(caller, capture_id)

    def capture_ancestors(self, caller: str, capture_id: str) -> list[Capture]:
        return self.captures.ancestors(caller, capture_id)

    # ============================================================================
    # Sprints
    # ============================================================================

    def create_sprint(self, caller: str, request: SprintCreate) -> Sprint:
        return self.sprints.create(caller, request)

    def get_sprint(self, caller: str, sprint_id: str) -> Sprint:
        return self.sprints.get(caller, sprint_id)

    def list_sprints(
        self,
        caller: str,
        spec: SprintFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Sprint]:
        return self.sprints.list(caller, spec, page)

    def update_sprint(
        self, caller: str, sprint_id: str, patch: SprintPatch
    ) -> SprintUpdateResult:
        return self.sprints.update(caller, sprint_id, patch)

    def delete_sprint(self, caller: str, sprint_id: str) -> Sprint:
        return self.sprints.delete(caller, sprint_id)

    def add_capture_to_sprint(
        self, caller: str, sprint_id: str, capture_id: str
    ) -> AssignmentResult:
        return self.sprints.add_capture(caller, sprint_id, capture_id)

    def remove_capture_from_sprint(
        self, caller: str, sprint_id: str, capture_id: str
    ) -> RemovalResult:
        return self.sprints.remove_capture(caller, sprint_id, capture_id)

    def sprint_members(self, caller: str, sprint_id: str) -> list[Capture]:
        return self.sprints.members(caller, sprint_id)

    # ============================================================================
    # Workspaces
    # ============================================================================

    def create_workspace(self, caller: str, request: WorkspaceCreate) -> Workspace:
        return self.workspaces.create(caller, request)

    def get_workspace(self, caller: str, workspace_id: str) -> Workspace:
        return self.workspaces.get(caller, workspace_id)

    def list_workspaces(
        self,
        caller: str,
        spec: WorkspaceFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Workspace]:
        return self.workspaces.list(caller, spec, page)

    def update_workspace(
        self, caller: str, workspace_id: str, patch: WorkspacePatch
    ) -> Workspace:
        return self.workspaces.update(caller, workspace_id, patch)

    def delete_workspace(self, caller: str, workspace_id: str) -> WorkspaceDeletion:
        return self.workspaces.delete(caller, workspace_id)

    def add_folder(
        self, caller: str, workspace_id: str, name: str, parent_id: str | None = None
    ) -> FolderNode:
        return self.workspaces.add_folder(caller, workspace_id, name, parent_id)

    def rename_folder(self, caller: str, workspace_id: str, node_id: str, name: str) -> FolderNode:
        return self.workspaces.rename_folder(caller, workspace_id, node_id, name)

    def move_folder(
        self, caller: str, workspace_id: str, node_id: str, parent_id: str | None
    ) -> FolderNode:
        return self.workspaces.move_folder(caller, workspace_id, node_id, parent_id)

    def remove_folder(self, caller: str, workspace_id: str, node_id: str) -> Workspace:
        return self.workspaces.remove_folder(caller, workspace_id, node_id)

    # ============================================================================
    # Documents
    # ============================================================================

    def create_document(self, caller: str, request: DocumentCreate) -> Document:
        return self.documents.create(caller, request)

    def get_document(self, caller: str, document_id: str) -> Document:
        return self.documents.get(caller, document_id)

    def update_document(
        self, caller: str, document_id: str, request: DocumentUpdate
    ) -> Document:
        return self.documents.update(caller, document_id, request)

    def move_document(
        self, caller: str, document_id: str, folder_node_id: str | None
    ) -> Document:
        return self.documents.move(caller, document_id, folder_node_id)

    def delete_document(self, caller: str, document_id: str) -> Document:
        return self.documents.delete(caller, document_id)

    def list_documents(
        self,
        caller: str,
        workspace_id: str,
        spec: DocumentFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Document]:
        return self.documents.list(caller, workspace_id, spec, page)

    def export_document(self, caller: str, document_id: str) -> str:
        """Render one of the caller's documents as Markdown with frontmatter."""
        return to_markdown(self.documents.get(caller, document_id))

    def import_document(
        self, caller: str, text: str, workspace_id: str | None = None
    ) -> Document:
        """Create a document from Markdown text (see ``documents.markdown``)."""
        return self.documents.create(caller, parse_markdown(text, workspace_id))

    def replace_document(self, caller: str, document_id: str, text: str) -> Document:
        """Replace a document's title and content from Markdown text."""
        return self.documents.update(caller, document_id, parse_update(text))

    # ============================================================================
    # Templates
    # ============================================================================

    def create_template(self, caller: str, request: TemplateCreate) -> Template:
        return self.templates.create(caller, request)

    def get_template(self, caller: str, template_id: str) -> Template:
        return self.templates.get(caller, template_id)

    def update_template(self, caller: str, template_id: str, patch: TemplatePatch) -> Template:
        return self.templates.update(caller, template_id, patch)

    def delete_template(self, caller: str, template_id: str) -> Template:
        return self.templates.delete(caller, template_id)

    def list_my_templates(
        self,
        caller: str,
        spec: TemplateFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Template]:
        return self.templates.list_mine(caller, spec, page)

    def list_public_templates(
        self,
        spec: TemplateFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Template]:
        return self.templates.list_public(spec, page)

    # ============================================================================
    # Configuration
    # ============================================================================

    def set_auth_service(self, caller: str, service: str) -> str:
        """
        Point the store at an external auth service.

        Raises:
            NotAuthorizedError: If the caller is not a controller
            ValidationError: If the reference is empty or too long
        """
        principal = require_principal(caller)
        require_controller(self.state.controllers, principal)
        reference = service.strip()
        if not reference:
            raise ValidationError("Auth service reference may not be empty")
        if len(reference) > MAX_AUTH_SERVICE_LENGTH:
            raise ValidationError("Auth service reference is too long")

        with self.state.transaction() as state:
            state.auth_service = reference
        logger.info(f"Auth service updated by {principal}")
        return reference

    def get_auth_service(self) -> str | None:
        return self.state.auth_service

    def get_controllers(self) -> list[str]:
        return list(self.state.controllers)

    # ============================================================================
    # Integrity
    # ============================================================================

    def audit(self, caller: str) -> list[AuditFinding]:
        """Report integrity violations across all tables (controllers only)."""
        require_controller(self.state.controllers, require_principal(caller))
        return audit_state(self.state)

    def repair(self, caller: str) -> list[Repair]:
        """Fix integrity violations across all tables (controllers only)."""
        require_controller(self.state.controllers, require_principal(caller))
        return repair_state(self.state)

    # ============================================================================
    # Health
    # ============================================================================

    def health(self) -> str:
        return self._stats.health()

    def stats(self) -> StoreStats:
        return self._stats.stats()
