"""Workspaces and their folder trees."""

from foundry.core.workspaces.models import (
    FolderNode,
    Workspace,
    WorkspaceCreate,
    WorkspaceDeletion,
    WorkspacePatch,
)

__all__ = [
    "FolderNode",
    "Workspace",
    "WorkspaceCreate",
    "WorkspaceDeletion",
    "WorkspacePatch",
]
