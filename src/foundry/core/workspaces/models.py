"""
Workspace data models.

A workspace owns an ordered folder tree. Folder nodes live in a flat list
(the arena) and point at their parent by id; order among siblings is the
order of the list.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_NAME_LENGTH = 200


def _clean_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError("name may not be empty")
    return name


class FolderNode(BaseModel):
    """One folder in a workspace's tree."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., max_length=MAX_NAME_LENGTH)
    parent_id: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class Workspace(BaseModel):
    """A workspace record."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner: str
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    description: str | None = None
    icon: str | None = None
    is_archived: bool = False
    folder_tree: list[FolderNode] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    def folder(self, node_id: str) -> FolderNode | None:
        for node in self.folder_tree:
            if node.id == node_id:
                return node
        return None

    def has_folder(self, node_id: str) -> bool:
        return self.folder(node_id) is not None


class WorkspaceCreate(BaseModel):
    """Request to create a workspace, optionally with an initial folder tree."""

    name: str = Field(..., max_length=MAX_NAME_LENGTH)
    description: str | None = None
    icon: str | None = None
    folder_tree: list[FolderNode] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class WorkspacePatch(BaseModel):
    """
    Partial update for a workspace.

    ``folder_tree`` replaces the whole tree; it is validated as a unit and
    rejected if it would strand a document anchored to a removed folder.
    """

    name: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    description: str | None = None
    icon: str | None = None
    is_archived: bool | None = None
    folder_tree: list[FolderNode] | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _clean_name(v)

    def sets(self, name: str) -> bool:
        return name in self.model_fields_set


class WorkspaceDeletion(BaseModel):
    """Outcome of deleting a workspace: the workspace and its deleted documents."""

    workspace: Workspace
    documents: list[str] = Field(default_factory=list)
