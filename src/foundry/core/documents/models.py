"""
Document data models.

A document is markdown content anchored to exactly one workspace and,
optionally, to a folder node inside that workspace's tree.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_TITLE_LENGTH = 500


def _clean_title(value: str) -> str:
    title = value.strip()
    if not title:
        raise ValueError("title may not be empty")
    return title


class Document(BaseModel):
    """A document record."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner: str
    workspace_id: str
    folder_node_id: str | None = None
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    content: str = ""
    template_id: str | None = Field(
        default=None, description="Template this document was created from (informational)"
    )
    created_at: datetime
    updated_at: datetime


class DocumentCreate(BaseModel):
    """
    Request to create a document.

    When ``template_id`` names a document template and ``content`` is not
    given, the template's content becomes the starting content.
    """

    workspace_id: str
    title: str = Field(..., max_length=MAX_TITLE_LENGTH)
    content: str | None = None
    folder_node_id: str | None = None
    template_id: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _clean_title(v)


class DocumentUpdate(BaseModel):
    """
    Update for a document's title and/or content.

    Content replacement is whole-value: the new content replaces the old
    one entirely.
    """

    title: str | None = Field(default=None, max_length=MAX_TITLE_LENGTH)
    content: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _clean_title(v)
