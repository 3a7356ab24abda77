"""
Markdown export/import for documents.

A document is written as Markdown with YAML frontmatter, the same layout
used for capture files:

    ---
    id: doc-3
    title: Release plan
    workspace_id: ws-1
    folder_node_id: fld-2
    created_at: 2026-01-15T10:30:00+00:00
    updated_at: 2026-01-15T11:00:00+00:00
    ---

    # Release plan
    ...

Import never trusts ids or timestamps from the file: it produces a
``DocumentCreate`` (or ``DocumentUpdate``) that goes through the store's
normal checks.
"""

from pathlib import Path

import frontmatter
import yaml

from foundry.core.documents.models import Document, DocumentCreate, DocumentUpdate
from foundry.core.errors import ValidationError


def to_markdown(document: Document) -> str:
    """Render a document as Markdown with YAML frontmatter."""
    metadata = {
        "id": document.id,
        "title": document.title,
        "workspace_id": document.workspace_id,
        "created_at": document.created_at.isoformat(),
        "updated_at": document.updated_at.isoformat(),
    }
    if document.folder_node_id is not None:
        metadata["folder_node_id"] = document.folder_node_id
    if document.template_id is not None:
        metadata["template_id"] = document.template_id

    post = frontmatter.Post(document.content, **metadata)
    return frontmatter.dumps(post) + "\n"


def export_document(document: Document, path: Path) -> Path:
    """Write a document to ``path`` (a file or a directory)."""
    path = Path(path)
    if path.is_dir():
        path = path / f"{document.id}.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_markdown(document), encoding="utf-8")
    return path


def _load(text: str) -> frontmatter.Post:
    try:
        return frontmatter.loads(text)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid document frontmatter: {e}") from e


def parse_markdown(text: str, workspace_id: str | None = None) -> DocumentCreate:
    """
    Build a create request from Markdown text.

    ``workspace_id`` overrides the workspace named in the frontmatter. The
    title falls back to the first ``# heading`` of the body.

    Raises:
        ValidationError: If no workspace or title can be determined
    """
    post = _load(text)
    target = workspace_id or post.metadata.get("workspace_id")
    if not target:
        raise ValidationError("Document has no workspace_id")

    title = post.metadata.get("title") or _first_heading(post.content)
    if not title:
        raise ValidationError("Document has no title")

    folder = post.metadata.get("folder_node_id")
    return DocumentCreate(
        workspace_id=str(target),
        title=str(title),
        content=post.content,
        folder_node_id=str(folder) if folder and not workspace_id else None,
    )


def parse_update(text: str) -> DocumentUpdate:
    """Build an update request (title and whole content) from Markdown text."""
    post = _load(text)
    title = post.metadata.get("title")
    return DocumentUpdate(title=str(title) if title else None, content=post.content)


def _first_heading(body: str) -> str | None:
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            return stripped[2:].strip() or None
    return None
