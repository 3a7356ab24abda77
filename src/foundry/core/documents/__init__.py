"""Documents: markdown content anchored to a workspace."""

from foundry.core.documents.models import Document, DocumentCreate, DocumentUpdate

__all__ = ["Document", "DocumentCreate", "DocumentUpdate"]
