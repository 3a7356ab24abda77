"""
Query Engine: ownership-first, conjunctive, stably ordered list queries.
"""

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

__all__ = [
    "CaptureFilter",
    "DocumentFilter",
    "Page",
    "PageRequest",
    "QueryEngine",
    "SprintFilter",
    "TemplateFilter",
    "WorkspaceFilter",
]
