"""
Service layer data models.

Pydantic models returned by the service layer to every interface.
"""

from pydantic import BaseModel, Field


class StoreStats(BaseModel):
    """Aggregate record counts, derived from table sizes only."""

    total_captures: int = Field(default=0, ge=0, description="Captures across all principals")
    total_sprints: int = Field(default=0, ge=0, description="Sprints across all principals")
    total_workspaces: int = Field(default=0, ge=0, description="Workspaces across all principals")
    total_documents: int = Field(default=0, ge=0, description="Documents across all principals")
    total_templates: int = Field(default=0, ge=0, description="Templates across all principals")
    total_users: int = Field(
        default=0, ge=0, description="Distinct principals owning at least one record"
    )
