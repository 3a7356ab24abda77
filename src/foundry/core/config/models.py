"""
Configuration data models for foundry.

These models define the structure of .foundry.json and
~/.config/foundry/config.json files, with validation and type safety via
Pydantic.
"""

import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from foundry.core.sprints.models import CapacityPolicy


def _default_data_dir() -> Path:
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if not xdg_data_home:
        xdg_data_home = os.path.expanduser("~/.local/share")
    return Path(xdg_data_home) / "foundry"


class AuthConfig(BaseModel):
    """
    External identity settings.

    The auth service is consumed, not implemented: foundry only asks it to
    turn access tokens into principals.
    """
    service: Optional[str] = Field(
        default=None,
        description="Base URL of the external auth service"
    )
    controllers: list[str] = Field(
        default_factory=list,
        description="Administrative principals allowed to change configuration"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for auth service calls"
    )


class SprintConfig(BaseModel):
    """
    Sprint assignment policy.

    Controls what happens when an assignment would exceed a sprint's capacity.
    """
    capacity_policy: CapacityPolicy = Field(
        default=CapacityPolicy.WARN,
        description="'warn' allows the assignment and flags it, 'reject' refuses it"
    )
    load_field: str = Field(
        default="estimate",
        min_length=1,
        description="Number field summed over members to compute sprint load"
    )


class CaptureConfig(BaseModel):
    """Capture hierarchy limits."""
    max_parent_depth: int = Field(
        default=256,
        ge=1,
        description="Maximum number of ancestors a capture may have"
    )


class QueryConfig(BaseModel):
    """Pagination defaults for list queries."""
    default_limit: int = Field(
        default=50,
        ge=1,
        description="Page size when the caller does not pass a limit"
    )
    max_limit: int = Field(
        default=500,
        ge=1,
        description="Largest page size a caller may request"
    )


class StorageConfig(BaseModel):
    """Where checkpoints are written between process runs."""
    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Directory holding the checkpoint file"
    )
    checkpoint_file: str = Field(
        default="state.json",
        min_length=1,
        description="Checkpoint file name inside data_dir"
    )

    @property
    def checkpoint_path(self) -> Path:
        return Path(self.data_dir) / self.checkpoint_file


class FoundryConfig(BaseModel):
    """
    Top-level foundry configuration.

    This is the root configuration model that encompasses all settings.
    It's loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = FoundryConfig(
        ...     auth=AuthConfig(controllers=["admin"]),
        ...     sprint=SprintConfig(capacity_policy="reject"),
        ... )
        >>> config.sprint.capacity_policy
        <CapacityPolicy.REJECT: 'reject'>
    """
    auth: AuthConfig = Field(
        default_factory=AuthConfig,
        description="External identity settings"
    )
    sprint: SprintConfig = Field(
        default_factory=SprintConfig,
        description="Sprint assignment policy"
    )
    capture: CaptureConfig = Field(
        default_factory=CaptureConfig,
        description="Capture hierarchy limits"
    )
    query: QueryConfig = Field(
        default_factory=QueryConfig,
        description="Pagination defaults"
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Checkpoint location"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,  # Validate on field assignment
    )

    @field_validator('auth', mode='before')
    @classmethod
    def validate_auth(cls, v: Union[str, dict, AuthConfig]) -> Union[dict, AuthConfig]:
        """Convert a bare auth service URL to AuthConfig."""
        if isinstance(v, str):
            return {"service": v}
        return v
