"""
Configuration models and loading.

This module provides Pydantic models for foundry configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
    load_env_files,
)
from .models import (
    AuthConfig,
    CaptureConfig,
    FoundryConfig,
    QueryConfig,
    SprintConfig,
    StorageConfig,
)

__all__ = [
    # Models
    "AuthConfig",
    "CaptureConfig",
    "FoundryConfig",
    "QueryConfig",
    "SprintConfig",
    "StorageConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_env_files",
]
