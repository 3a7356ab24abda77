"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars

Env vars may also come from ``foundry.env`` files (user, then project's
``.foundry.env``), which :func:`load_env_files` exports before loading.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from .models import FoundryConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "FOUNDRY_"

# Global cache to avoid reloading config multiple times per process
_config_cache: FoundryConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/foundry/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "foundry" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .foundry.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".foundry.json"


def get_user_env_path() -> Path:
    """Path to ~/.config/foundry/foundry.env (or XDG equivalent)."""
    return get_xdg_config_home() / "foundry" / "foundry.env"


def get_project_env_path(cwd: Path | None = None) -> Path:
    """Path to .foundry.env, kept next to .foundry.json."""
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".foundry.env"


def read_env_file(path: Path) -> dict[str, str]:
    """
    Read the ``FOUNDRY_*`` assignments from a dotenv file.

    Other keys are ignored, so an env file cannot change settings foundry
    does not own. A missing file reads as empty.
    """
    if not path.exists():
        return {}
    return {
        key: value
        for key, value in dotenv_values(path).items()
        if key.startswith(ENV_PREFIX) and value is not None
    }


def load_env_files(project_dir: Path | None = None) -> dict[str, str]:
    """
    Export settings from foundry.env files into the process environment.

    The project file overrides the user file; neither overrides a variable
    the process already has.

    Args:
        project_dir: Directory holding .foundry.env (defaults to cwd)

    Returns:
        The variables that were exported
    """
    values = read_env_file(get_user_env_path())
    values.update(read_env_file(get_project_env_path(project_dir)))

    exported = {key: value for key, value in values.items() if key not in os.environ}
    os.environ.update(exported)
    if exported:
        logger.debug(f"Exported {', '.join(sorted(exported))} from env files")
    return exported


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    This is a recursive merge - nested dicts are merged, not replaced.

    Example:
        >>> base = {"a": 1, "b": {"x": 10, "y": 20}}
        >>> override = {"b": {"y": 30, "z": 40}, "c": 3}
        >>> deep_merge(base, override)
        {'a': 1, 'b': {'x': 10, 'y': 30, 'z': 40}, 'c': 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient to a broken file
        logger.warning(f"Failed to parse config at {path}: {e}")
        return None


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    if not isinstance(result.get(section), dict):
        result[section] = {}
    result[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        FOUNDRY_AUTH_SERVICE - overrides auth.service
        FOUNDRY_CONTROLLERS - overrides auth.controllers (comma-separated)
        FOUNDRY_CAPACITY_POLICY - overrides sprint.capacity_policy
        FOUNDRY_DATA_DIR - overrides storage.data_dir
        FOUNDRY_DEFAULT_LIMIT - overrides query.default_limit

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if auth_service := os.environ.get("FOUNDRY_AUTH_SERVICE"):
        _set(result, "auth", "service", auth_service)

    if controllers := os.environ.get("FOUNDRY_CONTROLLERS"):
        _set(
            result,
            "auth",
            "controllers",
            [c.strip() for c in controllers.split(",") if c.strip()],
        )

    if policy := os.environ.get("FOUNDRY_CAPACITY_POLICY"):
        policy = policy.strip().lower()
        if policy in ("warn", "reject"):
            _set(result, "sprint", "capacity_policy", policy)
        else:
            logger.warning(f"Invalid FOUNDRY_CAPACITY_POLICY value '{policy}', ignoring")

    if data_dir := os.environ.get("FOUNDRY_DATA_DIR"):
        _set(result, "storage", "data_dir", data_dir)

    if limit_str := os.environ.get("FOUNDRY_DEFAULT_LIMIT"):
        try:
            limit = int(limit_str)
            if limit < 1:
                logger.warning(f"FOUNDRY_DEFAULT_LIMIT must be >= 1, got {limit}, ignoring")
            else:
                _set(result, "query", "default_limit", limit)
        except ValueError:
            logger.warning(f"Invalid FOUNDRY_DEFAULT_LIMIT value '{limit_str}', ignoring")

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "sprint": {"capacity_policy": "warn", "load_field": "estimate"},
        "capture": {"max_parent_depth": 256},
        "query": {"default_limit": 50, "max_limit": 500},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> FoundryConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (FOUNDRY_*)
        2. Project config (.foundry.json)
        3. User config (~/.config/foundry/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .foundry.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated FoundryConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation

    Example:
        >>> config = load_config()
        >>> config.query.default_limit
        50
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    user_config_path = get_user_config_path()
    if user_config := load_json_file(user_config_path):
        merged = deep_merge(merged, user_config)

    project_config_path = get_project_config_path(project_dir)
    if project_config := load_json_file(project_config_path):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = FoundryConfig(**merged)

    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
