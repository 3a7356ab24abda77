"""
Tests for layered configuration and .env loading.
"""

import json
import os
from pathlib import Path

import pytest

from foundry.core.config import clear_cache, get_user_config_path, load_config
from foundry.core.config.loader import (
    deep_merge,
    get_user_env_path,
    load_env_files,
    read_env_file,
)
from foundry.core.sprints.models import CapacityPolicy


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


def _write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


class TestLoadConfig:
    """Tests for load_config precedence."""

    def test_defaults(self, project_dir: Path) -> None:
        config = load_config(project_dir, use_cache=False)

        assert config.sprint.capacity_policy == CapacityPolicy.WARN
        assert config.query.default_limit == 50
        assert config.query.max_limit == 500
        assert config.capture.max_parent_depth == 256
        assert config.auth.controllers == []

    def test_project_overrides_user(self, project_dir: Path) -> None:
        _write_json(
            get_user_config_path(),
            {"sprint": {"capacity_policy": "reject"}, "query": {"default_limit": 10}},
        )
        _write_json(project_dir / ".foundry.json", {"query": {"default_limit": 20}})

        config = load_config(project_dir, use_cache=False)

        assert config.sprint.capacity_policy == CapacityPolicy.REJECT
        assert config.query.default_limit == 20

    def test_env_overrides_files(
        self, project_dir: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_json(project_dir / ".foundry.json", {"auth": {"controllers": ["root"]}})
        monkeypatch.setenv("FOUNDRY_CONTROLLERS", "admin, ops,")
        monkeypatch.setenv("FOUNDRY_CAPACITY_POLICY", "REJECT")
        monkeypatch.setenv("FOUNDRY_DATA_DIR", str(tmp_path / "data"))
        monkeypatch.setenv("FOUNDRY_AUTH_SERVICE", "https://auth.test")

        config = load_config(project_dir, use_cache=False)

        assert config.auth.controllers == ["admin", "ops"]
        assert config.auth.service == "https://auth.test"
        assert config.sprint.capacity_policy == CapacityPolicy.REJECT
        assert config.storage.checkpoint_path == tmp_path / "data" / "state.json"

    @pytest.mark.parametrize(
        "name, value",
        [
            ("FOUNDRY_CAPACITY_POLICY", "sometimes"),
            ("FOUNDRY_DEFAULT_LIMIT", "many"),
            ("FOUNDRY_DEFAULT_LIMIT", "0"),
        ],
    )
    def test_invalid_env_values_ignored(
        self, project_dir: Path, monkeypatch: pytest.MonkeyPatch, name: str, value: str
    ) -> None:
        monkeypatch.setenv(name, value)

        config = load_config(project_dir, use_cache=False)

        assert config.sprint.capacity_policy == CapacityPolicy.WARN
        assert config.query.default_limit == 50

    def test_broken_file_ignored(
        self, project_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (project_dir / ".foundry.json").write_text("{broken")

        config = load_config(project_dir, use_cache=False)

        assert config.query.default_limit == 50
        assert "Failed to parse config" in caplog.text

    def test_cache(self, project_dir: Path) -> None:
        first = load_config(project_dir)
        assert load_config(project_dir) is first

        clear_cache()
        assert load_config(project_dir) is not first

    def test_bare_auth_string(self, project_dir: Path) -> None:
        _write_json(project_dir / ".foundry.json", {"auth": "https://auth.test"})

        assert load_config(project_dir, use_cache=False).auth.service == "https://auth.test"

    def test_deep_merge(self) -> None:
        merged = deep_merge({"a": 1, "b": {"x": 1, "y": 2}}, {"b": {"y": 3}, "c": 4})
        assert merged == {"a": 1, "b": {"x": 1, "y": 3}, "c": 4}


class TestEnvFiles:
    """Tests for foundry.env loading."""

    @pytest.fixture(autouse=True)
    def unset_test_keys(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # register the keys so monkeypatch removes whatever load_env_files exports
        for key in ("FOUNDRY_TEST_VALUE", "FOUNDRY_CAPACITY_POLICY"):
            monkeypatch.setenv(key, "")
            monkeypatch.delenv(key)

    def test_project_file_overrides_user_file(self, project_dir: Path) -> None:
        user_env = get_user_env_path()
        user_env.parent.mkdir(parents=True, exist_ok=True)
        user_env.write_text("FOUNDRY_TEST_VALUE=user\n")
        (project_dir / ".foundry.env").write_text("FOUNDRY_TEST_VALUE=project\n")

        exported = load_env_files(project_dir)

        assert exported == {"FOUNDRY_TEST_VALUE": "project"}
        assert os.environ["FOUNDRY_TEST_VALUE"] == "project"

    def test_process_env_wins(self, project_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FOUNDRY_TEST_VALUE", "process")
        (project_dir / ".foundry.env").write_text("FOUNDRY_TEST_VALUE=project\n")

        assert load_env_files(project_dir) == {}
        assert os.environ["FOUNDRY_TEST_VALUE"] == "process"

    def test_only_foundry_keys_are_read(self, tmp_path: Path) -> None:
        path = tmp_path / ".foundry.env"
        path.write_text("HOME=/elsewhere\nFOUNDRY_TEST_VALUE=1\nFOUNDRY_EMPTY\n")

        assert read_env_file(path) == {"FOUNDRY_TEST_VALUE": "1"}

    def test_missing_files_export_nothing(self, project_dir: Path) -> None:
        assert load_env_files(project_dir) == {}

    def test_exported_values_reach_config(self, project_dir: Path) -> None:
        (project_dir / ".foundry.env").write_text("FOUNDRY_CAPACITY_POLICY=reject\n")

        load_env_files(project_dir)

        config = load_config(project_dir, use_cache=False)
        assert config.sprint.capacity_policy == CapacityPolicy.REJECT
