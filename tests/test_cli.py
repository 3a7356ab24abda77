"""
Tests for the foundry CLI.

Each test runs against an isolated data directory, so every invocation
restores and saves its own checkpoint.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from foundry.cli import app
from foundry.cli.errors import ExitCode

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every command from an empty project dir with its own data dir."""
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    monkeypatch.setenv("FOUNDRY_DATA_DIR", str(tmp_path / "data"))
    return project


def invoke(*args: str, principal: str | None = "alice"):
    prefix = ["--as", principal] if principal else []
    return runner.invoke(app, [*prefix, *args])


def invoke_json(*args: str, principal: str | None = "alice"):
    result = invoke(*args, "--json", principal=principal)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class TestCaptureCommands:
    """Tests for foundry capture ..."""

    def test_create_and_show(self, tmp_path: Path) -> None:
        created = invoke_json("capture", "create", "Write docs", "--type", "task", "-f", "estimate=3")

        assert created["id"] == "cap-1"
        assert created["fields"]["estimate"] == {"kind": "number", "value": 3}
        assert (tmp_path / "data" / "state.json").exists()

        shown = invoke_json("capture", "show", "cap-1")
        assert shown["title"] == "Write docs"

    def test_other_principal_cannot_see(self) -> None:
        invoke("capture", "create", "Private", "--type", "idea")

        result = invoke("capture", "show", "cap-1", principal="bob")

        assert result.exit_code == ExitCode.USER_ERROR
        assert "not found" in result.output

    def test_missing_principal(self) -> None:
        result = invoke("capture", "create", "x", "--type", "idea", principal=None)

        assert result.exit_code == ExitCode.USER_ERROR
        assert "Authentication required" in result.output

    def test_invalid_field(self) -> None:
        result = invoke("capture", "create", "Thought", "--type", "reflection", "-f", "estimate=2")

        assert result.exit_code == ExitCode.USER_ERROR
        assert "estimate" in result.output

    def test_bad_field_option(self) -> None:
        result = invoke("capture", "create", "x", "--type", "task", "-f", "estimate")

        assert result.exit_code == ExitCode.USER_ERROR
        assert "Invalid field option" in result.output

    def test_update_unset_and_detach(self) -> None:
        invoke("capture", "create", "Parent", "--type", "project")
        invoke("capture", "create", "Child", "--type", "task", "--parent", "cap-1", "-f", "estimate=2")

        updated = invoke_json("capture", "update", "cap-2", "--unset", "estimate", "--detach")

        assert updated["capture"]["parent_id"] is None
        assert updated["capture"]["fields"] == {}
        assert updated["over_capacity_sprints"] == []

    def test_delete_reports_reparenting(self) -> None:
        invoke("capture", "create", "Parent", "--type", "project")
        invoke("capture", "create", "Child", "--type", "task", "--parent", "cap-1")

        result = invoke_json("capture", "delete", "cap-1")

        assert result["reparented"] == ["cap-2"]

    def test_list_filters_and_pages(self) -> None:
        invoke("capture", "create", "One", "--type", "task", "--status", "active")
        invoke("capture", "create", "Two", "--type", "idea")
        invoke("capture", "create", "Three", "--type", "task", "--status", "active")

        page = invoke_json("capture", "list", "--status", "active", "--limit", "1")

        assert page["total"] == 2
        assert [c["title"] for c in page["items"]] == ["One"]

    def test_list_by_creation_date(self) -> None:
        invoke("capture", "create", "One", "--type", "task")

        since = invoke_json("capture", "list", "--since", "2000-01-01")
        until = invoke_json("capture", "list", "--until", "2000-01-01")

        assert [c["title"] for c in since["items"]] == ["One"]
        assert until["total"] == 0

    def test_list_empty(self) -> None:
        result = invoke("capture", "list")

        assert result.exit_code == 0
        assert "No captures found" in result.output

    def test_fields_table(self) -> None:
        result = runner.invoke(app, ["capture", "fields"])

        assert result.exit_code == 0
        assert "estimate" in result.output


class TestSprintCommands:
    """Tests for foundry sprint ..."""

    def test_add_twice_and_capacity_warning(self) -> None:
        invoke("capture", "create", "Big", "--type", "task", "-f", "estimate=8")
        invoke("sprint", "create", "Week 1", "--capacity", "5")

        first = invoke("sprint", "add", "spr-1", "cap-1")
        second = invoke("sprint", "add", "spr-1", "cap-1")

        assert first.exit_code == 0
        assert "over capacity" in first.output
        assert "already in" in second.output

    def test_reject_policy(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FOUNDRY_CAPACITY_POLICY", "reject")
        invoke("capture", "create", "Big", "--type", "task", "-f", "estimate=8")
        invoke("sprint", "create", "Week 1", "--capacity", "5")

        result = invoke("sprint", "add", "spr-1", "cap-1")

        assert result.exit_code == ExitCode.USER_ERROR
        assert "exceed capacity" in result.output

    def test_members_listed_by_capture_filter(self) -> None:
        invoke("capture", "create", "In", "--type", "task")
        invoke("capture", "create", "Out", "--type", "task")
        invoke("sprint", "create", "Week 1")
        invoke("sprint", "add", "spr-1", "cap-1")

        page = invoke_json("capture", "list", "--sprint", "spr-1")

        assert [c["id"] for c in page["items"]] == ["cap-1"]


class TestWorkspaceAndDocumentCommands:
    """Tests for foundry workspace ... and foundry document ..."""

    def test_folder_and_document_flow(self, tmp_path: Path) -> None:
        invoke("workspace", "create", "Notes")
        assert invoke("workspace", "folder-add", "ws-1", "Drafts").exit_code == 0
        doc = invoke_json("document", "create", "ws-1", "Plan", "--folder", "fld-1", "-c", "Body")

        assert doc["folder_node_id"] == "fld-1"

        invoke("workspace", "folder-remove", "ws-1", "fld-1")
        moved = invoke_json("document", "show", "doc-1")
        assert moved["folder_node_id"] is None

        out = tmp_path / "export"
        out.mkdir()
        assert invoke("document", "export", "doc-1", "--output", str(out)).exit_code == 0
        assert (out / "doc-1.md").exists()

    def test_export_to_stdout_and_import(self, tmp_path: Path) -> None:
        invoke("workspace", "create", "Notes")
        invoke("document", "create", "ws-1", "Plan", "-c", "Body")

        exported = invoke("document", "export", "doc-1")
        source = tmp_path / "plan.md"
        source.write_text(exported.output)
        result = invoke("document", "import", str(source))

        assert result.exit_code == 0, result.output
        assert invoke_json("document", "show", "doc-2")["content"] == "Body"

    def test_delete_workspace_needs_confirmation(self) -> None:
        invoke("workspace", "create", "Notes")

        aborted = runner.invoke(app, ["--as", "alice", "workspace", "delete", "ws-1"], input="n\n")
        deleted = invoke("workspace", "delete", "ws-1", "--yes")

        assert aborted.exit_code != 0
        assert deleted.exit_code == 0


class TestTemplateCommands:
    """Tests for foundry template ..."""

    def test_public_template_shared(self) -> None:
        invoke("template", "create", "Bug", "--public", "--type", "task", "-f", "labels=bug")

        public = invoke_json("template", "list", "--public", principal="bob")
        capture = invoke_json("capture", "create", "Crash", "--template", "tpl-1", principal="bob")
        denied = invoke("template", "delete", "tpl-1", principal="bob")

        assert [t["id"] for t in public["items"]] == ["tpl-1"]
        assert capture["fields"]["labels"]["value"] == ["bug"]
        assert denied.exit_code == ExitCode.USER_ERROR
        assert "do not own" in denied.output


class TestStoreCommands:
    """Tests for health, stats, audit and config."""

    def test_health(self) -> None:
        result = invoke("health")

        assert result.exit_code == 0
        assert result.output.strip() == "ok"

    def test_stats_json(self) -> None:
        invoke("capture", "create", "x", "--type", "idea")

        stats = invoke_json("stats")

        assert stats["total_captures"] == 1
        assert stats["total_users"] == 1

    def test_installer_becomes_controller(self) -> None:
        invoke("capture", "create", "x", "--type", "idea")

        config = invoke_json("config", "show")
        allowed = invoke("config", "set-auth-service", "https://auth.test")
        denied = invoke("config", "set-auth-service", "https://evil.test", principal="bob")

        assert config["controllers"] == ["alice"]
        assert allowed.exit_code == 0
        assert denied.exit_code == ExitCode.USER_ERROR

    def test_audit_clean_store(self) -> None:
        invoke("capture", "create", "x", "--type", "idea")

        result = invoke("audit")

        assert result.exit_code == 0
        assert "No integrity violations" in result.output

    def test_audit_repairs_corrupt_checkpoint(self, tmp_path: Path) -> None:
        invoke("capture", "create", "x", "--type", "idea")
        path = tmp_path / "data" / "state.json"
        data = json.loads(path.read_text())
        data["captures"][0]["parent_id"] = "cap-42"
        path.write_text(json.dumps(data))

        refused = invoke("capture", "list")
        found = invoke("audit")
        repaired = invoke("audit", "--repair")
        after = invoke("capture", "list")

        assert refused.exit_code == ExitCode.GENERAL_ERROR
        assert found.exit_code == ExitCode.GENERAL_ERROR
        assert "dangling_parent" in found.output
        assert repaired.exit_code == 0
        assert after.exit_code == 0

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "foundry version" in result.output
