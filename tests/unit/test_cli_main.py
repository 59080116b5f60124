"""Unit tests for session_chain.cli.main.

Uses Click's test runner (CliRunner) against a throwaway SQLite file so that
state survives between separate invocations.
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner, Result

from session_chain import SessionChainService
from session_chain.cli.main import _make_store, _parse_assignment, cli
from session_chain.storage.memory import InMemoryStore
from session_chain.storage.sqlite import SQLiteStore

OWNER = "user-1"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "cli.db")


def _invoke(runner: CliRunner, db_path: str, *args: str) -> Result:
    return runner.invoke(cli, ["session", "--db-path", db_path, *args])


def _create(runner: CliRunner, db_path: str, *extra: str, owner: str = OWNER) -> str:
    result = _invoke(runner, db_path, "create", "--owner", owner, *extra)
    assert result.exit_code == 0, result.output
    for line in result.output.splitlines():
        if line.startswith("Session created:"):
            return line.split(":", 1)[1].strip()
    raise AssertionError(f"no session id in output: {result.output!r}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestMakeStore:
    def test_memory(self) -> None:
        assert isinstance(_make_store("memory", None, None), InMemoryStore)

    def test_sqlite_with_path(self, tmp_path: Path) -> None:
        store = _make_store("sqlite", str(tmp_path / "x.db"), None)
        assert isinstance(store, SQLiteStore)

    def test_returns_session_store(self) -> None:
        from session_chain.storage.base import SessionStore

        assert isinstance(_make_store("memory", None, None), SessionStore)

    def test_unknown_exits(self) -> None:
        with pytest.raises(SystemExit):
            _make_store("cassandra", None, None)


class TestParseAssignment:
    def test_json_value(self) -> None:
        assert _parse_assignment("report={\"score\": 7}") == ("report", {"score": 7})

    def test_plain_string_value(self) -> None:
        assert _parse_assignment("status=completed") == ("status", "completed")

    def test_missing_equals(self) -> None:
        with pytest.raises(Exception, match="KEY=VALUE"):
            _parse_assignment("status")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestVersionCommand:
    def test_prints_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestCreateCommand:
    def test_create_root(self, runner: CliRunner, db_path: str) -> None:
        session_id = _create(runner, db_path, "--job-context", '{"role": "SWE"}')
        assert SQLiteStore(db_path=db_path).get(session_id).job_context == {"role": "SWE"}

    def test_create_follow_up(self, runner: CliRunner, db_path: str) -> None:
        parent = _create(runner, db_path)
        child = _create(runner, db_path, "--parent", parent)
        assert SQLiteStore(db_path=db_path).get(parent).child_id == child

    def test_second_follow_up_fails(self, runner: CliRunner, db_path: str) -> None:
        parent = _create(runner, db_path)
        _create(runner, db_path, "--parent", parent)
        result = _invoke(runner, db_path, "create", "--owner", OWNER, "--parent", parent)
        assert result.exit_code == 1
        assert "latest session" in result.output

    def test_foreign_parent_fails(self, runner: CliRunner, db_path: str) -> None:
        parent = _create(runner, db_path, owner="user-2")
        result = _invoke(runner, db_path, "create", "--owner", OWNER, "--parent", parent)
        assert result.exit_code == 1
        assert "Forbidden" in result.output

    def test_bad_json_is_usage_error(self, runner: CliRunner, db_path: str) -> None:
        result = _invoke(runner, db_path, "create", "--owner", OWNER, "--job-context", "{nope")
        assert result.exit_code == 2

    def test_owner_is_required(self, runner: CliRunner, db_path: str) -> None:
        result = _invoke(runner, db_path, "create")
        assert result.exit_code == 2


class TestReadCommands:
    def test_show_json(self, runner: CliRunner, db_path: str) -> None:
        session_id = _create(runner, db_path, "--persona", "Ava")
        result = _invoke(runner, db_path, "show", session_id, "--owner", OWNER, "--json-output")
        assert result.exit_code == 0
        assert json.loads(result.output)["persona"] == "Ava"

    def test_show_missing(self, runner: CliRunner, db_path: str) -> None:
        result = _invoke(runner, db_path, "show", "ghost", "--owner", OWNER)
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_list_empty(self, runner: CliRunner, db_path: str) -> None:
        result = _invoke(runner, db_path, "list", "--owner", OWNER)
        assert result.exit_code == 0
        assert "No sessions found" in result.output

    def test_list_counts(self, runner: CliRunner, db_path: str) -> None:
        _create(runner, db_path)
        _create(runner, db_path)
        result = _invoke(runner, db_path, "list", "--owner", OWNER)
        assert result.exit_code == 0
        assert "Showing 2 of 2 sessions" in result.output

    def test_list_renders_non_mapping_payload(self, runner: CliRunner, db_path: str) -> None:
        SessionChainService(SQLiteStore(db_path=db_path)).create_session(
            {"job_context": "Backend engineer", "status": 3}, OWNER
        )
        result = _invoke(runner, db_path, "list", "--owner", OWNER)
        assert result.exit_code == 0, result.output
        assert "Showing 1 of 1 sessions" in result.output

    def test_spaces(self, runner: CliRunner, db_path: str) -> None:
        root = _create(runner, db_path)
        _create(runner, db_path, "--parent", root)
        result = _invoke(runner, db_path, "spaces", "--owner", OWNER)
        assert result.exit_code == 0
        assert "space" in result.output

    def test_chain_reports_warnings(self, runner: CliRunner, db_path: str) -> None:
        root = _create(runner, db_path)
        middle = _create(runner, db_path, "--parent", root)
        head = _create(runner, db_path, "--parent", middle)
        _invoke(runner, db_path, "delete", middle, "--owner", OWNER)
        result = _invoke(runner, db_path, "chain", head, "--owner", OWNER)
        assert result.exit_code == 0
        assert "Warning" in result.output


class TestUpdateCommand:
    def test_update_sets_field(self, runner: CliRunner, db_path: str) -> None:
        session_id = _create(runner, db_path)
        result = _invoke(
            runner, db_path, "update", session_id, "--owner", OWNER, "--set", "status=completed"
        )
        assert result.exit_code == 0
        assert SQLiteStore(db_path=db_path).get(session_id).status == "completed"

    def test_update_rejects_chain_field(self, runner: CliRunner, db_path: str) -> None:
        session_id = _create(runner, db_path)
        result = _invoke(
            runner, db_path, "update", session_id, "--owner", OWNER, "--set", "child_id=x"
        )
        assert result.exit_code == 1
        assert SQLiteStore(db_path=db_path).get(session_id).child_id is None


class TestDeleteCommands:
    def test_cascade_delete(self, runner: CliRunner, db_path: str) -> None:
        root = _create(runner, db_path)
        child = _create(runner, db_path, "--parent", root)
        result = _invoke(runner, db_path, "delete", child, "--owner", OWNER, "--cascade")
        assert result.exit_code == 0
        assert "Deleted 2 session(s)" in result.output
        assert SQLiteStore(db_path=db_path).list_for_owner(OWNER) == []

    def test_single_delete(self, runner: CliRunner, db_path: str) -> None:
        root = _create(runner, db_path)
        _create(runner, db_path, "--parent", root)
        result = _invoke(runner, db_path, "delete", root, "--owner", OWNER)
        assert "Deleted 1 session(s)" in result.output
        assert len(SQLiteStore(db_path=db_path).list_for_owner(OWNER)) == 1

    def test_delete_foreign(self, runner: CliRunner, db_path: str) -> None:
        root = _create(runner, db_path, owner="user-2")
        result = _invoke(runner, db_path, "delete", root, "--owner", OWNER, "--cascade")
        assert result.exit_code == 1

    def test_abandon_reopens_parent(self, runner: CliRunner, db_path: str) -> None:
        root = _create(runner, db_path)
        child = _create(runner, db_path, "--parent", root)
        result = _invoke(runner, db_path, "abandon", child, "--owner", OWNER)
        assert result.exit_code == 0
        assert SQLiteStore(db_path=db_path).get(root).child_id is None


class TestExportCommand:
    def test_json_export_is_ordered(self, runner: CliRunner, db_path: str) -> None:
        root = _create(runner, db_path)
        child = _create(runner, db_path, "--parent", root)
        result = _invoke(runner, db_path, "export", child, "--owner", OWNER)
        assert result.exit_code == 0
        assert [item["id"] for item in json.loads(result.output)] == [root, child]

    def test_yaml_export(self, runner: CliRunner, db_path: str) -> None:
        root = _create(runner, db_path)
        result = _invoke(runner, db_path, "export", root, "--owner", OWNER, "--format", "yaml")
        assert result.exit_code == 0
        assert yaml.safe_load(result.output)[0]["id"] == root


class TestConfigOption:
    def test_config_file_is_loaded(
        self, runner: CliRunner, db_path: str, tmp_path: Path
    ) -> None:
        config = tmp_path / "chain.yaml"
        config.write_text("repair_dangling_links: true\n", encoding="utf-8")
        root = _create(runner, db_path)
        child = _create(runner, db_path, "--parent", root)
        result = runner.invoke(
            cli,
            ["session", "--db-path", db_path, "--config", str(config),
             "delete", child, "--owner", OWNER],
        )
        assert result.exit_code == 0
        assert SQLiteStore(db_path=db_path).get(root).child_id is None
