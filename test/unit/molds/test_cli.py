"""CLI tests for the mold registry Typer commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from molds import cli
from services import database

runner = CliRunner()


@pytest.fixture()
def database_url(tmp_path: Path) -> Generator[str, None, None]:
    """Provide a migrated sqlite database file for CLI commands."""
    url = f"sqlite:///{tmp_path / 'molds.db'}"
    result = _invoke(url, "init-db")
    assert result.exit_code == 0, result.output
    yield url
    database.dispose_engines()
    logging.getLogger().handlers.clear()


def _invoke(url: str, *args: str):
    """Invoke the CLI quietly against the given database."""
    return runner.invoke(
        cli.app,
        ["--database-url", url, "--log-level", "WARNING", *args],
    )


def _invoke_json(url: str, *args: str):
    """Invoke the CLI with JSON output and decode stdout."""
    result = _invoke(url, "--json", *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_create_prints_audit_entry(database_url: str) -> None:
    """Create reports the appended create entry."""
    payload = _invoke_json(
        database_url,
        "create",
        "INJ",
        "A1",
        "Bracket Mold",
        "--max-shots",
        "50",
    )

    assert payload["action"] == "create"
    assert payload["mold_id"] == "INJ-A1"
    assert payload["note"] == "new mold registered"


def test_lifecycle_flow_through_cli(database_url: str) -> None:
    """Create, checkout and a full return end in maintenance with three entries."""
    _invoke_json(database_url, "create", "INJ", "A1", "Bracket Mold", "--max-shots", "50")
    checkout = _invoke_json(
        database_url,
        "checkout",
        "INJ-A1",
        "--operator",
        "bob",
        "--machine",
        "L2",
    )
    returned = _invoke_json(database_url, "return", "INJ-A1", "--shots", "50")

    assert checkout["operator_name"] == "bob"
    assert returned["shots_added"] == 50

    molds = _invoke_json(database_url, "list")
    assert len(molds) == 1
    assert molds[0]["status"] == "maintenance"
    assert molds[0]["current_shots"] == 50
    assert molds[0]["operator_name"] is None

    logs = _invoke_json(database_url, "logs", "--mold-id", "INJ-A1")
    assert [entry["action"] for entry in logs] == ["return", "checkout", "create"]


def test_duplicate_create_exits_with_domain_error(database_url: str) -> None:
    """Id collisions map to the domain error exit code."""
    _invoke(database_url, "create", "INJ", "A1", "Bracket Mold", "--max-shots", "50")

    result = _invoke(database_url, "create", "INJ", "A1", "Other", "--max-shots", "5")

    assert result.exit_code == cli.DOMAIN_ERROR_EXIT_CODE
    assert "mold id already exists: INJ-A1" in result.output


def test_invalid_max_shots_exits_with_validation_error(database_url: str) -> None:
    """Non-positive lifetimes are rejected before anything is stored."""
    result = _invoke(database_url, "create", "INJ", "A1", "Bracket", "--max-shots", "0")

    assert result.exit_code == cli.VALIDATION_ERROR_EXIT_CODE
    assert "max_shots" in result.output
    assert _invoke_json(database_url, "list") == []


def test_wrong_state_strict_and_lenient(database_url: str) -> None:
    """Strict mode fails wrong-state calls; lenient mode reports no change."""
    _invoke(database_url, "create", "INJ", "A1", "Bracket Mold", "--max-shots", "50")

    strict = _invoke(database_url, "--strict", "maintain", "INJ-A1")
    lenient = _invoke(database_url, "--lenient", "maintain", "INJ-A1")

    assert strict.exit_code == cli.DOMAIN_ERROR_EXIT_CODE
    assert "maintenance not allowed for mold INJ-A1 while status is available" in strict.output
    assert lenient.exit_code == 0
    assert cli.NO_CHANGE in lenient.stdout
    assert len(_invoke_json(database_url, "logs")) == 1


def test_summary_and_human_list(database_url: str) -> None:
    """Summary and list render readable text."""
    _invoke(database_url, "create", "INJ", "A1", "Bracket Mold", "--max-shots", "50")
    _invoke(database_url, "create", "DIE", "B2", "Stamping Die", "--max-shots", "20")
    _invoke(database_url, "checkout", "DIE-B2", "--operator", "alice", "--machine", "M1")

    summary = _invoke(database_url, "summary")
    listing = _invoke(database_url, "list", "--search", "die")

    assert summary.exit_code == 0
    assert "Total: 2" in summary.stdout
    assert "In use: 1" in summary.stdout
    assert listing.stdout.strip() == (
        "- DIE-B2 [in-use] Stamping Die (0/20 shots) held by alice on M1"
    )


def test_delete_keeps_logs_visible(database_url: str) -> None:
    """Deleted molds still appear in the audit log."""
    _invoke(database_url, "create", "INJ", "A1", "Bracket Mold", "--max-shots", "50")
    _invoke(database_url, "delete", "INJ-A1")

    assert _invoke_json(database_url, "list") == []
    logs = _invoke_json(database_url, "logs", "--limit", "1")
    assert logs[0]["action"] == "delete"
    assert logs[0]["mold_id"] == "INJ-A1"


def test_storage_failure_exits_with_persistence_error(tmp_path: Path) -> None:
    """Unreachable databases map to the persistence exit code."""
    url = f"sqlite:///{tmp_path / 'missing' / 'molds.db'}"

    result = _invoke(url, "list")
    database.dispose_engines()
    logging.getLogger().handlers.clear()

    assert result.exit_code == cli.PERSISTENCE_ERROR_EXIT_CODE
    assert "error:" in result.output
