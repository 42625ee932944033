"""Tests for the command line interface."""
from __future__ import annotations

import pytest
from typer.testing import CliRunner

import cli

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


def test_server_runs_the_api_app(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))

    result = runner.invoke(cli.app, ["server", "--host", "0.0.0.0", "--port", "9000"])

    assert result.exit_code == 0
    assert "Starting API server on 0.0.0.0:9000" in result.output
    assert calls == [("api.app:app", {"host": "0.0.0.0", "port": 9000, "reload": False, "log_config": None})]


def test_server_defaults_come_from_settings(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda target, **kwargs: calls.append(kwargs))

    result = runner.invoke(cli.app, ["server"])

    assert result.exit_code == 0
    assert calls[0]["host"] == cli.SETTINGS.api_host
    assert calls[0]["port"] == cli.SETTINGS.api_port


def test_init_db_reports_created_tables(monkeypatch):
    monkeypatch.setattr(
        "core.db.init_db",
        lambda: {"status": "success", "tables_created": ["leads", "tasks"], "tables_existing": [], "warnings": []},
    )

    result = runner.invoke(cli.app, ["init-db"])

    assert result.exit_code == 0
    assert "Created 2 table(s)" in result.output


def test_init_db_failure_exits_nonzero(monkeypatch):
    monkeypatch.setattr(
        "core.db.init_db",
        lambda: {"status": "error", "error": "disk I/O error", "tables_created": [], "warnings": []},
    )

    result = runner.invoke(cli.app, ["init-db"])

    assert result.exit_code == 1
    assert "disk I/O error" in result.output


def test_info():
    result = runner.invoke(cli.app, ["info"])

    assert result.exit_code == 0
    assert "Enforce Transitions: False" in result.output
