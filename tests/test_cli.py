"""Smoke tests for the Switchboard CLI."""

import json
import os
import signal
from pathlib import Path
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from switchboard import __version__
from switchboard.cli import cli
from switchboard.pidfile import write_pidfile


def test_help() -> None:
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Switchboard" in result.output
    for command in ("init", "serve", "stop", "mcp", "auth-check"):
        assert command in result.output


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"switchboard, version {__version__}" in result.output


def test_init_creates_config() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "Created switchboard.yaml" in result.output
        assert Path("switchboard.yaml").is_file()


def test_init_refuses_overwrite() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        runner.invoke(cli, ["init"])
        result = runner.invoke(cli, ["init"])
        assert result.exit_code != 0
        assert "already exists" in result.output
        assert runner.invoke(cli, ["init", "--force"]).exit_code == 0


def test_init_template_is_valid_config() -> None:
    from switchboard.config.parser import load_config

    runner = CliRunner()
    with runner.isolated_filesystem():
        runner.invoke(cli, ["init"])
        config = load_config(Path("switchboard.yaml"))
        assert config.server.port == 3001


def test_serve_flags() -> None:
    result = CliRunner().invoke(cli, ["serve", "--help"])
    assert result.exit_code == 0
    assert "--port" in result.output
    assert "--verbose" in result.output


def test_serve_missing_config_file_errors() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["serve", "-f", "missing.yaml"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


def test_serve_runs_uvicorn_and_cleans_pidfile() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        with patch("switchboard.commands.serve.uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--port", "4321"])
        assert result.exit_code == 0, result.output
        _, kwargs = run.call_args
        assert kwargs["port"] == 4321
        assert kwargs["host"] == "127.0.0.1"
        assert not Path(".switchboard/server.pid").exists()


def test_stop_no_server() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["stop"])
        assert result.exit_code == 1
        assert "No running server found" in result.output


def test_stop_stale_pidfile() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        Path(".switchboard").mkdir()
        Path(".switchboard/server.pid").write_text(
            json.dumps({"pid": 4_000_000, "url": "http://127.0.0.1:3001"})
        )
        with patch("switchboard.commands.stop.is_process_running", return_value=False):
            result = runner.invoke(cli, ["stop"])
        assert result.exit_code == 0
        assert "no longer running" in result.output
        assert not Path(".switchboard/server.pid").exists()


def test_stop_invalid_pidfile() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        Path(".switchboard").mkdir()
        Path(".switchboard/server.pid").write_text(json.dumps({"pid": 1}))
        result = runner.invoke(cli, ["stop"])
        assert result.exit_code == 1
        assert "Invalid pidfile" in result.output
        assert not Path(".switchboard/server.pid").exists()


def test_stop_refuses_reused_pid() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_pidfile("127.0.0.1", 3001)
        with (
            patch("switchboard.commands.stop.is_process_running", return_value=True),
            patch("switchboard.commands.stop.is_server_responding", return_value=False),
            patch("switchboard.commands.stop.os.kill") as kill,
        ):
            result = runner.invoke(cli, ["stop"])
        assert result.exit_code == 1
        assert "may have been reused" in result.output
        kill.assert_not_called()
        assert Path(".switchboard/server.pid").exists()


def test_stop_signals_verified_server() -> None:
    runner = CliRunner()
    with runner.isolated_filesystem():
        write_pidfile("0.0.0.0", 3001)
        with (
            patch(
                "switchboard.commands.stop.is_process_running", side_effect=[True, False]
            ),
            patch("switchboard.commands.stop.is_server_responding", return_value=True),
            patch("switchboard.commands.stop.os.kill") as kill,
        ):
            result = runner.invoke(cli, ["stop"])
        assert result.exit_code == 0, result.output
        assert "Stopping server at http://127.0.0.1:3001" in result.output
        assert "Server stopped." in result.output
        kill.assert_called_once_with(os.getpid(), signal.SIGTERM)
        assert not Path(".switchboard/server.pid").exists()


def test_mcp_without_config(tmp_path: Path) -> None:
    with patch("pathlib.Path.home", return_value=tmp_path):
        result = CliRunner().invoke(cli, ["mcp", "--dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "No Claude config found" in result.output
    assert "claude: no MCP servers" in result.output
    assert "cursor: no MCP servers" in result.output


def test_auth_check_success() -> None:
    runner = CliRunner()
    with (
        runner.isolated_filesystem(),
        patch("switchboard.auth.is_available", return_value=True),
        patch("switchboard.auth.authenticate", AsyncMock(return_value=True)),
        patch("switchboard.auth.get_user_info", AsyncMock(return_value=None)),
    ):
        result = runner.invoke(cli, ["auth-check", "alice"], input="pw\n")
    assert result.exit_code == 0, result.output
    assert "Authenticated alice." in result.output


def test_auth_check_failure() -> None:
    runner = CliRunner()
    with (
        runner.isolated_filesystem(),
        patch("switchboard.auth.is_available", return_value=True),
        patch("switchboard.auth.authenticate", AsyncMock(return_value=False)),
    ):
        result = runner.invoke(cli, ["auth-check", "alice", "--password", "bad"])
    assert result.exit_code == 1
    assert "Authentication failed." in result.output
