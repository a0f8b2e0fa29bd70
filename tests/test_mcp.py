"""Tests for MCP server detection."""

from __future__ import annotations

import json
from pathlib import Path

from switchboard.mcp import detect_mcp, get_all_mcp_servers


def _write_json(path: Path, data: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


class TestGetAllMcpServers:
    def test_no_config(self, tmp_path: Path) -> None:
        servers = get_all_mcp_servers(home=tmp_path)
        assert servers.has_config is False
        assert servers.to_dict() == {
            "hasConfig": False,
            "userServers": [],
            "projectServers": {},
        }

    def test_reads_claude_json(self, tmp_path: Path) -> None:
        path = _write_json(
            tmp_path / ".claude.json",
            {
                "mcpServers": {"github": {}, "fs": {}},
                "projects": {
                    "/work/app": {"mcpServers": {"db": {}}},
                    "/work/other": {"allowedTools": []},
                },
            },
        )
        servers = get_all_mcp_servers(home=tmp_path)
        assert servers.has_config is True
        assert servers.user_servers == ["github", "fs"]
        assert servers.project_servers == {"/work/app": ["db"]}
        assert servers.config_path == path

    def test_falls_back_to_settings_json(self, tmp_path: Path) -> None:
        (tmp_path / ".claude.json").write_text("{ not json")
        path = _write_json(
            tmp_path / ".claude" / "settings.json", {"mcpServers": {"x": {}}}
        )
        servers = get_all_mcp_servers(home=tmp_path)
        assert servers.user_servers == ["x"]
        assert servers.config_path == path


class TestDetectMcp:
    def test_claude_user_servers(self, tmp_path: Path) -> None:
        path = _write_json(tmp_path / ".claude.json", {"mcpServers": {"a": {}}})
        detection = detect_mcp("claude", tmp_path / "proj", home=tmp_path)
        assert detection.has_servers is True
        assert detection.config_path == path

    def test_claude_project_servers_only(self, tmp_path: Path) -> None:
        project = tmp_path / "proj"
        _write_json(
            tmp_path / ".claude.json",
            {"projects": {str(project): {"mcpServers": {"db": {}}}}},
        )
        assert detect_mcp("claude", project, home=tmp_path).has_servers is True
        assert detect_mcp("claude", tmp_path / "other", home=tmp_path).has_servers is False

    def test_claude_config_without_servers(self, tmp_path: Path) -> None:
        _write_json(tmp_path / ".claude.json", {"mcpServers": {}})
        detection = detect_mcp("claude", tmp_path, home=tmp_path)
        assert detection.has_servers is False
        assert detection.config_path is None

    def test_cursor_project_config_wins(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        project = tmp_path / "proj"
        _write_json(home / ".cursor" / "mcp.json", {"mcpServers": {"global": {}}})
        local = _write_json(project / ".cursor" / "mcp.json", {"mcpServers": {"l": {}}})
        detection = detect_mcp("cursor", project, home=home)
        assert detection.config_path == local

    def test_cursor_global_fallback(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        glob = _write_json(home / ".cursor" / "mcp.json", {"mcpServers": {"g": {}}})
        detection = detect_mcp("cursor", tmp_path / "proj", home=home)
        assert detection.has_servers is True
        assert detection.config_path == glob

    def test_cursor_none(self, tmp_path: Path) -> None:
        assert detect_mcp("cursor", tmp_path, home=tmp_path).has_servers is False
