"""MCP detector — find configured Model Context Protocol servers per provider."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class McpServers:
    """All MCP servers found in the Claude CLI's config."""

    has_config: bool
    user_servers: list[str] = field(default_factory=list)
    project_servers: dict[str, list[str]] = field(default_factory=dict)
    config_path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasConfig": self.has_config,
            "userServers": self.user_servers,
            "projectServers": self.project_servers,
        }


@dataclass(frozen=True)
class McpDetection:
    """Whether a session should enable MCP tools, and from which file."""

    has_servers: bool
    config_path: Path | None = None


def _claude_config_paths(home: Path) -> list[Path]:
    return [home / ".claude.json", home / ".claude" / "settings.json"]


def _read_json(path: Path) -> dict[str, Any] | None:
    """Return the JSON object in *path*, or None if missing or invalid."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        logger.debug("ignoring MCP config %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


def _server_names(section: Any) -> list[str]:
    if isinstance(section, dict):
        return list(section)
    return []


def get_all_mcp_servers(home: Path | None = None) -> McpServers:
    """Read the Claude CLI config and list user and per-project MCP servers.

    ``~/.claude.json`` is tried first, then ``~/.claude/settings.json``; the
    first readable JSON object wins.
    """
    home = home if home is not None else Path.home()
    for path in _claude_config_paths(home):
        data = _read_json(path)
        if data is None:
            continue
        projects: dict[str, list[str]] = {}
        raw_projects = data.get("projects")
        if isinstance(raw_projects, dict):
            for project_path, project in raw_projects.items():
                if isinstance(project, dict) and "mcpServers" in project:
                    projects[project_path] = _server_names(project["mcpServers"])
        return McpServers(
            has_config=True,
            user_servers=_server_names(data.get("mcpServers")),
            project_servers=projects,
            config_path=path,
        )
    return McpServers(has_config=False)


def detect_mcp(
    provider: str,
    working_dir: Path | str,
    home: Path | None = None,
) -> McpDetection:
    """Check whether *provider* has MCP servers configured for *working_dir*."""
    home = home if home is not None else Path.home()
    working_dir = Path(working_dir)

    if provider == "claude":
        servers = get_all_mcp_servers(home)
        if not servers.has_config:
            return McpDetection(has_servers=False)
        project = servers.project_servers.get(str(working_dir), [])
        found = bool(servers.user_servers or project)
        return McpDetection(
            has_servers=found,
            config_path=servers.config_path if found else None,
        )

    if provider == "cursor":
        for path in (
            working_dir / ".cursor" / "mcp.json",
            home / ".cursor" / "mcp.json",
        ):
            data = _read_json(path)
            if data is not None and _server_names(data.get("mcpServers")):
                return McpDetection(has_servers=True, config_path=path)
        return McpDetection(has_servers=False)

    return McpDetection(has_servers=False)


def has_mcp_servers(provider: str, working_dir: Path | str) -> bool:
    """Boolean shorthand for :func:`detect_mcp`."""
    return detect_mcp(provider, working_dir).has_servers
