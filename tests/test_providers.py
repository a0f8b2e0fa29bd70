"""Tests for agent CLI command and environment construction."""

from __future__ import annotations

from pathlib import Path

import pytest

from switchboard.agent.providers import build_command, build_env
from switchboard.config.models import ProviderConfig, ProvidersConfig, ToolSettings
from switchboard.mcp import McpDetection

_PROVIDERS = ProvidersConfig()


class TestBuildCommandClaude:
    def test_fresh_session(self) -> None:
        argv = build_command(_PROVIDERS.claude, prompt="hello")
        # Prompt goes to stdin, never argv.
        assert argv == [
            "claude", "--output-format", "stream-json", "--verbose", "-p",
        ]

    def test_resume(self) -> None:
        argv = build_command(_PROVIDERS.claude, resume_from="abc-123")
        assert argv[4:6] == ["--resume", "abc-123"]

    def test_mcp_config_path(self) -> None:
        mcp = McpDetection(has_servers=True, config_path=Path("/home/u/.claude.json"))
        argv = build_command(_PROVIDERS.claude, mcp=mcp)
        assert "--mcp-config" in argv
        assert argv[argv.index("--mcp-config") + 1] == "/home/u/.claude.json"

    def test_no_mcp_flag_without_servers(self) -> None:
        argv = build_command(_PROVIDERS.claude, mcp=McpDetection(has_servers=False))
        assert "--mcp-config" not in argv

    def test_tools_and_model(self) -> None:
        tools = ToolSettings(
            allowed_tools=["Read", "Bash(git log:*)"],
            disallowed_tools=["Write"],
            skip_permissions=True,
        )
        argv = build_command(_PROVIDERS.claude, tools=tools, model="sonnet")
        assert argv[-1] == "-p"
        joined = " ".join(argv)
        assert "--model sonnet" in joined
        assert "--allowedTools Read --allowedTools Bash(git log:*)" in joined
        assert "--disallowedTools Write" in joined
        assert "--dangerously-skip-permissions" in argv


class TestBuildCommandCursor:
    def test_prompt_on_argv(self) -> None:
        argv = build_command(_PROVIDERS.cursor, prompt="fix it")
        assert argv[0] == "cursor-agent"
        assert argv[-2:] == ["-p", "fix it"]

    def test_empty_prompt_omitted(self) -> None:
        argv = build_command(_PROVIDERS.cursor, prompt="")
        assert argv[-1] == "-p"

    def test_mcp_bare_flag(self) -> None:
        argv = build_command(_PROVIDERS.cursor, mcp=McpDetection(has_servers=True))
        assert "--approve-mcps" in argv

    def test_skip_permissions_force(self) -> None:
        argv = build_command(
            _PROVIDERS.cursor, tools=ToolSettings(allowed_tools=["x"], skip_permissions=True)
        )
        assert "--force" in argv
        # Cursor has no allowed-tools flag configured.
        assert "x" not in argv


class TestBuildEnv:
    def test_heap_cap_added(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NODE_OPTIONS", raising=False)
        env = build_env(ProviderConfig(command="x", node_heap_mb=1024))
        assert env["NODE_OPTIONS"] == "--max-old-space-size=1024"

    def test_heap_cap_appended(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NODE_OPTIONS", "--enable-source-maps")
        env = build_env(ProviderConfig(command="x", node_heap_mb=1024))
        assert env["NODE_OPTIONS"] == "--enable-source-maps --max-old-space-size=1024"

    def test_existing_heap_cap_kept(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NODE_OPTIONS", "--max-old-space-size=512")
        env = build_env(ProviderConfig(command="x", node_heap_mb=1024))
        assert env["NODE_OPTIONS"] == "--max-old-space-size=512"

    def test_no_cap(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NODE_OPTIONS", raising=False)
        assert "NODE_OPTIONS" not in build_env(ProviderConfig(command="x"))
