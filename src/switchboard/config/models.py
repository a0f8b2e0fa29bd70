"""Pydantic v2 models for switchboard.yaml configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from switchboard.constants import DEFAULT_AUTH_TIMEOUT


class ToolSettings(BaseModel):
    """Which agent tools are allowed, and whether to skip permission prompts."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    allowed_tools: list[str] = Field(
        default_factory=list,
        alias="allowedTools",
        description="Tools the agent may use without asking",
    )
    disallowed_tools: list[str] = Field(
        default_factory=list,
        alias="disallowedTools",
        description="Tools the agent must never use",
    )
    skip_permissions: bool = Field(
        default=False,
        alias="skipPermissions",
        description="Bypass the CLI's interactive permission checks",
    )


class ProviderConfig(BaseModel):
    """How to invoke one agent CLI."""

    model_config = ConfigDict(extra="forbid")

    command: str = Field(description="Executable name or path")
    base_args: list[str] = Field(
        default_factory=lambda: ["--output-format", "stream-json"],
        description="Flags that select structured streaming output",
    )
    prompt_via: Literal["argv", "stdin"] = Field(
        default="argv",
        description="Pass the prompt as an argument or pipe it on stdin",
    )
    prompt_flag: str = Field(default="-p", description="Print/headless mode flag")
    resume_flag: str = Field(default="--resume", description="Resume flag")
    model_flag: str | None = Field(default="--model", description="Model flag")
    mcp_mode: Literal["config", "flag", "none"] = Field(
        default="none",
        description="'config' passes the detected config path, 'flag' a bare flag",
    )
    mcp_flag: str | None = Field(default=None, description="MCP enabling flag")
    allowed_tools_flag: str | None = Field(default=None)
    disallowed_tools_flag: str | None = Field(default=None)
    skip_permissions_flag: str | None = Field(default=None)
    keep_stdin_open: bool = Field(
        default=False,
        description="Keep stdin open after the prompt so follow-up input works",
    )
    node_heap_mb: int | None = Field(
        default=None,
        ge=256,
        description="Cap the V8 heap of Node-based CLIs (MB)",
    )

    @model_validator(mode="after")
    def _validate_mcp(self) -> ProviderConfig:
        if self.mcp_mode != "none" and not self.mcp_flag:
            msg = f"mcp_mode '{self.mcp_mode}' requires 'mcp_flag'"
            raise ValueError(msg)
        return self


def _default_claude() -> ProviderConfig:
    return ProviderConfig(
        command="claude",
        base_args=["--output-format", "stream-json", "--verbose"],
        prompt_via="stdin",
        mcp_mode="config",
        mcp_flag="--mcp-config",
        allowed_tools_flag="--allowedTools",
        disallowed_tools_flag="--disallowedTools",
        skip_permissions_flag="--dangerously-skip-permissions",
        node_heap_mb=2048,
    )


def _default_cursor() -> ProviderConfig:
    return ProviderConfig(
        command="cursor-agent",
        base_args=["--output-format", "stream-json"],
        prompt_via="argv",
        mcp_mode="flag",
        mcp_flag="--approve-mcps",
        skip_permissions_flag="--force",
    )


class ProvidersConfig(BaseModel):
    """Per-provider CLI settings."""

    model_config = ConfigDict(extra="forbid")

    claude: ProviderConfig = Field(default_factory=_default_claude)
    cursor: ProviderConfig = Field(default_factory=_default_cursor)

    def for_provider(self, provider: str) -> ProviderConfig:
        if provider == "claude":
            return self.claude
        if provider == "cursor":
            return self.cursor
        msg = f"Unknown provider '{provider}'"
        raise ValueError(msg)


class ServerConfig(BaseModel):
    """HTTP/WebSocket listener settings."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001, ge=1, le=65535)


class AuthConfig(BaseModel):
    """System authentication settings."""

    model_config = ConfigDict(extra="forbid")

    timeout: float = Field(
        default=DEFAULT_AUTH_TIMEOUT,
        gt=0,
        description="Hard limit per auth subprocess (seconds)",
    )
    strategies: list[Literal["su", "sudo"]] = Field(
        default_factory=lambda: ["su"],
        min_length=1,
        description="Strategies tried in order until one succeeds",
    )


class SwitchboardConfig(BaseModel):
    """Top-level switchboard.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="1", description="Config schema version")
    strict: bool = Field(
        default=False,
        description="Raise on session lifecycle contract violations",
    )
    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
