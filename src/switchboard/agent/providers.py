"""Command-line construction for the supported agent CLIs."""

from __future__ import annotations

import os

from switchboard.config.models import ProviderConfig, ToolSettings
from switchboard.mcp import McpDetection


def build_command(
    config: ProviderConfig,
    *,
    prompt: str = "",
    resume_from: str | None = None,
    mcp: McpDetection | None = None,
    tools: ToolSettings | None = None,
    model: str | None = None,
) -> list[str]:
    """Return the argv for one agent CLI invocation.

    Structured streaming output flags always come first, then resume, MCP,
    model and tool flags, and finally the print-mode flag (followed by the
    prompt itself when the provider takes it on argv).
    """
    args = [config.command, *config.base_args]

    if resume_from:
        args.extend([config.resume_flag, resume_from])

    if mcp is not None and mcp.has_servers and config.mcp_flag:
        if config.mcp_mode == "config" and mcp.config_path is not None:
            args.extend([config.mcp_flag, str(mcp.config_path)])
        elif config.mcp_mode == "flag":
            args.append(config.mcp_flag)

    if model and config.model_flag:
        args.extend([config.model_flag, model])

    if tools is not None:
        if config.allowed_tools_flag:
            for tool in tools.allowed_tools:
                args.extend([config.allowed_tools_flag, tool])
        if config.disallowed_tools_flag:
            for tool in tools.disallowed_tools:
                args.extend([config.disallowed_tools_flag, tool])
        if tools.skip_permissions and config.skip_permissions_flag:
            args.append(config.skip_permissions_flag)

    args.append(config.prompt_flag)
    if config.prompt_via == "argv" and prompt:
        args.append(prompt)

    return args


def build_env(config: ProviderConfig) -> dict[str, str]:
    """Return the environment for a CLI subprocess.

    Caps the Node.js V8 heap when configured so a single runaway agent
    cannot take the whole host down.
    """
    env = dict(os.environ)
    if config.node_heap_mb is None:
        return env
    node_opts = env.get("NODE_OPTIONS", "")
    if "--max-old-space-size" not in node_opts:
        separator = " " if node_opts else ""
        heap_flag = f"--max-old-space-size={config.node_heap_mb}"
        env["NODE_OPTIONS"] = f"{node_opts}{separator}{heap_flag}"
    return env
