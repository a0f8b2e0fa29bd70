"""switchboard mcp — show which MCP servers the agent CLIs will see."""

from __future__ import annotations

from pathlib import Path

import click

from switchboard.mcp import detect_mcp, get_all_mcp_servers


@click.command()
@click.option(
    "-d",
    "--dir",
    "working_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Project directory to check (default: current directory).",
)
def mcp(working_dir: str | None) -> None:
    """List MCP servers configured for Claude and Cursor."""
    cwd = Path(working_dir).resolve() if working_dir else Path.cwd()
    servers = get_all_mcp_servers()

    if not servers.has_config:
        click.echo("No Claude config found (~/.claude.json or ~/.claude/settings.json)")
    else:
        click.echo(f"Claude config: {servers.config_path}")
        user = ", ".join(servers.user_servers) or "(none)"
        click.echo(f"  User servers: {user}")
        for project, names in sorted(servers.project_servers.items()):
            click.echo(f"  {project}: {', '.join(names) or '(none)'}")

    click.echo()
    click.echo(f"For {cwd}:")
    for provider in ("claude", "cursor"):
        detection = detect_mcp(provider, cwd)
        if detection.has_servers:
            source = f" ({detection.config_path})" if detection.config_path else ""
            click.echo(f"  {provider}: enabled{source}")
        else:
            click.echo(f"  {provider}: no MCP servers")
