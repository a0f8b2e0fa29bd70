"""switchboard init — scaffold a switchboard.yaml in the current directory."""

from __future__ import annotations

from pathlib import Path

import click

from switchboard.config.parser import DEFAULT_CONFIG_NAME

TEMPLATE_YAML = """\
# Switchboard configuration
version: "1"

# Where the web UI connects
server:
  host: 127.0.0.1
  port: 3001

# Raise instead of logging when a temporary session id cannot be replaced
strict: false

# System-account login for the web UI (strategies are tried in order)
auth:
  timeout: 5.0
  strategies: [su]

# Default tool permissions for new sessions (clients may override)
tools:
  allowed_tools: []
  disallowed_tools: []
  skip_permissions: false

# Agent CLIs
providers:
  claude:
    command: claude
  cursor:
    command: cursor-agent
"""


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help=f"Overwrite existing {DEFAULT_CONFIG_NAME} if it exists.",
)
def init(force: bool) -> None:
    """Scaffold a new switchboard.yaml in the current directory."""
    config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if config_path.exists() and not force:
        raise click.ClickException(
            f"{DEFAULT_CONFIG_NAME} already exists. Use --force to overwrite."
        )

    try:
        config_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot write {DEFAULT_CONFIG_NAME}: {exc}") from exc
    click.echo(f"  Created {DEFAULT_CONFIG_NAME}")

    click.echo()
    click.echo("Next steps:")
    click.echo(f"  1. Edit {DEFAULT_CONFIG_NAME} to point at your agent CLIs")
    click.echo("  2. Run `switchboard serve` to start the server")
