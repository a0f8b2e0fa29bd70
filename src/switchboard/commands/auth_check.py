"""switchboard auth-check — verify a system account the way the web UI does."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from switchboard import auth
from switchboard.config.parser import ConfigError, load_config


@click.command("auth-check")
@click.argument("username")
@click.option(
    "-f", "--file", "config_file", type=click.Path(), help="Config file path."
)
@click.password_option(confirmation_prompt=False)
def auth_check(username: str, config_file: str | None, password: str) -> None:
    """Check USERNAME's password with the configured auth strategies."""
    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    if not auth.is_available():
        click.echo("Error: neither su nor sudo is available on this system", err=True)
        raise SystemExit(1)

    strategies = auth.build_strategies(config.auth.strategies, config.auth.timeout)
    if not asyncio.run(auth.authenticate(username, password, strategies)):
        click.echo("Authentication failed.", err=True)
        raise SystemExit(1)

    info = asyncio.run(auth.get_user_info(username, timeout=config.auth.timeout))
    click.echo(f"Authenticated {username}.")
    if info is not None:
        click.echo(f"  uid={info.uid} gid={info.gid} home={info.home} shell={info.shell}")
