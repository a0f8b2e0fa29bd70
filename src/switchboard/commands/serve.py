"""switchboard serve — run the HTTP/WebSocket server."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import click
import uvicorn

from switchboard.config.parser import ConfigError, load_config
from switchboard.pidfile import remove_pidfile, write_pidfile
from switchboard.server.app import create_app

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


@click.command()
@click.option(
    "-f", "--file", "config_file", type=click.Path(), help="Config file path."
)
@click.option("--host", type=str, default=None, help="Override server.host.")
@click.option("--port", type=int, default=None, help="Override server.port.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def serve(
    config_file: str | None,
    host: str | None,
    port: int | None,
    verbose: bool,
) -> None:
    """Serve agent sessions to the web UI."""
    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=_LOG_FORMAT)

    bind_host = host or config.server.host
    bind_port = port if port is not None else config.server.port

    click.echo(f"\n  Switchboard -- http://{bind_host}:{bind_port}")
    click.echo(f"  Providers: claude ({config.providers.claude.command}), "
               f"cursor ({config.providers.cursor.command})")
    click.echo()

    app = create_app(config)
    write_pidfile(bind_host, bind_port)
    try:
        uvicorn.run(
            app,
            host=bind_host,
            port=bind_port,
            log_level="debug" if verbose else "info",
        )
    finally:
        remove_pidfile(os.getpid())
