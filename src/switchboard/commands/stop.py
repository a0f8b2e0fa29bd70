"""switchboard stop — signal a running server to shut down gracefully."""

from __future__ import annotations

import contextlib
import os
import signal
import time

import click

from switchboard.pidfile import (
    InvalidPidfileError,
    is_process_running,
    is_server_responding,
    read_pidfile,
    remove_pidfile,
)


@click.command()
@click.option(
    "--timeout",
    type=float,
    default=10.0,
    show_default=True,
    help="Seconds to wait before sending SIGKILL.",
)
@click.option(
    "--force",
    is_flag=True,
    help="Signal the recorded PID even if no server answers at its URL.",
)
def stop(timeout: float, force: bool) -> None:
    """Signal a running switchboard server to shut down gracefully."""
    try:
        record = read_pidfile()
    except InvalidPidfileError as exc:
        click.echo(f"Invalid pidfile: {exc}")
        remove_pidfile()
        raise SystemExit(1) from None

    if record is None:
        click.echo("No running server found (no pidfile at .switchboard/server.pid)")
        raise SystemExit(1)

    pid = record.pid
    if not is_process_running(pid):
        click.echo(
            f"Server at {record.url} (PID {pid}) is no longer running. "
            "Cleaning up stale pidfile."
        )
        remove_pidfile()
        raise SystemExit(0)

    if not is_server_responding(record):
        if not force:
            click.echo(
                f"PID {pid} is running but no switchboard server answers at "
                f"{record.url}. The PID may have been reused; "
                "pass --force to signal it anyway."
            )
            raise SystemExit(1)
        click.echo(f"No server answers at {record.url}; signalling PID {pid} anyway.")

    click.echo(f"Stopping server at {record.url} (PID {pid})...")

    try:
        os.kill(pid, signal.SIGTERM)
    except PermissionError:
        click.echo(f"Permission denied: cannot signal PID {pid}")
        raise SystemExit(1) from None
    except ProcessLookupError:
        click.echo("Process already exited.")
        remove_pidfile()
        raise SystemExit(0) from None

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        time.sleep(0.1)
        if not is_process_running(pid):
            click.echo("Server stopped.")
            remove_pidfile()
            return

    click.echo(f"Server didn't exit within {timeout:.0f}s. Sending SIGKILL...")
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.kill(pid, signal.SIGKILL)

    remove_pidfile()
    click.echo("Server killed.")
