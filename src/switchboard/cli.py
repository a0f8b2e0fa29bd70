"""Root CLI group and version flag."""

import signal

import click

# Keep click.echo from dying on a closed stdout pipe.
if hasattr(signal, "SIGPIPE"):
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)

from switchboard import __version__
from switchboard.commands.auth_check import auth_check
from switchboard.commands.init import init
from switchboard.commands.mcp import mcp
from switchboard.commands.serve import serve
from switchboard.commands.stop import stop


@click.group()
@click.version_option(version=__version__, prog_name="switchboard")
def cli() -> None:
    """Switchboard — session broker for the Claude and Cursor agent CLIs."""


cli.add_command(init)
cli.add_command(serve)
cli.add_command(stop)
cli.add_command(mcp)
cli.add_command(auth_check)
