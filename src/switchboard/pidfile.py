"""Server record on disk, so ``switchboard stop`` can find and verify a server.

``switchboard serve`` writes a :class:`ServerRecord` (PID, base URL, start
time, version) to ``.switchboard/server.pid`` relative to the working
directory; ``stop`` must be run from the same directory.  Because PIDs are
reused, ``stop`` confirms the record against the server's ``/api/health``
endpoint before signalling anything.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

import httpx

from switchboard import __version__
from switchboard.agent.helpers import iso_timestamp, utc_now

PIDFILE_DIR = Path(".switchboard")
PIDFILE_NAME = "server.pid"

#: Maximum valid PID on most systems (Linux default PID_MAX).
PID_MAX = 4_194_304

#: Wildcard bind addresses are probed over loopback.
_WILDCARD_HOSTS = {"0.0.0.0": "127.0.0.1", "::": "[::1]", "": "127.0.0.1"}


class InvalidPidfileError(ValueError):
    """The pidfile exists but does not describe a server."""


@dataclass(frozen=True)
class ServerRecord:
    pid: int
    url: str
    started_at: str
    version: str

    @classmethod
    def for_current_process(cls, host: str, port: int) -> ServerRecord:
        probe_host = _WILDCARD_HOSTS.get(host, host)
        if ":" in probe_host and not probe_host.startswith("["):
            probe_host = f"[{probe_host}]"
        return cls(
            pid=os.getpid(),
            url=f"http://{probe_host}:{port}",
            started_at=iso_timestamp(utc_now()),
            version=__version__,
        )

    @classmethod
    def from_dict(cls, data: object) -> ServerRecord:
        if not isinstance(data, dict):
            raise InvalidPidfileError("pidfile is not a JSON object")
        pid = data.get("pid")
        if not isinstance(pid, int) or isinstance(pid, bool) or not 1 < pid <= PID_MAX:
            raise InvalidPidfileError("PID missing or out of range")
        url = data.get("url")
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            raise InvalidPidfileError("server URL missing")
        return cls(
            pid=pid,
            url=url,
            started_at=str(data.get("started_at", "")),
            version=str(data.get("version", "")),
        )


def write_pidfile(host: str, port: int) -> Path:
    """Record this process as the server bound to *host*:*port*."""
    PIDFILE_DIR.mkdir(parents=True, exist_ok=True)
    pidfile = PIDFILE_DIR / PIDFILE_NAME
    record = ServerRecord.for_current_process(host, port)
    pidfile.write_text(json.dumps(asdict(record)))
    return pidfile


def read_pidfile() -> ServerRecord | None:
    """Return the recorded server, or None if there is no pidfile.

    Raises :class:`InvalidPidfileError` if the file cannot be used.
    """
    pidfile = PIDFILE_DIR / PIDFILE_NAME
    if not pidfile.exists():
        return None
    try:
        data = json.loads(pidfile.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        raise InvalidPidfileError(f"unreadable pidfile: {exc}") from exc
    return ServerRecord.from_dict(data)


def remove_pidfile(owner_pid: int | None = None) -> None:
    """Delete the pidfile.  With *owner_pid*, only if it records that PID."""
    pidfile = PIDFILE_DIR / PIDFILE_NAME
    if owner_pid is not None:
        try:
            record = read_pidfile()
        except InvalidPidfileError:
            record = None
        if record is not None and record.pid != owner_pid:
            return
    pidfile.unlink(missing_ok=True)


def is_process_running(pid: int) -> bool:
    """Check if a process with the given PID is still running."""
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Exists, but owned by someone else


def is_server_responding(record: ServerRecord, timeout: float = 2.0) -> bool:
    """True if a switchboard server answers health checks at ``record.url``."""
    try:
        response = httpx.get(f"{record.url}/api/health", timeout=timeout)
    except httpx.HTTPError:
        return False
    if response.status_code != 200:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("status") == "ok"
