"""Shared constants and type aliases for the Switchboard runtime."""

from __future__ import annotations

from typing import Literal

#: Agent CLIs Switchboard knows how to drive.
Provider = Literal["claude", "cursor"]

#: Lifecycle states of a spawned agent CLI process.
ProcessStatus = Literal["starting", "running", "completed", "errored", "killed"]

#: States after which a process will never emit again.
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "errored", "killed"})

#: Default wall-clock limit for blocking auth subprocesses (seconds).
DEFAULT_AUTH_TIMEOUT = 5.0
