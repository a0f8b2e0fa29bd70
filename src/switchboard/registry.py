"""Session registry — the single map from SessionId to live agent process."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from switchboard.constants import TERMINAL_STATUSES

if TYPE_CHECKING:
    from switchboard.agent.process import AgentProcess

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Base class for registry contract violations."""


class ConflictError(RegistryError):
    """Raised when a session id already maps to a live process."""


class NotFoundError(RegistryError):
    """Raised when an operation targets an unknown session id."""


class SessionRegistry:
    """Maps session ids to their live :class:`AgentProcess`.

    Guarantees at most one non-terminal process per session id.  Every
    mutation happens under a ``threading.Lock`` that is held only for the
    dict operation itself, never across a subprocess spawn.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._processes: dict[str, AgentProcess] = {}

    def get(self, session_id: str) -> AgentProcess | None:
        """Return the process registered under *session_id*, if any."""
        with self._lock:
            return self._processes.get(session_id)

    def put(self, session_id: str, process: AgentProcess) -> None:
        """Register *process* under *session_id*.

        A leftover entry whose process already reached a terminal status is
        replaced.

        Raises:
            ConflictError: If a live process is already registered.
        """
        with self._lock:
            existing = self._processes.get(session_id)
            if existing is not None and existing.status not in TERMINAL_STATUSES:
                msg = f"Session '{session_id}' already has a live process"
                raise ConflictError(msg)
            self._processes[session_id] = process

    def remove(self, session_id: str, process: AgentProcess | None = None) -> bool:
        """Remove the entry for *session_id*.  Idempotent.

        When *process* is given the entry is only removed if it still points
        at that exact process, so a late cleanup can never evict a newer one.

        Returns ``True`` if an entry was removed.
        """
        with self._lock:
            existing = self._processes.get(session_id)
            if existing is None:
                return False
            if process is not None and existing is not process:
                return False
            del self._processes[session_id]
            return True

    def rekey(self, old_id: str, new_id: str) -> AgentProcess:
        """Atomically move the entry at *old_id* to *new_id*.

        Raises:
            NotFoundError: If *old_id* is not registered.
            ConflictError: If *new_id* is already registered.
        """
        with self._lock:
            process = self._processes.get(old_id)
            if process is None:
                msg = f"Cannot rekey unknown session '{old_id}'"
                raise NotFoundError(msg)
            if new_id in self._processes:
                msg = f"Cannot rekey '{old_id}': session '{new_id}' already exists"
                raise ConflictError(msg)
            del self._processes[old_id]
            self._processes[new_id] = process
        logger.debug("rekeyed session %s -> %s", old_id, new_id)
        return process

    def snapshot(self) -> dict[str, AgentProcess]:
        """Return a shallow copy of the current map."""
        with self._lock:
            return dict(self._processes)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._processes

    def __len__(self) -> int:
        with self._lock:
            return len(self._processes)
