"""Agent process — one external agent CLI invocation and its output stream."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from switchboard.agent.attachments import UserInput, build_prompt
from switchboard.agent.helpers import format_stderr_preview, iso_timestamp, utc_now
from switchboard.agent.parser import JsonLineParser, MalformedLine, ParsedItem
from switchboard.agent.providers import build_command, build_env
from switchboard.config.models import ProviderConfig, ToolSettings
from switchboard.constants import TERMINAL_STATUSES, ProcessStatus, Provider
from switchboard.events import (
    DoneEvent,
    ErrorEvent,
    MessageChunkEvent,
    OutputEvent,
    SessionCreatedEvent,
    ToolCallEvent,
    is_terminal,
)
from switchboard.mcp import McpDetection

logger = logging.getLogger(__name__)

#: Bytes requested per stdout read.
_READ_CHUNK = 65_536

#: Seconds to wait after SIGTERM before SIGKILL.
_SIGTERM_WAIT = 3.0

#: Stderr bytes kept for error reporting (tail only).
_STDERR_TAIL_BYTES = 65_536

#: Max stderr characters carried in a ``done`` event.
_MAX_STDERR_CHARS = 2048

#: Receives every event the process emits, in order.
Listener = Callable[["AgentProcess", OutputEvent], None]


class AgentProcess:
    """Wraps one long-running agent CLI invocation.

    The process owns its stdin/stdout/stderr pipes and turns stdout into a
    typed stream of :data:`OutputEvent` values.  Consumers register with
    :meth:`subscribe`; the stream ends with exactly one terminal event
    (``done``, or a terminal ``error`` when the CLI could not be spawned).

    Lifecycle: ``starting → running → completed | errored | killed``.
    A spawn failure goes straight from ``starting`` to ``errored``.
    """

    def __init__(
        self,
        session_id: str,
        provider: Provider,
        working_dir: Path | str,
        config: ProviderConfig,
        *,
        resumed_from: str | None = None,
        temporary: bool = False,
        mcp: McpDetection | None = None,
        tools: ToolSettings | None = None,
        model: str | None = None,
    ) -> None:
        self.session_id = session_id
        self.provider = provider
        self.working_dir = Path(working_dir)
        self.resumed_from = resumed_from
        self.temporary = temporary
        self.status: ProcessStatus = "starting"
        self.pid: int | None = None
        self.spawned_at: datetime | None = None

        self._config = config
        self._mcp = mcp
        self._tools = tools
        self._model = model

        self._proc: asyncio.subprocess.Process | None = None
        self._supervisor: asyncio.Task[None] | None = None
        self._escalation: asyncio.Task[None] | None = None
        self._listeners: list[Listener] = []
        self._terminal_sent = False
        self._session_announced = False
        self._stdin_open = False
        self._stderr_tail = b""

    # ------------------------------------------------------------------ #
    # Subscription
    # ------------------------------------------------------------------ #

    def subscribe(self, listener: Listener) -> None:
        """Register *listener* for every event emitted from now on."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Stop delivering events to *listener*.  No-op if not registered."""
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def is_live(self) -> bool:
        return self.status not in TERMINAL_STATUSES

    @property
    def accepts_input(self) -> bool:
        """True while follow-up input can be written to stdin."""
        return self.status == "running" and self._stdin_open

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc is not None else None

    def describe(self) -> dict[str, Any]:
        """JSON-friendly summary for session listings."""
        return {
            "sessionId": self.session_id,
            "provider": self.provider,
            "status": self.status,
            "pid": self.pid,
            "workingDir": str(self.working_dir),
            "resumedFrom": self.resumed_from,
            "temporary": self.temporary,
            "spawnedAt": (
                iso_timestamp(self.spawned_at) if self.spawned_at is not None else None
            ),
        }

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self, user_input: UserInput | None = None) -> None:
        """Spawn the CLI and begin streaming its output.

        Spawn failures are reported as a terminal ``error`` event rather
        than raised.
        """
        if self._proc is not None or self._terminal_sent:
            msg = f"Session '{self.session_id}' was already started"
            raise RuntimeError(msg)

        if not self.working_dir.is_dir():
            self._fail_spawn(f"Working directory not found: {self.working_dir}")
            return

        prompt = build_prompt(user_input, self.working_dir)
        argv = build_command(
            self._config,
            prompt=prompt,
            resume_from=self.resumed_from,
            mcp=self._mcp,
            tools=self._tools,
            model=self._model,
        )
        logger.info(
            "%s: spawning %s in %s%s",
            self.session_id,
            self._config.command,
            self.working_dir,
            f" (resuming {self.resumed_from})" if self.resumed_from else "",
        )

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self.working_dir),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=build_env(self._config),
                start_new_session=True,
            )
        except FileNotFoundError:
            self._fail_spawn(
                f"{self._config.command} CLI not found. "
                f"Make sure '{self._config.command}' is installed and on your PATH."
            )
            return
        except OSError as exc:
            self._fail_spawn(f"Failed to spawn {self._config.command}: {exc}")
            return

        self._proc = proc
        self.pid = proc.pid
        self.spawned_at = utc_now()
        self._stdin_open = proc.stdin is not None
        self._supervisor = asyncio.create_task(self._supervise(proc))

        if self.status == "killed":
            # Cancelled while the spawn was in flight.
            self._terminate(proc)
            return

        self.status = "running"

        if self._config.prompt_via == "stdin" and prompt:
            await self._write_stdin(prompt)
        if not self._config.keep_stdin_open:
            self._close_stdin()

    async def send(self, user_input: UserInput) -> bool:
        """Write follow-up *user_input* to the CLI's stdin.

        Returns ``False`` (and emits a non-terminal ``error`` event) when the
        process is not accepting input.
        """
        if not self.accepts_input:
            self._emit(
                ErrorEvent(
                    session_id=self.session_id,
                    error="Session is busy and does not accept input right now",
                    detail=f"status={self.status}",
                )
            )
            return False
        prompt = build_prompt(user_input, self.working_dir)
        return await self._write_stdin(prompt)

    def cancel(self) -> bool:
        """Kill the process.  Idempotent.

        Emits ``done(reason="killed")`` immediately; output still in flight
        after that is dropped.  Returns ``False`` if the process had already
        reached a terminal state.
        """
        if self.status in TERMINAL_STATUSES:
            return False

        self.status = "killed"
        logger.info("%s: cancelling agent process (pid %s)", self.session_id, self.pid)
        self._emit(DoneEvent(session_id=self.session_id, reason="killed"))

        proc = self._proc
        if proc is not None:
            self._terminate(proc)
        return True

    async def wait(self) -> None:
        """Wait until the OS process has exited and all output is handled."""
        if self._supervisor is not None:
            await self._supervisor
        if self._escalation is not None:
            await self._escalation

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _fail_spawn(self, error_msg: str) -> None:
        logger.error("%s: %s", self.session_id, error_msg)
        if self.status in TERMINAL_STATUSES:
            # Cancelled while the spawn was in flight; keep "killed".
            return
        self.status = "errored"
        self._emit(
            ErrorEvent(session_id=self.session_id, error=error_msg, terminal=True)
        )

    def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        self._stdin_open = False
        if proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()
        if self._escalation is None:
            self._escalation = asyncio.create_task(self._escalate_kill(proc))

    async def _escalate_kill(self, proc: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(proc.wait(), timeout=_SIGTERM_WAIT)
        except TimeoutError:
            logger.warning(
                "%s: pid %s ignored SIGTERM, sending SIGKILL", self.session_id, proc.pid
            )
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()

    async def _write_stdin(self, text: str) -> bool:
        proc = self._proc
        if proc is None or proc.stdin is None or not self._stdin_open:
            return False
        try:
            proc.stdin.write((text + "\n").encode())
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError, OSError) as exc:
            logger.warning("%s: failed to write to stdin: %s", self.session_id, exc)
            self._stdin_open = False
            return False
        return True

    def _close_stdin(self) -> None:
        proc = self._proc
        self._stdin_open = False
        if proc is not None and proc.stdin is not None:
            with contextlib.suppress(OSError):
                proc.stdin.close()

    async def _supervise(self, proc: asyncio.subprocess.Process) -> None:
        """Pump stdout/stderr until EOF, then report how the process ended."""
        stderr_task = asyncio.create_task(self._drain_stderr(proc))
        try:
            await self._pump_stdout(proc)
        except BaseException as exc:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stderr_task
            await proc.wait()
            if isinstance(exc, Exception):
                self._abort(exc, proc.returncode)
            raise

        await stderr_task
        returncode = await proc.wait()
        self._finish(returncode)

    async def _pump_stdout(self, proc: asyncio.subprocess.Process) -> None:
        if proc.stdout is None:
            return
        parser = JsonLineParser()
        while True:
            try:
                chunk = await proc.stdout.read(_READ_CHUNK)
            except OSError as exc:
                logger.error("%s: error reading stdout: %s", self.session_id, exc)
                break
            if not chunk:
                break
            for item in parser.feed(chunk):
                self._handle_item(item)
        for item in parser.flush():
            self._handle_item(item)

    async def _drain_stderr(self, proc: asyncio.subprocess.Process) -> None:
        if proc.stderr is None:
            return
        while True:
            try:
                chunk = await proc.stderr.read(_READ_CHUNK)
            except OSError:
                return
            if not chunk:
                return
            self._stderr_tail = (self._stderr_tail + chunk)[-_STDERR_TAIL_BYTES:]

    def _abort(self, exc: Exception, returncode: int | None) -> None:
        """Close out the attempt after an error while handling its output."""
        logger.error(
            "%s: aborting agent process after %s",
            self.session_id,
            type(exc).__name__,
            exc_info=exc,
        )
        self._stdin_open = False
        if self.status in TERMINAL_STATUSES:
            return
        self.status = "errored"
        self._emit(
            DoneEvent(
                session_id=self.session_id,
                reason="errored",
                exit_code=returncode,
                error=f"Session aborted: {exc}",
            )
        )

    def _finish(self, returncode: int) -> None:
        self._stdin_open = False
        if self._terminal_sent:
            if self.status in ("starting", "running"):
                self.status = "completed"
            return

        if returncode == 0:
            self.status = "completed"
            logger.info("%s: agent process completed", self.session_id)
            self._emit(
                DoneEvent(session_id=self.session_id, reason="completed", exit_code=0)
            )
            return

        stderr_text = self._stderr_tail.decode(errors="replace").strip()
        preview = format_stderr_preview(stderr_text)
        error_msg = f"{self._config.command} exited with code {returncode}"
        if preview:
            logger.error("%s: %s. Stderr:\n  %s", self.session_id, error_msg, preview)
        else:
            logger.error("%s: %s", self.session_id, error_msg)
        self.status = "errored"
        self._emit(
            DoneEvent(
                session_id=self.session_id,
                reason="errored",
                exit_code=returncode,
                error=f"{error_msg}: {stderr_text[-_MAX_STDERR_CHARS:]}"
                if stderr_text
                else error_msg,
            )
        )

    def _handle_item(self, item: ParsedItem) -> None:
        if isinstance(item, MalformedLine):
            logger.warning(
                "%s: malformed output from %s: %s (%s)",
                self.session_id,
                self._config.command,
                item.line,
                item.reason,
            )
            self._emit(
                ErrorEvent(
                    session_id=self.session_id,
                    error="Malformed output line",
                    detail=item.line,
                )
            )
            return
        event = self._classify(item)
        self._emit(event)
        if isinstance(event, DoneEvent) and self._proc is not None:
            # The CLI may linger after reporting completion.
            self._terminate(self._proc)

    def _classify(self, record: dict[str, Any]) -> OutputEvent:
        """Map one CLI record onto an :data:`OutputEvent`."""
        kind = record.get("type")

        if not self._session_announced:
            real_id = _announced_session_id(record)
            if real_id is not None:
                self._session_announced = True
                return SessionCreatedEvent(session_id=real_id)

        if kind == "done":
            self.status = "completed"
            return DoneEvent(session_id=self.session_id, reason="completed")

        if kind == "error":
            error = record.get("error") or record.get("message")
            return ErrorEvent(
                session_id=self.session_id,
                error=str(error) if error else "Agent reported an error",
            )

        tool = _tool_name(record)
        if tool is not None or kind in ("tool_call", "tool-call"):
            return ToolCallEvent(session_id=self.session_id, tool=tool, payload=record)

        return MessageChunkEvent(session_id=self.session_id, payload=record)

    def _emit(self, event: OutputEvent) -> None:
        if self._terminal_sent:
            logger.debug(
                "%s: dropping %s after terminal event", self.session_id, event.type
            )
            return
        if is_terminal(event):
            self._terminal_sent = True
        for listener in list(self._listeners):
            listener(self, event)


def _announced_session_id(record: dict[str, Any]) -> str | None:
    """Return the real session id if *record* announces one."""
    kind = record.get("type")
    value: object = None
    if kind == "session-created":
        value = record.get("sessionId") or record.get("session_id")
    elif kind == "system" and record.get("subtype") == "init":
        value = record.get("session_id")
    if isinstance(value, str) and value:
        return value
    return None


def _tool_name(record: dict[str, Any]) -> str | None:
    """Return the tool name for tool invocation records.

    Handles Claude ``assistant`` messages carrying a ``tool_use`` block and
    Cursor ``tool_call`` records.
    """
    kind = record.get("type")
    if kind == "assistant":
        message = record.get("message")
        if isinstance(message, dict):
            blocks = message.get("content")
            if isinstance(blocks, list):
                for block in blocks:
                    if isinstance(block, dict) and block.get("type") == "tool_use":
                        return str(block.get("name", "")) or None
        return None
    if kind in ("tool_call", "tool-call"):
        name = record.get("tool") or record.get("name")
        if isinstance(name, str) and name:
            return name
        call = record.get("tool_call")
        if isinstance(call, dict) and call:
            # Cursor nests the call under a single "<name>ToolCall" key.
            return str(next(iter(call)))
    return None
