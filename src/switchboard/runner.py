"""Timed subprocess runner — one-shot commands with a hard wall-clock limit."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from switchboard.constants import DEFAULT_AUTH_TIMEOUT

logger = logging.getLogger(__name__)

#: Bytes requested per pipe read.
_READ_CHUNK = 65_536

#: Seconds to let the pipes drain after a timeout kill.
_DRAIN_WAIT = 0.5


@dataclass(frozen=True)
class TimedCommandResult:
    """Outcome of a :func:`run_timed` invocation.

    ``exit_code`` is ``None`` when the child was force-killed on timeout or
    could not be spawned at all.  On timeout ``stdout``/``stderr`` hold
    whatever the child wrote before it was killed.
    """

    success: bool
    stdout: str
    stderr: str
    exit_code: int | None
    timed_out: bool = False


async def run_timed(
    command: str,
    args: list[str] | tuple[str, ...] = (),
    stdin_payload: str | None = None,
    timeout: float = DEFAULT_AUTH_TIMEOUT,
) -> TimedCommandResult:
    """Run *command* with *args*, killing it after *timeout* seconds.

    When *stdin_payload* is given it is written to the child's stdin followed
    by a newline, then stdin is closed.  All failure paths resolve to a
    result with ``success=False``; this coroutine only raises on
    cancellation, and always reaps the child before returning.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.debug("failed to spawn %s: %s", command, exc)
        return TimedCommandResult(
            success=False, stdout="", stderr=str(exc), exit_code=None
        )

    stdout_buf = bytearray()
    stderr_buf = bytearray()
    readers = [
        asyncio.create_task(_collect(proc.stdout, stdout_buf)),
        asyncio.create_task(_collect(proc.stderr, stderr_buf)),
    ]

    try:
        write_error = await asyncio.wait_for(
            _exchange(proc, stdin_payload, readers),
            timeout=timeout,
        )
    except TimeoutError:
        await _kill_and_reap(proc)
        await _settle(readers, _DRAIN_WAIT)
        logger.debug("%s killed after %.1fs timeout", command, timeout)
        return TimedCommandResult(
            success=False,
            stdout=stdout_buf.decode(errors="replace"),
            stderr=stderr_buf.decode(errors="replace"),
            exit_code=None,
            timed_out=True,
        )
    except asyncio.CancelledError:
        await _kill_and_reap(proc)
        await _settle(readers, 0)
        raise

    returncode = proc.returncode
    stderr = stderr_buf.decode(errors="replace")
    if write_error is not None:
        return TimedCommandResult(
            success=False,
            stdout=stdout_buf.decode(errors="replace"),
            stderr=stderr or write_error,
            exit_code=returncode,
        )
    return TimedCommandResult(
        success=returncode == 0,
        stdout=stdout_buf.decode(errors="replace"),
        stderr=stderr,
        exit_code=returncode,
    )


async def _exchange(
    proc: asyncio.subprocess.Process,
    stdin_payload: str | None,
    readers: list[asyncio.Task[None]],
) -> str | None:
    """Feed stdin, then wait for both pipes to close and the child to exit.

    Returns the write error text if the child exited before reading stdin.
    """
    write_error = None
    if proc.stdin is not None:
        try:
            if stdin_payload is not None:
                proc.stdin.write((stdin_payload + "\n").encode())
                await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            write_error = str(exc)
        finally:
            proc.stdin.close()
    # asyncio.wait leaves the readers running if we are cancelled.
    await asyncio.wait(readers)
    await proc.wait()
    return write_error


async def _collect(stream: asyncio.StreamReader | None, sink: bytearray) -> None:
    if stream is None:
        return
    while True:
        try:
            chunk = await stream.read(_READ_CHUNK)
        except OSError:
            return
        if not chunk:
            return
        sink.extend(chunk)


async def _settle(readers: list[asyncio.Task[None]], wait: float) -> None:
    if wait > 0:
        await asyncio.wait(readers, timeout=wait)
    for task in readers:
        task.cancel()
    await asyncio.gather(*readers, return_exceptions=True)


async def _kill_and_reap(proc: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()
