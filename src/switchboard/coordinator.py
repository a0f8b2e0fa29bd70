"""Session coordinator — ties client requests, the registry, and processes together."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from switchboard.agent.attachments import UserInput
from switchboard.agent.process import AgentProcess
from switchboard.config.models import SwitchboardConfig, ToolSettings
from switchboard.constants import Provider
from switchboard.events import (
    OutputEvent,
    ReplaceTemporarySessionEvent,
    SessionCreatedEvent,
    is_terminal,
)
from switchboard.mcp import McpDetection, detect_mcp
from switchboard.multiplexer import OutputMultiplexer, Subscriber
from switchboard.protocol import ClientMessage
from switchboard.registry import ConflictError, RegistryError, SessionRegistry

logger = logging.getLogger(__name__)

#: Seconds to wait for killed processes to exit during shutdown.
_SHUTDOWN_WAIT = 5.0

ProcessFactory = Callable[..., AgentProcess]
McpDetector = Callable[[str, Path], McpDetection]


class SessionCoordinator:
    """Drives every session through ``idle → starting → running → terminal``.

    * A start request for a session id that already has a live process
      re-attaches the requesting client instead of spawning again.
    * When a fresh session's CLI announces its real id, the registry entry
      and the subscriber move from the temporary id to the real one and the
      client is told via ``replace-temporary-session``.
    * A terminal event removes the registry entry and detaches the client.

    With ``strict`` set, a failed temporary→real rekey raises instead of
    being logged and tolerated.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        multiplexer: OutputMultiplexer,
        config: SwitchboardConfig | None = None,
        *,
        process_factory: ProcessFactory = AgentProcess,
        mcp_detector: McpDetector = detect_mcp,
    ) -> None:
        self._registry = registry
        self._multiplexer = multiplexer
        self._config = config if config is not None else SwitchboardConfig()
        self._process_factory = process_factory
        self._mcp_detector = mcp_detector
        self._strict = self._config.strict

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def multiplexer(self) -> OutputMultiplexer:
        return self._multiplexer

    # ------------------------------------------------------------------ #
    # Client operations
    # ------------------------------------------------------------------ #

    async def start_session(
        self,
        provider: Provider,
        working_dir: Path | str | None,
        subscriber: Subscriber,
        *,
        session_id: str | None = None,
        resume_from: str | None = None,
        user_input: UserInput | None = None,
        tools: ToolSettings | None = None,
        model: str | None = None,
    ) -> str:
        """Start (or rejoin) a session and return the id it is registered under."""
        key = resume_from or session_id or str(uuid.uuid4())

        existing = self._registry.get(key)
        if existing is not None and existing.is_live:
            return self._rejoin(key, subscriber)

        cwd = Path(working_dir) if working_dir else Path.cwd()
        process = self._process_factory(
            key,
            provider,
            cwd,
            self._config.providers.for_provider(provider),
            resumed_from=resume_from,
            temporary=resume_from is None,
            mcp=self._mcp_detector(provider, cwd),
            tools=tools if tools is not None else self._config.tools,
            model=model,
        )

        try:
            self._registry.put(key, process)
        except ConflictError:
            return self._rejoin(key, subscriber)

        self._multiplexer.attach(key, subscriber)
        process.subscribe(self._on_event)
        await process.start(user_input)
        return process.session_id

    async def send_input(
        self,
        session_id: str | None,
        user_input: UserInput,
        subscriber: Subscriber,
        *,
        provider: Provider = "claude",
        working_dir: Path | str | None = None,
        tools: ToolSettings | None = None,
        model: str | None = None,
    ) -> str:
        """Deliver *user_input* to a live session, or resume it with that input."""
        process = self._registry.get(session_id) if session_id else None
        if session_id is not None and process is not None and process.is_live:
            self._multiplexer.attach(session_id, subscriber)
            await process.send(user_input)
            return session_id

        return await self.start_session(
            provider,
            working_dir,
            subscriber,
            resume_from=session_id,
            user_input=user_input,
            tools=tools,
            model=model,
        )

    def cancel(self, session_id: str) -> bool:
        """Kill the session's process.

        Cancelling a session with no live process is a successful no-op;
        returns ``False`` in that case.
        """
        process = self._registry.get(session_id)
        if process is None:
            logger.debug("%s: cancel for unknown session ignored", session_id)
            return False
        process.cancel()
        self._registry.remove(session_id, process)
        self._multiplexer.detach(session_id)
        return True

    async def handle_message(
        self, message: ClientMessage, subscriber: Subscriber
    ) -> str | None:
        """Dispatch one inbound client message."""
        options = message.options
        user_input = UserInput.from_payload(message.payload)

        match message.type:
            case "start-session":
                return await self.start_session(
                    message.provider,
                    message.working_dir,
                    subscriber,
                    session_id=message.session_id,
                    user_input=user_input,
                    tools=options.tools,
                    model=options.model,
                )
            case "resume-session":
                return await self.start_session(
                    message.provider,
                    message.working_dir,
                    subscriber,
                    resume_from=message.session_id,
                    user_input=user_input,
                    tools=options.tools,
                    model=options.model,
                )
            case "user-input":
                return await self.send_input(
                    message.session_id,
                    user_input or UserInput(),
                    subscriber,
                    provider=message.provider,
                    working_dir=message.working_dir,
                    tools=options.tools,
                    model=options.model,
                )
            case "cancel":
                if message.session_id is None:
                    logger.warning("cancel without a session id ignored")
                    return None
                self.cancel(message.session_id)
                return message.session_id
        return None

    def detach_subscriber(self, subscriber: Subscriber) -> None:
        """Forget a disconnected client.  Its processes keep running."""
        affected = self._multiplexer.detach_subscriber(subscriber)
        if affected:
            logger.info(
                "client detached from %d live session(s): %s",
                len(affected),
                ", ".join(affected),
            )

    def live_sessions(self) -> list[dict[str, Any]]:
        return [p.describe() for p in self._registry.snapshot().values() if p.is_live]

    async def shutdown(self) -> None:
        """Cancel every live process and wait briefly for them to exit."""
        processes = [p for p in self._registry.snapshot().values() if p.is_live]
        for process in processes:
            self.cancel(process.session_id)
        if not processes:
            return
        try:
            await asyncio.wait_for(
                asyncio.gather(*(p.wait() for p in processes), return_exceptions=True),
                timeout=_SHUTDOWN_WAIT,
            )
        except TimeoutError:
            logger.warning("shutdown: agent processes still exiting after %.0fs",
                           _SHUTDOWN_WAIT)

    # ------------------------------------------------------------------ #
    # Event handling
    # ------------------------------------------------------------------ #

    def _rejoin(self, session_id: str, subscriber: Subscriber) -> str:
        logger.info("%s: session already running, rejoining", session_id)
        self._multiplexer.attach(session_id, subscriber)
        return session_id

    def _on_event(self, process: AgentProcess, event: OutputEvent) -> None:
        if (
            isinstance(event, SessionCreatedEvent)
            and process.temporary
            and event.session_id != process.session_id
        ):
            self._replace_temporary(process, event)
            return

        session_id = process.session_id
        self._multiplexer.publish(session_id, event)

        if is_terminal(event):
            process.unsubscribe(self._on_event)
            current = self._registry.get(session_id)
            if current is None or current is process:
                self._registry.remove(session_id, process)
                self._multiplexer.detach(session_id)
            logger.info("%s: session ended (%s)", session_id, process.status)

    def _replace_temporary(
        self, process: AgentProcess, event: SessionCreatedEvent
    ) -> None:
        temporary_id = process.session_id
        real_id = event.session_id
        try:
            self._registry.rekey(temporary_id, real_id)
        except RegistryError as exc:
            if self._strict:
                raise
            logger.error(
                "%s: could not move session to real id %s: %s",
                temporary_id,
                real_id,
                exc,
            )
            self._multiplexer.publish(temporary_id, event)
            return

        self._multiplexer.rekey(temporary_id, real_id)
        process.session_id = real_id
        process.temporary = False
        logger.info("%s: temporary session is now %s", temporary_id, real_id)

        self._multiplexer.publish(real_id, event)
        self._multiplexer.publish(
            real_id,
            ReplaceTemporarySessionEvent(
                session_id=real_id, previous_session_id=temporary_id
            ),
        )
