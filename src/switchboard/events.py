"""Pydantic v2 models for events streamed from agent processes to clients."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class _EventBase(BaseModel):
    """Common envelope fields shared by every outbound event."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    session_id: str = Field(
        alias="sessionId", description="Current session id of the emitting process"
    )


class SessionCreatedEvent(_EventBase):
    """The agent CLI assigned a real session id."""

    type: Literal["session-created"] = "session-created"


class MessageChunkEvent(_EventBase):
    """One structured record of agent output, passed through as-is."""

    type: Literal["message-chunk"] = "message-chunk"
    payload: dict[str, Any] = Field(description="Raw record from the CLI")


class ToolCallEvent(_EventBase):
    """The agent invoked a tool."""

    type: Literal["tool-call"] = "tool-call"
    tool: str | None = Field(default=None, description="Tool name, when known")
    payload: dict[str, Any] = Field(description="Raw record from the CLI")


class ErrorEvent(_EventBase):
    """An error in the session.

    Non-terminal errors (a malformed output line, input sent to a busy
    session) leave the process running.  Terminal errors are only emitted
    when the process could not be spawned.
    """

    type: Literal["error"] = "error"
    error: str = Field(description="Error description")
    detail: str | None = Field(default=None, description="Extra context")
    terminal: bool = Field(
        default=False, description="Whether this ends the session attempt"
    )


class DoneEvent(_EventBase):
    """The session attempt is over."""

    type: Literal["done"] = "done"
    reason: Literal["completed", "errored", "killed"] = Field(
        description="How the process ended"
    )
    exit_code: int | None = Field(
        default=None, alias="exitCode", description="Process exit code, if known"
    )
    error: str | None = Field(
        default=None, description="Failure detail for a non-zero exit"
    )


class ReplaceTemporarySessionEvent(_EventBase):
    """Tells the client to swap its temporary id for the real one."""

    type: Literal["replace-temporary-session"] = "replace-temporary-session"
    previous_session_id: str = Field(
        alias="previousSessionId", description="The temporary id being replaced"
    )


def _event_discriminator(v: Any) -> str:
    """Extract the discriminator value from raw data or a model instance."""
    if isinstance(v, dict):
        return str(v.get("type", ""))
    return str(getattr(v, "type", ""))


OutputEvent = Annotated[
    Annotated[SessionCreatedEvent, Tag("session-created")]
    | Annotated[MessageChunkEvent, Tag("message-chunk")]
    | Annotated[ToolCallEvent, Tag("tool-call")]
    | Annotated[ErrorEvent, Tag("error")]
    | Annotated[DoneEvent, Tag("done")],
    Discriminator(_event_discriminator),
]
"""Discriminated union of events an agent process can emit."""

ServerEvent = OutputEvent | ReplaceTemporarySessionEvent
"""Anything the server may deliver to a subscriber."""


def is_terminal(event: BaseModel) -> bool:
    """Return True if *event* ends a session attempt."""
    if isinstance(event, DoneEvent):
        return True
    return isinstance(event, ErrorEvent) and event.terminal
