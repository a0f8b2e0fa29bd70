"""Pydantic v2 models for messages sent by clients over the transport."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from switchboard.config.models import ToolSettings
from switchboard.constants import Provider


class SessionOptions(BaseModel):
    """Per-request overrides for how the agent CLI is invoked."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    model: str | None = Field(default=None, description="Model name for the CLI")
    tools: ToolSettings | None = Field(
        default=None,
        alias="toolsSettings",
        description="Overrides the configured tool settings",
    )


class ClientMessage(BaseModel):
    """One inbound message from a client connection."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Literal["start-session", "resume-session", "user-input", "cancel"]
    session_id: str | None = Field(default=None, alias="sessionId")
    provider: Provider = Field(default="claude")
    working_dir: str | None = Field(default=None, alias="workingDir")
    payload: Any = Field(default=None, description="Prompt text or input object")
    options: SessionOptions = Field(default_factory=SessionOptions)

    @model_validator(mode="after")
    def _require_session_id(self) -> ClientMessage:
        if self.type in ("resume-session", "cancel") and not self.session_id:
            msg = f"Message type '{self.type}' requires 'sessionId'"
            raise ValueError(msg)
        return self
