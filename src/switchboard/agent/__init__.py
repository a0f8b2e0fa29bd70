"""Agent CLI processes for Switchboard."""

from switchboard.agent.attachments import ImageAttachment, UserInput, build_prompt
from switchboard.agent.parser import JsonLineParser, MalformedLine
from switchboard.agent.process import AgentProcess
from switchboard.agent.providers import build_command, build_env

__all__ = [
    "AgentProcess",
    "ImageAttachment",
    "JsonLineParser",
    "MalformedLine",
    "UserInput",
    "build_command",
    "build_env",
    "build_prompt",
]
