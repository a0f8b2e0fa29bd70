"""Switchboard — session orchestration for agent CLIs."""

__version__ = "0.1.0"
