"""Configuration models and parser for switchboard.yaml."""

from switchboard.config.models import (
    AuthConfig,
    ProviderConfig,
    ProvidersConfig,
    ServerConfig,
    SwitchboardConfig,
    ToolSettings,
)
from switchboard.config.parser import ConfigError, load_config

__all__ = [
    "AuthConfig",
    "ConfigError",
    "ProviderConfig",
    "ProvidersConfig",
    "ServerConfig",
    "SwitchboardConfig",
    "ToolSettings",
    "load_config",
]
