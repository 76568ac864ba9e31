"""Configuration loading and validation."""

from deproof.config.loader import load_config
from deproof.config.schema import (
    ClientConfig,
    DeProofConfig,
    LLMConfig,
    LoggingConfig,
    ServerConfig,
    ValidatorConfig,
    WeatherConfig,
)

__all__ = [
    "ClientConfig",
    "DeProofConfig",
    "LLMConfig",
    "LoggingConfig",
    "ServerConfig",
    "ValidatorConfig",
    "WeatherConfig",
    "load_config",
]
