"""Pydantic models for deproof configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ValidatorConfig(BaseModel):
    """Server-side proof validation."""

    tolerance_seconds: float = Field(default=60.0, ge=0)
    validation_timeout: float = Field(default=5.0, gt=0)


class ServerConfig(BaseModel):
    """MCP server identity and tool execution limits."""

    name: str = "weather"
    version: str = "1.0.0"
    tool_execution_timeout: float = Field(default=20.0, gt=0)


class WeatherConfig(BaseModel):
    """National Weather Service API settings."""

    base_url: str = "https://api.weather.gov"
    user_agent: str = "weather-app/1.0"
    request_timeout: float = Field(default=15.0, gt=0)


class ClientConfig(BaseModel):
    """Signing client settings."""

    private_key: str | None = None
    private_key_env: str | None = "WALLET_PRIVATE_KEY"
    connect_timeout: float = Field(default=1.0, gt=0)
    tool_call_timeout: float = Field(default=3.0, gt=0)


class LLMConfig(BaseModel):
    """OpenAI-compatible chat model used by the client chat loop."""

    api_key: str | None = None
    api_key_env: str | None = "OPENAI_API_KEY"
    base_url: str | None = None
    base_url_env: str | None = "OPENAI_BASE_URL"
    model: str | None = None
    model_env: str | None = "OPENAI_MODEL"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""


class DeProofConfig(BaseModel):
    """Top-level configuration for deproof."""

    validator: ValidatorConfig = Field(default_factory=ValidatorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
