"""Application configuration management.

Configuration is loaded from an optional YAML file and then overridden by
environment variables (a ``.env`` file is honored through python-dotenv).
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import InvalidConfigurationError


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogFormat(str, Enum):
    """Log output format types."""

    JSON = "json"
    CONSOLE = "console"


class AppSettings(BaseModel):
    """Application settings."""

    env: Environment = Field(
        default=Environment.DEVELOPMENT, description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode")
    name: str = Field(default="Agent Delegation", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")


class AnthropicConfig(BaseModel):
    """Anthropic API configuration."""

    api_key: str = Field(default="", description="Anthropic API key")
    base_url: str | None = Field(default=None, description="Custom API base URL")


class OllamaConfig(BaseModel):
    """Ollama server configuration."""

    base_url: str = Field(
        default="http://localhost:11434", description="Ollama REST API base URL"
    )
    default_model: str = Field(default="qwen2.5:7b", description="Default model")
    request_timeout: float = Field(
        default=120.0, description="HTTP timeout for a single request (seconds)"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: LogFormat = Field(default=LogFormat.JSON, description="Log format")
    file: str | None = Field(default=None, description="Optional log file path")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper


class AgentDefaults(BaseModel):
    """Default generation settings for agents that do not set their own."""

    model: str = Field(
        default="claude-haiku-4-5-20251001", description="Default LLM model"
    )
    max_tokens: int = Field(default=2048, description="Default max tokens")
    temperature: float = Field(default=0.3, description="Default temperature")
    history_limit: int = Field(
        default=10, description="Number of past messages sent with each call"
    )

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("Temperature must be between 0.0 and 2.0")
        return v

    @field_validator("max_tokens", "history_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


class TimeoutConfig(BaseModel):
    """Deadlines in seconds. ``None`` disables the deadline."""

    agent: float | None = Field(default=120.0, description="Agent invocation")
    tool: float | None = Field(default=30.0, description="Single tool execution")

    @field_validator("agent", "tool")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("Timeout must be positive")
        return v


class CoordinatorSettings(BaseModel):
    """Persona and limits of the coordinator itself."""

    name: str = Field(default="Coordinator", description="Coordinator name")
    description: str = Field(
        default="Routes requests to the most suitable specialist agent",
        description="Coordinator description",
    )
    model: str = Field(
        default="claude-haiku-4-5-20251001",
        description="Model used for classification, synthesis and local answers",
    )
    system_prompt: str = Field(
        default=(
            "You are the coordinator of a team of specialist agents. "
            "Answer directly when no specialist is needed."
        ),
        description="System prompt for local answers",
    )
    max_delegations: int | None = Field(
        default=10,
        description="Policy-driven delegations allowed per conversation",
    )
    timeout_seconds: float | None = Field(
        default=60.0, description="Deadline for the coordinator's own model calls"
    )

    @field_validator("max_delegations")
    @classmethod
    def validate_max_delegations(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("max_delegations cannot be negative")
        return v


class ToolSettings(BaseModel):
    """Settings consumed by the built-in tools."""

    sandbox_directories: list[str] = Field(
        default_factory=lambda: ["./sandbox", "./data/knowledge"],
        description="Directories the filesystem tools may touch",
    )
    allowed_domains: list[str] = Field(
        default_factory=list, description="Hosts web.fetch may contact"
    )
    timezone: str = Field(default="UTC", description="Timezone for calendar.local")


class AppConfig(BaseModel):
    """Main application configuration."""

    app: AppSettings = Field(default_factory=AppSettings)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    agent_defaults: AgentDefaults = Field(default_factory=AgentDefaults)
    timeout: TimeoutConfig = Field(default_factory=TimeoutConfig)
    coordinator: CoordinatorSettings = Field(default_factory=CoordinatorSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "AppConfig":
        """Load configuration from YAML file.

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If YAML content is not a mapping
            InvalidConfigurationError: If a value fails validation
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError("YAML content must be a dictionary")

        return cls._validate(data)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "AppConfig":
        """Load configuration from environment variables only."""
        return cls.load(env_file=env_file)

    @classmethod
    def load(
        cls,
        yaml_path: str | Path | None = None,
        env_file: str | Path | None = None,
    ) -> "AppConfig":
        """Load configuration with YAML as base and environment overrides.

        Environment variables take precedence over YAML settings.
        """
        config = cls.from_yaml(yaml_path) if yaml_path else cls()

        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls._apply_env_overrides(config)

    @classmethod
    def _validate(cls, data: dict[str, Any]) -> "AppConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            error = e.errors()[0]
            key = ".".join(str(part) for part in error["loc"])
            raise InvalidConfigurationError(
                key, error.get("input"), message=f"{key}: {error['msg']}"
            ) from e

    @classmethod
    def _apply_env_overrides(cls, config: "AppConfig") -> "AppConfig":
        """Apply environment variable overrides to existing config."""
        data = config.model_dump()

        for env_var, (section, key) in _ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if value is None or value == "":
                continue
            data[section][key] = _coerce_env_value(value)

        if os.getenv("ALLOWED_DOMAINS"):
            data["tools"]["allowed_domains"] = [
                domain.strip()
                for domain in os.getenv("ALLOWED_DOMAINS", "").split(",")
                if domain.strip()
            ]

        return cls._validate(data)


# Environment variable -> (section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "APP_ENV": ("app", "env"),
    "APP_DEBUG": ("app", "debug"),
    "ANTHROPIC_API_KEY": ("anthropic", "api_key"),
    "ANTHROPIC_BASE_URL": ("anthropic", "base_url"),
    "OLLAMA_BASE_URL": ("ollama", "base_url"),
    "OLLAMA_DEFAULT_MODEL": ("ollama", "default_model"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_FILE": ("logging", "file"),
    "DEFAULT_MODEL": ("agent_defaults", "model"),
    "DEFAULT_MAX_TOKENS": ("agent_defaults", "max_tokens"),
    "DEFAULT_TEMPERATURE": ("agent_defaults", "temperature"),
    "AGENT_TIMEOUT": ("timeout", "agent"),
    "TOOL_TIMEOUT": ("timeout", "tool"),
    "COORDINATOR_MODEL": ("coordinator", "model"),
    "COORDINATOR_MAX_DELEGATIONS": ("coordinator", "max_delegations"),
    "COORDINATOR_TIMEOUT": ("coordinator", "timeout_seconds"),
    "TOOLS_TIMEZONE": ("tools", "timezone"),
}


def _coerce_env_value(value: str) -> Any:
    # pydantic converts numeric strings; booleans need help for "true"/"false"
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    return value


# Global configuration instance
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get the global configuration instance.

    Raises:
        RuntimeError: If configuration has not been initialized
    """
    if _config is None:
        raise RuntimeError("Configuration not initialized. Call init_config() first.")
    return _config


def init_config(
    yaml_path: str | Path | None = None,
    env_file: str | Path | None = None,
) -> AppConfig:
    """Initialize the global configuration."""
    global _config
    _config = AppConfig.load(yaml_path=yaml_path, env_file=env_file)
    return _config


def reset_config() -> None:
    """Reset the global configuration (mainly for testing)."""
    global _config
    _config = None
