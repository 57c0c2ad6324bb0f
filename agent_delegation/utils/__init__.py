"""Utility modules for the agent delegation core.

This package provides utility functions and classes for:
- Configuration management
- Structured logging
- Exception hierarchy
- Deadlines for model and tool calls
"""

from .config import (
    AgentDefaults,
    AnthropicConfig,
    AppConfig,
    AppSettings,
    CoordinatorSettings,
    Environment,
    LogFormat,
    LoggingConfig,
    OllamaConfig,
    TimeoutConfig,
    ToolSettings,
    get_config,
    init_config,
    reset_config,
)
from .exceptions import (
    AgentAlreadyExistsError,
    AgentBusyError,
    AgentDelegationError,
    AgentNotFoundError,
    ConfigurationError,
    DelegationTimeoutError,
    ExternalServiceError,
    InvalidConfigurationError,
    MissingConfigurationError,
    ModelBackendError,
    ModelTimeoutError,
    NotFoundError,
    PermissionDeniedError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    WorkflowDependencyError,
    WorkflowError,
    WorkflowNotFoundError,
    WorkflowStateError,
)
from .logging import (
    ScopedLogger,
    current_turn_id,
    get_agent_logger,
    get_conversation_logger,
    get_logger,
    get_workflow_logger,
    setup_logging,
    turn_context,
)
from .timeouts import run_with_timeout

__all__ = [
    # Config
    "AppConfig",
    "AppSettings",
    "AnthropicConfig",
    "OllamaConfig",
    "LoggingConfig",
    "AgentDefaults",
    "TimeoutConfig",
    "CoordinatorSettings",
    "ToolSettings",
    "Environment",
    "LogFormat",
    "get_config",
    "init_config",
    "reset_config",
    # Logging
    "setup_logging",
    "get_logger",
    "ScopedLogger",
    "get_agent_logger",
    "get_conversation_logger",
    "get_workflow_logger",
    "current_turn_id",
    "turn_context",
    # Exceptions
    "AgentDelegationError",
    "ConfigurationError",
    "MissingConfigurationError",
    "InvalidConfigurationError",
    "NotFoundError",
    "AgentNotFoundError",
    "ToolNotFoundError",
    "WorkflowNotFoundError",
    "AgentAlreadyExistsError",
    "AgentBusyError",
    "PermissionDeniedError",
    "ToolExecutionError",
    "WorkflowError",
    "WorkflowDependencyError",
    "WorkflowStateError",
    "ExternalServiceError",
    "ModelBackendError",
    "ModelTimeoutError",
    "DelegationTimeoutError",
    "ToolTimeoutError",
    # Timeouts
    "run_with_timeout",
]
