"""Exception hierarchy for the agent delegation core.

Every error raised by this package derives from :class:`AgentDelegationError`
so that a transport layer can translate it with :meth:`to_dict` without
knowing the concrete class.
"""

from typing import Any


class AgentDelegationError(Exception):
    """Base exception for all agent delegation errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error details
            cause: Optional original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a plain dictionary."""
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(AgentDelegationError):
    """Raised when there's a configuration error."""

    pass


class MissingConfigurationError(ConfigurationError):
    """Raised when a required configuration is missing."""

    def __init__(self, config_key: str, message: str | None = None):
        self.config_key = config_key
        msg = message or f"Missing required configuration: {config_key}"
        super().__init__(msg, details={"config_key": config_key})


class InvalidConfigurationError(ConfigurationError):
    """Raised when a configuration value is invalid."""

    def __init__(self, config_key: str, value: Any, message: str | None = None):
        self.config_key = config_key
        self.value = value
        msg = message or f"Invalid configuration value for {config_key}: {value}"
        super().__init__(msg, details={"config_key": config_key, "value": str(value)})


# ============================================================================
# Lookup Errors
# ============================================================================


class NotFoundError(AgentDelegationError):
    """Raised when a named resource is not registered."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        msg = message or f"{resource_type} not found: {resource_id}"
        super().__init__(
            msg,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class AgentNotFoundError(NotFoundError):
    """Raised when a delegation or workflow step references an unknown agent."""

    def __init__(self, agent_id: str):
        super().__init__("Agent", agent_id)
        self.agent_id = agent_id


class ToolNotFoundError(NotFoundError):
    """Raised when executing a tool name that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__("Tool", tool_name)
        self.tool_name = tool_name


class WorkflowNotFoundError(NotFoundError):
    """Raised when a workflow id is not registered."""

    def __init__(self, workflow_id: str):
        super().__init__("Workflow", workflow_id)
        self.workflow_id = workflow_id


class AgentAlreadyExistsError(AgentDelegationError):
    """Raised when registering an agent id twice."""

    def __init__(self, agent_id: str):
        super().__init__(
            f"Agent already exists: {agent_id}", details={"agent_id": agent_id}
        )
        self.agent_id = agent_id


# ============================================================================
# Agent / Delegation Errors
# ============================================================================


class AgentBusyError(AgentDelegationError):
    """Raised when an agent is called while a previous call is still in flight."""

    def __init__(self, agent_id: str):
        super().__init__(
            f"Agent {agent_id} is already processing a message",
            details={"agent_id": agent_id},
        )
        self.agent_id = agent_id


class PermissionDeniedError(AgentDelegationError):
    """Raised when an agent lacks the network, filesystem or tool authorization."""

    def __init__(
        self,
        agent_id: str,
        reason: str,
        missing: list[str] | None = None,
    ):
        details: dict[str, Any] = {"agent_id": agent_id}
        if missing:
            details["missing"] = missing
        super().__init__(reason, details=details)
        self.agent_id = agent_id
        self.missing = missing or []


class ToolExecutionError(AgentDelegationError):
    """Raised when a single tool invocation fails."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        cause: Exception | None = None,
    ):
        super().__init__(message, details={"tool": tool_name}, cause=cause)
        self.tool_name = tool_name


# ============================================================================
# Workflow Errors
# ============================================================================


class WorkflowError(AgentDelegationError):
    """Base class for workflow execution errors."""

    pass


class WorkflowDependencyError(WorkflowError):
    """Raised when a step runs before all of its dependencies produced a result."""

    def __init__(self, step_id: str, missing: list[str]):
        super().__init__(
            f"Dependencies not met for step {step_id}: {', '.join(missing)}",
            details={"step_id": step_id, "missing": missing},
        )
        self.step_id = step_id
        self.missing = missing


class WorkflowStateError(WorkflowError):
    """Raised when a finished workflow execution is asked to transition again."""

    def __init__(self, execution_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Cannot move execution {execution_id} from {current_status} "
            f"to {target_status}",
            details={
                "execution_id": execution_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )
        self.execution_id = execution_id


# ============================================================================
# Model Backend Errors
# ============================================================================


class ExternalServiceError(AgentDelegationError):
    """Base class for external service errors."""

    pass


class ModelBackendError(ExternalServiceError):
    """Raised when a model backend call fails."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
        cause: Exception | None = None,
    ):
        details: dict[str, Any] = {}
        if provider:
            details["provider"] = provider
        if model:
            details["model"] = model
        super().__init__(message, details=details, cause=cause)
        self.provider = provider
        self.model = model


class ModelTimeoutError(ModelBackendError):
    """Raised when a model backend call exceeds its deadline."""

    def __init__(
        self,
        timeout_seconds: float,
        model: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(
            f"Model call timed out after {timeout_seconds}s",
            model=model,
            cause=cause,
        )
        self.timeout_seconds = timeout_seconds
        self.details["timeout_seconds"] = timeout_seconds


# ============================================================================
# Timeout Errors
# ============================================================================


class DelegationTimeoutError(AgentDelegationError):
    """Base class for deadline errors raised by the delegation path."""

    def __init__(
        self,
        message: str,
        timeout_seconds: float,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        details["timeout_seconds"] = timeout_seconds
        super().__init__(message, details=details)
        self.timeout_seconds = timeout_seconds


class ToolTimeoutError(DelegationTimeoutError):
    """Raised when a tool execution times out."""

    def __init__(self, tool_name: str, timeout_seconds: float):
        super().__init__(
            f"Tool {tool_name} timed out after {timeout_seconds}s",
            timeout_seconds=timeout_seconds,
            details={"tool": tool_name},
        )
        self.tool_name = tool_name
