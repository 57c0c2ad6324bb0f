"""Tool base classes.

A tool is a named async capability with a fixed security profile. Arguments
are validated against an optional pydantic model before the tool runs.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from agent_delegation.utils.exceptions import ToolExecutionError


@dataclass(frozen=True)
class ToolSecurity:
    """Security profile of a tool, fixed at construction time."""

    requires_network: bool = False
    requires_filesystem: bool = False
    dangerous: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "requires_network": self.requires_network,
            "requires_filesystem": self.requires_filesystem,
            "dangerous": self.dangerous,
        }


class BaseTool(ABC):
    """Abstract base class for tools.

    Subclasses set ``name`` and ``description``, optionally ``args_model``,
    and implement :meth:`_run`.

    Attributes:
        name: Unique tool name (e.g. ``fs.read``).
        description: What the tool does, shown to models.
        args_model: Optional pydantic model the arguments must satisfy.
    """

    name: str = ""
    description: str = ""
    args_model: type[BaseModel] | None = None

    def __init__(self, security: ToolSecurity | None = None) -> None:
        if not self.name:
            raise ValueError(f"{type(self).__name__} must define a name")
        self._security = security or ToolSecurity()

    @property
    def security(self) -> ToolSecurity:
        """Read-only security profile."""
        return self._security

    async def execute(
        self,
        arguments: dict[str, Any],
        context: dict[str, Any] | None = None,
    ) -> Any:
        """Validate the arguments and run the tool.

        Args:
            arguments: Tool arguments.
            context: Caller context (agent id, conversation id, ...).

        Returns:
            The tool result, JSON-serializable.

        Raises:
            ToolExecutionError: If the arguments are invalid or the tool fails.
        """
        if self.args_model is not None:
            try:
                arguments = self.args_model.model_validate(arguments).model_dump()
            except ValidationError as e:
                raise ToolExecutionError(
                    self.name, f"Invalid arguments for {self.name}: {e}", cause=e
                ) from e
        try:
            return await self._run(arguments, context or {})
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(self.name, str(e), cause=e) from e

    @abstractmethod
    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        """Run the tool with validated arguments."""
        pass

    def describe(self) -> dict[str, Any]:
        """Return name, description, security flags and argument schema."""
        info: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "security": self._security.to_dict(),
        }
        if self.args_model is not None:
            info["parameters"] = self.args_model.model_json_schema()
        return info


class FunctionTool(BaseTool):
    """Adapter turning a plain sync or async callable into a tool.

    The callable receives the arguments as keyword arguments.
    """

    def __init__(
        self,
        name: str,
        func: Callable[..., Any] | Callable[..., Awaitable[Any]],
        description: str = "",
        security: ToolSecurity | None = None,
        args_model: type[BaseModel] | None = None,
    ) -> None:
        self.name = name
        self.description = description or (inspect.getdoc(func) or "")
        self.args_model = args_model
        self._func = func
        super().__init__(security)

    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        result = self._func(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result
