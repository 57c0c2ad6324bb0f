"""Tool Registry - named tool lookup and execution.

The registry only stores and runs tools. Permission enforcement belongs to the
caller (the delegation manager).
"""

from __future__ import annotations

from typing import Any

from agent_delegation.models import AgentPermissions
from agent_delegation.tools.base import BaseTool
from agent_delegation.utils.exceptions import ToolNotFoundError
from agent_delegation.utils.logging import get_logger

logger = get_logger(__name__)


class ToolRegistry:
    """Registry of tools keyed by name."""

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool, replacing any tool with the same name."""
        if tool.name in self._tools:
            logger.warning("tool_overwritten", tool=tool.name)
        self._tools[tool.name] = tool
        logger.debug("tool_registered", tool=tool.name)

    def get(self, name: str) -> BaseTool | None:
        """Get a tool by name, or None if it is not registered."""
        return self._tools.get(name)

    def remove(self, name: str) -> bool:
        """Remove a tool.

        Returns:
            True if the tool was removed, False if not found.
        """
        if name in self._tools:
            del self._tools[name]
            return True
        return False

    def list(self) -> list[str]:
        """List registered tool names in registration order."""
        return list(self._tools.keys())

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        context: dict[str, Any] | None = None,
    ) -> Any:
        """Execute a tool by name.

        Raises:
            ToolNotFoundError: If no tool has that name.
            ToolExecutionError: If the tool fails.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        logger.debug("tool_executing", tool=name)
        return await tool.execute(arguments, context)

    def validate_tool_permissions(
        self, name: str, permissions: AgentPermissions
    ) -> list[str]:
        """Check a tool's security profile against an agent's permissions.

        Returns:
            Human-readable violations; empty when the tool may run. Unknown
            tools yield no violations here since execution reports them.
        """
        tool = self._tools.get(name)
        if tool is None:
            return []
        violations: list[str] = []
        if tool.security.requires_network and not permissions.network:
            violations.append(f"{name} requires network access")
        if tool.security.requires_filesystem and not permissions.filesystem:
            violations.append(f"{name} requires filesystem access")
        return violations

    def get_tool_stats(self) -> dict[str, Any]:
        """Return per-tool descriptions and security flags."""
        return {
            "total_tools": len(self._tools),
            "tools": {name: tool.describe() for name, tool in self._tools.items()},
        }

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
