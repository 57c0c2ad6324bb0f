"""Delegation Manager - runs one delegation end to end.

A delegation passes a permission gate, hands a context-aware prompt to the
target agent, runs the tool calls embedded in the reply concurrently and
records exactly one :class:`DelegationRecord` whatever the outcome.
"""

from __future__ import annotations

import asyncio
import json
from collections import Counter
from typing import Any

from agent_delegation.agents.base import Agent, AgentContext
from agent_delegation.core.context import ContextStore
from agent_delegation.core.requirements import (
    KeywordRequirementInferrer,
    RequirementInferrer,
)
from agent_delegation.models import (
    AgentDescriptor,
    DelegationContext,
    DelegationRecord,
    Message,
    Response,
    ToolCall,
)
from agent_delegation.tools.calls import ParsedCall, parse_tool_calls, replace_calls
from agent_delegation.tools.registry import ToolRegistry
from agent_delegation.utils.exceptions import (
    PermissionDeniedError,
    ToolExecutionError,
    ToolTimeoutError,
)
from agent_delegation.utils.logging import get_conversation_logger
from agent_delegation.utils.timeouts import run_with_timeout

UNKNOWN_CONVERSATION = "unknown"


class DelegationManager:
    """Executes delegations and keeps their records.

    Attributes:
        contexts: Store holding the per-conversation delegation history.
    """

    def __init__(
        self,
        tool_registry: ToolRegistry,
        contexts: ContextStore | None = None,
        inferrer: RequirementInferrer | None = None,
        tool_timeout: float | None = None,
        delegator_id: str = "coordinator",
    ) -> None:
        """Initialize the manager.

        Args:
            tool_registry: Registry used to run extracted tool calls.
            contexts: Conversation contexts; records are appended here.
            inferrer: Requirement inferrer for the permission gate.
            tool_timeout: Deadline per tool call in seconds; None disables it.
            delegator_id: ``from_agent_id`` written on every record.
        """
        self._tools = tool_registry
        self.contexts = contexts or ContextStore()
        self._inferrer = inferrer or KeywordRequirementInferrer()
        self._tool_timeout = tool_timeout
        self._delegator_id = delegator_id

    async def delegate(
        self,
        target_agent: Agent,
        message: Message,
        delegation_context: DelegationContext,
    ) -> Response:
        """Delegate a message to an agent.

        Args:
            target_agent: Agent that should handle the message.
            message: Message as received from the caller.
            delegation_context: Shared context snapshot and prior delegations.

        Returns:
            The agent's reply with tool results integrated.

        Raises:
            PermissionDeniedError: If the agent lacks a required permission.
            AgentBusyError: If the agent is already processing a message.
            ModelBackendError: If the agent's model call fails.
        """
        conversation_id = message.conversation_id or UNKNOWN_CONVERSATION
        context = self.contexts.get_or_create(conversation_id)
        descriptor = target_agent.descriptor
        logger = get_conversation_logger(conversation_id).bind(agent_id=descriptor.id)

        try:
            self.check_permissions(descriptor, message, delegation_context)
            prompt = self.build_prompt(descriptor, message, delegation_context)
            agent_context = AgentContext(
                conversation_id=message.conversation_id,
                metadata={
                    **message.metadata,
                    "delegated": True,
                    "original_message": message.content,
                },
            )
            response = await target_agent.process(prompt, agent_context)
            response = await self._apply_tools(descriptor, message, response)
        except asyncio.CancelledError:
            self._record(context, descriptor.id, message, error="cancelled")
            raise
        except Exception as e:
            self._record(context, descriptor.id, message, error=str(e))
            logger.warning("delegation_failed", error=str(e), error_type=type(e).__name__)
            raise

        self._record(context, descriptor.id, message, response=response)
        logger.info(
            "delegation_completed",
            tools_used=response.metadata.get("tools_used", []),
        )
        return response

    def _record(
        self,
        context: Any,
        agent_id: str,
        message: Message,
        response: Response | None = None,
        error: str | None = None,
    ) -> None:
        context.add_delegation(
            DelegationRecord(
                from_agent_id=self._delegator_id,
                to_agent_id=agent_id,
                message=message,
                response=response,
                success=error is None,
                error=error,
            )
        )

    # ------------------------------------------------------------------
    # Permission gate
    # ------------------------------------------------------------------

    def check_permissions(
        self,
        descriptor: AgentDescriptor,
        message: Message,
        delegation_context: DelegationContext,
    ) -> None:
        """Raise if the agent may not handle the message.

        Raises:
            PermissionDeniedError: On missing network, filesystem or tool access.
        """
        requirements = self._inferrer.infer(message.content)
        permissions = descriptor.permissions

        if requirements.network and not permissions.network:
            raise PermissionDeniedError(
                descriptor.id,
                f"Agent {descriptor.name} does not have network permissions",
                missing=["network"],
            )
        if requirements.filesystem and not permissions.filesystem:
            raise PermissionDeniedError(
                descriptor.id,
                f"Agent {descriptor.name} does not have filesystem permissions",
                missing=["filesystem"],
            )

        required_tools = set(requirements.tools) | set(delegation_context.required_tools)
        unauthorized = sorted(t for t in required_tools if not descriptor.can_use_tool(t))
        if unauthorized:
            raise PermissionDeniedError(
                descriptor.id,
                f"Agent {descriptor.name} is not authorized to use tools: "
                f"{', '.join(unauthorized)}",
                missing=unauthorized,
            )

    # ------------------------------------------------------------------
    # Prompt
    # ------------------------------------------------------------------

    @staticmethod
    def build_prompt(
        descriptor: AgentDescriptor,
        message: Message,
        delegation_context: DelegationContext,
    ) -> str:
        """Build the contextual prompt handed to the target agent."""
        shared = json.dumps(
            delegation_context.coordinator_context,
            indent=2,
            ensure_ascii=False,
            default=str,
        )
        intro = f"You are {descriptor.name}"
        if descriptor.description:
            intro += f", {descriptor.description}"
        tools = ", ".join(descriptor.tools) or "none"
        return (
            f"{intro}.\n\n"
            f"Role: {descriptor.role}\n\n"
            "You have been delegated this task. Here is the context:\n\n"
            f"**Original task:** {message.content}\n\n"
            f"**Coordinator context:** {shared}\n\n"
            f"**Delegation history:** "
            f"{len(delegation_context.delegation_history)} previous delegations\n\n"
            f"Available tools: {tools}\n\n"
            "Respond professionally and focus on your expertise. If you need "
            "more information, ask for it clearly."
        )

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    async def _apply_tools(
        self,
        descriptor: AgentDescriptor,
        message: Message,
        response: Response,
    ) -> Response:
        parsed, malformed = parse_tool_calls(response.content)
        for bad in malformed:
            get_conversation_logger(
                message.conversation_id or UNKNOWN_CONVERSATION
            ).warning(
                "malformed_tool_call",
                agent_id=descriptor.id,
                raw=bad.raw,
                reason=bad.reason,
            )
        if not parsed:
            return response

        tool_context = {
            "agent_id": descriptor.id,
            "agent_name": descriptor.name,
            "conversation_id": message.conversation_id,
            "knowledge_packs": list(descriptor.knowledge_packs),
        }
        results = await asyncio.gather(
            *(self._run_tool_call(descriptor, call, tool_context) for call in parsed)
        )

        replacements = [
            (call, format_tool_result(result)) for call, result in zip(parsed, results)
        ]
        return response.model_copy(
            update={
                "content": replace_calls(response.content, replacements),
                "tool_calls": [*(response.tool_calls or []), *results],
                "metadata": {
                    **response.metadata,
                    "tools_used": [result.name for result in results],
                    "tool_results": [
                        {
                            "name": result.name,
                            "success": result.succeeded,
                            "result": result.result,
                            "error": result.error,
                        }
                        for result in results
                    ],
                },
            }
        )

    async def _run_tool_call(
        self,
        descriptor: AgentDescriptor,
        call: ParsedCall,
        tool_context: dict[str, Any],
    ) -> ToolCall:
        tool_call = ToolCall(name=call.name, arguments=call.arguments)
        try:
            self._authorize_tool(descriptor, call.name)
            tool_call.result = await run_with_timeout(
                self._tools.execute(call.name, call.arguments, tool_context),
                self._tool_timeout,
                lambda: ToolTimeoutError(call.name, self._tool_timeout or 0),
            )
        except Exception as e:
            error = (
                e
                if isinstance(e, ToolExecutionError)
                else ToolExecutionError(call.name, str(e), cause=e)
            )
            tool_call.error = error.message
            get_conversation_logger(
                tool_context.get("conversation_id") or UNKNOWN_CONVERSATION
            ).warning(
                "tool_call_failed",
                agent_id=descriptor.id,
                tool=call.name,
                error=error.message,
                error_type=type(e).__name__,
            )
        return tool_call

    def _authorize_tool(self, descriptor: AgentDescriptor, tool_name: str) -> None:
        if not descriptor.can_use_tool(tool_name):
            raise PermissionDeniedError(
                descriptor.id,
                f"Agent {descriptor.name} is not authorized to use tool {tool_name}",
                missing=[tool_name],
            )
        violations = self._tools.validate_tool_permissions(
            tool_name, descriptor.permissions
        )
        if violations:
            raise PermissionDeniedError(
                descriptor.id, "; ".join(violations), missing=[tool_name]
            )

    # ------------------------------------------------------------------
    # History and statistics
    # ------------------------------------------------------------------

    def get_delegation_history(self, conversation_id: str) -> list[DelegationRecord]:
        context = self.contexts.get(conversation_id)
        return context.get_delegation_history() if context else []

    def clear_delegation_history(self, conversation_id: str | None = None) -> None:
        """Forget delegation records for one conversation, or for all."""
        if conversation_id is not None:
            context = self.contexts.get(conversation_id)
            if context is not None:
                context.clear_delegations()
            return
        for context in self.contexts:
            context.clear_delegations()

    def get_delegation_stats(self) -> dict[str, Any]:
        """Aggregate delegation outcomes across every tracked conversation."""
        records = [
            record
            for context in self.contexts
            for record in context.get_delegation_history()
        ]
        successful = sum(1 for record in records if record.success)
        per_agent: dict[str, dict[str, int]] = {}
        for record in records:
            counts = per_agent.setdefault(record.to_agent_id, {"success": 0, "failure": 0})
            counts["success" if record.success else "failure"] += 1

        totals = Counter(record.to_agent_id for record in records)
        return {
            "total_delegations": len(records),
            "successful_delegations": successful,
            "failed_delegations": len(records) - successful,
            "success_rate": successful / len(records) if records else 0.0,
            "agent_stats": per_agent,
            "most_delegated_agent": totals.most_common(1)[0][0] if totals else None,
        }


def format_tool_result(call: ToolCall) -> str:
    """Render a tool outcome as the line replacing the call in the reply."""
    if call.succeeded:
        rendered = json.dumps(call.result, ensure_ascii=False, default=str)
        return f"**Result of {call.name}:** {rendered}"
    return f"**Error {call.name}:** {call.error}"
