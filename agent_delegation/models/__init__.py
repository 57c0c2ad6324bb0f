"""Data models package.

This module defines all data models used by the agent delegation core.
"""

from .agent import (
    AgentDescriptor,
    AgentPermissions,
    AgentStatus,
    AgentStyle,
)
from .delegation import (
    DelegationContext,
    DelegationRecord,
    PolicyEvaluation,
    TaskClassification,
)
from .message import (
    Message,
    MessageSender,
    Response,
    ToolCall,
)
from .workflow import (
    Workflow,
    WorkflowExecution,
    WorkflowStatus,
    WorkflowStep,
)

__all__ = [
    # Agent models
    "AgentDescriptor",
    "AgentPermissions",
    "AgentStatus",
    "AgentStyle",
    # Message models
    "Message",
    "MessageSender",
    "Response",
    "ToolCall",
    # Delegation models
    "DelegationContext",
    "DelegationRecord",
    "PolicyEvaluation",
    "TaskClassification",
    # Workflow models
    "Workflow",
    "WorkflowExecution",
    "WorkflowStatus",
    "WorkflowStep",
]
