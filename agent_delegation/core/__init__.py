"""Core components package.

This package contains the delegation core: conversation contexts, the
delegation policy and manager, and the coordinator that ties them together.
"""

from .context import ContextStore, ConversationContext, HistoryEntry
from .coordinator import Coordinator, parse_classification
from .delegation import DelegationManager, format_tool_result
from .policy import (
    ConditionOperator,
    ConditionType,
    DelegationPolicy,
    PolicyCondition,
    PolicyRule,
    create_default_rules,
    select_by_role,
)
from .registry import AgentRegistry
from .requirements import (
    KeywordRequirementInferrer,
    RequirementInferrer,
    Requirements,
)

__all__ = [
    # Context
    "ContextStore",
    "ConversationContext",
    "HistoryEntry",
    # Registry
    "AgentRegistry",
    # Policy
    "ConditionOperator",
    "ConditionType",
    "DelegationPolicy",
    "PolicyCondition",
    "PolicyRule",
    "create_default_rules",
    "select_by_role",
    # Requirements
    "KeywordRequirementInferrer",
    "RequirementInferrer",
    "Requirements",
    # Delegation
    "DelegationManager",
    "format_tool_result",
    # Coordinator
    "Coordinator",
    "parse_classification",
]
