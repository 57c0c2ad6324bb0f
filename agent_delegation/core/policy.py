"""Delegation Policy - prioritized rule engine.

Every rule is a list of conditions joined with AND plus a selector that picks
the target agent. Among the matching rules the one with the highest priority
wins; on equal priority the rule declared first wins.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agent_delegation.core.context import ConversationContext
from agent_delegation.models import (
    AgentDescriptor,
    Message,
    PolicyEvaluation,
    TaskClassification,
)
from agent_delegation.utils.logging import get_logger

logger = get_logger(__name__)

TargetSelector = Callable[
    [Mapping[str, AgentDescriptor], ConversationContext], str | None
]
CustomPredicate = Callable[[Message, TaskClassification, ConversationContext], bool]


class ConditionType(str, Enum):
    """What a condition inspects."""

    KEYWORD = "keyword"
    COMPLEXITY = "complexity"
    TOOL = "tool"
    DOMAIN = "domain"
    CUSTOM = "custom"


class ConditionOperator(str, Enum):
    """How a condition compares."""

    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    REGEX = "regex"
    FUNCTION = "function"


COMPLEXITY_LEVELS: dict[str, int] = {"simple": 1, "moderate": 2, "complex": 3}

NO_MATCH_REASON = "No matching delegation rules"
NO_TARGET_REASON = "No suitable target agent found"


@dataclass
class PolicyCondition:
    """One predicate of a rule."""

    type: ConditionType
    operator: ConditionOperator
    value: Any

    def __post_init__(self) -> None:
        self.type = ConditionType(self.type)
        self.operator = ConditionOperator(self.operator)


@dataclass
class PolicyRule:
    """Named, prioritized rule nominating a target agent."""

    id: str
    name: str
    description: str
    conditions: list[PolicyCondition]
    priority: int
    target_selector: TargetSelector = field(repr=False)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


class DelegationPolicy:
    """Decides whether to delegate a message and to whom."""

    def __init__(
        self,
        rules: list[PolicyRule] | None = None,
        include_default_rules: bool = True,
    ) -> None:
        """Initialize the policy.

        Args:
            rules: Extra rules appended after the defaults.
            include_default_rules: Whether to install the built-in rules.
        """
        self._rules: list[PolicyRule] = []
        if include_default_rules:
            self._rules.extend(create_default_rules())
        self._rules.extend(rules or [])

    def evaluate(
        self,
        message: Message,
        classification: TaskClassification,
        available_agents: Mapping[str, AgentDescriptor],
        context: ConversationContext,
    ) -> PolicyEvaluation:
        """Evaluate all rules against a message.

        Args:
            message: Incoming message.
            classification: Model-produced label of the message.
            available_agents: Candidate agents keyed by id.
            context: Conversation the message belongs to.

        Returns:
            The decision. ``should_delegate`` is only True when the best rule's
            selector returns an id present in ``available_agents``.
        """
        matched: list[PolicyRule] = []
        best: PolicyRule | None = None
        for rule in self._rules:
            if self._matches(rule, message, classification, context):
                matched.append(rule)
                if best is None or rule.priority > best.priority:
                    best = rule

        if best is None:
            return PolicyEvaluation(
                should_delegate=False,
                reason=NO_MATCH_REASON,
                confidence=0.5,
                matched_rule_ids=[],
            )

        matched_ids = [rule.id for rule in matched]
        target_id = self._select_target(best, available_agents, context)
        if target_id is None:
            return PolicyEvaluation(
                should_delegate=False,
                reason=NO_TARGET_REASON,
                confidence=0.3,
                matched_rule_ids=matched_ids,
            )

        return PolicyEvaluation(
            should_delegate=True,
            target_agent_id=target_id,
            reason=best.description,
            confidence=self.calculate_confidence(best, matched),
            matched_rule_ids=matched_ids,
        )

    @staticmethod
    def calculate_confidence(best: PolicyRule, matched: list[PolicyRule]) -> float:
        """Score a decision from the winning rule and its competitors."""
        confidence = min(best.priority / 10, 1.0)
        if len(matched) > 1:
            confidence += 0.1
        if any(
            rule is not best and rule.priority >= best.priority * 0.8
            for rule in matched
        ):
            confidence -= 0.2
        return max(0.0, min(1.0, confidence))

    def _select_target(
        self,
        rule: PolicyRule,
        available_agents: Mapping[str, AgentDescriptor],
        context: ConversationContext,
    ) -> str | None:
        if not available_agents:
            return None
        try:
            target_id = rule.target_selector(available_agents, context)
        except Exception as e:
            logger.warning("policy_selector_failed", rule=rule.id, error=str(e))
            return None
        if target_id is None or target_id not in available_agents:
            return None
        return target_id

    def _matches(
        self,
        rule: PolicyRule,
        message: Message,
        classification: TaskClassification,
        context: ConversationContext,
    ) -> bool:
        return all(
            self._evaluate_condition(condition, message, classification, context)
            for condition in rule.conditions
        )

    def _evaluate_condition(
        self,
        condition: PolicyCondition,
        message: Message,
        classification: TaskClassification,
        context: ConversationContext,
    ) -> bool:
        if condition.type == ConditionType.KEYWORD:
            return self._keyword(condition, message.content)
        if condition.type == ConditionType.COMPLEXITY:
            return self._complexity(condition, classification)
        if condition.type == ConditionType.TOOL:
            return self._tool(condition, classification)
        if condition.type == ConditionType.DOMAIN:
            return self._domain(condition, classification)
        if condition.type == ConditionType.CUSTOM:
            return self._custom(condition, message, classification, context)
        return False

    @staticmethod
    def _keyword(condition: PolicyCondition, content: str) -> bool:
        content_lower = content.lower()
        keywords = [str(k).lower() for k in _as_list(condition.value)]

        if condition.operator == ConditionOperator.CONTAINS:
            return any(keyword in content_lower for keyword in keywords)
        if condition.operator == ConditionOperator.EQUALS:
            return any(keyword == content_lower for keyword in keywords)
        if condition.operator == ConditionOperator.REGEX:
            for pattern in _as_list(condition.value):
                try:
                    if re.search(str(pattern), content, re.IGNORECASE):
                        return True
                except re.error:
                    return False
            return False
        return False

    @staticmethod
    def _complexity(
        condition: PolicyCondition, classification: TaskClassification
    ) -> bool:
        level = COMPLEXITY_LEVELS.get(classification.complexity, 2)
        try:
            threshold = float(condition.value)
        except (TypeError, ValueError):
            return False

        if condition.operator == ConditionOperator.GREATER_THAN:
            return level > threshold
        if condition.operator == ConditionOperator.LESS_THAN:
            return level < threshold
        if condition.operator == ConditionOperator.EQUALS:
            return level == threshold
        return False

    @staticmethod
    def _tool(condition: PolicyCondition, classification: TaskClassification) -> bool:
        required = set(classification.required_tools)
        wanted = set(_as_list(condition.value))

        if condition.operator == ConditionOperator.CONTAINS:
            return bool(required & wanted)
        if condition.operator == ConditionOperator.EQUALS:
            return required == wanted
        return False

    @staticmethod
    def _domain(
        condition: PolicyCondition, classification: TaskClassification
    ) -> bool:
        task_type = classification.type or "general"
        domains = [str(d) for d in _as_list(condition.value)]

        if condition.operator == ConditionOperator.CONTAINS:
            return any(domain.lower() in task_type.lower() for domain in domains)
        if condition.operator == ConditionOperator.EQUALS:
            return task_type in domains
        return False

    @staticmethod
    def _custom(
        condition: PolicyCondition,
        message: Message,
        classification: TaskClassification,
        context: ConversationContext,
    ) -> bool:
        if condition.operator != ConditionOperator.FUNCTION or not callable(
            condition.value
        ):
            return False
        try:
            return bool(condition.value(message, classification, context))
        except Exception as e:
            logger.warning("policy_predicate_failed", error=str(e))
            return False

    # ------------------------------------------------------------------
    # Rule management
    # ------------------------------------------------------------------

    def add_rule(self, rule: PolicyRule) -> None:
        """Append a rule. Later rules lose priority ties."""
        self._rules.append(rule)

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule by id.

        Returns:
            True if a rule was removed.
        """
        remaining = [rule for rule in self._rules if rule.id != rule_id]
        removed = len(remaining) != len(self._rules)
        self._rules = remaining
        return removed

    def get_rule(self, rule_id: str) -> PolicyRule | None:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def list_rules(self) -> list[PolicyRule]:
        """Return the rules in declaration order (copy of the list)."""
        return list(self._rules)


# ============================================================================
# Default rules
# ============================================================================


def select_by_role(*roles: str, tools: tuple[str, ...] = ()) -> TargetSelector:
    """Build a selector returning the first agent matching a role keyword or tool."""

    def selector(
        agents: Mapping[str, AgentDescriptor], context: ConversationContext
    ) -> str | None:
        for agent_id, agent in agents.items():
            if (tools and agent.has_tool(*tools)) or agent.has_role_keyword(*roles):
                return agent_id
        return None

    return selector


def create_default_rules() -> list[PolicyRule]:
    """Return fresh instances of the built-in rules."""
    return [
        PolicyRule(
            id="technical-tasks",
            name="Technical Tasks",
            description="Delegate technical and programming tasks to specialized agents",
            priority=8,
            conditions=[
                PolicyCondition(
                    ConditionType.KEYWORD,
                    ConditionOperator.CONTAINS,
                    [
                        "code",
                        "programming",
                        "debug",
                        "algorithm",
                        "function",
                        "class",
                        "api",
                        "database",
                        "sql",
                    ],
                ),
                PolicyCondition(
                    ConditionType.COMPLEXITY, ConditionOperator.GREATER_THAN, 2
                ),
            ],
            target_selector=select_by_role("developer", "programmer", "engineer"),
        ),
        PolicyRule(
            id="research-tasks",
            name="Research Tasks",
            description="Delegate research and analysis tasks to research agents",
            priority=7,
            conditions=[
                PolicyCondition(
                    ConditionType.KEYWORD,
                    ConditionOperator.CONTAINS,
                    [
                        "research",
                        "analyze",
                        "study",
                        "investigate",
                        "find",
                        "search",
                        "compare",
                    ],
                ),
            ],
            target_selector=select_by_role(
                "researcher", "analyst", tools=("rag.search",)
            ),
        ),
        PolicyRule(
            id="creative-tasks",
            name="Creative Tasks",
            description="Delegate creative tasks to creative agents",
            priority=6,
            conditions=[
                PolicyCondition(
                    ConditionType.KEYWORD,
                    ConditionOperator.CONTAINS,
                    ["write", "create", "design", "compose", "generate", "story", "content"],
                ),
            ],
            target_selector=select_by_role("writer", "creative", "content"),
        ),
        PolicyRule(
            id="math-tasks",
            name="Mathematical Tasks",
            description="Delegate mathematical calculations to math agents",
            priority=9,
            conditions=[
                PolicyCondition(
                    ConditionType.KEYWORD,
                    ConditionOperator.CONTAINS,
                    [
                        "calculate",
                        "compute",
                        "solve",
                        "equation",
                        "formula",
                        "math",
                        "statistics",
                    ],
                ),
                PolicyCondition(
                    ConditionType.TOOL, ConditionOperator.CONTAINS, ["math.evaluate"]
                ),
            ],
            target_selector=select_by_role(
                "mathematician", "analyst", tools=("math.evaluate",)
            ),
        ),
        PolicyRule(
            id="support-tasks",
            name="Support Tasks",
            description="Delegate customer support tasks to support agents",
            priority=5,
            conditions=[
                PolicyCondition(
                    ConditionType.KEYWORD,
                    ConditionOperator.CONTAINS,
                    ["help", "support", "problem", "issue", "customer", "service"],
                ),
            ],
            target_selector=select_by_role("support", "help", "assistant"),
        ),
    ]
