"""Tools package: base classes, registry, built-in tools and call parser."""

from agent_delegation.tools.base import BaseTool, FunctionTool, ToolSecurity
from agent_delegation.tools.registry import ToolRegistry
from agent_delegation.tools.calls import (
    MalformedCall,
    ParsedCall,
    iter_tool_calls,
    parse_tool_calls,
    replace_calls,
)
from agent_delegation.tools.builtin import (
    CalendarTool,
    FileReadTool,
    FileWriteTool,
    MathEvaluateTool,
    RagAnswerTool,
    RagSearchTool,
    WebFetchTool,
    evaluate_expression,
    register_builtin_tools,
)

__all__ = [
    "BaseTool",
    "FunctionTool",
    "ToolSecurity",
    "ToolRegistry",
    "ParsedCall",
    "MalformedCall",
    "iter_tool_calls",
    "parse_tool_calls",
    "replace_calls",
    "RagSearchTool",
    "RagAnswerTool",
    "FileReadTool",
    "FileWriteTool",
    "MathEvaluateTool",
    "CalendarTool",
    "WebFetchTool",
    "evaluate_expression",
    "register_builtin_tools",
]
