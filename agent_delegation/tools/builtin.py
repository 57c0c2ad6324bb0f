"""Built-in tools.

``rag.search``/``rag.answer`` work over an injectable retriever, ``fs.read`` and
``fs.write`` are confined to sandbox directories, ``math.evaluate`` walks the
expression AST instead of calling ``eval``, ``calendar.local`` keeps events in
memory and ``web.fetch`` only contacts allowed domains.
"""

from __future__ import annotations

import ast
import asyncio
import math
import operator
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

import httpx
from pydantic import BaseModel, Field

from agent_delegation.tools.base import BaseTool, ToolSecurity
from agent_delegation.tools.registry import ToolRegistry
from agent_delegation.utils.config import ToolSettings
from agent_delegation.utils.exceptions import ToolExecutionError

# (query, k, filters) -> documents with content/source/score keys
Retriever = Callable[[str, int, dict[str, Any]], Awaitable[list[dict[str, Any]]]]


# ============================================================================
# RAG
# ============================================================================


class RagSearchArgs(BaseModel):
    query: str = Field(..., min_length=1)
    k: int = Field(default=5, ge=1, le=20)
    filters: dict[str, Any] = Field(default_factory=dict)


class RagSearchTool(BaseTool):
    """Search the knowledge base through the configured retriever."""

    name = "rag.search"
    description = "Search the knowledge base"
    args_model = RagSearchArgs

    def __init__(self, retriever: Retriever | None = None) -> None:
        super().__init__(ToolSecurity())
        self._retriever = retriever

    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        results: list[dict[str, Any]] = []
        if self._retriever is not None:
            results = await self._retriever(
                arguments["query"], arguments["k"], arguments["filters"]
            )
        return {
            "query": arguments["query"],
            "results": results[: arguments["k"]],
            "total_results": len(results),
        }


class RagAnswerArgs(BaseModel):
    query: str = Field(..., min_length=1)
    context_docs: list[dict[str, Any]] = Field(default_factory=list)
    style: str = "professional"


class RagAnswerTool(BaseTool):
    """Assemble a grounded answer from retrieved documents."""

    name = "rag.answer"
    description = "Compose an answer from retrieved context documents"
    args_model = RagAnswerArgs

    def __init__(self) -> None:
        super().__init__(ToolSecurity())

    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        docs = arguments["context_docs"]
        excerpts = [str(doc.get("content", "")).strip() for doc in docs]
        sources = [doc["source"] for doc in docs if doc.get("source")]
        return {
            "query": arguments["query"],
            "answer": "\n\n".join(e for e in excerpts if e),
            "sources": sources,
            "style": arguments["style"],
        }


# ============================================================================
# Filesystem
# ============================================================================


def resolve_in_sandbox(path: str, allowed_dirs: list[Path]) -> Path:
    """Resolve ``path`` and make sure it stays inside an allowed directory.

    Relative paths are resolved against the first allowed directory.

    Raises:
        PermissionError: If the resolved path escapes every allowed directory.
    """
    if not allowed_dirs:
        raise PermissionError("No sandbox directory configured")
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = allowed_dirs[0] / candidate
    resolved = candidate.resolve()
    for directory in allowed_dirs:
        if resolved.is_relative_to(directory):
            return resolved
    raise PermissionError(f"Path outside sandbox: {path}")


class FileReadArgs(BaseModel):
    path: str = Field(..., min_length=1)


class FileReadTool(BaseTool):
    """Read a UTF-8 text file from a sandbox directory."""

    name = "fs.read"
    description = "Read the content of a file"
    args_model = FileReadArgs

    def __init__(self, allowed_dirs: list[str | Path]) -> None:
        super().__init__(ToolSecurity(requires_filesystem=True))
        self._allowed_dirs = [Path(d).resolve() for d in allowed_dirs]

    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        path = resolve_in_sandbox(arguments["path"], self._allowed_dirs)
        content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return {"path": str(path), "content": content, "size": len(content)}


class FileWriteArgs(BaseModel):
    path: str = Field(..., min_length=1)
    content: str


class FileWriteTool(BaseTool):
    """Write a UTF-8 text file. Only the first sandbox directory is writable."""

    name = "fs.write"
    description = "Write content to a file"
    args_model = FileWriteArgs

    def __init__(self, sandbox_dir: str | Path) -> None:
        super().__init__(ToolSecurity(requires_filesystem=True))
        self._sandbox_dir = Path(sandbox_dir).resolve()

    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        path = resolve_in_sandbox(arguments["path"], [self._sandbox_dir])
        content = arguments["content"]

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")

        await asyncio.to_thread(write)
        return {"path": str(path), "size": len(content), "success": True}


# ============================================================================
# Math
# ============================================================================

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "log": math.log,
    "exp": math.exp,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}

_CONSTANTS: dict[str, float] = {"pi": math.pi, "e": math.e}

# Guards against 9**9**9 style expressions
_MAX_EXPONENT = 1000


def evaluate_expression(expression: str) -> int | float:
    """Evaluate an arithmetic expression without ``eval``.

    Raises:
        ValueError: If the expression uses anything but numbers, arithmetic
            operators, the whitelisted functions and constants.
    """

    def visit(node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return visit(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
            if isinstance(node.value, bool):
                raise ValueError("Booleans are not numbers here")
            return node.value
        if isinstance(node, ast.Name) and node.id in _CONSTANTS:
            return _CONSTANTS[node.id]
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
            left, right = visit(node.left), visit(node.right)
            if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
                raise ValueError("Exponent too large")
            return _BINARY_OPERATORS[type(node.op)](left, right)
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
            return _UNARY_OPERATORS[type(node.op)](visit(node.operand))
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id in _FUNCTIONS
            and not node.keywords
        ):
            return _FUNCTIONS[node.func.id](*(visit(arg) for arg in node.args))
        raise ValueError(f"Unsupported expression element: {type(node).__name__}")

    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression}") from e
    return visit(tree)


class MathEvaluateArgs(BaseModel):
    expression: str = Field(..., min_length=1)


class MathEvaluateTool(BaseTool):
    """Evaluate an arithmetic expression."""

    name = "math.evaluate"
    description = "Evaluate a mathematical expression"
    args_model = MathEvaluateArgs

    def __init__(self) -> None:
        super().__init__(ToolSecurity())

    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        expression = arguments["expression"]
        try:
            result = evaluate_expression(expression)
        except (ValueError, ArithmeticError) as e:
            raise ToolExecutionError(self.name, str(e), cause=e) from e
        return {"expression": expression, "result": result}


# ============================================================================
# Calendar
# ============================================================================


class CalendarEvent(BaseModel):
    title: str
    start: str
    end: str | None = None
    description: str = ""


class CalendarArgs(BaseModel):
    action: Literal["get_date", "get_events", "add_event"]
    date: str | None = None
    event: CalendarEvent | None = None


class CalendarTool(BaseTool):
    """In-memory local calendar."""

    name = "calendar.local"
    description = "Read the current date and manage local calendar events"
    args_model = CalendarArgs

    def __init__(self, timezone: str = "UTC") -> None:
        super().__init__(ToolSecurity())
        self._timezone = ZoneInfo(timezone)
        self._events: list[dict[str, Any]] = []

    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        action = arguments["action"]
        now = datetime.now(self._timezone)

        if action == "get_date":
            return {"current_date": now.isoformat(), "timezone": str(self._timezone)}

        if action == "get_events":
            day = arguments.get("date") or now.date().isoformat()
            events = [e for e in self._events if e["start"].startswith(day)]
            return {"date": day, "events": events}

        event = arguments.get("event")
        if not event:
            raise ToolExecutionError(self.name, "add_event requires an event")
        stored = {**event, "id": uuid.uuid4().hex[:9]}
        self._events.append(stored)
        return {"success": True, "event": stored}


# ============================================================================
# Web
# ============================================================================


class WebFetchArgs(BaseModel):
    url: str = Field(..., min_length=1)
    max_chars: int = Field(default=20000, ge=1)


class WebFetchTool(BaseTool):
    """Fetch a URL from an allowed domain."""

    name = "web.fetch"
    description = "Fetch the content of a web page"
    args_model = WebFetchArgs

    def __init__(
        self,
        allowed_domains: list[str],
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        super().__init__(ToolSecurity(requires_network=True))
        self._allowed_domains = [d.strip().lower() for d in allowed_domains if d.strip()]
        self._client = client
        self._timeout = timeout

    def is_allowed(self, url: str) -> bool:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return False
        host = parsed.hostname.lower()
        return any(
            host == domain or host.endswith("." + domain)
            for domain in self._allowed_domains
        )

    async def _run(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        url = arguments["url"]
        if not self.is_allowed(url):
            raise ToolExecutionError(self.name, f"Domain not allowed: {url}")

        if self._client is not None:
            response = await self._client.get(url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, follow_redirects=True)

        return {
            "url": url,
            "status": response.status_code,
            "content": response.text[: arguments["max_chars"]],
            "timestamp": datetime.now(ZoneInfo("UTC")).isoformat(),
        }


def register_builtin_tools(
    registry: ToolRegistry,
    settings: ToolSettings | None = None,
    retriever: Retriever | None = None,
) -> list[str]:
    """Register every built-in tool.

    Returns:
        Names of the registered tools.
    """
    settings = settings or ToolSettings()
    sandbox_dirs = settings.sandbox_directories
    tools: list[BaseTool] = [
        RagSearchTool(retriever),
        RagAnswerTool(),
        FileReadTool(sandbox_dirs),
        FileWriteTool(sandbox_dirs[0] if sandbox_dirs else "./sandbox"),
        MathEvaluateTool(),
        CalendarTool(settings.timezone),
        WebFetchTool(settings.allowed_domains),
    ]
    for tool in tools:
        registry.register(tool)
    return [tool.name for tool in tools]
