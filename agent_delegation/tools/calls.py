"""Parser for tool calls embedded in model replies.

Agents request tools inline with ``@tool.name({"json": "arguments"})``. The
parser scans a reply and yields either a :class:`ParsedCall` or a
:class:`MalformedCall` for every ``@name(`` occurrence, so callers can run the
valid ones and report the rest.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

# Tool names look like identifiers joined by dots or dashes: rag.search, fs.read
_CALL_START = re.compile(r"@([A-Za-z_][\w.\-]*)\(")
_DECODER = json.JSONDecoder()


@dataclass(frozen=True)
class ParsedCall:
    """A well-formed tool call and its position in the source text."""

    name: str
    arguments: dict[str, Any] = field(hash=False)
    raw: str
    span: tuple[int, int]


@dataclass(frozen=True)
class MalformedCall:
    """A ``@name(`` occurrence whose arguments could not be parsed."""

    raw: str
    reason: str
    span: tuple[int, int]


ToolCallMatch = ParsedCall | MalformedCall


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def iter_tool_calls(text: str) -> Iterator[ToolCallMatch]:
    """Yield every tool call occurrence in ``text`` in order."""
    pos = 0
    while True:
        match = _CALL_START.search(text, pos)
        if match is None:
            return
        name = match.group(1).rstrip(".-")
        start = match.start()
        args_pos = _skip_whitespace(text, match.end())

        # @name() carries no arguments
        if args_pos < len(text) and text[args_pos] == ")":
            end = args_pos + 1
            yield ParsedCall(name, {}, text[start:end], (start, end))
            pos = end
            continue

        try:
            arguments, args_end = _DECODER.raw_decode(text, args_pos)
        except json.JSONDecodeError as e:
            end = text.find(")", match.end())
            end = len(text) if end == -1 else end + 1
            yield MalformedCall(text[start:end], f"invalid JSON: {e.msg}", (start, end))
            pos = match.end()
            continue

        close = _skip_whitespace(text, args_end)
        if close >= len(text) or text[close] != ")":
            yield MalformedCall(
                text[start:args_end], "missing closing parenthesis", (start, args_end)
            )
            pos = args_end
            continue

        end = close + 1
        if not isinstance(arguments, dict):
            yield MalformedCall(
                text[start:end], "arguments must be a JSON object", (start, end)
            )
        else:
            yield ParsedCall(name, arguments, text[start:end], (start, end))
        pos = end


def parse_tool_calls(text: str) -> tuple[list[ParsedCall], list[MalformedCall]]:
    """Split the tool calls found in ``text`` into parsed and malformed ones."""
    parsed: list[ParsedCall] = []
    malformed: list[MalformedCall] = []
    for call in iter_tool_calls(text):
        if isinstance(call, ParsedCall):
            parsed.append(call)
        else:
            malformed.append(call)
    return parsed, malformed


def replace_calls(text: str, replacements: list[tuple[ParsedCall, str]]) -> str:
    """Replace each call's source text with its replacement string."""
    result = text
    for call, replacement in sorted(
        replacements, key=lambda item: item[0].span[0], reverse=True
    ):
        start, end = call.span
        result = result[:start] + replacement + result[end:]
    return result
