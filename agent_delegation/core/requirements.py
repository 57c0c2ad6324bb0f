"""Requirement inference for the delegation permission gate.

The gate asks a :class:`RequirementInferrer` what a message needs (network,
filesystem, specific tools) and compares the answer with the target agent's
permissions. The keyword heuristic below is the default; a model-based
classifier can replace it without touching the gate.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Requirements:
    """What a message needs in order to be handled."""

    network: bool = False
    filesystem: bool = False
    tools: frozenset[str] = field(default_factory=frozenset)


@runtime_checkable
class RequirementInferrer(Protocol):
    """Infers the capabilities a message requires."""

    def infer(self, content: str) -> Requirements:
        ...


NETWORK_KEYWORDS = ("web", "http", "https", "api", "fetch", "download", "url", "link")
FILESYSTEM_KEYWORDS = ("file", "read", "write", "save", "load", "document", "folder")

# keyword stems -> tools they imply; "recherche", "fichier" and "calcul" cover French
TOOL_KEYWORDS: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("search", "recherche"), ("rag.search",)),
    (("file", "fichier"), ("fs.read", "fs.write")),
    (("calculat", "calcul"), ("math.evaluate",)),
)


def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    # Anywhere in the text: "overwrite" needs the filesystem, "curl" the network
    return re.compile("|".join(re.escape(k) for k in keywords), re.IGNORECASE)


class KeywordRequirementInferrer:
    """Keyword heuristic over the message text.

    A keyword matches anywhere in the text, so ``"overwrite"`` requires the
    filesystem and ``"Recalculate"`` requires ``math.evaluate``.
    """

    def __init__(
        self,
        network_keywords: tuple[str, ...] = NETWORK_KEYWORDS,
        filesystem_keywords: tuple[str, ...] = FILESYSTEM_KEYWORDS,
        tool_keywords: tuple[
            tuple[tuple[str, ...], tuple[str, ...]], ...
        ] = TOOL_KEYWORDS,
    ) -> None:
        self._network = _keyword_pattern(network_keywords)
        self._filesystem = _keyword_pattern(filesystem_keywords)
        self._tools = [
            (_keyword_pattern(stems), tools) for stems, tools in tool_keywords
        ]

    def infer(self, content: str) -> Requirements:
        tools: list[str] = []
        for pattern, implied in self._tools:
            if pattern.search(content):
                tools.extend(t for t in implied if t not in tools)
        return Requirements(
            network=bool(self._network.search(content)),
            filesystem=bool(self._filesystem.search(content)),
            tools=frozenset(tools),
        )
