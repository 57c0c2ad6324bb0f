"""Deadline helpers for model and tool invocations."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float | None,
    on_timeout: Callable[[], Exception],
) -> T:
    """Await ``awaitable`` under a deadline.

    The awaited task is cancelled when the deadline passes and the exception
    built by ``on_timeout`` is raised in its place. ``None`` disables the
    deadline.
    """
    if timeout_seconds is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise on_timeout() from e
