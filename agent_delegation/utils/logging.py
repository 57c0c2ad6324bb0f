"""Structured logging for the coordinator, its agents and their tools.

Events are structlog key/value records routed through the standard library
``logging`` handlers. Production renders one JSON object per line; development
renders colored console lines with rich tracebacks.

Every event emitted while :func:`turn_context` is active carries the
``turn_id`` of the message being handled, including events logged by agents
and tools running in child tasks.
"""

import functools
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "agent-delegation"

# Third-party loggers that log every HTTP request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "anthropic")

_LEVELS = frozenset({"debug", "info", "warning", "error", "exception", "critical"})


def _add_app_name(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("app", APP_NAME)
    return event_dict


def _renderer(json_format: bool) -> list[Processor]:
    if json_format:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.rich_traceback,
        )
    ]


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """Configure structlog and the root logging handlers.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: JSON lines when True, console output otherwise.
        log_file: Also append records to this file.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            _add_app_name,
            *_renderer(json_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(format="%(message)s", level=log_level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, usually with ``__name__``."""
    return structlog.get_logger(name)


# ----------------------------------------------------------------------
# Turn context
# ----------------------------------------------------------------------


@contextmanager
def turn_context(conversation_id: str, turn_id: str | None = None) -> Iterator[str]:
    """Tag every event logged inside the block with the current turn.

    Yields:
        The turn id, generated when not given.
    """
    turn_id = turn_id or str(uuid4())
    with structlog.contextvars.bound_contextvars(
        turn_id=turn_id, conversation_id=conversation_id
    ):
        yield turn_id


def current_turn_id() -> str | None:
    """Turn id bound by the innermost :func:`turn_context`, if any."""
    return structlog.contextvars.get_contextvars().get("turn_id")


# ----------------------------------------------------------------------
# Scoped loggers
# ----------------------------------------------------------------------


class ScopedLogger:
    """Logger that adds a fixed set of fields to every event.

    ``logger.info("event", key=value)`` works as on a structlog logger;
    per-call fields win over the scoped ones.
    """

    def __init__(self, name: str, **fields: Any):
        self._name = name
        self._fields = fields

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self._fields)

    def bind(self, **fields: Any) -> "ScopedLogger":
        """New logger with extra fields."""
        return ScopedLogger(self._name, **{**self._fields, **fields})

    def without(self, *keys: str) -> "ScopedLogger":
        """New logger with ``keys`` dropped."""
        return ScopedLogger(
            self._name, **{k: v for k, v in self._fields.items() if k not in keys}
        )

    def __getattr__(self, level: str) -> Any:
        if level not in _LEVELS:
            raise AttributeError(level)
        return functools.partial(getattr(get_logger(self._name), level), **self._fields)


def get_agent_logger(agent_id: str, agent_name: str | None = None) -> ScopedLogger:
    """Logger for one agent instance."""
    if agent_name:
        return ScopedLogger("agent", agent_id=agent_id, agent_name=agent_name)
    return ScopedLogger("agent", agent_id=agent_id)


def get_conversation_logger(conversation_id: str) -> ScopedLogger:
    """Logger for one conversation."""
    return ScopedLogger("conversation", conversation_id=conversation_id)


def get_workflow_logger(workflow_id: str, execution_id: str) -> ScopedLogger:
    """Logger for one workflow execution."""
    return ScopedLogger("workflow", workflow_id=workflow_id, execution_id=execution_id)
