"""Loguru configuration for linkvault.

Every CLI command runs inside a request context (request id, username,
command name). JSON lines carry that context; the human-readable format
shows only the message. Output goes to stderr so it never mixes with the
tables printed on stdout.

Example:
    >>> from linkvault.logging import logger, request_context
    >>> with request_context(username="alice", operation="refresh"):
    ...     logger.info("🔄 Loading links")
"""

import json
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from linkvault.config import settings
from linkvault.utils import redact_token

# Keys whose bound values are redacted before they reach a sink
SENSITIVE_KEYS = frozenset({"token", "password", "authorization"})

# =============================================================================
# Request Context
# =============================================================================

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
username_var: ContextVar[str | None] = ContextVar("username", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    "request_id": request_id_var,
    "username": username_var,
    "operation": operation_var,
}


# =============================================================================
# JSON Lines
# =============================================================================


def serialize(record: dict[str, Any]) -> str:
    """Render one record as a JSON line.

    Fields: time, level, message, source location, the request context
    entries that are set, ``logger.bind()`` extras (sensitive keys redacted)
    and the exception, if any.
    """
    line: dict[str, Any] = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "source": f"{record['name']}:{record['function']}:{record['line']}",
    }
    line.update({name: value for name, value in get_request_context().items() if value})

    for key, value in record["extra"].items():
        if key == "serialized":
            continue
        line[key] = redact_token(str(value)) if key.lower() in SENSITIVE_KEYS else value

    if exc := record["exception"]:
        line["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }

    return json.dumps(line, default=str, ensure_ascii=False)


def patching(record: dict[str, Any]) -> None:
    record["extra"]["serialized"] = serialize(record)


def custom_formatter(record: dict[str, Any]) -> str:
    return "{extra[serialized]}\n"


# =============================================================================
# Sinks
# =============================================================================

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | "
    "<level>{message}</level>"
)


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """Replace all sinks with a stderr sink and an optional log file.

    Args:
        level: Minimum level for every sink
        json_logs: Emit JSON lines instead of the coloured console format
        log_file: Rotating file under the data directory, or None
        colorize: Colour the console format

    Returns:
        The patched logger
    """
    loguru_logger.remove()
    patched = loguru_logger.patch(patching)

    if json_logs:
        patched.add(sys.stderr, level=level, format=custom_formatter)
    else:
        patched.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=colorize)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched.add(
            log_file,
            level=level,
            format=custom_formatter if json_logs else "{time} | {level} | {message}",
            rotation="10 MB",
            retention="14 days",
            compression="zip",
            enqueue=True,
        )

    return patched


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.log_file,
    colorize=not settings.log_json,
)


# =============================================================================
# Context Helpers
# =============================================================================


def set_request_context(
    request_id: str | None = None,
    username: str | None = None,
    operation: str | None = None,
) -> None:
    """Set the given context entries; entries passed as None are left alone."""
    values = {"request_id": request_id, "username": username, "operation": operation}
    for name, value in values.items():
        if value is not None:
            _CONTEXT_VARS[name].set(value)


def clear_request_context() -> None:
    for var in _CONTEXT_VARS.values():
        var.set(None)


def get_request_context() -> dict[str, str | None]:
    return {name: var.get() for name, var in _CONTEXT_VARS.items()}


@contextmanager
def request_context(
    request_id: str | None = None,
    username: str | None = None,
    operation: str | None = None,
) -> Iterator[None]:
    """Scope context entries to a block, restoring the previous values after."""
    previous = get_request_context()
    set_request_context(request_id=request_id, username=username, operation=operation)
    try:
        yield
    finally:
        for name, value in previous.items():
            _CONTEXT_VARS[name].set(value)


__all__ = [
    "logger",
    "request_id_var",
    "username_var",
    "operation_var",
    "request_context",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "setup_logging",
    "serialize",
]
