"""
Structured JSON logging for the warehouse kernel.

Every record leaves as one JSON line: timestamp, level, logger name,
message, the request-scoped fields held by ``LogContext`` and whatever the
caller passed through ``extra=``.  Kernel errors raised under
``exc_info=True`` are unpacked into ``exc_*`` fields so a failed custody
operation can be searched by its error ``code`` and item id.

Event messages are snake_case verbs in the past tense (``item_issued``,
``transfer_rejected``).  Values go in ``extra``, never in the message.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "warehouse_kernel"

# ---------------------------------------------------------------------------
# Request-scoped fields
# ---------------------------------------------------------------------------

# One ContextVar per field; the order is the order fields appear in output.
_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"warehouse_log_{name}", default=None)
    for name in ("correlation_id", "actor_id", "tenant", "item_id", "trace_id")
}


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    The facade binds ``correlation_id``, ``actor_id`` and ``tenant`` for the
    length of one call; every record emitted inside picks them up.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set known fields.  None values and unknown names are ignored."""
        for name, value in fields.items():
            var = _CONTEXT_VARS.get(name)
            if var is not None and value is not None:
                var.set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name, var in _CONTEXT_VARS.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        tokens = [
            (var, var.set(str(value)))
            for name, value in fields.items()
            if value is not None and (var := _CONTEXT_VARS.get(name)) is not None
        ]
        try:
            yield LogContext
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON formatting
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # WarehouseKernelError subclasses keep their context as public attributes
    for key, value in vars(exc).items():
        if not key.startswith("_") and key != "code":
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Renders a LogRecord as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the warehouse_kernel namespace, e.g. ``services.lots``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_setup_lock = threading.Lock()
_setup_done = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the warehouse_kernel logger.

    Only the first call has an effect.  The logger does not propagate, so
    records are not duplicated by a root handler the host application adds.
    """
    global _setup_done
    with _setup_lock:
        if _setup_done:
            return
        _setup_done = True

        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())

        kernel_logger = logging.getLogger(_LOGGER_PREFIX)
        kernel_logger.setLevel(level)
        kernel_logger.propagate = False
        kernel_logger.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and forget the setup.  Tests only."""
    global _setup_done
    with _setup_lock:
        _setup_done = False
        kernel_logger = logging.getLogger(_LOGGER_PREFIX)
        kernel_logger.handlers.clear()
        kernel_logger.setLevel(logging.WARNING)
