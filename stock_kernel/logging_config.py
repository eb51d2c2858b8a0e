"""
Structured JSON logging for the stock kernel.

Every record is written as one JSON object per line:

    {"ts": ..., "level": "INFO", "logger": "stock_kernel.services.allocation",
     "message": "allocation_completed", "correlation_id": ..., "tenant_id": ...,
     "actor_id": ..., "operation": "allocate", "attempt": 1, "quantity": 10}

The message is a snake_case event name.  Context fields come from the
operation scope the StockEngine opens with ``LogContext.operation``; the
remaining keys are the call site's ``extra`` fields.  Kernel values (UUIDs,
dates, enum labels, Decimal ratios, location sets, frozen DTOs) are encoded
to plain JSON.  A record logged with ``exc_info`` carrying a
StockKernelError also exports the error's code, category and structured
attributes as ``exc_*`` fields.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import dataclasses
import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID, uuid4

from stock_kernel.exceptions import StockKernelError

# ---------------------------------------------------------------------------
# Operation context
# ---------------------------------------------------------------------------

CONTEXT_FIELDS = ("correlation_id", "tenant_id", "actor_id", "operation", "attempt")

_EMPTY: Mapping[str, Any] = MappingProxyType({})
_context: ContextVar[Mapping[str, Any]] = ContextVar("stock_log_context", default=_EMPTY)


class LogContext:
    """Operation-scoped log fields, safe across threads and tasks."""

    @staticmethod
    def get_all() -> dict[str, Any]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Overlay fields for the duration of the block.

        None values leave the outer value in place.  The previous context is
        restored on exit, also when the block raises.
        """
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context fields: {unknown}")
        merged = dict(_context.get())
        merged.update((k, v) for k, v in fields.items() if v is not None)
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)

    @classmethod
    def operation(
        cls,
        operation: str,
        tenant_id: str,
        actor_id: str | None = None,
    ):
        """Scope of one engine operation, with a fresh correlation_id."""
        return cls.bind(
            correlation_id=str(uuid4()),
            tenant_id=tenant_id,
            actor_id=actor_id,
            operation=operation,
        )


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _encode(value: Any) -> Any:
    """json.dumps ``default`` hook for kernel value types."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        # None sorts last: the unassigned "location"
        return sorted(
            (_encode(v) if v is not None else None for v in value),
            key=lambda v: (v is None, str(v)),
        )
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    if isinstance(exc, StockKernelError):
        fields["exc_code"] = exc.code
        fields["exc_category"] = exc.category.value
        for key, val in vars(exc).items():
            if not key.startswith("_"):
                fields[f"exc_{key}"] = val
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_encode)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "stock_kernel"


def get_logger(name: str) -> logging.Logger:
    """Logger under the stock_kernel namespace, e.g. ``services.allocation``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the stock_kernel logger (first call only).

    ``level`` accepts a logging constant or its name ("DEBUG").  Records do
    not propagate to the root logger, so host applications keep their own
    formatting.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level.upper() if isinstance(level, str) else level)
    kernel_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    kernel_logger.addHandler(h)


def reset_logging() -> None:
    """Detach handlers and allow configure_logging again. For tests."""
    global _configured
    with _lock:
        _configured = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
