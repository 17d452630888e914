"""
Module: fiscal_ledger.logging_config
Responsibility: One JSON object per log line for every logger under the
    ``fiscal_ledger`` namespace, enriched with the ledger scope (tenant,
    period, journal entry, actor) the current call is working on.
Architecture position: Ledger > Infrastructure.  Imported by services, the
    DB layer and the runtime.  MUST NOT import from any other ledger module.

Invariants enforced:
    - Scope fields bound through LogContext win over a colliding ``extra``
      key, so a record can never claim a tenant other than the one in scope.
    - configure_logging installs exactly one handler, whatever the number of
      calls, until reset_logging.

Failure modes:
    - Values json cannot encode are written with ``str()``; formatting a
      record never raises.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

LOGGER_ROOT = "fiscal_ledger"

# Ledger scope carried on every record, in output order
CONTEXT_FIELDS = (
    "correlation_id",
    "tenant_id",
    "actor_id",
    "period_id",
    "entry_id",
)

_scope: dict[str, ContextVar[str | None]] = {
    field: ContextVar(f"ledger_log_{field}", default=None) for field in CONTEXT_FIELDS
}


class LogContext:
    """
    Ledger scope for the current thread or task.

    Backed by ContextVars, so worker threads and asyncio tasks each see
    their own values.  ``bind`` is the normal entry point for services;
    ``set`` and ``clear`` exist for request middleware and tests.
    """

    @staticmethod
    def _var(field: str) -> ContextVar[str | None]:
        try:
            return _scope[field]
        except KeyError:
            raise TypeError(f"Unknown log context field: {field}") from None

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Overwrite the named fields.  None leaves a field untouched."""
        for field, value in fields.items():
            if value is not None:
                cls._var(field).set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            field: value
            for field, value in ((f, _scope[f].get()) for f in CONTEXT_FIELDS)
            if value is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _scope.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """
        Scope fields to a ``with`` block and restore the previous values on
        exit.  Values are stringified so UUIDs can be passed directly; None
        values are skipped.
        """
        tokens = [
            (cls._var(field), cls._var(field).set(str(value)))
            for field, value in fields.items()
            if value is not None
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _jsonable(value: Any) -> Any:
    """Render ledger value types (ids, dates, amounts, statuses) as JSON scalars."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Format a record as a single JSON line: base fields, scope, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_jsonable)

    @staticmethod
    def _error_fields(exc: BaseException) -> dict[str, Any]:
        """
        Flatten an exception into ``exc_*`` keys.  Ledger errors contribute
        their code, kind and context attributes (period_name, debits...).
        """
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        for attr in ("code", "kind"):
            if hasattr(exc, attr):
                fields[f"exc_{attr}"] = getattr(exc, attr)
        fields.update(
            (f"exc_{name}", value)
            for name, value in vars(exc).items()
            if not name.startswith("_") and name not in ("args", "code", "kind")
        )
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger for ``fiscal_ledger.<name>``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``fiscal_ledger`` logger.

    Only the first call has any effect.  The logger stops propagating so
    ledger records are not duplicated by a host application's root handler.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    ledger_logger = logging.getLogger(LOGGER_ROOT)
    ledger_logger.setLevel(level)
    ledger_logger.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    ledger_logger.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow configure_logging to run again.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    ledger_logger = logging.getLogger(LOGGER_ROOT)
    ledger_logger.handlers.clear()
    ledger_logger.setLevel(logging.WARNING)
