"""
Structured JSON logging for the tea kernel.

Every record under the ``tea_kernel`` logger becomes one JSON object per
line::

    {"ts", "level", "logger", "message",
     <request fields>, <extra fields>, <exc_* fields>, "traceback"}

Request fields come from LogContext.  CollectionApi binds
``correlation_id``, ``operation`` and ``item_id`` for the duration of one
operation, and ``actor_id`` once the caller's token has verified.

Kernel errors add ``exc_code``, ``exc_category`` and their structured
attributes (``exc_item_id``, ``exc_field`` ...), so operators can filter on
the machine-readable code.

Invariants enforced:
    - Credentials, hashes and tokens are never logged.  Call sites do not
      pass them; an extra field whose name is in REDACTED_FIELDS is
      replaced by a placeholder regardless.
    - Request fields are restored when a bind() block exits, including on
      error.
"""

__all__ = [
    "REQUEST_FIELDS",
    "REDACTED_FIELDS",
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
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

LOGGER_ROOT = "tea_kernel"

REQUEST_FIELDS = ("correlation_id", "operation", "item_id", "actor_id")

REDACTED_FIELDS = frozenset(
    {"password", "new_password", "credential", "password_hash", "token", "jwt_secret"}
)
REDACTED = "[redacted]"

_NO_FIELDS: Mapping[str, str] = MappingProxyType({})

_request_fields: ContextVar[Mapping[str, str]] = ContextVar(
    "tea_request_fields", default=_NO_FIELDS
)


class LogContext:
    """Request-scoped log fields, carried in a single context variable."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_request_fields.get())

    @staticmethod
    def clear() -> None:
        _request_fields.set(_NO_FIELDS)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Add request fields for the duration of a block.

        None values are skipped, so an outer binding stays visible.

        Raises:
            ValueError: A name outside REQUEST_FIELDS.
        """
        unknown = sorted(set(fields) - set(REQUEST_FIELDS))
        if unknown:
            raise ValueError(f"Unknown log context fields: {', '.join(unknown)}")

        merged = dict(_request_fields.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _request_fields.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _request_fields.reset(token)


# Attributes every LogRecord has; anything else on a record came from extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    # UUID, Decimal and anything else the kernel passes as extra
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
        fields["exc_category"] = getattr(exc, "category", None)
        for key, value in vars(exc).items():
            if not key.startswith("_"):
                fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; see module docstring for the shape."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_request_fields.get())

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key in payload:
                continue
            payload[key] = REDACTED if key in REDACTED_FIELDS else value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(area: str) -> logging.Logger:
    """Logger for one kernel area, e.g. ``get_logger("services.ledger")``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{area}")


_installed: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """
    Install the JSON handler on the ``tea_kernel`` logger.

    Only the first call has an effect; later calls return the handler that
    is already installed.
    """
    global _installed
    with _lock:
        if _installed is None:
            _installed = handler or logging.StreamHandler(stream or sys.stderr)
            _installed.setFormatter(StructuredFormatter())
            root = logging.getLogger(LOGGER_ROOT)
            root.setLevel(level)
            root.propagate = False
            root.addHandler(_installed)
        return _installed


def reset_logging() -> None:
    """Remove the installed handler. FOR TESTING ONLY."""
    global _installed
    with _lock:
        root = logging.getLogger(LOGGER_ROOT)
        if _installed is not None:
            root.removeHandler(_installed)
            _installed = None
        root.setLevel(logging.WARNING)
