"""
Structured JSON logging for the approval kernel.

Every record is rendered as one JSON object per line. Request-scoped
identifiers (the claim being decided, the acting approver, ...) live in
``LogContext`` and are merged into each record, so service code only has
to pass event-specific fields through ``extra``.

Typical use::

    from approval_kernel.logging_config import LogContext, get_logger

    logger = get_logger("services.claim")

    with LogContext.bind(claim_id=claim.claim_id, actor_id=actor_id):
        logger.info("decision_recorded", extra={"verdict": "approve"})

Approval kernel exceptions logged with ``exc_info`` contribute their
``code`` and public attributes as ``exc_*`` fields.
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

LOGGER_NAMESPACE = "approval_kernel"

_FIELD_VARS: dict[str, ContextVar[str | None]] = {
    field: ContextVar(f"approval_kernel.log.{field}", default=None)
    for field in ("correlation_id", "claim_id", "actor_id", "workflow_id", "trace_id")
}


def _known_fields(fields: dict[str, Any]) -> Iterator[tuple[ContextVar[str | None], str]]:
    for field, value in fields.items():
        var = _FIELD_VARS.get(field)
        if var is None or value is None:
            continue
        yield var, str(value)


class LogContext:
    """Context-variable backed log fields, safe across threads and tasks.

    Recognised fields: correlation_id, claim_id, actor_id, workflow_id,
    trace_id. Values are stored as strings; None and unknown names are
    dropped silently.
    """

    @classmethod
    def set(cls, **fields: Any) -> None:
        for var, value in _known_fields(fields):
            var.set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        current = {}
        for field, var in _FIELD_VARS.items():
            value = var.get()
            if value is not None:
                current[field] = value
        return current

    @classmethod
    def clear(cls) -> None:
        for var in _FIELD_VARS.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Temporarily set fields; previous values come back on exit."""
        tokens = [(var, var.set(value)) for var, value in _known_fields(fields)]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


_RESERVED_ATTRS: frozenset[str] = frozenset(
    logging.makeLogRecord({}).__dict__
) | {"message", "asctime", "taskName"}


def _to_jsonable(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    # UUID, Decimal and anything else fall back to their string form
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for attr, value in vars(exc).items():
        if attr.startswith("_") or attr == "code":
            continue
        fields[f"exc_{attr}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Key precedence: the fixed envelope (ts, level, logger, message), then
    ``LogContext`` fields, then ``extra`` fields that do not collide.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for attr, value in record.__dict__.items():
            if attr in _RESERVED_ATTRS:
                continue
            entry.setdefault(attr, value)

        if record.exc_info and record.exc_info[1] is not None:
            entry.update(_exception_fields(record.exc_info[1]))
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_to_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Return ``approval_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_state_lock = threading.Lock()
_is_configured = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``approval_kernel`` logger.

    Only the first call has an effect until ``reset_logging`` runs.
    """
    global _is_configured
    with _state_lock:
        if _is_configured:
            return
        _is_configured = True

    if handler is None:
        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(StructuredFormatter())

    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.addHandler(handler)
    namespace_logger.propagate = False


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` again. Tests only."""
    global _is_configured
    with _state_lock:
        _is_configured = False
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    namespace_logger.handlers.clear()
    namespace_logger.setLevel(logging.WARNING)
    namespace_logger.propagate = True
