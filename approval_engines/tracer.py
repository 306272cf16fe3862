"""
approval_engines.tracer -- Engine invocation tracer emitting APPROVAL_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps pure engine functions with one structured log
    record per call: engine name and version, a fingerprint of selected
    keyword inputs, and the duration.

Architecture position:
    Engines -- infrastructure support for the pure decision layer.
    Emits a log record only; never touches the database or the clock
    used for decision timestamps.

Failure modes:
    - Fingerprint fields missing from kwargs are recorded as "null".
    - Exceptions raised by the wrapped engine propagate untouched; a
      trace record with ``outcome="error"`` and the exception code is
      emitted first.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any
from uuid import UUID

# Lives under the kernel namespace so configure_logging() picks it up
# without the engines importing kernel logging.
_logger = logging.getLogger("approval_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (bool, int, str, UUID)):
        return str(value)
    if isinstance(value, dict):
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in sorted(value.items())) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """16-hex-char SHA-256 prefix over the named kwargs, in field order."""
    canonical = "|".join(
        f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits APPROVAL_ENGINE_TRACE for pure engine invocations."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            extra: dict[str, Any] = {
                "trace_type": "APPROVAL_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fp,
                "function": func.__qualname__,
            }
            t0 = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                extra["duration_ms"] = round((time.monotonic() - t0) * 1000, 2)
                extra["outcome"] = "error"
                extra["error_code"] = getattr(exc, "code", type(exc).__name__)
                _logger.info("APPROVAL_ENGINE_TRACE", extra=extra)
                raise
            extra["duration_ms"] = round((time.monotonic() - t0) * 1000, 2)
            extra["outcome"] = "ok"
            _logger.info("APPROVAL_ENGINE_TRACE", extra=extra)
            return result

        return wrapper

    return decorator
