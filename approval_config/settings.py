"""
Engine settings from the environment (``approval_config.settings``).

Variables:
    APPROVAL_DATABASE_URL           default ``sqlite:///approval.db``
    APPROVAL_LOG_LEVEL              default ``INFO``
    APPROVAL_LOCK_TIMEOUT_SECONDS   default ``5``
    APPROVAL_SQL_ECHO               default off (``1``/``true``/``yes``/``on``)

An unparseable value falls back to the default and logs a warning.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from approval_kernel.logging_config import get_logger

logger = get_logger("config.settings")

DEFAULT_DATABASE_URL = "sqlite:///approval.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class EngineSettings:
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = DEFAULT_LOG_LEVEL
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS
    sql_echo: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineSettings:
        env = os.environ if environ is None else environ
        return cls(
            database_url=env.get("APPROVAL_DATABASE_URL") or DEFAULT_DATABASE_URL,
            log_level=_log_level(env.get("APPROVAL_LOG_LEVEL")),
            lock_timeout_seconds=_lock_timeout(env.get("APPROVAL_LOCK_TIMEOUT_SECONDS")),
            sql_echo=_flag("APPROVAL_SQL_ECHO", env.get("APPROVAL_SQL_ECHO")),
        )


def _invalid(name: str, value: str, default: object) -> None:
    logger.warning(
        "invalid_setting",
        extra={"setting": name, "value": value, "default": default},
    )


def _log_level(value: str | None) -> str:
    if value is None:
        return DEFAULT_LOG_LEVEL
    level = value.strip().upper()
    if isinstance(logging.getLevelName(level), int):
        return level
    _invalid("APPROVAL_LOG_LEVEL", value, DEFAULT_LOG_LEVEL)
    return DEFAULT_LOG_LEVEL


def _lock_timeout(value: str | None) -> float:
    if value is None:
        return DEFAULT_LOCK_TIMEOUT_SECONDS
    try:
        timeout = float(value)
    except ValueError:
        _invalid("APPROVAL_LOCK_TIMEOUT_SECONDS", value, DEFAULT_LOCK_TIMEOUT_SECONDS)
        return DEFAULT_LOCK_TIMEOUT_SECONDS
    if timeout <= 0:
        _invalid("APPROVAL_LOCK_TIMEOUT_SECONDS", value, DEFAULT_LOCK_TIMEOUT_SECONDS)
        return DEFAULT_LOCK_TIMEOUT_SECONDS
    return timeout


def _flag(name: str, value: str | None) -> bool:
    if value is None:
        return False
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized not in _FALSE:
        _invalid(name, value, False)
    return False
