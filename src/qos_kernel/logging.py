"""Logging setup helpers for qos-kernel."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import logging

DEFAULT_LOG_GROUP = "default"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_current_group: ContextVar[str] = ContextVar("qos_kernel_log_group", default=DEFAULT_LOG_GROUP)


class LogGroupFilter(logging.Filter):
    """Stamp every record with the active process group label."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "group"):
            record.group = _current_group.get()
        return True


def configure_logging(level: int | str = logging.INFO) -> None:
    resolved = _resolve_level(level)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s [%(group)s] %(message)s",
    )
    root = logging.getLogger()
    root.setLevel(resolved)
    for handler in root.handlers:
        if not any(isinstance(existing, LogGroupFilter) for existing in handler.filters):
            handler.addFilter(LogGroupFilter())


def current_log_group() -> str:
    return _current_group.get()


@contextmanager
def log_group(name: str) -> Iterator[str]:
    """Use ``name`` as the default group label for records emitted in the block."""
    token = _current_group.set(name or DEFAULT_LOG_GROUP)
    try:
        yield name
    finally:
        _current_group.reset(token)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    normalized = level.strip().upper()
    if normalized == "TRACE":
        return TRACE
    if normalized == "WARN":
        normalized = "WARNING"
    resolved = logging.getLevelName(normalized)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level '{level}'.")
    return resolved
