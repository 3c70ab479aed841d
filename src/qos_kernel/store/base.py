"""Durable key-value store interface."""

from __future__ import annotations

from typing import Any, Protocol


class DurableStore(Protocol):
    """Key-value persistence that survives across tick invocations.

    Values must be JSON-serializable. Adapters may buffer writes until
    :meth:`flush`; reads always observe the caller's own unflushed writes.
    """

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default``."""

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""

    def delete(self, key: str) -> bool:
        """Remove ``key`` and return whether it existed."""

    def keys(self, prefix: str = "") -> tuple[str, ...]:
        """Return stored keys starting with ``prefix`` in sorted order."""

    def flush(self) -> None:
        """Persist any buffered writes."""

    def close(self) -> None:
        """Release underlying connections."""
