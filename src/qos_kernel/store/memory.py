"""In-process store used by tests and detached runs."""

from __future__ import annotations

import copy
import json
from typing import Any

from qos_kernel.errors import StoreError


class MemoryStore:
    """Dictionary-backed store that copies values in and out like a real backend."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = {}
        self.flush_count = 0
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        try:
            json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Value for key '{key}' is not JSON-serializable: {exc}.") from exc
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        return True

    def keys(self, prefix: str = "") -> tuple[str, ...]:
        return tuple(sorted(key for key in self._data if key.startswith(prefix)))

    def flush(self) -> None:
        self.flush_count += 1

    def close(self) -> None:
        return None
