"""
Redis-backed durable store.

Writes are buffered in-process for the duration of a tick and sent as one
pipeline on flush(), so a tick either persists all of its state or none of it.
"""
from __future__ import annotations

import json
import logging
from typing import Any

import redis

from qos_kernel.errors import StoreError

logger = logging.getLogger(__name__)

_DELETED = object()


class RedisStore:
    """Durable store on a Redis database, keys namespaced by ``key_prefix``."""

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        key_prefix: str = "qos:",
        client: redis.Redis | None = None,
    ):
        self.redis = client if client is not None else redis.Redis(host=host, port=port, db=db)
        self.key_prefix = key_prefix
        self._pending: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._pending:
            value = self._pending[key]
            if value is _DELETED:
                return default
            return json.loads(value)

        try:
            raw = self.redis.get(self._full_key(key))
        except redis.RedisError as exc:
            raise StoreError(f"Could not read key '{key}' from Redis: {exc}.") from exc
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StoreError(f"Stored value for key '{key}' is not valid JSON: {exc}.") from exc

    def set(self, key: str, value: Any) -> None:
        try:
            self._pending[key] = json.dumps(value, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Value for key '{key}' is not JSON-serializable: {exc}.") from exc

    def delete(self, key: str) -> bool:
        pending = self._pending.get(key)
        if pending is _DELETED:
            return False
        existed = pending is not None
        if not existed:
            try:
                existed = bool(self.redis.exists(self._full_key(key)))
            except redis.RedisError as exc:
                raise StoreError(f"Could not check key '{key}' in Redis: {exc}.") from exc
        self._pending[key] = _DELETED
        return existed

    def keys(self, prefix: str = "") -> tuple[str, ...]:
        try:
            raw_keys = self.redis.scan_iter(match=f"{self.key_prefix}{prefix}*")
            found = {self._strip_prefix(raw) for raw in raw_keys}
        except redis.RedisError as exc:
            raise StoreError(f"Could not list keys in Redis: {exc}.") from exc

        for key, value in self._pending.items():
            if not key.startswith(prefix):
                continue
            if value is _DELETED:
                found.discard(key)
            else:
                found.add(key)
        return tuple(sorted(found))

    def flush(self) -> None:
        if not self._pending:
            return
        pipe = self.redis.pipeline(transaction=True)
        for key, value in self._pending.items():
            if value is _DELETED:
                pipe.delete(self._full_key(key))
            else:
                pipe.set(self._full_key(key), value)
        try:
            pipe.execute()
        except redis.RedisError as exc:
            raise StoreError(f"Could not flush {len(self._pending)} key(s) to Redis: {exc}.") from exc
        logger.debug(f"Flushed {len(self._pending)} key(s) to Redis")
        self._pending.clear()

    def close(self) -> None:
        try:
            self.redis.close()
        except redis.RedisError as exc:
            raise StoreError(f"Could not close Redis connection: {exc}.") from exc

    def _full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _strip_prefix(self, raw: bytes | str) -> str:
        value = raw.decode() if isinstance(raw, bytes) else str(raw)
        return value[len(self.key_prefix):]
