"""SQLite-backed key-value store.

The schema is versioned: each :class:`Migration` is applied once, inside its
own transaction, and recorded in ``schema_migrations``. Store writes are
buffered in an open transaction and only become durable on :meth:`flush`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3
from typing import Any

from qos_kernel.errors import StoreError

_PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA busy_timeout = 5000",
)


@dataclass(frozen=True)
class Migration:
    version: str
    statements: tuple[str, ...]


DEFAULT_MIGRATIONS: tuple[Migration, ...] = (
    Migration(
        version="0001_initial_kv_schema",
        statements=(
            "CREATE TABLE IF NOT EXISTS kv ("
            " key TEXT PRIMARY KEY,"
            " value TEXT NOT NULL,"
            " updated_at TEXT NOT NULL)",
        ),
    ),
)


class SQLiteMigrationRunner:
    """Bring a connection's schema up to the newest known migration."""

    def __init__(self, migrations: Sequence[Migration] | None = None) -> None:
        ordered = tuple(migrations or DEFAULT_MIGRATIONS)
        seen: set[str] = set()
        previous = ""
        for migration in ordered:
            if migration.version in seen:
                raise StoreError(f"Duplicate migration version '{migration.version}'.")
            if migration.version < previous:
                raise StoreError(f"Migration '{migration.version}' is out of order.")
            seen.add(migration.version)
            previous = migration.version
        self._migrations = ordered

    def bootstrap(self, conn: sqlite3.Connection) -> tuple[str, ...]:
        """Apply pragmas and pending migrations; return the versions applied now."""
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            " version TEXT PRIMARY KEY, applied_at TEXT NOT NULL)"
        )

        done = set(self.applied_versions(conn))
        newly_applied = []
        for migration in self._migrations:
            if migration.version not in done:
                self._apply(conn, migration)
                newly_applied.append(migration.version)
        return tuple(newly_applied)

    def applied_versions(self, conn: sqlite3.Connection) -> tuple[str, ...]:
        cursor = conn.execute("SELECT version FROM schema_migrations ORDER BY version")
        return tuple(str(version) for (version,) in cursor.fetchall())

    @staticmethod
    def _apply(conn: sqlite3.Connection, migration: Migration) -> None:
        conn.execute("BEGIN")
        try:
            for statement in migration.statements:
                conn.execute(statement)
            conn.execute(
                "INSERT INTO schema_migrations(version, applied_at) VALUES(?, ?)",
                (migration.version, _utcnow_iso()),
            )
        except sqlite3.Error as exc:
            conn.execute("ROLLBACK")
            raise StoreError(f"Migration '{migration.version}' failed: {exc}.") from exc
        conn.execute("COMMIT")


class SQLiteStore:
    """Durable store on a single SQLite file; writes commit on flush()."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        migration_runner: SQLiteMigrationRunner | None = None,
    ) -> None:
        self._db_path = Path(db_path).expanduser()
        self._migration_runner = migration_runner or SQLiteMigrationRunner()

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path), isolation_level=None)
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"Cannot open store database at '{self._db_path}': {exc}.") from exc

        self._conn.row_factory = sqlite3.Row
        self._migration_runner.bootstrap(self._conn)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    def migration_versions(self) -> tuple[str, ...]:
        return self._migration_runner.applied_versions(self._conn)

    def get(self, key: str, default: Any = None) -> Any:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not read key '{key}': {exc}.") from exc
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except ValueError as exc:
            raise StoreError(f"Stored value for key '{key}' is not valid JSON: {exc}.") from exc

    def set(self, key: str, value: Any) -> None:
        encoded = _encode(key, value)
        try:
            self._begin()
            self._conn.execute(
                """
                INSERT INTO kv(key, value, updated_at)
                VALUES(?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, encoded, _utcnow_iso()),
            )
        except sqlite3.Error as exc:
            raise StoreError(f"Could not write key '{key}': {exc}.") from exc

    def delete(self, key: str) -> bool:
        try:
            self._begin()
            cursor = self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StoreError(f"Could not delete key '{key}': {exc}.") from exc
        return cursor.rowcount > 0

    def keys(self, prefix: str = "") -> tuple[str, ...]:
        try:
            rows = self._conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not list keys: {exc}.") from exc
        return tuple(str(row["key"]) for row in rows)

    def flush(self) -> None:
        if not self._conn.in_transaction:
            return
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as exc:
            raise StoreError(f"Could not commit SQLite database '{self._db_path}': {exc}.") from exc

    def close(self) -> None:
        try:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            self._conn.close()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not close SQLite database '{self._db_path}': {exc}.") from exc

    def _begin(self) -> None:
        if not self._conn.in_transaction:
            self._conn.execute("BEGIN")


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value, sort_keys=True)
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Value for key '{key}' is not JSON-serializable: {exc}.") from exc


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
