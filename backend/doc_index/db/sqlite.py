"""SQLite management utilities."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterable, Sequence

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA temp_store=MEMORY;",
)


class SQLiteDatabase:
    """Thin wrapper around sqlite3 providing pragmatic defaults.

    Connections run in autocommit mode; callers open write transactions
    explicitly with :meth:`begin` so that one transaction can span many calls.
    """

    def __init__(
        self,
        db_path: Path,
        busy_timeout: float = 0.0,
        cache_kib: int | None = None,
    ) -> None:
        self.db_path = db_path.expanduser()
        self.busy_timeout = busy_timeout
        self.cache_kib = cache_kib
        self._connection: sqlite3.Connection | None = None

    @property
    def in_transaction(self) -> bool:
        return self._connection is not None and self._connection.in_transaction

    def connect(self) -> sqlite3.Connection:
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(
                self.db_path, timeout=self.busy_timeout, isolation_level=None
            )
            self._connection.row_factory = sqlite3.Row
            for pragma in DEFAULT_PRAGMAS:
                self._connection.execute(pragma)
            if self.cache_kib:
                self._connection.execute(f"PRAGMA cache_size=-{int(self.cache_kib)};")
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def begin(self, immediate: bool = True) -> None:
        conn = self.connect()
        conn.execute("BEGIN IMMEDIATE;" if immediate else "BEGIN;")

    def commit(self) -> None:
        if self.in_transaction:
            self._connection.execute("COMMIT;")

    def rollback(self) -> None:
        if self.in_transaction:
            self._connection.execute("ROLLBACK;")

    def executescript(self, script: str) -> None:
        conn = self.connect()
        conn.executescript(script)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        conn = self.connect()
        return conn.execute(sql, params or [])

    def executemany(self, sql: str, seq_of_params: Iterable[Sequence[Any]]) -> sqlite3.Cursor:
        conn = self.connect()
        return conn.executemany(sql, seq_of_params)

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        cursor = self.execute(sql, params)
        return cursor.fetchall()

    def ensure_schema(self, schema_sql: str | None = None) -> None:
        if schema_sql is None:
            schema_path = Path(__file__).with_name("schema.sql")
            schema_sql = schema_path.read_text(encoding="utf-8")
        self.executescript(schema_sql)


__all__ = ["SQLiteDatabase"]
