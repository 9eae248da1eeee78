"""Persistent index storage on SQLite with an FTS5 full-text table."""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from pathlib import Path

from doc_index.core.errors import (
    IndexClosedError,
    IndexCommitError,
    IndexLockedError,
    IndexOpenError,
    IndexWriteError,
)
from doc_index.core.logging import get_logger
from doc_index.db.sqlite import SQLiteDatabase
from doc_index.index.schema import DocSearchSchema
from doc_index.ingest.types import IndexRecord

logger = get_logger(__name__)

INDEX_FILENAME = "docs.db"
MERGE_BUSY_TIMEOUT_MS = 5000


def open_or_create_index(index_dir: Path, schema: DocSearchSchema) -> Path:
    """Create the index directory and tables if needed and return the database path.

    An index written with a different schema version is discarded and rebuilt.
    """
    index_dir = index_dir.expanduser()
    db_path = index_dir / INDEX_FILENAME
    db = SQLiteDatabase(db_path)
    try:
        index_dir.mkdir(parents=True, exist_ok=True)
        version = db.execute("PRAGMA user_version;").fetchone()[0]
        if version not in (0, schema.version):
            logger.warning(
                "Index at %s has schema version %s, expected %s; recreating",
                index_dir,
                version,
                schema.version,
            )
            db.close()
            _remove_index_files(db_path)
            version = 0
        if not _has_schema(db):
            db.ensure_schema()
        if version != schema.version:
            db.execute(f"PRAGMA user_version={int(schema.version)};")
    except sqlite3.OperationalError as exc:
        if _is_locked(exc):
            raise IndexLockedError(f"Index at {index_dir} is held by another writer") from exc
        raise IndexOpenError(f"Failed to open index at {index_dir}: {exc}") from exc
    except (sqlite3.Error, OSError) as exc:
        raise IndexOpenError(f"Failed to open index at {index_dir}: {exc}") from exc
    finally:
        db.close()
    return db_path


class IndexWriter:
    """Buffered writer holding the index write lock until commit or rollback.

    Records and delete markers are applied inside one SQLite transaction, so
    nothing is visible to readers before :meth:`commit`.
    """

    def __init__(self, db_path: Path, schema: DocSearchSchema, memory_mb: int = 150) -> None:
        self.schema = schema
        self._columns = {
            schema.field_id: "id",
            schema.field_title: "title",
            schema.field_link: "link",
            schema.field_chunk_id: "chunk_id",
            schema.field_chunk_text: "chunk_text",
        }
        self._db = SQLiteDatabase(db_path, cache_kib=memory_mb * 1024)
        try:
            self._db.begin(immediate=True)
        except sqlite3.OperationalError as exc:
            self._db.close()
            if _is_locked(exc):
                raise IndexLockedError(f"Index at {db_path.parent} is held by another writer") from exc
            raise IndexOpenError(f"Failed to create index writer: {exc}") from exc
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def add_record(self, record: IndexRecord) -> None:
        self._ensure_open()
        try:
            cursor = self._db.execute(
                "INSERT INTO records (id, title, link, chunk_id, chunk_text) VALUES (?, ?, ?, ?, ?)",
                [record.id, record.title, record.link, record.chunk_id, record.chunk_text],
            )
            if record.chunk_tokens:
                self._db.executemany(
                    "INSERT INTO record_tokens (record_seq, token) VALUES (?, ?)",
                    [(cursor.lastrowid, token) for token in sorted(record.chunk_tokens)],
                )
        except sqlite3.Error as exc:
            raise IndexWriteError(f"Failed to add {record.kind} record for '{record.id}': {exc}") from exc

    def delete_term(self, field: str, value: str) -> int:
        """Delete every record whose keyword ``field`` equals ``value``."""
        self._ensure_open()
        if not self.schema.is_term_field(field):
            raise ValueError(f"Field '{field}' is not an exact-match field")
        if field == self.schema.field_chunk_tokens:
            sql = "DELETE FROM records WHERE seq IN (SELECT record_seq FROM record_tokens WHERE token = ?)"
        else:
            sql = f"DELETE FROM records WHERE {self._columns[field]} = ?"
        try:
            return self._db.execute(sql, [value]).rowcount
        except sqlite3.Error as exc:
            raise IndexWriteError(f"Failed to delete records where {field}='{value}': {exc}") from exc

    def commit(self) -> None:
        """Flush buffered operations. The write lock is released afterwards."""
        self._ensure_open()
        try:
            self._db.commit()
        except sqlite3.Error as exc:
            self.rollback()
            raise IndexCommitError(f"Failed to commit index changes: {exc}") from exc

    def wait_merging(self, optimize: bool = True) -> None:
        """Merge full-text segments and checkpoint the WAL, blocking until done."""
        self._ensure_open()
        flushed = not self._db.in_transaction
        try:
            self._db.execute(f"PRAGMA busy_timeout={MERGE_BUSY_TIMEOUT_MS};")
            if optimize:
                self._db.begin(immediate=True)
                self._db.execute("INSERT INTO records_fts(records_fts) VALUES('optimize')")
                self._db.commit()
            busy, _, _ = self._db.execute("PRAGMA wal_checkpoint(TRUNCATE);").fetchone()
        except sqlite3.Error as exc:
            self.rollback()
            if flushed:
                message = f"Index changes were committed, but waiting for merging failed: {exc}"
            else:
                message = f"Failed to wait for merging: {exc}"
            raise IndexCommitError(message, flushed=flushed) from exc
        if busy:
            logger.warning("WAL checkpoint blocked by active readers; it will complete later")

    def rollback(self) -> None:
        """Discard buffered operations and release the index."""
        if not self._open:
            return
        try:
            self._db.rollback()
        finally:
            self.close()

    def close(self) -> None:
        self._db.close()
        self._open = False

    def _ensure_open(self) -> None:
        if not self._open:
            raise IndexClosedError("Index writer is closed")


class IndexReader:
    """Read-only access to committed records."""

    def __init__(self, index_dir: Path, schema: DocSearchSchema | None = None) -> None:
        self.schema = schema or DocSearchSchema()
        db_path = index_dir.expanduser() / INDEX_FILENAME
        if not db_path.exists():
            raise IndexOpenError(f"No index found at {index_dir}")
        self._db = SQLiteDatabase(db_path)

    def __enter__(self) -> "IndexReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._db.close()

    def count(self) -> dict[str, int]:
        row = self._db.execute(
            """
            SELECT
              SUM(CASE WHEN chunk_id IS NULL THEN 1 ELSE 0 END) AS documents,
              SUM(CASE WHEN chunk_id IS NOT NULL THEN 1 ELSE 0 END) AS chunks
            FROM records
            """
        ).fetchone()
        return {"documents": int(row["documents"] or 0), "chunks": int(row["chunks"] or 0)}

    def document_ids(self) -> list[str]:
        rows = self._db.query("SELECT DISTINCT id FROM records ORDER BY id")
        return [row["id"] for row in rows]

    def records_for(self, id: str) -> list[IndexRecord]:
        """Return the document record followed by its chunks in order."""
        rows = self._db.query(
            """
            SELECT seq, id, title, link, chunk_id, chunk_text FROM records
            WHERE id = ?
            ORDER BY chunk_id IS NOT NULL, CAST(chunk_id AS INTEGER), seq
            """,
            [id],
        )
        tokens: dict[int, set[str]] = defaultdict(set)
        for row in self._db.query(
            """
            SELECT t.record_seq, t.token FROM record_tokens t
            JOIN records r ON r.seq = t.record_seq
            WHERE r.id = ?
            """,
            [id],
        ):
            tokens[row["record_seq"]].add(row["token"])
        return [
            IndexRecord(
                id=row["id"],
                title=row["title"],
                link=row["link"],
                chunk_id=row["chunk_id"],
                chunk_text=row["chunk_text"],
                chunk_tokens=frozenset(tokens.get(row["seq"], ())),
            )
            for row in rows
        ]

    def match_text(self, query: str) -> list[str]:
        """Return ids of records whose full-text fields match an FTS5 query.

        Only a consistency check that the full-text table follows record
        writes and deletes; ranking and query execution live with consumers.
        """
        rows = self._db.query(
            """
            SELECT DISTINCT r.id FROM records_fts f
            JOIN records r ON r.seq = f.rowid
            WHERE records_fts MATCH ?
            ORDER BY r.id
            """,
            [query],
        )
        return [row["id"] for row in rows]


def _has_schema(db: SQLiteDatabase) -> bool:
    row = db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='records'"
    ).fetchone()
    return row is not None


def _is_locked(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _remove_index_files(db_path: Path) -> None:
    for suffix in ("", "-wal", "-shm"):
        candidate = db_path.with_name(db_path.name + suffix)
        if candidate.exists():
            candidate.unlink()


__all__ = ["INDEX_FILENAME", "IndexReader", "IndexWriter", "open_or_create_index"]
