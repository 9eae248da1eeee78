"""Single-writer orchestration of document upserts, deletes and commit."""

from __future__ import annotations

import enum
import time
from contextlib import aclosing, contextmanager
from pathlib import Path
from typing import Iterator

from doc_index.core.config import Settings, get_settings
from doc_index.core.errors import (
    ConcurrentWriteError,
    IndexClosedError,
    IndexCommitError,
    IndexWriteError,
)
from doc_index.core.logging import get_logger
from doc_index.core.metrics import COMMIT_DURATION, DOCUMENTS_DELETED, RECORDS_WRITTEN
from doc_index.index.schema import DocSearchSchema
from doc_index.index.store import IndexWriter, open_or_create_index
from doc_index.ingest.embeddings import Embedding
from doc_index.ingest.records import RecordProducer
from doc_index.ingest.types import SourceDocument, UpsertResult

logger = get_logger(__name__)


class IndexState(str, enum.Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ABORTED = "aborted"
    FAILED = "failed"


class DocIndex:
    """Owns the index writer for one session.

    ``upsert`` and ``delete`` are buffered; nothing becomes visible until
    :meth:`commit`, which flushes, waits for merging and ends the session.
    A storage failure also ends the session and rolls back everything
    buffered so far. Used as a context manager, leaving the block without
    committing discards the session.
    """

    def __init__(
        self,
        embedding: Embedding,
        index_dir: Path | None = None,
        *,
        settings: Settings | None = None,
        schema: DocSearchSchema | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.schema = schema or DocSearchSchema()
        self.index_dir = (index_dir or self.settings.index_dir).expanduser()
        db_path = open_or_create_index(self.index_dir, self.schema)
        self._writer = IndexWriter(db_path, self.schema, memory_mb=self.settings.writer_memory_mb)
        self._producer = RecordProducer(
            embedding,
            self.schema,
            chunk_size=self.settings.chunk_size,
            concurrency=self.settings.embed_concurrency,
        )
        self._state = IndexState.OPEN
        self._busy = False
        logger.info("Opened index writer at %s", self.index_dir)

    @property
    def state(self) -> IndexState:
        return self._state

    def __enter__(self) -> "DocIndex":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._state is IndexState.OPEN:
            self.abort()

    async def upsert(self, document: SourceDocument) -> UpsertResult:
        """Replace every record of ``document.id`` with freshly produced ones."""
        with self._exclusive():
            self._writer.delete_term(self.schema.field_id, document.id)
            result = UpsertResult(id=document.id)
            async with aclosing(self._producer.iter_records(document)) as records:
                async for record in records:
                    self._writer.add_record(record)
                    RECORDS_WRITTEN.labels(kind=record.kind).inc()
                    if record.is_chunk:
                        result.chunks += 1
                        if not record.chunk_tokens:
                            result.failed_chunks += 1
            logger.debug(
                "Buffered document '%s' with %s chunks",
                document.id,
                result.chunks,
                extra={"ctx_doc_id": document.id},
            )
            return result

    def delete(self, id: str) -> bool:
        """Buffer removal of every record of ``id``.

        Returns whether anything was removed; unknown ids are a no-op.
        """
        with self._exclusive():
            removed = self._writer.delete_term(self.schema.field_id, id) > 0
            if removed:
                DOCUMENTS_DELETED.inc()
            return removed

    def commit(self) -> None:
        """Flush buffered operations, wait for merging and end the session."""
        with self._exclusive():
            started = time.perf_counter()
            self._writer.commit()
            self._writer.wait_merging(optimize=self.settings.merge_on_commit)
            self._writer.close()
            self._state = IndexState.COMMITTED
            COMMIT_DURATION.observe(time.perf_counter() - started)
            logger.info("Committed index at %s", self.index_dir)

    def abort(self) -> None:
        """Discard everything buffered in this session and release the index."""
        if self._state is not IndexState.OPEN:
            return
        self._writer.rollback()
        self._state = IndexState.ABORTED
        logger.info("Discarded uncommitted changes to index at %s", self.index_dir)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._state is not IndexState.OPEN:
            raise IndexClosedError(f"Index session is {self._state.value}")
        if self._busy:
            raise ConcurrentWriteError("Another call is already using this index writer")
        self._busy = True
        try:
            yield
        except (IndexWriteError, IndexCommitError):
            logger.exception("Index session at %s failed", self.index_dir)
            self._writer.rollback()
            self._state = IndexState.FAILED
            raise
        finally:
            self._busy = False


__all__ = ["DocIndex", "IndexState"]
