"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class SourceDocument:
    """A logical document handed to the indexer by an upstream job."""

    id: str
    title: str
    link: str
    body: str


@dataclass(slots=True)
class IndexRecord:
    """Unit written to the index.

    Document records carry ``title`` and ``link``; chunk records carry
    ``chunk_id``, ``chunk_text`` and ``chunk_tokens``. Both share ``id``.
    """

    id: str
    title: str | None = None
    link: str | None = None
    chunk_id: str | None = None
    chunk_text: str | None = None
    chunk_tokens: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_chunk(self) -> bool:
        return self.chunk_id is not None

    @property
    def kind(self) -> str:
        return "chunk" if self.is_chunk else "document"


@dataclass(slots=True)
class UpsertResult:
    """Outcome of buffering a single document."""

    id: str
    chunks: int = 0
    failed_chunks: int = 0


@dataclass(slots=True)
class IndexStats:
    """Aggregated statistics for one indexing session."""

    upserted: int = 0
    deleted: int = 0
    chunks: int = 0
    failed_chunks: int = 0
    duration_ms: int = 0

    def add(self, result: UpsertResult) -> None:
        self.upserted += 1
        self.chunks += result.chunks
        self.failed_chunks += result.failed_chunks

    def to_dict(self) -> dict[str, int]:
        return {
            "upserted": self.upserted,
            "deleted": self.deleted,
            "chunks": self.chunks,
            "failed_chunks": self.failed_chunks,
            "duration_ms": self.duration_ms,
        }


__all__ = ["SourceDocument", "IndexRecord", "UpsertResult", "IndexStats"]
