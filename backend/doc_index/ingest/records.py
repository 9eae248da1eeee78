"""Record production: document record, then one record per embedded chunk."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Sequence

from doc_index.core.errors import EmbeddingError
from doc_index.core.logging import get_logger
from doc_index.core.metrics import EMBEDDING_FAILURES
from doc_index.index.schema import DocSearchSchema
from doc_index.ingest.chunker import CHUNK_SIZE, chunk_text
from doc_index.ingest.embeddings import Embedding
from doc_index.ingest.types import IndexRecord, SourceDocument

logger = get_logger(__name__)


class RecordProducer:
    """Turn a source document into index records.

    Chunks are embedded ``concurrency`` at a time; records are still yielded
    in chunk order and a failed embedding only affects its own chunk.
    """

    def __init__(
        self,
        embedding: Embedding,
        schema: DocSearchSchema,
        chunk_size: int = CHUNK_SIZE,
        concurrency: int = 1,
    ) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be > 0")
        self.embedding = embedding
        self.schema = schema
        self.chunk_size = chunk_size
        self.concurrency = concurrency

    async def iter_records(self, document: SourceDocument) -> AsyncIterator[IndexRecord]:
        yield self.schema.document_record(document.id, document.title, document.link)
        async for record in self.iter_chunks(document.id, document.body):
            yield record

    async def iter_chunks(self, id: str, body: str) -> AsyncIterator[IndexRecord]:
        """Split ``body`` and yield chunk records with binarized embedding tokens."""
        chunks = chunk_text(body, self.chunk_size)
        for offset in range(0, len(chunks), self.concurrency):
            window = chunks[offset : offset + self.concurrency]
            vectors = await asyncio.gather(
                *(self._embed(text) for text in window),
                return_exceptions=True,
            )
            for chunk_id, (text, vector) in enumerate(zip(window, vectors), start=offset):
                if isinstance(vector, BaseException):
                    if not isinstance(vector, Exception):
                        raise vector
                    logger.warning(
                        "Failed to embed chunk %s of document '%s': %s",
                        chunk_id,
                        id,
                        vector,
                        extra={"ctx_doc_id": id, "ctx_chunk_id": chunk_id},
                    )
                    EMBEDDING_FAILURES.inc()
                    vector = None
                yield self.schema.chunk_record(id, chunk_id, text, vector)

    async def _embed(self, text: str) -> Sequence[float]:
        vector = await self.embedding.embed(text)
        if len(vector) == 0:
            raise EmbeddingError("Embedding provider returned an empty vector")
        return vector


__all__ = ["RecordProducer"]
