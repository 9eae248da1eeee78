"""Ingest pipeline orchestration."""

from __future__ import annotations

import time
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, Iterable

from doc_index.core.config import Settings, get_settings
from doc_index.core.logging import get_logger
from doc_index.index.schema import DocSearchSchema
from doc_index.ingest.embeddings import Embedding, build_embedding
from doc_index.ingest.indexer import DocIndex
from doc_index.ingest.types import IndexStats, SourceDocument

logger = get_logger(__name__)


class IndexPipeline:
    """Run one indexing session: upsert a batch, drop stale ids, commit."""

    def __init__(
        self,
        settings: Settings | None = None,
        embedding: Embedding | None = None,
        schema: DocSearchSchema | None = None,
        index_dir: Path | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_embedding = embedding is None
        self.embedding = embedding or build_embedding(self.settings)
        self.schema = schema or DocSearchSchema()
        self.index_dir = index_dir

    async def run(
        self,
        documents: Iterable[SourceDocument] | AsyncIterable[SourceDocument] = (),
        deleted_ids: Iterable[str] = (),
    ) -> IndexStats:
        stats = IndexStats()
        started = time.perf_counter()
        index = DocIndex(self.embedding, self.index_dir, settings=self.settings, schema=self.schema)
        with index:
            try:
                async for document in _aiter(documents):
                    stats.add(await index.upsert(document))
                for id in deleted_ids:
                    if index.delete(id):
                        stats.deleted += 1
                index.commit()
            except Exception as exc:
                logger.exception("Index job failed: %s", exc)
                raise
            finally:
                await self._release_embedding()
        stats.duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Indexed %s documents (%s chunks, %s without embeddings), deleted %s",
            stats.upserted,
            stats.chunks,
            stats.failed_chunks,
            stats.deleted,
        )
        return stats

    async def _release_embedding(self) -> None:
        aclose = getattr(self.embedding, "aclose", None)
        if self._owns_embedding and aclose is not None:
            await aclose()


async def _aiter(
    documents: Iterable[SourceDocument] | AsyncIterable[SourceDocument],
) -> AsyncIterator[SourceDocument]:
    if isinstance(documents, AsyncIterable):
        async for document in documents:
            yield document
    else:
        for document in documents:
            yield document


__all__ = ["IndexPipeline"]
