"""Pydantic DTOs for documents and stats crossing the library boundary."""

from __future__ import annotations

from pydantic import BaseModel, Field

from doc_index.ingest.types import SourceDocument


class DocumentPayload(BaseModel):
    id: str = Field(min_length=1, description="Stable unique document identifier")
    title: str = ""
    link: str = ""
    body: str = ""

    model_config = {"extra": "ignore"}

    def to_source(self) -> SourceDocument:
        return SourceDocument(id=self.id, title=self.title, link=self.link, body=self.body)


class IndexStatsResponse(BaseModel):
    upserted: int
    deleted: int
    chunks: int
    failed_chunks: int
    duration_ms: int
