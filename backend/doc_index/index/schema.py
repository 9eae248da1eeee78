"""Field registry for the document search index."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

from doc_index.ingest.types import IndexRecord


class FieldKind(str, enum.Enum):
    KEYWORD = "keyword"
    TEXT = "text"
    REPEATED_KEYWORD = "repeated_keyword"


def binarize_embedding(embedding: Iterable[float]) -> set[str]:
    """Turn a dense vector into one sign token per dimension.

    Dimension ``i`` yields ``embedding_one_i`` when its value is positive and
    ``embedding_zero_i`` otherwise, so similar vectors share many tokens and an
    inverted index can approximate nearest-neighbour search by token overlap.
    """
    return {
        f"embedding_one_{i}" if value > 0 else f"embedding_zero_{i}"
        for i, value in enumerate(embedding)
    }


@dataclass(frozen=True, slots=True)
class DocSearchSchema:
    """Named fields of the index. Constructed explicitly and shared read-only."""

    field_id: str = "id"
    field_title: str = "title"
    field_link: str = "link"
    field_chunk_id: str = "chunk_id"
    field_chunk_text: str = "chunk_text"
    field_chunk_tokens: str = "chunk_tokens"
    version: int = 1

    @property
    def fields(self) -> dict[str, FieldKind]:
        return {
            self.field_id: FieldKind.KEYWORD,
            self.field_title: FieldKind.TEXT,
            self.field_link: FieldKind.TEXT,
            self.field_chunk_id: FieldKind.KEYWORD,
            self.field_chunk_text: FieldKind.TEXT,
            self.field_chunk_tokens: FieldKind.REPEATED_KEYWORD,
        }

    def is_term_field(self, name: str) -> bool:
        return self.fields.get(name) in (FieldKind.KEYWORD, FieldKind.REPEATED_KEYWORD)

    def document_record(self, id: str, title: str, link: str) -> IndexRecord:
        return IndexRecord(id=id, title=title, link=link)

    def chunk_record(
        self,
        id: str,
        chunk_id: int,
        chunk_text: str,
        embedding: Iterable[float] | None = None,
    ) -> IndexRecord:
        tokens = frozenset(binarize_embedding(embedding)) if embedding is not None else frozenset()
        return IndexRecord(
            id=id,
            chunk_id=str(chunk_id),
            chunk_text=chunk_text,
            chunk_tokens=tokens,
        )


__all__ = ["DocSearchSchema", "FieldKind", "binarize_embedding"]
