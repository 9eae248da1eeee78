from .schema import DocSearchSchema, FieldKind, binarize_embedding
from .store import IndexReader, IndexWriter, open_or_create_index

__all__ = [
    "DocSearchSchema",
    "FieldKind",
    "binarize_embedding",
    "IndexReader",
    "IndexWriter",
    "open_or_create_index",
]
