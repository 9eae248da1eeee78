"""Exception hierarchy for index construction."""

from __future__ import annotations


class DocIndexError(RuntimeError):
    """Base class for indexing session failures."""


class IndexOpenError(DocIndexError):
    """The index location could not be opened or created."""


class IndexLockedError(IndexOpenError):
    """Another writer already holds the index location."""


class IndexWriteError(DocIndexError):
    """A buffered record or delete marker could not be written."""


class IndexCommitError(DocIndexError):
    """Flushing or merging on commit failed.

    ``flushed`` is true when the changes were already durable and only the
    merge wait failed.
    """

    def __init__(self, message: str, *, flushed: bool = False) -> None:
        super().__init__(message)
        self.flushed = flushed


class IndexClosedError(DocIndexError):
    """The session was committed, aborted or failed and accepts no more calls."""


class ConcurrentWriteError(DocIndexError):
    """Two calls overlapped on the same writer."""


class EmbeddingError(RuntimeError):
    """An embedding provider could not produce a vector."""


__all__ = [
    "DocIndexError",
    "IndexOpenError",
    "IndexLockedError",
    "IndexWriteError",
    "IndexCommitError",
    "IndexClosedError",
    "ConcurrentWriteError",
    "EmbeddingError",
]
