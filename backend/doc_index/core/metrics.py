"""Prometheus metrics instrumentation."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

REGISTRY = CollectorRegistry()

RECORDS_WRITTEN = Counter(
    "docidx_records_written_total",
    "Records added to the index writer",
    labelnames=("kind",),
    registry=REGISTRY,
)

EMBEDDING_FAILURES = Counter(
    "docidx_embedding_failures_total",
    "Chunks indexed without embedding tokens",
    registry=REGISTRY,
)

DOCUMENTS_DELETED = Counter(
    "docidx_documents_deleted_total",
    "Delete-by-id markers buffered",
    registry=REGISTRY,
)

COMMIT_DURATION = Histogram(
    "docidx_commit_duration_seconds",
    "Time spent flushing and merging on commit",
    registry=REGISTRY,
)


def render_metrics() -> bytes:
    """Return metrics in the Prometheus text exposition format."""
    return generate_latest(REGISTRY)


__all__ = [
    "REGISTRY",
    "RECORDS_WRITTEN",
    "EMBEDDING_FAILURES",
    "DOCUMENTS_DELETED",
    "COMMIT_DURATION",
    "render_metrics",
]
