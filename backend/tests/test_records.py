"""Tests for record production."""

import asyncio
import logging
from array import array
from collections.abc import Sequence

import pytest

from conftest import FailingEmbedding, ZeroEmbedding
from doc_index.core.metrics import REGISTRY
from doc_index.index.schema import DocSearchSchema
from doc_index.ingest.chunker import chunk_text
from doc_index.ingest.records import RecordProducer
from doc_index.ingest.types import SourceDocument


def _collect(producer: RecordProducer, document: SourceDocument):
    async def run():
        return [record async for record in producer.iter_records(document)]

    return asyncio.run(run())


def test_iter_records_matches_reference_fixture() -> None:
    producer = RecordProducer(ZeroEmbedding(), DocSearchSchema())
    document = SourceDocument(id="test", title="Test", link="https://example.com", body="Hello, world!")
    records = _collect(producer, document)
    assert len(records) == 2

    doc, chunk = records
    assert doc.id == "test"
    assert doc.title == "Test" and doc.link == "https://example.com"
    assert doc.chunk_id is None and doc.chunk_text is None and not doc.chunk_tokens

    assert chunk.id == "test"
    assert chunk.title is None and chunk.link is None
    assert chunk.chunk_id == "0"
    assert chunk.chunk_text == "Hello, world!"
    assert "embedding_zero_0" in chunk.chunk_tokens
    assert len(chunk.chunk_tokens) == len("Hello, world!")


def test_chunk_records_follow_body_order(sample_body: str) -> None:
    producer = RecordProducer(ZeroEmbedding(), DocSearchSchema(), chunk_size=50)
    records = _collect(producer, SourceDocument("d", "T", "L", sample_body))
    expected = chunk_text(sample_body, 50)
    assert len(records) == 1 + len(expected)
    assert [r.chunk_id for r in records[1:]] == [str(i) for i in range(len(expected))]
    assert [r.chunk_text for r in records[1:]] == expected


def test_empty_body_yields_only_document_record() -> None:
    producer = RecordProducer(ZeroEmbedding(), DocSearchSchema())
    records = _collect(producer, SourceDocument("d", "T", "L", ""))
    assert len(records) == 1
    assert not records[0].is_chunk


def test_embedding_failure_degrades_single_chunk(caplog: pytest.LogCaptureFixture) -> None:
    embedding = FailingEmbedding("bad")
    producer = RecordProducer(embedding, DocSearchSchema(), chunk_size=20)
    body = "good one here\n\nbad one here\n\ngood two here"
    before = REGISTRY.get_sample_value("docidx_embedding_failures_total") or 0.0
    with caplog.at_level(logging.WARNING):
        records = _collect(producer, SourceDocument("doc-1", "T", "L", body))

    chunks = records[1:]
    assert [c.chunk_text for c in chunks] == ["good one here", "bad one here", "good two here"]
    assert chunks[0].chunk_tokens and chunks[2].chunk_tokens
    assert chunks[1].chunk_tokens == frozenset()
    assert chunks[1].chunk_id == "1"
    assert any(
        "Failed to embed chunk 1 of document 'doc-1'" in rec.getMessage() for rec in caplog.records
    )
    assert REGISTRY.get_sample_value("docidx_embedding_failures_total") == before + 1


def test_empty_vector_counts_as_failure() -> None:
    class EmptyEmbedding:
        async def embed(self, text: str) -> list[float]:
            return []

    records = _collect(RecordProducer(EmptyEmbedding(), DocSearchSchema()), SourceDocument("d", "", "", "x"))
    assert records[1].chunk_text == "x"
    assert records[1].chunk_tokens == frozenset()


def test_concurrent_embedding_keeps_order() -> None:
    class SlowFirstEmbedding:
        def __init__(self) -> None:
            self.active = 0
            self.peak = 0

        async def embed(self, text: str) -> list[float]:
            self.active += 1
            self.peak = max(self.peak, self.active)
            # Earlier chunks finish last.
            await asyncio.sleep(0.001 * (10 - int(text[-1])))
            self.active -= 1
            return [float(text[-1]) - 4.5]

    body = "\n\n".join(f"part {i}" for i in range(10))
    embedding = SlowFirstEmbedding()
    producer = RecordProducer(embedding, DocSearchSchema(), chunk_size=6, concurrency=4)
    chunks = _collect(producer, SourceDocument("d", "", "", body))[1:]
    assert [c.chunk_text for c in chunks] == [f"part {i}" for i in range(10)]
    assert [c.chunk_id for c in chunks] == [str(i) for i in range(10)]
    assert chunks[0].chunk_tokens == {"embedding_zero_0"}
    assert chunks[9].chunk_tokens == {"embedding_one_0"}
    assert embedding.peak == 4


def test_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RecordProducer(ZeroEmbedding(), DocSearchSchema(), concurrency=0)


class ArrayVector(Sequence):
    """Array-backed float32 vector whose truth value is ambiguous, like an ndarray."""

    def __init__(self, values) -> None:
        self._values = array("f", values)

    def __getitem__(self, index):
        return self._values[index]

    def __len__(self) -> int:
        return len(self._values)

    def __bool__(self) -> bool:
        raise ValueError("The truth value of a vector with more than one element is ambiguous")


@pytest.mark.parametrize("vector", [ArrayVector([0.5, -0.5, 0.0, 2.0]), (0.5, -0.5, 0.0, 2.0)])
def test_non_list_vectors_are_binarized(vector) -> None:
    class SequenceEmbedding:
        async def embed(self, text: str):
            return vector

    records = _collect(RecordProducer(SequenceEmbedding(), DocSearchSchema()), SourceDocument("d", "", "", "text"))
    assert records[1].chunk_tokens == {
        "embedding_one_0",
        "embedding_zero_1",
        "embedding_zero_2",
        "embedding_one_3",
    }


def test_empty_non_list_vector_counts_as_failure() -> None:
    class EmptyArrayEmbedding:
        async def embed(self, text: str):
            return ArrayVector([])

    records = _collect(RecordProducer(EmptyArrayEmbedding(), DocSearchSchema()), SourceDocument("d", "", "", "x"))
    assert records[1].chunk_tokens == frozenset()
