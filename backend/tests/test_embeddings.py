"""Tests for embedding providers."""

import asyncio
import math

import httpx
import orjson
import pytest

from doc_index.core.config import Settings
from doc_index.core.errors import EmbeddingError
from doc_index.ingest.embeddings import Embedding, HashedEmbedding, HttpEmbedding, build_embedding


def test_hashed_embedding_is_deterministic_and_normalized() -> None:
    model = HashedEmbedding(dim=64)
    first = asyncio.run(model.embed("hello world"))
    second = asyncio.run(model.embed("hello world"))
    assert first == second
    assert len(first) == model.dim
    assert abs(math.sqrt(sum(value * value for value in first)) - 1.0) < 1e-6


def test_hashed_embedding_of_empty_text_is_zero() -> None:
    vector = asyncio.run(HashedEmbedding(dim=8).embed(""))
    assert vector == [0.0] * 8


class CountingTransport(httpx.MockTransport):
    def __init__(self, handler) -> None:
        super().__init__(handler)
        self.closed = 0

    async def aclose(self) -> None:
        self.closed += 1


def _client(handler) -> HttpEmbedding:
    return HttpEmbedding(
        base_url="http://embed.test/v1/",
        model="test-model",
        transport=CountingTransport(handler),
    )


def _embed(provider: HttpEmbedding, text: str):
    async def run():
        async with provider:
            return await provider.embed(text)

    return asyncio.run(run())


def test_http_embedding_success() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = orjson.loads(request.content)
        return httpx.Response(200, json={"data": [{"embedding": [0.25, -1, 3]}]})

    vector = _embed(_client(handler), "hello")
    assert vector == [0.25, -1.0, 3.0]
    assert seen["url"] == "http://embed.test/v1/embeddings"
    assert seen["body"] == {"model": "test-model", "input": ["hello"]}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"data": []}),
        httpx.Response(200, json={"data": [{"embedding": []}]}),
        httpx.Response(200, json={"data": [{"embedding": ["x"]}]}),
        httpx.Response(200, text="not json"),
    ],
)
def test_http_embedding_failures_raise_embedding_error(response: httpx.Response) -> None:
    with pytest.raises(EmbeddingError):
        _embed(_client(lambda request: response), "hello")


def test_http_embedding_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(EmbeddingError):
        _embed(_client(handler), "hello")


def test_http_embedding_reuses_one_client_until_closed() -> None:
    closed_during_requests: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        closed_during_requests.append(transport.closed)
        return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

    transport = CountingTransport(handler)
    provider = HttpEmbedding(base_url="http://embed.test", model="m", transport=transport)

    async def run() -> None:
        async with provider:
            for text in ("one", "two", "three"):
                await provider.embed(text)
        await provider.aclose()

    asyncio.run(run())
    assert closed_during_requests == [0, 0, 0]
    assert transport.closed == 1

    # Closed providers open a fresh client on demand.
    assert _embed(provider, "again") == [1.0]
    assert transport.closed == 2


def test_build_embedding_selects_backend() -> None:
    hashed = build_embedding(Settings(embedding_backend="hashed", embedding_dim=16))
    assert isinstance(hashed, HashedEmbedding)
    assert hashed.dim == 16
    http = build_embedding(Settings(embedding_backend="http"))
    assert isinstance(http, HttpEmbedding)
    assert isinstance(http, Embedding)
