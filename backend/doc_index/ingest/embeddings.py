"""Embedding providers."""

from __future__ import annotations

import hashlib
import math
import re
from typing import Protocol, Sequence, runtime_checkable

import httpx

from doc_index.core.config import Settings
from doc_index.core.errors import EmbeddingError
from doc_index.core.logging import get_logger

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")


@runtime_checkable
class Embedding(Protocol):
    """Anything that turns a text span into a dense vector, or raises."""

    async def embed(self, text: str) -> Sequence[float]: ...


class HashedEmbedding:
    """Lightweight signed feature-hashing embedding with deterministic output."""

    def __init__(self, dim: int = 384) -> None:
        if dim <= 0:
            raise ValueError("dim must be > 0")
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    async def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dim
        for token in _tokenize(text):
            slot, sign = _hash_token(token, self._dim)
            vector[slot] += sign
        _normalize(vector)
        return vector


class HttpEmbedding:
    """Client for OpenAI-compatible ``/embeddings`` endpoints (Ollama, vLLM, ...)."""

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpEmbedding":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release pooled connections. A later ``embed`` opens a new client."""
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport)
        return self._client

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._get_client().post(
                f"{self._base_url}/embeddings",
                json={"model": self._model, "input": [text]},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmbeddingError(str(exc)) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise EmbeddingError("Invalid embeddings payload: not JSON") from exc
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or len(data) != 1:
            raise EmbeddingError("Invalid embeddings payload: expected exactly one item in data")

        embedding = data[0].get("embedding") if isinstance(data[0], dict) else None
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingError("Invalid embeddings payload: missing embedding vector")
        try:
            return [float(value) for value in embedding]
        except (TypeError, ValueError) as exc:
            raise EmbeddingError("Invalid embeddings payload: non-numeric values") from exc


def build_embedding(settings: Settings) -> Embedding:
    """Construct the provider selected by ``settings.embedding_backend``."""
    if settings.embedding_backend == "http":
        logger.info("Using HTTP embeddings from %s (%s)", settings.embedding_base_url, settings.embedding_model)
        return HttpEmbedding(
            base_url=settings.embedding_base_url,
            model=settings.embedding_model,
            timeout_seconds=settings.embedding_timeout_seconds,
        )
    return HashedEmbedding(dim=settings.embedding_dim)


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> tuple[int, float]:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    sign = 1.0 if value & 1 else -1.0
    return (value >> 1) % dim, sign


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = ["Embedding", "HashedEmbedding", "HttpEmbedding", "build_embedding"]
