"""Test fixtures for doc-index."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


class ZeroEmbedding:
    """Returns an all-zero vector as long as the input text."""

    async def embed(self, text: str) -> list[float]:
        return [0.0] * len(text)


class FailingEmbedding:
    """Fails for any text containing one of ``markers``; otherwise a fixed vector."""

    def __init__(self, *markers: str) -> None:
        self.markers = markers
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.markers):
            raise RuntimeError("embedding backend unavailable")
        return [1.0, -1.0, 0.5]


class GateEmbedding:
    """Blocks every call until ``gate`` is set."""

    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.waiting = 0

    async def embed(self, text: str) -> list[float]:
        self.waiting += 1
        await self.gate.wait()
        return [1.0]


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset cached settings and environment between tests."""
    monkeypatch.setenv("DOCIDX_INDEX_DIR", str(tmp_path / "index"))
    monkeypatch.delenv("DOCIDX_CONFIG", raising=False)

    from doc_index.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def index_dir(tmp_path: Path) -> Path:
    return tmp_path / "index"


@pytest.fixture
def settings(index_dir: Path):
    from doc_index.core.config import Settings

    return Settings(index_dir=index_dir, chunk_size=64)


@pytest.fixture(scope="session")
def sample_body() -> str:
    return (
        "Indexing turns documents into records.\n\n"
        "Each chunk is embedded and binarized into tokens. "
        "Tokens let an inverted index approximate vector search.\n\n"
        "Commit makes everything visible at once."
    )
