"""Document loaders for batch input files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import orjson
from pydantic import ValidationError

from doc_index.ingest.types import SourceDocument
from doc_index.models.dto import DocumentPayload


def load_documents_jsonl(path: Path) -> Iterator[SourceDocument]:
    """Yield documents from a JSON-lines file, one object per line.

    Blank lines are skipped. A malformed line raises ``ValueError`` naming it.
    """
    path = path.expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Document file not found: {path}")
    with path.open("rb") as fh:
        for lineno, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                payload = DocumentPayload.model_validate(orjson.loads(line))
            except (orjson.JSONDecodeError, ValidationError) as exc:
                raise ValueError(f"{path}:{lineno}: invalid document: {exc}") from exc
            yield payload.to_source()


__all__ = ["load_documents_jsonl"]
