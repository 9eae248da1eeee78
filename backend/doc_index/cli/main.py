"""CLI entrypoint for doc-index."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from doc_index.core.config import Settings, get_settings
from doc_index.core.errors import DocIndexError
from doc_index.core.logging import configure_logging
from doc_index.index.store import IndexReader
from doc_index.ingest.loaders import load_documents_jsonl
from doc_index.ingest.pipeline import IndexPipeline
from doc_index.models.dto import IndexStatsResponse

app = typer.Typer(name="doc-index", help="Build a searchable document index")


def _settings(index_dir: Optional[Path]) -> Settings:
    settings = get_settings().model_copy()
    if index_dir is not None:
        settings.index_dir = index_dir
    return settings


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", envvar="DOCIDX_LOG_LEVEL", help="Logging level"),
    json_logs: bool = typer.Option(True, "--json-logs/--plain-logs", help="Emit JSON log lines"),
) -> None:
    configure_logging(level=log_level.upper(), use_json=json_logs)


@app.command()
def index(
    path: Path = typer.Argument(..., help="JSON-lines file with id/title/link/body objects"),
    delete: List[str] = typer.Option([], "--delete", help="Document ID to remove in the same session"),
    index_dir: Optional[Path] = typer.Option(None, "--index-dir", help="Override index directory"),
) -> None:
    """Upsert documents from a file and commit."""
    settings = _settings(index_dir)
    pipeline = IndexPipeline(settings=settings)
    try:
        stats = asyncio.run(pipeline.run(load_documents_jsonl(path), deleted_ids=delete))
    except (DocIndexError, ValueError, FileNotFoundError) as exc:
        _fail(exc)
    typer.echo(IndexStatsResponse(**stats.to_dict()).model_dump_json(indent=2))


@app.command("delete")
def delete_documents(
    ids: List[str] = typer.Argument(..., help="Document IDs to remove"),
    index_dir: Optional[Path] = typer.Option(None, "--index-dir", help="Override index directory"),
) -> None:
    """Remove documents and commit."""
    settings = _settings(index_dir)
    pipeline = IndexPipeline(settings=settings)
    try:
        stats = asyncio.run(pipeline.run(deleted_ids=ids))
    except DocIndexError as exc:
        _fail(exc)
    typer.echo(json.dumps({"deleted": stats.deleted}))


@app.command()
def stats(
    index_dir: Optional[Path] = typer.Option(None, "--index-dir", help="Override index directory"),
) -> None:
    """Show document and chunk counts of the committed index."""
    settings = _settings(index_dir)
    try:
        with IndexReader(settings.index_dir) as reader:
            counts = reader.count()
    except DocIndexError as exc:
        _fail(exc)
    typer.echo(json.dumps(counts, indent=2))


if __name__ == "__main__":
    app()
