"""Logging utilities for doc-index.

Library modules only call :func:`get_logger`; the process that embeds the
indexer (or the CLI) decides where records go by calling
:func:`configure_logging`. Per-record context is passed through ``extra``
with a ``ctx_`` prefix, e.g. ``extra={"ctx_doc_id": doc_id}``, and ends up
under ``context`` in JSON output or as ``key=value`` pairs in plain output.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import orjson

CONTEXT_PREFIX = "ctx_"
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logging.getLogger("doc_index").addHandler(logging.NullHandler())


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Collect ``ctx_*`` attributes of ``record`` without their prefix."""
    return {
        key[len(CONTEXT_PREFIX) :]: value
        for key, value in record.__dict__.items()
        if key.startswith(CONTEXT_PREFIX)
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per line, context fields nested under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        context = record_context(record)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


class PlainFormatter(logging.Formatter):
    """Human-readable lines with context appended as ``key=value``."""

    def __init__(self) -> None:
        super().__init__(PLAIN_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        head, sep, tail = line.partition("\n")
        return f"{head} [{pairs}]{sep}{tail}"


def configure_logging(level: str | int = "WARNING", use_json: bool = True) -> None:
    """Route all records to stderr; stdout is reserved for command output."""
    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if use_json else PlainFormatter())
    root.handlers = [handler]


def get_logger(name: str = "doc_index") -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "PlainFormatter", "configure_logging", "get_logger", "record_context"]
