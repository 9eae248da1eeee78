"""Chunking utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

CHUNK_SIZE = 2048

_PARAGRAPH_RE = re.compile(r"\n\s*\n", re.MULTILINE)
_LINE_RE = re.compile(r"\n")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")
_WORD_RE = re.compile(r"\s+")

# Coarsest break first; a span is only cut at a finer level when it does not fit.
_BREAK_LEVELS = (_PARAGRAPH_RE, _LINE_RE, _SENTENCE_RE, _WORD_RE)


@dataclass(slots=True)
class Segment:
    text: str
    start: int
    end: int


def chunk_text(text: str, max_chars: int = CHUNK_SIZE) -> list[str]:
    """Split text into trimmed chunks of at most ``max_chars`` characters.

    Paragraphs, lines, sentences and words are kept whole where possible and
    adjacent pieces are packed together up to the limit. Only whitespace at
    chunk edges is dropped; all other content keeps its original order.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")
    whole = _trim_segment(text, 0, len(text))
    if whole is None:
        return []

    chunks: list[str] = []
    start = end = -1
    for segment in _shrink_segment(text, whole, 0, max_chars):
        if start < 0:
            start, end = segment.start, segment.end
        elif segment.end - start <= max_chars:
            end = segment.end
        else:
            chunks.append(text[start:end])
            start, end = segment.start, segment.end
    chunks.append(text[start:end])
    return chunks


def _shrink_segment(text: str, segment: Segment, level: int, max_chars: int) -> list[Segment]:
    if segment.end - segment.start <= max_chars:
        return [segment]
    if level >= len(_BREAK_LEVELS):
        return _split_segment(text, segment, max_chars)
    shrunk: list[Segment] = []
    for piece in _iter_segments(text, segment, _BREAK_LEVELS[level]):
        shrunk.extend(_shrink_segment(text, piece, level + 1, max_chars))
    return shrunk


def _iter_segments(text: str, segment: Segment, pattern: re.Pattern[str]) -> Iterator[Segment]:
    last_index = segment.start
    for match in pattern.finditer(text, segment.start, segment.end):
        piece = _trim_segment(text, last_index, match.start())
        if piece:
            yield piece
        last_index = match.end()
    if last_index < segment.end:
        piece = _trim_segment(text, last_index, segment.end)
        if piece:
            yield piece


def _trim_segment(text: str, start: int, end: int) -> Segment | None:
    seg_start = start
    seg_end = end
    while seg_start < seg_end and text[seg_start].isspace():
        seg_start += 1
    while seg_end > seg_start and text[seg_end - 1].isspace():
        seg_end -= 1
    if seg_start >= seg_end:
        return None
    return Segment(text=text[seg_start:seg_end], start=seg_start, end=seg_end)


def _split_segment(text: str, segment: Segment, max_chars: int) -> list[Segment]:
    # A single run without whitespace longer than the limit: hard cut.
    segments: list[Segment] = []
    cursor = segment.start
    while cursor < segment.end:
        piece = _trim_segment(text, cursor, min(segment.end, cursor + max_chars))
        if piece:
            segments.append(piece)
        cursor += max_chars
    return segments


__all__ = ["CHUNK_SIZE", "chunk_text"]
