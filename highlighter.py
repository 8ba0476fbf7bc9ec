"""Turn matched spans into plain/highlighted segments for rendering."""

from __future__ import annotations

import html
import re
from collections.abc import Iterable

from models import Record, Segment, Span

HIGHLIGHT_OPEN = '<mark class="highlight">'
HIGHLIGHT_CLOSE = "</mark>"

ANSI_HIGHLIGHT = "\033[1;33m"
ANSI_RESET = "\033[0m"

_SPAN_KEY_RE = re.compile(r"^(?P<field>\w+)(?:\[(?P<index>\d+)\])?$")


def merge_spans(spans: Iterable[tuple[int, int]], length: int) -> list[Span]:
    """Sort, clamp to ``[0, length]`` and coalesce overlapping or touching spans."""
    merged: list[Span] = []
    for start, end in sorted(spans):
        start, end = max(0, start), min(length, end)
        if start >= end:
            continue
        if merged and start <= merged[-1].end:
            if end > merged[-1].end:
                merged[-1] = Span(merged[-1].start, end)
            continue
        merged.append(Span(start, end))
    return merged


def annotate(text: str, spans: Iterable[tuple[int, int]]) -> list[Segment]:
    """Split ``text`` into segments, flagging the ones covered by ``spans``.

    Pure function. Concatenating the segment texts always gives back ``text``,
    and no two highlighted segments are ever adjacent.
    """
    merged = merge_spans(spans, len(text))
    if not merged:
        return [Segment(text)]

    segments: list[Segment] = []
    cursor = 0
    for start, end in merged:
        if start > cursor:
            segments.append(Segment(text[cursor:start]))
        segments.append(Segment(text[start:end], highlighted=True))
        cursor = end
    if cursor < len(text):
        segments.append(Segment(text[cursor:]))
    return segments


def render_html(text: str, spans: Iterable[tuple[int, int]]) -> str:
    # Escape per segment so offsets always refer to the raw text.
    return "".join(
        f"{HIGHLIGHT_OPEN}{html.escape(seg.text)}{HIGHLIGHT_CLOSE}" if seg.highlighted else html.escape(seg.text)
        for seg in annotate(text, spans)
    )


def render_ansi(text: str, spans: Iterable[tuple[int, int]]) -> str:
    return "".join(
        f"{ANSI_HIGHLIGHT}{seg.text}{ANSI_RESET}" if seg.highlighted else seg.text
        for seg in annotate(text, spans)
    )


def field_text(record: Record, key: str) -> str:
    """Resolve a matched-spans key (``title``, ``authors[1]``) to the record's raw text."""
    match = _SPAN_KEY_RE.match(key)
    if match is None or not hasattr(record, match.group("field")):
        raise KeyError(key)
    value = getattr(record, match.group("field"))
    if match.group("index") is not None:
        value = value[int(match.group("index"))]
    return value or ""
