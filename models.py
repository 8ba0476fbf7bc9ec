"""Shared typed models for the search engine."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import NamedTuple

# Fields evaluated by the matcher, in scoring order.
TEXT_FIELDS: tuple[str, ...] = ("title", "abstract")
SEQUENCE_FIELDS: tuple[str, ...] = ("keywords", "authors")

# Discrete integer fields a filter may target.
FILTERABLE_FIELDS: tuple[str, ...] = ("year", "volume", "issue")


@dataclass(frozen=True, slots=True)
class Record:
    """Normalized article record, immutable for the lifetime of a session."""

    id: str
    title: str
    authors: tuple[str, ...] = ()
    abstract: str | None = None
    keywords: tuple[str, ...] = ()
    year: int | None = None
    volume: int | None = None
    issue: int | None = None
    pdf_url: str | None = None
    article_url: str | None = None


class Span(NamedTuple):
    """Half-open character range into the original field text."""

    start: int
    end: int


def span_key(field_name: str, index: int | None = None) -> str:
    """Build the matched-spans key for a field or one element of a sequence field."""
    return field_name if index is None else f"{field_name}[{index}]"


def base_field(key: str) -> str:
    """Strip a sequence index from a span key: ``keywords[2]`` -> ``keywords``."""
    return key.split("[", 1)[0]


@dataclass(frozen=True, slots=True)
class MatchResult:
    record: Record
    matched_spans: Mapping[str, tuple[Span, ...]] = field(default_factory=dict)
    score: float = 0.0

    @property
    def matched_fields(self) -> frozenset[str]:
        return frozenset(base_field(key) for key in self.matched_spans)


@dataclass(frozen=True, slots=True)
class Segment:
    text: str
    highlighted: bool = False


@dataclass(frozen=True, slots=True)
class ResultSet:
    """Materialized results for one query + filter pair.

    ``corpus_empty`` marks the "no data loaded" state, which renderers show
    differently from a query that simply matched nothing.
    """

    results: tuple[MatchResult, ...] = ()
    query: str = ""
    filters: Mapping[str, int | None] = field(default_factory=dict)
    corpus_empty: bool = False

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[MatchResult]:
        return iter(self.results)

    def __getitem__(self, index: int) -> MatchResult:
        return self.results[index]

    @property
    def ids(self) -> list[str]:
        return [result.record.id for result in self.results]
