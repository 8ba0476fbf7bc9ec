"""In-memory corpus store and read-only projections over the loaded records."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from errors import CorpusAlreadyLoaded, EmptyCorpus
from models import Record

LOGGER = logging.getLogger(__name__)


class CorpusStore:
    """Load-once, read-many holder for the session's records.

    Records keep their load order; no other ordering is implied.
    """

    def __init__(self) -> None:
        self._records: tuple[Record, ...] = ()
        self._by_id: dict[str, Record] = {}
        self._loaded = False

    def load(self, records: Sequence[Record]) -> None:
        if self._loaded:
            raise CorpusAlreadyLoaded("Corpus store has already been loaded for this session")
        if not records:
            raise EmptyCorpus("Cannot load an empty corpus")

        by_id: dict[str, Record] = {}
        duplicates = 0
        for record in records:
            if record.id in by_id:
                duplicates += 1
                LOGGER.warning("Corpus load: duplicate id=%s dropped", record.id)
                continue
            by_id[record.id] = record

        self._records = tuple(by_id.values())
        self._by_id = by_id
        self._loaded = True
        LOGGER.info(
            "Corpus loaded: records=%s duplicates_dropped=%s", len(self._records), duplicates
        )

    def all(self) -> tuple[Record, ...]:
        return self._records

    def get(self, record_id: str) -> Record | None:
        return self._by_id.get(record_id)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._records)


@dataclass(frozen=True, slots=True)
class CorpusStats:
    article_count: int
    year_span: int
    unique_keywords: int


def corpus_stats(records: Iterable[Record]) -> CorpusStats:
    """Headline numbers for the catalog: size, years covered, distinct topics."""
    records = list(records)
    years = [r.year for r in records if r.year is not None]
    keywords = {k.strip().lower() for r in records for k in r.keywords if k.strip()}
    return CorpusStats(
        article_count=len(records),
        year_span=max(years) - min(years) if years else 0,
        unique_keywords=len(keywords),
    )


def top_keywords(
    records: Iterable[Record], limit: int = 10, min_length: int = 1
) -> list[tuple[str, int]]:
    """Return the most frequent keywords as (keyword, count), most frequent first.

    Keywords are lowercased and stripped before counting; ties keep the order
    in which the keyword was first seen. Keywords shorter than ``min_length``
    are ignored.
    """
    counts: Counter[str] = Counter()
    for record in records:
        for keyword in record.keywords:
            k = keyword.strip().lower()
            if len(k) >= min_length:
                counts[k] += 1
    # Counter preserves insertion order, and sorted() is stable.
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:limit]


def search_suggestions(records: Iterable[Record], limit: int = 10) -> list[str]:
    """Keywords worth offering as one-click queries."""
    return [keyword for keyword, _ in top_keywords(records, limit=limit)]


def topic_keywords(records: Iterable[Record], limit: int = 20) -> list[tuple[str, int]]:
    """Topic candidates: frequent keywords longer than two characters."""
    return top_keywords(records, limit=limit, min_length=3)
