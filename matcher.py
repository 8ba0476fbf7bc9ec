"""Weighted multi-field matching over the corpus.

Public API
----------
Matcher(store, strategy=None).search(query) -> list[MatchResult]
build_strategy(name)                        -> MatchStrategy
find_occurrences(text, needle)              -> tuple[Span, ...]

The substring strategy is the contract: a field matches iff its lowercased
text contains the lowercased query. The fuzzy strategy is opt-in and only
adds typo-tolerant hits on top of the exact ones.
"""

from __future__ import annotations

import difflib
import logging
import os
import re
from typing import Protocol

from corpus import CorpusStore
from models import SEQUENCE_FIELDS, TEXT_FIELDS, MatchResult, Record, Span, span_key

LOGGER = logging.getLogger(__name__)

FIELD_WEIGHTS: dict[str, float] = {
    "title": 0.40,
    "abstract": 0.25,
    "keywords": 0.20,
    "authors": 0.15,
}

SEARCH_STRATEGY = os.getenv("SEARCH_STRATEGY", "substring")
# 0 = exact only, 1 = anything goes. Parsed by FuzzyStrategy so a bad value
# only disables fuzzy matching.
FUZZY_THRESHOLD = os.getenv("FUZZY_THRESHOLD", "0.4")
FUZZY_MIN_QUERY_LENGTH = 3

_WORD_RE = re.compile(r"\w+")


def normalize_query(query: str | None) -> str:
    return (query or "").strip().lower()


def find_occurrences(text: str, needle: str) -> tuple[Span, ...]:
    """Return every non-overlapping, case-insensitive occurrence of ``needle``.

    ``needle`` must already be lowercased. Offsets index the original ``text``
    even when lowercasing changes its length (e.g. ``"İ".lower()``).
    """
    if not text or not needle:
        return ()

    lowered = text.lower()
    offsets: list[int] | None = None
    if len(lowered) != len(text):
        offsets = [i for i, ch in enumerate(text) for _ in ch.lower()]

    spans: list[Span] = []
    start = lowered.find(needle)
    while start != -1:
        end = start + len(needle)
        if offsets is None:
            spans.append(Span(start, end))
        else:
            spans.append(Span(offsets[start], offsets[end - 1] + 1))
        start = lowered.find(needle, end)
    return tuple(spans)


class MatchStrategy(Protocol):
    name: str

    def match_field(self, text: str, query: str) -> tuple[tuple[Span, ...], float]:
        """Return (spans, strength) for one field value.

        ``query`` is already normalized. Empty spans means no match; strength
        is in (0, 1] and scales the field weight.
        """
        ...


class SubstringStrategy:
    """Exact case-insensitive substring containment."""

    name = "substring"

    def match_field(self, text: str, query: str) -> tuple[tuple[Span, ...], float]:
        spans = find_occurrences(text, query)
        return spans, (1.0 if spans else 0.0)


class FuzzyStrategy:
    """Substring matching plus a bounded typo-tolerant fallback per field.

    When a field has no exact hit, the single-word query is compared to each
    word of the field with difflib; the closest word counts as a match if its
    ratio is at least ``1 - threshold``. Such a hit contributes ``ratio`` of
    the field weight, so exact hits always rank at or above fuzzy ones.
    """

    name = "fuzzy"

    def __init__(self, threshold: float | str | None = None) -> None:
        raw = FUZZY_THRESHOLD if threshold is None else threshold
        try:
            threshold = float(raw)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Fuzzy threshold must be a number, got {raw!r}") from exc
        if not 0.0 <= threshold < 1.0:
            raise ValueError(f"Fuzzy threshold must be in [0, 1), got {threshold}")
        self.threshold = threshold
        self._exact = SubstringStrategy()

    def match_field(self, text: str, query: str) -> tuple[tuple[Span, ...], float]:
        spans, strength = self._exact.match_field(text, query)
        if spans:
            return spans, strength
        if len(query) < FUZZY_MIN_QUERY_LENGTH or " " in query:
            return (), 0.0

        best_ratio = 0.0
        best_span: Span | None = None
        for word in _WORD_RE.finditer(text):
            ratio = difflib.SequenceMatcher(None, query, word.group().lower()).ratio()
            if ratio > best_ratio:
                best_ratio, best_span = ratio, Span(word.start(), word.end())

        if best_span is None or best_ratio < 1.0 - self.threshold:
            return (), 0.0
        return (best_span,), best_ratio


_STRATEGIES: dict[str, type] = {
    SubstringStrategy.name: SubstringStrategy,
    FuzzyStrategy.name: FuzzyStrategy,
}


def build_strategy(name: str | None = None) -> MatchStrategy:
    """Return the named strategy, falling back to substring matching.

    An unknown name or a strategy that fails to configure never disables
    search; it degrades to the substring baseline with a warning.
    """
    name = (name or SEARCH_STRATEGY).strip().lower()
    strategy_cls = _STRATEGIES.get(name)
    if strategy_cls is None:
        LOGGER.warning("Unknown search strategy %r, using substring matching", name)
        return SubstringStrategy()
    try:
        return strategy_cls()
    except ValueError as exc:
        LOGGER.warning("Search strategy %r misconfigured (%s), using substring matching", name, exc)
        return SubstringStrategy()


class Matcher:
    """Scores every record of the corpus against a free-text query."""

    def __init__(
        self,
        store: CorpusStore,
        strategy: MatchStrategy | None = None,
        weights: dict[str, float] | None = None,
    ) -> None:
        self.store = store
        self.strategy = strategy or SubstringStrategy()
        self.weights = dict(FIELD_WEIGHTS if weights is None else weights)

    def search(self, query: str) -> list[MatchResult]:
        records = self.store.all()
        needle = normalize_query(query)
        if not needle:
            return [MatchResult(record=record) for record in records]

        results = [
            result
            for result in (self._match_record(record, needle) for record in records)
            if result is not None
        ]
        # Stable sort: equal scores keep corpus order.
        results.sort(key=lambda r: r.score, reverse=True)
        LOGGER.debug(
            "Search complete: query=%r strategy=%s matched=%s of %s",
            needle,
            self.strategy.name,
            len(results),
            len(records),
        )
        return results

    def _match_record(self, record: Record, needle: str) -> MatchResult | None:
        spans_by_key: dict[str, tuple[Span, ...]] = {}
        score = 0.0

        for field_name in TEXT_FIELDS:
            text = getattr(record, field_name) or ""
            spans, strength = self.strategy.match_field(text, needle)
            if spans:
                spans_by_key[span_key(field_name)] = spans
                score += self.weights.get(field_name, 0.0) * strength

        for field_name in SEQUENCE_FIELDS:
            best = 0.0
            for index, value in enumerate(getattr(record, field_name) or ()):
                spans, strength = self.strategy.match_field(value, needle)
                if spans:
                    spans_by_key[span_key(field_name, index)] = spans
                    best = max(best, strength)
            score += self.weights.get(field_name, 0.0) * best

        if not spans_by_key:
            return None
        return MatchResult(record=record, matched_spans=spans_by_key, score=round(score, 6))
