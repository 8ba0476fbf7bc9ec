"""Exact-equality field filters applied after text matching."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from errors import InvalidFilterValue, UnknownFilterKey
from models import FILTERABLE_FIELDS, MatchResult, Record

LOGGER = logging.getLogger(__name__)

# Chronological / volume-like keys list newest first; issue numbers list 1..n.
_DESCENDING_KEYS: frozenset[str] = frozenset({"year", "volume"})


class FilterSet:
    """Holds the active filter values and narrows match results by them.

    Every active filter must hold for a result to survive (logical AND).
    ``None`` means "no constraint" for that key.
    """

    def __init__(self, keys: Sequence[str] = ("volume", "issue")) -> None:
        for key in keys:
            if key not in FILTERABLE_FIELDS:
                raise UnknownFilterKey(key, FILTERABLE_FIELDS)
        self.keys: tuple[str, ...] = tuple(dict.fromkeys(keys))
        self._state: dict[str, int | None] = dict.fromkeys(self.keys)

    def set_filter(self, key: str, value: int | None) -> None:
        """Set or clear (``value=None``) one filter. Invalid input leaves state untouched."""
        if key not in self._state:
            raise UnknownFilterKey(key, self.keys)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise InvalidFilterValue(key, value)
        self._state[key] = value
        LOGGER.debug("Filter set: %s=%s", key, value)

    def reset(self) -> None:
        self._state = dict.fromkeys(self.keys)

    def snapshot(self) -> dict[str, int | None]:
        return dict(self._state)

    def has_active_filters(self) -> bool:
        return any(value is not None for value in self._state.values())

    def apply(self, results: Iterable[MatchResult]) -> list[MatchResult]:
        active = {key: value for key, value in self.snapshot().items() if value is not None}
        if not active:
            return list(results)
        return [
            result
            for result in results
            if all(getattr(result.record, key) == value for key, value in active.items())
        ]

    def options(self, key: str, records: Iterable[Record]) -> list[int]:
        """Distinct non-null values of ``key`` across ``records`` for a picker."""
        if key not in self._state:
            raise UnknownFilterKey(key, self.keys)
        values = {getattr(record, key) for record in records} - {None}
        return sorted(values, reverse=key in _DESCENDING_KEYS)
