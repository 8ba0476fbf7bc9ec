"""Error types raised by the search engine."""

from __future__ import annotations


class SearchEngineError(Exception):
    """Base class for engine errors."""


class EmptyCorpus(SearchEngineError):
    """No records were supplied at load time."""


class CorpusAlreadyLoaded(SearchEngineError):
    """The corpus store is load-once; a second load was attempted."""


class CorpusFormatError(SearchEngineError):
    """The corpus data file does not have the expected shape."""


class FilterError(SearchEngineError, ValueError):
    """A filter change was rejected; the previous filter state is kept."""


class UnknownFilterKey(FilterError):
    def __init__(self, key: str, allowed: tuple[str, ...] | list[str]) -> None:
        self.key = key
        self.allowed = tuple(allowed)
        super().__init__(f"Unknown filter key {key!r}; expected one of {', '.join(self.allowed)}")


class InvalidFilterValue(FilterError):
    def __init__(self, key: str, value: object) -> None:
        self.key = key
        self.value = value
        super().__init__(
            f"Invalid value for filter {key!r}: expected int or None, got {type(value).__name__} {value!r}"
        )
