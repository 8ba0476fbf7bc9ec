"""Query pipeline: turns query/filter events into the current result set.

Free-text changes are debounced with a cancel-and-restart policy: every new
keystroke inside the quiet window cancels the pending search and restarts the
timer. Filter changes refresh immediately. Timers come from a ``Scheduler``;
the default one uses the running asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import Protocol

from corpus import CorpusStore
from filters import FilterSet
from matcher import Matcher
from models import ResultSet

_DEFAULT_DEBOUNCE_MS = 200

LOGGER = logging.getLogger(__name__)


def debounce_ms_from_env() -> int:
    """Read SEARCH_DEBOUNCE_MS, keeping the default when it is not an integer."""
    raw = os.getenv("SEARCH_DEBOUNCE_MS")
    if raw is None:
        return _DEFAULT_DEBOUNCE_MS
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning(
            "Invalid SEARCH_DEBOUNCE_MS=%r, using %s ms", raw, _DEFAULT_DEBOUNCE_MS
        )
        return _DEFAULT_DEBOUNCE_MS


DEBOUNCE_MS = debounce_ms_from_env()

Observer = Callable[[ResultSet], None]


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class AsyncioScheduler:
    """Delayed callbacks on an asyncio event loop (the running one by default)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class QueryPipeline:
    """Owns the current query, the filter set and the materialized ResultSet.

    Instances are independent; nothing here is module-level state. The
    default scheduler debounces on the running asyncio loop; without one,
    query changes are searched synchronously.
    """

    def __init__(
        self,
        store: CorpusStore,
        matcher: Matcher | None = None,
        filters: FilterSet | None = None,
        *,
        debounce_ms: int | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.store = store
        self.matcher = matcher or Matcher(store)
        self.filters = filters or FilterSet()
        self.debounce_seconds = (DEBOUNCE_MS if debounce_ms is None else debounce_ms) / 1000
        self._scheduler = scheduler or AsyncioScheduler()
        self._query = ""
        self._pending: Cancellable | None = None
        self._observers: list[Observer] = []
        self._results = self._compute()

    @property
    def query(self) -> str:
        return self._query

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register a renderer; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def get_results(self) -> ResultSet:
        return self._results

    def set_query(self, text: str | None, immediate: bool = False) -> ResultSet:
        """Record new query text and schedule a search after the quiet period.

        With ``immediate=True`` (or a zero debounce) the search runs now. So
        does a call made outside an event loop when the default scheduler has
        no loop to put the timer on. Returns the result set current at return
        time.
        """
        self._query = text or ""
        self._cancel_pending()
        if immediate or self.debounce_seconds <= 0:
            return self.refresh()
        try:
            self._pending = self._scheduler.call_later(self.debounce_seconds, self._on_quiet_period)
        except RuntimeError as exc:
            LOGGER.debug("No event loop for debounce (%s), searching immediately", exc)
            return self.refresh()
        return self._results

    def set_filter(self, key: str, value: int | None) -> ResultSet:
        # Raises before any refresh; the filter set keeps its previous state.
        self.filters.set_filter(key, value)
        return self.refresh()

    def reset_filters(self) -> ResultSet:
        self.filters.reset()
        return self.refresh()

    def flush(self) -> ResultSet:
        """Run a pending debounced search right away, if there is one."""
        if self._pending is None:
            return self._results
        return self.refresh()

    def refresh(self) -> ResultSet:
        """Recompute results for the current query and filters and notify observers."""
        self._cancel_pending()
        self._results = self._compute()
        LOGGER.debug(
            "Results updated: query=%r filters=%s results=%s corpus_empty=%s",
            self._results.query,
            self._results.filters,
            len(self._results),
            self._results.corpus_empty,
        )
        for observer in list(self._observers):
            observer(self._results)
        return self._results

    def close(self) -> None:
        self._cancel_pending()

    def _compute(self) -> ResultSet:
        snapshot = self.filters.snapshot()
        if len(self.store) == 0:
            return ResultSet(query=self._query, filters=snapshot, corpus_empty=True)
        results = self.filters.apply(self.matcher.search(self._query))
        return ResultSet(results=tuple(results), query=self._query, filters=snapshot)

    def _on_quiet_period(self) -> None:
        self._pending = None
        self.refresh()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
