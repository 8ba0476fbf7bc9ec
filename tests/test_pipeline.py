"""Tests for the query pipeline (debounce, filter events, observers)."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import MagicMock, patch

import pytest

from corpus import CorpusStore
from errors import InvalidFilterValue, UnknownFilterKey
from filters import FilterSet
from matcher import Matcher
from models import Record, ResultSet, Span
from pipeline import QueryPipeline, debounce_ms_from_env

A1 = Record(id="a1", title="Deep Learning for Networks", year=2020, volume=9)
A2 = Record(id="a2", title="Shallow Parsing", year=2019, volume=8)


class _FakeTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class _FakeScheduler:
    """Manual clock: timers fire only when the test advances time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[_FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _FakeTimer:
        timer = _FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in list(self.timers):
            if not timer.cancelled and timer.when <= self.now:
                self.timers.remove(timer)
                timer.callback()

    @property
    def live(self) -> list[_FakeTimer]:
        return [t for t in self.timers if not t.cancelled]


def _store(*records: Record) -> CorpusStore:
    store = CorpusStore()
    store.load(list(records or (A1, A2)))
    return store


def _pipeline(store: CorpusStore | None = None, debounce_ms: int = 200) -> tuple[QueryPipeline, _FakeScheduler]:
    scheduler = _FakeScheduler()
    pipeline = QueryPipeline(
        store or _store(),
        filters=FilterSet(["volume", "issue", "year"]),
        debounce_ms=debounce_ms,
        scheduler=scheduler,
    )
    return pipeline, scheduler


def test_initial_results_are_the_whole_corpus() -> None:
    pipeline, _ = _pipeline()

    results = pipeline.get_results()

    assert results.ids == ["a1", "a2"]
    assert all(r.score == 0 and not r.matched_spans for r in results)
    assert results.corpus_empty is False


def test_rapid_keystrokes_trigger_one_search_with_latest_text() -> None:
    pipeline, scheduler = _pipeline()

    with patch.object(pipeline.matcher, "search", wraps=pipeline.matcher.search) as spy:
        pipeline.set_query("n")
        scheduler.advance(0.05)
        pipeline.set_query("ne")
        scheduler.advance(0.05)
        pipeline.set_query("net")
        scheduler.advance(0.199)
        assert spy.call_count == 0

        scheduler.advance(0.01)

    spy.assert_called_once_with("net")
    assert pipeline.get_results().ids == ["a1"]
    assert len(scheduler.live) == 0


def test_results_do_not_change_until_quiet_period_ends() -> None:
    pipeline, scheduler = _pipeline()
    before = pipeline.get_results()

    pipeline.set_query("shallow")

    assert pipeline.pending is True
    assert pipeline.get_results() is before
    scheduler.advance(0.2)
    assert pipeline.pending is False
    assert pipeline.get_results().ids == ["a2"]


def test_keystroke_after_quiet_period_searches_again() -> None:
    pipeline, scheduler = _pipeline()
    seen: list[ResultSet] = []
    pipeline.subscribe(seen.append)

    pipeline.set_query("deep")
    scheduler.advance(0.3)
    pipeline.set_query("shallow")
    scheduler.advance(0.3)

    assert [rs.query for rs in seen] == ["deep", "shallow"]
    assert [rs.ids for rs in seen] == [["a1"], ["a2"]]


def test_filter_change_applies_immediately_and_notifies() -> None:
    pipeline, _ = _pipeline()
    observer = MagicMock()
    pipeline.subscribe(observer)

    results = pipeline.set_filter("volume", 8)

    observer.assert_called_once_with(results)
    assert results.ids == ["a2"]
    assert results.filters == {"volume": 8, "issue": None, "year": None}


def test_filter_change_cancels_pending_search_and_uses_latest_query() -> None:
    pipeline, scheduler = _pipeline()
    seen: list[ResultSet] = []
    pipeline.subscribe(seen.append)

    pipeline.set_query("network")
    pipeline.set_filter("year", 2020)
    scheduler.advance(1.0)

    assert len(seen) == 1
    assert seen[0].query == "network"
    assert seen[0].ids == ["a1"]


def test_scenario_search_then_volume_filters() -> None:
    pipeline, _ = _pipeline()

    results = pipeline.set_query("network", immediate=True)
    assert results.ids == ["a1"]
    assert dict(results[0].matched_spans) == {"title": (Span(18, 25),)}
    assert results[0].score == pytest.approx(0.40)

    assert pipeline.set_filter("volume", 9).ids == ["a1"]

    emptied = pipeline.set_filter("volume", 8)
    assert len(emptied) == 0
    assert emptied.corpus_empty is False


def test_invalid_filter_is_rejected_without_refresh() -> None:
    pipeline, _ = _pipeline()
    pipeline.set_filter("volume", 9)
    observer = MagicMock()
    pipeline.subscribe(observer)
    before = pipeline.get_results()

    with pytest.raises(InvalidFilterValue):
        pipeline.set_filter("volume", "8")  # type: ignore[arg-type]
    with pytest.raises(UnknownFilterKey):
        pipeline.set_filter("title", 1)

    observer.assert_not_called()
    assert pipeline.get_results() is before
    assert pipeline.filters.snapshot()["volume"] == 9


def test_reset_filters_restores_text_only_results() -> None:
    pipeline, _ = _pipeline()
    pipeline.set_filter("volume", 8)

    results = pipeline.reset_filters()

    assert results.ids == ["a1", "a2"]


def test_empty_corpus_short_circuits_without_matching() -> None:
    matcher = MagicMock()
    pipeline = QueryPipeline(CorpusStore(), matcher=matcher, scheduler=_FakeScheduler())

    results = pipeline.set_query("anything", immediate=True)

    matcher.search.assert_not_called()
    assert results.corpus_empty is True
    assert len(results) == 0


def test_flush_runs_pending_search_now() -> None:
    pipeline, scheduler = _pipeline()

    assert pipeline.flush() is pipeline.get_results()

    pipeline.set_query("parsing")
    flushed = pipeline.flush()

    assert flushed.ids == ["a2"]
    assert pipeline.pending is False
    assert scheduler.live == []


def test_zero_debounce_searches_synchronously() -> None:
    pipeline, scheduler = _pipeline(debounce_ms=0)
    assert pipeline.set_query("parsing").ids == ["a2"]
    assert scheduler.timers == []


def test_unsubscribe_stops_notifications() -> None:
    pipeline, _ = _pipeline()
    observer = MagicMock()
    unsubscribe = pipeline.subscribe(observer)

    unsubscribe()
    pipeline.set_filter("year", 2019)

    observer.assert_not_called()


def test_pipelines_are_independent() -> None:
    store = _store()
    first, _ = _pipeline(store)
    second, _ = _pipeline(store)

    first.set_filter("volume", 9)
    second.set_query("parsing", immediate=True)

    assert first.get_results().ids == ["a1"]
    assert second.get_results().ids == ["a2"]
    assert second.filters.snapshot()["volume"] is None


def test_default_scheduler_debounces_on_running_event_loop() -> None:
    async def scenario() -> list[ResultSet]:
        pipeline = QueryPipeline(_store(), matcher=None, debounce_ms=20)
        seen: list[ResultSet] = []
        pipeline.subscribe(seen.append)
        with patch.object(pipeline.matcher, "search", wraps=pipeline.matcher.search) as spy:
            pipeline.set_query("n")
            pipeline.set_query("ne")
            pipeline.set_query("net")
            await asyncio.sleep(0.1)
        spy.assert_called_once_with("net")
        return seen

    seen = asyncio.run(scenario())

    assert [rs.query for rs in seen] == ["net"]
    assert seen[0].ids == ["a1"]


def test_custom_matcher_is_used() -> None:
    store = _store()
    matcher = Matcher(store)
    pipeline = QueryPipeline(store, matcher=matcher, scheduler=_FakeScheduler())
    assert pipeline.matcher is matcher


def test_default_pipeline_outside_event_loop_searches_immediately() -> None:
    pipeline = QueryPipeline(_store(), debounce_ms=200)

    results = pipeline.set_query("parsing")

    assert results.ids == ["a2"]
    assert pipeline.pending is False


@pytest.mark.parametrize(("raw", "expected"), [("soon", 200), ("1.5", 200), ("350", 350)])
def test_debounce_ms_from_env(raw: str, expected: int, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SEARCH_DEBOUNCE_MS", raw)
    assert debounce_ms_from_env() == expected


def test_debounce_ms_default_when_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SEARCH_DEBOUNCE_MS", raising=False)
    assert debounce_ms_from_env() == 200
