import pytest

from corpus import CorpusStore, corpus_stats, search_suggestions, top_keywords, topic_keywords
from errors import CorpusAlreadyLoaded, EmptyCorpus
from models import Record


def _record(record_id: str, year: int | None = None, keywords: tuple[str, ...] = ()) -> Record:
    return Record(id=record_id, title=f"Article {record_id}", year=year, keywords=keywords)


def test_load_keeps_input_order() -> None:
    store = CorpusStore()
    store.load([_record("b"), _record("a"), _record("c")])

    assert [r.id for r in store.all()] == ["b", "a", "c"]
    assert len(store) == 3
    assert store.is_loaded is True


def test_empty_load_fails() -> None:
    store = CorpusStore()

    with pytest.raises(EmptyCorpus):
        store.load([])

    assert store.is_loaded is False
    assert store.all() == ()


def test_store_is_load_once() -> None:
    store = CorpusStore()
    store.load([_record("a")])

    with pytest.raises(CorpusAlreadyLoaded):
        store.load([_record("b")])

    assert [r.id for r in store.all()] == ["a"]


def test_duplicate_ids_keep_first_occurrence(caplog: pytest.LogCaptureFixture) -> None:
    first = _record("a", year=2020)
    store = CorpusStore()
    store.load([first, _record("b"), _record("a", year=1999)])

    assert [r.id for r in store.all()] == ["a", "b"]
    assert store.get("a") is first
    assert "duplicate id=a" in caplog.text


def test_get_unknown_id() -> None:
    store = CorpusStore()
    store.load([_record("a")])
    assert store.get("zzz") is None


def test_corpus_stats() -> None:
    records = [
        _record("a", year=2016, keywords=("IoT", "MQTT")),
        _record("b", year=2023, keywords=("iot ", "SDN")),
        _record("c"),
    ]

    stats = corpus_stats(records)

    assert stats.article_count == 3
    assert stats.year_span == 7
    assert stats.unique_keywords == 3


def test_corpus_stats_without_years() -> None:
    assert corpus_stats([_record("a")]).year_span == 0


def test_top_keywords_by_frequency_then_first_seen() -> None:
    records = [
        _record("a", keywords=("SDN", "IoT")),
        _record("b", keywords=("iot", "QoS")),
        _record("c", keywords=("qos", "5G")),
    ]

    assert top_keywords(records) == [("iot", 2), ("qos", 2), ("sdn", 1), ("5g", 1)]
    assert top_keywords(records, limit=1) == [("iot", 2)]
    assert search_suggestions(records, limit=3) == ["iot", "qos", "sdn"]


def test_topic_keywords_skip_short_terms() -> None:
    records = [_record("a", keywords=("5G", "IoT", "AI")), _record("b", keywords=(" ai", "mqtt"))]
    assert topic_keywords(records) == [("iot", 1), ("mqtt", 1)]
