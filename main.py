"""CLI entrypoint: search the article catalog from the terminal."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

from corpus import CorpusStore, corpus_stats, search_suggestions
from corpus_loader import load_articles
from csv_sink import RESULTS_CSV_PATH, write_results
from errors import CorpusFormatError, EmptyCorpus, FilterError
from filters import FilterSet
from highlighter import field_text, render_ansi
from matcher import Matcher, build_strategy
from models import MatchResult, Span, span_key
from pipeline import QueryPipeline


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Search the article catalog by text, volume, issue and year")
    parser.add_argument(
        "--data",
        default=os.getenv("CORPUS_PATH", "data/articles.json"),
        help="Path to the articles JSON file (default: CORPUS_PATH or data/articles.json)",
    )
    parser.add_argument("--query", "-q", default="", help="Free-text query; empty lists every article")
    parser.add_argument("--volume", type=int, default=None, help="Only articles from this volume")
    parser.add_argument("--issue", type=int, default=None, help="Only articles from this issue number")
    parser.add_argument("--year", type=int, default=None, help="Only articles published this year")
    parser.add_argument(
        "--strategy",
        choices=["substring", "fuzzy"],
        default=os.getenv("SEARCH_STRATEGY", "substring"),
        help="Matching strategy. 'substring' (default) is exact case-insensitive containment; "
        "'fuzzy' also tolerates small typos in single-word queries.",
    )
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of results to print")
    parser.add_argument(
        "--csv",
        nargs="?",
        const=RESULTS_CSV_PATH,
        default=None,
        help=f"Also export the results to CSV (default path: {RESULTS_CSV_PATH})",
    )
    parser.add_argument("--stats", action="store_true", help="Print catalog statistics")
    parser.add_argument("--suggest", action="store_true", help="Print suggested search keywords")
    parser.add_argument("--no-color", action="store_true", help="Disable terminal highlighting")
    return parser.parse_args(argv)


def filter_keys_from_env() -> list[str]:
    raw = os.getenv("SEARCH_FILTER_KEYS", "volume,issue,year")
    return [key.strip() for key in raw.split(",") if key.strip()]


def build_pipeline(store: CorpusStore, strategy_name: str, filter_keys: list[str]) -> QueryPipeline:
    matcher = Matcher(store, strategy=build_strategy(strategy_name))
    return QueryPipeline(store, matcher=matcher, filters=FilterSet(filter_keys))


def format_result(rank: int, result: MatchResult, color: bool = True) -> str:
    """Render one result as a few terminal lines, highlighting matched text."""
    record = result.record

    def show(key: str) -> str:
        text = field_text(record, key)
        spans: tuple[Span, ...] = tuple(result.matched_spans.get(key, ()))
        return render_ansi(text, spans) if color else text

    authors = ", ".join(show(span_key("authors", i)) for i in range(len(record.authors))) or "Unknown"
    meta = []
    if record.year:
        meta.append(str(record.year))
    if record.volume:
        meta.append(f"Vol. {record.volume}" + (f", No. {record.issue}" if record.issue else ""))

    lines = [f"[{rank}] {show('title')}  (score {result.score:.2f})", f"    {authors}"]
    if meta:
        lines.append("    " + " · ".join(meta))
    if record.keywords:
        lines.append("    Keywords: " + ", ".join(show(span_key("keywords", i)) for i in range(len(record.keywords))))
    if record.pdf_url:
        lines.append(f"    PDF: {record.pdf_url}")
    return "\n".join(lines)


def run(args: argparse.Namespace) -> int:
    """Load the corpus, run one search and print it. Returns the exit code."""
    try:
        records = load_articles(args.data)
    except (OSError, CorpusFormatError) as exc:
        logging.error("Could not read articles from %s: %s", args.data, exc)
        return 1

    store = CorpusStore()
    try:
        store.load(records)
    except EmptyCorpus:
        logging.error("No data: %s contains no articles", args.data)
        return 1

    if args.stats:
        stats = corpus_stats(store.all())
        print(f"Articles: {stats.article_count} | Years: {stats.year_span}+ | Topics: {stats.unique_keywords}")
    if args.suggest:
        print("Suggestions: " + ", ".join(search_suggestions(store.all())))

    try:
        pipeline = build_pipeline(store, args.strategy, filter_keys_from_env())
        for key in ("volume", "issue", "year"):
            value = getattr(args, key)
            if value is not None:
                pipeline.filters.set_filter(key, value)
    except FilterError as exc:
        logging.error("Invalid filter: %s", exc)
        return 2

    result_set = pipeline.set_query(args.query, immediate=True)
    logging.info(
        "Search complete: query=%r filters=%s results=%s of %s",
        result_set.query,
        {k: v for k, v in result_set.filters.items() if v is not None},
        len(result_set),
        len(store),
    )

    if not len(result_set):
        print("No articles match your search.")
    shown = result_set.results if args.limit is None else result_set.results[: args.limit]
    for rank, result in enumerate(shown, start=1):
        print(format_result(rank, result, color=not args.no_color and sys.stdout.isatty()))

    if args.csv:
        write_results(result_set, args.csv)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Initialize config and execute one search."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)
    raise SystemExit(run(args))


if __name__ == "__main__":
    main()
