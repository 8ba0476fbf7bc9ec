"""CSV export of a search result set."""

from __future__ import annotations

import csv
import logging
import os
from pathlib import Path
from typing import Any

from models import ResultSet

RESULTS_CSV_PATH = os.getenv("RESULTS_CSV_PATH", "search_results.csv")

LOGGER = logging.getLogger(__name__)

CSV_COLUMNS = [
    "rank",
    "id",
    "title",
    "authors",          # "; "-joined, in record order
    "year",
    "volume",
    "issue",
    "score",
    "matched_fields",   # base field names, e.g. "abstract;title"
    "pdf_url",
    "article_url",
]


def write_results(result_set: ResultSet, csv_path: str | Path | None = None) -> Path:
    """Write one row per result (overwriting the file) and return the path written."""
    path = Path(csv_path or RESULTS_CSV_PATH)

    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for rank, result in enumerate(result_set, start=1):
            record = result.record
            writer.writerow({
                "rank": rank,
                "id": record.id,
                "title": record.title,
                "authors": "; ".join(record.authors),
                "year": _as_cell(record.year),
                "volume": _as_cell(record.volume),
                "issue": _as_cell(record.issue),
                "score": f"{result.score:.2f}",
                "matched_fields": ";".join(sorted(result.matched_fields)),
                "pdf_url": _as_cell(record.pdf_url),
                "article_url": _as_cell(record.article_url),
            })

    LOGGER.info("Wrote %s result rows for query=%r to %s", len(result_set), result_set.query, path)
    return path


def _as_cell(value: Any) -> Any:
    return "" if value is None else value
