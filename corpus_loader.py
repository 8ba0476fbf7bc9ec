"""Corpus ingestion from the prepared articles data file."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from errors import CorpusFormatError
from models import Record

CORPUS_PATH = os.getenv("CORPUS_PATH", "data/articles.json")

LOGGER = logging.getLogger(__name__)


def load_articles(path: str | Path | None = None) -> list[Record]:
    """Read the articles JSON file and normalize it into Records.

    Args:
        path: Location of the data file. Defaults to CORPUS_PATH.
    """
    path = Path(path or CORPUS_PATH)
    with path.open(encoding="utf-8") as fh:
        try:
            payload = json.load(fh)
        except json.JSONDecodeError as exc:
            raise CorpusFormatError(f"Articles file {path} is not valid JSON: {exc}") from exc

    records = parse_articles_payload(payload)
    LOGGER.info("Corpus file: path=%s records=%s", path, len(records))
    return records


def parse_articles_payload(payload: Any) -> list[Record]:
    """Parse a ``{"articles": [...]}`` payload (or a bare list) into Records.

    Items without a non-empty string ``id`` or a string ``title`` are skipped.
    Malformed optional fields degrade to empty/None instead of failing.
    """
    if isinstance(payload, dict):
        payload = payload.get("articles")
    if not isinstance(payload, list):
        raise CorpusFormatError("Unexpected articles payload shape: expected a list of articles")

    parsed: list[Record] = []
    skipped = 0
    for item in payload:
        if not isinstance(item, dict):
            skipped += 1
            continue

        record_id = _as_str(item.get("id"))
        title = item.get("title")
        if not record_id or not isinstance(title, str):
            skipped += 1
            LOGGER.warning("Corpus parse: skipping item without id/title: id=%r", item.get("id"))
            continue

        parsed.append(
            Record(
                id=record_id,
                title=title,
                authors=_as_str_tuple(item.get("authors")),
                abstract=item.get("abstract") if isinstance(item.get("abstract"), str) else None,
                keywords=_as_str_tuple(item.get("keywords")),
                year=_as_int(item.get("year")),
                volume=_as_int(item.get("volume")),
                issue=_as_int(item.get("issue")),
                pdf_url=_as_str(item.get("pdfUrl")),
                article_url=_as_str(item.get("articleUrl")),
            )
        )

    if skipped:
        LOGGER.info("Corpus parse: parsed=%s skipped=%s", len(parsed), skipped)
    return parsed


def _as_str(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def _as_str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(v for v in value if isinstance(v, str) and v.strip())


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
