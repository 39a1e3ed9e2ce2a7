"""
Date/time parsing shared by the OCR and CSV import paths.

Two ordered format tables:
- OCR_DATETIME_FORMATS: what exchange trade-detail screens display
- CSV_DATETIME_FORMATS: exchange exports, fractional-second variants first

Each entry pairs a strptime format with the width of the text it consumes,
so a format can be tried against the head of a longer string.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional, Sequence

from ..errors import DateParseFailure

logger = logging.getLogger(__name__)

OCR_DATETIME_FORMATS: list[tuple[str, int]] = [
    ("%Y/%m/%d %H:%M:%S", 19),
    ("%Y-%m-%d %H:%M:%S", 19),
    ("%m/%d/%Y %H:%M:%S", 19),
    ("%m-%d-%Y %H:%M:%S", 19),
    ("%Y/%m/%d %H:%M", 16),
    ("%Y-%m-%d %H:%M", 16),
    ("%Y/%m/%d", 10),
    ("%Y-%m-%d", 10),
]

CSV_DATETIME_FORMATS: list[str] = [
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y/%m/%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%m/%d/%Y %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%m-%d-%Y %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
]

# Loose date shape used when no format matches the head of the text
_DATE_SHAPE_RE = re.compile(
    r"\d{4}[-/]\d{1,2}[-/]\d{1,2}(?:[ T]\d{1,2}:\d{2}(?::\d{2})?)?"
)

_EPOCH_RE = re.compile(r"^\d{10}(?:\d{3})?$")


def _to_naive_utc(dt: datetime) -> datetime:
    """Aware values are converted to naive UTC so all timestamps compare."""
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _try_formats(text: str, formats: Sequence[str]) -> Optional[datetime]:
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_datetime_after_keyword(tail: str) -> Optional[datetime]:
    """Parse the timestamp at the start of ``tail`` (text following a keyword).

    Tries each OCR format against the head of the text, then searches for a
    generic date shape anywhere in ``tail``.
    """
    head = tail.lstrip(" :")
    for fmt, width in OCR_DATETIME_FORMATS:
        try:
            return datetime.strptime(head[:width], fmt)
        except ValueError:
            continue

    m = _DATE_SHAPE_RE.search(tail)
    if m:
        candidate = m.group(0).replace("T", " ")
        parsed = _try_formats(candidate, [fmt for fmt, _ in OCR_DATETIME_FORMATS])
        if parsed is not None:
            return parsed
    return None


def parse_datetime(text: str) -> datetime:
    """Parse a CSV timestamp cell.

    Order: the CSV format table, Unix epoch seconds/milliseconds, then
    ISO-8601 via ``datetime.fromisoformat``. Raises ``DateParseFailure``.
    """
    cleaned = text.strip()
    if not cleaned:
        raise DateParseFailure(text)

    parsed = _try_formats(cleaned, CSV_DATETIME_FORMATS)
    if parsed is not None:
        return parsed

    if _EPOCH_RE.match(cleaned):
        seconds = int(cleaned) / (1000 if len(cleaned) == 13 else 1)
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)

    try:
        return _to_naive_utc(datetime.fromisoformat(cleaned.replace("Z", "+00:00")))
    except ValueError:
        raise DateParseFailure(text) from None


def try_parse_datetime(text: str) -> Optional[datetime]:
    """``parse_datetime`` that returns None instead of raising."""
    try:
        return parse_datetime(text)
    except DateParseFailure:
        logger.debug("Unparseable date %r left unset", text)
        return None
