"""Canonicalize raw recognized text for keyword search and segmentation."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizedText:
    """Two views of the same OCR blob.

    ``joined`` is a single whitespace-collapsed line used by the field
    extractors; ``lines`` keeps the non-empty lines in order for the
    line-based segmentation strategies.
    """

    joined: str
    lines: tuple[str, ...]

    @property
    def line_count(self) -> int:
        return len(self.lines)


def normalize_line(line: str) -> str:
    # NFKC folds full-width digits and colons from CJK exchange UIs to ASCII.
    folded = unicodedata.normalize("NFKC", line)
    return _WHITESPACE_RE.sub(" ", folded).strip()


def normalize_text(raw: str) -> NormalizedText:
    if not raw:
        return NormalizedText(joined="", lines=())
    lines = tuple(
        cleaned
        for cleaned in (normalize_line(line) for line in raw.splitlines())
        if cleaned
    )
    return NormalizedText(joined=" ".join(lines), lines=lines)
