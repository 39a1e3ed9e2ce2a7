"""
Multi-trade segmentation of one OCR blob.

A multi-row trade-history screenshot yields one blob describing several
trades. Strategies are tried in order, cheapest and most specific first:

1. symbol_anchored - cut the joined text at every symbol occurrence
2. line_grouping   - start a new line group at every line holding a symbol
3. fixed_chunks    - partition the lines into equal chunks (last resort)

Each strategy proposes spans; every span goes through the field extractors
and the trade normalizer. The first strategy with more than one valid
record wins. Otherwise the result is ``NoSplit`` and the caller falls back
to single-record extraction over the whole blob.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence, Union

from ..analyzers.trade_normalizer import normalize_trade
from ..config import SegmenterConfig
from ..models import DEFAULT_LEVERAGE, SOURCE_OCR, RawTradeFields, TradeRecord
from .field_extractors import SYMBOL_RE, clean_symbol, extract_trade_fields, iter_symbol_matches
from .text_normalizer import NormalizedText, normalize_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Span:
    """Candidate text for one trade, with a symbol the strategy anchored on."""

    text: str
    symbol: str = ""


@dataclass(frozen=True)
class NoSplit:
    pass


@dataclass(frozen=True)
class Split:
    strategy: str
    records: tuple[TradeRecord, ...]


SegmentationResult = Union[NoSplit, Split]

Strategy = Callable[[NormalizedText, SegmenterConfig], list[Span]]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def symbol_anchored_spans(text: NormalizedText, config: SegmenterConfig) -> list[Span]:
    """Span i runs from symbol match i to the start of match i+1 (or the end)."""
    matches = list(iter_symbol_matches(text.joined))
    spans: list[Span] = []
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text.joined)
        spans.append(Span(text=text.joined[m.start():end], symbol=clean_symbol(m.group(1))))
    return spans


def line_group_spans(text: NormalizedText, config: SegmenterConfig) -> list[Span]:
    """A line holding a symbol opens a group; following lines join it.

    Lines before the first symbol line belong to no trade and are dropped.
    """
    groups: list[tuple[str, list[str]]] = []
    for line in text.lines:
        m = SYMBOL_RE.search(line)
        if m:
            groups.append((clean_symbol(m.group(1)), [line]))
        elif groups:
            groups[-1][1].append(line)
    return [Span(text=" ".join(lines), symbol=symbol) for symbol, lines in groups]


def fixed_chunk_spans(text: NormalizedText, config: SegmenterConfig) -> list[Span]:
    line_count = text.line_count
    if line_count < config.chunk_min_lines:
        return []
    size = config.lines_per_chunk(line_count)
    return [
        Span(text=" ".join(text.lines[start:start + size]))
        for start in range(0, line_count, size)
    ]


STRATEGIES: list[tuple[str, Strategy]] = [
    ("symbol_anchored", symbol_anchored_spans),
    ("line_grouping", line_group_spans),
    ("fixed_chunks", fixed_chunk_spans),
]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def records_from_spans(
    spans: Sequence[Span],
    *,
    now: Optional[datetime] = None,
    default_leverage: int = DEFAULT_LEVERAGE,
) -> list[TradeRecord]:
    """Extract and validate one record per span, dropping invalid spans."""
    records: list[TradeRecord] = []
    for span in spans:
        fields = extract_trade_fields(span.text, RawTradeFields(symbol=span.symbol))
        record = normalize_trade(
            fields, SOURCE_OCR, now=now, default_leverage=default_leverage,
        )
        if record is not None:
            records.append(record)
    return records


def segment_trades(
    raw: str | NormalizedText,
    config: Optional[SegmenterConfig] = None,
    *,
    strategies: Optional[Sequence[tuple[str, Strategy]]] = None,
    now: Optional[datetime] = None,
    default_leverage: int = DEFAULT_LEVERAGE,
) -> SegmentationResult:
    """Try each strategy in order until one yields more than one valid record."""
    text = raw if isinstance(raw, NormalizedText) else normalize_text(raw)
    config = config or SegmenterConfig()

    for name, strategy in strategies or STRATEGIES:
        spans = strategy(text, config)
        if len(spans) < 2:
            logger.debug("Strategy %s proposed %d span(s); skipping", name, len(spans))
            continue
        records = records_from_spans(spans, now=now, default_leverage=default_leverage)
        logger.debug(
            "Strategy %s: %d span(s), %d valid record(s)", name, len(spans), len(records),
        )
        if len(records) > 1:
            logger.info("Split OCR text into %d trades via %s", len(records), name)
            return Split(strategy=name, records=tuple(records))

    return NoSplit()
