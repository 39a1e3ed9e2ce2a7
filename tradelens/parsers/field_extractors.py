"""
Field extractors for exchange trade-history text.

One ordered rule table per field, shared by the screenshot (OCR) and the
CSV import paths. A rule is a keyword plus a value pattern: the extractor
finds the first case-insensitive occurrence of the keyword and searches the
text that follows it. Rules without a keyword scan the whole text and act
as fallbacks. The first rule that yields a value wins.

Rule order (highest priority first) for each field:
- symbol:         <TICKER>USDT, optional perpetual qualifier (永续 / Perpetual)
- side:           long keywords, then short keywords, default long
- open/close time: keyword, then OCR date formats, then a date-shaped regex
- open/close price: keyword, then "<number> USDT" or a 2-8 fraction-digit decimal
- leverage:       杠杆 / Leverage keyword, then a bare "<int>x"
- position size:  keyword-scoped quantity
- profit amount:  keyword-scoped signed amount, then a signed "<number> USDT"
- profit rate:    keyword-scoped percentage, then any "±<number>%" (stored /100)

All extractors are pure functions of their input text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterator, Optional, Sequence

from ..models import SIDE_LONG, SIDE_SHORT, RawTradeFields
from .dates import parse_datetime_after_keyword
from .text_normalizer import NormalizedText, normalize_text

QUOTE_CURRENCY = "USDT"


@dataclass(frozen=True)
class FieldRule:
    """``keyword=None`` scans the full text instead of the text after a keyword."""

    keyword: Optional[str]
    pattern: re.Pattern


# ---------------------------------------------------------------------------
# Pattern building blocks (compiled once)
# ---------------------------------------------------------------------------

# 1,234.56 or 1234.56 or 1234
_NUMBER = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?"
_SIGNED_NUMBER = rf"[+-]?(?:{_NUMBER})"

# Value must immediately follow the keyword, after an optional colon
_LEAD = r"\A\s*[:：]?\s*"

SYMBOL_RE = re.compile(
    rf"(?<![A-Z0-9])([A-Z0-9]*[A-Z][A-Z0-9]*{QUOTE_CURRENCY})(?![A-Z0-9])"
    r"(?:\s*(?:永续|Perpetual))?",
    re.IGNORECASE,
)

_PRICE_VALUE_RE = re.compile(
    rf"({_NUMBER})\s*{QUOTE_CURRENCY}"
    r"|(\d[\d,]*\.\d{2,8})(?!\d)"
)

_QUANTITY_VALUE_RE = re.compile(rf"{_LEAD}({_NUMBER})")
_AMOUNT_VALUE_RE = re.compile(rf"{_LEAD}({_SIGNED_NUMBER})\s*(?:{QUOTE_CURRENCY})?")
_RATE_VALUE_RE = re.compile(rf"{_LEAD}({_SIGNED_NUMBER})\s*%")
_LEVERAGE_VALUE_RE = re.compile(rf"{_LEAD}(\d{{1,3}})(?!\d)\s*[xX]?")

# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

SYMBOL_RULES: list[FieldRule] = [
    FieldRule(None, SYMBOL_RE),
]

LONG_KEYWORDS: list[str] = ["做多", "开多", "long"]
SHORT_KEYWORDS: list[str] = ["做空", "开空", "short"]

OPEN_TIME_KEYWORDS: list[str] = ["开仓时间", "Open Time", "Opening Time", "开仓"]
CLOSE_TIME_KEYWORDS: list[str] = ["平仓时间", "Close Time", "Closing Time", "Average Close", "平仓"]

OPEN_PRICE_RULES: list[FieldRule] = [
    FieldRule(kw, _PRICE_VALUE_RE)
    for kw in ["开仓价格", "开仓均价", "Open Price", "Entry Price", "Avg Entry Price", "开仓"]
]

CLOSE_PRICE_RULES: list[FieldRule] = [
    FieldRule(kw, _PRICE_VALUE_RE)
    for kw in [
        "平仓价格", "平仓均价", "Average Close Price", "Close Price",
        "Exit Price", "Avg Close Price", "平仓",
    ]
]

LEVERAGE_RULES: list[FieldRule] = [
    FieldRule("杠杆", _LEVERAGE_VALUE_RE),
    FieldRule("Leverage", _LEVERAGE_VALUE_RE),
    FieldRule(None, re.compile(r"(?<![\d.])(\d{1,3})\s?[xX](?![A-Za-z0-9])")),
]

POSITION_SIZE_RULES: list[FieldRule] = [
    FieldRule(kw, _QUANTITY_VALUE_RE)
    for kw in [
        "仓位大小", "仓位", "Position Size", "Position", "Closed Quantity",
        "Closed Vol", "最大持仓", "平仓数量", "Quantity", "Size",
    ]
]

PROFIT_AMOUNT_RULES: list[FieldRule] = [
    *(
        FieldRule(kw, _AMOUNT_VALUE_RE)
        for kw in ["盈亏金额", "已实现盈亏", "盈亏", "Profit/Loss", "Realized PNL", "Closing PNL", "PNL"]
    ),
    FieldRule(None, re.compile(rf"([+-](?:{_NUMBER}))\s*{QUOTE_CURRENCY}")),
]

PROFIT_RATE_RULES: list[FieldRule] = [
    *(
        FieldRule(kw, _RATE_VALUE_RE)
        for kw in ["盈亏率", "收益率", "回报率", "Return Rate", "ROI", "ROE"]
    ),
    FieldRule(None, re.compile(rf"({_SIGNED_NUMBER})\s*%")),
]


# ---------------------------------------------------------------------------
# Rule engine
# ---------------------------------------------------------------------------


def _text_after(text: str, keyword: str) -> Optional[str]:
    m = re.search(re.escape(keyword), text, re.IGNORECASE)
    if m is None:
        return None
    return text[m.end():]


def _first_group(m: re.Match) -> str:
    return next(g for g in m.groups() if g is not None)


def apply_rules(text: str, rules: Sequence[FieldRule]) -> Optional[str]:
    """Return the raw value captured by the first satisfied rule, or None."""
    for rule in rules:
        if rule.keyword is None:
            scope = text
        else:
            scope = _text_after(text, rule.keyword)
            if scope is None:
                continue
        m = rule.pattern.search(scope)
        if m:
            return _first_group(m)
    return None


def parse_number(value: Optional[str]) -> Optional[float]:
    """Parse '1,234.56', '+12.5', '-3 USDT' or '$12' into a float."""
    if value is None:
        return None
    cleaned = value.strip().replace(",", "").replace("$", "")
    cleaned = re.sub(rf"\s*{QUOTE_CURRENCY}\s*$", "", cleaned, flags=re.IGNORECASE)
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Individual extractors
# ---------------------------------------------------------------------------


def clean_symbol(raw: str) -> str:
    """Uppercase and strip the perpetual qualifier and separators."""
    cleaned = raw.replace("永续", "")
    cleaned = re.sub(r"perpetual", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"[\s/_-]", "", cleaned)
    return cleaned.upper()


def iter_symbol_matches(text: str) -> Iterator[re.Match]:
    """Non-overlapping symbol occurrences in ``text``, in order."""
    return SYMBOL_RE.finditer(text)


def extract_symbol(text: str) -> Optional[str]:
    raw = apply_rules(text, SYMBOL_RULES)
    return clean_symbol(raw) if raw else None


def find_side(
    text: str,
    long_keywords: Sequence[str] = LONG_KEYWORDS,
    short_keywords: Sequence[str] = SHORT_KEYWORDS,
) -> Optional[str]:
    """Side named by a keyword in ``text``; long keywords are checked first."""
    lowered = text.lower()
    if any(kw.lower() in lowered for kw in long_keywords):
        return SIDE_LONG
    if any(kw.lower() in lowered for kw in short_keywords):
        return SIDE_SHORT
    return None


def extract_side(text: str) -> str:
    return find_side(text) or SIDE_LONG


def extract_datetime(text: str, keywords: Sequence[str]) -> Optional[datetime]:
    for keyword in keywords:
        tail = _text_after(text, keyword)
        if tail is None:
            continue
        parsed = parse_datetime_after_keyword(tail)
        if parsed is not None:
            return parsed
    return None


def extract_open_time(text: str) -> Optional[datetime]:
    return extract_datetime(text, OPEN_TIME_KEYWORDS)


def extract_close_time(text: str) -> Optional[datetime]:
    return extract_datetime(text, CLOSE_TIME_KEYWORDS)


def _positive(value: Optional[float]) -> Optional[float]:
    return value if value is not None and value > 0 else None


def extract_open_price(text: str) -> Optional[float]:
    return _positive(parse_number(apply_rules(text, OPEN_PRICE_RULES)))


def extract_close_price(text: str) -> Optional[float]:
    return _positive(parse_number(apply_rules(text, CLOSE_PRICE_RULES)))


def extract_leverage(text: str) -> Optional[int]:
    raw = apply_rules(text, LEVERAGE_RULES)
    if raw is None:
        return None
    value = int(raw)
    return value if value > 0 else None


def extract_position_size(text: str) -> Optional[float]:
    value = parse_number(apply_rules(text, POSITION_SIZE_RULES))
    return value if value is not None and value >= 0 else None


def extract_profit_amount(text: str) -> Optional[float]:
    return parse_number(apply_rules(text, PROFIT_AMOUNT_RULES))


def extract_profit_rate(text: str) -> Optional[float]:
    value = parse_number(apply_rules(text, PROFIT_RATE_RULES))
    return value / 100.0 if value is not None else None


# ---------------------------------------------------------------------------
# Whole-record extraction
# ---------------------------------------------------------------------------


def extract_trade_fields(
    text: str,
    defaults: Optional[RawTradeFields] = None,
) -> RawTradeFields:
    """Run every extractor over ``text`` (already joined to one line).

    Values not found keep whatever ``defaults`` holds, e.g. a symbol the
    segmenter already anchored a span on.
    """
    fields = replace(defaults) if defaults is not None else RawTradeFields()

    symbol = extract_symbol(text)
    if symbol:
        fields.symbol = symbol
    side = find_side(text)
    if side is not None:
        fields.side = side

    open_time = extract_open_time(text)
    if open_time is not None:
        fields.open_time = open_time
    close_time = extract_close_time(text)
    if close_time is not None:
        fields.close_time = close_time

    open_price = extract_open_price(text)
    if open_price is not None:
        fields.open_price = open_price
    close_price = extract_close_price(text)
    if close_price is not None:
        fields.close_price = close_price

    leverage = extract_leverage(text)
    if leverage is not None:
        fields.leverage = leverage
    position_size = extract_position_size(text)
    if position_size is not None:
        fields.position_size = position_size
    profit_amount = extract_profit_amount(text)
    if profit_amount is not None:
        fields.profit_amount = profit_amount
    profit_rate = extract_profit_rate(text)
    if profit_rate is not None:
        fields.profit_rate = profit_rate

    return fields


def has_required_fields(fields: RawTradeFields) -> bool:
    """Minimum acceptance: symbol present and both prices strictly positive."""
    return bool(fields.symbol) and fields.open_price > 0 and fields.close_price > 0


def extract_from_text(raw: str | NormalizedText) -> RawTradeFields:
    """Single-record extraction over a whole OCR blob."""
    normalized = raw if isinstance(raw, NormalizedText) else normalize_text(raw)
    return extract_trade_fields(normalized.joined)
