"""Trade-log filtering, sorting and recent-window selection."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from ..models import TradeRecord

SORT_TIME = "time"
SORT_PROFIT = "profit"
SORT_SYMBOL = "symbol"
SORT_OPTIONS = (SORT_TIME, SORT_PROFIT, SORT_SYMBOL)


def filter_trades(
    records: Iterable[TradeRecord],
    symbol: Optional[str] = None,
    status: Optional[str] = None,
) -> list[TradeRecord]:
    """Case-insensitive symbol substring filter plus exact status filter."""
    result = list(records)
    if symbol:
        needle = symbol.strip().lower()
        result = [r for r in result if needle in r.symbol.lower()]
    if status:
        result = [r for r in result if r.status == status]
    return result


def sort_trades(records: Iterable[TradeRecord], by: str = SORT_TIME) -> list[TradeRecord]:
    """time: newest close first (no close time last); profit: largest first;
    symbol: alphabetical."""
    result = list(records)
    if by == SORT_TIME:
        result.sort(key=lambda r: r.close_time or datetime.min, reverse=True)
    elif by == SORT_PROFIT:
        result.sort(key=lambda r: r.profit_amount, reverse=True)
    elif by == SORT_SYMBOL:
        result.sort(key=lambda r: r.symbol)
    else:
        raise ValueError(f"Unknown sort option {by!r}; expected one of {SORT_OPTIONS}")
    return result


def recent_trades(
    records: Iterable[TradeRecord],
    days: int = 7,
    now: Optional[datetime] = None,
) -> list[TradeRecord]:
    """Trades closed within the last ``days`` days, newest first."""
    cutoff = (now or datetime.now()) - timedelta(days=days)
    recent = [r for r in records if r.close_time is not None and r.close_time >= cutoff]
    return sort_trades(recent, SORT_TIME)
