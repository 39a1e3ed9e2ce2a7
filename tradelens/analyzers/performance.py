"""
Performance analytics over a batch of validated trade records.

Computes, from one record set and an initial equity:
1. Equity curve: baseline point, then cumulative equity after each trade
   ordered by close time (records without a close time are left off the curve)
2. Max drawdown: largest (peak - equity) / peak over the curve
3. Win rate, average win, average loss (magnitude), profit/loss ratio
4. Total profit and current equity

Every statistic is derived from the same record list; current equity is
initial equity plus total profit.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

import numpy as np
import pandas as pd

from ..models import (
    STATUS_LOSS,
    STATUS_WIN,
    EquityPoint,
    PerformanceSummary,
    TradeRecord,
)

logger = logging.getLogger(__name__)

TRADE_COLUMNS = [
    "symbol", "side", "open_time", "close_time", "open_price", "close_price",
    "leverage", "position_size", "profit_amount", "profit_rate", "status", "source",
]


def trades_to_frame(records: Iterable[TradeRecord]) -> pd.DataFrame:
    """One row per record, with the derived ``status`` column."""
    rows: list[dict[str, Any]] = []
    for r in records:
        rows.append({
            "symbol": r.symbol,
            "side": r.side,
            "open_time": r.open_time,
            "close_time": r.close_time,
            "open_price": r.open_price,
            "close_price": r.close_price,
            "leverage": r.leverage,
            "position_size": r.position_size,
            "profit_amount": r.profit_amount,
            "profit_rate": r.profit_rate,
            "status": r.status,
            "source": r.source,
        })
    return pd.DataFrame(rows, columns=TRADE_COLUMNS)


# ---------------------------------------------------------------------------
# Equity curve + drawdown
# ---------------------------------------------------------------------------


def build_equity_curve(
    records: Sequence[TradeRecord], initial_equity: float
) -> list[EquityPoint]:
    """Baseline point plus one point per trade with a close time, oldest first.

    The baseline sits at the first trade's open time when that is known,
    otherwise at its close time. Ties in close time keep input order.
    """
    timed = [r for r in records if r.close_time is not None]
    if not timed:
        return []

    df = trades_to_frame(timed)
    df = df.sort_values("close_time", kind="mergesort").reset_index(drop=True)
    equity = initial_equity + df["profit_amount"].cumsum()

    first = df.iloc[0]
    baseline_ts = first["close_time"]
    if pd.notna(first["open_time"]) and first["open_time"] <= baseline_ts:
        baseline_ts = first["open_time"]

    points = [EquityPoint(timestamp=pd.Timestamp(baseline_ts).to_pydatetime(), equity=float(initial_equity))]
    for ts, value in zip(df["close_time"], equity):
        points.append(EquityPoint(timestamp=pd.Timestamp(ts).to_pydatetime(), equity=float(value)))
    return points


def max_drawdown(equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a fraction of the running peak.

    Single forward pass; points where the running peak is not positive are
    ignored. Returns 0.0 for an empty or never-declining sequence.
    """
    if len(equity) == 0:
        return 0.0
    values = pd.Series(equity, dtype=float)
    peaks = values.cummax()
    valid = peaks > 0
    if not valid.any():
        return 0.0
    drawdowns = (peaks[valid] - values[valid]) / peaks[valid]
    return max(float(drawdowns.max()), 0.0)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def compute_performance(
    records: Sequence[TradeRecord], initial_equity: float
) -> PerformanceSummary:
    """Aggregate statistics for ``records``; pure and deterministic."""
    if not records:
        return PerformanceSummary(
            initial_equity=initial_equity,
            current_equity=initial_equity,
        )

    profits = np.array([r.profit_amount for r in records], dtype=float)
    statuses = np.array([r.status for r in records])
    wins = profits[statuses == STATUS_WIN]
    losses = profits[statuses == STATUS_LOSS]

    total_profit = float(profits.sum())
    avg_win = float(wins.mean()) if wins.size else 0.0
    avg_loss = float(abs(losses.mean())) if losses.size else 0.0
    profit_loss_ratio = avg_win / avg_loss if avg_loss > 0 else 0.0

    curve = build_equity_curve(records, initial_equity)
    drawdown = max_drawdown([p.equity for p in curve])

    excluded = len(records) - (len(curve) - 1 if curve else 0)
    if excluded:
        logger.debug("%d trade(s) without close time left off the equity curve", excluded)

    return PerformanceSummary(
        initial_equity=initial_equity,
        total_profit=total_profit,
        win_rate=len(wins) / len(records),
        profit_loss_ratio=profit_loss_ratio,
        max_drawdown=drawdown,
        avg_win=avg_win,
        avg_loss=avg_loss,
        total_trades=len(records),
        current_equity=initial_equity + total_profit,
        equity_curve=tuple(curve),
    )
