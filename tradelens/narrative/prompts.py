"""Prompt builders for trade summaries and single-trade review drafts.

Trade data is embedded as JSON so the model sees exact numbers; timestamps
are ISO-8601.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from ..models import PerformanceSummary, TradeRecord

# ── Recent summary ──────────────────────────────────────────────────────────

RECENT_SUMMARY_INSTRUCTIONS = """\
You are a professional crypto futures trading coach and analyst. Using the JSON
data below (recent trade records plus a performance summary), write a structured,
in-depth analysis report in Markdown with exactly these 5 sections:

### 1. Overall performance
- Total trades, wins, losses, breakeven trades
- Win rate and total profit (USDT), average profit per trade
- A short verdict on overall performance

### 2. Best and worst trade types
- By symbol: which pairs did best and worst
- By side: long vs short win rate and profit
- By leverage band: how performance differs across leverage levels

### 3. Timing patterns
- Performance by hour, day and weekday where the data allows
- When the trader does better or worse, and how trading frequency clusters

### 4. Improvement suggestions (most important)
At least 5 specific, actionable suggestions. For each one give the problem,
its impact on results, and the concrete change to make. Reference real numbers
from the data (e.g. "your average win/loss ratio is 0.8, widen take-profit").

### 5. Risk notes
Drawdown, leverage use and position sizing observations.

Rules:
- Never invent trades or numbers that are not in the data
- Be direct and concise; no generic trading advice
"""

SINGLE_TRADE_INSTRUCTIONS = """\
You are a crypto futures trading coach. Draft a short review of the single trade
below, written to the trader in second person, in Markdown:

1. What happened (entry, exit, direction, leverage, result)
2. What went well
3. What could be improved
4. One concrete rule to apply next time

Keep it under 200 words. Use only the numbers in the data.
"""


def _trade_payload(record: TradeRecord) -> dict[str, Any]:
    return {
        "symbol": record.symbol,
        "side": record.side,
        "openTime": record.open_time.isoformat() if record.open_time else "",
        "closeTime": record.close_time.isoformat() if record.close_time else "",
        "openPrice": record.open_price,
        "closePrice": record.close_price,
        "leverage": record.leverage,
        "positionSize": record.position_size,
        "profitAmount": round(record.profit_amount, 8),
        "profitRate": round(record.profit_rate, 8),
        "status": record.status,
    }


def _summary_payload(summary: PerformanceSummary) -> dict[str, Any]:
    return {
        "initialEquity": summary.initial_equity,
        "currentEquity": round(summary.current_equity, 2),
        "totalProfit": round(summary.total_profit, 2),
        "totalTrades": summary.total_trades,
        "winRate": round(summary.win_rate, 4),
        "avgWin": round(summary.avg_win, 2),
        "avgLoss": round(summary.avg_loss, 2),
        "profitLossRatio": round(summary.profit_loss_ratio, 4),
        "maxDrawdown": round(summary.max_drawdown, 4),
    }


def build_recent_summary_prompt(
    records: Sequence[TradeRecord],
    summary: Optional[PerformanceSummary] = None,
) -> str:
    """Analysis prompt for a batch of recent trades."""
    payload: dict[str, Any] = {"trades": [_trade_payload(r) for r in records]}
    if summary is not None:
        payload["summary"] = _summary_payload(summary)
    data = json.dumps(payload, ensure_ascii=False, indent=2)
    return f"{RECENT_SUMMARY_INSTRUCTIONS}\n## DATA\n```json\n{data}\n```\n"


def build_single_trade_prompt(record: TradeRecord) -> str:
    data = json.dumps(_trade_payload(record), ensure_ascii=False, indent=2)
    return f"{SINGLE_TRADE_INSTRUCTIONS}\n## TRADE\n```json\n{data}\n```\n"
