"""
Core value types for recovered trades and the analytics derived from them.

A ``TradeRecord`` is built once by an import path (OCR text, CSV export or
manual entry), validated, and from then on treated as an immutable value.
Its ``status`` is derived from the sign of ``profit_amount`` and never
stored separately.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Enumerated string values
# ---------------------------------------------------------------------------

SIDE_LONG = "long"
SIDE_SHORT = "short"

STATUS_WIN = "win"
STATUS_LOSS = "loss"
STATUS_BREAKEVEN = "breakeven"

SOURCE_MANUAL = "manual"
SOURCE_OCR = "ocr"
SOURCE_CSV = "csv"

DEFAULT_LEVERAGE = 10


def direction_sign(side: str) -> int:
    """+1 for long positions, -1 for short."""
    return -1 if side == SIDE_SHORT else 1


def status_for(profit_amount: float) -> str:
    if profit_amount > 0:
        return STATUS_WIN
    if profit_amount < 0:
        return STATUS_LOSS
    return STATUS_BREAKEVEN


# ---------------------------------------------------------------------------
# Extraction intermediate
# ---------------------------------------------------------------------------


@dataclass
class RawTradeFields:
    """Fields recovered from OCR text or a CSV row, before normalization.

    Prices of 0 mean "not found". ``profit_amount`` and ``profit_rate`` are
    advisory: the normalizer recomputes both from prices and size.
    """

    symbol: str = ""
    side: str = SIDE_LONG
    open_time: Optional[datetime] = None
    close_time: Optional[datetime] = None
    open_price: float = 0.0
    close_price: float = 0.0
    leverage: Optional[int] = None  # None = not recovered, normalizer applies the default
    position_size: float = 0.0
    profit_amount: Optional[float] = None
    profit_rate: Optional[float] = None  # fraction, e.g. 0.125 for 12.5%


# ---------------------------------------------------------------------------
# Validated records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TradeRecord:
    """A single closed position."""

    symbol: str
    side: str  # long | short
    open_price: float
    close_price: float
    open_time: Optional[datetime] = None
    close_time: Optional[datetime] = None
    leverage: int = DEFAULT_LEVERAGE
    position_size: float = 0.0
    profit_amount: float = 0.0
    profit_rate: float = 0.0
    source: str = SOURCE_MANUAL  # manual | ocr | csv

    @property
    def status(self) -> str:
        return status_for(self.profit_amount)

    @property
    def direction_sign(self) -> int:
        return direction_sign(self.side)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly dict with ISO-8601 timestamps and the derived status."""
        data = asdict(self)
        for key in ("open_time", "close_time"):
            value = data[key]
            data[key] = value.isoformat() if value is not None else None
        data["status"] = self.status
        return data


# ---------------------------------------------------------------------------
# Analytics output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EquityPoint:
    timestamp: datetime
    equity: float

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "equity": self.equity}


@dataclass(frozen=True)
class PerformanceSummary:
    """Aggregate statistics over one validated trade set and an initial equity."""

    initial_equity: float
    total_profit: float = 0.0
    win_rate: float = 0.0
    profit_loss_ratio: float = 0.0
    max_drawdown: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    total_trades: int = 0
    current_equity: float = 0.0
    equity_curve: tuple[EquityPoint, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "initial_equity": self.initial_equity,
            "total_profit": self.total_profit,
            "win_rate": self.win_rate,
            "profit_loss_ratio": self.profit_loss_ratio,
            "max_drawdown": self.max_drawdown,
            "avg_win": self.avg_win,
            "avg_loss": self.avg_loss,
            "total_trades": self.total_trades,
            "current_equity": self.current_equity,
            "equity_curve": [p.to_dict() for p in self.equity_curve],
        }
