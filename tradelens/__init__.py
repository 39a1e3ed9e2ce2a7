"""TradeLens core: trade extraction from OCR text and CSV exports, plus performance analytics."""

from .models import EquityPoint, PerformanceSummary, RawTradeFields, TradeRecord

__all__ = [
    "EquityPoint",
    "PerformanceSummary",
    "RawTradeFields",
    "TradeRecord",
]
