"""
Exchange CSV trade-history importer.

Exchange position-history exports have quirks:
- Header names differ per vendor and per UI language (Bybit, Binance, OKX...)
- At least one vendor misspells "Price" as "Pirce" ("Close Pirce")
- Numbers may carry a unit suffix ("100 USDT") or thousands separators
- Timestamps usually carry fractional seconds, sometimes epoch milliseconds
- Some exports put a few metadata lines above the real header row

Only symbol, entry price and close price columns are required. Rows that
fail to parse or validate are skipped and counted; the import continues.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..analyzers.trade_normalizer import normalize_trade
from ..errors import CSVMissingRequiredColumns, CSVRowInvalid, NoValidRecordExtracted
from ..models import DEFAULT_LEVERAGE, SIDE_LONG, SOURCE_CSV, RawTradeFields, TradeRecord
from .dates import try_parse_datetime
from .field_extractors import (
    LONG_KEYWORDS,
    SHORT_KEYWORDS,
    clean_symbol,
    find_side,
    parse_number,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Header resolution
# ---------------------------------------------------------------------------

REQUIRED_COLUMNS = ("symbol", "entry_price", "close_price")

# Resolution order matters: earlier columns claim their header first.
_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "symbol": ("symbol", "contract", "futures", "pair", "ticker", "instrument", "交易对", "合约"),
    "entry_price": (
        "entry price", "entry pirce", "open price", "open pirce", "avg entry price",
        "opening price", "开仓价格", "开仓均价",
    ),
    "close_price": (
        "close price", "close pirce", "closing price", "exit price", "avg close price",
        "平仓价格", "平仓均价",
    ),
    "position_size": (
        "closed vol", "close vol", "position size", "closed quantity", "volume",
        "quantity", "qty", "size", "仓位", "平仓数量", "数量",
    ),
    "profit_amount": ("realized pnl", "closing pnl", "realized profit", "pnl", "profit", "已实现盈亏", "盈亏"),
    "opened_at": ("opened", "open time", "opening time", "entry time", "开仓时间"),
    "closed_at": ("closed", "close time", "closing time", "exit time", "平仓时间"),
    "side": ("side", "direction", "position side", "方向"),
    "leverage": ("leverage", "杠杆"),
}

# Cell values in exports also say buy/sell for the opening direction
_CSV_LONG_KEYWORDS = [*LONG_KEYWORDS, "buy", "多"]
_CSV_SHORT_KEYWORDS = [*SHORT_KEYWORDS, "sell", "空"]

# Look this far down for the real header row
_HEADER_SEARCH_LINES = 20


def resolve_columns(headers: list[str]) -> dict[str, Optional[int]]:
    """Map canonical column names to header indices.

    Headers are lower-cased and trimmed. For each canonical column an exact
    alias match wins over a substring match; an index claimed by an earlier
    column is never reused.
    """
    lowered = [h.strip().strip('"').strip().lower() for h in headers]
    claimed: set[int] = set()
    col_map: dict[str, Optional[int]] = {}

    for column, aliases in _COLUMN_ALIASES.items():
        found: Optional[int] = None
        for alias in aliases:
            for i, h in enumerate(lowered):
                if i not in claimed and h == alias:
                    found = i
                    break
            if found is not None:
                break
        if found is None:
            for alias in aliases:
                for i, h in enumerate(lowered):
                    if i not in claimed and h and alias in h:
                        found = i
                        break
                if found is not None:
                    break
        if found is not None:
            claimed.add(found)
        col_map[column] = found

    return col_map


def missing_required(col_map: dict[str, Optional[int]]) -> list[str]:
    return [c for c in REQUIRED_COLUMNS if col_map.get(c) is None]


# ---------------------------------------------------------------------------
# Importer
# ---------------------------------------------------------------------------

_LEVERAGE_CELL_RE = re.compile(r"(?<!\d)(\d{1,3})(?!\d)")


class TradeCSVImporter:
    """
    Parse an exchange position-history CSV into validated trade records.

    Usage:
        importer = TradeCSVImporter()
        records = importer.parse_csv("path/to/history.csv")
        importer.skipped_rows  # rows dropped as invalid
    """

    def __init__(self, default_leverage: int = DEFAULT_LEVERAGE) -> None:
        self.default_leverage = default_leverage
        self.records: list[TradeRecord] = []
        self.column_map: dict[str, Optional[int]] = {}
        self.skipped_rows: int = 0
        self.total_rows: int = 0
        self.row_errors: list[CSVRowInvalid] = []

    def parse_csv(self, path: str | Path, *, now: Optional[datetime] = None) -> list[TradeRecord]:
        path = Path(path)
        content = path.read_text(encoding="utf-8-sig")
        return self._parse_content(content, now)

    def parse_string(self, content: str, *, now: Optional[datetime] = None) -> list[TradeRecord]:
        """Parse CSV content from a string. Raises ``CSVMissingRequiredColumns``."""
        return self._parse_content(content.lstrip("\ufeff"), now)

    def _parse_content(self, content: str, now: Optional[datetime]) -> list[TradeRecord]:
        self.records = []
        self.column_map = {}
        self.skipped_rows = 0
        self.total_rows = 0
        self.row_errors = []

        reader = csv.reader(io.StringIO(content), skipinitialspace=True)
        rows = list(reader)
        rows = [row for row in rows if any(cell.strip() for cell in row)]
        if not rows:
            raise CSVMissingRequiredColumns(REQUIRED_COLUMNS)

        header_idx = self._find_header(rows)
        self.column_map = resolve_columns(rows[header_idx])
        optional_missing = [c for c, idx in self.column_map.items() if idx is None]
        if optional_missing:
            logger.info("CSV columns not found (optional): %s", ", ".join(optional_missing))

        for offset, row in enumerate(rows[header_idx + 1:], start=1):
            self.total_rows += 1
            row_number = header_idx + 1 + offset
            try:
                record = self._parse_row(row, row_number, now or datetime.now())
            except CSVRowInvalid as e:
                self.skipped_rows += 1
                self.row_errors.append(e)
                logger.debug("Skipping CSV row: %s", e)
                continue
            self.records.append(record)

        logger.info(
            "Imported %d trades from CSV (%d rows, %d skipped)",
            len(self.records), self.total_rows, self.skipped_rows,
        )
        return self.records

    @staticmethod
    def _find_header(rows: list[list[str]]) -> int:
        """Index of the first row resolving every required column."""
        for i, row in enumerate(rows[:_HEADER_SEARCH_LINES]):
            if not missing_required(resolve_columns(row)):
                return i
        raise CSVMissingRequiredColumns(missing_required(resolve_columns(rows[0])))

    def _parse_row(self, row: list[str], row_number: int, now: datetime) -> TradeRecord:
        col_map = self.column_map

        def get(key: str) -> str:
            idx = col_map.get(key)
            if idx is not None and idx < len(row):
                return row[idx].strip()
            return ""

        symbol = clean_symbol(get("symbol"))
        if not symbol:
            raise CSVRowInvalid(row_number, "missing symbol")

        open_price = parse_number(get("entry_price")) or 0.0
        close_price = parse_number(get("close_price")) or 0.0
        if open_price <= 0 or close_price <= 0:
            raise CSVRowInvalid(row_number, "entry and close price must be positive")

        opened_at = try_parse_datetime(get("opened_at")) if get("opened_at") else None
        closed_at = try_parse_datetime(get("closed_at")) if get("closed_at") else None
        if opened_at is None and closed_at is None:
            opened_at = closed_at = now

        leverage: Optional[int] = None
        lev_match = _LEVERAGE_CELL_RE.search(get("leverage"))
        if lev_match:
            leverage = int(lev_match.group(1))

        fields = RawTradeFields(
            symbol=symbol,
            side=find_side(get("side"), _CSV_LONG_KEYWORDS, _CSV_SHORT_KEYWORDS) or SIDE_LONG,
            open_time=opened_at,
            close_time=closed_at,
            open_price=open_price,
            close_price=close_price,
            leverage=leverage,
            position_size=abs(parse_number(get("position_size")) or 0.0),
            profit_amount=parse_number(get("profit_amount")),
        )

        record = normalize_trade(
            fields, SOURCE_CSV, now=now, default_leverage=self.default_leverage,
        )
        if record is None:
            raise CSVRowInvalid(row_number, "failed trade validation")
        return record


def import_trades_csv(
    content: str,
    *,
    now: Optional[datetime] = None,
    default_leverage: int = DEFAULT_LEVERAGE,
) -> TradeCSVImporter:
    """Parse ``content`` and return the importer (records plus row counters).

    Raises ``CSVMissingRequiredColumns`` when the header cannot be resolved
    and ``NoValidRecordExtracted`` when no row survives validation.
    """
    importer = TradeCSVImporter(default_leverage=default_leverage)
    records = importer.parse_string(content, now=now)
    if not records:
        raise NoValidRecordExtracted(
            "CSV contained no valid trade rows",
            total_rows=importer.total_rows,
            skipped_rows=importer.skipped_rows,
        )
    return importer
