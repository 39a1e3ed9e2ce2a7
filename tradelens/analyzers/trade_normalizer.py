"""
Trade normalizer/validator.

Turns raw extracted or imported fields into a ``TradeRecord`` using one
canonical set of formulas:

    profit_amount = (close - open) * direction_sign * position_size
    profit_rate   = (close - open) / open * direction_sign * leverage

A profit amount scraped from text or a CSV column is advisory. It is used
to derive a missing position size, and otherwise only cross-checked against
the formula.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..models import (
    DEFAULT_LEVERAGE,
    SIDE_LONG,
    SIDE_SHORT,
    SOURCE_MANUAL,
    SOURCE_OCR,
    RawTradeFields,
    TradeRecord,
    direction_sign,
)

logger = logging.getLogger(__name__)

# Relative tolerance before a scraped profit disagreeing with the formula is logged
_PROFIT_CROSS_CHECK_TOLERANCE = 0.01


def compute_profit_amount(
    side: str, open_price: float, close_price: float, position_size: float
) -> float:
    return (close_price - open_price) * direction_sign(side) * position_size


def compute_profit_rate(
    side: str, open_price: float, close_price: float, leverage: int
) -> float:
    if open_price <= 0:
        return 0.0
    return (close_price - open_price) / open_price * direction_sign(side) * leverage


def derive_position_size(
    profit_amount: Optional[float], open_price: float, close_price: float
) -> float:
    """Recover size from a reported profit: |pnl| / |close - open|."""
    if not profit_amount:
        return 0.0
    price_diff = abs(close_price - open_price)
    if price_diff == 0:
        return 0.0
    return abs(profit_amount) / price_diff


def _normalize_side(side: str) -> str:
    return SIDE_SHORT if (side or "").strip().lower() == SIDE_SHORT else SIDE_LONG


def _resolve_times(
    open_time: Optional[datetime],
    close_time: Optional[datetime],
    now: datetime,
) -> tuple[Optional[datetime], datetime]:
    if open_time is None and close_time is None:
        return None, now
    if close_time is None:
        return open_time, open_time
    if open_time is None:
        return close_time, close_time
    return open_time, close_time


def _cross_check_profit(fields: RawTradeFields, computed: float) -> None:
    reported = fields.profit_amount
    if reported is None or fields.position_size <= 0:
        return
    scale = max(abs(computed), abs(reported), 1e-9)
    if abs(reported - computed) / scale > _PROFIT_CROSS_CHECK_TOLERANCE:
        logger.warning(
            "Reported profit %.8g for %s disagrees with computed %.8g; using computed",
            reported, fields.symbol, computed,
        )


def normalize_trade(
    fields: RawTradeFields,
    source: str = SOURCE_OCR,
    *,
    now: Optional[datetime] = None,
    default_leverage: int = DEFAULT_LEVERAGE,
) -> Optional[TradeRecord]:
    """Validate ``fields`` and build a ``TradeRecord``; None when invalid.

    A record needs a non-empty symbol and both prices strictly positive.
    Missing times default to each other, or the close time to ``now``.
    """
    symbol = (fields.symbol or "").strip().upper()
    if not symbol or fields.open_price <= 0 or fields.close_price <= 0:
        logger.debug(
            "Rejected trade fields: symbol=%r open=%s close=%s",
            symbol, fields.open_price, fields.close_price,
        )
        return None

    side = _normalize_side(fields.side)
    leverage = fields.leverage if fields.leverage and fields.leverage > 0 else default_leverage

    position_size = max(fields.position_size, 0.0)
    if position_size == 0:
        position_size = derive_position_size(
            fields.profit_amount, fields.open_price, fields.close_price,
        )

    profit_amount = compute_profit_amount(
        side, fields.open_price, fields.close_price, position_size,
    )
    _cross_check_profit(fields, profit_amount)

    open_time, close_time = _resolve_times(
        fields.open_time, fields.close_time, now or datetime.now(),
    )

    return TradeRecord(
        symbol=symbol,
        side=side,
        open_price=fields.open_price,
        close_price=fields.close_price,
        open_time=open_time,
        close_time=close_time,
        leverage=int(leverage),
        position_size=position_size,
        profit_amount=profit_amount,
        profit_rate=compute_profit_rate(
            side, fields.open_price, fields.close_price, leverage,
        ),
        source=source,
    )


def build_manual_trade(
    symbol: str,
    side: str,
    open_price: float,
    close_price: float,
    position_size: float,
    leverage: int = DEFAULT_LEVERAGE,
    open_time: Optional[datetime] = None,
    close_time: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
) -> Optional[TradeRecord]:
    """Manual-entry path: like ``normalize_trade`` but also requires a size > 0."""
    if position_size <= 0:
        logger.debug("Rejected manual trade %r: position size must be positive", symbol)
        return None
    fields = RawTradeFields(
        symbol=symbol,
        side=side,
        open_time=open_time,
        close_time=close_time,
        open_price=open_price,
        close_price=close_price,
        leverage=leverage,
        position_size=position_size,
    )
    return normalize_trade(fields, SOURCE_MANUAL, now=now)
