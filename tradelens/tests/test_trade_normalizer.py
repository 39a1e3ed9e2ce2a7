"""Tests for trade normalization, the canonical formulas and manual entry."""

from datetime import datetime

import pytest

from tradelens.analyzers.trade_normalizer import (
    build_manual_trade,
    compute_profit_amount,
    compute_profit_rate,
    derive_position_size,
    normalize_trade,
)
from tradelens.models import RawTradeFields, TradeRecord

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _fields(**overrides) -> RawTradeFields:
    base = dict(symbol="BTCUSDT", side="long", open_price=40000.0, close_price=41000.0, position_size=0.1)
    base.update(overrides)
    return RawTradeFields(**base)


class TestFormulas:
    def test_long_profit(self):
        assert compute_profit_amount("long", 100.0, 110.0, 2.0) == pytest.approx(20.0)

    def test_short_profit(self):
        assert compute_profit_amount("short", 100.0, 110.0, 2.0) == pytest.approx(-20.0)

    def test_rate_scales_with_leverage(self):
        assert compute_profit_rate("long", 100.0, 110.0, 10) == pytest.approx(1.0)
        assert compute_profit_rate("short", 100.0, 90.0, 5) == pytest.approx(0.5)

    def test_rate_zero_open_price(self):
        assert compute_profit_rate("long", 0.0, 110.0, 10) == 0.0

    def test_derive_size(self):
        assert derive_position_size(50.0, 100.0, 110.0) == pytest.approx(5.0)
        assert derive_position_size(-50.0, 110.0, 100.0) == pytest.approx(5.0)
        assert derive_position_size(50.0, 100.0, 100.0) == 0.0
        assert derive_position_size(None, 100.0, 110.0) == 0.0


class TestNormalizeTrade:
    def test_valid_long(self):
        r = normalize_trade(_fields(), now=NOW)
        assert isinstance(r, TradeRecord)
        assert r.profit_amount == pytest.approx(100.0)
        assert r.profit_rate == pytest.approx(0.25)
        assert r.leverage == 10
        assert r.status == "win"
        assert r.source == "ocr"

    def test_short_loss(self):
        r = normalize_trade(_fields(side="short", leverage=20), now=NOW)
        assert r.profit_amount == pytest.approx(-100.0)
        assert r.profit_rate == pytest.approx(-0.5)
        assert r.status == "loss"
        assert r.direction_sign == -1

    def test_breakeven(self):
        r = normalize_trade(_fields(close_price=40000.0), now=NOW)
        assert r.profit_amount == 0.0
        assert r.status == "breakeven"

    def test_default_leverage_parameter(self):
        r = normalize_trade(_fields(), now=NOW, default_leverage=3)
        assert r.leverage == 3

    def test_rejects_missing_symbol_or_price(self):
        assert normalize_trade(_fields(symbol=""), now=NOW) is None
        assert normalize_trade(_fields(open_price=0.0), now=NOW) is None
        assert normalize_trade(_fields(close_price=-1.0), now=NOW) is None

    def test_size_derived_from_reported_profit(self):
        r = normalize_trade(_fields(position_size=0.0, profit_amount=250.0), now=NOW)
        assert r.position_size == pytest.approx(0.25)
        assert r.profit_amount == pytest.approx(250.0)

    def test_reported_profit_never_overrides_formula(self):
        r = normalize_trade(_fields(profit_amount=999.0), now=NOW)
        assert r.profit_amount == pytest.approx(100.0)

    def test_missing_times(self):
        opened = datetime(2024, 5, 1, 9, 0, 0)
        r = normalize_trade(_fields(open_time=opened), now=NOW)
        assert r.open_time == opened
        assert r.close_time == opened

        r = normalize_trade(_fields(close_time=opened), now=NOW)
        assert r.open_time == opened

        r = normalize_trade(_fields(), now=NOW)
        assert r.open_time is None
        assert r.close_time == NOW

    def test_symbol_uppercased_and_side_canonical(self):
        r = normalize_trade(_fields(symbol=" ethusdt ", side="SHORT"), now=NOW)
        assert r.symbol == "ETHUSDT"
        assert r.side == "short"

    def test_to_dict(self):
        r = normalize_trade(_fields(close_time=NOW), "csv", now=NOW)
        d = r.to_dict()
        assert d["close_time"] == "2024-06-01T12:00:00"
        assert d["status"] == "win"
        assert d["source"] == "csv"


class TestManualTrade:
    def test_builds_manual_record(self):
        r = build_manual_trade("solusdt", "short", 150.0, 140.0, 10.0, leverage=5, now=NOW)
        assert r.source == "manual"
        assert r.symbol == "SOLUSDT"
        assert r.profit_amount == pytest.approx(100.0)
        assert r.profit_rate == pytest.approx(10.0 / 150.0 * 5)

    def test_requires_positive_size(self):
        assert build_manual_trade("SOLUSDT", "long", 150.0, 140.0, 0.0, now=NOW) is None

    def test_requires_prices(self):
        assert build_manual_trade("SOLUSDT", "long", 0.0, 140.0, 1.0, now=NOW) is None
