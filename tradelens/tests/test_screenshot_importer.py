"""Tests for the screenshot import path with a stubbed recognizer."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from tradelens.errors import InvalidImage, NoTextRecognized, NoValidRecordExtracted
from tradelens.parsers.screenshot_importer import (
    ScreenshotImporter,
    extract_trades,
    import_trades_from_text,
)

NOW = datetime(2024, 6, 1, 12, 0, 0)

SINGLE = """\
BTCUSDT 永续
做空 20x
开仓价格 42000.50 USDT
平仓价格 41000.00 USDT
仓位 0.5
已实现盈亏 +500.25 USDT
收益率 +47.6%
开仓时间 2024-03-01 10:00:00
平仓时间 2024-03-02 12:30:00
"""

HISTORY = """\
BTCUSDT 做多 开仓价格 40000.00 平仓价格 41000.00 仓位 0.1 平仓时间 2024-03-01 10:00:00
ETHUSDT 做空 开仓价格 2000.00 平仓价格 1900.00 仓位 1 平仓时间 2024-03-02 10:00:00
"""


class TestImportFromText:
    def test_single_record_fallback(self):
        result = extract_trades(SINGLE, now=NOW)
        assert result.strategy == "single"
        assert len(result.records) == 1
        r = result.records[0]
        assert r.symbol == "BTCUSDT"
        assert r.side == "short"
        assert r.leverage == 20
        assert r.profit_amount == pytest.approx(500.25)
        assert r.profit_rate == pytest.approx(1000.5 / 42000.5 * 20)
        assert r.close_time == datetime(2024, 3, 2, 12, 30, 0)

    def test_multi_record(self):
        result = import_trades_from_text(HISTORY, now=NOW)
        assert result.strategy == "symbol_anchored"
        assert [r.symbol for r in result.records] == ["BTCUSDT", "ETHUSDT"]
        assert result.to_dict()["trades_extracted"] == 2

    def test_empty_text(self):
        with pytest.raises(NoTextRecognized):
            import_trades_from_text("   \n ")

    def test_no_valid_record(self):
        with pytest.raises(NoValidRecordExtracted):
            import_trades_from_text("Trade History\nNothing here")

    def test_missing_leverage_defaults_to_ten(self):
        result = extract_trades("BTCUSDT\nOpen Price 100.00\nClose Price 110.00", now=NOW)
        assert len(result.records) == 1
        assert result.records[0].leverage == 10
        assert result.records[0].profit_rate == pytest.approx(1.0)

    def test_lowercase_symbol_and_oversized_leverage(self):
        text = "ethusdt Perpetual\nLeverage: 1000x\nOpen Price 100.00\nClose Price 110.00"
        result = extract_trades(text, now=NOW)
        assert [r.symbol for r in result.records] == ["ETHUSDT"]
        assert result.records[0].leverage == 10

    def test_extract_trades_may_be_empty(self):
        assert extract_trades("Trade History").records == []


class TestScreenshotImporter:
    def test_import_image(self):
        recognizer = MagicMock()
        recognizer.recognize.return_value = SINGLE
        importer = ScreenshotImporter(recognizer)
        result = importer.import_image(b"\x89PNG\r\n\x1a\n...", "image/png")
        recognizer.recognize.assert_called_once_with(b"\x89PNG\r\n\x1a\n...", "image/png")
        assert len(result.records) == 1
        assert result.records[0].source == "ocr"

    def test_recognizer_errors_propagate(self):
        recognizer = MagicMock()
        recognizer.recognize.side_effect = InvalidImage()
        with pytest.raises(InvalidImage):
            ScreenshotImporter(recognizer).import_image(b"garbage")

    def test_import_images_dedups_and_skips_failures(self):
        recognizer = MagicMock()
        recognizer.recognize.side_effect = [HISTORY, NoTextRecognized(), HISTORY, SINGLE]
        importer = ScreenshotImporter(recognizer)
        result = importer.import_images([(b"a", "image/png")] * 4)
        assert result.strategy == "multi_image"
        assert len(result.records) == 3
        assert len(result.notes) == 1
        assert result.notes[0].startswith("Screenshot 2")

    def test_import_images_all_fail(self):
        recognizer = MagicMock()
        recognizer.recognize.side_effect = NoTextRecognized()
        with pytest.raises(NoValidRecordExtracted):
            ScreenshotImporter(recognizer).import_images([(b"a", "image/png")])
