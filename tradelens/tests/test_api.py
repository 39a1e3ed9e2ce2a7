"""Tests for the FastAPI surface (Claude adapters mocked)."""

import base64
from datetime import datetime, timedelta
from unittest.mock import patch

from fastapi.testclient import TestClient

from tradelens.api import app
from tradelens.errors import SummaryServiceError

client = TestClient(app)

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16

CSV = """\
Symbol,Side,Entry Price,Close Price,Qty,Closed
BTCUSDT,Long,40000,41000,0.1,2024-01-02 10:00:00
ETHUSDT,Short,2000,1900,1,2024-01-03 10:00:00
"""

DETAIL = "BTCUSDT 永续\n做空 20x\n开仓价格 42000.50 USDT\n平仓价格 41000.00 USDT\n仓位 0.5"


def _recent_trade(**kw) -> dict:
    closed = datetime.now() - timedelta(days=1)
    trade = {
        "symbol": "BTCUSDT",
        "side": "long",
        "open_price": 40000,
        "close_price": 41000,
        "position_size": 0.1,
        "open_time": (closed - timedelta(hours=2)).isoformat(),
        "close_time": closed.isoformat(),
    }
    trade.update(kw)
    return trade


class TestHealth:
    def test_health(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": ""}):
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["ai_configured"] is False


class TestImportCSV:
    def test_import(self):
        resp = client.post("/import/csv", json={"content": CSV})
        assert resp.status_code == 200
        body = resp.json()
        assert body["trades_extracted"] == 2
        assert body["skipped_rows"] == 0
        assert body["trades"][1]["side"] == "short"
        assert body["trades"][1]["profit_amount"] == 100.0

    def test_missing_columns(self):
        resp = client.post("/import/csv", json={"content": "Symbol,Qty\nBTCUSDT,1\n"})
        assert resp.status_code == 422
        assert resp.json()["missing"] == ["close_price", "entry_price"]

    def test_no_valid_rows(self):
        resp = client.post("/import/csv", json={"content": "Symbol,Entry Price,Close Price\nBTCUSDT,0,0\n"})
        assert resp.status_code == 400
        assert resp.json()["skipped_rows"] == 1


class TestImportText:
    def test_import(self):
        resp = client.post("/import/text", json={"text": DETAIL})
        assert resp.status_code == 200
        body = resp.json()
        assert body["strategy"] == "single"
        assert body["trades"][0]["leverage"] == 20

    def test_no_text(self):
        resp = client.post("/import/text", json={"text": "  "})
        assert resp.status_code == 400

    def test_no_record(self):
        resp = client.post("/import/text", json={"text": "Trade History"})
        assert resp.status_code == 400


class TestImportScreenshot:
    def _body(self) -> dict:
        return {"images": [{"data": base64.b64encode(PNG).decode(), "media_type": "image/png"}]}

    def test_requires_api_key(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": ""}):
            resp = client.post("/import/screenshot", json=self._body())
        assert resp.status_code == 503

    def test_import(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}), \
                patch("tradelens.api.ClaudeVisionRecognizer") as mock_cls:
            mock_cls.return_value.recognize.return_value = DETAIL
            resp = client.post("/import/screenshot", json=self._body())
        assert resp.status_code == 200
        assert resp.json()["trades"][0]["symbol"] == "BTCUSDT"
        mock_cls.return_value.recognize.assert_called_once_with(PNG, "image/png")

    def test_invalid_image(self):
        body = {"images": [{"data": base64.b64encode(b"not an image").decode()}]}
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}), \
                patch("tradelens.extraction.recognizer.anthropic.Anthropic"):
            resp = client.post("/import/screenshot", json=body)
        assert resp.status_code == 400


class TestManualTrade:
    def test_manual(self):
        resp = client.post("/trades/manual", json={
            "symbol": "solusdt", "side": "short", "open_price": 150, "close_price": 140,
            "position_size": 10, "leverage": 5,
        })
        assert resp.status_code == 200
        assert resp.json()["source"] == "manual"
        assert resp.json()["profit_amount"] == 100.0

    def test_rejects_zero_size(self):
        resp = client.post("/trades/manual", json={
            "symbol": "SOLUSDT", "open_price": 150, "close_price": 140, "position_size": 0,
        })
        assert resp.status_code == 400


class TestMetrics:
    def test_metrics(self):
        trades = [
            _recent_trade(),
            _recent_trade(symbol="ETHUSDT", open_price=2000, close_price=1900, position_size=1),
        ]
        resp = client.post("/metrics", json={"trades": trades, "initial_equity": 1000})
        assert resp.status_code == 200
        summary = resp.json()["summary"]
        assert summary["total_trades"] == 2
        assert summary["total_profit"] == 0.0
        assert summary["win_rate"] == 0.5
        assert len(summary["equity_curve"]) == 3

    def test_filter_and_rejects(self):
        trades = [_recent_trade(), _recent_trade(symbol="ETHUSDT"), _recent_trade(open_price=0)]
        resp = client.post("/metrics", json={"trades": trades, "symbol": "eth"})
        body = resp.json()
        assert body["rejected_trades"] == 1
        assert [t["symbol"] for t in body["trades"]] == ["ETHUSDT"]

    def test_unknown_sort(self):
        resp = client.post("/metrics", json={"trades": [], "sort_by": "leverage"})
        assert resp.status_code == 400


class TestSummary:
    def test_requires_api_key(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": ""}):
            resp = client.post("/summary", json={"trades": [_recent_trade()]})
        assert resp.status_code == 503

    def test_summary(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}), \
                patch("tradelens.api.AnthropicSummaryService") as mock_cls:
            mock_cls.return_value.summarize.return_value = "Report"
            resp = client.post("/summary", json={"trades": [_recent_trade()]})
        assert resp.status_code == 200
        assert resp.json() == {"summary": "Report", "trade_count": 1, "days": 7}

    def test_no_recent_trades(self):
        old = _recent_trade(close_time=(datetime.now() - timedelta(days=40)).isoformat())
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}):
            resp = client.post("/summary", json={"trades": [old]})
        assert resp.status_code == 400

    def test_service_failure(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}), \
                patch("tradelens.api.AnthropicSummaryService") as mock_cls, \
                patch("tradelens.narrative.summary.time.sleep"):
            mock_cls.return_value.summarize.side_effect = SummaryServiceError("boom")
            resp = client.post("/summary", json={"trades": [_recent_trade()]})
        assert resp.status_code == 502
