"""FastAPI service for TradeLens.

Endpoints:
    GET  /health               liveness + configuration flags
    POST /import/csv           exchange CSV export → trade records
    POST /import/text          recognized screenshot text → trade records
    POST /import/screenshot    base64 screenshot(s) → trade records (Claude Vision)
    POST /trades/manual        manual entry → one trade record
    POST /metrics              trade records → performance summary + equity curve
    POST /summary              recent trades → AI written summary
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .analyzers.performance import compute_performance
from .analyzers.trade_log import filter_trades, recent_trades, sort_trades
from .analyzers.trade_normalizer import build_manual_trade, normalize_trade
from .config import Settings, load_settings
from .errors import (
    CSVMissingRequiredColumns,
    NoValidRecordExtracted,
    RecognitionError,
    SummaryServiceError,
)
from .extraction.recognizer import ClaudeVisionRecognizer
from .models import SIDE_LONG, SOURCE_MANUAL, RawTradeFields, TradeRecord
from .narrative.summary import AnthropicSummaryService, generate_trade_summary
from .parsers.csv_importer import import_trades_csv
from .parsers.screenshot_importer import ScreenshotImporter, import_trades_from_text

VERSION = "0.1.0"

_startup_settings = load_settings()
logging.basicConfig(
    level=getattr(logging, _startup_settings.log_level, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

logger.info(
    "[STARTUP] Env check: ANTHROPIC_API_KEY=%s, model=%s",
    "set" if _startup_settings.ai_configured else "missing",
    _startup_settings.model,
)

app = FastAPI(
    title="TradeLens",
    description="Trade extraction and performance analytics for crypto futures traders",
    version=VERSION,
)


def get_settings() -> Settings:
    """Settings are re-read per request so environment changes apply without restart."""
    return load_settings()


# ─── Request / response models ───────────────────────────────────────────────


class TradeIn(BaseModel):
    symbol: str
    side: str = SIDE_LONG
    open_price: float
    close_price: float
    open_time: Optional[datetime] = None
    close_time: Optional[datetime] = None
    leverage: Optional[int] = None
    position_size: float = 0.0
    profit_amount: Optional[float] = None
    source: str = SOURCE_MANUAL


class CSVImportRequest(BaseModel):
    content: str


class TextImportRequest(BaseModel):
    text: str


class ScreenshotIn(BaseModel):
    data: str  # base64, optionally a data: URL
    media_type: str = "image/png"


class ScreenshotImportRequest(BaseModel):
    images: list[ScreenshotIn] = Field(min_length=1)


class ManualTradeRequest(BaseModel):
    symbol: str
    side: str = SIDE_LONG
    open_price: float
    close_price: float
    position_size: float
    leverage: int = 10
    open_time: Optional[datetime] = None
    close_time: Optional[datetime] = None


class MetricsRequest(BaseModel):
    trades: list[TradeIn]
    initial_equity: Optional[float] = None
    symbol: Optional[str] = None
    status: Optional[str] = None
    sort_by: str = "time"


class SummaryRequest(BaseModel):
    trades: list[TradeIn]
    initial_equity: Optional[float] = None
    days: int = Field(default=7, ge=1)


# ─── Helpers ─────────────────────────────────────────────────────────────────


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _to_records(trades: list[TradeIn], settings: Settings) -> tuple[list[TradeRecord], int]:
    """Re-validate submitted trades; returns (records, rejected count)."""
    records: list[TradeRecord] = []
    rejected = 0
    for t in trades:
        fields = RawTradeFields(
            symbol=t.symbol,
            side=t.side,
            open_time=_naive_utc(t.open_time),
            close_time=_naive_utc(t.close_time),
            open_price=t.open_price,
            close_price=t.close_price,
            leverage=t.leverage,
            position_size=t.position_size,
            profit_amount=t.profit_amount,
        )
        record = normalize_trade(fields, t.source, default_leverage=settings.default_leverage)
        if record is None:
            rejected += 1
            continue
        records.append(record)
    return records, rejected


def _decode_image(data: str) -> bytes:
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return b""


def _no_record_response(e: NoValidRecordExtracted) -> JSONResponse:
    return JSONResponse(
        {"error": str(e), "total_rows": e.total_rows, "skipped_rows": e.skipped_rows},
        status_code=400,
    )


def _ai_not_configured() -> JSONResponse:
    return JSONResponse({"error": "ANTHROPIC_API_KEY not configured"}, status_code=503)


# ─── Endpoints ───────────────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, Any]:
    settings = get_settings()
    return {
        "status": "ok",
        "version": VERSION,
        "ai_configured": settings.ai_configured,
        "model": settings.model,
    }


@app.post("/import/csv")
def import_csv(req: CSVImportRequest) -> JSONResponse:
    settings = get_settings()
    try:
        importer = import_trades_csv(req.content, default_leverage=settings.default_leverage)
    except CSVMissingRequiredColumns as e:
        return JSONResponse({"error": str(e), "missing": e.missing}, status_code=422)
    except NoValidRecordExtracted as e:
        return _no_record_response(e)

    return JSONResponse({
        "trades_extracted": len(importer.records),
        "total_rows": importer.total_rows,
        "skipped_rows": importer.skipped_rows,
        "trades": [r.to_dict() for r in importer.records],
    })


@app.post("/import/text")
def import_text(req: TextImportRequest) -> JSONResponse:
    settings = get_settings()
    try:
        result = import_trades_from_text(
            req.text, settings.segmenter, default_leverage=settings.default_leverage,
        )
    except RecognitionError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except NoValidRecordExtracted as e:
        return _no_record_response(e)
    return JSONResponse(result.to_dict())


@app.post("/import/screenshot")
def import_screenshot(req: ScreenshotImportRequest) -> JSONResponse:
    settings = get_settings()
    if not settings.ai_configured:
        return _ai_not_configured()

    importer = ScreenshotImporter(
        ClaudeVisionRecognizer(settings.anthropic_api_key, model=settings.model),
        settings.segmenter,
        default_leverage=settings.default_leverage,
    )
    images = [(_decode_image(img.data), img.media_type) for img in req.images]
    try:
        if len(images) == 1:
            result = importer.import_image(*images[0])
        else:
            result = importer.import_images(images)
    except RecognitionError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except NoValidRecordExtracted as e:
        return _no_record_response(e)
    return JSONResponse(result.to_dict())


@app.post("/trades/manual")
def manual_trade(req: ManualTradeRequest) -> JSONResponse:
    record = build_manual_trade(
        req.symbol,
        req.side,
        req.open_price,
        req.close_price,
        req.position_size,
        leverage=req.leverage,
        open_time=_naive_utc(req.open_time),
        close_time=_naive_utc(req.close_time),
    )
    if record is None:
        return JSONResponse(
            {"error": "Symbol, positive prices and a positive position size are required"},
            status_code=400,
        )
    return JSONResponse(record.to_dict())


@app.post("/metrics")
def metrics(req: MetricsRequest) -> JSONResponse:
    settings = get_settings()
    records, rejected = _to_records(req.trades, settings)
    records = filter_trades(records, symbol=req.symbol, status=req.status)
    try:
        records = sort_trades(records, req.sort_by)
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    initial_equity = req.initial_equity if req.initial_equity is not None else settings.initial_equity
    summary = compute_performance(records, initial_equity)
    return JSONResponse({
        "summary": summary.to_dict(),
        "trades": [r.to_dict() for r in records],
        "rejected_trades": rejected,
    })


@app.post("/summary")
def summary(req: SummaryRequest) -> JSONResponse:
    settings = get_settings()
    if not settings.ai_configured:
        return _ai_not_configured()

    records, _ = _to_records(req.trades, settings)
    if not recent_trades(records, days=req.days):
        return JSONResponse(
            {"error": f"No trades closed in the last {req.days} days"}, status_code=400,
        )

    service = AnthropicSummaryService(settings.anthropic_api_key, model=settings.model)
    initial_equity = req.initial_equity if req.initial_equity is not None else settings.initial_equity
    try:
        result = generate_trade_summary(
            records, service, initial_equity=initial_equity, days=req.days,
        )
    except SummaryServiceError as e:
        logger.error("Summary generation failed: %s", e)
        return JSONResponse({"error": str(e)}, status_code=502)
    return JSONResponse(result.to_dict())
