"""Import trades from exchange trade-history screenshots.

The recognition collaborator turns image bytes into text; everything after
that is pure: normalize, try a multi-trade split, and fall back to
single-record extraction over the whole blob.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from ..analyzers.trade_normalizer import normalize_trade
from ..config import SegmenterConfig
from ..errors import NoTextRecognized, NoValidRecordExtracted, RecognitionError
from ..models import DEFAULT_LEVERAGE, SOURCE_OCR, TradeRecord
from .field_extractors import extract_from_text
from .text_normalizer import normalize_text
from .trade_segmenter import Split, segment_trades

logger = logging.getLogger(__name__)


class TextRecognizer(Protocol):
    def recognize(self, image_bytes: bytes, media_type: str = "image/png") -> str:
        ...


@dataclass
class TextImportResult:
    records: list[TradeRecord]
    strategy: str  # segmentation strategy name, or "single"
    line_count: int = 0
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "line_count": self.line_count,
            "trades_extracted": len(self.records),
            "trades": [r.to_dict() for r in self.records],
            "notes": self.notes,
        }


def extract_trades(
    text: str,
    config: Optional[SegmenterConfig] = None,
    *,
    now: Optional[datetime] = None,
    default_leverage: int = DEFAULT_LEVERAGE,
) -> TextImportResult:
    """All valid trades in ``text``; may be empty."""
    normalized = normalize_text(text)
    result = segment_trades(
        normalized, config, now=now, default_leverage=default_leverage,
    )
    if isinstance(result, Split):
        return TextImportResult(
            records=list(result.records),
            strategy=result.strategy,
            line_count=normalized.line_count,
        )

    record = normalize_trade(
        extract_from_text(normalized), SOURCE_OCR,
        now=now, default_leverage=default_leverage,
    )
    return TextImportResult(
        records=[record] if record is not None else [],
        strategy="single",
        line_count=normalized.line_count,
    )


def import_trades_from_text(
    text: str,
    config: Optional[SegmenterConfig] = None,
    *,
    now: Optional[datetime] = None,
    default_leverage: int = DEFAULT_LEVERAGE,
) -> TextImportResult:
    """Like ``extract_trades`` but an empty result raises ``NoValidRecordExtracted``."""
    if not text or not text.strip():
        raise NoTextRecognized()
    result = extract_trades(text, config, now=now, default_leverage=default_leverage)
    if not result.records:
        raise NoValidRecordExtracted(
            "No trade with a symbol and both prices was found in the recognized text",
            total_rows=result.line_count,
        )
    return result


class ScreenshotImporter:
    """
    Screenshot → recognized text → trade records.

    Usage:
        importer = ScreenshotImporter(ClaudeVisionRecognizer(api_key))
        result = importer.import_image(png_bytes)
    """

    def __init__(
        self,
        recognizer: TextRecognizer,
        config: Optional[SegmenterConfig] = None,
        default_leverage: int = DEFAULT_LEVERAGE,
    ) -> None:
        self.recognizer = recognizer
        self.config = config or SegmenterConfig()
        self.default_leverage = default_leverage

    def import_image(
        self, image_bytes: bytes, media_type: str = "image/png"
    ) -> TextImportResult:
        """Raises ``InvalidImage``/``NoTextRecognized`` from the recognizer and
        ``NoValidRecordExtracted`` when nothing validates."""
        text = self.recognizer.recognize(image_bytes, media_type)
        logger.info("Recognized %d characters of text from screenshot", len(text or ""))
        return import_trades_from_text(
            text or "", self.config, default_leverage=self.default_leverage,
        )

    def import_images(
        self, images: list[tuple[bytes, str]]
    ) -> TextImportResult:
        """Import several screenshots, skipping the ones that fail.

        Duplicates (same symbol, side, prices and close time) across
        screenshots are kept once. Raises ``NoValidRecordExtracted`` only when
        no screenshot produced a trade.
        """
        records: list[TradeRecord] = []
        notes: list[str] = []
        seen: set[tuple] = set()
        lines = 0

        for i, (img_bytes, media_type) in enumerate(images):
            logger.info("Importing screenshot %d/%d", i + 1, len(images))
            try:
                result = self.import_image(img_bytes, media_type)
            except (RecognitionError, NoValidRecordExtracted) as e:
                notes.append(f"Screenshot {i + 1}: {e}")
                continue
            lines += result.line_count
            for record in result.records:
                key = (
                    record.symbol, record.side, record.open_price,
                    record.close_price, record.close_time,
                )
                if key in seen:
                    continue
                seen.add(key)
                records.append(record)

        if not records:
            raise NoValidRecordExtracted(
                "No screenshot produced a valid trade", total_rows=lines,
            )
        return TextImportResult(records=records, strategy="multi_image", line_count=lines, notes=notes)
