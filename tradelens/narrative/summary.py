"""Generate trade summaries and review drafts using the Claude API."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

import anthropic

from ..analyzers.performance import compute_performance
from ..analyzers.trade_log import recent_trades
from ..config import DEFAULT_INITIAL_EQUITY, DEFAULT_MODEL
from ..errors import SummaryServiceError
from ..models import TradeRecord
from .prompts import build_recent_summary_prompt, build_single_trade_prompt

logger = logging.getLogger(__name__)


class SummaryService(Protocol):
    def summarize(self, prompt: str) -> str:
        ...


class AnthropicSummaryService:
    """Prompt in, text out. Every failure surfaces as ``SummaryServiceError``."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, max_tokens: int = 2000) -> None:
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens

    def summarize(self, prompt: str) -> str:
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise SummaryServiceError(f"Summary service request failed: {e}") from e

        text = "".join(getattr(block, "text", "") for block in message.content).strip()
        if not text:
            raise SummaryServiceError("Summary service returned an empty response")
        return text


@dataclass
class TradeSummaryResult:
    text: str
    trade_count: int
    days: int

    def to_dict(self) -> dict[str, Any]:
        return {"summary": self.text, "trade_count": self.trade_count, "days": self.days}


def _with_retry(service: SummaryService, prompt: str, attempts: int) -> str:
    last_error: Optional[SummaryServiceError] = None
    for attempt in range(attempts):
        try:
            return service.summarize(prompt)
        except SummaryServiceError as e:
            last_error = e
            logger.warning("Summary call failed (attempt %d): %s", attempt + 1, e)
            if attempt < attempts - 1:
                time.sleep(2)

    logger.error("Summary service failed after %d attempts", attempts)
    raise last_error or SummaryServiceError("Summary service was not called")


def generate_trade_summary(
    records: Sequence[TradeRecord],
    service: SummaryService,
    *,
    initial_equity: float = DEFAULT_INITIAL_EQUITY,
    days: int = 7,
    attempts: int = 2,
    now: Optional[datetime] = None,
) -> TradeSummaryResult:
    """Summarize trades closed in the last ``days`` days.

    Raises ``SummaryServiceError`` when no recent trades exist or when every
    attempt fails.
    """
    recent = recent_trades(records, days=days, now=now)
    if not recent:
        raise SummaryServiceError(f"No trades closed in the last {days} days")

    summary = compute_performance(recent, initial_equity)
    prompt = build_recent_summary_prompt(recent, summary)
    logger.info("Requesting summary for %d trade(s) over %d day(s)", len(recent), days)
    text = _with_retry(service, prompt, attempts)
    return TradeSummaryResult(text=text, trade_count=len(recent), days=days)


def generate_review_draft(
    record: TradeRecord, service: SummaryService, *, attempts: int = 2
) -> str:
    return _with_retry(service, build_single_trade_prompt(record), attempts)
