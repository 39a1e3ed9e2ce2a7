"""Environment-driven settings.

Reads:
    ANTHROPIC_API_KEY            – enables the recognition and summary adapters
    TRADELENS_MODEL              – Claude model for both adapters
    TRADELENS_INITIAL_EQUITY     – default initial equity for metrics
    TRADELENS_DEFAULT_LEVERAGE   – leverage assumed when none is recovered
    TRADELENS_CHUNK_MIN_LINES    – fixed-chunk segmentation line threshold
    TRADELENS_CHUNK_MIN_SIZE     – minimum lines per chunk
    TRADELENS_CHUNK_DIVISOR      – lines per chunk = max(min size, lines // divisor)
    TRADELENS_LOG_LEVEL          – log level for the API entrypoint

Malformed values fall back to defaults so the service still starts.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .models import DEFAULT_LEVERAGE

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_INITIAL_EQUITY = 10000.0


@dataclass(frozen=True)
class SegmenterConfig:
    """Thresholds for the fixed-chunk fallback of the multi-trade segmenter."""

    chunk_min_lines: int = 6  # chunking only attempted at or above this many lines
    chunk_min_size: int = 3
    chunk_divisor: int = 3

    def lines_per_chunk(self, line_count: int) -> int:
        return max(self.chunk_min_size, line_count // max(self.chunk_divisor, 1))


@dataclass(frozen=True)
class Settings:
    anthropic_api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    initial_equity: float = DEFAULT_INITIAL_EQUITY
    default_leverage: int = DEFAULT_LEVERAGE
    log_level: str = "INFO"
    segmenter: SegmenterConfig = field(default_factory=SegmenterConfig)

    @property
    def ai_configured(self) -> bool:
        return bool(self.anthropic_api_key)


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer); using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r (must be positive); using %d", name, raw, default)
        return default
    return value


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number); using %s", name, raw, default)
        return default


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build ``Settings`` from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ

    segmenter = SegmenterConfig(
        chunk_min_lines=_env_int(env, "TRADELENS_CHUNK_MIN_LINES", 6),
        chunk_min_size=_env_int(env, "TRADELENS_CHUNK_MIN_SIZE", 3),
        chunk_divisor=_env_int(env, "TRADELENS_CHUNK_DIVISOR", 3),
    )

    return Settings(
        anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
        model=env.get("TRADELENS_MODEL") or DEFAULT_MODEL,
        initial_equity=_env_float(env, "TRADELENS_INITIAL_EQUITY", DEFAULT_INITIAL_EQUITY),
        default_leverage=_env_int(env, "TRADELENS_DEFAULT_LEVERAGE", DEFAULT_LEVERAGE),
        log_level=(env.get("TRADELENS_LOG_LEVEL") or "INFO").upper(),
        segmenter=segmenter,
    )
