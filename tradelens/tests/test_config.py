"""Tests for environment-driven settings."""

from unittest.mock import patch

from tradelens.config import DEFAULT_MODEL, SegmenterConfig, load_settings


class TestLoadSettings:
    def test_defaults(self):
        s = load_settings({})
        assert s.anthropic_api_key is None
        assert not s.ai_configured
        assert s.model == DEFAULT_MODEL
        assert s.initial_equity == 10000.0
        assert s.default_leverage == 10
        assert s.log_level == "INFO"
        assert s.segmenter == SegmenterConfig()

    def test_overrides(self):
        s = load_settings({
            "ANTHROPIC_API_KEY": "sk-test",
            "TRADELENS_MODEL": "claude-test",
            "TRADELENS_INITIAL_EQUITY": "2500.5",
            "TRADELENS_DEFAULT_LEVERAGE": "25",
            "TRADELENS_CHUNK_MIN_LINES": "8",
            "TRADELENS_LOG_LEVEL": "debug",
        })
        assert s.ai_configured
        assert s.model == "claude-test"
        assert s.initial_equity == 2500.5
        assert s.default_leverage == 25
        assert s.segmenter.chunk_min_lines == 8
        assert s.log_level == "DEBUG"

    def test_malformed_values_fall_back(self):
        s = load_settings({
            "TRADELENS_INITIAL_EQUITY": "lots",
            "TRADELENS_DEFAULT_LEVERAGE": "-3",
            "TRADELENS_CHUNK_DIVISOR": "three",
        })
        assert s.initial_equity == 10000.0
        assert s.default_leverage == 10
        assert s.segmenter.chunk_divisor == 3

    def test_reads_os_environ(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-env", "TRADELENS_DEFAULT_LEVERAGE": "5"}):
            s = load_settings()
            assert s.anthropic_api_key == "sk-env"
            assert s.default_leverage == 5

    def test_empty_key_is_unset(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": ""}):
            assert not load_settings().ai_configured
