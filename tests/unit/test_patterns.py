"""Tests for candlestick pattern detection."""

from __future__ import annotations

import pandas as pd

from packages.common.types import PatternSignal
from packages.features.patterns import PATTERN_CATALOG, PatternDetector

FLAT = (10.0, 10.0, 10.0, 10.0)


def _make_frame(*rows: tuple[float, float, float, float]) -> pd.DataFrame:
    """Rows are (open, high, low, close)."""
    return pd.DataFrame(
        {
            "timestamp": pd.date_range("2024-01-01", periods=len(rows), freq="1s", tz="UTC"),
            "open": [r[0] for r in rows],
            "high": [r[1] for r in rows],
            "low": [r[2] for r in rows],
            "close": [r[3] for r in rows],
            "volume": [1000.0] * len(rows),
        }
    )


class TestSingleCandlePatterns:
    def test_doji(self) -> None:
        result = PatternDetector().analyze(_make_frame(FLAT, FLAT, (10.0, 10.5, 9.5, 10.01)))

        assert result.detected == "Doji"
        assert result.signal == PatternSignal.NEUTRAL
        assert result.confidence == 75

    def test_hammer(self) -> None:
        result = PatternDetector().analyze(_make_frame(FLAT, FLAT, (10.0, 10.22, 9.0, 10.2)))

        assert result.detected == "Hammer"
        assert result.signal == PatternSignal.BULLISH

    def test_shooting_star(self) -> None:
        result = PatternDetector().analyze(_make_frame(FLAT, FLAT, (10.2, 11.2, 9.98, 10.0)))

        assert result.detected == "Shooting Star"
        assert result.signal == PatternSignal.BEARISH


class TestMultiCandlePatterns:
    def test_bullish_engulfing_beats_strong_bullish(self) -> None:
        """Both rules match; the higher-confidence engulfing wins."""
        frame = _make_frame(FLAT, (10.5, 10.5, 10.0, 10.0), (9.9, 10.75, 9.85, 10.7))
        names = [rule.name for rule in PatternDetector().matches(frame)]
        result = PatternDetector().analyze(frame)

        assert "Strong Bullish" in names
        assert result.detected == "Bullish Engulfing"
        assert result.confidence == 80

    def test_bearish_engulfing(self) -> None:
        frame = _make_frame(FLAT, (10.0, 10.5, 10.0, 10.5), (10.6, 10.65, 9.75, 9.8))
        result = PatternDetector().analyze(frame)

        assert result.detected == "Bearish Engulfing"
        assert result.signal == PatternSignal.BEARISH

    def test_morning_star(self) -> None:
        frame = _make_frame(
            (11.0, 11.0, 10.0, 10.0),
            (9.9, 9.95, 9.9, 9.95),
            (10.0, 11.25, 9.95, 11.2),
        )
        result = PatternDetector().analyze(frame)

        assert result.detected == "Morning Star"
        assert result.confidence == 85


class TestNoPattern:
    def test_ordinary_candle(self) -> None:
        result = PatternDetector().analyze(_make_frame(FLAT, FLAT, (10.0, 10.7, 9.8, 10.4)))

        assert result.detected is None
        assert result.signal == PatternSignal.NEUTRAL
        assert result.description == "No notable pattern"

    def test_fewer_than_three_candles(self) -> None:
        result = PatternDetector().analyze(_make_frame(FLAT, FLAT))

        assert result.detected is None
        assert result.confidence == 0.0

    def test_catalog_names_unique(self) -> None:
        names = [rule.name for rule in PATTERN_CATALOG]
        assert len(names) == len(set(names))
