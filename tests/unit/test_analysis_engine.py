"""Tests for order book features and the end-to-end market scan."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from packages.common.types import (
    BookImbalance,
    Candle,
    OrderBookSnapshot,
    PriceLevel,
    Recommendation,
    TrendDirection,
)
from packages.features.orderbook import OrderbookFeatures
from packages.signals.analysis_engine import AnalysisEngine

START = datetime(2024, 1, 1, tzinfo=UTC)


def _make_rising_history(n: int = 30) -> list[Candle]:
    candles = []
    for i in range(n):
        close = 100.0 + i
        open_ = close - 0.2
        candles.append(
            Candle(
                open=open_,
                high=close + 0.5,
                low=open_ - 0.5,
                close=close,
                volume=1000.0,
                timestamp=START + timedelta(seconds=i),
            )
        )
    return candles


def _make_book(
    bid_qty: float = 100.0, ask_qty: float = 100.0, mid: float = 129.0
) -> OrderBookSnapshot:
    offsets = [0.05 * (i + 1) for i in range(3)]
    return OrderBookSnapshot(
        bids=[PriceLevel(price=round(mid - d, 2), quantity=bid_qty) for d in offsets],
        asks=[PriceLevel(price=round(mid + d, 2), quantity=ask_qty) for d in offsets],
        timestamp=START,
    )


class TestOrderbookFeatures:
    def test_bid_heavy_book(self) -> None:
        result = OrderbookFeatures().analyze(_make_book(bid_qty=300.0))

        assert result.imbalance == BookImbalance.BUY_HEAVY
        assert result.buy_pressure == pytest.approx(75.0)
        assert result.sell_pressure == pytest.approx(25.0)

    def test_ask_heavy_book(self) -> None:
        result = OrderbookFeatures().analyze(_make_book(ask_qty=300.0))
        assert result.imbalance == BookImbalance.SELL_HEAVY

    def test_even_book_balanced(self) -> None:
        result = OrderbookFeatures().analyze(_make_book())

        assert result.imbalance == BookImbalance.BALANCED
        assert result.spread_percent > 0

    def test_empty_book(self) -> None:
        result = OrderbookFeatures().analyze(OrderBookSnapshot(bids=[], asks=[]))

        assert result.buy_pressure == 50.0
        assert result.imbalance == BookImbalance.BALANCED


class TestAnalysisEngine:
    def test_uptrend_with_bid_heavy_book_goes_long(self) -> None:
        """Trend 27 + book 25 - overbought RSI 15 nets 37 points."""
        analysis = AnalysisEngine().scan(_make_rising_history(), _make_book(bid_qty=300.0))

        assert analysis.trend.direction == TrendDirection.BULLISH
        assert analysis.momentum.rsi == pytest.approx(100.0)
        assert analysis.pattern.detected is None
        assert analysis.overall.recommendation == Recommendation.LONG
        assert analysis.overall.confidence == 87.0

    def test_scan_is_deterministic(self) -> None:
        history = _make_rising_history()
        book = _make_book(bid_qty=300.0)
        engine = AnalysisEngine()
        assert engine.scan(history, book) == engine.scan(history, book)

    def test_scan_does_not_mutate_inputs(self) -> None:
        history = _make_rising_history()
        snapshot = list(history)
        AnalysisEngine().scan(history, _make_book())
        assert history == snapshot

    def test_timestamp_defaults_to_last_candle(self) -> None:
        history = _make_rising_history()
        analysis = AnalysisEngine().scan(history, _make_book())
        assert analysis.timestamp == history[-1].timestamp

    def test_explicit_timestamp_wins(self) -> None:
        stamp = START + timedelta(hours=1)
        analysis = AnalysisEngine().scan(_make_rising_history(), _make_book(), stamp)
        assert analysis.timestamp == stamp

    def test_empty_history_still_scans(self) -> None:
        """No candles: neutral sub-analyses, book still counts."""
        analysis = AnalysisEngine().scan([], _make_book())

        assert analysis.timestamp == START
        assert analysis.trend.direction == TrendDirection.NEUTRAL
        assert analysis.overall.recommendation == Recommendation.HOLD
