"""On-demand market scan: candles + book in, AIDetailedAnalysis out.

The engine is read-only. It copies what it needs into a DataFrame and never
touches the session's history, book or ledger.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from packages.common.config import AnalysisConfig
from packages.common.logging import get_logger
from packages.common.types import AIDetailedAnalysis, Candle, OrderBookSnapshot
from packages.features.interfaces import candles_to_frame
from packages.features.orderbook import OrderbookFeatures
from packages.features.patterns import PatternDetector
from packages.features.technical import MomentumAnalyzer, TrendAnalyzer
from packages.signals.interfaces import SignalCombiner
from packages.signals.signal_fusion import WeightedRuleFusion

logger = get_logger(__name__)


class AnalysisEngine:
    """Runs every sub-analysis and fuses them into one recommendation."""

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        combiner: SignalCombiner | None = None,
    ) -> None:
        cfg = config or AnalysisConfig()
        self._trend = TrendAnalyzer(lookback=cfg.lookback)
        self._momentum = MomentumAnalyzer(
            rsi_period=cfg.rsi_period,
            lookback=cfg.lookback,
            volume_threshold=cfg.volume_trend_threshold,
        )
        self._pattern = PatternDetector()
        self._book = OrderbookFeatures(imbalance_ratio=cfg.imbalance_ratio)
        self._combiner = combiner or WeightedRuleFusion(cfg)

    def scan(
        self,
        history: Sequence[Candle],
        book: OrderBookSnapshot,
        timestamp: datetime | None = None,
    ) -> AIDetailedAnalysis:
        """Analyze the candle history and the current book.

        Args:
            history: Candles, oldest first
            book: Current snapshot
            timestamp: Stamp for the result; defaults to the last candle's time

        Returns:
            AIDetailedAnalysis
        """
        if timestamp is None:
            timestamp = history[-1].timestamp if history else book.timestamp
        if timestamp is None:
            raise ValueError("scan needs a timestamp when history and book carry none")

        frame = candles_to_frame(history)
        trend = self._trend.analyze(frame)
        momentum = self._momentum.analyze(frame)
        pattern = self._pattern.analyze(frame)
        order_book = self._book.analyze(book)
        overall = self._combiner.combine(trend, order_book, momentum, pattern)

        logger.info(
            "scan_completed",
            recommendation=overall.recommendation.value,
            confidence=overall.confidence,
            trend=trend.direction.value,
            rsi=momentum.rsi,
            pattern=pattern.detected,
            candles=len(history),
        )
        return AIDetailedAnalysis(
            timestamp=timestamp,
            overall=overall,
            trend=trend,
            order_book=order_book,
            momentum=momentum,
            pattern=pattern,
        )
