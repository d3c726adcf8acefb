"""Weighted-rule signal fusion.

Each sub-analysis adds points to a bullish or a bearish score:
- Trend: strength x trend weight, on the trend's side
- Order book: a flat amount for a buy- or sell-heavy book
- Momentum: a flat amount; RSI extremes count contrarian (overbought is
  bearish), otherwise velocity beyond +/-1% counts with the move
- Volume confirmation: rising volume adds to whichever side already leads
- Pattern: confidence x pattern weight, for patterns above 50 confidence

All weights live in AnalysisWeights (packages/common/config.py).
"""

from __future__ import annotations

from packages.common.config import AnalysisConfig
from packages.common.types import (
    BookImbalance,
    MomentumAnalysis,
    OrderBookAnalysis,
    OverallAnalysis,
    PatternAnalysis,
    PatternSignal,
    TrendAnalysis,
    TrendDirection,
    VolumeTrend,
)
from packages.features.technical import OVERBOUGHT, OVERSOLD
from packages.signals.confidence import score_to_recommendation
from packages.signals.interfaces import SignalCombiner

MOMENTUM_VELOCITY_PCT = 1.0
MIN_PATTERN_CONFIDENCE = 50.0


class WeightedRuleFusion(SignalCombiner):
    """Deterministic bullish/bearish point scoring."""

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        cfg = config or AnalysisConfig()
        self._weights = cfg.weights
        self._direction_threshold = cfg.direction_threshold
        self._max_confidence = cfg.max_confidence

    def scores(
        self,
        trend: TrendAnalysis,
        order_book: OrderBookAnalysis,
        momentum: MomentumAnalysis,
        pattern: PatternAnalysis,
    ) -> tuple[float, float, list[str]]:
        """Return (bullish score, bearish score, reasons)."""
        w = self._weights
        bullish = 0.0
        bearish = 0.0
        reasons: list[str] = []

        if trend.direction is TrendDirection.BULLISH:
            bullish += trend.strength * w.trend
            reasons.append(f"Trend bullish (strength {trend.strength:.0f})")
        elif trend.direction is TrendDirection.BEARISH:
            bearish += trend.strength * w.trend
            reasons.append(f"Trend bearish (strength {trend.strength:.0f})")

        if order_book.imbalance is BookImbalance.BUY_HEAVY:
            bullish += w.order_book
            reasons.append("Order book bid-heavy")
        elif order_book.imbalance is BookImbalance.SELL_HEAVY:
            bearish += w.order_book
            reasons.append("Order book ask-heavy")

        if momentum.rsi > OVERBOUGHT:
            bearish += w.momentum
            reasons.append(f"RSI overbought ({momentum.rsi:.0f})")
        elif momentum.rsi < OVERSOLD:
            bullish += w.momentum
            reasons.append(f"RSI oversold ({momentum.rsi:.0f})")
        elif momentum.velocity > MOMENTUM_VELOCITY_PCT:
            bullish += w.momentum
            reasons.append("Positive price momentum")
        elif momentum.velocity < -MOMENTUM_VELOCITY_PCT:
            bearish += w.momentum
            reasons.append("Negative price momentum")

        if momentum.volume_trend is VolumeTrend.INCREASING:
            if bullish > bearish:
                bullish += w.volume_confirmation
            elif bearish > bullish:
                bearish += w.volume_confirmation
            reasons.append("Rising volume confirms the move")

        if pattern.detected and pattern.confidence > MIN_PATTERN_CONFIDENCE:
            if pattern.signal is PatternSignal.BULLISH:
                bullish += pattern.confidence * w.pattern
                reasons.append(f"{pattern.detected} (bullish)")
            elif pattern.signal is PatternSignal.BEARISH:
                bearish += pattern.confidence * w.pattern
                reasons.append(f"{pattern.detected} (bearish)")

        return bullish, bearish, reasons

    def combine(
        self,
        trend: TrendAnalysis,
        order_book: OrderBookAnalysis,
        momentum: MomentumAnalysis,
        pattern: PatternAnalysis,
    ) -> OverallAnalysis:
        bullish, bearish, reasons = self.scores(trend, order_book, momentum, pattern)
        recommendation, confidence = score_to_recommendation(
            bullish - bearish,
            direction_threshold=self._direction_threshold,
            max_confidence=self._max_confidence,
        )
        if not reasons:
            reasons.append("No clear signal, stay on the sidelines")

        return OverallAnalysis(
            recommendation=recommendation,
            confidence=float(round(confidence)),
            reasons=reasons,
        )
