"""Abstract interfaces for signal generation."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.common.types import (
    MomentumAnalysis,
    OrderBookAnalysis,
    OverallAnalysis,
    PatternAnalysis,
    TrendAnalysis,
)


class SignalCombiner(ABC):
    """Abstract base class for turning sub-analyses into one recommendation."""

    @abstractmethod
    def combine(
        self,
        trend: TrendAnalysis,
        order_book: OrderBookAnalysis,
        momentum: MomentumAnalysis,
        pattern: PatternAnalysis,
    ) -> OverallAnalysis:
        """Combine component analyses into a final recommendation.

        Args:
            trend: Swing-structure trend reading
            order_book: Displayed depth pressure
            momentum: RSI, velocity and volume trend
            pattern: Strongest candlestick pattern, if any

        Returns:
            OverallAnalysis with recommendation, confidence (0-100) and reasons
        """
