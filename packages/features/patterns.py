"""Candlestick pattern catalog.

Every rule looks at the last one to three candles and is defined by body,
wick and range ratios. All rules are evaluated; the match with the highest
confidence wins and catalog order breaks ties.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import pandas as pd

from packages.common.types import PatternAnalysis, PatternSignal
from packages.features.interfaces import CandleAnalyzer


@dataclass(frozen=True)
class Shape:
    """Geometry of one candle."""

    open: float
    high: float
    low: float
    close: float

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def upper_wick(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_wick(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def bullish(self) -> bool:
        return self.close > self.open

    @property
    def bearish(self) -> bool:
        return self.close < self.open


@dataclass(frozen=True)
class PatternRule:
    name: str
    signal: PatternSignal
    confidence: float
    description: str
    matches: Callable[[Shape, Shape, Shape], bool]  # (two back, previous, last)


def _doji(_pp: Shape, _p: Shape, c: Shape) -> bool:
    return c.range > 0 and c.body / c.range < 0.1


def _hammer(_pp: Shape, _p: Shape, c: Shape) -> bool:
    return c.range > 0 and c.lower_wick > c.body * 2 and c.upper_wick < c.body * 0.5


def _shooting_star(_pp: Shape, _p: Shape, c: Shape) -> bool:
    return c.range > 0 and c.upper_wick > c.body * 2 and c.lower_wick < c.body * 0.5


def _bullish_engulfing(_pp: Shape, p: Shape, c: Shape) -> bool:
    return (
        c.bullish
        and p.bearish
        and c.open <= p.close
        and c.close >= p.open
        and c.body > p.body
    )


def _bearish_engulfing(_pp: Shape, p: Shape, c: Shape) -> bool:
    return (
        c.bearish
        and p.bullish
        and c.open >= p.close
        and c.close <= p.open
        and c.body > p.body
    )


def _morning_star(pp: Shape, p: Shape, c: Shape) -> bool:
    return pp.bearish and p.body < pp.body * 0.3 and c.bullish and c.close > pp.open


def _evening_star(pp: Shape, p: Shape, c: Shape) -> bool:
    return pp.bullish and p.body < pp.body * 0.3 and c.bearish and c.close < pp.open


def _strong_bullish(_pp: Shape, _p: Shape, c: Shape) -> bool:
    return c.range > 0 and c.bullish and c.body > c.range * 0.7


def _strong_bearish(_pp: Shape, _p: Shape, c: Shape) -> bool:
    return c.range > 0 and c.bearish and c.body > c.range * 0.7


PATTERN_CATALOG: tuple[PatternRule, ...] = (
    PatternRule("Doji", PatternSignal.NEUTRAL, 75, "Indecision, reversal possible", _doji),
    PatternRule("Hammer", PatternSignal.BULLISH, 70, "Bottom reversal signal", _hammer),
    PatternRule(
        "Shooting Star", PatternSignal.BEARISH, 70, "Top reversal signal", _shooting_star
    ),
    PatternRule(
        "Bullish Engulfing",
        PatternSignal.BULLISH,
        80,
        "Strong bullish reversal, price may turn up",
        _bullish_engulfing,
    ),
    PatternRule(
        "Bearish Engulfing",
        PatternSignal.BEARISH,
        80,
        "Strong bearish reversal, price may turn down",
        _bearish_engulfing,
    ),
    PatternRule(
        "Morning Star",
        PatternSignal.BULLISH,
        85,
        "Three-candle bottom reversal",
        _morning_star,
    ),
    PatternRule(
        "Evening Star",
        PatternSignal.BEARISH,
        85,
        "Three-candle top reversal",
        _evening_star,
    ),
    PatternRule(
        "Strong Bullish", PatternSignal.BULLISH, 65, "Buyers in control", _strong_bullish
    ),
    PatternRule(
        "Strong Bearish", PatternSignal.BEARISH, 65, "Sellers in control", _strong_bearish
    ),
)


def _shape(row: pd.Series) -> Shape:
    return Shape(
        open=float(row["open"]),
        high=float(row["high"]),
        low=float(row["low"]),
        close=float(row["close"]),
    )


class PatternDetector(CandleAnalyzer[PatternAnalysis]):
    """Match the latest candles against PATTERN_CATALOG."""

    def __init__(self, catalog: tuple[PatternRule, ...] = PATTERN_CATALOG) -> None:
        self._catalog = catalog

    def matches(self, candles: pd.DataFrame) -> list[PatternRule]:
        if len(candles) < 3:
            return []
        pp, p, c = (_shape(row) for _, row in candles.iloc[-3:].iterrows())
        return [rule for rule in self._catalog if rule.matches(pp, p, c)]

    def analyze(self, candles: pd.DataFrame) -> PatternAnalysis:
        if len(candles) < 3:
            return PatternAnalysis(description="Not enough candles to detect a pattern")

        found = self.matches(candles)
        if not found:
            return PatternAnalysis(description="No notable pattern")

        # max() keeps the first of equal confidences
        best = max(found, key=lambda rule: rule.confidence)
        return PatternAnalysis(
            detected=best.name,
            signal=best.signal,
            confidence=best.confidence,
            description=best.description,
        )
