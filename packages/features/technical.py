"""Technical indicators and the trend/momentum analyzers built on them.

Indicators are computed over the whole candle window with pandas; the
analyzers read the last row. Row i of every indicator uses rows <= i only.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from packages.common.types import MomentumAnalysis, TrendAnalysis, TrendDirection, VolumeTrend
from packages.features.interfaces import CandleAnalyzer, FeatureComputer

NEUTRAL_RSI = 50.0
OVERBOUGHT = 70.0
OVERSOLD = 30.0
SHORT_TERM_MOVE_PCT = 1.5


def compute_rsi(close: pd.Series, period: int) -> pd.Series:
    """Wilder RSI (exponential average of gains/losses with alpha = 1/period).

    Bounded to [0, 100]: no losses reads 100, a flat series reads 50.
    """
    delta = close.diff()
    gain = delta.clip(lower=0.0)
    loss = (-delta).clip(lower=0.0)

    avg_gain = gain.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()
    avg_loss = loss.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()

    rs = avg_gain / avg_loss.replace(0, np.nan)
    rsi = 100 - (100 / (1 + rs))
    degenerate = np.where(avg_gain > 0, 100.0, NEUTRAL_RSI)
    return rsi.where(avg_loss > 0, degenerate).clip(0.0, 100.0)


def latest_rsi(close: pd.Series, period: int) -> float:
    if len(close) < period + 1:
        return NEUTRAL_RSI
    return float(compute_rsi(close, period).iloc[-1])


class TechnicalFeatures(FeatureComputer):
    """RSI, velocity, acceleration and volume ratio columns."""

    def __init__(self, rsi_period: int = 14, window: int = 10) -> None:
        self._rsi_period = rsi_period
        self._window = window

    def compute(self, candles: pd.DataFrame) -> pd.DataFrame:
        close = candles["close"].astype(float)
        volume = candles["volume"].astype(float)
        w = self._window

        features = pd.DataFrame(index=candles.index)
        features["rsi"] = compute_rsi(close, self._rsi_period)

        # % change from the first to the last close of a w-candle window
        features["velocity"] = (close / close.shift(w - 1) - 1) * 100
        features["acceleration"] = features["velocity"] - features["velocity"].shift(w)

        mean_volume = volume.rolling(w).mean()
        features["volume_ratio"] = mean_volume / mean_volume.shift(w).replace(0, np.nan) - 1

        return features

    def feature_names(self) -> list[str]:
        return ["rsi", "velocity", "acceleration", "volume_ratio"]


class MomentumAnalyzer(CandleAnalyzer[MomentumAnalysis]):
    """RSI, price velocity/acceleration and volume trend of the latest window."""

    def __init__(
        self,
        rsi_period: int = 14,
        lookback: int = 10,
        volume_threshold: float = 0.2,
    ) -> None:
        self._rsi_period = rsi_period
        self._lookback = lookback
        self._volume_threshold = volume_threshold
        self._features = TechnicalFeatures(rsi_period=rsi_period, window=lookback)

    def analyze(self, candles: pd.DataFrame) -> MomentumAnalysis:
        if len(candles) < self._lookback + 1:
            return MomentumAnalysis(
                rsi=NEUTRAL_RSI,
                velocity=0.0,
                acceleration=0.0,
                volume_trend=VolumeTrend.FLAT,
                description="Not enough candles to measure momentum",
            )

        last = self._features.compute(candles).iloc[-1]
        velocity = _finite(last["velocity"])
        acceleration = _finite(last["acceleration"])
        volume_ratio = _finite(last["volume_ratio"])
        rsi = latest_rsi(candles["close"].astype(float), self._rsi_period)

        if volume_ratio > self._volume_threshold:
            volume_trend = VolumeTrend.INCREASING
        elif volume_ratio < -self._volume_threshold:
            volume_trend = VolumeTrend.DECREASING
        else:
            volume_trend = VolumeTrend.FLAT

        return MomentumAnalysis(
            rsi=round(rsi, 2),
            velocity=round(velocity, 2),
            acceleration=round(acceleration, 2),
            volume_trend=volume_trend,
            description=_describe_momentum(rsi, velocity, acceleration, volume_trend),
        )


class TrendAnalyzer(CandleAnalyzer[TrendAnalysis]):
    """Swing structure (higher highs/lows) plus a linear-fit slope."""

    def __init__(self, lookback: int = 10) -> None:
        self._lookback = lookback

    def analyze(self, candles: pd.DataFrame) -> TrendAnalysis:
        if len(candles) < self._lookback:
            return TrendAnalysis(
                direction=TrendDirection.NEUTRAL,
                strength=50.0,
                description="Not enough candles to judge the trend",
            )

        window = candles.iloc[-self._lookback :]
        highs = window["high"].to_numpy(dtype=np.float64)
        lows = window["low"].to_numpy(dtype=np.float64)
        closes = window["close"].to_numpy(dtype=np.float64)

        majority = (len(window) - 1) * 0.5
        higher_highs = int(np.sum(np.diff(highs) > 0)) > majority
        lower_highs = int(np.sum(np.diff(highs) < 0)) > majority
        higher_lows = int(np.sum(np.diff(lows) > 0)) > majority
        lower_lows = int(np.sum(np.diff(lows) < 0)) > majority

        change_pct = (closes[-1] - closes[0]) / closes[0] * 100 if closes[0] > 0 else 0.0
        slope = np.polyfit(np.arange(len(closes), dtype=np.float64), closes, 1)[0]
        slope_pct = float(slope / closes.mean() * 100) if closes.mean() > 0 else 0.0

        if higher_highs and higher_lows:
            direction = TrendDirection.BULLISH
            strength = min(90.0, 60.0 + abs(change_pct) * 5)
            description = "Clear uptrend: higher highs and higher lows"
        elif lower_highs and lower_lows:
            direction = TrendDirection.BEARISH
            strength = min(90.0, 60.0 + abs(change_pct) * 5)
            description = "Clear downtrend: lower highs and lower lows"
        elif change_pct > SHORT_TERM_MOVE_PCT:
            direction = TrendDirection.BULLISH
            strength = min(70.0, 50.0 + change_pct * 3)
            description = "Short-term bullish bias, trend not yet established"
        elif change_pct < -SHORT_TERM_MOVE_PCT:
            direction = TrendDirection.BEARISH
            strength = min(70.0, 50.0 + abs(change_pct) * 3)
            description = "Short-term bearish bias, trend not yet established"
        else:
            direction = TrendDirection.NEUTRAL
            strength = 50.0
            description = "Range-bound, no clear direction"

        return TrendAnalysis(
            direction=direction,
            strength=float(round(strength)),
            description=description,
            slope_pct=round(slope_pct, 4),
            higher_highs=higher_highs,
            higher_lows=higher_lows,
            lower_highs=lower_highs,
            lower_lows=lower_lows,
        )


def _finite(value: float) -> float:
    return float(value) if np.isfinite(value) else 0.0


def _describe_momentum(
    rsi: float,
    velocity: float,
    acceleration: float,
    volume_trend: VolumeTrend,
) -> str:
    if rsi > OVERBOUGHT:
        return f"Overbought (RSI {rsi:.0f}), strong momentum but pullback risk"
    if rsi < OVERSOLD:
        return f"Oversold (RSI {rsi:.0f}), bounce possible"
    if velocity > 2 and acceleration > 0:
        return "Momentum accelerating higher"
    if velocity < -2 and acceleration < 0:
        return "Momentum accelerating lower"
    if abs(velocity) < 0.5:
        return "Momentum flat, price consolidating"
    heading = "positive" if velocity > 0 else "negative"
    return f"Momentum {heading}, volume {volume_trend.value}"
