"""Regime-driven synthetic candle generator.

Each tick is one geometric random-walk step:

    close = open * (1 + drift * s + volatility * sqrt(s) * z + displacement)

where s = dt / base_interval, drift depends on the current regime
(BULL > 0, BEAR < 0, CHOP ~ 0) and displacement is the deterministic path
of an active scenario (flash crash, news spike, ...). Regimes last a
uniformly drawn number of ticks and never end early; at expiry a new regime
is drawn by weight and a scenario may be triggered independently.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

import numpy as np

from packages.common.logging import get_logger
from packages.common.types import Candle, MarketRegime, Scenario, ScenarioType
from packages.market.scenarios import (
    SCENARIO_PROFILES,
    scenario_displacement,
    start_scenario,
    step_scenario,
)

if TYPE_CHECKING:
    from packages.common.config import MarketConfig
    from packages.common.time_utils import SimulationClock

logger = get_logger(__name__)

REGIME_SENTIMENT_BIAS: dict[MarketRegime, float] = {
    MarketRegime.BULL: 10.0,
    MarketRegime.BEAR: -10.0,
    MarketRegime.CHOP: 0.0,
}


class RegimeEngine:
    """Produces the next candle each tick and owns the bounded candle history."""

    def __init__(
        self,
        config: MarketConfig,
        rng: np.random.Generator,
        clock: SimulationClock,
    ) -> None:
        self._config = config
        self._clock = clock
        self._rng = rng
        self._history: deque[Candle] = deque(maxlen=config.max_candles)
        self._price = config.base_price
        self._regime = MarketRegime.CHOP
        self._scenario: Scenario | None = None
        self._ticks_remaining = self._draw_duration()

    @property
    def price(self) -> float:
        return self._price

    @property
    def regime(self) -> MarketRegime:
        return self._regime

    @property
    def scenario(self) -> Scenario | None:
        return self._scenario

    @property
    def ticks_remaining(self) -> int:
        return self._ticks_remaining

    @property
    def history(self) -> list[Candle]:
        return list(self._history)

    def drift_for(self, regime: MarketRegime) -> float:
        if regime is MarketRegime.BULL:
            return self._config.bull_drift
        if regime is MarketRegime.BEAR:
            return self._config.bear_drift
        return self._config.chop_drift

    def advance(self, dt: float | None = None) -> Candle:
        """Produce one candle and move regime/scenario state forward one tick."""
        cfg = self._config
        dt = cfg.base_interval_seconds if dt is None else dt
        scale = dt / cfg.base_interval_seconds
        timestamp = self._clock.advance(dt)

        displacement, volume_multiplier = scenario_displacement(self._scenario)
        noise = cfg.base_volatility * np.sqrt(scale) * self._rng.standard_normal()
        step_return = self.drift_for(self._regime) * scale + noise + displacement

        open_ = self._price
        close = max(open_ * (1.0 + step_return), cfg.min_price)

        wick_sigma = cfg.wick_volatility * np.sqrt(scale)
        upper = abs(self._rng.standard_normal()) * wick_sigma
        lower = abs(self._rng.standard_normal()) * wick_sigma
        body_high = max(open_, close)
        body_low = min(open_, close)
        high = body_high * (1.0 + upper)
        low = min(max(body_low * (1.0 - lower), 0.0), body_low)

        volume = float(
            np.floor(self._rng.uniform(cfg.volume_min, cfg.volume_max) * volume_multiplier)
        )

        candle = Candle(
            open=float(open_),
            high=float(high),
            low=float(low),
            close=float(close),
            volume=volume,
            timestamp=timestamp,
        )
        self._history.append(candle)
        self._price = candle.close

        self._scenario = step_scenario(self._scenario)
        self._ticks_remaining -= 1
        if self._ticks_remaining <= 0:
            self._transition()

        return candle

    def inject_scenario(self, scenario_type: ScenarioType) -> Scenario:
        """Force a scenario now, replacing any active one."""
        self._scenario = start_scenario(scenario_type)
        logger.info(
            "scenario_started",
            scenario=scenario_type.value,
            duration=self._scenario.total_duration,
            forced=True,
        )
        return self._scenario

    def sentiment(self) -> float:
        """Crowd sentiment 0-100 from the regime and recent price momentum."""
        lookback = self._config.sentiment_lookback
        recent_change = 0.0
        if len(self._history) > lookback:
            reference = self._history[-lookback - 1].close
            if reference > 0:
                recent_change = (self._price - reference) / reference
        raw = 50.0 + recent_change * 500.0 + REGIME_SENTIMENT_BIAS[self._regime]
        return float(np.clip(round(raw), 0.0, 100.0))

    def reset(self, rng: np.random.Generator) -> None:
        self._rng = rng
        self._history.clear()
        self._price = self._config.base_price
        self._regime = MarketRegime.CHOP
        self._scenario = None
        self._ticks_remaining = self._draw_duration()

    def _transition(self) -> None:
        previous = self._regime
        regimes = list(self._config.regime_weights)
        weights = np.array([self._config.regime_weights[r] for r in regimes], dtype=np.float64)
        idx = int(self._rng.choice(len(regimes), p=weights / weights.sum()))
        self._regime = regimes[idx]
        self._ticks_remaining = self._draw_duration()

        logger.info(
            "regime_changed",
            previous=previous.value,
            regime=self._regime.value,
            duration=self._ticks_remaining,
        )

        triggered = self._rng.random() < self._config.scenario_probability
        if triggered and self._scenario is None:
            choices = list(SCENARIO_PROFILES)
            scenario_type = choices[int(self._rng.integers(len(choices)))]
            self._scenario = start_scenario(scenario_type)
            logger.info(
                "scenario_started",
                scenario=scenario_type.value,
                duration=self._scenario.total_duration,
                forced=False,
            )

    def _draw_duration(self) -> int:
        return int(
            self._rng.integers(
                self._config.regime_duration_min,
                self._config.regime_duration_max + 1,
            )
        )
