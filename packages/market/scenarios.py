"""Transient price-path scenarios layered on top of the regime.

A scenario is a tagged value (`Scenario`: type + countdown). Its behavior
comes from a static profile table, and its lifecycle from the explicit
transition functions below, so every type is handled in one place.
"""

from __future__ import annotations

from dataclasses import dataclass

from packages.common.types import Scenario, ScenarioType


@dataclass(frozen=True)
class ScenarioProfile:
    """Deterministic per-tick displacement path for one scenario type."""

    path: tuple[float, ...]  # fractional return added on each tick
    volume_multiplier: float = 1.0
    bullish: bool = False
    bearish: bool = False

    @property
    def duration(self) -> int:
        return len(self.path)


SCENARIO_PROFILES: dict[ScenarioType, ScenarioProfile] = {
    ScenarioType.FLASH_CRASH: ScenarioProfile(
        path=(-0.012, -0.015, -0.018, -0.012, -0.008),
        volume_multiplier=3.0,
        bearish=True,
    ),
    ScenarioType.NEWS_SPIKE: ScenarioProfile(path=(0.03,), volume_multiplier=4.0, bullish=True),
    ScenarioType.GOD_CANDLE: ScenarioProfile(path=(0.06,), volume_multiplier=5.0, bullish=True),
    ScenarioType.SHORT_SQUEEZE: ScenarioProfile(
        path=(0.01, 0.015, 0.02, 0.025),
        volume_multiplier=2.5,
        bullish=True,
    ),
    ScenarioType.DEAD_CAT: ScenarioProfile(
        path=(-0.015, -0.015, -0.01, 0.008, 0.006, -0.012),
        volume_multiplier=2.0,
        bearish=True,
    ),
    ScenarioType.STAIRCASE_UP: ScenarioProfile(
        path=(0.006, 0.0, 0.006, 0.0, 0.006, 0.0, 0.006, 0.0),
        volume_multiplier=1.3,
        bullish=True,
    ),
    ScenarioType.STAIRCASE_DOWN: ScenarioProfile(
        path=(-0.006, 0.0, -0.006, 0.0, -0.006, 0.0, -0.006, 0.0),
        volume_multiplier=1.3,
        bearish=True,
    ),
}


def start_scenario(scenario_type: ScenarioType) -> Scenario:
    profile = SCENARIO_PROFILES[scenario_type]
    return Scenario(
        type=scenario_type,
        remaining=profile.duration,
        total_duration=profile.duration,
    )


def scenario_displacement(scenario: Scenario | None) -> tuple[float, float]:
    """Return (displacement, volume multiplier) for the tick about to play."""
    if scenario is None or scenario.remaining <= 0:
        return 0.0, 1.0
    profile = SCENARIO_PROFILES[scenario.type]
    return profile.path[scenario.step], profile.volume_multiplier


def step_scenario(scenario: Scenario | None) -> Scenario | None:
    """Consume one tick; an exhausted scenario becomes None."""
    if scenario is None:
        return None
    remaining = scenario.remaining - 1
    if remaining <= 0:
        return None
    return scenario.model_copy(update={"remaining": remaining})
