"""Snap prices onto the instrument's tick grid."""

from __future__ import annotations

import math

_EPS = 1e-9


def _decimals(tick: float) -> int:
    return max(0, -math.floor(math.log10(tick)) + 2)


def floor_to_tick(price: float, tick: float) -> float:
    return round(math.floor(price / tick + _EPS) * tick, _decimals(tick))


def ceil_to_tick(price: float, tick: float) -> float:
    return round(math.ceil(price / tick - _EPS) * tick, _decimals(tick))
