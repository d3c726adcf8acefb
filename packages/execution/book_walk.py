"""Walk one side of the book and price a fill at its VWAP.

Displayed liquidity is what the synthesized ladder shows. Executable
liquidity for market orders is unbounded: whatever the ladder cannot absorb
fills at the worst displayed price.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from packages.common.types import PriceLevel, Side

QTY_EPSILON = 1e-9


@dataclass
class LevelLiquidity:
    """Mutable per-tick copy of a displayed level."""

    price: float
    quantity: float

    @classmethod
    def from_levels(cls, levels: Sequence[PriceLevel]) -> list[LevelLiquidity]:
        return [cls(price=level.price, quantity=level.quantity) for level in levels]


@dataclass(frozen=True)
class WalkResult:
    quantity: float
    notional: float
    consumed: tuple[tuple[int, float], ...]  # (level index, quantity taken)

    @property
    def vwap(self) -> float | None:
        if self.quantity <= QTY_EPSILON:
            return None
        return self.notional / self.quantity


def crosses(side: Side, level_price: float, limit_price: float) -> bool:
    """True if a level is at or better than the limit for a taker on `side`."""
    if side is Side.BUY:
        return level_price <= limit_price + QTY_EPSILON
    return level_price >= limit_price - QTY_EPSILON


def walk_levels(
    levels: Sequence[LevelLiquidity],
    side: Side,
    quantity: float,
    limit_price: float | None = None,
    unbounded: bool = False,
) -> WalkResult:
    """Consume `levels` best-first until `quantity` is reached.

    Args:
        levels: Opposite-side liquidity, best price first
        side: Taker side
        quantity: Quantity wanted
        limit_price: Stop at the first level worse than this
        unbounded: Fill any remainder at the worst displayed price

    Returns:
        WalkResult (levels are not mutated, see `apply_walk`)
    """
    remaining = quantity
    notional = 0.0
    consumed: list[tuple[int, float]] = []

    for idx, level in enumerate(levels):
        if remaining <= QTY_EPSILON:
            break
        if limit_price is not None and not crosses(side, level.price, limit_price):
            break
        if level.quantity <= QTY_EPSILON:
            continue
        take = min(remaining, level.quantity)
        consumed.append((idx, take))
        notional += take * level.price
        remaining -= take

    if unbounded and remaining > QTY_EPSILON and levels:
        notional += remaining * levels[-1].price
        remaining = 0.0

    return WalkResult(
        quantity=quantity - remaining,
        notional=notional,
        consumed=tuple(consumed),
    )


def apply_walk(levels: list[LevelLiquidity], result: WalkResult) -> None:
    """Deduct displayed quantity taken by a walk."""
    for idx, take in result.consumed:
        levels[idx].quantity = max(0.0, levels[idx].quantity - take)
