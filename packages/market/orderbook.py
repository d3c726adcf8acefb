"""Synthetic order book derived from the current price and sentiment.

This is a liquidity/presentation model, not a limit order book: there are
no resting third-party orders, and the whole ladder is regenerated every
tick from (mid price, sentiment). Nothing carries over between ticks.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import numpy as np

from packages.common.errors import BookInvariantError
from packages.common.logging import get_logger
from packages.common.types import OrderBookSnapshot, PriceLevel
from packages.market.price_step import ceil_to_tick, floor_to_tick

if TYPE_CHECKING:
    from packages.common.config import OrderBookConfig

logger = get_logger(__name__)


def pressure_factors(sentiment: float, strength: float) -> tuple[float, float]:
    """Size multipliers (bid, ask) for a 0-100 sentiment score.

    Sentiment above 50 inflates bids and deflates asks; below 50 the reverse.
    """
    bias = float(np.clip((sentiment - 50.0) / 50.0, -1.0, 1.0))
    return 1.0 + strength * bias, 1.0 - strength * bias


def verify_book(snapshot: OrderBookSnapshot, depth: int) -> None:
    """Raise BookInvariantError unless the ladder is sorted, sized and uncrossed."""
    bids = [level.price for level in snapshot.bids]
    asks = [level.price for level in snapshot.asks]

    if len(bids) != depth or len(asks) != depth:
        raise BookInvariantError(
            f"Expected depth {depth} per side, got {len(bids)} bids / {len(asks)} asks"
        )
    if any(b >= a for a, b in zip(bids, bids[1:])):
        raise BookInvariantError(f"Bids not strictly descending: {bids}")
    if any(b <= a for a, b in zip(asks, asks[1:])):
        raise BookInvariantError(f"Asks not strictly ascending: {asks}")
    if bids[-1] <= 0:
        raise BookInvariantError(f"Non-positive bid price: {bids[-1]}")
    if bids[0] >= asks[0]:
        raise BookInvariantError(f"Crossed book: best bid {bids[0]} >= best ask {asks[0]}")


class OrderBookSynthesizer:
    """Build a fixed-depth bid/ask ladder around a mid price."""

    def __init__(self, config: OrderBookConfig, rng: np.random.Generator) -> None:
        self._config = config
        self._rng = rng

    def reseed(self, rng: np.random.Generator) -> None:
        self._rng = rng

    def synthesize(
        self,
        mid_price: float,
        sentiment: float,
        timestamp: datetime | None = None,
    ) -> OrderBookSnapshot:
        cfg = self._config
        tick = self._effective_tick(mid_price)
        step = mid_price * cfg.level_step_percent
        half_spread = cfg.spread_percent / 2

        raw_bid = mid_price * (1.0 - half_spread)
        raw_ask = mid_price * (1.0 + half_spread)

        bid_factor, ask_factor = pressure_factors(sentiment, cfg.pressure_strength)
        bid_sizes = self._draw_sizes(bid_factor)
        ask_sizes = self._draw_sizes(ask_factor)

        bids = [
            PriceLevel(price=floor_to_tick(raw_bid - i * step, tick), quantity=bid_sizes[i])
            for i in range(cfg.depth)
        ]
        asks = [
            PriceLevel(price=ceil_to_tick(raw_ask + i * step, tick), quantity=ask_sizes[i])
            for i in range(cfg.depth)
        ]

        snapshot = OrderBookSnapshot(bids=bids, asks=asks, timestamp=timestamp)
        try:
            verify_book(snapshot, cfg.depth)
        except BookInvariantError:
            logger.critical("book_invariant_violated", mid_price=mid_price, tick=tick)
            raise
        return snapshot

    def _effective_tick(self, mid_price: float) -> float:
        # Level spacing must be at least one tick or neighbouring levels collapse.
        tick = self._config.price_tick
        level_gap = mid_price * self._config.level_step_percent
        while tick > level_gap and tick > 1e-8:
            tick /= 10
        return tick

    def _draw_sizes(self, factor: float) -> list[float]:
        cfg = self._config
        raw = self._rng.uniform(cfg.size_min, cfg.size_max, cfg.depth) * factor
        return [float(max(1.0, np.round(size))) for size in raw]
