"""Tests for VWAP book walking."""

from __future__ import annotations

import pytest

from packages.common.types import Side
from packages.execution.book_walk import LevelLiquidity, apply_walk, crosses, walk_levels


def _make_asks() -> list[LevelLiquidity]:
    return [
        LevelLiquidity(price=50.0, quantity=10),
        LevelLiquidity(price=50.1, quantity=20),
        LevelLiquidity(price=50.2, quantity=30),
    ]


class TestWalkLevels:
    def test_vwap_across_levels(self) -> None:
        """Quantity spanning two levels fills at their volume-weighted price."""
        result = walk_levels(_make_asks(), Side.BUY, 25)

        assert result.quantity == 25
        assert result.notional == pytest.approx(10 * 50.0 + 15 * 50.1)
        assert result.vwap == pytest.approx((500.0 + 751.5) / 25)

    def test_limit_stops_at_worse_levels(self) -> None:
        """Only levels at-or-better than the limit are taken."""
        result = walk_levels(_make_asks(), Side.BUY, 25, limit_price=50.05)
        assert result.quantity == 10
        assert result.vwap == pytest.approx(50.0)

    def test_limit_includes_equal_price(self) -> None:
        """A level exactly at the limit is executable."""
        result = walk_levels(_make_asks(), Side.BUY, 25, limit_price=50.1)
        assert result.quantity == 25

    def test_bounded_walk_caps_at_displayed_depth(self) -> None:
        """Without unbounded, the walk stops when the ladder runs out."""
        result = walk_levels(_make_asks(), Side.BUY, 100)
        assert result.quantity == 60

    def test_unbounded_fills_remainder_at_worst_price(self) -> None:
        """Market depth beyond the ladder fills at the last displayed price."""
        result = walk_levels(_make_asks(), Side.BUY, 70, unbounded=True)

        assert result.quantity == 70
        expected = 10 * 50.0 + 20 * 50.1 + 30 * 50.2 + 10 * 50.2
        assert result.notional == pytest.approx(expected)

    def test_nothing_crosses(self) -> None:
        """An unmarketable limit yields an empty walk."""
        result = walk_levels(_make_asks(), Side.BUY, 5, limit_price=49.0)
        assert result.quantity == 0
        assert result.vwap is None

    def test_apply_walk_depletes_levels(self) -> None:
        """Applied walks reduce displayed quantity."""
        levels = _make_asks()
        apply_walk(levels, walk_levels(levels, Side.BUY, 25))

        assert levels[0].quantity == 0
        assert levels[1].quantity == 5
        assert levels[2].quantity == 30

    def test_depleted_level_skipped(self) -> None:
        """A second walk starts after consumed levels."""
        levels = _make_asks()
        apply_walk(levels, walk_levels(levels, Side.BUY, 10))
        result = walk_levels(levels, Side.BUY, 5)
        assert result.vwap == pytest.approx(50.1)


class TestCrosses:
    def test_buy_side(self) -> None:
        """Buyers take asks at or below their limit."""
        assert crosses(Side.BUY, 50.0, 50.0)
        assert crosses(Side.BUY, 49.9, 50.0)
        assert not crosses(Side.BUY, 50.1, 50.0)

    def test_sell_side(self) -> None:
        """Sellers hit bids at or above their limit."""
        assert crosses(Side.SELL, 50.0, 50.0)
        assert crosses(Side.SELL, 50.1, 50.0)
        assert not crosses(Side.SELL, 49.9, 50.0)
