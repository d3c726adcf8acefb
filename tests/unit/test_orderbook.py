"""Tests for the synthetic order book."""

from __future__ import annotations

import numpy as np
import pytest

from packages.common.config import OrderBookConfig
from packages.common.errors import BookInvariantError
from packages.common.types import OrderBookSnapshot, PriceLevel
from packages.market.orderbook import OrderBookSynthesizer, pressure_factors, verify_book
from packages.market.price_step import ceil_to_tick, floor_to_tick


def _make_synth(seed: int = 42, **overrides: object) -> OrderBookSynthesizer:
    return OrderBookSynthesizer(OrderBookConfig(**overrides), np.random.default_rng(seed))


class TestSynthesize:
    def test_ladder_invariants_across_prices(self) -> None:
        """Sorted, non-crossed, fixed depth for a wide range of mids and sentiments."""
        synth = _make_synth()
        for mid in (0.05, 0.5, 3.21, 50.0, 123.45, 9999.0):
            for sentiment in (0.0, 25.0, 50.0, 75.0, 100.0):
                book = synth.synthesize(mid, sentiment)
                verify_book(book, 15)
                assert book.best_bid < mid < book.best_ask

    def test_prices_on_tick_grid(self) -> None:
        """Prices are whole cents at normal price levels."""
        book = _make_synth().synthesize(50.0, 50.0)
        for level in book.bids + book.asks:
            assert level.price * 100 == pytest.approx(round(level.price * 100))

    def test_bids_floored_asks_ceiled(self) -> None:
        """Best prices straddle mid*(1 -/+ spread/2) after snapping."""
        book = _make_synth().synthesize(50.0, 50.0)
        assert book.best_bid <= 50.0 * (1 - 0.0005)
        assert book.best_ask >= 50.0 * (1 + 0.0005)

    def test_sizes_within_scaled_range(self) -> None:
        """Neutral sentiment keeps sizes within [size_min, size_max]."""
        book = _make_synth().synthesize(50.0, 50.0)
        for level in book.bids + book.asks:
            assert 10 <= level.quantity <= 100

    def test_bullish_sentiment_inflates_bids(self) -> None:
        """High sentiment puts more size on the bid side."""
        book = _make_synth().synthesize(50.0, 100.0)
        bid_depth = sum(level.quantity for level in book.bids)
        ask_depth = sum(level.quantity for level in book.asks)
        assert bid_depth > ask_depth

    def test_bearish_sentiment_inflates_asks(self) -> None:
        """Low sentiment puts more size on the ask side."""
        book = _make_synth().synthesize(50.0, 0.0)
        bid_depth = sum(level.quantity for level in book.bids)
        ask_depth = sum(level.quantity for level in book.asks)
        assert ask_depth > bid_depth

    def test_configured_depth(self) -> None:
        """Depth follows config."""
        book = _make_synth(depth=5).synthesize(50.0, 50.0)
        assert len(book.bids) == 5
        assert len(book.asks) == 5


class TestPressureFactors:
    def test_neutral(self) -> None:
        """Sentiment 50 leaves both sides unscaled."""
        assert pressure_factors(50.0, 0.5) == (1.0, 1.0)

    def test_extremes(self) -> None:
        """Full sentiment scales by 1 +/- strength."""
        assert pressure_factors(100.0, 0.5) == pytest.approx((1.5, 0.5))
        assert pressure_factors(0.0, 0.5) == pytest.approx((0.5, 1.5))


class TestVerifyBook:
    def test_well_formed_ladder_accepted(self) -> None:
        """Bids falling and asks rising away from the spread pass."""
        book = OrderBookSnapshot(
            bids=[PriceLevel(price=p, quantity=10) for p in (49.97, 49.95, 49.92)],
            asks=[PriceLevel(price=p, quantity=10) for p in (50.03, 50.05, 50.08)],
        )
        verify_book(book, 3)

    def test_unsorted_asks_rejected(self) -> None:
        book = OrderBookSnapshot(
            bids=[PriceLevel(price=49.5, quantity=10), PriceLevel(price=49.0, quantity=10)],
            asks=[PriceLevel(price=50.5, quantity=10), PriceLevel(price=50.0, quantity=10)],
        )
        with pytest.raises(BookInvariantError):
            verify_book(book, 2)

    def test_crossed_book_rejected(self) -> None:
        """best bid >= best ask is an invariant fault."""
        book = OrderBookSnapshot(
            bids=[PriceLevel(price=50.1, quantity=10)],
            asks=[PriceLevel(price=50.0, quantity=10)],
        )
        with pytest.raises(BookInvariantError):
            verify_book(book, 1)

    def test_unsorted_side_rejected(self) -> None:
        """Bids must strictly descend."""
        book = OrderBookSnapshot(
            bids=[PriceLevel(price=49.0, quantity=10), PriceLevel(price=49.5, quantity=10)],
            asks=[PriceLevel(price=50.0, quantity=10), PriceLevel(price=50.5, quantity=10)],
        )
        with pytest.raises(BookInvariantError):
            verify_book(book, 2)

    def test_wrong_depth_rejected(self) -> None:
        """Depth must match config."""
        book = OrderBookSnapshot(
            bids=[PriceLevel(price=49.0, quantity=10)],
            asks=[PriceLevel(price=50.0, quantity=10)],
        )
        with pytest.raises(BookInvariantError):
            verify_book(book, 3)


class TestTickGrid:
    def test_floor_and_ceil(self) -> None:
        assert floor_to_tick(49.987, 0.01) == 49.98
        assert ceil_to_tick(49.981, 0.01) == 49.99

    def test_on_grid_price_unchanged(self) -> None:
        """Float noise around an exact tick does not move the price."""
        assert floor_to_tick(50.0, 0.01) == 50.0
        assert ceil_to_tick(50.0, 0.01) == 50.0
        assert ceil_to_tick(0.1 + 0.2, 0.1) == 0.3
