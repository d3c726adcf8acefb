"""Order book pressure features from a synthesized snapshot."""

from __future__ import annotations

import numpy as np

from packages.common.types import BookImbalance, OrderBookAnalysis, OrderBookSnapshot


def depth_totals(book: OrderBookSnapshot) -> tuple[float, float]:
    """Cumulative displayed (bid, ask) quantity."""
    bid_depth = float(np.sum([level.quantity for level in book.bids]))
    ask_depth = float(np.sum([level.quantity for level in book.asks]))
    return bid_depth, ask_depth


class OrderbookFeatures:
    """Buy/sell pressure and imbalance classification.

    buy_pressure = bid depth / (bid + ask depth) * 100, and the book counts
    as buy-heavy when buy/sell pressure exceeds `imbalance_ratio` (sell-heavy
    below its reciprocal).
    """

    def __init__(self, imbalance_ratio: float = 1.5) -> None:
        self._imbalance_ratio = imbalance_ratio

    def analyze(self, book: OrderBookSnapshot) -> OrderBookAnalysis:
        bid_depth, ask_depth = depth_totals(book)
        total = bid_depth + ask_depth
        if total <= 0:
            return OrderBookAnalysis(
                buy_pressure=50.0,
                sell_pressure=50.0,
                imbalance=BookImbalance.BALANCED,
                spread_percent=0.0,
                description="Order book is empty",
            )

        buy_pressure = bid_depth / total * 100
        sell_pressure = 100.0 - buy_pressure

        spread_percent = 0.0
        if book.best_bid and book.best_ask:
            spread_percent = (book.best_ask - book.best_bid) / book.best_bid * 100

        ratio = buy_pressure / sell_pressure if sell_pressure > 0 else float("inf")
        if ratio > self._imbalance_ratio:
            imbalance = BookImbalance.BUY_HEAVY
            description = (
                f"Bids dominate ({buy_pressure:.0f}% vs {sell_pressure:.0f}%), buying pressure"
            )
        elif ratio < 1 / self._imbalance_ratio:
            imbalance = BookImbalance.SELL_HEAVY
            description = (
                f"Asks dominate ({sell_pressure:.0f}% vs {buy_pressure:.0f}%), selling pressure"
            )
        else:
            imbalance = BookImbalance.BALANCED
            description = "Bids and asks roughly balanced"

        return OrderBookAnalysis(
            buy_pressure=round(buy_pressure, 2),
            sell_pressure=round(sell_pressure, 2),
            imbalance=imbalance,
            spread_percent=round(spread_percent, 4),
            description=description,
        )
