"""Tests for session metrics and market statistics."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import numpy as np
import pytest

from packages.common.types import Candle, MarketRegime, RealizedPnl
from packages.portfolio.metrics import (
    compute_max_drawdown,
    compute_profit_factor,
    format_report,
    market_stats,
    summarize_trades,
)


def _make_realized(net: float, gross: float | None = None) -> RealizedPnl:
    gross = net if gross is None else gross
    return RealizedPnl(
        lot_id="LOT-0001",
        quantity=10.0,
        entry_price=10.0,
        exit_price=10.0 + gross / 10.0,
        gross=gross,
        fees=gross - net,
        net=net,
    )


def _make_candle(open_: float, close: float, i: int = 0, volume: float = 100.0) -> Candle:
    return Candle(
        open=open_,
        high=max(open_, close) + 1.0,
        low=min(open_, close) - 1.0,
        close=close,
        volume=volume,
        timestamp=datetime(2024, 1, 1, tzinfo=UTC) + timedelta(seconds=i),
    )


class TestMaxDrawdown:
    def test_monotonic_increase_zero_dd(self) -> None:
        equity = np.array([100.0, 110.0, 120.0, 130.0])
        dd, duration = compute_max_drawdown(equity)
        assert dd == pytest.approx(0.0)
        assert duration == 0

    def test_known_drawdown(self) -> None:
        # Peak at 120, trough at 90 -> 25% drawdown lasting one tick
        dd, duration = compute_max_drawdown(np.array([100.0, 120.0, 90.0, 130.0]))
        assert dd == pytest.approx(0.25)
        assert duration == 1

    def test_drawdown_duration(self) -> None:
        equity = np.array([100.0, 200.0, 190.0, 180.0, 195.0, 210.0])
        _, duration = compute_max_drawdown(equity)
        assert duration == 3

    def test_longest_of_several_stretches(self) -> None:
        """Two dips: the depth comes from the first, the duration from the second."""
        equity = np.array([100.0, 90.0, 100.0, 97.0, 96.0, 95.0, 101.0])
        dd, duration = compute_max_drawdown(equity)
        assert dd == pytest.approx(0.10)
        assert duration == 3

    def test_empty_equity(self) -> None:
        assert compute_max_drawdown(np.array([])) == (0.0, 0)


class TestProfitFactor:
    def test_all_gains(self) -> None:
        assert compute_profit_factor(np.array([5.0, 10.0])) == float("inf")

    def test_all_losses(self) -> None:
        assert compute_profit_factor(np.array([-5.0, -10.0])) == 0.0

    def test_known_ratio(self) -> None:
        assert compute_profit_factor(np.array([20.0, 10.0, -10.0])) == pytest.approx(3.0)


class TestSummarizeTrades:
    def test_counts_by_net_pnl(self) -> None:
        """A trade that is positive gross but negative after fees is a loss."""
        realizations = [_make_realized(50.0), _make_realized(-1.0, gross=2.0), _make_realized(20.0)]
        summary = summarize_trades(
            realizations,
            equity_curve=[1000.0, 1050.0, 1069.0],
            initial_balance=1000.0,
            equity=1069.0,
            unrealized_pnl=0.0,
            total_commission=3.0,
        )

        assert summary.closed_trades == 3
        assert summary.wins == 2
        assert summary.losses == 1
        assert summary.win_rate == pytest.approx(2 / 3)
        assert summary.realized_pnl == pytest.approx(72.0)
        assert summary.net_realized_pnl == pytest.approx(69.0)
        assert summary.total_return == pytest.approx(0.069)
        assert summary.profit_factor == pytest.approx(70.0)

    def test_no_trades(self) -> None:
        summary = summarize_trades(
            [],
            equity_curve=[1000.0],
            initial_balance=1000.0,
            equity=1000.0,
            unrealized_pnl=0.0,
            total_commission=0.0,
        )

        assert summary.closed_trades == 0
        assert summary.win_rate == 0.0
        assert summary.net_realized_pnl == 0.0
        assert summary.max_drawdown == 0.0


class TestMarketStats:
    def test_window_statistics(self) -> None:
        history = [
            _make_candle(50.0, 51.0, 0),
            _make_candle(51.0, 49.0, 1),
            _make_candle(49.0, 55.0, 2),
        ]
        stats = market_stats(history, MarketRegime.BULL, 60.0, fallback_price=0.0)

        assert stats.last_price == 55.0
        assert stats.high == 56.0
        assert stats.low == 48.0
        assert stats.volume == pytest.approx(300.0)
        assert stats.change == pytest.approx(5.0)
        assert stats.change_percent == pytest.approx(10.0)
        assert stats.regime == MarketRegime.BULL

    def test_empty_history_uses_fallback(self) -> None:
        stats = market_stats([], MarketRegime.CHOP, 50.0, fallback_price=50.0)

        assert stats.last_price == 50.0
        assert stats.change == 0.0
        assert stats.volume == 0.0


class TestFormatReport:
    def test_report_contents(self) -> None:
        summary = summarize_trades(
            [_make_realized(10.0)],
            equity_curve=[1000.0, 1010.0],
            initial_balance=1000.0,
            equity=1010.0,
            unrealized_pnl=0.0,
            total_commission=0.0,
        )
        report = format_report(summary, "NATLEE")

        assert "Session Report: NATLEE" in report
        assert "Closed Trades" in report
        assert "1.00%" in report
