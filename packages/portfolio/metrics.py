"""Session performance summary and market statistics."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from itertools import groupby

import numpy as np
import numpy.typing as npt

from packages.common.types import Candle, MarketRegime, MarketStats, RealizedPnl


@dataclass
class TradeSummary:
    """Closed-trade outcome and equity statistics for one session."""

    closed_trades: int
    wins: int
    losses: int
    win_rate: float
    realized_pnl: float
    net_realized_pnl: float
    total_commission: float
    unrealized_pnl: float
    equity: float
    total_return: float
    max_drawdown: float
    max_drawdown_duration_ticks: int
    profit_factor: float


def compute_max_drawdown(equity_curve: npt.NDArray[np.float64]) -> tuple[float, int]:
    """Deepest fall below a running high, as a fraction of that high.

    The second value is the longest stretch of consecutive ticks spent
    under an earlier high.
    """
    equity = np.asarray(equity_curve, dtype=np.float64)
    if equity.size == 0:
        return 0.0, 0

    running_high = np.maximum.accumulate(equity)
    underwater = running_high - equity
    depth = np.divide(
        underwater, running_high, out=np.zeros_like(equity), where=running_high > 0
    )

    stretches = (sum(1 for _ in run) for below, run in groupby(underwater > 0) if below)
    return float(depth.max()), max(stretches, default=0)


def compute_profit_factor(trade_pnls: npt.NDArray[np.float64]) -> float:
    """Total won over total lost; inf with no losing trade, 0.0 with no winner."""
    won = float(np.clip(trade_pnls, 0.0, None).sum())
    lost = -float(np.clip(trade_pnls, None, 0.0).sum())
    if lost > 0:
        return won / lost
    return float("inf") if won > 0 else 0.0


def summarize_trades(
    realizations: Sequence[RealizedPnl],
    equity_curve: Sequence[float],
    initial_balance: float,
    equity: float,
    unrealized_pnl: float,
    total_commission: float,
) -> TradeSummary:
    """Aggregate realized lot closures and the per-tick equity curve."""
    net = np.array([r.net for r in realizations], dtype=np.float64)
    gross = float(sum(r.gross for r in realizations))
    wins = int(np.sum(net > 0))
    losses = int(np.sum(net < 0))
    curve = np.asarray(equity_curve, dtype=np.float64)
    max_dd, max_dd_duration = compute_max_drawdown(curve)

    return TradeSummary(
        closed_trades=len(realizations),
        wins=wins,
        losses=losses,
        win_rate=wins / len(realizations) if realizations else 0.0,
        realized_pnl=gross,
        net_realized_pnl=float(net.sum()) if len(net) else 0.0,
        total_commission=total_commission,
        unrealized_pnl=unrealized_pnl,
        equity=equity,
        total_return=equity / initial_balance - 1 if initial_balance > 0 else 0.0,
        max_drawdown=max_dd,
        max_drawdown_duration_ticks=max_dd_duration,
        profit_factor=compute_profit_factor(net),
    )


def market_stats(
    history: Sequence[Candle],
    regime: MarketRegime,
    sentiment: float,
    fallback_price: float,
) -> MarketStats:
    """High/low/volume/change over the retained candle window."""
    if not history:
        return MarketStats(
            last_price=fallback_price,
            high=fallback_price,
            low=fallback_price,
            volume=0.0,
            change=0.0,
            change_percent=0.0,
            regime=regime,
            sentiment=sentiment,
        )

    first_open = history[0].open
    last_close = history[-1].close
    change = last_close - first_open
    return MarketStats(
        last_price=last_close,
        high=max(c.high for c in history),
        low=min(c.low for c in history),
        volume=float(sum(c.volume for c in history)),
        change=change,
        change_percent=change / first_open * 100 if first_open > 0 else 0.0,
        regime=regime,
        sentiment=sentiment,
    )


def format_report(summary: TradeSummary, symbol: str = "NATLEE") -> str:
    """Format a session summary as a readable report."""
    s = summary
    lines = [
        f"{'=' * 50}",
        f"  Session Report: {symbol}",
        f"{'=' * 50}",
        f"  Equity:                {s.equity:>14,.2f}",
        f"  Total Return:          {s.total_return:>14.2%}",
        f"  Realized PnL (gross):  {s.realized_pnl:>14,.2f}",
        f"  Realized PnL (net):    {s.net_realized_pnl:>14,.2f}",
        f"  Unrealized PnL:        {s.unrealized_pnl:>14,.2f}",
        f"  Commission Paid:       {s.total_commission:>14,.2f}",
        f"  Max Drawdown:          {s.max_drawdown:>14.2%}",
        f"  Max DD Duration:       {s.max_drawdown_duration_ticks:>10d} ticks",
        f"  Closed Trades:         {s.closed_trades:>14d}",
        f"  Win Rate:              {s.win_rate:>14.2%}",
        f"  Profit Factor:         {s.profit_factor:>14.2f}",
        f"{'=' * 50}",
    ]
    return "\n".join(lines)
