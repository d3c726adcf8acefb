"""Trading session: the single owned context for one simulated market.

Per tick, in order: the regime engine emits a candle, the book is rebuilt
around its close, resting limit orders are re-matched, and the ledger is
marked to market. A tick runs to completion before anything else is
accepted. After an internal invariant fault the session refuses every
mutating call until `reset()`.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

import numpy as np

from packages.common.config import AppConfig
from packages.common.errors import (
    InvariantViolationError,
    SessionFaultedError,
    SessionStateError,
)
from packages.common.logging import get_logger
from packages.common.time_utils import SimulationClock
from packages.common.types import (
    AIDetailedAnalysis,
    Candle,
    CancelResult,
    CloseLotResult,
    FilledOrder,
    Holding,
    HoldingLot,
    LookupFailure,
    MarketRegime,
    MarketStats,
    OrderBookSnapshot,
    OrderInput,
    OrderRecord,
    OrderStatus,
    OrderType,
    PendingOrder,
    Scenario,
    ScanState,
    ScenarioType,
    Side,
    SubmitResult,
    Trade,
)
from packages.execution.matching_engine import MatchingEngine
from packages.market.orderbook import OrderBookSynthesizer
from packages.market.regime_engine import RegimeEngine
from packages.portfolio.ledger import PositionLedger
from packages.portfolio.metrics import TradeSummary, market_stats, summarize_trades
from packages.session.scanner import MarketScanner, ScanInputs
from packages.signals.analysis_engine import AnalysisEngine

logger = get_logger(__name__)


@dataclass(frozen=True)
class TickResult:
    candle: Candle
    book: OrderBookSnapshot
    fills: list[FilledOrder]
    holding: Holding


class TradingSession:
    """Owns config, PRNG, clock, every engine component and the audit log."""

    def __init__(self, config: AppConfig | None = None, seed: int | None = None) -> None:
        self._config = config or AppConfig()
        cfg = self._config
        self._seed = seed if seed is not None else cfg.market.seed
        self._rng = np.random.default_rng(self._seed)
        self._clock = SimulationClock()

        self._regime = RegimeEngine(cfg.market, self._rng, self._clock)
        self._synthesizer = OrderBookSynthesizer(cfg.order_book, self._rng)
        self._matching = MatchingEngine(
            clock=self._clock.now,
            commission_rate=cfg.trading.commission_rate,
            max_leverage=cfg.trading.max_leverage,
            max_trade_history=cfg.trading.max_trade_history,
            max_order_history=cfg.trading.max_order_history,
        )
        self._ledger = PositionLedger(cfg.market.symbol, cfg.trading.initial_balance)
        self._scanner = MarketScanner(
            AnalysisEngine(cfg.analysis),
            latency_seconds=cfg.analysis.scan_latency_seconds,
        )

        self._book: OrderBookSnapshot | None = None
        self._records: deque[OrderRecord] = deque(maxlen=cfg.trading.max_order_history)
        self._equity_curve: deque[float] = deque(
            [cfg.trading.initial_balance], maxlen=cfg.trading.max_equity_history
        )
        self._tick_in_progress = False
        self._fault: InvariantViolationError | None = None

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def symbol(self) -> str:
        return self._config.market.symbol

    @property
    def balance(self) -> float:
        return self._ledger.balance

    @property
    def price(self) -> float:
        return self._regime.price

    @property
    def regime(self) -> MarketRegime:
        return self._regime.regime

    @property
    def scenario(self) -> Scenario | None:
        return self._regime.scenario

    @property
    def history(self) -> list[Candle]:
        return self._regime.history

    @property
    def book(self) -> OrderBookSnapshot | None:
        return self._book

    @property
    def holding(self) -> Holding:
        return self._ledger.holding()

    @property
    def lots(self) -> list[HoldingLot]:
        return self._ledger.lots

    @property
    def pending_orders(self) -> list[PendingOrder]:
        return self._matching.pending_orders

    @property
    def trades(self) -> list[Trade]:
        return self._matching.trades

    @property
    def order_history(self) -> list[OrderRecord]:
        return list(self._records)

    @property
    def equity_curve(self) -> list[float]:
        return list(self._equity_curve)

    @property
    def scan_state(self) -> ScanState:
        return self._scanner.state

    @property
    def last_analysis(self) -> AIDetailedAnalysis | None:
        return self._scanner.last_analysis

    @property
    def faulted(self) -> bool:
        return self._fault is not None

    def sentiment(self) -> float:
        return self._regime.sentiment()

    def equity(self) -> float:
        return self._ledger.equity(self._regime.price)

    def market_stats(self) -> MarketStats:
        return market_stats(
            self._regime.history,
            regime=self._regime.regime,
            sentiment=self._regime.sentiment(),
            fallback_price=self._regime.price,
        )

    def trade_summary(self) -> TradeSummary:
        price = self._regime.price
        return summarize_trades(
            self._ledger.realizations,
            self._equity_curve,
            initial_balance=self._ledger.initial_balance,
            equity=self._ledger.equity(price),
            unrealized_pnl=self._ledger.unrealized_pnl(price),
            total_commission=self._ledger.total_commission,
        )

    def tick(self, dt: float | None = None) -> TickResult:
        """Advance the market one step."""
        self._ensure_writable()
        self._tick_in_progress = True
        try:
            candle = self._regime.advance(dt)
            book = self._synthesizer.synthesize(
                candle.close, self._regime.sentiment(), candle.timestamp
            )
            fills = self._matching.on_tick(book)
            for fill in fills:
                self._record_fill(fill)
            holding = self._ledger.mark_to_market(candle.close)
            self._book = book
            self._equity_curve.append(self._ledger.equity(candle.close))
        except InvariantViolationError as e:
            self._enter_fault(e)
            raise
        finally:
            self._tick_in_progress = False

        return TickResult(candle=candle, book=book, fills=fills, holding=holding)

    def order(
        self,
        side: Side,
        quantity: float,
        price: float | None = None,
        leverage: float | None = None,
    ) -> SubmitResult:
        """Shorthand: a limit order when `price` is given, otherwise market."""
        if leverage is None:
            leverage = self._config.trading.default_leverage
        return self.submit_order(
            OrderInput(
                side=side,
                type=OrderType.MARKET if price is None else OrderType.LIMIT,
                quantity=quantity,
                price=price,
                leverage=leverage,
            )
        )

    def submit_order(self, order_input: OrderInput) -> SubmitResult:
        self._ensure_writable()
        try:
            result = self._matching.submit(order_input, self._ledger.balance)
            for fill in result.fills:
                self._record_fill(fill)
        except InvariantViolationError as e:
            self._enter_fault(e)
            raise
        return result

    def cancel_order(self, order_id: str) -> CancelResult:
        self._ensure_writable()
        order = self._matching.get_order(order_id)
        result = self._matching.cancel(order_id)
        if not result.ok or order is None:
            logger.warning("cancel_failed", order_id=order_id, reason=result.reason)
            return result

        self._records.append(
            OrderRecord(
                order_id=order_id,
                timestamp=self._clock.now(),
                symbol=self.symbol,
                side=order.side,
                quantity=order.remaining_qty,
                price=order.price or 0.0,
                total=0.0,
                commission=0.0,
                status=OrderStatus.CANCELLED,
            )
        )
        return result

    def close_lot(self, lot_id: str) -> CloseLotResult:
        """Flatten one specific lot at market, ignoring FIFO order."""
        self._ensure_writable()
        lot = self._ledger.get_lot(lot_id)
        if lot is None:
            return CloseLotResult(lot_id=lot_id, reason=LookupFailure.NOT_FOUND)

        try:
            side = Side.SELL if lot.quantity > 0 else Side.BUY
            fill = self._matching.execute_market(side, abs(lot.quantity))
            result = self._ledger.close_lot(lot_id, fill.price, fill.commission)
        except InvariantViolationError as e:
            self._enter_fault(e)
            raise

        pnl = result.realized.gross if result.realized is not None else None
        self._records.append(self._fill_record(fill, pnl))
        return result

    def inject_scenario(self, scenario_type: ScenarioType) -> Scenario:
        self._ensure_writable()
        return self._regime.inject_scenario(scenario_type)

    async def start_scan(self) -> AIDetailedAnalysis | None:
        """Begin a delayed scan; None if one is already running or it was discarded."""
        self._ensure_not_faulted()
        return await self._scanner.start(self._scan_inputs)

    def scan_now(self) -> AIDetailedAnalysis | None:
        self._ensure_not_faulted()
        history, book, timestamp = self._scan_inputs()
        return self._scanner.scan_now(history, book, timestamp)

    def discard_scan(self) -> None:
        self._scanner.discard()

    def reset(self, seed: int | None = None) -> None:
        """Back to the initial balance with an empty book, ledger and tape.

        Also clears a fault. `seed` replaces the session seed when given.
        """
        if self._tick_in_progress:
            raise SessionStateError("reset requested during a tick")
        if seed is not None:
            self._seed = seed
        self._rng = np.random.default_rng(self._seed)
        self._clock.reset()
        self._regime.reset(self._rng)
        self._synthesizer.reseed(self._rng)
        self._matching.reset()
        self._ledger.reset()
        self._scanner.reset()
        self._book = None
        self._records.clear()
        self._equity_curve.clear()
        self._equity_curve.append(self._ledger.initial_balance)
        self._fault = None
        logger.info("session_reset", seed=self._seed)

    def _scan_inputs(self) -> ScanInputs:
        return self._regime.history, self._book, self._clock.now()

    def _record_fill(self, fill: FilledOrder) -> None:
        seen = len(self._ledger.realizations)
        self._ledger.apply_fill(fill)
        closed = self._ledger.realizations[seen:]
        pnl = sum(r.gross for r in closed) if closed else None
        self._records.append(self._fill_record(fill, pnl))

    def _fill_record(self, fill: FilledOrder, pnl: float | None) -> OrderRecord:
        order = self._matching.get_order(fill.order_id)
        status = order.status if order is not None else OrderStatus.FILLED
        return OrderRecord(
            order_id=fill.order_id,
            trade_id=fill.trade_id,
            timestamp=fill.timestamp,
            symbol=self.symbol,
            side=fill.side,
            quantity=fill.quantity,
            price=fill.price,
            total=fill.total,
            commission=fill.commission,
            status=status,
            pnl=pnl,
        )

    def _ensure_not_faulted(self) -> None:
        if self._fault is not None:
            raise SessionFaultedError(f"Session faulted: {self._fault}")

    def _ensure_writable(self) -> None:
        self._ensure_not_faulted()
        if self._tick_in_progress:
            raise SessionStateError("Tick in progress; retry after it completes")

    def _enter_fault(self, error: InvariantViolationError) -> None:
        self._fault = error
        logger.critical("session_faulted", error=str(error), error_type=type(error).__name__)
