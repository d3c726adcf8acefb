"""Order matching against the synthesized book snapshot.

Order lifecycle:
    submitted -> filled
    submitted -> pending/partial -> filled
    submitted -> pending/partial -> cancelled
    submitted -> rejected (never stored, returned as a reason)

Market orders walk the opposite side best-first and fill completely at the
walk's VWAP (depth beyond the ladder is assumed). Limit orders fill what is
at-or-better than the limit right away and rest the remainder until a later
snapshot crosses it. Resting orders are good-till-cancelled.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from datetime import datetime

from packages.common.errors import InvariantViolationError
from packages.common.logging import get_logger
from packages.common.types import (
    CancelResult,
    FilledOrder,
    LookupFailure,
    Order,
    OrderBookSnapshot,
    OrderInput,
    OrderStatus,
    OrderType,
    PendingOrder,
    RejectReason,
    Side,
    SubmitResult,
    Trade,
)
from packages.execution.book_walk import (
    QTY_EPSILON,
    LevelLiquidity,
    WalkResult,
    apply_walk,
    crosses,
    walk_levels,
)

logger = get_logger(__name__)


class MatchingEngine:
    """Accepts order intents, fills them against the book, keeps resting limits."""

    def __init__(
        self,
        clock: Callable[[], datetime],
        commission_rate: float = 0.0005,
        max_leverage: float = 10.0,
        max_trade_history: int = 1000,
        max_order_history: int = 1000,
    ) -> None:
        self._clock = clock
        self._commission_rate = commission_rate
        self._max_leverage = max_leverage
        self._max_orders = max_order_history
        self._orders: dict[str, Order] = {}
        self._pending: dict[str, PendingOrder] = {}
        self._trades: deque[Trade] = deque(maxlen=max_trade_history)
        self._book: OrderBookSnapshot | None = None
        self._liquidity: dict[Side, list[LevelLiquidity]] = {Side.BUY: [], Side.SELL: []}
        self._order_seq = 0
        self._trade_seq = 0

    @property
    def commission_rate(self) -> float:
        return self._commission_rate

    @property
    def book(self) -> OrderBookSnapshot | None:
        return self._book

    @property
    def trades(self) -> list[Trade]:
        return list(self._trades)

    @property
    def pending_orders(self) -> list[PendingOrder]:
        return list(self._pending.values())

    def get_order(self, order_id: str) -> Order | None:
        """Look up an order; None once a finished order has aged out."""
        return self._orders.get(order_id)

    def update_book(self, snapshot: OrderBookSnapshot) -> None:
        """Install a fresh snapshot; liquidity taken earlier in the tick is restored."""
        self._book = snapshot
        self._liquidity = {
            Side.BUY: LevelLiquidity.from_levels(snapshot.asks),
            Side.SELL: LevelLiquidity.from_levels(snapshot.bids),
        }

    def estimate_notional(self, order: OrderInput) -> float:
        if order.type is OrderType.LIMIT and order.price is not None:
            return order.quantity * order.price
        walk = walk_levels(self._liquidity[order.side], order.side, order.quantity, unbounded=True)
        return walk.notional

    def validate(self, order: OrderInput, balance: float) -> tuple[RejectReason | None, str]:
        """Synchronous pre-match checks. Returns (reason, message); reason None = accepted."""
        if not order.quantity > 0:
            return RejectReason.INVALID_QUANTITY, f"Quantity must be > 0, got {order.quantity}"

        if not 1.0 <= order.leverage <= self._max_leverage:
            return RejectReason.INVALID_LEVERAGE, (
                f"Leverage {order.leverage} outside [1, {self._max_leverage}]"
            )

        if order.type is OrderType.LIMIT:
            if order.price is None:
                return RejectReason.MISSING_LIMIT_PRICE, "Limit orders require a price"
            if order.price <= 0:
                return RejectReason.INVALID_PRICE, f"Limit price must be > 0, got {order.price}"

        if self._book is None or not self._book.bids or not self._book.asks:
            return RejectReason.NO_MARKET, "No order book snapshot available"

        if order.side is Side.BUY:
            notional = self.estimate_notional(order)
            required = notional / order.leverage + notional * self._commission_rate
            if balance < required:
                return RejectReason.INSUFFICIENT_BALANCE, (
                    f"Balance {balance:.2f} below required {required:.2f}"
                )

        return None, "accepted"

    def submit(self, order_input: OrderInput, balance: float) -> SubmitResult:
        """Validate, then match or rest an order."""
        reason, message = self.validate(order_input, balance)
        if reason is not None:
            logger.warning(
                "order_rejected",
                side=order_input.side.value,
                order_type=order_input.type.value,
                quantity=order_input.quantity,
                reason=reason.value,
                detail=message,
            )
            return SubmitResult(reason=reason, message=message)

        order = self._new_order(order_input)
        if order.order_type is OrderType.MARKET:
            fills = self._match_market(order)
        else:
            fills = self._match_limit(order)

        order = self._orders[order.id]
        logger.info(
            "order_submitted",
            order_id=order.id,
            side=order.side.value,
            order_type=order.order_type.value,
            quantity=order.quantity,
            status=order.status.value,
            filled_qty=order.filled_qty,
            avg_fill_price=order.avg_fill_price,
        )
        self._prune_orders()
        return SubmitResult(order=order, fills=fills, message=message)

    def execute_market(self, side: Side, quantity: float) -> FilledOrder:
        """Unconditional market fill, used to flatten a specific lot.

        Skips balance validation: closing exposure never needs buying power.
        """
        if self._book is None:
            raise RuntimeError("execute_market called before any book snapshot")
        order = self._new_order(OrderInput(side=side, type=OrderType.MARKET, quantity=quantity))
        fills = self._match_market(order)
        self._prune_orders()
        return fills[0]

    def cancel(self, order_id: str) -> CancelResult:
        order = self._orders.get(order_id)
        if order is None:
            return CancelResult(order_id=order_id, reason=LookupFailure.NOT_FOUND)
        if order.status.is_terminal:
            return CancelResult(order_id=order_id, reason=LookupFailure.ALREADY_TERMINAL)

        self._pending.pop(order_id, None)
        self._orders[order_id] = order.model_copy(update={"status": OrderStatus.CANCELLED})
        logger.info(
            "order_cancelled",
            order_id=order_id,
            filled_qty=order.filled_qty,
            remaining_qty=order.remaining_qty,
        )
        self._prune_orders()
        return CancelResult(order_id=order_id)

    def on_tick(self, snapshot: OrderBookSnapshot) -> list[FilledOrder]:
        """Re-evaluate every resting order against a new snapshot.

        Orders are visited in submission order, so an earlier order takes
        the displayed liquidity before a later one, whatever their limits.
        """
        self.update_book(snapshot)
        fills: list[FilledOrder] = []

        for pending in list(self._pending.values()):
            walk = walk_levels(
                self._liquidity[pending.side],
                pending.side,
                pending.remaining_quantity,
                limit_price=pending.limit_price,
            )
            if walk.quantity <= QTY_EPSILON:
                continue

            apply_walk(self._liquidity[pending.side], walk)
            fills.append(self._record_fill(pending.order_id, walk))
            remaining = pending.remaining_quantity - walk.quantity

            if remaining <= QTY_EPSILON:
                del self._pending[pending.order_id]
                logger.info("limit_order_filled", order_id=pending.order_id)
            else:
                self._pending[pending.order_id] = pending.model_copy(
                    update={"remaining_quantity": remaining, "status": OrderStatus.PARTIAL}
                )

        self._prune_orders()
        return fills

    def reset(self) -> None:
        self._orders.clear()
        self._pending.clear()
        self._trades.clear()
        self._book = None
        self._liquidity = {Side.BUY: [], Side.SELL: []}
        self._order_seq = 0
        self._trade_seq = 0

    def _prune_orders(self) -> None:
        """Forget the oldest finished orders beyond the history limit."""
        excess = len(self._orders) - self._max_orders
        if excess <= 0:
            return
        finished = [oid for oid, o in self._orders.items() if o.status.is_terminal]
        for order_id in finished[:excess]:
            del self._orders[order_id]

    def _new_order(self, order_input: OrderInput) -> Order:
        self._order_seq += 1
        now = self._clock()
        order = Order(
            id=f"ORD-{now:%Y%m%d}-{self._order_seq:04d}",
            timestamp=now,
            side=order_input.side,
            order_type=order_input.type,
            quantity=order_input.quantity,
            price=order_input.price if order_input.type is OrderType.LIMIT else None,
            leverage=order_input.leverage,
        )
        self._orders[order.id] = order
        return order

    def _match_market(self, order: Order) -> list[FilledOrder]:
        levels = self._liquidity[order.side]
        walk = walk_levels(levels, order.side, order.quantity, unbounded=True)
        apply_walk(levels, walk)
        return [self._record_fill(order.id, walk)]

    def _match_limit(self, order: Order) -> list[FilledOrder]:
        if order.price is None:
            raise InvariantViolationError(f"Limit order {order.id} has no price")
        levels = self._liquidity[order.side]
        fills: list[FilledOrder] = []

        if levels and crosses(order.side, levels[0].price, order.price):
            walk = walk_levels(levels, order.side, order.quantity, limit_price=order.price)
            if walk.quantity > QTY_EPSILON:
                apply_walk(levels, walk)
                fills.append(self._record_fill(order.id, walk))

        order = self._orders[order.id]
        if order.remaining_qty > QTY_EPSILON:
            status = OrderStatus.PARTIAL if fills else OrderStatus.PENDING
            self._orders[order.id] = order.model_copy(update={"status": status})
            self._pending[order.id] = PendingOrder(
                order_id=order.id,
                side=order.side,
                quantity=order.quantity,
                remaining_quantity=order.remaining_qty,
                limit_price=order.price,
                timestamp=order.timestamp,
                status=status,
            )
            logger.info(
                "limit_order_resting",
                order_id=order.id,
                limit_price=order.price,
                remaining_qty=order.remaining_qty,
            )
        return fills

    def _record_fill(self, order_id: str, walk: WalkResult) -> FilledOrder:
        """Emit one Trade and one FilledOrder and roll them into the order."""
        price = walk.vwap
        if price is None:
            raise InvariantViolationError(f"Fill for {order_id} matched no quantity")
        self._trade_seq += 1
        now = self._clock()
        order = self._orders[order_id]
        commission = walk.notional * self._commission_rate

        trade = Trade(
            trade_id=f"TRD-{self._trade_seq:06d}",
            order_id=order_id,
            timestamp=now,
            price=price,
            quantity=walk.quantity,
            taker_side=order.side,
        )
        self._trades.append(trade)

        filled_qty = order.filled_qty + walk.quantity
        prior_notional = (order.avg_fill_price or 0.0) * order.filled_qty
        avg_price = (prior_notional + walk.notional) / filled_qty
        done = order.quantity - filled_qty <= QTY_EPSILON
        status = OrderStatus.FILLED if done else OrderStatus.PARTIAL
        self._orders[order_id] = order.model_copy(
            update={
                "filled_qty": filled_qty,
                "avg_fill_price": avg_price,
                "commission": order.commission + commission,
                "status": status,
            }
        )

        return FilledOrder(
            order_id=order_id,
            trade_id=trade.trade_id,
            timestamp=now,
            side=order.side,
            quantity=walk.quantity,
            price=price,
            total=walk.notional,
            commission=commission,
        )
