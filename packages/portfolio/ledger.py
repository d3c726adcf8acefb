"""Lot-based position ledger for the single simulated symbol.

Each still-open entry is a HoldingLot with a signed quantity (long > 0,
short < 0). All open lots share one sign. Opposite fills consume lots
oldest-first (FIFO); `close_lot` flattens one named lot regardless of age.
The Holding view (quantity, average cost, unrealized PnL) is always derived
from the lot set, never stored.
"""

from __future__ import annotations

from packages.common.errors import LedgerInvariantError
from packages.common.logging import get_logger
from packages.common.types import (
    CloseLotResult,
    FilledOrder,
    Holding,
    HoldingLot,
    LookupFailure,
    RealizedPnl,
)

logger = get_logger(__name__)

LEDGER_EPSILON = 1e-6


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


class PositionLedger:
    """Cash, open lots and realized PnL for one symbol."""

    def __init__(self, symbol: str, initial_balance: float) -> None:
        self._symbol = symbol
        self._initial_balance = initial_balance
        self._balance = initial_balance
        self._lots: dict[str, HoldingLot] = {}  # insertion order == age order
        self._net_quantity = 0.0
        self._realized_pnl = 0.0
        self._fees = 0.0
        self._realizations: list[RealizedPnl] = []
        self._last_price: float | None = None
        self._lot_seq = 0

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def initial_balance(self) -> float:
        return self._initial_balance

    @property
    def realized_pnl(self) -> float:
        """Gross realized PnL, before commissions."""
        return self._realized_pnl

    @property
    def total_commission(self) -> float:
        return self._fees

    @property
    def realizations(self) -> list[RealizedPnl]:
        return list(self._realizations)

    @property
    def lots(self) -> list[HoldingLot]:
        return list(self._lots.values())

    @property
    def net_quantity(self) -> float:
        return self._net_quantity

    def get_lot(self, lot_id: str) -> HoldingLot | None:
        return self._lots.get(lot_id)

    def average_cost(self) -> float:
        """Weighted mean entry price of the open lots, recomputed from scratch."""
        total_qty = sum(abs(lot.quantity) for lot in self._lots.values())
        if total_qty <= LEDGER_EPSILON:
            return 0.0
        return sum(abs(lot.quantity) * lot.price for lot in self._lots.values()) / total_qty

    def unrealized_pnl(self, price: float) -> float:
        return sum((price - lot.price) * lot.quantity for lot in self._lots.values())

    def equity(self, price: float | None = None) -> float:
        mark = self._mark(price)
        return self._balance + self._net_quantity * mark

    def apply_fill(self, fill: FilledOrder) -> Holding:
        """Book one execution: add exposure, close FIFO, or reverse."""
        signed_qty = fill.side.sign * fill.quantity
        self._balance -= signed_qty * fill.price + fill.commission
        self._fees += fill.commission

        remaining = fill.quantity
        position_sign = _sign(self._net_quantity)

        if position_sign != 0 and position_sign != fill.side.sign:
            for lot_id in list(self._lots):
                if remaining <= LEDGER_EPSILON:
                    break
                remaining -= self._consume(lot_id, remaining, fill)

        if remaining > LEDGER_EPSILON:
            self._open_lot(fill, remaining)

        self._net_quantity += signed_qty
        if abs(self._net_quantity) <= LEDGER_EPSILON:
            self._net_quantity = 0.0
        self._verify()

        logger.info(
            "fill_applied",
            order_id=fill.order_id,
            side=fill.side.value,
            quantity=fill.quantity,
            price=fill.price,
            position=self._net_quantity,
            open_lots=len(self._lots),
        )
        return self.holding()

    def close_lot(
        self,
        lot_id: str,
        price: float,
        commission: float = 0.0,
    ) -> CloseLotResult:
        """Flatten exactly one lot at `price`, bypassing FIFO order."""
        lot = self._lots.get(lot_id)
        if lot is None:
            return CloseLotResult(lot_id=lot_id, reason=LookupFailure.NOT_FOUND)

        self._balance += lot.quantity * price - commission
        self._fees += commission

        realized = self._realize(lot, abs(lot.quantity), price, commission)
        del self._lots[lot_id]
        self._net_quantity -= lot.quantity
        if abs(self._net_quantity) <= LEDGER_EPSILON:
            self._net_quantity = 0.0
        self._verify()
        self.mark_to_market(price)

        logger.info("lot_closed", lot_id=lot_id, price=price, net_pnl=realized.net)
        return CloseLotResult(lot_id=lot_id, realized=realized)

    def mark_to_market(self, price: float) -> Holding:
        self._last_price = price
        return self.holding()

    def holding(self) -> Holding:
        if not self._lots:
            return Holding(symbol=self._symbol)

        price = self._mark()
        average_cost = self.average_cost()
        unrealized = self.unrealized_pnl(price)
        cost_basis = average_cost * abs(self._net_quantity)
        return Holding(
            symbol=self._symbol,
            quantity=self._net_quantity,
            average_cost=average_cost,
            market_value=self._net_quantity * price,
            unrealized_pnl=unrealized,
            unrealized_pnl_percent=unrealized / cost_basis * 100 if cost_basis > 0 else 0.0,
        )

    def reset(self, initial_balance: float | None = None) -> None:
        if initial_balance is not None:
            self._initial_balance = initial_balance
        self._balance = self._initial_balance
        self._lots.clear()
        self._net_quantity = 0.0
        self._realized_pnl = 0.0
        self._fees = 0.0
        self._realizations.clear()
        self._last_price = None
        self._lot_seq = 0

    def _mark(self, price: float | None = None) -> float:
        if price is not None:
            return price
        if self._last_price is not None:
            return self._last_price
        return self.average_cost()

    def _open_lot(self, fill: FilledOrder, quantity: float) -> None:
        self._lot_seq += 1
        lot = HoldingLot(
            id=f"LOT-{self._lot_seq:04d}",
            price=fill.price,
            quantity=fill.side.sign * quantity,
            timestamp=fill.timestamp,
            original_quantity=quantity,
            commission=fill.commission * quantity / fill.quantity,
        )
        self._lots[lot.id] = lot

    def _consume(self, lot_id: str, wanted: float, fill: FilledOrder) -> float:
        """Close up to `wanted` of one lot against `fill`. Returns quantity closed."""
        lot = self._lots[lot_id]
        lot_qty = abs(lot.quantity)
        take = min(wanted, lot_qty)
        exit_fee = fill.commission * take / fill.quantity
        self._realize(lot, take, fill.price, exit_fee)

        left = lot_qty - take
        if left <= LEDGER_EPSILON:
            del self._lots[lot_id]
        else:
            self._lots[lot_id] = lot.model_copy(
                update={
                    "quantity": _sign(lot.quantity) * left,
                    "commission": lot.commission * left / lot_qty,
                }
            )
        return take

    def _realize(
        self,
        lot: HoldingLot,
        quantity: float,
        exit_price: float,
        exit_fee: float,
    ) -> RealizedPnl:
        gross = (exit_price - lot.price) * quantity * _sign(lot.quantity)
        entry_fee = lot.commission * quantity / abs(lot.quantity)
        realized = RealizedPnl(
            lot_id=lot.id,
            quantity=quantity,
            entry_price=lot.price,
            exit_price=exit_price,
            gross=gross,
            fees=entry_fee + exit_fee,
            net=gross - entry_fee - exit_fee,
        )
        self._realized_pnl += gross
        self._realizations.append(realized)
        return realized

    def _verify(self) -> None:
        lot_sum = sum(lot.quantity for lot in self._lots.values())
        signs = {_sign(lot.quantity) for lot in self._lots.values()}

        problem: str | None = None
        if abs(lot_sum - self._net_quantity) > LEDGER_EPSILON:
            problem = f"lot sum {lot_sum} != position {self._net_quantity}"
        elif 0 in signs:
            problem = "zero-quantity lot persisted"
        elif len(signs) > 1:
            problem = "long and short lots open at once"

        if problem is not None:
            logger.critical(
                "ledger_invariant_violated",
                problem=problem,
                lot_sum=lot_sum,
                position=self._net_quantity,
            )
            raise LedgerInvariantError(problem)

