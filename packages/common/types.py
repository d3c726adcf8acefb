"""Domain types for the NATLEE market simulator."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 (pydantic resolves it at runtime)
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Side(StrEnum):
    BUY = "buy"
    SELL = "sell"

    @property
    def sign(self) -> int:
        return 1 if self is Side.BUY else -1

    @property
    def opposite(self) -> Side:
        return Side.SELL if self is Side.BUY else Side.BUY


class OrderType(StrEnum):
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(StrEnum):
    SUBMITTED = "submitted"
    PENDING = "pending"
    PARTIAL = "partial"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED)


class MarketRegime(StrEnum):
    BULL = "BULL"
    BEAR = "BEAR"
    CHOP = "CHOP"


class ScenarioType(StrEnum):
    FLASH_CRASH = "flash_crash"
    NEWS_SPIKE = "news_spike"
    GOD_CANDLE = "god_candle"
    SHORT_SQUEEZE = "short_squeeze"
    DEAD_CAT = "dead_cat"
    STAIRCASE_UP = "staircase_up"
    STAIRCASE_DOWN = "staircase_down"


class RejectReason(StrEnum):
    INVALID_QUANTITY = "invalid_quantity"
    MISSING_LIMIT_PRICE = "missing_limit_price"
    INVALID_PRICE = "invalid_price"
    INVALID_LEVERAGE = "invalid_leverage"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NO_MARKET = "no_market"


class LookupFailure(StrEnum):
    NOT_FOUND = "not_found"
    ALREADY_TERMINAL = "already_terminal"


class Candle(BaseModel):
    model_config = ConfigDict(frozen=True)

    open: float
    high: float
    low: float
    close: float
    volume: float
    timestamp: datetime


class Scenario(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ScenarioType
    remaining: int = Field(ge=0)
    total_duration: int = Field(ge=1)

    @property
    def step(self) -> int:
        """Zero-based index of the tick about to be played."""
        return self.total_duration - self.remaining


class PriceLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: float
    quantity: float


class OrderBookSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    bids: list[PriceLevel]  # descending by price
    asks: list[PriceLevel]  # ascending by price
    timestamp: datetime | None = None

    @property
    def best_bid(self) -> float | None:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> float | None:
        return self.asks[0].price if self.asks else None

    @property
    def spread(self) -> float:
        if self.best_bid is None or self.best_ask is None:
            return 0.0
        return self.best_ask - self.best_bid

    @property
    def mid_price(self) -> float | None:
        if self.best_bid is None or self.best_ask is None:
            return None
        return (self.best_bid + self.best_ask) / 2

    def opposite_levels(self, side: Side) -> list[PriceLevel]:
        """Levels a taker on `side` trades against."""
        return self.asks if side is Side.BUY else self.bids


class OrderInput(BaseModel):
    side: Side
    type: OrderType = OrderType.MARKET
    quantity: float
    price: float | None = None
    leverage: float = 1.0


class Order(BaseModel):
    id: str
    timestamp: datetime
    side: Side
    order_type: OrderType
    quantity: float
    price: float | None = None
    leverage: float = 1.0
    status: OrderStatus = OrderStatus.SUBMITTED
    filled_qty: float = 0.0
    avg_fill_price: float | None = None
    commission: float = 0.0

    @property
    def remaining_qty(self) -> float:
        return self.quantity - self.filled_qty


class PendingOrder(BaseModel):
    order_id: str
    side: Side
    quantity: float
    remaining_quantity: float
    limit_price: float
    timestamp: datetime
    status: OrderStatus = OrderStatus.PENDING


class Trade(BaseModel):
    model_config = ConfigDict(frozen=True)

    trade_id: str
    order_id: str
    timestamp: datetime
    price: float
    quantity: float
    taker_side: Side


class FilledOrder(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    trade_id: str
    timestamp: datetime
    side: Side
    quantity: float
    price: float
    total: float
    commission: float


class HoldingLot(BaseModel):
    id: str
    price: float
    quantity: float  # signed: positive=long, negative=short
    timestamp: datetime
    original_quantity: float
    commission: float = 0.0


class Holding(BaseModel):
    symbol: str
    quantity: float = 0.0
    average_cost: float = 0.0
    market_value: float = 0.0
    unrealized_pnl: float = 0.0
    unrealized_pnl_percent: float = 0.0


class RealizedPnl(BaseModel):
    model_config = ConfigDict(frozen=True)

    lot_id: str
    quantity: float
    entry_price: float
    exit_price: float
    gross: float
    fees: float
    net: float


class OrderRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    trade_id: str | None = None
    timestamp: datetime
    symbol: str
    side: Side
    quantity: float
    price: float
    total: float
    commission: float
    status: OrderStatus
    pnl: float | None = None


class SubmitResult(BaseModel):
    order: Order | None = None
    fills: list[FilledOrder] = Field(default_factory=list)
    reason: RejectReason | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None


class CancelResult(BaseModel):
    order_id: str
    reason: LookupFailure | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


class CloseLotResult(BaseModel):
    lot_id: str
    realized: RealizedPnl | None = None
    reason: LookupFailure | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


class TrendDirection(StrEnum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class PatternSignal(StrEnum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class VolumeTrend(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    FLAT = "flat"


class BookImbalance(StrEnum):
    BUY_HEAVY = "buy_heavy"
    SELL_HEAVY = "sell_heavy"
    BALANCED = "balanced"


class Recommendation(StrEnum):
    LONG = "LONG"
    SHORT = "SHORT"
    HOLD = "HOLD"


class ScanState(StrEnum):
    IDLE = "idle"
    SCANNING = "scanning"
    ANALYZED = "analyzed"


class TrendAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: TrendDirection
    strength: float = Field(ge=0.0, le=100.0)
    description: str
    slope_pct: float = 0.0
    higher_highs: bool = False
    higher_lows: bool = False
    lower_highs: bool = False
    lower_lows: bool = False


class OrderBookAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    buy_pressure: float = Field(ge=0.0, le=100.0)
    sell_pressure: float = Field(ge=0.0, le=100.0)
    imbalance: BookImbalance
    spread_percent: float
    description: str


class MomentumAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    rsi: float = Field(ge=0.0, le=100.0)
    velocity: float
    acceleration: float
    volume_trend: VolumeTrend
    description: str


class PatternAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    detected: str | None = None
    signal: PatternSignal = PatternSignal.NEUTRAL
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    description: str


class OverallAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    recommendation: Recommendation
    confidence: float = Field(ge=0.0, le=100.0)
    reasons: list[str]


class AIDetailedAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    overall: OverallAnalysis
    trend: TrendAnalysis
    order_book: OrderBookAnalysis
    momentum: MomentumAnalysis
    pattern: PatternAnalysis


class MarketStats(BaseModel):
    last_price: float
    high: float
    low: float
    volume: float
    change: float
    change_percent: float
    regime: MarketRegime
    sentiment: float = Field(ge=0.0, le=100.0)
