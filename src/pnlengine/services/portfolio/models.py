"""Data models for the portfolio service.

Defines the ledger entities:
- Trade: Immutable buy/sell record (the only input fact)
- Lot: A buy trade plus its remaining quantity
- LotMatch: The quantity of one lot consumed by one sell
- LedgerAnomaly: Ledger inconsistency found while matching
- PositionLedger: Matching result for one (account, symbol) pair
- SellOrder: Planned sale of part of one lot
- PooledPosition, LotValuation, PositionValuation, PortfolioValuation: Views
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pnlengine.libraries.performance.models import PnlResult, PortfolioTotals, RealizedPnl, TotalPnl
from pnlengine.utilities.symbols import to_base_symbol

LOT_EPSILON = Decimal("1e-8")


class TradeSide(str, Enum):
    """Side of a trade."""

    BUY = "buy"
    SELL = "sell"


class Trade(BaseModel):
    """
    Executed trade record.

    Created by the execution layer and never mutated. All lots, positions and
    P&L figures are recomputed from these.

    Attributes:
        id: Unique identifier
        side: Buy or sell
        symbol: Base symbol ("BTC-EUR" is normalized to "BTC")
        amount: Quantity of asset (> 0)
        price: Unit price at execution (> 0)
        fees: Transaction cost (>= 0)
        executed_at: Execution time, total order for lot matching
        linked_buy_id: Sell only - buy lot this sell closes first
        account_id: Owning account (ledgers are per account and symbol)
        strategy_id: Originating strategy (informational, not used for matching)
        purchase_value: Sell only - recorded cost of the quantity sold
        exit_value: Sell only - recorded proceeds
        realized_pnl: Sell only - recorded realized P&L

    Example:
        >>> trade = Trade(
        ...     id="t1",
        ...     side=TradeSide.BUY,
        ...     symbol="BTC-EUR",
        ...     amount=Decimal("0.01"),
        ...     price=Decimal("90000"),
        ...     executed_at=datetime(2025, 1, 1, 10, 0),
        ... )
        >>> trade.symbol
        'BTC'
    """

    id: str
    side: TradeSide
    symbol: str
    amount: Decimal
    price: Decimal
    fees: Decimal = Decimal("0")
    executed_at: datetime
    linked_buy_id: str | None = None
    account_id: str = "default"
    strategy_id: str | None = None

    # Exit snapshot recorded on sells
    purchase_value: Decimal | None = None
    exit_value: Decimal | None = None
    realized_pnl: Decimal | None = None

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v: Any) -> Any:
        """Accept "BUY"/"Sell" as well as enum values."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        """Normalize to base symbol."""
        return to_base_symbol(v)

    @field_validator("executed_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC so all trades order consistently."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Validate amount is positive."""
        if v <= 0:
            raise ValueError(f"Trade amount must be positive, got {v}")
        return v

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Decimal) -> Decimal:
        """Validate price is positive."""
        if v <= 0:
            raise ValueError(f"Trade price must be positive, got {v}")
        return v

    @field_validator("fees")
    @classmethod
    def validate_fees(cls, v: Decimal) -> Decimal:
        """Validate fees are non-negative."""
        if v < 0:
            raise ValueError(f"Trade fees cannot be negative, got {v}")
        return v

    @model_validator(mode="after")
    def validate_sell_only_fields(self) -> "Trade":
        """Lot links and exit snapshots only make sense on sells."""
        if self.side == TradeSide.BUY:
            if self.linked_buy_id is not None:
                raise ValueError(f"Buy trade {self.id} cannot link to another buy")
            if self.has_exit_snapshot:
                raise ValueError(f"Buy trade {self.id} cannot carry exit snapshot fields")
        elif self.linked_buy_id == self.id:
            raise ValueError(f"Sell trade {self.id} cannot link to itself")
        return self

    model_config = ConfigDict(frozen=True)  # Immutable after creation

    @property
    def is_buy(self) -> bool:
        return self.side == TradeSide.BUY

    @property
    def is_sell(self) -> bool:
        return self.side == TradeSide.SELL

    @property
    def has_exit_snapshot(self) -> bool:
        """Recorded realized P&L, or both purchase and exit value, are present."""
        return self.realized_pnl is not None or (self.purchase_value is not None and self.exit_value is not None)


class Lot(BaseModel):
    """
    A buy trade tracked as sells consume it.

    Attributes:
        trade: Originating buy trade
        remaining: Quantity not yet consumed (0 <= remaining <= trade.amount)
    """

    trade: Trade
    remaining: Decimal

    @model_validator(mode="after")
    def validate_lot(self) -> "Lot":
        """Lots come from buys and never go negative or above the bought amount."""
        if not self.trade.is_buy:
            raise ValueError(f"Lot must originate from a buy trade, got {self.trade.side.value} {self.trade.id}")
        if self.remaining < 0 or self.remaining > self.trade.amount:
            raise ValueError(f"Lot remaining {self.remaining} outside [0, {self.trade.amount}] for lot {self.trade.id}")
        return self

    model_config = ConfigDict(frozen=True)  # Consumption creates a new Lot

    @property
    def lot_id(self) -> str:
        return self.trade.id

    @property
    def symbol(self) -> str:
        return self.trade.symbol

    @property
    def account_id(self) -> str:
        return self.trade.account_id

    @property
    def entry_price(self) -> Decimal:
        return self.trade.price

    @property
    def entry_timestamp(self) -> datetime:
        return self.trade.executed_at

    @property
    def original_amount(self) -> Decimal:
        return self.trade.amount

    @property
    def sold_amount(self) -> Decimal:
        return self.trade.amount - self.remaining

    @property
    def remaining_fees(self) -> Decimal:
        """Entry fees attributable to the remaining quantity."""
        return self.entry_fees_for(self.remaining)

    @property
    def cost_basis(self) -> Decimal:
        """remaining * entry_price + proportional fees (unrounded)."""
        return self.purchase_value_for(self.remaining)

    def entry_fees_for(self, quantity: Decimal) -> Decimal:
        """Share of the buy fees carried by quantity (pro rata on the bought amount)."""
        return self.trade.fees * (quantity / self.trade.amount)

    def purchase_value_for(self, quantity: Decimal) -> Decimal:
        """Cost of quantity from this lot including its fee share (unrounded)."""
        return quantity * self.trade.price + self.entry_fees_for(quantity)

    def is_closed(self, epsilon: Decimal = LOT_EPSILON) -> bool:
        """Lot is closed once remaining falls below epsilon."""
        return self.remaining < epsilon


class MatchMethod(str, Enum):
    """How a sell portion was assigned to a lot."""

    LINKED = "linked"
    FIFO = "fifo"


class CloseMode(str, Enum):
    """Which open lots a planned sell closes."""

    TP_SELECTIVE = "tp_selective"  # lots individually past the take-profit threshold
    SL_FULL_FLUSH = "sl_full_flush"  # every lot, stop loss hit
    AUTO_CLOSE_ALL = "auto_close_all"  # every lot, time-based exit
    MANUAL_LOT = "manual_lot"  # one named lot
    MANUAL_SYMBOL = "manual_symbol"  # a quantity, FIFO


class SellOrder(BaseModel):
    """
    Planned sale of part of one lot.

    Executing the order as a sell linked to lot_id consumes exactly this lot.

    Attributes:
        lot_id: Buy lot being closed
        symbol: Base symbol
        amount: Quantity to sell from the lot
        entry_price: Lot entry price
        purchase_value: Cost of amount including its entry fee share (unrounded)
    """

    lot_id: str
    symbol: str
    amount: Decimal
    entry_price: Decimal
    purchase_value: Decimal

    model_config = ConfigDict(frozen=True)


class LotMatch(BaseModel):
    """
    Quantity of one buy lot consumed by one sell.

    Realized P&L of a sell traces to its matches: each records the lot,
    the quantity, and the entry/exit prices and fee shares.

    Attributes:
        sell_trade_id: Consuming sell
        lot_id: Consumed buy lot
        symbol: Base symbol
        quantity: Quantity consumed
        entry_price: Buy price of the lot
        exit_price: Sell price
        entry_fees: Buy fees attributable to quantity
        exit_fees: Sell fees attributable to quantity
        opened_at: Buy execution time
        closed_at: Sell execution time
        method: Linked or FIFO
    """

    sell_trade_id: str
    lot_id: str
    symbol: str
    quantity: Decimal
    entry_price: Decimal
    exit_price: Decimal
    entry_fees: Decimal = Decimal("0")
    exit_fees: Decimal = Decimal("0")
    opened_at: datetime
    closed_at: datetime
    method: MatchMethod

    model_config = ConfigDict(frozen=True)

    @property
    def purchase_value(self) -> Decimal:
        """Cost of the matched quantity including its share of buy fees."""
        return self.quantity * self.entry_price + self.entry_fees

    @property
    def exit_value(self) -> Decimal:
        """Proceeds of the matched quantity net of its share of sell fees."""
        return self.quantity * self.exit_price - self.exit_fees


class AnomalyKind(str, Enum):
    """Ledger inconsistencies detected while matching."""

    OVERSELL = "oversell"
    LINKED_LOT_SHORTFALL = "linked_lot_shortfall"
    LINKED_LOT_NOT_FOUND = "linked_lot_not_found"


class LedgerAnomaly(BaseModel):
    """
    Ledger inconsistency, reported instead of raised.

    Attributes:
        kind: Anomaly type
        trade_id: Sell trade that triggered it
        account_id: Account of the ledger
        symbol: Symbol of the ledger
        quantity: Quantity affected (unmatched, or diverted to FIFO)
        message: Human-readable description
    """

    kind: AnomalyKind
    trade_id: str
    account_id: str
    symbol: str
    quantity: Decimal
    message: str

    model_config = ConfigDict(frozen=True)


class PositionLedger(BaseModel):
    """
    Lot matching result for one (account, symbol) pair.

    Attributes:
        account_id: Account
        symbol: Base symbol
        open_lots: Open lots, oldest first
        closed_lot_count: Number of fully consumed buy lots
        matches: Lot consumptions, in sell order
        anomalies: Inconsistencies found
        sell_trades: Sells of this ledger, chronological
    """

    account_id: str
    symbol: str
    open_lots: list[Lot] = Field(default_factory=list)
    closed_lot_count: int = 0
    matches: list[LotMatch] = Field(default_factory=list)
    anomalies: list[LedgerAnomaly] = Field(default_factory=list)
    sell_trades: list[Trade] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def open_quantity(self) -> Decimal:
        return sum((lot.remaining for lot in self.open_lots), start=Decimal("0"))

    @property
    def cost_basis(self) -> Decimal:
        """Cost basis of all open lots (unrounded)."""
        return sum((lot.cost_basis for lot in self.open_lots), start=Decimal("0"))

    @property
    def unmatched_quantity(self) -> Decimal:
        """Total oversold quantity that found no lot."""
        return sum(
            (a.quantity for a in self.anomalies if a.kind == AnomalyKind.OVERSELL),
            start=Decimal("0"),
        )

    @property
    def has_anomalies(self) -> bool:
        return len(self.anomalies) > 0

    def matches_for_sell(self, sell_trade_id: str) -> list[LotMatch]:
        """Matches produced by one sell."""
        return [m for m in self.matches if m.sell_trade_id == sell_trade_id]


class PooledPosition(BaseModel):
    """
    Symbol-level summary of open lots.

    Attributes:
        account_id: Account
        symbol: Base symbol
        total_remaining: Sum of remaining quantity
        cost_basis: Cost basis of remaining quantity (rounded)
        average_entry_price: Quantity-weighted entry price
        lot_count: Number of open lots
        oldest_entry: Entry time of the oldest open lot
        newest_entry: Entry time of the newest open lot
    """

    account_id: str
    symbol: str
    total_remaining: Decimal
    cost_basis: Decimal
    average_entry_price: Decimal
    lot_count: int
    oldest_entry: datetime
    newest_entry: datetime

    model_config = ConfigDict(frozen=True)


class LotValuation(BaseModel):
    """Open lot valued at the symbol's current price.

    age is the time since entry at the valuation instant, None when the
    caller did not supply one.
    """

    lot: Lot
    pnl: PnlResult
    age: timedelta | None = None

    model_config = ConfigDict(frozen=True)


class PositionValuation(BaseModel):
    """
    Open position valued at the current price.

    Attributes:
        account_id: Account
        symbol: Base symbol
        amount: Open quantity
        cost_basis: Cost basis of open quantity (rounded)
        current_price: Price used, None if unavailable
        pnl: Position-level unrealized P&L
        lots: Per-lot valuations, oldest first
    """

    account_id: str
    symbol: str
    amount: Decimal
    cost_basis: Decimal
    current_price: Decimal | None
    pnl: PnlResult
    lots: list[LotValuation] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class RealizedTrade(BaseModel):
    """Realized P&L of one sell, with the lot matches it came from."""

    sell_trade_id: str
    account_id: str
    symbol: str
    quantity: Decimal
    executed_at: datetime
    realized: RealizedPnl
    from_snapshot: bool
    matches: list[LotMatch] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class PortfolioValuation(BaseModel):
    """
    Complete portfolio view at one price snapshot.

    Attributes:
        positions: Open positions
        totals: Aggregated unrealized totals (priced positions only)
        missing_symbols: Symbols without a usable price
        cash: Cash balance supplied by the caller
        network_fees: Fees spent outside trades (e.g., gas)
        total_value: cash + priced positions value - network_fees
        starting_capital: Capital the portfolio started with
        total_pnl: total_value vs starting_capital
        unrealized_pnl: totals.total_pnl_eur
        realized_pnl: Sum of realized P&L over all sells
        anomalies: Ledger inconsistencies across all ledgers
    """

    positions: list[PositionValuation]
    totals: PortfolioTotals
    missing_symbols: list[str]
    cash: Decimal
    network_fees: Decimal
    total_value: Decimal
    starting_capital: Decimal
    total_pnl: TotalPnl
    unrealized_pnl: Decimal
    realized_pnl: Decimal
    anomalies: list[LedgerAnomaly] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def has_missing_prices(self) -> bool:
        return self.totals.has_missing_prices
