"""P&L result data models.

Pydantic models returned by the calculator, aggregator and trade statistics.
None on a monetary field always means "cannot compute" (no usable price);
zero is a real result (breakeven).
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class PnlResult(BaseModel):
    """
    Unrealized P&L of one position or lot.

    Attributes:
        current_value: amount * current_price (None if unpriced)
        pnl_eur: current_value - cost_basis (None if unpriced)
        pnl_pct: pnl_eur / cost_basis * 100 (None if unpriced)
        has_price_data: Whether a usable price was available
    """

    current_value: Decimal | None
    pnl_eur: Decimal | None
    pnl_pct: Decimal | None
    has_price_data: bool

    model_config = ConfigDict(frozen=True)

    @classmethod
    def unavailable(cls) -> "PnlResult":
        """Result for a position whose P&L cannot be computed."""
        return cls(current_value=None, pnl_eur=None, pnl_pct=None, has_price_data=False)


class RealizedPnl(BaseModel):
    """
    Realized P&L of a closed lot or a sell.

    Attributes:
        purchase_value: Cost of the quantity sold
        exit_value: Proceeds of the quantity sold
        pnl_eur: Realized profit/loss
        pnl_pct: pnl_eur / purchase_value * 100 (None when purchase_value <= 0)
    """

    purchase_value: Decimal | None
    exit_value: Decimal | None
    pnl_eur: Decimal
    pnl_pct: Decimal | None

    model_config = ConfigDict(frozen=True)

    @property
    def is_winner(self) -> bool:
        """Realization was profitable."""
        return self.pnl_eur > Decimal("0")


class PortfolioTotals(BaseModel):
    """
    Totals across positions, priced positions only.

    Attributes:
        total_current_value: Sum of current_value over priced positions
        total_pnl_eur: Sum of pnl_eur over priced positions
        priced_cost_basis: Sum of (current_value - pnl_eur) over priced positions
        has_missing_prices: True if any position lacked price data
        missing_count: Number of positions without price data
    """

    total_current_value: Decimal
    total_pnl_eur: Decimal
    priced_cost_basis: Decimal
    has_missing_prices: bool
    missing_count: int

    model_config = ConfigDict(frozen=True)


class TotalPnl(BaseModel):
    """Whole-portfolio P&L against starting capital."""

    pnl_eur: Decimal
    pnl_pct: Decimal

    model_config = ConfigDict(frozen=True)


class TradeStatistics(BaseModel):
    """
    Summary of realized results.

    Attributes:
        trade_count: Number of realizations
        winning_trades: Realizations with pnl > 0
        losing_trades: Realizations with pnl < 0
        win_rate: winning / total * 100
        gross_profit: Sum of positive pnl
        gross_loss: Absolute sum of negative pnl
        profit_factor: gross_profit / gross_loss (None without losses)
        total_realized_pnl: Net sum of pnl
    """

    trade_count: int
    winning_trades: int
    losing_trades: int
    win_rate: Decimal
    gross_profit: Decimal
    gross_loss: Decimal
    profit_factor: Decimal | None
    total_realized_pnl: Decimal

    model_config = ConfigDict(frozen=True)
