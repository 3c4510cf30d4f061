"""Portfolio service interfaces (Protocol).

Defines the contracts between the accounting core and its collaborators:
- IPriceProvider: current-price lookup supplied by the caller
- IPortfolioService: valuation service consumed by reporting and the CLI
"""

from collections.abc import Sequence
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Protocol

from pnlengine.libraries.performance.models import TradeStatistics
from pnlengine.services.portfolio.models import (
    CloseMode,
    PooledPosition,
    PortfolioValuation,
    PositionLedger,
    PositionValuation,
    RealizedTrade,
    SellOrder,
    Trade,
)


class IPriceProvider(Protocol):
    """
    Current-price lookup.

    Implementations return None when no usable price is known; the core
    never substitutes zero for an unknown price.
    """

    def get_price(self, symbol: str) -> Decimal | None:
        """
        Get current price for a base symbol.

        Args:
            symbol: Base symbol (e.g., "BTC")

        Returns:
            Price, or None if unavailable
        """
        ...


class IPortfolioService(Protocol):
    """
    Portfolio valuation over a trade ledger snapshot.

    Every call recomputes from the trades passed in; implementations keep no
    state between calls.

    Example:
        >>> service: IPortfolioService = PortfolioService()
        >>> valuation = service.get_valuation(trades, {"BTC": Decimal("95000")})
        >>> valuation.totals.total_pnl_eur
    """

    def build_ledger(self, trades: Sequence[Trade]) -> list[PositionLedger]:
        """Match lots for every (account, symbol) pair."""
        ...

    def pooled_positions(self, trades: Sequence[Trade]) -> list[PooledPosition]:
        """Symbol-level summary of open lots."""
        ...

    def value_positions(
        self, trades: Sequence[Trade], prices: IPriceProvider, now: datetime | None = None
    ) -> list[PositionValuation]:
        """Unrealized P&L per open position and per lot."""
        ...

    def realized_trades(self, trades: Sequence[Trade]) -> list[RealizedTrade]:
        """Realized P&L per sell."""
        ...

    def trade_statistics(self, trades: Sequence[Trade]) -> TradeStatistics:
        """Win rate and profit factor over realized sells."""
        ...

    def get_valuation(
        self,
        trades: Sequence[Trade],
        prices: IPriceProvider,
        cash: Decimal = Decimal("0"),
        starting_capital: Decimal = Decimal("0"),
        network_fees: Decimal = Decimal("0"),
        now: datetime | None = None,
    ) -> PortfolioValuation:
        """Complete portfolio view at one price snapshot."""
        ...

    def plan_sell_orders(
        self,
        trades: Sequence[Trade],
        symbol: str,
        mode: CloseMode | str,
        prices: IPriceProvider | None = None,
        quantity: Decimal | None = None,
        lot_id: str | None = None,
        tp_threshold_pct: Decimal | None = None,
        min_hold: timedelta = timedelta(0),
        now: datetime | None = None,
        account_id: str = "default",
    ) -> list[SellOrder]:
        """Per-lot sell orders for a close decision."""
        ...
