"""Portfolio accounting over an append-only trade ledger.

This module rebuilds lots from executed trades, matches sells to buy lots
(linked lot first, then FIFO), and values positions at a price snapshot.

Key components:
- PortfolioService: Valuation service (unrealized, realized, totals, exit gate)
- IPortfolioService, IPriceProvider: Protocol interfaces
- TradeLedger: Lot matching per (account, symbol)
- LotTracker: FIFO/linked lot consumption
- build_sell_orders: Per-lot sell orders for a close mode
- Models: Trade, Lot, LotMatch, LedgerAnomaly, PositionLedger, valuations

Example:
    >>> from pnlengine.services.portfolio import PortfolioService, Trade
    >>> from datetime import datetime, timezone
    >>> from decimal import Decimal
    >>>
    >>> trades = [
    ...     Trade(
    ...         id="b1",
    ...         side="buy",
    ...         symbol="BTC-EUR",
    ...         amount=Decimal("0.01"),
    ...         price=Decimal("89990"),
    ...         fees=Decimal("0.10"),
    ...         executed_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    ...     )
    ... ]
    >>> valuation = PortfolioService().get_valuation(trades, {"BTC": Decimal("95000")})
    >>> valuation.totals.total_pnl_eur
    Decimal('50.00')
"""

from pnlengine.services.portfolio.interface import IPortfolioService, IPriceProvider
from pnlengine.services.portfolio.ledger import TradeLedger, match_lots
from pnlengine.services.portfolio.loaders import TradeLoadError, load_prices, load_trades
from pnlengine.services.portfolio.lot_tracker import LotTracker
from pnlengine.services.portfolio.models import (
    LOT_EPSILON,
    AnomalyKind,
    CloseMode,
    LedgerAnomaly,
    Lot,
    LotMatch,
    LotValuation,
    MatchMethod,
    PooledPosition,
    PortfolioValuation,
    PositionLedger,
    PositionValuation,
    RealizedTrade,
    SellOrder,
    Trade,
    TradeSide,
)
from pnlengine.services.portfolio.prices import MappingPriceProvider, resolve_price_provider
from pnlengine.services.portfolio.sell_orders import build_sell_orders
from pnlengine.services.portfolio.service import PortfolioService

__all__ = [
    # Service
    "IPortfolioService",
    "IPriceProvider",
    "PortfolioService",
    # Ledger
    "TradeLedger",
    "LotTracker",
    "match_lots",
    "LOT_EPSILON",
    # Sell planning
    "CloseMode",
    "SellOrder",
    "build_sell_orders",
    # Prices and loading
    "MappingPriceProvider",
    "resolve_price_provider",
    "TradeLoadError",
    "load_trades",
    "load_prices",
    # Models
    "Trade",
    "TradeSide",
    "Lot",
    "LotMatch",
    "MatchMethod",
    "AnomalyKind",
    "LedgerAnomaly",
    "PositionLedger",
    "PooledPosition",
    "LotValuation",
    "PositionValuation",
    "RealizedTrade",
    "PortfolioValuation",
]
