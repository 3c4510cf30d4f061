"""P&L library.

1. **Models** (`models.py`): PnlResult, RealizedPnl, PortfolioTotals, TotalPnl, TradeStatistics
2. **P&L** (`pnl.py`): unrealized P&L, cost basis, realized P&L
3. **Aggregation** (`aggregation.py`): portfolio totals, total portfolio P&L
4. **Metrics** (`metrics.py`): win rate, profit factor over realized results

All functions are pure: no I/O, no global state, Decimal throughout.

Usage:
    >>> from pnlengine.libraries.performance import aggregate_pnl, compute_unrealized_pnl
    >>> totals = aggregate_pnl([compute_unrealized_pnl(amount, cost, price) for amount, cost, price in rows])
"""

from pnlengine.libraries.performance.aggregation import (
    aggregate_pnl,
    compute_total_portfolio_pnl,
    compute_total_portfolio_value,
)
from pnlengine.libraries.performance.models import (
    PnlResult,
    PortfolioTotals,
    RealizedPnl,
    TotalPnl,
    TradeStatistics,
)
from pnlengine.libraries.performance.pnl import (
    compute_cost_basis,
    compute_realized_pnl,
    compute_unrealized_pnl,
    round_money,
)

__all__ = [
    "PnlResult",
    "PortfolioTotals",
    "RealizedPnl",
    "TotalPnl",
    "TradeStatistics",
    "aggregate_pnl",
    "compute_cost_basis",
    "compute_realized_pnl",
    "compute_total_portfolio_pnl",
    "compute_total_portfolio_value",
    "compute_unrealized_pnl",
    "round_money",
]
