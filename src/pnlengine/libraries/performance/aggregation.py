"""Portfolio aggregation functions.

Combine per-position results into portfolio totals. Positions without
price data are counted, never summed as zero.
"""

from collections.abc import Iterable
from decimal import Decimal

from pnlengine.libraries.performance.models import PnlResult, PortfolioTotals, TotalPnl
from pnlengine.libraries.performance.pnl import HUNDRED, round_money


def aggregate_pnl(positions: Iterable[PnlResult]) -> PortfolioTotals:
    """
    Aggregate P&L across positions.

    Cost basis of each priced position is derived as current_value - pnl_eur.
    Sums are accumulated unrounded and rounded once at the end.

    Args:
        positions: Per-position results

    Returns:
        PortfolioTotals over priced positions plus the missing-price count
    """
    total_current_value = Decimal("0")
    total_pnl_eur = Decimal("0")
    priced_cost_basis = Decimal("0")
    missing_count = 0

    for position in positions:
        if position.has_price_data and position.current_value is not None and position.pnl_eur is not None:
            total_current_value += position.current_value
            total_pnl_eur += position.pnl_eur
            priced_cost_basis += position.current_value - position.pnl_eur
        else:
            missing_count += 1

    return PortfolioTotals(
        total_current_value=round_money(total_current_value),
        total_pnl_eur=round_money(total_pnl_eur),
        priced_cost_basis=round_money(priced_cost_basis),
        has_missing_prices=missing_count > 0,
        missing_count=missing_count,
    )


def compute_total_portfolio_pnl(total_portfolio_value: Decimal, starting_capital: Decimal) -> TotalPnl:
    """
    Compute total portfolio P&L (realized + unrealized) vs starting capital.

    Percentage is 0 when there is no starting capital.

    Example:
        >>> compute_total_portfolio_pnl(Decimal("11000"), Decimal("10000")).pnl_pct
        Decimal('10.00')
    """
    pnl_eur = total_portfolio_value - starting_capital
    pnl_pct = pnl_eur / starting_capital * HUNDRED if starting_capital > 0 else Decimal("0")

    return TotalPnl(pnl_eur=round_money(pnl_eur), pnl_pct=round_money(pnl_pct))


def compute_total_portfolio_value(
    cash: Decimal,
    open_positions_value: Decimal,
    network_fees: Decimal = Decimal("0"),
) -> Decimal:
    """Total portfolio value: cash + open positions value - network fees spent."""
    return round_money(cash + open_positions_value - network_fees)
