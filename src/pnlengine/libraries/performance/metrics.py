"""Realized trade statistics.

Pure functions over realized P&L values (one per closed lot portion or
per sell). Stateless, same inputs always give the same outputs.
"""

from collections.abc import Sequence
from decimal import Decimal

from pnlengine.libraries.performance.models import TradeStatistics
from pnlengine.libraries.performance.pnl import HUNDRED, round_money


def calculate_win_rate(pnls: Sequence[Decimal]) -> Decimal:
    """
    Calculate win rate percentage.

    Args:
        pnls: Realized P&L values

    Returns:
        Share of positive results as percentage (0 for no trades)

    Example:
        >>> calculate_win_rate([Decimal("10"), Decimal("-5"), Decimal("3"), Decimal("0")])
        Decimal('50.00')
    """
    if not pnls:
        return Decimal("0")

    winners = sum(1 for pnl in pnls if pnl > 0)
    return round_money(Decimal(winners) / Decimal(len(pnls)) * HUNDRED)


def calculate_profit_factor(pnls: Sequence[Decimal]) -> Decimal | None:
    """
    Calculate profit factor (gross profit / gross loss).

    Returns:
        Profit factor, or None if there are no losing results
    """
    gross_profit = sum((pnl for pnl in pnls if pnl > 0), start=Decimal("0"))
    gross_loss = abs(sum((pnl for pnl in pnls if pnl < 0), start=Decimal("0")))

    if gross_loss == 0:
        return None

    return round_money(gross_profit / gross_loss)


def summarize_realized(pnls: Sequence[Decimal]) -> TradeStatistics:
    """Build TradeStatistics from realized P&L values."""
    gross_profit = sum((pnl for pnl in pnls if pnl > 0), start=Decimal("0"))
    gross_loss = abs(sum((pnl for pnl in pnls if pnl < 0), start=Decimal("0")))

    return TradeStatistics(
        trade_count=len(pnls),
        winning_trades=sum(1 for pnl in pnls if pnl > 0),
        losing_trades=sum(1 for pnl in pnls if pnl < 0),
        win_rate=calculate_win_rate(pnls),
        gross_profit=round_money(gross_profit),
        gross_loss=round_money(gross_loss),
        profit_factor=calculate_profit_factor(pnls),
        total_realized_pnl=round_money(sum(pnls, start=Decimal("0"))),
    )
