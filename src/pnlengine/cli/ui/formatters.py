"""Rich table formatters for CLI output."""

from datetime import timedelta
from decimal import Decimal

from rich.table import Table

from pnlengine.libraries.performance import TradeStatistics, round_money
from pnlengine.libraries.risk import ExitDecision
from pnlengine.services.portfolio import LedgerAnomaly, PortfolioValuation, RealizedTrade

MISSING = "—"


def format_money(value: Decimal | None, currency: str = "EUR") -> str:
    """Format a monetary amount; None renders as a dash, never as zero."""
    if value is None:
        return MISSING
    return f"{value:,.2f} {currency}"


def format_pct(value: Decimal | None) -> str:
    if value is None:
        return MISSING
    return f"{value:+.2f}%"


def format_quantity(value: Decimal) -> str:
    """Quantity without trailing zeros (0.01000000 -> 0.01)."""
    normalized = value.normalize()
    if normalized == normalized.to_integral():
        return f"{normalized.quantize(Decimal('1'))}"
    return f"{normalized:f}"


def format_age(age: timedelta | None) -> str:
    """Lot age as days and hours (3d 4h), or hours and minutes under a day."""
    if age is None:
        return MISSING
    minutes = max(int(age.total_seconds() // 60), 0)
    days, minutes = divmod(minutes, 24 * 60)
    hours, minutes = divmod(minutes, 60)
    if days:
        return f"{days}d {hours}h"
    return f"{hours}h {minutes}m"


def _pnl_style(value: Decimal | None) -> str:
    if value is None:
        return "dim"
    if value > 0:
        return "green"
    if value < 0:
        return "red"
    return "white"


def create_positions_table(valuation: PortfolioValuation, currency: str = "EUR") -> Table:
    """
    Create a Rich table of open positions.

    Args:
        valuation: Portfolio valuation
        currency: Reporting currency label

    Returns:
        Table with one row per position
    """
    table = Table(title="Open Positions", show_header=True, header_style="bold cyan")
    table.add_column("Account", style="dim")
    table.add_column("Symbol", style="cyan", no_wrap=True)
    table.add_column("Amount", justify="right")
    table.add_column("Lots", justify="right")
    table.add_column("Cost Basis", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("P&L %", justify="right")

    for position in valuation.positions:
        style = _pnl_style(position.pnl.pnl_eur)
        table.add_row(
            position.account_id,
            position.symbol,
            format_quantity(position.amount),
            str(len(position.lots)),
            format_money(position.cost_basis, currency),
            format_money(position.current_price, currency),
            format_money(position.pnl.current_value, currency),
            f"[{style}]{format_money(position.pnl.pnl_eur, currency)}[/{style}]",
            f"[{style}]{format_pct(position.pnl.pnl_pct)}[/{style}]",
        )

    return table


def create_lots_table(valuation: PortfolioValuation, currency: str = "EUR") -> Table:
    """Create a Rich table of open lots, oldest first per position."""
    table = Table(title="Open Lots", show_header=True, header_style="bold cyan")
    table.add_column("Lot", style="yellow", no_wrap=True)
    table.add_column("Symbol", style="cyan")
    table.add_column("Opened", style="dim")
    table.add_column("Age", justify="right", style="dim")
    table.add_column("Remaining", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Cost Basis", justify="right")
    table.add_column("P&L", justify="right")

    for position in valuation.positions:
        for lot_valuation in position.lots:
            lot = lot_valuation.lot
            style = _pnl_style(lot_valuation.pnl.pnl_eur)
            table.add_row(
                lot.lot_id,
                lot.symbol,
                lot.entry_timestamp.strftime("%Y-%m-%d %H:%M"),
                format_age(lot_valuation.age),
                f"{format_quantity(lot.remaining)} / {format_quantity(lot.original_amount)}",
                format_money(lot.entry_price, currency),
                format_money(round_money(lot.cost_basis), currency),
                f"[{style}]{format_money(lot_valuation.pnl.pnl_eur, currency)}[/{style}]",
            )

    return table


def create_realized_table(realized: list[RealizedTrade], currency: str = "EUR") -> Table:
    """Create a Rich table of realized sells."""
    table = Table(title="Realized P&L", show_header=True, header_style="bold cyan")
    table.add_column("Sell", style="yellow", no_wrap=True)
    table.add_column("Symbol", style="cyan")
    table.add_column("Quantity", justify="right")
    table.add_column("Lots", style="dim")
    table.add_column("P&L", justify="right")
    table.add_column("P&L %", justify="right")
    table.add_column("Source", style="dim")

    for trade in realized:
        style = _pnl_style(trade.realized.pnl_eur)
        table.add_row(
            trade.sell_trade_id,
            trade.symbol,
            format_quantity(trade.quantity),
            ", ".join(match.lot_id for match in trade.matches) or MISSING,
            f"[{style}]{format_money(trade.realized.pnl_eur, currency)}[/{style}]",
            f"[{style}]{format_pct(trade.realized.pnl_pct)}[/{style}]",
            "snapshot" if trade.from_snapshot else "lots",
        )

    return table


def create_summary_table(
    valuation: PortfolioValuation,
    statistics: TradeStatistics,
    currency: str = "EUR",
) -> Table:
    """Create a two-column summary of portfolio totals and trade statistics."""
    table = Table(title="Portfolio Summary", show_header=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    totals = valuation.totals
    table.add_row("Positions Value", format_money(totals.total_current_value, currency))
    table.add_row("Priced Cost Basis", format_money(totals.priced_cost_basis, currency))
    table.add_row("Unrealized P&L", format_money(valuation.unrealized_pnl, currency))
    table.add_row("Realized P&L", format_money(valuation.realized_pnl, currency))
    table.add_row("Cash", format_money(valuation.cash, currency))
    if valuation.network_fees:
        table.add_row("Network Fees", format_money(valuation.network_fees, currency))
    table.add_row("Total Value", format_money(valuation.total_value, currency))
    table.add_row("Starting Capital", format_money(valuation.starting_capital, currency))
    table.add_row(
        "Total P&L",
        f"{format_money(valuation.total_pnl.pnl_eur, currency)} ({format_pct(valuation.total_pnl.pnl_pct)})",
    )
    table.add_row("Win Rate", f"{statistics.win_rate:.2f}% of {statistics.trade_count}")
    table.add_row(
        "Profit Factor",
        f"{statistics.profit_factor:.2f}" if statistics.profit_factor is not None else MISSING,
    )

    if totals.has_missing_prices:
        table.add_row(
            "Missing Prices",
            f"[yellow]{totals.missing_count} ({', '.join(valuation.missing_symbols)})[/yellow]",
        )

    return table


def create_anomalies_table(anomalies: list[LedgerAnomaly]) -> Table:
    """Create a Rich table of ledger anomalies."""
    table = Table(title="Ledger Anomalies", show_header=True, header_style="bold yellow")
    table.add_column("Kind", style="yellow", no_wrap=True)
    table.add_column("Trade", style="cyan")
    table.add_column("Symbol")
    table.add_column("Quantity", justify="right")
    table.add_column("Message", style="dim")

    for anomaly in anomalies:
        table.add_row(
            anomaly.kind.value,
            anomaly.trade_id,
            anomaly.symbol,
            format_quantity(anomaly.quantity),
            anomaly.message,
        )

    return table


def create_decision_table(decision: ExitDecision) -> Table:
    """Create a Rich table describing a profit gate decision."""
    verdict = "[bold green]ALLOW[/bold green]" if decision.allowed else "[bold red]DENY[/bold red]"

    table = Table(title="Profit Gate", show_header=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value")

    table.add_row("Decision", verdict)
    table.add_row("Reason", decision.reason)
    for key, value in decision.metadata.items():
        if isinstance(value, dict):
            value = ", ".join(f"{name}={'yes' if ok else 'no'}" for name, ok in value.items())
        table.add_row(key.replace("_", " ").title(), str(value))

    return table
