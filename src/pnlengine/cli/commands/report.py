"""Portfolio report command."""

import json
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import click
from rich.console import Console

from pnlengine.cli.commands.options import DECIMAL, log_level_option, setup_logging
from pnlengine.cli.ui import (
    create_anomalies_table,
    create_lots_table,
    create_positions_table,
    create_realized_table,
    create_summary_table,
)
from pnlengine.services.portfolio import PortfolioService, TradeLoadError, load_prices, load_trades
from pnlengine.system import get_system_config

console = Console()


@click.command("report")
@click.argument("trades_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--prices",
    "-p",
    "prices_file",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Price snapshot (YAML/JSON mapping of symbol to price)",
)
@click.option(
    "--starting-capital", type=DECIMAL, default="0", show_default=True, help="Capital the portfolio started with"
)
@click.option("--cash", type=DECIMAL, default="0", show_default=True, help="Current cash balance")
@click.option("--network-fees", type=DECIMAL, default="0", show_default=True, help="Fees spent outside trades")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON instead of tables")
@log_level_option
def report_command(
    trades_file: Path,
    prices_file: Path,
    starting_capital: Decimal,
    cash: Decimal,
    network_fees: Decimal,
    as_json: bool,
    log_level: str | None,
):
    """
    Value a trade ledger at a price snapshot.

    Rebuilds open lots from TRADES_FILE (CSV or JSON), values them at the
    prices given, and reports unrealized, realized and total P&L. Positions
    without a price are listed but left out of the totals.

    \b
    Examples:
        pnlengine report trades.csv --prices prices.yaml
        pnlengine report trades.json -p prices.yaml --starting-capital 10000 --cash 2500
        pnlengine report trades.csv -p prices.yaml --json
    """
    setup_logging(log_level)

    try:
        trades = load_trades(trades_file)
        prices = load_prices(prices_file)
    except (TradeLoadError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    currency = get_system_config().accounting.reporting_currency
    service = PortfolioService()

    try:
        valuation = service.get_valuation(
            trades,
            prices,
            cash=cash,
            starting_capital=starting_capital,
            network_fees=network_fees,
            now=datetime.now(timezone.utc),
        )
        realized = service.realized_trades(trades)
        statistics = service.trade_statistics(trades)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if as_json:
        payload = {
            "currency": currency,
            "valuation": valuation.model_dump(mode="json"),
            "realized": [trade.model_dump(mode="json") for trade in realized],
            "statistics": statistics.model_dump(mode="json"),
        }
        click.echo(json.dumps(payload, indent=2))
        return

    console.print()
    console.print(f"[cyan]Loaded {len(trades)} trade(s) from[/cyan] {trades_file}")
    console.print()

    if valuation.positions:
        console.print(create_positions_table(valuation, currency))
        console.print(create_lots_table(valuation, currency))
    else:
        console.print("[yellow]No open positions[/yellow]")

    if realized:
        console.print(create_realized_table(realized, currency))

    console.print(create_summary_table(valuation, statistics, currency))

    if valuation.anomalies:
        console.print(create_anomalies_table(valuation.anomalies))
        console.print(f"[yellow]⚠ {len(valuation.anomalies)} ledger anomaly(ies) found[/yellow]")

    console.print()
