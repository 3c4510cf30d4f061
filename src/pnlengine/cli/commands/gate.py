"""Profit gate command."""

import json
import sys
from dataclasses import asdict
from decimal import Decimal
from pathlib import Path

import click
from rich.console import Console

from pnlengine.cli.commands.options import DECIMAL, log_level_option, setup_logging
from pnlengine.cli.ui import create_decision_table
from pnlengine.libraries.risk import load_profit_gate_policy
from pnlengine.services.portfolio import PortfolioService, TradeLoadError, load_trades
from pnlengine.system import get_system_config

console = Console()


@click.command("gate")
@click.argument("trades_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--symbol", "-s", required=True, help="Symbol to sell (e.g., BTC or BTC-EUR)")
@click.option("--quantity", "-q", type=DECIMAL, required=True, help="Quantity to sell")
@click.option("--price", type=DECIMAL, required=True, help="Current price")
@click.option("--confidence", "-c", type=DECIMAL, default="0", show_default=True, help="Signal confidence [0, 1]")
@click.option("--account", default="default", show_default=True, help="Account selling")
@click.option("--policy", help="Profit gate policy name (default: risk.profit_gate_policy in system.yaml)")
@click.option("--json", "as_json", is_flag=True, help="Print the decision as JSON")
@log_level_option
def gate_command(
    trades_file: Path,
    symbol: str,
    quantity: Decimal,
    price: Decimal,
    confidence: Decimal,
    account: str,
    policy: str | None,
    as_json: bool,
    log_level: str | None,
):
    """
    Check whether selling QUANTITY of SYMBOL at PRICE clears the profit gate.

    The quantity is priced FIFO against the open lots rebuilt from
    TRADES_FILE. Exits with code 2 when the gate denies the sell.

    \b
    Examples:
        pnlengine gate trades.csv --symbol BTC --quantity 0.01 --price 95000
        pnlengine gate trades.csv -s ETH -q 0.5 --price 3100 -c 0.8 --policy conservative
    """
    setup_logging(log_level)

    risk = get_system_config().risk

    try:
        trades = load_trades(trades_file)
        gate_config = load_profit_gate_policy(policy or risk.profit_gate_policy, risk.custom_policies)
    except (TradeLoadError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    try:
        decision = PortfolioService().evaluate_exit(
            trades,
            symbol,
            quantity,
            {symbol: price},
            confidence=confidence,
            account_id=account,
            gate_config=gate_config,
        )
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(asdict(decision), indent=2))
    else:
        console.print(create_decision_table(decision))

    if not decision.allowed:
        sys.exit(2)
