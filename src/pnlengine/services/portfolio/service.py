"""Portfolio valuation service.

Single entry point for every consumer of the accounting core (CLI report,
profit gate, integrations). Each call:

1. Rebuilds lot ledgers from the trades passed in (TradeLedger)
2. Values open lots and positions at the supplied price snapshot
3. Aggregates priced positions, counting unpriced ones separately
4. Derives realized P&L per sell from its lot matches, or from the exit
   snapshot recorded on the sell when one exists

The service holds configuration only; no trade or price state survives
between calls.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from pnlengine.libraries.performance import (
    TradeStatistics,
    aggregate_pnl,
    compute_realized_pnl,
    compute_total_portfolio_pnl,
    compute_total_portfolio_value,
    compute_unrealized_pnl,
    round_money,
)
from pnlengine.libraries.performance.metrics import summarize_realized
from pnlengine.libraries.risk import ExitDecision, ProfitGateConfig, load_profit_gate_policy
from pnlengine.libraries.risk.tools import evaluate_exit
from pnlengine.services.portfolio.interface import IPriceProvider
from pnlengine.services.portfolio.ledger import TradeLedger
from pnlengine.services.portfolio.lot_tracker import LotTracker
from pnlengine.services.portfolio.models import (
    CloseMode,
    LotValuation,
    PooledPosition,
    PortfolioValuation,
    PositionLedger,
    PositionValuation,
    RealizedTrade,
    SellOrder,
    Trade,
)
from pnlengine.services.portfolio.prices import resolve_price_provider
from pnlengine.services.portfolio.sell_orders import build_sell_orders
from pnlengine.system import LoggerFactory, get_system_config
from pnlengine.system.config import AccountingConfig
from pnlengine.utilities.symbols import to_base_symbol

logger = LoggerFactory.get_logger()

Prices = IPriceProvider | Mapping[str, Any]


class PortfolioService:
    """
    Portfolio valuation over trade ledger snapshots.

    Example:
        >>> service = PortfolioService()
        >>> valuation = service.get_valuation(
        ...     trades,
        ...     {"BTC": Decimal("95000"), "ETH": None},
        ...     cash=Decimal("500"),
        ...     starting_capital=Decimal("1000"),
        ... )
        >>> valuation.totals.missing_count
        1
    """

    def __init__(self, config: AccountingConfig | None = None) -> None:
        """
        Initialize portfolio service.

        Args:
            config: Accounting settings (default: system config)
        """
        self._config = config if config is not None else get_system_config().accounting

    @property
    def config(self) -> AccountingConfig:
        return self._config

    # ==================== Ledger ====================

    def build_ledger(self, trades: Sequence[Trade]) -> list[PositionLedger]:
        """Match lots for every (account, symbol) pair."""
        return TradeLedger(trades, self._config.lot_epsilon).positions()

    def pooled_positions(self, trades: Sequence[Trade]) -> list[PooledPosition]:
        """
        Summarize open lots per (account, symbol).

        Returns:
            One PooledPosition per ledger with open quantity
        """
        pooled: list[PooledPosition] = []

        for ledger in self.build_ledger(trades):
            if not ledger.open_lots:
                continue

            quantity = ledger.open_quantity
            gross_cost = sum((lot.remaining * lot.entry_price for lot in ledger.open_lots), start=Decimal("0"))

            pooled.append(
                PooledPosition(
                    account_id=ledger.account_id,
                    symbol=ledger.symbol,
                    total_remaining=quantity,
                    cost_basis=round_money(ledger.cost_basis),
                    average_entry_price=round_money(gross_cost / quantity),
                    lot_count=len(ledger.open_lots),
                    oldest_entry=ledger.open_lots[0].entry_timestamp,
                    newest_entry=ledger.open_lots[-1].entry_timestamp,
                )
            )

        return pooled

    # ==================== Unrealized ====================

    def value_positions(
        self, trades: Sequence[Trade], prices: Prices, now: datetime | None = None
    ) -> list[PositionValuation]:
        """
        Value open positions and their lots at the price snapshot.

        Unpriced positions keep all-None P&L; they are never valued at zero.

        Args:
            trades: Trade ledger snapshot
            prices: Provider or {symbol: price} mapping
            now: Valuation instant for per-lot age (None leaves age unset)

        Returns:
            PositionValuation per ledger with open quantity
        """
        return self._value_ledgers(self.build_ledger(trades), resolve_price_provider(prices), now)

    def _value_ledgers(
        self, ledgers: Sequence[PositionLedger], provider: IPriceProvider, now: datetime | None = None
    ) -> list[PositionValuation]:
        valuations: list[PositionValuation] = []

        for ledger in ledgers:
            if not ledger.open_lots:
                continue

            price = provider.get_price(ledger.symbol)
            if price is None:
                logger.warning("valuation.price_missing", symbol=ledger.symbol, account_id=ledger.account_id)

            lots = [
                LotValuation(
                    lot=lot,
                    pnl=compute_unrealized_pnl(lot.remaining, lot.cost_basis, price),
                    age=now - lot.entry_timestamp if now is not None else None,
                )
                for lot in ledger.open_lots
            ]

            valuations.append(
                PositionValuation(
                    account_id=ledger.account_id,
                    symbol=ledger.symbol,
                    amount=ledger.open_quantity,
                    cost_basis=round_money(ledger.cost_basis),
                    current_price=price,
                    pnl=compute_unrealized_pnl(ledger.open_quantity, ledger.cost_basis, price),
                    lots=lots,
                )
            )

        return valuations

    # ==================== Realized ====================

    def realized_trades(self, trades: Sequence[Trade]) -> list[RealizedTrade]:
        """
        Realized P&L per sell, in execution order.

        A sell carrying an exit snapshot uses it; otherwise P&L is derived
        from the lots the sell consumed (fees included). A sell that matched
        no lot and has no snapshot has nothing to realize and is skipped;
        its oversell is reported as a ledger anomaly.

        Returns:
            RealizedTrade per sell
        """
        return self._realize_ledgers(self.build_ledger(trades))

    def _realize_ledgers(self, ledgers: Sequence[PositionLedger]) -> list[RealizedTrade]:
        realized: list[RealizedTrade] = []

        for ledger in ledgers:
            for sell in ledger.sell_trades:
                matches = ledger.matches_for_sell(sell.id)

                if sell.has_exit_snapshot:
                    result = compute_realized_pnl(sell.purchase_value, sell.exit_value, sell.realized_pnl)
                    quantity = sell.amount
                elif matches:
                    result = compute_realized_pnl(
                        sum((m.purchase_value for m in matches), start=Decimal("0")),
                        sum((m.exit_value for m in matches), start=Decimal("0")),
                    )
                    quantity = sum((m.quantity for m in matches), start=Decimal("0"))
                else:
                    continue

                realized.append(
                    RealizedTrade(
                        sell_trade_id=sell.id,
                        account_id=sell.account_id,
                        symbol=sell.symbol,
                        quantity=quantity,
                        executed_at=sell.executed_at,
                        realized=result,
                        from_snapshot=sell.has_exit_snapshot,
                        matches=matches,
                    )
                )

        realized.sort(key=lambda r: r.executed_at)
        return realized

    def trade_statistics(self, trades: Sequence[Trade]) -> TradeStatistics:
        """Win rate, profit factor and totals over realized sells."""
        return summarize_realized([r.realized.pnl_eur for r in self.realized_trades(trades)])

    # ==================== Portfolio ====================

    def get_valuation(
        self,
        trades: Sequence[Trade],
        prices: Prices,
        cash: Decimal = Decimal("0"),
        starting_capital: Decimal = Decimal("0"),
        network_fees: Decimal = Decimal("0"),
        now: datetime | None = None,
    ) -> PortfolioValuation:
        """
        Complete portfolio view at one price snapshot.

        Args:
            trades: Trade ledger snapshot
            prices: Provider or {symbol: price} mapping
            cash: Cash balance
            starting_capital: Capital the portfolio started with
            network_fees: Fees spent outside trades
            now: Valuation instant for per-lot age (None leaves age unset)

        Returns:
            PortfolioValuation
        """
        ledgers = self.build_ledger(trades)
        positions = self._value_ledgers(ledgers, resolve_price_provider(prices), now)
        totals = aggregate_pnl(position.pnl for position in positions)

        total_value = compute_total_portfolio_value(cash, totals.total_current_value, network_fees)
        realized = self._realize_ledgers(ledgers)
        anomalies = [anomaly for ledger in ledgers for anomaly in ledger.anomalies]

        valuation = PortfolioValuation(
            positions=positions,
            totals=totals,
            missing_symbols=[p.symbol for p in positions if not p.pnl.has_price_data],
            cash=cash,
            network_fees=network_fees,
            total_value=total_value,
            starting_capital=starting_capital,
            total_pnl=compute_total_portfolio_pnl(total_value, starting_capital),
            unrealized_pnl=totals.total_pnl_eur,
            realized_pnl=round_money(sum((r.realized.pnl_eur for r in realized), start=Decimal("0"))),
            anomalies=anomalies,
        )

        logger.info(
            "valuation.computed",
            trades=len(trades),
            positions=len(positions),
            missing_prices=totals.missing_count,
            anomalies=len(anomalies),
            total_value=str(total_value),
        )
        return valuation

    # ==================== Exit decisions ====================

    def evaluate_exit(
        self,
        trades: Sequence[Trade],
        symbol: str,
        quantity: Decimal,
        prices: Prices,
        confidence: Decimal = Decimal("0"),
        account_id: str = "default",
        gate_config: ProfitGateConfig | None = None,
    ) -> ExitDecision:
        """
        Run the profit gate for a proposed sell against the current open lots.

        The sell is priced with the same FIFO walk the ledger uses, on a
        tracker seeded from the open lots, so the purchase value the gate
        judges is the one the ledger will record once the sell executes.

        Args:
            trades: Trade ledger snapshot
            symbol: Symbol to sell
            quantity: Quantity to sell
            prices: Provider or {symbol: price} mapping
            confidence: Signal confidence [0, 1]
            account_id: Account selling
            gate_config: Gate thresholds (default: configured policy)

        Returns:
            ExitDecision
        """
        if gate_config is None:
            risk = get_system_config().risk
            gate_config = load_profit_gate_policy(risk.profit_gate_policy, risk.custom_policies)

        base = to_base_symbol(symbol)
        epsilon = self._config.lot_epsilon
        ledger = TradeLedger(trades, epsilon).position(base, account_id)
        fills, _ = LotTracker.from_lots(base, ledger.open_lots, epsilon).match_fifo(quantity)
        matched = sum((taken for _, taken in fills), start=Decimal("0"))
        purchase_value = sum((lot.purchase_value_for(taken) for lot, taken in fills), start=Decimal("0"))
        price = resolve_price_provider(prices).get_price(base)

        decision = evaluate_exit(quantity, matched, purchase_value, price, confidence, gate_config, epsilon)

        logger.info(
            "profit_gate.evaluated",
            symbol=base,
            account_id=account_id,
            quantity=str(quantity),
            allowed=decision.allowed,
            reason=decision.reason,
        )
        return decision


    # ==================== Sell planning ====================

    def plan_sell_orders(
        self,
        trades: Sequence[Trade],
        symbol: str,
        mode: CloseMode | str,
        prices: Prices | None = None,
        quantity: Decimal | None = None,
        lot_id: str | None = None,
        tp_threshold_pct: Decimal | None = None,
        min_hold: timedelta = timedelta(0),
        now: datetime | None = None,
        account_id: str = "default",
    ) -> list[SellOrder]:
        """
        Split a close decision into per-lot sell orders.

        Args:
            trades: Trade ledger snapshot
            symbol: Symbol to close
            mode: Close mode
            prices: Provider or {symbol: price} mapping (TP_SELECTIVE)
            quantity: Amount to sell, or cap on the amount
            lot_id: Lot to close (MANUAL_LOT)
            tp_threshold_pct: Per-lot P&L % threshold (default: the
                configured profit gate policy's take_profit_pct)
            min_hold: Minimum time since entry (TP_SELECTIVE)
            now: Valuation instant (TP_SELECTIVE)
            account_id: Account selling

        Returns:
            SellOrders, oldest lot first
        """
        mode = CloseMode(mode)
        base = to_base_symbol(symbol)
        ledger = TradeLedger(trades, self._config.lot_epsilon).position(base, account_id)

        price = None
        if mode is CloseMode.TP_SELECTIVE:
            if prices is not None:
                price = resolve_price_provider(prices).get_price(base)
            if tp_threshold_pct is None:
                risk = get_system_config().risk
                tp_threshold_pct = load_profit_gate_policy(
                    risk.profit_gate_policy, risk.custom_policies
                ).take_profit_pct

        return build_sell_orders(
            ledger.open_lots,
            mode,
            quantity=quantity,
            lot_id=lot_id,
            current_price=price,
            tp_threshold_pct=tp_threshold_pct,
            min_hold=min_hold,
            now=now,
            epsilon=self._config.lot_epsilon,
        )
