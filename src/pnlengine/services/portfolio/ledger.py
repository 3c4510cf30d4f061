"""Trade ledger and lot matching.

Rebuilds lots from the full trade list on every call:

1. Partition trades by (account_id, symbol)
2. Sort each partition by executed_at, ties kept in input order
3. Buys open lots; sells consume them:
   - Linked sell: its buy lot first, any shortfall FIFO from the rest
   - Unlinked sell: FIFO
4. Inconsistencies (oversell, bad or exhausted link) become LedgerAnomaly
   records and WARNING logs; matching always completes

Matching is deterministic for a given trade sequence and keeps no state
between calls.
"""

from collections.abc import Iterable
from decimal import Decimal

from pnlengine.services.portfolio.lot_tracker import LotTracker
from pnlengine.services.portfolio.models import (
    LOT_EPSILON,
    AnomalyKind,
    LedgerAnomaly,
    Lot,
    LotMatch,
    MatchMethod,
    PositionLedger,
    Trade,
)
from pnlengine.system import LoggerFactory
from pnlengine.utilities.symbols import to_base_symbol

logger = LoggerFactory.get_logger()

LedgerKey = tuple[str, str]  # (account_id, symbol)


class TradeLedger:
    """
    Append-only view over executed trades.

    The ledger only reads trades; positions and matches are derived views.

    Example:
        >>> ledger = TradeLedger(trades)
        >>> btc = ledger.position("BTC")
        >>> [lot.remaining for lot in btc.open_lots]
    """

    def __init__(self, trades: Iterable[Trade], epsilon: Decimal = LOT_EPSILON) -> None:
        """
        Initialize ledger.

        Args:
            trades: Executed trades in any order
            epsilon: Remaining quantity below which a lot is closed

        Raises:
            ValueError: If two trades share an id
        """
        self._trades: tuple[Trade, ...] = tuple(trades)
        self._epsilon = epsilon

        seen: set[str] = set()
        for trade in self._trades:
            if trade.id in seen:
                raise ValueError(f"Duplicate trade id {trade.id}")
            seen.add(trade.id)

    @property
    def trades(self) -> tuple[Trade, ...]:
        return self._trades

    @property
    def epsilon(self) -> Decimal:
        return self._epsilon

    def keys(self) -> list[LedgerKey]:
        """(account_id, symbol) pairs present, in first-seen order."""
        keys: dict[LedgerKey, None] = {}
        for trade in self._trades:
            keys.setdefault((trade.account_id, trade.symbol), None)
        return list(keys)

    def position(self, symbol: str, account_id: str = "default") -> PositionLedger:
        """
        Match lots for one account and symbol.

        Args:
            symbol: Pair or base symbol
            account_id: Account

        Returns:
            PositionLedger (empty if no trades)
        """
        base = to_base_symbol(symbol)
        trades = [t for t in self._trades if t.symbol == base and t.account_id == account_id]
        return match_lots(account_id, base, trades, self._epsilon)

    def positions(self) -> list[PositionLedger]:
        """Match lots for every (account, symbol) pair."""
        partitions: dict[LedgerKey, list[Trade]] = {}
        for trade in self._trades:
            partitions.setdefault((trade.account_id, trade.symbol), []).append(trade)

        ledgers = [
            match_lots(account_id, symbol, trades, self._epsilon)
            for (account_id, symbol), trades in partitions.items()
        ]

        logger.debug(
            "ledger.rebuilt",
            trades=len(self._trades),
            ledgers=len(ledgers),
            anomalies=sum(len(ledger.anomalies) for ledger in ledgers),
        )
        return ledgers

    def open_lots(self, symbol: str | None = None) -> list[Lot]:
        """Open lots across ledgers, optionally for one symbol."""
        base = to_base_symbol(symbol) if symbol is not None else None
        return [
            lot
            for ledger in self.positions()
            if base is None or ledger.symbol == base
            for lot in ledger.open_lots
        ]


def sort_trades(trades: Iterable[Trade]) -> list[Trade]:
    """Sort by executed_at ascending; equal timestamps keep input order."""
    return sorted(trades, key=lambda trade: trade.executed_at)


def match_lots(
    account_id: str,
    symbol: str,
    trades: Iterable[Trade],
    epsilon: Decimal = LOT_EPSILON,
) -> PositionLedger:
    """
    Run lot matching over the trades of one (account, symbol) pair.

    Args:
        account_id: Account of the trades
        symbol: Base symbol of the trades
        trades: Trades of this pair, any order
        epsilon: Remaining quantity below which a lot is closed

    Returns:
        PositionLedger with open lots, matches and anomalies

    Raises:
        ValueError: If a trade belongs to another account or symbol
    """
    tracker = LotTracker(symbol, epsilon)
    matches: list[LotMatch] = []
    anomalies: list[LedgerAnomaly] = []
    sells: list[Trade] = []

    for trade in sort_trades(trades):
        if trade.symbol != symbol or trade.account_id != account_id:
            raise ValueError(
                f"Trade {trade.id} ({trade.account_id}/{trade.symbol}) does not belong to ledger {account_id}/{symbol}"
            )

        if trade.is_buy:
            tracker.add_lot(trade)
            continue

        sells.append(trade)
        matches.extend(_match_sell(tracker, trade, anomalies, epsilon))

    return PositionLedger(
        account_id=account_id,
        symbol=symbol,
        open_lots=tracker.get_lots(),
        closed_lot_count=tracker.closed_count(),
        matches=matches,
        anomalies=anomalies,
        sell_trades=sells,
    )


def _match_sell(
    tracker: LotTracker,
    sell: Trade,
    anomalies: list[LedgerAnomaly],
    epsilon: Decimal,
) -> list[LotMatch]:
    """Consume lots for one sell, appending any anomaly found."""
    results: list[LotMatch] = []
    remaining = sell.amount

    if sell.linked_buy_id is not None:
        linked = tracker.get_lot(sell.linked_buy_id)
        if linked is None or linked.entry_timestamp >= sell.executed_at:
            reason = "not in ledger" if linked is None else "executed at or after the sell"
            anomalies.append(
                _anomaly(
                    AnomalyKind.LINKED_LOT_NOT_FOUND,
                    sell,
                    sell.amount,
                    f"Linked buy {sell.linked_buy_id} {reason}; matched FIFO instead",
                )
            )
        else:
            for lot, taken in tracker.match_linked(linked.lot_id, remaining):
                results.append(_to_match(sell, lot, taken, MatchMethod.LINKED))
                remaining -= taken

            if remaining >= epsilon:
                anomalies.append(
                    _anomaly(
                        AnomalyKind.LINKED_LOT_SHORTFALL,
                        sell,
                        remaining,
                        f"Linked buy {sell.linked_buy_id} short by {remaining}; remainder matched FIFO",
                    )
                )

    if remaining >= epsilon:
        fifo_matches, unmatched = tracker.match_fifo(remaining)
        for lot, taken in fifo_matches:
            results.append(_to_match(sell, lot, taken, MatchMethod.FIFO))

        if unmatched > 0:
            anomalies.append(
                _anomaly(
                    AnomalyKind.OVERSELL,
                    sell,
                    unmatched,
                    f"Sold {sell.amount} {sell.symbol} but {unmatched} had no open lot",
                )
            )

    return results


def _to_match(sell: Trade, lot: Lot, quantity: Decimal, method: MatchMethod) -> LotMatch:
    return LotMatch(
        sell_trade_id=sell.id,
        lot_id=lot.lot_id,
        symbol=sell.symbol,
        quantity=quantity,
        entry_price=lot.entry_price,
        exit_price=sell.price,
        entry_fees=lot.entry_fees_for(quantity),
        exit_fees=sell.fees * (quantity / sell.amount),
        opened_at=lot.entry_timestamp,
        closed_at=sell.executed_at,
        method=method,
    )


def _anomaly(kind: AnomalyKind, sell: Trade, quantity: Decimal, message: str) -> LedgerAnomaly:
    logger.warning(
        f"lot_matcher.{kind.value}",
        trade_id=sell.id,
        account_id=sell.account_id,
        symbol=sell.symbol,
        quantity=str(quantity),
        linked_buy_id=sell.linked_buy_id,
    )
    return LedgerAnomaly(
        kind=kind,
        trade_id=sell.id,
        account_id=sell.account_id,
        symbol=sell.symbol,
        quantity=quantity,
        message=message,
    )
