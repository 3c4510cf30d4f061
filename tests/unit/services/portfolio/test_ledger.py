"""Unit tests for the trade ledger and lot matching."""

import logging
from decimal import Decimal

import pytest

from pnlengine.services.portfolio.ledger import TradeLedger, match_lots, sort_trades
from pnlengine.services.portfolio.models import LOT_EPSILON, AnomalyKind, MatchMethod


def remaining_by_lot(ledger) -> dict[str, Decimal]:
    return {lot.lot_id: lot.remaining for lot in ledger.open_lots}


class TestOrdering:
    """Test chronological, stable ordering."""

    def test_sorts_by_execution_time(self, make_trade) -> None:
        trades = [
            make_trade("s1", "sell", "1", "120", minutes=5),
            make_trade("b2", "buy", "1", "110", minutes=2),
            make_trade("b1", "buy", "1", "100", minutes=1),
        ]

        assert [t.id for t in sort_trades(trades)] == ["b1", "b2", "s1"]

    def test_equal_timestamps_keep_input_order(self, make_trade) -> None:
        trades = [
            make_trade("b2", "buy", "1", "110", minutes=0),
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("s1", "sell", "1", "120", minutes=0),
        ]

        ledger = match_lots("default", "BTC", trades)

        # b2 came first in the input, so FIFO consumes it first
        assert remaining_by_lot(ledger) == {"b1": Decimal("1")}

    def test_input_order_irrelevant_otherwise(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "1", "110", minutes=1),
            make_trade("s1", "sell", "1.5", "120", minutes=2),
        ]

        forward = match_lots("default", "BTC", trades)
        backward = match_lots("default", "BTC", list(reversed(trades)))

        assert forward == backward


class TestFifoMatching:
    """Test FIFO matching of unlinked sells."""

    def test_sell_consumes_oldest_first(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "2", "110", minutes=1),
            make_trade("s1", "sell", "1.5", "120", minutes=2),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b2": Decimal("1.5")}
        assert ledger.closed_lot_count == 1
        assert [(m.lot_id, m.quantity, m.method) for m in ledger.matches] == [
            ("b1", Decimal("1"), MatchMethod.FIFO),
            ("b2", Decimal("0.5"), MatchMethod.FIFO),
        ]
        assert ledger.anomalies == []

    def test_conservation(self, make_trade) -> None:
        """Open remaining plus consumed equals bought, within epsilon."""
        buys = [
            make_trade("b1", "buy", "0.12345678", "100", minutes=0),
            make_trade("b2", "buy", "0.3", "101", minutes=1),
            make_trade("b3", "buy", "1.7", "99", minutes=2),
            make_trade("b4", "buy", "0.00000003", "98", minutes=3),
        ]
        sells = [
            make_trade("s1", "sell", "0.2", "105", minutes=4),
            make_trade("s2", "sell", "0.1", "106", minutes=5),
            make_trade("s3", "sell", "0.77777777", "107", minutes=6),
        ]

        ledger = match_lots("default", "BTC", buys + sells)

        bought = sum(t.amount for t in buys)
        consumed = sum(m.quantity for m in ledger.matches)
        assert abs(ledger.open_quantity + consumed - bought) < LOT_EPSILON
        assert consumed == sum(t.amount for t in sells)

    def test_sell_before_any_buy_is_oversell(self, make_trade) -> None:
        trades = [
            make_trade("s1", "sell", "1", "120", minutes=0),
            make_trade("b1", "buy", "1", "100", minutes=1),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b1": Decimal("1")}
        assert [a.kind for a in ledger.anomalies] == [AnomalyKind.OVERSELL]


class TestLinkedMatching:
    """Test sells that name the buy lot they close."""

    def test_linked_lot_consumed_first(self, make_trade) -> None:
        """The linked lot goes first even when an older lot is open."""
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "1", "110", minutes=1),
            make_trade("s1", "sell", "1", "120", minutes=2, linked_buy_id="b2"),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b1": Decimal("1")}
        assert ledger.matches[0].lot_id == "b2"
        assert ledger.matches[0].method == MatchMethod.LINKED
        assert ledger.anomalies == []

    def test_partial_linked_sell(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "1", "110", minutes=1),
            make_trade("s1", "sell", "0.4", "120", minutes=2, linked_buy_id="b2"),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b1": Decimal("1"), "b2": Decimal("0.6")}

    def test_shortfall_falls_back_to_fifo(self, make_trade) -> None:
        """Excess over the linked lot comes from the FIFO queue and is flagged."""
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "1", "110", minutes=1),
            make_trade("s1", "sell", "1.5", "120", minutes=2, linked_buy_id="b2"),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b1": Decimal("0.5")}
        assert [(m.lot_id, m.quantity, m.method) for m in ledger.matches] == [
            ("b2", Decimal("1"), MatchMethod.LINKED),
            ("b1", Decimal("0.5"), MatchMethod.FIFO),
        ]
        assert len(ledger.anomalies) == 1
        assert ledger.anomalies[0].kind == AnomalyKind.LINKED_LOT_SHORTFALL
        assert ledger.anomalies[0].quantity == Decimal("0.5")

    def test_exhausted_linked_lot(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "1", "110", minutes=1),
            make_trade("s1", "sell", "1", "120", minutes=2, linked_buy_id="b2"),
            make_trade("s2", "sell", "0.5", "125", minutes=3, linked_buy_id="b2"),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b1": Decimal("0.5")}
        assert ledger.anomalies[0].kind == AnomalyKind.LINKED_LOT_SHORTFALL
        assert ledger.anomalies[0].trade_id == "s2"

    def test_unknown_linked_lot_falls_back_to_fifo(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("s1", "sell", "0.5", "120", minutes=1, linked_buy_id="ghost"),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b1": Decimal("0.5")}
        assert ledger.matches[0].method == MatchMethod.FIFO
        assert [a.kind for a in ledger.anomalies] == [AnomalyKind.LINKED_LOT_NOT_FOUND]

    def test_linked_lot_after_sell_not_used(self, make_trade) -> None:
        """A link to a buy executed after the sell is treated as not found."""
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("s1", "sell", "0.5", "120", minutes=1, linked_buy_id="b2"),
            make_trade("b2", "buy", "1", "110", minutes=2),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b1": Decimal("0.5"), "b2": Decimal("1")}
        assert ledger.anomalies[0].kind == AnomalyKind.LINKED_LOT_NOT_FOUND

    def test_link_to_other_symbol_not_found(self, make_trade) -> None:
        trades = [
            make_trade("e1", "buy", "1", "3000", minutes=0, symbol="ETH"),
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("s1", "sell", "1", "120", minutes=1, linked_buy_id="e1"),
        ]

        btc = TradeLedger(trades).position("BTC")

        assert remaining_by_lot(btc) == {}
        assert btc.anomalies[0].kind == AnomalyKind.LINKED_LOT_NOT_FOUND


class TestOversell:
    """Test sells exceeding the open position."""

    def test_oversell_does_not_raise(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "0.5", "110", minutes=1),
            make_trade("s1", "sell", "2", "120", minutes=2),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert ledger.open_lots == []
        assert ledger.closed_lot_count == 2
        assert ledger.unmatched_quantity == Decimal("0.5")
        assert ledger.anomalies[0].kind == AnomalyKind.OVERSELL
        assert ledger.anomalies[0].trade_id == "s1"
        assert sum(m.quantity for m in ledger.matches) == Decimal("1.5")

    def test_oversell_logged_as_warning(self, make_trade, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            match_lots("default", "BTC", [make_trade("s1", "sell", "1", "120")])

        events = [record.msg.get("event") for record in caplog.records if isinstance(record.msg, dict)]
        assert "lot_matcher.oversell" in events

    def test_later_buys_unaffected(self, make_trade) -> None:
        """No negative lot is carried forward."""
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("s1", "sell", "3", "120", minutes=1),
            make_trade("b2", "buy", "1", "110", minutes=2),
        ]

        ledger = match_lots("default", "BTC", trades)

        assert remaining_by_lot(ledger) == {"b2": Decimal("1")}


class TestMatchValues:
    """Test fee attribution on matches."""

    def test_fees_prorated(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "2", "100", minutes=0, fees="2"),
            make_trade("s1", "sell", "1", "120", minutes=1, fees="0.6"),
        ]

        match = match_lots("default", "BTC", trades).matches[0]

        assert match.entry_fees == Decimal("1")
        assert match.exit_fees == Decimal("0.6")
        assert match.purchase_value == Decimal("101")
        assert match.exit_value == Decimal("119.4")

    def test_sell_fees_split_across_lots(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "1", "100", minutes=1),
            make_trade("s1", "sell", "2", "120", minutes=2, fees="1"),
        ]

        matches = match_lots("default", "BTC", trades).matches

        assert [m.exit_fees for m in matches] == [Decimal("0.5"), Decimal("0.5")]


class TestTradeLedger:
    """Test the multi-symbol, multi-account ledger."""

    def test_partitions_by_account_and_symbol(self, make_trade) -> None:
        trades = [
            make_trade("b1", "buy", "1", "100", symbol="BTC-EUR"),
            make_trade("e1", "buy", "2", "3000", symbol="ETH"),
            make_trade("b2", "buy", "1", "101", symbol="BTC", account_id="alt"),
            make_trade("s1", "sell", "1", "120", minutes=1, symbol="BTC"),
        ]

        ledger = TradeLedger(trades)

        assert ledger.keys() == [("default", "BTC"), ("default", "ETH"), ("alt", "BTC")]
        positions = {(p.account_id, p.symbol): p for p in ledger.positions()}
        assert positions[("default", "BTC")].open_lots == []
        assert positions[("alt", "BTC")].open_quantity == Decimal("1")
        assert positions[("default", "ETH")].open_quantity == Decimal("2")

    def test_strategy_does_not_scope_fifo(self, make_trade) -> None:
        """FIFO is per symbol; strategy_id is informational."""
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0, strategy_id="alpha"),
            make_trade("b2", "buy", "1", "110", minutes=1, strategy_id="beta"),
            make_trade("s1", "sell", "1", "120", minutes=2, strategy_id="beta"),
        ]

        assert remaining_by_lot(TradeLedger(trades).position("BTC")) == {"b2": Decimal("1")}

    def test_position_accepts_pair_symbol(self, make_trade) -> None:
        ledger = TradeLedger([make_trade("b1", "buy", "1", "100")])

        assert ledger.position("btc-eur").open_quantity == Decimal("1")
        assert ledger.position("SOL").open_lots == []

    def test_open_lots_filter(self, make_trade) -> None:
        ledger = TradeLedger(
            [
                make_trade("b1", "buy", "1", "100"),
                make_trade("e1", "buy", "1", "3000", symbol="ETH"),
            ]
        )

        assert [lot.lot_id for lot in ledger.open_lots("ETH")] == ["e1"]
        assert len(ledger.open_lots()) == 2

    def test_duplicate_ids_rejected(self, make_trade) -> None:
        with pytest.raises(ValueError, match="Duplicate trade id"):
            TradeLedger([make_trade("b1", "buy", "1", "100"), make_trade("b1", "buy", "1", "100")])

    def test_idempotent(self, make_trade) -> None:
        """Recomputing from the same trades gives identical results."""
        trades = [
            make_trade("b1", "buy", "1", "100", minutes=0),
            make_trade("b2", "buy", "1", "110", minutes=1),
            make_trade("s1", "sell", "1.2", "120", minutes=2, linked_buy_id="b2"),
            make_trade("s2", "sell", "5", "120", minutes=3),
        ]
        ledger = TradeLedger(trades)

        assert ledger.positions() == ledger.positions()
        assert TradeLedger(trades).positions() == TradeLedger(list(trades)).positions()

    def test_foreign_trade_rejected(self, make_trade) -> None:
        with pytest.raises(ValueError, match="does not belong"):
            match_lots("default", "BTC", [make_trade("e1", "buy", "1", "3000", symbol="ETH")])
