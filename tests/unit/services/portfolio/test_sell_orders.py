"""Unit tests for per-lot sell-order planning."""

from datetime import timedelta
from decimal import Decimal

import pytest

from pnlengine.services.portfolio.models import CloseMode, Lot
from pnlengine.services.portfolio.sell_orders import build_sell_orders


@pytest.fixture
def lot(make_trade):
    def _lot(trade_id: str, amount: str, price: str, minutes: int, remaining: str | None = None, **extra) -> Lot:
        trade = make_trade(trade_id, "buy", amount, price, minutes=minutes, **extra)
        return Lot(trade=trade, remaining=Decimal(remaining if remaining is not None else amount))

    return _lot


@pytest.fixture
def lots(lot) -> list[Lot]:
    """1 @ 100, 2 @ 110, 1 @ 120, an hour apart (oldest first)."""
    return [lot("b1", "1", "100", 0), lot("b2", "2", "110", 60), lot("b3", "1", "120", 120)]


def summary(orders) -> list[tuple[str, Decimal]]:
    return [(order.lot_id, order.amount) for order in orders]


class TestManualSymbol:
    """Test FIFO orders for a quantity."""

    def test_spans_lots_oldest_first(self, lots) -> None:
        orders = build_sell_orders(lots, CloseMode.MANUAL_SYMBOL, quantity=Decimal("1.5"))

        assert summary(orders) == [("b1", Decimal("1")), ("b2", Decimal("0.5"))]
        assert orders[1].entry_price == Decimal("110")
        assert orders[1].purchase_value == Decimal("55.0")
        assert orders[1].symbol == "BTC"

    def test_quantity_beyond_position_stops_at_lots(self, lots) -> None:
        orders = build_sell_orders(lots, CloseMode.MANUAL_SYMBOL, quantity=Decimal("10"))

        assert sum(order.amount for order in orders) == Decimal("4")

    def test_fee_share_in_purchase_value(self, lot) -> None:
        lots = [lot("b1", "2", "100", 0, fees="4")]

        (order,) = build_sell_orders(lots, "manual_symbol", quantity=Decimal("0.5"))

        assert order.purchase_value == Decimal("51")

    def test_partially_sold_and_dust_lots(self, lot) -> None:
        lots = [lot("b1", "1", "100", 0, remaining="5e-9"), lot("b2", "1", "110", 60, remaining="0.4")]

        orders = build_sell_orders(lots, CloseMode.MANUAL_SYMBOL, quantity=Decimal("1"))

        assert summary(orders) == [("b2", Decimal("0.4"))]

    def test_no_lots(self) -> None:
        assert build_sell_orders([], CloseMode.MANUAL_SYMBOL, quantity=Decimal("1")) == []

    def test_quantity_required(self, lots) -> None:
        with pytest.raises(ValueError, match="needs a quantity"):
            build_sell_orders(lots, CloseMode.MANUAL_SYMBOL)

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1")])
    def test_non_positive_quantity(self, lots, quantity: Decimal) -> None:
        with pytest.raises(ValueError, match="Quantity must be positive"):
            build_sell_orders(lots, CloseMode.MANUAL_SYMBOL, quantity=quantity)

    def test_lots_of_one_symbol_only(self, lots, lot) -> None:
        mixed = [*lots, lot("e1", "1", "3000", 180, symbol="ETH")]

        with pytest.raises(ValueError, match="does not match"):
            build_sell_orders(mixed, CloseMode.MANUAL_SYMBOL, quantity=Decimal("1"))

    def test_unknown_mode(self, lots) -> None:
        with pytest.raises(ValueError):
            build_sell_orders(lots, "panic_sell", quantity=Decimal("1"))


class TestManualLot:
    """Test closing one named lot."""

    def test_whole_lot_by_default(self, lots) -> None:
        orders = build_sell_orders(lots, CloseMode.MANUAL_LOT, lot_id="b2")

        assert summary(orders) == [("b2", Decimal("2"))]

    def test_partial(self, lots) -> None:
        orders = build_sell_orders(lots, CloseMode.MANUAL_LOT, lot_id="b3", quantity=Decimal("0.25"))

        assert summary(orders) == [("b3", Decimal("0.25"))]

    def test_capped_at_remaining(self, lot) -> None:
        lots = [lot("b1", "1", "100", 0, remaining="0.3")]

        orders = build_sell_orders(lots, CloseMode.MANUAL_LOT, lot_id="b1", quantity=Decimal("5"))

        assert summary(orders) == [("b1", Decimal("0.3"))]

    @pytest.mark.parametrize("lot_id", ["nope", "dust"])
    def test_lot_must_be_open(self, lots, lot, lot_id: str) -> None:
        lots = [*lots, lot("dust", "1", "100", 180, remaining="1e-9")]

        with pytest.raises(ValueError, match="not an open lot"):
            build_sell_orders(lots, CloseMode.MANUAL_LOT, lot_id=lot_id)

    def test_lot_id_required(self, lots) -> None:
        with pytest.raises(ValueError, match="needs a lot_id"):
            build_sell_orders(lots, CloseMode.MANUAL_LOT)


class TestFullFlush:
    """Test closing every open lot."""

    @pytest.mark.parametrize("mode", [CloseMode.SL_FULL_FLUSH, CloseMode.AUTO_CLOSE_ALL])
    def test_every_lot_in_entry_order(self, lots, mode: CloseMode) -> None:
        shuffled = [lots[2], lots[0], lots[1]]

        orders = build_sell_orders(shuffled, mode)

        assert summary(orders) == [("b1", Decimal("1")), ("b2", Decimal("2")), ("b3", Decimal("1"))]

    def test_remaining_only(self, lot) -> None:
        lots = [lot("b1", "1", "100", 0, remaining="0.6"), lot("b2", "1", "110", 60)]

        orders = build_sell_orders(lots, CloseMode.SL_FULL_FLUSH)

        assert summary(orders) == [("b1", Decimal("0.6")), ("b2", Decimal("1"))]
        assert orders[0].purchase_value == Decimal("60.0")

    def test_no_lots(self) -> None:
        assert build_sell_orders([], CloseMode.SL_FULL_FLUSH) == []


class TestSelectiveTakeProfit:
    """Test closing only lots individually past the threshold."""

    @pytest.fixture
    def now(self, timestamp):
        """Three hours after the first lot: ages 3h, 2h, 1h."""
        return timestamp + timedelta(hours=3)

    def plan(self, lots, now, price="115", threshold="4", **kwargs):
        return build_sell_orders(
            lots,
            CloseMode.TP_SELECTIVE,
            current_price=Decimal(price) if price is not None else None,
            tp_threshold_pct=Decimal(threshold),
            now=now,
            **kwargs,
        )

    def test_profitable_lots_only(self, lots, now) -> None:
        """At 115: b1 +15%, b2 +4.55%, b3 -4.17%."""
        orders = self.plan(lots, now)

        assert summary(orders) == [("b1", Decimal("1")), ("b2", Decimal("2"))]

    def test_threshold_is_per_lot(self, lots, now) -> None:
        orders = self.plan(lots, now, threshold="5")

        assert summary(orders) == [("b1", Decimal("1"))]

    def test_threshold_inclusive(self, lot, now) -> None:
        lots = [lot("b1", "1", "100", 0)]

        orders = self.plan(lots, now, price="104", threshold="4")

        assert summary(orders) == [("b1", Decimal("1"))]

    def test_min_hold(self, lots, now) -> None:
        orders = self.plan(lots, now, min_hold=timedelta(hours=2, minutes=30))

        assert summary(orders) == [("b1", Decimal("1"))]

    def test_min_hold_inclusive(self, lots, now) -> None:
        orders = self.plan(lots, now, min_hold=timedelta(hours=2))

        assert summary(orders) == [("b1", Decimal("1")), ("b2", Decimal("2"))]

    def test_capped_amount_fifo_among_qualifying(self, lots, now) -> None:
        orders = self.plan(lots, now, quantity=Decimal("1.5"))

        assert summary(orders) == [("b1", Decimal("1")), ("b2", Decimal("0.5"))]

    def test_entry_fees_count_against_threshold(self, lot, now) -> None:
        """+15% on price alone, +2.68% once 12 EUR of fees are in the cost."""
        lots = [lot("b1", "1", "100", 0, fees="12")]

        assert self.plan(lots, now) == []

    def test_unpriced_lots_never_qualify(self, lots, now) -> None:
        assert self.plan(lots, now, price=None) == []

    def test_nothing_qualifies(self, lots, now) -> None:
        assert self.plan(lots, now, price="90") == []

    def test_threshold_required(self, lots, now) -> None:
        with pytest.raises(ValueError, match="needs tp_threshold_pct"):
            build_sell_orders(lots, CloseMode.TP_SELECTIVE, current_price=Decimal("115"), now=now)

    def test_now_required(self, lots) -> None:
        with pytest.raises(ValueError, match="needs now"):
            build_sell_orders(
                lots, CloseMode.TP_SELECTIVE, current_price=Decimal("115"), tp_threshold_pct=Decimal("4")
            )

    def test_negative_min_hold_rejected(self, lots, now) -> None:
        with pytest.raises(ValueError, match="min_hold"):
            self.plan(lots, now, min_hold=timedelta(minutes=-1))
