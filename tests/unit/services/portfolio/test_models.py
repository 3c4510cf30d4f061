"""Unit tests for portfolio service models."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from pnlengine.services.portfolio.models import (
    AnomalyKind,
    LedgerAnomaly,
    Lot,
    LotMatch,
    MatchMethod,
    PositionLedger,
    Trade,
    TradeSide,
)


class TestTrade:
    """Test Trade model."""

    def test_create_buy(self, make_trade) -> None:
        trade = make_trade("b1", "buy", "0.01", "90000", fees="0.10")

        assert trade.side == TradeSide.BUY
        assert trade.is_buy is True
        assert trade.is_sell is False
        assert trade.fees == Decimal("0.10")
        assert trade.account_id == "default"

    def test_symbol_normalized(self, make_trade) -> None:
        trade = make_trade("b1", "buy", "1", "100", symbol="eth-eur")

        assert trade.symbol == "ETH"

    def test_side_case_insensitive(self, make_trade) -> None:
        assert make_trade("s1", "SELL", "1", "100").side == TradeSide.SELL

    def test_naive_timestamp_taken_as_utc(self) -> None:
        trade = Trade(
            id="b1",
            side="buy",
            symbol="BTC",
            amount=Decimal("1"),
            price=Decimal("100"),
            executed_at=datetime(2025, 1, 1, 12, 0),
        )

        assert trade.executed_at == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_immutable(self, make_trade) -> None:
        trade = make_trade("b1", "buy", "1", "100")

        with pytest.raises(ValidationError):
            trade.amount = Decimal("2")

    @pytest.mark.parametrize(
        "amount,price,fees,match",
        [
            ("0", "100", "0", "amount must be positive"),
            ("-1", "100", "0", "amount must be positive"),
            ("1", "0", "0", "price must be positive"),
            ("1", "100", "-0.01", "fees cannot be negative"),
        ],
    )
    def test_invalid_values(self, make_trade, amount: str, price: str, fees: str, match: str) -> None:
        with pytest.raises(ValidationError, match=match):
            make_trade("t1", "buy", amount, price, fees=fees)

    def test_invalid_side(self, make_trade) -> None:
        with pytest.raises(ValidationError):
            make_trade("t1", "hold", "1", "100")

    def test_buy_cannot_link(self, make_trade) -> None:
        with pytest.raises(ValidationError, match="cannot link"):
            make_trade("b2", "buy", "1", "100", linked_buy_id="b1")

    def test_buy_cannot_carry_exit_snapshot(self, make_trade) -> None:
        with pytest.raises(ValidationError, match="exit snapshot"):
            make_trade("b1", "buy", "1", "100", realized_pnl=Decimal("5"))

    def test_sell_cannot_link_itself(self, make_trade) -> None:
        with pytest.raises(ValidationError, match="link to itself"):
            make_trade("s1", "sell", "1", "100", linked_buy_id="s1")

    def test_exit_snapshot(self, make_trade) -> None:
        recorded = make_trade("s1", "sell", "1", "100", realized_pnl=Decimal("5"))
        values = make_trade("s2", "sell", "1", "100", purchase_value=Decimal("90"), exit_value=Decimal("100"))
        partial = make_trade("s3", "sell", "1", "100", purchase_value=Decimal("90"))

        assert recorded.has_exit_snapshot is True
        assert values.has_exit_snapshot is True
        assert partial.has_exit_snapshot is False


class TestLot:
    """Test Lot model."""

    def test_cost_basis_prorates_fees(self, make_trade) -> None:
        lot = Lot(trade=make_trade("b1", "buy", "2", "100", fees="4"), remaining=Decimal("0.5"))

        assert lot.cost_basis == Decimal("51")
        assert lot.remaining_fees == Decimal("1")
        assert lot.sold_amount == Decimal("1.5")
        assert lot.lot_id == "b1"
        assert lot.entry_price == Decimal("100")

    def test_fee_share_for_quantity(self, make_trade) -> None:
        lot = Lot(trade=make_trade("b1", "buy", "2", "100", fees="4"), remaining=Decimal("2"))

        assert lot.entry_fees_for(Decimal("0.5")) == Decimal("1")
        assert lot.purchase_value_for(Decimal("0.5")) == Decimal("51")
        assert lot.purchase_value_for(lot.remaining) == lot.cost_basis

    def test_closed_within_epsilon(self, make_trade) -> None:
        trade = make_trade("b1", "buy", "1", "100")

        assert Lot(trade=trade, remaining=Decimal("5e-9")).is_closed() is True
        assert Lot(trade=trade, remaining=Decimal("1e-8")).is_closed() is False
        assert Lot(trade=trade, remaining=Decimal("0")).is_closed() is True

    def test_remaining_bounds(self, make_trade) -> None:
        trade = make_trade("b1", "buy", "1", "100")

        with pytest.raises(ValidationError, match="outside"):
            Lot(trade=trade, remaining=Decimal("1.1"))
        with pytest.raises(ValidationError, match="outside"):
            Lot(trade=trade, remaining=Decimal("-0.1"))

    def test_must_come_from_buy(self, make_trade) -> None:
        with pytest.raises(ValidationError, match="originate from a buy"):
            Lot(trade=make_trade("s1", "sell", "1", "100"), remaining=Decimal("1"))


class TestLotMatch:
    """Test LotMatch values."""

    def test_values_include_fee_shares(self, timestamp: datetime) -> None:
        match = LotMatch(
            sell_trade_id="s1",
            lot_id="b1",
            symbol="BTC",
            quantity=Decimal("0.5"),
            entry_price=Decimal("100"),
            exit_price=Decimal("120"),
            entry_fees=Decimal("1"),
            exit_fees=Decimal("0.5"),
            opened_at=timestamp,
            closed_at=timestamp,
            method=MatchMethod.FIFO,
        )

        assert match.purchase_value == Decimal("51")
        assert match.exit_value == Decimal("59.5")


class TestPositionLedger:
    """Test PositionLedger views."""

    def test_unmatched_quantity_sums_oversells(self) -> None:
        anomalies = [
            LedgerAnomaly(
                kind=AnomalyKind.OVERSELL,
                trade_id="s1",
                account_id="default",
                symbol="BTC",
                quantity=Decimal("0.5"),
                message="",
            ),
            LedgerAnomaly(
                kind=AnomalyKind.LINKED_LOT_SHORTFALL,
                trade_id="s2",
                account_id="default",
                symbol="BTC",
                quantity=Decimal("2"),
                message="",
            ),
        ]
        ledger = PositionLedger(account_id="default", symbol="BTC", anomalies=anomalies)

        assert ledger.unmatched_quantity == Decimal("0.5")
        assert ledger.has_anomalies is True
        assert ledger.open_quantity == Decimal("0")
