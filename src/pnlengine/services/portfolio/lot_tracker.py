"""Lot tracker for FIFO lot accounting.

Holds the buy lots of one (account, symbol) ledger in chronological order
and consumes them for sells:
- FIFO: oldest open lot first
- Linked: one specific lot, by id

Lots are immutable; consuming quantity replaces the lot with a copy
carrying the new remaining quantity. A lot whose remaining falls below
epsilon is closed and skipped by FIFO walks, but stays addressable by id
so a late linked sell can still be diagnosed.
"""

from collections.abc import Iterable
from decimal import Decimal

from pnlengine.services.portfolio.models import LOT_EPSILON, Lot, Trade
from pnlengine.system import LoggerFactory

logger = LoggerFactory.get_logger()


class LotTracker:
    """
    Tracker for lot-based position accounting of one symbol.

    Example:
        >>> tracker = LotTracker("BTC")
        >>> tracker.add_lot(buy_trade)
        >>> matches, unmatched = tracker.match_fifo(Decimal("0.5"))
    """

    def __init__(self, symbol: str, epsilon: Decimal = LOT_EPSILON) -> None:
        """
        Initialize lot tracker.

        Args:
            symbol: Base symbol of the ledger
            epsilon: Remaining quantity below which a lot is closed
        """
        if epsilon <= 0:
            raise ValueError(f"Epsilon must be positive, got {epsilon}")

        self._symbol = symbol
        self._epsilon = epsilon

        # All lots in chronological order (open and closed)
        self._lots: list[Lot] = []
        self._index: dict[str, int] = {}

    @classmethod
    def from_lots(cls, symbol: str, lots: Iterable[Lot], epsilon: Decimal = LOT_EPSILON) -> "LotTracker":
        """
        Seed a tracker with lots already partially consumed.

        Used to plan or price a sell against a ledger's open lots without
        touching the ledger: the lots are immutable, so consumption here
        only replaces the tracker's copies.

        Args:
            symbol: Base symbol of the lots
            lots: Lots in chronological order
            epsilon: Remaining quantity below which a lot is closed

        Raises:
            ValueError: If a lot has another symbol or a duplicate id
        """
        tracker = cls(symbol, epsilon)
        for lot in lots:
            if lot.symbol != symbol:
                raise ValueError(f"Lot {lot.lot_id} symbol {lot.symbol} does not match tracker symbol {symbol}")
            if lot.lot_id in tracker._index:
                raise ValueError(f"Lot {lot.lot_id} already tracked")
            tracker._index[lot.lot_id] = len(tracker._lots)
            tracker._lots.append(lot)
        return tracker

    @property
    def symbol(self) -> str:
        return self._symbol

    def add_lot(self, trade: Trade) -> Lot:
        """
        Open a lot for a buy trade.

        Args:
            trade: Buy trade of this tracker's symbol

        Returns:
            The new lot

        Raises:
            ValueError: If trade is not a buy, has another symbol, or id is already tracked
        """
        if not trade.is_buy:
            raise ValueError(f"Cannot open lot from {trade.side.value} trade {trade.id}")
        if trade.symbol != self._symbol:
            raise ValueError(f"Trade {trade.id} symbol {trade.symbol} does not match tracker symbol {self._symbol}")
        if trade.id in self._index:
            raise ValueError(f"Lot {trade.id} already tracked")

        lot = Lot(trade=trade, remaining=trade.amount)
        self._index[trade.id] = len(self._lots)
        self._lots.append(lot)
        return lot

    def get_lot(self, lot_id: str) -> Lot | None:
        """Get lot by id, open or closed."""
        position = self._index.get(lot_id)
        if position is None:
            return None
        return self._lots[position]

    def get_lots(self) -> list[Lot]:
        """Open lots, oldest first."""
        return [lot for lot in self._lots if not lot.is_closed(self._epsilon)]

    def get_total_quantity(self) -> Decimal:
        """Remaining quantity across open lots."""
        return sum((lot.remaining for lot in self.get_lots()), start=Decimal("0"))

    def has_position(self) -> bool:
        return any(not lot.is_closed(self._epsilon) for lot in self._lots)

    def closed_count(self) -> int:
        """Number of fully consumed lots."""
        return sum(1 for lot in self._lots if lot.is_closed(self._epsilon))

    def match_linked(self, lot_id: str, quantity: Decimal) -> list[tuple[Lot, Decimal]]:
        """
        Consume up to quantity from one specific lot.

        Args:
            lot_id: Lot to consume
            quantity: Quantity requested (positive)

        Returns:
            [(lot before consumption, quantity consumed)], empty if the lot
            is closed

        Raises:
            ValueError: If quantity is not positive
            KeyError: If lot_id is not tracked
        """
        if quantity <= 0:
            raise ValueError(f"Quantity must be positive, got {quantity}")

        position = self._index[lot_id]
        lot = self._lots[position]
        if lot.is_closed(self._epsilon):
            return []

        taken = self._consume(position, quantity)
        return [(lot, taken)]

    def match_fifo(self, quantity: Decimal) -> tuple[list[tuple[Lot, Decimal]], Decimal]:
        """
        Consume quantity from open lots, oldest first.

        Never raises on insufficient quantity: available lots are drained
        and the shortfall is returned for the caller to report.

        Args:
            quantity: Quantity to consume (positive)

        Returns:
            ([(lot before consumption, quantity consumed), ...], unmatched quantity)

        Raises:
            ValueError: If quantity is not positive

        Example:
            >>> # Consume 150 from [100@150, 100@155]
            >>> matches, unmatched = tracker.match_fifo(Decimal("150"))
            >>> # matches: [(lot_1, 100), (lot_2, 50)], unmatched: 0
        """
        if quantity <= 0:
            raise ValueError(f"Quantity must be positive, got {quantity}")

        matches: list[tuple[Lot, Decimal]] = []
        remaining_to_close = quantity

        for position, lot in enumerate(self._lots):
            if remaining_to_close < self._epsilon:
                break
            if lot.is_closed(self._epsilon):
                continue

            taken = self._consume(position, remaining_to_close)
            matches.append((lot, taken))
            remaining_to_close -= taken

        if remaining_to_close < self._epsilon:
            remaining_to_close = Decimal("0")

        return matches, remaining_to_close

    def _consume(self, position: int, quantity: Decimal) -> Decimal:
        """Replace the lot at position with one reduced by min(remaining, quantity)."""
        lot = self._lots[position]
        taken = min(lot.remaining, quantity)
        updated = lot.model_copy(update={"remaining": lot.remaining - taken})
        self._lots[position] = updated

        logger.debug(
            "lot_tracker.lot_consumed",
            lot_id=lot.lot_id,
            symbol=self._symbol,
            quantity=str(taken),
            remaining=str(updated.remaining),
            closed=updated.is_closed(self._epsilon),
        )
        return taken
