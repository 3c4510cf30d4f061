"""Sell-order planning over open lots.

Turns a close decision into one order per lot, so that every order can be
executed as a sell linked to its lot and the ledger matches it exactly as
planned.

Modes:
- MANUAL_SYMBOL: a quantity, oldest lots first
- MANUAL_LOT: one named lot, up to its remaining quantity
- SL_FULL_FLUSH / AUTO_CLOSE_ALL: every open lot in full, oldest first
- TP_SELECTIVE: only lots whose own unrealized P&L % reaches the threshold
  and that were held at least min_hold, oldest first, optionally capped

Consumption goes through LotTracker so orders follow the ledger's FIFO and
epsilon rules. Planning is pure: the caller supplies `now`.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from pnlengine.libraries.performance import compute_unrealized_pnl
from pnlengine.services.portfolio.lot_tracker import LotTracker
from pnlengine.services.portfolio.models import LOT_EPSILON, CloseMode, Lot, SellOrder
from pnlengine.system import LoggerFactory

logger = LoggerFactory.get_logger()


def build_sell_orders(
    open_lots: Sequence[Lot],
    mode: CloseMode | str,
    *,
    quantity: Decimal | None = None,
    lot_id: str | None = None,
    current_price: Decimal | None = None,
    tp_threshold_pct: Decimal | None = None,
    min_hold: timedelta = timedelta(0),
    now: datetime | None = None,
    epsilon: Decimal = LOT_EPSILON,
) -> list[SellOrder]:
    """
    Plan per-lot sell orders for one symbol.

    Args:
        open_lots: Open lots of one symbol, oldest first
        mode: Close mode
        quantity: Amount to sell (required for MANUAL_SYMBOL, optional cap
            for MANUAL_LOT and TP_SELECTIVE)
        lot_id: Lot to close (MANUAL_LOT)
        current_price: Current price (TP_SELECTIVE)
        tp_threshold_pct: Per-lot P&L % a lot must reach (TP_SELECTIVE)
        min_hold: Minimum time since entry (TP_SELECTIVE)
        now: Valuation instant (TP_SELECTIVE)
        epsilon: Quantity below which a lot counts as closed

    Returns:
        SellOrders, oldest lot first; empty when nothing qualifies

    Raises:
        ValueError: If an argument the mode needs is missing or invalid,
            the lots mix symbols, or MANUAL_LOT names no open lot

    Example:
        >>> orders = build_sell_orders(lots, CloseMode.MANUAL_SYMBOL, quantity=Decimal("1.5"))
        >>> [(o.lot_id, o.amount) for o in orders]
        [('b1', Decimal('1')), ('b2', Decimal('0.5'))]
    """
    mode = CloseMode(mode)
    if quantity is not None and quantity <= 0:
        raise ValueError(f"Quantity must be positive, got {quantity}")

    lots = sorted((lot for lot in open_lots if not lot.is_closed(epsilon)), key=lambda lot: lot.entry_timestamp)

    if mode is CloseMode.MANUAL_SYMBOL:
        if quantity is None:
            raise ValueError("MANUAL_SYMBOL needs a quantity")
        orders = _take_fifo(lots, quantity, epsilon)
    elif mode is CloseMode.MANUAL_LOT:
        orders = _take_lot(lots, lot_id, quantity, epsilon)
    elif mode in (CloseMode.SL_FULL_FLUSH, CloseMode.AUTO_CLOSE_ALL):
        orders = _take_fifo(lots, None, epsilon)
    else:
        qualifying = _qualifying_lots(lots, current_price, tp_threshold_pct, min_hold, now)
        orders = _take_fifo(qualifying, quantity, epsilon)

    logger.info(
        "sell_orders.planned",
        mode=mode.value,
        symbol=lots[0].symbol if lots else None,
        open_lots=len(lots),
        orders=len(orders),
        amount=str(sum((order.amount for order in orders), start=Decimal("0"))),
    )
    return orders


def _take_fifo(lots: list[Lot], quantity: Decimal | None, epsilon: Decimal) -> list[SellOrder]:
    """Consume quantity oldest first, or every lot in full when quantity is None."""
    if not lots:
        return []

    tracker = LotTracker.from_lots(lots[0].symbol, lots, epsilon)
    fills, _ = tracker.match_fifo(quantity if quantity is not None else tracker.get_total_quantity())
    return [_to_order(lot, taken) for lot, taken in fills]


def _take_lot(lots: list[Lot], lot_id: str | None, quantity: Decimal | None, epsilon: Decimal) -> list[SellOrder]:
    if lot_id is None:
        raise ValueError("MANUAL_LOT needs a lot_id")

    symbol = lots[0].symbol if lots else ""
    tracker = LotTracker.from_lots(symbol, lots, epsilon)
    lot = tracker.get_lot(lot_id)
    if lot is None:
        raise ValueError(f"Lot {lot_id} is not an open lot")

    fills = tracker.match_linked(lot_id, quantity if quantity is not None else lot.remaining)
    return [_to_order(lot, taken) for lot, taken in fills]


def _qualifying_lots(
    lots: list[Lot],
    current_price: Decimal | None,
    tp_threshold_pct: Decimal | None,
    min_hold: timedelta,
    now: datetime | None,
) -> list[Lot]:
    """Lots individually at or past the threshold and held long enough. Unpriced lots never qualify."""
    if tp_threshold_pct is None:
        raise ValueError("TP_SELECTIVE needs tp_threshold_pct")
    if now is None:
        raise ValueError("TP_SELECTIVE needs now")
    if min_hold < timedelta(0):
        raise ValueError(f"min_hold must not be negative, got {min_hold}")

    qualifying: list[Lot] = []
    for lot in lots:
        pnl = compute_unrealized_pnl(lot.remaining, lot.cost_basis, current_price)
        age = now - lot.entry_timestamp
        if pnl.pnl_pct is not None and pnl.pnl_pct >= tp_threshold_pct and age >= min_hold:
            qualifying.append(lot)

    logger.debug(
        "sell_orders.lots_qualified",
        qualifying=len(qualifying),
        open_lots=len(lots),
        threshold_pct=str(tp_threshold_pct),
        min_hold_seconds=min_hold.total_seconds(),
    )
    return qualifying


def _to_order(lot: Lot, amount: Decimal) -> SellOrder:
    return SellOrder(
        lot_id=lot.lot_id,
        symbol=lot.symbol,
        amount=amount,
        entry_price=lot.entry_price,
        purchase_value=lot.purchase_value_for(amount),
    )
