"""P&L calculation functions.

Canonical formulas for unrealized P&L, cost basis and realized P&L. Every
other module (valuation, profit gate, CLI report) goes through these.

Rules:
- Price unavailable (None or <= 0) -> all-None result, never zero
- Invalid amount/cost basis -> all-None result, never an exception
- Rounding to 2 decimals happens once, on the returned values only

Usage:
    >>> from decimal import Decimal
    >>> from pnlengine.libraries.performance.pnl import compute_unrealized_pnl
    >>> result = compute_unrealized_pnl(Decimal("0.01"), Decimal("900.00"), Decimal("95000"))
    >>> result.pnl_pct
    Decimal('5.56')
"""

from decimal import ROUND_HALF_UP, Decimal

from pnlengine.libraries.performance.models import PnlResult, RealizedPnl

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimals, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_unrealized_pnl(
    amount: Decimal,
    cost_basis: Decimal,
    current_price: Decimal | None,
) -> PnlResult:
    """
    Compute unrealized P&L for a single position.

    Formula:
        current_value = amount * current_price
        pnl_eur = current_value - cost_basis
        pnl_pct = (pnl_eur / cost_basis) * 100

    Args:
        amount: Quantity held
        cost_basis: Total cost including fees
        current_price: Current market price, None if unknown

    Returns:
        PnlResult, or PnlResult.unavailable() when the price is missing or
        the inputs are not positive

    Example:
        >>> compute_unrealized_pnl(Decimal("1"), Decimal("100"), None).pnl_eur is None
        True
    """
    if current_price is None or current_price <= 0:
        return PnlResult.unavailable()

    if amount <= 0 or cost_basis <= 0:
        return PnlResult.unavailable()

    current_value = amount * current_price
    pnl_eur = current_value - cost_basis
    pnl_pct = (pnl_eur / cost_basis) * HUNDRED

    return PnlResult(
        current_value=round_money(current_value),
        pnl_eur=round_money(pnl_eur),
        pnl_pct=round_money(pnl_pct),
        has_price_data=True,
    )


def compute_cost_basis(amount: Decimal, entry_price: Decimal, fees: Decimal = Decimal("0")) -> Decimal:
    """
    Compute cost basis from trade data: amount * entry_price + fees.

    Example:
        >>> compute_cost_basis(Decimal("0.01"), Decimal("89990"), Decimal("0.10"))
        Decimal('900.00')
    """
    return round_money(amount * entry_price + fees)


def compute_realized_pnl(
    purchase_value: Decimal | None,
    exit_value: Decimal | None,
    recorded_pnl: Decimal | None = None,
) -> RealizedPnl:
    """
    Compute realized P&L from a closed lot's exit snapshot.

    A P&L already recorded on the sell wins over the derived value.

    Args:
        purchase_value: Cost of the quantity sold
        exit_value: Proceeds of the quantity sold
        recorded_pnl: Pre-computed realized P&L, if the record has one

    Returns:
        RealizedPnl with pnl_pct only when purchase_value > 0

    Raises:
        ValueError: If neither recorded_pnl nor both values are available
    """
    if recorded_pnl is not None:
        pnl_eur = recorded_pnl
    elif purchase_value is not None and exit_value is not None:
        pnl_eur = exit_value - purchase_value
    else:
        raise ValueError("Realized P&L needs recorded_pnl or both purchase_value and exit_value")

    pnl_pct: Decimal | None = None
    if purchase_value is not None and purchase_value > 0:
        pnl_pct = round_money(pnl_eur / purchase_value * HUNDRED)

    return RealizedPnl(
        purchase_value=round_money(purchase_value) if purchase_value is not None else None,
        exit_value=round_money(exit_value) if exit_value is not None else None,
        pnl_eur=round_money(pnl_eur),
        pnl_pct=pnl_pct,
    )
