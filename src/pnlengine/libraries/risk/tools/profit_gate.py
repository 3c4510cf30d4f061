"""Profit gate: exit-decision evaluator.

Decides whether a proposed sell may proceed, given what the lot matcher
priced it at and the current price. Pure function, no I/O.

Decision:
- Price unavailable -> denied (price_unavailable)
- No open quantity -> denied (no_position_to_sell)
- pnl_pct >= take_profit_pct -> allowed (take_profit_hit)
- pnl_pct <= -stop_loss_pct -> allowed (stop_loss_hit)
- edge, EUR profit and confidence conditions all met -> allowed (edge_conditions_met)
- otherwise denied (insufficient_profit_conditions)

The gate never walks lots itself: callers price the proposed quantity FIFO
with the ledger's lot tracker and pass the matched quantity and its
purchase value (entry fees included). A quantity larger than the open
position is judged on what matched and flagged in the metadata.
"""

from decimal import Decimal

from pnlengine.libraries.performance.pnl import HUNDRED, round_money
from pnlengine.libraries.risk.models import ExitDecision, ProfitGateConfig

BPS_PER_PCT = Decimal("100")
DEFAULT_EPSILON = Decimal("1e-8")


def evaluate_exit(
    quantity: Decimal,
    matched_quantity: Decimal,
    purchase_value: Decimal,
    current_price: Decimal | None,
    confidence: Decimal,
    config: ProfitGateConfig,
    epsilon: Decimal = DEFAULT_EPSILON,
) -> ExitDecision:
    """Evaluate a proposed sell against the profit gate.

    Args:
        quantity: Quantity to sell (positive)
        matched_quantity: Part of quantity covered by open lots
        purchase_value: Cost of matched_quantity including entry fees
        current_price: Current price, None if unavailable
        confidence: Signal confidence [0, 1]
        config: Gate thresholds
        epsilon: Matched quantity below which there is no position

    Returns:
        ExitDecision with reason code and the figures used

    Raises:
        ValueError: If quantity is not positive

    Example:
        >>> decision = evaluate_exit(
        ...     Decimal("0.01"), Decimal("0.01"), Decimal("900"), Decimal("95000"), Decimal("0.7"), ProfitGateConfig()
        ... )
        >>> decision.reason
        'take_profit_hit'
    """
    if quantity <= 0:
        raise ValueError(f"Quantity must be positive, got {quantity}")

    if current_price is None or current_price <= 0:
        return ExitDecision(allowed=False, reason="price_unavailable", metadata={"quantity": str(quantity)})

    if matched_quantity < epsilon or purchase_value <= 0:
        return ExitDecision(allowed=False, reason="no_position_to_sell", metadata={"quantity": str(quantity)})

    exit_value = matched_quantity * current_price
    pnl_eur = exit_value - purchase_value
    pnl_pct = pnl_eur / purchase_value * HUNDRED
    edge_bps = abs(pnl_pct) * BPS_PER_PCT

    tp_hit = pnl_pct >= config.take_profit_pct
    sl_hit = pnl_pct <= -config.stop_loss_pct
    conditions = {
        "edge": edge_bps >= config.min_edge_bps,
        "eur": pnl_eur >= config.min_profit_eur,
        "confidence": confidence >= config.confidence_threshold,
    }

    if tp_hit:
        allowed, reason = True, "take_profit_hit"
    elif sl_hit:
        allowed, reason = True, "stop_loss_hit"
    elif all(conditions.values()):
        allowed, reason = True, "edge_conditions_met"
    else:
        allowed, reason = False, "insufficient_profit_conditions"

    metadata = {
        "quantity": str(quantity),
        "matched_quantity": str(matched_quantity),
        "exceeds_position": quantity - matched_quantity >= epsilon,
        "average_entry": str(round_money(purchase_value / matched_quantity)),
        "purchase_value": str(round_money(purchase_value)),
        "exit_value": str(round_money(exit_value)),
        "pnl_eur": str(round_money(pnl_eur)),
        "pnl_pct": str(round_money(pnl_pct)),
        "edge_bps": str(edge_bps.quantize(Decimal("0.1"))),
        "tp_hit": tp_hit,
        "sl_hit": sl_hit,
        "conditions": conditions,
    }

    return ExitDecision(allowed=allowed, reason=reason, metadata=metadata)
