"""Profit gate configuration models.

Immutable data structures for exit-decision policies.

Design Principles:
- Immutable (frozen dataclasses)
- Pure data (no business logic)
- Validation in __post_init__
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class ProfitGateConfig:
    """Thresholds a proposed sell must clear.

    A sell is allowed when take profit or stop loss is hit, or when the edge,
    absolute profit and signal confidence conditions all hold.

    Attributes:
        take_profit_pct: Exit when P&L % >= this (e.g., 1.5 = 1.5%)
        stop_loss_pct: Exit when P&L % <= -this (positive number)
        min_edge_bps: Minimum |P&L %| in basis points for a discretionary exit
        min_profit_eur: Minimum P&L in reporting currency for a discretionary exit
        confidence_threshold: Minimum signal confidence [0, 1]

    Example:
        >>> config = ProfitGateConfig(take_profit_pct=Decimal("2.0"))
        >>> config.stop_loss_pct
        Decimal('0.8')
    """

    take_profit_pct: Decimal = Decimal("1.5")
    stop_loss_pct: Decimal = Decimal("0.8")
    min_edge_bps: Decimal = Decimal("8")
    min_profit_eur: Decimal = Decimal("0.20")
    confidence_threshold: Decimal = Decimal("0.60")

    def __post_init__(self) -> None:
        """Validate thresholds."""
        if self.take_profit_pct <= 0:
            raise ValueError(f"take_profit_pct must be positive, got {self.take_profit_pct}")

        if self.stop_loss_pct <= 0:
            raise ValueError(f"stop_loss_pct must be positive, got {self.stop_loss_pct}")

        if self.min_edge_bps < 0:
            raise ValueError(f"min_edge_bps cannot be negative, got {self.min_edge_bps}")

        if not Decimal("0") <= self.confidence_threshold <= Decimal("1"):
            raise ValueError(f"confidence_threshold must be in [0, 1], got {self.confidence_threshold}")


@dataclass(frozen=True)
class ExitDecision:
    """Result of a profit gate evaluation.

    Attributes:
        allowed: Whether the sell may proceed
        reason: Machine-readable reason code
        metadata: Figures the decision was based on (for audit/display)
    """

    allowed: bool
    reason: str
    metadata: dict[str, Any] = field(default_factory=dict)
