"""CLI UI components - table formatters."""

from pnlengine.cli.ui.formatters import (
    create_anomalies_table,
    create_decision_table,
    create_lots_table,
    create_positions_table,
    create_realized_table,
    create_summary_table,
)

__all__ = [
    "create_anomalies_table",
    "create_decision_table",
    "create_lots_table",
    "create_positions_table",
    "create_realized_table",
    "create_summary_table",
]
