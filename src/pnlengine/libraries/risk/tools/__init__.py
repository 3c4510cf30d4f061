"""Risk tools: pure decision functions."""

from pnlengine.libraries.risk.tools.profit_gate import evaluate_exit

__all__ = ["evaluate_exit"]
