"""
Risk Library.

Profit gate for exit decisions, configured through YAML policies.

Architecture:
- tools/profit_gate.py: Exit-decision evaluator
- models.py: Configuration dataclasses
- loaders.py: Policy loading from YAML

Usage:
    >>> from pnlengine.libraries.risk import load_profit_gate_policy
    >>> from pnlengine.libraries.risk.tools import evaluate_exit
    >>>
    >>> config = load_profit_gate_policy("default")
    >>> decision = evaluate_exit(quantity, matched, purchase_value, Decimal("95000"), Decimal("0.7"), config)
"""

from pnlengine.libraries.risk.loaders import list_builtin_policies, list_custom_policies, load_profit_gate_policy
from pnlengine.libraries.risk.models import ExitDecision, ProfitGateConfig

__all__ = [
    # Policy loading
    "load_profit_gate_policy",
    "list_builtin_policies",
    "list_custom_policies",
    # Models
    "ProfitGateConfig",
    "ExitDecision",
]
