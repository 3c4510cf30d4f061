"""
pnlengine - Position accounting and P&L for crypto trade ledgers

Lot matching, realized/unrealized P&L and portfolio aggregation computed
from an immutable trade ledger and a price snapshot.
"""

from importlib.metadata import version

try:
    __version__ = version("pnlengine")
except Exception:
    __version__ = "0.0.0.dev"  # Fallback for development


__all__ = [
    "__version__",
]
