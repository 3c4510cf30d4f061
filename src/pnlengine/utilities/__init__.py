"""Shared helpers."""

from pnlengine.utilities.symbols import to_base_symbol

__all__ = ["to_base_symbol"]
