"""Symbol normalization shared by the ledger and price lookups.

Trades arrive as pair symbols ("BTC-EUR", "eth/usd") or bare bases ("SOL").
Lot matching and price lookups both key on the base symbol, so every caller
must normalize through these helpers on both sides.
"""

_PAIR_SEPARATORS = ("-", "/")


def to_base_symbol(symbol: str) -> str:
    """
    Strip the quote-currency suffix from a symbol.

    Args:
        symbol: Pair or base symbol (case-insensitive)

    Returns:
        Upper-case base symbol

    Raises:
        ValueError: If symbol is empty after stripping

    Example:
        >>> to_base_symbol("btc-eur")
        'BTC'
        >>> to_base_symbol("ETH/USDC")
        'ETH'
    """
    normalized = symbol.strip().upper()
    for separator in _PAIR_SEPARATORS:
        if separator in normalized:
            normalized = normalized.split(separator, 1)[0].strip()
    if not normalized:
        raise ValueError(f"Invalid symbol: {symbol!r}")
    return normalized
