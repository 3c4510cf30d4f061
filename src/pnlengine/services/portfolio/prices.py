"""Price snapshot providers.

Prices reach the core as an explicit parameter. MappingPriceProvider wraps a
plain {symbol: price} mapping, normalizing pair symbols ("BTC-EUR") to base
symbols so trade and price lookups line up.
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from pnlengine.services.portfolio.interface import IPriceProvider
from pnlengine.system import LoggerFactory
from pnlengine.utilities.symbols import to_base_symbol

logger = LoggerFactory.get_logger()


class MappingPriceProvider:
    """
    Price provider backed by an immutable snapshot of a mapping.

    Values may be Decimal, int, float, str or None. Non-positive or
    unparseable values count as unavailable. When two keys normalize to the
    same base symbol (e.g., "BTC" and "BTC-EUR"), a usable price wins over an
    unusable one, otherwise the first key wins.

    Example:
        >>> provider = MappingPriceProvider({"BTC-EUR": "95000", "ETH": None})
        >>> provider.get_price("BTC")
        Decimal('95000')
        >>> provider.get_price("ETH") is None
        True
    """

    def __init__(self, prices: Mapping[str, Any]) -> None:
        self._prices: dict[str, Decimal | None] = {}

        for key, raw in prices.items():
            symbol = to_base_symbol(key)
            price = _to_price(raw, symbol)
            if symbol not in self._prices or self._prices[symbol] is None:
                self._prices[symbol] = price

    def get_price(self, symbol: str) -> Decimal | None:
        return self._prices.get(to_base_symbol(symbol))

    def symbols(self) -> list[str]:
        """Base symbols with a usable price."""
        return [symbol for symbol, price in self._prices.items() if price is not None]

    def __len__(self) -> int:
        return len(self._prices)


def resolve_price_provider(prices: IPriceProvider | Mapping[str, Any]) -> IPriceProvider:
    """Accept either a provider or a plain mapping."""
    if isinstance(prices, Mapping):
        return MappingPriceProvider(prices)
    return prices


def _to_price(raw: Any, symbol: str) -> Decimal | None:
    if raw is None:
        return None

    try:
        price = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except InvalidOperation:
        logger.warning("prices.unparseable", symbol=symbol, value=repr(raw))
        return None

    if not price.is_finite() or price <= 0:
        return None
    return price
