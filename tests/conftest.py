"""Root conftest for all tests - sys.path setup and shared trade fixtures."""

import sys
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# Add src/ to sys.path so tests run without an editable install
src_root = Path(__file__).parent.parent / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from pnlengine.services.portfolio.models import Trade  # noqa: E402

BASE_TIME = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

TradeFactory = Callable[..., Trade]


@pytest.fixture
def timestamp() -> datetime:
    """Standard timestamp for tests."""
    return BASE_TIME


@pytest.fixture
def make_trade() -> TradeFactory:
    """
    Factory for trades with sensible defaults.

    Numeric arguments may be str/int; `minutes` offsets executed_at from
    BASE_TIME so tests can state ordering directly.
    """

    def _make(
        trade_id: str,
        side: str,
        amount: str | int | Decimal,
        price: str | int | Decimal,
        minutes: int = 0,
        symbol: str = "BTC",
        fees: str | int | Decimal = "0",
        **extra,
    ) -> Trade:
        return Trade(
            id=trade_id,
            side=side,
            symbol=symbol,
            amount=Decimal(str(amount)),
            price=Decimal(str(price)),
            fees=Decimal(str(fees)),
            executed_at=BASE_TIME + timedelta(minutes=minutes),
            **extra,
        )

    return _make
