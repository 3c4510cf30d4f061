"""Trade and price snapshot loaders.

Reads trade ledgers exported by the trading backend and price snapshots for
reporting.

Trade files:
- CSV with a header row, or JSON (a list of objects, or {"trades": [...]})
- Backend column names are accepted alongside the model's field names:
  trade_type -> side, cryptocurrency -> symbol,
  original_trade_id -> linked_buy_id, original_purchase_value -> purchase_value,
  user_id -> account_id
- Empty cells mean "not set"

Price files:
- YAML or JSON mapping of symbol -> price (null for unknown), optionally
  nested under a "prices" key
"""

import csv
import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from pnlengine.services.portfolio.models import Trade
from pnlengine.system import LoggerFactory

logger = LoggerFactory.get_logger()

FIELD_ALIASES = {
    "trade_type": "side",
    "cryptocurrency": "symbol",
    "original_trade_id": "linked_buy_id",
    "original_purchase_value": "purchase_value",
    "user_id": "account_id",
}

_TRADE_FIELDS = set(Trade.model_fields)


class TradeLoadError(ValueError):
    """Trade file could not be read or a record is invalid."""

    def __init__(self, message: str, path: Path, row: int | None = None) -> None:
        self.path = path
        self.row = row
        location = f"{path} row {row}" if row is not None else str(path)
        super().__init__(f"{location}: {message}")


def load_trades(path: str | Path) -> list[Trade]:
    """
    Load trades from a CSV or JSON file.

    Args:
        path: File path (.csv or .json)

    Returns:
        Trades in file order

    Raises:
        TradeLoadError: If the file cannot be read or a record is invalid or duplicated
    """
    trade_path = Path(path)
    if not trade_path.exists():
        raise TradeLoadError("file not found", trade_path)

    suffix = trade_path.suffix.lower()
    if suffix == ".csv":
        records = _read_csv(trade_path)
    elif suffix == ".json":
        records = _read_json(trade_path)
    else:
        raise TradeLoadError(f"unsupported file type '{suffix}' (use .csv or .json)", trade_path)

    trades: list[Trade] = []
    seen: set[str] = set()
    for row, record in enumerate(records, start=1):
        try:
            trade = Trade(**normalize_record(record))
        except ValidationError as e:
            raise TradeLoadError(_first_error(e), trade_path, row) from e
        if trade.id in seen:
            raise TradeLoadError(f"duplicate trade id '{trade.id}'", trade_path, row)
        seen.add(trade.id)
        trades.append(trade)

    logger.debug("loaders.trades_loaded", path=str(trade_path), count=len(trades))
    return trades


def normalize_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Map backend column names to Trade fields and drop empty or unknown ones.

    Example:
        >>> normalize_record({"trade_type": "BUY", "cryptocurrency": "BTC", "notes": "x", "fees": ""})
        {'side': 'BUY', 'symbol': 'BTC'}
    """
    normalized: dict[str, Any] = {}
    for key, value in record.items():
        if key is None:
            continue
        name = FIELD_ALIASES.get(key.strip(), key.strip())
        if name not in _TRADE_FIELDS:
            continue
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        # Keep the explicit field when both alias and field name are present
        if name in normalized and name != key.strip():
            continue
        normalized[name] = value.strip() if isinstance(value, str) else _json_number(value)
    return normalized


def load_prices(path: str | Path) -> dict[str, Any]:
    """
    Load a price snapshot.

    Args:
        path: YAML or JSON file

    Returns:
        Raw {symbol: price | None} mapping (parse with MappingPriceProvider)

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a mapping
    """
    price_path = Path(path)
    if not price_path.exists():
        raise FileNotFoundError(f"Price file not found: {price_path}")

    with price_path.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse prices from {price_path}: {e}") from e

    if isinstance(raw, dict) and isinstance(raw.get("prices"), dict):
        raw = raw["prices"]

    if not isinstance(raw, dict):
        raise ValueError(f"Price file {price_path} must contain a mapping of symbol to price")

    return {str(symbol): value for symbol, value in raw.items()}


def _read_csv(path: Path) -> list[dict[str, Any]]:
    with path.open("r", newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def _read_json(path: Path) -> list[dict[str, Any]]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise TradeLoadError(f"invalid JSON: {e}", path) from e

    if isinstance(data, dict):
        data = data.get("trades")

    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise TradeLoadError("expected a list of trade objects or {'trades': [...]}", path)

    return data


def _json_number(value: Any) -> Any:
    """Floats go through str so Decimal fields keep the written digits."""
    if isinstance(value, float):
        return str(value)
    return value


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", str(error))
    return f"{location}: {message}" if location else message
