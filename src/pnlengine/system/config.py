"""
System configuration for pnlengine.

One YAML file configures the whole engine:
- accounting: lot matching tolerance and reporting currency
- risk: which profit-gate policy to load, and where custom policies live
- logging: console/file logging (converted to log_system.LoggingConfig)

Lookup order for SystemConfig.load():
1. Explicit path argument
2. PNLENGINE_CONFIG environment variable
3. config/system.yaml in the working directory
4. Built-in defaults

String values may reference environment variables as ${VAR}; undefined
variables keep their placeholder.
"""

import os
import re
from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from pnlengine.system import log_system

CONFIG_ENV_VAR = "PNLENGINE_CONFIG"
DEFAULT_CONFIG_PATH = Path("config/system.yaml")

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


@dataclass(frozen=True)
class AccountingConfig:
    """Lot accounting settings.

    Attributes:
        lot_epsilon: Remaining quantity below which a lot counts as closed
        reporting_currency: Currency of prices, cost basis and P&L (e.g., EUR)
    """

    lot_epsilon: Decimal = Decimal("1e-8")
    reporting_currency: str = "EUR"

    def __post_init__(self) -> None:
        if self.lot_epsilon <= 0:
            raise ValueError(f"lot_epsilon must be positive, got {self.lot_epsilon}")
        if not self.reporting_currency:
            raise ValueError("reporting_currency cannot be empty")


@dataclass(frozen=True)
class RiskSettings:
    """Profit-gate policy selection.

    Attributes:
        profit_gate_policy: Policy name (builtin or custom YAML file stem)
        custom_policies: Directory searched after the builtin policies
    """

    profit_gate_policy: str = "default"
    custom_policies: str | None = None


@dataclass(frozen=True)
class LoggingConfig:
    """Logging section of system.yaml."""

    level: str = "INFO"
    format: str = "console"
    timestamp_format: str = "compact"
    enable_file: bool = False
    file_path: str = "logs/pnlengine.log"
    file_level: str = "WARNING"
    file_rotation: bool = True
    max_file_size_mb: int = 10
    backup_count: int = 3

    def to_logger_config(self) -> log_system.LoggingConfig:
        """Convert to the pydantic config consumed by LoggerFactory."""
        return log_system.LoggingConfig(
            level=self.level,  # type: ignore[arg-type]
            format=self.format,  # type: ignore[arg-type]
            timestamp_format=self.timestamp_format,  # type: ignore[arg-type]
            enable_file=self.enable_file,
            file_path=Path(self.file_path),
            file_level=self.file_level,  # type: ignore[arg-type]
            file_rotation=self.file_rotation,
            max_file_size_mb=self.max_file_size_mb,
            backup_count=self.backup_count,
        )


@dataclass(frozen=True)
class SystemConfig:
    """Complete engine configuration."""

    accounting: AccountingConfig = field(default_factory=AccountingConfig)
    risk: RiskSettings = field(default_factory=RiskSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "SystemConfig":
        """
        Load configuration from YAML, merged over built-in defaults.

        Args:
            path: Explicit config file. Missing files fall back to defaults.

        Returns:
            SystemConfig instance
        """
        if path is None:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

        config_path = Path(path)
        if not config_path.exists():
            return cls()

        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}

        if not isinstance(raw, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping, got {type(raw).__name__}")

        return cls._from_dict(_substitute_env_vars(raw))

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "SystemConfig":
        """Build config from a (possibly partial) dictionary."""
        merged = _deep_merge(_defaults_dict(), data)

        accounting = dict(merged["accounting"])
        accounting["lot_epsilon"] = _to_decimal(accounting["lot_epsilon"], "accounting.lot_epsilon")

        return cls(
            accounting=AccountingConfig(**accounting),
            risk=RiskSettings(**merged["risk"]),
            logging=LoggingConfig(**merged["logging"]),
        )


def _defaults_dict() -> dict[str, Any]:
    defaults = SystemConfig()
    return {
        "accounting": {
            "lot_epsilon": defaults.accounting.lot_epsilon,
            "reporting_currency": defaults.accounting.reporting_currency,
        },
        "risk": {
            "profit_gate_policy": defaults.risk.profit_gate_policy,
            "custom_policies": defaults.risk.custom_policies,
        },
        "logging": asdict(defaults.logging),
    }


def _to_decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{name} must be numeric, got {value!r}") from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base (override wins)."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _substitute_env_vars(value: Any) -> Any:
    """Replace ${VAR} references in strings, recursing into dicts and lists."""
    if isinstance(value, dict):
        return {key: _substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda match: os.environ.get(match.group(1), match.group(0)), value)
    return value


_system_config: SystemConfig | None = None


def get_system_config(path: str | Path | None = None) -> SystemConfig:
    """
    Get the cached system configuration.

    Args:
        path: Explicit config file; bypasses and replaces the cached instance

    Returns:
        SystemConfig singleton
    """
    global _system_config
    if path is not None:
        _system_config = SystemConfig.load(path)
    elif _system_config is None:
        _system_config = SystemConfig.load()
    return _system_config


def reload_system_config() -> SystemConfig:
    """Force reload of the system configuration."""
    global _system_config
    _system_config = SystemConfig.load()
    return _system_config
