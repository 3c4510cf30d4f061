"""Profit gate policy loader.

Loads exit-decision policies from YAML files and converts them to
ProfitGateConfig dataclasses.

Search Order:
1. Built-in policies: src/pnlengine/libraries/risk/builtin/{name}.yaml
2. Custom policies: {risk.custom_policies}/{name}.yaml (from system.yaml)

Validation happens at load time; a bad policy fails fast with the file path
in the message.
"""

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from pnlengine.libraries.risk.models import ProfitGateConfig
from pnlengine.system.config import get_system_config

BUILTIN_DIR = Path(__file__).parent / "builtin"

_THRESHOLD_FIELDS = {
    "exits": ("take_profit_pct", "stop_loss_pct"),
    "discretionary": ("min_edge_bps", "min_profit_eur", "confidence_threshold"),
}


def load_profit_gate_policy(name: str, custom_path: str | None = None) -> ProfitGateConfig:
    """Load profit gate policy from YAML file.

    Args:
        name: Policy name (without .yaml extension)
        custom_path: Optional custom search path (overrides system config)

    Returns:
        Parsed and validated ProfitGateConfig

    Raises:
        FileNotFoundError: If policy file not found in any search location
        ValueError: If policy YAML is invalid or has bad thresholds

    Examples:
        >>> config = load_profit_gate_policy("default")
        >>> config.take_profit_pct
        Decimal('1.5')

        >>> config = load_profit_gate_policy("scalping", custom_path="policies")
    """
    builtin_path = BUILTIN_DIR / f"{name}.yaml"

    custom_dir = _custom_dir(custom_path)
    custom_policy_path = custom_dir / f"{name}.yaml" if custom_dir is not None else None

    if builtin_path.exists():
        policy_path = builtin_path
    elif custom_policy_path is not None and custom_policy_path.exists():
        policy_path = custom_policy_path
    else:
        custom_msg = (
            f"  2. Custom: {custom_policy_path}\n"
            if custom_policy_path
            else "  2. Custom: (not configured - set risk.custom_policies in system.yaml)\n"
        )
        raise FileNotFoundError(
            f"Policy '{name}' not found. Searched:\n"
            f"  1. Built-in: {builtin_path}\n"
            f"{custom_msg}"
            f"\nAvailable built-in policies: {list_builtin_policies()}\n"
            f"Available custom policies: {list_custom_policies(custom_path)}"
        )

    try:
        with open(policy_path, "r", encoding="utf-8") as f:
            raw_policy = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML from {policy_path}: {e}") from e

    try:
        return _parse_policy(raw_policy, policy_path)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Failed to parse policy from {policy_path}: {e}") from e


def list_builtin_policies() -> list[str]:
    """List available built-in policy names."""
    if not BUILTIN_DIR.exists():
        return []
    return sorted(yaml_file.stem for yaml_file in BUILTIN_DIR.glob("*.yaml"))


def list_custom_policies(custom_path: str | None = None) -> list[str]:
    """List available custom policy names.

    Args:
        custom_path: Optional custom search path (overrides system config)
    """
    custom_dir = _custom_dir(custom_path)
    if custom_dir is None or not custom_dir.exists():
        return []
    return sorted(yaml_file.stem for yaml_file in custom_dir.glob("*.yaml"))


def _custom_dir(custom_path: str | None) -> Path | None:
    if custom_path:
        return Path(custom_path)

    configured = get_system_config().risk.custom_policies
    if configured is None:
        return None
    return Path(configured)


def _parse_policy(raw_policy: Any, source_path: Path) -> ProfitGateConfig:
    """Parse raw YAML policy dict into ProfitGateConfig.

    Missing sections or fields keep the ProfitGateConfig defaults.
    """
    if not isinstance(raw_policy, dict) or "profit_gate_policy" not in raw_policy:
        raise ValueError(f"Policy file {source_path} must have 'profit_gate_policy' root key")

    policy = raw_policy["profit_gate_policy"] or {}
    if not isinstance(policy, dict):
        raise ValueError(f"Policy file {source_path}: 'profit_gate_policy' must be a mapping")

    thresholds: dict[str, Decimal] = {}
    for section_name, fields in _THRESHOLD_FIELDS.items():
        section = policy.get(section_name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Policy {source_path}: '{section_name}' must be a mapping")

        for field_name in fields:
            if field_name in section:
                thresholds[field_name] = _to_decimal(section[field_name], f"{section_name}.{field_name}")

    return ProfitGateConfig(**thresholds)


def _to_decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{name} must be numeric, got {value!r}") from e
