"""
Budget configuration loading.

Reads budget definitions from a YAML file with strict validation.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from cloud_budget_guard.storage.models import (
    Budget,
    BudgetThresholds,
    ValidationError,
    parse_period,
)


@dataclass(frozen=True)
class BudgetConfig:
    """All configured budgets, keyed by name in file order."""
    budgets: Dict[str, Budget]

    def active_budgets(self) -> List[Budget]:
        """Budgets with is_active set, in file order."""
        return [budget for budget in self.budgets.values() if budget.is_active]

    def get_budget(self, name: str) -> Budget:
        """Get a budget by name.

        Raises:
            KeyError: If no budget has that name
        """
        if name not in self.budgets:
            raise KeyError(f"Unknown budget: {name}")
        return self.budgets[name]


def load_budget_config(path: str) -> BudgetConfig:
    """Load and validate budget configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated BudgetConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Budget config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'budgets', 'defaults'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    default_thresholds = None
    defaults_data = raw_config.get('defaults', {})
    if not isinstance(defaults_data, dict):
        raise ValueError("'defaults' must be a dictionary")
    unknown_default_keys = set(defaults_data.keys()) - {'thresholds'}
    if unknown_default_keys:
        raise ValueError(f"Unknown keys in defaults: {unknown_default_keys}")
    if 'thresholds' in defaults_data:
        default_thresholds = _parse_thresholds(defaults_data['thresholds'], "defaults.thresholds")

    if 'budgets' not in raw_config:
        raise ValueError("Missing required 'budgets' section")

    budgets_data = raw_config['budgets']
    if not isinstance(budgets_data, dict) or not budgets_data:
        raise ValueError("'budgets' must be a non-empty dictionary")

    budgets = {}
    for name, budget_data in budgets_data.items():
        if not isinstance(budget_data, dict):
            raise ValueError(f"Budget '{name}' must be a dictionary")
        budgets[str(name)] = _parse_budget(
            str(name), budget_data, f"budgets.{name}", default_thresholds
        )

    return BudgetConfig(budgets=budgets)


def _parse_budget(
    name: str,
    data: Dict[str, Any],
    path: str,
    default_thresholds: Optional[BudgetThresholds],
) -> Budget:
    """Parse and validate a single budget entry.

    Args:
        name: Budget name (its key in the file)
        data: Budget configuration data
        path: Path for error messages
        default_thresholds: Thresholds used when the entry has none

    Returns:
        Validated Budget

    Raises:
        ValueError: If configuration is invalid
    """
    allowed_keys = {'amount', 'period', 'thresholds', 'service', 'region', 'is_active'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    if 'amount' not in data:
        raise ValueError(f"Missing required 'amount' in {path}")
    amount = data['amount']
    if not _is_positive_number(amount):
        raise ValueError(f"'amount' in {path} must be > 0")

    if 'period' not in data:
        raise ValueError(f"Missing required 'period' in {path}")
    try:
        period = parse_period(data['period'])
    except ValidationError as e:
        raise ValueError(f"{e} in {path}")

    if 'thresholds' in data:
        thresholds = _parse_thresholds(data['thresholds'], f"{path}.thresholds")
    elif default_thresholds is not None:
        thresholds = default_thresholds
    else:
        raise ValueError(f"Missing required 'thresholds' in {path}")

    for key in ('service', 'region'):
        if key in data and not isinstance(data[key], str):
            raise ValueError(f"'{key}' in {path} must be a string")

    is_active = data.get('is_active', True)
    if not isinstance(is_active, bool):
        raise ValueError(f"'is_active' in {path} must be a boolean")

    return Budget(
        name=name,
        amount=float(amount),
        period=period,
        thresholds=thresholds,
        is_active=is_active,
        service=data.get('service'),
        region=data.get('region'),
    )


def _parse_thresholds(data: Any, path: str) -> BudgetThresholds:
    """Parse warning/critical percentages.

    critical < warning is accepted here; the evaluator logs it.
    """
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    unknown_keys = set(data.keys()) - {'warning', 'critical'}
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    values = {}
    for key in ('warning', 'critical'):
        if key not in data:
            raise ValueError(f"Missing required '{key}' in {path}")
        value = data[key]
        if not _is_positive_number(value):
            raise ValueError(f"'{key}' in {path} must be > 0")
        values[key] = float(value)

    return BudgetThresholds(warning=values['warning'], critical=values['critical'])


def _is_positive_number(value: Any) -> bool:
    """True for a finite int or float above zero. YAML's .nan and .inf fail."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0
