"""
Data models for billing records and budgets.

Defines the immutable entities the core reads, and the parsing rules that
turn loosely-typed JSON/YAML payloads into them.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ValidationError(ValueError):
    """Raised when an incoming payload does not match the expected shape."""


class BudgetPeriod(Enum):
    """Window a budget applies to."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class BillingRecord:
    """Immutable cost line item for one cloud resource on one day.

    Records are produced by an ingestion source (billing feed, JSON file,
    the local store) and are never modified afterwards.
    """
    date: date
    service: str
    region: str
    cost: float
    usage: float = 0.0
    unit: str = ""
    resource_id: str = ""
    # Excluded from hashing so records stay hashable
    tags: Dict[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        """Validate amounts are finite and non-negative."""
        _check_amount(self.cost, "cost")
        _check_amount(self.usage, "usage")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BillingRecord":
        """Parse a billing record from its JSON representation.

        Accepts both the camelCase wire shape (``resourceId``) and
        snake_case keys.

        Args:
            data: Decoded JSON object

        Returns:
            Validated BillingRecord

        Raises:
            ValidationError: If a field is missing, mistyped or out of range
        """
        if not isinstance(data, Mapping):
            raise ValidationError("billing record must be an object")

        resource_id = data.get("resourceId", data.get("resource_id", ""))
        tags = data.get("tags") or {}
        if not isinstance(tags, Mapping):
            raise ValidationError("'tags' must be an object")
        for key, value in tags.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValidationError("'tags' keys and values must be strings")

        return cls(
            date=_parse_date(_require(data, "date"), "date"),
            service=_require_str(data, "service"),
            region=_require_str(data, "region"),
            cost=_require_number(data, "cost"),
            usage=_optional_number(data, "usage", 0.0),
            unit=_optional_str(data.get("unit"), "unit"),
            resource_id=_optional_str(resource_id, "resourceId"),
            tags=dict(tags),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase JSON shape."""
        return {
            "date": self.date.isoformat(),
            "service": self.service,
            "region": self.region,
            "cost": self.cost,
            "usage": self.usage,
            "unit": self.unit,
            "resourceId": self.resource_id,
            "tags": dict(self.tags),
        }


@dataclass(frozen=True)
class BudgetThresholds:
    """Warning and critical levels, as percentages of the budget amount.

    ``warning <= critical`` is expected but not enforced.
    """
    warning: float
    critical: float

    def __post_init__(self):
        if not _is_positive(self.warning):
            raise ValidationError("warning threshold must be > 0")
        if not _is_positive(self.critical):
            raise ValidationError("critical threshold must be > 0")

    @property
    def is_ordered(self) -> bool:
        return self.warning <= self.critical


@dataclass(frozen=True)
class Budget:
    """Spending ceiling for a period, optionally scoped to a service/region.

    The amount is not validated here; the evaluator rejects non-positive
    amounts with InvalidBudgetError.
    """
    name: str
    amount: float
    period: BudgetPeriod
    thresholds: BudgetThresholds
    is_active: bool = True
    service: Optional[str] = None
    region: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Budget":
        """Parse a budget from its JSON representation.

        Raises:
            ValidationError: If a field is missing, mistyped or out of range
        """
        if not isinstance(data, Mapping):
            raise ValidationError("budget must be an object")

        amount = _require_number(data, "amount")
        if not _is_positive(amount):
            raise ValidationError("'amount' must be > 0")

        thresholds = _require(data, "thresholds")
        if not isinstance(thresholds, Mapping):
            raise ValidationError("'thresholds' must be an object")

        is_active = data.get("isActive", data.get("is_active", True))
        if not isinstance(is_active, bool):
            raise ValidationError("'isActive' must be a boolean")

        return cls(
            name=_optional_str(data.get("name"), "name") or "budget",
            amount=amount,
            period=parse_period(_require(data, "period")),
            thresholds=BudgetThresholds(
                warning=_require_number(thresholds, "warning"),
                critical=_require_number(thresholds, "critical"),
            ),
            is_active=is_active,
            service=_optional_str(data.get("service"), "service") or None,
            region=_optional_str(data.get("region"), "region") or None,
        )


def parse_period(value: Any) -> BudgetPeriod:
    """Parse a period name such as ``"monthly"``."""
    if not isinstance(value, str):
        raise ValidationError("'period' must be a string")
    try:
        return BudgetPeriod(value.lower())
    except ValueError:
        valid = [period.value for period in BudgetPeriod]
        raise ValidationError(f"'period' must be one of: {valid}")


def parse_iso_date(value: Any, name: str = "date") -> date:
    """Parse a ``YYYY-MM-DD`` string (or pass through a date)."""
    return _parse_date(value, name)


def _require(data: Mapping[str, Any], name: str) -> Any:
    if name not in data or data[name] is None or data[name] == "":
        raise ValidationError(f"Field '{name}' is required")
    return data[name]


def _require_str(data: Mapping[str, Any], name: str) -> str:
    value = _require(data, name)
    if not isinstance(value, str):
        raise ValidationError(f"Field '{name}' must be a string")
    return value


def _optional_str(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"Field '{name}' must be a string")
    return value


def _require_number(data: Mapping[str, Any], name: str) -> float:
    value = _require(data, name)
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Field '{name}' must be a number")
    _check_amount(value, f"Field '{name}'")
    return float(value)


def _is_positive(value) -> bool:
    return math.isfinite(value) and value > 0


def _check_amount(value, label: str) -> None:
    if not math.isfinite(value):
        raise ValidationError(f"{label} must be a finite number")
    if not value >= 0:
        raise ValidationError(f"{label} cannot be negative")


def _optional_number(data: Mapping[str, Any], name: str, default: float) -> float:
    if data.get(name) is None:
        return default
    return _require_number(data, name)


def _parse_date(value: Any, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Field '{name}' must be an ISO 8601 date string")
    try:
        return date.fromisoformat(value.split("T", 1)[0])
    except ValueError:
        raise ValidationError(f"Field '{name}' is not a valid date: {value!r}")
