"""
Budget evaluation and spend projection.

Classifies current spend against a budget and projects period-end spend
linearly from the average daily spend so far. The projection has no
seasonality or smoothing.

Classification order (first match wins):
1. percentage used >= 100 - exceeded
2. percentage used >= critical threshold - critical
3. percentage used >= warning threshold - warning
4. otherwise - on track
"""

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable

from .aggregation import HUNDRED, filter_records
from .currency import round_currency, to_decimal
from cloud_budget_guard.storage.models import BillingRecord, Budget, BudgetPeriod

logger = logging.getLogger(__name__)

QUARTER_DAYS = 91


class BudgetStatusKind(Enum):
    """Spend classification, in increasing order of severity."""
    ON_TRACK = "on_track"
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"


class BudgetEvaluationError(ValueError):
    """Base class for invalid evaluator input."""


class InvalidBudgetError(BudgetEvaluationError):
    """Raised when the budget amount is not positive."""


class InvalidDateRangeError(BudgetEvaluationError):
    """Raised when the as-of date precedes the period start."""


@dataclass(frozen=True)
class BudgetStatus:
    """Point-in-time status of a budget. Recomputed on every evaluation."""
    budget_name: str
    current_spend: float
    budget_amount: float
    percentage_used: float
    remaining_amount: float
    projected_spend: float
    average_daily_spend: float
    status: BudgetStatusKind
    days_remaining: int


def days_in_period(period: BudgetPeriod, period_start: date) -> int:
    """Number of days in the period that starts on ``period_start``.

    Monthly periods use the length of that calendar month, quarterly
    periods are a flat 91 days, yearly periods are 365 or 366 days
    depending on the start year.
    """
    if period == BudgetPeriod.MONTHLY:
        return calendar.monthrange(period_start.year, period_start.month)[1]
    if period == BudgetPeriod.QUARTERLY:
        return QUARTER_DAYS
    if period == BudgetPeriod.YEARLY:
        return 366 if calendar.isleap(period_start.year) else 365
    raise ValueError(f"Unsupported period: {period}")


def current_period_start(period: BudgetPeriod, as_of: date) -> date:
    """First day of the calendar month, quarter or year containing ``as_of``."""
    if period == BudgetPeriod.MONTHLY:
        return as_of.replace(day=1)
    if period == BudgetPeriod.QUARTERLY:
        first_month = 3 * ((as_of.month - 1) // 3) + 1
        return date(as_of.year, first_month, 1)
    if period == BudgetPeriod.YEARLY:
        return date(as_of.year, 1, 1)
    raise ValueError(f"Unsupported period: {period}")


def classify(percentage_used: Decimal, budget: Budget) -> BudgetStatusKind:
    """Map a percentage of budget used to a status."""
    if percentage_used >= HUNDRED:
        return BudgetStatusKind.EXCEEDED
    if percentage_used >= to_decimal(budget.thresholds.critical):
        return BudgetStatusKind.CRITICAL
    if percentage_used >= to_decimal(budget.thresholds.warning):
        return BudgetStatusKind.WARNING
    return BudgetStatusKind.ON_TRACK


def evaluate(
    budget: Budget,
    current_spend: float,
    period_start: date,
    as_of: date,
) -> BudgetStatus:
    """Evaluate current spend against a budget.

    Args:
        budget: Budget to evaluate against
        current_spend: Spend so far in the period
        period_start: First day of the budget period
        as_of: Day the evaluation is made for

    Returns:
        BudgetStatus with classification and linear projection

    Raises:
        InvalidBudgetError: If the budget amount is not positive
        InvalidDateRangeError: If as_of is before period_start
        ValueError: If current_spend is negative or not finite
    """
    if not (math.isfinite(budget.amount) and budget.amount > 0):
        raise InvalidBudgetError(
            f"Budget '{budget.name}' amount must be > 0, got {budget.amount}"
        )
    if as_of < period_start:
        raise InvalidDateRangeError(
            f"as_of {as_of.isoformat()} is before period start {period_start.isoformat()}"
        )
    if not math.isfinite(current_spend):
        raise ValueError("current_spend must be a finite number")
    if not current_spend >= 0:
        raise ValueError("current_spend cannot be negative")

    if not budget.thresholds.is_ordered:
        logger.warning(
            "Budget '%s' has critical threshold %s below warning threshold %s",
            budget.name, budget.thresholds.critical, budget.thresholds.warning,
        )

    spend = to_decimal(current_spend)
    amount = to_decimal(budget.amount)
    percentage_used = spend / amount * HUNDRED

    # Day one of a period counts as one elapsed day
    days_elapsed = max(1, (as_of - period_start).days)
    period_days = days_in_period(budget.period, period_start)
    days_remaining = max(0, period_days - days_elapsed)

    average_daily = spend / days_elapsed
    projected = average_daily * period_days

    status = classify(percentage_used, budget)
    logger.debug(
        "Budget '%s': %.2f%% used, projected %s, status %s",
        budget.name, percentage_used, projected, status.value,
    )

    return BudgetStatus(
        budget_name=budget.name,
        current_spend=round_currency(spend),
        budget_amount=round_currency(amount),
        percentage_used=round_currency(percentage_used),
        remaining_amount=round_currency(max(Decimal("0"), amount - spend)),
        projected_spend=round_currency(projected),
        average_daily_spend=round_currency(average_daily),
        status=status,
        days_remaining=days_remaining,
    )


def evaluate_records(
    budget: Budget,
    records: Iterable[BillingRecord],
    as_of: date,
) -> BudgetStatus:
    """Evaluate a budget against the records in its current period and scope.

    Only records dated between the start of the period containing ``as_of``
    and ``as_of`` itself, and matching the budget's service/region (when
    set), count towards spend.
    """
    period_start = current_period_start(budget.period, as_of)
    in_scope = filter_records(
        records,
        start=period_start,
        end=as_of,
        services=[budget.service] if budget.service else None,
        regions=[budget.region] if budget.region else None,
    )
    spend = sum((to_decimal(r.cost) for r in in_scope), Decimal("0"))
    return evaluate(budget, spend, period_start, as_of)
