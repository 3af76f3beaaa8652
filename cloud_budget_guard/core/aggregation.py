"""
Cost aggregation over billing records.

Groups records by service, region or day and computes totals, shares of the
grand total, and the dashboard headline metrics.

Ordering rules:
1. Service/region breakdowns - descending by total cost, ties keep the
   order in which keys were first seen
2. Daily series - chronological, regardless of cost
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence

from .currency import quantize_currency, round_currency, to_decimal
from cloud_budget_guard.storage.models import BillingRecord

HUNDRED = Decimal("100")
NOT_AVAILABLE = "N/A"

# Week-over-week change (percent) beyond which the trend is not "stable"
TREND_THRESHOLD = 5.0


@dataclass(frozen=True)
class CostSummary:
    """Total cost of one group of billing records."""
    key: Hashable
    total_cost: float
    percentage: float
    record_count: int

    @property
    def average_cost(self) -> float:
        """Mean cost per record in the group."""
        if self.record_count == 0:
            return 0.0
        return round_currency(to_decimal(self.total_cost) / self.record_count)


@dataclass(frozen=True)
class DashboardMetrics:
    """Headline numbers for a cost dashboard."""
    total_cost: float
    month_to_date_cost: float
    projected_monthly_cost: float
    top_service: str
    top_region: str
    cost_trend: str  # "up", "down" or "stable"
    percentage_change: float


@dataclass
class _Group:
    total: Decimal
    count: int


def aggregate_by(
    records: Iterable[BillingRecord],
    key_fn: Callable[[BillingRecord], Hashable],
) -> List[CostSummary]:
    """Sum record costs per key and rank the groups by total.

    Costs are accumulated as Decimal so that the group totals add up to the
    grand total; both are rounded half away from zero to cents.

    Args:
        records: Billing records (may be empty)
        key_fn: Extracts the grouping key from a record

    Returns:
        One CostSummary per distinct key, descending by total cost
    """
    groups, grand_total = _group(records, key_fn)

    # sorted() is stable, so equal totals keep first-seen order
    ranked = sorted(groups.items(), key=lambda item: item[1].total, reverse=True)
    return [_summarize(key, group, grand_total) for key, group in ranked]


def aggregate_by_service(records: Iterable[BillingRecord]) -> List[CostSummary]:
    return aggregate_by(records, lambda record: record.service)


def aggregate_by_region(records: Iterable[BillingRecord]) -> List[CostSummary]:
    return aggregate_by(records, lambda record: record.region)


def daily_series(records: Iterable[BillingRecord]) -> List[CostSummary]:
    """Sum record costs per calendar day, in chronological order.

    Unlike aggregate_by, the result is ordered by date ascending and never
    by cost.
    """
    groups, grand_total = _group(records, lambda record: record.date)
    return [
        _summarize(day, groups[day], grand_total)
        for day in sorted(groups)
    ]


def total_cost(records: Iterable[BillingRecord]) -> float:
    """Grand total of record costs, rounded to cents."""
    return round_currency(sum((to_decimal(r.cost) for r in records), Decimal("0")))


def filter_records(
    records: Iterable[BillingRecord],
    start: Optional[date] = None,
    end: Optional[date] = None,
    services: Optional[Sequence[str]] = None,
    regions: Optional[Sequence[str]] = None,
) -> List[BillingRecord]:
    """Keep records inside an inclusive date range and allow-lists.

    An empty or missing service/region list does not filter.
    """
    filtered = []
    for record in records:
        if start is not None and record.date < start:
            continue
        if end is not None and record.date > end:
            continue
        if services and record.service not in services:
            continue
        if regions and record.region not in regions:
            continue
        filtered.append(record)
    return filtered


def calculate_metrics(records: Sequence[BillingRecord], as_of: date) -> DashboardMetrics:
    """Compute dashboard headline metrics as of a given day.

    Projection uses the month-to-date daily average times the number of days
    in the month. Trend compares the last 7 days against the 7 days before.

    Args:
        records: Billing records to summarize
        as_of: Day the metrics are computed for

    Returns:
        DashboardMetrics for the records
    """
    month_records = [
        r for r in records
        if r.date.year == as_of.year and r.date.month == as_of.month
    ]
    month_to_date = sum((to_decimal(r.cost) for r in month_records), Decimal("0"))
    days_in_month = calendar.monthrange(as_of.year, as_of.month)[1]
    projected = month_to_date / as_of.day * days_in_month

    services = aggregate_by_service(records)
    regions = aggregate_by_region(records)

    one_week_ago = as_of - timedelta(days=7)
    two_weeks_ago = as_of - timedelta(days=14)
    current_week = sum(
        (to_decimal(r.cost) for r in records if one_week_ago < r.date <= as_of),
        Decimal("0"),
    )
    previous_week = sum(
        (to_decimal(r.cost) for r in records if two_weeks_ago < r.date <= one_week_ago),
        Decimal("0"),
    )

    if previous_week > 0:
        change = float((current_week - previous_week) / previous_week * HUNDRED)
    else:
        change = 0.0

    if change > TREND_THRESHOLD:
        trend = "up"
    elif change < -TREND_THRESHOLD:
        trend = "down"
    else:
        trend = "stable"

    return DashboardMetrics(
        total_cost=total_cost(records),
        month_to_date_cost=round_currency(month_to_date),
        projected_monthly_cost=round_currency(projected),
        top_service=str(services[0].key) if services else NOT_AVAILABLE,
        top_region=str(regions[0].key) if regions else NOT_AVAILABLE,
        cost_trend=trend,
        percentage_change=round_currency(change),
    )


def _group(records, key_fn):
    groups: Dict[Hashable, _Group] = {}
    grand_total = Decimal("0")
    for record in records:
        cost = to_decimal(record.cost)
        group = groups.setdefault(key_fn(record), _Group(Decimal("0"), 0))
        group.total += cost
        group.count += 1
        grand_total += cost
    return groups, grand_total


def _summarize(key: Hashable, group: _Group, grand_total: Decimal) -> CostSummary:
    # A zero grand total means every share is zero, never NaN
    if grand_total == 0:
        percentage = Decimal("0")
    else:
        percentage = group.total / grand_total * HUNDRED

    return CostSummary(
        key=key,
        total_cost=float(quantize_currency(group.total)),
        percentage=float(quantize_currency(percentage)),
        record_count=group.count,
    )
