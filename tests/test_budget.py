"""
Tests for budget evaluation logic.
"""
import logging
from datetime import date

import pytest

from cloud_budget_guard.core.budget import (
    BudgetStatusKind,
    InvalidBudgetError,
    InvalidDateRangeError,
    current_period_start,
    days_in_period,
    evaluate,
    evaluate_records,
)
from cloud_budget_guard.storage.models import Budget, BudgetPeriod, BudgetThresholds


def create_budget(amount=1000, warning=80, critical=95, period=BudgetPeriod.MONTHLY, **kwargs):
    """Create a test budget."""
    return Budget(
        name=kwargs.pop("name", "test_budget"),
        amount=amount,
        period=period,
        thresholds=BudgetThresholds(warning=warning, critical=critical),
        **kwargs
    )


START = date(2024, 4, 1)
AS_OF = date(2024, 4, 16)


class TestStatusClassification:
    """Test status precedence and threshold boundaries."""

    @pytest.mark.parametrize("spend, expected", [
        (0, BudgetStatusKind.ON_TRACK),
        (750, BudgetStatusKind.ON_TRACK),
        (799.99, BudgetStatusKind.ON_TRACK),
        (800, BudgetStatusKind.WARNING),
        (949.99, BudgetStatusKind.WARNING),
        (950, BudgetStatusKind.CRITICAL),
        (999.99, BudgetStatusKind.CRITICAL),
        (1000, BudgetStatusKind.EXCEEDED),
        (1500, BudgetStatusKind.EXCEEDED),
    ])
    def test_classification(self, spend, expected):
        status = evaluate(create_budget(), spend, START, AS_OF)

        assert status.status == expected

    def test_on_track_scenario(self):
        status = evaluate(create_budget(), 750, START, AS_OF)

        assert status.percentage_used == 75.0
        assert status.status == BudgetStatusKind.ON_TRACK

    def test_critical_scenario(self):
        """Exactly 95% hits the inclusive critical boundary."""
        status = evaluate(create_budget(), 950, START, AS_OF)

        assert status.percentage_used == 95.0
        assert status.status == BudgetStatusKind.CRITICAL

    def test_exceeded_scenario(self):
        status = evaluate(create_budget(), 1000, START, AS_OF)

        assert status.status == BudgetStatusKind.EXCEEDED
        assert status.remaining_amount == 0

    def test_warning_boundary_is_inclusive(self):
        status = evaluate(create_budget(warning=80), 800, START, AS_OF)

        assert status.percentage_used == 80.0
        assert status.status == BudgetStatusKind.WARNING

    def test_exceeded_overrides_critical_at_hundred(self):
        budget = create_budget(warning=90, critical=100)

        status = evaluate(budget, 1000, START, AS_OF)

        assert status.status == BudgetStatusKind.EXCEEDED

    def test_thresholds_above_hundred_never_reached(self):
        budget = create_budget(warning=110, critical=120)

        assert evaluate(budget, 999, START, AS_OF).status == BudgetStatusKind.ON_TRACK
        assert evaluate(budget, 1000, START, AS_OF).status == BudgetStatusKind.EXCEEDED

    def test_inverted_thresholds_are_logged_not_reordered(self, caplog):
        """critical < warning keeps the documented precedence and is logged."""
        budget = create_budget(warning=90, critical=70)

        with caplog.at_level(logging.WARNING, logger="cloud_budget_guard"):
            status = evaluate(budget, 800, START, AS_OF)

        assert status.status == BudgetStatusKind.CRITICAL
        assert "critical threshold 70 below warning threshold 90" in caplog.text


class TestProjection:
    """Test spend projection and period arithmetic."""

    def test_linear_projection(self):
        # 15 days elapsed, 30 days in April
        status = evaluate(create_budget(), 450, START, AS_OF)

        assert status.average_daily_spend == 30.0
        assert status.projected_spend == 900.0
        assert status.days_remaining == 15
        assert status.remaining_amount == 550.0
        assert status.budget_amount == 1000.0
        assert status.current_spend == 450.0

    def test_first_day_counts_as_one_day(self):
        status = evaluate(create_budget(), 40, START, START)

        assert status.average_daily_spend == 40.0
        assert status.projected_spend == 1200.0
        assert status.days_remaining == 29

    def test_days_remaining_never_negative(self):
        status = evaluate(create_budget(), 100, START, date(2024, 6, 1))

        assert status.days_remaining == 0

    def test_february_leap_year(self):
        status = evaluate(create_budget(), 10, date(2024, 2, 1), date(2024, 2, 11))

        assert status.projected_spend == 29.0

    @pytest.mark.parametrize("period, start, expected", [
        (BudgetPeriod.MONTHLY, date(2024, 2, 1), 29),
        (BudgetPeriod.MONTHLY, date(2023, 2, 1), 28),
        (BudgetPeriod.MONTHLY, date(2024, 1, 1), 31),
        (BudgetPeriod.QUARTERLY, date(2024, 1, 1), 91),
        (BudgetPeriod.YEARLY, date(2024, 1, 1), 366),
        (BudgetPeriod.YEARLY, date(2023, 1, 1), 365),
    ])
    def test_days_in_period(self, period, start, expected):
        assert days_in_period(period, start) == expected

    @pytest.mark.parametrize("period, as_of, expected", [
        (BudgetPeriod.MONTHLY, date(2024, 5, 17), date(2024, 5, 1)),
        (BudgetPeriod.QUARTERLY, date(2024, 5, 17), date(2024, 4, 1)),
        (BudgetPeriod.QUARTERLY, date(2024, 12, 31), date(2024, 10, 1)),
        (BudgetPeriod.YEARLY, date(2024, 5, 17), date(2024, 1, 1)),
    ])
    def test_current_period_start(self, period, as_of, expected):
        assert current_period_start(period, as_of) == expected

    def test_evaluate_is_idempotent(self):
        budget = create_budget()

        first = evaluate(budget, 612.34, START, AS_OF)
        second = evaluate(budget, 612.34, START, AS_OF)

        assert first == second


class TestEvaluationErrors:
    """Test input validation."""

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_amount(self, amount):
        with pytest.raises(InvalidBudgetError):
            evaluate(create_budget(amount=amount), 10, START, AS_OF)

    def test_as_of_before_period_start(self):
        with pytest.raises(InvalidDateRangeError, match="before period start"):
            evaluate(create_budget(), 10, START, date(2024, 3, 31))

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            evaluate(create_budget(amount=0), 10, START, AS_OF)

    def test_negative_spend(self):
        with pytest.raises(ValueError, match="current_spend"):
            evaluate(create_budget(), -1, START, AS_OF)

    @pytest.mark.parametrize("amount", [float("nan"), float("inf")])
    def test_non_finite_amount(self, amount):
        with pytest.raises(InvalidBudgetError):
            evaluate(create_budget(amount=amount), 10, START, AS_OF)

    @pytest.mark.parametrize("spend", [float("nan"), float("inf")])
    def test_non_finite_spend(self, spend):
        with pytest.raises(ValueError, match="current_spend must be a finite number"):
            evaluate(create_budget(), spend, START, AS_OF)


class TestEvaluateRecords:
    """Test evaluation straight from billing records."""

    def test_only_current_period_counts(self, record_factory):
        records = [
            record_factory(day=date(2024, 3, 31), cost=500),
            record_factory(day=date(2024, 4, 1), cost=100),
            record_factory(day=date(2024, 4, 10), cost=200),
            record_factory(day=date(2024, 4, 20), cost=400),
        ]

        status = evaluate_records(create_budget(), records, AS_OF)

        assert status.current_spend == 300.0
        assert status.status == BudgetStatusKind.ON_TRACK

    def test_scope_filters_service_and_region(self, record_factory):
        records = [
            record_factory(service="EC2", region="us-east-1", day=START, cost=100),
            record_factory(service="EC2", region="eu-west-1", day=START, cost=200),
            record_factory(service="S3", region="us-east-1", day=START, cost=400),
        ]
        budget = create_budget(amount=100, service="EC2", region="us-east-1")

        status = evaluate_records(budget, records, AS_OF)

        assert status.current_spend == 100.0
        assert status.status == BudgetStatusKind.EXCEEDED

    def test_no_records_is_on_track(self):
        status = evaluate_records(create_budget(), [], AS_OF)

        assert status.current_spend == 0
        assert status.projected_spend == 0
        assert status.status == BudgetStatusKind.ON_TRACK
