"""
Shared fixtures: a deterministic billing record generator.

Records are drawn from a seeded random.Random so every run produces the same
data.
"""

import random
from datetime import date, timedelta
from typing import List, Optional

import pytest

from cloud_budget_guard.storage.models import BillingRecord

SERVICES = {
    # service: (min cost, max cost, unit, resource prefix)
    "EC2": (10, 200, "hours", "i-"),
    "S3": (0.5, 50, "GB", "bucket-"),
    "RDS": (20, 300, "hours", "db-"),
    "Lambda": (0.1, 10, "requests", "function-"),
    "CloudFront": (2, 80, "GB", "cf-"),
    "DynamoDB": (2, 100, "RCU/WCU", "table-"),
}

REGIONS = ["us-east-1", "us-west-2", "eu-west-1", "eu-central-1", "ap-southeast-1"]
ENVIRONMENTS = ["prod", "staging", "dev", "test"]
TEAMS = ["frontend", "backend", "data", "devops"]


def generate_billing_records(
    seed: int = 42,
    start: date = date(2024, 3, 1),
    days: int = 30,
    per_day: int = 5,
    services: Optional[List[str]] = None,
) -> List[BillingRecord]:
    """Generate billing records with two-decimal costs."""
    rng = random.Random(seed)
    service_names = services or sorted(SERVICES)
    records = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        for _ in range(per_day):
            service = rng.choice(service_names)
            low, high, unit, prefix = SERVICES[service]
            records.append(BillingRecord(
                date=day,
                service=service,
                region=rng.choice(REGIONS),
                cost=round(rng.uniform(low, high), 2),
                usage=round(rng.uniform(1, 1000), 2),
                unit=unit,
                resource_id=f"{prefix}{rng.randrange(16 ** 8):08x}",
                tags={
                    "Environment": rng.choice(ENVIRONMENTS),
                    "Team": rng.choice(TEAMS),
                },
            ))
    return records


@pytest.fixture
def billing_records():
    """Thirty days of March 2024 billing records, five per day."""
    return generate_billing_records()


@pytest.fixture
def record_factory():
    """Build a single record with sensible defaults."""
    def _make(service="EC2", cost=1.0, region="us-east-1", day=date(2024, 3, 1), **kwargs):
        return BillingRecord(date=day, service=service, region=region, cost=cost, **kwargs)
    return _make
