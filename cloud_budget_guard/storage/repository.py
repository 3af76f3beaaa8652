"""
Repository for billing record persistence.

Billing records are written append-only and read back by date range,
service and region.
"""

import json
import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

from .db import DEFAULT_DB_PATH, get_connection
from .models import BillingRecord

logger = logging.getLogger(__name__)

_INSERT_SQL = """
    INSERT INTO billing_record
    (date, service, region, cost, usage, unit, resource_id, tags)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_SQL = """
    SELECT date, service, region, cost, usage, unit, resource_id, tags
    FROM billing_record
"""


class BillingRepository:
    """Read access to stored billing records.

    Each query opens its own connection, so an instance can be shared freely.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get_records(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        services: Optional[Sequence[str]] = None,
        regions: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> List[BillingRecord]:
        """Get billing records with optional filtering.

        Args:
            start: Earliest date to include
            end: Latest date to include
            services: Only include these services
            regions: Only include these regions
            limit: Maximum number of records to return

        Returns:
            Billing records ordered by date (oldest first), then insertion order
        """
        query = _SELECT_SQL
        params: list = []
        conditions = []

        if start is not None:
            conditions.append("date >= ?")
            params.append(start.isoformat())
        if end is not None:
            conditions.append("date <= ?")
            params.append(end.isoformat())
        if services:
            conditions.append(f"service IN ({', '.join('?' for _ in services)})")
            params.extend(services)
        if regions:
            conditions.append(f"region IN ({', '.join('?' for _ in regions)})")
            params.extend(regions)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY date ASC, id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(query, params)
            return [_row_to_record(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_total_cost(
        self,
        start: date,
        end: date,
        service: Optional[str] = None,
        region: Optional[str] = None,
    ) -> float:
        """Sum of record costs between two dates (inclusive)."""
        query = "SELECT SUM(cost) FROM billing_record WHERE date >= ? AND date <= ?"
        params: list = [start.isoformat(), end.isoformat()]
        if service:
            query += " AND service = ?"
            params.append(service)
        if region:
            query += " AND region = ?"
            params.append(region)

        conn = get_connection(self.db_path)
        try:
            row = conn.execute(query, params).fetchone()
            return float(row[0] or 0)
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the billing_record table and its indexes if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS billing_record (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                date TEXT NOT NULL,
                service TEXT NOT NULL,
                region TEXT NOT NULL,
                cost REAL NOT NULL CHECK (cost >= 0),
                usage REAL NOT NULL DEFAULT 0,
                unit TEXT NOT NULL DEFAULT '',
                resource_id TEXT NOT NULL DEFAULT '',
                tags TEXT NOT NULL DEFAULT '{}'
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_billing_date ON billing_record (date)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_billing_service ON billing_record (service, date)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_billing_region ON billing_record (region, date)")
        conn.commit()
    finally:
        conn.close()


def insert_billing_record(record: BillingRecord, db_path: str = DEFAULT_DB_PATH) -> None:
    """Insert a single billing record.

    Args:
        record: The billing record to store
        db_path: Path to SQLite database file
    """
    insert_billing_records([record], db_path)


def insert_billing_records(records: Iterable[BillingRecord], db_path: str = DEFAULT_DB_PATH) -> int:
    """Insert billing records atomically.

    All records are inserted in a single transaction; on any failure
    nothing is written.

    Args:
        records: Billing records to store
        db_path: Path to SQLite database file

    Returns:
        Number of records inserted
    """
    rows = [_record_to_row(record) for record in records]
    if not rows:
        return 0

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        conn.executemany(_INSERT_SQL, rows)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info("Inserted %d billing records into %s", len(rows), db_path)
    return len(rows)


def _record_to_row(record: BillingRecord) -> tuple:
    return (
        record.date.isoformat(),
        record.service,
        record.region,
        record.cost,
        record.usage,
        record.unit,
        record.resource_id,
        json.dumps(record.tags, sort_keys=True),
    )


def _row_to_record(row: tuple) -> BillingRecord:
    return BillingRecord(
        date=date.fromisoformat(row[0]),
        service=row[1],
        region=row[2],
        cost=row[3],
        usage=row[4],
        unit=row[5],
        resource_id=row[6],
        tags=json.loads(row[7]),
    )
