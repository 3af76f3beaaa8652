"""
Database connection management.

Billing records are kept in a local SQLite file.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "cloud_budget_guard.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a SQLite connection, creating the parent directory if needed.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Connection with foreign key constraints enabled
    """
    path = Path(db_path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
