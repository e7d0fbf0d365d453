"""SQLite storage for weight logs, plans and recalibration history.

The schema is versioned through ``PRAGMA user_version`` so that opening an
existing database only runs the bootstrap when it is behind.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Daily weight observations (one per date; re-logging a date replaces it)
CREATE TABLE IF NOT EXISTS weight_log (
    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
    weight_kg REAL NOT NULL CHECK (weight_kg > 0),
    measured_at DATE NOT NULL UNIQUE,
    notes TEXT,
    logged_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_weight_log_date ON weight_log(measured_at);

-- Weight-change plans; version guards concurrent edits
CREATE TABLE IF NOT EXISTS plans (
    plan_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    start_date DATE NOT NULL,
    duration_weeks INTEGER NOT NULL,
    start_weight_kg REAL NOT NULL,
    goal_weight_kg REAL NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    tolerance_percent REAL NOT NULL DEFAULT 3.0,
    anchor_week INTEGER NOT NULL DEFAULT 0,
    anchor_weight_kg REAL,
    version INTEGER NOT NULL DEFAULT 1,
    last_recalibrated_at DATE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_plans_status ON plans(status);

-- Applied recalibrations, with the parameters they replaced
CREATE TABLE IF NOT EXISTS plan_recalibrations (
    recalibration_id INTEGER PRIMARY KEY AUTOINCREMENT,
    plan_id INTEGER NOT NULL,
    applied_at DATE NOT NULL,
    option_type TEXT NOT NULL,
    from_version INTEGER NOT NULL,
    previous_json TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (plan_id) REFERENCES plans(plan_id)
);

CREATE INDEX IF NOT EXISTS idx_plan_recalibrations_plan ON plan_recalibrations(plan_id);
"""


class DatabaseConnection:
    """Opens connections to one dualtrack database file."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections.

        Commits when the block exits normally and rolls back on any
        exception. Foreign keys are enforced, so history rows cannot
        point at a missing plan.

        Example:
            with db.get_connection() as conn:
                plan = PlanQueries.get_active_plan(conn)
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def schema_version(self) -> int:
        """Schema version stored in the database file (0 when empty)."""
        with self.get_connection() as conn:
            return conn.execute("PRAGMA user_version").fetchone()[0]

    def initialize_schema(self) -> bool:
        """Create the tables if the database is behind SCHEMA_VERSION.

        Returns:
            True if the bootstrap ran, False if the schema was current
        """
        with self.get_connection() as conn:
            current = conn.execute("PRAGMA user_version").fetchone()[0]
            if current >= SCHEMA_VERSION:
                return False
            conn.executescript(SCHEMA_SQL)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

        logger.info(
            "Initialized schema v%d at %s (was v%d)", SCHEMA_VERSION, self.db_path, current
        )
        return True


# Global database instance (lazy loaded)
_db: Optional[DatabaseConnection] = None


def get_db() -> DatabaseConnection:
    """Get the global database, using the configured path on first use."""
    global _db
    if _db is None:
        from dualtrack.config import get_settings

        _db = DatabaseConnection(get_settings().database.path)
    return _db


def set_db(db: Optional[DatabaseConnection]) -> None:
    """Replace the global database (``--db`` and tests), or reset with None."""
    global _db
    _db = db
