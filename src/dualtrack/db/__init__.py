"""SQLite storage for weight logs and plans."""

from __future__ import annotations

from dualtrack.db.connection import DatabaseConnection, get_db, set_db

__all__ = ["DatabaseConnection", "get_db", "set_db"]
