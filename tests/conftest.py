"""Pytest fixtures for dualtrack tests."""

from __future__ import annotations

import tempfile
from datetime import date, timedelta
from pathlib import Path

import pytest

from dualtrack.db.connection import DatabaseConnection, set_db
from dualtrack.tracking.models import Plan, WeightObservation

# A Monday, so plan weeks line up with calendar weeks
PLAN_START = date(2025, 1, 6)


def make_plan(**overrides) -> Plan:
    """Loss plan 90 -> 84 kg over 12 weeks (-0.5 kg/week), at week 4."""
    params = {
        "plan_id": 1,
        "start_date": PLAN_START,
        "duration_weeks": 12,
        "start_weight_kg": 90.0,
        "goal_weight_kg": 84.0,
        "current_week": 4,
    }
    params.update(overrides)
    return Plan(**params)


def daily_series(
    start: date, weights: list[float]
) -> list[WeightObservation]:
    """One observation per consecutive day starting at ``start``."""
    return [
        WeightObservation(date=start + timedelta(days=i), weight_kg=w)
        for i, w in enumerate(weights)
    ]


@pytest.fixture
def temp_db():
    """Create a temporary database with schema."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    db = DatabaseConnection(db_path)
    db.initialize_schema()

    yield db

    # Cleanup
    db_path.unlink(missing_ok=True)


@pytest.fixture
def conn(temp_db):
    """Open connection to the temporary database."""
    with temp_db.get_connection() as connection:
        yield connection


@pytest.fixture(autouse=True)
def reset_global_db():
    """Keep a --db override from leaking between tests."""
    yield
    set_db(None)
