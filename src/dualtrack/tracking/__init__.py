"""Weight logging and plan records.

Key components:
- WeightObservation / WeightEntry: one body weight per calendar date
- Plan: a time-boxed weight-change plan with lifecycle status
- normalize_observations: sanitize, dedupe and sort a weight series
- WeightQueries / PlanQueries: SQLite persistence
"""

from __future__ import annotations

from dualtrack.tracking.models import (
    KCAL_PER_KG,
    Plan,
    WeightEntry,
    WeightObservation,
    normalize_observations,
    validate_new_plan,
)
from dualtrack.tracking.queries import PlanQueries, WeightQueries

__all__ = [
    "KCAL_PER_KG",
    "Plan",
    "PlanQueries",
    "WeightEntry",
    "WeightObservation",
    "WeightQueries",
    "normalize_observations",
    "validate_new_plan",
]
