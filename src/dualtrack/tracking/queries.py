"""Database queries for weight logs and plans."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date, datetime
from typing import Optional

from dualtrack.errors import PlanNotFoundError, VersionConflictError
from dualtrack.tracking.models import Plan, WeightEntry, WeightObservation

logger = logging.getLogger(__name__)

PLAN_COLUMNS = """
    plan_id, name, start_date, duration_weeks, start_weight_kg, goal_weight_kg,
    status, tolerance_percent, anchor_week, anchor_weight_kg, version,
    last_recalibrated_at, created_at
"""


def _row_to_plan(row: sqlite3.Row) -> Plan:
    return Plan(
        plan_id=row[0],
        name=row[1],
        start_date=date.fromisoformat(row[2]),
        duration_weeks=row[3],
        start_weight_kg=row[4],
        goal_weight_kg=row[5],
        status=row[6],
        tolerance_percent=row[7],
        anchor_week=row[8],
        anchor_weight_kg=row[9],
        version=row[10],
        last_recalibrated_at=date.fromisoformat(row[11]) if row[11] else None,
        created_at=datetime.fromisoformat(row[12]) if row[12] else None,
    )


class WeightQueries:
    """Database queries for weight log entries."""

    @staticmethod
    def add_weight(
        conn: sqlite3.Connection,
        weight_kg: float,
        measured_at: date,
        notes: Optional[str] = None,
    ) -> WeightEntry:
        """
        Add a weight entry.

        If an entry already exists for this date, it will be replaced.
        """
        cursor = conn.execute(
            """
            INSERT OR REPLACE INTO weight_log (weight_kg, measured_at, notes)
            VALUES (?, ?, ?)
            """,
            (weight_kg, measured_at.isoformat(), notes),
        )
        conn.commit()

        return WeightEntry(
            log_id=cursor.lastrowid,
            weight_kg=weight_kg,
            measured_at=measured_at,
            notes=notes,
        )

    @staticmethod
    def get_weight_history(
        conn: sqlite3.Connection,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[WeightEntry]:
        """
        Get weight history in chronological order.

        Args:
            start_date: If set, return entries on or after this date
            end_date: If set, return entries on or before this date
        """
        query = """
            SELECT log_id, weight_kg, measured_at, notes
            FROM weight_log
            WHERE 1 = 1
        """
        params: list = []

        if start_date:
            query += " AND measured_at >= ?"
            params.append(start_date.isoformat())
        if end_date:
            query += " AND measured_at <= ?"
            params.append(end_date.isoformat())

        query += " ORDER BY measured_at"

        rows = conn.execute(query, params).fetchall()

        return [
            WeightEntry(
                log_id=row[0],
                weight_kg=row[1],
                measured_at=date.fromisoformat(row[2]),
                notes=row[3],
            )
            for row in rows
        ]

    @staticmethod
    def get_observations(
        conn: sqlite3.Connection,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[WeightObservation]:
        """Weight history as analysis observations."""
        return [
            entry.to_observation()
            for entry in WeightQueries.get_weight_history(conn, start_date, end_date)
        ]

    @staticmethod
    def delete_weight(conn: sqlite3.Connection, measured_at: date) -> bool:
        """Delete the entry for a date. Returns True if a row was removed."""
        cursor = conn.execute(
            "DELETE FROM weight_log WHERE measured_at = ?",
            (measured_at.isoformat(),),
        )
        conn.commit()
        return cursor.rowcount > 0


class PlanQueries:
    """Database queries for plans and their recalibration history."""

    @staticmethod
    def create_plan(conn: sqlite3.Connection, plan: Plan) -> Plan:
        """Insert a new plan and return it with its ID."""
        cursor = conn.execute(
            """
            INSERT INTO plans (name, start_date, duration_weeks, start_weight_kg,
                               goal_weight_kg, status, tolerance_percent)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                plan.name,
                plan.start_date.isoformat(),
                plan.duration_weeks,
                plan.start_weight_kg,
                plan.goal_weight_kg,
                plan.status,
                plan.tolerance_percent,
            ),
        )
        conn.commit()
        return PlanQueries.get_plan(conn, cursor.lastrowid or 0)

    @staticmethod
    def find_plan(conn: sqlite3.Connection, plan_id: int) -> Optional[Plan]:
        """Get a plan by ID, or None."""
        row = conn.execute(
            f"SELECT {PLAN_COLUMNS} FROM plans WHERE plan_id = ?",
            (plan_id,),
        ).fetchone()
        return _row_to_plan(row) if row else None

    @staticmethod
    def get_plan(conn: sqlite3.Connection, plan_id: int) -> Plan:
        """
        Get a plan by ID.

        Raises:
            PlanNotFoundError: if no plan has this ID
        """
        plan = PlanQueries.find_plan(conn, plan_id)
        if plan is None:
            raise PlanNotFoundError(f"Plan {plan_id} not found")
        return plan

    @staticmethod
    def get_active_plan(conn: sqlite3.Connection) -> Plan:
        """
        Get the active plan.

        Raises:
            PlanNotFoundError: if no plan is active
        """
        row = conn.execute(
            f"""
            SELECT {PLAN_COLUMNS} FROM plans
            WHERE status = 'active'
            ORDER BY plan_id DESC LIMIT 1
            """
        ).fetchone()
        if row is None:
            raise PlanNotFoundError("No active plan exists")
        return _row_to_plan(row)

    @staticmethod
    def list_plans(
        conn: sqlite3.Connection, status: Optional[str] = None
    ) -> list[Plan]:
        """List plans, newest first."""
        query = f"SELECT {PLAN_COLUMNS} FROM plans"
        params: list = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY plan_id DESC"

        return [_row_to_plan(row) for row in conn.execute(query, params).fetchall()]

    @staticmethod
    def update_plan(
        conn: sqlite3.Connection, plan: Plan, expected_version: int
    ) -> Plan:
        """
        Write a plan's mutable fields if nobody else changed it first.

        The row is only updated when its stored version still equals
        expected_version; the version is then incremented. The caller owns
        the transaction, so the write can be committed together with its
        recalibration history.

        Raises:
            PlanNotFoundError: if the plan does not exist
            VersionConflictError: if the stored version has moved on
        """
        if plan.plan_id is None:
            raise PlanNotFoundError("Cannot update a plan without plan_id")

        cursor = conn.execute(
            """
            UPDATE plans
            SET name = ?, duration_weeks = ?, goal_weight_kg = ?, status = ?,
                tolerance_percent = ?, anchor_week = ?, anchor_weight_kg = ?,
                last_recalibrated_at = ?, version = version + 1
            WHERE plan_id = ? AND version = ?
            """,
            (
                plan.name,
                plan.duration_weeks,
                plan.goal_weight_kg,
                plan.status,
                plan.tolerance_percent,
                plan.anchor_week,
                plan.anchor_weight_kg,
                plan.last_recalibrated_at.isoformat()
                if plan.last_recalibrated_at
                else None,
                plan.plan_id,
                expected_version,
            ),
        )

        if cursor.rowcount == 0:
            current = PlanQueries.get_plan(conn, plan.plan_id)
            logger.warning(
                "Version conflict on plan %s: expected %d, found %d",
                plan.plan_id,
                expected_version,
                current.version,
            )
            raise VersionConflictError(
                f"Plan {plan.plan_id} is at version {current.version}, "
                f"not {expected_version}"
            )

        return PlanQueries.get_plan(conn, plan.plan_id)

    @staticmethod
    def record_recalibration(
        conn: sqlite3.Connection,
        previous: Plan,
        option_type: str,
        applied_at: date,
    ) -> int:
        """Store the parameters a recalibration replaced. Not committed here."""
        snapshot = {
            "duration_weeks": previous.duration_weeks,
            "goal_weight_kg": previous.goal_weight_kg,
            "anchor_week": previous.anchor_week,
            "anchor_weight_kg": previous.anchor_weight_kg,
        }
        cursor = conn.execute(
            """
            INSERT INTO plan_recalibrations
            (plan_id, applied_at, option_type, from_version, previous_json)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                previous.plan_id,
                applied_at.isoformat(),
                option_type,
                previous.version,
                json.dumps(snapshot),
            ),
        )
        return cursor.lastrowid or 0

    @staticmethod
    def get_recalibration_history(
        conn: sqlite3.Connection, plan_id: int
    ) -> list[dict]:
        """Recalibrations applied to a plan, oldest first."""
        rows = conn.execute(
            """
            SELECT applied_at, option_type, from_version, previous_json
            FROM plan_recalibrations
            WHERE plan_id = ?
            ORDER BY recalibration_id
            """,
            (plan_id,),
        ).fetchall()

        return [
            {
                "applied_at": row[0],
                "option_type": row[1],
                "from_version": row[2],
                "previous": json.loads(row[3]),
            }
            for row in rows
        ]
