"""CLI interface using Typer."""

from __future__ import annotations

import json
import logging
import math
from datetime import date
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from dualtrack import __version__
from dualtrack.agent.response import create_response, error_response, from_error
from dualtrack.analysis.report import (
    STATUS_LABELS,
    format_analysis_report,
    format_trend_report,
)
from dualtrack.analysis.service import (
    apply_plan_recalibration,
    create_plan,
    get_plan_analysis,
    get_weight_trend,
    transition_plan,
)
from dualtrack.config import get_settings
from dualtrack.db import DatabaseConnection, get_db, set_db
from dualtrack.errors import AnalysisError, ValidationError
from dualtrack.tracking.models import VALID_PLAN_STATUSES
from dualtrack.tracking.queries import PlanQueries, WeightQueries

app = typer.Typer(
    help="Dual-track weight plan analysis: planned line vs actual trend",
    no_args_is_help=True,
)
console = Console()

# Subcommand groups
weight_app = typer.Typer(help="Log weights and view the trend")
plan_app = typer.Typer(help="Create, analyze and recalibrate plans")
config_app = typer.Typer(help="Show configuration")

app.add_typer(weight_app, name="weight")
app.add_typer(plan_app, name="plan")
app.add_typer(config_app, name="config")


# ============================================================================
# Helpers
# ============================================================================


def setup_logging(verbose: bool) -> None:
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def output_json(response: dict) -> None:
    """Print a JSON response to stdout."""
    print(json.dumps(response, indent=2))


def fail(command: str, exc: AnalysisError, json_output: bool) -> NoReturn:
    """Report a typed error and exit with status 1."""
    if json_output:
        output_json(from_error(command, exc).to_dict())
    else:
        console.print(f"[red]{exc.message}[/red]")
    raise typer.Exit(1)


def parse_date(value: Optional[str], field_name: str = "date") -> date:
    """Parse YYYY-MM-DD, defaulting to today."""
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be YYYY-MM-DD, got '{value}'") from None


def ensure_schema() -> None:
    """Ensure tables exist (idempotent)."""
    get_db().initialize_schema()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    db_path: Optional[Path] = typer.Option(
        None, "--db", help="Database file (default: from config)"
    ),
) -> None:
    """Dual-track weight plan analysis."""
    setup_logging(verbose)
    if db_path is not None:
        set_db(DatabaseConnection(db_path))


@weight_app.callback()
def weight_callback() -> None:
    """Ensure tables exist before any weight command."""
    ensure_schema()


@plan_app.callback()
def plan_callback() -> None:
    """Ensure tables exist before any plan command."""
    ensure_schema()


# ============================================================================
# Top-level Commands
# ============================================================================


@app.command()
def init(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Create the database and its tables."""
    db = get_db()
    created = db.initialize_schema()

    if json_output:
        output_json(
            create_response(
                "init",
                data={
                    "db_path": str(db.db_path),
                    "schema_version": db.schema_version(),
                    "created": created,
                },
                human_summary=f"Database ready at {db.db_path}",
            ).to_dict()
        )
    else:
        console.print(f"[green]Database ready at:[/green] {db.db_path}")


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"dualtrack {__version__}")


# ============================================================================
# Weight Commands
# ============================================================================


@weight_app.command("add")
def weight_add(
    weight: float = typer.Argument(..., help="Weight in kg"),
    date_str: Optional[str] = typer.Option(
        None, "--date", "-d", help="Date (YYYY-MM-DD, default: today)"
    ),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Optional notes"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Log a weight (one per day; re-logging a date replaces it)."""
    try:
        measured_at = parse_date(date_str)
        if not (math.isfinite(weight) and weight > 0):
            raise ValidationError(f"weight must be a positive number, got {weight}")
    except AnalysisError as e:
        fail("weight add", e, json_output)

    with get_db().get_connection() as conn:
        entry = WeightQueries.add_weight(conn, weight, measured_at, notes)

    if json_output:
        output_json(
            create_response(
                "weight add",
                data={
                    "weight_kg": entry.weight_kg,
                    "measured_at": entry.measured_at.isoformat(),
                    "notes": entry.notes,
                },
                human_summary=f"Logged {weight:.1f} kg on {measured_at}",
            ).to_dict()
        )
    else:
        console.print(f"[green]Logged:[/green] {weight:.1f} kg on {measured_at}")


@weight_app.command("list")
def weight_list(
    days: int = typer.Option(30, "--days", "-d", help="Number of days to show"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List recent weight entries."""
    from datetime import timedelta

    start = date.today() - timedelta(days=days - 1)
    with get_db().get_connection() as conn:
        history = WeightQueries.get_weight_history(conn, start_date=start)

    if json_output:
        output_json(
            create_response(
                "weight list",
                data={
                    "entries": [
                        {
                            "date": e.measured_at.isoformat(),
                            "weight_kg": e.weight_kg,
                            "notes": e.notes,
                        }
                        for e in history
                    ]
                },
                human_summary=f"{len(history)} entries over {days} days",
            ).to_dict()
        )
        return

    if not history:
        console.print("No weight entries found")
        return

    table = Table(title=f"Weight History (last {days} days)")
    table.add_column("Date", style="cyan")
    table.add_column("Weight (kg)", justify="right")
    table.add_column("", justify="right")
    table.add_column("Notes", style="dim")

    prev = None
    for entry in history:
        delta = f"{entry.weight_kg - prev:+.1f}" if prev is not None else ""
        prev = entry.weight_kg
        table.add_row(
            entry.measured_at.isoformat(),
            f"{entry.weight_kg:.1f}",
            delta,
            entry.notes or "",
        )

    console.print(table)


@weight_app.command("delete")
def weight_delete(
    date_str: str = typer.Argument(..., help="Date of the entry (YYYY-MM-DD)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Delete the weight logged on a date."""
    try:
        measured_at = parse_date(date_str)
    except AnalysisError as e:
        fail("weight delete", e, json_output)

    with get_db().get_connection() as conn:
        removed = WeightQueries.delete_weight(conn, measured_at)

    if not removed:
        if json_output:
            output_json(
                error_response(
                    "weight delete",
                    f"No weight logged on {measured_at}",
                    error_code="not_found",
                ).to_dict()
            )
        else:
            console.print(f"[yellow]No weight logged on {measured_at}[/yellow]")
        raise typer.Exit(1)

    if json_output:
        output_json(
            create_response(
                "weight delete",
                data={"measured_at": measured_at.isoformat()},
                human_summary=f"Deleted weight for {measured_at}",
            ).to_dict()
        )
    else:
        console.print(f"[green]Deleted:[/green] weight for {measured_at}")


@weight_app.command("trend")
def weight_trend(
    range_value: Optional[str] = typer.Option(
        None, "--range", "-r", help="7d, 30d, 90d or all (default: from config)"
    ),
    as_of_str: Optional[str] = typer.Option(
        None, "--as-of", help="Window end date (YYYY-MM-DD, default: today)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the linear weight trend over a trailing range."""
    range_value = range_value or get_settings().defaults.trend_range
    try:
        as_of = parse_date(as_of_str, "as-of")
        with get_db().get_connection() as conn:
            result = get_weight_trend(conn, range_value, as_of)
    except AnalysisError as e:
        fail("weight trend", e, json_output)

    if json_output:
        if result.trend is None:
            summary = f"Not enough data for a {result.range.value} trend"
        else:
            summary = f"{result.trend.weekly_change_kg:+.2f} kg/week over {result.range.value}"
        output_json(
            create_response(
                "weight trend",
                data=result.to_dict(),
                human_summary=summary,
            ).to_dict()
        )
    else:
        console.print(format_trend_report(result))


# ============================================================================
# Plan Commands
# ============================================================================


def _plan_table(plans: list) -> Table:
    table = Table(title="Plans")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Start", style="cyan")
    table.add_column("Weeks", justify="right")
    table.add_column("Start kg", justify="right")
    table.add_column("Goal kg", justify="right")
    table.add_column("Ver", justify="right", style="dim")

    for p in plans:
        table.add_row(
            str(p.plan_id),
            p.name or "",
            p.status,
            p.start_date.isoformat(),
            str(p.duration_weeks),
            f"{p.start_weight_kg:.1f}",
            f"{p.goal_weight_kg:.1f}",
            str(p.version),
        )
    return table


@plan_app.command("create")
def plan_create(
    goal_weight: float = typer.Option(..., "--goal", "-g", help="Goal weight in kg"),
    weeks: int = typer.Option(..., "--weeks", "-w", help="Duration in weeks (1-104)"),
    start_weight: Optional[float] = typer.Option(
        None, "--start-weight", help="Start weight in kg (default: latest logged)"
    ),
    start_date_str: Optional[str] = typer.Option(
        None, "--start-date", help="Start date (YYYY-MM-DD, default: today)"
    ),
    tolerance: Optional[float] = typer.Option(
        None, "--tolerance", "-t", help="Tolerance percent (1-10, default: from config)"
    ),
    name: Optional[str] = typer.Option(None, "--name", help="Plan name"),
    draft: bool = typer.Option(False, "--draft", help="Create as draft instead of active"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Create a weight-change plan."""
    settings = get_settings()
    try:
        start_date = parse_date(start_date_str, "start-date")
        with get_db().get_connection() as conn:
            if start_weight is None:
                history = WeightQueries.get_weight_history(conn, end_date=start_date)
                if not history:
                    raise ValidationError(
                        "No logged weight to start from; pass --start-weight"
                    )
                start_weight = history[-1].weight_kg

            plan = create_plan(
                conn,
                start_date=start_date,
                duration_weeks=weeks,
                start_weight_kg=start_weight,
                goal_weight_kg=goal_weight,
                tolerance_percent=tolerance,
                name=name,
                status="draft" if draft else "active",
                config=settings.analysis,
            )
    except AnalysisError as e:
        fail("plan create", e, json_output)

    summary = (
        f"Plan {plan.plan_id}: {plan.start_weight_kg:.1f} -> {plan.goal_weight_kg:.1f} kg "
        f"over {plan.duration_weeks} weeks ({plan.status})"
    )
    if json_output:
        output_json(
            create_response("plan create", data={"plan": plan.to_dict()}, human_summary=summary).to_dict()
        )
    else:
        console.print(f"[green]Created:[/green] {summary}")


@plan_app.command("show")
def plan_show(
    plan_id: Optional[int] = typer.Argument(None, help="Plan ID (default: active plan)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show a plan and its recalibration history."""
    try:
        with get_db().get_connection() as conn:
            if plan_id is None:
                plan = PlanQueries.get_active_plan(conn)
            else:
                plan = PlanQueries.get_plan(conn, plan_id)
            history = PlanQueries.get_recalibration_history(conn, plan.plan_id)  # type: ignore
    except AnalysisError as e:
        fail("plan show", e, json_output)

    plan = plan.at(date.today())
    if json_output:
        output_json(
            create_response(
                "plan show",
                data={"plan": plan.to_dict(), "recalibrations": history},
                human_summary=f"Plan {plan.plan_id} ({plan.status}), version {plan.version}",
            ).to_dict()
        )
        return

    console.print(f"\n[bold]{plan.name or f'Plan {plan.plan_id}'}[/bold] ({plan.status})")
    console.print(f"Plan ID:   {plan.plan_id} (version {plan.version})")
    console.print(f"Dates:     {plan.start_date} to {plan.end_date}")
    console.print(
        f"Weight:    {plan.start_weight_kg:.1f} -> {plan.goal_weight_kg:.1f} kg "
        f"over {plan.duration_weeks} weeks"
    )
    console.print(f"Tolerance: {plan.tolerance_percent:g}%")
    if plan.is_recalibrated:
        console.print(
            f"Re-anchored at week {plan.anchor_week}: {plan.anchor_weight_kg:.1f} kg "
            f"on {plan.last_recalibrated_at}"
        )

    if history:
        table = Table(title="Recalibrations")
        table.add_column("Applied", style="cyan")
        table.add_column("Option")
        table.add_column("From version", justify="right")
        for item in history:
            table.add_row(item["applied_at"], item["option_type"], str(item["from_version"]))
        console.print(table)


@plan_app.command("list")
def plan_list(
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List plans, newest first."""
    if status is not None and status not in VALID_PLAN_STATUSES:
        fail(
            "plan list",
            ValidationError(f"status must be one of {', '.join(VALID_PLAN_STATUSES)}"),
            json_output,
        )

    with get_db().get_connection() as conn:
        plans = PlanQueries.list_plans(conn, status=status)

    if json_output:
        output_json(
            create_response(
                "plan list",
                data={"plans": [p.to_dict() for p in plans]},
                human_summary=f"{len(plans)} plan(s)",
            ).to_dict()
        )
    elif not plans:
        console.print("No plans found")
    else:
        console.print(_plan_table(plans))


def _transition(
    action: str, plan_id: int, expected_version: Optional[int], json_output: bool
) -> None:
    command = f"plan {action}"
    try:
        with get_db().get_connection() as conn:
            plan = transition_plan(conn, plan_id, action, expected_version)
    except AnalysisError as e:
        fail(command, e, json_output)

    summary = f"Plan {plan.plan_id} is now {plan.status} (version {plan.version})"
    if json_output:
        output_json(
            create_response(command, data={"plan": plan.to_dict()}, human_summary=summary).to_dict()
        )
    else:
        console.print(f"[green]{summary}[/green]")


@plan_app.command("activate")
def plan_activate(
    plan_id: int = typer.Argument(..., help="Plan ID"),
    expected_version: Optional[int] = typer.Option(None, "--version", help="Expected plan version"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Activate a draft plan."""
    _transition("activate", plan_id, expected_version, json_output)


@plan_app.command("pause")
def plan_pause(
    plan_id: int = typer.Argument(..., help="Plan ID"),
    expected_version: Optional[int] = typer.Option(None, "--version", help="Expected plan version"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Pause an active plan."""
    _transition("pause", plan_id, expected_version, json_output)


@plan_app.command("resume")
def plan_resume(
    plan_id: int = typer.Argument(..., help="Plan ID"),
    expected_version: Optional[int] = typer.Option(None, "--version", help="Expected plan version"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Resume a paused plan."""
    _transition("resume", plan_id, expected_version, json_output)


@plan_app.command("complete")
def plan_complete(
    plan_id: int = typer.Argument(..., help="Plan ID"),
    expected_version: Optional[int] = typer.Option(None, "--version", help="Expected plan version"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Mark a plan completed."""
    _transition("complete", plan_id, expected_version, json_output)


@plan_app.command("abandon")
def plan_abandon(
    plan_id: int = typer.Argument(..., help="Plan ID"),
    expected_version: Optional[int] = typer.Option(None, "--version", help="Expected plan version"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Abandon a plan."""
    _transition("abandon", plan_id, expected_version, json_output)


@plan_app.command("analyze")
def plan_analyze(
    plan_id: Optional[int] = typer.Argument(None, help="Plan ID (default: active plan)"),
    as_of_str: Optional[str] = typer.Option(
        None, "--as-of", help="Analysis date (YYYY-MM-DD, default: today)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Compare the planned line with the actual trend."""
    settings = get_settings()
    try:
        as_of = parse_date(as_of_str, "as-of")
        with get_db().get_connection() as conn:
            result = get_plan_analysis(conn, plan_id, as_of, settings.analysis)
    except AnalysisError as e:
        fail("plan analyze", e, json_output)

    if json_output:
        suggestions = []
        if result.options:
            suggestions.append(
                f"Apply an option: dualtrack plan recalibrate <type> "
                f"--plan {result.plan.plan_id} --version {result.plan.version}"
            )
        output_json(
            create_response(
                "plan analyze",
                data=result.to_dict(),
                suggestions=suggestions,
                human_summary=(
                    f"Week {result.analysis.current_week}: {STATUS_LABELS[result.status]}, "
                    f"{result.analysis.variance_kg:+.1f} kg vs plan"
                ),
            ).to_dict()
        )
    else:
        console.print(format_analysis_report(result))


@plan_app.command("recalibrate")
def plan_recalibrate(
    option_type: str = typer.Argument(
        ..., help="increase_deficit, extend_timeline, revise_goal or keep_current"
    ),
    expected_version: int = typer.Option(..., "--version", help="Plan version you analyzed"),
    plan_id: Optional[int] = typer.Option(None, "--plan", "-p", help="Plan ID (default: active)"),
    as_of_str: Optional[str] = typer.Option(
        None, "--as-of", help="Effective date (YYYY-MM-DD, default: today)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Apply a recalibration option to a plan."""
    settings = get_settings()
    try:
        as_of = parse_date(as_of_str, "as-of")
        with get_db().get_connection() as conn:
            plan = apply_plan_recalibration(
                conn, plan_id, option_type, expected_version, as_of, settings.analysis
            )
    except AnalysisError as e:
        fail("plan recalibrate", e, json_output)

    summary = (
        f"Plan {plan.plan_id}: {option_type} applied, goal {plan.goal_weight_kg:.1f} kg "
        f"in {plan.duration_weeks} weeks (version {plan.version})"
    )
    if json_output:
        output_json(
            create_response(
                "plan recalibrate", data={"plan": plan.to_dict()}, human_summary=summary
            ).to_dict()
        )
    else:
        console.print(f"[green]{summary}[/green]")


# ============================================================================
# Config Commands
# ============================================================================


@config_app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the effective configuration."""
    settings = get_settings()
    data = {
        "database": {"path": str(get_db().db_path)},
        "analysis": {
            "tolerance_percent": settings.analysis.tolerance_percent,
            "noise_floor_kg_per_week": settings.analysis.noise_floor_kg_per_week,
            "trend_days": settings.analysis.trend_days,
            "actual_weight_days": settings.analysis.actual_weight_days,
        },
        "defaults": {
            "trend_range": settings.defaults.trend_range,
        },
    }

    if json_output:
        output_json(create_response("config show", data=data).to_dict())
        return

    for section, values in data.items():
        console.print(f"[bold]{section}[/bold]")
        for key, value in values.items():
            console.print(f"  {key}: {value}")


if __name__ == "__main__":
    app()
