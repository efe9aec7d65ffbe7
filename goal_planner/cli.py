from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from goal_planner.core.adjust.adjust_plan import adjust_plan
from goal_planner.core.complete.mark_task import mark_complete, mark_incomplete
from goal_planner.core.config import PlanningConfig, PlanningConfigError, load_config
from goal_planner.core.errors import GoalFileError, GoalLoadError, PlanningError
from goal_planner.core.generate.category_templates import PhaseTemplate, TemplateConfigError, load_and_merge
from goal_planner.core.generate.generate_plan import generate_plan
from goal_planner.core.io.load_goal import dump_goal, load_goal
from goal_planner.core.log import setup_logger
from goal_planner.core.model import Goal, Schedule, ScheduledTask
from goal_planner.core.track.analyze_progress import analyze_progress
from goal_planner.core.track.suggestions import get_suggestions
from goal_planner.core.validate.validate_schedule import summarize_schedule, validate_schedule

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()

NOW_HELP = "Current time as ISO-8601 (default: the system clock)"


@app.callback()
def _callback(
    log_level: str = typer.Option("WARNING", "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Goal planner CLI."""
    setup_logger(log_level)


@app.command("generate")
def generate(
    path: str = typer.Argument(..., help="Path to a goal file (.yaml/.yml/.json)"),
    out: Optional[str] = typer.Option(None, "--out", help="Where to write the goal with its plan (default: in place)"),
    now: Optional[str] = typer.Option(None, "--now", help=NOW_HELP),
    config_file: Optional[str] = typer.Option(None, "--config", help="YAML planning config"),
    template_file: Optional[str] = typer.Option(None, "--template-file", help="YAML file to add/override phase templates"),
    force: bool = typer.Option(False, "--force", help="Replace an existing plan"),
) -> None:
    """Generate a phased plan for a goal."""
    config = _config_or_exit(config_file)
    templates = _templates_or_exit(template_file)
    goal = _goal_or_exit(path, config)
    when = _now_or_exit(now)

    if goal.schedule is not None and not force:
        _fail(
            [
                PlanningError(
                    "goal already has a plan (use --force to replace it, or adjust)",
                    code="E_GENERATE_PLAN_EXISTS",
                    path="schedule",
                )
            ]
        )

    try:
        goal.schedule = generate_plan(goal, config, when, templates=templates)
    except PlanningError as e:
        _fail([e])

    target = out or path
    dump_goal(goal, target)
    typer.echo(f"OK: wrote plan ({len(goal.schedule.phases)} phases, {goal.schedule.total_tasks} tasks) to {target}")


@app.command("adjust")
def adjust(
    path: str = typer.Argument(..., help="Path to a goal file with a plan"),
    out: Optional[str] = typer.Option(None, "--out", help="Where to write the adjusted goal (default: in place)"),
    now: Optional[str] = typer.Option(None, "--now", help=NOW_HELP),
    config_file: Optional[str] = typer.Option(None, "--config", help="YAML planning config"),
    reset_baseline: bool = typer.Option(
        False,
        "--reset-baseline",
        help="Measure expected progress from now instead of the original plan date",
    ),
) -> None:
    """Re-flow unfinished tasks over the time left before the deadline."""
    config = _config_or_exit(config_file)
    goal = _goal_or_exit(path, config)
    when = _now_or_exit(now)

    try:
        goal.schedule = adjust_plan(goal, config, when, reset_baseline=reset_baseline)
    except PlanningError as e:
        _fail([e])

    target = out or path
    dump_goal(goal, target)
    last = goal.schedule.adjustment_history[-1]
    typer.echo(f"OK: adjusted plan ({last.reason}: {last.description}) written to {target}")


@app.command("analyze")
def analyze(
    path: str = typer.Argument(..., help="Path to a goal file with a plan"),
    now: Optional[str] = typer.Option(None, "--now", help=NOW_HELP),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Report progress against the plan."""
    _check_format(format, "E_ANALYZE_UNKNOWN_FORMAT")
    goal = _goal_or_exit(path, PlanningConfig())
    schedule = _schedule_or_exit(goal)
    when = _now_or_exit(now)

    a = analyze_progress(schedule, when)

    if format == "json":
        payload = {
            "tool": "goal-planner",
            "command": "analyze",
            "goal_id": goal.id,
            "analyzed_at": a.analyzed_at.isoformat(),
            "total_tasks": a.total_tasks,
            "completed_tasks": a.completed_tasks,
            "overall_progress": a.overall_progress,
            "expected_progress": a.expected_progress,
            "is_on_track": a.is_on_track,
            "days_remaining": a.days_remaining,
            "overall_score": a.overall_score,
            "overdue_task_ids": [t.id for t in a.overdue_tasks],
            "today_task_ids": [t.id for t in a.tasks_for_today],
            "next_task_id": a.next_task.id if a.next_task else None,
            "current_phase": a.current_phase.title if a.current_phase else None,
            "estimated_completion_date": (
                a.estimated_completion_date.isoformat() if a.estimated_completion_date else None
            ),
            "strengths": a.strengths,
            "areas_for_improvement": a.areas_for_improvement,
            "recommendations": a.recommendations,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    typer.echo(f"{goal.title}: {a.completed_tasks}/{a.total_tasks} tasks ({a.overall_progress:.0%})")
    typer.echo(f"Expected: {a.expected_progress:.0%} | {'on track' if a.is_on_track else 'behind pace'}")
    typer.echo(f"Days remaining: {a.days_remaining} | score {a.overall_score:.0f}/100")
    if a.current_phase:
        typer.echo(f"Current phase: {a.current_phase.title}")
    if a.next_task:
        typer.echo(f"Next task: {a.next_task.title} ({a.next_task.scheduled_date.isoformat()})")
    if a.overdue_tasks:
        _print_tasks("Overdue", a.overdue_tasks)
    if a.tasks_for_today:
        _print_tasks("Today", a.tasks_for_today)


@app.command("suggest")
def suggest(
    path: str = typer.Argument(..., help="Path to a goal file with a plan"),
    now: Optional[str] = typer.Option(None, "--now", help=NOW_HELP),
) -> None:
    """Print advisory suggestions for the goal."""
    goal = _goal_or_exit(path, PlanningConfig())
    schedule = _schedule_or_exit(goal)
    for line in get_suggestions(schedule, _now_or_exit(now), category=goal.category):
        typer.echo(f"- {line}")


@app.command("complete")
def complete(
    path: str = typer.Argument(..., help="Path to a goal file with a plan"),
    task_id: str = typer.Argument(..., help="Task id"),
    now: Optional[str] = typer.Option(None, "--now", help=NOW_HELP),
    out: Optional[str] = typer.Option(None, "--out", help="Where to write the goal (default: in place)"),
) -> None:
    """Mark a task complete."""
    goal = _goal_or_exit(path, PlanningConfig())
    _schedule_or_exit(goal)
    if not mark_complete(task_id, goal, _now_or_exit(now)):
        _fail([_unknown_task(task_id)])
    dump_goal(goal, out or path)
    typer.echo(f"OK: {task_id} complete")


@app.command("reopen")
def reopen(
    path: str = typer.Argument(..., help="Path to a goal file with a plan"),
    task_id: str = typer.Argument(..., help="Task id"),
    out: Optional[str] = typer.Option(None, "--out", help="Where to write the goal (default: in place)"),
) -> None:
    """Mark a task incomplete again."""
    goal = _goal_or_exit(path, PlanningConfig())
    _schedule_or_exit(goal)
    if not mark_incomplete(task_id, goal):
        _fail([_unknown_task(task_id)])
    dump_goal(goal, out or path)
    typer.echo(f"OK: {task_id} reopened")


@app.command("show")
def show(path: str = typer.Argument(..., help="Path to a goal file with a plan")) -> None:
    """Render the plan as tables, one per phase."""
    goal = _goal_or_exit(path, PlanningConfig())
    schedule = _schedule_or_exit(goal)

    console.print(f"[bold]{goal.title}[/bold] ({goal.category}, {schedule.weekly_commitment_hours:g}h/week)")
    for i, phase in enumerate(schedule.phases, start=1):
        table = Table(title=f"{i}. {phase.title} ({phase.start_date:%Y-%m-%d} - {phase.end_date:%Y-%m-%d}, {phase.progress:.0%})")
        table.add_column("Task")
        table.add_column("Title")
        table.add_column("Date")
        table.add_column("Min", justify="right")
        table.add_column("Done")
        for t in phase.tasks:
            table.add_row(
                t.id,
                t.title,
                f"{t.scheduled_date:%Y-%m-%d %H:%M}",
                str(t.duration_minutes),
                "yes" if t.is_completed else "",
            )
        console.print(table)


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a goal file with a plan"),
    config_file: Optional[str] = typer.Option(None, "--config", help="YAML planning config"),
    capacity: bool = typer.Option(False, "--capacity", help="Also check per-phase capacity"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Check a goal's plan against the schedule invariants."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")
    config = _config_or_exit(config_file)
    goal = _goal_or_exit(path, config)
    schedule = _schedule_or_exit(goal)

    errors = validate_schedule(
        schedule,
        config,
        weekly_hours=schedule.weekly_commitment_hours if capacity else None,
        file=path,
    )

    if format == "json":
        payload = {
            "tool": "goal-planner",
            "command": "validate",
            "ok": not errors,
            "error_count": len(errors),
            "errors": [
                {"code": e.code, "message": e.message, "file": e.file, "path": e.path, "severity": "error"}
                for e in errors
            ],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=2 if errors else 0)

    if errors:
        _fail(errors)
    typer.echo(summarize_schedule(schedule))


@app.command("templates")
def templates(
    template_file: Optional[str] = typer.Option(
        None,
        "--template-file",
        help="Optional YAML file to add/override templates",
    ),
) -> None:
    """List the phase templates plans are built from."""
    templates_map = _templates_or_exit(template_file)
    typer.echo("Templates:")
    for name in sorted(templates_map.keys()):
        typer.echo(f"- {name}: {', '.join(p.title for p in templates_map[name])}")


def _print_tasks(label: str, tasks: list[ScheduledTask]) -> None:
    typer.echo(f"{label}:")
    for t in tasks:
        typer.echo(f"  {t.id} {t.title} ({t.scheduled_date:%Y-%m-%d %H:%M}, {t.duration_minutes} min)")


def _check_format(format: str, code: str) -> None:
    if format not in ("text", "json"):
        _fail(
            [
                GoalFileError(
                    code=code,
                    message=f"unknown format: {format} (choose one of: text, json)",
                    path="format",
                )
            ]
        )


def _config_or_exit(config_file: Optional[str]) -> PlanningConfig:
    try:
        return load_config(config_file)
    except FileNotFoundError:
        _fail(
            [
                GoalLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"config file not found: {config_file}",
                    path="config",
                )
            ],
            code=1,
        )
    except PlanningConfigError as e:
        _fail([GoalFileError(code="E_CONFIG_FILE_INVALID", message=str(e), file=config_file, path="config")])


def _templates_or_exit(template_file: Optional[str]) -> dict[str, list[PhaseTemplate]]:
    try:
        return load_and_merge(template_file)
    except FileNotFoundError:
        _fail(
            [
                GoalLoadError(
                    code="E_TEMPLATE_FILE_NOT_FOUND",
                    message=f"template file not found: {template_file}",
                    path="template_file",
                )
            ],
            code=1,
        )
    except TemplateConfigError as e:
        _fail(
            [
                GoalFileError(
                    code="E_TEMPLATE_FILE_INVALID",
                    message=str(e),
                    file=template_file,
                    path="template_file",
                )
            ]
        )


def _goal_or_exit(path: str, config: PlanningConfig) -> Goal:
    try:
        return load_goal(path, config)
    except GoalLoadError as e:
        _fail([e], code=1)


def _schedule_or_exit(goal: Goal) -> Schedule:
    if goal.schedule is None:
        _fail([PlanningError("goal has no plan yet; run generate first", code="E_NO_EXISTING_SCHEDULE", path="schedule")])
    return goal.schedule


def _now_or_exit(now: Optional[str]) -> datetime:
    if now is None:
        return datetime.now()
    try:
        return datetime.fromisoformat(now)
    except ValueError:
        _fail([GoalFileError(code="E_INVALID_NOW", message=f"--now must be ISO-8601, got {now!r}", path="now")])


def _unknown_task(task_id: str) -> GoalFileError:
    return GoalFileError(code="E_UNKNOWN_TASK", message=f"no task with id {task_id}", path="task_id")


def _fail(errors: Sequence[Any], code: int = 2) -> Any:
    for e in sorted(errors, key=str):
        typer.echo(str(e), err=True)
    raise typer.Exit(code=code)


def main() -> None:
    app(prog_name="goal-planner")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
