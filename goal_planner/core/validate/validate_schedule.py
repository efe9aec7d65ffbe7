from __future__ import annotations

from typing import Iterable, Optional

from goal_planner.core.config import PlanningConfig
from goal_planner.core.errors import ScheduleValidationError
from goal_planner.core.generate.generate_plan import phase_capacity_minutes
from goal_planner.core.model import Schedule


def validate_schedule(
    schedule: Schedule,
    config: PlanningConfig,
    *,
    weekly_hours: Optional[float] = None,
    file: Optional[str] = None,
) -> list[ScheduleValidationError]:
    """Check the structural invariants of a schedule.

    Returns a sorted list of errors (empty when valid). Nothing is corrected.
    Capacity is only checked when ``weekly_hours`` is given, since adjusted
    schedules may legitimately be compressed beyond it.
    """
    errors: list[ScheduleValidationError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(ScheduleValidationError(code=code, message=message, file=file, path=path))

    if not schedule.phases:
        err("E_NO_PHASES", "schedule must have at least one phase", "phases")
        return errors
    if len(schedule.phases) > config.max_phases_per_goal:
        err(
            "E_TOO_MANY_PHASES",
            f"{len(schedule.phases)} phases exceeds max_phases_per_goal={config.max_phases_per_goal}",
            "phases",
        )

    seen_ids: set[str] = set()
    for i, phase in enumerate(schedule.phases):
        phase_path = f"phases[{i}]"

        if phase.end_date <= phase.start_date:
            err("E_PHASE_RANGE", "end_date must be after start_date", f"{phase_path}.end_date")

        if i > 0 and schedule.phases[i - 1].end_date > phase.start_date:
            err("E_PHASE_OVERLAP", f"phase starts before phases[{i - 1}] ends", f"{phase_path}.start_date")

        if not 1 <= len(phase.tasks) <= config.max_tasks_per_phase:
            err(
                "E_PHASE_TASK_COUNT",
                f"phase has {len(phase.tasks)} tasks; expected 1..{config.max_tasks_per_phase}",
                f"{phase_path}.tasks",
            )

        if weekly_hours is not None:
            capacity = phase_capacity_minutes(weekly_hours, phase.duration_weeks)
            used = sum(t.duration_minutes for t in phase.tasks)
            if used > capacity:
                err(
                    "E_PHASE_OVER_CAPACITY",
                    f"tasks need {used} minutes but the phase holds {capacity}",
                    f"{phase_path}.tasks",
                )

        for j, task in enumerate(phase.tasks):
            task_path = f"{phase_path}.tasks[{j}]"
            if task.id in seen_ids:
                err("E_DUPLICATE_TASK_ID", f"duplicate task id: {task.id}", f"{task_path}.id")
            seen_ids.add(task.id)

            if not phase.contains(task.scheduled_date):
                err(
                    "E_TASK_OUTSIDE_PHASE",
                    f"scheduled_date {task.scheduled_date.isoformat()} is outside the phase range",
                    f"{task_path}.scheduled_date",
                )
            if task.duration_minutes <= 0:
                err("E_TASK_DURATION", "duration_minutes must be positive", f"{task_path}.duration_minutes")
            if task.is_completed != (task.completed_at is not None):
                err(
                    "E_COMPLETED_AT_MISMATCH",
                    "completed_at must be set if and only if the task is completed",
                    f"{task_path}.completed_at",
                )

    return _sorted(errors)


def summarize_schedule(schedule: Schedule) -> str:
    total = schedule.total_tasks
    minutes = sum(t.duration_minutes for t in schedule.all_tasks())
    end = schedule.horizon_end
    return (
        f"OK: {len(schedule.phases)} phases, {total} tasks "
        f"({schedule.completed_task_count} completed, {minutes} minutes)\n"
        f"Horizon: {schedule.generated_at.isoformat()} -> {end.isoformat() if end else '-'}"
    )


def _sorted(errors: Iterable[ScheduleValidationError]) -> list[ScheduleValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
