from __future__ import annotations

import math
from datetime import datetime, timedelta

from loguru import logger

from goal_planner.core.config import PlanningConfig
from goal_planner.core.errors import InsufficientAvailability, InvalidTargetDate, UnknownCategory
from goal_planner.core.generate.category_templates import (
    CATEGORY_PROFILES,
    CategoryProfile,
    PhaseTemplate,
    select_template,
)
from goal_planner.core.model import ALLOWED_CATEGORIES, WEEK, Goal, Phase, Schedule, ScheduledTask


# Tasks are anchored to this hour of the day when their slot allows it.
TASK_START_HOUR = 9


def generate_plan(
    goal: Goal,
    config: PlanningConfig,
    now: datetime,
    *,
    templates: dict[str, list[PhaseTemplate]] | None = None,
) -> Schedule:
    """Build a fresh multi-phase schedule for ``goal``.

    Pure and deterministic: the same goal, config, templates and ``now`` always
    produce an identical Schedule (task ids are derived from the goal id).
    """
    _check_goal(goal, now)

    profile = CATEGORY_PROFILES[goal.category]
    if goal.target_date is not None:
        horizon_end = goal.target_date
    else:
        horizon_end = now + timedelta(days=profile.default_horizon_days)

    count = phase_count_for(horizon_end - now, profile, config)
    bounds = split_horizon(now, horizon_end, count)
    phase_templates = spread_templates(select_template(goal, templates), count)

    phases: list[Phase] = []
    for idx, ((start, end), tpl) in enumerate(zip(bounds, phase_templates), start=1):
        capacity = phase_capacity_minutes(goal.weekly_available_hours, (end - start) / WEEK)
        if capacity < 1:
            raise InsufficientAvailability(
                f"phase {idx} has no schedulable time at {goal.weekly_available_hours}h/week",
                path="weekly_available_hours",
            )

        task_count = max(1, min(config.max_tasks_per_phase, capacity // profile.average_task_minutes))
        durations = pack_durations(capacity, task_count, profile.duration_ladder)
        dates = spread_dates(start, end, task_count, not_before=now)

        tasks = [
            ScheduledTask(
                id=f"{goal.id}-P{idx:02d}-T{n:02d}",
                title=tpl.tasks[(n - 1) % len(tpl.tasks)],
                scheduled_date=when,
                duration_minutes=minutes,
            )
            for n, (when, minutes) in enumerate(zip(dates, durations), start=1)
        ]
        logger.debug(
            "phase {} '{}': {} tasks, {} of {} minutes",
            idx,
            tpl.title,
            len(tasks),
            sum(durations),
            capacity,
        )
        phases.append(
            Phase(title=tpl.title, description=tpl.description, start_date=start, end_date=end, tasks=tasks)
        )

    logger.info(
        "generated plan for goal {}: {} phases, {} tasks, horizon ends {}",
        goal.id,
        len(phases),
        sum(len(p.tasks) for p in phases),
        horizon_end.isoformat(),
    )
    return Schedule(
        phases=phases,
        weekly_commitment_hours=goal.weekly_available_hours,
        generated_at=now,
        last_adjusted_at=now,
    )


def _check_goal(goal: Goal, now: datetime) -> None:
    if goal.category not in ALLOWED_CATEGORIES:
        raise UnknownCategory(
            f"category must be one of {sorted(ALLOWED_CATEGORIES)}, got {goal.category!r}",
            path="category",
        )
    if goal.weekly_available_hours <= 0:
        raise InsufficientAvailability(
            f"weekly_available_hours must be positive, got {goal.weekly_available_hours}",
            path="weekly_available_hours",
        )
    if goal.target_date is not None and goal.target_date <= now:
        raise InvalidTargetDate(
            f"target_date {goal.target_date.isoformat()} is not after {now.isoformat()}",
            path="target_date",
        )


def phase_count_for(horizon: timedelta, profile: CategoryProfile, config: PlanningConfig) -> int:
    horizon_weeks = horizon.days // 7
    return min(config.max_phases_per_goal, max(1, horizon_weeks // profile.weeks_per_phase))


def split_horizon(start: datetime, end: datetime, count: int) -> list[tuple[datetime, datetime]]:
    """Cut ``[start, end)`` into ``count`` equal, contiguous slices; the last one ends exactly at ``end``."""
    span = end - start
    edges = [start + (span * i) // count for i in range(count)] + [end]
    return [(edges[i], edges[i + 1]) for i in range(count)]


def phase_capacity_minutes(weekly_hours: float, weeks: float) -> int:
    return math.floor(weekly_hours * 60 * weeks)


def pack_durations(capacity: int, task_count: int, ladder: tuple[int, ...]) -> list[int]:
    """Greedy, largest-first fill of ``task_count`` slots from ``ladder``.

    Each slot leaves room for the smallest rung in every slot after it, so the
    total never exceeds ``capacity``. A slot nothing fits into takes what is left.
    """
    floor = ladder[-1]
    out: list[int] = []
    remaining = capacity
    for slot in range(task_count):
        budget = remaining - (task_count - slot - 1) * floor
        fitting = [d for d in ladder if d <= budget]
        minutes = fitting[0] if fitting else budget
        out.append(minutes)
        remaining -= minutes
    return out


def spread_dates(start: datetime, end: datetime, count: int, *, not_before: datetime) -> list[datetime]:
    """Spread ``count`` dates across ``[start, end)``.

    The range is split into equal slots and each date snaps to the first
    TASK_START_HOUR inside its slot, otherwise to the slot start. Slots are
    disjoint, so dates are strictly increasing.
    """
    lower = max(start, not_before)
    if lower >= end:
        lower = start
    slot = (end - lower) / count
    out: list[datetime] = []
    for i in range(count):
        base = lower + slot * i
        anchor = base.replace(hour=TASK_START_HOUR, minute=0, second=0, microsecond=0)
        if anchor < base:
            anchor += timedelta(days=1)
        out.append(anchor if anchor < min(base + slot, end) else base)
    return out


def spread_templates(phase_templates: list[PhaseTemplate], count: int) -> list[PhaseTemplate]:
    """Map ``count`` phases onto the template's phases in order.

    With fewer phases than templates, templates are sampled evenly; with more,
    each template is reused and titled "(part N)".
    """
    n = len(phase_templates)
    picks = [phase_templates[(i * n) // count] for i in range(count)]
    seen: dict[str, int] = {}
    out: list[PhaseTemplate] = []
    for tpl in picks:
        seen[tpl.title] = seen.get(tpl.title, 0) + 1
        if picks.count(tpl) > 1:
            out.append(
                PhaseTemplate(
                    title=f"{tpl.title} (part {seen[tpl.title]})",
                    description=tpl.description,
                    tasks=tpl.tasks,
                )
            )
        else:
            out.append(tpl)
    return out
