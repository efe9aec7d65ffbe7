from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta

from loguru import logger

from goal_planner.core.config import PlanningConfig
from goal_planner.core.errors import (
    EmptySchedule,
    InsufficientAvailability,
    InvalidTargetDate,
    NoExistingSchedule,
    TooSoonToAdjust,
    UnknownCategory,
)
from goal_planner.core.generate.category_templates import CATEGORY_PROFILES, CategoryProfile
from goal_planner.core.generate.generate_plan import (
    phase_capacity_minutes,
    phase_count_for,
    split_horizon,
    spread_dates,
)
from goal_planner.core.model import WEEK, Adjustment, Goal, Phase, Schedule, ScheduledTask
from goal_planner.core.track.analyze_progress import expected_progress


AHEAD_MARGIN = 0.2


def adjust_plan(
    goal: Goal,
    config: PlanningConfig,
    now: datetime,
    *,
    reset_baseline: bool = False,
) -> Schedule:
    """Re-flow the unfinished work of ``goal.schedule`` over ``[now, deadline]``.

    Completed tasks are carried over untouched. Those dated before ``now`` are
    grouped, in date order, into leading phases that end at ``now``; the rest
    stay in whichever new phase contains their date. Unfinished tasks keep
    their id, title, duration and relative order; only their date and phase
    change, and they only take the slots each phase has left under
    ``max_tasks_per_phase``. The deadline (end of the last phase) never moves.
    ``generated_at`` is kept so expected progress stays measured against the
    original plan, unless ``reset_baseline`` is set.

    The input goal and schedule are not modified.
    """
    schedule = goal.schedule
    if schedule is None:
        raise NoExistingSchedule("goal has no schedule to adjust; generate one first", path="schedule")

    since = now - schedule.last_adjusted_at
    if since < timedelta(days=config.minimum_adjustment_days):
        raise TooSoonToAdjust(
            f"last adjusted {since.days} day(s) ago; adjustments need {config.minimum_adjustment_days} days between them",
            path="last_adjusted_at",
        )
    if goal.category not in CATEGORY_PROFILES:
        raise UnknownCategory(
            f"category must be one of {sorted(CATEGORY_PROFILES)}, got {goal.category!r}",
            path="category",
        )
    if goal.weekly_available_hours <= 0:
        raise InsufficientAvailability(
            f"weekly_available_hours must be positive, got {goal.weekly_available_hours}",
            path="weekly_available_hours",
        )

    owner: dict[str, Phase] = {}
    completed: list[ScheduledTask] = []
    remaining: list[ScheduledTask] = []
    for phase in schedule.phases:
        for task in phase.tasks:
            owner[task.id] = phase
            (completed if task.is_completed else remaining).append(task)

    if not completed and not remaining:
        raise EmptySchedule("schedule has no tasks to adjust", path="schedule.phases")

    deadline = schedule.phases[-1].end_date
    if deadline <= now:
        raise InvalidTargetDate(
            f"deadline {deadline.isoformat()} has passed; nothing can be rescheduled before it",
            path="target_date",
        )

    limit = config.max_tasks_per_phase
    done_before = sorted((t for t in completed if t.scheduled_date < now), key=lambda t: t.scheduled_date)
    done_after = [t for t in completed if t.scheduled_date >= now]

    # One phase must stay open for [now, deadline].
    history_count = min(math.ceil(len(done_before) / limit), config.max_phases_per_goal - 1)
    entries = _history_entries(done_before, history_count, now)

    bounds, placed, room = _open_layout(
        now,
        deadline,
        CATEGORY_PROFILES[goal.category],
        config,
        config.max_phases_per_goal - history_count,
        done_after,
        len(remaining),
    )
    counts = _allot(len(remaining), room)
    i = 0
    for (start, end), fixed, n in zip(bounds, placed, counts):
        entries.append(_Entry(start, end, fixed, remaining[i : i + n]))
        i += n

    if done_before and not history_count:
        # Only a single phase is allowed: it reaches back to the oldest completed task.
        first = entries[0]
        first.fixed = done_before + first.fixed
        first.start = done_before[0].scheduled_date

    overfull = [e for e in entries if len(e.fixed) + len(e.group) > limit]
    if overfull:
        logger.warning(
            "goal {}: {} phase(s) hold more than {} tasks; completed work no longer fits max_phases_per_goal={}",
            goal.id,
            len(overfull),
            limit,
            config.max_phases_per_goal,
        )

    phases: list[Phase] = []
    for e in _drop_empty(entries):
        dates = spread_dates(e.start, e.end, len(e.group), not_before=now) if e.group else []
        moved = [replace(t, scheduled_date=when) for t, when in zip(e.group, dates)]
        source = owner[(e.group or e.fixed)[0].id]
        phases.append(
            Phase(
                title=source.title,
                description=source.description,
                start_date=e.start,
                end_date=e.end,
                tasks=sorted(moved + [replace(t) for t in e.fixed], key=lambda t: t.scheduled_date),
            )
        )

    capacity = phase_capacity_minutes(goal.weekly_available_hours, (deadline - now) / WEEK)
    needed = sum(t.duration_minutes for t in remaining)
    overdue = [t for t in remaining if t.is_overdue(now)]

    history = list(schedule.adjustment_history)
    history.extend(_records(schedule, now, overdue, needed, capacity))

    logger.info(
        "adjusted plan for goal {}: {} completed kept, {} remaining over {} phases ({} of {} minutes)",
        goal.id,
        len(completed),
        len(remaining),
        len(phases),
        needed,
        capacity,
    )
    return Schedule(
        phases=phases,
        weekly_commitment_hours=goal.weekly_available_hours,
        generated_at=now if reset_baseline else schedule.generated_at,
        last_adjusted_at=now,
        adjustment_history=history,
    )


class _Entry:
    """A phase under construction: its span, the completed tasks it keeps and the open tasks it receives."""

    def __init__(
        self,
        start: datetime,
        end: datetime,
        fixed: list[ScheduledTask],
        group: list[ScheduledTask],
    ) -> None:
        self.start = start
        self.end = end
        self.fixed = fixed
        self.group = group


def _history_entries(done: list[ScheduledTask], count: int, now: datetime) -> list[_Entry]:
    # Consecutive date-ordered chunks; each ends where the next begins, the last at ``now``.
    if not count:
        return []
    chunks = _split_evenly(done, count)
    out: list[_Entry] = []
    for i, chunk in enumerate(chunks):
        end = chunks[i + 1][0].scheduled_date if i + 1 < len(chunks) else now
        out.append(_Entry(chunk[0].scheduled_date, end, list(chunk), []))
    return out


def _open_layout(
    now: datetime,
    deadline: datetime,
    profile: CategoryProfile,
    config: PlanningConfig,
    budget: int,
    done_after: list[ScheduledTask],
    remaining: int,
) -> tuple[list[tuple[datetime, datetime]], list[list[ScheduledTask]], list[int]]:
    """Pick the phase split of ``[now, deadline]``.

    Starts from the generator's count (or enough phases for ``remaining`` tasks)
    and adds phases, up to ``budget``, until the completed tasks already in each
    phase and the open slots left over fit ``max_tasks_per_phase``.
    """
    limit = config.max_tasks_per_phase
    wanted = max(phase_count_for(deadline - now, profile, config), math.ceil(remaining / limit))
    count = max(1, min(wanted, budget, remaining + len(done_after)))
    while True:
        bounds = split_horizon(now, deadline, count)
        placed = _place(bounds, done_after)
        room = [max(0, limit - len(p)) for p in placed]
        fits = sum(room) >= remaining and all(len(p) <= limit for p in placed)
        if fits or count >= budget:
            return bounds, placed, room
        count += 1


def _place(bounds: list[tuple[datetime, datetime]], tasks: list[ScheduledTask]) -> list[list[ScheduledTask]]:
    # Last phase starting at or before the task's date.
    out: list[list[ScheduledTask]] = [[] for _ in bounds]
    for task in tasks:
        idx = 0
        for i, (start, _) in enumerate(bounds):
            if start <= task.scheduled_date:
                idx = i
        out[idx].append(task)
    return out


def _allot(total: int, room: list[int]) -> list[int]:
    """Deal ``total`` open tasks one per phase in turn, skipping full phases.

    When every phase is full the rest are dealt over all phases.
    """
    counts = [0] * len(room)
    left = total
    while left:
        targets = [i for i, r in enumerate(room) if counts[i] < r] or list(range(len(room)))
        for i in targets:
            if not left:
                break
            counts[i] += 1
            left -= 1
    return counts


def _drop_empty(entries: list[_Entry]) -> list[_Entry]:
    # Empty spans are folded into the previous phase (or the next one, at the start).
    out: list[_Entry] = []
    carry: datetime | None = None
    for e in entries:
        if not e.fixed and not e.group:
            if out:
                out[-1].end = e.end
            elif carry is None:
                carry = e.start
            continue
        if carry is not None:
            e.start, carry = carry, None
        out.append(e)
    return out


def _split_evenly(tasks: list[ScheduledTask], count: int) -> list[list[ScheduledTask]]:
    """Split in order into ``count`` groups; earlier groups take the remainder."""
    size, extra = divmod(len(tasks), count)
    out: list[list[ScheduledTask]] = []
    i = 0
    for n in range(count):
        take = size + (1 if n < extra else 0)
        out.append(tasks[i : i + take])
        i += take
    return out


def _records(
    schedule: Schedule,
    now: datetime,
    overdue: list[ScheduledTask],
    needed: int,
    capacity: int,
) -> list[Adjustment]:
    out: list[Adjustment] = []
    if overdue:
        out.append(
            Adjustment(
                date=now,
                reason="missed_tasks",
                description=f"Rescheduled {len(overdue)} missed task(s)",
                changes="Overdue tasks moved to upcoming days",
            )
        )
    if needed > capacity:
        out.append(
            Adjustment(
                date=now,
                reason="over_capacity",
                description=f"Remaining work needs {needed} minutes but only {capacity} are available",
                changes="Tasks compressed into the remaining phases; deadline unchanged",
            )
        )

    total = schedule.total_tasks
    progress = schedule.completed_task_count / total if total else 0.0
    if progress > expected_progress(schedule, now) + AHEAD_MARGIN:
        out.append(
            Adjustment(
                date=now,
                reason="ahead_of_schedule",
                description="Great progress! You're ahead of schedule",
                changes="Remaining tasks spread over the time left",
            )
        )

    if not out:
        out.append(
            Adjustment(
                date=now,
                reason="rebalanced",
                description="Remaining tasks rebalanced over the time left",
                changes="Task dates and phases recomputed",
            )
        )
    return out
