from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from goal_planner.core.model import Phase, Schedule, ScheduledTask


# How far actual progress may trail expected progress and still count as on track.
DRIFT_TOLERANCE = 0.1


@dataclass(frozen=True)
class ProgressAnalysis:
    analyzed_at: datetime
    total_tasks: int
    completed_tasks: int
    overall_progress: float
    expected_progress: float
    is_on_track: bool
    days_remaining: int
    overdue_tasks: list[ScheduledTask]
    tasks_for_today: list[ScheduledTask]
    upcoming_tasks: list[ScheduledTask]
    current_phase: Optional[Phase]
    next_task: Optional[ScheduledTask]

    overall_score: float
    strengths: list[str]
    areas_for_improvement: list[str]
    recommendations: list[str]
    estimated_completion_date: Optional[datetime] = None


def analyze_progress(schedule: Schedule, now: datetime) -> ProgressAnalysis:
    """Read-only progress statistics for ``schedule`` as of ``now``.

    Never fails: a schedule with no tasks (or no phases) yields zeros and empty lists.
    """
    tasks = schedule.all_tasks()
    total = len(tasks)
    completed = sum(1 for t in tasks if t.is_completed)
    pending = sorted((t for t in tasks if not t.is_completed), key=lambda t: t.scheduled_date)

    overdue = [t for t in pending if t.is_overdue(now)]
    today = [t for t in pending if t.scheduled_date.date() == now.date()]
    upcoming = [t for t in pending if t.scheduled_date >= now]

    progress = completed / total if total else 0.0
    expected = expected_progress(schedule, now)

    end = schedule.horizon_end
    days_remaining = max(0, (end - now).days) if end is not None else 0

    strengths, improvements, recommendations = _insights(completed, len(overdue), progress, expected)

    return ProgressAnalysis(
        analyzed_at=now,
        total_tasks=total,
        completed_tasks=completed,
        overall_progress=progress,
        expected_progress=expected,
        is_on_track=progress >= expected - DRIFT_TOLERANCE,
        days_remaining=days_remaining,
        overdue_tasks=overdue,
        tasks_for_today=today,
        upcoming_tasks=upcoming,
        current_phase=_current_phase(schedule, now),
        next_task=pending[0] if pending else None,
        overall_score=_score(progress, expected, len(overdue), total),
        strengths=strengths,
        areas_for_improvement=improvements,
        recommendations=recommendations,
        estimated_completion_date=_projected_finish(schedule, now, progress),
    )


def expected_progress(schedule: Schedule, now: datetime) -> float:
    end = schedule.horizon_end
    if end is None:
        return 0.0
    total = end - schedule.generated_at
    if total.total_seconds() <= 0:
        return 1.0
    elapsed = now - schedule.generated_at
    return min(1.0, max(0.0, elapsed / total))


def _current_phase(schedule: Schedule, now: datetime) -> Optional[Phase]:
    for phase in schedule.phases:
        if phase.is_active(now):
            return phase
    for phase in schedule.phases:
        if not phase.is_completed:
            return phase
    return None


def _score(progress: float, expected: float, overdue: int, total: int) -> float:
    score = progress * 100
    if total > 0:
        score -= (overdue / total) * 30
    if progress > expected:
        score += 10
    return max(0.0, min(100.0, score))


def _projected_finish(schedule: Schedule, now: datetime, progress: float) -> Optional[datetime]:
    # Linear pace projection from the plan's baseline.
    if not 0 < progress < 1:
        return None
    elapsed = now - schedule.generated_at
    if elapsed.total_seconds() <= 0:
        return None
    return schedule.generated_at + elapsed / progress


def _insights(completed: int, overdue: int, progress: float, expected: float) -> tuple[list[str], list[str], list[str]]:
    strengths: list[str] = []
    improvements: list[str] = []
    recommendations: list[str] = []

    if progress >= expected:
        strengths.append("You're on track with your goal")
    if completed > 0:
        strengths.append(f"You've completed {completed} task(s) so far")
    if overdue > 0:
        improvements.append(f"{overdue} task(s) are overdue")
        recommendations.append("Try to catch up on overdue tasks this week")
    if progress < expected:
        improvements.append("Progress is behind schedule")
        recommendations.append("Consider dedicating extra time this week")

    if not strengths:
        strengths.append("Starting your journey toward this goal")
    if not recommendations:
        recommendations.append("Keep up the consistent effort")
        recommendations.append("Review upcoming tasks at the start of each week")
    return strengths, improvements, recommendations
