from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from goal_planner.core.model import Schedule
from goal_planner.core.track.analyze_progress import ProgressAnalysis, analyze_progress


Rule = tuple[Callable[[ProgressAnalysis], bool], Callable[[ProgressAnalysis], str]]


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


SUGGESTION_RULES: list[Rule] = [
    (
        lambda a: len(a.overdue_tasks) > 0,
        lambda a: f"You have {_plural(len(a.overdue_tasks), 'overdue task')}, consider reallocating time",
    ),
    (
        lambda a: not a.is_on_track,
        lambda a: "You're behind pace; an adjusted schedule is recommended",
    ),
    (
        lambda a: not a.tasks_for_today and bool(a.upcoming_tasks),
        lambda a: "No tasks scheduled for today. Consider working ahead on upcoming tasks.",
    ),
    (
        lambda a: a.total_tasks > 0 and a.overall_progress < 0.25,
        lambda a: "You're in the early stages. Building momentum is key!",
    ),
    (
        lambda a: 0.75 <= a.overall_progress < 1.0,
        lambda a: "You're in the home stretch! Stay focused to finish strong.",
    ),
    (
        lambda a: a.total_tasks > 0 and a.completed_tasks == a.total_tasks,
        lambda a: "Every task is complete. Time to celebrate and set the next goal.",
    ),
]

CATEGORY_TIPS: dict[str, str] = {
    "fitness": "Remember to stay hydrated and get adequate rest between workouts.",
    "education": "Try the Pomodoro technique: 25 minutes of focused study, then a 5-minute break.",
    "career": "Network with professionals in your target field for insights and opportunities.",
    "health": "Track your progress in a journal to stay motivated.",
    "finance": "Review your spending weekly to stay on track with financial goals.",
    "creativity": "Set aside dedicated creative time without distractions.",
    "relationships": "Quality time matters more than quantity. Be present in your interactions.",
    "personal": "Celebrate small wins along the way to stay motivated.",
}


def get_suggestions(schedule: Schedule, now: datetime, *, category: Optional[str] = None) -> list[str]:
    analysis = analyze_progress(schedule, now)
    out = [message(analysis) for applies, message in SUGGESTION_RULES if applies(analysis)]
    if category in CATEGORY_TIPS:
        out.append(CATEGORY_TIPS[category])
    return out
