from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal, Optional


GoalCategory = Literal[
    "career",
    "health",
    "education",
    "finance",
    "personal",
    "fitness",
    "creativity",
    "relationships",
]

ALLOWED_CATEGORIES: set[str] = {
    "career",
    "health",
    "education",
    "finance",
    "personal",
    "fitness",
    "creativity",
    "relationships",
}

AdjustmentReason = Literal["missed_tasks", "ahead_of_schedule", "rebalanced", "over_capacity"]

ALLOWED_ADJUSTMENT_REASONS: set[str] = {"missed_tasks", "ahead_of_schedule", "rebalanced", "over_capacity"}

WEEK = timedelta(days=7)


@dataclass
class ScheduledTask:
    id: str
    title: str
    scheduled_date: datetime
    duration_minutes: int

    is_completed: bool = False
    completed_at: Optional[datetime] = None
    description: Optional[str] = None

    def is_overdue(self, now: datetime) -> bool:
        return not self.is_completed and self.scheduled_date < now


@dataclass
class Phase:
    title: str
    description: str
    start_date: datetime
    end_date: datetime
    tasks: list[ScheduledTask]

    @property
    def progress(self) -> float:
        if not self.tasks:
            return 0.0
        done = sum(1 for t in self.tasks if t.is_completed)
        return done / len(self.tasks)

    @property
    def is_completed(self) -> bool:
        return self.progress == 1.0

    @property
    def duration_weeks(self) -> float:
        return (self.end_date - self.start_date) / WEEK

    def is_active(self, now: datetime) -> bool:
        return self.start_date <= now < self.end_date and not self.is_completed

    def contains(self, when: datetime) -> bool:
        return self.start_date <= when < self.end_date


@dataclass(frozen=True)
class Adjustment:
    date: datetime
    reason: AdjustmentReason
    description: str
    changes: str


@dataclass
class Schedule:
    phases: list[Phase]
    weekly_commitment_hours: float
    generated_at: datetime
    last_adjusted_at: datetime
    adjustment_history: list[Adjustment] = field(default_factory=list)

    def all_tasks(self) -> list[ScheduledTask]:
        return [t for p in self.phases for t in p.tasks]

    @property
    def total_tasks(self) -> int:
        return sum(len(p.tasks) for p in self.phases)

    @property
    def completed_task_count(self) -> int:
        return sum(1 for t in self.all_tasks() if t.is_completed)

    @property
    def horizon_end(self) -> Optional[datetime]:
        if not self.phases:
            return None
        return self.phases[-1].end_date

    def find_task(self, task_id: str) -> Optional[tuple[Phase, ScheduledTask]]:
        for phase in self.phases:
            for task in phase.tasks:
                if task.id == task_id:
                    return phase, task
        return None


@dataclass
class Goal:
    id: str
    title: str
    category: GoalCategory
    weekly_available_hours: float

    target_date: Optional[datetime] = None
    schedule: Optional[Schedule] = None
    description: Optional[str] = None
