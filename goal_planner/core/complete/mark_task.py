from __future__ import annotations

from datetime import datetime

from loguru import logger

from goal_planner.core.model import Goal


def mark_complete(task_id: str, goal: Goal, now: datetime) -> bool:
    """Mark a task complete in place. Returns False when the id is unknown.

    A task that is already complete keeps its original ``completed_at``.
    """
    found = goal.schedule.find_task(task_id) if goal.schedule else None
    if found is None:
        logger.debug("mark_complete: no task {} in goal {}", task_id, goal.id)
        return False

    phase, task = found
    if not task.is_completed:
        task.is_completed = True
        task.completed_at = now
    logger.debug("task {} complete; phase '{}' at {:.0%}", task_id, phase.title, phase.progress)
    return True


def mark_incomplete(task_id: str, goal: Goal) -> bool:
    found = goal.schedule.find_task(task_id) if goal.schedule else None
    if found is None:
        logger.debug("mark_incomplete: no task {} in goal {}", task_id, goal.id)
        return False

    phase, task = found
    task.is_completed = False
    task.completed_at = None
    logger.debug("task {} reopened; phase '{}' at {:.0%}", task_id, phase.title, phase.progress)
    return True
