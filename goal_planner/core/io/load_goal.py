from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, cast

import yaml

from goal_planner.core.config import PlanningConfig
from goal_planner.core.errors import GoalLoadError
from goal_planner.core.model import (
    ALLOWED_ADJUSTMENT_REASONS,
    ALLOWED_CATEGORIES,
    Adjustment,
    AdjustmentReason,
    Goal,
    GoalCategory,
    Phase,
    Schedule,
    ScheduledTask,
)


def load_goal(path: str, config: PlanningConfig) -> Goal:
    """Load a YAML/JSON goal file.

    The file holds the goal fields and, once a plan exists, its ``schedule``.
    ``weekly_available_hours`` falls back to ``config.default_weekly_hours``.
    """

    p = Path(path)
    if not p.exists():
        raise GoalLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise GoalLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise GoalLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except GoalLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise GoalLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise GoalLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    return goal_from_dict(data, config, file=str(p))


def dump_goal(goal: Goal, path: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    data = goal_to_dict(goal)
    with open(p, "w", encoding="utf-8") as f:
        if p.suffix.lower() == ".json":
            json.dump(data, f, indent=2)
            f.write("\n")
        else:
            yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False, allow_unicode=True)


def goal_to_dict(goal: Goal) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": goal.id,
        "title": goal.title,
        "category": goal.category,
        "weekly_available_hours": goal.weekly_available_hours,
        "target_date": _iso(goal.target_date),
    }
    if goal.description is not None:
        out["description"] = goal.description
    if goal.schedule is not None:
        out["schedule"] = schedule_to_dict(goal.schedule)
    return out


def schedule_to_dict(schedule: Schedule) -> dict[str, Any]:
    return {
        "generated_at": _iso(schedule.generated_at),
        "last_adjusted_at": _iso(schedule.last_adjusted_at),
        "weekly_commitment_hours": schedule.weekly_commitment_hours,
        "phases": [
            {
                "title": p.title,
                "description": p.description,
                "start_date": _iso(p.start_date),
                "end_date": _iso(p.end_date),
                "tasks": [
                    {
                        "id": t.id,
                        "title": t.title,
                        "description": t.description,
                        "scheduled_date": _iso(t.scheduled_date),
                        "duration_minutes": t.duration_minutes,
                        "is_completed": t.is_completed,
                        "completed_at": _iso(t.completed_at),
                    }
                    for t in p.tasks
                ],
            }
            for p in schedule.phases
        ],
        "adjustment_history": [
            {"date": _iso(a.date), "reason": a.reason, "description": a.description, "changes": a.changes}
            for a in schedule.adjustment_history
        ],
    }


def goal_from_dict(data: dict[str, Any], config: PlanningConfig, *, file: Optional[str] = None) -> Goal:
    r = _Reader(file)

    hours = data.get("weekly_available_hours", config.default_weekly_hours)
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        raise r.error("E_INVALID_TYPE", "weekly_available_hours must be a number", "weekly_available_hours")

    category = r.text(data, "category", "category")
    if category not in ALLOWED_CATEGORIES:
        raise r.error(
            "E_INVALID_ENUM",
            f"category must be one of {sorted(ALLOWED_CATEGORIES)}",
            "category",
        )

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise r.error("E_INVALID_TYPE", "description must be a string", "description")

    raw_schedule = data.get("schedule")
    schedule = None
    if raw_schedule is not None:
        if not isinstance(raw_schedule, dict):
            raise r.error("E_INVALID_TYPE", "schedule must be a mapping", "schedule")
        schedule = _schedule_from_dict(raw_schedule, r)

    return Goal(
        id=r.text(data, "id", "id"),
        title=r.text(data, "title", "title"),
        category=cast(GoalCategory, category),
        weekly_available_hours=float(hours),
        target_date=r.when(data, "target_date", "target_date", required=False),
        schedule=schedule,
        description=description,
    )


def _schedule_from_dict(data: dict[str, Any], r: "_Reader") -> Schedule:
    raw_phases = data.get("phases")
    if not isinstance(raw_phases, list):
        raise r.error("E_REQUIRED_FIELD", "phases is required and must be an array", "schedule.phases")

    phases: list[Phase] = []
    for i, raw in enumerate(raw_phases):
        path = f"schedule.phases[{i}]"
        if not isinstance(raw, dict):
            raise r.error("E_INVALID_TYPE", "phase must be an object", path)
        raw_tasks = raw.get("tasks")
        if not isinstance(raw_tasks, list):
            raise r.error("E_REQUIRED_FIELD", "tasks is required and must be an array", f"{path}.tasks")
        tasks = [_task_from_dict(t, r, f"{path}.tasks[{j}]") for j, t in enumerate(raw_tasks)]
        phases.append(
            Phase(
                title=r.text(raw, "title", f"{path}.title"),
                description=str(raw.get("description") or ""),
                start_date=cast(datetime, r.when(raw, "start_date", f"{path}.start_date")),
                end_date=cast(datetime, r.when(raw, "end_date", f"{path}.end_date")),
                tasks=tasks,
            )
        )

    history: list[Adjustment] = []
    for i, raw in enumerate(data.get("adjustment_history") or []):
        path = f"schedule.adjustment_history[{i}]"
        if not isinstance(raw, dict):
            raise r.error("E_INVALID_TYPE", "adjustment must be an object", path)
        reason = raw.get("reason", "rebalanced")
        if not isinstance(reason, str) or reason not in ALLOWED_ADJUSTMENT_REASONS:
            raise r.error(
                "E_INVALID_ENUM",
                f"reason must be one of {sorted(ALLOWED_ADJUSTMENT_REASONS)}",
                f"{path}.reason",
            )
        history.append(
            Adjustment(
                date=cast(datetime, r.when(raw, "date", f"{path}.date")),
                reason=cast(AdjustmentReason, reason),
                description=str(raw.get("description") or ""),
                changes=str(raw.get("changes") or ""),
            )
        )

    hours = data.get("weekly_commitment_hours")
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        raise r.error("E_INVALID_TYPE", "weekly_commitment_hours must be a number", "schedule.weekly_commitment_hours")

    return Schedule(
        phases=phases,
        weekly_commitment_hours=float(hours),
        generated_at=cast(datetime, r.when(data, "generated_at", "schedule.generated_at")),
        last_adjusted_at=cast(datetime, r.when(data, "last_adjusted_at", "schedule.last_adjusted_at")),
        adjustment_history=history,
    )


def _task_from_dict(raw: Any, r: "_Reader", path: str) -> ScheduledTask:
    if not isinstance(raw, dict):
        raise r.error("E_INVALID_TYPE", "task must be an object", path)
    minutes = raw.get("duration_minutes")
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise r.error("E_INVALID_TYPE", "duration_minutes must be an integer", f"{path}.duration_minutes")
    is_completed = raw.get("is_completed", False)
    if not isinstance(is_completed, bool):
        raise r.error("E_INVALID_TYPE", "is_completed must be a boolean", f"{path}.is_completed")
    description = raw.get("description")
    return ScheduledTask(
        id=r.text(raw, "id", f"{path}.id"),
        title=r.text(raw, "title", f"{path}.title"),
        scheduled_date=cast(datetime, r.when(raw, "scheduled_date", f"{path}.scheduled_date")),
        duration_minutes=minutes,
        is_completed=is_completed,
        completed_at=r.when(raw, "completed_at", f"{path}.completed_at", required=False),
        description=description if isinstance(description, str) else None,
    )


class _Reader:
    def __init__(self, file: Optional[str]) -> None:
        self.file = file

    def error(self, code: str, message: str, path: str) -> GoalLoadError:
        return GoalLoadError(code=code, message=message, file=self.file, path=path)

    def text(self, raw: dict[str, Any], key: str, path: str) -> str:
        v = raw.get(key)
        if not isinstance(v, str) or not v.strip():
            raise self.error("E_REQUIRED_FIELD", f"{key} is required and must be a non-empty string", path)
        return v

    def when(self, raw: dict[str, Any], key: str, path: str, *, required: bool = True) -> Optional[datetime]:
        v = raw.get(key)
        if v is None:
            if required:
                raise self.error("E_REQUIRED_FIELD", f"{key} is required", path)
            return None
        # PyYAML already turns unquoted timestamps into datetime/date objects.
        if isinstance(v, datetime):
            return v
        if isinstance(v, date):
            return datetime(v.year, v.month, v.day)
        if isinstance(v, str):
            try:
                return datetime.fromisoformat(v)
            except ValueError:
                pass
        raise self.error("E_INVALID_TYPE", f"{key} must be an ISO-8601 date/time", path)


def _iso(v: Optional[datetime]) -> Optional[str]:
    return v.isoformat() if v is not None else None
