from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class PlanningConfig:
    max_phases_per_goal: int = 5
    max_tasks_per_phase: int = 10
    default_weekly_hours: float = 10.0
    minimum_adjustment_days: int = 7


DEFAULT_CONFIG = PlanningConfig()


class PlanningConfigError(ValueError):
    pass


def load_config(path: str | Path | None) -> PlanningConfig:
    """Load a PlanningConfig from a YAML file.

    Format:
      max_phases_per_goal: 5
      max_tasks_per_phase: 10
      default_weekly_hours: 10.0
      minimum_adjustment_days: 7

    Every key is optional; missing keys keep their defaults. ``None`` returns the defaults.
    """
    if path is None:
        return DEFAULT_CONFIG

    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return DEFAULT_CONFIG
    if not isinstance(raw, dict):
        raise PlanningConfigError("config file must be a mapping of setting -> value")
    return config_from_dict(raw)


def config_from_dict(raw: dict[str, Any]) -> PlanningConfig:
    known = {f.name: f for f in fields(PlanningConfig)}
    values: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise PlanningConfigError(f"unknown config key: {k} (choose from: {', '.join(sorted(known))})")
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise PlanningConfigError(f"{k} must be a number")
        if v <= 0:
            raise PlanningConfigError(f"{k} must be positive")
        if k == "default_weekly_hours":
            values[k] = float(v)
        else:
            if not isinstance(v, int):
                raise PlanningConfigError(f"{k} must be an integer")
            values[k] = v
    return PlanningConfig(**values)
