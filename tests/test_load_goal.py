from datetime import datetime
from pathlib import Path

import pytest

from goal_planner.core.adjust.adjust_plan import adjust_plan
from goal_planner.core.complete.mark_task import mark_complete
from goal_planner.core.config import PlanningConfig
from goal_planner.core.errors import GoalLoadError
from goal_planner.core.generate.generate_plan import generate_plan
from goal_planner.core.io.load_goal import dump_goal, goal_from_dict, goal_to_dict, load_goal

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"
CONFIG = PlanningConfig()
NOW = datetime(2026, 1, 5, 8, 0)


def test_load_example_goal():
    goal = load_goal(str(EXAMPLES / "career-goal.yaml"), CONFIG)
    assert goal.id == "career-01"
    assert goal.category == "career"
    assert goal.weekly_available_hours == 10.0
    assert goal.target_date == datetime(2026, 4, 1)
    assert goal.description == "Grow into a senior role on the platform team"
    assert goal.schedule is None


def test_weekly_hours_default_from_config():
    goal = load_goal(str(EXAMPLES / "open-goal.yaml"), PlanningConfig(default_weekly_hours=4))
    assert goal.weekly_available_hours == 4.0
    assert goal.target_date is None


def test_missing_file():
    with pytest.raises(GoalLoadError) as exc:
        load_goal(str(EXAMPLES / "nope.yaml"), CONFIG)
    assert exc.value.code == "E_FILE_NOT_FOUND"


def test_unsupported_format(tmp_path: Path):
    p = tmp_path / "goal.txt"
    p.write_text("id: x", encoding="utf-8")
    with pytest.raises(GoalLoadError) as exc:
        load_goal(str(p), CONFIG)
    assert exc.value.code == "E_UNSUPPORTED_FORMAT"


def test_parse_errors(tmp_path: Path):
    y = tmp_path / "bad.yaml"
    y.write_text("id: [unclosed", encoding="utf-8")
    j = tmp_path / "bad.json"
    j.write_text("{", encoding="utf-8")
    top = tmp_path / "list.yaml"
    top.write_text("- a\n", encoding="utf-8")

    codes = []
    for p in (y, j, top):
        with pytest.raises(GoalLoadError) as exc:
            load_goal(str(p), CONFIG)
        codes.append(exc.value.code)
    assert codes == ["E_YAML_PARSE", "E_JSON_PARSE", "E_INVALID_TOP_LEVEL"]


def test_unknown_category():
    with pytest.raises(GoalLoadError) as exc:
        load_goal(str(EXAMPLES / "bad-category-goal.yaml"), CONFIG)
    assert exc.value.code == "E_INVALID_ENUM"
    assert exc.value.path == "category"


@pytest.mark.parametrize(
    "patch,code,path",
    [
        ({"id": ""}, "E_REQUIRED_FIELD", "id"),
        ({"weekly_available_hours": "lots"}, "E_INVALID_TYPE", "weekly_available_hours"),
        ({"target_date": "next spring"}, "E_INVALID_TYPE", "target_date"),
        ({"schedule": []}, "E_INVALID_TYPE", "schedule"),
        ({"schedule": {"weekly_commitment_hours": 3}}, "E_REQUIRED_FIELD", "schedule.phases"),
    ],
)
def test_field_errors(patch, code, path):
    raw = {"id": "g", "title": "t", "category": "health", "weekly_available_hours": 3}
    raw.update(patch)
    with pytest.raises(GoalLoadError) as exc:
        goal_from_dict(raw, CONFIG)
    assert (exc.value.code, exc.value.path) == (code, path)


@pytest.mark.parametrize(
    "field,value,code,path",
    [
        ("is_completed", "false", "E_INVALID_TYPE", "schedule.phases[0].tasks[0].is_completed"),
        ("is_completed", 1, "E_INVALID_TYPE", "schedule.phases[0].tasks[0].is_completed"),
        ("reason", "bored", "E_INVALID_ENUM", "schedule.adjustment_history[0].reason"),
        ("reason", ["missed_tasks"], "E_INVALID_ENUM", "schedule.adjustment_history[0].reason"),
    ],
)
def test_schedule_field_errors(field, value, code, path):
    goal = load_goal(str(EXAMPLES / "career-goal.yaml"), CONFIG)
    goal.schedule = generate_plan(goal, CONFIG, NOW)
    goal.schedule = adjust_plan(goal, CONFIG, datetime(2026, 1, 14, 8, 0))
    raw = goal_to_dict(goal)
    if field == "reason":
        raw["schedule"]["adjustment_history"][0]["reason"] = value
    else:
        raw["schedule"]["phases"][0]["tasks"][0]["is_completed"] = value

    with pytest.raises(GoalLoadError) as exc:
        goal_from_dict(raw, CONFIG)
    assert (exc.value.code, exc.value.path) == (code, path)


@pytest.mark.parametrize("suffix", [".yaml", ".json"])
def test_plan_survives_dump_and_load(tmp_path: Path, suffix: str):
    goal = load_goal(str(EXAMPLES / "career-goal.yaml"), CONFIG)
    goal.schedule = generate_plan(goal, CONFIG, NOW)
    mark_complete(goal.schedule.phases[0].tasks[0].id, goal, datetime(2026, 1, 6, 20, 15))
    goal.schedule = adjust_plan(goal, CONFIG, datetime(2026, 1, 14, 8, 0))

    out = tmp_path / "nested" / f"goal{suffix}"
    dump_goal(goal, str(out))
    loaded = load_goal(str(out), CONFIG)

    assert loaded == goal
