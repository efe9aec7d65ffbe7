from datetime import datetime, timedelta

import pytest

from goal_planner.core.adjust.adjust_plan import adjust_plan
from goal_planner.core.complete.mark_task import mark_complete
from goal_planner.core.config import PlanningConfig
from goal_planner.core.errors import (
    EmptySchedule,
    InvalidTargetDate,
    NoExistingSchedule,
    TooSoonToAdjust,
    UnknownCategory,
)
from goal_planner.core.generate.generate_plan import generate_plan
from goal_planner.core.io.load_goal import goal_to_dict
from goal_planner.core.model import Goal, Phase, Schedule
from goal_planner.core.validate.validate_schedule import validate_schedule

NOW = datetime(2026, 1, 5, 8, 0)
CONFIG = PlanningConfig()


def _planned_goal(hours=10.0):
    goal = Goal(
        id="g1",
        title="Become a senior engineer",
        category="career",
        weekly_available_hours=hours,
        target_date=NOW + timedelta(days=90),
    )
    goal.schedule = generate_plan(goal, CONFIG, NOW)
    return goal


def _complete_first(goal, n, when):
    open_tasks = sorted((t for t in goal.schedule.all_tasks() if not t.is_completed), key=lambda t: t.scheduled_date)
    for t in open_tasks[:n]:
        assert mark_complete(t.id, goal, when)
    return [t.id for t in open_tasks[:n]]


def test_requires_existing_schedule():
    goal = Goal(id="g1", title="x", category="career", weekly_available_hours=5)
    with pytest.raises(NoExistingSchedule) as exc:
        adjust_plan(goal, CONFIG, NOW)
    assert exc.value.code == "E_NO_EXISTING_SCHEDULE"


def test_too_soon_to_adjust():
    goal = _planned_goal()
    with pytest.raises(TooSoonToAdjust) as exc:
        adjust_plan(goal, CONFIG, NOW + timedelta(days=2))
    assert exc.value.code == "E_TOO_SOON_TO_ADJUST"

    adjusted = adjust_plan(goal, CONFIG, NOW + timedelta(days=7))
    assert adjusted.last_adjusted_at == NOW + timedelta(days=7)


def test_keeps_completed_tasks_and_moves_the_rest():
    goal = _planned_goal()
    done_ids = _complete_first(goal, 2, NOW + timedelta(days=3))
    before = {t.id: t for t in goal.schedule.all_tasks()}
    t1 = NOW + timedelta(days=8)

    adjusted = adjust_plan(goal, CONFIG, t1)

    tasks = adjusted.all_tasks()
    assert len(tasks) == len(before)
    assert len({t.id for t in tasks}) == len(tasks)
    assert sorted(t.id for t in tasks if t.is_completed) == sorted(done_ids)
    for t in tasks:
        old = before[t.id]
        assert (t.title, t.duration_minutes) == (old.title, old.duration_minutes)
        if t.is_completed:
            assert t.scheduled_date == old.scheduled_date
            assert t.completed_at == old.completed_at
        else:
            assert t.scheduled_date >= t1

    assert adjusted.horizon_end == goal.schedule.horizon_end
    assert adjusted.generated_at == NOW
    assert adjusted.last_adjusted_at == t1
    assert validate_schedule(adjusted, CONFIG) == []
    assert adjusted.adjustment_history[-1].reason == "missed_tasks"


def test_open_tasks_keep_their_order():
    goal = _planned_goal()
    _complete_first(goal, 3, NOW + timedelta(days=3))
    open_before = [t.id for t in goal.schedule.all_tasks() if not t.is_completed]

    adjusted = adjust_plan(goal, CONFIG, NOW + timedelta(days=10))

    open_after = [t.id for p in adjusted.phases for t in p.tasks if not t.is_completed]
    assert open_after == open_before


def test_input_is_not_modified():
    goal = _planned_goal()
    _complete_first(goal, 1, NOW + timedelta(days=1))
    snapshot = goal_to_dict(goal)

    adjusted = adjust_plan(goal, CONFIG, NOW + timedelta(days=8))
    assert goal_to_dict(goal) == snapshot

    copy = Goal(id="g1", title="x", category="career", weekly_available_hours=1, schedule=adjusted)
    open_id = next(t.id for t in adjusted.all_tasks() if not t.is_completed)
    assert mark_complete(open_id, copy, NOW + timedelta(days=9))
    assert goal_to_dict(goal) == snapshot


def test_successive_adjustments_never_lose_or_duplicate_tasks():
    goal = _planned_goal()
    done = _complete_first(goal, 2, NOW + timedelta(days=3))

    t1 = NOW + timedelta(days=8)
    goal.schedule = adjust_plan(goal, CONFIG, t1)
    done += _complete_first(goal, 2, t1 + timedelta(days=1))

    t2 = t1 + timedelta(days=8)
    goal.schedule = adjust_plan(goal, CONFIG, t2)

    tasks = goal.schedule.all_tasks()
    assert len(tasks) == 40
    assert len({t.id for t in tasks}) == 40
    assert sorted(t.id for t in tasks if t.is_completed) == sorted(done)
    assert len(goal.schedule.adjustment_history) >= 2
    assert validate_schedule(goal.schedule, CONFIG) == []


def test_adjusting_twice_at_the_same_moment_is_stable():
    config = PlanningConfig(minimum_adjustment_days=0)
    goal = _planned_goal()
    _complete_first(goal, 4, NOW + timedelta(days=2))
    t1 = NOW + timedelta(days=9)

    goal.schedule = adjust_plan(goal, config, t1)
    first = goal.schedule
    second = adjust_plan(goal, config, t1)

    assert second.phases == first.phases
    assert second.generated_at == first.generated_at
    assert len(second.adjustment_history) == len(first.adjustment_history) + 1


def test_reset_baseline():
    goal = _planned_goal()
    t1 = NOW + timedelta(days=8)
    assert adjust_plan(goal, CONFIG, t1).generated_at == NOW
    assert adjust_plan(goal, CONFIG, t1, reset_baseline=True).generated_at == t1


def test_over_capacity_is_recorded():
    goal = _planned_goal()
    goal.weekly_available_hours = 1.0

    adjusted = adjust_plan(goal, CONFIG, NOW + timedelta(days=8))

    assert adjusted.weekly_commitment_hours == 1.0
    assert "over_capacity" in [a.reason for a in adjusted.adjustment_history]
    assert adjusted.horizon_end == goal.schedule.horizon_end


def test_ahead_of_schedule_is_recorded():
    goal = _planned_goal()
    _complete_first(goal, 30, NOW + timedelta(days=5))

    adjusted = adjust_plan(goal, CONFIG, NOW + timedelta(days=8))

    assert [a.reason for a in adjusted.adjustment_history] == ["ahead_of_schedule"]
    assert sum(1 for t in adjusted.all_tasks() if not t.is_completed) == 10
    assert validate_schedule(adjusted, CONFIG) == []


def test_nothing_left_to_do():
    goal = _planned_goal()
    _complete_first(goal, 40, NOW + timedelta(days=1))

    adjusted = adjust_plan(goal, CONFIG, NOW + timedelta(days=8))

    assert adjusted.total_tasks == adjusted.completed_task_count == 40
    assert adjusted.horizon_end == goal.schedule.horizon_end
    assert validate_schedule(adjusted, CONFIG) == []


def test_phases_stay_within_task_limit_after_completions():
    goal = _planned_goal()
    for task in goal.schedule.phases[0].tasks[:5]:
        assert mark_complete(task.id, goal, NOW + timedelta(days=6))
    t1 = NOW + timedelta(days=7)

    adjusted = adjust_plan(goal, CONFIG, t1)

    assert len(adjusted.phases) <= CONFIG.max_phases_per_goal
    assert all(1 <= len(p.tasks) <= CONFIG.max_tasks_per_phase for p in adjusted.phases)
    assert adjusted.total_tasks == 40
    assert validate_schedule(adjusted, CONFIG) == []

    # Work completed before t1 sits in a leading phase that ends at t1.
    first = adjusted.phases[0]
    assert all(t.is_completed for t in first.tasks)
    assert first.start_date == first.tasks[0].scheduled_date
    assert first.end_date == t1 == adjusted.phases[1].start_date


def test_completed_history_spreads_over_several_phases():
    goal = _planned_goal()
    _complete_first(goal, 15, NOW + timedelta(days=30))
    t1 = NOW + timedelta(days=35)

    adjusted = adjust_plan(goal, CONFIG, t1)

    counts = [len(p.tasks) for p in adjusted.phases]
    assert counts[:2] == [8, 7]
    assert all(t.is_completed for p in adjusted.phases[:2] for t in p.tasks)
    assert adjusted.phases[1].end_date == t1
    assert sum(counts) == 40
    assert len(counts) <= CONFIG.max_phases_per_goal
    assert validate_schedule(adjusted, CONFIG) == []


def test_history_larger_than_the_phase_budget():
    config = PlanningConfig(max_phases_per_goal=2)
    goal = _planned_goal()
    _complete_first(goal, 25, NOW + timedelta(days=50))
    t1 = NOW + timedelta(days=55)

    adjusted = adjust_plan(goal, config, t1)

    assert len(adjusted.phases) == 2
    assert [len(p.tasks) for p in adjusted.phases] == [25, 15]
    assert adjusted.phases[0].end_date == t1
    assert adjusted.horizon_end == goal.schedule.horizon_end
    assert {e.code for e in validate_schedule(adjusted, config)} == {"E_PHASE_TASK_COUNT"}


def test_unknown_category_rejected():
    goal = _planned_goal()
    goal.category = "hobbies"
    with pytest.raises(UnknownCategory) as exc:
        adjust_plan(goal, CONFIG, NOW + timedelta(days=8))
    assert exc.value.code == "E_UNKNOWN_CATEGORY"


def test_deadline_passed():
    goal = _planned_goal()
    with pytest.raises(InvalidTargetDate):
        adjust_plan(goal, CONFIG, NOW + timedelta(days=91))


def test_schedule_without_tasks():
    goal = Goal(id="g1", title="x", category="health", weekly_available_hours=3)
    goal.schedule = Schedule(
        phases=[Phase(title="P", description="", start_date=NOW, end_date=NOW + timedelta(days=30), tasks=[])],
        weekly_commitment_hours=3,
        generated_at=NOW,
        last_adjusted_at=NOW,
    )
    with pytest.raises(EmptySchedule):
        adjust_plan(goal, CONFIG, NOW + timedelta(days=8))
