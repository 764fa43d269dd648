"""
Test Suite for the Shift Generation Engine

Covers rest-day planning against the staffing floor, open/close balancing,
manual protection, weekly scope, dual-duty coverage and tie-breaking.
"""

import pytest
from datetime import date, timedelta
import sys
from pathlib import Path

# Setup import path for src
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cinema_scheduler.data_manager import DataManager
from cinema_scheduler.exceptions import InsufficientStaffError
from cinema_scheduler.models import (
    CLOSE, DUAL_CLOSE, DUAL_OPEN, LEAVE, MIDDLE, OFF, OPEN, ScheduleTable,
    ShiftAssignment, ShiftRole, Staff,
)
from cinema_scheduler.scheduler_logic import (
    BalanceTracker, DailyRequirement, DayOffPlanner, RandomTieBreaker,
    ShiftAssigner, ShiftScheduler, StableTieBreaker, calculate_daily_requirement,
)
from cinema_scheduler.settings import SchedulerSettings
from cinema_scheduler.calendar_utils import HolidayCalendar

YEAR, MONTH = 2026, 1  # January 2026 starts on a Thursday
JAN = [date(2026, 1, d) for d in range(1, 32)]
WORK = (OPEN, MIDDLE, CLOSE)


def make_manager(outlet=(), buwon=(), settings=None):
    staff = [Staff(f"o{i}", name, "OUTLET") for i, name in enumerate(outlet)]
    staff += [Staff(f"b{i}", name, "BUWON") for i, name in enumerate(buwon)]
    return DataManager(staff=staff, settings=settings)


def kinds_on(dm, day, cinema_id):
    return {s.id: dm.schedule.get(day, s.id).kind for s in dm.get_staff(cinema_id)}


@pytest.fixture
def data_manager():
    """Four staff per cinema"""
    return make_manager(outlet=("Alice", "Bob", "Charlie", "Diana"),
                        buwon=("Erin", "Frank", "Grace", "Heidi"))


@pytest.fixture
def scheduler(data_manager):
    return ShiftScheduler(data_manager)


def test_two_staff_never_rest():
    """With two staff the floor of one opener and one closer blocks every rest day."""
    dm = make_manager(outlet=("Alice", "Bob"))
    result = ShiftScheduler(dm).generate_schedule(YEAR, MONTH, "OUTLET")

    assert result.success
    assert result.unfilled == []
    for day in JAN:
        kinds = sorted(k.id for k in kinds_on(dm, day, "OUTLET").values())
        assert kinds == ["CLOSE", "OPEN"]
    assert {s.staff_id for s in result.rest_shortfalls} == {"o0", "o1"}


def test_rest_quota_met_in_full_weeks(data_manager, scheduler):
    result = scheduler.generate_schedule(YEAR, MONTH, "OUTLET")
    weeks = data_manager.get_weeks(YEAR, MONTH)

    for week in weeks[:4]:
        for member in data_manager.get_staff("OUTLET"):
            offs = [d for d in week if data_manager.schedule.get(d, member.id).kind == OFF]
            assert len(offs) == 2

    # The trailing three-day week cannot hold two rest days for everyone
    assert result.rest_shortfalls
    assert all(s.week_start == date(2026, 1, 29) for s in result.rest_shortfalls)


def test_every_day_has_one_opener_one_closer(data_manager, scheduler):
    scheduler.generate_schedule(YEAR, MONTH, "OUTLET")

    for day in JAN:
        kinds = list(kinds_on(data_manager, day, "OUTLET").values())
        assert kinds.count(OPEN) == 1
        assert kinds.count(CLOSE) == 1
        assert sum(1 for k in kinds if k in WORK) >= 2


def test_each_staff_has_exactly_one_entry_per_day(data_manager, scheduler):
    scheduler.generate_schedule(YEAR, MONTH, "BUWON")

    for day in data_manager.get_window_dates(YEAR, MONTH):
        for member in data_manager.get_staff("BUWON"):
            assert data_manager.schedule.get(day, member.id) is not None
        # Other cinema untouched
        for member in data_manager.get_staff("OUTLET"):
            assert data_manager.schedule.get(day, member.id) is None


def test_manual_entries_preserved(data_manager, scheduler):
    data_manager.set_manual_assignment(date(2026, 1, 5), "o0", "LEAVE")
    data_manager.set_manual_assignment(date(2026, 1, 6), "o1", "OPEN")
    data_manager.set_manual_assignment(date(2026, 1, 7), "o2", "OFF")

    scheduler.generate_schedule(YEAR, MONTH, "OUTLET")

    assert data_manager.schedule.get(date(2026, 1, 5), "o0") == ShiftAssignment(LEAVE, manual=True)
    assert data_manager.schedule.get(date(2026, 1, 6), "o1") == ShiftAssignment(OPEN, manual=True)
    assert data_manager.schedule.get(date(2026, 1, 7), "o2") == ShiftAssignment(OFF, manual=True)

    # The manual opener covers the need; nobody else opens that day
    kinds = kinds_on(data_manager, date(2026, 1, 6), "OUTLET")
    assert list(kinds.values()).count(OPEN) == 1


def test_manual_rest_counts_toward_quota(data_manager, scheduler):
    data_manager.set_manual_assignment(date(2026, 1, 2), "o0", "OFF")
    data_manager.set_manual_assignment(date(2026, 1, 3), "o0", "OFF")

    scheduler.generate_schedule(YEAR, MONTH, "OUTLET")

    first_week = data_manager.get_week_dates(YEAR, MONTH, 0)
    offs = [d for d in first_week if data_manager.schedule.get(d, "o0").kind == OFF]
    assert offs == [date(2026, 1, 2), date(2026, 1, 3)]


def test_leave_raises_floor():
    """A manual leave counts as a pinned worker, so nobody else may rest that day."""
    dm = make_manager(buwon=("Erin", "Frank", "Grace"))
    dm.set_manual_assignment(date(2026, 1, 1), "b0", "LEAVE")

    ShiftScheduler(dm).generate_schedule(YEAR, MONTH, "BUWON")

    kinds = kinds_on(dm, date(2026, 1, 1), "BUWON")
    assert kinds["b0"] == LEAVE
    assert sorted(kinds[s].id for s in ("b1", "b2")) == ["CLOSE", "OPEN"]


def test_open_close_balancing_without_rest():
    settings = SchedulerSettings(rest_days_per_week=0)
    dm = make_manager(outlet=("Alice", "Bob", "Charlie"), settings=settings)

    ShiftScheduler(dm).generate_schedule(YEAR, MONTH, "OUTLET")

    opens = {s.id: 0 for s in dm.get_staff()}
    for day in JAN:
        for staff_id, kind in kinds_on(dm, day, "OUTLET").items():
            if kind == OPEN:
                opens[staff_id] += 1
        # The previous closer keeps closing
        assert dm.schedule.get(day, "o1").kind == CLOSE
    assert opens == {"o0": 16, "o1": 0, "o2": 15}


def test_closer_not_asked_to_open_next_day(data_manager, scheduler):
    scheduler.generate_schedule(YEAR, MONTH, "OUTLET")

    for day in JAN[1:]:
        for member in data_manager.get_staff("OUTLET"):
            previous = data_manager.schedule.get(day - timedelta(days=1), member.id)
            current = data_manager.schedule.get(day, member.id)
            if previous.kind == CLOSE and current.kind == OPEN:
                # Allowed only when nobody else was available to open
                others = [k for sid, k in kinds_on(data_manager, day, "OUTLET").items() if sid != member.id]
                assert all(k in (OFF, CLOSE) for k in others)


def test_insufficient_staff_raises_without_mutation():
    dm = make_manager(outlet=("Alice",))
    before = dm.schedule

    with pytest.raises(InsufficientStaffError) as excinfo:
        ShiftScheduler(dm).generate_schedule(YEAR, MONTH, "OUTLET")

    assert excinfo.value.staff_count == 1
    assert dm.schedule is before


def test_week_index_out_of_range(scheduler):
    with pytest.raises(ValueError):
        scheduler.generate_schedule(YEAR, MONTH, "OUTLET", week_index=5)
    with pytest.raises(ValueError):
        scheduler.generate_schedule(YEAR, MONTH, "OUTLET", week_index=-1)


def test_unknown_cinema(scheduler):
    with pytest.raises(ValueError):
        scheduler.generate_schedule(YEAR, MONTH, "NOWHERE")


def test_weekly_generation_leaves_other_days_alone(data_manager, scheduler):
    scheduler.generate_schedule(YEAR, MONTH, "OUTLET")
    scheduler.generate_schedule(YEAR, MONTH, "BUWON")
    before = data_manager.schedule

    result = scheduler.generate_schedule(YEAR, MONTH, "OUTLET", week_index=1)
    after = data_manager.schedule
    week = set(data_manager.get_week_dates(YEAR, MONTH, 1))

    assert result.week_index == 1
    for day in data_manager.get_window_dates(YEAR, MONTH):
        if day not in week:
            assert after.shares_day_with(before, day)
        for member in data_manager.get_staff("BUWON"):
            assert after.get(day, member.id) == before.get(day, member.id)


def test_weekly_generation_replaces_only_automatic(data_manager, scheduler):
    scheduler.generate_schedule(YEAR, MONTH, "OUTLET")
    data_manager.set_manual_assignment(date(2026, 1, 9), "o3", "CLOSE")

    scheduler.generate_schedule(YEAR, MONTH, "OUTLET", week_index=1)

    assert data_manager.schedule.get(date(2026, 1, 9), "o3") == ShiftAssignment(CLOSE, manual=True)
    kinds = kinds_on(data_manager, date(2026, 1, 9), "OUTLET")
    assert list(kinds.values()).count(CLOSE) == 1


def test_dual_duty_covers_supported_cinema():
    dm = make_manager(outlet=("Alice", "Bob", "Charlie"), buwon=("Erin", "Frank"))
    dm.set_manual_assignment(date(2026, 1, 2), "b0", "DUAL_OPEN")

    result = ShiftScheduler(dm).generate_schedule(YEAR, MONTH, "OUTLET")

    kinds = kinds_on(dm, date(2026, 1, 2), "OUTLET")
    assert OPEN not in kinds.values()
    assert CLOSE in kinds.values()
    assert not [u for u in result.unfilled if u.date == date(2026, 1, 2)]


def test_dual_duty_leaves_home_short():
    """The dual worker is pinned at home too, so the lone colleague cannot both open and close."""
    dm = make_manager(outlet=("Alice", "Bob"), buwon=("Erin", "Frank"))
    dm.set_manual_assignment(date(2026, 1, 2), "b0", "DUAL_OPEN")

    result = ShiftScheduler(dm).generate_schedule(YEAR, MONTH, "BUWON")

    assert dm.schedule.get(date(2026, 1, 2), "b1").kind == OPEN
    assert [(u.date, u.cinema_id, u.role) for u in result.unfilled] == [
        (date(2026, 1, 2), "BUWON", ShiftRole.CLOSE)
    ]


def test_stable_generation_is_deterministic():
    results = []
    for _ in range(2):
        dm = make_manager(outlet=("Alice", "Bob", "Charlie", "Diana", "Eve"))
        ShiftScheduler(dm).generate_schedule(YEAR, MONTH, "OUTLET")
        results.append(dm.schedule)
    assert results[0] == results[1]


def test_seeded_random_generation_is_reproducible():
    results = []
    for _ in range(2):
        settings = SchedulerSettings(tie_break="random", random_seed=42)
        dm = make_manager(outlet=("Alice", "Bob", "Charlie", "Diana", "Eve"), settings=settings)
        scheduler = ShiftScheduler(dm)
        assert isinstance(scheduler.tie_breaker, RandomTieBreaker)
        scheduler.generate_schedule(YEAR, MONTH, "OUTLET")
        results.append(dm.schedule)
    assert results[0] == results[1]


def test_result_carries_statistics(data_manager, scheduler):
    result = scheduler.generate_schedule(YEAR, MONTH, "OUTLET")

    assert result.schedule is data_manager.schedule
    assert result.schedule.version > 0
    assert [s.id for s in result.statistics] == [s.id for s in data_manager.get_staff()]
    alice = result.statistics[0]
    assert alice.counts.total_work + alice.counts.off == 31


# Components
def test_daily_requirement_counts_manual_workers():
    table = ScheduleTable({
        date(2026, 1, 1): {
            "o0": ShiftAssignment(OPEN, manual=True),
            "o1": ShiftAssignment(LEAVE, manual=True),
            "o2": ShiftAssignment(OFF, manual=True),
            "o3": ShiftAssignment(CLOSE),  # automatic entries never count
        }
    })
    target = [Staff(f"o{i}", f"S{i}", "OUTLET") for i in range(4)]

    requirement = calculate_daily_requirement(table, target, [], date(2026, 1, 1), True)

    assert requirement == DailyRequirement(manual_workers=2, open_covered=True, close_covered=False)
    assert requirement.minimum == 3


def test_daily_requirement_dual_only_for_supported():
    table = ScheduleTable({date(2026, 1, 1): {"b0": ShiftAssignment(DUAL_CLOSE, manual=True)}})
    target = [Staff("o0", "Alice", "OUTLET")]
    others = [Staff("b0", "Erin", "BUWON")]

    assert calculate_daily_requirement(table, target, others, date(2026, 1, 1), True).minimum == 1
    assert calculate_daily_requirement(table, target, others, date(2026, 1, 1), False).minimum == 2


def test_planner_spreads_rest_under_floor():
    target = [Staff(f"o{i}", f"S{i}", "OUTLET") for i in range(4)]
    week = JAN[:7]
    requirements = [DailyRequirement(0, False, False)] * 7

    plan = DayOffPlanner(StableTieBreaker(), 2).plan(target, week, ScheduleTable(), requirements)

    assert plan.rest_days == {"o0": [0, 1], "o1": [0, 1], "o2": [2, 3], "o3": [2, 3]}
    assert all(v == 0 for v in plan.shortfall.values())
    assert plan.resting_on(0) == {"o0", "o1"}


def test_planner_prefers_day_after_close():
    target = [Staff(f"o{i}", f"S{i}", "OUTLET") for i in range(4)]
    table = ScheduleTable({date(2026, 1, 3): {"o0": ShiftAssignment(CLOSE)}})
    requirements = [DailyRequirement(0, False, False)] * 7

    plan = DayOffPlanner(StableTieBreaker(), 2).plan(target, JAN[:7], table, requirements)

    assert plan.rest_days["o0"] == [0, 3]


def test_balance_tracker_seeds_dual_and_weekend():
    staff = [Staff("b0", "Erin", "BUWON")]
    table = ScheduleTable({
        date(2026, 1, 3): {"b0": ShiftAssignment(DUAL_OPEN, manual=True)},  # Saturday
        date(2026, 1, 5): {"b0": ShiftAssignment(CLOSE)},
        date(2026, 1, 6): {"b0": ShiftAssignment(OFF)},
    })

    tracker = BalanceTracker.seeded(table, staff, JAN, HolidayCalendar())
    counters = tracker.get("b0")

    assert (counters.open_count, counters.middle_count, counters.close_count) == (1, 0, 1)
    assert counters.weekend_count == 1


def test_assigner_counts_weekend_work_only_for_new_workers():
    target = [Staff(f"o{i}", f"S{i}", "OUTLET") for i in range(5)]
    tracker = BalanceTracker(s.id for s in target)
    saturday = date(2026, 1, 3)
    table = ScheduleTable({saturday: {"o3": ShiftAssignment(OPEN, manual=True)}})
    draft = table.edit()

    assigner = ShiftAssigner(tracker, HolidayCalendar())
    unfilled = assigner.assign_day(draft, saturday, "OUTLET", target, [], {"o4"}, True)

    assert unfilled == []
    assert draft.get(saturday, "o0").kind == CLOSE
    assert draft.get(saturday, "o4").kind == OFF
    assert [tracker.get(s.id).weekend_count for s in target] == [1, 1, 1, 0, 0]
    # The manual opener is never recorded by the day's pass
    assert tracker.get("o3").open_count == 0


def test_assigner_counts_holiday_work():
    target = [Staff(f"o{i}", f"S{i}", "OUTLET") for i in range(3)]
    tracker = BalanceTracker(s.id for s in target)
    assigner = ShiftAssigner(tracker, HolidayCalendar({"2026-01-06": "Epiphany"}))
    draft = ScheduleTable().edit()

    assigner.assign_day(draft, date(2026, 1, 5), "OUTLET", target, [], set(), True)  # plain Monday
    assert all(tracker.get(s.id).weekend_count == 0 for s in target)

    assigner.assign_day(draft, date(2026, 1, 6), "OUTLET", target, [], set(), True)
    kinds = sorted(draft.get(date(2026, 1, 6), s.id).kind.id for s in target)
    assert kinds == ["CLOSE", "MIDDLE", "OPEN"]
    assert all(tracker.get(s.id).weekend_count == 1 for s in target)


@pytest.mark.parametrize("seed", [1, 7, 42, 2026])
def test_floor_holds_with_manual_pins_and_random_ties(seed):
    settings = SchedulerSettings(tie_break="random", random_seed=seed)
    dm = make_manager(outlet=("Alice", "Bob", "Charlie", "Diana"), buwon=("Erin", "Frank"),
                      settings=settings)
    dm.set_manual_assignment(date(2026, 1, 8), "o0", "LEAVE")
    dm.set_manual_assignment(date(2026, 1, 9), "o1", "OFF")
    dm.set_manual_assignment(date(2026, 1, 9), "b0", "DUAL_CLOSE")
    dm.set_manual_assignment(date(2026, 1, 13), "o2", "OPEN")

    result = ShiftScheduler(dm).generate_schedule(YEAR, MONTH, "OUTLET")

    assert result.unfilled == []
    target = dm.get_staff("OUTLET")
    others = dm.get_staff("BUWON")
    for day in dm.get_window_dates(YEAR, MONTH):
        requirement = calculate_daily_requirement(dm.schedule, target, others, day, True)
        active = [s for s in target if not dm.schedule.get(day, s.id).kind.is_rest]
        assert len(active) >= requirement.minimum

    assert dm.schedule.get(date(2026, 1, 8), "o0") == ShiftAssignment(LEAVE, manual=True)
    assert CLOSE not in kinds_on(dm, date(2026, 1, 9), "OUTLET").values()
    assert list(kinds_on(dm, date(2026, 1, 13), "OUTLET").values()).count(OPEN) == 1
