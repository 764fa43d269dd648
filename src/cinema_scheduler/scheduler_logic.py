"""
Scheduler Logic for the Cinema Shift Scheduling System

Greedy week-by-week generator: for each week the minimum staffing of every
day is derived from the manual entries, rest days are planned against that
floor, and each day is then filled with one opener, one closer and middles,
balancing open/close counts across the month.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set
import logging
import random
import time

from .calendar_utils import HolidayCalendar, chunk_weeks, format_date_key
from .data_manager import DataManager
from .exceptions import InsufficientStaffError
from .models import (
    CLOSE, MIDDLE, OFF, OPEN, ScheduleDraft, ScheduleTable, ShiftAssignment,
    ShiftKind, ShiftRole, Staff,
)
from .settings import TIE_BREAK_RANDOM, SchedulerSettings
from .statistics import StaffStats, UnfilledRequirement

logger = logging.getLogger(__name__)


# Tie-breaking
class StableTieBreaker:
    """Keeps candidates in the order given (chronological days, roster order)"""

    def order(self, items: Iterable) -> list:
        return list(items)


class RandomTieBreaker:
    """Shuffles candidates; a fixed seed makes runs reproducible"""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def order(self, items: Iterable) -> list:
        items = list(items)
        self._rng.shuffle(items)
        return items


def make_tie_breaker(settings: SchedulerSettings):
    if settings.tie_break == TIE_BREAK_RANDOM:
        return RandomTieBreaker(settings.random_seed)
    return StableTieBreaker()


# Balance Tracking
@dataclass
class BalanceCounters:
    open_count: int = 0
    middle_count: int = 0
    close_count: int = 0
    weekend_count: int = 0

    def add(self, role: ShiftRole, weekend_or_holiday: bool = False):
        if role is ShiftRole.OPEN:
            self.open_count += 1
        elif role is ShiftRole.MIDDLE:
            self.middle_count += 1
        elif role is ShiftRole.CLOSE:
            self.close_count += 1
        else:
            return
        if weekend_or_holiday:
            self.weekend_count += 1


class BalanceTracker:
    """Running open/middle/close/weekend counts per target staff member"""

    def __init__(self, staff_ids: Iterable[str]):
        self.counters: Dict[str, BalanceCounters] = {staff_id: BalanceCounters() for staff_id in staff_ids}

    @classmethod
    def seeded(cls, schedule, staff: Sequence[Staff], days: Iterable[date],
               holiday_calendar: HolidayCalendar) -> 'BalanceTracker':
        """
        Start from the assignments already present over the window.

        Dual-duty shifts count with their underlying role.
        """
        tracker = cls(s.id for s in staff)
        for day in days:
            weekend = holiday_calendar.is_weekend_or_holiday(day)
            for member in staff:
                assignment = schedule.get(day, member.id)
                if assignment is not None and assignment.kind.is_working:
                    tracker.counters[member.id].add(assignment.kind.role, weekend)
        return tracker

    def get(self, staff_id: str) -> BalanceCounters:
        return self.counters[staff_id]

    def record(self, staff_id: str, role: ShiftRole, weekend_or_holiday: bool = False):
        self.counters[staff_id].add(role, weekend_or_holiday)


# Minimum Staffing
@dataclass(frozen=True)
class DailyRequirement:
    """Workers a day needs before anyone may be given a rest day"""
    manual_workers: int
    open_covered: bool
    close_covered: bool

    @property
    def minimum(self) -> int:
        return self.manual_workers + (0 if self.open_covered else 1) + (0 if self.close_covered else 1)


def _covers_dual(schedule, other_staff: Iterable[Staff], day: date, role: ShiftRole) -> bool:
    for member in other_staff:
        assignment = schedule.get(day, member.id)
        if assignment is not None and assignment.manual and assignment.kind.is_dual_of(role):
            return True
    return False


def calculate_daily_requirement(schedule, target_staff: Iterable[Staff], other_staff: Iterable[Staff],
                                day: date, is_supported: bool) -> DailyRequirement:
    """
    Minimum staffing for one location on one day.

    Every target staff member pinned to anything but a rest day counts as a
    worker. One more is needed to open unless a manual plain OPEN exists, and
    one more to close unless a manual plain CLOSE exists. For the supported
    location, another location's manual dual open/close also covers the need.
    """
    manual_workers = 0
    open_covered = close_covered = False

    for member in target_staff:
        assignment = schedule.get(day, member.id)
        if assignment is None or not assignment.manual:
            continue
        if not assignment.kind.is_rest:
            manual_workers += 1
        if assignment.kind.is_plain(ShiftRole.OPEN):
            open_covered = True
        elif assignment.kind.is_plain(ShiftRole.CLOSE):
            close_covered = True

    if is_supported:
        other_staff = list(other_staff)
        open_covered = open_covered or _covers_dual(schedule, other_staff, day, ShiftRole.OPEN)
        close_covered = close_covered or _covers_dual(schedule, other_staff, day, ShiftRole.CLOSE)

    return DailyRequirement(manual_workers, open_covered, close_covered)


def closed_previous_day(schedule, staff_id: str, day: date) -> bool:
    assignment = schedule.get(day - timedelta(days=1), staff_id)
    return assignment is not None and assignment.kind.is_plain(ShiftRole.CLOSE)


# Day-off Planning
@dataclass
class DayOffPlan:
    """Rest days per staff member as week-local indices, plus unmet quota"""
    rest_days: Dict[str, List[int]] = field(default_factory=dict)
    shortfall: Dict[str, int] = field(default_factory=dict)

    def resting_on(self, index: int) -> Set[str]:
        return {staff_id for staff_id, indices in self.rest_days.items() if index in indices}


class DayOffPlanner:
    """Gives every staff member their weekly rest days without breaking the daily floor"""

    def __init__(self, tie_breaker=None, rest_days_per_week: int = 2):
        self.tie_breaker = tie_breaker or StableTieBreaker()
        self.rest_days_per_week = rest_days_per_week

    def plan(self, target_staff: Sequence[Staff], week: Sequence[date], schedule,
             requirements: Sequence[DailyRequirement]) -> DayOffPlan:
        """
        Plan the week's rest days.

        Args:
            target_staff: Home staff of the location, in roster order
            week: The week's dates (a trailing week may be shorter than 7)
            schedule: Table or draft holding the manual entries of the week
            requirements: Minimum staffing per day of the week

        Manual rest days count toward the quota. A further day is accepted
        only while that day keeps more active workers than it requires.
        """
        plan = DayOffPlan()
        active = [len(target_staff)] * len(week)
        busy: Dict[str, Set[int]] = {}

        for member in target_staff:
            rest, pinned = [], set()
            for index, day in enumerate(week):
                assignment = schedule.get(day, member.id)
                if assignment is None or not assignment.manual:
                    continue
                pinned.add(index)
                if assignment.kind.is_rest:
                    rest.append(index)
                    active[index] -= 1
            plan.rest_days[member.id] = rest
            busy[member.id] = pinned

        for member in target_staff:
            rest = plan.rest_days[member.id]
            needed = self.rest_days_per_week - len(rest)
            if needed <= 0:
                plan.shortfall[member.id] = 0
                continue

            candidates = self.tie_breaker.order(
                index for index in range(len(week)) if index not in busy[member.id]
            )
            # Resting right after a close comes first
            candidates.sort(key=lambda index: not closed_previous_day(schedule, member.id, week[index]))

            for index in candidates:
                if needed == 0:
                    break
                if active[index] > requirements[index].minimum:
                    rest.append(index)
                    active[index] -= 1
                    needed -= 1

            rest.sort()
            plan.shortfall[member.id] = needed

        return plan


# Shift Assignment
class ShiftAssigner:
    """Fills one day of one location with an opener, a closer and middles"""

    def __init__(self, tracker: BalanceTracker, holiday_calendar: HolidayCalendar):
        self.tracker = tracker
        self.holiday_calendar = holiday_calendar

    def _assign(self, draft: ScheduleDraft, day: date, member: Staff, kind: ShiftKind, weekend: bool):
        draft.set(day, member.id, ShiftAssignment(kind))
        self.tracker.record(member.id, kind.role, weekend)

    def assign_day(self, draft: ScheduleDraft, day: date, cinema_id: str,
                   target_staff: Sequence[Staff], other_staff: Sequence[Staff],
                   resting: Set[str], is_supported: bool) -> List[UnfilledRequirement]:
        """Write the day's automatic entries; returns the open/close needs nobody could take"""
        weekend = self.holiday_calendar.is_weekend_or_holiday(day)
        open_covered = close_covered = False
        pool: List[Staff] = []

        for member in target_staff:
            assignment = draft.get(day, member.id)
            if assignment is not None and assignment.manual:
                if assignment.kind.is_plain(ShiftRole.OPEN):
                    open_covered = True
                elif assignment.kind.is_plain(ShiftRole.CLOSE):
                    close_covered = True
                continue
            if member.id in resting:
                draft.set(day, member.id, ShiftAssignment(OFF))
                continue
            pool.append(member)

        if is_supported:
            open_covered = open_covered or _covers_dual(draft, other_staff, day, ShiftRole.OPEN)
            close_covered = close_covered or _covers_dual(draft, other_staff, day, ShiftRole.CLOSE)

        unfilled = []

        if not open_covered:
            if pool:
                fresh = [m for m in pool if not closed_previous_day(draft, m.id, day)]
                opener = min(fresh or pool, key=lambda m: self.tracker.get(m.id).open_count)
                self._assign(draft, day, opener, OPEN, weekend)
                pool.remove(opener)
            else:
                unfilled.append(UnfilledRequirement(day, cinema_id, ShiftRole.OPEN))

        if not close_covered:
            if pool:
                closer = min(pool, key=lambda m: (not closed_previous_day(draft, m.id, day),
                                                  self.tracker.get(m.id).close_count))
                self._assign(draft, day, closer, CLOSE, weekend)
                pool.remove(closer)
            else:
                unfilled.append(UnfilledRequirement(day, cinema_id, ShiftRole.CLOSE))

        for member in pool:
            self._assign(draft, day, member, MIDDLE, weekend)

        return unfilled


# Generation
@dataclass
class RestShortfall:
    staff_id: str
    week_start: date
    missing: int


@dataclass
class ScheduleResult:
    """Result of schedule generation"""
    success: bool
    schedule: ScheduleTable
    cinema_id: str
    week_index: Optional[int]
    unfilled: List[UnfilledRequirement]
    rest_shortfalls: List[RestShortfall]
    statistics: List[StaffStats]
    message: str


class ShiftScheduler:
    """Generates one location's automatic assignments for a month or a single week"""

    def __init__(self, data_manager: DataManager, tie_breaker=None):
        self.data_manager = data_manager
        self.settings = data_manager.settings
        self.tie_breaker = tie_breaker or make_tie_breaker(self.settings)

    def generate_schedule(self, year: int, month: int, cinema_id: str,
                          week_index: Optional[int] = None) -> ScheduleResult:
        """
        Generate automatic assignments for a location

        Args:
            year: Target year
            month: Target month (1-12)
            cinema_id: Location whose home staff are scheduled
            week_index: Only regenerate this week of the window; None for all weeks

        Manual entries and other locations' entries are never changed. The
        new table replaces the current one only once every day is filled.
        """
        start_time = time.time()
        dm = self.data_manager
        scope = "all weeks" if week_index is None else f"week {week_index}"
        logger.info(f"Starting schedule generation for {year}-{month:02d} {cinema_id} ({scope})")

        if dm.get_cinema(cinema_id) is None:
            raise ValueError(f"Unknown cinema: {cinema_id}")

        target_staff = dm.get_staff(cinema_id)
        if len(target_staff) < self.settings.min_roster_size:
            raise InsufficientStaffError(cinema_id, len(target_staff), self.settings.min_roster_size)

        window = dm.get_window_dates(year, month)
        weeks = chunk_weeks(window)
        if week_index is None:
            scoped_weeks = list(enumerate(weeks))
        elif 0 <= week_index < len(weeks):
            scoped_weeks = [(week_index, weeks[week_index])]
        else:
            raise ValueError(f"Week index {week_index} out of range (window has {len(weeks)} weeks)")

        other_staff = [s for s in dm.get_staff() if s.cinema_id != cinema_id]
        is_supported = cinema_id == self.settings.supported_cinema_id

        draft = dm.schedule.edit()
        self._discard_automatic(draft, target_staff, [day for _, week in scoped_weeks for day in week])

        tracker = BalanceTracker.seeded(draft, target_staff, window, dm.holiday_calendar)
        planner = DayOffPlanner(self.tie_breaker, self.settings.rest_days_per_week)
        assigner = ShiftAssigner(tracker, dm.holiday_calendar)

        unfilled: List[UnfilledRequirement] = []
        shortfalls: List[RestShortfall] = []

        for index, week in scoped_weeks:
            requirements = [
                calculate_daily_requirement(draft, target_staff, other_staff, day, is_supported)
                for day in week
            ]
            plan = planner.plan(target_staff, week, draft, requirements)

            for staff_id, missing in plan.shortfall.items():
                if missing > 0:
                    shortfalls.append(RestShortfall(staff_id, week[0], missing))

            for offset, day in enumerate(week):
                unfilled.extend(assigner.assign_day(
                    draft, day, cinema_id, target_staff, other_staff,
                    plan.resting_on(offset), is_supported
                ))
            logger.debug(f"Week {index} ({format_date_key(week[0])}) planned")

        table = draft.commit()
        dm.replace_schedule(table)

        for need in unfilled:
            logger.warning(f"Unfilled requirement: {need}")
        for shortfall in shortfalls:
            logger.info(f"Rest shortfall: {shortfall.staff_id} missing {shortfall.missing} "
                        f"day(s) in week of {format_date_key(shortfall.week_start)}")

        message = f"Schedule generated for {cinema_id} ({scope})"
        if unfilled:
            message += f" with {len(unfilled)} unfilled requirements"

        duration = time.time() - start_time
        logger.info(f"Generation completed in {duration:.2f}s, version {table.version}")

        return ScheduleResult(
            success=True,
            schedule=table,
            cinema_id=cinema_id,
            week_index=week_index,
            unfilled=unfilled,
            rest_shortfalls=shortfalls,
            statistics=dm.calculate_staff_stats(year, month),
            message=message
        )

    def _discard_automatic(self, draft: ScheduleDraft, target_staff: Sequence[Staff], days: Iterable[date]):
        for day in days:
            for member in target_staff:
                assignment = draft.get(day, member.id)
                if assignment is not None and not assignment.manual:
                    draft.remove(day, member.id)
