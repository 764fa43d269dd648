"""
Statistics for the Cinema Shift Scheduling System

Read-side reductions over a schedule table: per-staff shift counts with the
dual-duty split, daily headcount per cinema, shortage alerts and days left
without an opener or closer.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List

from .calendar_utils import HolidayCalendar, format_date_key
from .models import Cinema, ScheduleTable, ShiftKind, ShiftRole, Staff

DUAL_ID_SUFFIX = "_DUAL"
DUAL_NAME_SUFFIX = " (dual)"


@dataclass
class ShiftCounts:
    open: int = 0
    middle: int = 0
    close: int = 0
    off: int = 0
    leave: int = 0
    weekend_work: int = 0

    @property
    def total_work(self) -> int:
        return self.open + self.middle + self.close

    def add_work(self, role: ShiftRole, weekend_or_holiday: bool):
        if role is ShiftRole.OPEN:
            self.open += 1
        elif role is ShiftRole.MIDDLE:
            self.middle += 1
        elif role is ShiftRole.CLOSE:
            self.close += 1
        if weekend_or_holiday:
            self.weekend_work += 1

    def to_dict(self) -> Dict[str, int]:
        return {
            "OPEN": self.open,
            "MIDDLE": self.middle,
            "CLOSE": self.close,
            "OFF": self.off,
            "LEAVE": self.leave,
            "weekendWork": self.weekend_work,
        }


@dataclass
class StaffStats:
    """Counts for one staff member, or the synthetic dual-duty record of one"""
    id: str
    name: str
    position: str
    cinema_id: str
    counts: ShiftCounts = field(default_factory=ShiftCounts)
    is_dual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "cinema": self.cinema_id,
            "counts": self.counts.to_dict(),
            "isDual": self.is_dual,
        }


@dataclass(frozen=True)
class ShortageAlert:
    date: date
    cinema_id: str
    cinema_name: str
    count: int
    day_name: str


@dataclass(frozen=True)
class UnfilledRequirement:
    """An open or close need that no staff member covers on a day"""
    date: date
    cinema_id: str
    role: ShiftRole

    def __str__(self) -> str:
        return f"{format_date_key(self.date)} {self.cinema_id} {self.role.value}"


def credited_cinema(staff: Staff, kind: ShiftKind, supported_cinema_id: str) -> str:
    """Cinema whose staffing a shift counts toward"""
    if kind.is_dual and staff.cinema_id != supported_cinema_id:
        return supported_cinema_id
    return staff.cinema_id


def calculate_staff_stats(table: ScheduleTable, roster: Iterable[Staff], days: Iterable[date],
                          holiday_calendar: HolidayCalendar,
                          supported_cinema_id: str) -> List[StaffStats]:
    """
    Tally every staff member's shifts over the given days.

    Dual-duty shifts worked by staff whose home is not the supported cinema
    go to a separate record attributed to the supported cinema, emitted
    right after the home record and only when at least one exists. Custom
    kinds are not tallied.
    """
    days = list(days)
    results = []

    for staff in roster:
        home = StaffStats(staff.id, staff.name, staff.position, staff.cinema_id)
        dual = StaffStats(
            f"{staff.id}{DUAL_ID_SUFFIX}",
            f"{staff.name}{DUAL_NAME_SUFFIX}",
            staff.position,
            supported_cinema_id,
            is_dual=True
        )
        has_dual_work = False

        for day in days:
            assignment = table.get(day, staff.id)
            if assignment is None:
                continue
            kind = assignment.kind

            if kind.is_working:
                weekend = holiday_calendar.is_weekend_or_holiday(day)
                if credited_cinema(staff, kind, supported_cinema_id) != staff.cinema_id:
                    dual.counts.add_work(kind.role, weekend)
                    has_dual_work = True
                else:
                    home.counts.add_work(kind.role, weekend)
            elif kind.is_rest:
                home.counts.off += 1
            elif kind.is_leave:
                home.counts.leave += 1

        results.append(home)
        if has_dual_work:
            results.append(dual)

    return results


def daily_headcount(table: ScheduleTable, roster: Iterable[Staff], day: date,
                    cinema_id: str, supported_cinema_id: str) -> int:
    """Number of staff on shift that day whose work is credited to the cinema"""
    count = 0
    for staff in roster:
        assignment = table.get(day, staff.id)
        if assignment is None or assignment.kind.is_rest or assignment.kind.is_leave:
            continue
        if credited_cinema(staff, assignment.kind, supported_cinema_id) == cinema_id:
            count += 1
    return count


def _is_scheduled(table: ScheduleTable, roster: List[Staff], day: date, cinema_id: str) -> bool:
    return any(table.get(day, s.id) is not None for s in roster if s.cinema_id == cinema_id)


def detect_shortages(table: ScheduleTable, roster: Iterable[Staff], cinemas: Iterable[Cinema],
                     days: Iterable[date], supported_cinema_id: str,
                     min_daily_staff: int) -> List[ShortageAlert]:
    """Alert for each scheduled day on which a cinema has fewer than min_daily_staff on shift"""
    roster = list(roster)
    cinemas = list(cinemas)
    alerts = []

    for day in days:
        for cinema in cinemas:
            if not _is_scheduled(table, roster, day, cinema.id):
                continue
            count = daily_headcount(table, roster, day, cinema.id, supported_cinema_id)
            if count < min_daily_staff:
                alerts.append(ShortageAlert(day, cinema.id, cinema.name, count, day.strftime("%A")))

    return alerts


def find_unfilled_roles(table: ScheduleTable, roster: Iterable[Staff], days: Iterable[date],
                        cinema_id: str, supported_cinema_id: str) -> List[UnfilledRequirement]:
    """Days on which nobody credited to the cinema opens or closes"""
    roster = list(roster)
    unfilled = []

    for day in days:
        if not _is_scheduled(table, roster, day, cinema_id):
            continue

        covered = set()
        for staff in roster:
            assignment = table.get(day, staff.id)
            if assignment is None or not assignment.kind.is_working:
                continue
            if credited_cinema(staff, assignment.kind, supported_cinema_id) == cinema_id:
                covered.add(assignment.kind.role)

        for role in (ShiftRole.OPEN, ShiftRole.CLOSE):
            if role not in covered:
                unfilled.append(UnfilledRequirement(day, cinema_id, role))

    return unfilled


def summarize(stats: Iterable[StaffStats]) -> Dict[str, Any]:
    """Totals across a list of stats records, grouped by cinema"""
    summary: Dict[str, Dict[str, int]] = {}
    for record in stats:
        totals = summary.setdefault(record.cinema_id, {"records": 0, "work": 0, "weekendWork": 0, "off": 0})
        totals["records"] += 1
        totals["work"] += record.counts.total_work
        totals["weekendWork"] += record.counts.weekend_work
        totals["off"] += record.counts.off
    return summary
