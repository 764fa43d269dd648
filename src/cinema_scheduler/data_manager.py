"""
Data Manager for the Cinema Shift Scheduling System

Owns the session state: cinemas, the staff roster, the shift catalog and the
current schedule table. Every change (manual edit, clear, generation) builds
a new table and swaps it in, so readers never observe a half-applied update.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .calendar_utils import (
    HolidayCalendar, chunk_weeks, cinema_month_range, format_date_key,
    parse_date_key, week_dates,
)
from .exceptions import ConfigurationError, RosterFileError
from .models import (
    DEFAULT_CINEMAS, Cinema, ScheduleTable, ShiftAssignment, ShiftCatalog,
    ShiftCatalogEntry, Staff,
)
from .settings import SchedulerSettings
from . import statistics

logger = logging.getLogger(__name__)


class DataManager:
    """Manages the roster, catalog and schedule table for one session"""

    def __init__(self, staff: Optional[Iterable[Staff]] = None,
                 cinemas: Optional[Iterable[Cinema]] = None,
                 settings: Optional[SchedulerSettings] = None,
                 catalog: Optional[ShiftCatalog] = None,
                 schedule: Optional[ScheduleTable] = None):
        self.settings = settings or SchedulerSettings()
        self.cinemas: List[Cinema] = [
            Cinema(c.id, c.name, c.color) for c in (cinemas if cinemas is not None else DEFAULT_CINEMAS)
        ]
        self.catalog = catalog or ShiftCatalog()
        self.holiday_calendar = HolidayCalendar(self.settings.holidays, self.settings.weekend_days)
        self._staff: List[Staff] = list(staff or [])
        self._schedule = schedule or ScheduleTable()

        cinema_ids = {c.id for c in self.cinemas}
        if self.settings.supported_cinema_id not in cinema_ids:
            raise ConfigurationError(
                f"Supported cinema {self.settings.supported_cinema_id} is not one of {sorted(cinema_ids)}"
            )
        for member in self._staff:
            if member.cinema_id not in cinema_ids:
                raise ConfigurationError(f"Staff {member.id} belongs to unknown cinema {member.cinema_id}")

    @classmethod
    def from_roster_file(cls, roster_file: str,
                         settings: Optional[SchedulerSettings] = None) -> 'DataManager':
        """
        Build a session from a roster JSON file.

        Expected layout::

            {"cinemas": [{"id", "name", "color"}],
             "staff": [{"id", "name", "cinema", "position"}],
             "customShifts": [{"id", "label", "color"}],
             "manual": [{"date", "staffId", "value"}]}

        Only "staff" is required.
        """
        path = Path(roster_file)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise RosterFileError(f"Failed to read roster file {path}: {e}")

        try:
            cinemas = [Cinema.from_dict(c) for c in data["cinemas"]] if "cinemas" in data else None
            staff = [Staff.from_dict(s) for s in data["staff"]]
            catalog = ShiftCatalog([
                ShiftCatalogEntry(e["id"], e["label"], e.get("color", "#E2E8F0"))
                for e in data.get("customShifts", [])
            ])
        except (KeyError, TypeError) as e:
            raise RosterFileError(f"Malformed roster file {path}: {e}")

        manager = cls(staff=staff, cinemas=cinemas, settings=settings, catalog=catalog)

        try:
            for entry in data.get("manual", []):
                manager.set_manual_assignment(parse_date_key(entry["date"]), str(entry["staffId"]), entry["value"])
        except (KeyError, ValueError) as e:
            raise RosterFileError(f"Invalid manual entry in {path}: {e}")

        logger.info(f"Loaded {len(staff)} staff from {path}")
        return manager

    # Schedule Table
    @property
    def schedule(self) -> ScheduleTable:
        """Current schedule table (read-only)"""
        return self._schedule

    def replace_schedule(self, table: ScheduleTable):
        """Swap in a new table as a single step"""
        if table is not self._schedule:
            logger.debug(f"Schedule table replaced: version {self._schedule.version} -> {table.version}")
        self._schedule = table

    # Roster and Cinemas
    def get_staff(self, cinema_id: Optional[str] = None) -> List[Staff]:
        """Staff in roster order, optionally limited to one home cinema"""
        if cinema_id is None:
            return list(self._staff)
        return [s for s in self._staff if s.cinema_id == cinema_id]

    def get_staff_by_id(self, staff_id: str) -> Optional[Staff]:
        for member in self._staff:
            if member.id == staff_id:
                return member
        return None

    def get_cinema(self, cinema_id: str) -> Optional[Cinema]:
        for cinema in self.cinemas:
            if cinema.id == cinema_id:
                return cinema
        return None

    def rename_cinema(self, cinema_id: str, name: str) -> bool:
        cinema = self.get_cinema(cinema_id)
        if cinema is None:
            return False
        cinema.name = name
        return True

    # Calendar Window
    def get_window_dates(self, year: int, month: int) -> List[date]:
        return cinema_month_range(year, month, self.settings.week_start_weekday)

    def get_weeks(self, year: int, month: int) -> List[List[date]]:
        return chunk_weeks(self.get_window_dates(year, month))

    def get_week_dates(self, year: int, month: int, week_index: int) -> List[date]:
        return week_dates(self.get_window_dates(year, month), week_index)

    # Manual Assignments and Catalog
    def set_manual_assignment(self, day: date, staff_id: str, kind_id: Optional[str]) -> bool:
        """Pin a shift for a staff member; an empty kind id changes nothing"""
        if not kind_id:
            return False
        if self.get_staff_by_id(staff_id) is None:
            raise ValueError(f"Unknown staff id: {staff_id}")
        kind = self.catalog.resolve(kind_id)

        draft = self._schedule.edit()
        draft.set(day, staff_id, ShiftAssignment(kind, manual=True))
        self.replace_schedule(draft.commit())
        return True

    def delete_assignment(self, day: date, staff_id: str) -> bool:
        """Remove whatever record exists for (day, staff); False when there was none"""
        draft = self._schedule.edit()
        removed = draft.remove(day, staff_id)
        if removed is None:
            return False
        self.replace_schedule(draft.commit())
        return True

    def add_custom_shift(self, label: str) -> ShiftCatalogEntry:
        entry = self.catalog.add_custom(label)
        logger.info(f"Added custom shift {entry.id} ({entry.label})")
        return entry

    # Clearing
    def clear_automatic_assignments(self, year: int, month: int) -> Dict[str, Any]:
        """Delete every generated record in the month window, all cinemas"""
        return self._clear(self.get_window_dates(year, month), manual=False)

    def clear_manual_assignments(self, year: int, month: int) -> Dict[str, Any]:
        """Delete every manual record in the month window, all cinemas"""
        return self._clear(self.get_window_dates(year, month), manual=True)

    def clear_weekly_automatic(self, year: int, month: int, week_index: int, cinema_id: str) -> Dict[str, Any]:
        """Delete generated records of one cinema's staff in one week"""
        return self._clear(self.get_week_dates(year, month, week_index), manual=False, cinema_id=cinema_id)

    def clear_weekly_manual(self, year: int, month: int, week_index: int, cinema_id: str) -> Dict[str, Any]:
        """Delete manual records of one cinema's staff in one week"""
        return self._clear(self.get_week_dates(year, month, week_index), manual=True, cinema_id=cinema_id)

    def _clear(self, days: List[date], manual: bool, cinema_id: Optional[str] = None) -> Dict[str, Any]:
        if cinema_id is None:
            owned: Callable[[str], bool] = lambda staff_id: True
        else:
            home_ids = {s.id for s in self.get_staff(cinema_id)}
            owned = lambda staff_id: staff_id in home_ids

        draft = self._schedule.edit()
        cleared_count = 0
        affected_dates = []

        for day in days:
            targets = [
                staff_id for staff_id, assignment in draft.day(day).items()
                if assignment.manual == manual and owned(staff_id)
            ]
            for staff_id in targets:
                draft.remove(day, staff_id)
            if targets:
                cleared_count += len(targets)
                affected_dates.append(format_date_key(day))

        self.replace_schedule(draft.commit())

        kind = "manual" if manual else "automatic"
        scope = f"cinema {cinema_id}" if cinema_id else "all cinemas"
        if cleared_count:
            message = f"Cleared {cleared_count} {kind} assignments for {scope}"
        else:
            message = f"No {kind} assignments to clear for {scope}"
        logger.info(message)

        return {
            "cleared_count": cleared_count,
            "affected_dates": affected_dates,
            "message": message
        }

    # Statistics and Reporting
    def calculate_staff_stats(self, year: int, month: int) -> List[statistics.StaffStats]:
        """Per-staff counts for the month window, with dual-duty records"""
        return statistics.calculate_staff_stats(
            self._schedule,
            self._staff,
            self.get_window_dates(year, month),
            self.holiday_calendar,
            self.settings.supported_cinema_id
        )

    def get_daily_headcount(self, day: date, cinema_id: str) -> int:
        return statistics.daily_headcount(
            self._schedule, self._staff, day, cinema_id, self.settings.supported_cinema_id
        )

    def detect_shortages(self, year: int, month: int) -> List[statistics.ShortageAlert]:
        return statistics.detect_shortages(
            self._schedule,
            self._staff,
            self.cinemas,
            self.get_window_dates(year, month),
            self.settings.supported_cinema_id,
            self.settings.min_daily_staff
        )

    def find_unfilled_roles(self, year: int, month: int,
                            cinema_id: str) -> List[statistics.UnfilledRequirement]:
        return statistics.find_unfilled_roles(
            self._schedule,
            self._staff,
            self.get_window_dates(year, month),
            cinema_id,
            self.settings.supported_cinema_id
        )

    def count_manual_assignments(self, year: int, month: int) -> int:
        return sum(
            1
            for day in self.get_window_dates(year, month)
            for assignment in self._schedule.day(day).values()
            if assignment.manual
        )
