"""
Settings for the Cinema Shift Scheduling System

Holds the tunable rules of the generator (rest quota, roster floor, weekend
days, cinema week start, supported location, tie-breaking) together with the
holiday table, and loads them from a JSON file.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TIE_BREAK_STABLE = "stable"
TIE_BREAK_RANDOM = "random"


@dataclass
class SchedulerSettings:
    """Generator rules and calendar configuration"""
    rest_days_per_week: int = 2
    min_roster_size: int = 2
    weekend_days: Tuple[int, ...] = (5, 6)  # date.weekday(): Saturday, Sunday
    week_start_weekday: Optional[int] = 3  # Thursday; None starts the window on the 1st
    supported_cinema_id: str = "OUTLET"
    min_daily_staff: int = 2
    tie_break: str = TIE_BREAK_STABLE
    random_seed: Optional[int] = None
    holidays: Dict[str, str] = field(default_factory=dict)  # {"2026-01-01": "New Year"}

    def __post_init__(self):
        self.weekend_days = tuple(self.weekend_days)
        self.validate()

    def validate(self):
        """Raise ConfigurationError if any value is out of range"""
        if self.rest_days_per_week < 0 or self.rest_days_per_week > 7:
            raise ConfigurationError(f"restDaysPerWeek must be within 0..7, got {self.rest_days_per_week}")
        if self.min_roster_size < 1:
            raise ConfigurationError(f"minRosterSize must be at least 1, got {self.min_roster_size}")
        if self.min_daily_staff < 0:
            raise ConfigurationError(f"minDailyStaff must not be negative, got {self.min_daily_staff}")
        for weekday in self.weekend_days:
            if not 0 <= weekday <= 6:
                raise ConfigurationError(f"Invalid weekend weekday: {weekday}")
        if self.week_start_weekday is not None and not 0 <= self.week_start_weekday <= 6:
            raise ConfigurationError(f"Invalid weekStartWeekday: {self.week_start_weekday}")
        if self.tie_break not in (TIE_BREAK_STABLE, TIE_BREAK_RANDOM):
            raise ConfigurationError(f"Unknown tieBreak strategy: {self.tie_break}")
        if not self.supported_cinema_id:
            raise ConfigurationError("supportedCinemaId must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restDaysPerWeek": self.rest_days_per_week,
            "minRosterSize": self.min_roster_size,
            "weekendDays": list(self.weekend_days),
            "weekStartWeekday": self.week_start_weekday,
            "supportedCinemaId": self.supported_cinema_id,
            "minDailyStaff": self.min_daily_staff,
            "tieBreak": self.tie_break,
            "randomSeed": self.random_seed,
            "holidays": dict(self.holidays),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SchedulerSettings':
        defaults = cls()
        try:
            return cls(
                rest_days_per_week=int(data.get("restDaysPerWeek", defaults.rest_days_per_week)),
                min_roster_size=int(data.get("minRosterSize", defaults.min_roster_size)),
                weekend_days=tuple(int(d) for d in data.get("weekendDays", defaults.weekend_days)),
                week_start_weekday=data.get("weekStartWeekday", defaults.week_start_weekday),
                supported_cinema_id=data.get("supportedCinemaId", defaults.supported_cinema_id),
                min_daily_staff=int(data.get("minDailyStaff", defaults.min_daily_staff)),
                tie_break=data.get("tieBreak", defaults.tie_break),
                random_seed=data.get("randomSeed", defaults.random_seed),
                holidays={str(k): str(v) for k, v in data.get("holidays", {}).items()},
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Invalid settings data: {e}")


def load_settings(settings_file: Optional[str] = None) -> SchedulerSettings:
    """
    Load settings from a JSON file.

    A missing path or file gives the defaults; unreadable or malformed
    content raises ConfigurationError.
    """
    if settings_file is None:
        return SchedulerSettings()

    path = Path(settings_file)
    if not path.exists():
        logger.info(f"No settings file at {path}, using defaults")
        return SchedulerSettings()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise ConfigurationError(f"Failed to read settings file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a JSON object")

    settings = SchedulerSettings.from_dict(data)
    logger.info(f"Loaded settings from {path}")
    return settings
