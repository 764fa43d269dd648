"""
Data model for the Cinema Shift Scheduling System

Cinemas, staff, shift kinds and the shift catalog, and the copy-on-write
schedule table that maps (date, staff) to a single assignment.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional
import uuid

from .calendar_utils import format_date_key, parse_date_key


class ShiftRole(Enum):
    OPEN = "OPEN"
    MIDDLE = "MIDDLE"
    CLOSE = "CLOSE"
    OFF = "OFF"
    LEAVE = "LEAVE"


WORKING_ROLES = (ShiftRole.OPEN, ShiftRole.MIDDLE, ShiftRole.CLOSE)
DUAL_PREFIX = "DUAL_"
CUSTOM_PREFIX = "CUSTOM_"


@dataclass(frozen=True)
class ShiftKind:
    """
    What a staff member does on a day.

    Exactly one of three shapes: a plain role, a dual-duty role (one of
    OPEN/MIDDLE/CLOSE worked for the supported cinema), or a custom kind
    that only references a catalog entry.
    """
    role: Optional[ShiftRole] = None
    is_dual: bool = False
    custom_id: Optional[str] = None

    def __post_init__(self):
        if (self.role is None) == (self.custom_id is None):
            raise ValueError("ShiftKind needs exactly one of role or custom_id")
        if self.is_dual and self.role not in WORKING_ROLES:
            raise ValueError(f"Dual duty is only defined for working roles, not {self.role}")

    @classmethod
    def of(cls, role: ShiftRole) -> 'ShiftKind':
        return cls(role=role)

    @classmethod
    def dual(cls, role: ShiftRole) -> 'ShiftKind':
        return cls(role=role, is_dual=True)

    @classmethod
    def custom(cls, custom_id: str) -> 'ShiftKind':
        return cls(custom_id=custom_id)

    @classmethod
    def from_id(cls, kind_id: str) -> 'ShiftKind':
        """Parse the string form used by the catalog and serialised tables"""
        if kind_id.startswith(DUAL_PREFIX):
            return cls.dual(ShiftRole(kind_id[len(DUAL_PREFIX):]))
        try:
            return cls.of(ShiftRole(kind_id))
        except ValueError:
            return cls.custom(kind_id)

    @property
    def id(self) -> str:
        if self.custom_id is not None:
            return self.custom_id
        return f"{DUAL_PREFIX}{self.role.value}" if self.is_dual else self.role.value

    @property
    def is_custom(self) -> bool:
        return self.custom_id is not None

    @property
    def is_working(self) -> bool:
        return self.role in WORKING_ROLES

    @property
    def is_rest(self) -> bool:
        return self.role is ShiftRole.OFF

    @property
    def is_leave(self) -> bool:
        return self.role is ShiftRole.LEAVE

    def is_plain(self, role: ShiftRole) -> bool:
        return self.role is role and not self.is_dual

    def is_dual_of(self, role: ShiftRole) -> bool:
        return self.role is role and self.is_dual

    def __str__(self) -> str:
        return self.id


OPEN = ShiftKind.of(ShiftRole.OPEN)
MIDDLE = ShiftKind.of(ShiftRole.MIDDLE)
CLOSE = ShiftKind.of(ShiftRole.CLOSE)
OFF = ShiftKind.of(ShiftRole.OFF)
LEAVE = ShiftKind.of(ShiftRole.LEAVE)
DUAL_OPEN = ShiftKind.dual(ShiftRole.OPEN)
DUAL_MIDDLE = ShiftKind.dual(ShiftRole.MIDDLE)
DUAL_CLOSE = ShiftKind.dual(ShiftRole.CLOSE)


@dataclass(frozen=True)
class ShiftAssignment:
    """A single (date, staff) record; manual records are never touched by generation"""
    kind: ShiftKind
    manual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.kind.id, "isManual": self.manual}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShiftAssignment':
        return cls(kind=ShiftKind.from_id(data["value"]), manual=bool(data.get("isManual", False)))


@dataclass
class Cinema:
    """A location; the id is fixed, the display name may be edited"""
    id: str
    name: str
    color: str = "#64748B"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Cinema':
        return cls(id=data["id"], name=data.get("name", data["id"]), color=data.get("color", "#64748B"))


@dataclass(frozen=True)
class Staff:
    """Staff member with a home cinema"""
    id: str
    name: str
    cinema_id: str
    position: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "cinema": self.cinema_id, "position": self.position}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Staff':
        return cls(
            id=str(data["id"]),
            name=data["name"],
            cinema_id=data["cinema"],
            position=data.get("position", "")
        )


DEFAULT_CINEMAS = [
    Cinema("BUWON", "Buwon", "#4F46E5"),
    Cinema("OUTLET", "Outlet", "#F97316"),
]


# Shift Catalog
@dataclass(frozen=True)
class ShiftCatalogEntry:
    id: str
    label: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "color": self.color}


BUILTIN_SHIFTS = [
    ShiftCatalogEntry(OPEN.id, "Open", "#DBEAFE"),
    ShiftCatalogEntry(MIDDLE.id, "Middle", "#DCFCE7"),
    ShiftCatalogEntry(CLOSE.id, "Close", "#EDE9FE"),
    ShiftCatalogEntry(OFF.id, "Off", "#F1F5F9"),
    ShiftCatalogEntry(LEAVE.id, "Leave", "#FFEDD5"),
    ShiftCatalogEntry(DUAL_OPEN.id, "Dual Open", "#BFDBFE"),
    ShiftCatalogEntry(DUAL_MIDDLE.id, "Dual Middle", "#BBF7D0"),
    ShiftCatalogEntry(DUAL_CLOSE.id, "Dual Close", "#DDD6FE"),
]

CUSTOM_COLORS = [
    "#FCE7F3",  # pink
    "#CFFAFE",  # cyan
    "#ECFCCB",  # lime
    "#FAE8FF",  # fuchsia
    "#FEF9C3",  # yellow
    "#FFE4E6",  # rose
    "#CCFBF1",  # teal
    "#E0E7FF",  # indigo
    "#EDE9FE",  # violet
    "#E0F2FE",  # sky
]


class ShiftCatalog:
    """Display metadata for every selectable shift kind"""

    def __init__(self, custom_entries: Optional[List[ShiftCatalogEntry]] = None):
        self._entries: Dict[str, ShiftCatalogEntry] = {entry.id: entry for entry in BUILTIN_SHIFTS}
        for entry in custom_entries or []:
            self._entries[entry.id] = entry

    def __contains__(self, kind_id: str) -> bool:
        return kind_id in self._entries

    def __iter__(self) -> Iterator[ShiftCatalogEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, kind_id: str) -> Optional[ShiftCatalogEntry]:
        return self._entries.get(kind_id)

    def custom_entries(self) -> List[ShiftCatalogEntry]:
        builtin_ids = {entry.id for entry in BUILTIN_SHIFTS}
        return [entry for entry in self._entries.values() if entry.id not in builtin_ids]

    def add_custom(self, label: str) -> ShiftCatalogEntry:
        """Append a user-defined kind; colours cycle through the fixed palette"""
        label = (label or "").strip()
        if not label:
            raise ValueError("Custom shift label must not be empty")

        kind_id = CUSTOM_PREFIX + uuid.uuid4().hex[:9].upper()
        color = CUSTOM_COLORS[len(self.custom_entries()) % len(CUSTOM_COLORS)]
        entry = ShiftCatalogEntry(kind_id, label, color)
        self._entries[kind_id] = entry
        return entry

    def resolve(self, kind_id: str) -> ShiftKind:
        if kind_id not in self._entries:
            raise ValueError(f"Unknown shift kind: {kind_id}")
        return ShiftKind.from_id(kind_id)

    def label(self, kind: ShiftKind) -> str:
        entry = self._entries.get(kind.id)
        return entry.label if entry else kind.id

    def color(self, kind: ShiftKind) -> Optional[str]:
        entry = self._entries.get(kind.id)
        return entry.color if entry else None


# Schedule Table
_EMPTY_DAY: Mapping[str, ShiftAssignment] = MappingProxyType({})


class ScheduleTable:
    """
    Read-only mapping of date -> staff id -> ShiftAssignment.

    A table is never modified after construction. Changes are made on a
    ScheduleDraft obtained from edit(); committing it yields a new table
    with a higher version that shares every untouched day with this one.
    """

    def __init__(self, days: Optional[Mapping[date, Mapping[str, ShiftAssignment]]] = None,
                 version: int = 0):
        self._days: Dict[date, Dict[str, ShiftAssignment]] = {
            day: dict(entries) for day, entries in (days or {}).items() if entries
        }
        self.version = version

    @classmethod
    def _shared(cls, days: Dict[date, Dict[str, ShiftAssignment]], version: int) -> 'ScheduleTable':
        table = cls.__new__(cls)
        table._days = days
        table.version = version
        return table

    def __contains__(self, day: date) -> bool:
        return day in self._days

    def __iter__(self) -> Iterator[date]:
        return iter(sorted(self._days))

    def __len__(self) -> int:
        return len(self._days)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ScheduleTable):
            return NotImplemented
        return self._days == other._days

    __hash__ = None

    def __repr__(self) -> str:
        return f"ScheduleTable(days={len(self._days)}, version={self.version})"

    def day(self, day: date) -> Mapping[str, ShiftAssignment]:
        entries = self._days.get(day)
        return MappingProxyType(entries) if entries else _EMPTY_DAY

    def get(self, day: date, staff_id: str) -> Optional[ShiftAssignment]:
        entries = self._days.get(day)
        return entries.get(staff_id) if entries else None

    def shares_day_with(self, other: 'ScheduleTable', day: date) -> bool:
        """True when both versions hold the very same inner mapping for a day"""
        return day in self._days and self._days[day] is other._days.get(day)

    def edit(self) -> 'ScheduleDraft':
        return ScheduleDraft(self)

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        return {
            format_date_key(day): {staff_id: a.to_dict() for staff_id, a in self._days[day].items()}
            for day in sorted(self._days)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Dict[str, Any]]]) -> 'ScheduleTable':
        return cls({
            parse_date_key(date_str): {
                staff_id: ShiftAssignment.from_dict(shift_data)
                for staff_id, shift_data in day_data.items()
            }
            for date_str, day_data in data.items()
        })


class ScheduleDraft:
    """Working copy of a ScheduleTable; a day is copied on its first write"""

    def __init__(self, base: ScheduleTable):
        self._base = base
        self._days: Dict[date, Dict[str, ShiftAssignment]] = dict(base._days)
        self._owned = set()
        self._changed = False

    def get(self, day: date, staff_id: str) -> Optional[ShiftAssignment]:
        entries = self._days.get(day)
        return entries.get(staff_id) if entries else None

    def day(self, day: date) -> Mapping[str, ShiftAssignment]:
        entries = self._days.get(day)
        return MappingProxyType(entries) if entries else _EMPTY_DAY

    def _writable_day(self, day: date) -> Dict[str, ShiftAssignment]:
        if day not in self._owned:
            self._days[day] = dict(self._days.get(day, {}))
            self._owned.add(day)
        return self._days[day]

    def set(self, day: date, staff_id: str, assignment: ShiftAssignment):
        if self.get(day, staff_id) == assignment:
            return
        self._writable_day(day)[staff_id] = assignment
        self._changed = True

    def remove(self, day: date, staff_id: str) -> Optional[ShiftAssignment]:
        if self.get(day, staff_id) is None:
            return None
        removed = self._writable_day(day).pop(staff_id)
        self._changed = True
        return removed

    def commit(self) -> ScheduleTable:
        """Return the new table, or the base table when nothing changed"""
        if not self._changed:
            return self._base
        days = {day: entries for day, entries in self._days.items() if entries}
        table = ScheduleTable._shared(days, self._base.version + 1)
        # Later writes on this draft must not leak into the committed table
        self._base = table
        self._days = dict(days)
        self._owned = set()
        self._changed = False
        return table
