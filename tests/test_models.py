"""
Tests for shift kinds, the shift catalog and the copy-on-write schedule table.
"""

import pytest
from datetime import date
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cinema_scheduler.models import (
    CLOSE, CUSTOM_COLORS, DUAL_MIDDLE, DUAL_OPEN, MIDDLE, OFF, OPEN,
    ScheduleTable, ShiftAssignment, ShiftCatalog, ShiftKind, ShiftRole, Staff,
)

DAY1 = date(2026, 1, 1)
DAY2 = date(2026, 1, 2)


@pytest.fixture
def table():
    return ScheduleTable({
        DAY1: {"a": ShiftAssignment(OPEN), "b": ShiftAssignment(CLOSE, manual=True)},
        DAY2: {"a": ShiftAssignment(OFF)},
    })


def test_shift_kind_ids():
    assert OPEN.id == "OPEN"
    assert DUAL_OPEN.id == "DUAL_OPEN"
    assert ShiftKind.from_id("DUAL_CLOSE") == ShiftKind.dual(ShiftRole.CLOSE)
    assert ShiftKind.from_id("MIDDLE") == MIDDLE
    assert ShiftKind.from_id("CUSTOM_ABC123XYZ").is_custom


def test_shift_kind_predicates():
    assert DUAL_MIDDLE.is_working and DUAL_MIDDLE.is_dual_of(ShiftRole.MIDDLE)
    assert not DUAL_MIDDLE.is_plain(ShiftRole.MIDDLE)
    assert OFF.is_rest and not OFF.is_working
    custom = ShiftKind.custom("CUSTOM_X")
    assert not custom.is_working and not custom.is_rest and not custom.is_leave


def test_shift_kind_rejects_invalid_shapes():
    with pytest.raises(ValueError):
        ShiftKind.dual(ShiftRole.OFF)
    with pytest.raises(ValueError):
        ShiftKind()
    with pytest.raises(ValueError):
        ShiftKind(role=ShiftRole.OPEN, custom_id="CUSTOM_X")


def test_assignment_serialisation():
    assignment = ShiftAssignment(DUAL_OPEN, manual=True)
    assert assignment.to_dict() == {"value": "DUAL_OPEN", "isManual": True}
    assert ShiftAssignment.from_dict({"value": "OPEN"}) == ShiftAssignment(OPEN)


def test_staff_from_dict_normalises_id():
    member = Staff.from_dict({"id": 7, "name": "Alice", "cinema": "OUTLET"})
    assert member.id == "7"
    assert member.position == ""
    assert member.to_dict()["cinema"] == "OUTLET"


def test_catalog_builtins_include_dual_variants():
    catalog = ShiftCatalog()
    assert len(catalog) == 8
    for kind_id in ("OPEN", "MIDDLE", "CLOSE", "OFF", "LEAVE", "DUAL_OPEN", "DUAL_MIDDLE", "DUAL_CLOSE"):
        assert kind_id in catalog
    assert catalog.label(DUAL_OPEN) == "Dual Open"


def test_catalog_custom_entries_cycle_colors():
    catalog = ShiftCatalog()
    entries = [catalog.add_custom(f"Training {i}") for i in range(11)]

    assert entries[0].id.startswith("CUSTOM_")
    suffix = entries[0].id[len("CUSTOM_"):]
    assert len(suffix) == 9
    assert suffix.isalnum() and suffix == suffix.upper()
    assert entries[0].color == CUSTOM_COLORS[0]
    assert entries[10].color == CUSTOM_COLORS[0]
    assert catalog.resolve(entries[3].id) == ShiftKind.custom(entries[3].id)
    assert len(catalog.custom_entries()) == 11


def test_catalog_rejects_blank_label_and_unknown_id():
    catalog = ShiftCatalog()
    with pytest.raises(ValueError):
        catalog.add_custom("   ")
    with pytest.raises(ValueError):
        catalog.resolve("CUSTOM_UNKNOWN")


def test_table_is_not_changed_by_draft(table):
    draft = table.edit()
    draft.set(DAY1, "a", ShiftAssignment(MIDDLE))
    draft.remove(DAY2, "a")

    assert table.get(DAY1, "a") == ShiftAssignment(OPEN)
    assert table.get(DAY2, "a") == ShiftAssignment(OFF)
    assert draft.get(DAY1, "a") == ShiftAssignment(MIDDLE)


def test_commit_shares_untouched_days(table):
    draft = table.edit()
    draft.set(DAY2, "b", ShiftAssignment(OPEN))
    new_table = draft.commit()

    assert new_table.version == table.version + 1
    assert new_table.shares_day_with(table, DAY1)
    assert not new_table.shares_day_with(table, DAY2)


def test_commit_without_changes_returns_base(table):
    draft = table.edit()
    draft.set(DAY1, "a", ShiftAssignment(OPEN))
    assert draft.remove(DAY1, "nobody") is None
    assert draft.commit() is table


def test_writes_after_commit_do_not_leak(table):
    draft = table.edit()
    draft.set(DAY1, "c", ShiftAssignment(OPEN))
    committed = draft.commit()
    draft.set(DAY1, "d", ShiftAssignment(CLOSE))

    assert committed.get(DAY1, "d") is None
    assert draft.commit().get(DAY1, "d") == ShiftAssignment(CLOSE)


def test_emptied_day_is_dropped(table):
    draft = table.edit()
    draft.remove(DAY2, "a")
    new_table = draft.commit()

    assert DAY2 not in new_table
    assert list(new_table) == [DAY1]


def test_table_dict_round_trip(table):
    data = table.to_dict()
    assert data["2026-01-01"]["b"] == {"value": "CLOSE", "isManual": True}
    assert ScheduleTable.from_dict(data) == table
