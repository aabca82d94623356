import pytest
from pydantic import ValidationError

from loom_scheduler.services.rules import (
    ActivitySlot,
    PickupSlot,
    RatioBracket,
    RatioTable,
    load_default_ratio_table,
    parse_time_slots,
    slots_require_vehicle,
)


def _table() -> RatioTable:
    return RatioTable(
        brackets=[
            RatioBracket(min_participants=1, max_participants=4, required_staff=1),
            RatioBracket(min_participants=5, max_participants=8, required_staff=2),
            RatioBracket(min_participants=9, max_participants=12, required_staff=3),
        ]
    )


def test_fractional_count_uses_containing_bracket() -> None:
    assert _table().required_staff(6.5) == 2


def test_count_between_brackets_uses_next_bracket() -> None:
    assert _table().required_staff(4.5) == 2


def test_count_beyond_top_bracket_extrapolates() -> None:
    assert _table().required_staff(13) == 4
    assert _table().required_staff(16) == 4
    assert _table().required_staff(16.5) == 5


def test_no_participants_need_no_staff() -> None:
    assert _table().required_staff(0) == 0


def test_brackets_are_sorted_on_load() -> None:
    table = RatioTable(
        brackets=[
            RatioBracket(min_participants=5, max_participants=8, required_staff=2),
            RatioBracket(min_participants=1, max_participants=4, required_staff=1),
        ]
    )
    assert [bracket.min_participants for bracket in table.brackets] == [1, 5]


def test_overlapping_brackets_are_rejected() -> None:
    with pytest.raises(ValidationError):
        RatioTable(
            brackets=[
                RatioBracket(min_participants=1, max_participants=5, required_staff=1),
                RatioBracket(min_participants=4, max_participants=8, required_staff=2),
            ]
        )


def test_inverted_bracket_is_rejected() -> None:
    with pytest.raises(ValidationError):
        RatioBracket(min_participants=6, max_participants=2, required_staff=1)


def test_default_ratio_table_loads() -> None:
    table = load_default_ratio_table()
    assert table.brackets
    assert table.required_staff(1) == 1


def test_time_slots_parse_by_kind() -> None:
    slots = parse_time_slots(
        [
            {"kind": "pickup", "start": "09:00", "end": "09:45"},
            {"kind": "activity", "start": "10:00", "end": "13:00"},
        ]
    )
    assert isinstance(slots[0], PickupSlot)
    assert isinstance(slots[1], ActivitySlot)
    assert slots_require_vehicle(slots)


def test_activity_only_slots_do_not_need_vehicle() -> None:
    slots = parse_time_slots([{"kind": "activity", "start": "10:00", "end": "13:00"}])
    assert not slots_require_vehicle(slots)


def test_unknown_slot_kind_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_time_slots([{"kind": "lunch", "start": "12:00", "end": "13:00"}])


def test_slot_must_end_after_start() -> None:
    with pytest.raises(ValidationError):
        parse_time_slots([{"kind": "activity", "start": "13:00", "end": "12:00"}])
