"""Tests for overlap grouping and column assignment."""

from __future__ import annotations

from physio_practice.domain.models import Appointment, AppointmentStatus
from physio_practice.services.layout import group_overlapping, layout_appointments
from tests.conftest import PRACTITIONER_ID, at


def _appt(start, end, title="Session", status=AppointmentStatus.SCHEDULED) -> Appointment:
    return Appointment(
        practitioner_id=PRACTITIONER_ID,
        patient_id="patient",
        title=title,
        start_time=start,
        end_time=end,
        status=status,
    )


def test_empty_input_gives_empty_layout():
    assert layout_appointments([]) == {}
    assert group_overlapping([]) == []


def test_single_appointment_takes_full_width():
    only = _appt(at(9), at(10))
    placement = layout_appointments([only])[only.id]
    assert placement.column_index == 0
    assert placement.total_columns == 1
    assert placement.left == 0
    assert placement.width == 1


def test_chained_overlaps_share_a_group():
    """09–10, 09:30–10:30 and 10:15–11 chain together; 12–13 stands alone."""
    first = _appt(at(9), at(10))
    second = _appt(at(9, 30), at(10, 30))
    third = _appt(at(10, 15), at(11))
    lunch = _appt(at(12), at(13))

    layout = layout_appointments([lunch, third, first, second])

    assert [layout[a.id].column_index for a in (first, second, third)] == [0, 1, 2]
    assert {layout[a.id].total_columns for a in (first, second, third)} == {3}
    assert layout[lunch.id].column_index == 0
    assert layout[lunch.id].total_columns == 1


def test_touching_appointments_are_separate_groups():
    morning = _appt(at(9), at(10))
    next_slot = _appt(at(10), at(11))

    groups = group_overlapping([morning, next_slot])

    assert [[a.id for a in g] for g in groups] == [[morning.id], [next_slot.id]]


def test_cancelled_and_no_show_are_not_laid_out():
    kept = _appt(at(9), at(10))
    cancelled = _appt(at(9), at(10), status=AppointmentStatus.CANCELLED)
    no_show = _appt(at(9, 30), at(10), status=AppointmentStatus.NO_SHOW)

    layout = layout_appointments([kept, cancelled, no_show])

    assert set(layout) == {kept.id}
    assert layout[kept.id].total_columns == 1


def test_equal_starts_keep_input_order():
    a = _appt(at(9), at(10), title="a")
    b = _appt(at(9), at(9, 30), title="b")

    layout = layout_appointments([a, b])

    assert layout[a.id].column_index == 0
    assert layout[b.id].column_index == 1


def test_columns_are_not_reused_within_a_group():
    """A long appointment spans two short ones that don't touch each other."""
    long = _appt(at(9), at(12))
    early = _appt(at(9), at(10))
    late = _appt(at(11), at(12))

    layout = layout_appointments([long, early, late])

    assert layout[late.id].column_index == 2
    assert layout[late.id].total_columns == 3
    assert layout[late.id].left == 2 / 3


def test_overlapping_members_get_distinct_columns():
    appointments = [
        _appt(at(9), at(11)),
        _appt(at(9, 15), at(9, 45)),
        _appt(at(10), at(10, 30)),
        _appt(at(10, 45), at(12)),
        _appt(at(14), at(15)),
    ]
    layout = layout_appointments(appointments)

    for group in group_overlapping(appointments):
        columns = [layout[a.id].column_index for a in group]
        assert sorted(columns) == list(range(len(group)))
        assert all(layout[a.id].total_columns == len(group) for a in group)
