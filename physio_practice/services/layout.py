"""Side-by-side placement of overlapping appointments in a calendar day."""

from __future__ import annotations

from physio_practice.domain.intervals import spans_overlap
from physio_practice.domain.models import Appointment, ColumnPlacement, is_active


def group_overlapping(appointments: list[Appointment]) -> list[list[Appointment]]:
    """Partition active appointments into chains of overlapping intervals.

    Appointments are visited by start time (ties keep input order). One joins
    the open group when it starts before the latest end seen in that group, so
    A–B and B–C overlapping puts A, B and C together even if A and C don't touch.
    """
    active = sorted(
        (a for a in appointments if is_active(a.status)),
        key=lambda a: a.start_time,
    )
    if not active:
        return []

    groups: list[list[Appointment]] = []
    current = [active[0]]
    group_start = active[0].start_time
    group_end = active[0].end_time

    for appointment in active[1:]:
        if spans_overlap(appointment.start_time, appointment.end_time, group_start, group_end):
            current.append(appointment)
            group_end = max(group_end, appointment.end_time)
        else:
            groups.append(current)
            current = [appointment]
            group_start = appointment.start_time
            group_end = appointment.end_time
    groups.append(current)

    return groups


def layout_appointments(appointments: list[Appointment]) -> dict[str, ColumnPlacement]:
    """Assign each visible appointment a column within its overlap group.

    Every member of a group gets its own column, in start-time order, and the
    group is as wide as it has members. A column freed early in a group is not
    reused. Cancelled and no-show appointments are left out of the mapping.
    """
    layout: dict[str, ColumnPlacement] = {}
    for group in group_overlapping(appointments):
        total_columns = len(group)
        for column_index, appointment in enumerate(group):
            layout[appointment.id] = ColumnPlacement(
                column_index=column_index, total_columns=total_columns
            )
    return layout
