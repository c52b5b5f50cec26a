"""Tests for the overlap predicate and the conflict-detection service."""

from datetime import datetime, timedelta, timezone

import pytest

from physio_practice.domain.errors import InputValidationError
from physio_practice.domain.intervals import overlaps
from physio_practice.domain.models import Appointment, AppointmentStatus
from physio_practice.services.conflicts import (
    describe_conflicts,
    detect_conflicts,
    find_conflicts,
)
from tests.conftest import OTHER_PRACTITIONER_ID, PRACTITIONER_ID, at


def _make_appointment(
    start: datetime, end: datetime, status: AppointmentStatus = AppointmentStatus.SCHEDULED
) -> Appointment:
    return Appointment(
        practitioner_id=PRACTITIONER_ID,
        patient_id="patient",
        title="Existing",
        start_time=start,
        end_time=end,
        status=status,
    )


# ---------------------------------------------------------------------------
# Overlap predicate
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ((9, 10), (10, 11), False),
        ((9, 10), (9, 10), True),
        ((9, 11), (10, 12), True),
        ((9, 12), (10, 11), True),
        ((8, 9), (10, 11), False),
    ],
)
def test_overlap_is_symmetric_and_half_open(a, b, expected):
    first = _make_appointment(at(a[0]), at(a[1]))
    second = _make_appointment(at(b[0]), at(b[1]))
    assert overlaps(first, second) is expected
    assert overlaps(second, first) is expected


# ---------------------------------------------------------------------------
# find_conflicts
# ---------------------------------------------------------------------------


def test_no_overlap():
    """Appointments that don't overlap should not be returned as conflicts."""
    existing = [_make_appointment(at(8), at(9))]
    assert find_conflicts(at(10), at(11), existing) == []


def test_partial_overlap():
    """An appointment that partially overlaps should be returned as a conflict."""
    existing = [_make_appointment(at(9), at(10, 30))]
    conflicts = find_conflicts(at(10), at(11), existing)
    assert len(conflicts) == 1
    assert conflicts[0].start_time == at(9)


def test_exact_boundary_no_conflict():
    """When existing.end_time == new_start, there is no conflict (boundary touch)."""
    existing = [_make_appointment(at(9), at(10))]
    assert find_conflicts(at(10), at(11), existing) == []


@pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW])
def test_inactive_appointments_never_conflict(status):
    existing = [_make_appointment(at(9), at(10), status=status)]
    assert find_conflicts(at(9), at(10), existing) == []


def test_excluded_appointment_is_ignored():
    own = _make_appointment(at(9), at(10))
    assert find_conflicts(at(9), at(10), [own], exclude_id=own.id) == []


def test_conflicts_sorted_by_start():
    later = _make_appointment(at(10), at(12))
    earlier = _make_appointment(at(8), at(10, 30))
    conflicts = find_conflicts(at(9), at(11), [later, earlier])
    assert [c.id for c in conflicts] == [earlier.id, later.id]


# ---------------------------------------------------------------------------
# detect_conflicts (repository-backed)
# ---------------------------------------------------------------------------


def test_detect_conflicts_carries_patient_name(env):
    existing = env.add_appointment(at(9), at(10), title="Lumbar evaluation")

    conflicts = detect_conflicts(
        PRACTITIONER_ID, at(9, 30), at(10, 30), env.appointment_repo, env.patient_repo
    )

    assert len(conflicts) == 1
    assert conflicts[0].id == existing.id
    assert conflicts[0].title == "Lumbar evaluation"
    assert conflicts[0].patient_name == "Ana Martínez"
    assert "Ana Martínez" in describe_conflicts(conflicts)


def test_detect_conflicts_excludes_self_when_editing(env):
    existing = env.add_appointment(at(9), at(10))

    conflicts = detect_conflicts(
        PRACTITIONER_ID,
        at(9),
        at(10),
        env.appointment_repo,
        env.patient_repo,
        exclude_id=existing.id,
    )

    assert conflicts == []


def test_detect_conflicts_ignores_cancelled_slot(env):
    env.add_appointment(at(9), at(10), status=AppointmentStatus.CANCELLED)

    conflicts = detect_conflicts(
        PRACTITIONER_ID, at(9), at(10), env.appointment_repo, env.patient_repo
    )

    assert conflicts == []


def test_detect_conflicts_scoped_to_practitioner(env):
    env.add_appointment(at(9), at(10), practitioner_id=OTHER_PRACTITIONER_ID)

    conflicts = detect_conflicts(
        PRACTITIONER_ID, at(9), at(10), env.appointment_repo, env.patient_repo
    )

    assert conflicts == []


def test_detect_conflicts_rejects_inverted_range(env):
    with pytest.raises(InputValidationError):
        detect_conflicts(
            PRACTITIONER_ID, at(10), at(10), env.appointment_repo, env.patient_repo
        )


def test_timestamps_normalized_to_utc():
    madrid_winter = timezone(timedelta(hours=1))
    appointment = Appointment(
        practitioner_id=PRACTITIONER_ID,
        patient_id="patient",
        title="Session",
        start_time=datetime(2026, 3, 2, 10, 0, tzinfo=madrid_winter),
        end_time=datetime(2026, 3, 2, 11, 0),
    )
    assert appointment.start_time == at(9)
    assert appointment.start_time.tzinfo == timezone.utc
    assert appointment.end_time == at(11)
