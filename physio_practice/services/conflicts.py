"""Service for detecting scheduling conflicts between appointments."""

from __future__ import annotations

from datetime import datetime

import structlog

from physio_practice.domain.errors import InputValidationError
from physio_practice.domain.intervals import spans_overlap
from physio_practice.domain.models import (
    Appointment,
    ConflictingAppointment,
    is_active,
    to_utc,
)
from physio_practice.repos.memory import AppointmentRepository, PatientRepository

logger = structlog.get_logger(__name__)

UNKNOWN_PATIENT = "Unknown patient"


def find_conflicts(
    new_start: datetime,
    new_end: datetime,
    existing_appointments: list[Appointment],
    exclude_id: str | None = None,
) -> list[Appointment]:
    """Return existing appointments that overlap with the given time range.

    Overlap rule: conflict if new_start < existing.end_time AND existing.start_time < new_end.
    Exact boundary touches (end == start) are NOT considered conflicts. Cancelled and
    no-show appointments never conflict, nor does the appointment named by ``exclude_id``.
    """
    new_start, new_end = to_utc(new_start), to_utc(new_end)
    conflicts = [
        appointment
        for appointment in existing_appointments
        if appointment.id != exclude_id
        and is_active(appointment.status)
        and spans_overlap(new_start, new_end, appointment.start_time, appointment.end_time)
    ]
    return sorted(conflicts, key=lambda a: a.start_time)


def detect_conflicts(
    practitioner_id: str,
    start_time: datetime,
    end_time: datetime,
    appointment_repo: AppointmentRepository,
    patient_repo: PatientRepository,
    exclude_id: str | None = None,
) -> list[ConflictingAppointment]:
    """Look up the practitioner's appointments clashing with ``[start_time, end_time)``.

    Raises ``InputValidationError`` before querying when the range is empty or
    inverted. Read-only. The result carries the patient's display name so the
    caller can explain each clash.
    """
    start_time, end_time = to_utc(start_time), to_utc(end_time)
    if end_time <= start_time:
        raise InputValidationError("End time must be after start time")

    candidates = appointment_repo.list_overlapping(
        practitioner_id, start_time, end_time, exclude_id=exclude_id
    )
    clashing = find_conflicts(start_time, end_time, candidates, exclude_id=exclude_id)

    conflicts: list[ConflictingAppointment] = []
    for appointment in clashing:
        patient = patient_repo.get(practitioner_id, appointment.patient_id)
        conflicts.append(
            ConflictingAppointment(
                id=appointment.id,
                title=appointment.title,
                patient_id=appointment.patient_id,
                patient_name=patient.full_name if patient else UNKNOWN_PATIENT,
                start_time=appointment.start_time,
                end_time=appointment.end_time,
            )
        )

    if conflicts:
        logger.info(
            "conflicts_detected",
            practitioner_id=practitioner_id,
            conflicting_ids=[c.id for c in conflicts],
        )
    return conflicts


def describe_conflicts(conflicts: list[ConflictingAppointment]) -> str:
    """Render a one-line warning listing each clashing appointment."""
    parts = [
        f"{c.title} with {c.patient_name} "
        f"({c.start_time:%Y-%m-%d %H:%M}–{c.end_time:%H:%M} UTC)"
        for c in conflicts
    ]
    return "Conflicts with: " + ", ".join(parts)
