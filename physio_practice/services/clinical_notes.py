"""Clinical (SOAP) notes recorded per treatment session.

A note may be tied to the appointment it documents; an appointment has at
most one note, and it must belong to the same patient.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from physio_practice.domain.bus import EventBus
from physio_practice.domain.errors import InputValidationError, NotFoundError
from physio_practice.domain.events import ClinicalNoteDeleted, ClinicalNoteSaved
from physio_practice.domain.models import (
    ClinicalNote,
    ClinicalNoteCreate,
    ClinicalNoteUpdate,
    OperationResult,
    PainEvolution,
    PainPoint,
)
from physio_practice.repos.memory import (
    AppointmentRepository,
    ClinicalNoteRepository,
    PatientRepository,
    PractitionerRepository,
)
from physio_practice.services.calendar import local_today, practitioner_timezone
from physio_practice.services.operations import require_identity, run_operation

logger = structlog.get_logger(__name__)

_REQUIRED_FIELDS = ("session_date", "techniques_used", "exercises_prescribed")


def pain_evolution(notes: list[ClinicalNote]) -> PainEvolution:
    """Pain scores oldest first; summary figures need two scored sessions."""
    points = [
        PainPoint(
            session_date=n.session_date,
            pain_before=n.pain_level_before,
            pain_after=n.pain_level_after,
        )
        for n in sorted(notes, key=lambda n: n.session_date)
        if n.pain_level_before is not None or n.pain_level_after is not None
    ]
    if len(points) < 2:
        return PainEvolution(points=points)

    scored = [p for p in points if p.pain_before is not None and p.pain_after is not None]
    average = (
        sum(p.pain_before - p.pain_after for p in scored) / len(scored) if scored else 0.0
    )
    first, last = points[0], points[-1]
    initial = first.pain_before if first.pain_before is not None else first.pain_after
    current = last.pain_after if last.pain_after is not None else last.pain_before
    return PainEvolution(
        points=points,
        average_reduction=average,
        initial_pain=initial,
        current_pain=current,
        overall_change=initial - current,
    )


class ClinicalNoteService:
    def __init__(
        self,
        note_repo: ClinicalNoteRepository,
        patient_repo: PatientRepository,
        appointment_repo: AppointmentRepository,
        practitioner_repo: PractitionerRepository,
        bus: EventBus,
    ) -> None:
        self.note_repo = note_repo
        self.patient_repo = patient_repo
        self.appointment_repo = appointment_repo
        self.practitioner_repo = practitioner_repo
        self.bus = bus

    def create_note(
        self, practitioner_id: str | None, data: ClinicalNoteCreate
    ) -> OperationResult[ClinicalNote]:
        def _create() -> OperationResult[ClinicalNote]:
            owner = require_identity(practitioner_id)
            if self.patient_repo.get(owner, data.patient_id) is None:
                raise NotFoundError("Patient not found")
            if data.appointment_id:
                self._check_appointment(owner, data.appointment_id, data.patient_id)

            fields = data.model_dump()
            if fields["session_date"] is None:
                tz_name = practitioner_timezone(self.practitioner_repo.get(owner))
                fields["session_date"] = local_today(tz_name)
            note = ClinicalNote(practitioner_id=owner, **fields)
            self.note_repo.add(note)
            logger.info(
                "clinical_note_created",
                practitioner_id=owner,
                patient_id=note.patient_id,
                note_id=note.id,
                appointment_id=note.appointment_id,
            )
            self.bus.publish(
                ClinicalNoteSaved(
                    practitioner_id=owner,
                    patient_id=note.patient_id,
                    note_id=note.id,
                    created=True,
                )
            )
            return OperationResult[ClinicalNote].ok(note)

        return run_operation("create_clinical_note", _create)

    def update_note(
        self, practitioner_id: str | None, note_id: str, data: ClinicalNoteUpdate
    ) -> OperationResult[ClinicalNote]:
        def _update() -> OperationResult[ClinicalNote]:
            owner = require_identity(practitioner_id)
            stored = self._get_note(owner, note_id)

            changes = data.model_dump(exclude_unset=True)
            for field in _REQUIRED_FIELDS:
                if field in changes and changes[field] is None:
                    del changes[field]

            updated = ClinicalNote.model_validate(
                {**stored.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
            )
            self.note_repo.save(updated)
            logger.info(
                "clinical_note_updated",
                practitioner_id=owner,
                note_id=note_id,
                fields=sorted(changes),
            )
            self.bus.publish(
                ClinicalNoteSaved(
                    practitioner_id=owner, patient_id=updated.patient_id, note_id=note_id
                )
            )
            return OperationResult[ClinicalNote].ok(updated)

        return run_operation("update_clinical_note", _update)

    def delete_note(
        self, practitioner_id: str | None, note_id: str
    ) -> OperationResult[None]:
        def _delete() -> OperationResult[None]:
            owner = require_identity(practitioner_id)
            note = self._get_note(owner, note_id)
            self.note_repo.delete(note_id)
            logger.info("clinical_note_deleted", practitioner_id=owner, note_id=note_id)
            self.bus.publish(
                ClinicalNoteDeleted(
                    practitioner_id=owner, patient_id=note.patient_id, note_id=note_id
                )
            )
            return OperationResult[None].ok()

        return run_operation("delete_clinical_note", _delete)

    def get_note(self, practitioner_id: str | None, note_id: str) -> ClinicalNote | None:
        if not practitioner_id:
            return None
        return self.note_repo.get(practitioner_id, note_id)

    def note_for_appointment(
        self, practitioner_id: str | None, appointment_id: str
    ) -> ClinicalNote | None:
        if not practitioner_id:
            return None
        return self.note_repo.get_for_appointment(practitioner_id, appointment_id)

    def patient_notes(self, practitioner_id: str | None, patient_id: str) -> list[ClinicalNote]:
        if not practitioner_id:
            return []
        return self.note_repo.list_for_patient(practitioner_id, patient_id)

    def recent_notes(self, practitioner_id: str | None, limit: int = 5) -> list[ClinicalNote]:
        if not practitioner_id:
            return []
        return self.note_repo.list_recent(practitioner_id, max(limit, 0))

    def patient_pain_evolution(
        self, practitioner_id: str | None, patient_id: str
    ) -> PainEvolution:
        return pain_evolution(self.patient_notes(practitioner_id, patient_id))

    def _get_note(self, practitioner_id: str, note_id: str) -> ClinicalNote:
        note = self.note_repo.get(practitioner_id, note_id)
        if note is None:
            raise NotFoundError("Clinical note not found")
        return note

    def _check_appointment(self, owner: str, appointment_id: str, patient_id: str) -> None:
        appointment = self.appointment_repo.get(owner, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        if appointment.patient_id != patient_id:
            raise InputValidationError("The appointment belongs to another patient")
        if self.note_repo.get_for_appointment(owner, appointment_id) is not None:
            raise InputValidationError("This appointment already has a clinical note")
