"""In-memory repositories for practitioners, patients, appointments, payments
and clinical notes.

Every read is scoped by practitioner id; a row owned by another practitioner
is indistinguishable from a missing one.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

from physio_practice.domain.intervals import spans_overlap
from physio_practice.domain.models import (
    INACTIVE_STATUSES,
    Appointment,
    AppointmentStatus,
    ClinicalNote,
    Patient,
    Payment,
    PaymentType,
    Practitioner,
    to_utc,
)


class PractitionerRepository:
    """Dict-backed store for Practitioner instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Practitioner] = {}

    def add(self, practitioner: Practitioner) -> None:
        self._store[practitioner.id] = practitioner

    def get(self, practitioner_id: str) -> Practitioner | None:
        return self._store.get(practitioner_id)


class PatientRepository:
    """Dict-backed store for Patient instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Patient] = {}

    def add(self, patient: Patient) -> None:
        self._store[patient.id] = patient

    def save(self, patient: Patient) -> None:
        self._store[patient.id] = patient

    def get(self, practitioner_id: str, patient_id: str) -> Patient | None:
        patient = self._store.get(patient_id)
        if patient is None or patient.practitioner_id != practitioner_id:
            return None
        return patient

    def list_for_practitioner(self, practitioner_id: str) -> list[Patient]:
        return sorted(
            (p for p in self._store.values() if p.practitioner_id == practitioner_id),
            key=lambda p: p.full_name,
        )


class AppointmentRepository:
    """Dict-backed store for Appointment instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Appointment] = {}

    def add(self, appointment: Appointment) -> None:
        self._store[appointment.id] = appointment

    def save(self, appointment: Appointment) -> None:
        """Replace the stored row with the same id."""
        self._store[appointment.id] = appointment

    def get(self, practitioner_id: str, appointment_id: str) -> Appointment | None:
        appointment = self._store.get(appointment_id)
        if appointment is None or appointment.practitioner_id != practitioner_id:
            return None
        return appointment

    def list_for_practitioner(self, practitioner_id: str) -> list[Appointment]:
        return sorted(
            (a for a in self._store.values() if a.practitioner_id == practitioner_id),
            key=lambda a: a.start_time,
        )

    def list_starting_between(
        self,
        practitioner_id: str,
        start: datetime,
        end: datetime,
        exclude_statuses: frozenset[AppointmentStatus] = frozenset(),
    ) -> list[Appointment]:
        """Appointments whose start falls in ``[start, end]``, ordered by start."""
        start, end = to_utc(start), to_utc(end)
        return [
            a
            for a in self.list_for_practitioner(practitioner_id)
            if start <= a.start_time <= end and a.status not in exclude_statuses
        ]

    def list_overlapping(
        self,
        practitioner_id: str,
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> list[Appointment]:
        """Active appointments intersecting ``[start, end)``, ordered by start."""
        start, end = to_utc(start), to_utc(end)
        return [
            a
            for a in self.list_for_practitioner(practitioner_id)
            if a.id != exclude_id
            and a.status not in INACTIVE_STATUSES
            and spans_overlap(a.start_time, a.end_time, start, end)
        ]

    def list_for_patient(self, practitioner_id: str, patient_id: str) -> list[Appointment]:
        return sorted(
            (
                a
                for a in self._store.values()
                if a.practitioner_id == practitioner_id and a.patient_id == patient_id
            ),
            key=lambda a: a.start_time,
            reverse=True,
        )


class PaymentRepository:
    """Dict-backed ledger of charges and payments, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Payment] = {}

    def add(self, payment: Payment) -> None:
        self._store[payment.id] = payment

    def save(self, payment: Payment) -> None:
        self._store[payment.id] = payment

    def get(self, practitioner_id: str, payment_id: str) -> Payment | None:
        payment = self._store.get(payment_id)
        if payment is None or payment.practitioner_id != practitioner_id:
            return None
        return payment

    def delete(self, payment_id: str) -> None:
        self._store.pop(payment_id, None)

    def get_charge_for_appointment(
        self, practitioner_id: str, appointment_id: str
    ) -> Payment | None:
        for payment in self._store.values():
            if (
                payment.practitioner_id == practitioner_id
                and payment.appointment_id == appointment_id
                and payment.type == PaymentType.CHARGE
            ):
                return payment
        return None

    def list_for_practitioner(self, practitioner_id: str) -> list[Payment]:
        return [p for p in self._store.values() if p.practitioner_id == practitioner_id]

    def list_for_patient(self, practitioner_id: str, patient_id: str) -> list[Payment]:
        """Ledger rows for one patient, newest first."""
        return sorted(
            (
                p
                for p in self._store.values()
                if p.practitioner_id == practitioner_id and p.patient_id == patient_id
            ),
            key=lambda p: p.created_at,
            reverse=True,
        )


class ClinicalNoteRepository:
    """Dict-backed store for ClinicalNote instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, ClinicalNote] = {}

    def add(self, note: ClinicalNote) -> None:
        self._store[note.id] = note

    def save(self, note: ClinicalNote) -> None:
        self._store[note.id] = note

    def get(self, practitioner_id: str, note_id: str) -> ClinicalNote | None:
        note = self._store.get(note_id)
        if note is None or note.practitioner_id != practitioner_id:
            return None
        return note

    def delete(self, note_id: str) -> None:
        self._store.pop(note_id, None)

    def get_for_appointment(
        self, practitioner_id: str, appointment_id: str
    ) -> ClinicalNote | None:
        for note in self._store.values():
            if note.practitioner_id == practitioner_id and note.appointment_id == appointment_id:
                return note
        return None

    def list_for_patient(self, practitioner_id: str, patient_id: str) -> list[ClinicalNote]:
        """Notes for one patient, latest session first."""
        return sorted(
            (
                n
                for n in self._store.values()
                if n.practitioner_id == practitioner_id and n.patient_id == patient_id
            ),
            key=lambda n: (n.session_date, n.created_at),
            reverse=True,
        )

    def list_recent(self, practitioner_id: str, limit: int) -> list[ClinicalNote]:
        notes = sorted(
            (n for n in self._store.values() if n.practitioner_id == practitioner_id),
            key=lambda n: n.created_at,
            reverse=True,
        )
        return notes[:limit]


class RevalidationEntry(BaseModel):
    practitioner_id: str
    path: str
    reason: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RevalidationRepository:
    """List-backed log of view paths whose cached rendering is stale."""

    def __init__(self) -> None:
        self._entries: list[RevalidationEntry] = []

    def add(self, entry: RevalidationEntry) -> None:
        self._entries.append(entry)

    def list_for_practitioner(self, practitioner_id: str) -> list[RevalidationEntry]:
        return [e for e in self._entries if e.practitioner_id == practitioner_id]

    def stale_paths(self, practitioner_id: str) -> set[str]:
        return {e.path for e in self.list_for_practitioner(practitioner_id)}

    def clear(self, practitioner_id: str) -> None:
        self._entries = [e for e in self._entries if e.practitioner_id != practitioner_id]


# ---------------------------------------------------------------------------
# Seed data – one practitioner with a busy morning, useful for manual testing
# ---------------------------------------------------------------------------


DEMO_PRACTITIONER_ID = "demo-practitioner"


def seed_demo_practice(
    practitioner_repo: PractitionerRepository,
    patient_repo: PatientRepository,
    appointment_repo: AppointmentRepository,
    timezone_name: str = "UTC",
) -> Practitioner:
    """Load a practitioner, two patients and a few overlapping appointments."""
    practitioner = Practitioner(
        id=DEMO_PRACTITIONER_ID,
        full_name="Laura Gómez",
        email="laura@example.com",
        clinic_name="Centro de Fisioterapia Gómez",
        default_session_price=50,
        timezone=timezone_name,
    )
    practitioner_repo.add(practitioner)

    ana = Patient(practitioner_id=practitioner.id, full_name="Ana Martínez", phone="600111222")
    luis = Patient(practitioner_id=practitioner.id, full_name="Luis Pérez", phone="600333444")
    patient_repo.add(ana)
    patient_repo.add(luis)

    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).replace(
        hour=9, minute=0, second=0, microsecond=0
    )
    appointment_repo.add(
        Appointment(
            practitioner_id=practitioner.id,
            patient_id=ana.id,
            title="Lumbar evaluation",
            start_time=tomorrow,
            end_time=tomorrow + timedelta(hours=1),
            price=60,
        )
    )
    appointment_repo.add(
        Appointment(
            practitioner_id=practitioner.id,
            patient_id=luis.id,
            title="Knee rehabilitation",
            start_time=tomorrow + timedelta(minutes=30),
            end_time=tomorrow + timedelta(minutes=90),
        )
    )
    appointment_repo.add(
        Appointment(
            practitioner_id=practitioner.id,
            patient_id=ana.id,
            title="Follow-up",
            start_time=tomorrow + timedelta(hours=3),
            end_time=tomorrow + timedelta(hours=4),
        )
    )
    return practitioner
