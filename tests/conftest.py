"""Shared fixtures: a fresh bus, repositories and services for each test."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from physio_practice.domain.bus import EventBus
from physio_practice.domain.handlers import HandlerRegistry
from physio_practice.domain.models import (
    Appointment,
    AppointmentStatus,
    Patient,
    Practitioner,
)
from physio_practice.repos.memory import (
    AppointmentRepository,
    ClinicalNoteRepository,
    PatientRepository,
    PaymentRepository,
    PractitionerRepository,
    RevalidationRepository,
)
from physio_practice.services.appointments import AppointmentService
from physio_practice.services.clinical_notes import ClinicalNoteService
from physio_practice.services.patients import PatientService
from physio_practice.services.payments import PaymentService

PRACTITIONER_ID = "therapist-1"
OTHER_PRACTITIONER_ID = "therapist-2"


def at(hour: int, minute: int = 0, day: int = 2) -> datetime:
    """A UTC timestamp on 2026-03-<day>."""
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


class Env:
    def __init__(self) -> None:
        self.bus = EventBus()
        self.practitioner_repo = PractitionerRepository()
        self.patient_repo = PatientRepository()
        self.appointment_repo = AppointmentRepository()
        self.payment_repo = PaymentRepository()
        self.note_repo = ClinicalNoteRepository()
        self.revalidation_repo = RevalidationRepository()
        self.registry = HandlerRegistry(bus=self.bus, revalidation_repo=self.revalidation_repo)
        self.appointments = AppointmentService(
            appointment_repo=self.appointment_repo,
            patient_repo=self.patient_repo,
            practitioner_repo=self.practitioner_repo,
            payment_repo=self.payment_repo,
            bus=self.bus,
        )
        self.payments = PaymentService(
            payment_repo=self.payment_repo, patient_repo=self.patient_repo, bus=self.bus
        )
        self.patients = PatientService(patient_repo=self.patient_repo, bus=self.bus)
        self.notes = ClinicalNoteService(
            note_repo=self.note_repo,
            patient_repo=self.patient_repo,
            appointment_repo=self.appointment_repo,
            practitioner_repo=self.practitioner_repo,
            bus=self.bus,
        )

        self.practitioner = Practitioner(
            id=PRACTITIONER_ID, full_name="Laura Gómez", email="laura@example.com"
        )
        self.practitioner_repo.add(self.practitioner)
        self.patient = Patient(practitioner_id=PRACTITIONER_ID, full_name="Ana Martínez")
        self.patient_repo.add(self.patient)

    def add_appointment(self, start: datetime, end: datetime, **overrides) -> Appointment:
        defaults = dict(
            practitioner_id=PRACTITIONER_ID,
            patient_id=self.patient.id,
            title="Session",
            start_time=start,
            end_time=end,
            status=AppointmentStatus.SCHEDULED,
        )
        defaults.update(overrides)
        appointment = Appointment(**defaults)
        self.appointment_repo.add(appointment)
        return appointment

    def set_default_price(self, price: Decimal | int | None) -> None:
        self.practitioner_repo.add(
            self.practitioner.model_copy(update={"default_session_price": price})
        )

    def charges_for(self, appointment_id: str):
        return [
            p
            for p in self.payment_repo.list_for_practitioner(PRACTITIONER_ID)
            if p.appointment_id == appointment_id
        ]


@pytest.fixture()
def env() -> Env:
    """Fresh bus + repos + services for each test."""
    return Env()
