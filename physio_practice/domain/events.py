"""Domain events emitted by appointment, payment, patient and clinical-note writes."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from physio_practice.domain.models import AppointmentStatus, PatientStatus


class AppointmentCreated(BaseModel):
    """Fired when a new Appointment is persisted."""

    practitioner_id: str
    appointment_id: str
    patient_id: str
    conflict_check_skipped: bool = False


class AppointmentUpdated(BaseModel):
    """Fired after an appointment's fields (including status) were written."""

    practitioner_id: str
    appointment_id: str
    patient_id: str
    status: AppointmentStatus


class AppointmentCancelled(BaseModel):
    practitioner_id: str
    appointment_id: str
    patient_id: str


class AppointmentCompleted(BaseModel):
    """Fired once the completed status is stored, before the charge is synced."""

    practitioner_id: str
    appointment_id: str
    patient_id: str


class ChargeSynced(BaseModel):
    """Fired when a completion charge was created, updated or removed."""

    practitioner_id: str
    appointment_id: str
    patient_id: str
    amount: Decimal | None = None
    removed: bool = False


class PaymentRecorded(BaseModel):
    practitioner_id: str
    patient_id: str
    payment_id: str


class PaymentDeleted(BaseModel):
    practitioner_id: str
    patient_id: str
    payment_id: str


class PatientCreated(BaseModel):
    practitioner_id: str
    patient_id: str


class PatientUpdated(BaseModel):
    """Fired after a patient record was edited, discharge included."""

    practitioner_id: str
    patient_id: str
    status: PatientStatus


class ClinicalNoteSaved(BaseModel):
    """Fired when a clinical note is created or edited."""

    practitioner_id: str
    patient_id: str
    note_id: str
    created: bool = False


class ClinicalNoteDeleted(BaseModel):
    practitioner_id: str
    patient_id: str
    note_id: str
