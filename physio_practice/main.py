"""FastAPI application: the HTTP entry point for the practice scheduling core."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse

from physio_practice.config import get_settings
from physio_practice.domain.bus import EventBus
from physio_practice.domain.errors import InputValidationError
from physio_practice.domain.handlers import HandlerRegistry
from physio_practice.domain.models import (
    Appointment,
    AppointmentCreate,
    AppointmentForm,
    AppointmentUpdate,
    ClinicalNote,
    ClinicalNoteCreate,
    ClinicalNoteUpdate,
    DayAppointment,
    DayView,
    FinancialStats,
    OperationResult,
    PainEvolution,
    Patient,
    PatientBalance,
    PatientCreate,
    PatientPage,
    PatientStatus,
    PatientUpdate,
    Payment,
    PaymentCreate,
)
from physio_practice.logging_config import configure_logging
from physio_practice.repos.memory import (
    AppointmentRepository,
    ClinicalNoteRepository,
    PatientRepository,
    PaymentRepository,
    PractitionerRepository,
    RevalidationRepository,
    seed_demo_practice,
)
from physio_practice.services.appointments import AppointmentService
from physio_practice.services.clinical_notes import ClinicalNoteService
from physio_practice.services.forms import parse_appointment_form
from physio_practice.services.patients import PatientService
from physio_practice.services.payments import PaymentService

settings = get_settings()
configure_logging(settings)

app = FastAPI(title=settings.app_name)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
practitioner_repo = PractitionerRepository()
patient_repo = PatientRepository()
appointment_repo = AppointmentRepository()
payment_repo = PaymentRepository()
note_repo = ClinicalNoteRepository()
revalidation_repo = RevalidationRepository()

handler_registry = HandlerRegistry(bus=event_bus, revalidation_repo=revalidation_repo)

appointment_service = AppointmentService(
    appointment_repo=appointment_repo,
    patient_repo=patient_repo,
    practitioner_repo=practitioner_repo,
    payment_repo=payment_repo,
    bus=event_bus,
)
payment_service = PaymentService(
    payment_repo=payment_repo, patient_repo=patient_repo, bus=event_bus
)
patient_service = PatientService(patient_repo=patient_repo, bus=event_bus)
note_service = ClinicalNoteService(
    note_repo=note_repo,
    patient_repo=patient_repo,
    appointment_repo=appointment_repo,
    practitioner_repo=practitioner_repo,
    bus=event_bus,
)

if settings.seed_demo_data:
    seed_demo_practice(
        practitioner_repo, patient_repo, appointment_repo, settings.default_timezone
    )

_STATUS_BY_ERROR_TYPE = {
    "InputValidationError": 422,
    "NotFoundError": 404,
    "UnauthenticatedError": 401,
    "PersistenceError": 503,
    "FlowStateError": 409,
}


def _respond(result: OperationResult, success_status: int = 200) -> JSONResponse:
    """Serialize a result, picking the HTTP status from its outcome."""
    if result.success:
        status_code = success_status
    elif result.has_conflicts:
        status_code = 409
    else:
        status_code = _STATUS_BY_ERROR_TYPE.get(result.error_type or "", 400)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


def _require(practitioner_id: str | None) -> str:
    if not practitioner_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return practitioner_id


# ── Appointments ──────────────────────────────────────────────────────


@app.post("/appointments")
def create_appointment(
    payload: AppointmentCreate, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    """Book an appointment; a clash answers 409 with the conflicting slots."""
    result = appointment_service.create_appointment(x_practitioner_id, payload)
    return _respond(result, success_status=201)


@app.post("/appointments/form")
def create_appointment_from_form(
    payload: AppointmentForm, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    """Book from dialog input (date plus HH:MM times in the practitioner's zone)."""
    owner = _require(x_practitioner_id)
    try:
        data = parse_appointment_form(payload, appointment_service.timezone_for(owner))
    except InputValidationError as exc:
        return _respond(OperationResult.fail(exc.message, type(exc).__name__))
    return _respond(appointment_service.create_appointment(owner, data), success_status=201)


@app.get("/appointments", response_model=list[Appointment])
def list_appointments(
    start: datetime, end: datetime, x_practitioner_id: str | None = Header(default=None)
) -> list[Appointment]:
    return appointment_service.get_appointments_in_range(_require(x_practitioner_id), start, end)


@app.get("/appointments/today", response_model=list[DayAppointment])
def list_day_appointments(
    day: date | None = None, x_practitioner_id: str | None = Header(default=None)
) -> list[DayAppointment]:
    return appointment_service.get_day_appointments(_require(x_practitioner_id), day)


@app.get("/appointments/conflicts")
def check_conflicts(
    start_time: datetime,
    end_time: datetime,
    exclude_id: str | None = None,
    x_practitioner_id: str | None = Header(default=None),
) -> JSONResponse:
    result = appointment_service.check_conflicts(
        x_practitioner_id, start_time, end_time, exclude_id=exclude_id
    )
    return _respond(result)


@app.get("/appointments/{appointment_id}", response_model=Appointment)
def get_appointment(
    appointment_id: str, x_practitioner_id: str | None = Header(default=None)
) -> Appointment:
    appointment = appointment_service.get_appointment(_require(x_practitioner_id), appointment_id)
    if appointment is None:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


@app.patch("/appointments/{appointment_id}")
def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdate,
    x_practitioner_id: str | None = Header(default=None),
) -> JSONResponse:
    return _respond(
        appointment_service.update_appointment(x_practitioner_id, appointment_id, payload)
    )


@app.post("/appointments/{appointment_id}/cancel")
def cancel_appointment(
    appointment_id: str, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    return _respond(appointment_service.cancel_appointment(x_practitioner_id, appointment_id))


@app.post("/appointments/{appointment_id}/complete")
def complete_appointment(
    appointment_id: str, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    return _respond(appointment_service.complete_appointment(x_practitioner_id, appointment_id))


@app.get("/appointments/{appointment_id}/note", response_model=ClinicalNote)
def appointment_note(
    appointment_id: str, x_practitioner_id: str | None = Header(default=None)
) -> ClinicalNote:
    note = note_service.note_for_appointment(_require(x_practitioner_id), appointment_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Clinical note not found")
    return note


# ── Calendar ──────────────────────────────────────────────────────────


@app.get("/calendar/day", response_model=DayView)
def calendar_day(day: date, x_practitioner_id: str | None = Header(default=None)) -> DayView:
    return appointment_service.day_layout(_require(x_practitioner_id), day)


@app.get("/calendar/week", response_model=list[DayView])
def calendar_week(
    day: date, x_practitioner_id: str | None = Header(default=None)
) -> list[DayView]:
    return appointment_service.week_layout(_require(x_practitioner_id), day)


# ── Patients ──────────────────────────────────────────────────────────


@app.post("/patients")
def create_patient(
    payload: PatientCreate, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    return _respond(patient_service.create_patient(x_practitioner_id, payload), success_status=201)


@app.get("/patients", response_model=PatientPage)
def list_patients(
    page: int = 1,
    page_size: int = 10,
    search: str | None = None,
    status: PatientStatus | None = None,
    x_practitioner_id: str | None = Header(default=None),
) -> PatientPage:
    return patient_service.list_patients(
        _require(x_practitioner_id), page=page, page_size=page_size, search=search, status=status
    )


@app.get("/patients/active", response_model=list[Patient])
def active_patients(x_practitioner_id: str | None = Header(default=None)) -> list[Patient]:
    return patient_service.active_patients(_require(x_practitioner_id))


@app.get("/patients/{patient_id}", response_model=Patient)
def get_patient(
    patient_id: str, x_practitioner_id: str | None = Header(default=None)
) -> Patient:
    patient = patient_service.get_patient(_require(x_practitioner_id), patient_id)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


@app.patch("/patients/{patient_id}")
def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    x_practitioner_id: str | None = Header(default=None),
) -> JSONResponse:
    return _respond(patient_service.update_patient(x_practitioner_id, patient_id, payload))


@app.post("/patients/{patient_id}/discharge")
def discharge_patient(
    patient_id: str, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    return _respond(patient_service.discharge_patient(x_practitioner_id, patient_id))


@app.get("/patients/{patient_id}/notes", response_model=list[ClinicalNote])
def patient_notes(
    patient_id: str, x_practitioner_id: str | None = Header(default=None)
) -> list[ClinicalNote]:
    return note_service.patient_notes(_require(x_practitioner_id), patient_id)


@app.get("/patients/{patient_id}/pain-evolution", response_model=PainEvolution)
def patient_pain_evolution(
    patient_id: str, x_practitioner_id: str | None = Header(default=None)
) -> PainEvolution:
    return note_service.patient_pain_evolution(_require(x_practitioner_id), patient_id)


# ── Clinical notes ────────────────────────────────────────────────────


@app.post("/clinical-notes")
def create_clinical_note(
    payload: ClinicalNoteCreate, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    return _respond(note_service.create_note(x_practitioner_id, payload), success_status=201)


@app.get("/clinical-notes/recent", response_model=list[ClinicalNote])
def recent_clinical_notes(
    limit: int = 5, x_practitioner_id: str | None = Header(default=None)
) -> list[ClinicalNote]:
    return note_service.recent_notes(_require(x_practitioner_id), limit=limit)


@app.get("/clinical-notes/{note_id}", response_model=ClinicalNote)
def get_clinical_note(
    note_id: str, x_practitioner_id: str | None = Header(default=None)
) -> ClinicalNote:
    note = note_service.get_note(_require(x_practitioner_id), note_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Clinical note not found")
    return note


@app.patch("/clinical-notes/{note_id}")
def update_clinical_note(
    note_id: str,
    payload: ClinicalNoteUpdate,
    x_practitioner_id: str | None = Header(default=None),
) -> JSONResponse:
    return _respond(note_service.update_note(x_practitioner_id, note_id, payload))


@app.delete("/clinical-notes/{note_id}")
def delete_clinical_note(
    note_id: str, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    return _respond(note_service.delete_note(x_practitioner_id, note_id))


# ── Patient ledger & payments ─────────────────────────────────────────


@app.get("/patients/{patient_id}/appointments", response_model=list[Appointment])
def patient_appointments(
    patient_id: str, x_practitioner_id: str | None = Header(default=None)
) -> list[Appointment]:
    return appointment_service.get_patient_appointments(_require(x_practitioner_id), patient_id)


@app.get("/patients/{patient_id}/payments", response_model=list[Payment])
def patient_payments(
    patient_id: str, x_practitioner_id: str | None = Header(default=None)
) -> list[Payment]:
    return payment_service.patient_history(_require(x_practitioner_id), patient_id)


@app.get("/patients/{patient_id}/balance")
def patient_balance(
    patient_id: str, x_practitioner_id: str | None = Header(default=None)
) -> dict:
    balance: Decimal = payment_service.patient_balance(_require(x_practitioner_id), patient_id)
    return {"patient_id": patient_id, "balance": str(balance)}


@app.post("/payments")
def record_payment(
    payload: PaymentCreate, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    return _respond(payment_service.record_payment(x_practitioner_id, payload), success_status=201)


@app.delete("/payments/{payment_id}")
def delete_payment(
    payment_id: str, x_practitioner_id: str | None = Header(default=None)
) -> JSONResponse:
    return _respond(payment_service.delete_payment(x_practitioner_id, payment_id))


@app.get("/financials/stats", response_model=FinancialStats)
def financial_stats(x_practitioner_id: str | None = Header(default=None)) -> FinancialStats:
    return payment_service.financial_stats(_require(x_practitioner_id))


@app.get("/financials/patients-with-balance", response_model=list[PatientBalance])
def patients_with_balance(
    x_practitioner_id: str | None = Header(default=None),
) -> list[PatientBalance]:
    return payment_service.patients_with_balance(_require(x_practitioner_id))


@app.get("/revalidations")
def stale_views(x_practitioner_id: str | None = Header(default=None)) -> dict:
    """Views invalidated by writes since the last acknowledgement."""
    owner = _require(x_practitioner_id)
    return {"paths": sorted(revalidation_repo.stale_paths(owner))}


@app.post("/revalidations/ack")
def acknowledge_stale_views(x_practitioner_id: str | None = Header(default=None)) -> dict:
    owner = _require(x_practitioner_id)
    revalidation_repo.clear(owner)
    return {"status": "cleared"}
