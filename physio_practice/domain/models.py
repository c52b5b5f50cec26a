"""Domain models for the practice scheduling and billing core."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

T = TypeVar("T")


class AppointmentStatus(StrEnum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Never considered for conflicts or calendar layout.
INACTIVE_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})
TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)


class AppointmentType(StrEnum):
    EVALUATION = "evaluation"
    SESSION = "session"
    FOLLOW_UP = "follow_up"
    DISCHARGE = "discharge"


class PatientStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCHARGED = "discharged"


class Gender(StrEnum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNSPECIFIED = "unspecified"


class ProgressStatus(StrEnum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"
    RECOVERED = "recovered"


class PaymentType(StrEnum):
    CHARGE = "charge"
    PAYMENT = "payment"


class PaymentMethod(StrEnum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    OTHER = "other"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def to_utc(value: datetime) -> datetime:
    """Normalize a timestamp to UTC, treating naive values as already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_active(status: AppointmentStatus) -> bool:
    return status not in INACTIVE_STATUSES


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Practitioner(BaseModel):
    id: str = Field(default_factory=_new_id)
    full_name: str
    email: str
    clinic_name: str | None = None
    default_session_price: Decimal | None = Field(default=None, ge=0)
    timezone: str = "UTC"


class Patient(BaseModel):
    id: str = Field(default_factory=_new_id)
    practitioner_id: str
    full_name: str = Field(min_length=1)
    phone: str | None = None
    email: str | None = None
    date_of_birth: date | None = None
    gender: Gender = Gender.UNSPECIFIED
    address: str | None = None
    occupation: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    allergies: list[str] = Field(default_factory=list)
    current_medications: list[str] = Field(default_factory=list)
    chronic_conditions: list[str] = Field(default_factory=list)
    initial_complaint: str | None = None
    diagnosis: str | None = None
    status: PatientStatus = PatientStatus.ACTIVE
    notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Appointment(BaseModel):
    id: str = Field(default_factory=_new_id)
    practitioner_id: str
    patient_id: str
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    appointment_type: AppointmentType = AppointmentType.SESSION
    price: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    reminder_sent: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: datetime) -> datetime:
        return to_utc(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> Appointment:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


class Payment(BaseModel):
    id: str = Field(default_factory=_new_id)
    practitioner_id: str
    patient_id: str
    appointment_id: str | None = None
    amount: Decimal = Field(gt=0)
    type: PaymentType
    payment_method: PaymentMethod | None = None
    description: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class PrescribedExercise(BaseModel):
    name: str
    sets: int | None = Field(default=None, gt=0)
    reps: int | None = Field(default=None, gt=0)
    duration: str | None = None
    frequency: str | None = None
    instructions: str | None = None


class ClinicalNote(BaseModel):
    """SOAP record of one treatment session, optionally tied to its appointment."""

    id: str = Field(default_factory=_new_id)
    practitioner_id: str
    patient_id: str
    appointment_id: str | None = None
    session_date: date
    pain_level_before: int | None = Field(default=None, ge=0, le=10)
    pain_level_after: int | None = Field(default=None, ge=0, le=10)
    pain_location: str | None = None
    subjective: str | None = None
    objective: str | None = None
    assessment: str | None = None
    plan: str | None = None
    treatment_performed: str | None = None
    techniques_used: list[str] = Field(default_factory=list)
    exercises_prescribed: list[PrescribedExercise] = Field(default_factory=list)
    session_duration_minutes: int | None = Field(default=None, gt=0)
    progress_status: ProgressStatus | None = None
    next_session_recommendation: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


class ConflictingAppointment(BaseModel):
    """An existing appointment that overlaps a proposed slot, ready for display."""

    id: str
    title: str
    patient_id: str
    patient_name: str
    start_time: datetime
    end_time: datetime


class DayAppointment(BaseModel):
    """An appointment joined with its patient's contact details."""

    appointment: Appointment
    patient_name: str
    patient_phone: str | None = None


class ColumnPlacement(BaseModel):
    column_index: int = Field(ge=0)
    total_columns: int = Field(gt=0)

    @property
    def left(self) -> float:
        return self.column_index / self.total_columns

    @property
    def width(self) -> float:
        return 1 / self.total_columns


class CalendarBlock(BaseModel):
    """Geometry of one appointment in a day column of the calendar grid.

    ``top`` and ``height`` are pixels from the first visible hour; ``left`` and
    ``width`` are fractions of the day column.
    """

    appointment_id: str
    title: str
    patient_name: str | None = None
    status: AppointmentStatus
    start_time: datetime
    end_time: datetime
    top: float
    height: float
    left: float
    width: float
    column_index: int
    total_columns: int


class DayView(BaseModel):
    date: date
    blocks: list[CalendarBlock] = Field(default_factory=list)


class PatientBalance(BaseModel):
    patient_id: str
    full_name: str
    phone: str | None = None
    total_charges: Decimal = Decimal("0")
    total_payments: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.total_charges - self.total_payments


class FinancialStats(BaseModel):
    total_income: Decimal = Decimal("0")
    monthly_income: Decimal = Decimal("0")
    pending_balance: Decimal = Decimal("0")
    patients_with_balance: int = 0


class PatientPage(BaseModel):
    patients: list[Patient] = Field(default_factory=list)
    count: int = 0
    page: int = 1
    page_size: int = 10
    total_pages: int = 0


class PainPoint(BaseModel):
    session_date: date
    pain_before: int | None = None
    pain_after: int | None = None


class PainEvolution(BaseModel):
    """Pain scores per session, oldest first, with summary figures.

    The summary fields stay ``None`` until at least two sessions carry a score.
    """

    points: list[PainPoint] = Field(default_factory=list)
    average_reduction: float | None = None
    initial_pain: int | None = None
    current_pain: int | None = None
    overall_change: int | None = None


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class AppointmentCreate(BaseModel):
    patient_id: str
    title: str = "Physiotherapy session"
    description: str | None = None
    start_time: datetime
    end_time: datetime
    appointment_type: AppointmentType = AppointmentType.SESSION
    notes: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    override: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: datetime) -> datetime:
        return to_utc(value)


class AppointmentUpdate(BaseModel):
    patient_id: str | None = None
    title: str | None = None
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: AppointmentStatus | None = None
    appointment_type: AppointmentType | None = None
    # Negative values are accepted here: a price at or below zero removes the charge.
    price: Decimal | None = None
    notes: str | None = None
    reminder_sent: bool | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: datetime | None) -> datetime | None:
        return to_utc(value) if value is not None else None


class AppointmentForm(BaseModel):
    """Raw appointment dialog input: a calendar date plus wall-clock times."""

    patient_id: str = ""
    title: str = "Physiotherapy session"
    description: str = ""
    date: str
    start_time: str = "09:00"
    end_time: str = "10:00"
    appointment_type: AppointmentType = AppointmentType.SESSION
    notes: str = ""
    price: Decimal | None = Field(default=None, ge=0)
    override: bool = False


class PaymentCreate(BaseModel):
    patient_id: str
    amount: Decimal = Field(gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    description: str | None = None


class PatientCreate(BaseModel):
    full_name: str
    phone: str | None = None
    email: str | None = None
    date_of_birth: date | None = None
    gender: Gender = Gender.UNSPECIFIED
    address: str | None = None
    occupation: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    allergies: list[str] = Field(default_factory=list)
    current_medications: list[str] = Field(default_factory=list)
    chronic_conditions: list[str] = Field(default_factory=list)
    initial_complaint: str | None = None
    diagnosis: str | None = None
    status: PatientStatus = PatientStatus.ACTIVE
    notes: str | None = None

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()


class PatientUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    email: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    address: str | None = None
    occupation: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    allergies: list[str] | None = None
    current_medications: list[str] | None = None
    chronic_conditions: list[str] | None = None
    initial_complaint: str | None = None
    diagnosis: str | None = None
    status: PatientStatus | None = None
    notes: str | None = None


class ClinicalNoteCreate(BaseModel):
    patient_id: str
    appointment_id: str | None = None
    # Defaults to today in the practitioner's zone.
    session_date: date | None = None
    pain_level_before: int | None = Field(default=None, ge=0, le=10)
    pain_level_after: int | None = Field(default=None, ge=0, le=10)
    pain_location: str | None = None
    subjective: str | None = None
    objective: str | None = None
    assessment: str | None = None
    plan: str | None = None
    treatment_performed: str | None = None
    techniques_used: list[str] = Field(default_factory=list)
    exercises_prescribed: list[PrescribedExercise] = Field(default_factory=list)
    session_duration_minutes: int | None = Field(default=None, gt=0)
    progress_status: ProgressStatus | None = None
    next_session_recommendation: str | None = None


class ClinicalNoteUpdate(BaseModel):
    session_date: date | None = None
    pain_level_before: int | None = Field(default=None, ge=0, le=10)
    pain_level_after: int | None = Field(default=None, ge=0, le=10)
    pain_location: str | None = None
    subjective: str | None = None
    objective: str | None = None
    assessment: str | None = None
    plan: str | None = None
    treatment_performed: str | None = None
    techniques_used: list[str] | None = None
    exercises_prescribed: list[PrescribedExercise] | None = None
    session_duration_minutes: int | None = Field(default=None, gt=0)
    progress_status: ProgressStatus | None = None
    next_session_recommendation: str | None = None


class OperationResult(BaseModel, Generic[T]):
    """Uniform outcome of a write operation.

    A scheduling conflict is reported with ``success=False``, no ``error`` and
    a non-empty ``conflicts`` list so the caller can offer to create anyway.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_type: str | None = None
    conflicts: list[ConflictingAppointment] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return not self.success and self.error is None and bool(self.conflicts)

    @classmethod
    def ok(cls, data: T | None = None) -> OperationResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_type: str | None = None) -> OperationResult[T]:
        return cls(success=False, error=error, error_type=error_type)

    @classmethod
    def conflicted(cls, conflicts: list[ConflictingAppointment]) -> OperationResult[T]:
        return cls(success=False, conflicts=conflicts)
