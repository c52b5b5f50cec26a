"""Appointment write path and calendar reads, scoped to one practitioner.

Writes return an ``OperationResult``; reads return plain values and come back
empty for an unauthenticated caller.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import structlog

from physio_practice.domain.bus import EventBus
from physio_practice.domain.errors import (
    InputValidationError,
    NotFoundError,
    PersistenceError,
)
from physio_practice.domain.events import (
    AppointmentCancelled,
    AppointmentCompleted,
    AppointmentCreated,
    AppointmentUpdated,
    ChargeSynced,
)
from physio_practice.domain.models import (
    INACTIVE_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
    ConflictingAppointment,
    DayAppointment,
    DayView,
    OperationResult,
    Patient,
)
from physio_practice.repos.memory import (
    AppointmentRepository,
    PatientRepository,
    PaymentRepository,
    PractitionerRepository,
)
from physio_practice.services.calendar import (
    build_day_view,
    build_week_view,
    day_bounds,
    local_today,
    practitioner_timezone,
    week_bounds,
    week_dates,
)
from physio_practice.services.charges import (
    ChargeSyncAction,
    resolve_charge_amount,
    sync_charge,
)
from physio_practice.services.conflicts import UNKNOWN_PATIENT, detect_conflicts
from physio_practice.services.operations import require_identity, run_operation

logger = structlog.get_logger(__name__)

# Fields that cannot be cleared through an update; an explicit null is ignored.
_REQUIRED_FIELDS = (
    "patient_id",
    "title",
    "start_time",
    "end_time",
    "status",
    "appointment_type",
    "reminder_sent",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AppointmentService:
    """Creates, edits, cancels and completes appointments.

    The conflict check on create and the insert that follows are two separate
    steps with no lock between them: two callers booking the same slot at the
    same moment can both pass the check.
    """

    def __init__(
        self,
        appointment_repo: AppointmentRepository,
        patient_repo: PatientRepository,
        practitioner_repo: PractitionerRepository,
        payment_repo: PaymentRepository,
        bus: EventBus,
    ) -> None:
        self.appointment_repo = appointment_repo
        self.patient_repo = patient_repo
        self.practitioner_repo = practitioner_repo
        self.payment_repo = payment_repo
        self.bus = bus

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_appointment(
        self, practitioner_id: str | None, data: AppointmentCreate
    ) -> OperationResult[Appointment]:
        """Persist a new appointment unless it clashes with an active one.

        With ``data.override`` set the conflict check is skipped entirely.
        Otherwise any clash aborts the insert and the clashing appointments are
        returned in ``conflicts`` with no error message.
        """

        def _create() -> OperationResult[Appointment]:
            owner = require_identity(practitioner_id)
            if not data.patient_id:
                raise InputValidationError("Select a patient")
            if data.end_time <= data.start_time:
                raise InputValidationError("End time must be after start time")
            self._get_patient(owner, data.patient_id)

            if not data.override:
                conflicts = detect_conflicts(
                    owner,
                    data.start_time,
                    data.end_time,
                    self.appointment_repo,
                    self.patient_repo,
                )
                if conflicts:
                    return OperationResult[Appointment].conflicted(conflicts)

            appointment = Appointment(
                practitioner_id=owner,
                **data.model_dump(exclude={"override"}),
            )
            self.appointment_repo.add(appointment)
            logger.info(
                "appointment_created",
                practitioner_id=owner,
                appointment_id=appointment.id,
                conflict_check_skipped=data.override,
            )
            self.bus.publish(
                AppointmentCreated(
                    practitioner_id=owner,
                    appointment_id=appointment.id,
                    patient_id=appointment.patient_id,
                    conflict_check_skipped=data.override,
                )
            )
            return OperationResult[Appointment].ok(appointment)

        return run_operation("create_appointment", _create)

    def update_appointment(
        self,
        practitioner_id: str | None,
        appointment_id: str,
        data: AppointmentUpdate,
    ) -> OperationResult[Appointment]:
        """Apply the fields set on ``data`` to a stored appointment.

        Updates are not conflict-checked. Writing status ``completed`` runs the
        completion charge sync. A supplied price at or below zero removes any
        existing charge whatever the status. Any other price change on a completed
        appointment re-syncs its charge; clearing the price falls back to the
        practitioner default.
        """

        def _update() -> OperationResult[Appointment]:
            owner = require_identity(practitioner_id)
            stored = self._get_appointment(owner, appointment_id)

            changes = data.model_dump(exclude_unset=True)
            for field in _REQUIRED_FIELDS:
                if field in changes and changes[field] is None:
                    del changes[field]
            if "patient_id" in changes:
                self._get_patient(owner, changes["patient_id"])

            price_supplied = "price" in changes
            supplied_price: Decimal | None = changes.get("price")
            if supplied_price is not None and supplied_price <= 0:
                changes["price"] = Decimal("0")

            updated = Appointment.model_validate(
                {**stored.model_dump(), **changes, "updated_at": _utcnow()}
            )
            self.appointment_repo.save(updated)
            logger.info(
                "appointment_updated",
                practitioner_id=owner,
                appointment_id=updated.id,
                fields=sorted(changes),
            )
            self.bus.publish(
                AppointmentUpdated(
                    practitioner_id=owner,
                    appointment_id=updated.id,
                    patient_id=updated.patient_id,
                    status=updated.status,
                )
            )

            completed = updated.status == AppointmentStatus.COMPLETED
            if completed and stored.status != AppointmentStatus.COMPLETED:
                self._after_completion(updated)
            elif price_supplied and supplied_price is not None and supplied_price <= 0:
                self._sync_charge_safely(updated, supplied_price)
            elif price_supplied and completed:
                if supplied_price is None:
                    self._sync_resolved_charge(updated)
                else:
                    self._sync_charge_safely(updated, supplied_price)
            return OperationResult[Appointment].ok(updated)

        return run_operation("update_appointment", _update)

    def cancel_appointment(
        self, practitioner_id: str | None, appointment_id: str
    ) -> OperationResult[Appointment]:
        def _cancel() -> OperationResult[Appointment]:
            owner = require_identity(practitioner_id)
            stored = self._get_appointment(owner, appointment_id)
            cancelled = stored.model_copy(
                update={"status": AppointmentStatus.CANCELLED, "updated_at": _utcnow()}
            )
            self.appointment_repo.save(cancelled)
            logger.info("appointment_cancelled", practitioner_id=owner, appointment_id=appointment_id)
            self.bus.publish(
                AppointmentCancelled(
                    practitioner_id=owner,
                    appointment_id=appointment_id,
                    patient_id=cancelled.patient_id,
                )
            )
            return OperationResult[Appointment].ok(cancelled)

        return run_operation("cancel_appointment", _cancel)

    def complete_appointment(
        self, practitioner_id: str | None, appointment_id: str
    ) -> OperationResult[Appointment]:
        """Mark an appointment completed and make sure its charge exists.

        The status write is the primary effect: if it fails nothing else
        happens, and if the charge sync fails afterwards the completion stands.
        """

        def _complete() -> OperationResult[Appointment]:
            owner = require_identity(practitioner_id)
            stored = self._get_appointment(owner, appointment_id)
            completed = stored.model_copy(
                update={"status": AppointmentStatus.COMPLETED, "updated_at": _utcnow()}
            )
            self.appointment_repo.save(completed)
            logger.info("appointment_completed", practitioner_id=owner, appointment_id=appointment_id)
            self._after_completion(completed)
            return OperationResult[Appointment].ok(completed)

        return run_operation("complete_appointment", _complete)

    def check_conflicts(
        self,
        practitioner_id: str | None,
        start_time: datetime,
        end_time: datetime,
        exclude_id: str | None = None,
    ) -> OperationResult[list[ConflictingAppointment]]:
        """Preview the clashes a booking of ``[start_time, end_time)`` would hit."""

        def _check() -> OperationResult[list[ConflictingAppointment]]:
            owner = require_identity(practitioner_id)
            conflicts = detect_conflicts(
                owner,
                start_time,
                end_time,
                self.appointment_repo,
                self.patient_repo,
                exclude_id=exclude_id,
            )
            return OperationResult[list[ConflictingAppointment]](
                success=True, data=conflicts, conflicts=conflicts
            )

        return run_operation("check_conflicts", _check)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_appointment(
        self, practitioner_id: str | None, appointment_id: str
    ) -> Appointment | None:
        if not practitioner_id:
            return None
        return self.appointment_repo.get(practitioner_id, appointment_id)

    def get_day_appointments(
        self, practitioner_id: str | None, day: date | None = None
    ) -> list[DayAppointment]:
        """Active appointments starting on ``day`` (today by default) with patient details."""
        if not practitioner_id:
            return []
        tz_name = self.timezone_for(practitioner_id)
        if day is None:
            day = local_today(tz_name)
        start, end = day_bounds(day, tz_name)

        rows: list[DayAppointment] = []
        for appointment in self.appointment_repo.list_starting_between(
            practitioner_id, start, end, exclude_statuses=INACTIVE_STATUSES
        ):
            if appointment.start_time == end:
                continue
            patient = self.patient_repo.get(practitioner_id, appointment.patient_id)
            if patient is None:
                continue
            rows.append(
                DayAppointment(
                    appointment=appointment,
                    patient_name=patient.full_name,
                    patient_phone=patient.phone,
                )
            )
        return rows

    def get_appointments_in_range(
        self, practitioner_id: str | None, start: datetime, end: datetime
    ) -> list[Appointment]:
        """All appointments, whatever their status, starting within ``[start, end]``."""
        if not practitioner_id:
            return []
        return self.appointment_repo.list_starting_between(practitioner_id, start, end)

    def get_patient_appointments(
        self, practitioner_id: str | None, patient_id: str
    ) -> list[Appointment]:
        """A patient's appointments, newest first."""
        if not practitioner_id:
            return []
        return self.appointment_repo.list_for_patient(practitioner_id, patient_id)

    def day_layout(self, practitioner_id: str | None, day: date) -> DayView:
        if not practitioner_id:
            return DayView(date=day)
        tz_name = self.timezone_for(practitioner_id)
        start, end = day_bounds(day, tz_name)
        appointments = self.appointment_repo.list_starting_between(practitioner_id, start, end)
        return build_day_view(
            day, appointments, tz_name, self._patient_names(practitioner_id)
        )

    def week_layout(self, practitioner_id: str | None, day: date) -> list[DayView]:
        if not practitioner_id:
            return [DayView(date=d) for d in week_dates(day)]
        tz_name = self.timezone_for(practitioner_id)
        start, end = week_bounds(day, tz_name)
        appointments = self.appointment_repo.list_starting_between(practitioner_id, start, end)
        return build_week_view(
            day, appointments, tz_name, self._patient_names(practitioner_id)
        )

    def timezone_for(self, practitioner_id: str) -> str:
        return practitioner_timezone(self.practitioner_repo.get(practitioner_id))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_appointment(self, practitioner_id: str, appointment_id: str) -> Appointment:
        appointment = self.appointment_repo.get(practitioner_id, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    def _get_patient(self, practitioner_id: str, patient_id: str) -> Patient:
        patient = self.patient_repo.get(practitioner_id, patient_id)
        if patient is None:
            raise NotFoundError("Patient not found")
        return patient

    def _patient_names(self, practitioner_id: str) -> dict[str, str]:
        return {
            p.id: p.full_name for p in self.patient_repo.list_for_practitioner(practitioner_id)
        }

    def _after_completion(self, appointment: Appointment) -> None:
        self.bus.publish(
            AppointmentCompleted(
                practitioner_id=appointment.practitioner_id,
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
            )
        )
        self._sync_resolved_charge(appointment)

    def _sync_resolved_charge(self, appointment: Appointment) -> None:
        """Sync to the appointment's own price or the practitioner default.

        With neither set, an existing charge is left alone.
        """
        practitioner = self.practitioner_repo.get(appointment.practitioner_id)
        amount = resolve_charge_amount(appointment, practitioner)
        if amount is None:
            logger.info("completion_without_charge", appointment_id=appointment.id)
            return
        self._sync_charge_safely(appointment, amount)

    def _sync_charge_safely(self, appointment: Appointment, amount: Decimal | None) -> None:
        """Sync the charge, logging rather than raising when the ledger write fails."""
        patient = self.patient_repo.get(appointment.practitioner_id, appointment.patient_id)
        patient_name = patient.full_name if patient else UNKNOWN_PATIENT
        try:
            action, charge = sync_charge(appointment, amount, patient_name, self.payment_repo)
        except PersistenceError:
            logger.exception(
                "charge_sync_failed",
                appointment_id=appointment.id,
                amount=str(amount),
            )
            return

        if action in (ChargeSyncAction.NONE, ChargeSyncAction.UNCHANGED):
            return
        self.bus.publish(
            ChargeSynced(
                practitioner_id=appointment.practitioner_id,
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                amount=charge.amount if charge else None,
                removed=action == ChargeSyncAction.DELETED,
            )
        )
