"""Domain event handlers, wired up at application startup.

Each write marks the views that display its data as stale so cached pages
are rebuilt on their next request.
"""

from __future__ import annotations

from physio_practice.domain.bus import EventBus
from physio_practice.domain.events import (
    AppointmentCancelled,
    AppointmentCompleted,
    AppointmentCreated,
    AppointmentUpdated,
    ChargeSynced,
    ClinicalNoteDeleted,
    ClinicalNoteSaved,
    PatientCreated,
    PatientUpdated,
    PaymentDeleted,
    PaymentRecorded,
)
from physio_practice.repos.memory import RevalidationEntry, RevalidationRepository

CALENDAR_PATH = "/calendar"
DASHBOARD_PATH = "/dashboard"
FINANCIALS_PATH = "/financials"
PATIENTS_PATH = "/patients"


def patient_path(patient_id: str) -> str:
    return f"/patients/{patient_id}"


def clinical_note_path(note_id: str) -> str:
    return f"/clinical-notes/{note_id}"


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the revalidation log."""

    def __init__(self, bus: EventBus, revalidation_repo: RevalidationRepository) -> None:
        self.bus = bus
        self.revalidation_repo = revalidation_repo
        self._register()

    def _register(self) -> None:
        for event_type in (
            AppointmentCreated,
            AppointmentUpdated,
            AppointmentCancelled,
            AppointmentCompleted,
        ):
            self.bus.subscribe(event_type, self.on_appointment_changed)
        self.bus.subscribe(ChargeSynced, self.on_ledger_changed)
        self.bus.subscribe(PaymentRecorded, self.on_ledger_changed)
        self.bus.subscribe(PaymentDeleted, self.on_ledger_changed)
        self.bus.subscribe(PatientCreated, self.on_patient_changed)
        self.bus.subscribe(PatientUpdated, self.on_patient_changed)
        self.bus.subscribe(ClinicalNoteSaved, self.on_clinical_note_changed)
        self.bus.subscribe(ClinicalNoteDeleted, self.on_clinical_note_changed)

    def _revalidate(self, practitioner_id: str, reason: str, *paths: str) -> None:
        for path in paths:
            self.revalidation_repo.add(
                RevalidationEntry(practitioner_id=practitioner_id, path=path, reason=reason)
            )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_appointment_changed(
        self,
        event: AppointmentCreated
        | AppointmentUpdated
        | AppointmentCancelled
        | AppointmentCompleted,
    ) -> None:
        self._revalidate(
            event.practitioner_id,
            type(event).__name__,
            CALENDAR_PATH,
            DASHBOARD_PATH,
            patient_path(event.patient_id),
        )

    def on_ledger_changed(self, event: ChargeSynced | PaymentRecorded | PaymentDeleted) -> None:
        self._revalidate(
            event.practitioner_id,
            type(event).__name__,
            patient_path(event.patient_id),
            FINANCIALS_PATH,
            DASHBOARD_PATH,
        )

    def on_patient_changed(self, event: PatientCreated | PatientUpdated) -> None:
        self._revalidate(
            event.practitioner_id,
            type(event).__name__,
            PATIENTS_PATH,
            DASHBOARD_PATH,
            patient_path(event.patient_id),
        )

    def on_clinical_note_changed(self, event: ClinicalNoteSaved | ClinicalNoteDeleted) -> None:
        self._revalidate(
            event.practitioner_id,
            type(event).__name__,
            patient_path(event.patient_id),
            clinical_note_path(event.note_id),
        )
