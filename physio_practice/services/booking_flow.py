"""Explicit state for the appointment dialog's confirm-and-override steps."""

from __future__ import annotations

from typing import Literal

import structlog
from pydantic import BaseModel, Field

from physio_practice.domain.errors import FlowStateError
from physio_practice.domain.models import (
    Appointment,
    AppointmentCreate,
    ConflictingAppointment,
    OperationResult,
)
from physio_practice.services.appointments import AppointmentService

logger = structlog.get_logger(__name__)


class Idle(BaseModel):
    kind: Literal["idle"] = "idle"


class AwaitingConflictResolution(BaseModel):
    """A create was refused for clashing; the caller may create anyway or dismiss."""

    kind: Literal["awaiting_conflict_resolution"] = "awaiting_conflict_resolution"
    conflicts: list[ConflictingAppointment] = Field(min_length=1)
    pending: AppointmentCreate


class AwaitingCompletionConfirmation(BaseModel):
    kind: Literal["awaiting_completion_confirmation"] = "awaiting_completion_confirmation"
    appointment_id: str


FlowState = Idle | AwaitingConflictResolution | AwaitingCompletionConfirmation


class BookingFlow:
    """Drives one practitioner's dialog through create and complete confirmations.

    Every transition not listed below raises ``FlowStateError``:

    - ``Idle --submit--> Idle | AwaitingConflictResolution``
    - ``AwaitingConflictResolution --create_anyway--> Idle``
    - ``Idle --request_completion--> AwaitingCompletionConfirmation``
    - ``AwaitingCompletionConfirmation --confirm_completion--> Idle``
    - ``any --dismiss--> Idle``
    """

    def __init__(self, service: AppointmentService, practitioner_id: str | None) -> None:
        self.service = service
        self.practitioner_id = practitioner_id
        self.state: FlowState = Idle()

    def submit(self, data: AppointmentCreate) -> OperationResult[Appointment]:
        self._expect(Idle, "submit")
        result = self.service.create_appointment(self.practitioner_id, data)
        if result.has_conflicts:
            self.state = AwaitingConflictResolution(conflicts=result.conflicts, pending=data)
        return result

    def create_anyway(self) -> OperationResult[Appointment]:
        state = self._expect(AwaitingConflictResolution, "create_anyway")
        pending = state.pending.model_copy(update={"override": True})
        result = self.service.create_appointment(self.practitioner_id, pending)
        self.state = Idle()
        return result

    def request_completion(self, appointment_id: str) -> AwaitingCompletionConfirmation:
        self._expect(Idle, "request_completion")
        self.state = AwaitingCompletionConfirmation(appointment_id=appointment_id)
        return self.state

    def confirm_completion(self) -> OperationResult[Appointment]:
        state = self._expect(AwaitingCompletionConfirmation, "confirm_completion")
        result = self.service.complete_appointment(self.practitioner_id, state.appointment_id)
        self.state = Idle()
        return result

    def dismiss(self) -> None:
        self.state = Idle()

    def _expect(self, state_type: type, action: str):
        if not isinstance(self.state, state_type):
            logger.info("flow_transition_rejected", action=action, state=self.state.kind)
            raise FlowStateError(f"Cannot {action.replace('_', ' ')} while {self.state.kind}")
        return self.state
