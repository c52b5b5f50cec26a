"""Tests for the appointment dialog's explicit confirm/override state."""

from __future__ import annotations

from decimal import Decimal

import pytest

from physio_practice.domain.errors import FlowStateError
from physio_practice.domain.models import AppointmentCreate, AppointmentStatus
from physio_practice.services.booking_flow import (
    AwaitingCompletionConfirmation,
    AwaitingConflictResolution,
    BookingFlow,
    Idle,
)
from tests.conftest import PRACTITIONER_ID, at


@pytest.fixture()
def flow(env) -> BookingFlow:
    return BookingFlow(env.appointments, PRACTITIONER_ID)


def _payload(env, start, end) -> AppointmentCreate:
    return AppointmentCreate(patient_id=env.patient.id, start_time=start, end_time=end)


def test_clean_submit_stays_idle(env, flow):
    result = flow.submit(_payload(env, at(9), at(10)))

    assert result.success is True
    assert isinstance(flow.state, Idle)


def test_conflict_then_create_anyway(env, flow):
    existing = env.add_appointment(at(9), at(10))

    refused = flow.submit(_payload(env, at(9, 30), at(10, 30)))

    assert refused.has_conflicts
    assert isinstance(flow.state, AwaitingConflictResolution)
    assert [c.id for c in flow.state.conflicts] == [existing.id]

    created = flow.create_anyway()

    assert created.success is True
    assert isinstance(flow.state, Idle)
    assert len(env.appointment_repo.list_for_practitioner(PRACTITIONER_ID)) == 2


def test_dismiss_conflict_discards_pending(env, flow):
    env.add_appointment(at(9), at(10))
    flow.submit(_payload(env, at(9), at(10)))

    flow.dismiss()

    assert isinstance(flow.state, Idle)
    assert len(env.appointment_repo.list_for_practitioner(PRACTITIONER_ID)) == 1


def test_create_anyway_requires_pending_conflict(flow):
    with pytest.raises(FlowStateError):
        flow.create_anyway()


def test_submit_blocked_while_resolving_conflict(env, flow):
    env.add_appointment(at(9), at(10))
    flow.submit(_payload(env, at(9), at(10)))

    with pytest.raises(FlowStateError):
        flow.submit(_payload(env, at(11), at(12)))


def test_completion_needs_confirmation(env, flow):
    appointment = env.add_appointment(at(9), at(10), price=Decimal("45"))

    state = flow.request_completion(appointment.id)

    assert isinstance(state, AwaitingCompletionConfirmation)
    assert env.appointment_repo.get(PRACTITIONER_ID, appointment.id).status == (
        AppointmentStatus.SCHEDULED
    )

    result = flow.confirm_completion()

    assert result.success is True
    assert result.data.status == AppointmentStatus.COMPLETED
    assert isinstance(flow.state, Idle)
    assert [c.amount for c in env.charges_for(appointment.id)] == [Decimal("45")]


def test_confirm_completion_without_request(flow):
    with pytest.raises(FlowStateError):
        flow.confirm_completion()
