"""Tests for parsing appointment dialog input."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from physio_practice.domain.errors import InputValidationError
from physio_practice.domain.models import AppointmentForm
from physio_practice.services.forms import parse_appointment_form


def test_times_are_read_in_practitioner_zone():
    form = AppointmentForm(patient_id="p1", date="2026-03-02", start_time="09:00", end_time="10:00")

    data = parse_appointment_form(form, "Europe/Madrid")

    assert data.start_time == datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
    assert data.end_time == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    assert data.patient_id == "p1"
    assert data.override is False


def test_blank_optional_fields_become_none():
    form = AppointmentForm(patient_id="p1", date="2026-03-02", title="  ")

    data = parse_appointment_form(form, "UTC")

    assert data.title == "Physiotherapy session"
    assert data.notes is None
    assert data.description is None


def test_missing_patient_rejected():
    form = AppointmentForm(date="2026-03-02")

    with pytest.raises(InputValidationError, match="Select a patient"):
        parse_appointment_form(form, "UTC")


def test_end_before_start_rejected():
    form = AppointmentForm(patient_id="p1", date="2026-03-02", start_time="11:00", end_time="10:00")

    with pytest.raises(InputValidationError, match="End time must be after start time"):
        parse_appointment_form(form, "UTC")


def test_unreadable_time_rejected():
    form = AppointmentForm(patient_id="p1", date="2026-03-02", start_time="whenever")

    with pytest.raises(InputValidationError):
        parse_appointment_form(form, "UTC")
