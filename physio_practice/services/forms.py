"""Service for turning appointment dialog input into an AppointmentCreate."""

from __future__ import annotations

from datetime import datetime, timezone

import dateparser

from physio_practice.domain.errors import InputValidationError
from physio_practice.domain.models import AppointmentCreate, AppointmentForm
from physio_practice.services.calendar import resolve_timezone


def _parse_local(day: str, clock: str, tz_name: str) -> datetime | None:
    """Parse a date plus wall-clock time in ``tz_name``, returning a UTC datetime."""
    settings = {
        "DATE_ORDER": "YMD",
        "TIMEZONE": tz_name,
        "TO_TIMEZONE": "UTC",
        "RETURN_AS_TIMEZONE_AWARE": True,
    }
    result = dateparser.parse(f"{day} {clock}", languages=["en"], settings=settings)
    if result is None:
        return None
    return result.astimezone(timezone.utc)


def parse_appointment_form(form: AppointmentForm, tz_name: str) -> AppointmentCreate:
    """Validate dialog input and build the create payload.

    Raises ``InputValidationError`` when no patient is selected, a time can't
    be read, or the end is not after the start.
    """
    if not form.patient_id:
        raise InputValidationError("Select a patient")
    resolve_timezone(tz_name)

    start_time = _parse_local(form.date, form.start_time, tz_name)
    if start_time is None:
        raise InputValidationError(f"Could not read start time: {form.date} {form.start_time}")
    end_time = _parse_local(form.date, form.end_time, tz_name)
    if end_time is None:
        raise InputValidationError(f"Could not read end time: {form.date} {form.end_time}")
    if end_time <= start_time:
        raise InputValidationError("End time must be after start time")

    return AppointmentCreate(
        patient_id=form.patient_id,
        title=form.title.strip() or "Physiotherapy session",
        description=form.description or None,
        start_time=start_time,
        end_time=end_time,
        appointment_type=form.appointment_type,
        notes=form.notes or None,
        price=form.price,
        override=form.override,
    )
