"""End-to-end tests for the HTTP adapter."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from physio_practice.domain.models import Patient, Practitioner
from physio_practice.main import (
    app,
    appointment_repo,
    note_repo,
    patient_repo,
    payment_repo,
    practitioner_repo,
    revalidation_repo,
)

_PRACTITIONER = "api-therapist"
_HEADERS = {"X-Practitioner-Id": _PRACTITIONER}


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset in-memory repos before each test."""
    for repo in (practitioner_repo, patient_repo, appointment_repo, payment_repo, note_repo):
        repo._store.clear()
    revalidation_repo._entries.clear()
    yield
    for repo in (practitioner_repo, patient_repo, appointment_repo, payment_repo, note_repo):
        repo._store.clear()
    revalidation_repo._entries.clear()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def patient() -> Patient:
    practitioner_repo.add(
        Practitioner(
            id=_PRACTITIONER,
            full_name="Laura Gómez",
            email="laura@example.com",
            default_session_price=50,
            timezone="Europe/Madrid",
        )
    )
    ana = Patient(practitioner_id=_PRACTITIONER, full_name="Ana Martínez")
    patient_repo.add(ana)
    return ana


def _iso(hour: int, minute: int = 0) -> str:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc).isoformat()


def _book(client, patient, start, end, **extra):
    body = {"patient_id": patient.id, "title": "Session", "start_time": start, "end_time": end}
    body.update(extra)
    return client.post("/appointments", json=body, headers=_HEADERS)


def test_create_then_conflict_then_override(client, patient):
    first = _book(client, patient, _iso(9), _iso(10))
    assert first.status_code == 201
    assert first.json()["success"] is True

    clash = _book(client, patient, _iso(9, 30), _iso(10, 30))
    assert clash.status_code == 409
    body = clash.json()
    assert body["success"] is False
    assert body["error"] is None
    assert body["conflicts"][0]["patient_name"] == "Ana Martínez"

    forced = _book(client, patient, _iso(9, 30), _iso(10, 30), override=True)
    assert forced.status_code == 201
    assert len(appointment_repo.list_for_practitioner(_PRACTITIONER)) == 2


def test_create_without_identity(client, patient):
    response = client.post(
        "/appointments",
        json={"patient_id": patient.id, "start_time": _iso(9), "end_time": _iso(10)},
    )
    assert response.status_code == 401


def test_create_from_form_uses_practitioner_zone(client, patient):
    response = client.post(
        "/appointments/form",
        json={"patient_id": patient.id, "date": "2026-03-02", "start_time": "09:00", "end_time": "10:00"},
        headers=_HEADERS,
    )

    assert response.status_code == 201
    created = appointment_repo.get(_PRACTITIONER, response.json()["data"]["id"])
    assert created.start_time == datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def test_form_without_patient_is_rejected(client, patient):
    response = client.post("/appointments/form", json={"date": "2026-03-02"}, headers=_HEADERS)

    assert response.status_code == 422
    assert response.json()["error"] == "Select a patient"


def test_complete_creates_default_price_charge(client, patient):
    created = _book(client, patient, _iso(9), _iso(10)).json()["data"]

    first = client.post(f"/appointments/{created['id']}/complete", headers=_HEADERS)
    again = client.post(f"/appointments/{created['id']}/complete", headers=_HEADERS)

    assert first.status_code == 200
    assert again.status_code == 200
    balance = client.get(f"/patients/{patient.id}/balance", headers=_HEADERS).json()
    assert balance["balance"] == "50"


def test_complete_missing_appointment(client, patient):
    response = client.post("/appointments/missing/complete", headers=_HEADERS)

    assert response.status_code == 404
    assert response.json()["error"] == "Appointment not found"


def test_update_price_to_zero_after_completion(client, patient):
    created = _book(client, patient, _iso(9), _iso(10), price="100").json()["data"]
    client.post(f"/appointments/{created['id']}/complete", headers=_HEADERS)

    response = client.patch(
        f"/appointments/{created['id']}", json={"price": "0"}, headers=_HEADERS
    )

    assert response.status_code == 200
    history = client.get(f"/patients/{patient.id}/payments", headers=_HEADERS).json()
    assert history == []


def test_conflict_preview_excludes_edited_appointment(client, patient):
    created = _book(client, patient, _iso(9), _iso(10)).json()["data"]

    response = client.get(
        "/appointments/conflicts",
        params={"start_time": _iso(9), "end_time": _iso(10), "exclude_id": created["id"]},
        headers=_HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["data"] == []


def test_calendar_day_layout(client, patient):
    _book(client, patient, _iso(9), _iso(10))
    _book(client, patient, _iso(9, 30), _iso(10, 30), override=True)

    response = client.get("/calendar/day", params={"day": "2026-03-02"}, headers=_HEADERS)

    assert response.status_code == 200
    blocks = response.json()["blocks"]
    assert [(b["column_index"], b["total_columns"]) for b in blocks] == [(0, 2), (1, 2)]


def test_cancel_then_revalidation_paths(client, patient):
    created = _book(client, patient, _iso(9), _iso(10)).json()["data"]
    client.post("/revalidations/ack", headers=_HEADERS)

    response = client.post(f"/appointments/{created['id']}/cancel", headers=_HEADERS)

    assert response.json()["data"]["status"] == "cancelled"
    paths = client.get("/revalidations", headers=_HEADERS).json()["paths"]
    assert paths == ["/calendar", "/dashboard", f"/patients/{patient.id}"]


def test_financials(client, patient):
    created = _book(client, patient, _iso(9), _iso(10), price="80").json()["data"]
    client.post(f"/appointments/{created['id']}/complete", headers=_HEADERS)
    client.post(
        "/payments",
        json={"patient_id": patient.id, "amount": "30", "payment_method": "cash"},
        headers=_HEADERS,
    )

    stats = client.get("/financials/stats", headers=_HEADERS).json()
    owing = client.get("/financials/patients-with-balance", headers=_HEADERS).json()

    assert stats["pending_balance"] == "50"
    assert stats["patients_with_balance"] == 1
    assert owing[0]["patient_id"] == patient.id


def test_conflict_preview_with_naive_times(client, patient):
    created = _book(client, patient, _iso(9), _iso(10)).json()["data"]

    response = client.get(
        "/appointments/conflicts",
        params={"start_time": "2026-03-02T09:30:00", "end_time": "2026-03-02T10:30:00"},
        headers=_HEADERS,
    )

    assert response.status_code == 200
    assert [c["id"] for c in response.json()["data"]] == [created["id"]]


def test_range_listing_with_naive_bounds(client, patient):
    _book(client, patient, _iso(9), _iso(10))

    response = client.get(
        "/appointments",
        params={"start": "2026-03-02T00:00:00", "end": "2026-03-02T23:59:00"},
        headers=_HEADERS,
    )

    assert response.status_code == 200
    assert len(response.json()) == 1


def test_register_patient_then_book(client):
    created = client.post(
        "/patients", json={"full_name": "Luis Pérez", "phone": "600333444"}, headers=_HEADERS
    )

    assert created.status_code == 201
    patient_id = created.json()["data"]["id"]
    booked = client.post(
        "/appointments",
        json={"patient_id": patient_id, "start_time": _iso(9), "end_time": _iso(10)},
        headers=_HEADERS,
    )
    assert booked.status_code == 201
    listing = client.get("/patients", params={"search": "luis"}, headers=_HEADERS).json()
    assert [p["id"] for p in listing["patients"]] == [patient_id]


def test_discharged_patient_leaves_active_list(client, patient):
    response = client.post(f"/patients/{patient.id}/discharge", headers=_HEADERS)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "discharged"
    assert client.get("/patients/active", headers=_HEADERS).json() == []


def test_clinical_note_for_appointment(client, patient):
    appointment = _book(client, patient, _iso(9), _iso(10)).json()["data"]

    created = client.post(
        "/clinical-notes",
        json={
            "patient_id": patient.id,
            "appointment_id": appointment["id"],
            "session_date": "2026-03-02",
            "pain_level_before": 6,
            "pain_level_after": 3,
        },
        headers=_HEADERS,
    )

    assert created.status_code == 201
    note = client.get(f"/appointments/{appointment['id']}/note", headers=_HEADERS).json()
    assert note["id"] == created.json()["data"]["id"]
    notes = client.get(f"/patients/{patient.id}/notes", headers=_HEADERS).json()
    assert len(notes) == 1


def test_missing_clinical_note(client, patient):
    response = client.get("/clinical-notes/missing", headers=_HEADERS)

    assert response.status_code == 404
