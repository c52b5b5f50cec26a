"""Patient records: registration, edits, discharge and the searchable list."""

from __future__ import annotations

import math
from datetime import datetime, timezone

import structlog

from physio_practice.domain.bus import EventBus
from physio_practice.domain.errors import InputValidationError, NotFoundError
from physio_practice.domain.events import PatientCreated, PatientUpdated
from physio_practice.domain.models import (
    OperationResult,
    Patient,
    PatientCreate,
    PatientPage,
    PatientStatus,
    PatientUpdate,
)
from physio_practice.repos.memory import PatientRepository
from physio_practice.services.operations import require_identity, run_operation

logger = structlog.get_logger(__name__)

# Fields an update may not clear; an explicit null is ignored.
_REQUIRED_FIELDS = (
    "full_name",
    "gender",
    "status",
    "allergies",
    "current_medications",
    "chronic_conditions",
)


def _matches(patient: Patient, needle: str) -> bool:
    haystacks = (patient.full_name, patient.phone or "", patient.email or "")
    return any(needle in value.lower() for value in haystacks)


class PatientService:
    def __init__(self, patient_repo: PatientRepository, bus: EventBus) -> None:
        self.patient_repo = patient_repo
        self.bus = bus

    def create_patient(
        self, practitioner_id: str | None, data: PatientCreate
    ) -> OperationResult[Patient]:
        def _create() -> OperationResult[Patient]:
            owner = require_identity(practitioner_id)
            if not data.full_name:
                raise InputValidationError("Patient name is required")
            patient = Patient(practitioner_id=owner, **data.model_dump())
            self.patient_repo.add(patient)
            logger.info("patient_created", practitioner_id=owner, patient_id=patient.id)
            self.bus.publish(PatientCreated(practitioner_id=owner, patient_id=patient.id))
            return OperationResult[Patient].ok(patient)

        return run_operation("create_patient", _create)

    def update_patient(
        self, practitioner_id: str | None, patient_id: str, data: PatientUpdate
    ) -> OperationResult[Patient]:
        def _update() -> OperationResult[Patient]:
            owner = require_identity(practitioner_id)
            stored = self._get_patient(owner, patient_id)

            changes = data.model_dump(exclude_unset=True)
            for field in _REQUIRED_FIELDS:
                if field in changes and changes[field] is None:
                    del changes[field]
            if "full_name" in changes:
                changes["full_name"] = changes["full_name"].strip()
                if not changes["full_name"]:
                    raise InputValidationError("Patient name is required")

            updated = Patient.model_validate(
                {**stored.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
            )
            self._save(owner, updated, fields=sorted(changes))
            return OperationResult[Patient].ok(updated)

        return run_operation("update_patient", _update)

    def discharge_patient(
        self, practitioner_id: str | None, patient_id: str
    ) -> OperationResult[Patient]:
        """Mark the patient discharged; their appointments and ledger are kept."""

        def _discharge() -> OperationResult[Patient]:
            owner = require_identity(practitioner_id)
            stored = self._get_patient(owner, patient_id)
            discharged = stored.model_copy(
                update={
                    "status": PatientStatus.DISCHARGED,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            self._save(owner, discharged, fields=["status"])
            return OperationResult[Patient].ok(discharged)

        return run_operation("discharge_patient", _discharge)

    def get_patient(self, practitioner_id: str | None, patient_id: str) -> Patient | None:
        if not practitioner_id:
            return None
        return self.patient_repo.get(practitioner_id, patient_id)

    def list_patients(
        self,
        practitioner_id: str | None,
        page: int = 1,
        page_size: int = 10,
        search: str | None = None,
        status: PatientStatus | None = None,
    ) -> PatientPage:
        """Newest patients first, filtered by name/phone/email substring and status."""
        page = max(page, 1)
        page_size = max(page_size, 1)
        if not practitioner_id:
            return PatientPage(page=page, page_size=page_size)

        patients = sorted(
            self.patient_repo.list_for_practitioner(practitioner_id),
            key=lambda p: p.created_at,
            reverse=True,
        )
        if search and search.strip():
            needle = search.strip().lower()
            patients = [p for p in patients if _matches(p, needle)]
        if status is not None:
            patients = [p for p in patients if p.status == status]

        offset = (page - 1) * page_size
        return PatientPage(
            patients=patients[offset : offset + page_size],
            count=len(patients),
            page=page,
            page_size=page_size,
            total_pages=math.ceil(len(patients) / page_size),
        )

    def active_patients(self, practitioner_id: str | None) -> list[Patient]:
        """Active patients by name, for booking pickers."""
        if not practitioner_id:
            return []
        return [
            p
            for p in self.patient_repo.list_for_practitioner(practitioner_id)
            if p.status == PatientStatus.ACTIVE
        ]

    def _get_patient(self, practitioner_id: str, patient_id: str) -> Patient:
        patient = self.patient_repo.get(practitioner_id, patient_id)
        if patient is None:
            raise NotFoundError("Patient not found")
        return patient

    def _save(self, owner: str, patient: Patient, fields: list[str]) -> None:
        self.patient_repo.save(patient)
        logger.info("patient_updated", practitioner_id=owner, patient_id=patient.id, fields=fields)
        self.bus.publish(
            PatientUpdated(practitioner_id=owner, patient_id=patient.id, status=patient.status)
        )
