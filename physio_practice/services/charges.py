"""Service keeping a completed appointment's charge in step with its price."""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum

import structlog

from physio_practice.config import get_settings
from physio_practice.domain.models import (
    Appointment,
    Payment,
    PaymentType,
    Practitioner,
)
from physio_practice.repos.memory import PaymentRepository

logger = structlog.get_logger(__name__)


class ChargeSyncAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"
    NONE = "none"


def resolve_charge_amount(
    appointment: Appointment, practitioner: Practitioner | None
) -> Decimal | None:
    """Amount owed for a completed appointment.

    The appointment's own price wins when positive, then the practitioner's
    default session price; otherwise nothing is charged.
    """
    if appointment.price is not None and appointment.price > 0:
        return appointment.price
    if practitioner is not None and practitioner.default_session_price:
        if practitioner.default_session_price > 0:
            return practitioner.default_session_price
    return None


def charge_description(appointment: Appointment, patient_name: str) -> str:
    prefix = get_settings().default_charge_description
    return f"{prefix}: {appointment.title} ({patient_name})"


def sync_charge(
    appointment: Appointment,
    amount: Decimal | None,
    patient_name: str,
    payment_repo: PaymentRepository,
) -> tuple[ChargeSyncAction, Payment | None]:
    """Make the appointment's single charge match ``amount``.

    A missing or non-positive amount removes the charge. Calling this again
    with the same amount changes nothing, so retried completions never produce
    a second charge.
    """
    existing = payment_repo.get_charge_for_appointment(
        appointment.practitioner_id, appointment.id
    )

    if amount is None or amount <= 0:
        if existing is None:
            return ChargeSyncAction.NONE, None
        payment_repo.delete(existing.id)
        logger.info(
            "charge_deleted", appointment_id=appointment.id, payment_id=existing.id
        )
        return ChargeSyncAction.DELETED, None

    if existing is not None:
        if existing.amount == amount:
            return ChargeSyncAction.UNCHANGED, existing
        updated = existing.model_copy(update={"amount": amount})
        payment_repo.save(updated)
        logger.info(
            "charge_updated",
            appointment_id=appointment.id,
            payment_id=existing.id,
            previous_amount=str(existing.amount),
            amount=str(amount),
        )
        return ChargeSyncAction.UPDATED, updated

    charge = Payment(
        practitioner_id=appointment.practitioner_id,
        patient_id=appointment.patient_id,
        appointment_id=appointment.id,
        amount=amount,
        type=PaymentType.CHARGE,
        description=charge_description(appointment, patient_name),
    )
    payment_repo.add(charge)
    logger.info(
        "charge_created",
        appointment_id=appointment.id,
        payment_id=charge.id,
        amount=str(amount),
    )
    return ChargeSyncAction.CREATED, charge
