"""Patient ledger: payments received, balances and practice-wide totals.

A patient's balance is the sum of their charges minus the sum of their
payments; a positive balance is money still owed to the practitioner.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog

from physio_practice.config import get_settings
from physio_practice.domain.bus import EventBus
from physio_practice.domain.errors import NotFoundError
from physio_practice.domain.events import PaymentDeleted, PaymentRecorded
from physio_practice.domain.models import (
    FinancialStats,
    OperationResult,
    Payment,
    PaymentCreate,
    PatientBalance,
    PaymentType,
    to_utc,
)
from physio_practice.repos.memory import PatientRepository, PaymentRepository
from physio_practice.services.operations import require_identity, run_operation

logger = structlog.get_logger(__name__)


def signed_amount(payment: Payment) -> Decimal:
    """Charges raise what the patient owes, payments lower it."""
    return payment.amount if payment.type == PaymentType.CHARGE else -payment.amount


class PaymentService:
    def __init__(
        self,
        payment_repo: PaymentRepository,
        patient_repo: PatientRepository,
        bus: EventBus,
    ) -> None:
        self.payment_repo = payment_repo
        self.patient_repo = patient_repo
        self.bus = bus

    def record_payment(
        self, practitioner_id: str | None, data: PaymentCreate
    ) -> OperationResult[Payment]:
        def _record() -> OperationResult[Payment]:
            owner = require_identity(practitioner_id)
            if self.patient_repo.get(owner, data.patient_id) is None:
                raise NotFoundError("Patient not found")
            payment = Payment(
                practitioner_id=owner,
                patient_id=data.patient_id,
                amount=data.amount,
                type=PaymentType.PAYMENT,
                payment_method=data.payment_method,
                description=data.description or get_settings().default_payment_description,
            )
            self.payment_repo.add(payment)
            logger.info(
                "payment_recorded",
                practitioner_id=owner,
                patient_id=data.patient_id,
                payment_id=payment.id,
                amount=str(payment.amount),
            )
            self.bus.publish(
                PaymentRecorded(
                    practitioner_id=owner,
                    patient_id=payment.patient_id,
                    payment_id=payment.id,
                )
            )
            return OperationResult[Payment].ok(payment)

        return run_operation("record_payment", _record)

    def delete_payment(
        self, practitioner_id: str | None, payment_id: str
    ) -> OperationResult[None]:
        def _delete() -> OperationResult[None]:
            owner = require_identity(practitioner_id)
            payment = self.payment_repo.get(owner, payment_id)
            if payment is None:
                raise NotFoundError("Payment not found")
            self.payment_repo.delete(payment_id)
            logger.info("payment_deleted", practitioner_id=owner, payment_id=payment_id)
            self.bus.publish(
                PaymentDeleted(
                    practitioner_id=owner,
                    patient_id=payment.patient_id,
                    payment_id=payment_id,
                )
            )
            return OperationResult[None].ok()

        return run_operation("delete_payment", _delete)

    def patient_history(self, practitioner_id: str | None, patient_id: str) -> list[Payment]:
        if not practitioner_id:
            return []
        return self.payment_repo.list_for_patient(practitioner_id, patient_id)

    def patient_balance(self, practitioner_id: str | None, patient_id: str) -> Decimal:
        if not practitioner_id:
            return Decimal("0")
        return sum(
            (signed_amount(p) for p in self.payment_repo.list_for_patient(practitioner_id, patient_id)),
            Decimal("0"),
        )

    def financial_stats(
        self, practitioner_id: str | None, now: datetime | None = None
    ) -> FinancialStats:
        """Totals across every patient; monthly income counts payments since the 1st."""
        if not practitioner_id:
            return FinancialStats()
        now = to_utc(now) if now is not None else datetime.now(timezone.utc)
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        stats = FinancialStats()
        total_charges = Decimal("0")
        balances: dict[str, Decimal] = {}
        for payment in self.payment_repo.list_for_practitioner(practitioner_id):
            balances[payment.patient_id] = (
                balances.get(payment.patient_id, Decimal("0")) + signed_amount(payment)
            )
            if payment.type == PaymentType.CHARGE:
                total_charges += payment.amount
                continue
            stats.total_income += payment.amount
            if payment.created_at >= start_of_month:
                stats.monthly_income += payment.amount

        stats.pending_balance = total_charges - stats.total_income
        stats.patients_with_balance = sum(1 for b in balances.values() if b > 0)
        return stats

    def patients_with_balance(self, practitioner_id: str | None) -> list[PatientBalance]:
        """Patients who still owe money, largest balance first."""
        if not practitioner_id:
            return []

        by_patient: dict[str, PatientBalance] = {}
        for payment in self.payment_repo.list_for_practitioner(practitioner_id):
            entry = by_patient.get(payment.patient_id)
            if entry is None:
                patient = self.patient_repo.get(practitioner_id, payment.patient_id)
                if patient is None:
                    continue
                entry = PatientBalance(
                    patient_id=patient.id, full_name=patient.full_name, phone=patient.phone
                )
                by_patient[patient.id] = entry
            if payment.type == PaymentType.CHARGE:
                entry.total_charges += payment.amount
            else:
                entry.total_payments += payment.amount

        owing = [b for b in by_patient.values() if b.balance > 0]
        return sorted(owing, key=lambda b: b.balance, reverse=True)
