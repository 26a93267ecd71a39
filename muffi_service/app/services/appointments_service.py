"""예약 서비스.

예약/취소/평가가 원장에 남기는 부수 효과를 담당한다. 원장 쓰기에는 모두
예약 id 기반 idempotency key 를 붙여서, 같은 단계를 다시 실행해도 두 번 기록되지 않는다.

- 예약: appointment:<id>:booking (spent)
- 예약 저장 실패 보상: appointment:<id>:booking-reversal (refund)
- 취소/거절 환불: appointment:<id>:refund (earned)
- 평가 정산: appointment:<id>:rating (earned / deducted)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database
from common.mongo.types import new_object_id_str
from common.types.datetime import start_of_day_utc

from ..exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailure,
)
from ..models.appointment import (
    CANCELLABLE_STATUSES,
    Appointment,
    AppointmentStatus,
    BookingInput,
    compute_final_credit_cost,
)
from ..models.credit import RelatedType
from ..models.service import PersistedServiceRef
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.interfaces import (
    AccountRepositoryInterface,
    AppointmentRepositoryInterface,
    ServiceRepositoryInterface,
)
from .catalog_service import get_service_repository
from .ledger_service import LedgerService, get_account_repository, get_ledger_service


logger = logging.getLogger(__name__)


class AppointmentsService:
    """예약 생명주기(pending -> confirmed -> completed / cancelled) 비즈니스 로직."""

    def __init__(
        self,
        appointment_repo: AppointmentRepositoryInterface,
        service_repo: ServiceRepositoryInterface,
        account_repo: AccountRepositoryInterface,
        ledger: LedgerService,
    ) -> None:
        self._appointment_repo = appointment_repo
        self._service_repo = service_repo
        self._account_repo = account_repo
        self._ledger = ledger

    def book(self, user_code: str, input_model: BookingInput) -> Appointment:
        """서비스를 예약하고 비용을 차감한다.

        차감이 먼저 일어나고, 예약 저장이 실패하면 차감분을 환불한 뒤 예외를 다시 던진다.
        잔액이 부족하면 예약은 만들어지지 않는다.
        """
        account = self._account_repo.find_by_user_code(user_code)
        if account is None:
            raise NotFoundError(f"account not found: {user_code}")

        selection = input_model.service
        if isinstance(selection, PersistedServiceRef):
            service = self._service_repo.find_by_id(selection.service_id)
            if service is None:
                raise NotFoundError(f"service not found: {selection.service_id}")
            service_id: str | None = service.id
            name = service.name
            description = service.description
            credit_cost = service.credit_cost
            category = service.category
        else:
            name = selection.name.strip()
            if not name:
                raise ValidationFailure("service name is required")
            service_id = None
            description = selection.description
            credit_cost = selection.credit_cost
            category = selection.category

        appointment_id = new_object_id_str()

        if credit_cost > 0:
            self._ledger.spend_credits(
                user_code,
                credit_cost,
                f"Booked service: {name}",
                related_id=appointment_id,
                related_type=RelatedType.APPOINTMENT,
                idempotency_key=f"appointment:{appointment_id}:booking",
            )

        now = datetime.now(timezone.utc)
        appointment = Appointment(
            id=appointment_id,
            user_code=user_code,
            partner_code=account.partner_code or user_code,
            service_id=service_id,
            service_kind=selection.kind,
            service_name=name,
            description=description,
            date=start_of_day_utc(input_model.date),
            time=input_model.time,
            location=input_model.location,
            notes=input_model.notes,
            moodboard_id=input_model.moodboard_id,
            category=category,
            credit_cost=credit_cost,
            created_at=now,
            updated_at=now,
        )

        try:
            created = self._appointment_repo.insert(appointment)
        except Exception:
            logger.exception(
                "failed to store appointment, refunding booking (appointment_id=%s)",
                appointment_id,
                extra={"user_code": user_code},
            )
            if credit_cost > 0:
                self._ledger.refund(
                    user_code,
                    credit_cost,
                    f"Booking failed: {name}",
                    related_id=appointment_id,
                    related_type=RelatedType.APPOINTMENT,
                    idempotency_key=f"appointment:{appointment_id}:booking-reversal",
                )
            raise

        logger.info(
            "appointment booked (appointment_id=%s, cost=%s)",
            appointment_id,
            credit_cost,
            extra={"user_code": user_code},
        )
        return created

    def get(self, user_code: str, appointment_id: str) -> Appointment:
        return self._get_for_participant(user_code, appointment_id)

    def list_for_user(self, user_code: str) -> list[Appointment]:
        return self._appointment_repo.list_for_user(user_code)

    def accept(self, user_code: str, appointment_id: str) -> Appointment:
        appointment = self._get_for_participant(user_code, appointment_id)
        if user_code != appointment.partner_code:
            raise UnauthorizedError("only the partner can accept this appointment")

        updated = self._appointment_repo.transition(
            appointment_id,
            (AppointmentStatus.PENDING,),
            AppointmentStatus.CONFIRMED,
            {"is_active": True},
        )
        if updated is None:
            raise ConflictError("only pending appointments can be accepted")
        return updated

    def decline(self, user_code: str, appointment_id: str) -> Appointment:
        appointment = self._get_for_participant(user_code, appointment_id)
        if user_code != appointment.partner_code:
            raise UnauthorizedError("only the partner can decline this appointment")
        return self._cancel(appointment, "Refund for declined appointment")

    def cancel(self, user_code: str, appointment_id: str) -> Appointment:
        appointment = self._get_for_participant(user_code, appointment_id)
        return self._cancel(appointment, "Refund for cancelled appointment")

    def complete(self, user_code: str, appointment_id: str) -> Appointment:
        self._get_for_participant(user_code, appointment_id)
        updated = self._appointment_repo.transition(
            appointment_id,
            (AppointmentStatus.CONFIRMED,),
            AppointmentStatus.COMPLETED,
            {"completed_at": datetime.now(timezone.utc), "is_active": False},
        )
        if updated is None:
            raise ConflictError("only confirmed appointments can be completed")
        return updated

    def rate(
        self,
        user_code: str,
        appointment_id: str,
        rating: int,
        feedback: str | None = None,
    ) -> tuple[Appointment, int]:
        """완료된 예약을 평가하고 (예약, 크레딧 변동량) 을 반환한다.

        최종 비용은 credit_cost x 배율(반올림)이고, 차이만큼 평가자에게 적립/차감한다.
        credit_cost 자체는 바뀌지 않는다.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationFailure("rating must be an integer between 1 and 5")

        appointment = self._get_for_participant(user_code, appointment_id)
        if appointment.status != AppointmentStatus.COMPLETED:
            raise ValidationFailure("only completed appointments can be rated")

        final_credit_cost = compute_final_credit_cost(appointment.credit_cost, rating)
        updated = self._appointment_repo.set_rating(
            appointment_id, rating, feedback, final_credit_cost, rated_by=user_code
        )
        if updated is None:
            current = self._appointment_repo.find_by_id(appointment_id)
            if current is not None and current.rating is not None:
                # 이전 평가의 정산이 중간에 끊겼다면 여기서 마저 기록된다.
                self._settle_rating(current)
            raise ConflictError("appointment already rated")

        delta = self._settle_rating(updated)
        return updated, delta

    def _settle_rating(self, appointment: Appointment) -> int:
        assert appointment.rating is not None and appointment.final_credit_cost is not None
        delta = appointment.final_credit_cost - appointment.credit_cost
        if delta == 0:
            return 0

        rater = appointment.rated_by or appointment.user_code
        reason = f"Appointment rating: {appointment.rating}/5 stars"
        key = f"appointment:{appointment.id}:rating"
        metadata = {
            "appointment_id": appointment.id,
            "rating": appointment.rating,
            "credit_cost": appointment.credit_cost,
            "final_credit_cost": appointment.final_credit_cost,
        }
        if delta > 0:
            tx = self._ledger.add_credits(
                rater,
                delta,
                reason,
                related_id=appointment.id,
                related_type=RelatedType.APPOINTMENT,
                idempotency_key=key,
                metadata=metadata,
            )
        else:
            tx = self._ledger.deduct_credits(
                rater,
                -delta,
                reason,
                related_id=appointment.id,
                related_type=RelatedType.APPOINTMENT,
                idempotency_key=key,
                metadata=metadata,
            )
        # 차감은 잔액까지만 되므로 실제로 기록된 금액을 돌려준다.
        return tx.signed_amount if tx is not None else 0

    def _cancel(self, appointment: Appointment, reason: str) -> Appointment:
        """pending/confirmed -> cancelled 전이 후 예약 비용 전액을 예약자에게 환불한다.

        이미 취소된 예약이면 환불만 다시 시도한다 (idempotency key 로 한 번만 기록).
        """
        assert appointment.id is not None
        if appointment.status == AppointmentStatus.COMPLETED:
            raise ConflictError("completed appointments cannot be cancelled")

        cancelled = self._appointment_repo.transition(
            appointment.id,
            CANCELLABLE_STATUSES,
            AppointmentStatus.CANCELLED,
            {"cancelled_at": datetime.now(timezone.utc), "is_active": False},
        )
        if cancelled is None:
            current = self._appointment_repo.find_by_id(appointment.id)
            if current is None or current.status != AppointmentStatus.CANCELLED:
                raise ConflictError("appointment can no longer be cancelled")
            cancelled = current

        if cancelled.credit_cost > 0:
            self._ledger.add_credits(
                cancelled.user_code,
                cancelled.credit_cost,
                f"{reason}: {cancelled.service_name}",
                related_id=cancelled.id,
                related_type=RelatedType.APPOINTMENT,
                idempotency_key=f"appointment:{cancelled.id}:refund",
            )
        return cancelled

    def _get_for_participant(self, user_code: str, appointment_id: str) -> Appointment:
        appointment = self._appointment_repo.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError(f"appointment not found: {appointment_id}")
        if not appointment.is_participant(user_code):
            raise UnauthorizedError("not authorized to access this appointment")
        return appointment


def get_appointment_repository(
    db: Database = Depends(get_database),
) -> AppointmentRepositoryInterface:
    """FastAPI DI용 AppointmentRepository 팩토리."""

    return AppointmentRepository(db)


def get_appointments_service(
    appointment_repo: AppointmentRepositoryInterface = Depends(get_appointment_repository),
    service_repo: ServiceRepositoryInterface = Depends(get_service_repository),
    account_repo: AccountRepositoryInterface = Depends(get_account_repository),
    ledger: LedgerService = Depends(get_ledger_service),
) -> AppointmentsService:
    """FastAPI DI용 AppointmentsService 팩토리."""

    return AppointmentsService(appointment_repo, service_repo, account_repo, ledger)
