from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from common.types.datetime import UtcDateTime

from ...models.appointment import Appointment


class BookPersistedServiceRequest(BaseModel):
    """저장된 서비스 예약 요청 (/services/{service_id}/book/{user_code})."""

    date: dt.date
    time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    location: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=500)
    moodboard_id: str | None = None


class RateAppointmentRequest(BaseModel):
    # 범위 검사는 서비스에서 ValidationFailure 로 처리한다.
    rating: int
    feedback: str | None = Field(default=None, max_length=500)


class AppointmentResponse(BaseModel):
    id: str | None
    user_code: str
    partner_code: str
    service_id: str | None
    service_kind: str
    service_name: str
    description: str
    date: UtcDateTime
    time: str
    location: str | None
    notes: str | None
    moodboard_id: str | None
    category: str
    credit_cost: int
    status: str
    is_active: bool
    rating: int | None
    feedback: str | None
    final_credit_cost: int | None
    completed_at: UtcDateTime | None
    cancelled_at: UtcDateTime | None
    created_at: UtcDateTime
    updated_at: UtcDateTime

    @classmethod
    def from_domain(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            user_code=appointment.user_code,
            partner_code=appointment.partner_code,
            service_id=appointment.service_id,
            service_kind=appointment.service_kind,
            service_name=appointment.service_name,
            description=appointment.description,
            date=appointment.date,
            time=appointment.time,
            location=appointment.location,
            notes=appointment.notes,
            moodboard_id=appointment.moodboard_id,
            category=str(appointment.category),
            credit_cost=appointment.credit_cost,
            status=str(appointment.status),
            is_active=appointment.is_active,
            rating=appointment.rating,
            feedback=appointment.feedback,
            final_credit_cost=appointment.final_credit_cost,
            completed_at=appointment.completed_at,
            cancelled_at=appointment.cancelled_at,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )


class RateAppointmentResponse(BaseModel):
    appointment: AppointmentResponse
    credit_change: int
    final_credit_cost: int
