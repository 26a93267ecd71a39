from __future__ import annotations

import datetime as dt
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from .credit import round_half_up
from .service import ServiceCategory, ServiceSelection


class AppointmentStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


CANCELLABLE_STATUSES: tuple[AppointmentStatus, ...] = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
)

# 평점 -> 최종 비용 배율
RATING_MULTIPLIERS: dict[int, float] = {
    1: 0.5,
    2: 0.75,
    3: 1.0,
    4: 1.25,
    5: 1.5,
}


def rating_multiplier(rating: int) -> float:
    return RATING_MULTIPLIERS.get(rating, 1.0)


def compute_final_credit_cost(credit_cost: int, rating: int) -> int:
    return round_half_up(credit_cost * rating_multiplier(rating))


class Appointment(BaseModel):
    """예약 도메인 모델.

    user_code 는 예약자(지불자), partner_code 는 서비스를 제공하는 쪽이다.
    credit_cost 는 예약 시점 비용으로 고정되며, 평가 결과는 final_credit_cost 에만 기록한다.
    """

    id: str | None = None
    user_code: str
    partner_code: str
    service_id: str | None = None
    service_kind: str
    service_name: str
    description: str = ""
    date: datetime
    time: str
    location: str | None = None
    notes: str | None = None
    moodboard_id: str | None = None
    category: ServiceCategory = ServiceCategory.CUSTOM
    credit_cost: int = Field(ge=0)
    status: AppointmentStatus = AppointmentStatus.PENDING
    is_active: bool = False
    rating: int | None = None
    rated_by: str | None = None
    feedback: str | None = None
    final_credit_cost: int | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    def is_participant(self, user_code: str) -> bool:
        return user_code in (self.user_code, self.partner_code)


class BookingInput(BaseModel):
    service: ServiceSelection
    date: dt.date
    time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    location: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=500)
    moodboard_id: str | None = None
