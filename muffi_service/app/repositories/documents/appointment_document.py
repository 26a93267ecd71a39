from __future__ import annotations

from typing import Optional

from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.appointment import Appointment, AppointmentStatus
from ...models.service import ServiceCategory


class AppointmentDocument(BaseDocument):
    """MongoDB appointments 컬렉션 도큐먼트 모델."""

    user_code: str
    partner_code: str
    service_id: Optional[str] = None
    service_kind: str
    service_name: str
    description: str = ""
    date: MongoDateTime
    time: str
    location: Optional[str] = None
    notes: Optional[str] = None
    moodboard_id: Optional[str] = None
    category: ServiceCategory
    credit_cost: int
    status: AppointmentStatus
    is_active: bool = False
    rating: Optional[int] = None
    rated_by: Optional[str] = None
    feedback: Optional[str] = None
    final_credit_cost: Optional[int] = None
    completed_at: Optional[MongoDateTime] = None
    cancelled_at: Optional[MongoDateTime] = None

    @classmethod
    def from_domain(cls, appointment: Appointment) -> "AppointmentDocument":
        data = build_document_data_from_domain(appointment)
        return cls.model_validate(data)

    def to_domain(self) -> Appointment:
        return Appointment(
            id=from_object_id(self.id),
            user_code=self.user_code,
            partner_code=self.partner_code,
            service_id=self.service_id,
            service_kind=self.service_kind,
            service_name=self.service_name,
            description=self.description,
            date=self.date,
            time=self.time,
            location=self.location,
            notes=self.notes,
            moodboard_id=self.moodboard_id,
            category=self.category,
            credit_cost=self.credit_cost,
            status=self.status,
            is_active=self.is_active,
            rating=self.rating,
            rated_by=self.rated_by,
            feedback=self.feedback,
            final_credit_cost=self.final_credit_cost,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
