from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pymongo import ReturnDocument
from pymongo.database import Database

from common.mongo.types import try_object_id

from ..models.appointment import Appointment, AppointmentStatus
from .documents.appointment_document import AppointmentDocument
from .interfaces import AppointmentRepositoryInterface


class AppointmentRepository(AppointmentRepositoryInterface):
    """appointments 컬렉션에 대한 MongoDB 접근 레이어.

    상태 변경은 모두 현재 상태를 조건으로 거는 find_one_and_update 로 처리한다.
    동시에 같은 전이를 시도하면 한 요청만 도큐먼트를 돌려받는다.
    """

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["appointments"]

    @staticmethod
    def _from_document(doc: dict) -> Appointment:
        return AppointmentDocument.model_validate(doc).to_domain()

    def insert(self, appointment: Appointment) -> Appointment:
        payload = AppointmentDocument.from_domain(appointment).to_mongo_record()
        result = self._col.insert_one(payload)
        return appointment.model_copy(update={"id": str(result.inserted_id)})

    def find_by_id(self, appointment_id: str) -> Appointment | None:
        object_id = try_object_id(appointment_id)
        if object_id is None:
            return None
        doc = self._col.find_one({"_id": object_id})
        if not doc:
            return None
        return self._from_document(doc)

    def list_for_user(self, user_code: str) -> list[Appointment]:
        cursor = self._col.find(
            {"$or": [{"user_code": user_code}, {"partner_code": user_code}]},
            sort=[("date", 1), ("time", 1)],
        )
        return [self._from_document(doc) for doc in cursor]

    def transition(
        self,
        appointment_id: str,
        from_statuses: tuple[AppointmentStatus, ...],
        to_status: AppointmentStatus,
        changes: dict[str, Any] | None = None,
    ) -> Appointment | None:
        object_id = try_object_id(appointment_id)
        if object_id is None:
            return None

        update_fields: dict[str, Any] = dict(changes or {})
        update_fields["status"] = str(to_status)
        update_fields["updated_at"] = datetime.now(timezone.utc)

        doc = self._col.find_one_and_update(
            {
                "_id": object_id,
                "status": {"$in": [str(s) for s in from_statuses]},
            },
            {"$set": update_fields},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return self._from_document(doc)

    def set_rating(
        self,
        appointment_id: str,
        rating: int,
        feedback: str | None,
        final_credit_cost: int,
        rated_by: str,
    ) -> Appointment | None:
        """완료 상태이고 아직 평가가 없을 때만 평점을 기록한다."""

        object_id = try_object_id(appointment_id)
        if object_id is None:
            return None

        doc = self._col.find_one_and_update(
            {
                "_id": object_id,
                "status": str(AppointmentStatus.COMPLETED),
                "rating": None,
            },
            {
                "$set": {
                    "rating": rating,
                    "feedback": feedback,
                    "final_credit_cost": final_credit_cost,
                    "rated_by": rated_by,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return self._from_document(doc)
