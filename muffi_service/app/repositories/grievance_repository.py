from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pymongo import ReturnDocument
from pymongo.database import Database

from common.mongo.types import try_object_id

from ..models.grievance import Grievance, GrievanceStatus
from .documents.grievance_document import GrievanceDocument
from .interfaces import GrievanceRepositoryInterface


class GrievanceRepository(GrievanceRepositoryInterface):
    """grievances 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["grievances"]

    @staticmethod
    def _from_document(doc: dict) -> Grievance:
        return GrievanceDocument.model_validate(doc).to_domain()

    def insert(self, grievance: Grievance) -> Grievance:
        payload = GrievanceDocument.from_domain(grievance).to_mongo_record()
        result = self._col.insert_one(payload)
        return grievance.model_copy(update={"id": str(result.inserted_id)})

    def find_by_id(self, grievance_id: str) -> Grievance | None:
        object_id = try_object_id(grievance_id)
        if object_id is None:
            return None
        doc = self._col.find_one({"_id": object_id})
        if not doc:
            return None
        return self._from_document(doc)

    def list_for_user(
        self, user_code: str, status: GrievanceStatus | None = None
    ) -> list[Grievance]:
        query: dict[str, Any] = {
            "$or": [{"user_code": user_code}, {"partner_code": user_code}]
        }
        if status is not None:
            query["status"] = str(status)

        cursor = self._col.find(query, sort=[("created_at", -1), ("_id", -1)])
        return [self._from_document(doc) for doc in cursor]

    def update_pending(
        self, grievance_id: str, changes: dict[str, Any]
    ) -> Grievance | None:
        object_id = try_object_id(grievance_id)
        if object_id is None:
            return None

        update_fields = dict(changes)
        update_fields["updated_at"] = datetime.now(timezone.utc)
        doc = self._col.find_one_and_update(
            {"_id": object_id, "status": str(GrievanceStatus.PENDING)},
            {"$set": update_fields},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return self._from_document(doc)

    def transition(
        self,
        grievance_id: str,
        to_status: GrievanceStatus,
        changes: dict[str, Any] | None = None,
    ) -> Grievance | None:
        """pending 일 때만 to_status 로 바꾼다."""

        update_fields: dict[str, Any] = dict(changes or {})
        update_fields["status"] = str(to_status)
        return self.update_pending(grievance_id, update_fields)

    def delete_pending(self, grievance_id: str) -> bool:
        object_id = try_object_id(grievance_id)
        if object_id is None:
            return False
        result = self._col.delete_one(
            {"_id": object_id, "status": str(GrievanceStatus.PENDING)}
        )
        return result.deleted_count > 0
