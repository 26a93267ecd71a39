from __future__ import annotations

from datetime import datetime, timezone

from pymongo.database import Database

from common.mongo.types import try_object_id

from ..models.service import Service
from .documents.service_document import ServiceDocument
from .interfaces import ServiceRepositoryInterface


class ServiceRepository(ServiceRepositoryInterface):
    """services 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["services"]

    def insert(self, service: Service) -> Service:
        now = datetime.now(timezone.utc)
        service.created_at = now
        service.updated_at = now

        payload = ServiceDocument.from_domain(service).to_mongo_record()
        result = self._col.insert_one(payload)
        return service.model_copy(update={"id": str(result.inserted_id)})

    def find_by_id(self, service_id: str) -> Service | None:
        object_id = try_object_id(service_id)
        if object_id is None:
            return None
        doc = self._col.find_one({"_id": object_id})
        if not doc:
            return None
        return ServiceDocument.model_validate(doc).to_domain()

    def list(
        self, page: int, page_size: int, owner_code: str | None = None
    ) -> tuple[list[Service], int]:
        if page <= 0:
            page = 1
        if page_size <= 0 or page_size > 100:
            page_size = 20

        query: dict = {}
        if owner_code:
            query["owner_code"] = owner_code

        total = self._col.count_documents(query)
        cursor = self._col.find(
            query,
            sort=[("created_at", -1), ("_id", -1)],
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        items = [ServiceDocument.model_validate(raw).to_domain() for raw in cursor]
        return items, total
