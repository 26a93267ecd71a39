from __future__ import annotations

from typing import Optional

from common.mongo.types import (
    BaseDocument,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.service import Service, ServiceCategory


class ServiceDocument(BaseDocument):
    """MongoDB services 컬렉션 도큐먼트 모델."""

    owner_code: str
    name: str
    description: str = ""
    credit_cost: int
    category: ServiceCategory
    location: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_domain(cls, service: Service) -> "ServiceDocument":
        data = build_document_data_from_domain(service)
        return cls.model_validate(data)

    def to_domain(self) -> Service:
        return Service(
            id=from_object_id(self.id),
            owner_code=self.owner_code,
            name=self.name,
            description=self.description,
            credit_cost=self.credit_cost,
            category=self.category,
            location=self.location,
            notes=self.notes,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
