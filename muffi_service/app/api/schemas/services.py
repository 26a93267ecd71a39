from __future__ import annotations

from pydantic import BaseModel

from common.types.datetime import UtcDateTime

from ...models.service import Service


class ServiceResponse(BaseModel):
    id: str | None
    owner_code: str
    name: str
    description: str
    credit_cost: int
    category: str
    location: str | None
    notes: str | None
    created_at: UtcDateTime
    updated_at: UtcDateTime

    @classmethod
    def from_domain(cls, service: Service) -> "ServiceResponse":
        return cls(
            id=service.id,
            owner_code=service.owner_code,
            name=service.name,
            description=service.description,
            credit_cost=service.credit_cost,
            category=str(service.category),
            location=service.location,
            notes=service.notes,
            created_at=service.created_at,
            updated_at=service.updated_at,
        )
