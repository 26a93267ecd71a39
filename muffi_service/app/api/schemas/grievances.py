from __future__ import annotations

from pydantic import BaseModel, Field

from common.types.datetime import UtcDateTime

from ...models.grievance import Grievance


class ResolveGrievanceRequest(BaseModel):
    response_text: str | None = Field(default=None, max_length=500)


class GrievanceResponse(BaseModel):
    id: str | None
    user_code: str | None
    partner_code: str
    title: str
    description: str
    category: str
    rating: int
    severity: str
    credit_impact: int
    status: str
    response_text: str | None
    resolved_at: UtcDateTime | None
    is_anonymous: bool
    tags: list[str]
    created_at: UtcDateTime
    updated_at: UtcDateTime

    @classmethod
    def from_domain(cls, grievance: Grievance, viewer: str) -> "GrievanceResponse":
        # 익명 불만은 대상(파트너)에게 작성자를 노출하지 않는다.
        hide_author = grievance.is_anonymous and viewer != grievance.user_code
        return cls(
            id=grievance.id,
            user_code=None if hide_author else grievance.user_code,
            partner_code=grievance.partner_code,
            title=grievance.title,
            description=grievance.description,
            category=str(grievance.category),
            rating=grievance.rating,
            severity=str(grievance.severity),
            credit_impact=grievance.credit_impact,
            status=str(grievance.status),
            response_text=grievance.response_text,
            resolved_at=grievance.resolved_at,
            is_anonymous=grievance.is_anonymous,
            tags=grievance.tags,
            created_at=grievance.created_at,
            updated_at=grievance.updated_at,
        )
