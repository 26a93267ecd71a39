from __future__ import annotations

from typing import Optional

from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.grievance import (
    Grievance,
    GrievanceCategory,
    GrievanceSeverity,
    GrievanceStatus,
)


class GrievanceDocument(BaseDocument):
    """MongoDB grievances 컬렉션 도큐먼트 모델."""

    user_code: str
    partner_code: str
    title: str
    description: str
    category: GrievanceCategory
    rating: int
    severity: GrievanceSeverity
    credit_impact: int
    status: GrievanceStatus
    response_text: Optional[str] = None
    resolved_at: Optional[MongoDateTime] = None
    is_anonymous: bool = False
    tags: list[str] = []

    @classmethod
    def from_domain(cls, grievance: Grievance) -> "GrievanceDocument":
        data = build_document_data_from_domain(grievance)
        return cls.model_validate(data)

    def to_domain(self) -> Grievance:
        return Grievance(
            id=from_object_id(self.id),
            user_code=self.user_code,
            partner_code=self.partner_code,
            title=self.title,
            description=self.description,
            category=self.category,
            rating=self.rating,
            severity=self.severity,
            credit_impact=self.credit_impact,
            status=self.status,
            response_text=self.response_text,
            resolved_at=self.resolved_at,
            is_anonymous=self.is_anonymous,
            tags=list(self.tags),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
