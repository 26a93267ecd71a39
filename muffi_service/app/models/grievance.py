from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from .credit import round_half_up


class GrievanceCategory(StrEnum):
    COMMUNICATION = "communication"
    BEHAVIOR = "behavior"
    RESPONSIBILITY = "responsibility"
    AFFECTION = "affection"
    TIME = "time"
    OTHER = "other"


class GrievanceSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GrievanceStatus(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# 평점(1 이 최악) -> 기본 크레딧 영향
_BASE_IMPACT: dict[int, int] = {1: -20, 2: -10, 3: 0, 4: 5, 5: 10}

_SEVERITY_MULTIPLIERS: dict[GrievanceSeverity, float] = {
    GrievanceSeverity.LOW: 0.5,
    GrievanceSeverity.MEDIUM: 1.0,
    GrievanceSeverity.HIGH: 2.0,
}


def compute_credit_impact(rating: int, severity: GrievanceSeverity | str) -> int:
    base = _BASE_IMPACT.get(rating, 0)
    multiplier = _SEVERITY_MULTIPLIERS.get(GrievanceSeverity(severity), 1.0)
    return round_half_up(base * multiplier)


class Grievance(BaseModel):
    """불만(피드백) 도메인 모델. user_code 가 작성자, partner_code 가 대상이다."""

    id: str | None = None
    user_code: str
    partner_code: str
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    category: GrievanceCategory = GrievanceCategory.OTHER
    rating: int = Field(default=3, ge=1, le=5)
    severity: GrievanceSeverity = GrievanceSeverity.MEDIUM
    credit_impact: int = 0
    status: GrievanceStatus = GrievanceStatus.PENDING
    response_text: str | None = Field(default=None, max_length=500)
    resolved_at: datetime | None = None
    is_anonymous: bool = False
    tags: list[str] = Field(default_factory=list, max_length=5)
    created_at: datetime
    updated_at: datetime

    def is_participant(self, user_code: str) -> bool:
        return user_code in (self.user_code, self.partner_code)


class GrievanceInput(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    category: GrievanceCategory = GrievanceCategory.OTHER
    rating: int = Field(default=3, ge=1, le=5)
    severity: GrievanceSeverity = GrievanceSeverity.MEDIUM
    is_anonymous: bool = False
    tags: list[str] = Field(default_factory=list, max_length=5)


class GrievanceUpdate(BaseModel):
    """수정 요청. None 인 필드는 건드리지 않는다.

    평점은 작성 시점에 고정된다. 본문에 rating 이 와도 무시한다.
    """

    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    category: GrievanceCategory | None = None
    severity: GrievanceSeverity | None = None
    tags: list[str] | None = Field(default=None, max_length=5)


class GrievanceStatusStats(BaseModel):
    count: int = 0
    total_impact: int = 0


class GrievanceStats(BaseModel):
    user_code: str
    by_status: dict[str, GrievanceStatusStats]
    total_count: int
    total_impact: int
