"""서비스(카탈로그) 도메인 모델.

예약 요청은 저장된 서비스를 참조하거나(persisted) 즉석 서비스(ad_hoc)를 직접 기술한다.
두 경우는 kind 필드로 구분되는 태그드 유니언이다.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class ServiceCategory(StrEnum):
    DATE = "date"
    GIFT = "gift"
    ACTIVITY = "activity"
    SURPRISE = "surprise"
    HELP = "help"
    CUSTOM = "custom"
    LOVE_NOTE = "love_note"
    MEMORY = "memory"


MAX_SERVICE_CREDIT_COST = 1000
DEFAULT_AD_HOC_CREDIT_COST = 10


class Service(BaseModel):
    id: str | None = None
    owner_code: str
    name: str
    description: str = ""
    credit_cost: int = Field(ge=0, le=MAX_SERVICE_CREDIT_COST)
    category: ServiceCategory = ServiceCategory.CUSTOM
    location: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class ServiceInput(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    credit_cost: int = Field(ge=0, le=MAX_SERVICE_CREDIT_COST)
    category: ServiceCategory = ServiceCategory.CUSTOM
    location: str | None = None
    notes: str | None = None


class PersistedServiceRef(BaseModel):
    kind: Literal["persisted"] = "persisted"
    service_id: str


class AdHocService(BaseModel):
    kind: Literal["ad_hoc"] = "ad_hoc"
    name: str = ""
    description: str = ""
    credit_cost: int = Field(
        default=DEFAULT_AD_HOC_CREDIT_COST, ge=0, le=MAX_SERVICE_CREDIT_COST
    )
    category: ServiceCategory = ServiceCategory.CUSTOM


ServiceSelection = Annotated[
    Union[PersistedServiceRef, AdHocService], Field(discriminator="kind")
]
