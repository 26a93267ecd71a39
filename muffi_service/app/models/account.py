from __future__ import annotations

import hashlib
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class AccountRole(StrEnum):
    BOYFRIEND = "boyfriend"
    GIRLFRIEND = "girlfriend"
    PARTNER = "partner"


class LinkSource(StrEnum):
    """연결 경로. 접근 키로 직접 연결한 커플만 연결 보너스 대상이다."""

    SIGNUP = "signup"
    ACCESS_KEY = "access_key"


def hash_access_key(access_key: str) -> str:
    """공유 접근 키는 평문으로 저장하지 않는다 (SHA256 hex)."""

    return hashlib.sha256(access_key.strip().encode()).hexdigest()


class Account(BaseModel):
    """커플 계정 도메인 모델.

    - user_code 로 식별한다.
    - 크레딧 잔액 필드는 없다. 잔액은 항상 원장에서 계산한다.
    - partner_code / partnership_id / link_source /
      relationship_start_date 는 연결될 때 함께 채워지고
      해제될 때 함께 비워진다.
    """

    user_code: str
    name: str
    email: str
    role: AccountRole = AccountRole.PARTNER
    access_key_hash: str
    partner_code: str | None = None
    partnership_id: str | None = None
    link_source: LinkSource | None = None
    relationship_start_date: datetime | None = None
    phone: str | None = None
    bio: str | None = None
    avatar: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_linked(self) -> bool:
        return self.partner_code is not None


class SignupInput(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: str
    access_key: str = Field(min_length=6)
    role: AccountRole = AccountRole.PARTNER
    phone: str | None = None
    bio: str | None = None


class PartnerSummary(BaseModel):
    user_code: str
    name: str
    role: AccountRole
    credits: int


class AccountProfile(BaseModel):
    """프로필 조회 결과. credits 는 원장에서 계산한 값이다."""

    user_code: str
    name: str
    email: str
    role: AccountRole
    partner_code: str | None
    partnership_id: str | None
    relationship_start_date: datetime | None
    phone: str | None
    bio: str | None
    avatar: str | None
    credits: int
    partner: PartnerSummary | None = None
    created_at: datetime
    updated_at: datetime
