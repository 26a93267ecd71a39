from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from common.types.datetime import UtcDateTime

from ...models.account import AccountProfile, AccountRole, PartnerSummary


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=50)
    email: str
    access_key: str = Field(min_length=6, alias="accessKey")
    role: AccountRole = AccountRole.PARTNER
    phone: str | None = None
    bio: str | None = Field(default=None, max_length=500)


class LinkPartnerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_key: str = Field(min_length=6, alias="accessKey")


class AccountProfileResponse(BaseModel):
    user_code: str
    name: str
    email: str
    role: str
    partner_code: str | None
    partnership_id: str | None
    relationship_start_date: UtcDateTime | None
    phone: str | None
    bio: str | None
    avatar: str | None
    credits: int
    partner: PartnerSummary | None
    created_at: UtcDateTime
    updated_at: UtcDateTime

    @classmethod
    def from_domain(cls, profile: AccountProfile) -> "AccountProfileResponse":
        return cls(
            user_code=profile.user_code,
            name=profile.name,
            email=profile.email,
            role=str(profile.role),
            partner_code=profile.partner_code,
            partnership_id=profile.partnership_id,
            relationship_start_date=profile.relationship_start_date,
            phone=profile.phone,
            bio=profile.bio,
            avatar=profile.avatar,
            credits=profile.credits,
            partner=profile.partner,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )
