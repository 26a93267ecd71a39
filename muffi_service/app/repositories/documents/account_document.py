from __future__ import annotations

from typing import Optional

from common.mongo.types import BaseDocument, MongoDateTime

from ...models.account import Account, AccountRole, LinkSource


class AccountDocument(BaseDocument):
    """MongoDB accounts 컬렉션 도큐먼트 모델."""

    user_code: str
    name: str
    email: str
    role: AccountRole
    access_key_hash: str
    partner_code: Optional[str] = None
    partnership_id: Optional[str] = None
    link_source: Optional[LinkSource] = None
    relationship_start_date: Optional[MongoDateTime] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def from_domain(cls, account: Account) -> "AccountDocument":
        return cls.model_validate(account.model_dump())

    def to_domain(self) -> Account:
        return Account(
            user_code=self.user_code,
            name=self.name,
            email=self.email,
            role=self.role,
            access_key_hash=self.access_key_hash,
            partner_code=self.partner_code,
            partnership_id=self.partnership_id,
            link_source=self.link_source,
            relationship_start_date=self.relationship_start_date,
            phone=self.phone,
            bio=self.bio,
            avatar=self.avatar,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
