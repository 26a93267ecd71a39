from __future__ import annotations

from datetime import datetime, timezone

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..exceptions import ConflictError
from ..models.account import Account, LinkSource
from .documents.account_document import AccountDocument
from .interfaces import AccountRepositoryInterface


class AccountRepository(AccountRepositoryInterface):
    """accounts 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["accounts"]

    @staticmethod
    def _from_document(doc: dict) -> Account:
        document = AccountDocument.model_validate(doc)
        return document.to_domain()

    def insert(self, account: Account) -> Account:
        now = datetime.now(timezone.utc)
        account.created_at = now
        account.updated_at = now

        document = AccountDocument.from_domain(account)
        payload = document.to_mongo_record()
        try:
            self._col.insert_one(payload)
        except DuplicateKeyError as exc:
            # 이메일 선조회와 insert 사이에 다른 가입이 끼어든 경우
            raise ConflictError("email already registered") from exc
        return self._from_document(payload)

    def find_by_user_code(self, user_code: str) -> Account | None:
        doc = self._col.find_one({"user_code": user_code})
        if not doc:
            return None
        return self._from_document(doc)

    def find_by_email(self, email: str) -> Account | None:
        doc = self._col.find_one({"email": email})
        if not doc:
            return None
        return self._from_document(doc)

    def find_unlinked_by_access_key(
        self, access_key_hash: str, exclude_user_code: str
    ) -> Account | None:
        doc = self._col.find_one(
            {
                "access_key_hash": access_key_hash,
                "partner_code": None,
                "user_code": {"$ne": exclude_user_code},
            },
            sort=[("created_at", 1)],
        )
        if not doc:
            return None
        return self._from_document(doc)

    def claim_partner(
        self,
        user_code: str,
        partner_code: str,
        partnership_id: str,
        relationship_start_date: datetime,
        link_source: LinkSource,
    ) -> bool:
        """partner_code 가 비어 있을 때만 연결한다. 다른 요청이 먼저 연결했다면 False."""

        result = self._col.update_one(
            {"user_code": user_code, "partner_code": None},
            {
                "$set": {
                    "partner_code": partner_code,
                    "partnership_id": partnership_id,
                    "link_source": str(link_source),
                    "relationship_start_date": relationship_start_date,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        return result.modified_count == 1

    def release_partner(self, user_code: str, partnership_id: str) -> bool:
        """같은 partnership_id 로 연결된 경우에만 연결 정보를 비운다."""

        result = self._col.update_one(
            {"user_code": user_code, "partnership_id": partnership_id},
            {
                "$set": {
                    "partner_code": None,
                    "partnership_id": None,
                    "link_source": None,
                    "relationship_start_date": None,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        return result.modified_count == 1
