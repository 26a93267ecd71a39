from __future__ import annotations

from datetime import datetime, timezone

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from .interfaces import AccessKeyRepositoryInterface


class AccessKeyRepository(AccessKeyRepositoryInterface):
    """access_keys 컬렉션에 대한 MongoDB 접근 레이어.

    _id 가 access_key_hash 인 도큐먼트 하나에 holders 목록을 둔다.
    한 도큐먼트에 대한 조건부 업데이트이므로 같은 키로 동시에 가입해도 직렬화된다.
    """

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["access_keys"]

    def reserve(self, access_key_hash: str, user_code: str, max_holders: int) -> bool:
        """holders 가 max_holders 미만일 때만 user_code 를 추가한다 (Atomic)."""

        now = datetime.now(timezone.utc)
        try:
            # 조건: "holders.<max-1>" 이 없으면 아직 자리가 있다.
            # 문서가 없으면 upsert 로 새로 만든다. 문서는 있는데 가득 찼다면
            # upsert 가 같은 _id 로 insert 를 시도하다가 DuplicateKeyError 가 난다.
            result = self._col.update_one(
                {
                    "_id": access_key_hash,
                    f"holders.{max_holders - 1}": {"$exists": False},
                },
                {
                    "$addToSet": {"holders": user_code},
                    "$set": {"updated_at": now},
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
        except DuplicateKeyError:
            return False

        return result.upserted_id is not None or result.modified_count > 0

    def release(self, access_key_hash: str, user_code: str) -> None:
        self._col.update_one(
            {"_id": access_key_hash},
            {
                "$pull": {"holders": user_code},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
