"""크레딧 원장 레포지토리 구현체.

credit_transactions 컬렉션은 append-only 이다. 유저별 seq 유니크 인덱스가
원장의 낙관적 동시성 버전 역할을 한다 (같은 seq 로 두 번 쓰면 DuplicateKeyError).
"""

from __future__ import annotations

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..exceptions import DuplicateIdempotencyKeyError, SequenceConflictError
from ..models.credit import (
    EARNING_TYPES,
    CreditTransaction,
    TypeTotal,
)
from .documents.credit_document import CreditTransactionDocument
from .interfaces import CreditTransactionRepositoryInterface


# 허용하는 정렬 키 -> Mongo sort 스펙
SORT_OPTIONS: dict[str, list[tuple[str, int]]] = {
    "-created_at": [("created_at", -1), ("seq", -1)],
    "created_at": [("created_at", 1), ("seq", 1)],
    "-amount": [("amount", -1), ("seq", -1)],
    "amount": [("amount", 1), ("seq", 1)],
}
DEFAULT_SORT = "-created_at"


class CreditTransactionRepository(CreditTransactionRepositoryInterface):
    """credit_transactions 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["credit_transactions"]

    def head_sequence(self, user_code: str) -> int:
        doc = self._col.find_one(
            {"user_code": user_code},
            projection={"seq": 1},
            sort=[("seq", -1)],
        )
        if not doc:
            return 0
        return int(doc["seq"])

    def compute_balance(self, user_code: str, upto_seq: int | None = None) -> int:
        """적립 계열 합계 - 차감 계열 합계. 트랜잭션이 없으면 0."""

        match: dict = {"user_code": user_code}
        if upto_seq is not None:
            match["seq"] = {"$lte": upto_seq}

        pipeline = [
            {"$match": match},
            {
                "$group": {
                    "_id": None,
                    "balance": {
                        "$sum": {
                            "$cond": [
                                {"$in": ["$type", [str(t) for t in EARNING_TYPES]]},
                                "$amount",
                                {"$multiply": ["$amount", -1]},
                            ]
                        }
                    },
                }
            },
        ]

        for doc in self._col.aggregate(pipeline):
            return int(doc["balance"])
        return 0

    def append(self, tx: CreditTransaction) -> CreditTransaction:
        doc = CreditTransactionDocument.from_domain(tx)
        payload = doc.to_mongo_record()
        try:
            result = self._col.insert_one(payload)
        except DuplicateKeyError as exc:
            if _is_idempotency_key_violation(exc):
                raise DuplicateIdempotencyKeyError(str(tx.idempotency_key)) from exc
            raise SequenceConflictError(f"{tx.user_code}:{tx.seq}") from exc

        return tx.model_copy(update={"id": str(result.inserted_id)})

    def find_by_idempotency_key(self, key: str) -> CreditTransaction | None:
        doc = self._col.find_one({"idempotency_key": key})
        if not doc:
            return None
        return CreditTransactionDocument.model_validate(doc).to_domain()

    def list_by_user(
        self, user_code: str, page: int, page_size: int, sort: str = DEFAULT_SORT
    ) -> tuple[list[CreditTransaction], int]:
        """사용자의 크레딧 트랜잭션 이력 조회."""
        if page <= 0:
            page = 1
        if page_size <= 0 or page_size > 100:
            page_size = 20

        skip = (page - 1) * page_size

        total = self._col.count_documents({"user_code": user_code})
        cursor = self._col.find(
            {"user_code": user_code},
            sort=SORT_OPTIONS.get(sort, SORT_OPTIONS[DEFAULT_SORT]),
            skip=skip,
            limit=page_size,
        )

        items = [CreditTransactionDocument.model_validate(raw).to_domain() for raw in cursor]
        return items, total

    def totals_by_type(self, user_code: str) -> dict[str, TypeTotal]:
        pipeline = [
            {"$match": {"user_code": user_code}},
            {
                "$group": {
                    "_id": "$type",
                    "total": {"$sum": "$amount"},
                    "count": {"$sum": 1},
                }
            },
        ]

        result: dict[str, TypeTotal] = {}
        for doc in self._col.aggregate(pipeline):
            result[str(doc["_id"])] = TypeTotal(total=doc["total"], count=doc["count"])
        return result

    def totals_by_user(
        self, user_codes: list[str], types: list[str]
    ) -> dict[str, TypeTotal]:
        """유저별로 주어진 타입들의 amount 합계와 건수. 기록이 없는 유저는 빠진다."""
        pipeline = [
            {"$match": {"user_code": {"$in": user_codes}, "type": {"$in": types}}},
            {
                "$group": {
                    "_id": "$user_code",
                    "total": {"$sum": "$amount"},
                    "count": {"$sum": 1},
                }
            },
        ]

        return {
            str(doc["_id"]): TypeTotal(total=doc["total"], count=doc["count"])
            for doc in self._col.aggregate(pipeline)
        }


def _is_idempotency_key_violation(exc: DuplicateKeyError) -> bool:
    details = exc.details or {}
    key_pattern = details.get("keyPattern") or {}
    if key_pattern:
        return "idempotency_key" in key_pattern
    return "idempotency_key" in str(details.get("errmsg", exc))
