"""크레딧 원장 MongoDB 도큐먼트."""

from __future__ import annotations

from typing import Optional

from common.mongo.types import (
    BaseDocument,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.credit import CreditTransaction, RelatedType, TransactionType


class CreditTransactionDocument(BaseDocument):
    """MongoDB credit_transactions 컬렉션 도큐먼트 모델."""

    user_code: str
    seq: int
    type: TransactionType
    amount: int
    reason: str
    related_id: Optional[str] = None
    related_type: Optional[RelatedType] = None
    metadata: dict = {}
    idempotency_key: Optional[str] = None

    @classmethod
    def from_domain(cls, tx: CreditTransaction) -> "CreditTransactionDocument":
        data = build_document_data_from_domain(tx)
        return cls.model_validate(data)

    def to_mongo_record(self) -> dict:
        record = super().to_mongo_record()
        # 부분 유니크 인덱스는 문자열일 때만 적용되므로 None 키는 아예 저장하지 않는다.
        if record.get("idempotency_key") is None:
            record.pop("idempotency_key", None)
        return record

    def to_domain(self) -> CreditTransaction:
        return CreditTransaction(
            id=from_object_id(self.id),
            user_code=self.user_code,
            seq=self.seq,
            type=self.type,
            amount=self.amount,
            reason=self.reason,
            related_id=self.related_id,
            related_type=self.related_type,
            metadata=self.metadata or {},
            idempotency_key=self.idempotency_key,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
