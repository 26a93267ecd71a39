"""크레딧 원장 도메인 모델.

잔액은 어디에도 저장하지 않고, 유저의 트랜잭션(append-only)을 합산해서만 구한다.
amount 는 항상 양수이고 부호는 type 으로만 결정된다.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class TransactionType(StrEnum):
    EARNED = "earned"
    SPENT = "spent"
    DEDUCTED = "deducted"
    REFUND = "refund"
    BONUS = "bonus"


class RelatedType(StrEnum):
    APPOINTMENT = "appointment"
    GRIEVANCE = "grievance"
    SERVICE = "service"
    LOVE_NOTE = "love_note"
    MEMORY = "memory"
    BONUS = "bonus"
    TRANSFER = "transfer"
    MANUAL = "manual"


class FundsPolicy(StrEnum):
    """쓰기 시점의 잔액 검사 방식.

    - none: 적립 계열. 검사하지 않는다.
    - reject: 잔액이 부족하면 거절한다 (유저가 직접 쓰는 spent).
    - cap: 잔액만큼만 차감한다 (시스템이 부과하는 deducted).
    """

    NONE = "none"
    REJECT = "reject"
    CAP = "cap"


EARNING_TYPES: frozenset[TransactionType] = frozenset(
    {TransactionType.EARNED, TransactionType.REFUND, TransactionType.BONUS}
)


def funds_policy_for(tx_type: TransactionType) -> FundsPolicy:
    if tx_type == TransactionType.SPENT:
        return FundsPolicy.REJECT
    if tx_type == TransactionType.DEDUCTED:
        return FundsPolicy.CAP
    return FundsPolicy.NONE


def signed_amount(tx_type: TransactionType, amount: int) -> int:
    return amount if tx_type in EARNING_TYPES else -amount


def round_half_up(value: float) -> int:
    """x.5 는 항상 +무한대 방향으로 올린다 (-2.5 -> -2, 2.5 -> 3)."""

    return int(math.floor(value + 0.5))


# HTTP 의 relatedModel 문자열 -> 원장 related_type
_RELATED_MODEL_MAP: dict[str, RelatedType] = {
    "service": RelatedType.SERVICE,
    "grievance": RelatedType.GRIEVANCE,
    "moodboard": RelatedType.MANUAL,
    "user": RelatedType.TRANSFER,
    "bonus": RelatedType.BONUS,
    "transfer": RelatedType.TRANSFER,
    "manual": RelatedType.MANUAL,
}


def normalize_related_model(value: str | None) -> RelatedType:
    """외부에서 들어온 relatedModel 값을 닫힌 집합으로 정규화한다. 모르는 값은 manual."""

    if not value:
        return RelatedType.MANUAL
    return _RELATED_MODEL_MAP.get(value.strip().lower(), RelatedType.MANUAL)


# 범용 add 엔드포인트의 type 별칭
_REQUEST_TYPE_ALIASES: dict[str, TransactionType] = {
    "bonus": TransactionType.BONUS,
    "refund": TransactionType.REFUND,
    "penalty": TransactionType.DEDUCTED,
}


def resolve_request_type(value: str | None) -> TransactionType:
    if not value:
        return TransactionType.EARNED
    return _REQUEST_TYPE_ALIASES.get(value.strip().lower(), TransactionType.EARNED)


class CreditTransaction(BaseModel):
    """원장 트랜잭션. 생성 후 변경/삭제되지 않는다."""

    id: str | None = None
    user_code: str
    seq: int
    type: TransactionType
    amount: int = Field(gt=0)
    reason: str = Field(min_length=1)
    related_id: str | None = None
    related_type: RelatedType | None = None
    metadata: dict = Field(default_factory=dict)
    idempotency_key: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def signed_amount(self) -> int:
        return signed_amount(self.type, self.amount)


class CreditTransactionInput(BaseModel):
    """원장에 쓰기 요청. 정책(reject/cap)은 type 에서 결정된다."""

    user_code: str
    type: TransactionType
    amount: int
    reason: str
    related_id: str | None = None
    related_type: RelatedType | None = None
    metadata: dict = Field(default_factory=dict)
    idempotency_key: str | None = None


class TransferResult(BaseModel):
    """송금 결과. 출금/입금 두 트랜잭션은 metadata 의 transfer_id 로 묶인다."""

    transfer_id: str
    debit: CreditTransaction
    credit: CreditTransaction
    sender_balance: int


class TypeTotal(BaseModel):
    total: int = 0
    count: int = 0


class CoupleStats(BaseModel):
    """커플 합산 통계."""

    user_code: str
    partner_code: str
    user_balance: int
    partner_balance: int
    combined_balance: int
    user_transaction_count: int
    partner_transaction_count: int
    totals_by_type: dict[str, TypeTotal]
    recent_transactions: list[CreditTransaction]


class LeaderboardEntry(BaseModel):
    user_code: str
    name: str
    total: int
    count: int


class CoupleLeaderboard(BaseModel):
    """커플 안의 적립/사용 순위. 각 목록은 total 내림차순."""

    top_earners: list[LeaderboardEntry]
    top_spenders: list[LeaderboardEntry]
