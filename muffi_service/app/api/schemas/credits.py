from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from common.types.datetime import UtcDateTime

from ...models.credit import (
    CoupleLeaderboard,
    CoupleStats,
    CreditTransaction,
    LeaderboardEntry,
    TypeTotal,
)


class AddCreditsRequest(BaseModel):
    """크레딧 적립 요청. type 은 bonus / refund / penalty 별칭을 받는다."""

    model_config = ConfigDict(populate_by_name=True)

    amount: int = Field(gt=0)
    description: str = Field(min_length=1, max_length=200)
    related_id: str | None = Field(default=None, alias="relatedId")
    related_model: str | None = Field(default=None, alias="relatedModel")
    type: str | None = None


class SpendCreditsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: int = Field(gt=0)
    description: str = Field(min_length=1, max_length=200)
    related_id: str | None = Field(default=None, alias="relatedId")
    related_model: str | None = Field(default=None, alias="relatedModel")


class TransferCreditsRequest(BaseModel):
    amount: int = Field(gt=0)
    description: str = Field(min_length=1, max_length=200)


class RefundCreditsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: int = Field(gt=0)
    description: str = Field(min_length=1, max_length=200)
    related_id: str | None = Field(default=None, alias="relatedId")
    related_model: str | None = Field(default=None, alias="relatedModel")


class CreditTransactionResponse(BaseModel):
    """크레딧 트랜잭션 응답."""

    id: str | None
    seq: int
    type: str
    amount: int
    reason: str
    related_id: str | None
    related_type: str | None
    metadata: dict
    created_at: UtcDateTime

    @classmethod
    def from_domain(cls, tx: CreditTransaction) -> "CreditTransactionResponse":
        return cls(
            id=tx.id,
            seq=tx.seq,
            type=str(tx.type),
            amount=tx.amount,
            reason=tx.reason,
            related_id=tx.related_id,
            related_type=str(tx.related_type) if tx.related_type else None,
            metadata=tx.metadata,
            created_at=tx.created_at,
        )


class BalanceResponse(BaseModel):
    user_code: str
    balance: int


class CreditWriteResponse(BaseModel):
    """적립/사용/환불 결과. cap 정책으로 기록이 생략되면 transaction 은 None."""

    transaction: CreditTransactionResponse | None
    balance: int


class TransferResponse(BaseModel):
    transfer_id: str
    debit: CreditTransactionResponse
    credit: CreditTransactionResponse
    balance: int
    partner_balance: int


class PartnerBalanceResponse(BaseModel):
    partner_code: str
    partner_name: str
    balance: int


class CoupleStatsResponse(BaseModel):
    user_code: str
    partner_code: str
    user_balance: int
    partner_balance: int
    combined_balance: int
    user_transaction_count: int
    partner_transaction_count: int
    totals_by_type: dict[str, TypeTotal]
    recent_transactions: list[CreditTransactionResponse]

    @classmethod
    def from_domain(cls, stats: CoupleStats) -> "CoupleStatsResponse":
        return cls(
            user_code=stats.user_code,
            partner_code=stats.partner_code,
            user_balance=stats.user_balance,
            partner_balance=stats.partner_balance,
            combined_balance=stats.combined_balance,
            user_transaction_count=stats.user_transaction_count,
            partner_transaction_count=stats.partner_transaction_count,
            totals_by_type=stats.totals_by_type,
            recent_transactions=[
                CreditTransactionResponse.from_domain(tx)
                for tx in stats.recent_transactions
            ],
        )


class LeaderboardResponse(BaseModel):
    top_earners: list[LeaderboardEntry]
    top_spenders: list[LeaderboardEntry]

    @classmethod
    def from_domain(cls, board: CoupleLeaderboard) -> "LeaderboardResponse":
        return cls(top_earners=board.top_earners, top_spenders=board.top_spenders)
