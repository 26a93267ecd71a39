"""크레딧 원장 내부 API 라우터.

Gateway 에서 인증을 마친 뒤 user_code 를 경로로 넘겨 호출한다.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..schemas.common import PaginatedResponse
from ..schemas.credits import (
    AddCreditsRequest,
    BalanceResponse,
    CoupleStatsResponse,
    CreditTransactionResponse,
    CreditWriteResponse,
    LeaderboardResponse,
    PartnerBalanceResponse,
    RefundCreditsRequest,
    SpendCreditsRequest,
    TransferCreditsRequest,
    TransferResponse,
)
from ...models.credit import normalize_related_model, resolve_request_type
from ...services.ledger_service import LedgerService, get_ledger_service


router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("/{user_code}/balance")
def get_balance(
    user_code: str,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> BalanceResponse:
    """현재 잔액 조회 (원장 합산)."""
    return BalanceResponse(user_code=user_code, balance=ledger.get_balance(user_code))


@router.get("/{user_code}/history")
def get_history(
    user_code: str,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort: str = "-created_at",
) -> PaginatedResponse[CreditTransactionResponse]:
    """크레딧 사용 이력 조회."""
    items, total = ledger.get_history(user_code, page, limit, sort)
    return PaginatedResponse(
        items=[CreditTransactionResponse.from_domain(tx) for tx in items],
        total=total,
        page=page,
        page_size=limit,
    )


@router.post("/{user_code}/add")
def add_credits(
    user_code: str,
    req: AddCreditsRequest,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> CreditWriteResponse:
    """크레딧 적립. type=penalty 는 차감(deducted)으로 기록된다."""
    tx = ledger.add_credits(
        user_code,
        req.amount,
        req.description,
        related_id=req.related_id,
        related_type=normalize_related_model(req.related_model),
        tx_type=resolve_request_type(req.type),
    )
    return CreditWriteResponse(
        transaction=CreditTransactionResponse.from_domain(tx) if tx else None,
        balance=ledger.get_balance(user_code),
    )


@router.post("/{user_code}/spend")
def spend_credits(
    user_code: str,
    req: SpendCreditsRequest,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> CreditWriteResponse:
    """크레딧 사용. 잔액 부족 시 400 insufficient_funds."""
    tx = ledger.spend_credits(
        user_code,
        req.amount,
        req.description,
        related_id=req.related_id,
        related_type=normalize_related_model(req.related_model),
    )
    return CreditWriteResponse(
        transaction=CreditTransactionResponse.from_domain(tx),
        balance=ledger.get_balance(user_code),
    )


@router.post("/{user_code}/transfer")
def transfer_to_partner(
    user_code: str,
    req: TransferCreditsRequest,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> TransferResponse:
    """연결된 파트너에게 송금."""
    result = ledger.transfer_to_partner(user_code, req.amount, req.description)
    return TransferResponse(
        transfer_id=result.transfer_id,
        debit=CreditTransactionResponse.from_domain(result.debit),
        credit=CreditTransactionResponse.from_domain(result.credit),
        balance=result.sender_balance,
        partner_balance=ledger.get_balance(result.credit.user_code),
    )


@router.post("/{user_code}/refund")
def refund_credits(
    user_code: str,
    req: RefundCreditsRequest,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> CreditWriteResponse:
    tx = ledger.refund(
        user_code,
        req.amount,
        req.description,
        related_id=req.related_id,
        related_type=normalize_related_model(req.related_model),
    )
    return CreditWriteResponse(
        transaction=CreditTransactionResponse.from_domain(tx) if tx else None,
        balance=ledger.get_balance(user_code),
    )


@router.get("/{user_code}/partner-balance")
def get_partner_balance(
    user_code: str,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> PartnerBalanceResponse:
    partner, balance = ledger.get_partner_balance(user_code)
    return PartnerBalanceResponse(
        partner_code=partner.user_code,
        partner_name=partner.name,
        balance=balance,
    )


@router.get("/{user_code}/couple-stats")
def get_couple_stats(
    user_code: str,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> CoupleStatsResponse:
    return CoupleStatsResponse.from_domain(ledger.get_couple_stats(user_code))


@router.get("/{user_code}/leaderboard")
def get_leaderboard(
    user_code: str,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> LeaderboardResponse:
    """커플 안의 적립(earned+bonus) / 사용(spent) 순위. 파트너가 없으면 400."""
    return LeaderboardResponse.from_domain(ledger.get_leaderboard(user_code))


@router.post("/{user_code}/initialize")
def initialize_credits(
    user_code: str,
    ledger: Annotated[LedgerService, Depends(get_ledger_service)],
) -> CreditWriteResponse:
    """가입 보너스가 빠진 계정에 보너스를 지급한다. 이미 받았다면 기존 트랜잭션을 돌려준다."""
    tx = ledger.grant_welcome_bonus(user_code)
    return CreditWriteResponse(
        transaction=CreditTransactionResponse.from_domain(tx),
        balance=ledger.get_balance(user_code),
    )
