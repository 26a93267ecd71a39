"""불만(피드백) 서비스.

작성자가 해결(resolve) 처리하면 credit_impact 가 상대(파트너) 원장에 한 번만 반영된다
(idempotency key: grievance:<id>:resolution).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database

from ..exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailure,
)
from ..models.credit import RelatedType
from ..models.grievance import (
    Grievance,
    GrievanceInput,
    GrievanceStats,
    GrievanceStatus,
    GrievanceStatusStats,
    GrievanceUpdate,
    compute_credit_impact,
)
from ..repositories.grievance_repository import GrievanceRepository
from ..repositories.interfaces import (
    AccountRepositoryInterface,
    GrievanceRepositoryInterface,
)
from .ledger_service import LedgerService, get_account_repository, get_ledger_service


logger = logging.getLogger(__name__)

POSITIVE_IMPACT_REASON = "Positive feedback received"
NEGATIVE_IMPACT_REASON = "Areas for improvement identified"


class GrievancesService:
    def __init__(
        self,
        grievance_repo: GrievanceRepositoryInterface,
        account_repo: AccountRepositoryInterface,
        ledger: LedgerService,
    ) -> None:
        self._grievance_repo = grievance_repo
        self._account_repo = account_repo
        self._ledger = ledger

    def create(self, user_code: str, input_model: GrievanceInput) -> Grievance:
        account = self._account_repo.find_by_user_code(user_code)
        if account is None:
            raise NotFoundError(f"account not found: {user_code}")
        if account.partner_code is None:
            raise ValidationFailure("link a partner before filing feedback")

        now = datetime.now(timezone.utc)
        grievance = Grievance(
            user_code=user_code,
            partner_code=account.partner_code,
            title=input_model.title.strip(),
            description=input_model.description.strip(),
            category=input_model.category,
            rating=input_model.rating,
            severity=input_model.severity,
            credit_impact=compute_credit_impact(input_model.rating, input_model.severity),
            is_anonymous=input_model.is_anonymous,
            tags=input_model.tags,
            created_at=now,
            updated_at=now,
        )
        return self._grievance_repo.insert(grievance)

    def get(self, user_code: str, grievance_id: str) -> Grievance:
        grievance = self._find(grievance_id)
        if not grievance.is_participant(user_code):
            raise UnauthorizedError("not authorized to access this grievance")
        return grievance

    def list_for_user(
        self, user_code: str, status: GrievanceStatus | None = None
    ) -> list[Grievance]:
        return self._grievance_repo.list_for_user(user_code, status=status)

    def update(
        self, user_code: str, grievance_id: str, changes: GrievanceUpdate
    ) -> Grievance:
        """pending 상태에서 작성자만 수정할 수 있다. 심각도가 바뀌면 영향도를 다시 계산한다."""
        grievance = self._get_for_filer(user_code, grievance_id)
        if grievance.status != GrievanceStatus.PENDING:
            raise ConflictError("only pending grievances can be updated")

        fields = changes.model_dump(exclude_none=True)
        severity = fields.get("severity", grievance.severity)
        fields["credit_impact"] = compute_credit_impact(grievance.rating, severity)

        updated = self._grievance_repo.update_pending(grievance_id, fields)
        if updated is None:
            raise ConflictError("only pending grievances can be updated")
        return updated

    def resolve(
        self, user_code: str, grievance_id: str, response_text: str | None = None
    ) -> Grievance:
        """해결 처리. 이미 해결된 경우 정산만 다시 확인하고 그대로 반환한다."""
        grievance = self._get_for_filer(user_code, grievance_id)
        if grievance.status == GrievanceStatus.DISMISSED:
            raise ConflictError("dismissed grievances cannot be resolved")

        if grievance.status == GrievanceStatus.PENDING:
            resolved = self._grievance_repo.transition(
                grievance_id,
                GrievanceStatus.RESOLVED,
                {"resolved_at": datetime.now(timezone.utc), "response_text": response_text},
            )
            if resolved is None:
                resolved = self._find(grievance_id)
                if resolved.status != GrievanceStatus.RESOLVED:
                    raise ConflictError("grievance is no longer pending")
        else:
            resolved = grievance

        self._apply_credit_impact(resolved)
        return resolved

    def dismiss(self, user_code: str, grievance_id: str) -> Grievance:
        grievance = self._get_for_filer(user_code, grievance_id)
        if grievance.status == GrievanceStatus.DISMISSED:
            return grievance

        dismissed = self._grievance_repo.transition(grievance_id, GrievanceStatus.DISMISSED)
        if dismissed is None:
            raise ConflictError("only pending grievances can be dismissed")
        return dismissed

    def delete(self, user_code: str, grievance_id: str) -> None:
        self._get_for_filer(user_code, grievance_id)
        if not self._grievance_repo.delete_pending(grievance_id):
            raise ConflictError("only pending grievances can be deleted")

    def stats(self, user_code: str) -> GrievanceStats:
        """작성한 불만의 상태별 개수와 영향도 합계."""
        by_status: dict[str, GrievanceStatusStats] = {}
        for grievance in self._grievance_repo.list_for_user(user_code):
            if grievance.user_code != user_code:
                continue
            entry = by_status.setdefault(str(grievance.status), GrievanceStatusStats())
            entry.count += 1
            entry.total_impact += grievance.credit_impact

        return GrievanceStats(
            user_code=user_code,
            by_status=by_status,
            total_count=sum(s.count for s in by_status.values()),
            total_impact=sum(s.total_impact for s in by_status.values()),
        )

    def _apply_credit_impact(self, grievance: Grievance) -> None:
        impact = grievance.credit_impact
        if impact == 0:
            return

        key = f"grievance:{grievance.id}:resolution"
        metadata = {"grievance_id": grievance.id, "rating": grievance.rating}
        if impact > 0:
            self._ledger.add_credits(
                grievance.partner_code,
                impact,
                POSITIVE_IMPACT_REASON,
                related_id=grievance.id,
                related_type=RelatedType.GRIEVANCE,
                idempotency_key=key,
                metadata=metadata,
            )
        else:
            self._ledger.deduct_credits(
                grievance.partner_code,
                -impact,
                NEGATIVE_IMPACT_REASON,
                related_id=grievance.id,
                related_type=RelatedType.GRIEVANCE,
                idempotency_key=key,
                metadata=metadata,
            )

        logger.info(
            "grievance credit impact applied (grievance_id=%s, impact=%s)",
            grievance.id,
            impact,
            extra={"user_code": grievance.partner_code},
        )

    def _find(self, grievance_id: str) -> Grievance:
        grievance = self._grievance_repo.find_by_id(grievance_id)
        if grievance is None:
            raise NotFoundError(f"grievance not found: {grievance_id}")
        return grievance

    def _get_for_filer(self, user_code: str, grievance_id: str) -> Grievance:
        grievance = self._find(grievance_id)
        if grievance.user_code != user_code:
            raise UnauthorizedError("only the author can modify this grievance")
        return grievance


def get_grievance_repository(
    db: Database = Depends(get_database),
) -> GrievanceRepositoryInterface:
    """FastAPI DI용 GrievanceRepository 팩토리."""

    return GrievanceRepository(db)


def get_grievances_service(
    grievance_repo: GrievanceRepositoryInterface = Depends(get_grievance_repository),
    account_repo: AccountRepositoryInterface = Depends(get_account_repository),
    ledger: LedgerService = Depends(get_ledger_service),
) -> GrievancesService:
    """FastAPI DI용 GrievancesService 팩토리."""

    return GrievancesService(grievance_repo, account_repo, ledger)
