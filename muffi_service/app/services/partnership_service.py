"""계정 가입 및 파트너 연결 서비스.

같은 접근 키로 가입한 두 계정이 한 커플이 된다. 연결은 두 번의 조건부 업데이트
(상대 먼저, 그다음 본인)로 이루어지고, 두 번째가 실패하면 첫 번째를 되돌린다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database

from ..config import LedgerConfig, get_ledger_config
from ..exceptions import ConflictError, NotFoundError, ValidationFailure
from ..models.account import (
    Account,
    AccountProfile,
    LinkSource,
    PartnerSummary,
    SignupInput,
    hash_access_key,
)
from ..models.credit import RelatedType, TransactionType
from ..repositories.access_key_repository import AccessKeyRepository
from ..repositories.interfaces import (
    AccessKeyRepositoryInterface,
    AccountRepositoryInterface,
)
from .ledger_service import LedgerService, get_account_repository, get_ledger_service


logger = logging.getLogger(__name__)


class PartnershipService:
    """가입, 파트너 연결/해제, 프로필 조회 비즈니스 로직."""

    def __init__(
        self,
        account_repo: AccountRepositoryInterface,
        access_key_repo: AccessKeyRepositoryInterface,
        ledger: LedgerService,
        config: LedgerConfig,
    ) -> None:
        self._account_repo = account_repo
        self._access_key_repo = access_key_repo
        self._ledger = ledger
        self._config = config

    def signup(self, input_model: SignupInput) -> AccountProfile:
        """계정 생성.

        - 접근 키당 최대 max_access_key_holders 개 계정만 허용한다.
        - 같은 키로 먼저 가입한 미연결 계정이 있으면 자동으로 연결한다 (연결 보너스 없음).
        - 가입 보너스를 지급한다.
        """

        email = input_model.email.strip().lower()
        if "@" not in email:
            raise ValidationFailure("invalid email address")
        if self._account_repo.find_by_email(email) is not None:
            raise ConflictError("email already registered")

        access_key_hash = hash_access_key(input_model.access_key)
        user_code = uuid4().hex

        if not self._access_key_repo.reserve(
            access_key_hash, user_code, self._config.max_access_key_holders
        ):
            raise ConflictError("this access key is already used by two accounts")

        now = datetime.now(timezone.utc)
        try:
            account = self._account_repo.insert(
                Account(
                    user_code=user_code,
                    name=input_model.name.strip(),
                    email=email,
                    role=input_model.role,
                    access_key_hash=access_key_hash,
                    phone=input_model.phone,
                    bio=input_model.bio,
                    created_at=now,
                    updated_at=now,
                )
            )
        except Exception:
            self._access_key_repo.release(access_key_hash, user_code)
            raise

        logger.info("account created", extra={"user_code": user_code})

        candidate = self._account_repo.find_unlinked_by_access_key(
            access_key_hash, exclude_user_code=user_code
        )
        if candidate is not None:
            try:
                self._link(account, candidate, LinkSource.SIGNUP)
            except ConflictError:
                # 상대가 그사이 다른 계정과 연결됐다. 가입 자체는 유지한다.
                logger.warning(
                    "auto-link on signup lost a race (candidate=%s)",
                    candidate.user_code,
                    extra={"user_code": user_code},
                )

        self._ledger.grant_welcome_bonus(user_code)

        return self.get_profile(user_code)

    def link_by_access_key(self, user_code: str, access_key: str) -> AccountProfile:
        """접근 키로 파트너를 찾아 연결하고 양쪽에 연결 보너스를 지급한다.

        연결은 됐는데 보너스 지급 중에 실패했다면, 같은 요청을 다시 보내면
        빠진 보너스만 지급한다 (보너스 키가 partnership_id 기준이라 중복되지 않는다).
        """

        account = self._require_account(user_code)
        access_key_hash = hash_access_key(access_key)

        if account.is_linked:
            if (
                account.link_source != LinkSource.ACCESS_KEY
                or account.partnership_id is None
                or account.access_key_hash != access_key_hash
            ):
                raise ConflictError("already linked with a partner")
            assert account.partner_code is not None
            logger.info(
                "resuming link bonuses (partnership_id=%s)",
                account.partnership_id,
                extra={"user_code": user_code},
            )
            self._grant_link_bonuses(
                account.partnership_id, (account.user_code, account.partner_code)
            )
            return self.get_profile(user_code)

        candidate = self._account_repo.find_unlinked_by_access_key(
            access_key_hash, exclude_user_code=user_code
        )
        if candidate is None:
            raise NotFoundError("no unlinked account found for this access key")

        partnership_id = self._link(account, candidate, LinkSource.ACCESS_KEY)
        self._grant_link_bonuses(partnership_id, (account.user_code, candidate.user_code))

        return self.get_profile(user_code)

    def unlink(self, user_code: str) -> AccountProfile:
        """양쪽 연결 정보를 비운다. 이미 지급된 보너스는 회수하지 않는다."""

        account = self._require_account(user_code)
        if not account.is_linked or account.partnership_id is None:
            raise ValidationFailure("no partner linked")

        partnership_id = account.partnership_id
        if not self._account_repo.release_partner(account.user_code, partnership_id):
            raise ConflictError("partnership changed concurrently")
        assert account.partner_code is not None
        self._account_repo.release_partner(account.partner_code, partnership_id)

        logger.info(
            "partnership unlinked (partnership_id=%s)",
            partnership_id,
            extra={"user_code": user_code},
        )
        return self.get_profile(user_code)

    def get_profile(self, user_code: str) -> AccountProfile:
        account = self._require_account(user_code)

        partner: PartnerSummary | None = None
        if account.partner_code is not None:
            partner_account = self._account_repo.find_by_user_code(account.partner_code)
            if partner_account is not None:
                partner = PartnerSummary(
                    user_code=partner_account.user_code,
                    name=partner_account.name,
                    role=partner_account.role,
                    credits=self._ledger.get_balance(partner_account.user_code),
                )

        return AccountProfile(
            user_code=account.user_code,
            name=account.name,
            email=account.email,
            role=account.role,
            partner_code=account.partner_code,
            partnership_id=account.partnership_id,
            relationship_start_date=account.relationship_start_date,
            phone=account.phone,
            bio=account.bio,
            avatar=account.avatar,
            credits=self._ledger.get_balance(account.user_code),
            partner=partner,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )

    def _link(
        self, account: Account, candidate: Account, source: LinkSource
    ) -> str:
        """상대를 먼저, 본인을 나중에 조건부로 연결한다. 성공 시 partnership_id 반환."""

        partnership_id = uuid4().hex
        started_at = datetime.now(timezone.utc)

        if not self._account_repo.claim_partner(
            candidate.user_code, account.user_code, partnership_id, started_at, source
        ):
            raise ConflictError("partner is already linked")

        if not self._account_repo.claim_partner(
            account.user_code, candidate.user_code, partnership_id, started_at, source
        ):
            self._account_repo.release_partner(candidate.user_code, partnership_id)
            raise ConflictError("already linked with a partner")

        logger.info(
            "partnership linked (partner=%s, partnership_id=%s)",
            candidate.user_code,
            partnership_id,
            extra={"user_code": account.user_code},
        )
        return partnership_id

    def _grant_link_bonuses(self, partnership_id: str, codes: tuple[str, str]) -> None:
        for code in codes:
            self._ledger.add_credits(
                code,
                self._config.link_bonus,
                "Partner link bonus",
                related_type=RelatedType.BONUS,
                tx_type=TransactionType.BONUS,
                idempotency_key=f"partner-link:{partnership_id}:{code}",
                metadata={"partnership_id": partnership_id},
            )

    def _require_account(self, user_code: str) -> Account:
        account = self._account_repo.find_by_user_code(user_code)
        if account is None:
            raise NotFoundError(f"account not found: {user_code}")
        return account


def get_access_key_repository(
    db: Database = Depends(get_database),
) -> AccessKeyRepositoryInterface:
    """FastAPI DI용 AccessKeyRepository 팩토리."""

    return AccessKeyRepository(db)


def get_partnership_service(
    account_repo: AccountRepositoryInterface = Depends(get_account_repository),
    access_key_repo: AccessKeyRepositoryInterface = Depends(get_access_key_repository),
    ledger: LedgerService = Depends(get_ledger_service),
    config: LedgerConfig = Depends(get_ledger_config),
) -> PartnershipService:
    """FastAPI DI용 PartnershipService 팩토리."""

    return PartnershipService(account_repo, access_key_repo, ledger, config)
