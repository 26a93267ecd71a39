"""크레딧 원장 서비스.

잔액 계산과 모든 원장 쓰기를 담당한다. 쓰기는 전부 _post 한 곳을 거친다.

_post 는 유저의 마지막 seq(head)를 읽고, head 까지의 잔액으로 정책(reject/cap)을
검사한 뒤 seq=head+1 로 insert 한다. 그 사이에 다른 요청이 먼저 쓰면
(user_code, seq) 유니크 인덱스 때문에 insert 가 실패하고, 처음부터 다시 시도한다.
따라서 "잔액 검사 후 차감"이 하나의 조건부 쓰기가 되어 동시에 들어온 두 차감이
함께 잔액을 음수로 만들 수 없다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database

from ..config import LedgerConfig, get_ledger_config
from ..exceptions import (
    ConflictError,
    DuplicateIdempotencyKeyError,
    InsufficientFundsError,
    NotFoundError,
    SequenceConflictError,
    ValidationFailure,
)
from ..models.account import Account
from ..models.credit import (
    CoupleLeaderboard,
    CoupleStats,
    CreditTransaction,
    CreditTransactionInput,
    FundsPolicy,
    LeaderboardEntry,
    RelatedType,
    TransactionType,
    TransferResult,
    TypeTotal,
    funds_policy_for,
)
from ..repositories.account_repository import AccountRepository
from ..repositories.credit_repository import CreditTransactionRepository
from ..repositories.interfaces import (
    AccountRepositoryInterface,
    CreditTransactionRepositoryInterface,
)


logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS_LIMIT = 10

EARNER_TYPES: tuple[TransactionType, ...] = (TransactionType.EARNED, TransactionType.BONUS)
SPENDER_TYPES: tuple[TransactionType, ...] = (TransactionType.SPENT,)


class LedgerService:
    """크레딧 잔액 조회 및 원장 기록 비즈니스 로직."""

    def __init__(
        self,
        transaction_repo: CreditTransactionRepositoryInterface,
        account_repo: AccountRepositoryInterface,
        config: LedgerConfig,
    ) -> None:
        self._transaction_repo = transaction_repo
        self._account_repo = account_repo
        self._config = config

    # -------- 조회 --------

    def get_balance(self, user_code: str) -> int:
        """적립 합계 - 차감 합계. 부수 효과 없음."""
        self._require_account(user_code)
        return self._transaction_repo.compute_balance(user_code)

    def get_history(
        self,
        user_code: str,
        page: int = 1,
        limit: int = 20,
        sort: str = "-created_at",
    ) -> tuple[list[CreditTransaction], int]:
        self._require_account(user_code)
        return self._transaction_repo.list_by_user(user_code, page, limit, sort)

    def get_partner_balance(self, user_code: str) -> tuple[Account, int]:
        partner = self._require_partner(self._require_account(user_code))
        return partner, self._transaction_repo.compute_balance(partner.user_code)

    def get_couple_stats(self, user_code: str) -> CoupleStats:
        account = self._require_account(user_code)
        partner = self._require_partner(account)

        totals: dict[str, TypeTotal] = {}
        counts: dict[str, int] = {}
        recent: list[CreditTransaction] = []
        for code in (account.user_code, partner.user_code):
            per_type = self._transaction_repo.totals_by_type(code)
            counts[code] = sum(t.count for t in per_type.values())
            for tx_type, value in per_type.items():
                merged = totals.setdefault(tx_type, TypeTotal())
                merged.total += value.total
                merged.count += value.count

            items, _ = self._transaction_repo.list_by_user(
                code, 1, RECENT_TRANSACTIONS_LIMIT, "-created_at"
            )
            recent.extend(items)

        recent.sort(key=lambda tx: tx.created_at, reverse=True)

        user_balance = self._transaction_repo.compute_balance(account.user_code)
        partner_balance = self._transaction_repo.compute_balance(partner.user_code)
        return CoupleStats(
            user_code=account.user_code,
            partner_code=partner.user_code,
            user_balance=user_balance,
            partner_balance=partner_balance,
            combined_balance=user_balance + partner_balance,
            user_transaction_count=counts[account.user_code],
            partner_transaction_count=counts[partner.user_code],
            totals_by_type=totals,
            recent_transactions=recent[:RECENT_TRANSACTIONS_LIMIT],
        )

    def get_leaderboard(self, user_code: str) -> CoupleLeaderboard:
        """커플 두 사람의 적립(earned+bonus) 순위와 사용(spent) 순위.

        해당 타입 기록이 한 건도 없는 사람은 그 목록에서 빠진다.
        """
        account = self._require_account(user_code)
        partner = self._require_partner(account)
        members = {account.user_code: account, partner.user_code: partner}

        def ranked(types: tuple[TransactionType, ...]) -> list[LeaderboardEntry]:
            totals = self._transaction_repo.totals_by_user(
                list(members), [str(t) for t in types]
            )
            entries = [
                LeaderboardEntry(
                    user_code=code,
                    name=members[code].name,
                    total=value.total,
                    count=value.count,
                )
                for code, value in totals.items()
                if code in members
            ]
            entries.sort(key=lambda e: (-e.total, e.user_code))
            return entries

        return CoupleLeaderboard(
            top_earners=ranked(EARNER_TYPES),
            top_spenders=ranked(SPENDER_TYPES),
        )

    # -------- 쓰기 --------

    def add_credits(
        self,
        user_code: str,
        amount: int,
        reason: str,
        related_id: str | None = None,
        related_type: RelatedType | None = None,
        tx_type: TransactionType = TransactionType.EARNED,
        idempotency_key: str | None = None,
        metadata: dict | None = None,
    ) -> CreditTransaction | None:
        """크레딧 적립. amount 는 절댓값으로 기록한다."""
        return self.create_transaction(
            CreditTransactionInput(
                user_code=user_code,
                type=tx_type,
                amount=abs(amount),
                reason=reason,
                related_id=related_id,
                related_type=related_type,
                idempotency_key=idempotency_key,
                metadata=metadata or {},
            )
        )

    def spend_credits(
        self,
        user_code: str,
        amount: int,
        reason: str,
        related_id: str | None = None,
        related_type: RelatedType | None = None,
        idempotency_key: str | None = None,
        metadata: dict | None = None,
    ) -> CreditTransaction:
        """크레딧 사용. 잔액이 부족하면 InsufficientFundsError."""
        tx = self.create_transaction(
            CreditTransactionInput(
                user_code=user_code,
                type=TransactionType.SPENT,
                amount=amount,
                reason=reason,
                related_id=related_id,
                related_type=related_type,
                idempotency_key=idempotency_key,
                metadata=metadata or {},
            )
        )
        assert tx is not None  # reject 정책은 항상 기록하거나 예외를 던진다.
        return tx

    def deduct_credits(
        self,
        user_code: str,
        amount: int,
        reason: str,
        related_id: str | None = None,
        related_type: RelatedType | None = None,
        idempotency_key: str | None = None,
        metadata: dict | None = None,
    ) -> CreditTransaction | None:
        """시스템 차감. 잔액까지만 차감하고, 잔액이 0 이면 아무것도 기록하지 않는다."""
        return self.create_transaction(
            CreditTransactionInput(
                user_code=user_code,
                type=TransactionType.DEDUCTED,
                amount=amount,
                reason=reason,
                related_id=related_id,
                related_type=related_type,
                idempotency_key=idempotency_key,
                metadata=metadata or {},
            )
        )

    def refund(
        self,
        user_code: str,
        amount: int,
        reason: str,
        related_id: str | None = None,
        related_type: RelatedType | None = None,
        idempotency_key: str | None = None,
    ) -> CreditTransaction | None:
        """환불은 refund 트랜잭션 하나로만 기록한다."""
        return self.add_credits(
            user_code,
            amount,
            reason,
            related_id=related_id,
            related_type=related_type,
            tx_type=TransactionType.REFUND,
            idempotency_key=idempotency_key,
        )

    def grant_welcome_bonus(self, user_code: str) -> CreditTransaction:
        """가입 보너스. 유저당 한 번만 기록되므로 가입 중 실패했다면 다시 호출하면 된다."""
        tx = self.add_credits(
            user_code,
            self._config.welcome_bonus,
            "Welcome bonus",
            related_type=RelatedType.BONUS,
            tx_type=TransactionType.BONUS,
            idempotency_key=f"welcome:{user_code}",
        )
        assert tx is not None
        return tx

    def create_transaction(
        self, tx_input: CreditTransactionInput
    ) -> CreditTransaction | None:
        self._require_account(tx_input.user_code)
        return self._post(tx_input)

    def transfer(
        self,
        from_user: str,
        to_user: str,
        amount: int,
        reason: str,
        credit_reason: str | None = None,
    ) -> TransferResult:
        """송금 (출금 후 입금).

        입금이 실패하면 출금을 refund 로 되돌리고 원래 예외를 다시 던진다.
        credit_reason 이 없으면 입금 쪽도 reason 을 그대로 쓴다.
        """
        if amount <= 0:
            raise ValidationFailure("transfer amount must be positive")
        if from_user == to_user:
            raise ValidationFailure("cannot transfer credits to yourself")
        self._require_account(from_user)
        self._require_account(to_user)

        transfer_id = uuid4().hex
        metadata = {"transfer_id": transfer_id, "from": from_user, "to": to_user}

        debit = self.spend_credits(
            from_user,
            amount,
            reason,
            related_id=to_user,
            related_type=RelatedType.TRANSFER,
            idempotency_key=f"transfer:{transfer_id}:debit",
            metadata=metadata,
        )

        try:
            credit = self.add_credits(
                to_user,
                amount,
                credit_reason or reason,
                related_id=from_user,
                related_type=RelatedType.TRANSFER,
                idempotency_key=f"transfer:{transfer_id}:credit",
                metadata=metadata,
            )
        except Exception:
            logger.exception(
                "transfer credit leg failed, reversing debit",
                extra={"user_code": from_user, "transfer_id": transfer_id},
            )
            self.refund(
                from_user,
                amount,
                f"Transfer reversed: {reason}",
                related_id=to_user,
                related_type=RelatedType.TRANSFER,
                idempotency_key=f"transfer:{transfer_id}:reversal",
            )
            raise

        assert credit is not None
        return TransferResult(
            transfer_id=transfer_id,
            debit=debit,
            credit=credit,
            sender_balance=self._transaction_repo.compute_balance(from_user),
        )

    def transfer_to_partner(
        self, user_code: str, amount: int, description: str
    ) -> TransferResult:
        partner = self._require_partner(self._require_account(user_code))
        return self.transfer(
            user_code,
            partner.user_code,
            amount,
            f"Transferred to partner: {description}",
            credit_reason=f"Received from partner: {description}",
        )

    # -------- internal --------

    def _post(self, tx_input: CreditTransactionInput) -> CreditTransaction | None:
        """원장 쓰기 단일 진입점.

        - 같은 idempotency_key 로 이미 기록됐다면 기존 트랜잭션을 반환한다.
        - cap 정책에서 차감할 잔액이 없으면 None 을 반환한다.
        """
        if tx_input.amount <= 0:
            raise ValidationFailure("amount must be a positive integer")
        if not tx_input.reason or not tx_input.reason.strip():
            raise ValidationFailure("reason is required")

        if tx_input.idempotency_key:
            existing = self._transaction_repo.find_by_idempotency_key(
                tx_input.idempotency_key
            )
            if existing is not None:
                logger.debug(
                    "idempotency key already used, returning existing transaction",
                    extra={
                        "user_code": tx_input.user_code,
                        "idempotency_key": tx_input.idempotency_key,
                    },
                )
                return existing

        policy = funds_policy_for(tx_input.type)

        for attempt in range(1, self._config.max_post_attempts + 1):
            head = self._transaction_repo.head_sequence(tx_input.user_code)
            amount = tx_input.amount
            metadata = dict(tx_input.metadata)

            if policy != FundsPolicy.NONE:
                balance = self._transaction_repo.compute_balance(
                    tx_input.user_code, upto_seq=head
                )
                if policy == FundsPolicy.REJECT and balance < amount:
                    raise InsufficientFundsError(
                        f"insufficient credits: balance {balance}, required {amount}"
                    )
                if policy == FundsPolicy.CAP and balance < amount:
                    amount = max(balance, 0)
                    metadata["requested_amount"] = tx_input.amount
                    if amount == 0:
                        logger.info(
                            "skipped deduction, no credits available (requested=%s)",
                            tx_input.amount,
                            extra={"user_code": tx_input.user_code},
                        )
                        return None

            now = datetime.now(timezone.utc)
            tx = CreditTransaction(
                user_code=tx_input.user_code,
                seq=head + 1,
                type=tx_input.type,
                amount=amount,
                reason=tx_input.reason,
                related_id=tx_input.related_id,
                related_type=tx_input.related_type,
                metadata=metadata,
                idempotency_key=tx_input.idempotency_key,
                created_at=now,
                updated_at=now,
            )

            try:
                saved = self._transaction_repo.append(tx)
            except SequenceConflictError:
                logger.debug(
                    "ledger sequence conflict, retrying (attempt=%s, seq=%s)",
                    attempt,
                    tx.seq,
                    extra={"user_code": tx_input.user_code},
                )
                continue
            except DuplicateIdempotencyKeyError:
                # 다른 요청이 같은 키로 먼저 기록했다.
                existing = self._transaction_repo.find_by_idempotency_key(
                    str(tx_input.idempotency_key)
                )
                if existing is None:
                    raise
                return existing

            logger.info(
                "posted credit transaction (type=%s, amount=%s, seq=%s)",
                saved.type,
                saved.amount,
                saved.seq,
                extra={
                    "user_code": saved.user_code,
                    "idempotency_key": saved.idempotency_key,
                },
            )
            return saved

        logger.warning(
            "ledger busy, giving up after %s attempts",
            self._config.max_post_attempts,
            extra={"user_code": tx_input.user_code},
        )
        raise ConflictError("ledger busy, please retry")

    def _require_account(self, user_code: str) -> Account:
        account = self._account_repo.find_by_user_code(user_code)
        if account is None:
            raise NotFoundError(f"account not found: {user_code}")
        return account

    def _require_partner(self, account: Account) -> Account:
        if account.partner_code is None:
            raise ValidationFailure("no partner linked")
        partner = self._account_repo.find_by_user_code(account.partner_code)
        if partner is None:
            raise NotFoundError(f"partner account not found: {account.partner_code}")
        return partner


def get_credit_transaction_repository(
    db: Database = Depends(get_database),
) -> CreditTransactionRepositoryInterface:
    """FastAPI DI용 CreditTransactionRepository 팩토리."""

    return CreditTransactionRepository(db)


def get_account_repository(
    db: Database = Depends(get_database),
) -> AccountRepositoryInterface:
    """FastAPI DI용 AccountRepository 팩토리."""

    return AccountRepository(db)


def get_ledger_service(
    transaction_repo: CreditTransactionRepositoryInterface = Depends(
        get_credit_transaction_repository
    ),
    account_repo: AccountRepositoryInterface = Depends(get_account_repository),
    config: LedgerConfig = Depends(get_ledger_config),
) -> LedgerService:
    """FastAPI DI용 LedgerService 팩토리."""

    return LedgerService(transaction_repo, account_repo, config)
