from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from ..models.account import Account, LinkSource
from ..models.appointment import Appointment, AppointmentStatus
from ..models.credit import CreditTransaction, TypeTotal
from ..models.grievance import Grievance, GrievanceStatus
from ..models.service import Service


class CreditTransactionRepositoryInterface(Protocol):
    """원장(append-only) 저장소가 따라야 할 계약.

    - append 는 (user_code, seq) 가 이미 있으면 SequenceConflictError,
      idempotency_key 가 이미 있으면 DuplicateIdempotencyKeyError 를 발생시킨다.
    - 트랜잭션을 수정/삭제하는 메서드는 없다.
    """

    def head_sequence(self, user_code: str) -> int:  # pragma: no cover - Protocol
        ...

    def compute_balance(
        self, user_code: str, upto_seq: int | None = None
    ) -> int:  # pragma: no cover - Protocol
        ...

    def append(
        self, tx: CreditTransaction
    ) -> CreditTransaction:  # pragma: no cover - Protocol
        ...

    def find_by_idempotency_key(
        self, key: str
    ) -> CreditTransaction | None:  # pragma: no cover - Protocol
        ...

    def list_by_user(
        self, user_code: str, page: int, page_size: int, sort: str = "-created_at"
    ) -> tuple[list[CreditTransaction], int]:  # pragma: no cover - Protocol
        ...

    def totals_by_type(
        self, user_code: str
    ) -> dict[str, TypeTotal]:  # pragma: no cover - Protocol
        ...

    def totals_by_user(
        self, user_codes: list[str], types: list[str]
    ) -> dict[str, TypeTotal]:  # pragma: no cover - Protocol
        ...


class AccountRepositoryInterface(Protocol):
    """계정 저장소 계약.

    파트너 연결/해제는 모두 조건부 업데이트로, 조건이 맞지 않으면 False 를 반환한다.
    """

    def insert(self, account: Account) -> Account:  # pragma: no cover - Protocol
        ...

    def find_by_user_code(
        self, user_code: str
    ) -> Account | None:  # pragma: no cover - Protocol
        ...

    def find_by_email(self, email: str) -> Account | None:  # pragma: no cover - Protocol
        ...

    def find_unlinked_by_access_key(
        self, access_key_hash: str, exclude_user_code: str
    ) -> Account | None:  # pragma: no cover - Protocol
        ...

    def claim_partner(
        self,
        user_code: str,
        partner_code: str,
        partnership_id: str,
        relationship_start_date: datetime,
        link_source: LinkSource,
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def release_partner(
        self, user_code: str, partnership_id: str
    ) -> bool:  # pragma: no cover - Protocol
        ...


class AccessKeyRepositoryInterface(Protocol):
    """접근 키 공유 인원 제한 저장소 계약."""

    def reserve(
        self, access_key_hash: str, user_code: str, max_holders: int
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def release(
        self, access_key_hash: str, user_code: str
    ) -> None:  # pragma: no cover - Protocol
        ...


class ServiceRepositoryInterface(Protocol):
    def insert(self, service: Service) -> Service:  # pragma: no cover - Protocol
        ...

    def find_by_id(self, service_id: str) -> Service | None:  # pragma: no cover - Protocol
        ...

    def list(
        self, page: int, page_size: int, owner_code: str | None = None
    ) -> tuple[list[Service], int]:  # pragma: no cover - Protocol
        ...


class AppointmentRepositoryInterface(Protocol):
    """예약 저장소 계약.

    상태 전이는 transition 하나로 처리한다. from_statuses 중 하나일 때만 바뀌고,
    바뀐 경우 최신 도메인 객체를, 아니면 None 을 반환한다.
    """

    def insert(
        self, appointment: Appointment
    ) -> Appointment:  # pragma: no cover - Protocol
        ...

    def find_by_id(
        self, appointment_id: str
    ) -> Appointment | None:  # pragma: no cover - Protocol
        ...

    def list_for_user(
        self, user_code: str
    ) -> list[Appointment]:  # pragma: no cover - Protocol
        ...

    def transition(
        self,
        appointment_id: str,
        from_statuses: tuple[AppointmentStatus, ...],
        to_status: AppointmentStatus,
        changes: dict[str, Any] | None = None,
    ) -> Appointment | None:  # pragma: no cover - Protocol
        ...

    def set_rating(
        self,
        appointment_id: str,
        rating: int,
        feedback: str | None,
        final_credit_cost: int,
        rated_by: str,
    ) -> Appointment | None:  # pragma: no cover - Protocol
        ...


class GrievanceRepositoryInterface(Protocol):
    """불만 저장소 계약. update/delete/transition 은 pending 조건부다."""

    def insert(self, grievance: Grievance) -> Grievance:  # pragma: no cover - Protocol
        ...

    def find_by_id(
        self, grievance_id: str
    ) -> Grievance | None:  # pragma: no cover - Protocol
        ...

    def list_for_user(
        self, user_code: str, status: GrievanceStatus | None = None
    ) -> list[Grievance]:  # pragma: no cover - Protocol
        ...

    def update_pending(
        self, grievance_id: str, changes: dict[str, Any]
    ) -> Grievance | None:  # pragma: no cover - Protocol
        ...

    def transition(
        self,
        grievance_id: str,
        to_status: GrievanceStatus,
        changes: dict[str, Any] | None = None,
    ) -> Grievance | None:  # pragma: no cover - Protocol
        ...

    def delete_pending(self, grievance_id: str) -> bool:  # pragma: no cover - Protocol
        ...
