from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

import pytest

from muffi_service.app.config import LedgerConfig
from muffi_service.app.exceptions import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailure,
)
from muffi_service.app.models.appointment import AppointmentStatus, BookingInput
from muffi_service.app.models.credit import TransactionType
from muffi_service.app.models.service import (
    AdHocService,
    PersistedServiceRef,
    Service,
    ServiceCategory,
)
from muffi_service.app.services.appointments_service import AppointmentsService
from muffi_service.app.services.ledger_service import LedgerService
from muffi_service.tests.fakes import (
    FakeAccountRepository,
    FakeAppointmentRepository,
    FakeCreditTransactionRepository,
    FakeServiceRepository,
    add_account,
    add_couple,
)


@dataclass
class AppointmentsServiceFixture:
    service: AppointmentsService
    ledger: LedgerService
    appointment_repo: FakeAppointmentRepository
    service_repo: FakeServiceRepository
    transaction_repo: FakeCreditTransactionRepository


def _build_fixture(seed: int = 200) -> AppointmentsServiceFixture:
    account_repo = FakeAccountRepository()
    add_couple(account_repo, "alice", "bob")
    add_account(account_repo, "carol", access_key="other-key")
    transaction_repo = FakeCreditTransactionRepository()
    ledger = LedgerService(transaction_repo, account_repo, LedgerConfig())
    appointment_repo = FakeAppointmentRepository()
    service_repo = FakeServiceRepository()
    service = AppointmentsService(appointment_repo, service_repo, account_repo, ledger)
    if seed:
        ledger.add_credits("alice", seed, "seed")
    return AppointmentsServiceFixture(
        service=service,
        ledger=ledger,
        appointment_repo=appointment_repo,
        service_repo=service_repo,
        transaction_repo=transaction_repo,
    )


def _ad_hoc(cost: int = 30) -> BookingInput:
    return BookingInput(
        service=AdHocService(name="Picnic", credit_cost=cost),
        date=date(2026, 5, 1),
        time="18:30",
    )


def _completed(fixture: AppointmentsServiceFixture, cost: int) -> str:
    appointment = fixture.service.book("alice", _ad_hoc(cost))
    assert appointment.id is not None
    fixture.service.accept("bob", appointment.id)
    fixture.service.complete("bob", appointment.id)
    return appointment.id


def test_booking_spends_credit_cost() -> None:
    fixture = _build_fixture()

    appointment = fixture.service.book("alice", _ad_hoc(30))

    assert appointment.status == AppointmentStatus.PENDING
    assert appointment.partner_code == "bob"
    assert appointment.service_kind == "ad_hoc"
    assert fixture.ledger.get_balance("alice") == 170
    spent = fixture.transaction_repo.for_user("alice")[-1]
    assert spent.type == TransactionType.SPENT
    assert spent.related_id == appointment.id
    assert spent.idempotency_key == f"appointment:{appointment.id}:booking"


def test_booking_persisted_service_uses_its_cost() -> None:
    fixture = _build_fixture()
    now = datetime.now(timezone.utc)
    stored = fixture.service_repo.insert(
        Service(
            owner_code="bob",
            name="Massage",
            credit_cost=45,
            category=ServiceCategory.HELP,
            created_at=now,
            updated_at=now,
        )
    )
    assert stored.id is not None

    appointment = fixture.service.book(
        "alice",
        BookingInput(
            service=PersistedServiceRef(service_id=stored.id),
            date=date(2026, 5, 1),
            time="09:00",
        ),
    )

    assert appointment.service_id == stored.id
    assert appointment.credit_cost == 45
    assert appointment.category == ServiceCategory.HELP
    assert fixture.ledger.get_balance("alice") == 155


def test_booking_unknown_persisted_service_fails() -> None:
    fixture = _build_fixture()

    with pytest.raises(NotFoundError):
        fixture.service.book(
            "alice",
            BookingInput(
                service=PersistedServiceRef(service_id="missing"),
                date=date(2026, 5, 1),
                time="09:00",
            ),
        )


def test_ad_hoc_service_defaults() -> None:
    selection = AdHocService(name="Surprise")

    assert selection.credit_cost == 10
    assert selection.category == ServiceCategory.CUSTOM


def test_ad_hoc_booking_requires_name() -> None:
    fixture = _build_fixture()

    with pytest.raises(ValidationFailure):
        fixture.service.book(
            "alice",
            BookingInput(service=AdHocService(name="  "), date=date(2026, 5, 1), time="10:00"),
        )


def test_booking_with_insufficient_funds_creates_nothing() -> None:
    fixture = _build_fixture(seed=20)

    with pytest.raises(InsufficientFundsError):
        fixture.service.book("alice", _ad_hoc(30))

    assert fixture.appointment_repo.appointments == {}
    assert fixture.ledger.get_balance("alice") == 20


def test_free_booking_writes_no_transaction() -> None:
    fixture = _build_fixture(seed=0)

    fixture.service.book("alice", _ad_hoc(0))

    assert fixture.transaction_repo.items == []


def test_booking_refunds_when_appointment_cannot_be_stored() -> None:
    fixture = _build_fixture()
    fixture.appointment_repo.fail_insert = True

    with pytest.raises(RuntimeError):
        fixture.service.book("alice", _ad_hoc(30))

    assert fixture.ledger.get_balance("alice") == 200
    assert fixture.transaction_repo.for_user("alice")[-1].type == TransactionType.REFUND


def test_unlinked_booker_is_own_partner() -> None:
    fixture = _build_fixture(seed=0)
    fixture.ledger.add_credits("carol", 50, "seed")

    appointment = fixture.service.book("carol", _ad_hoc(10))

    assert appointment.partner_code == "carol"


def test_only_partner_can_accept() -> None:
    fixture = _build_fixture()
    appointment = fixture.service.book("alice", _ad_hoc())
    assert appointment.id is not None

    with pytest.raises(UnauthorizedError):
        fixture.service.accept("alice", appointment.id)

    accepted = fixture.service.accept("bob", appointment.id)
    assert accepted.status == AppointmentStatus.CONFIRMED
    assert accepted.is_active is True


def test_outsider_cannot_view_appointment() -> None:
    fixture = _build_fixture()
    appointment = fixture.service.book("alice", _ad_hoc())
    assert appointment.id is not None

    with pytest.raises(UnauthorizedError):
        fixture.service.get("carol", appointment.id)


def test_cancel_refunds_full_cost_once() -> None:
    fixture = _build_fixture()
    appointment = fixture.service.book("alice", _ad_hoc(30))
    assert appointment.id is not None

    cancelled = fixture.service.cancel("alice", appointment.id)
    again = fixture.service.cancel("alice", appointment.id)

    assert cancelled.status == AppointmentStatus.CANCELLED
    assert again.status == AppointmentStatus.CANCELLED
    refunds = [
        tx
        for tx in fixture.transaction_repo.for_user("alice")
        if tx.idempotency_key == f"appointment:{appointment.id}:refund"
    ]
    assert len(refunds) == 1
    assert refunds[0].amount == 30
    assert refunds[0].type == TransactionType.EARNED
    assert fixture.ledger.get_balance("alice") == 200


def test_decline_refunds_booker() -> None:
    fixture = _build_fixture()
    appointment = fixture.service.book("alice", _ad_hoc(30))
    assert appointment.id is not None

    with pytest.raises(UnauthorizedError):
        fixture.service.decline("alice", appointment.id)

    fixture.service.decline("bob", appointment.id)

    assert fixture.ledger.get_balance("alice") == 200
    assert fixture.ledger.get_balance("bob") == 0


def test_cancel_completed_appointment_is_rejected_without_refund() -> None:
    fixture = _build_fixture()
    appointment_id = _completed(fixture, 30)

    with pytest.raises(ConflictError):
        fixture.service.cancel("alice", appointment_id)

    assert fixture.ledger.get_balance("alice") == 170


def test_complete_requires_confirmed() -> None:
    fixture = _build_fixture()
    appointment = fixture.service.book("alice", _ad_hoc())
    assert appointment.id is not None

    with pytest.raises(ConflictError):
        fixture.service.complete("alice", appointment.id)


@pytest.mark.parametrize(
    ("rating", "final_cost", "balance_change"),
    [
        (1, 50, -50),
        (3, 100, 0),
        (5, 150, 50),
    ],
)
def test_rating_settles_difference_to_rater(
    rating: int, final_cost: int, balance_change: int
) -> None:
    fixture = _build_fixture(seed=300)
    appointment_id = _completed(fixture, 100)
    before = fixture.ledger.get_balance("alice")

    rated, delta = fixture.service.rate("alice", appointment_id, rating, "thanks")

    assert rated.final_credit_cost == final_cost
    assert rated.credit_cost == 100
    assert delta == balance_change
    assert fixture.ledger.get_balance("alice") == before + balance_change


def test_neutral_rating_writes_no_transaction() -> None:
    fixture = _build_fixture()
    appointment_id = _completed(fixture, 100)
    count = len(fixture.transaction_repo.items)

    fixture.service.rate("alice", appointment_id, 3)

    assert len(fixture.transaction_repo.items) == count


def test_rating_rounds_half_up() -> None:
    fixture = _build_fixture()
    appointment_id = _completed(fixture, 10)

    rated, delta = fixture.service.rate("alice", appointment_id, 2)

    # 10 * 0.75 = 7.5 -> 8
    assert rated.final_credit_cost == 8
    assert delta == -2


def test_rerating_is_rejected_and_changes_nothing() -> None:
    fixture = _build_fixture(seed=300)
    appointment_id = _completed(fixture, 100)
    fixture.service.rate("alice", appointment_id, 5)
    balance = fixture.ledger.get_balance("alice")

    with pytest.raises(ConflictError):
        fixture.service.rate("alice", appointment_id, 1)

    assert fixture.ledger.get_balance("alice") == balance
    stored = fixture.appointment_repo.find_by_id(appointment_id)
    assert stored is not None and stored.rating == 5


@pytest.mark.parametrize("rating", [0, 6])
def test_rating_out_of_range_is_rejected(rating: int) -> None:
    fixture = _build_fixture()
    appointment_id = _completed(fixture, 100)

    with pytest.raises(ValidationFailure):
        fixture.service.rate("alice", appointment_id, rating)


def test_rating_requires_completed_status() -> None:
    fixture = _build_fixture()
    appointment = fixture.service.book("alice", _ad_hoc())
    assert appointment.id is not None

    with pytest.raises(ValidationFailure):
        fixture.service.rate("alice", appointment.id, 4)


def test_low_rating_deduction_is_capped_at_balance() -> None:
    fixture = _build_fixture(seed=120)
    appointment_id = _completed(fixture, 100)

    before = fixture.ledger.get_balance("alice")

    appointment, delta = fixture.service.rate("alice", appointment_id, 1)

    assert appointment.final_credit_cost == 50
    assert fixture.ledger.get_balance("alice") == 0
    # 응답의 변동액은 계산값(-50)이 아니라 실제로 차감된 금액이다.
    assert delta == -before
    assert delta == -20
