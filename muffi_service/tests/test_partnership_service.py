from __future__ import annotations

from dataclasses import dataclass

import pytest

from muffi_service.app.config import LedgerConfig
from muffi_service.app.exceptions import ConflictError, NotFoundError, ValidationFailure
from muffi_service.app.models.account import SignupInput, hash_access_key
from muffi_service.app.models.credit import TransactionType
from muffi_service.app.services.ledger_service import LedgerService
from muffi_service.app.services.partnership_service import PartnershipService
from muffi_service.tests.fakes import (
    FakeAccessKeyRepository,
    FakeAccountRepository,
    FakeCreditTransactionRepository,
    add_account,
)


@dataclass
class PartnershipServiceFixture:
    service: PartnershipService
    ledger: LedgerService
    account_repo: FakeAccountRepository
    access_key_repo: FakeAccessKeyRepository
    transaction_repo: FakeCreditTransactionRepository


def _build_fixture() -> PartnershipServiceFixture:
    config = LedgerConfig()
    account_repo = FakeAccountRepository()
    access_key_repo = FakeAccessKeyRepository()
    transaction_repo = FakeCreditTransactionRepository()
    ledger = LedgerService(transaction_repo, account_repo, config)
    service = PartnershipService(account_repo, access_key_repo, ledger, config)
    return PartnershipServiceFixture(
        service=service,
        ledger=ledger,
        account_repo=account_repo,
        access_key_repo=access_key_repo,
        transaction_repo=transaction_repo,
    )


def _signup(
    fixture: PartnershipServiceFixture, name: str, access_key: str = "our-secret"
):
    return fixture.service.signup(
        SignupInput(name=name, email=f"{name}@example.com", access_key=access_key)
    )


def test_signup_grants_welcome_bonus() -> None:
    fixture = _build_fixture()

    profile = _signup(fixture, "alice")

    assert profile.credits == 20
    assert profile.partner_code is None
    [tx] = fixture.transaction_repo.for_user(profile.user_code)
    assert tx.type == TransactionType.BONUS
    assert tx.idempotency_key == f"welcome:{profile.user_code}"


def test_signup_stores_hashed_access_key_and_lowercased_email() -> None:
    fixture = _build_fixture()

    profile = fixture.service.signup(
        SignupInput(name="alice", email="Alice@Example.COM", access_key="our-secret")
    )

    stored = fixture.account_repo.find_by_user_code(profile.user_code)
    assert stored is not None
    assert stored.email == "alice@example.com"
    assert stored.access_key_hash == hash_access_key("our-secret")
    assert stored.access_key_hash != "our-secret"


def test_second_signup_with_same_key_auto_links_without_link_bonus() -> None:
    fixture = _build_fixture()
    alice = _signup(fixture, "alice")

    bob = _signup(fixture, "bob")

    assert bob.partner_code == alice.user_code
    alice_after = fixture.service.get_profile(alice.user_code)
    assert alice_after.partner_code == bob.user_code
    assert alice_after.partnership_id == bob.partnership_id
    assert alice_after.relationship_start_date == bob.relationship_start_date
    assert alice_after.credits == 20
    assert bob.credits == 20


def test_third_signup_with_same_key_is_rejected() -> None:
    fixture = _build_fixture()
    _signup(fixture, "alice")
    _signup(fixture, "bob")

    with pytest.raises(ConflictError):
        _signup(fixture, "mallory")

    assert fixture.account_repo.find_by_email("mallory@example.com") is None


def test_duplicate_email_is_rejected() -> None:
    fixture = _build_fixture()
    _signup(fixture, "alice")

    with pytest.raises(ConflictError):
        _signup(fixture, "alice", access_key="another-key")


def test_link_by_access_key_links_both_sides_and_grants_bonus_once() -> None:
    fixture = _build_fixture()
    add_account(fixture.account_repo, "alice", access_key="shared-key")
    add_account(fixture.account_repo, "bob", access_key="shared-key")

    profile = fixture.service.link_by_access_key("alice", "shared-key")

    alice = fixture.account_repo.find_by_user_code("alice")
    bob = fixture.account_repo.find_by_user_code("bob")
    assert alice is not None and bob is not None
    assert alice.partner_code == "bob"
    assert bob.partner_code == "alice"
    assert alice.partnership_id == bob.partnership_id
    assert profile.credits == 25
    assert fixture.ledger.get_balance("bob") == 25


def test_link_retry_grants_partner_bonus_lost_in_first_attempt() -> None:
    fixture = _build_fixture()
    add_account(fixture.account_repo, "alice", access_key="shared-key")
    add_account(fixture.account_repo, "bob", access_key="shared-key")
    fixture.transaction_repo.fail_append_for.add("bob")

    # 양쪽 연결 후 bob 의 보너스 기록에서 실패
    with pytest.raises(RuntimeError):
        fixture.service.link_by_access_key("alice", "shared-key")
    assert fixture.ledger.get_balance("alice") == 25
    assert fixture.ledger.get_balance("bob") == 0

    fixture.transaction_repo.fail_append_for.clear()
    profile = fixture.service.link_by_access_key("alice", "shared-key")
    fixture.service.link_by_access_key("alice", "shared-key")

    assert profile.partner_code == "bob"
    assert fixture.ledger.get_balance("alice") == 25
    assert fixture.ledger.get_balance("bob") == 25


def test_link_retry_after_signup_auto_link_is_rejected_without_bonus() -> None:
    fixture = _build_fixture()
    alice = _signup(fixture, "alice")
    _signup(fixture, "bob")

    with pytest.raises(ConflictError):
        fixture.service.link_by_access_key(alice.user_code, "our-secret")

    assert fixture.ledger.get_balance(alice.user_code) == 20


def test_link_retry_with_different_access_key_is_rejected() -> None:
    fixture = _build_fixture()
    add_account(fixture.account_repo, "alice", access_key="shared-key")
    add_account(fixture.account_repo, "bob", access_key="shared-key")
    fixture.service.link_by_access_key("alice", "shared-key")

    with pytest.raises(ConflictError):
        fixture.service.link_by_access_key("alice", "wrong-key")


def test_link_fails_when_already_linked() -> None:
    fixture = _build_fixture()
    add_account(fixture.account_repo, "alice", partner_code="bob", partnership_id="p1")

    with pytest.raises(ConflictError):
        fixture.service.link_by_access_key("alice", "shared-key")


def test_link_fails_without_candidate() -> None:
    fixture = _build_fixture()
    add_account(fixture.account_repo, "alice", access_key="shared-key")

    with pytest.raises(NotFoundError):
        fixture.service.link_by_access_key("alice", "shared-key")


def test_link_rolls_back_candidate_when_caller_claim_fails() -> None:
    fixture = _build_fixture()
    add_account(fixture.account_repo, "alice", access_key="shared-key")
    add_account(fixture.account_repo, "bob", access_key="shared-key")
    fixture.account_repo.fail_claim_for.add("alice")

    with pytest.raises(ConflictError):
        fixture.service.link_by_access_key("alice", "shared-key")

    bob = fixture.account_repo.find_by_user_code("bob")
    assert bob is not None
    assert bob.partner_code is None
    assert bob.partnership_id is None
    assert fixture.transaction_repo.items == []


def test_unlink_clears_both_sides_and_keeps_bonuses() -> None:
    fixture = _build_fixture()
    add_account(fixture.account_repo, "alice", access_key="shared-key")
    add_account(fixture.account_repo, "bob", access_key="shared-key")
    fixture.service.link_by_access_key("alice", "shared-key")

    profile = fixture.service.unlink("bob")

    alice = fixture.account_repo.find_by_user_code("alice")
    assert alice is not None
    assert alice.partner_code is None
    assert alice.relationship_start_date is None
    assert profile.partner_code is None
    assert profile.credits == 25


def test_unlink_requires_partner() -> None:
    fixture = _build_fixture()
    add_account(fixture.account_repo, "alice")

    with pytest.raises(ValidationFailure):
        fixture.service.unlink("alice")


def test_profile_includes_partner_summary() -> None:
    fixture = _build_fixture()
    alice = _signup(fixture, "alice")
    bob = _signup(fixture, "bob")

    profile = fixture.service.get_profile(alice.user_code)

    assert profile.partner is not None
    assert profile.partner.user_code == bob.user_code
    assert profile.partner.credits == 20
