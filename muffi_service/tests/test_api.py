from __future__ import annotations

from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

from muffi_service.app.config import LedgerConfig
from muffi_service.app.main import create_app
from muffi_service.app.services.appointments_service import (
    AppointmentsService,
    get_appointments_service,
)
from muffi_service.app.services.catalog_service import CatalogService, get_catalog_service
from muffi_service.app.services.grievances_service import (
    GrievancesService,
    get_grievances_service,
)
from muffi_service.app.services.ledger_service import LedgerService, get_ledger_service
from muffi_service.app.services.partnership_service import (
    PartnershipService,
    get_partnership_service,
)
from muffi_service.tests.fakes import (
    FakeAccessKeyRepository,
    FakeAccountRepository,
    FakeAppointmentRepository,
    FakeCreditTransactionRepository,
    FakeGrievanceRepository,
    FakeServiceRepository,
    add_account,
    add_couple,
)


@dataclass
class ApiFixture:
    client: TestClient
    ledger: LedgerService
    transaction_repo: FakeCreditTransactionRepository


@pytest.fixture
def api() -> ApiFixture:
    config = LedgerConfig()
    account_repo = FakeAccountRepository()
    add_couple(account_repo, "alice", "bob")
    add_account(account_repo, "carol", access_key="other-key")
    transaction_repo = FakeCreditTransactionRepository()
    service_repo = FakeServiceRepository()
    ledger = LedgerService(transaction_repo, account_repo, config)

    app = create_app()
    app.dependency_overrides[get_ledger_service] = lambda: ledger
    app.dependency_overrides[get_partnership_service] = lambda: PartnershipService(
        account_repo, FakeAccessKeyRepository(), ledger, config
    )
    app.dependency_overrides[get_catalog_service] = lambda: CatalogService(
        service_repo, account_repo
    )
    appointments = AppointmentsService(
        FakeAppointmentRepository(), service_repo, account_repo, ledger
    )
    app.dependency_overrides[get_appointments_service] = lambda: appointments
    grievances = GrievancesService(FakeGrievanceRepository(), account_repo, ledger)
    app.dependency_overrides[get_grievances_service] = lambda: grievances

    return ApiFixture(client=TestClient(app), ledger=ledger, transaction_repo=transaction_repo)


def test_health(api: ApiFixture) -> None:
    resp = api.client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "muffi-service"}


def test_add_and_balance(api: ApiFixture) -> None:
    resp = api.client.post(
        "/api/v1/credits/alice/add",
        json={"amount": 30, "description": "chores", "relatedModel": "Service"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["balance"] == 30
    assert body["transaction"]["type"] == "earned"
    assert body["transaction"]["related_type"] == "service"

    balance = api.client.get("/api/v1/credits/alice/balance").json()
    assert balance == {"user_code": "alice", "balance": 30}


def test_penalty_alias_is_capped_deduction(api: ApiFixture) -> None:
    api.ledger.add_credits("alice", 5, "seed")

    resp = api.client.post(
        "/api/v1/credits/alice/add",
        json={"amount": 20, "description": "late", "type": "penalty"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["transaction"]["type"] == "deducted"
    assert body["transaction"]["amount"] == 5
    assert body["balance"] == 0


def test_spend_with_insufficient_funds_maps_to_400(api: ApiFixture) -> None:
    resp = api.client.post(
        "/api/v1/credits/alice/spend", json={"amount": 10, "description": "gift"}
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "insufficient_funds"


def test_non_positive_amount_is_rejected_by_schema(api: ApiFixture) -> None:
    resp = api.client.post(
        "/api/v1/credits/alice/add", json={"amount": 0, "description": "nothing"}
    )

    assert resp.status_code == 422


def test_transfer_to_partner(api: ApiFixture) -> None:
    api.ledger.add_credits("alice", 50, "seed")

    resp = api.client.post(
        "/api/v1/credits/alice/transfer", json={"amount": 20, "description": "coffee"}
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["balance"] == 30
    assert body["partner_balance"] == 20
    assert body["debit"]["metadata"]["transfer_id"] == body["transfer_id"]


def test_transfer_without_partner_maps_to_400(api: ApiFixture) -> None:
    api.ledger.add_credits("carol", 50, "seed")

    resp = api.client.post(
        "/api/v1/credits/carol/transfer", json={"amount": 20, "description": "coffee"}
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "validation_failure"


def test_history_is_paginated(api: ApiFixture) -> None:
    for amount in (1, 2, 3):
        api.ledger.add_credits("alice", amount, f"seed {amount}")

    resp = api.client.get(
        "/api/v1/credits/alice/history", params={"page": 1, "limit": 2, "sort": "-amount"}
    )

    body = resp.json()
    assert body["total"] == 3
    assert [item["amount"] for item in body["items"]] == [3, 2]


def test_unknown_account_maps_to_404(api: ApiFixture) -> None:
    resp = api.client.get("/api/v1/accounts/nobody")

    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "not_found"


def test_signup_and_profile(api: ApiFixture) -> None:
    resp = api.client.post(
        "/api/v1/accounts/signup",
        json={"name": "Dana", "email": "dana@example.com", "accessKey": "dana-secret"},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["credits"] == 20
    assert "access_key_hash" not in body


def test_booking_and_double_rating(api: ApiFixture) -> None:
    api.ledger.add_credits("alice", 100, "seed")
    booked = api.client.post(
        "/api/v1/appointments/alice",
        json={
            "service": {"kind": "ad_hoc", "name": "Picnic", "credit_cost": 40},
            "date": "2026-05-01",
            "time": "12:00",
        },
    )
    assert booked.status_code == 201
    appointment_id = booked.json()["id"]

    api.client.put(f"/api/v1/appointments/bob/{appointment_id}/accept")
    api.client.put(f"/api/v1/appointments/bob/{appointment_id}/complete")
    first = api.client.put(
        f"/api/v1/appointments/alice/{appointment_id}/rate", json={"rating": 5}
    )
    second = api.client.put(
        f"/api/v1/appointments/alice/{appointment_id}/rate", json={"rating": 1}
    )

    assert first.status_code == 200
    assert first.json()["credit_change"] == 20
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "conflict"
    assert api.ledger.get_balance("alice") == 80


def test_outsider_gets_403(api: ApiFixture) -> None:
    api.ledger.add_credits("alice", 100, "seed")
    booked = api.client.post(
        "/api/v1/appointments/alice",
        json={"service": {"kind": "ad_hoc", "name": "Picnic"}, "date": "2026-05-01", "time": "12:00"},
    )

    resp = api.client.get(f"/api/v1/appointments/carol/{booked.json()['id']}")

    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "unauthorized"


def test_anonymous_grievance_hides_author_from_partner(api: ApiFixture) -> None:
    created = api.client.post(
        "/api/v1/grievances/alice",
        json={"title": "Dishes", "description": "Sink is full", "is_anonymous": True},
    )
    assert created.status_code == 201
    assert created.json()["user_code"] == "alice"

    listed = api.client.get("/api/v1/grievances/bob", params={"status": "pending"})

    assert listed.status_code == 200
    [item] = listed.json()
    assert item["user_code"] is None


def test_leaderboard_for_linked_couple(api: ApiFixture) -> None:
    api.ledger.add_credits("alice", 10, "chores")
    api.ledger.add_credits("bob", 40, "cooking")
    api.ledger.spend_credits("bob", 15, "flowers")

    resp = api.client.get("/api/v1/credits/alice/leaderboard")

    assert resp.status_code == 200
    body = resp.json()
    assert [e["user_code"] for e in body["top_earners"]] == ["bob", "alice"]
    assert body["top_spenders"] == [
        {"user_code": "bob", "name": "Bob", "total": 15, "count": 1}
    ]


def test_leaderboard_without_partner_maps_to_400(api: ApiFixture) -> None:
    resp = api.client.get("/api/v1/credits/carol/leaderboard")

    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "validation_failure"


def test_initialize_grants_missing_welcome_bonus_once(api: ApiFixture) -> None:
    first = api.client.post("/api/v1/credits/carol/initialize")
    second = api.client.post("/api/v1/credits/carol/initialize")

    assert first.status_code == 200
    assert first.json()["transaction"]["type"] == "bonus"
    assert second.json()["transaction"]["id"] == first.json()["transaction"]["id"]
    assert second.json()["balance"] == 20
    assert len(api.transaction_repo.for_user("carol")) == 1
