from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from muffi_service.app.models.appointment import (
    BookingInput,
    compute_final_credit_cost,
    rating_multiplier,
)
from muffi_service.app.models.credit import (
    FundsPolicy,
    RelatedType,
    TransactionType,
    funds_policy_for,
    normalize_related_model,
    resolve_request_type,
    round_half_up,
    signed_amount,
)
from muffi_service.app.models.grievance import GrievanceSeverity, compute_credit_impact
from muffi_service.app.models.service import (
    AdHocService,
    PersistedServiceRef,
    ServiceSelection,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(2.5, 3), (7.5, 8), (-2.5, -2), (-0.4, 0), (1.49, 1)],
)
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected


def test_signed_amount_and_policy() -> None:
    assert signed_amount(TransactionType.BONUS, 5) == 5
    assert signed_amount(TransactionType.DEDUCTED, 5) == -5
    assert funds_policy_for(TransactionType.SPENT) == FundsPolicy.REJECT
    assert funds_policy_for(TransactionType.DEDUCTED) == FundsPolicy.CAP
    assert funds_policy_for(TransactionType.REFUND) == FundsPolicy.NONE


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("service", RelatedType.SERVICE),
        ("Grievance", RelatedType.GRIEVANCE),
        ("user", RelatedType.TRANSFER),
        ("moodboard", RelatedType.MANUAL),
        ("something-else", RelatedType.MANUAL),
        (None, RelatedType.MANUAL),
    ],
)
def test_normalize_related_model(value: str | None, expected: RelatedType) -> None:
    assert normalize_related_model(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, TransactionType.EARNED),
        ("bonus", TransactionType.BONUS),
        ("refund", TransactionType.REFUND),
        ("penalty", TransactionType.DEDUCTED),
        ("spent", TransactionType.EARNED),
    ],
)
def test_resolve_request_type(value: str | None, expected: TransactionType) -> None:
    assert resolve_request_type(value) == expected


@pytest.mark.parametrize(
    ("rating", "severity", "impact"),
    [
        (1, GrievanceSeverity.HIGH, -40),
        (1, GrievanceSeverity.LOW, -10),
        (2, GrievanceSeverity.MEDIUM, -10),
        (3, GrievanceSeverity.HIGH, 0),
        (4, GrievanceSeverity.LOW, 3),
        (5, "high", 20),
    ],
)
def test_compute_credit_impact(
    rating: int, severity: GrievanceSeverity | str, impact: int
) -> None:
    assert compute_credit_impact(rating, severity) == impact


def test_rating_multipliers() -> None:
    assert [rating_multiplier(r) for r in range(1, 6)] == [0.5, 0.75, 1.0, 1.25, 1.5]
    assert compute_final_credit_cost(100, 4) == 125
    assert compute_final_credit_cost(10, 2) == 8
    assert compute_final_credit_cost(0, 5) == 0


def test_service_selection_is_discriminated_by_kind() -> None:
    adapter = TypeAdapter(ServiceSelection)

    persisted = adapter.validate_python({"kind": "persisted", "service_id": "abc"})
    ad_hoc = adapter.validate_python({"kind": "ad_hoc", "name": "Picnic"})

    assert isinstance(persisted, PersistedServiceRef)
    assert isinstance(ad_hoc, AdHocService)
    with pytest.raises(ValidationError):
        adapter.validate_python({"kind": "unknown"})


def test_booking_time_must_be_hh_mm() -> None:
    with pytest.raises(ValidationError):
        BookingInput(
            service=AdHocService(name="Picnic"), date="2026-05-01", time="25:00"
        )
