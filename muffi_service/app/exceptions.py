from __future__ import annotations


class MuffiLinkError(Exception):
    """Base exception for all caller-facing muffi-service errors.

    ``kind`` is the stable machine-readable code sent to the client,
    ``status_code`` the HTTP status the API layer maps it to.
    """

    kind: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(MuffiLinkError):
    """Missing account, appointment, service or grievance."""

    kind = "not_found"
    status_code = 404


class UnauthorizedError(MuffiLinkError):
    """Caller is neither the creator nor the partner of the entity."""

    kind = "unauthorized"
    status_code = 403


class ValidationFailure(MuffiLinkError):
    """Malformed input or an operation not allowed in the current state."""

    kind = "validation_failure"
    status_code = 400


class InsufficientFundsError(MuffiLinkError):
    """A spend/transfer/booking would drive the balance below zero."""

    kind = "insufficient_funds"
    status_code = 400


class ConflictError(MuffiLinkError):
    """Already linked, already rated, access key at capacity, ledger contention."""

    kind = "conflict"
    status_code = 409


class SequenceConflictError(Exception):
    """Another writer took the next ledger sequence number first. Retried internally."""


class DuplicateIdempotencyKeyError(Exception):
    """A transaction with the same idempotency key already exists."""
