from __future__ import annotations


class ProdifyError(Exception):
    kind = "error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class LedgerNotFound(ProdifyError):
    kind = "ledger_not_found"


class Conflict(ProdifyError):
    """The ledger row changed between read and write."""

    kind = "conflict"
    retryable = True


class DuplicateEvent(ProdifyError):
    kind = "duplicate_event"


class InsufficientFunds(ProdifyError):
    kind = "insufficient_funds"


class AlreadyOwned(ProdifyError):
    kind = "already_owned"


class ValidationError(ProdifyError):
    kind = "validation_error"


class UpstreamUnavailable(ProdifyError):
    kind = "upstream_unavailable"
    retryable = True


class RateLimited(ProdifyError):
    kind = "rate_limited"
    retryable = True


class PaymentRequired(ProdifyError):
    kind = "payment_required"
