# credit/services/exceptions.py

"""
CREDIT LEDGER SERVICE ERRORS

Centralized domain errors for the payment ledger, the allocation engine and
the settlement services. Views translate these into API error responses.

Not errors (structured results instead):
- idempotent replay of a payment -> PaymentRecord.created is False
- automatic allocation with excess money -> AllocationResult.remainder > 0
"""

from __future__ import annotations

from decimal import Decimal


class CreditServiceError(Exception):
    """Base exception for all credit ledger failures."""

    code = "CREDIT_ERROR"


class CreditValidationError(CreditServiceError):
    """Non-positive amounts, malformed identifiers, empty allocation lists."""

    code = "VALIDATION_ERROR"


class NotFoundError(CreditServiceError):
    """Unknown customer, sale or panel, or a sale that belongs to another customer."""

    code = "NOT_FOUND"


class OverAllocationError(CreditServiceError):
    """
    An explicit allocation would push a sale past its total.

    Carries the sale's remaining balance at apply-time so the caller can
    correct the input.
    """

    code = "OVER_ALLOCATION"

    def __init__(self, *, sale_id, requested: Decimal, remaining: Decimal):
        self.sale_id = sale_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Allocation of {requested} exceeds remaining balance {remaining} on sale {sale_id}."
        )


class PaymentLedgerError(CreditServiceError):
    """The payment store rejected a write for a reason other than a replay."""

    code = "PAYMENT_LEDGER_ERROR"


class ReferenceConflictError(CreditServiceError):
    """A payment reference already recorded for a different customer on the same panel."""

    code = "REFERENCE_CONFLICT"


class AllocationConflictError(CreditServiceError):
    """
    Automatic allocation kept losing the guarded update on one sale to
    concurrent writers. Nothing was applied; the whole operation may be retried.
    """

    code = "ALLOCATION_CONFLICT"
