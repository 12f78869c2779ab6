# credit/services/allocation.py

"""
======================================================
PATH: credit/services/allocation.py
======================================================
ALLOCATION ENGINE

Applies money to a customer's credit sales.

Modes:
1) Explicit (allocations=[{"sale_id", "amount"}, ...])
   - every line validated before anything is written
   - every sale must be a credit sale of this customer (NotFoundError)
   - a line that would push a sale past its total raises
     OverAllocationError and NOTHING from the call is applied

2) Automatic (amount=...)
   - oldest credit sale first (date, created_at, id)
   - each sale gets min(remaining, money left)
   - money left after every sale is settled is returned as remainder;
     it is not an error

Every write is sales.services.sale_store.apply_payment_to_sale(), a
single guarded UPDATE. A lost race in automatic mode re-reads the sale and
retries; a lost race in explicit mode is an over-allocation.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction

from credit.services.exceptions import (
    AllocationConflictError,
    CreditValidationError,
    NotFoundError,
    OverAllocationError,
)
from customers.models import Customer
from customers.services.directory import parse_customer_id
from sales.services.sale_store import (
    ZERO,
    apply_payment_to_sale,
    credit_sales_for,
    outstanding_credit_sales,
    parse_sale_id,
    remaining_on_sale,
)

logger = logging.getLogger("credit")

MODE_EXPLICIT = "explicit"
MODE_AUTOMATIC = "automatic"

OUTCOME_APPLIED = "applied"
OUTCOME_PARTIAL = "partial"

TWOPLACES = Decimal("0.01")
# DecimalField(max_digits=12, decimal_places=2)
MAX_AMOUNT = Decimal("9999999999.99")


@dataclass(frozen=True)
class AllocationRequest:
    sale_id: uuid.UUID
    amount: Decimal


@dataclass(frozen=True)
class AppliedAllocation:
    sale_id: uuid.UUID
    bill_no: str
    amount: Decimal

    def as_dict(self) -> dict:
        return {"sale_id": str(self.sale_id), "bill_no": self.bill_no, "amount": str(self.amount)}


@dataclass(frozen=True)
class AllocationResult:
    mode: str
    requested: Decimal
    applied: tuple[AppliedAllocation, ...]
    remainder: Decimal

    @property
    def total_applied(self) -> Decimal:
        return sum((a.amount for a in self.applied), ZERO)

    @property
    def outcome(self) -> str:
        return OUTCOME_APPLIED if self.remainder == ZERO else OUTCOME_PARTIAL


def _money(value, *, field_name="amount") -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        raise CreditValidationError(f"{field_name} is required")
    try:
        amt = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amt.is_finite():
            raise InvalidOperation
        amt = amt.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise CreditValidationError(f"Invalid {field_name}: {value!r}") from exc
    if abs(amt) > MAX_AMOUNT:
        raise CreditValidationError(f"{field_name} exceeds {MAX_AMOUNT}")
    return amt


def _max_retries() -> int:
    return max(1, int(getattr(settings, "CREDIT_ALLOCATION_MAX_RETRIES", 5)))


def positive_amount(value, *, field_name="amount") -> Decimal:
    amt = _money(value, field_name=field_name)
    if amt <= ZERO:
        raise CreditValidationError(f"{field_name} must be > 0")
    return amt


def normalize_allocations(allocations) -> list[AllocationRequest]:
    """
    Shape-check explicit allocation lines. No database access.

    Accepts dicts with sale_id/amount (or saleId) or AllocationRequest
    instances. Repeated sale ids are kept as separate lines and applied in
    order.
    """
    if not allocations:
        raise CreditValidationError("At least one allocation is required")

    out: list[AllocationRequest] = []
    for idx, line in enumerate(allocations):
        if isinstance(line, AllocationRequest):
            sale_id, amount = line.sale_id, line.amount
        elif isinstance(line, dict):
            sale_id = line.get("sale_id", line.get("saleId"))
            amount = line.get("amount")
        else:
            raise CreditValidationError(f"Allocation #{idx + 1} must be an object with sale_id and amount")

        out.append(
            AllocationRequest(
                sale_id=parse_sale_id(sale_id),
                amount=positive_amount(amount, field_name=f"allocations[{idx}].amount"),
            )
        )
    return out


# ============================================================
# PUBLIC ENTRY
# ============================================================


@transaction.atomic
def allocate(*, customer, amount=None, allocations=None) -> AllocationResult:
    """
    Apply money to a customer's credit sales.

    Pass `allocations` for explicit mode or `amount` for automatic mode.
    Runs in one transaction; an exception leaves every sale untouched.
    """
    if allocations is not None and amount is not None:
        raise CreditValidationError("Pass either amount or allocations, not both")

    if allocations is not None:
        requests = normalize_allocations(allocations)
        customer_id = _existing_customer_id(customer)
        return _allocate_explicit(customer_id=customer_id, requests=requests)

    total = positive_amount(amount)
    customer_id = _existing_customer_id(customer)
    return _allocate_automatic(customer_id=customer_id, amount=total)


def _existing_customer_id(customer) -> uuid.UUID:
    if isinstance(customer, Customer):
        return customer.id
    pk = parse_customer_id(customer)
    if not Customer.objects.filter(pk=pk).exists():
        raise NotFoundError(f"Customer {pk} not found")
    return pk


# ============================================================
# EXPLICIT
# ============================================================


def _allocate_explicit(*, customer_id, requests: list[AllocationRequest]) -> AllocationResult:
    sale_ids = {r.sale_id for r in requests}
    owned = {
        row["id"]: row["bill_no"]
        for row in credit_sales_for(customer_id).filter(pk__in=sale_ids).values("id", "bill_no")
    }

    missing = [str(sid) for sid in sale_ids if sid not in owned]
    if missing:
        logger.warning(
            "Explicit allocation references unknown sales",
            extra={"customer_id": str(customer_id), "sale_ids": sorted(missing)},
        )
        raise NotFoundError(
            f"Credit sale(s) not found for customer {customer_id}: {', '.join(sorted(missing))}"
        )

    applied: list[AppliedAllocation] = []
    for req in requests:
        if not apply_payment_to_sale(sale_id=req.sale_id, customer_id=customer_id, amount=req.amount):
            remaining = remaining_on_sale(sale_id=req.sale_id)
            logger.warning(
                "Over-allocation rejected",
                extra={
                    "customer_id": str(customer_id),
                    "sale_id": str(req.sale_id),
                    "requested": str(req.amount),
                    "remaining": str(remaining),
                },
            )
            # Raising inside the atomic block undoes the lines already applied.
            raise OverAllocationError(sale_id=req.sale_id, requested=req.amount, remaining=remaining)

        applied.append(AppliedAllocation(sale_id=req.sale_id, bill_no=owned[req.sale_id], amount=req.amount))

    requested = sum((r.amount for r in requests), ZERO)
    result = AllocationResult(mode=MODE_EXPLICIT, requested=requested, applied=tuple(applied), remainder=ZERO)

    logger.info(
        "Explicit allocation applied",
        extra={"customer_id": str(customer_id), "lines": len(applied), "total": str(result.total_applied)},
    )
    return result


# ============================================================
# AUTOMATIC
# ============================================================


def _apply_up_to(*, sale_id, customer_id, limit: Decimal) -> Decimal:
    """
    Apply min(remaining, limit) to one sale, re-reading on a lost race.
    Returns the amount applied (0 when the sale got settled concurrently).
    """
    for attempt in range(1, _max_retries() + 1):
        remaining = remaining_on_sale(sale_id=sale_id)
        if remaining <= ZERO:
            return ZERO

        take = min(remaining, limit)
        if apply_payment_to_sale(sale_id=sale_id, customer_id=customer_id, amount=take):
            return take

        logger.info(
            "Guarded update lost a race; re-reading sale",
            extra={"sale_id": str(sale_id), "attempt": attempt},
        )

    raise AllocationConflictError(
        f"Sale {sale_id} kept changing under concurrent settlement; retry the payment"
    )


def _allocate_automatic(*, customer_id, amount: Decimal) -> AllocationResult:
    left = amount
    applied: list[AppliedAllocation] = []

    candidates = list(outstanding_credit_sales(customer_id).values_list("id", "bill_no"))

    for sale_id, bill_no in candidates:
        if left <= ZERO:
            break

        got = _apply_up_to(sale_id=sale_id, customer_id=customer_id, limit=left)
        if got > ZERO:
            applied.append(AppliedAllocation(sale_id=sale_id, bill_no=bill_no, amount=got))
            left -= got

    result = AllocationResult(mode=MODE_AUTOMATIC, requested=amount, applied=tuple(applied), remainder=left)

    logger.info(
        "Automatic allocation applied",
        extra={
            "customer_id": str(customer_id),
            "requested": str(amount),
            "total": str(result.total_applied),
            "remainder": str(left),
            "outcome": result.outcome,
        },
    )
    return result
