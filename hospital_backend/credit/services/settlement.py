# credit/services/settlement.py

"""
======================================================
PATH: credit/services/settlement.py
======================================================
CREDIT SETTLEMENT SERVICES

Boundary operations behind /api/credit/:

- list_credit_customers()  customers with credit sales + aggregates
- get_credit_sales()       one customer's credit sales, settlement order
- customer_balance()       derived balance (sum of total - paid)
- pay_credit()             record a payment, then apply it oldest-first
- settle_credit()          operator-specified per-sale allocations
- apply_recorded_payment() apply an already-recorded ledger payment

Every money-moving call leaves one SettlementAudit row and, when notes are
given, a "[Payment <ts>] notes" line on the customer.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Count, Max, Sum

from credit.models import SettlementAudit
from credit.services.allocation import (
    OUTCOME_APPLIED,
    OUTCOME_PARTIAL,
    AllocationResult,
    AppliedAllocation,
    allocate,
    normalize_allocations,
    positive_amount,
)
from credit.services.exceptions import PaymentLedgerError, ReferenceConflictError
from customers.models import Customer
from customers.services.directory import append_payment_note, get_customer
from payments.models import Payment
from payments.services.ledger import record_payment
from sales.models import Sale
from sales.services.sale_store import (
    ZERO,
    credit_sales_for,
    credit_totals_for,
    outstanding_balance,
)

logger = logging.getLogger("credit")


# ============================================================
# RESULTS
# ============================================================


@dataclass(frozen=True)
class CreditSaleRow:
    sale_id: uuid.UUID
    bill_no: str
    total_amount: Decimal
    paid_amount: Decimal
    remaining: Decimal
    date: datetime


@dataclass(frozen=True)
class CustomerBalance:
    customer_id: uuid.UUID
    customer_name: str
    total_credit: Decimal
    total_paid: Decimal
    outstanding: Decimal
    sales_count: int
    last_sale_date: datetime | None


@dataclass(frozen=True)
class SettlementResult:
    audit: SettlementAudit
    applied: tuple[AppliedAllocation, ...]
    remainder: Decimal

    @property
    def total_applied(self) -> Decimal:
        return sum((a.amount for a in self.applied), ZERO)

    @property
    def outcome(self) -> str:
        return OUTCOME_APPLIED if self.remainder == ZERO else OUTCOME_PARTIAL


@dataclass(frozen=True)
class PayCreditResult:
    payment: Payment
    settlement: SettlementResult
    balance: Decimal
    replayed: bool

    @property
    def applied(self):
        return self.settlement.applied

    @property
    def remainder(self) -> Decimal:
        return self.settlement.remainder

    @property
    def outcome(self) -> str:
        return self.settlement.outcome


def _audit_lines(result: AllocationResult) -> list[dict]:
    return [a.as_dict() for a in result.applied]


def _result_from_audit(audit: SettlementAudit) -> SettlementResult:
    applied = tuple(
        AppliedAllocation(
            sale_id=uuid.UUID(str(line["sale_id"])),
            bill_no=line.get("bill_no", ""),
            amount=Decimal(str(line["amount"])),
        )
        for line in (audit.lines or [])
    )
    return SettlementResult(audit=audit, applied=applied, remainder=audit.remainder)


# ============================================================
# READS
# ============================================================


def get_credit_sales(customer_id) -> list[CreditSaleRow]:
    """
    All credit sales of a customer, oldest first (the order automatic
    allocation applies money in). Settled sales are included.
    """
    customer = get_customer(customer_id)
    return [
        CreditSaleRow(
            sale_id=s.id,
            bill_no=s.bill_no,
            total_amount=s.total_amount,
            paid_amount=s.paid_amount,
            remaining=s.remaining_amount,
            date=s.date,
        )
        for s in credit_sales_for(customer.id)
    ]


def customer_balance(customer_id) -> CustomerBalance:
    customer = get_customer(customer_id)
    totals = credit_totals_for(customer.id)
    return CustomerBalance(
        customer_id=customer.id,
        customer_name=customer.name,
        total_credit=totals.total_amount,
        total_paid=totals.paid_amount,
        outstanding=totals.outstanding,
        sales_count=totals.sales_count,
        last_sale_date=totals.last_sale_date,
    )


def list_credit_customers(*, search: str = "", company: str = "") -> list[CustomerBalance]:
    """
    Customers with at least one credit sale, biggest total credit first.

    search  case-insensitive match on customer name
    company exact company name
    """
    # Filtering on sales before annotating restricts the aggregates to
    # credit sales only.
    qs = Customer.objects.filter(sales__payment_method=Sale.METHOD_CREDIT)

    search = (search or "").strip()
    company = (company or "").strip()
    if search:
        qs = qs.filter(name__icontains=search)
    if company:
        qs = qs.filter(company_name=company)

    qs = qs.annotate(
        total_credit=Sum("sales__total_amount"),
        total_paid=Sum("sales__paid_amount"),
        sales_count=Count("sales"),
        last_sale_date=Max("sales__date"),
    ).order_by("-total_credit", "name")

    rows = []
    for c in qs:
        total = Decimal(c.total_credit or ZERO).quantize(Decimal("0.01"))
        paid = Decimal(c.total_paid or ZERO).quantize(Decimal("0.01"))
        rows.append(
            CustomerBalance(
                customer_id=c.id,
                customer_name=c.name,
                total_credit=total,
                total_paid=paid,
                outstanding=max(ZERO, total - paid),
                sales_count=int(c.sales_count or 0),
                last_sale_date=c.last_sale_date,
            )
        )
    return rows


# ============================================================
# WRITES
# ============================================================


def apply_recorded_payment(*, payment: Payment, performed_by=None, notes: str = "") -> SettlementResult:
    """
    Apply a ledger payment to its customer's credit sales, oldest first.

    At most once per payment: the SettlementAudit OneToOne on payment is the
    guard. A second call (or a concurrent one that loses the insert) returns
    the existing settlement and its allocations are rolled back.
    """
    if payment.customer_id is None:
        raise PaymentLedgerError(f"Payment {payment.id} has no customer to settle against")

    existing = SettlementAudit.objects.filter(payment=payment).first()
    if existing is not None:
        return _result_from_audit(existing)

    try:
        with transaction.atomic():
            result = allocate(customer=payment.customer_id, amount=payment.amount)
            audit = SettlementAudit.objects.create(
                kind=SettlementAudit.KIND_AUTO,
                customer_id=payment.customer_id,
                payment=payment,
                amount_requested=result.requested,
                amount_applied=result.total_applied,
                remainder=result.remainder,
                lines=_audit_lines(result),
                notes=(notes or "").strip(),
                performed_by=performed_by,
            )
    except IntegrityError:
        existing = SettlementAudit.objects.filter(payment=payment).first()
        if existing is None:
            raise
        logger.info(
            "Payment already settled concurrently",
            extra={"payment_id": str(payment.id), "settlement_id": str(existing.id)},
        )
        return _result_from_audit(existing)

    return SettlementResult(audit=audit, applied=result.applied, remainder=result.remainder)


@transaction.atomic
def pay_credit(
    *,
    customer_id,
    amount,
    date: datetime | None = None,
    panel=None,
    method: str | None = None,
    reference: str | None = None,
    notes: str = "",
    user=None,
) -> PayCreditResult:
    """
    Record a customer payment and apply it to their oldest credit sales.

    Money beyond the outstanding balance is kept on the payment and reported
    as remainder. A replayed (panel, reference) returns the original
    settlement; nothing is applied twice.
    """
    amt = positive_amount(amount)
    customer = get_customer(customer_id, for_update=True)

    record = record_payment(
        panel=panel,
        amount=amt,
        reference=reference,
        method=method,
        customer=customer,
        notes=notes,
        received_at=date,
        recorded_by=user,
    )
    payment = record.payment

    if record.replayed and payment.customer_id != customer.id:
        raise ReferenceConflictError(
            f"Reference {payment.reference!r} on panel {payment.panel.code} "
            f"was recorded for another customer"
        )

    settlement = apply_recorded_payment(payment=payment, performed_by=user, notes=notes)

    if record.created:
        append_payment_note(customer=customer, notes=notes, at=payment.received_at)

    balance = outstanding_balance(customer.id)

    logger.info(
        "Credit payment processed",
        extra={
            "customer_id": str(customer.id),
            "payment_id": str(payment.id),
            "applied": str(settlement.total_applied),
            "remainder": str(settlement.remainder),
            "balance": str(balance),
            "replayed": record.replayed,
        },
    )
    return PayCreditResult(payment=payment, settlement=settlement, balance=balance, replayed=record.replayed)


@transaction.atomic
def settle_credit(*, customer_id, allocations, notes: str = "", user=None) -> SettlementResult:
    """
    Apply operator-specified amounts to specific credit sales.

    All lines or none: ownership and over-allocation failures leave every
    sale unchanged. The money itself is assumed collected elsewhere; no
    ledger payment is recorded here.
    """
    requests = normalize_allocations(allocations)
    customer = get_customer(customer_id, for_update=True)

    result = allocate(customer=customer, allocations=requests)

    audit = SettlementAudit.objects.create(
        kind=SettlementAudit.KIND_EXPLICIT,
        customer=customer,
        payment=None,
        amount_requested=result.requested,
        amount_applied=result.total_applied,
        remainder=ZERO,
        lines=_audit_lines(result),
        notes=(notes or "").strip(),
        performed_by=user,
    )
    append_payment_note(customer=customer, notes=notes, at=audit.created_at)

    logger.info(
        "Credit settled",
        extra={
            "customer_id": str(customer.id),
            "settlement_id": str(audit.id),
            "lines": len(result.applied),
            "total": str(result.total_applied),
        },
    )
    return SettlementResult(audit=audit, applied=result.applied, remainder=ZERO)
