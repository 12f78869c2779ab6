# sales/services/sale_store.py

"""
======================================================
PATH: sales/services/sale_store.py
======================================================
SALE RECORD STORE (CREDIT VIEW)

Purpose:
- Create credit sales at the POS seam.
- Read a customer's credit sales in settlement order (oldest first).
- Apply money to a sale with a single guarded UPDATE.

Rules:
- paid_amount is never written with read-modify-write. The only writer is
  apply_payment_to_sale(), which issues
      UPDATE ... SET paid_amount = paid_amount + :amount
      WHERE id = :id AND paid_amount <= total_amount - :amount
  so two operators settling the same bill cannot jointly overpay it.
- Balances are derived by summation; nothing stores a customer balance.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.db.models import Count, F, Max, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from credit.services.exceptions import CreditValidationError, NotFoundError
from sales.models import Sale

logger = logging.getLogger("sales")

TWOPLACES = Decimal("0.01")
# DecimalField(max_digits=12, decimal_places=2)
MAX_AMOUNT = Decimal("9999999999.99")
ZERO = Decimal("0.00")

# Settlement order. get_credit_sales() and automatic allocation both use it,
# so the list operators see is the order money is applied in.
OLDEST_FIRST = ("date", "created_at", "id")


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


def parse_sale_id(sale_id) -> uuid.UUID:
    if isinstance(sale_id, Sale):
        return sale_id.id
    if isinstance(sale_id, uuid.UUID):
        return sale_id
    raw = str(sale_id or "").strip()
    if not raw:
        raise CreditValidationError("sale_id is required")
    try:
        return uuid.UUID(raw)
    except (ValueError, AttributeError, TypeError) as exc:
        raise CreditValidationError(f"Invalid sale_id: {sale_id!r}") from exc


@dataclass(frozen=True)
class CreditTotals:
    total_amount: Decimal
    paid_amount: Decimal
    sales_count: int
    last_sale_date: datetime | None

    @property
    def outstanding(self) -> Decimal:
        return max(ZERO, self.total_amount - self.paid_amount)


# ============================================================
# WRITES
# ============================================================


def create_credit_sale(
    *,
    customer,
    total_amount,
    bill_no: str = "",
    date: datetime | None = None,
) -> Sale:
    """
    Record a sale taken on credit. paid_amount starts at zero.
    """
    if customer is None:
        raise CreditValidationError("A credit sale requires a customer")

    total = _money(total_amount, field_name="total_amount")
    if total <= ZERO:
        raise CreditValidationError("total_amount must be > 0")

    sale = Sale.objects.create(
        customer=customer,
        total_amount=total,
        paid_amount=ZERO,
        payment_method=Sale.METHOD_CREDIT,
        bill_no=(bill_no or "").strip(),
        date=date or timezone.now(),
    )

    logger.info(
        "Credit sale recorded",
        extra={"sale_id": str(sale.id), "customer_id": str(customer.pk), "total": str(total)},
    )
    return sale


def apply_payment_to_sale(*, sale_id, customer_id, amount: Decimal) -> bool:
    """
    Guarded increment of paid_amount.

    Returns True when the row was updated, False when the guard failed
    (the sale would go past its total, or it does not belong to the
    customer). Callers decide whether False means "re-read and retry" or
    "reject".
    """
    if amount <= ZERO:
        raise CreditValidationError("Allocation amount must be > 0")

    updated = Sale.objects.filter(
        pk=sale_id,
        customer_id=customer_id,
        payment_method=Sale.METHOD_CREDIT,
        paid_amount__lte=F("total_amount") - amount,
    ).update(paid_amount=F("paid_amount") + amount)

    return updated == 1


# ============================================================
# READS
# ============================================================


def credit_sales_for(customer_id):
    return Sale.objects.filter(
        customer_id=customer_id,
        payment_method=Sale.METHOD_CREDIT,
    ).order_by(*OLDEST_FIRST)


def outstanding_credit_sales(customer_id):
    return credit_sales_for(customer_id).filter(paid_amount__lt=F("total_amount"))


def get_owned_credit_sale(*, sale_id, customer_id) -> Sale:
    """
    Fresh read of a credit sale that must belong to the customer.
    """
    pk = parse_sale_id(sale_id)
    sale = credit_sales_for(customer_id).filter(pk=pk).first()
    if sale is None:
        raise NotFoundError(f"Credit sale {pk} not found for customer {customer_id}")
    return sale


def remaining_on_sale(*, sale_id) -> Decimal:
    """
    Remaining balance straight from the database (no cached instance).
    """
    row = Sale.objects.filter(pk=sale_id).values("total_amount", "paid_amount").first()
    if row is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return max(ZERO, Decimal(row["total_amount"]) - Decimal(row["paid_amount"]))


def credit_totals_for(customer_id) -> CreditTotals:
    agg = credit_sales_for(customer_id).order_by().aggregate(
        total=Coalesce(Sum("total_amount"), ZERO),
        paid=Coalesce(Sum("paid_amount"), ZERO),
        count=Count("id"),
        last_date=Max("date"),
    )
    return CreditTotals(
        total_amount=Decimal(agg["total"]).quantize(TWOPLACES),
        paid_amount=Decimal(agg["paid"]).quantize(TWOPLACES),
        sales_count=int(agg["count"] or 0),
        last_sale_date=agg["last_date"],
    )


def outstanding_balance(customer_id) -> Decimal:
    return credit_totals_for(customer_id).outstanding
