# payments/services/ledger.py

"""
======================================================
PATH: payments/services/ledger.py
======================================================
PAYMENT LEDGER

Append-only store of accepted payment events.

Idempotency:
- (panel, reference) is unique when reference is present.
- record_payment() INSERTs first. If the unique constraint rejects the row,
  the existing payment is returned with created=False. There is no
  check-then-insert window: two concurrent replays of the same reference
  both end with the same single row.
- The INSERT runs in a savepoint so the caller's outer transaction stays
  usable after the IntegrityError.

Amount validation happens before any database access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from credit.services.exceptions import (
    CreditValidationError,
    NotFoundError,
    PaymentLedgerError,
)
from payments.models import Panel, Payment

logger = logging.getLogger("payments")

TWOPLACES = Decimal("0.01")
# DecimalField(max_digits=12, decimal_places=2)
MAX_AMOUNT = Decimal("9999999999.99")
ZERO = Decimal("0.00")


def _money(value) -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        raise CreditValidationError("amount is required")
    try:
        amt = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amt.is_finite():
            raise InvalidOperation
        amt = amt.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise CreditValidationError(f"Invalid amount: {value!r}") from exc
    if abs(amt) > MAX_AMOUNT:
        raise CreditValidationError(f"amount exceeds {MAX_AMOUNT}")
    return amt


def _normalize_reference(reference) -> str | None:
    ref = str(reference).strip() if reference is not None else ""
    return ref or None


def _normalize_method(method) -> str:
    m = (method or Payment.METHOD_CASH).strip().lower()
    valid = {value for value, _ in Payment.METHOD_CHOICES}
    if m not in valid:
        raise CreditValidationError(f"Unsupported payment method: {method!r}")
    return m


@dataclass(frozen=True)
class PaymentRecord:
    payment: Payment
    created: bool

    @property
    def replayed(self) -> bool:
        return not self.created


# ============================================================
# PANELS
# ============================================================


def get_default_panel() -> Panel:
    """
    The panel counter receipts are recorded under when the caller names none.
    Created on first use from CREDIT_DEFAULT_PANEL_CODE / _NAME.
    """
    code = (getattr(settings, "CREDIT_DEFAULT_PANEL_CODE", "PHARMACY") or "PHARMACY").strip().upper()
    name = getattr(settings, "CREDIT_DEFAULT_PANEL_NAME", "Pharmacy Counter") or code
    panel, _ = Panel.objects.get_or_create(code=code, defaults={"name": name})
    return panel


def resolve_panel(panel) -> Panel:
    """
    Accepts a Panel, a primary key, or a panel code.
    """
    if isinstance(panel, Panel):
        return panel
    if panel is None or (isinstance(panel, str) and not panel.strip()):
        return get_default_panel()

    if isinstance(panel, int) and not isinstance(panel, bool):
        found = Panel.objects.filter(pk=panel).first()
    else:
        found = Panel.objects.filter(code=str(panel).strip().upper()).first()

    if found is None:
        raise NotFoundError(f"Panel {panel!r} not found")
    if not found.is_active:
        raise CreditValidationError(f"Panel {found.code} is inactive")
    return found


# ============================================================
# RECORD
# ============================================================


def record_payment(
    *,
    panel=None,
    amount,
    reference=None,
    method: str | None = None,
    customer=None,
    invoice_id: str = "",
    notes: str = "",
    received_at: datetime | None = None,
    recorded_by=None,
) -> PaymentRecord:
    """
    Record one payment event, or return the one already recorded under the
    same (panel, reference).

    On replay the stored payment wins; a differing amount in the replayed
    request is logged, never written.
    """
    amt = _money(amount)
    if amt <= ZERO:
        raise CreditValidationError("Payment amount must be > 0")

    ref = _normalize_reference(reference)
    pay_method = _normalize_method(method)
    panel_obj = resolve_panel(panel)

    try:
        with transaction.atomic():
            payment = Payment.objects.create(
                panel=panel_obj,
                customer=customer,
                invoice_id=(invoice_id or "").strip(),
                amount=amt,
                method=pay_method,
                reference=ref,
                notes=(notes or "").strip(),
                received_at=received_at or timezone.now(),
                recorded_by=recorded_by,
            )
    except IntegrityError as exc:
        existing = None
        if ref is not None:
            existing = Payment.objects.filter(panel=panel_obj, reference=ref).first()

        if existing is None:
            logger.error(
                "Payment insert rejected",
                extra={"panel": panel_obj.code, "reference": ref, "error": str(exc)},
            )
            raise PaymentLedgerError(f"Payment could not be recorded: {exc}") from exc

        if existing.amount != amt:
            logger.warning(
                "Replayed payment differs from stored amount",
                extra={
                    "payment_id": str(existing.id),
                    "panel": panel_obj.code,
                    "reference": ref,
                    "stored_amount": str(existing.amount),
                    "replayed_amount": str(amt),
                },
            )

        logger.info(
            "Payment replay ignored",
            extra={"payment_id": str(existing.id), "panel": panel_obj.code, "reference": ref},
        )
        return PaymentRecord(payment=existing, created=False)
    except DjangoValidationError as exc:
        raise CreditValidationError("; ".join(exc.messages)) from exc

    logger.info(
        "Payment recorded",
        extra={
            "payment_id": str(payment.id),
            "panel": panel_obj.code,
            "reference": ref,
            "amount": str(amt),
            "customer_id": str(customer.pk) if customer is not None else None,
        },
    )
    return PaymentRecord(payment=payment, created=True)

