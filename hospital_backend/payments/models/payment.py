# payments/models/payment.py

"""
======================================================
PATH: payments/models/payment.py
======================================================
PAYMENT (LEDGER ENTRY)

One accepted payment event: a counter receipt, a panel remittance, a synced
external transaction.

Guarantees:
- Append-only: no updates, no deletes
- amount is always positive
- (panel, reference) is unique whenever reference is present; this is the
  idempotency key for sync jobs and webhook retries. Blank references are
  stored as NULL and never deduplicated.
- Recording money is separate from applying it; see credit.models.SettlementAudit
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Payment(models.Model):
    METHOD_CASH = "cash"
    METHOD_CARD = "card"
    METHOD_BANK = "bank"
    METHOD_CHEQUE = "cheque"
    METHOD_PANEL = "panel"

    METHOD_CHOICES = [
        (METHOD_CASH, "Cash"),
        (METHOD_CARD, "Card"),
        (METHOD_BANK, "Bank Transfer"),
        (METHOD_CHEQUE, "Cheque"),
        (METHOD_PANEL, "Panel Remittance"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    panel = models.ForeignKey(
        "payments.Panel",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )

    invoice_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="External invoice/patient id the payer quoted, if any",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    method = models.CharField(max_length=16, choices=METHOD_CHOICES, default=METHOD_CASH)

    reference = models.CharField(
        max_length=128,
        null=True,
        blank=True,
        help_text="External reference; unique per panel when present",
    )

    notes = models.TextField(blank=True, default="")

    received_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the money was received (may be back-dated by sync jobs)",
    )

    recorded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recorded_payments",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-received_at", "-created_at"]
        indexes = [
            models.Index(fields=["panel", "received_at"], name="payments_panel_received_idx"),
            models.Index(fields=["customer", "received_at"], name="payments_cust_received_idx"),
            models.Index(fields=["reference"], name="payments_reference_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["panel", "reference"],
                condition=Q(reference__isnull=False) & ~Q(reference=""),
                name="uniq_payment_panel_reference",
            ),
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def clean(self):
        ref = (self.reference or "").strip()
        self.reference = ref or None
        self.invoice_id = (self.invoice_id or "").strip()

        if self.amount is None or self.amount <= 0:
            raise ValidationError("Payment amount must be > 0")

        if self.received_at and timezone.is_naive(self.received_at):
            self.received_at = timezone.make_aware(
                self.received_at, timezone.get_current_timezone()
            )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Payment records are immutable once created")

        # Uniqueness is left to the database constraint; the ledger service
        # treats the IntegrityError as an idempotent replay.
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Payment records are immutable and cannot be deleted")

    def __str__(self):
        ref = self.reference or "no-ref"
        return f"{self.panel_id}:{ref} | {self.amount}"
