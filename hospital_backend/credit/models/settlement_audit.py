# credit/models/settlement_audit.py

"""
======================================================
PATH: credit/models/settlement_audit.py
======================================================
SETTLEMENT AUDIT

One immutable row per allocation operation that changed money on credit
sales (or, for an automatic allocation, one row per payment even when
nothing could be applied).

- kind=auto      money from a ledger Payment applied oldest-first
- kind=explicit  operator-specified per-sale amounts

A Payment has at most one automatic settlement (OneToOne). That makes
"apply this payment" idempotent: a replayed payment finds its settlement
and returns it instead of allocating twice.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

User = settings.AUTH_USER_MODEL


class SettlementAudit(models.Model):
    KIND_AUTO = "auto"
    KIND_EXPLICIT = "explicit"

    KIND_CHOICES = [
        (KIND_AUTO, "Automatic (oldest first)"),
        (KIND_EXPLICIT, "Explicit allocations"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    kind = models.CharField(max_length=16, choices=KIND_CHOICES)

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="settlements",
    )

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="settlement",
    )

    amount_requested = models.DecimalField(max_digits=12, decimal_places=2)
    amount_applied = models.DecimalField(max_digits=12, decimal_places=2)
    remainder = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Money left unapplied after automatic allocation",
    )

    # [{"sale_id": "...", "bill_no": "...", "amount": "10.00"}, ...]
    lines = models.JSONField(default=list, blank=True)

    notes = models.TextField(blank=True, default="")

    performed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credit_settlements",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "created_at"], name="credit_sa_cust_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_applied__gte=0) & Q(remainder__gte=0),
                name="settlement_amounts_non_negative",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Settlement audit records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Settlement audit records cannot be deleted")

    def __str__(self):
        return f"{self.kind} settlement | {self.customer_id} | {self.amount_applied}"
