# sales/models/sale.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Sale(models.Model):
    """
    A pharmacy sale, as the credit ledger sees it.

    GUARANTEES:
    - total_amount is fixed at creation
    - 0 <= paid_amount <= total_amount (database check constraint)
    - paid_amount only grows, and only through the guarded update in
      sales.services.sale_store.apply_payment_to_sale (never via save())
    - never deleted; settled sales stay as history

    Line items, stock and receipts live in the POS; only the money that
    matters for credit is mirrored here.
    """

    METHOD_CASH = "cash"
    METHOD_CARD = "card"
    METHOD_CREDIT = "credit"

    METHOD_CHOICES = [
        (METHOD_CASH, "Cash"),
        (METHOD_CARD, "Card"),
        (METHOD_CREDIT, "Credit"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    bill_no = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="Short bill number printed on the receipt",
    )

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="sales",
    )
    customer_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Customer name at time of sale (snapshot)",
    )

    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Amount settled against this sale so far",
    )

    payment_method = models.CharField(
        max_length=16,
        choices=METHOD_CHOICES,
        default=METHOD_CASH,
    )

    date = models.DateTimeField(
        default=timezone.now,
        help_text="Sale date; credit settlement order is oldest date first",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-date"]
        indexes = [
            models.Index(fields=["customer", "payment_method", "date"], name="sales_sale_cust_method_date"),
            models.Index(fields=["bill_no"], name="sales_sale_bill_no_idx"),
            models.Index(fields=["date"], name="sales_sale_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name="sale_total_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(paid_amount__gte=0) & Q(paid_amount__lte=F("total_amount")),
                name="sale_paid_within_total",
            ),
        ]

    _IMMUTABLE_FIELDS = (
        "customer_id",
        "total_amount",
        "paid_amount",
        "payment_method",
        "date",
    )

    @property
    def remaining_amount(self) -> Decimal:
        return max(Decimal("0.00"), Decimal(self.total_amount) - Decimal(self.paid_amount))

    @property
    def is_settled(self) -> bool:
        return self.remaining_amount == Decimal("0.00")

    def _validate_immutable(self, previous: "Sale"):
        for field in self._IMMUTABLE_FIELDS:
            to_python = self._meta.get_field(field).to_python
            if to_python(getattr(self, field)) != to_python(getattr(previous, field)):
                raise ValidationError(
                    f"Sale field '{field}' cannot be changed after creation."
                )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = Sale.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        if not self.bill_no:
            prefix = timezone.now().strftime("BILL%Y%m%d")
            self.bill_no = f"{prefix}-{uuid.uuid4().hex[:6].upper()}"

        if self.customer_id and not self.customer_name:
            self.customer_name = getattr(self.customer, "name", "") or ""

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Sales are retained for audit and cannot be deleted")

    def __str__(self):
        return f"{self.bill_no} | {self.total_amount} | paid {self.paid_amount}"
