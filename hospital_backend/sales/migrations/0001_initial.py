"""
MIGRATION: CREATE Sale (credit view of pharmacy sales)

- paid_amount is bounded by check constraints: 0 <= paid_amount <= total_amount
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("customers", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "bill_no",
                    models.CharField(
                        blank=True,
                        help_text="Short bill number printed on the receipt",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "customer_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Customer name at time of sale (snapshot)",
                        max_length=255,
                    ),
                ),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "paid_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Amount settled against this sale so far",
                        max_digits=12,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("cash", "Cash"), ("card", "Card"), ("credit", "Credit")],
                        default="cash",
                        max_length=16,
                    ),
                ),
                (
                    "date",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="Sale date; credit settlement order is oldest date first",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to="customers.customer",
                    ),
                ),
            ],
            options={
                "ordering": ["-date"],
                "indexes": [
                    models.Index(
                        fields=["customer", "payment_method", "date"],
                        name="sales_sale_cust_method_date",
                    ),
                    models.Index(fields=["bill_no"], name="sales_sale_bill_no_idx"),
                    models.Index(fields=["date"], name="sales_sale_date_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gte", 0)),
                        name="sale_total_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("paid_amount__gte", 0),
                            ("paid_amount__lte", models.F("total_amount")),
                        ),
                        name="sale_paid_within_total",
                    ),
                ],
            },
        ),
    ]
