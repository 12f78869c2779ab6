from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("customers", "0001_initial"),
        ("payments", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="SettlementAudit",
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
                    "kind",
                    models.CharField(
                        choices=[
                            ("auto", "Automatic (oldest first)"),
                            ("explicit", "Explicit allocations"),
                        ],
                        max_length=16,
                    ),
                ),
                ("amount_requested", models.DecimalField(decimal_places=2, max_digits=12)),
                ("amount_applied", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "remainder",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Money left unapplied after automatic allocation",
                        max_digits=12,
                    ),
                ),
                ("lines", models.JSONField(blank=True, default=list)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlements",
                        to="customers.customer",
                    ),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlement",
                        to="payments.payment",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="credit_settlements",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["customer", "created_at"], name="credit_sa_cust_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_applied__gte", 0), ("remainder__gte", 0)),
                        name="settlement_amounts_non_negative",
                    ),
                ],
            },
        ),
    ]
