from __future__ import annotations

import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Customer",
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
                ("name", models.CharField(max_length=255)),
                ("company_name", models.CharField(blank=True, default="", max_length=255)),
                ("phone", models.CharField(blank=True, default="", max_length=32)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("address", models.CharField(blank=True, default="", max_length=255)),
                (
                    "cnic",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="National identity card number",
                        max_length=32,
                    ),
                ),
                (
                    "mr_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Hospital medical record number, when the customer is also a patient",
                        max_length=64,
                    ),
                ),
                ("notes", models.TextField(blank=True, default="")),
                ("customer_since", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["name"], name="customers_c_name_5f1c2a_idx"),
                    models.Index(fields=["company_name"], name="customers_c_company_8d0b3e_idx"),
                    models.Index(fields=["phone"], name="customers_c_phone_2a7e41_idx"),
                    models.Index(fields=["mr_number"], name="customers_c_mr_numb_6c9d10_idx"),
                    models.Index(fields=["created_at"], name="customers_c_created_4b2f88_idx"),
                ],
            },
        ),
    ]
