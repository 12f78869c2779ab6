# customers/models.py

"""
PHARMACY CUSTOMER (DIRECTORY)

Identity record for customers who may buy on credit.

RULES:
- There is NO stored balance. Outstanding credit is always derived from the
  customer's credit sales (sum of total_amount - paid_amount).
- notes is an append-only operator log; settlements add a
  "[Payment <timestamp>] ..." line.
"""

from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    company_name = models.CharField(max_length=255, blank=True, default="")

    phone = models.CharField(max_length=32, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")
    cnic = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="National identity card number",
    )
    mr_number = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Hospital medical record number, when the customer is also a patient",
    )

    notes = models.TextField(blank=True, default="")

    customer_since = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="customers_c_name_5f1c2a_idx"),
            models.Index(fields=["company_name"], name="customers_c_company_8d0b3e_idx"),
            models.Index(fields=["phone"], name="customers_c_phone_2a7e41_idx"),
            models.Index(fields=["mr_number"], name="customers_c_mr_numb_6c9d10_idx"),
            models.Index(fields=["created_at"], name="customers_c_created_4b2f88_idx"),
        ]

    def clean(self):
        self.name = (self.name or "").strip()
        self.company_name = (self.company_name or "").strip()
        self.email = (self.email or "").strip().lower()

    def __str__(self):
        if self.company_name:
            return f"{self.name} ({self.company_name})"
        return self.name
