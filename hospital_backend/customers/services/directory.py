# customers/services/directory.py

"""
CUSTOMER DIRECTORY

The credit services use this module to resolve customer identity and to
append operator notes. Nothing here touches money.
"""

from __future__ import annotations

import logging
import uuid

from django.utils import timezone

from credit.services.exceptions import CreditValidationError, NotFoundError
from customers.models import Customer

logger = logging.getLogger("credit")


def parse_customer_id(customer_id) -> uuid.UUID:
    if isinstance(customer_id, Customer):
        return customer_id.id
    if isinstance(customer_id, uuid.UUID):
        return customer_id

    raw = str(customer_id or "").strip()
    if not raw:
        raise CreditValidationError("Customer id is required")
    try:
        return uuid.UUID(raw)
    except (ValueError, AttributeError, TypeError) as exc:
        raise CreditValidationError(f"Invalid customer id: {customer_id!r}") from exc


def get_customer(customer_id, *, for_update: bool = False) -> Customer:
    """
    Resolve a customer or raise NotFoundError.

    for_update=True takes a row lock so concurrent settlements for the same
    customer append notes one at a time.
    """
    pk = parse_customer_id(customer_id)

    qs = Customer.objects.all()
    if for_update:
        qs = qs.select_for_update()

    try:
        return qs.get(pk=pk)
    except Customer.DoesNotExist as exc:
        logger.warning("Customer not found", extra={"customer_id": str(pk)})
        raise NotFoundError(f"Customer {pk} not found") from exc


def append_payment_note(*, customer: Customer, notes: str, at=None) -> Customer:
    text = (notes or "").strip()
    if not text:
        return customer

    stamp = (at or timezone.now()).isoformat()
    existing = f"{customer.notes}\n" if customer.notes else ""
    customer.notes = f"{existing}[Payment {stamp}] {text}"
    customer.save(update_fields=["notes", "updated_at"])
    return customer
