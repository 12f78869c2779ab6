# payments/management/commands/sync_panel_payments.py

"""
Import a panel's external payment events into the ledger.

Input file: JSON list of events, or {"payments": [...]}. Each event:
    {
      "reference": "TXN-1001",          # idempotency key within the panel
      "amount": "500.00",
      "method": "bank",                 # optional
      "invoice_id": "INV-77",           # optional
      "customer_id": "<uuid>",          # optional
      "received_at": "2026-01-05T10:00:00+05:00",  # optional
      "notes": "..."                    # optional
    }

Re-running the same file is safe: already recorded references are counted
as replays, never duplicated.

With --allocate, recorded payments that carry a customer and have no
settlement yet are applied to that customer's credit sales, oldest first.
"""

from __future__ import annotations

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.dateparse import parse_datetime

from credit.models import SettlementAudit
from credit.services.exceptions import CreditServiceError
from credit.services.settlement import apply_recorded_payment
from customers.services.directory import get_customer
from payments.services.ledger import record_payment, resolve_panel


def _load_events(path: Path) -> list[dict]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CommandError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise CommandError(f"{path} is not valid JSON: {exc}") from exc

    if isinstance(raw, dict):
        raw = raw.get("payments", [])
    if not isinstance(raw, list):
        raise CommandError("Expected a JSON list of payment events (or {'payments': [...]})")
    return raw


def _event_label(idx: int, event) -> str:
    if isinstance(event, dict) and event.get("reference"):
        return str(event["reference"])
    return f"#{idx + 1}"


class Command(BaseCommand):
    help = "Record a panel's external payment events in the payment ledger (idempotent by reference)."

    def add_arguments(self, parser):
        parser.add_argument("--file", dest="file", required=True, help="Path to the JSON events file")
        parser.add_argument("--panel", dest="panel", required=True, help="Panel code the events belong to")
        parser.add_argument(
            "--allocate",
            action="store_true",
            help="Apply recorded payments that name a customer and have no settlement yet to their oldest credit sales",
        )
        parser.add_argument("--dry-run", action="store_true", help="Validate and report without writing")

    def handle(self, *args, **options):
        path = Path(options["file"])
        dry_run = bool(options.get("dry_run"))
        do_allocate = bool(options.get("allocate"))

        try:
            panel = resolve_panel(options["panel"])
        except CreditServiceError as exc:
            raise CommandError(str(exc)) from exc

        events = _load_events(path)

        self.stdout.write(self.style.MIGRATE_HEADING(f"Sync panel payments -> {panel.code}"))
        self.stdout.write(f"Events in file: {len(events)}")
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.\n")

        created = 0
        replayed = 0
        allocated = 0
        unapplied = 0
        failed = 0
        errors: list[str] = []

        for idx, event in enumerate(events):
            label = _event_label(idx, event)

            if not isinstance(event, dict):
                failed += 1
                errors.append(f"{label}: event must be an object")
                continue

            received_at = None
            if event.get("received_at"):
                received_at = parse_datetime(str(event["received_at"]))
                if received_at is None:
                    failed += 1
                    errors.append(f"{label}: invalid received_at {event['received_at']!r}")
                    continue

            try:
                with transaction.atomic():
                    customer = get_customer(event["customer_id"]) if event.get("customer_id") else None

                    record = record_payment(
                        panel=panel,
                        amount=event.get("amount"),
                        reference=event.get("reference"),
                        method=event.get("method"),
                        customer=customer,
                        invoice_id=event.get("invoice_id") or "",
                        notes=event.get("notes") or "",
                        received_at=received_at,
                    )

                    # replays allocate too when an earlier run skipped --allocate
                    if (
                        do_allocate
                        and record.payment.customer_id is not None
                        and not SettlementAudit.objects.filter(payment=record.payment).exists()
                    ):
                        settlement = apply_recorded_payment(payment=record.payment, notes=event.get("notes") or "")
                        allocated += 1
                        unapplied += 0 if settlement.remainder == 0 else 1
                        self.stdout.write(
                            f"ALLOCATE {label}: applied {settlement.total_applied}, remainder {settlement.remainder}"
                        )

                    if dry_run:
                        transaction.set_rollback(True)
            except CreditServiceError as exc:
                failed += 1
                errors.append(f"{label}: {exc}")
                continue

            if record.created:
                created += 1
                self.stdout.write(f"RECORD  {label} {record.payment.amount}")
            else:
                replayed += 1
                self.stdout.write(f"REPLAY  {label} (already recorded as {record.payment.id})")

        self.stdout.write("\n--- Summary ---")
        self.stdout.write(f"Recorded:   {created}")
        self.stdout.write(f"Replayed:   {replayed}")
        self.stdout.write(f"Allocated:  {allocated} ({unapplied} with unapplied remainder)")
        self.stdout.write(f"Failed:     {failed}")

        if errors:
            self.stdout.write("\n--- Errors ---")
            for e in errors[:50]:
                self.stdout.write(f"- {e}")
            if len(errors) > 50:
                self.stdout.write(f"... ({len(errors) - 50} more)")

            if not dry_run:
                raise SystemExit(2)
