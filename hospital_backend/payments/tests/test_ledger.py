# payments/tests/test_ledger.py

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings

from credit.services.exceptions import CreditValidationError, NotFoundError
from customers.models import Customer
from payments.models import Panel, Payment
from payments.services.ledger import (
    get_default_panel,
    record_payment,
    resolve_panel,
)


class RecordPaymentTests(TestCase):
    """
    GUARANTEES:
    - (panel, reference) records at most one payment
    - a replay returns the stored payment, tagged created=False
    - payments without a reference are never deduplicated
    - invalid amounts are rejected before anything is written
    """

    def setUp(self):
        self.panel = Panel.objects.create(code="efu", name="EFU Insurance")
        self.other_panel = Panel.objects.create(code="JUBILEE", name="Jubilee Life")

    def test_panel_code_is_normalized(self):
        self.assertEqual(self.panel.code, "EFU")

    def test_first_record_is_created(self):
        record = record_payment(panel=self.panel, amount="500.00", reference="X")

        self.assertTrue(record.created)
        self.assertFalse(record.replayed)
        self.assertEqual(record.payment.amount, Decimal("500.00"))
        self.assertEqual(Payment.objects.count(), 1)

    def test_same_reference_twice_records_one_row(self):
        first = record_payment(panel=self.panel, amount=500, reference="X")
        second = record_payment(panel=self.panel, amount=500, reference="X")

        self.assertTrue(first.created)
        self.assertFalse(second.created)
        self.assertTrue(second.replayed)
        self.assertEqual(second.payment.id, first.payment.id)
        self.assertEqual(Payment.objects.filter(panel=self.panel, reference="X").count(), 1)

    def test_replay_with_different_amount_keeps_stored_amount(self):
        first = record_payment(panel=self.panel, amount="500.00", reference="X")

        with self.assertLogs("payments", level="WARNING") as logs:
            second = record_payment(panel=self.panel, amount="450.00", reference="X")

        self.assertEqual(second.payment.id, first.payment.id)
        self.assertEqual(second.payment.amount, Decimal("500.00"))
        self.assertTrue(any("differs" in line for line in logs.output))

    def test_reference_is_scoped_per_panel(self):
        a = record_payment(panel=self.panel, amount=100, reference="X")
        b = record_payment(panel=self.other_panel, amount=100, reference="X")

        self.assertTrue(a.created)
        self.assertTrue(b.created)
        self.assertNotEqual(a.payment.id, b.payment.id)

    def test_reference_is_trimmed_before_matching(self):
        first = record_payment(panel=self.panel, amount=100, reference="TXN-1")
        second = record_payment(panel=self.panel, amount=100, reference="  TXN-1 ")
        self.assertEqual(second.payment.id, first.payment.id)
        self.assertFalse(second.created)

    def test_missing_reference_is_never_deduplicated(self):
        a = record_payment(panel=self.panel, amount=100)
        b = record_payment(panel=self.panel, amount=100, reference="")
        c = record_payment(panel=self.panel, amount=100, reference="   ")

        self.assertTrue(a.created and b.created and c.created)
        self.assertEqual(Payment.objects.count(), 3)
        self.assertTrue(all(p.reference is None for p in Payment.objects.all()))

    def test_non_positive_amount_rejected_before_write(self):
        for bad in (0, "0.00", -5, "-0.01", "abc", None, True):
            with self.subTest(amount=bad):
                with self.assertRaises(CreditValidationError):
                    record_payment(panel=self.panel, amount=bad, reference="BAD")
        self.assertEqual(Payment.objects.count(), 0)

    def test_amount_beyond_column_size_rejected_before_write(self):
        for bad in ("1e30", "10000000000.00", "Infinity", "NaN"):
            with self.subTest(amount=bad):
                with self.assertRaises(CreditValidationError):
                    record_payment(panel=self.panel, amount=bad, reference="HUGE")
        self.assertEqual(Payment.objects.count(), 0)

        record = record_payment(panel=self.panel, amount="9999999999.99", reference="MAX")
        self.assertEqual(record.payment.amount, Decimal("9999999999.99"))

    def test_unknown_panel_is_not_found(self):
        with self.assertRaises(NotFoundError):
            record_payment(panel="NOPE", amount=10)

    def test_inactive_panel_is_rejected(self):
        Panel.objects.create(code="OLD", name="Retired", is_active=False)
        with self.assertRaises(CreditValidationError):
            record_payment(panel="old", amount=10)

    def test_unsupported_method_rejected(self):
        with self.assertRaises(CreditValidationError):
            record_payment(panel=self.panel, amount=10, method="bitcoin")

    def test_replay_inside_outer_transaction_keeps_it_usable(self):
        with transaction.atomic():
            record_payment(panel=self.panel, amount=10, reference="R1")
            replay = record_payment(panel=self.panel, amount=10, reference="R1")
            # the outer transaction must still accept queries
            self.assertEqual(Payment.objects.count(), 1)
        self.assertFalse(replay.created)

    def test_payment_links_customer_and_invoice(self):
        customer = Customer.objects.create(name="Imran")
        record = record_payment(
            panel=self.panel,
            amount="75.50",
            reference="INV-9",
            customer=customer,
            invoice_id=" INV-9 ",
            method="BANK",
        )
        self.assertEqual(record.payment.customer_id, customer.id)
        self.assertEqual(record.payment.invoice_id, "INV-9")
        self.assertEqual(record.payment.method, Payment.METHOD_BANK)


class PaymentImmutabilityTests(TestCase):
    def setUp(self):
        panel = Panel.objects.create(code="P1", name="Panel One")
        self.payment = record_payment(panel=panel, amount=10, reference="IMM").payment

    def test_payment_cannot_be_updated(self):
        self.payment.amount = Decimal("20.00")
        with self.assertRaises(ValidationError):
            self.payment.save()

    def test_payment_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            self.payment.delete()

    def test_database_rejects_duplicate_reference(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Payment.objects.create(panel=self.payment.panel, amount=Decimal("10.00"), reference="IMM")


class PanelResolutionTests(TestCase):
    @override_settings(CREDIT_DEFAULT_PANEL_CODE="counter", CREDIT_DEFAULT_PANEL_NAME="Front Counter")
    def test_default_panel_created_once(self):
        first = get_default_panel()
        second = get_default_panel()

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(first.code, "COUNTER")
        self.assertEqual(first.name, "Front Counter")

    def test_resolve_by_code_pk_and_blank(self):
        panel = Panel.objects.create(code="SLIC", name="State Life")

        self.assertEqual(resolve_panel("slic").pk, panel.pk)
        self.assertEqual(resolve_panel(panel.pk).pk, panel.pk)
        self.assertEqual(resolve_panel(panel).pk, panel.pk)
        self.assertEqual(resolve_panel("").pk, get_default_panel().pk)
        self.assertEqual(resolve_panel(None).pk, get_default_panel().pk)
