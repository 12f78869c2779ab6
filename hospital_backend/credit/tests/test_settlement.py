# credit/tests/test_settlement.py

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone

from credit.models import SettlementAudit
from credit.services.exceptions import (
    CreditValidationError,
    NotFoundError,
    OverAllocationError,
    ReferenceConflictError,
)
from credit.services.settlement import (
    apply_recorded_payment,
    customer_balance,
    get_credit_sales,
    list_credit_customers,
    pay_credit,
    settle_credit,
)
from customers.models import Customer
from payments.models import Panel, Payment
from payments.services.ledger import record_payment
from sales.models import Sale
from sales.services.sale_store import create_credit_sale

User = get_user_model()


class SettlementTestBase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="cashier@example.com", password="pass", role="cashier")
        self.customer = Customer.objects.create(name="Nadia", company_name="Metro Labs")
        now = timezone.now()
        self.s1 = create_credit_sale(customer=self.customer, total_amount="100.00", date=now - timedelta(days=2))
        self.s2 = create_credit_sale(customer=self.customer, total_amount="200.00", date=now - timedelta(days=1))

    def paid(self, sale) -> Decimal:
        sale.refresh_from_db()
        return sale.paid_amount


@override_settings(CREDIT_DEFAULT_PANEL_CODE="PHARMACY", CREDIT_DEFAULT_PANEL_NAME="Pharmacy Counter")
class PayCreditTests(SettlementTestBase):
    def test_pay_records_payment_and_allocates_oldest_first(self):
        result = pay_credit(customer_id=self.customer.id, amount="150.00", user=self.user)

        self.assertFalse(result.replayed)
        self.assertEqual(result.outcome, "applied")
        self.assertEqual(result.remainder, Decimal("0.00"))
        self.assertEqual(result.balance, Decimal("150.00"))
        self.assertEqual(result.payment.panel.code, "PHARMACY")
        self.assertEqual(result.payment.customer_id, self.customer.id)
        self.assertEqual(result.payment.recorded_by_id, self.user.id)
        self.assertEqual(self.paid(self.s1), Decimal("100.00"))
        self.assertEqual(self.paid(self.s2), Decimal("50.00"))

        audit = SettlementAudit.objects.get(payment=result.payment)
        self.assertEqual(audit.kind, SettlementAudit.KIND_AUTO)
        self.assertEqual(audit.amount_applied, Decimal("150.00"))
        self.assertEqual(len(audit.lines), 2)
        self.assertEqual(audit.performed_by_id, self.user.id)

    def test_overpayment_is_partial_with_remainder(self):
        result = pay_credit(customer_id=self.customer.id, amount="400.00")

        self.assertEqual(result.outcome, "partial")
        self.assertEqual(result.remainder, Decimal("100.00"))
        self.assertEqual(result.balance, Decimal("0.00"))
        self.assertEqual(result.payment.amount, Decimal("400.00"))

    def test_replayed_reference_does_not_allocate_twice(self):
        first = pay_credit(customer_id=self.customer.id, amount="120.00", reference="RCPT-1")
        second = pay_credit(customer_id=self.customer.id, amount="120.00", reference="RCPT-1")

        self.assertTrue(second.replayed)
        self.assertEqual(second.payment.id, first.payment.id)
        self.assertEqual(second.settlement.audit.id, first.settlement.audit.id)
        self.assertEqual(
            [(a.sale_id, a.amount) for a in second.applied],
            [(a.sale_id, a.amount) for a in first.applied],
        )
        self.assertEqual(self.paid(self.s1), Decimal("100.00"))
        self.assertEqual(self.paid(self.s2), Decimal("20.00"))
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(SettlementAudit.objects.count(), 1)

    def test_reference_of_another_customer_conflicts(self):
        other = Customer.objects.create(name="Other")
        pay_credit(customer_id=other.id, amount="10.00", reference="SHARED")

        with self.assertRaises(ReferenceConflictError):
            pay_credit(customer_id=self.customer.id, amount="10.00", reference="SHARED")

        self.assertEqual(self.paid(self.s1), Decimal("0.00"))

    def test_payment_date_is_kept(self):
        when = timezone.now() - timedelta(days=7)
        result = pay_credit(customer_id=self.customer.id, amount="10.00", date=when)
        self.assertEqual(result.payment.received_at, when)

    def test_notes_are_appended_to_customer(self):
        pay_credit(customer_id=self.customer.id, amount="10.00", notes="cash at counter")

        self.customer.refresh_from_db()
        self.assertIn("] cash at counter", self.customer.notes)
        self.assertTrue(self.customer.notes.startswith("[Payment "))

    def test_invalid_amount_writes_nothing(self):
        with self.assertRaises(CreditValidationError):
            pay_credit(customer_id=self.customer.id, amount="0")
        with self.assertRaises(CreditValidationError):
            pay_credit(customer_id=self.customer.id, amount="1e30")
        self.assertEqual(Payment.objects.count(), 0)

    def test_unknown_customer(self):
        with self.assertRaises(NotFoundError):
            pay_credit(customer_id=uuid.uuid4(), amount="10.00")

    def test_named_panel(self):
        Panel.objects.create(code="EFU", name="EFU Insurance")
        result = pay_credit(customer_id=self.customer.id, amount="10.00", panel="EFU", method="panel")
        self.assertEqual(result.payment.panel.code, "EFU")
        self.assertEqual(result.payment.method, Payment.METHOD_PANEL)


class ApplyRecordedPaymentTests(SettlementTestBase):
    def test_recorded_payment_is_applied_once(self):
        panel = Panel.objects.create(code="EFU", name="EFU Insurance")
        payment = record_payment(panel=panel, amount="50.00", reference="T-1", customer=self.customer).payment

        first = apply_recorded_payment(payment=payment)
        second = apply_recorded_payment(payment=payment)

        self.assertEqual(first.audit.id, second.audit.id)
        self.assertEqual(self.paid(self.s1), Decimal("50.00"))


class SettleCreditTests(SettlementTestBase):
    def test_explicit_settlement_with_audit_and_notes(self):
        result = settle_credit(
            customer_id=self.customer.id,
            allocations=[
                {"sale_id": self.s1.id, "amount": "100.00"},
                {"sale_id": self.s2.id, "amount": "50.00"},
            ],
            notes="cheque 4411",
            user=self.user,
        )

        self.assertEqual(result.outcome, "applied")
        self.assertEqual(result.total_applied, Decimal("150.00"))
        self.assertEqual(self.paid(self.s1), Decimal("100.00"))
        self.assertEqual(self.paid(self.s2), Decimal("50.00"))

        audit = result.audit
        self.assertEqual(audit.kind, SettlementAudit.KIND_EXPLICIT)
        self.assertIsNone(audit.payment_id)
        self.assertEqual(audit.amount_requested, Decimal("150.00"))
        self.assertEqual(audit.notes, "cheque 4411")
        self.assertEqual(audit.lines[0]["sale_id"], str(self.s1.id))

        self.customer.refresh_from_db()
        self.assertIn("] cheque 4411", self.customer.notes)

    def test_over_allocation_leaves_no_audit(self):
        with self.assertRaises(OverAllocationError):
            settle_credit(customer_id=self.customer.id, allocations=[{"sale_id": self.s1.id, "amount": "150.00"}])

        self.assertEqual(self.paid(self.s1), Decimal("0.00"))
        self.assertEqual(SettlementAudit.objects.count(), 0)

    def test_empty_allocations_rejected(self):
        with self.assertRaises(CreditValidationError):
            settle_credit(customer_id=self.customer.id, allocations=[])

    def test_audit_rows_are_immutable(self):
        result = settle_credit(customer_id=self.customer.id, allocations=[{"sale_id": self.s1.id, "amount": "1.00"}])
        audit = result.audit

        audit.notes = "edited"
        with self.assertRaises(ValidationError):
            audit.save()
        with self.assertRaises(ValidationError):
            audit.delete()


class CreditReadServiceTests(SettlementTestBase):
    def test_get_credit_sales_oldest_first_including_settled(self):
        settle_credit(customer_id=self.customer.id, allocations=[{"sale_id": self.s1.id, "amount": "100.00"}])

        rows = get_credit_sales(self.customer.id)

        self.assertEqual([r.sale_id for r in rows], [self.s1.id, self.s2.id])
        self.assertEqual(rows[0].remaining, Decimal("0.00"))
        self.assertEqual(rows[1].remaining, Decimal("200.00"))

    def test_get_credit_sales_unknown_customer(self):
        with self.assertRaises(NotFoundError):
            get_credit_sales(uuid.uuid4())

    def test_customer_balance(self):
        settle_credit(customer_id=self.customer.id, allocations=[{"sale_id": self.s2.id, "amount": "25.00"}])

        balance = customer_balance(self.customer.id)

        self.assertEqual(balance.total_credit, Decimal("300.00"))
        self.assertEqual(balance.total_paid, Decimal("25.00"))
        self.assertEqual(balance.outstanding, Decimal("275.00"))
        self.assertEqual(balance.sales_count, 2)

    def test_list_credit_customers(self):
        big = Customer.objects.create(name="Big Buyer", company_name="Metro Labs")
        create_credit_sale(customer=big, total_amount="1000.00")
        cash_only = Customer.objects.create(name="Cash Only")
        Sale.objects.create(customer=cash_only, total_amount=Decimal("5.00"), payment_method=Sale.METHOD_CASH)
        # cash sales must not leak into credit totals
        Sale.objects.create(customer=self.customer, total_amount=Decimal("999.00"), payment_method=Sale.METHOD_CASH)

        rows = list_credit_customers()

        self.assertEqual([r.customer_name for r in rows], ["Big Buyer", "Nadia"])
        nadia = rows[1]
        self.assertEqual(nadia.total_credit, Decimal("300.00"))
        self.assertEqual(nadia.outstanding, Decimal("300.00"))
        self.assertEqual(nadia.sales_count, 2)

    def test_list_credit_customers_filters(self):
        other = Customer.objects.create(name="Nadeem", company_name="Other Co")
        create_credit_sale(customer=other, total_amount="10.00")

        self.assertEqual([r.customer_name for r in list_credit_customers(search="nad")], ["Nadia", "Nadeem"])
        self.assertEqual([r.customer_name for r in list_credit_customers(company="Other Co")], ["Nadeem"])
        self.assertEqual(list_credit_customers(company="Metro"), [])
