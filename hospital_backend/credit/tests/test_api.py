# credit/tests/test_api.py

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from customers.models import Customer
from sales.services.sale_store import create_credit_sale

User = get_user_model()


class CreditApiTestBase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.cashier = User.objects.create_user(email="cashier@example.com", password="pass", role="cashier")
        self.accountant = User.objects.create_user(email="acc@example.com", password="pass", role="accountant")
        self.reception = User.objects.create_user(email="rec@example.com", password="pass", role="reception")

        self.customer = Customer.objects.create(name="Saima", company_name="Saima Traders")
        now = timezone.now()
        self.s1 = create_credit_sale(customer=self.customer, total_amount="100.00", date=now - timedelta(days=2))
        self.s2 = create_credit_sale(customer=self.customer, total_amount="200.00", date=now - timedelta(days=1))

    def url(self, name, customer_id=None):
        if customer_id is None:
            return reverse(f"credit:{name}")
        return reverse(f"credit:{name}", kwargs={"customer_id": customer_id})


class CreditReadApiTests(CreditApiTestBase):
    def test_anonymous_denied(self):
        resp = self.client.get(self.url("customer-list"))
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_reception_has_no_credit_access(self):
        self.client.force_authenticate(user=self.reception)
        resp = self.client.get(self.url("customer-list"))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_customer_list(self):
        self.client.force_authenticate(user=self.cashier)

        resp = self.client.get(self.url("customer-list"), {"search": "sai"})

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.data), 1)
        row = resp.data[0]
        self.assertEqual(row["customer_id"], str(self.customer.id))
        self.assertEqual(row["total_credit"], "300.00")
        self.assertEqual(row["outstanding"], "300.00")
        self.assertEqual(row["sales_count"], 2)

    def test_customer_list_company_filter(self):
        self.client.force_authenticate(user=self.cashier)
        resp = self.client.get(self.url("customer-list"), {"company": "Nobody Inc"})
        self.assertEqual(resp.data, [])

    def test_credit_sales_oldest_first(self):
        self.client.force_authenticate(user=self.cashier)

        resp = self.client.get(self.url("customer-sales", self.customer.id))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([r["sale_id"] for r in resp.data], [str(self.s1.id), str(self.s2.id)])
        self.assertEqual(resp.data[0]["remaining"], "100.00")
        self.assertEqual(resp.data[0]["bill_no"], self.s1.bill_no)

    def test_unknown_customer_is_404(self):
        self.client.force_authenticate(user=self.cashier)
        resp = self.client.get(self.url("customer-sales", uuid.uuid4()))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["error"]["code"], "NOT_FOUND")

    def test_balance(self):
        self.client.force_authenticate(user=self.cashier)
        resp = self.client.get(self.url("customer-balance", self.customer.id))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["outstanding"], "300.00")


class PayCreditApiTests(CreditApiTestBase):
    def test_pay_applied(self):
        self.client.force_authenticate(user=self.cashier)

        resp = self.client.post(
            self.url("customer-pay", self.customer.id),
            {"amount": "150.00", "reference": "RCPT-7", "notes": "counter"},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["outcome"], "applied")
        self.assertFalse(resp.data["replayed"])
        self.assertEqual(resp.data["remainder"], "0.00")
        self.assertEqual(resp.data["balance"], "150.00")
        self.assertEqual(
            [(a["sale_id"], a["amount"]) for a in resp.data["applied"]],
            [(str(self.s1.id), "100.00"), (str(self.s2.id), "50.00")],
        )

    def test_pay_replay_returns_200_with_original_settlement(self):
        self.client.force_authenticate(user=self.cashier)
        body = {"amount": "50.00", "reference": "RCPT-8"}

        first = self.client.post(self.url("customer-pay", self.customer.id), body, format="json")
        second = self.client.post(self.url("customer-pay", self.customer.id), body, format="json")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertTrue(second.data["replayed"])
        self.assertEqual(second.data["settlement_id"], first.data["settlement_id"])
        self.s1.refresh_from_db()
        self.assertEqual(self.s1.paid_amount, Decimal("50.00"))

    def test_pay_partial(self):
        self.client.force_authenticate(user=self.cashier)

        resp = self.client.post(self.url("customer-pay", self.customer.id), {"amount": "350.00"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["outcome"], "partial")
        self.assertEqual(resp.data["remainder"], "50.00")
        self.assertEqual(resp.data["balance"], "0.00")

    def test_pay_rejects_non_positive(self):
        self.client.force_authenticate(user=self.cashier)
        resp = self.client.post(self.url("customer-pay", self.customer.id), {"amount": "0"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_pay_unknown_customer(self):
        self.client.force_authenticate(user=self.cashier)
        resp = self.client.post(self.url("customer-pay", uuid.uuid4()), {"amount": "10.00"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)


class SettleCreditApiTests(CreditApiTestBase):
    def test_cashier_cannot_settle(self):
        self.client.force_authenticate(user=self.cashier)
        resp = self.client.post(
            self.url("customer-settle", self.customer.id),
            {"allocations": [{"sale_id": str(self.s1.id), "amount": "10.00"}]},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_settle_applied(self):
        self.client.force_authenticate(user=self.accountant)

        resp = self.client.post(
            self.url("customer-settle", self.customer.id),
            {
                "allocations": [
                    {"sale_id": str(self.s1.id), "amount": "100.00"},
                    {"sale_id": str(self.s2.id), "amount": "50.00"},
                ],
                "notes": "cheque 1201",
            },
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["outcome"], "applied")
        self.assertEqual(resp.data["total_applied"], "150.00")
        self.s2.refresh_from_db()
        self.assertEqual(self.s2.paid_amount, Decimal("50.00"))

    def test_over_allocation_is_409_with_remaining(self):
        self.client.force_authenticate(user=self.accountant)

        resp = self.client.post(
            self.url("customer-settle", self.customer.id),
            {"allocations": [{"sale_id": str(self.s1.id), "amount": "150.00"}]},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["error"]["code"], "OVER_ALLOCATION")
        self.assertEqual(resp.data["error"]["details"]["remaining"], "100.00")
        self.s1.refresh_from_db()
        self.assertEqual(self.s1.paid_amount, Decimal("0.00"))

    def test_foreign_sale_is_404(self):
        other = Customer.objects.create(name="Other")
        foreign = create_credit_sale(customer=other, total_amount="10.00")
        self.client.force_authenticate(user=self.accountant)

        resp = self.client.post(
            self.url("customer-settle", self.customer.id),
            {"allocations": [{"sale_id": str(foreign.id), "amount": "5.00"}]},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_empty_allocations_is_400(self):
        self.client.force_authenticate(user=self.accountant)
        resp = self.client.post(self.url("customer-settle", self.customer.id), {"allocations": []}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)


class HealthApiTests(TestCase):
    def test_health_is_public(self):
        resp = APIClient().get(reverse("health-check"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data, {"status": "ok", "db": "ok"})
