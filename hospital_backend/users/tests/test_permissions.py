# users/tests/test_permissions.py

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APIRequestFactory

from permissions.roles import (
    CAP_CREDIT_COLLECT,
    CAP_CREDIT_SETTLE,
    CAP_CREDIT_VIEW,
    CAP_PAYMENTS_RECORD,
    HasAnyCapability,
    HasCapability,
    IsStaff,
    capabilities_for,
)

User = get_user_model()


class _View:
    def __init__(self, required=None, any_of=None):
        self.required_capability = required
        self.required_any_capabilities = any_of


class CapabilityPermissionTests(TestCase):
    """
    GUARANTEES:
    - capabilities come from the role map
    - views that forget to declare a capability deny everyone
    - anonymous users denied everywhere
    """

    def setUp(self):
        self.factory = APIRequestFactory()

        self.admin = User.objects.create_user(email="admin@example.com", password="pass", role="admin")
        self.accountant = User.objects.create_user(email="acc@example.com", password="pass", role="accountant")
        self.cashier = User.objects.create_user(email="cashier@example.com", password="pass", role="cashier")
        self.reception = User.objects.create_user(email="reception@example.com", password="pass", role="reception")

    def _request_for(self, user=None):
        request = self.factory.get("/")
        request.user = user
        return request

    def test_role_capability_map(self):
        self.assertIn(CAP_CREDIT_SETTLE, capabilities_for(self.accountant))
        self.assertIn(CAP_PAYMENTS_RECORD, capabilities_for(self.accountant))
        self.assertIn(CAP_CREDIT_COLLECT, capabilities_for(self.cashier))
        self.assertNotIn(CAP_CREDIT_SETTLE, capabilities_for(self.cashier))
        self.assertEqual(capabilities_for(self.reception), set())

    def test_superuser_has_every_capability(self):
        root = User.objects.create_superuser(email="root@example.com", password="pass")
        self.assertIn(CAP_PAYMENTS_RECORD, capabilities_for(root))

    def test_has_capability(self):
        view = _View(required=CAP_CREDIT_SETTLE)
        self.assertTrue(HasCapability().has_permission(self._request_for(self.accountant), view))
        self.assertFalse(HasCapability().has_permission(self._request_for(self.cashier), view))

    def test_missing_declaration_denies(self):
        self.assertFalse(HasCapability().has_permission(self._request_for(self.admin), _View()))
        self.assertFalse(HasAnyCapability().has_permission(self._request_for(self.admin), _View()))

    def test_has_any_capability(self):
        view = _View(any_of={CAP_CREDIT_COLLECT, CAP_CREDIT_SETTLE})
        self.assertTrue(HasAnyCapability().has_permission(self._request_for(self.cashier), view))
        self.assertFalse(HasAnyCapability().has_permission(self._request_for(self.reception), view))

    def test_anonymous_user_denied_everywhere(self):
        request = self._request_for(None)
        self.assertFalse(HasCapability().has_permission(request, _View(required=CAP_CREDIT_VIEW)))
        self.assertFalse(HasAnyCapability().has_permission(request, _View(any_of={CAP_CREDIT_VIEW})))
        self.assertFalse(IsStaff().has_permission(request, None))


class MeEndpointTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="cashier1", password="pass", role="cashier")

    def test_me_requires_auth(self):
        resp = self.client.get(reverse("users:me"))
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_lists_capabilities(self):
        self.client.force_authenticate(user=self.user)
        resp = self.client.get(reverse("users:me"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["email"], "cashier1@local.test")
        self.assertEqual(resp.data["capabilities"], sorted([CAP_CREDIT_COLLECT, CAP_CREDIT_VIEW]))

    def test_jwt_login(self):
        resp = self.client.post(
            reverse("jwt-create"),
            {"email": "cashier1@local.test", "password": "pass"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIn("access", resp.data)
