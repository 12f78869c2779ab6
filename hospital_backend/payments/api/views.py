# payments/api/views.py

"""
PAYMENT LEDGER API

GET  /api/payments/          -> filtered, paginated ledger listing
POST /api/payments/          -> record a payment (201 new, 200 replay)
GET  /api/payments/panels/   -> active panels

POST is the entry point for panel sync jobs and webhook relays; it records
money only. Applying money to credit sales is /api/credit/.../payments/.
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle

from credit.api.errors import service_error_response
from credit.services.exceptions import CreditServiceError
from customers.services.directory import get_customer
from payments.api.filters import PaymentFilter
from payments.api.serializers import (
    PanelSerializer,
    PaymentReadSerializer,
    RecordPaymentCommandSerializer,
    RecordPaymentResultSerializer,
)
from payments.models import Panel, Payment
from payments.services.ledger import record_payment
from permissions.roles import (
    CAP_PAYMENTS_RECORD,
    CAP_PAYMENTS_VIEW,
    HasCapability,
)


class PaymentSyncThrottle(UserRateThrottle):
    scope = "payment_sync"


class PaymentListCreateView(generics.GenericAPIView):
    queryset = Payment.objects.select_related("panel", "customer", "recorded_by")
    serializer_class = PaymentReadSerializer
    filterset_class = PaymentFilter
    permission_classes = [IsAuthenticated, HasCapability]

    required_capability = CAP_PAYMENTS_VIEW

    def get_permissions(self):
        if self.request.method == "POST":
            self.required_capability = CAP_PAYMENTS_RECORD
        return super().get_permissions()

    def get_throttles(self):
        if self.request.method == "POST":
            return [PaymentSyncThrottle()]
        return super().get_throttles()

    def get_serializer_class(self):
        if self.request.method == "POST":
            return RecordPaymentCommandSerializer
        return PaymentReadSerializer

    @extend_schema(responses=PaymentReadSerializer(many=True))
    def get(self, request):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(PaymentReadSerializer(page, many=True).data)
        return Response(PaymentReadSerializer(qs, many=True).data)

    @extend_schema(
        request=RecordPaymentCommandSerializer,
        responses={201: RecordPaymentResultSerializer, 200: RecordPaymentResultSerializer},
    )
    def post(self, request):
        command = RecordPaymentCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        data = command.validated_data

        try:
            customer = None
            if data.get("customer_id"):
                customer = get_customer(data["customer_id"])

            record = record_payment(
                panel=data.get("panel") or None,
                amount=data["amount"],
                reference=data.get("reference"),
                method=data.get("method"),
                customer=customer,
                invoice_id=data.get("invoice_id", ""),
                notes=data.get("notes", ""),
                received_at=data.get("received_at"),
                recorded_by=request.user,
            )
        except CreditServiceError as exc:
            return service_error_response(exc)

        payload = RecordPaymentResultSerializer(
            {"created": record.created, "replayed": record.replayed, "payment": record.payment}
        ).data
        return Response(
            payload,
            status=status.HTTP_201_CREATED if record.created else status.HTTP_200_OK,
        )


class PanelListView(generics.ListAPIView):
    serializer_class = PanelSerializer
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_PAYMENTS_VIEW
    pagination_class = None
    filter_backends = []

    def get_queryset(self):
        return Panel.objects.filter(is_active=True).order_by("name")
