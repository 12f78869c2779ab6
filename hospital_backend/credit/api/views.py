# credit/api/views.py

"""
CREDIT SETTLEMENT API

GET  /api/credit/customers/                     credited customers (search, company)
GET  /api/credit/customers/<uuid>/sales/        credit sales, oldest first
GET  /api/credit/customers/<uuid>/balance/      derived outstanding balance
POST /api/credit/customers/<uuid>/payments/     record + auto-allocate (pay_credit)
POST /api/credit/customers/<uuid>/settle/       explicit allocations (settle_credit)

Response shapes:
- applied:  outcome="applied", remainder "0.00"
- partial:  outcome="partial", remainder > 0 (money beyond the balance)
- rejected: {"error": {"code", "message", "details"?}} with 400/404/409
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from credit.api.errors import service_error_response
from credit.api.serializers import (
    CreditCustomerSerializer,
    CreditSaleRowSerializer,
    PayCreditCommandSerializer,
    PayCreditResultSerializer,
    SettleCreditCommandSerializer,
    SettlementResultSerializer,
)
from credit.services.exceptions import CreditServiceError
from credit.services.settlement import (
    customer_balance,
    get_credit_sales,
    list_credit_customers,
    pay_credit,
    settle_credit,
)
from permissions.roles import (
    CAP_CREDIT_COLLECT,
    CAP_CREDIT_SETTLE,
    CAP_CREDIT_VIEW,
    HasCapability,
)


class CreditCustomerListView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CREDIT_VIEW

    @extend_schema(
        parameters=[
            OpenApiParameter("search", str, description="Case-insensitive match on customer name"),
            OpenApiParameter("company", str, description="Exact company name"),
        ],
        responses=CreditCustomerSerializer(many=True),
    )
    def get(self, request):
        rows = list_credit_customers(
            search=request.query_params.get("search", ""),
            company=request.query_params.get("company", ""),
        )
        return Response(CreditCustomerSerializer(rows, many=True).data)


class CreditSalesView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CREDIT_VIEW

    @extend_schema(responses=CreditSaleRowSerializer(many=True))
    def get(self, request, customer_id):
        try:
            rows = get_credit_sales(customer_id)
        except CreditServiceError as exc:
            return service_error_response(exc)
        return Response(CreditSaleRowSerializer(rows, many=True).data)


class CustomerBalanceView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CREDIT_VIEW

    @extend_schema(responses=CreditCustomerSerializer)
    def get(self, request, customer_id):
        try:
            balance = customer_balance(customer_id)
        except CreditServiceError as exc:
            return service_error_response(exc)
        return Response(CreditCustomerSerializer(balance).data)


class PayCreditView(APIView):
    """
    Take a lump-sum payment from a credit customer.

    201 for a new payment, 200 when the (panel, reference) was already
    recorded; the replay carries the original settlement.
    """

    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CREDIT_COLLECT

    @extend_schema(
        request=PayCreditCommandSerializer,
        responses={201: PayCreditResultSerializer, 200: PayCreditResultSerializer},
    )
    def post(self, request, customer_id):
        command = PayCreditCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        data = command.validated_data

        try:
            result = pay_credit(
                customer_id=customer_id,
                amount=data["amount"],
                date=data.get("date"),
                panel=data.get("panel") or None,
                method=data.get("method"),
                reference=data.get("reference"),
                notes=data.get("notes", ""),
                user=request.user,
            )
        except CreditServiceError as exc:
            return service_error_response(exc)

        return Response(
            PayCreditResultSerializer(result).data,
            status=status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED,
        )


class SettleCreditView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CREDIT_SETTLE

    @extend_schema(request=SettleCreditCommandSerializer, responses={200: SettlementResultSerializer})
    def post(self, request, customer_id):
        command = SettleCreditCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        data = command.validated_data

        try:
            result = settle_credit(
                customer_id=customer_id,
                allocations=data["allocations"],
                notes=data.get("notes", ""),
                user=request.user,
            )
        except CreditServiceError as exc:
            return service_error_response(exc)

        return Response(SettlementResultSerializer(result).data, status=status.HTTP_200_OK)
