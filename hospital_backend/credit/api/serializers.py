# credit/api/serializers.py

"""
Credit API serializers.

Command serializers validate request bodies at the HTTP edge; the services
validate again. Read serializers render service result dataclasses.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.api.serializers import PaymentReadSerializer
from payments.models import Payment

MONEY = {"max_digits": 12, "decimal_places": 2}


# ------------------------------------------------------------
# READ
# ------------------------------------------------------------


class CreditCustomerSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    customer_name = serializers.CharField()
    total_credit = serializers.DecimalField(**MONEY)
    total_paid = serializers.DecimalField(**MONEY)
    outstanding = serializers.DecimalField(**MONEY)
    sales_count = serializers.IntegerField()
    last_sale_date = serializers.DateTimeField(allow_null=True)


class CreditSaleRowSerializer(serializers.Serializer):
    sale_id = serializers.UUIDField()
    bill_no = serializers.CharField()
    total_amount = serializers.DecimalField(**MONEY)
    paid_amount = serializers.DecimalField(**MONEY)
    remaining = serializers.DecimalField(**MONEY)
    date = serializers.DateTimeField()


class AppliedAllocationSerializer(serializers.Serializer):
    sale_id = serializers.UUIDField()
    bill_no = serializers.CharField()
    amount = serializers.DecimalField(**MONEY)


class SettlementResultSerializer(serializers.Serializer):
    settlement_id = serializers.UUIDField(source="audit.id")
    outcome = serializers.CharField()
    applied = AppliedAllocationSerializer(many=True)
    total_applied = serializers.DecimalField(**MONEY)
    remainder = serializers.DecimalField(**MONEY)


class PayCreditResultSerializer(serializers.Serializer):
    outcome = serializers.CharField()
    replayed = serializers.BooleanField()
    payment = PaymentReadSerializer()
    settlement_id = serializers.UUIDField(source="settlement.audit.id")
    applied = AppliedAllocationSerializer(many=True)
    remainder = serializers.DecimalField(**MONEY)
    balance = serializers.DecimalField(**MONEY)


# ------------------------------------------------------------
# COMMANDS
# ------------------------------------------------------------


class PayCreditCommandSerializer(serializers.Serializer):
    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)
    date = serializers.DateTimeField(required=False, allow_null=True)
    panel = serializers.CharField(required=False, allow_blank=True, default="")
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, required=False, default=Payment.METHOD_CASH)
    reference = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AllocationLineSerializer(serializers.Serializer):
    sale_id = serializers.UUIDField()
    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)


class SettleCreditCommandSerializer(serializers.Serializer):
    allocations = AllocationLineSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
