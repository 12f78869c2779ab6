# payments/api/serializers.py

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.models import Panel, Payment


class PanelSerializer(serializers.ModelSerializer):
    class Meta:
        model = Panel
        fields = ["id", "code", "name", "is_active"]


class PaymentReadSerializer(serializers.ModelSerializer):
    panel_code = serializers.CharField(source="panel.code", read_only=True)
    customer_id = serializers.UUIDField(read_only=True, allow_null=True)
    customer_name = serializers.SerializerMethodField()
    recorded_by = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "panel_code",
            "customer_id",
            "customer_name",
            "invoice_id",
            "amount",
            "method",
            "reference",
            "notes",
            "received_at",
            "recorded_by",
            "created_at",
        ]
        read_only_fields = fields

    def get_customer_name(self, obj) -> str | None:
        return obj.customer.name if obj.customer_id else None

    def get_recorded_by(self, obj) -> str | None:
        return obj.recorded_by.email if obj.recorded_by_id else None


class RecordPaymentCommandSerializer(serializers.Serializer):
    """
    Input for POST /api/payments/.

    The panel defaults to the counter panel; reference is the idempotency key.
    """

    panel = serializers.CharField(required=False, allow_blank=True, default="")
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    reference = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, required=False, default=Payment.METHOD_CASH)
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    invoice_id = serializers.CharField(required=False, allow_blank=True, default="", max_length=64)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    received_at = serializers.DateTimeField(required=False, allow_null=True)


class RecordPaymentResultSerializer(serializers.Serializer):
    created = serializers.BooleanField()
    replayed = serializers.BooleanField()
    payment = PaymentReadSerializer()
