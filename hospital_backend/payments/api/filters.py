# payments/api/filters.py

import django_filters

from payments.models import Payment


class PaymentFilter(django_filters.FilterSet):
    panel = django_filters.CharFilter(field_name="panel__code", lookup_expr="iexact")
    method = django_filters.ChoiceFilter(choices=Payment.METHOD_CHOICES)
    customer = django_filters.UUIDFilter(field_name="customer_id")
    reference = django_filters.CharFilter(field_name="reference", lookup_expr="exact")
    received_after = django_filters.IsoDateTimeFilter(field_name="received_at", lookup_expr="gte")
    received_before = django_filters.IsoDateTimeFilter(field_name="received_at", lookup_expr="lt")

    class Meta:
        model = Payment
        fields = ["panel", "method", "customer", "reference", "received_after", "received_before"]
