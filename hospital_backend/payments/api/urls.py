# payments/api/urls.py

from django.urls import path

from payments.api.views import PanelListView, PaymentListCreateView

app_name = "payments"

urlpatterns = [
    path("", PaymentListCreateView.as_view(), name="payment-list"),
    path("panels/", PanelListView.as_view(), name="panel-list"),
]
