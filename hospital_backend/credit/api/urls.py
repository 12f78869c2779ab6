# credit/api/urls.py

from django.urls import path

from credit.api.views import (
    CreditCustomerListView,
    CreditSalesView,
    CustomerBalanceView,
    PayCreditView,
    SettleCreditView,
)

app_name = "credit"

urlpatterns = [
    path("customers/", CreditCustomerListView.as_view(), name="customer-list"),
    path("customers/<uuid:customer_id>/sales/", CreditSalesView.as_view(), name="customer-sales"),
    path("customers/<uuid:customer_id>/balance/", CustomerBalanceView.as_view(), name="customer-balance"),
    path("customers/<uuid:customer_id>/payments/", PayCreditView.as_view(), name="customer-pay"),
    path("customers/<uuid:customer_id>/settle/", SettleCreditView.as_view(), name="customer-settle"),
]
