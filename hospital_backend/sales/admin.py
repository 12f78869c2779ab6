# sales/admin.py

from django.contrib import admin

from sales.models import Sale


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = (
        "bill_no",
        "customer_name",
        "payment_method",
        "total_amount",
        "paid_amount",
        "date",
    )
    # paid_amount moves only through settlements
    readonly_fields = ("bill_no", "paid_amount", "created_at")
    search_fields = ("bill_no", "customer_name")
    list_filter = ("payment_method", "date")

    def has_delete_permission(self, request, obj=None):
        return False
