# payments/admin.py

from django.contrib import admin

from payments.models import Panel, Payment


@admin.register(Panel)
class PanelAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("code", "name")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Read-only: payments are append-only ledger entries.
    """

    list_display = ("received_at", "panel", "reference", "amount", "method", "customer", "invoice_id")
    list_filter = ("panel", "method")
    search_fields = ("reference", "invoice_id", "customer__name")
    ordering = ("-received_at",)
    readonly_fields = [f.name for f in Payment._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
