# credit/admin.py

from django.contrib import admin

from credit.models import SettlementAudit


@admin.register(SettlementAudit)
class SettlementAuditAdmin(admin.ModelAdmin):
    list_display = ("created_at", "kind", "customer", "amount_requested", "amount_applied", "remainder", "performed_by")
    list_filter = ("kind",)
    search_fields = ("customer__name", "notes", "payment__reference")
    ordering = ("-created_at",)
    readonly_fields = [f.name for f in SettlementAudit._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
