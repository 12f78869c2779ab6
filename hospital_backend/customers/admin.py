# customers/admin.py

from django.contrib import admin

from customers.models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "company_name", "phone", "mr_number", "customer_since")
    search_fields = ("name", "company_name", "phone", "cnic", "mr_number")
    list_filter = ("company_name",)
    readonly_fields = ("notes", "created_at", "updated_at")
