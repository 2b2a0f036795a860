from django.contrib import admin

from .models import PaymentRecord


@admin.register(PaymentRecord)
class PaymentRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "sale_id", "partner_id", "customer_name", "amount", "due_date", "paid_date")
    list_filter = ("plan_type",)
    search_fields = ("sale_id", "partner_id", "customer_name")
    ordering = ("-paid_date",)
