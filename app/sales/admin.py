from django.contrib import admin

from .models import CustomInstallment, Sale


class CustomInstallmentInline(admin.TabularInline):
    model = CustomInstallment
    extra = 0
    ordering = ("position",)


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "partner",
        "customer_name",
        "total_amount",
        "applied_rate",
        "total_commission",
        "plan_type",
        "sale_date",
    )
    list_filter = ("plan_type", "cadence", "partner")
    search_fields = ("id", "customer_name", "partner__company_name")
    ordering = ("-sale_date",)
    readonly_fields = ("total_commission",)
    inlines = [CustomInstallmentInline]
