from django.contrib import admin

from .models import Partner


@admin.register(Partner)
class PartnerAdmin(admin.ModelAdmin):
    list_display = ("company_name", "standard_rate", "id", "created_at")
    search_fields = ("company_name", "id")
    ordering = ("company_name",)
