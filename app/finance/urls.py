from django.urls import path

from . import api_views

app_name = "finance"

urlpatterns = [
    path("", api_views.api_commission_list, name="commission_list"),
    path("projections", api_views.api_projections, name="projections"),
    path("payments", api_views.api_payment_history, name="payment_history"),
    path("mark-paid", api_views.api_mark_paid, name="mark_paid"),
    path("cancel-client", api_views.api_cancel_client, name="cancel_client"),
]
