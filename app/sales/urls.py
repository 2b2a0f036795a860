from django.urls import path

from . import views

app_name = "sales"

urlpatterns = [
    path("", views.sale_collection, name="sale_collection"),
    path("<str:sale_id>/schedule", views.sale_schedule, name="sale_schedule"),
]
