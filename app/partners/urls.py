from django.urls import path

from . import views

app_name = "partners"

urlpatterns = [
    path("", views.partner_collection, name="partner_collection"),
    path("<str:partner_id>/delete", views.partner_delete, name="partner_delete"),
]
