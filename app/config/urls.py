"""
URL configuration for config project - Comisiones Partners
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # API JSON
    path('api/partners/', include('partners.urls')),         # Partners
    path('api/sales/', include('sales.urls')),               # Ventas y cronogramas
    path('api/commissions/', include('finance.urls')),       # Proyecciones, pagos, estados
]
