"""
Inventory — URL Configuration

@file inventory/urls.py
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import InventaireViewSet

app_name = 'inventory'

router = SimpleRouter()
router.register('', InventaireViewSet, basename='inventaire')

urlpatterns = [
    path('', include(router.urls)),
]
